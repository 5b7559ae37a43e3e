# student_dashboard.py
import streamlit as st

import auth
import business_rules as rules
import queries
import live_refresh
from config import BUCKET_CERTIFICATES, PAYMENT_METHODS
from db_utils import (
    download_file, enroll_student, object_path, set_module_completion, submit_assignment, upload_avatar,
)

BADGES = {"success": "🟢", "info": "🔵", "warning": "🟠", "error": "🔴", "neutral": "⚪"}


# --- Helper Functions ---

def badge(label, level):
    return f"{BADGES.get(level, '⚪')} {label}"


# --- UI Components for Tabs ---

def display_home(user_id, profile):
    st.subheader(f"👋 Hi, {profile.get('full_name') or 'there'}!")
    overview = queries.student_overview(user_id)
    if not overview:
        return

    c1, c2, c3 = st.columns(3)
    c1.metric("Enrolled classes", overview["enrolled_count"])
    c2.metric("Completed", overview["completed_count"])
    c3.metric("Avg. progress", f"{overview['avg_progress']}%")

    st.markdown("#### Continue learning")
    if not overview["enrollments"]:
        st.info("You are not enrolled in any class yet. Have a look at the Enroll tab!")
    for enrollment in overview["enrollments"][:3]:
        progress = int(enrollment.get("progress") or 0)
        st.write(f"**{enrollment['class'].get('title', 'Class')}**")
        st.progress(progress / 100, text=f"{progress}%")

    if overview["recommended"]:
        st.markdown("#### Recommended for you")
        cols = st.columns(3)
        for col, klass in zip(cols, overview["recommended"]):
            with col.container(border=True):
                st.markdown(f"**{klass['title']}**")
                st.caption(str(klass.get("level") or "").capitalize())
                price = float(klass.get("price") or 0)
                st.write("Free" if price == 0 else rules.format_currency(price))
                if st.button("Enroll", key=f"recommend_{klass['id']}"):
                    auth.navigate("enroll", id=klass["id"])


def display_class_view(user_id, class_id):
    data = queries.get_student_class(user_id, class_id)
    if not data:
        st.error("You are not enrolled in this class.")
        return

    klass, modules = data["class"], data["modules"]
    progress = int(data["enrollment"].get("progress") or 0)
    st.markdown(f"### {klass.get('title', 'Class')}")
    st.progress(progress / 100, text=f"Progress: {progress}%")
    if progress >= 100:
        st.success("🎉 You completed this class! Your certificate will appear in the Certificates tab.")

    left, right = st.columns([2, 1])
    with left:
        st.markdown("#### 📖 Modules")
        if not modules:
            st.info("Your mentor has not published modules yet.")
        for module in modules:
            done = module["id"] in data["completed_modules"]
            with st.expander(f"{'✅' if done else '⬜'} {module['title']}"):
                st.write(module.get("content") or "")
                if module.get("video_url"):
                    st.video(module["video_url"])
                checked = st.checkbox("Mark as completed", value=done, key=f"module_{module['id']}")
                if checked != done:
                    success, msg, new_progress = set_module_completion(user_id, class_id, module["id"], checked)
                    if success:
                        st.toast(f"Progress: {new_progress}%", icon="📈")
                        st.rerun()
                    else:
                        st.error(msg)
    with right:
        st.markdown("#### 🧑‍🏫 Mentor")
        mentor = data["mentor"]
        if mentor:
            with st.container(border=True):
                if mentor.get("avatar_url"):
                    st.image(mentor["avatar_url"], width=80)
                st.markdown(f"**{mentor['full_name']}**")
                if mentor.get("expertise"):
                    st.caption(mentor["expertise"])
        else:
            st.caption("No mentor assigned.")

        st.markdown("#### 📝 Assignments")
        if not data["assignments"]:
            st.caption("No assignments for this class.")
        for assignment in data["assignments"]:
            label, level = rules.due_status(assignment.get("due_date"))
            st.write(f"• {assignment['title']}  ({badge(label, level)})")


def display_my_classes(user_id):
    st.subheader("📚 My Classes")
    overview = queries.student_overview(user_id)
    enrollments = overview.get("enrollments", []) if overview else []
    if not enrollments:
        st.info("You are not enrolled in any class yet.")
        return

    titles = {e["class_id"]: e["class"].get("title", "Class") for e in enrollments}
    for enrollment in enrollments:
        progress = int(enrollment.get("progress") or 0)
        st.progress(progress / 100, text=f"{titles[enrollment['class_id']]} · {progress}%")

    st.markdown("---")
    class_id = st.selectbox("Open a class:", list(titles), format_func=lambda cid: titles[cid], key="my_class")
    display_class_view(user_id, class_id)


def display_enrollment(user_id, preselected=None):
    st.subheader("📝 Enroll in a Class")
    classes = queries.list_enrollable_classes(user_id)
    if not classes:
        st.info("You are already enrolled in every open class. 🎉")
        return

    records = {c["id"]: c for c in classes}
    ids = list(records)
    class_id = st.selectbox("Class", ids, index=ids.index(preselected) if preselected in records else 0,
                            format_func=lambda cid: records[cid]["title"], key="enroll_class")
    klass = records[class_id]
    price = float(klass.get("price") or 0)

    mentors = queries.list_available_mentors(class_id)
    mentor_labels = {
        m["mentor_id"]: f"{m['full_name']}"
        + (f" ({m['expertise']})" if m.get("expertise") else "")
        + (f" · {m['current_students']}/{m['max_students']} students" if m.get("max_students") else "")
        for m in mentors
    }

    with st.form(f"enroll_form_{class_id}"):
        st.markdown(f"**Price:** {'Free' if price == 0 else rules.format_currency(price)}")
        if mentors:
            mentor_id = st.selectbox("Choose your mentor", list(mentor_labels), format_func=lambda m: mentor_labels[m])
        else:
            mentor_id = None
            st.caption("No mentor has free places right now. You can enroll and get a mentor assigned later.")
        payment_method = "transfer"
        if price > 0:
            payment_method = st.radio("Payment method", list(PAYMENT_METHODS),
                                      format_func=lambda m: PAYMENT_METHODS[m], horizontal=True)
            st.info("Your enrollment is confirmed once an administrator has verified the payment.")
        if st.form_submit_button("Confirm enrollment", type="primary"):
            success, msg = enroll_student(user_id, class_id, mentor_id, payment_method)
            if success:
                st.success(msg)
                st.balloons()
            else:
                st.error(msg)


def display_assignments(user_id):
    st.subheader("📝 Assignments")
    assignments = queries.list_student_assignments(user_id)
    if not assignments:
        st.info("No assignments yet.")
        return

    for assignment in assignments:
        submission = assignment["submission"]
        label, level = rules.due_status(assignment.get("due_date"), submission)
        with st.expander(f"{assignment['title']} · {assignment['class']} · {badge(label, level)}"):
            st.write(assignment.get("description") or "")
            if assignment.get("file_url"):
                st.link_button("📎 Instructions file", assignment["file_url"])

            if submission:
                st.caption(f"Submitted {submission.get('submitted_at') or ''}")
                if submission.get("file_url"):
                    st.link_button("📄 My submission", submission["file_url"])
                if submission.get("status") == "graded":
                    st.metric("Grade", submission.get("grade"))
                    if submission.get("feedback"):
                        st.info(f"💬 {submission['feedback']}")

            if submission and submission.get("status") == "graded":
                continue
            with st.form(f"submit_{assignment['id']}", clear_on_submit=True):
                upload = st.file_uploader("Your work (max 10MB)", key=f"upload_{assignment['id']}")
                if st.form_submit_button("Resubmit" if submission else "Submit"):
                    if upload is None:
                        st.error("Please choose a file first.")
                    else:
                        success, msg = submit_assignment(user_id, assignment["id"], upload.name,
                                                         upload.getvalue(), upload.type)
                        if success:
                            st.success(msg)
                            st.rerun()
                        else:
                            st.error(msg)


def display_certificates(user_id):
    st.subheader("🏆 My Certificates")
    certificates = queries.list_student_certificates(user_id)
    if certificates.empty:
        st.info("Complete a class to receive your first certificate!")
        return

    for cert in certificates.to_dict("records"):
        with st.container(border=True):
            col1, col2, col3 = st.columns([3, 1, 1])
            col1.markdown(f"**{cert['class']}**")
            col1.caption(f"Issued {cert.get('issued_at') or ''}")
            col2.link_button("👀 View", cert["certificate_url"], use_container_width=True)
            path = object_path(cert["certificate_url"], BUCKET_CERTIFICATES)
            if path and col3.button("⬇️ Download", key=f"fetch_{cert['id']}", use_container_width=True):
                data = download_file(BUCKET_CERTIFICATES, path)
                if data:
                    st.download_button("Save file", data, file_name=path.rsplit("/", 1)[-1],
                                       key=f"save_{cert['id']}")


def display_profile(profile):
    st.subheader("🙍 My Profile")
    col1, col2 = st.columns([1, 3])
    with col1:
        if profile.get("avatar_url"):
            st.image(profile["avatar_url"], width=140)
        else:
            st.markdown(f"## {rules.initials(profile.get('full_name'))}")
        upload = st.file_uploader("New photo (max 2MB)", type=["jpg", "jpeg", "png", "gif", "webp"],
                                  key="student_avatar")
        if upload is not None and st.button("Upload photo"):
            success, result = upload_avatar(profile["user_id"], upload.name, upload.getvalue(), upload.type)
            if success:
                auth.fetch_profile(profile["user_id"], force=True)
                st.success("Photo updated.")
                st.rerun()
            else:
                st.error(result)

    with col2:
        with st.form("student_profile_form"):
            name = st.text_input("Full Name", value=profile.get("full_name") or "")
            age = st.number_input("Age", min_value=0, max_value=99, step=1, value=int(profile.get("age") or 0))
            phone = st.text_input("Phone", value=profile.get("phone") or "")
            if st.form_submit_button("Save profile"):
                if not name.strip():
                    st.error("Name is required.")
                else:
                    success, msg = auth.update_profile({
                        "full_name": name.strip(), "age": int(age) or None, "phone": phone.strip() or None,
                    })
                    if success:
                        st.success(msg)
                        st.rerun()
                    else:
                        st.error(msg)


# --- Main Dashboard Functions ---
def display_enroll_page():
    """Stand-alone enrollment page reached from a class detail page."""
    user_id = auth.current_user().id
    if st.button("← Back to dashboard"):
        auth.navigate("student")
    display_enrollment(user_id, preselected=st.query_params.get("id"))


def display_student_dashboard():
    """Main function to display the student dashboard."""
    user_id = auth.current_user().id
    profile = auth.current_profile()

    st.title("🎒 Student Dashboard")
    live_refresh.live_updates([("enrollments", {"user_id": user_id})], key="student")

    tabs = st.tabs(["Dashboard", "My Classes", "Enroll", "Assignments", "Certificates", "Profile"])

    with tabs[0]:
        display_home(user_id, profile)
    with tabs[1]:
        display_my_classes(user_id)
    with tabs[2]:
        display_enrollment(user_id)
    with tabs[3]:
        display_assignments(user_id)
    with tabs[4]:
        display_certificates(user_id)
    with tabs[5]:
        display_profile(profile)
