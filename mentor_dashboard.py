# mentor_dashboard.py
import datetime

import pandas as pd
import streamlit as st

import auth
import business_rules as rules
import queries
import live_refresh
from config import CLASS_LEVELS, EXPERTISE_OPTIONS, MAX_GRADE
from db_utils import (
    create_assignment, create_module, delete_assignment, delete_module, grade_submission,
    move_module, update_assignment, update_class, update_module, upload_avatar,
)


# --- Helper Functions ---

def show_result(success, msg):
    if success:
        st.success(msg)
        st.rerun()
    else:
        st.error(msg)


def pick_class(classes, key, label="Select a class:"):
    """Selectbox over the mentor's classes. Returns the class id."""
    titles = dict(zip(classes["id"], classes["title"]))
    return st.selectbox(label, list(titles), format_func=lambda cid: titles[cid], key=key)


# --- UI Components for Tabs ---

def display_overview(mentor_id, profile):
    st.subheader(f"👋 Welcome back, {profile.get('full_name') or 'Mentor'}")
    stats = queries.mentor_overview(mentor_id)
    if not stats:
        return
    c1, c2, c3, c4, c5 = st.columns(5)
    c1.metric("Classes", stats["classes"])
    c2.metric("Active classes", stats["active_classes"])
    c3.metric("Students", stats["students"])
    c4.metric("Avg. progress", f"{stats['avg_progress']}%")
    c5.metric("Assignments", stats["assignments"])


def display_classes(mentor_id):
    st.subheader("📚 My Classes")
    classes = queries.list_mentor_classes(mentor_id)
    if classes.empty:
        st.info("You are not assigned to any class yet. An administrator will assign you.")
        return

    view = classes.assign(
        avg_progress=classes["avg_progress"].map(lambda p: f"{p}%"),
        active=classes["is_active"].map(lambda a: "✅" if a else "⏸️"),
    )
    st.dataframe(view[["title", "level", "students", "max_students", "avg_progress", "active"]],
                 use_container_width=True, hide_index=True)

    st.markdown("---")
    class_id = pick_class(classes, "mentor_class_edit", "Select a class to edit:")
    klass = classes[classes["id"] == class_id].iloc[0]
    with st.form(f"mentor_class_{class_id}"):
        title = st.text_input("Title", value=klass["title"])
        description = st.text_area("Description", value=klass.get("description") or "")
        level = st.selectbox("Level", CLASS_LEVELS, format_func=str.capitalize,
                             index=CLASS_LEVELS.index(klass["level"]) if klass["level"] in CLASS_LEVELS else 0)
        is_active = st.checkbox("Open for enrollment", value=bool(klass["is_active"]))
        if st.form_submit_button("Save class"):
            show_result(*update_class(class_id, title=title, description=description,
                                      level=level, is_active=is_active))


def display_modules(mentor_id):
    st.subheader("📖 Modules")
    classes = queries.list_mentor_classes(mentor_id)
    if classes.empty:
        st.info("You have no classes to add modules to.")
        return
    class_id = pick_class(classes, "mentor_module_class")

    with st.expander("➕ Add Module", expanded=False):
        with st.form(f"add_module_{class_id}", clear_on_submit=True):
            title = st.text_input("Title")
            content = st.text_area("Content")
            video_url = st.text_input("Video URL (optional)")
            if st.form_submit_button("Add Module"):
                show_result(*create_module(class_id, title, content, video_url))

    modules = queries.list_class_modules(class_id)
    if not modules:
        st.info("This class has no modules yet.")
        return

    for position, module in enumerate(modules):
        with st.container(border=True):
            cols = st.columns([6, 1, 1, 1])
            cols[0].markdown(f"**{position + 1}. {module['title']}**")
            if cols[1].button("⬆️", key=f"up_{module['id']}", disabled=position == 0):
                show_result(*move_module(class_id, module["id"], -1))
            if cols[2].button("⬇️", key=f"down_{module['id']}", disabled=position == len(modules) - 1):
                show_result(*move_module(class_id, module["id"], 1))
            if cols[3].button("🗑️", key=f"del_{module['id']}"):
                show_result(*delete_module(module["id"]))

            with st.expander("Edit"):
                with st.form(f"edit_module_{module['id']}"):
                    title = st.text_input("Title", value=module["title"])
                    content = st.text_area("Content", value=module.get("content") or "")
                    video_url = st.text_input("Video URL", value=module.get("video_url") or "")
                    if st.form_submit_button("Save module"):
                        show_result(*update_module(module["id"], title, content, video_url))


def display_students(mentor_id):
    st.subheader("👥 My Students")
    students = queries.list_mentor_students(mentor_id)
    if students.empty:
        st.info("No students have chosen you as their mentor yet.")
        return

    search = st.text_input("🔍 Search student or class", key="mentor_student_search")
    if search:
        students = students[students.apply(lambda r: rules.matches_search([r["student"], r["class"]], search), axis=1)]

    c1, c2 = st.columns(2)
    c1.metric("Students", students["user_id"].nunique())
    c2.metric("Avg. progress", f"{rules.average_percent(students['progress'])}%")

    st.dataframe(
        students[["student", "age", "phone", "class", "progress", "enrolled_at"]],
        use_container_width=True, hide_index=True,
        column_config={"progress": st.column_config.ProgressColumn("Progress", min_value=0, max_value=100, format="%d%%")},
    )


def display_assignments(mentor_id):
    st.subheader("📝 Assignments")
    classes = queries.list_mentor_classes(mentor_id)
    if classes.empty:
        st.info("You need an assigned class before creating assignments.")
        return

    with st.expander("➕ Create Assignment", expanded=False):
        with st.form("create_assignment_form", clear_on_submit=True):
            titles = dict(zip(classes["id"], classes["title"]))
            class_id = st.selectbox("Class", list(titles), format_func=lambda cid: titles[cid])
            title = st.text_input("Title")
            description = st.text_area("Instructions")
            has_due = st.checkbox("Set a due date", value=True)
            due = st.date_input("Due date", value=datetime.date.today() + datetime.timedelta(days=7))
            upload = st.file_uploader("Attachment (optional, max 10MB)")
            if st.form_submit_button("Create Assignment"):
                attachment = (upload.name, upload.getvalue(), upload.type) if upload else None
                show_result(*create_assignment(mentor_id, class_id, title, description,
                                               due if has_due else None, attachment))

    assignments = queries.list_mentor_assignments(mentor_id)
    if assignments.empty:
        st.info("You have not created any assignments yet.")
        return

    for assignment in assignments.to_dict("records"):
        due = rules.parse_date(assignment.get("due_date"))
        header = f"{assignment['title']} · {assignment['class']}" + (f" · due {due:%d %b %Y}" if due else "")
        with st.expander(header):
            st.write(assignment.get("description") or "")
            if assignment.get("file_url"):
                st.link_button("📎 Attachment", assignment["file_url"])
            with st.form(f"edit_assignment_{assignment['id']}"):
                title = st.text_input("Title", value=assignment["title"])
                description = st.text_area("Instructions", value=assignment.get("description") or "")
                has_due = st.checkbox("Has a due date", value=due is not None)
                new_due = st.date_input("Due date", value=due or datetime.date.today())
                upload = st.file_uploader("Replace attachment (optional)")
                if st.form_submit_button("Save changes"):
                    attachment = (upload.name, upload.getvalue(), upload.type) if upload else None
                    show_result(*update_assignment(assignment["id"], mentor_id, title, description,
                                                   new_due if has_due else None, attachment,
                                                   assignment.get("file_url")))
            if st.button("🗑️ Delete assignment", key=f"delete_assignment_{assignment['id']}"):
                show_result(*delete_assignment(assignment["id"]))


def display_submissions(mentor_id):
    st.subheader("📥 Submissions")
    submissions = queries.list_mentor_submissions(mentor_id)
    if submissions.empty:
        st.info("No submissions yet.")
        return

    col1, col2, col3 = st.columns([2, 1, 1])
    search = col1.text_input("🔍 Search student or assignment", key="submission_search")
    class_filter = col2.selectbox("Class", ["All"] + sorted(submissions["class"].unique()), key="submission_class")
    status_filter = col3.selectbox("Status", ["All", "submitted", "graded"], key="submission_status",
                                   format_func=str.capitalize)

    filtered = submissions
    if search:
        filtered = filtered[filtered.apply(
            lambda r: rules.matches_search([r["student"], r["assignment"]], search), axis=1)]
    if class_filter != "All":
        filtered = filtered[filtered["class"] == class_filter]
    if status_filter != "All":
        filtered = filtered[filtered["status"] == status_filter]

    c1, c2 = st.columns(2)
    c1.metric("Waiting for a grade", int((submissions["status"] == "submitted").sum()))
    c2.metric("Graded", int((submissions["status"] == "graded").sum()))

    if filtered.empty:
        st.warning("No submissions match the filters.")
        return

    grader_id = auth.current_user().id
    for sub in filtered.to_dict("records"):
        icon = "✅" if sub["status"] == "graded" else "🕒"
        with st.expander(f"{icon} {sub['student']} · {sub['assignment']} ({sub['class']})"):
            st.caption(f"Submitted {sub.get('submitted_at') or '-'}")
            if sub.get("file_url"):
                st.link_button("📄 Open submission", sub["file_url"])
            grade_value = sub.get("grade")
            with st.form(f"grade_{sub['id']}"):
                grade = st.number_input(f"Grade (0-{MAX_GRADE})", min_value=0, max_value=MAX_GRADE, step=1,
                                        value=int(grade_value) if pd.notna(grade_value) else 0)
                feedback = st.text_area("Feedback", value=sub.get("feedback") or "")
                if st.form_submit_button("Save grade"):
                    show_result(*grade_submission(sub["id"], grader_id, grade, feedback))


def display_profile(profile):
    st.subheader("🙍 My Profile")
    col1, col2 = st.columns([1, 3])
    with col1:
        if profile.get("avatar_url"):
            st.image(profile["avatar_url"], width=140)
        else:
            st.markdown(f"## {rules.initials(profile.get('full_name'))}")
        upload = st.file_uploader("New photo (max 2MB)", type=["jpg", "jpeg", "png", "gif", "webp"],
                                  key="mentor_avatar")
        if upload is not None and st.button("Upload photo"):
            success, result = upload_avatar(profile["user_id"], upload.name, upload.getvalue(), upload.type)
            if success:
                auth.fetch_profile(profile["user_id"], force=True)
                st.success("Photo updated.")
                st.rerun()
            else:
                st.error(result)

    with col2:
        with st.form("mentor_profile_form"):
            name = st.text_input("Full Name", value=profile.get("full_name") or "")
            phone = st.text_input("Phone", value=profile.get("phone") or "")
            expertise_options = list(EXPERTISE_OPTIONS)
            if profile.get("expertise") and profile["expertise"] not in expertise_options:
                expertise_options.append(profile["expertise"])
            expertise = st.selectbox("Expertise", expertise_options,
                                     index=expertise_options.index(profile["expertise"]) if profile.get("expertise") else 0)
            experience = st.text_input("Experience", value=profile.get("experience") or "")
            bio = st.text_area("Bio", value=profile.get("bio") or "")
            if st.form_submit_button("Save profile"):
                if not name.strip():
                    st.error("Name is required.")
                else:
                    show_result(*auth.update_profile({
                        "full_name": name.strip(), "phone": phone.strip(), "expertise": expertise,
                        "experience": experience.strip(), "bio": bio.strip(),
                    }))
        if profile.get("certificate_url"):
            st.link_button("📄 My credential", profile["certificate_url"])


# --- Main Dashboard Function ---
def display_mentor_dashboard():
    """Main function to display the mentor dashboard."""
    profile = auth.current_profile()
    mentor_id = profile["user_id"]

    if profile.get("approval_status") != "approved":
        st.warning("⏳ Your mentor account is waiting for administrator approval.")
        return

    st.title("🧑‍🏫 Mentor Dashboard")
    live_refresh.live_updates([("enrollments", {"mentor_id": mentor_id})], key="mentor")

    tabs = st.tabs([
        "Overview", "My Classes", "Modules", "Students",
        "Assignments", "Submissions", "Profile",
    ])

    with tabs[0]:
        display_overview(mentor_id, profile)
    with tabs[1]:
        display_classes(mentor_id)
    with tabs[2]:
        display_modules(mentor_id)
    with tabs[3]:
        display_students(mentor_id)
    with tabs[4]:
        display_assignments(mentor_id)
    with tabs[5]:
        display_submissions(mentor_id)
    with tabs[6]:
        display_profile(profile)
