# public_pages.py
import logging

import streamlit as st

import auth
import business_rules as rules
import db_utils
import queries
from config import (
    CLASS_LEVELS, EXPERTISE_OPTIONS, ROLE_ADMIN, ROLE_MENTOR, ROLE_STUDENT, MIN_PASSWORD_LENGTH,
)

logger = logging.getLogger(__name__)


# --- Helper Functions ---

def display_class_card(row, key_prefix):
    with st.container(border=True):
        if row.get("thumbnail_url"):
            st.image(row["thumbnail_url"], use_container_width=True)
        st.markdown(f"#### {row['title']}")
        st.caption(f"📊 {str(row.get('level') or '-').capitalize()}  ·  👥 {int(row.get('students', 0))} students")
        if row.get("description"):
            st.write(row["description"][:140] + ("…" if len(row["description"]) > 140 else ""))
        price = float(row.get("price") or 0)
        st.markdown(f"**{'Free' if price == 0 else rules.format_currency(price)}**")
        if st.button("View details", key=f"{key_prefix}_{row['id']}", use_container_width=True):
            auth.navigate("class_detail", id=row["id"])


def display_class_grid(classes_df, key_prefix, per_row=3):
    rows = classes_df.to_dict("records")
    for start in range(0, len(rows), per_row):
        cols = st.columns(per_row)
        for col, row in zip(cols, rows[start:start + per_row]):
            with col:
                display_class_card(row, key_prefix)


# --- Pages ---

def display_home():
    st.title("🚀 KidCoderClub")
    st.markdown("### Where kids learn to code, create and play.")
    st.write(
        "Live classes with experienced mentors, step-by-step modules and real projects. "
        "Follow your child's progress and earn a certificate at the end of every class."
    )
    col1, col2, _ = st.columns([1, 1, 3])
    if col1.button("Explore classes", type="primary", use_container_width=True):
        auth.navigate("classes")
    if col2.button("Join now", use_container_width=True):
        auth.navigate("register")

    st.divider()
    f1, f2, f3 = st.columns(3)
    f1.markdown("#### 🧑‍🏫 Expert mentors\nEvery class is taught by approved mentors.")
    f2.markdown("#### 📚 Structured modules\nTick off modules as you go and watch your progress grow.")
    f3.markdown("#### 🏆 Certificates\nFinish a class and receive your certificate.")

    st.divider()
    st.subheader("✨ Newest classes")
    classes_df = queries.list_active_classes_with_counts()
    if classes_df.empty:
        st.info("New classes are coming soon.")
    else:
        display_class_grid(classes_df.head(3), "home")


def display_classes():
    st.title("📚 Our Classes")
    col1, col2 = st.columns([3, 1])
    search = col1.text_input("🔍 Search classes", key="catalog_search")
    level = col2.selectbox("Level", ["All"] + list(CLASS_LEVELS), key="catalog_level",
                           format_func=lambda v: v.capitalize())

    classes_df = queries.list_active_classes_with_counts()
    if classes_df.empty:
        st.info("No classes are open at the moment.")
        return

    mask = classes_df.apply(lambda r: rules.matches_search([r["title"], r.get("description")], search), axis=1)
    if level != "All":
        mask &= classes_df["level"] == level
    filtered = classes_df[mask]
    if filtered.empty:
        st.warning("No classes match your search.")
        return
    st.caption(f"{len(filtered)} class(es) found")
    display_class_grid(filtered, "catalog")


def display_class_detail():
    class_id = st.query_params.get("id")
    if not class_id:
        st.error("No class selected.")
        return
    user = auth.current_user()
    detail = queries.get_class_detail(class_id, user.id if user else None)
    if not detail:
        st.error("Class not found.")
        if st.button("← Back to classes"):
            auth.navigate("classes")
        return

    klass = detail["class"]
    if st.button("← Back to classes"):
        auth.navigate("classes")
    st.title(klass["title"])

    col1, col2, col3 = st.columns(3)
    col1.metric("Level", str(klass.get("level") or "-").capitalize())
    col2.metric("Students", detail["student_count"])
    price = float(klass.get("price") or 0)
    col3.metric("Price", "Free" if price == 0 else rules.format_currency(price))

    if klass.get("thumbnail_url"):
        st.image(klass["thumbnail_url"], use_container_width=True)
    st.write(klass.get("description") or "")

    left, right = st.columns([2, 1])
    with left:
        st.subheader("📖 Curriculum")
        if detail["modules"]:
            for i, module in enumerate(detail["modules"], start=1):
                st.write(f"**{i}.** {module['title']}")
        else:
            st.info("Modules will be published soon.")
    with right:
        st.subheader("🧑‍🏫 Mentors")
        if not detail["mentors"]:
            st.info("Mentors will be announced soon.")
        for mentor in detail["mentors"]:
            with st.container(border=True):
                st.markdown(f"**{mentor['full_name']}**")
                if mentor.get("expertise"):
                    st.caption(mentor["expertise"])
                if mentor.get("bio"):
                    st.write(mentor["bio"])

    st.divider()
    if detail["is_enrolled"]:
        st.success("✅ You are already enrolled in this class.")
        if st.button("Go to my classes"):
            auth.navigate("student")
    elif user is None:
        if st.button("Log in to enroll", type="primary"):
            auth.navigate("login")
    elif auth.is_student():
        if st.button("Enroll now", type="primary"):
            auth.navigate("enroll", id=class_id)
    else:
        st.info("Only student accounts can enroll in classes.")


def display_register_choice():
    st.title("📝 Join KidCoderClub")
    col1, col2 = st.columns(2)
    with col1:
        with st.container(border=True):
            st.markdown("### 🎒 I am a student\nEnroll in classes, follow modules and submit assignments.")
            if st.button("Register as student", use_container_width=True, type="primary"):
                auth.navigate("register_student")
    with col2:
        with st.container(border=True):
            st.markdown("### 🧑‍🏫 I am a mentor\nTeach classes. Accounts are reviewed by an administrator.")
            if st.button("Register as mentor", use_container_width=True):
                auth.navigate("register_mentor")
    st.caption("Already have an account?")
    if st.button("Log in"):
        auth.navigate("login")


def display_student_registration():
    st.title("🎒 Student Registration")
    with st.form("register_student_form"):
        full_name = st.text_input("Full Name")
        email = st.text_input("Email")
        age = st.number_input("Age (optional)", min_value=0, max_value=99, value=0, step=1)
        password = st.text_input(f"Password (min. {MIN_PASSWORD_LENGTH} characters)", type="password")
        confirm = st.text_input("Confirm Password", type="password")
        submitted = st.form_submit_button("Create account", type="primary")

    if submitted:
        data = {"full_name": full_name.strip(), "role": ROLE_STUDENT, "age": int(age) if age else None}
        success, msg, _ = auth.sign_up(email, password, confirm, data)
        if not success:
            st.error(msg)
            return
        if auth.current_user() is not None:
            st.success(f"{msg} Welcome aboard!")
            auth.navigate("student")
        else:
            st.success(f"{msg} Please confirm your email address, then log in.")


def display_mentor_registration():
    st.title("🧑‍🏫 Mentor Registration")
    st.info("Mentor accounts are reviewed by an administrator before you can log in.")
    with st.form("register_mentor_form"):
        full_name = st.text_input("Full Name")
        email = st.text_input("Email")
        phone = st.text_input("Phone")
        expertise = st.selectbox("Expertise", EXPERTISE_OPTIONS)
        experience = st.text_input("Teaching experience (e.g. 3 years)")
        bio = st.text_area("Short bio")
        credential = st.file_uploader("Expertise certificate (PDF or image, max 5MB)",
                                      type=["pdf", "jpg", "jpeg", "png"])
        password = st.text_input(f"Password (min. {MIN_PASSWORD_LENGTH} characters)", type="password")
        confirm = st.text_input("Confirm Password", type="password")
        submitted = st.form_submit_button("Submit application", type="primary")

    if not submitted:
        return
    if credential is None:
        st.error("Please upload your expertise certificate.")
        return

    data = {
        "full_name": full_name.strip(), "role": ROLE_MENTOR, "phone": phone.strip(),
        "expertise": expertise, "experience": experience.strip(), "bio": bio.strip(),
    }
    success, msg, user = auth.sign_up(email, password, confirm, data)
    if not success:
        st.error(msg)
        return

    ok, upload_msg = db_utils.upload_mentor_credential(
        user.id, credential.name, credential.getvalue(), credential.type
    )
    if not ok:
        logger.warning("Credential upload for mentor %s failed: %s", user.id, upload_msg)
        st.warning(f"Your account was created but the certificate upload failed: {upload_msg}")
    # Mentors wait for approval before they can use the account.
    if auth.current_user() is not None:
        auth.sign_out()
    st.success("Application received! An administrator will review your account shortly.")


def display_login(portal=ROLE_STUDENT):
    titles = {
        ROLE_STUDENT: "🎒 Student Login",
        ROLE_MENTOR: "🧑‍🏫 Mentor Login",
        ROLE_ADMIN: "🛡️ Admin Login",
    }
    st.header(titles[portal])
    with st.form(f"login_form_{portal}"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Login", type="primary")

        if submitted:
            if not email or not password:
                st.warning("Please enter both email and password.")
                return
            success, msg = auth.sign_in(email, password)
            if not success:
                st.error(f"Login failed: {msg}")
                return
            profile = auth.current_profile()
            if profile is None:
                auth.sign_out()
                st.error("Your profile could not be loaded. Please contact an administrator.")
                return
            allowed, target = auth.check_portal(portal, profile)
            if not allowed:
                auth.sign_out()
                st.error(target)
                return
            st.success(f"{msg} Welcome, {profile.get('full_name') or email}!")
            auth.navigate(target)

    if portal != ROLE_ADMIN:
        if st.button("No account yet? Register"):
            auth.navigate("register")
