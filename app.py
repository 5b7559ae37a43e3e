# app.py
import logging

import streamlit as st

import auth
import public_pages
from admin_dashboard import display_admin_dashboard
from config import LOG_LEVEL, ROLE_ADMIN, ROLE_MENTOR, ROLE_STUDENT, missing_settings
from mentor_dashboard import display_mentor_dashboard
from student_dashboard import display_enroll_page, display_student_dashboard

logger = logging.getLogger(__name__)

# page -> (required role, renderer). A required role of None means public;
# "any" means any signed-in user.
ROUTES = {
    "home": (None, public_pages.display_home),
    "classes": (None, public_pages.display_classes),
    "class_detail": (None, public_pages.display_class_detail),
    "register": (None, public_pages.display_register_choice),
    "register_student": (None, public_pages.display_student_registration),
    "register_mentor": (None, public_pages.display_mentor_registration),
    "login": (None, lambda: public_pages.display_login(ROLE_STUDENT)),
    "mentor_login": (None, lambda: public_pages.display_login(ROLE_MENTOR)),
    "admin_login": (None, lambda: public_pages.display_login(ROLE_ADMIN)),
    "dashboard": ("any", None),
    "admin": (ROLE_ADMIN, display_admin_dashboard),
    "mentor": (ROLE_MENTOR, display_mentor_dashboard),
    "student": (ROLE_STUDENT, display_student_dashboard),
    "enroll": (ROLE_STUDENT, display_enroll_page),
}


def display_sidebar():
    """Navigation links plus identity and logout for signed-in users."""
    st.sidebar.title("🚀 KidCoderClub")
    if st.sidebar.button("🏠 Home", use_container_width=True):
        auth.navigate("home")
    if st.sidebar.button("📚 Classes", use_container_width=True):
        auth.navigate("classes")

    user = auth.current_user()
    if user is None:
        if st.sidebar.button("🔑 Login", use_container_width=True):
            auth.navigate("login")
        if st.sidebar.button("📝 Register", use_container_width=True):
            auth.navigate("register")
        st.sidebar.caption("Mentor or admin?")
        col1, col2 = st.sidebar.columns(2)
        if col1.button("Mentor", use_container_width=True):
            auth.navigate("mentor_login")
        if col2.button("Admin", use_container_width=True):
            auth.navigate("admin_login")
        return

    profile = auth.current_profile() or {}
    st.sidebar.divider()
    st.sidebar.success(f"Welcome, {profile.get('full_name') or user.email}!")
    st.sidebar.write(f"Role: **{str(profile.get('role', '-')).capitalize()}**")
    if st.sidebar.button("📋 My dashboard", use_container_width=True):
        auth.navigate(auth.dashboard_page(profile.get("role")))
    if st.sidebar.button("Logout", use_container_width=True):
        auth.sign_out()
        auth.navigate("home")


def render_page(page):
    required_role, renderer = ROUTES.get(page, ROUTES["home"])
    if required_role is None:
        renderer()
        return

    role = None if required_role == "any" else required_role
    decision, target = auth.resolve_route(auth.current_user(), auth.current_profile(), role)
    if decision == "loading":
        with st.spinner("Loading your profile..."):
            profile = auth.fetch_profile(auth.current_user().id, force=True)
        if profile is None:
            st.error("Your profile could not be found. Please contact an administrator.")
            return
        st.rerun()
    if decision == "redirect":
        logger.info("Redirecting from %s to %s", page, target)
        auth.navigate(target)
    if renderer is None:
        auth.navigate(auth.dashboard_page(auth.current_role()))
    renderer()


def main():
    """Main function to run the Streamlit app."""
    st.set_page_config(layout="wide", page_title="KidCoderClub", page_icon="🚀")
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    missing = missing_settings()
    if missing:
        st.error(f"Missing configuration: {', '.join(missing)}. Add them to your .env file.")
        st.stop()

    auth.sync_session()
    display_sidebar()
    render_page(st.query_params.get("page", "home"))


if __name__ == "__main__":
    main()
