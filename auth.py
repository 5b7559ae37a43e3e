# auth.py
"""
Session and profile state for the signed-in user.

The SDK owns the auth session; this module mirrors it into Streamlit's
session state (`user`, `session`, `profile`, `profile_user_id`) and
decides where each role is allowed to go. Every function accepts an
optional `state` mapping so it can be driven without a running app.
"""
import logging

import streamlit as st
from supabase import AuthError

import db_utils
from config import (
    ROLE_ADMIN, ROLE_MENTOR, ROLE_STUDENT, ROLE_DASHBOARDS, ROLE_LOGIN_PAGES,
    MIN_PASSWORD_LENGTH,
)

logger = logging.getLogger(__name__)

SESSION_KEYS = ("user", "session", "profile", "profile_user_id")


def _state(state):
    return st.session_state if state is None else state


def _clear(state):
    for key in SESSION_KEYS:
        state[key] = None


def current_user(state=None):
    return _state(state).get("user")


def current_profile(state=None):
    return _state(state).get("profile")


# --- Sign up / in / out ---

def sign_up(email, password, confirm, data, state=None):
    """
    Registers a student or mentor. The backend creates the profile row
    from the metadata. Returns (success, message, user).
    """
    email = (email or "").strip()
    if not email or not (data.get("full_name") or "").strip():
        return (False, "Name and email are required.", None)
    if len(password or "") < MIN_PASSWORD_LENGTH:
        return (False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters.", None)
    if password != confirm:
        return (False, "Passwords do not match.", None)

    role = data.get("role") or ROLE_STUDENT
    if role not in (ROLE_STUDENT, ROLE_MENTOR):
        return (False, "Only student and mentor accounts can be registered.", None)

    metadata = {key: value for key, value in data.items() if value not in (None, "")}
    metadata["role"] = role
    try:
        response = db_utils.get_client().auth.sign_up({
            "email": email,
            "password": password,
            "options": {"data": metadata},
        })
    except AuthError as e:
        logger.warning("Sign-up for %s failed: %s", email, e.message)
        return (False, e.message, None)

    if response.session is not None:
        state = _state(state)
        state["user"] = response.user
        state["session"] = response.session
    logger.info("Registered new %s account %s", role, email)
    return (True, "Registration successful!", response.user)


def sign_in(email, password, state=None):
    state = _state(state)
    # A previous user's profile must never leak into the new session.
    state["profile"] = None
    state["profile_user_id"] = None
    try:
        response = db_utils.get_client().auth.sign_in_with_password({
            "email": (email or "").strip(),
            "password": password,
        })
    except AuthError as e:
        logger.info("Failed login for %s: %s", email, e.message)
        return (False, e.message)

    state["user"] = response.user
    state["session"] = response.session
    fetch_profile(response.user.id, force=True, state=state)
    logger.info("User %s signed in", response.user.id)
    return (True, "Login successful!")


def sign_out(state=None):
    state = _state(state)
    try:
        db_utils.get_client().auth.sign_out()
    except AuthError as e:
        logger.warning("Sign-out request failed: %s", e.message)
    _clear(state)
    db_utils.reset_client(state)


# --- Profile ---

def fetch_profile(user_id, force=False, state=None):
    """Loads the profile of `user_id`, reusing the cached one unless forced."""
    state = _state(state)
    if not force and state.get("profile_user_id") == user_id and state.get("profile") is not None:
        return state["profile"]
    profile = db_utils.fetch_one("profiles", "*", {"user_id": user_id})
    state["profile"] = profile
    state["profile_user_id"] = user_id if profile else None
    return profile


def sync_session(state=None):
    """Mirrors the SDK session into state. Called once per script run."""
    state = _state(state)
    try:
        session = db_utils.get_client().auth.get_session()
    except AuthError as e:
        logger.warning("Could not read auth session: %s", e.message)
        session = None

    if session is None:
        if state.get("user") is not None:
            logger.info("Auth session ended")
        _clear(state)
        return None

    previous = state.get("session")
    state["session"] = session
    state["user"] = session.user
    refreshed = previous is None or previous.access_token != session.access_token
    fetch_profile(session.user.id, force=refreshed, state=state)
    return session.user


def update_profile(changes, state=None):
    state = _state(state)
    user = state.get("user")
    if user is None:
        return (False, "You must be signed in to update your profile.")
    success, msg = db_utils.update_rows(
        "profiles", {**changes, "updated_at": db_utils.now_iso()}, {"user_id": user.id}
    )
    if success:
        fetch_profile(user.id, force=True, state=state)
        return (True, "Profile updated.")
    return (False, msg)


# --- Roles & navigation ---

def current_role(state=None):
    profile = current_profile(state)
    return profile.get("role") if profile else None


def is_admin(state=None):
    return current_role(state) == ROLE_ADMIN


def is_mentor(state=None):
    return current_role(state) == ROLE_MENTOR


def is_student(state=None):
    return current_role(state) == ROLE_STUDENT


def dashboard_page(role):
    return ROLE_DASHBOARDS.get(role, ROLE_DASHBOARDS[ROLE_STUDENT])


def resolve_route(user, profile, required_role=None):
    """
    Decides what a protected page does for the current visitor.
    Returns ("allow", None), ("loading", None) or ("redirect", page).
    """
    if user is None:
        return ("redirect", ROLE_LOGIN_PAGES.get(required_role, ROLE_LOGIN_PAGES[ROLE_STUDENT]))
    if profile is None:
        return ("loading", None)
    if required_role and profile.get("role") != required_role:
        return ("redirect", dashboard_page(profile.get("role")))
    return ("allow", None)


def check_portal(portal, profile):
    """
    Outcome of a login through one of the portals.
    Returns (True, page) to continue to `page`, or (False, message) when
    the account has to be signed out again.
    """
    role = profile.get("role")
    if portal == ROLE_ADMIN and role != ROLE_ADMIN:
        return (False, "Access denied. You are not an administrator.")
    if role == ROLE_MENTOR:
        status = profile.get("approval_status")
        if status == "rejected":
            return (False, "Your mentor application was rejected. Please contact the administrator.")
        if status != "approved":
            return (False, "Your mentor account has not been approved by an administrator yet.")
    return (True, dashboard_page(role))


def navigate(page, **params):
    """Switches the app to another page through the URL query string."""
    st.query_params.clear()
    st.query_params["page"] = page
    for name, value in params.items():
        st.query_params[name] = str(value)
    st.rerun()
