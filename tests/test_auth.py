"""Tests for sign-up/sign-in, the cached profile and role routing."""

import pytest

import auth


def register(state, role="student", **extra):
    data = {"full_name": "Budi Santoso", "role": role, **extra}
    return auth.sign_up("budi@example.com", "secret1", "secret1", data, state=state)


class TestSignUp:

    @pytest.mark.parametrize("email, password, confirm, data, message", [
        ("", "secret1", "secret1", {"full_name": "A"}, "Name and email are required."),
        ("a@b.c", "secret1", "secret1", {"full_name": "  "}, "Name and email are required."),
        ("a@b.c", "123", "123", {"full_name": "A"}, "Password must be at least 6 characters."),
        ("a@b.c", "secret1", "secret2", {"full_name": "A"}, "Passwords do not match."),
        ("a@b.c", "secret1", "secret1", {"full_name": "A", "role": "admin"},
         "Only student and mentor accounts can be registered."),
    ])
    def test_validation(self, fake_db, state, email, password, confirm, data, message):
        assert auth.sign_up(email, password, confirm, data, state=state) == (False, message, None)
        assert fake_db.auth.accounts == {}

    def test_student_is_signed_in_immediately(self, fake_db, state):
        success, msg, user = register(state, age=10, phone="")
        assert success
        assert msg == "Registration successful!"
        assert state["user"] is user
        assert user.user_metadata == {"full_name": "Budi Santoso", "role": "student", "age": 10}

    def test_mentor_profile_waits_for_approval(self, fake_db, state):
        success, _, user = register(state, role="mentor", expertise="Python")
        assert success
        [profile] = fake_db.rows("profiles", user_id=user.id)
        assert profile["role"] == "mentor"
        assert profile["approval_status"] == "pending"

    def test_email_confirmation_leaves_session_empty(self, fake_db, state):
        fake_db.auth.confirm_email = True
        success, _, _ = register(state)
        assert success
        assert "user" not in state

    def test_duplicate_email(self, fake_db, state):
        register(state)
        success, msg, _ = register({})
        assert not success
        assert msg == "User already registered"


class TestSignIn:

    def test_success_loads_profile(self, fake_db, state):
        _, _, user = register({})
        success, msg = auth.sign_in("budi@example.com", "secret1", state=state)
        assert (success, msg) == (True, "Login successful!")
        assert state["user"].id == user.id
        assert state["profile"]["full_name"] == "Budi Santoso"
        assert state["profile_user_id"] == user.id
        assert auth.is_student(state)

    def test_wrong_password_clears_previous_profile(self, fake_db, state):
        register({})
        state["profile"] = {"role": "admin"}
        success, msg = auth.sign_in("budi@example.com", "nope", state=state)
        assert not success
        assert msg == "Invalid login credentials"
        assert state["profile"] is None
        assert not auth.is_admin(state)

    def test_sign_out_clears_everything(self, fake_db, state):
        register({})
        auth.sign_in("budi@example.com", "secret1", state=state)
        state["supabase_client"] = fake_db
        auth.sign_out(state)
        assert all(state[key] is None for key in auth.SESSION_KEYS)
        assert "supabase_client" not in state
        assert fake_db.auth.get_session() is None


class TestProfileCache:

    def test_cached_profile_is_reused(self, fake_db, state):
        profile = fake_db.seed("profiles", {"user_id": "u1", "role": "student", "full_name": "Old"})
        auth.fetch_profile("u1", state=state)
        profile["full_name"] = "New"
        assert auth.fetch_profile("u1", state=state)["full_name"] == "Old"
        assert auth.fetch_profile("u1", force=True, state=state)["full_name"] == "New"

    def test_sync_session_refetches_after_token_change(self, fake_db, state):
        register({})
        auth.sign_in("budi@example.com", "secret1", state=state)
        fake_db.rows("profiles")[0]["full_name"] = "Budi S."

        auth.sync_session(state)
        assert state["profile"]["full_name"] == "Budi Santoso"

        auth.sign_in("budi@example.com", "secret1", state={})
        auth.sync_session(state)
        assert state["profile"]["full_name"] == "Budi S."

    def test_sync_session_without_session(self, fake_db, state):
        state["user"] = object()
        assert auth.sync_session(state) is None
        assert state["user"] is None

    def test_update_profile(self, fake_db, state):
        assert auth.update_profile({"phone": "0812"}, state=state) == (
            False, "You must be signed in to update your profile.")
        register({})
        auth.sign_in("budi@example.com", "secret1", state=state)
        assert auth.update_profile({"phone": "0812"}, state=state) == (True, "Profile updated.")
        assert state["profile"]["phone"] == "0812"


class TestRouting:

    def test_anonymous_visitor_goes_to_the_matching_login(self):
        assert auth.resolve_route(None, None, "admin") == ("redirect", "admin_login")
        assert auth.resolve_route(None, None, "mentor") == ("redirect", "mentor_login")
        assert auth.resolve_route(None, None) == ("redirect", "login")

    def test_profile_still_loading(self):
        assert auth.resolve_route(object(), None, "student") == ("loading", None)

    def test_wrong_role_goes_to_own_dashboard(self):
        assert auth.resolve_route(object(), {"role": "student"}, "admin") == ("redirect", "student")
        assert auth.resolve_route(object(), {"role": "mentor"}, "student") == ("redirect", "mentor")
        assert auth.resolve_route(object(), {"role": "admin"}, "admin") == ("allow", None)
        assert auth.resolve_route(object(), {"role": "student"}) == ("allow", None)

    def test_admin_portal_rejects_other_roles(self):
        assert auth.check_portal("admin", {"role": "student"}) == (
            False, "Access denied. You are not an administrator.")
        assert auth.check_portal("admin", {"role": "admin"}) == (True, "admin")

    @pytest.mark.parametrize("status, allowed", [("approved", True), ("pending", False), ("rejected", False)])
    def test_mentor_needs_approval(self, status, allowed):
        success, result = auth.check_portal("mentor", {"role": "mentor", "approval_status": status})
        assert success is allowed
        if allowed:
            assert result == "mentor"
        elif status == "rejected":
            assert "rejected" in result
        else:
            assert "not been approved" in result

    def test_student_portal_sends_each_role_home(self):
        assert auth.check_portal("student", {"role": "student"}) == (True, "student")
        assert auth.check_portal("student", {"role": "admin"}) == (True, "admin")
