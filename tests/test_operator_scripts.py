"""Tests for the operator scripts, driven through the in-memory client."""

import pathlib
from types import SimpleNamespace

import pytest

import clean_and_create_admin
from config import ADMIN_EMAIL

ROOT = pathlib.Path(__file__).resolve().parent.parent


class FakeUserAdmin:
    def __init__(self, users):
        self.users = users
        self.deleted = []

    def list_users(self, page=1, per_page=50):
        return [u for u in self.users if u.id not in self.deleted]

    def delete_user(self, user_id):
        self.deleted.append(user_id)


@pytest.fixture
def service(fake_db):
    users = [
        SimpleNamespace(id="admin-1", email=ADMIN_EMAIL.upper()),
        SimpleNamespace(id="admin-2", email="second-admin@example.com"),
        SimpleNamespace(id="student-1", email="kid@example.com"),
    ]
    fake_db.auth.admin = FakeUserAdmin(users)
    fake_db.seed("profiles",
                 {"user_id": "admin-1", "role": "admin"},
                 {"user_id": "admin-2", "role": "admin"},
                 {"user_id": "student-1", "role": "student"})
    fake_db.seed("classes", {"title": "Python"})
    return fake_db


class TestClearTables:

    def test_keeps_only_the_configured_admin(self, service):
        clean_and_create_admin.clear_tables(service)

        assert service.auth.admin.deleted == ["admin-2", "student-1"]
        assert [p["user_id"] for p in service.rows("profiles")] == ["admin-1"]
        assert service.rows("classes") == []

    def test_without_admin_account_every_profile_goes(self, service):
        service.auth.admin.users = [u for u in service.auth.admin.users if u.id != "admin-1"]
        clean_and_create_admin.clear_tables(service)
        assert service.rows("profiles") == []


class TestPackaging:

    def test_metadata_only_references_shipped_files(self):
        tomllib = pytest.importorskip("tomllib")
        with open(ROOT / "pyproject.toml", "rb") as f:
            project = tomllib.load(f)["project"]
        readme = project.get("readme")
        if readme is not None:
            assert readme.lower().startswith("readme")
            assert (ROOT / readme).exists()

    def test_every_root_module_is_packaged(self):
        tomllib = pytest.importorskip("tomllib")
        with open(ROOT / "pyproject.toml", "rb") as f:
            modules = tomllib.load(f)["tool"]["setuptools"]["py-modules"]
        assert sorted(modules) == sorted(path.stem for path in ROOT.glob("*.py"))
