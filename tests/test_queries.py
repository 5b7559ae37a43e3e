"""Tests for the dashboard read models."""

import pytest

import queries


@pytest.fixture
def catalog(fake_db):
    python, scratch, closed = fake_db.seed(
        "classes",
        {"title": "Python", "price": 100000, "is_active": True, "level": "beginner", "mentor_id": "m1"},
        {"title": "Scratch", "price": 0, "is_active": True, "level": "beginner", "mentor_id": None},
        {"title": "Old Course", "price": 0, "is_active": False, "level": "advanced", "mentor_id": None},
    )
    fake_db.seed("profiles",
                 {"user_id": "m1", "role": "mentor", "full_name": "Mentor One", "approval_status": "approved"},
                 {"user_id": "m2", "role": "mentor", "full_name": "Mentor Two", "approval_status": "pending"},
                 {"user_id": "s1", "role": "student", "full_name": "Student One"},
                 {"user_id": "s2", "role": "student", "full_name": "Student Two"})
    fake_db.seed("enrollments",
                 {"user_id": "s1", "class_id": python["id"], "mentor_id": "m1", "progress": 100},
                 {"user_id": "s2", "class_id": python["id"], "mentor_id": "m1", "progress": 50},
                 {"user_id": "s1", "class_id": scratch["id"], "mentor_id": None, "progress": 0})
    return python, scratch, closed


class TestCatalog:

    def test_active_classes_with_counts(self, fake_db, catalog):
        df = queries.list_active_classes_with_counts()
        counts = dict(zip(df["title"], df["students"]))
        assert counts == {"Python": 2, "Scratch": 1}

    def test_class_detail(self, fake_db, catalog):
        python = catalog[0]
        detail = queries.get_class_detail(python["id"], user_id="s2")
        assert detail["is_enrolled"]
        assert detail["student_count"] == 2
        assert [m["full_name"] for m in detail["mentors"]] == ["Mentor One"]

    def test_unknown_class(self, fake_db, catalog):
        assert queries.get_class_detail("missing") is None

    def test_available_mentors_skip_full_slots(self, fake_db, catalog):
        python = catalog[0]
        fake_db.seed("class_mentors",
                     {"class_id": python["id"], "mentor_id": "m1", "is_available": True,
                      "current_students": 2, "max_students": 5},
                     {"class_id": python["id"], "mentor_id": "m2", "is_available": True,
                      "current_students": 5, "max_students": 5})
        mentors = queries.list_available_mentors(python["id"])
        assert [(m["full_name"], m["current_students"]) for m in mentors] == [("Mentor One", 2)]


class TestAdminOverview:

    def test_counts_and_revenue(self, fake_db, catalog):
        python = catalog[0]
        fake_db.seed("transactions",
                     {"user_id": "s1", "class_id": python["id"], "amount": 100000, "status": "paid"},
                     {"user_id": "s2", "class_id": python["id"], "amount": 100000, "status": "pending"},
                     {"user_id": "s1", "class_id": catalog[1]["id"], "amount": 0, "status": "completed"})
        fake_db.seed("mentor_salaries",
                     {"mentor_id": "m1", "amount": 40000, "status": "paid"},
                     {"mentor_id": "m1", "amount": 99999, "status": "pending"})

        overview = queries.admin_overview(year=2025)
        assert overview["total_users"] == 4
        assert overview["mentors"] == 2
        assert overview["pending_mentors"] == 1
        assert overview["active_classes"] == 2
        assert overview["total_enrollments"] == 3
        assert overview["revenue"] == 100000
        assert overview["expenses"] == 40000
        assert overview["pending_transactions"] == 1
        assert set(overview["recent_transactions"]["student"]) == {"Student One", "Student Two"}

    def test_graduates_show_issued_certificates(self, fake_db, catalog):
        python = catalog[0]
        fake_db.seed("student_certificates",
                     {"user_id": "s1", "class_id": python["id"], "certificate_url": "https://cert"})
        df = queries.list_graduates()
        assert list(df["student"]) == ["Student One"]
        assert list(df["certificate_url"]) == ["https://cert"]


class TestStudentViews:

    def test_overview(self, fake_db, catalog):
        overview = queries.student_overview("s1")
        assert overview["enrolled_count"] == 2
        assert overview["completed_count"] == 1
        assert overview["avg_progress"] == 50
        assert overview["recommended"] == []

    def test_average_progress_rounds_halves_up(self, fake_db, catalog):
        fake_db.seed("enrollments", {"user_id": "s2", "class_id": catalog[1]["id"], "progress": 75})
        assert queries.student_overview("s2")["avg_progress"] == 63

    def test_assignments_carry_own_submission(self, fake_db, catalog):
        python, scratch, closed = catalog
        first, second, foreign = fake_db.seed(
            "assignments",
            {"class_id": python["id"], "title": "A1", "due_date": "2025-02-01"},
            {"class_id": scratch["id"], "title": "A2", "due_date": "2025-01-01"},
            {"class_id": closed["id"], "title": "Hidden", "due_date": "2025-01-15"},
        )
        fake_db.seed("assignment_submissions",
                     {"assignment_id": first["id"], "user_id": "s1", "status": "graded", "grade": 90},
                     {"assignment_id": first["id"], "user_id": "s2", "status": "submitted"})

        rows = queries.list_student_assignments("s1")
        assert [r["title"] for r in rows] == ["A2", "A1"]
        assert rows[1]["submission"]["grade"] == 90
        assert rows[0]["submission"] is None
        assert rows[0]["class"] == "Scratch"

    def test_enrollable_classes_exclude_enrolled_and_inactive(self, fake_db, catalog):
        assert [c["title"] for c in queries.list_enrollable_classes("s2")] == ["Scratch"]

    def test_mentor_overview(self, fake_db, catalog):
        fake_db.seed("class_mentors", {"class_id": catalog[0]["id"], "mentor_id": "m1", "max_students": 10})
        overview = queries.mentor_overview("m1")
        assert overview["classes"] == 1
        assert overview["students"] == 2
        assert overview["avg_progress"] == 75
