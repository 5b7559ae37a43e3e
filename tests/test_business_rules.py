"""Tests for the pure rules shared by the dashboards and the gateway."""

import datetime

import pytest

import business_rules as rules


class TestProgress:

    def test_no_modules_means_zero(self):
        assert rules.progress_percent(0, 0) == 0
        assert rules.progress_percent(3, 0) == 0

    def test_rounds_to_whole_percent(self):
        assert rules.progress_percent(1, 3) == 33
        assert rules.progress_percent(2, 3) == 67
        assert rules.progress_percent(4, 4) == 100

    def test_halves_round_up(self):
        assert rules.progress_percent(1, 8) == 13
        assert rules.round_half_up(62.5) == 63
        assert rules.round_half_up(62.4) == 62
        assert rules.average_percent([50, 75]) == 63
        assert rules.average_percent([]) == 0

    def test_free_class_is_completed_immediately(self):
        assert rules.transaction_status_for_price(0) == "completed"
        assert rules.transaction_status_for_price(None) == "completed"
        assert rules.transaction_status_for_price(150000) == "pending"


class TestMentorSlots:

    def test_skips_unavailable_and_full_slots(self):
        slots = [
            {"mentor_id": "a", "is_available": False, "current_students": 0, "max_students": 5},
            {"mentor_id": "b", "is_available": True, "current_students": 5, "max_students": 5},
            {"mentor_id": "c", "is_available": True, "current_students": 4, "max_students": 5},
            {"mentor_id": "d", "is_available": True, "current_students": 40, "max_students": None},
        ]
        assert [s["mentor_id"] for s in rules.available_mentor_slots(slots)] == ["c", "d"]

    def test_recommendations_exclude_enrolled_classes(self):
        classes = [{"id": i} for i in range(6)]
        recommended = rules.recommend_classes(classes, {0, 2})
        assert [c["id"] for c in recommended] == [1, 3, 4]


class TestValidation:

    @pytest.mark.parametrize("value, expected", [(0, 0), ("100", 100), (" 75 ", 75)])
    def test_valid_grades(self, value, expected):
        assert rules.validate_grade(value) == expected

    @pytest.mark.parametrize("value", [-1, 101, "abc", None, "7.5"])
    def test_invalid_grades(self, value):
        with pytest.raises(ValueError):
            rules.validate_grade(value)

    def test_upload_limits(self):
        limit = 2 * 1024 * 1024
        assert rules.validate_upload(0, "application/pdf", limit) == "The selected file is empty."
        assert "2MB" in rules.validate_upload(limit + 1, "application/pdf", limit)
        assert rules.validate_upload(limit, "application/pdf", limit) is None

    def test_avatar_must_be_an_image(self):
        assert rules.validate_avatar(1000, "image/png", 2 * 1024 * 1024) is None
        assert "Unsupported" in rules.validate_avatar(1000, "application/pdf", 2 * 1024 * 1024)


class TestStoragePath:

    def test_layout(self):
        path = rules.storage_path("student-certificates", "u1", "c1", filename="Cert.PDF", now=1700000000.5)
        assert path == "student-certificates/u1/c1/1700000000500.pdf"

    def test_without_extension(self):
        assert rules.storage_path("u1", filename="README", now=1) == "u1/1000.bin"


class TestDueStatus:
    today = datetime.date(2025, 3, 10)

    def test_graded_and_submitted_win_over_deadline(self):
        assert rules.due_status("2025-01-01", {"status": "graded", "grade": 88}, self.today) == ("Graded: 88", "success")
        assert rules.due_status("2025-01-01", {"status": "submitted"}, self.today) == ("Submitted", "info")

    def test_deadlines(self):
        assert rules.due_status(None, today=self.today) == ("No deadline", "neutral")
        assert rules.due_status("2025-03-09", today=self.today) == ("Overdue", "error")
        assert rules.due_status("2025-03-12", today=self.today) == ("2 days left", "warning")
        assert rules.due_status("2025-03-20", today=self.today) == ("20 Mar 2025", "neutral")


class TestModuleOrder:

    def test_next_index(self):
        assert rules.next_order_index([]) == 0
        assert rules.next_order_index([0, 4, 2]) == 5

    def test_reorder(self):
        assert rules.reorder(["a", "b", "c"], "b", -1) == ["b", "a", "c"]
        assert rules.reorder(["a", "b", "c"], "b", 1) == ["a", "c", "b"]
        assert rules.reorder(["a", "b", "c"], "a", -1) == ["a", "b", "c"]

    def test_reorder_unknown_module(self):
        with pytest.raises(ValueError):
            rules.reorder(["a"], "z", 1)


class TestFinance:

    def test_monthly_finance_counts_only_paid_rows_of_the_year(self):
        transactions = [
            {"amount": 100, "status": "paid", "created_at": "2025-01-15T10:00:00+00:00"},
            {"amount": 50, "status": "pending", "created_at": "2025-01-20T10:00:00+00:00"},
            {"amount": 70, "status": "completed", "created_at": "2025-02-01T10:00:00+00:00"},
            {"amount": 999, "status": "paid", "created_at": "2024-01-01T10:00:00+00:00"},
        ]
        salaries = [{"amount": 30, "status": "paid", "created_at": "2025-01-31T00:00:00+00:00"}]
        chart = rules.monthly_finance(transactions, salaries, 2025)
        assert list(chart["Month"])[:2] == ["Jan", "Feb"]
        assert chart.loc[0, "Income"] == 100
        assert chart.loc[0, "Expense"] == 30
        assert chart.loc[1, "Income"] == 0
        assert len(chart) == 12

    def test_format_currency(self):
        assert rules.format_currency(150000) == "Rp 150.000"
        assert rules.format_currency(None) == "Rp 0"


class TestPresentation:

    def test_search_is_case_insensitive(self):
        assert rules.matches_search(["Python for Kids", None], "python")
        assert not rules.matches_search(["Scratch"], "python")
        assert rules.matches_search(["anything"], "")

    def test_initials(self):
        assert rules.initials("Ada Lovelace King") == "AL"
        assert rules.initials("") == ""
