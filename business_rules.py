# business_rules.py
"""
Pure rules shared by the dashboards and the backend gateway.

Nothing in here talks to Supabase or Streamlit, so every rule can be
exercised directly from the tests.
"""
import datetime
import math
import os
import time

import pandas as pd

from config import AVATAR_TYPES, MAX_GRADE

MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


# --- Progress & enrollment ---

def round_half_up(value) -> int:
    """Rounds halves up, e.g. 12.5 -> 13."""
    return int(math.floor(float(value) + 0.5))


def progress_percent(completed: int, total: int) -> int:
    """Share of completed modules, rounded to a whole percent."""
    if total <= 0:
        return 0
    return round_half_up(completed / total * 100)


def average_percent(values) -> int:
    values = [float(v or 0) for v in values]
    return round_half_up(sum(values) / len(values)) if values else 0


def transaction_status_for_price(price) -> str:
    # Free classes need no payment confirmation.
    return "completed" if float(price or 0) == 0 else "pending"


def available_mentor_slots(slots):
    """Keeps the class-mentor slots that can still take a student."""
    available = []
    for slot in slots:
        if not slot.get("is_available", True):
            continue
        current = slot.get("current_students") or 0
        capacity = slot.get("max_students")
        if capacity is not None and current >= capacity:
            continue
        available.append(slot)
    return available


def recommend_classes(active_classes, enrolled_ids, limit=3):
    enrolled = set(enrolled_ids)
    return [c for c in active_classes if c["id"] not in enrolled][:limit]


# --- Grading & uploads ---

def validate_grade(value) -> int:
    """Parses a grade and enforces the 0-100 range."""
    try:
        grade = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValueError(f"Grade must be a whole number between 0 and {MAX_GRADE}.")
    if grade < 0 or grade > MAX_GRADE:
        raise ValueError(f"Grade must be a whole number between 0 and {MAX_GRADE}.")
    return grade


def validate_upload(size, content_type, max_bytes, allowed_types=None):
    """Returns an error message for an unacceptable file, or None."""
    if size is None or size <= 0:
        return "The selected file is empty."
    if size > max_bytes:
        return f"File is too large. Maximum size is {max_bytes // (1024 * 1024)}MB."
    if allowed_types is not None and content_type not in allowed_types:
        return "Unsupported file type. Use JPG, PNG, GIF or WebP."
    return None


def validate_avatar(size, content_type, max_bytes):
    return validate_upload(size, content_type, max_bytes, AVATAR_TYPES)


def file_extension(filename: str) -> str:
    ext = os.path.splitext(filename or "")[1].lstrip(".").lower()
    return ext or "bin"


def storage_path(*parts, filename, now=None) -> str:
    """Builds `part/part/<epoch-ms>.<ext>`, the object key layout used by every bucket."""
    stamp = int((now if now is not None else time.time()) * 1000)
    prefix = "/".join(str(p) for p in parts if p)
    name = f"{stamp}.{file_extension(filename)}"
    return f"{prefix}/{name}" if prefix else name


# --- Assignments ---

def parse_date(value):
    if value is None or value == "" or (isinstance(value, float) and pd.isna(value)):
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    return pd.to_datetime(value).date()


def due_status(due_date, submission=None, today=None):
    """
    Badge for an assignment as seen by a student.

    Returns a (label, level) pair where level is one of
    'success', 'info', 'warning', 'error' or 'neutral'.
    """
    if submission:
        if submission.get("status") == "graded":
            return f"Graded: {submission.get('grade')}", "success"
        return "Submitted", "info"

    due = parse_date(due_date)
    if due is None:
        return "No deadline", "neutral"
    today = today or datetime.date.today()
    days_left = (due - today).days
    if days_left < 0:
        return "Overdue", "error"
    if days_left <= 3:
        return f"{days_left} days left", "warning"
    return due.strftime("%d %b %Y"), "neutral"


# --- Modules ---

def next_order_index(indices) -> int:
    indices = [int(i) for i in indices]
    return max(indices) + 1 if indices else 0


def reorder(ids, module_id, direction):
    """
    Moves one module up (-1) or down (+1) in an ordered id list.
    Returns the new order; unchanged when the move hits either end.
    """
    ids = list(ids)
    if module_id not in ids:
        raise ValueError("Module does not belong to this class.")
    pos = ids.index(module_id)
    target = pos + direction
    if target < 0 or target >= len(ids):
        return ids
    ids[pos], ids[target] = ids[target], ids[pos]
    return ids


# --- Finance ---

def monthly_finance(transactions, salaries, year):
    """
    Income and expense per month of `year`.
    Only rows with status 'paid' count on either side.
    """
    income = [0.0] * 12
    expense = [0.0] * 12
    for rows, bucket in ((transactions, income), (salaries, expense)):
        for row in rows:
            if row.get("status") != "paid" or not row.get("created_at"):
                continue
            created = pd.to_datetime(row["created_at"])
            if created.year != year:
                continue
            bucket[created.month - 1] += float(row.get("amount") or 0)
    return pd.DataFrame({"Month": MONTH_LABELS, "Income": income, "Expense": expense})


def sum_by_status(rows, status):
    return sum(float(r.get("amount") or 0) for r in rows if r.get("status") == status)


def format_currency(amount) -> str:
    """Indonesian Rupiah without decimals, e.g. Rp 150.000."""
    value = round_half_up(amount or 0)
    return "Rp " + f"{value:,}".replace(",", ".")


# --- Presentation helpers ---

def matches_search(fields, query) -> bool:
    if not query:
        return True
    query = query.lower()
    return any(query in str(f).lower() for f in fields if f is not None)


def initials(name: str) -> str:
    return "".join(part[0] for part in (name or "").split() if part).upper()[:2]
