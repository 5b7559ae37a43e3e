# queries.py
"""
Read models for the dashboards.

The backend has no views for these screens, so each function fetches the
rows it needs table by table and joins them with pandas.
"""
import datetime

import pandas as pd

import business_rules as rules
from db_utils import exact_count, first_row, read_guard, select_rows


# --- Helper Functions ---

def _lookup(table, key, value, ids):
    """Maps `key` -> `value` for the given ids, e.g. user_id -> full_name."""
    ids = [i for i in set(ids) if i]
    if not ids:
        return {}
    return {r[key]: r[value] for r in select_rows(table, f"{key}, {value}", in_filters={key: ids})}


def _names(user_ids):
    return _lookup("profiles", "user_id", "full_name", user_ids)


def _titles(class_ids):
    return _lookup("classes", "id", "title", class_ids)


def _enrollment_counts(class_ids):
    rows = select_rows("enrollments", "class_id", in_filters={"class_id": list(class_ids)})
    counts = {}
    for row in rows:
        counts[row["class_id"]] = counts.get(row["class_id"], 0) + 1
    return counts


# --- Public catalog ---

@read_guard(pd.DataFrame)
def list_active_classes_with_counts():
    classes = select_rows("classes", "*", {"is_active": True}, order_by="created_at", descending=True)
    if not classes:
        return pd.DataFrame()
    counts = _enrollment_counts(c["id"] for c in classes)
    df = pd.DataFrame(classes)
    df["students"] = df["id"].map(lambda cid: counts.get(cid, 0))
    return df


@read_guard(lambda: None)
def get_class_detail(class_id, user_id=None):
    klass = first_row("classes", "*", {"id": class_id})
    if not klass:
        return None
    modules = select_rows("modules", "id, title, order_index", {"class_id": class_id}, order_by="order_index")
    slots = select_rows("class_mentors", "*", {"class_id": class_id})
    mentor_ids = [s["mentor_id"] for s in slots]
    if not mentor_ids and klass.get("mentor_id"):
        mentor_ids = [klass["mentor_id"]]
    mentors = select_rows(
        "profiles", "user_id, full_name, avatar_url, expertise, experience, bio",
        in_filters={"user_id": mentor_ids},
    )
    enrolled = False
    if user_id:
        enrolled = first_row("enrollments", "id", {"class_id": class_id, "user_id": user_id}) is not None
    return {
        "class": klass,
        "modules": modules,
        "mentors": mentors,
        "student_count": exact_count("enrollments", {"class_id": class_id}),
        "is_enrolled": enrolled,
    }


@read_guard(list)
def list_available_mentors(class_id):
    """Mentors of a class that still have free places, with their profile data."""
    slots = rules.available_mentor_slots(select_rows("class_mentors", "*", {"class_id": class_id}))
    profiles = {p["user_id"]: p for p in select_rows(
        "profiles", "user_id, full_name, expertise, avatar_url",
        in_filters={"user_id": [s["mentor_id"] for s in slots]},
    )}
    mentors = []
    for slot in slots:
        profile = profiles.get(slot["mentor_id"], {})
        mentors.append({
            "mentor_id": slot["mentor_id"],
            "full_name": profile.get("full_name") or "Mentor",
            "expertise": profile.get("expertise"),
            "current_students": slot.get("current_students") or 0,
            "max_students": slot.get("max_students"),
        })
    return mentors


# --- Admin ---

@read_guard(dict)
def admin_overview(year=None):
    year = year or datetime.date.today().year
    profiles = select_rows("profiles", "role, approval_status")
    classes = select_rows("classes", "is_active")
    transactions = select_rows("transactions", "id, user_id, class_id, amount, status, payment_method, created_at",
                               order_by="created_at", descending=True)
    salaries = select_rows("mentor_salaries", "amount, status, created_at")

    recent = pd.DataFrame(transactions[:5])
    if not recent.empty:
        names, titles = _names(recent["user_id"]), _titles(recent["class_id"])
        recent["student"] = recent["user_id"].map(names)
        recent["class"] = recent["class_id"].map(titles)

    return {
        "total_users": len(profiles),
        "students": sum(1 for p in profiles if p["role"] == "student"),
        "mentors": sum(1 for p in profiles if p["role"] == "mentor"),
        "pending_mentors": sum(1 for p in profiles if p["role"] == "mentor" and p.get("approval_status") == "pending"),
        "total_classes": len(classes),
        "active_classes": sum(1 for c in classes if c.get("is_active")),
        "total_enrollments": exact_count("enrollments"),
        "revenue": rules.sum_by_status(transactions, "paid"),
        "expenses": rules.sum_by_status(salaries, "paid"),
        "pending_transactions": sum(1 for t in transactions if t["status"] == "pending"),
        "chart": rules.monthly_finance(transactions, salaries, year),
        "recent_transactions": recent,
    }


@read_guard(pd.DataFrame)
def list_students_with_stats():
    students = select_rows("profiles", "*", {"role": "student"}, order_by="created_at", descending=True)
    if not students:
        return pd.DataFrame()
    enrollments = select_rows("enrollments", "user_id, progress",
                              in_filters={"user_id": [s["user_id"] for s in students]})
    df = pd.DataFrame(students)
    df["enrollments"] = df["user_id"].map(lambda uid: sum(1 for e in enrollments if e["user_id"] == uid))
    df["avg_progress"] = df["user_id"].map(
        lambda uid: rules.average_percent(e["progress"] for e in enrollments if e["user_id"] == uid)
    )
    return df


@read_guard(pd.DataFrame)
def list_mentors_with_stats():
    mentors = select_rows("profiles", "*", {"role": "mentor"}, order_by="created_at", descending=True)
    if not mentors:
        return pd.DataFrame()
    mentor_ids = [m["user_id"] for m in mentors]
    classes = select_rows("classes", "id, mentor_id", in_filters={"mentor_id": mentor_ids})
    counts = _enrollment_counts(c["id"] for c in classes)
    df = pd.DataFrame(mentors)
    df["classes"] = df["user_id"].map(lambda uid: sum(1 for c in classes if c["mentor_id"] == uid))
    df["students"] = df["user_id"].map(
        lambda uid: sum(counts.get(c["id"], 0) for c in classes if c["mentor_id"] == uid)
    )
    return df


@read_guard(list)
def list_approved_mentors():
    return select_rows("profiles", "user_id, full_name, expertise",
                       {"role": "mentor", "approval_status": "approved"}, order_by="full_name")


@read_guard(pd.DataFrame)
def list_classes_with_stats():
    classes = select_rows("classes", "*", order_by="created_at", descending=True)
    if not classes:
        return pd.DataFrame()
    class_ids = [c["id"] for c in classes]
    counts = _enrollment_counts(class_ids)
    slots = select_rows("class_mentors", "class_id, mentor_id", in_filters={"class_id": class_ids})
    names = _names([s["mentor_id"] for s in slots] + [c.get("mentor_id") for c in classes])

    df = pd.DataFrame(classes)
    df["students"] = df["id"].map(lambda cid: counts.get(cid, 0))
    df["mentor_ids"] = df["id"].map(lambda cid: [s["mentor_id"] for s in slots if s["class_id"] == cid])
    df["mentors"] = df["mentor_ids"].map(lambda ids: ", ".join(names.get(m, "?") for m in ids))
    df["lead_mentor"] = df["mentor_id"].map(lambda m: names.get(m, "-") if m else "-")
    return df


@read_guard(pd.DataFrame)
def list_graduates():
    """Enrollments at 100% progress, with any certificate already issued."""
    enrollments = select_rows("enrollments", "*", {"progress": 100}, order_by="completed_at", descending=True)
    if not enrollments:
        return pd.DataFrame()
    certificates = select_rows("student_certificates", "id, user_id, class_id, certificate_url, issued_at",
                               in_filters={"user_id": [e["user_id"] for e in enrollments]})
    issued = {(c["user_id"], c["class_id"]): c for c in certificates}
    names, titles = _names(e["user_id"] for e in enrollments), _titles(e["class_id"] for e in enrollments)

    df = pd.DataFrame(enrollments)
    df["student"] = df["user_id"].map(lambda u: names.get(u, "Unknown"))
    df["class"] = df["class_id"].map(lambda c: titles.get(c, "Unknown"))
    df["certificate_url"] = [
        (issued.get((u, c)) or {}).get("certificate_url") for u, c in zip(df["user_id"], df["class_id"])
    ]
    return df


@read_guard(pd.DataFrame)
def list_transactions_detailed():
    transactions = select_rows("transactions", "*", order_by="created_at", descending=True)
    if not transactions:
        return pd.DataFrame()
    df = pd.DataFrame(transactions)
    names, titles = _names(df["user_id"]), _titles(df["class_id"])
    df["student"] = df["user_id"].map(lambda u: names.get(u, "Unknown"))
    df["class"] = df["class_id"].map(lambda c: titles.get(c, "Unknown"))
    return df


@read_guard(pd.DataFrame)
def list_salaries_detailed():
    salaries = select_rows("mentor_salaries", "*", order_by="created_at", descending=True)
    if not salaries:
        return pd.DataFrame()
    df = pd.DataFrame(salaries)
    names = _names(df["mentor_id"])
    df["mentor"] = df["mentor_id"].map(lambda m: names.get(m, "Unknown"))
    return df


# --- Mentor ---

@read_guard(pd.DataFrame)
def list_mentor_classes(mentor_id):
    slots = select_rows("class_mentors", "*", {"mentor_id": mentor_id})
    if not slots:
        return pd.DataFrame()
    classes = {c["id"]: c for c in select_rows("classes", "*", in_filters={"id": [s["class_id"] for s in slots]})}
    enrollments = select_rows("enrollments", "class_id, progress", {"mentor_id": mentor_id})

    rows = []
    for slot in slots:
        klass = classes.get(slot["class_id"])
        if not klass:
            continue
        own = [e["progress"] for e in enrollments if e["class_id"] == klass["id"]]
        rows.append({
            **klass,
            "students": len(own),
            "avg_progress": rules.average_percent(own),
            "max_students": slot.get("max_students"),
            "is_available": slot.get("is_available", True),
        })
    return pd.DataFrame(rows)


@read_guard(dict)
def mentor_overview(mentor_id):
    classes = list_mentor_classes(mentor_id)
    enrollments = select_rows("enrollments", "user_id, progress", {"mentor_id": mentor_id})
    return {
        "classes": len(classes),
        "active_classes": int(classes["is_active"].sum()) if not classes.empty else 0,
        "students": len({e["user_id"] for e in enrollments}),
        "avg_progress": rules.average_percent(e["progress"] for e in enrollments),
        "assignments": exact_count("assignments", {"mentor_id": mentor_id}),
    }


@read_guard(pd.DataFrame)
def list_mentor_students(mentor_id):
    enrollments = select_rows("enrollments", "*", {"mentor_id": mentor_id}, order_by="enrolled_at", descending=True)
    if not enrollments:
        return pd.DataFrame()
    df = pd.DataFrame(enrollments)
    profiles = {p["user_id"]: p for p in select_rows(
        "profiles", "user_id, full_name, age, phone, avatar_url",
        in_filters={"user_id": list(df["user_id"])},
    )}
    titles = _titles(df["class_id"])
    df["student"] = df["user_id"].map(lambda u: profiles.get(u, {}).get("full_name", "Unknown"))
    df["age"] = df["user_id"].map(lambda u: profiles.get(u, {}).get("age"))
    df["phone"] = df["user_id"].map(lambda u: profiles.get(u, {}).get("phone"))
    df["class"] = df["class_id"].map(lambda c: titles.get(c, "Unknown"))
    return df


@read_guard(pd.DataFrame)
def list_mentor_assignments(mentor_id):
    assignments = select_rows("assignments", "*", {"mentor_id": mentor_id}, order_by="created_at", descending=True)
    if not assignments:
        return pd.DataFrame()
    df = pd.DataFrame(assignments)
    titles = _titles(df["class_id"])
    df["class"] = df["class_id"].map(lambda c: titles.get(c, "Unknown"))
    return df


@read_guard(pd.DataFrame)
def list_mentor_submissions(mentor_id):
    assignments = {a["id"]: a for a in select_rows("assignments", "id, title, class_id", {"mentor_id": mentor_id})}
    submissions = select_rows("assignment_submissions", "*", in_filters={"assignment_id": list(assignments)},
                              order_by="submitted_at", descending=True)
    if not submissions:
        return pd.DataFrame()
    df = pd.DataFrame(submissions)
    names = _names(df["user_id"])
    titles = _titles(a["class_id"] for a in assignments.values())
    df["student"] = df["user_id"].map(lambda u: names.get(u, "Unknown"))
    df["assignment"] = df["assignment_id"].map(lambda a: assignments[a]["title"])
    df["class_id"] = df["assignment_id"].map(lambda a: assignments[a]["class_id"])
    df["class"] = df["class_id"].map(lambda c: titles.get(c, "Unknown"))
    return df


# --- Student ---

@read_guard(dict)
def student_overview(user_id):
    enrollments = select_rows("enrollments", "*", {"user_id": user_id}, order_by="enrolled_at", descending=True)
    classes = {c["id"]: c for c in select_rows(
        "classes", "id, title, description, level, thumbnail_url",
        in_filters={"id": [e["class_id"] for e in enrollments]},
    )}
    enrolled = [{**e, "class": classes.get(e["class_id"], {})} for e in enrollments]
    active = select_rows("classes", "id, title, description, level, price", {"is_active": True},
                         order_by="created_at", descending=True)
    return {
        "enrollments": enrolled,
        "enrolled_count": len(enrolled),
        "completed_count": sum(1 for e in enrollments if int(e.get("progress") or 0) >= 100),
        "avg_progress": rules.average_percent(e.get("progress") for e in enrollments),
        "recommended": rules.recommend_classes(active, classes.keys()),
    }


@read_guard(lambda: None)
def get_student_class(user_id, class_id):
    """Everything the 'My Classes' view needs for one enrolled class."""
    enrollment = first_row("enrollments", "*", {"user_id": user_id, "class_id": class_id})
    if not enrollment:
        return None
    klass = first_row("classes", "*", {"id": class_id}) or {}
    modules = select_rows("modules", "*", {"class_id": class_id}, order_by="order_index")
    done = {r["module_id"] for r in select_rows("module_progress", "module_id",
                                                {"user_id": user_id, "class_id": class_id})}
    mentor_id = enrollment.get("mentor_id") or klass.get("mentor_id")
    mentor = first_row("profiles", "full_name, expertise, avatar_url, bio", {"user_id": mentor_id}) if mentor_id else None
    return {
        "enrollment": enrollment,
        "class": klass,
        "modules": modules,
        "completed_modules": done,
        "mentor": mentor,
        "assignments": select_rows("assignments", "*", {"class_id": class_id}, order_by="due_date"),
    }


@read_guard(list)
def list_student_assignments(user_id):
    class_ids = [e["class_id"] for e in select_rows("enrollments", "class_id", {"user_id": user_id})]
    assignments = select_rows("assignments", "*", in_filters={"class_id": class_ids}, order_by="due_date")
    submissions = {s["assignment_id"]: s for s in select_rows("assignment_submissions", "*", {"user_id": user_id})}
    titles = _titles(class_ids)
    return [
        {**a, "class": titles.get(a["class_id"], "Unknown"), "submission": submissions.get(a["id"])}
        for a in assignments
    ]


@read_guard(pd.DataFrame)
def list_student_certificates(user_id):
    certificates = select_rows("student_certificates", "*", {"user_id": user_id}, order_by="issued_at", descending=True)
    if not certificates:
        return pd.DataFrame()
    df = pd.DataFrame(certificates)
    titles = _titles(df["class_id"])
    df["class"] = df["class_id"].map(lambda c: titles.get(c, "Unknown"))
    return df


@read_guard(list)
def list_enrollable_classes(user_id):
    enrolled = {e["class_id"] for e in select_rows("enrollments", "class_id", {"user_id": user_id})}
    return [c for c in select_rows("classes", "id, title, price, level", {"is_active": True}, order_by="title")
            if c["id"] not in enrolled]


@read_guard(list)
def list_class_modules(class_id):
    return select_rows("modules", "*", {"class_id": class_id}, order_by="order_index")
