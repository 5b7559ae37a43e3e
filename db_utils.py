# db_utils.py
import datetime
import functools
import hashlib
import json
import logging

import pandas as pd
import streamlit as st
from supabase import Client, ClientOptions, PostgrestAPIError, StorageException, create_client

import business_rules as rules
from config import (
    SUPABASE_URL, SUPABASE_ANON_KEY, SUPABASE_SERVICE_ROLE_KEY, SUPABASE_TIMEOUT,
    BUCKET_ASSIGNMENTS, BUCKET_AVATARS, BUCKET_CERTIFICATES,
    MAX_ASSIGNMENT_BYTES, MAX_AVATAR_BYTES, MAX_CERTIFICATE_BYTES, MAX_CREDENTIAL_BYTES,
    CLASS_LEVELS,
)

logger = logging.getLogger(__name__)


# --- Per-Session Client Management ---

def _client_options():
    return ClientOptions(
        postgrest_client_timeout=SUPABASE_TIMEOUT,
        storage_client_timeout=SUPABASE_TIMEOUT,
    )


def get_client() -> Client:
    """
    Returns the Supabase client bound to the current browser session.

    Every visitor gets their own client (and therefore their own auth
    session) in st.session_state, so row-level security always sees the
    right user.
    """
    if "supabase_client" not in st.session_state:
        logger.info("Creating Supabase client for a new browser session")
        st.session_state.supabase_client = create_client(
            SUPABASE_URL, SUPABASE_ANON_KEY, options=_client_options()
        )
    return st.session_state.supabase_client


def reset_client(state=None):
    """Drops the session's client, e.g. after sign-out."""
    state = st.session_state if state is None else state
    if "supabase_client" in state:
        del state["supabase_client"]


def get_service_client() -> Client:
    """Service-role client for the operator scripts. Bypasses row-level security."""
    if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set for operator scripts.")
    return create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY, options=_client_options())


def now_iso():
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


# --- Low-level query building ---

def _as_lists(in_filters):
    return {column: list(values) for column, values in (in_filters or {}).items()}


def _apply_filters(query, filters=None, in_filters=None):
    for column, value in (filters or {}).items():
        if value is None:
            query = query.is_(column, "null")
        else:
            query = query.eq(column, value)
    for column, values in (in_filters or {}).items():
        query = query.in_(column, list(values))
    return query


def select_rows(table, columns="*", filters=None, in_filters=None, order_by=None, descending=False, limit=None):
    """Runs a SELECT and returns the rows. Raises PostgrestAPIError."""
    in_filters = _as_lists(in_filters)
    # An empty IN list can never match.
    if in_filters and any(not v for v in in_filters.values()):
        return []
    query = _apply_filters(get_client().table(table).select(columns), filters, in_filters)
    if order_by:
        query = query.order(order_by, desc=descending)
    if limit:
        query = query.limit(limit)
    return query.execute().data or []


def first_row(table, columns="*", filters=None):
    rows = select_rows(table, columns, filters, limit=1)
    return rows[0] if rows else None


def exact_count(table, filters=None, in_filters=None):
    in_filters = _as_lists(in_filters)
    if in_filters and any(not v for v in in_filters.values()):
        return 0
    query = _apply_filters(get_client().table(table).select("id", count="exact"), filters, in_filters)
    response = query.execute()
    return response.count or 0


def read_guard(default_factory):
    """
    Wraps a read so backend failures are logged and shown once,
    and the caller receives an empty result instead of an exception.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except PostgrestAPIError as e:
                logger.error("%s failed: %s", func.__name__, e.message)
                st.error(f"Database query failed: {e.message}")
            except Exception as e:
                logger.exception("%s failed unexpectedly", func.__name__)
                st.error(f"An unexpected error occurred: {e}")
            return default_factory()
        return wrapper
    return decorator


# --- Core Database Functions ---

@read_guard(pd.DataFrame)
def execute_query(table, columns="*", filters=None, in_filters=None, order_by=None, descending=False, limit=None):
    """Executes a SELECT against a remote table and returns a DataFrame."""
    return pd.DataFrame(select_rows(table, columns, filters, in_filters, order_by, descending, limit))


@read_guard(list)
def fetch_rows(table, columns="*", filters=None, in_filters=None, order_by=None, descending=False, limit=None):
    return select_rows(table, columns, filters, in_filters, order_by, descending, limit)


@read_guard(lambda: None)
def fetch_one(table, columns="*", filters=None):
    return first_row(table, columns, filters)


@read_guard(int)
def count_rows(table, filters=None, in_filters=None):
    return exact_count(table, filters, in_filters)


def _write_failed(action, table, e):
    logger.error("%s on %s failed: %s", action, table, e.message)
    return (False, f"Database error: {e.message}")


def insert_row(table, values):
    """Inserts one row (or a list of rows). Returns (success, message)."""
    success, msg, _ = insert_returning(table, values)
    return (success, msg)


def insert_returning(table, values):
    try:
        response = get_client().table(table).insert(values).execute()
    except PostgrestAPIError as e:
        return _write_failed("Insert", table, e) + (None,)
    rows = response.data or []
    return (True, "Saved successfully.", rows[0] if rows else None)


def update_rows(table, values, filters):
    if not filters:
        raise ValueError("update_rows requires at least one filter")
    try:
        _apply_filters(get_client().table(table).update(values), filters).execute()
    except PostgrestAPIError as e:
        return _write_failed("Update", table, e)
    return (True, "Changes saved.")


def delete_rows(table, filters):
    if not filters:
        raise ValueError("delete_rows requires at least one filter")
    try:
        _apply_filters(get_client().table(table).delete(), filters).execute()
    except PostgrestAPIError as e:
        return _write_failed("Delete", table, e)
    return (True, "Deleted successfully.")


def upsert_row(table, values, on_conflict):
    try:
        get_client().table(table).upsert(values, on_conflict=on_conflict).execute()
    except PostgrestAPIError as e:
        return _write_failed("Upsert", table, e)
    return (True, "Saved successfully.")


# --- Object Storage ---

def public_url(bucket, path):
    return get_client().storage.from_(bucket).get_public_url(path)


def upload_file(bucket, path, data, content_type, upsert=False):
    """Uploads bytes to a bucket. Returns (success, public_url_or_message)."""
    options = {"content-type": content_type or "application/octet-stream",
               "upsert": "true" if upsert else "false"}
    try:
        get_client().storage.from_(bucket).upload(path, data, options)
    except StorageException as e:
        logger.error("Upload to %s/%s failed: %s", bucket, path, e)
        return (False, f"Upload failed: {e}")
    logger.info("Uploaded %d bytes to %s/%s", len(data), bucket, path)
    return (True, public_url(bucket, path))


def download_file(bucket, path):
    try:
        return get_client().storage.from_(bucket).download(path)
    except StorageException as e:
        logger.error("Download of %s/%s failed: %s", bucket, path, e)
        st.error(f"Could not download the file: {e}")
        return None


def remove_files(bucket, paths):
    try:
        get_client().storage.from_(bucket).remove(list(paths))
    except StorageException as e:
        logger.warning("Could not remove %s from %s: %s", paths, bucket, e)
        return False
    return True


def object_path(url, bucket):
    """Recovers the object key from a public URL of `bucket`."""
    marker = f"/object/public/{bucket}/"
    if not url or marker not in url:
        return None
    return url.split(marker, 1)[1].split("?", 1)[0]


# --- Change detection for live refresh ---

def change_token(table, columns="*", filters=None):
    """
    Fingerprint of the rows the current user can see in `table`.
    Any insert, update or delete within `columns` changes it.
    """
    try:
        rows = select_rows(table, columns, filters)
    except PostgrestAPIError as e:
        logger.warning("Change check on %s failed: %s", table, e.message)
        return None
    payload = json.dumps(sorted(rows, key=lambda r: str(r.get("id"))), sort_keys=True, default=str)
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()


# =================================================================
# Composite operations
# =================================================================
# Each step is a separate request to the backend; when a later step
# fails, the earlier ones are undone so no half-written records remain.

# --- Enrollment & progress ---

def enroll_student(user_id, class_id, mentor_id=None, payment_method="transfer"):
    client = get_client()
    try:
        if first_row("enrollments", "id", {"class_id": class_id, "user_id": user_id}):
            return (False, "You are already enrolled in this class.")

        klass = first_row("classes", "id, title, price, is_active", {"id": class_id})
        if not klass or not klass.get("is_active"):
            return (False, "This class is not open for enrollment.")

        slot = None
        if mentor_id:
            slots = rules.available_mentor_slots(
                select_rows("class_mentors", "*", {"class_id": class_id, "mentor_id": mentor_id})
            )
            if not slots:
                return (False, "The selected mentor has no free places in this class.")
            slot = slots[0]

        status = rules.transaction_status_for_price(klass["price"])
        tx_rows = client.table("transactions").insert({
            "user_id": user_id,
            "class_id": class_id,
            "amount": klass["price"],
            "payment_method": payment_method,
            "status": status,
        }).execute().data

        try:
            client.table("enrollments").insert({
                "user_id": user_id,
                "class_id": class_id,
                "mentor_id": mentor_id or None,
                "progress": 0,
            }).execute()
        except PostgrestAPIError:
            if tx_rows:
                client.table("transactions").delete().eq("id", tx_rows[0]["id"]).execute()
            raise
    except PostgrestAPIError as e:
        logger.error("Enrollment of %s in %s failed: %s", user_id, class_id, e.message)
        return (False, f"Enrollment failed: {e.message}")

    # The enrollment is committed; a stale slot counter must not undo it.
    if slot:
        try:
            client.table("class_mentors").update(
                {"current_students": (slot.get("current_students") or 0) + 1}
            ).eq("id", slot["id"]).execute()
        except PostgrestAPIError as e:
            logger.warning("Could not update student count of mentor slot %s: %s", slot["id"], e.message)

    logger.info("User %s enrolled in class %s (payment %s)", user_id, class_id, status)
    if status == "completed":
        return (True, f"You are now enrolled in '{klass['title']}'.")
    return (True, f"Enrollment in '{klass['title']}' registered. Please complete your payment.")


def set_module_completion(user_id, class_id, module_id, completed):
    """Marks a module done/undone and recomputes the enrollment's progress."""
    client = get_client()
    timestamp = now_iso()
    try:
        if completed:
            if not first_row("module_progress", "id", {"user_id": user_id, "module_id": module_id}):
                client.table("module_progress").insert({
                    "user_id": user_id,
                    "module_id": module_id,
                    "class_id": class_id,
                    "completed_at": timestamp,
                }).execute()
        else:
            client.table("module_progress").delete().eq("user_id", user_id).eq("module_id", module_id).execute()

        total = exact_count("modules", {"class_id": class_id})
        done = exact_count("module_progress", {"user_id": user_id, "class_id": class_id})
        progress = rules.progress_percent(done, total)

        client.table("enrollments").update({
            "progress": progress,
            "completed_at": timestamp if progress >= 100 else None,
        }).eq("user_id", user_id).eq("class_id", class_id).execute()
    except PostgrestAPIError as e:
        logger.error("Progress update for %s/%s failed: %s", user_id, module_id, e.message)
        return (False, f"Could not update progress: {e.message}", None)
    return (True, "Progress updated.", progress)


# --- Assignments & submissions ---

def submit_assignment(user_id, assignment_id, filename, data, content_type):
    error = rules.validate_upload(len(data), content_type, MAX_ASSIGNMENT_BYTES)
    if error:
        return (False, error)

    path = rules.storage_path(user_id, assignment_id, filename=filename)
    success, url = upload_file(BUCKET_ASSIGNMENTS, path, data, content_type)
    if not success:
        return (False, url)

    try:
        get_client().table("assignment_submissions").upsert({
            "assignment_id": assignment_id,
            "user_id": user_id,
            "file_url": url,
            "status": "submitted",
            "submitted_at": now_iso(),
        }, on_conflict="assignment_id,user_id").execute()
    except PostgrestAPIError as e:
        remove_files(BUCKET_ASSIGNMENTS, [path])
        return _write_failed("Submission", "assignment_submissions", e)
    return (True, "Assignment submitted successfully.")


def grade_submission(submission_id, grader_id, grade, feedback=None):
    try:
        grade = rules.validate_grade(grade)
    except ValueError as e:
        return (False, str(e))
    return update_rows("assignment_submissions", {
        "grade": grade,
        "feedback": (feedback or "").strip() or None,
        "status": "graded",
        "graded_at": now_iso(),
        "graded_by": grader_id,
    }, {"id": submission_id})


def _upload_attachment(mentor_id, attachment):
    filename, data, content_type = attachment
    error = rules.validate_upload(len(data), content_type, MAX_ASSIGNMENT_BYTES)
    if error:
        return (False, error)
    path = rules.storage_path(mentor_id, filename=filename)
    return upload_file(BUCKET_ASSIGNMENTS, path, data, content_type)


def create_assignment(mentor_id, class_id, title, description=None, due_date=None, attachment=None):
    if not class_id or not (title or "").strip():
        return (False, "Class and title are required.")
    file_url = None
    if attachment:
        success, file_url = _upload_attachment(mentor_id, attachment)
        if not success:
            return (False, file_url)
    return insert_row("assignments", {
        "class_id": class_id,
        "mentor_id": mentor_id,
        "title": title.strip(),
        "description": (description or "").strip() or None,
        "file_url": file_url,
        "due_date": due_date.isoformat() if due_date else None,
    })


def update_assignment(assignment_id, mentor_id, title, description=None, due_date=None,
                      attachment=None, current_file_url=None):
    if not (title or "").strip():
        return (False, "Title is required.")
    file_url = current_file_url
    if attachment:
        success, file_url = _upload_attachment(mentor_id, attachment)
        if not success:
            return (False, file_url)
    return update_rows("assignments", {
        "title": title.strip(),
        "description": (description or "").strip() or None,
        "file_url": file_url,
        "due_date": due_date.isoformat() if due_date else None,
        "updated_at": now_iso(),
    }, {"id": assignment_id})


def delete_assignment(assignment_id):
    return delete_rows("assignments", {"id": assignment_id})


# --- Modules ---

def create_module(class_id, title, content=None, video_url=None):
    if not (title or "").strip():
        return (False, "Module title is required.")
    try:
        existing = select_rows("modules", "order_index", {"class_id": class_id})
    except PostgrestAPIError as e:
        return _write_failed("Module lookup", "modules", e)
    return insert_row("modules", {
        "class_id": class_id,
        "title": title.strip(),
        "content": (content or "").strip() or None,
        "video_url": (video_url or "").strip() or None,
        "order_index": rules.next_order_index(r["order_index"] for r in existing),
    })


def update_module(module_id, title, content=None, video_url=None):
    if not (title or "").strip():
        return (False, "Module title is required.")
    return update_rows("modules", {
        "title": title.strip(),
        "content": (content or "").strip() or None,
        "video_url": (video_url or "").strip() or None,
    }, {"id": module_id})


def delete_module(module_id):
    return delete_rows("modules", {"id": module_id})


def move_module(class_id, module_id, direction):
    """Moves a module one place up (-1) or down (+1) and re-numbers the class densely."""
    client = get_client()
    try:
        modules = select_rows("modules", "id, order_index", {"class_id": class_id}, order_by="order_index")
        new_order = rules.reorder([m["id"] for m in modules], module_id, direction)
        current = {m["id"]: m["order_index"] for m in modules}
        for index, mid in enumerate(new_order):
            if current[mid] != index:
                client.table("modules").update({"order_index": index}).eq("id", mid).execute()
    except ValueError as e:
        return (False, str(e))
    except PostgrestAPIError as e:
        return _write_failed("Reorder", "modules", e)
    return (True, "Module order updated.")


# --- Classes & mentor assignment ---

def _class_payload(**fields):
    payload = {}
    if "title" in fields:
        title = (fields["title"] or "").strip()
        if not title:
            raise ValueError("Class title is required.")
        payload["title"] = title
    if "description" in fields:
        payload["description"] = (fields["description"] or "").strip() or None
    if "level" in fields:
        if fields["level"] not in CLASS_LEVELS:
            raise ValueError(f"Level must be one of: {', '.join(CLASS_LEVELS)}.")
        payload["level"] = fields["level"]
    if "price" in fields:
        price = float(fields["price"] or 0)
        if price < 0:
            raise ValueError("Price cannot be negative.")
        payload["price"] = price
    if "mentor_id" in fields:
        payload["mentor_id"] = fields["mentor_id"] or None
    if "is_active" in fields:
        payload["is_active"] = bool(fields["is_active"])
    return payload


def create_class(title, description, level, price, mentor_id=None, is_active=True):
    try:
        payload = _class_payload(title=title, description=description, level=level,
                                 price=price, mentor_id=mentor_id, is_active=is_active)
    except ValueError as e:
        return (False, str(e))
    success, msg = insert_row("classes", payload)
    return (True, f"Class '{payload['title']}' created.") if success else (False, msg)


def update_class(class_id, **fields):
    try:
        payload = _class_payload(**fields)
    except ValueError as e:
        return (False, str(e))
    payload["updated_at"] = now_iso()
    return update_rows("classes", payload, {"id": class_id})


def assign_class_mentors(class_id, mentor_ids):
    """
    Makes `mentor_ids` the exact set of mentors teaching a class.
    Slots of mentors who stay keep their student counts.
    """
    client = get_client()
    wanted = list(dict.fromkeys(mentor_ids))
    try:
        current = {r["mentor_id"] for r in select_rows("class_mentors", "mentor_id", {"class_id": class_id})}
        removed = current - set(wanted)
        added = [m for m in wanted if m not in current]
        if removed:
            client.table("class_mentors").delete().eq("class_id", class_id).in_("mentor_id", list(removed)).execute()
        if added:
            client.table("class_mentors").insert(
                [{"class_id": class_id, "mentor_id": m} for m in added]
            ).execute()
    except PostgrestAPIError as e:
        return _write_failed("Mentor assignment", "class_mentors", e)
    return (True, f"{len(wanted)} mentor(s) assigned to the class.")


def set_mentor_approval(profile_id, status):
    if status not in ("approved", "rejected"):
        return (False, f"Unknown approval status: {status}")
    success, msg = update_rows("profiles", {"approval_status": status, "updated_at": now_iso()}, {"id": profile_id})
    return (True, f"Mentor {status}.") if success else (False, msg)


# --- Certificates ---

def issue_certificate(admin_id, user_id, class_id, filename, data, content_type):
    try:
        enrollment = first_row("enrollments", "progress", {"user_id": user_id, "class_id": class_id})
    except PostgrestAPIError as e:
        return _write_failed("Enrollment lookup", "enrollments", e)
    if not enrollment or int(enrollment.get("progress") or 0) < 100:
        return (False, "Certificates can only be issued for completed classes.")

    error = rules.validate_upload(len(data), content_type, MAX_CERTIFICATE_BYTES)
    if error:
        return (False, error)

    path = rules.storage_path("student-certificates", user_id, class_id, filename=filename)
    success, url = upload_file(BUCKET_CERTIFICATES, path, data, content_type)
    if not success:
        return (False, url)

    record = {
        "user_id": user_id,
        "class_id": class_id,
        "certificate_url": url,
        "issued_by": admin_id,
        "issued_at": now_iso(),
    }
    success, msg = upsert_row("student_certificates", record, on_conflict="user_id,class_id")
    if not success:
        # Projects without the (user_id, class_id) unique constraint reject the upsert.
        success, msg = insert_row("student_certificates", record)
    if not success:
        remove_files(BUCKET_CERTIFICATES, [path])
        return (False, msg)
    logger.info("Certificate issued to %s for class %s", user_id, class_id)
    return (True, "Certificate uploaded successfully.")


# --- Finance ---

def add_salary(mentor_id, amount, period):
    if not mentor_id or not amount or not (period or "").strip():
        return (False, "Mentor, amount and period are all required.")
    if float(amount) <= 0:
        return (False, "Amount must be greater than zero.")
    return insert_row("mentor_salaries", {
        "mentor_id": mentor_id,
        "amount": float(amount),
        "period": period.strip(),
        "status": "pending",
    })


def mark_salary_paid(salary_id):
    return update_rows("mentor_salaries", {"status": "paid", "paid_at": now_iso()}, {"id": salary_id})


def set_transaction_status(transaction_id, status):
    """Admin confirms ('paid') or rejects ('cancelled') a pending payment."""
    if status not in ("paid", "cancelled"):
        return (False, f"Unknown payment status: {status}")
    try:
        tx = first_row("transactions", "id, status", {"id": transaction_id})
    except PostgrestAPIError as e:
        return _write_failed("Transaction lookup", "transactions", e)
    if not tx:
        return (False, "Transaction not found.")
    if tx["status"] != "pending":
        return (False, "Only pending payments can be confirmed or rejected.")
    return update_rows("transactions", {"status": status}, {"id": transaction_id})


# --- Profile files ---

def upload_avatar(user_id, filename, data, content_type):
    """Returns (success, avatar_url_or_message)."""
    error = rules.validate_avatar(len(data), content_type, MAX_AVATAR_BYTES)
    if error:
        return (False, error)
    path = rules.storage_path(user_id, filename=filename)
    success, url = upload_file(BUCKET_AVATARS, path, data, content_type, upsert=True)
    if not success:
        return (False, url)
    success, msg = update_rows("profiles", {"avatar_url": url, "updated_at": now_iso()}, {"user_id": user_id})
    return (True, url) if success else (False, msg)


def upload_mentor_credential(user_id, filename, data, content_type):
    """Stores a mentor's expertise certificate and puts the account up for approval."""
    error = rules.validate_upload(len(data), content_type, MAX_CREDENTIAL_BYTES)
    if error:
        return (False, error)
    path = rules.storage_path(user_id, filename=filename)
    success, url = upload_file(BUCKET_CERTIFICATES, path, data, content_type)
    if not success:
        return (False, url)
    return update_rows("profiles", {"certificate_url": url, "approval_status": "pending"}, {"user_id": user_id})
