# clean_and_create_admin.py
import sys

from supabase import AuthError, PostgrestAPIError

from config import ADMIN_EMAIL, ADMIN_PASSWORD
from db_utils import get_service_client

# The order is critical to respect foreign key constraints.
# Child tables must be cleared before parent tables.
TABLES_TO_CLEAR = [
    "assignment_submissions", "student_certificates", "module_progress",
    "assignments", "modules", "enrollments", "class_mentors",
    "transactions", "mentor_salaries", "classes",
]

# PostgREST refuses unfiltered deletes; no row has this id.
NIL_UUID = "00000000-0000-0000-0000-000000000000"


def clear_tables(service):
    """Deletes every application row and every auth user except the admin."""
    print("\n--- Step 1: Deleting all data from tables ---")
    for table in TABLES_TO_CLEAR:
        print(f"  - Deleting data from {table}...")
        try:
            service.table(table).delete().neq("id", NIL_UUID).execute()
        except PostgrestAPIError as e:
            if e.code == "42P01":  # undefined table
                print(f"    -> Warning: Table {table} not found, skipping.")
            else:
                raise

    print("  - Deleting user accounts...")
    removed = 0
    admin_id = None
    for user in service.auth.admin.list_users(page=1, per_page=1000):
        if (user.email or "").lower() == ADMIN_EMAIL.lower():
            admin_id = user.id
            continue
        service.auth.admin.delete_user(user.id)
        removed += 1

    profiles = service.table("profiles").delete()
    if admin_id:
        profiles = profiles.neq("user_id", admin_id)
    else:
        profiles = profiles.neq("id", NIL_UUID)
    profiles.execute()
    print(f"✅ All tables have been cleared ({removed} accounts removed).")


def ensure_admin(service):
    """Creates the admin account, or promotes it if it already exists. Returns its user id."""
    print(f"\n--- Step 2: Creating admin user {ADMIN_EMAIL} ---")
    existing = [u for u in service.auth.admin.list_users(page=1, per_page=1000)
                if (u.email or "").lower() == ADMIN_EMAIL.lower()]
    if existing:
        user_id = existing[0].id
        service.auth.admin.update_user_by_id(user_id, {"password": ADMIN_PASSWORD})
        print("  - Admin account already exists, password reset.")
    else:
        response = service.auth.admin.create_user({
            "email": ADMIN_EMAIL,
            "password": ADMIN_PASSWORD,
            "email_confirm": True,
            "user_metadata": {"full_name": "Default Admin", "role": "admin"},
        })
        user_id = response.user.id
        print("  - Created auth user.")

    profile = service.table("profiles").select("id").eq("user_id", user_id).limit(1).execute().data
    if profile:
        service.table("profiles").update({"role": "admin", "approval_status": "approved"}).eq("user_id", user_id).execute()
    else:
        service.table("profiles").insert({
            "user_id": user_id, "full_name": "Default Admin", "role": "admin", "approval_status": "approved",
        }).execute()
    print(f"✅ Admin user '{ADMIN_EMAIL}' is ready.")
    return user_id


def clean_and_create_admin():
    """
    Deletes all application data and accounts, then makes sure a single
    admin account exists with the configured email and password.
    """
    try:
        service = get_service_client()
    except RuntimeError as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)

    try:
        clear_tables(service)
        ensure_admin(service)
    except (AuthError, PostgrestAPIError) as e:
        print(f"\n❌ An error occurred: {getattr(e, 'message', e)}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    clean_and_create_admin()
