# verify_schema.py
import sys

from supabase import PostgrestAPIError, StorageException

from config import BUCKETS, TABLES, SUPABASE_URL
from db_utils import get_service_client


def check_tables(service):
    """Returns the tables that do not answer a count query."""
    failed = []
    for table in TABLES:
        try:
            count = service.table(table).select("id", count="exact").limit(1).execute().count
            print(f"  ✅ {table} ({count} rows)")
        except PostgrestAPIError as e:
            print(f"  ❌ {table}: {e.message}")
            failed.append(table)
    return failed


def check_buckets(service):
    failed = []
    for bucket in BUCKETS:
        try:
            info = service.storage.get_bucket(bucket)
            print(f"  ✅ {bucket} ({'public' if info.public else 'private'})")
        except StorageException as e:
            print(f"  ❌ {bucket}: {e}")
            failed.append(bucket)
    return failed


def main():
    print("--- Supabase Schema Verification Script ---")
    try:
        service = get_service_client()
    except RuntimeError as e:
        print(f"❌ {e}")
        sys.exit(1)
    print(f"Project: {SUPABASE_URL}")

    print("\n--- 1. Checking Tables ---")
    missing_tables = check_tables(service)

    print("\n--- 2. Checking Storage Buckets ---")
    missing_buckets = check_buckets(service)

    if missing_tables or missing_buckets:
        print("\n❌ ERROR: The project is missing required objects.")
        print("\n--- Troubleshooting ---")
        print("1. Have all database migrations been applied to this project?")
        print("2. Do the buckets 'avatars', 'assignments' and 'certificates' exist and are they public?")
        print("3. Is SUPABASE_SERVICE_ROLE_KEY the service key of this project?")
        sys.exit(1)

    print("\n✅ Schema verification completed successfully.")


if __name__ == "__main__":
    main()
