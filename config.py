# config.py
import os
from dotenv import load_dotenv

# =================================================================
# Environment
# =================================================================
# Values come from a .env file next to this module or from the process
# environment. The .env file is optional in deployments.
load_dotenv(os.path.join(os.path.dirname(__file__), ".env"))

SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY", "")

# The service role key bypasses row-level security. Only the operator
# scripts (seed_data, clean_and_create_admin, verify_schema) use it.
SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")

# Account created by clean_and_create_admin.py.
ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@kidcoderclub.test")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "admin123")

SUPABASE_TIMEOUT = int(os.environ.get("SUPABASE_TIMEOUT", "60"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
LIVE_REFRESH_SECONDS = int(os.environ.get("LIVE_REFRESH_SECONDS", "10"))

REQUIRED_SETTINGS = {
    "SUPABASE_URL": SUPABASE_URL,
    "SUPABASE_ANON_KEY": SUPABASE_ANON_KEY,
}


def missing_settings():
    """Returns the names of required settings that are not configured."""
    return [name for name, value in REQUIRED_SETTINGS.items() if not value]


# =================================================================
# Roles and navigation
# =================================================================
ROLE_ADMIN = "admin"
ROLE_MENTOR = "mentor"
ROLE_STUDENT = "student"
ROLES = (ROLE_ADMIN, ROLE_MENTOR, ROLE_STUDENT)

# Each role lands on its own dashboard page.
ROLE_DASHBOARDS = {
    ROLE_ADMIN: "admin",
    ROLE_MENTOR: "mentor",
    ROLE_STUDENT: "student",
}

# Unauthenticated visitors are sent to the login portal of the role the
# page requires. Pages without a role requirement use the student portal.
ROLE_LOGIN_PAGES = {
    ROLE_ADMIN: "admin_login",
    ROLE_MENTOR: "mentor_login",
    ROLE_STUDENT: "login",
}

# =================================================================
# Storage
# =================================================================
BUCKET_AVATARS = "avatars"
BUCKET_ASSIGNMENTS = "assignments"
BUCKET_CERTIFICATES = "certificates"
BUCKETS = (BUCKET_AVATARS, BUCKET_ASSIGNMENTS, BUCKET_CERTIFICATES)

MB = 1024 * 1024
MAX_AVATAR_BYTES = 2 * MB
MAX_CREDENTIAL_BYTES = 5 * MB
MAX_ASSIGNMENT_BYTES = 10 * MB
MAX_CERTIFICATE_BYTES = 10 * MB

AVATAR_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")

# =================================================================
# Domain vocabularies
# =================================================================
TABLES = (
    "profiles", "classes", "class_mentors", "modules", "module_progress",
    "enrollments", "assignments", "assignment_submissions",
    "student_certificates", "transactions", "mentor_salaries",
)

CLASS_LEVELS = ("beginner", "intermediate", "advanced")

PAYMENT_METHODS = {
    "transfer": "🏦 Bank Transfer",
    "ewallet": "📱 E-Wallet",
    "qris": "📷 QRIS",
}

EXPERTISE_OPTIONS = (
    "Scratch & Visual Programming",
    "Python",
    "JavaScript & Web Development",
    "Game Development",
    "Mobile App Development",
    "Robotics & IoT",
)

TRANSACTION_STATUSES = ("pending", "paid", "completed", "cancelled")
SALARY_STATUSES = ("pending", "paid")
SUBMISSION_STATUSES = ("submitted", "graded")
APPROVAL_STATUSES = ("pending", "approved", "rejected")

MIN_PASSWORD_LENGTH = 6
MAX_GRADE = 100
