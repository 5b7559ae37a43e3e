# seed_data.py
import datetime
import random
import sys

from faker import Faker
from supabase import AuthError, PostgrestAPIError

import business_rules as rules
from clean_and_create_admin import clear_tables, ensure_admin
from config import CLASS_LEVELS, EXPERTISE_OPTIONS, PAYMENT_METHODS
from db_utils import get_service_client

# --- CONFIGURATION ---
NUM_MENTORS = 6
NUM_PENDING_MENTORS = 2
NUM_STUDENTS = 25
NUM_CLASSES = 6
MODULES_PER_CLASS = (4, 8)
ASSIGNMENTS_PER_CLASS = 2
ENROLLMENTS_PER_STUDENT = (1, 3)
DEMO_PASSWORD = "password123"

CLASS_TOPICS = [
    "Scratch Game Lab", "Python for Young Coders", "Build Your First Website",
    "Minecraft Modding", "Robotics with micro:bit", "App Inventor Basics",
    "JavaScript Adventures", "Pixel Art & Animation",
]

fake = Faker()


def create_user(service, email, full_name, role, **metadata):
    """Creates a confirmed auth user; the backend trigger creates the profile row."""
    response = service.auth.admin.create_user({
        "email": email,
        "password": DEMO_PASSWORD,
        "email_confirm": True,
        "user_metadata": {"full_name": full_name, "role": role, **metadata},
    })
    return response.user.id


def insert(service, table, rows):
    return service.table(table).insert(rows).execute().data


def run_seed():
    """Main function to seed the backend with demo data."""
    try:
        service = get_service_client()
    except RuntimeError as e:
        print(f"❌ {e}")
        sys.exit(1)

    clear_tables(service)
    admin_id = ensure_admin(service)
    print("\n🌱 Starting demo data seeding...")

    try:
        # --- 1. Users ---
        print("\n--- 1. Seeding mentors and students ---")
        mentor_ids = []
        for i in range(NUM_MENTORS + NUM_PENDING_MENTORS):
            user_id = create_user(
                service, f"mentor{i + 1}@kidcoderclub.test", fake.name(), "mentor",
                expertise=random.choice(EXPERTISE_OPTIONS),
                experience=f"{random.randint(1, 10)} years",
                bio=fake.paragraph(nb_sentences=2),
                phone=fake.phone_number(),
            )
            status = "approved" if i < NUM_MENTORS else "pending"
            service.table("profiles").update({"approval_status": status}).eq("user_id", user_id).execute()
            if status == "approved":
                mentor_ids.append(user_id)

        student_ids = [
            create_user(service, f"student{i + 1}@kidcoderclub.test", fake.name(), "student",
                        age=random.randint(7, 15), phone=fake.phone_number())
            for i in range(NUM_STUDENTS)
        ]
        print(f"✅ {len(mentor_ids)} approved mentors, {NUM_PENDING_MENTORS} pending, {len(student_ids)} students.")

        # --- 2. Classes, modules and mentor slots ---
        print("\n--- 2. Seeding classes, modules and mentor slots ---")
        classes = insert(service, "classes", [{
            "title": title,
            "description": fake.paragraph(nb_sentences=3),
            "level": random.choice(CLASS_LEVELS),
            "price": random.choice([0, 150000, 250000, 350000]),
            "mentor_id": random.choice(mentor_ids),
            "is_active": True,
        } for title in random.sample(CLASS_TOPICS, NUM_CLASSES)])

        modules_by_class = {}
        slots = []
        for klass in classes:
            count = random.randint(*MODULES_PER_CLASS)
            modules_by_class[klass["id"]] = insert(service, "modules", [{
                "class_id": klass["id"],
                "title": f"Module {n + 1}: {fake.catch_phrase()}",
                "content": fake.paragraph(nb_sentences=4),
                "order_index": n,
            } for n in range(count)])
            slot_mentors = {klass["mentor_id"], *random.sample(mentor_ids, 1)}
            slots += insert(service, "class_mentors", [{
                "class_id": klass["id"], "mentor_id": m, "max_students": 20, "current_students": 0,
                "is_available": True,
            } for m in slot_mentors])
        print(f"✅ {len(classes)} classes with modules and {len(slots)} mentor slots.")

        # --- 3. Enrollments, progress and payments ---
        print("\n--- 3. Seeding enrollments, progress and transactions ---")
        year = datetime.date.today().year
        enrollments = []
        for student_id in student_ids:
            for klass in random.sample(classes, random.randint(*ENROLLMENTS_PER_STUDENT)):
                slot = random.choice([s for s in slots if s["class_id"] == klass["id"]])
                slot["current_students"] += 1
                modules = modules_by_class[klass["id"]]
                done = random.sample(modules, random.randint(0, len(modules)))
                progress = rules.progress_percent(len(done), len(modules))
                enrolled_at = fake.date_time_between(datetime.datetime(year, 1, 1), "now")
                if done:
                    insert(service, "module_progress", [{
                        "user_id": student_id, "class_id": klass["id"], "module_id": m["id"],
                        "completed_at": enrolled_at.isoformat(),
                    } for m in done])
                enrollments.append({
                    "user_id": student_id, "class_id": klass["id"], "mentor_id": slot["mentor_id"],
                    "progress": progress, "enrolled_at": enrolled_at.isoformat(),
                    "completed_at": enrolled_at.isoformat() if progress >= 100 else None,
                })
                price = float(klass["price"])
                status = "completed" if price == 0 else random.choice(["paid", "paid", "paid", "pending", "cancelled"])
                insert(service, "transactions", {
                    "user_id": student_id, "class_id": klass["id"], "amount": price,
                    "payment_method": random.choice(list(PAYMENT_METHODS)), "status": status,
                    "created_at": enrolled_at.isoformat(),
                })
        insert(service, "enrollments", enrollments)
        for slot in slots:
            service.table("class_mentors").update({"current_students": slot["current_students"]}).eq("id", slot["id"]).execute()
        print(f"✅ {len(enrollments)} enrollments.")

        # --- 4. Assignments and submissions ---
        print("\n--- 4. Seeding assignments and submissions ---")
        submissions = []
        for klass in classes:
            assignments = insert(service, "assignments", [{
                "class_id": klass["id"], "mentor_id": klass["mentor_id"],
                "title": f"Project: {fake.bs().title()}",
                "description": fake.paragraph(nb_sentences=2),
                "due_date": (datetime.date.today() + datetime.timedelta(days=random.randint(-10, 20))).isoformat(),
            } for _ in range(ASSIGNMENTS_PER_CLASS)])
            students = [e["user_id"] for e in enrollments if e["class_id"] == klass["id"]]
            for assignment in assignments:
                for student_id in random.sample(students, len(students) // 2):
                    graded = random.random() < 0.5
                    submissions.append({
                        "assignment_id": assignment["id"], "user_id": student_id,
                        "file_url": f"https://example.com/demo/{fake.uuid4()}.pdf",
                        "status": "graded" if graded else "submitted",
                        "grade": random.randint(60, 100) if graded else None,
                        "feedback": fake.sentence() if graded else None,
                        "graded_by": klass["mentor_id"] if graded else None,
                    })
        if submissions:
            insert(service, "assignment_submissions", submissions)
        print(f"✅ {len(submissions)} submissions.")

        # --- 5. Salaries ---
        print("\n--- 5. Seeding mentor salaries ---")
        salaries = []
        for month in range(1, datetime.date.today().month + 1):
            period = datetime.date(year, month, 1)
            for mentor_id in mentor_ids:
                paid = month < datetime.date.today().month
                salaries.append({
                    "mentor_id": mentor_id, "amount": random.choice([1500000, 2000000, 2500000]),
                    "period": period.strftime("%B %Y"), "status": "paid" if paid else "pending",
                    "paid_at": period.replace(day=28).isoformat() if paid else None,
                    "created_at": period.isoformat(),
                })
        insert(service, "mentor_salaries", salaries)
        print(f"✅ {len(salaries)} salary records.")
    except (AuthError, PostgrestAPIError) as e:
        print(f"\n❌ Seeding failed: {getattr(e, 'message', e)}", file=sys.stderr)
        sys.exit(1)

    print(f"\n🎉 Seeding complete. Admin id: {admin_id}. Demo password for every account: '{DEMO_PASSWORD}'")


if __name__ == "__main__":
    run_seed()
