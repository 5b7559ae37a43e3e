# admin_dashboard.py
import datetime

import pandas as pd
import streamlit as st

import auth
import business_rules as rules
import queries
import live_refresh
from config import CLASS_LEVELS, EXPERTISE_OPTIONS, TRANSACTION_STATUSES, PAYMENT_METHODS
from db_utils import (
    add_salary, assign_class_mentors, create_class, issue_certificate, mark_salary_paid,
    now_iso, set_mentor_approval, set_transaction_status, update_class, update_rows,
)

STATUS_ICONS = {
    "pending": "🟡 Pending", "approved": "🟢 Approved", "rejected": "🔴 Rejected",
    "paid": "🟢 Paid", "completed": "🔵 Completed", "cancelled": "🔴 Cancelled",
}


# --- Helper Functions ---

def status_label(status):
    return STATUS_ICONS.get(status, str(status).capitalize())


def search_filter(df, query, columns):
    if not query or df.empty:
        return df
    return df[df.apply(lambda row: rules.matches_search([row.get(c) for c in columns], query), axis=1)]


def show_result(success, msg, rerun=True):
    if success:
        st.success(msg)
        if rerun:
            st.rerun()
    else:
        st.error(msg)


# --- Tab Implementations ---

def display_overview():
    st.subheader("📊 Overview")
    year = st.selectbox("Year", list(range(datetime.date.today().year, 2022, -1)), key="overview_year")
    stats = queries.admin_overview(year)
    if not stats:
        return

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Students", stats["students"])
    c2.metric("Mentors", stats["mentors"], help=f"{stats['pending_mentors']} awaiting approval")
    c3.metric("Classes", stats["total_classes"], help=f"{stats['active_classes']} active")
    c4.metric("Enrollments", stats["total_enrollments"])

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Revenue", rules.format_currency(stats["revenue"]))
    c2.metric("Salaries paid", rules.format_currency(stats["expenses"]))
    c3.metric("Balance", rules.format_currency(stats["revenue"] - stats["expenses"]))
    c4.metric("Pending payments", stats["pending_transactions"])

    if stats["pending_mentors"]:
        st.warning(f"⚠️ {stats['pending_mentors']} mentor application(s) are waiting for review in the Mentors tab.")

    st.markdown(f"#### Income vs. expenses ({year})")
    st.bar_chart(stats["chart"].set_index("Month")[["Income", "Expense"]], stack=False)

    st.markdown("#### Recent transactions")
    recent = stats["recent_transactions"]
    if recent.empty:
        st.info("No transactions yet.")
    else:
        view = recent.assign(
            amount=recent["amount"].map(rules.format_currency),
            status=recent["status"].map(status_label),
        )
        st.dataframe(view[["created_at", "student", "class", "amount", "status"]],
                     use_container_width=True, hide_index=True)


def display_mentor_management():
    st.subheader("🧑‍🏫 Mentor Management")
    col1, col2 = st.columns([3, 1])
    search = col1.text_input("🔍 Search mentor by name, expertise or phone", key="search_mentor")
    status = col2.selectbox("Status", ["all", "pending", "approved", "rejected"], key="mentor_status",
                            format_func=lambda s: "All" if s == "all" else status_label(s))

    mentors = queries.list_mentors_with_stats()
    if mentors.empty:
        st.info("No mentors have registered yet.")
        return
    mentors = search_filter(mentors, search, ["full_name", "expertise", "phone"])
    if status != "all":
        mentors = mentors[mentors["approval_status"] == status]

    view = mentors.assign(approval=mentors["approval_status"].map(status_label))
    st.dataframe(view[["full_name", "expertise", "experience", "phone", "approval", "classes", "students"]],
                 use_container_width=True, hide_index=True)
    if mentors.empty:
        return

    st.markdown("---")
    profiles = {row["id"]: row for row in mentors.to_dict("records")}
    selected = st.selectbox("Select a mentor to review or edit:", list(profiles),
                            format_func=lambda pid: profiles[pid]["full_name"], key="mentor_select")
    mentor = profiles[selected]

    with st.container(border=True):
        st.markdown(f"### {mentor['full_name']}  ·  {status_label(mentor.get('approval_status'))}")
        c1, c2 = st.columns(2)
        c1.write(f"**Expertise:** {mentor.get('expertise') or '-'}")
        c1.write(f"**Experience:** {mentor.get('experience') or '-'}")
        c2.write(f"**Phone:** {mentor.get('phone') or '-'}")
        c2.write(f"**Classes / students:** {mentor['classes']} / {mentor['students']}")
        st.write(mentor.get("bio") or "")
        if mentor.get("certificate_url"):
            st.link_button("📄 View credential", mentor["certificate_url"])
        else:
            st.caption("No credential uploaded.")

        b1, b2, _ = st.columns([1, 1, 3])
        if mentor.get("approval_status") != "approved" and b1.button("✅ Approve", key=f"approve_{selected}"):
            show_result(*set_mentor_approval(selected, "approved"))
        if mentor.get("approval_status") != "rejected" and b2.button("❌ Reject", key=f"reject_{selected}"):
            show_result(*set_mentor_approval(selected, "rejected"))

    with st.expander("✏️ Edit mentor details"):
        with st.form(f"edit_mentor_{selected}"):
            name = st.text_input("Full Name", value=mentor.get("full_name") or "")
            expertise_options = list(EXPERTISE_OPTIONS)
            if mentor.get("expertise") and mentor["expertise"] not in expertise_options:
                expertise_options.append(mentor["expertise"])
            expertise = st.selectbox("Expertise", expertise_options,
                                     index=expertise_options.index(mentor["expertise"]) if mentor.get("expertise") else 0)
            experience = st.text_input("Experience", value=mentor.get("experience") or "")
            phone = st.text_input("Phone", value=mentor.get("phone") or "")
            bio = st.text_area("Bio", value=mentor.get("bio") or "")
            if st.form_submit_button("Save changes"):
                if not name.strip():
                    st.error("Name is required.")
                else:
                    show_result(*update_rows("profiles", {
                        "full_name": name.strip(), "expertise": expertise, "experience": experience.strip(),
                        "phone": phone.strip(), "bio": bio.strip(), "updated_at": now_iso(),
                    }, {"id": selected}))


def display_student_management():
    st.subheader("🎒 Student Management")
    search = st.text_input("🔍 Search student by name or phone", key="search_student")
    students = queries.list_students_with_stats()
    if students.empty:
        st.info("No students have registered yet.")
        return
    students = search_filter(students, search, ["full_name", "phone"])

    view = students.assign(avg_progress=students["avg_progress"].map(lambda p: f"{p}%"))
    st.dataframe(view[["full_name", "age", "phone", "enrollments", "avg_progress", "created_at"]],
                 use_container_width=True, hide_index=True)
    if students.empty:
        return

    st.markdown("---")
    profiles = {row["id"]: row for row in students.to_dict("records")}
    selected = st.selectbox("Select a student to edit:", list(profiles),
                            format_func=lambda pid: profiles[pid]["full_name"], key="student_select")
    student = profiles[selected]
    with st.form(f"edit_student_{selected}"):
        name = st.text_input("Full Name", value=student.get("full_name") or "")
        age = st.number_input("Age", min_value=0, max_value=99, step=1,
                              value=int(student["age"]) if pd.notna(student.get("age")) else 0)
        phone = st.text_input("Phone", value=student.get("phone") or "")
        if st.form_submit_button("Save changes"):
            if not name.strip():
                st.error("Name is required.")
            else:
                show_result(*update_rows("profiles", {
                    "full_name": name.strip(), "age": int(age) or None,
                    "phone": phone.strip() or None, "updated_at": now_iso(),
                }, {"id": selected}))


def display_class_management():
    st.subheader("📚 Class Management")
    mentors = queries.list_approved_mentors()
    mentor_names = {m["user_id"]: m["full_name"] for m in mentors}

    with st.expander("➕ Create New Class", expanded=False):
        with st.form("create_class_form"):
            col1, col2 = st.columns(2)
            title = col1.text_input("Title")
            level = col2.selectbox("Level", CLASS_LEVELS, format_func=str.capitalize)
            price = col1.number_input("Price (Rp)", min_value=0, step=50000, value=0)
            lead = col2.selectbox("Lead mentor", [None] + list(mentor_names),
                                  format_func=lambda m: "-- None --" if m is None else mentor_names[m])
            description = st.text_area("Description")
            is_active = st.checkbox("Open for enrollment", value=True)
            if st.form_submit_button("Create Class"):
                show_result(*create_class(title, description, level, price, lead, is_active))

    st.divider()
    classes = queries.list_classes_with_stats()
    if classes.empty:
        st.info("No classes yet.")
        return

    view = classes.assign(
        price=classes["price"].map(rules.format_currency),
        active=classes["is_active"].map(lambda a: "✅" if a else "⏸️"),
    )
    st.dataframe(view[["title", "level", "price", "lead_mentor", "mentors", "students", "active"]],
                 use_container_width=True, hide_index=True)

    st.markdown("---")
    st.subheader("🔎 Edit Class")
    records = {row["id"]: row for row in classes.to_dict("records")}
    selected = st.selectbox("Select a class:", list(records),
                            format_func=lambda cid: records[cid]["title"], key="class_select")
    klass = records[selected]

    with st.form(f"edit_class_{selected}"):
        col1, col2 = st.columns(2)
        title = col1.text_input("Title", value=klass["title"])
        level = col2.selectbox("Level", CLASS_LEVELS, format_func=str.capitalize,
                               index=CLASS_LEVELS.index(klass["level"]) if klass.get("level") in CLASS_LEVELS else 0)
        price = col1.number_input("Price (Rp)", min_value=0, step=50000, value=int(klass.get("price") or 0))
        lead_options = [None] + list(mentor_names)
        lead = col2.selectbox("Lead mentor", lead_options,
                              index=lead_options.index(klass["mentor_id"]) if klass.get("mentor_id") in lead_options else 0,
                              format_func=lambda m: "-- None --" if m is None else mentor_names[m])
        description = st.text_area("Description", value=klass.get("description") or "")
        is_active = st.checkbox("Open for enrollment", value=bool(klass.get("is_active")))
        if st.form_submit_button("Save class"):
            show_result(*update_class(selected, title=title, description=description, level=level,
                                      price=price, mentor_id=lead, is_active=is_active))

    with st.form(f"assign_mentors_{selected}"):
        st.markdown("**👥 Mentors teaching this class**")
        current = [m for m in klass["mentor_ids"] if m in mentor_names]
        chosen = st.multiselect("Mentors", list(mentor_names), default=current,
                                format_func=lambda m: mentor_names[m])
        if st.form_submit_button("Save mentor assignment"):
            show_result(*assign_class_mentors(selected, chosen))


def display_certificates():
    st.subheader("🏆 Certificates")
    graduates = queries.list_graduates()
    if graduates.empty:
        st.info("No student has completed a class yet.")
        return

    view = graduates.assign(certificate=graduates["certificate_url"].map(lambda u: "✅ Issued" if u else "⏳ Missing"))
    st.dataframe(view[["student", "class", "completed_at", "certificate"]], use_container_width=True, hide_index=True)

    st.markdown("---")
    records = {f"{row['user_id']}|{row['class_id']}": row for row in graduates.to_dict("records")}
    key = st.selectbox("Select a graduate:", list(records),
                       format_func=lambda k: f"{records[k]['student']} - {records[k]['class']}", key="graduate_select")
    graduate = records[key]
    if graduate.get("certificate_url"):
        st.link_button("📄 View current certificate", graduate["certificate_url"])

    with st.form(f"certificate_{key}", clear_on_submit=True):
        upload = st.file_uploader("Certificate file (PDF or image, max 10MB)", type=["pdf", "jpg", "jpeg", "png"])
        label = "Replace certificate" if graduate.get("certificate_url") else "Upload certificate"
        if st.form_submit_button(label):
            if upload is None:
                st.error("Please choose a file.")
            else:
                show_result(*issue_certificate(auth.current_user().id, graduate["user_id"], graduate["class_id"],
                                               upload.name, upload.getvalue(), upload.type))


def display_salaries():
    st.subheader("💰 Mentor Salaries")
    salaries = queries.list_salaries_detailed()
    rows = salaries.to_dict("records") if not salaries.empty else []
    c1, c2 = st.columns(2)
    c1.metric("Paid", rules.format_currency(rules.sum_by_status(rows, "paid")))
    c2.metric("Outstanding", rules.format_currency(rules.sum_by_status(rows, "pending")))

    with st.expander("➕ Add Salary", expanded=False):
        mentors = {m["user_id"]: m["full_name"] for m in queries.list_approved_mentors()}
        with st.form("add_salary_form", clear_on_submit=True):
            mentor_id = st.selectbox("Mentor", list(mentors), format_func=lambda m: mentors[m])
            amount = st.number_input("Amount (Rp)", min_value=0, step=100000)
            period = st.text_input("Period", value=datetime.date.today().strftime("%B %Y"))
            if st.form_submit_button("Add Salary"):
                show_result(*add_salary(mentor_id, amount, period))

    if salaries.empty:
        st.info("No salaries recorded yet.")
        return

    view = salaries.assign(amount=salaries["amount"].map(rules.format_currency),
                           status=salaries["status"].map(status_label))
    st.dataframe(view[["mentor", "period", "amount", "status", "paid_at"]], use_container_width=True, hide_index=True)

    pending = [r for r in rows if r["status"] == "pending"]
    if pending:
        st.markdown("#### Pending payouts")
    for row in pending:
        col1, col2 = st.columns([4, 1])
        col1.write(f"{row['mentor']} · {row['period']} · {rules.format_currency(row['amount'])}")
        if col2.button("💸 Mark paid", key=f"pay_{row['id']}"):
            success, msg = mark_salary_paid(row["id"])
            if success:
                st.toast(f"Salary for {row['mentor']} marked as paid", icon="✅")
                st.rerun()
            else:
                st.error(msg)


def display_transactions():
    st.subheader("🧾 Transactions")
    transactions = queries.list_transactions_detailed()
    if transactions.empty:
        st.info("No transactions yet.")
        return

    rows = transactions.to_dict("records")
    c1, c2, c3 = st.columns(3)
    c1.metric("Confirmed revenue", rules.format_currency(rules.sum_by_status(rows, "paid")))
    c2.metric("Awaiting confirmation", sum(1 for r in rows if r["status"] == "pending"))
    c3.metric("Total transactions", len(rows))

    col1, col2 = st.columns([3, 1])
    search = col1.text_input("🔍 Search by student or class", key="search_tx")
    status = col2.selectbox("Status", ("all",) + TRANSACTION_STATUSES, key="tx_status",
                            format_func=lambda s: "All" if s == "all" else status_label(s))
    filtered = search_filter(transactions, search, ["student", "class"])
    if status != "all":
        filtered = filtered[filtered["status"] == status]

    view = filtered.assign(
        amount=filtered["amount"].map(rules.format_currency),
        payment_method=filtered["payment_method"].map(lambda m: PAYMENT_METHODS.get(m, m)),
        status=filtered["status"].map(status_label),
    )
    st.dataframe(view[["created_at", "student", "class", "amount", "payment_method", "status"]],
                 use_container_width=True, hide_index=True)

    pending = [r for r in filtered.to_dict("records") if r["status"] == "pending"]
    if pending:
        st.markdown("#### Pending payments")
    for row in pending:
        col1, col2, col3 = st.columns([3, 1, 1])
        col1.write(f"{row['student']} · {row['class']} · {rules.format_currency(row['amount'])}")
        if col2.button("✅ Confirm", key=f"confirm_{row['id']}"):
            show_result(*set_transaction_status(row["id"], "paid"))
        if col3.button("❌ Reject", key=f"cancel_{row['id']}"):
            show_result(*set_transaction_status(row["id"], "cancelled"))


# --- Main Dashboard Function ---
def display_admin_dashboard():
    st.title("🛡️ Admin Dashboard")
    live_refresh.live_updates(
        [("transactions", None), ("mentor_salaries", None), ("enrollments", None), ("profiles", None)],
        key="admin",
    )

    tabs = st.tabs([
        "Overview", "Mentors", "Students", "Classes",
        "Certificates", "Salaries", "Transactions",
    ])

    with tabs[0]: display_overview()
    with tabs[1]: display_mentor_management()
    with tabs[2]: display_student_management()
    with tabs[3]: display_class_management()
    with tabs[4]: display_certificates()
    with tabs[5]: display_salaries()
    with tabs[6]: display_transactions()
