"""
app.py
Streamlit Membership Management System.
Run: streamlit run app.py
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime
import pandas as pd
import streamlit as st

import auth
import db
import dues
import messaging
import utils
from logging_config import configure_logging
from models import (
    CONTACT_CHANNELS,
    PAYMENT_METHODS,
    DueStatus,
    Frequency,
    Member,
    Payment,
    PaymentStatus,
)

st.set_page_config(page_title="Membership Management", layout="wide")

STATUS_BADGES = {
    DueStatus.CURRENT: "🟢 Current",
    DueStatus.DUE_SOON: "🟡 Due soon",
    DueStatus.OVERDUE: "🔴 Overdue",
}
FREQUENCIES = [f.value for f in Frequency]


def init_once():
    configure_logging()
    # Initialize DB + default admin if needed
    db.init_db(auth.hash_password("admin123"))


def require_login():
    if "logged_in" not in st.session_state:
        st.session_state.logged_in = False
    if "username" not in st.session_state:
        st.session_state.username = None


def logout():
    st.session_state.logged_in = False
    st.session_state.username = None
    st.success("Logged out.")


def login_screen():
    st.title("🔐 Login")

    col1, col2 = st.columns([1, 1])
    with col1:
        username = st.text_input("Username", value="admin")
        password = st.text_input("Password", type="password")
        if st.button("Login", type="primary"):
            if auth.login(username.strip(), password):
                st.session_state.logged_in = True
                st.session_state.username = username.strip()
                st.rerun()
            else:
                st.error("Invalid username or password.")

    with col2:
        st.info(
            "First run creates a default admin:\n\n"
            "- username: **admin**\n"
            "- password: **admin123**\n\n"
            "You will be forced to change it on first login."
        )


def password_form(key: str) -> None:
    p1 = st.text_input("New password", type="password", key=f"{key}_p1")
    p2 = st.text_input("Confirm new password", type="password", key=f"{key}_p2")
    if st.button("Update password", type="primary", key=f"{key}_btn"):
        errors = auth.validate_new_password(p1, p2)
        for e in errors:
            st.error(e)
        if not errors:
            auth.change_password(st.session_state.username, p1)
            st.success("Password updated.")
            st.rerun()


def force_change_password_screen():
    st.title("⚠️ Change Password (Required)")
    st.warning("You must change the default password before using the app.")
    password_form("force")


# ---------- Data helpers ----------

def load_data():
    return db.list_members(), db.list_payments(), db.get_settings()


def member_rows(members: list[Member], payments: list[Payment], reminder_days: int) -> pd.DataFrame:
    grouped = dues.payments_by_member(payments)
    due_dates = dues.next_due_dates(members, payments)
    rows = []
    for m in members:
        own = grouped.get(m.id, [])
        next_due = due_dates[m.id]
        status = dues.get_payment_status(m, own, reminder_days) if m.active else None
        rows.append(
            {
                "id": m.id,
                "full_name": m.full_name,
                "phone_number": m.phone_number,
                "location": m.location,
                "amount": m.payment_amount,
                "frequency": utils.frequency_label(m.payment_frequency),
                "next_due": next_due.isoformat(),
                "status": STATUS_BADGES[status] if status else "⚪ Inactive",
            }
        )
    return pd.DataFrame(
        rows,
        columns=["id", "full_name", "phone_number", "location", "amount", "frequency", "next_due", "status"],
    )


def member_label(m: Member) -> str:
    return f"{m.full_name} ({m.phone_number}) - ID {m.id}"


# ---------- Pages ----------

def dashboard_page():
    st.header("📊 Dashboard")

    members, payments, settings = load_data()
    cur = settings.default_currency

    expected = dues.get_monthly_expected_income(members)
    collected = dues.get_monthly_collected(payments)
    unpaid = sum(1 for p in payments if p.status == PaymentStatus.UNPAID)
    overdue = sum(1 for p in payments if p.status == PaymentStatus.OVERDUE)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Active members", sum(1 for m in members if m.active))
    c2.metric("Expected monthly income", utils.format_currency(expected, cur))
    c3.metric(
        "Collected this month",
        utils.format_currency(collected, cur),
        f"{dues.collection_rate(expected, collected):.1f}% collection rate",
    )
    c4.metric("Unpaid / overdue payments", unpaid + overdue, f"{overdue} overdue, {unpaid} unpaid", delta_color="off")

    st.divider()

    st.subheader(f"Due members (within {settings.reminder_window_days} days or overdue)")
    due = dues.due_members(members, payments, settings.reminder_window_days)
    if due:
        st.dataframe(member_rows(due, payments, settings.reminder_window_days), use_container_width=True, hide_index=True)
        if st.button("Send reminders to all due members"):
            sent = messaging.send_due_reminders(members, payments, settings)
            st.success(f"Sent {len(sent)} payment reminder(s).")
    else:
        st.caption("No members are due right now.")


def member_form(existing: Member | None = None):
    settings = db.get_settings()
    if existing:
        st.subheader(f"✏️ Edit Member (ID: {existing.id})")
    else:
        st.subheader("➕ Add Member")

    col1, col2, col3 = st.columns(3)
    with col1:
        full_name = st.text_input("Full name", value=(existing.full_name if existing else ""))
        phone = st.text_input("Phone number", value=(existing.phone_number if existing else ""))
        alt_phone = st.text_input("Alt phone (optional)", value=(existing.alt_phone_number or "" if existing else ""))
        email = st.text_input("Email", value=(existing.email if existing else ""))

    with col2:
        address = st.text_input("Address (optional)", value=(existing.address or "" if existing else ""))
        location = st.text_input("Location (optional)", value=(existing.location or "" if existing else ""))
        amount = st.text_input(
            "Payment amount",
            value=(str(existing.payment_amount) if existing else str(settings.default_payment_amount)),
        )
        frequency = st.selectbox(
            "Payment frequency",
            options=FREQUENCIES,
            format_func=utils.frequency_label,
            index=(FREQUENCIES.index(existing.payment_frequency) if existing and existing.payment_frequency in FREQUENCIES else 0),
        )

    with col3:
        start_date = st.date_input(
            "Payment start date",
            value=(utils.parse_iso(existing.payment_start_date) if existing else date.today()),
        ).isoformat()
        method = st.selectbox(
            "Payment method",
            PAYMENT_METHODS,
            index=(PAYMENT_METHODS.index(existing.payment_method) if existing else 0),
        )
        contact = st.selectbox(
            "Preferred contact",
            CONTACT_CHANNELS,
            index=(CONTACT_CHANNELS.index(existing.preferred_contact) if existing else 0),
        )
        active = st.checkbox("Active", value=(existing.active if existing else True))

    errors = utils.validate_member_inputs(full_name, phone, email, amount, frequency, start_date)
    if errors:
        for e in errors:
            st.error(e)

    if st.button("Save", type="primary", disabled=bool(errors)):
        member = Member(
            id=existing.id if existing else None,
            full_name=full_name.strip(),
            phone_number=phone.strip(),
            alt_phone_number=alt_phone.strip() or None,
            email=email.strip(),
            address=address.strip() or None,
            location=location.strip() or None,
            payment_amount=float(amount),
            payment_frequency=frequency,
            payment_start_date=start_date,
            payment_method=method,
            preferred_contact=contact,
            active=active,
            created_at=existing.created_at if existing else None,
        )
        if existing:
            db.update_member(member)
            st.success("Member updated.")
        else:
            db.create_member(member)
            st.success("Member added.")
        st.rerun()


def member_profile(member: Member, payments: list[Payment]):
    settings = db.get_settings()
    own = [p for p in payments if p.member_id == member.id]
    last_paid = dues.get_last_paid_date(own)
    next_due = dues.get_next_due_date(member, last_paid)
    status = dues.get_payment_status(member, own, settings.reminder_window_days)

    c1, c2, c3 = st.columns(3)
    c1.metric("Status", STATUS_BADGES[status] if member.active else "⚪ Inactive")
    c2.metric("Next due", utils.format_date(next_due))
    c3.metric("Last paid", utils.format_date(last_paid) if last_paid else "Never")

    if st.button("Send payment reminder"):
        template = messaging.TEMPLATES["reminder"]
        messaging.send_messages("reminder", template["subject"], template["content"], [member], own, settings)
        st.success(f"Payment reminder sent to {member.full_name}.")

    history = db.list_messages(member.id)
    if history:
        st.caption("Messages")
        st.dataframe(pd.DataFrame([asdict(m) for m in history]), use_container_width=True, hide_index=True)


def members_page():
    st.header("👥 Members")

    members, payments, settings = load_data()

    with st.sidebar:
        st.subheader("Search & Filters")
        search = st.text_input("Search (name/phone/email/location)")
        frequency = st.selectbox("Frequency", ["All"] + FREQUENCIES)
        locations = sorted({m.location for m in members if m.location})
        location = st.selectbox("Location", ["All"] + locations)
        status_filter = st.selectbox("Status", ["All", "active", "inactive", "current", "due_soon", "overdue"])

    # fuzzy search ranks candidates; the remaining filters are exact
    candidates = (
        [r.member for r in utils.search_members(members, search)]
        if len(search.strip()) >= utils.SEARCH_MIN_QUERY_LENGTH
        else members
    )
    filtered = utils.filter_members(
        candidates,
        frequency=None if frequency == "All" else frequency,
        location=None if location == "All" else location,
        active={"active": True, "inactive": False}.get(status_filter),
    )
    if status_filter in ("current", "due_soon", "overdue"):
        grouped = dues.payments_by_member(payments)
        filtered = [
            m for m in filtered
            if m.active
            and dues.get_payment_status(m, grouped.get(m.id, []), settings.reminder_window_days) == status_filter
        ]

    st.dataframe(member_rows(filtered, payments, settings.reminder_window_days), use_container_width=True, hide_index=True)

    st.divider()

    colA, colB = st.columns([1, 2])
    with colA:
        st.subheader("Select member")
        selected_id = st.selectbox("Member ID", options=["(none)"] + [str(m.id) for m in filtered])

    with colB:
        if selected_id != "(none)":
            member = db.get_member(int(selected_id))
            st.subheader("Member actions")
            c1, c2, c3 = st.columns(3)
            with c1:
                if st.button("Edit"):
                    st.session_state.edit_member_id = member.id
                    st.rerun()
            with c2:
                if st.button("View payments"):
                    st.session_state.payments_member_id = member.id
                    st.session_state.page = "Payments"
                    st.rerun()
            with c3:
                delete_confirm = st.checkbox("Confirm delete", value=False, key="del_confirm")
                if st.button("Delete", type="secondary", disabled=not delete_confirm):
                    db.delete_member(member.id)
                    st.success("Member deleted.")
                    st.rerun()
            member_profile(member, payments)

    st.divider()

    if st.session_state.get("edit_member_id"):
        existing = db.get_member(st.session_state.edit_member_id)
        if existing:
            member_form(existing=existing)
        if st.button("Cancel edit"):
            st.session_state.edit_member_id = None
            st.rerun()
    else:
        member_form(existing=None)


def payments_page():
    st.header("💳 Payments")

    members = db.list_members()
    if not members:
        st.info("No members yet. Add a member first.")
        return

    options = {member_label(m): m for m in members}
    labels = list(options.keys())
    default_id = st.session_state.get("payments_member_id", members[0].id)
    default_index = next((i for i, m in enumerate(options.values()) if m.id == default_id), 0)
    member = options[st.selectbox("Member", labels, index=default_index)]
    st.session_state.payments_member_id = member.id

    st.subheader("Log payment")
    c1, c2, c3, c4, c5 = st.columns([1, 1, 1, 1, 2])
    with c1:
        amount = st.text_input("Amount", value=str(member.payment_amount))
    with c2:
        pay_date = st.date_input("Date", value=date.today())
    with c3:
        method = st.selectbox("Method", PAYMENT_METHODS, index=PAYMENT_METHODS.index(member.payment_method))
    with c4:
        status = st.selectbox("Status", [s.value for s in PaymentStatus])
    with c5:
        notes = st.text_input("Notes", value="")

    if st.button("Record payment", type="primary"):
        payment_date = datetime.combine(pay_date, datetime.now().time()).isoformat(timespec="seconds")
        errors = utils.validate_payment_inputs(amount, payment_date, status)
        for e in errors:
            st.error(e)
        if not errors:
            db.create_payment(
                Payment(
                    id=None,
                    member_id=member.id,
                    amount=float(amount),
                    payment_date=payment_date,
                    payment_method=method,
                    status=status,
                    notes=notes.strip() or None,
                )
            )
            st.success("Payment recorded.")
            st.rerun()

    st.divider()

    st.subheader("Payment history")
    own = db.list_payments(member.id)
    if own:
        st.dataframe(pd.DataFrame([asdict(p) for p in own]), use_container_width=True, hide_index=True)
        c1, c2 = st.columns(2)
        with c1:
            payment_id = st.selectbox("Payment ID", [p.id for p in own])
        with c2:
            new_status = st.selectbox("Set status", [s.value for s in PaymentStatus], key="new_status")
        c3, c4 = st.columns(2)
        with c3:
            if st.button("Update status"):
                db.update_payment_status(payment_id, new_status)
                st.success("Payment updated.")
                st.rerun()
        with c4:
            delete_confirm = st.checkbox("Confirm delete", value=False, key="del_payment_confirm")
            if st.button("Delete payment", type="secondary", disabled=not delete_confirm):
                db.delete_payment(payment_id)
                st.success("Payment deleted.")
                st.rerun()
    else:
        st.caption("No payments for this member yet.")


def messages_page():
    st.header("✉️ Messages")

    members, payments, settings = load_data()

    col1, col2 = st.columns(2)
    with col1:
        message_type = st.selectbox("Message type", list(messaging.TEMPLATES.keys()))
    with col2:
        kind = st.selectbox(
            "Recipients",
            messaging.RECIPIENT_KINDS,
            format_func={"single": "Single member", "bulk": "All active members", "due_members": "Due members"}.get,
        )

    member_id = None
    if kind == "single" and members:
        by_id = {m.id: m for m in members}
        member_id = st.selectbox("Member", list(by_id), format_func=lambda i: member_label(by_id[i]))

    template = messaging.TEMPLATES[message_type]
    subject = st.text_input("Subject", value=template["subject"], key=f"subject_{message_type}")
    content = st.text_area("Content", value=template["content"], key=f"content_{message_type}")

    to = messaging.recipients(kind, members, payments, settings, member_id)
    st.caption(f"{len(to)} recipient(s)")
    if to:
        own = [p for p in payments if p.member_id == to[0].id]
        st.text_area("Preview", messaging.render_message(content, to[0], own, settings), disabled=True)

    if st.button("Send", type="primary", disabled=not to):
        try:
            sent = messaging.send_messages(message_type, subject, content, to, payments, settings)
        except ValueError as e:
            st.error(str(e))
        else:
            st.success(f"Sent {len(sent)} message(s).")

    st.divider()
    st.subheader("Message history")
    history = db.list_messages()
    if history:
        st.dataframe(pd.DataFrame([asdict(m) for m in history]), use_container_width=True, hide_index=True)
    else:
        st.caption("No messages sent yet.")


def reports_page():
    st.header("🧾 Reports")

    members, payments, settings = load_data()
    cur = settings.default_currency

    st.subheader("Monthly report")
    month = st.date_input("Month", value=date.today().replace(day=1))
    report = utils.monthly_report(members, payments, month)
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Active members", report["active_members"])
    c2.metric("Expected", utils.format_currency(report["expected_income"], cur))
    c3.metric("Collected", utils.format_currency(report["collected_income"], cur))
    c4.metric("Collection rate", f"{report['collection_rate']:.1f}%")

    tag = report["month"].strftime("%Y-%m")
    d1, d2 = st.columns(2)
    with d1:
        st.download_button(
            "Download report (CSV)",
            data=utils.monthly_report_csv_bytes(report),
            file_name=f"monthly-report-{tag}.csv",
            mime="text/csv",
        )
    with d2:
        st.download_button(
            "Download report (PDF)",
            data=utils.monthly_report_pdf_bytes(report, settings),
            file_name=f"monthly-report-{tag}.pdf",
            mime="application/pdf",
        )

    st.divider()

    st.subheader("Annual summary")
    year = st.number_input("Year", min_value=2000, max_value=2100, value=date.today().year, step=1)
    df = utils.annual_summary_df(payments, int(year))
    st.bar_chart(df, x="month", y="collected")
    total = float(df["collected"].sum())
    st.write(f"Total collected: **{utils.format_currency(total, cur)}** | Monthly average: **{utils.format_currency(total / 12, cur)}**")

    st.divider()

    st.subheader("Exports")
    e1, e2 = st.columns(2)
    with e1:
        st.download_button(
            "Download members.csv",
            data=utils.members_to_csv_bytes(members),
            file_name="members.csv",
            mime="text/csv",
            disabled=not members,
        )
    with e2:
        st.download_button(
            "Download payments.csv",
            data=utils.payments_to_csv_bytes(payments, members),
            file_name="payments.csv",
            mime="text/csv",
            disabled=not payments,
        )

    st.subheader("Import members from CSV")
    upload = st.file_uploader("members.csv", type=["csv"])
    if upload is not None and st.button("Import"):
        imported, errors = utils.parse_members_csv(upload.getvalue())
        for e in errors:
            st.error(e)
        if imported:
            db.create_members(imported)
        st.success(f"Imported {len(imported)} member(s), skipped {len(errors)} row(s).")


def settings_page():
    st.header("⚙️ Settings")

    settings = db.get_settings()

    st.subheader("Organization")
    org_name = st.text_input("Organization name", value=settings.org_name)
    org_address = st.text_input("Organization address", value=settings.org_address)
    currency = st.text_input("Default currency", value=settings.default_currency)
    from_email = st.text_input("From email", value=settings.from_email)
    window = st.number_input("Reminder window (days)", min_value=0, max_value=60, value=settings.reminder_window_days)
    default_amount = st.number_input("Default payment amount", min_value=0.0, value=settings.default_payment_amount)
    if st.button("Save settings", type="primary"):
        db.update_settings(
            org_name=org_name,
            org_address=org_address,
            default_currency=currency,
            from_email=from_email,
            reminder_window_days=int(window),
            default_payment_amount=float(default_amount),
        )
        st.success("Settings saved.")

    st.divider()

    st.subheader("Change password")
    password_form("settings")

    st.divider()

    st.subheader("Sample data")
    st.caption("Insert 4 sample members + payments for testing (adds new rows each run).")
    if st.button("Insert sample data"):
        utils.insert_sample_data()
        st.success("Sample data inserted.")
        st.rerun()


def main_app():
    st.sidebar.title("🤝 Membership")
    st.sidebar.caption(f"Logged in as: {st.session_state.username} ({auth.get_role(st.session_state.username)})")

    pages = {
        "Dashboard": dashboard_page,
        "Members": members_page,
        "Payments": payments_page,
        "Messages": messages_page,
        "Reports": reports_page,
        "Settings": settings_page,
    }
    names = list(pages.keys())
    if "page" not in st.session_state:
        st.session_state.page = "Dashboard"
    st.session_state.page = st.sidebar.radio("Navigate", names, index=names.index(st.session_state.page))

    if st.sidebar.button("Logout"):
        logout()
        st.rerun()

    pages[st.session_state.page]()


# --------- App entry ---------

def run():
    init_once()
    require_login()

    if not st.session_state.logged_in:
        login_screen()
        return

    # Force password change on first login after DB creation
    if db.is_force_password_change():
        force_change_password_screen()
        return

    main_app()


if __name__ == "__main__":
    run()
