"""
utils.py
Validation, formatting, search, exports (CSV/PDF), sample data.
"""

from __future__ import annotations

import io
import logging
from dataclasses import asdict
from datetime import date, datetime, timedelta

import pandas as pd
from rapidfuzz import fuzz
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

import db
import dues
from models import (
    CONTACT_CHANNELS,
    FREQUENCY_LABELS,
    PAYMENT_METHODS,
    Frequency,
    InvalidInputError,
    Member,
    Payment,
    PaymentStatus,
    SearchResult,
    Settings,
)

logger = logging.getLogger(__name__)


def today_iso() -> str:
    return date.today().isoformat()


def parse_iso(d: str) -> date:
    return date.fromisoformat(d)


def format_currency(amount: float, currency: str = "ETB") -> str:
    return f"{amount:,.2f} {currency}"


def format_date(value, fmt: str = "%b %d, %Y") -> str:
    return dues.parse_timestamp(value).strftime(fmt)


def frequency_label(frequency: str) -> str:
    try:
        return FREQUENCY_LABELS[Frequency(frequency)]
    except ValueError:
        return frequency


# ---------- Validation ----------

def validate_member_inputs(
    full_name: str, phone_number: str, email: str, payment_amount, frequency: str, start_date: str
) -> list[str]:
    errors: list[str] = []
    if not full_name.strip():
        errors.append("Full name is required.")
    if not phone_number.strip():
        errors.append("Phone number is required.")
    if "@" not in email:
        errors.append("A valid email is required.")
    try:
        if not float(payment_amount) > 0:
            errors.append("Payment amount must be greater than 0.")
    except (TypeError, ValueError):
        errors.append("Payment amount must be numeric.")
    if frequency not in {f.value for f in Frequency}:
        errors.append("Unknown payment frequency.")
    try:
        parse_iso(start_date)
    except (TypeError, ValueError):
        errors.append("Start date must be a valid ISO date (YYYY-MM-DD).")
    return errors


def validate_payment_inputs(amount, payment_date: str, status: str) -> list[str]:
    errors: list[str] = []
    try:
        if float(amount) <= 0:
            errors.append("Amount must be > 0.")
    except (TypeError, ValueError):
        errors.append("Amount must be numeric.")
    try:
        dues.parse_timestamp(payment_date)
    except InvalidInputError:
        errors.append("Payment date must be a valid ISO date.")
    if status not in {s.value for s in PaymentStatus}:
        errors.append("Unknown payment status.")
    return errors


# ---------- Search ----------

def filter_members(
    members: list[Member],
    search: str = "",
    frequency: str | None = None,
    method: str | None = None,
    location: str | None = None,
    active: bool | None = None,
) -> list[Member]:
    term = search.strip().lower()
    out = []
    for m in members:
        if frequency and m.payment_frequency != frequency:
            continue
        if method and m.payment_method != method:
            continue
        if location and m.location != location:
            continue
        if active is not None and m.active != active:
            continue
        if term:
            haystack = [m.full_name, m.phone_number, m.alt_phone_number, m.email, m.location]
            if not any(term in (v or "").lower() for v in haystack):
                continue
        out.append(m)
    return out


# Field weights for fuzzy search; a field counts as matched at or above SEARCH_MIN_SIMILARITY
SEARCH_WEIGHTS = {
    "full_name": 0.3,
    "phone_number": 0.25,
    "alt_phone_number": 0.2,
    "email": 0.15,
    "location": 0.1,
}
SEARCH_MIN_SIMILARITY = 60
SEARCH_MIN_QUERY_LENGTH = 2


def search_members(members: list[Member], query: str) -> list[SearchResult]:
    """
    Typo-tolerant search over name, phones, email and location.
    Results are ordered by weighted similarity, best first.
    """
    term = query.strip().lower()
    if len(term) < SEARCH_MIN_QUERY_LENGTH:
        return []

    results = []
    for m in members:
        score = 0.0
        matches = []
        for field, weight in SEARCH_WEIGHTS.items():
            value = getattr(m, field)
            if not value:
                continue
            similarity = fuzz.partial_ratio(term, value.lower())
            if similarity >= SEARCH_MIN_SIMILARITY:
                score += weight * similarity / 100
                matches.append(field)
        if matches:
            results.append(SearchResult(member=m, score=score, matches=matches))
    results.sort(key=lambda r: r.score, reverse=True)
    return results


# ---------- Exports ----------

MEMBER_CSV_COLUMNS = {
    "full_name": "Full Name",
    "phone_number": "Phone Number",
    "alt_phone_number": "Alt Phone",
    "email": "Email",
    "address": "Address",
    "location": "Location",
    "payment_amount": "Payment Amount",
    "payment_frequency": "Frequency",
    "payment_start_date": "Start Date",
    "payment_method": "Payment Method",
    "preferred_contact": "Preferred Contact",
    "active": "Active",
}


def members_dataframe(members: list[Member]) -> pd.DataFrame:
    df = pd.DataFrame([asdict(m) for m in members], columns=["id", *MEMBER_CSV_COLUMNS, "created_at"])
    return df


def members_to_csv_bytes(members: list[Member]) -> bytes:
    df = members_dataframe(members)
    df["active"] = df["active"].map(lambda a: "Yes" if a else "No")
    df["created_at"] = df["created_at"].map(lambda v: format_date(v) if pd.notna(v) and v else "")
    df = df.drop(columns=["id"]).rename(columns={**MEMBER_CSV_COLUMNS, "created_at": "Created At"})
    return df.to_csv(index=False).encode("utf-8")


def payments_to_csv_bytes(payments: list[Payment], members: list[Member]) -> bytes:
    names = {m.id: m.full_name for m in members}
    df = pd.DataFrame(
        [
            {
                "Member Name": names.get(p.member_id, "Unknown"),
                "Amount": p.amount,
                "Payment Date": format_date(p.payment_date),
                "Payment Method": p.payment_method,
                "Status": p.status,
                "Notes": p.notes or "",
            }
            for p in payments
        ],
        columns=["Member Name", "Amount", "Payment Date", "Payment Method", "Status", "Notes"],
    )
    return df.to_csv(index=False).encode("utf-8")


def parse_members_csv(data: bytes) -> tuple[list[Member], list[str]]:
    """
    Read members from a CSV export (pretty or raw column names).

    Every row goes through the same checks as the member form. Rows that
    fail are skipped and reported as "Row N: ..." messages, where N is the
    line number in the file. Returns (members, errors).
    """
    df = pd.read_csv(io.BytesIO(data), dtype=str, keep_default_na=False)
    df = df.rename(columns={v: k for k, v in MEMBER_CSV_COLUMNS.items()})

    def cell(row, key, default=""):
        value = str(row.get(key, "") or "").strip()
        return value or default

    members: list[Member] = []
    errors: list[str] = []
    for i, row in df.iterrows():
        line = i + 2
        name = cell(row, "full_name")
        phone = cell(row, "phone_number")
        email = cell(row, "email")
        raw_amount = cell(row, "payment_amount")
        frequency = cell(row, "payment_frequency", Frequency.MONTHLY.value)
        start_date = cell(row, "payment_start_date", today_iso())
        method = cell(row, "payment_method", "bank")
        contact = cell(row, "preferred_contact", "email")

        row_errors = validate_member_inputs(name, phone, email, raw_amount, frequency, start_date)
        if method not in PAYMENT_METHODS:
            row_errors.append(f"Unknown payment method: {method}.")
        if contact not in CONTACT_CHANNELS:
            row_errors.append(f"Unknown contact channel: {contact}.")
        if row_errors:
            logger.warning("Skipping CSV row %s: %s", line, " ".join(row_errors))
            errors.append(f"Row {line}: " + " ".join(row_errors))
            continue

        members.append(
            Member(
                id=None,
                full_name=name,
                phone_number=phone,
                alt_phone_number=cell(row, "alt_phone_number") or None,
                email=email,
                address=cell(row, "address") or None,
                location=cell(row, "location") or None,
                payment_amount=float(raw_amount),
                payment_frequency=frequency,
                payment_start_date=start_date,
                payment_method=method,
                preferred_contact=contact,
                active=cell(row, "active", "Yes").lower() in ("yes", "true", "1"),
            )
        )
    return members, errors


# ---------- Reports ----------

def monthly_report(members: list[Member], payments: list[Payment], month: date | None = None) -> dict:
    month = month or date.today()
    active = [m for m in members if m.active]
    expected = dues.get_monthly_expected_income(members)
    collected = dues.get_monthly_collected(payments, month)
    by_frequency = {f.value: sum(1 for m in active if m.payment_frequency == f) for f in Frequency}
    by_location: dict[str, int] = {}
    for m in active:
        if m.location:
            by_location[m.location] = by_location.get(m.location, 0) + 1
    return {
        "month": month.replace(day=1),
        "active_members": len(active),
        "expected_income": expected,
        "collected_income": collected,
        "unpaid_count": sum(1 for p in payments if p.status == PaymentStatus.UNPAID),
        "overdue_count": sum(1 for p in payments if p.status == PaymentStatus.OVERDUE),
        "collection_rate": dues.collection_rate(expected, collected),
        "by_frequency": by_frequency,
        "by_location": by_location,
    }


def monthly_report_csv_bytes(report: dict) -> bytes:
    rows = [
        ("Monthly Report", report["month"].strftime("%B %Y")),
        ("Active Members", report["active_members"]),
        ("Expected Monthly Income", report["expected_income"]),
        ("Collected This Month", report["collected_income"]),
        ("Unpaid Payments", report["unpaid_count"]),
        ("Overdue Payments", report["overdue_count"]),
        ("Collection Rate (%)", round(report["collection_rate"], 1)),
    ]
    df = pd.DataFrame(rows, columns=["Metric", "Value"])
    return df.to_csv(index=False).encode("utf-8")


def monthly_report_pdf_bytes(report: dict, settings: Settings) -> bytes:
    buf = io.BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=A4)
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle("ReportTitle", parent=styles["Heading1"], alignment=1)
    center_style = ParagraphStyle("Center", parent=styles["Normal"], alignment=1)
    cur = settings.default_currency

    story = [
        Paragraph(settings.org_name, title_style),
        Paragraph(settings.org_address, center_style),
        Spacer(1, 18),
        Paragraph(f"Monthly Report - {report['month'].strftime('%B %Y')}", styles["Heading2"]),
        Spacer(1, 12),
    ]

    stats = [
        ["Active Members", str(report["active_members"])],
        ["Expected Monthly Income", format_currency(report["expected_income"], cur)],
        ["Collected This Month", format_currency(report["collected_income"], cur)],
        ["Unpaid Payments", str(report["unpaid_count"])],
        ["Overdue Payments", str(report["overdue_count"])],
        ["Collection Rate", f"{report['collection_rate']:.1f}%"],
    ]
    table = Table(stats, hAlign="LEFT")
    table.setStyle(
        TableStyle(
            [
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ("BACKGROUND", (0, 0), (0, -1), colors.whitesmoke),
            ]
        )
    )
    story += [table, Spacer(1, 18)]

    story.append(Paragraph("Breakdown by Payment Frequency", styles["Heading3"]))
    for freq, count in report["by_frequency"].items():
        story.append(Paragraph(f"{frequency_label(freq)}: {count} members", styles["Normal"]))
    story.append(Spacer(1, 12))

    story.append(Paragraph("Breakdown by Location", styles["Heading3"]))
    for location, count in sorted(report["by_location"].items()):
        story.append(Paragraph(f"{location}: {count} members", styles["Normal"]))
    story.append(Spacer(1, 18))
    story.append(Paragraph(f"Generated on {format_date(date.today())}", styles["Italic"]))

    doc.build(story)
    return buf.getvalue()


def annual_summary_df(payments: list[Payment], year: int) -> pd.DataFrame:
    return pd.DataFrame(dues.annual_summary(payments, year), columns=["month", "collected"])


# ---------- Sample data ----------

def insert_sample_data() -> None:
    """
    Insert 4 members (one per frequency, one inactive) and a few payments.
    Safe to run multiple times: adds new rows each time.
    """
    today = date.today()

    samples = [
        ("Abebe Kebede", "+251-9-11111111", "abebe.kebede@email.com", "Addis Ababa", 500.0, Frequency.MONTHLY, today - timedelta(days=28), True),
        ("Almaz Desta", "+251-9-22222222", "almaz.desta@email.com", "Bahir Dar", 1500.0, Frequency.QUARTERLY, today - timedelta(days=120), True),
        ("Hailu Girma", "+251-9-33333333", "hailu.girma@email.com", "Hawassa", 3000.0, Frequency.SEMI_ANNUAL, today - timedelta(days=30), True),
        ("Tigist Worku", "+251-9-44444444", "tigist.worku@email.com", "Gondar", 6000.0, Frequency.YEARLY, today - timedelta(days=400), False),
    ]

    for name, phone, email, location, amount, freq, start, active in samples:
        member_id = db.create_member(
            Member(
                id=None,
                full_name=name,
                phone_number=phone,
                email=email,
                location=location,
                payment_amount=amount,
                payment_frequency=freq.value,
                payment_start_date=start.isoformat(),
                active=active,
            )
        )
        db.create_payment(
            Payment(
                id=None,
                member_id=member_id,
                amount=amount,
                payment_date=datetime.combine(start, datetime.min.time()).isoformat(),
                payment_method="cash",
                status=PaymentStatus.PAID.value,
                notes="Sample payment",
            )
        )
    logger.info("Inserted %d sample members", len(samples))

