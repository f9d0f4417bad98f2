"""
dues.py
Payment due-date and status engine.

Pure functions over members and payments: next due date projection,
payment status classification and monthly income aggregates. Nothing here
reads the database or the clock except through the `today` / `month`
defaults, so callers (and tests) can pin the current date explicitly.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import Iterable

from models import (
    FREQUENCY_MONTHS,
    DueStatus,
    Frequency,
    InvalidInputError,
    Member,
    Payment,
    PaymentStatus,
)

DEFAULT_REMINDER_DAYS = 3


def parse_timestamp(value) -> datetime:
    """
    Accept a datetime, a date or an ISO string ("2025-01-31", "2025-01-31T10:00:00Z")
    and return a naive datetime in local time.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text[-1:] in ("Z", "z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as exc:
            raise InvalidInputError(f"Invalid date: {value!r}") from exc
    else:
        raise InvalidInputError(f"Invalid date: {value!r}")
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def to_date(value) -> date:
    return parse_timestamp(value).date()


def add_months(start: date, months: int) -> date:
    """
    Add months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    day = min(start.day, calendar.monthrange(y, m)[1])
    return date(y, m, day)


def interval_months(frequency: str) -> int | None:
    """Months between payments for a frequency, or None when the frequency is unknown."""
    try:
        return FREQUENCY_MONTHS[Frequency(frequency)]
    except ValueError:
        return None


def get_next_due_date(member: Member, last_paid_date=None) -> date:
    """
    Project the next due date from the last paid date, or from the member's
    payment start date when nothing has been paid yet.
    Unknown frequencies fall back to a monthly interval.
    """
    anchor = to_date(last_paid_date if last_paid_date else member.payment_start_date)
    return add_months(anchor, interval_months(member.payment_frequency) or 1)


def get_last_paid_date(payments: Iterable[Payment]) -> datetime | None:
    paid = [parse_timestamp(p.payment_date) for p in payments if p.status == PaymentStatus.PAID]
    if not paid:
        return None
    return max(paid)


def get_payment_status(
    member: Member,
    payments: Iterable[Payment],
    reminder_days: int = DEFAULT_REMINDER_DAYS,
    today: date | None = None,
) -> DueStatus:
    """
    Classify a member as current, due soon or overdue.

    `payments` must already be limited to this member. `today` defaults to
    the local calendar date.
    """
    today = to_date(today) if today is not None else date.today()
    next_due = get_next_due_date(member, get_last_paid_date(payments))
    days = (next_due - today).days

    if days < 0:
        return DueStatus.OVERDUE
    if days <= reminder_days:
        return DueStatus.DUE_SOON
    return DueStatus.CURRENT


def is_due(
    member: Member,
    payments: Iterable[Payment],
    reminder_days: int = DEFAULT_REMINDER_DAYS,
    today: date | None = None,
) -> bool:
    status = get_payment_status(member, payments, reminder_days, today)
    return status in (DueStatus.DUE_SOON, DueStatus.OVERDUE)


def payments_by_member(payments: Iterable[Payment]) -> dict[int, list[Payment]]:
    grouped: dict[int, list[Payment]] = {}
    for p in payments:
        grouped.setdefault(p.member_id, []).append(p)
    return grouped


def due_members(
    members: Iterable[Member],
    payments: Iterable[Payment],
    reminder_days: int = DEFAULT_REMINDER_DAYS,
    today: date | None = None,
) -> list[Member]:
    """Active members whose payment is due soon or overdue."""
    grouped = payments_by_member(payments)
    return [
        m for m in members
        if m.active and is_due(m, grouped.get(m.id, []), reminder_days, today)
    ]


def get_monthly_expected_income(members: Iterable[Member]) -> float:
    """
    Monthly-equivalent income of all active members. Unknown frequencies add 0.
    Not rounded; round only when formatting.
    """
    total = 0.0
    for m in members:
        if not m.active:
            continue
        months = interval_months(m.payment_frequency)
        if months:
            total += m.payment_amount / months
    return total


def month_bounds(month: date) -> tuple[datetime, datetime]:
    """[start, end) of the calendar month containing `month`."""
    start = datetime(month.year, month.month, 1)
    end = datetime.combine(add_months(start.date(), 1), datetime.min.time())
    return start, end


def get_monthly_collected(payments: Iterable[Payment], month: date | None = None) -> float:
    """
    Sum of paid payments dated inside the target month (defaults to the current month).
    """
    start, end = month_bounds(to_date(month) if month is not None else date.today())
    return sum(
        (
            p.amount
            for p in payments
            if p.status == PaymentStatus.PAID and start <= parse_timestamp(p.payment_date) < end
        ),
        0.0,
    )


def collection_rate(expected: float, collected: float) -> float:
    if expected <= 0:
        return 0.0
    return collected / expected * 100


def annual_summary(payments: Iterable[Payment], year: int) -> list[dict]:
    payments = list(payments)
    return [
        {
            "month": calendar.month_abbr[m],
            "collected": get_monthly_collected(payments, date(year, m, 1)),
        }
        for m in range(1, 13)
    ]


def next_due_dates(
    members: Iterable[Member], payments: Iterable[Payment]
) -> dict[int, date]:
    grouped = payments_by_member(payments)
    return {
        m.id: get_next_due_date(m, get_last_paid_date(grouped.get(m.id, [])))
        for m in members
    }

