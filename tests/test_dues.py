"""Unit tests for the due-date and status engine."""

import time
from datetime import date, datetime

import pytest

import dues
from conftest import make_member, make_payment
from models import DueStatus, InvalidInputError


# Tests for next due date


@pytest.mark.parametrize(
    "frequency, expected",
    [
        ("monthly", date(2025, 2, 10)),
        ("three_months", date(2025, 4, 10)),
        ("six_months", date(2025, 7, 10)),
        ("yearly", date(2026, 1, 10)),
    ],
)
def test_next_due_date_from_start_date(frequency, expected):
    member = make_member(payment_frequency=frequency, payment_start_date="2025-01-10")
    assert dues.get_next_due_date(member) == expected


def test_next_due_date_unknown_frequency_defaults_to_monthly():
    member = make_member(payment_frequency="weekly", payment_start_date="2025-01-10")
    assert dues.get_next_due_date(member) == date(2025, 2, 10)


def test_next_due_date_uses_last_paid_date_as_anchor():
    member = make_member(payment_frequency="three_months")
    assert dues.get_next_due_date(member, datetime(2025, 2, 5, 9, 30)) == date(2025, 5, 5)
    assert dues.get_next_due_date(member, "2025-02-05T09:30:00") == date(2025, 5, 5)


def test_next_due_date_clamps_to_end_of_month():
    assert dues.get_next_due_date(make_member(payment_start_date="2025-01-31")) == date(2025, 2, 28)
    assert dues.get_next_due_date(make_member(payment_start_date="2024-01-31")) == date(2024, 2, 29)
    assert dues.get_next_due_date(make_member(payment_start_date="2025-03-31")) == date(2025, 4, 30)


def test_next_due_date_yearly_preserves_month_and_day():
    member = make_member(payment_frequency="yearly", payment_start_date="2024-06-15")
    assert dues.get_next_due_date(member) == date(2025, 6, 15)

    leap = make_member(payment_frequency="yearly", payment_start_date="2024-02-29")
    assert dues.get_next_due_date(leap) == date(2025, 2, 28)


def test_next_due_date_future_start_date():
    member = make_member(payment_start_date="2030-12-15")
    assert dues.get_next_due_date(member) == date(2031, 1, 15)


def test_add_months_across_year_boundary():
    assert dues.add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)
    assert dues.add_months(date(2024, 12, 1), 1) == date(2025, 1, 1)


# Tests for last paid date


def test_last_paid_date_picks_latest_paid():
    payments = [
        make_payment("2025-01-05T10:00:00"),
        make_payment("2025-02-05T09:00:00"),
        make_payment("2025-03-01T12:00:00", status="unpaid"),
        make_payment("2025-03-02T12:00:00", status="overdue"),
    ]
    assert dues.get_last_paid_date(payments) == datetime(2025, 2, 5, 9, 0)


def test_last_paid_date_order_independent():
    payments = [make_payment("2025-02-05"), make_payment("2025-01-05")]
    assert dues.get_last_paid_date(payments) == datetime(2025, 2, 5)
    assert dues.get_last_paid_date(list(reversed(payments))) == datetime(2025, 2, 5)


def test_last_paid_date_none_without_paid_payments():
    assert dues.get_last_paid_date([]) is None
    assert dues.get_last_paid_date([make_payment("2025-01-05", status="unpaid")]) is None


def test_no_paid_payments_falls_back_to_start_date():
    member = make_member(payment_start_date="2025-01-10")
    last = dues.get_last_paid_date([make_payment("2025-01-20", status="unpaid")])
    assert dues.get_next_due_date(member, last) == date(2025, 2, 10)


# Tests for status classification


@pytest.mark.parametrize(
    "today, expected",
    [
        (date(2025, 2, 5), DueStatus.CURRENT),  # 5 days before
        (date(2025, 2, 6), DueStatus.CURRENT),  # 4 days before
        (date(2025, 2, 7), DueStatus.DUE_SOON),  # 3 days before
        (date(2025, 2, 9), DueStatus.DUE_SOON),  # 1 day before
        (date(2025, 2, 10), DueStatus.DUE_SOON),  # due today
        (date(2025, 2, 11), DueStatus.OVERDUE),  # 1 day after
    ],
)
def test_payment_status_window(today, expected):
    member = make_member(payment_start_date="2025-01-10")
    assert dues.get_payment_status(member, [], reminder_days=3, today=today) == expected


def test_payment_status_custom_window():
    member = make_member(payment_start_date="2025-01-10")
    assert dues.get_payment_status(member, [], reminder_days=7, today=date(2025, 2, 4)) == DueStatus.DUE_SOON
    assert dues.get_payment_status(member, [], reminder_days=0, today=date(2025, 2, 9)) == DueStatus.CURRENT


def test_payment_status_recent_payment_is_current():
    member = make_member(payment_start_date="2024-06-01")
    payments = [make_payment("2025-03-01T08:00:00")]
    assert dues.get_payment_status(member, payments, today=date(2025, 3, 15)) == DueStatus.CURRENT


def test_payment_status_accepts_datetime_today():
    member = make_member(payment_start_date="2025-01-10")
    assert dues.get_payment_status(member, [], today=datetime(2025, 2, 10, 23, 59)) == DueStatus.DUE_SOON


def test_is_due():
    member = make_member(payment_start_date="2025-01-10")
    assert dues.is_due(member, [], today=date(2025, 2, 5)) is False
    assert dues.is_due(member, [], today=date(2025, 2, 9)) is True
    assert dues.is_due(member, [], today=date(2025, 3, 1)) is True


def test_due_members_only_active_and_own_payments(today):
    paid_up = make_member(id=1, payment_start_date="2025-01-01")
    late = make_member(id=2, payment_start_date="2025-01-01")
    inactive = make_member(id=3, payment_start_date="2025-01-01", active=False)
    payments = [make_payment("2025-03-10", member_id=1)]

    due = dues.due_members([paid_up, late, inactive], payments, 3, today)

    assert [m.id for m in due] == [2]


def test_invalid_date_raises_invalid_input():
    with pytest.raises(InvalidInputError):
        dues.get_next_due_date(make_member(payment_start_date="not-a-date"))
    with pytest.raises(InvalidInputError):
        dues.get_last_paid_date([make_payment("31/01/2025")])
    with pytest.raises(InvalidInputError):
        dues.parse_timestamp(12345)


# Tests for income aggregates


def test_monthly_expected_income():
    members = [
        make_member(id=1, payment_amount=600, payment_frequency="yearly"),
        make_member(id=2, payment_amount=1200, payment_frequency="monthly"),
        make_member(id=3, payment_amount=9999, payment_frequency="monthly", active=False),
    ]
    assert dues.get_monthly_expected_income(members) == 1250


def test_monthly_expected_income_quarterly_and_semi_annual():
    members = [
        make_member(id=1, payment_amount=300, payment_frequency="three_months"),
        make_member(id=2, payment_amount=600, payment_frequency="six_months"),
    ]
    assert dues.get_monthly_expected_income(members) == pytest.approx(200)


def test_monthly_expected_income_not_rounded():
    members = [make_member(payment_amount=100, payment_frequency="three_months")]
    assert dues.get_monthly_expected_income(members) == pytest.approx(100 / 3)


def test_monthly_expected_income_unknown_frequency_contributes_nothing():
    members = [make_member(payment_amount=500, payment_frequency="weekly")]
    assert dues.get_monthly_expected_income(members) == 0
    assert dues.get_monthly_expected_income([]) == 0


def test_monthly_collected_counts_paid_in_month():
    payments = [
        make_payment("2025-03-01T00:00:00", amount=100),
        make_payment("2025-03-15T12:00:00", amount=200),
        make_payment("2025-03-31T23:30:00", amount=300),
        make_payment("2025-03-20T12:00:00", amount=1000, status="unpaid"),
        make_payment("2025-02-28T23:59:59", amount=5000),
        make_payment("2025-04-01T00:00:00", amount=7000),
    ]
    assert dues.get_monthly_collected(payments, date(2025, 3, 10)) == 600

@pytest.fixture
def utc_local_time(monkeypatch):
    """Pin the process timezone to UTC so aware timestamps convert predictably."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "UTC")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


def test_aware_timestamps_are_counted_by_local_month(utc_local_time):
    assert dues.parse_timestamp("2025-03-31T23:30:00Z") == datetime(2025, 3, 31, 23, 30)

    payments = [
        make_payment("2025-03-31T23:30:00Z", amount=100),
        make_payment("2025-04-01T00:30:00+02:00", amount=200),  # Mar 31 22:30 UTC
        make_payment("2025-02-28T23:30:00-01:00", amount=400),  # Mar 1 00:30 UTC
        make_payment("2025-04-01T00:00:00Z", amount=8000),
        make_payment("2025-02-28T23:59:59Z", amount=9000),
    ]

    assert dues.get_monthly_collected(payments, date(2025, 3, 1)) == 700
    assert dues.get_monthly_collected(payments, date(2025, 4, 1)) == 8000



def test_monthly_collected_empty():
    assert dues.get_monthly_collected([], date(2025, 3, 1)) == 0


def test_month_bounds_december():
    start, end = dues.month_bounds(date(2024, 12, 25))
    assert start == datetime(2024, 12, 1)
    assert end == datetime(2025, 1, 1)


def test_collection_rate():
    assert dues.collection_rate(0, 100) == 0
    assert dues.collection_rate(1250, 625) == 50


def test_annual_summary():
    payments = [
        make_payment("2025-01-10", amount=100),
        make_payment("2025-01-20", amount=50),
        make_payment("2025-12-31T10:00:00", amount=25),
        make_payment("2024-12-31T10:00:00", amount=999),
    ]
    summary = dues.annual_summary(payments, 2025)
    assert len(summary) == 12
    assert summary[0] == {"month": "Jan", "collected": 150}
    assert summary[11]["collected"] == 25
    assert sum(row["collected"] for row in summary) == 175


def test_repeated_calls_are_stable_and_do_not_mutate(today):
    member = make_member(payment_start_date="2025-01-10")
    payments = [make_payment("2025-02-20"), make_payment("2025-01-20", status="unpaid")]
    snapshot = list(payments)

    first = (
        dues.get_payment_status(member, payments, today=today),
        dues.get_monthly_collected(payments, today),
        dues.get_next_due_date(member, dues.get_last_paid_date(payments)),
    )
    second = (
        dues.get_payment_status(member, payments, today=today),
        dues.get_monthly_collected(payments, today),
        dues.get_next_due_date(member, dues.get_last_paid_date(payments)),
    )

    assert first == second
    assert payments == snapshot


def test_next_due_dates_maps_members():
    members = [make_member(id=1), make_member(id=2, payment_start_date="2025-02-01")]
    payments = [make_payment("2025-03-05", member_id=1)]
    assert dues.next_due_dates(members, payments) == {1: date(2025, 4, 5), 2: date(2025, 3, 1)}
