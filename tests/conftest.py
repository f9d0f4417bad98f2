"""Shared fixtures: a throwaway SQLite file per test and model factories."""

from datetime import date

import pytest

import db
from models import Member, Payment


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Point db at a fresh database file with all tables created."""
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "test.db")
    db.init_db("not-a-real-hash")
    return db


@pytest.fixture
def today():
    return date(2025, 3, 15)


def make_member(**overrides) -> Member:
    data = dict(
        id=1,
        full_name="Abebe Kebede",
        phone_number="+251-9-11111111",
        email="abebe@example.com",
        payment_amount=500.0,
        payment_frequency="monthly",
        payment_start_date="2025-01-10",
        location="Addis Ababa",
    )
    data.update(overrides)
    return Member(**data)


def make_payment(payment_date: str, status: str = "paid", **overrides) -> Payment:
    data = dict(id=None, member_id=1, amount=500.0, payment_date=payment_date, status=status)
    data.update(overrides)
    return Payment(**data)
