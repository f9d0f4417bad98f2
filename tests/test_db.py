"""Storage tests against a temporary SQLite file."""

import sqlite3
from dataclasses import replace

import pytest

from conftest import make_member, make_payment
from models import Message, Settings


def test_init_db_creates_default_admin_and_forces_password_change(temp_db):
    assert temp_db.fetch_one("SELECT username, role FROM admin_users")["username"] == "admin"
    assert temp_db.is_force_password_change() is True

    temp_db.clear_force_password_change()
    temp_db.init_db("another-hash")

    assert temp_db.fetch_one("SELECT COUNT(*) AS c FROM admin_users")["c"] == 1
    assert temp_db.is_force_password_change() is False


def test_member_roundtrip(temp_db):
    member_id = temp_db.create_member(make_member(id=None, alt_phone_number="+251-9-999", active=False))

    stored = temp_db.get_member(member_id)

    assert stored.id == member_id
    assert stored.full_name == "Abebe Kebede"
    assert stored.alt_phone_number == "+251-9-999"
    assert stored.active is False
    assert stored.created_at


def test_update_and_delete_member(temp_db):
    member_id = temp_db.create_member(make_member(id=None))
    member = temp_db.get_member(member_id)

    temp_db.update_member(replace(member, payment_amount=750.0))
    assert temp_db.get_member(member_id).payment_amount == 750.0

    temp_db.delete_member(member_id)
    assert temp_db.get_member(member_id) is None


def test_list_members_active_only(temp_db):
    temp_db.create_member(make_member(id=None, full_name="Zed"))
    temp_db.create_member(make_member(id=None, full_name="Amy", active=False))

    assert [m.full_name for m in temp_db.list_members()] == ["Amy", "Zed"]
    assert [m.full_name for m in temp_db.list_members(active_only=True)] == ["Zed"]


def test_member_amount_must_be_positive(temp_db):
    with pytest.raises(sqlite3.IntegrityError):
        temp_db.create_member(make_member(id=None, payment_amount=0))


def test_payments_listed_newest_first_and_cascade(temp_db):
    member_id = temp_db.create_member(make_member(id=None))
    other_id = temp_db.create_member(make_member(id=None, full_name="Other"))
    temp_db.create_payment(make_payment("2025-01-05T10:00:00", member_id=member_id))
    temp_db.create_payment(make_payment("2025-02-05T10:00:00", member_id=member_id))
    temp_db.create_payment(make_payment("2025-02-06T10:00:00", member_id=other_id))

    own = temp_db.list_payments(member_id)
    assert [p.payment_date for p in own] == ["2025-02-05T10:00:00", "2025-01-05T10:00:00"]
    assert len(temp_db.list_payments()) == 3

    temp_db.delete_member(member_id)
    assert temp_db.list_payments(member_id) == []
    assert len(temp_db.list_payments()) == 1


def test_update_payment_status(temp_db):
    member_id = temp_db.create_member(make_member(id=None))
    payment_id = temp_db.create_payment(make_payment("2025-01-05", member_id=member_id, status="unpaid"))

    temp_db.update_payment_status(payment_id, "paid")

    assert temp_db.list_payments(member_id)[0].status == "paid"

def test_delete_payment(temp_db):
    member_id = temp_db.create_member(make_member(id=None))
    keep = temp_db.create_payment(make_payment("2025-01-05", member_id=member_id))
    drop = temp_db.create_payment(make_payment("2025-02-05", member_id=member_id))

    temp_db.delete_payment(drop)

    assert [p.id for p in temp_db.list_payments(member_id)] == [keep]


def test_create_members_is_all_or_nothing(temp_db):
    good = make_member(id=None, full_name="Selam")
    bad = make_member(id=None, full_name="Dawit", payment_amount=0)

    with pytest.raises(sqlite3.IntegrityError):
        temp_db.create_members([good, bad])
    assert temp_db.list_members() == []

    assert temp_db.create_members([good]) == 1
    assert [m.full_name for m in temp_db.list_members()] == ["Selam"]



def test_payment_requires_existing_member(temp_db):
    with pytest.raises(sqlite3.IntegrityError):
        temp_db.create_payment(make_payment("2025-01-05", member_id=42))


def test_settings_defaults_and_update(temp_db):
    assert temp_db.get_settings() == Settings()

    updated = temp_db.update_settings(reminder_window_days=7, default_currency="USD")

    assert updated.reminder_window_days == 7
    assert updated.default_currency == "USD"
    assert temp_db.get_settings().org_name == Settings().org_name


def test_update_unknown_setting_raises(temp_db):
    with pytest.raises(KeyError):
        temp_db.update_settings(theme="dark")


def test_messages_roundtrip(temp_db):
    member_id = temp_db.create_member(make_member(id=None))
    temp_db.create_message(
        Message(id=None, member_id=member_id, message_type="reminder", message_content="Hi", sent_at="2025-03-01T10:00:00")
    )
    temp_db.create_message(
        Message(id=None, member_id=None, message_type="announcement", message_content="News", sent_at="2025-03-02T10:00:00")
    )

    assert [m.message_content for m in temp_db.list_messages()] == ["News", "Hi"]
    assert [m.message_type for m in temp_db.list_messages(member_id)] == ["reminder"]
