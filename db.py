"""
db.py
SQLite helpers + initialization (tables, default admin) and row <-> model conversion.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import asdict, fields
from datetime import datetime
from pathlib import Path

from models import Member, Message, Payment, Settings

logger = logging.getLogger(__name__)

DB_FILE = Path(os.getenv("MEMBERSHIP_DB", Path(__file__).with_name("membership.db")))

DEFAULT_SETTINGS = Settings()


@contextmanager
def get_conn():
    conn = sqlite3.connect(DB_FILE, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def execute(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def executemany(sql: str, seq_of_params: list[tuple]) -> None:
    with get_conn() as conn:
        conn.executemany(sql, seq_of_params)


def fetch_one(sql: str, params: tuple = ()):
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


def now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _create_tables() -> None:
    execute(
        """
        CREATE TABLE IF NOT EXISTS admin_users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'admin' CHECK(role IN ('admin','staff')),
            created_at TEXT NOT NULL
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS members (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            full_name TEXT NOT NULL,
            phone_number TEXT NOT NULL,
            alt_phone_number TEXT,
            email TEXT NOT NULL,
            address TEXT,
            location TEXT,
            payment_amount REAL NOT NULL CHECK(payment_amount > 0),
            payment_frequency TEXT NOT NULL,
            payment_start_date TEXT NOT NULL,
            payment_method TEXT NOT NULL CHECK(payment_method IN ('bank','cash','branch')),
            preferred_contact TEXT NOT NULL CHECK(preferred_contact IN ('email','sms','both')),
            active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS payments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            member_id INTEGER NOT NULL,
            amount REAL NOT NULL,
            payment_date TEXT NOT NULL,
            payment_method TEXT NOT NULL CHECK(payment_method IN ('bank','cash','branch')),
            status TEXT NOT NULL CHECK(status IN ('paid','unpaid','overdue')),
            notes TEXT,
            FOREIGN KEY(member_id) REFERENCES members(id) ON DELETE CASCADE
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS messages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            member_id INTEGER,
            message_type TEXT NOT NULL CHECK(message_type IN ('reminder','thank_you','announcement')),
            message_subject TEXT,
            message_content TEXT NOT NULL,
            sent_at TEXT NOT NULL,
            channel TEXT NOT NULL DEFAULT 'email',
            FOREIGN KEY(member_id) REFERENCES members(id) ON DELETE SET NULL
        )
        """
    )

    # Key/value settings (org details, reminder window, first-login flag)
    execute(
        """
        CREATE TABLE IF NOT EXISTS app_settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )


def _get_setting(key: str, default: str | None = None) -> str | None:
    row = fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,))
    if row:
        return str(row["value"])
    return default


def _set_setting(key: str, value: str) -> None:
    execute(
        """
        INSERT INTO app_settings(key, value) VALUES(?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (key, value),
    )


def init_db(default_admin_hash: str) -> None:
    """
    Initialize the database.
    - Create tables
    - Insert default admin (admin/admin123) if no user exists
    - Force password change on first login
    """
    _create_tables()

    admin = fetch_one("SELECT id FROM admin_users LIMIT 1")
    if not admin:
        execute(
            "INSERT INTO admin_users(username, password_hash, role, created_at) VALUES(?,?,?,?)",
            ("admin", default_admin_hash, "admin", now_iso()),
        )
        _set_setting("force_password_change", "1")
        logger.info("Created default admin user in %s", DB_FILE)
    else:
        # ensure setting exists
        if _get_setting("force_password_change") is None:
            _set_setting("force_password_change", "0")


def is_force_password_change() -> bool:
    return _get_setting("force_password_change") == "1"


def clear_force_password_change() -> None:
    _set_setting("force_password_change", "0")


# ---------- Settings ----------

def get_settings() -> Settings:
    values = {}
    for f in fields(Settings):
        raw = _get_setting(f.name)
        if raw is None:
            values[f.name] = getattr(DEFAULT_SETTINGS, f.name)
        elif f.name == "reminder_window_days":
            values[f.name] = int(raw)
        elif f.name == "default_payment_amount":
            values[f.name] = float(raw)
        else:
            values[f.name] = raw
    return Settings(**values)


def update_settings(**updates) -> Settings:
    known = {f.name for f in fields(Settings)}
    for key, value in updates.items():
        if key not in known:
            raise KeyError(f"Unknown setting: {key}")
        _set_setting(key, str(value))
    return get_settings()


# ---------- Members ----------

MEMBER_COLUMNS = [f.name for f in fields(Member) if f.name != "id"]


def row_to_member(row: sqlite3.Row) -> Member:
    data = dict(row)
    data["active"] = bool(data["active"])
    return Member(**data)


def list_members(active_only: bool = False) -> list[Member]:
    sql = "SELECT * FROM members"
    if active_only:
        sql += " WHERE active = 1"
    sql += " ORDER BY full_name ASC"
    return [row_to_member(r) for r in fetch_all(sql)]


def get_member(member_id: int) -> Member | None:
    row = fetch_one("SELECT * FROM members WHERE id = ?", (member_id,))
    return row_to_member(row) if row else None


def _member_params(member: Member) -> tuple:
    data = asdict(member)
    data["created_at"] = data["created_at"] or now_iso()
    data["active"] = int(data["active"])
    return tuple(data[c] for c in MEMBER_COLUMNS)


INSERT_MEMBER_SQL = (
    f"INSERT INTO members({','.join(MEMBER_COLUMNS)}) "
    f"VALUES({','.join('?' for _ in MEMBER_COLUMNS)})"
)


def create_member(member: Member) -> int:
    member_id = execute(INSERT_MEMBER_SQL, _member_params(member))
    logger.info("Created member %s (%s)", member_id, member.full_name)
    return member_id


def create_members(members: list[Member]) -> int:
    """Insert all members in one transaction; nothing is written if any row fails."""
    executemany(INSERT_MEMBER_SQL, [_member_params(m) for m in members])
    logger.info("Imported %s member(s)", len(members))
    return len(members)


def update_member(member: Member) -> None:
    if member.id is None:
        raise ValueError("Cannot update a member without id")
    data = asdict(member)
    data["active"] = int(data["active"])
    cols = [c for c in MEMBER_COLUMNS if c != "created_at"]
    assignments = ", ".join(f"{c}=?" for c in cols)
    execute(
        f"UPDATE members SET {assignments} WHERE id=?",
        tuple(data[c] for c in cols) + (member.id,),
    )


def delete_member(member_id: int) -> None:
    execute("DELETE FROM members WHERE id = ?", (member_id,))
    logger.info("Deleted member %s", member_id)


# ---------- Payments ----------

def row_to_payment(row: sqlite3.Row) -> Payment:
    return Payment(**dict(row))


def list_payments(member_id: int | None = None) -> list[Payment]:
    if member_id is None:
        rows = fetch_all("SELECT * FROM payments ORDER BY payment_date DESC, id DESC")
    else:
        rows = fetch_all(
            "SELECT * FROM payments WHERE member_id = ? ORDER BY payment_date DESC, id DESC",
            (member_id,),
        )
    return [row_to_payment(r) for r in rows]


def create_payment(payment: Payment) -> int:
    payment_id = execute(
        """
        INSERT INTO payments(member_id, amount, payment_date, payment_method, status, notes)
        VALUES(?,?,?,?,?,?)
        """,
        (
            payment.member_id,
            payment.amount,
            payment.payment_date,
            payment.payment_method,
            payment.status,
            payment.notes,
        ),
    )
    logger.info("Recorded %s payment %s for member %s", payment.status, payment_id, payment.member_id)
    return payment_id


def update_payment_status(payment_id: int, status: str) -> None:
    execute("UPDATE payments SET status = ? WHERE id = ?", (status, payment_id))


def delete_payment(payment_id: int) -> None:
    execute("DELETE FROM payments WHERE id = ?", (payment_id,))
    logger.info("Deleted payment %s", payment_id)


# ---------- Messages ----------

def row_to_message(row: sqlite3.Row) -> Message:
    return Message(**dict(row))


def create_message(message: Message) -> int:
    return execute(
        """
        INSERT INTO messages(member_id, message_type, message_subject, message_content, sent_at, channel)
        VALUES(?,?,?,?,?,?)
        """,
        (
            message.member_id,
            message.message_type,
            message.message_subject,
            message.message_content,
            message.sent_at,
            message.channel,
        ),
    )


def list_messages(member_id: int | None = None) -> list[Message]:
    if member_id is None:
        rows = fetch_all("SELECT * FROM messages ORDER BY sent_at DESC, id DESC")
    else:
        rows = fetch_all(
            "SELECT * FROM messages WHERE member_id = ? ORDER BY sent_at DESC, id DESC",
            (member_id,),
        )
    return [row_to_message(r) for r in rows]
