"""
auth.py
Authentication utilities (bcrypt hashing, verify, login, users and roles).
"""

from __future__ import annotations

import logging

import bcrypt
import db
from models import USER_ROLES

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    secret = _to_bcrypt_secret(password)
    hashed = bcrypt.hashpw(secret, bcrypt.gensalt(rounds=12))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(_to_bcrypt_secret(password), password_hash.encode("utf-8"))


def validate_new_password(new_password: str, confirm: str) -> list[str]:
    errors: list[str] = []
    if len(new_password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if new_password != confirm:
        errors.append("Passwords do not match.")
    return errors


def get_user(username: str):
    return db.fetch_one("SELECT * FROM admin_users WHERE username = ?", (username,))


def create_user(username: str, password: str, role: str = "staff") -> int:
    if role not in USER_ROLES:
        raise ValueError(f"Unknown role: {role}")
    user_id = db.execute(
        "INSERT INTO admin_users(username, password_hash, role, created_at) VALUES(?,?,?,?)",
        (username, hash_password(password), role, db.now_iso()),
    )
    logger.info("Created %s user %s", role, username)
    return user_id


def login(username: str, password: str) -> bool:
    user = get_user(username)
    if not user:
        logger.warning("Login attempt for unknown user %s", username)
        return False
    ok = verify_password(password, user["password_hash"])
    if not ok:
        logger.warning("Failed login for %s", username)
    return ok


def get_role(username: str) -> str | None:
    user = get_user(username)
    return user["role"] if user else None


def change_password(username: str, new_password: str) -> None:
    db.execute(
        "UPDATE admin_users SET password_hash = ? WHERE username = ?",
        (hash_password(new_password), username),
    )
    db.clear_force_password_change()
    logger.info("Password changed for %s", username)
