"""
auth.py
Authentication utilities (bcrypt hashing, verify, sign up, login, change password).
"""

from __future__ import annotations

import logging
import re
import sqlite3
from datetime import datetime, timezone

import bcrypt

import db
from models import DuplicateError, ValidationError

LOGGER = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    pw = password.encode("utf-8")
    if len(pw) > 72:
        pw = pw[:72]
    return pw


def hash_password(password: str) -> str:
    secret = _to_bcrypt_secret(password)
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(secret, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(_to_bcrypt_secret(password), password_hash.encode("utf-8"))


def validate_credentials(email: str, password: str) -> list[str]:
    errors: list[str] = []
    if not EMAIL_RE.match(email):
        errors.append("Enter a valid email address.")
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    return errors


def get_user_by_email(email: str):
    return db.fetch_one("SELECT * FROM users WHERE email = ?", (email.strip().lower(),))


def sign_up(email: str, password: str) -> int:
    email = (email or "").strip().lower()
    errors = validate_credentials(email, password or "")
    if errors:
        raise ValidationError(errors)
    if get_user_by_email(email):
        raise DuplicateError("An account with this email already exists.")
    now = datetime.now(timezone.utc).isoformat(timespec="seconds")
    try:
        user_id = db.execute(
            "INSERT INTO users(email, password_hash, created_at) VALUES(?,?,?)",
            (email, hash_password(password), now),
        )
    except sqlite3.IntegrityError as exc:
        raise DuplicateError("An account with this email already exists.") from exc
    LOGGER.info("Created account %s", email)
    return user_id


def login(email: str, password: str):
    user = get_user_by_email(email or "")
    if not user or not verify_password(password or "", user["password_hash"]):
        LOGGER.info("Failed sign-in for %s", email)
        return None
    return user


def change_password(user_id: int, new_password: str) -> None:
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    db.execute(
        "UPDATE users SET password_hash = ? WHERE id = ?",
        (hash_password(new_password), user_id),
    )
