"""
auth.py
Authentication utilities (bcrypt hashing, verify, login, register, change password).
"""

from __future__ import annotations

import logging
import sqlite3

import bcrypt

import db
from config import settings
from errors import ConflictError, ValidationError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


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
    """
    Returns a bcrypt hash as a UTF-8 string (stored in SQLite).
    """
    secret = _to_bcrypt_secret(password)
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    hashed = bcrypt.hashpw(secret, salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    secret = _to_bcrypt_secret(password)
    stored = password_hash.encode("utf-8")
    return bcrypt.checkpw(secret, stored)


def validate_new_password(new_password: str, confirm: str | None = None) -> None:
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.", field="password")
    if confirm is not None and new_password != confirm:
        raise ValidationError("Passwords do not match.", field="password")


def get_user_by_username(username: str):
    with db.guarded("fetch user"):
        return db.fetch_one("SELECT * FROM users WHERE username = ?", (username,))


def login(username: str, password: str) -> bool:
    user = get_user_by_username(username)
    if not user:
        return False
    ok = verify_password(password, user["password_hash"])
    if not ok:
        logger.warning("Failed login for %r", username)
    return ok


def register_user(username: str, password: str) -> int:
    username = (username or "").strip()
    if not username:
        raise ValidationError("Username is required.", field="username")
    validate_new_password(password)
    with db.guarded("register user"):
        try:
            user_id = db.execute(
                "INSERT INTO users(username, password_hash, created_at) VALUES(?,?,?)",
                (username, hash_password(password), db.now_iso()),
            )
        except sqlite3.IntegrityError:
            raise ConflictError(f"User {username!r} already exists") from None
    logger.info("Registered user %r", username)
    return user_id


def change_password(username: str, new_password: str, confirm: str | None = None) -> None:
    validate_new_password(new_password, confirm)
    new_hash = hash_password(new_password)
    with db.guarded("change password"):
        db.execute(
            "UPDATE users SET password_hash = ? WHERE username = ?",
            (new_hash, username),
        )
        db.clear_force_password_change()
    logger.info("Password changed for %r", username)
