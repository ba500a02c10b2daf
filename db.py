"""
db.py
SQLite helpers + initialization (creates DB/tables, inserts default admin, etc.)
"""

from __future__ import annotations

import logging
import math
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from config import settings
from errors import InfrastructureError

logger = logging.getLogger(__name__)

DB_FILE = settings.db_file


def _connect(**kwargs) -> sqlite3.Connection:
    conn = sqlite3.connect(DB_FILE, check_same_thread=False, timeout=settings.db_timeout, **kwargs)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_conn():
    conn = _connect()
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


@contextmanager
def transaction():
    """
    Write transaction that takes the database write lock up front
    (BEGIN IMMEDIATE), so reads inside it cannot be invalidated by another
    writer before the final commit. Rolls back on any exception.
    """
    conn = _connect(isolation_level=None)
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
    finally:
        conn.close()


@contextmanager
def guarded(action: str):
    """Re-raise sqlite errors as InfrastructureError("Failed to <action>")."""
    try:
        yield
    except sqlite3.Error as exc:
        logger.exception("Database error while trying to %s", action)
        raise InfrastructureError(f"Failed to {action}") from exc


def execute(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def execute_rowcount(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.rowcount


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


# ---------- Pagination ----------

@dataclass(frozen=True)
class Page:
    items: list
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1


def paginate(table: str, columns: str, search: str | None, search_fields: tuple[str, ...],
             order_by: str, page: int = 1, limit: int = 10, mapper=dict) -> Page:
    """
    Run a LIKE search over search_fields and return one page of rows.
    page is at least 1, limit is clamped to 1..settings.page_size_max.
    """
    page = max(1, int(page))
    limit = min(max(1, int(limit)), settings.page_size_max)
    offset = (page - 1) * limit

    where = ""
    params: list = []
    if search and search.strip():
        where = " WHERE (" + " OR ".join(f"{f} LIKE ?" for f in search_fields) + ")"
        params.extend([f"%{search.strip()}%"] * len(search_fields))

    total = fetch_one(f"SELECT COUNT(*) AS c FROM {table}{where}", tuple(params))["c"]
    rows = fetch_all(
        f"SELECT {columns} FROM {table}{where} ORDER BY {order_by} LIMIT ? OFFSET ?",
        tuple(params + [limit, offset]),
    )
    return Page(items=[mapper(r) for r in rows], page=page, limit=limit, total=int(total))


# ---------- Schema ----------

def _create_tables() -> None:
    with get_conn() as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL UNIQUE,
                password_hash TEXT NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS membership_plans (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE,
                price REAL NOT NULL CHECK(price >= 0),
                duration TEXT NOT NULL,
                features TEXT,
                status TEXT NOT NULL CHECK(status IN ('active','inactive')),
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS members (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                member_id TEXT NOT NULL UNIQUE,
                name TEXT NOT NULL,
                email TEXT,
                phone TEXT NOT NULL,
                membership_type TEXT NOT NULL,
                join_date TEXT NOT NULL,
                expiry_date TEXT NOT NULL,
                status TEXT NOT NULL CHECK(status IN ('active','inactive','expired')),
                payment_status TEXT NOT NULL CHECK(payment_status IN ('paid','unpaid')),
                payment_amount REAL NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_members_join_date ON members(join_date);

            CREATE TABLE IF NOT EXISTS trainers (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                email TEXT,
                phone TEXT NOT NULL,
                role TEXT NOT NULL CHECK(role IN ('Trainer','Staff')),
                hire_date TEXT NOT NULL,
                status TEXT NOT NULL CHECK(status IN ('active','inactive')),
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS expenses (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                category TEXT NOT NULL,
                description TEXT,
                amount REAL NOT NULL CHECK(amount >= 0),
                date TEXT NOT NULL,
                status TEXT NOT NULL CHECK(status IN ('paid','pending','overdue')),
                vendor TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS notifications (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                message TEXT NOT NULL,
                type TEXT NOT NULL CHECK(type IN ('info','success','warning','error')),
                read INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            );

            -- Small settings table (used to force password change on first login)
            CREATE TABLE IF NOT EXISTS app_settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );
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
    - Insert the default admin if no user exists
    - Force password change on first login
    """
    _create_tables()

    user = fetch_one("SELECT id FROM users LIMIT 1")
    if not user:
        execute(
            "INSERT INTO users(username, password_hash, created_at) VALUES(?,?,?)",
            (settings.default_admin_username, default_admin_hash, now_iso()),
        )
        _set_setting("force_password_change", "1")
        logger.info("Created default user %r", settings.default_admin_username)
    else:
        # ensure setting exists
        if _get_setting("force_password_change") is None:
            _set_setting("force_password_change", "0")


def is_force_password_change() -> bool:
    return _get_setting("force_password_change") == "1"


def clear_force_password_change() -> None:
    _set_setting("force_password_change", "0")
