"""
notifications.py
In-app notifications. emit() is best-effort: it never raises.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime, timedelta

import db
from models import NOTIFICATION_TYPES, Notification

logger = logging.getLogger(__name__)


def emit(title: str, message: str, severity: str = "info") -> None:
    """Store a notification. Failures are logged so the caller's flow continues."""
    if severity not in NOTIFICATION_TYPES:
        severity = "info"
    try:
        db.execute(
            "INSERT INTO notifications(title, message, type, read, created_at) VALUES(?,?,?,0,?)",
            (title, message, severity, db.now_iso()),
        )
    except sqlite3.Error:
        logger.exception("Failed to create notification %r", title)


def list_notifications(unread_only: bool = False, limit: int = 50) -> list[Notification]:
    sql = "SELECT * FROM notifications"
    if unread_only:
        sql += " WHERE read = 0"
    sql += " ORDER BY created_at DESC, id DESC LIMIT ?"
    with db.guarded("fetch notifications"):
        rows = db.fetch_all(sql, (limit,))
    return [Notification.from_row(r) for r in rows]


def unread_count() -> int:
    with db.guarded("count notifications"):
        return int(db.fetch_one("SELECT COUNT(*) AS c FROM notifications WHERE read = 0")["c"])


def mark_read(notification_id: int) -> bool:
    with db.guarded("update notification"):
        return db.execute_rowcount("UPDATE notifications SET read = 1 WHERE id = ?", (notification_id,)) > 0


def mark_all_read() -> int:
    with db.guarded("update notifications"):
        return db.execute_rowcount("UPDATE notifications SET read = 1 WHERE read = 0")


def delete_notification(notification_id: int) -> bool:
    with db.guarded("delete notification"):
        return db.execute_rowcount("DELETE FROM notifications WHERE id = ?", (notification_id,)) > 0


def delete_older_than(days: int = 7, now: datetime | None = None) -> int:
    cutoff = ((now or datetime.now()) - timedelta(days=days)).isoformat(timespec="seconds")
    with db.guarded("delete notifications"):
        deleted = db.execute_rowcount("DELETE FROM notifications WHERE created_at < ?", (cutoff,))
    if deleted:
        logger.info("Pruned %d notifications older than %d days", deleted, days)
    return deleted


def _recent_messages(title: str, since: str) -> set[str]:
    rows = db.fetch_all(
        "SELECT message FROM notifications WHERE title = ? AND created_at >= ?",
        (title, since),
    )
    return {r["message"] for r in rows}


def ensure_overdue_notifications(today: date | None = None) -> int:
    """
    Create "Payment Overdue" / "Expense Overdue" notifications, skipping any
    message already emitted in the last 24 hours. Returns how many were created.
    """
    today = today or date.today()
    since = (datetime.now() - timedelta(hours=24)).isoformat(timespec="seconds")
    created = 0

    with db.guarded("check overdue items"):
        seen = _recent_messages("Payment Overdue", since)
        rows = db.fetch_all(
            """
            SELECT name, member_id, payment_amount FROM members
            WHERE payment_status = 'unpaid' AND expiry_date < ?
            ORDER BY expiry_date ASC
            """,
            (today.isoformat(),),
        )
    for r in rows:
        msg = f"Payment of Rs.{float(r['payment_amount'] or 0):.2f} from {r['name']} ({r['member_id']}) is overdue."
        if msg not in seen:
            emit("Payment Overdue", msg, "error")
            seen.add(msg)
            created += 1

    with db.guarded("check overdue items"):
        seen = _recent_messages("Expense Overdue", since)
        rows = db.fetch_all(
            """
            SELECT description, amount, date FROM expenses
            WHERE status = 'overdue' OR (status = 'pending' AND date < ?)
            ORDER BY date ASC
            """,
            (today.isoformat(),),
        )
    for r in rows:
        desc = r["description"] or "Unspecified expense"
        msg = f"{desc} (Rs.{float(r['amount']):.2f}) was due on {r['date']}."
        if msg not in seen:
            emit("Expense Overdue", msg, "warning")
            seen.add(msg)
            created += 1

    return created
