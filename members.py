"""
members.py
Member creation (ID allocation + expiry), lookups, partial updates, deletes.

Member IDs look like 5JA01: see utils.encode_member_id(). The sequence part is
"members who already joined that month + 1", counted and inserted inside one
BEGIN IMMEDIATE transaction so concurrent writers cannot read the same count.
members.member_id is UNIQUE. When the counted number is already taken (a deleted
member left a gap, or the same month ten years earlier) the smallest free
number above it is used instead. A UNIQUE violation from a concurrent writer is
retried up to settings.member_id_max_attempts times.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date

import db
import notifications
import plans
import utils
from config import settings
from errors import ConflictError, NotFoundError
from models import MEMBER_STATUSES, PAYMENT_STATUSES, Member

logger = logging.getLogger(__name__)

_COUNT_JOINED_IN_MONTH = "SELECT COUNT(*) AS c FROM members WHERE strftime('%Y-%m', join_date) = ?"


# ---------- Sequence allocation ----------

def count_members_joined_in_month(year: int, month: int, conn: sqlite3.Connection | None = None) -> int:
    params = (f"{year:04d}-{month:02d}",)
    if conn is None:
        row = db.fetch_one(_COUNT_JOINED_IN_MONTH, params)
    else:
        row = conn.execute(_COUNT_JOINED_IN_MONTH, params).fetchone()
    return int(row["c"])


def next_sequential_number(join_date: str | date, conn: sqlite3.Connection | None = None) -> int:
    d = utils.parse_iso(join_date)
    return count_members_joined_in_month(d.year, d.month, conn) + 1


def preview_member(join_date: str | date, plan_name: str) -> tuple[str, str]:
    """
    (member_id, expiry_date) the add-member form shows before saving.
    The ID is advisory: create_member() allocates its own.
    """
    with db.guarded("preview member"):
        member_id = utils.encode_member_id(join_date, next_sequential_number(join_date))
    return member_id, plans.compute_expiry(join_date, plan_name)


# ---------- Create ----------

def _validate_new(request: dict) -> dict:
    # Checked in this order; the first failure is reported.
    values = {
        "name": utils.require_text(request.get("name"), "name", "Name"),
        "membership_type": utils.require_text(request.get("membership_type"), "membership_type", "Membership type"),
        "phone": utils.require_text(request.get("phone"), "phone", "Phone"),
        "join_date": utils.require_date(request.get("join_date"), "join_date", "Join date"),
    }
    expiry = request.get("expiry_date")
    if expiry is not None and str(expiry).strip():
        values["expiry_date"] = utils.require_date(expiry, "expiry_date", "Expiry date")
    else:
        values["expiry_date"] = None
    values["status"] = utils.require_choice(request.get("status"), MEMBER_STATUSES, "status", "Status")
    values["payment_status"] = utils.require_choice(
        request.get("payment_status"), PAYMENT_STATUSES, "payment_status", "Payment status"
    )
    values["payment_amount"] = utils.require_amount(
        request.get("payment_amount", 0) or 0, "payment_amount", "Payment amount"
    )
    values["email"] = utils.optional_text(request.get("email"))
    return values


def _next_free_number(join_date: str, conn: sqlite3.Connection) -> int:
    """Count-based sequence, bumped past any suffix already taken for that code."""
    seq = next_sequential_number(join_date, conn)
    prefix = utils.encode_member_id(join_date, 0)[:-2]
    taken = {
        r["member_id"]
        for r in conn.execute("SELECT member_id FROM members WHERE member_id LIKE ?", (prefix + "%",))
    }
    while utils.encode_member_id(join_date, seq) in taken:
        seq += 1
    return seq


def _insert(values: dict) -> Member:
    attempts = settings.member_id_max_attempts
    for attempt in range(attempts):
        member_id = None
        try:
            with db.transaction() as conn:
                member_id = utils.encode_member_id(values["join_date"], _next_free_number(values["join_date"], conn))
                now = db.now_iso()
                conn.execute(
                    """
                    INSERT INTO members(member_id, name, email, phone, membership_type, join_date,
                        expiry_date, status, payment_status, payment_amount, created_at, updated_at)
                    VALUES(?,?,?,?,?,?,?,?,?,?,?,?)
                    """,
                    (member_id, values["name"], values["email"], values["phone"], values["membership_type"],
                     values["join_date"], values["expiry_date"], values["status"], values["payment_status"],
                     values["payment_amount"], now, now),
                )
                row = conn.execute("SELECT * FROM members WHERE member_id = ?", (member_id,)).fetchone()
            return Member.from_row(row)
        except sqlite3.IntegrityError:
            logger.warning("Member ID %s is taken (attempt %d of %d)", member_id, attempt + 1, attempts)
    raise ConflictError("Could not allocate member identifier")


def create_member(request: dict) -> Member:
    """
    Validate a new-member request, allocate its ID and store it.

    expiry_date may be omitted, in which case it is derived from the plan.
    Raises ValidationError, ConflictError or InfrastructureError; on any of
    them nothing is stored and no notification is sent.
    """
    values = _validate_new(request)
    with db.guarded("create member"):
        if values["expiry_date"] is None:
            values["expiry_date"] = plans.compute_expiry(values["join_date"], values["membership_type"])
        member = _insert(values)

    logger.info("Created member %s (%s)", member.member_id, member.name)
    notifications.emit(
        "New Member Registration",
        f"{member.name} has registered for a {member.membership_type} membership plan.",
        "success",
    )
    return member


# ---------- Read ----------

def get_member(member_id: str) -> Member:
    with db.guarded("fetch member"):
        row = db.fetch_one("SELECT * FROM members WHERE member_id = ?", (member_id,))
    if not row:
        raise NotFoundError("Member", member_id)
    return Member.from_row(row)


def list_members(page: int = 1, limit: int = 10, search: str | None = None) -> db.Page:
    with db.guarded("fetch members"):
        return db.paginate(
            "members", "*", search, ("name", "email", "member_id"), "created_at DESC, id DESC",
            page=page, limit=limit, mapper=Member.from_row,
        )


def all_members() -> list[Member]:
    with db.guarded("fetch members"):
        return [Member.from_row(r) for r in db.fetch_all("SELECT * FROM members ORDER BY id ASC")]


# ---------- Update / delete ----------

def _validate_partial(data: dict) -> dict:
    values = {}
    for field, label in (("name", "Name"), ("membership_type", "Membership type"), ("phone", "Phone")):
        if field in data:
            values[field] = utils.require_text(data[field], field, label)
    if "email" in data:
        values["email"] = utils.optional_text(data["email"])
    for field, label in (("join_date", "Join date"), ("expiry_date", "Expiry date")):
        if field in data:
            values[field] = utils.require_date(data[field], field, label)
    if "status" in data:
        values["status"] = utils.require_choice(data["status"], MEMBER_STATUSES, "status", "Status")
    if "payment_status" in data:
        values["payment_status"] = utils.require_choice(
            data["payment_status"], PAYMENT_STATUSES, "payment_status", "Payment status"
        )
    if "payment_amount" in data:
        values["payment_amount"] = utils.require_amount(data["payment_amount"], "payment_amount", "Payment amount")
    return values


def update_member(member_id: str, data: dict) -> Member:
    """Apply a partial update. The member ID itself never changes."""
    values = _validate_partial(data)
    existing = get_member(member_id)
    if not values:
        return existing

    sets = ", ".join(f"{k} = ?" for k in values)
    with db.guarded("update member"):
        db.execute(
            f"UPDATE members SET {sets}, updated_at = ? WHERE member_id = ?",
            tuple(values.values()) + (db.now_iso(), member_id),
        )
    member = get_member(member_id)

    if values.get("payment_status") == "paid" and existing.payment_status != "paid":
        notifications.emit(
            "Payment Received",
            f"Payment of Rs.{member.payment_amount:.2f} received from {member.name}.",
            "success",
        )
    elif values.get("payment_status") != "paid" or "name" in values:
        notifications.emit("Member Updated", f"{member.name}'s member record has been updated.", "info")
    return member


def delete_member(member_id: str) -> None:
    existing = get_member(member_id)
    with db.guarded("delete member"):
        db.execute("DELETE FROM members WHERE member_id = ?", (member_id,))
    logger.info("Deleted member %s (%s)", member_id, existing.name)
    notifications.emit(
        "Member Deleted",
        f"{existing.name} ({member_id}) has been removed from the system.",
        "info",
    )


def refresh_member_statuses(today: date | None = None) -> int:
    """Mark active members whose expiry date has passed as expired."""
    today = today or date.today()
    with db.guarded("refresh member statuses"):
        return db.execute_rowcount(
            "UPDATE members SET status = 'expired', updated_at = ? WHERE status = 'active' AND expiry_date < ?",
            (db.now_iso(), today.isoformat()),
        )
