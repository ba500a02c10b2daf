"""
plans.py
Membership plans: CRUD, lookup by name, expiry for a plan.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date

import db
import notifications
import utils
from errors import ConflictError, NotFoundError
from models import PLAN_STATUSES, MembershipPlan

logger = logging.getLogger(__name__)


def find_plan_by_name(name: str) -> MembershipPlan | None:
    with db.guarded("fetch membership plan"):
        row = db.fetch_one("SELECT * FROM membership_plans WHERE name = ?", ((name or "").strip(),))
    return MembershipPlan.from_row(row) if row else None


def compute_expiry(join_date: str | date, plan_name: str) -> str:
    """
    Expiry for a member joining plan_name on join_date. An unknown plan is
    not an error: it falls back to one month.
    """
    plan = find_plan_by_name(plan_name)
    if plan is None:
        logger.info("Plan %r not found, defaulting expiry to one month", plan_name)
    return utils.calc_expiry_date(join_date, plan.duration if plan else None)


def all_plans() -> list[MembershipPlan]:
    with db.guarded("fetch membership plans"):
        rows = db.fetch_all("SELECT * FROM membership_plans ORDER BY price ASC, id ASC")
    return [MembershipPlan.from_row(r) for r in rows]


def list_plans(page: int = 1, limit: int = 10, search: str | None = None) -> db.Page:
    with db.guarded("fetch membership plans"):
        return db.paginate(
            "membership_plans", "*", search, ("name", "features"), "created_at DESC, id DESC",
            page=page, limit=limit, mapper=MembershipPlan.from_row,
        )


def get_plan(plan_id: int) -> MembershipPlan:
    with db.guarded("fetch membership plan"):
        row = db.fetch_one("SELECT * FROM membership_plans WHERE id = ?", (plan_id,))
    if not row:
        raise NotFoundError("Membership plan", plan_id)
    return MembershipPlan.from_row(row)


def _clean(data: dict, partial: bool) -> dict:
    out = {}
    if not partial or "name" in data:
        out["name"] = utils.require_text(data.get("name"), "name", "Name")
    if not partial or "price" in data:
        out["price"] = utils.require_amount(data.get("price"), "price", "Price")
    if not partial or "duration" in data:
        out["duration"] = utils.require_text(data.get("duration"), "duration", "Duration")
    if "features" in data:
        out["features"] = utils.optional_text(data.get("features"))
    if not partial or "status" in data:
        out["status"] = utils.require_choice(data.get("status", "active"), PLAN_STATUSES, "status", "Status")
    return out


def create_plan(data: dict) -> MembershipPlan:
    values = _clean(data, partial=False)
    now = db.now_iso()
    with db.guarded("create membership plan"):
        try:
            plan_id = db.execute(
                """
                INSERT INTO membership_plans(name, price, duration, features, status, created_at, updated_at)
                VALUES(?,?,?,?,?,?,?)
                """,
                (values["name"], values["price"], values["duration"], values.get("features"),
                 values["status"], now, now),
            )
        except sqlite3.IntegrityError:
            raise ConflictError(f"A plan named {values['name']!r} already exists") from None
    logger.info("Created membership plan %r", values["name"])
    notifications.emit(
        "Membership Plan Created",
        f"New membership plan \"{values['name']}\" (Rs.{values['price']:.2f}) has been added.",
        "info",
    )
    return get_plan(plan_id)


def update_plan(plan_id: int, data: dict) -> MembershipPlan:
    values = _clean(data, partial=True)
    existing = get_plan(plan_id)
    if not values:
        return existing
    sets = ", ".join(f"{k} = ?" for k in values)
    with db.guarded("update membership plan"):
        try:
            db.execute(
                f"UPDATE membership_plans SET {sets}, updated_at = ? WHERE id = ?",
                tuple(values.values()) + (db.now_iso(), plan_id),
            )
        except sqlite3.IntegrityError:
            raise ConflictError(f"A plan named {values.get('name')!r} already exists") from None
    plan = get_plan(plan_id)
    notifications.emit("Membership Plan Updated", f"Membership plan \"{plan.name}\" has been updated.", "info")
    return plan


def delete_plan(plan_id: int) -> None:
    plan = get_plan(plan_id)
    with db.guarded("delete membership plan"):
        db.execute("DELETE FROM membership_plans WHERE id = ?", (plan_id,))
    logger.info("Deleted membership plan %r", plan.name)
    notifications.emit("Membership Plan Deleted", f"Membership plan \"{plan.name}\" has been removed.", "info")
