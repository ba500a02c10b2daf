"""
trainers.py
Trainers and staff.
"""

from __future__ import annotations

import logging

import db
import notifications
import utils
from errors import NotFoundError
from models import TRAINER_ROLES, TRAINER_STATUSES, Trainer

logger = logging.getLogger(__name__)


def list_trainers(page: int = 1, limit: int = 10, search: str | None = None) -> db.Page:
    with db.guarded("fetch trainers"):
        return db.paginate(
            "trainers", "*", search, ("name", "email", "phone"), "created_at DESC, id DESC",
            page=page, limit=limit, mapper=Trainer.from_row,
        )


def get_trainer(trainer_id: int) -> Trainer:
    with db.guarded("fetch trainer"):
        row = db.fetch_one("SELECT * FROM trainers WHERE id = ?", (trainer_id,))
    if not row:
        raise NotFoundError("Trainer", trainer_id)
    return Trainer.from_row(row)


def _clean(data: dict, partial: bool) -> dict:
    out = {}
    if not partial or "name" in data:
        out["name"] = utils.require_text(data.get("name"), "name", "Name")
    if "email" in data:
        out["email"] = utils.optional_text(data.get("email"))
    if not partial or "phone" in data:
        out["phone"] = utils.require_text(data.get("phone"), "phone", "Phone")
    if not partial or "role" in data:
        out["role"] = utils.require_choice(data.get("role"), TRAINER_ROLES, "role", "Role")
    if not partial or "hire_date" in data:
        out["hire_date"] = utils.require_date(data.get("hire_date"), "hire_date", "Hire date")
    if partial and "status" in data:
        out["status"] = utils.require_choice(data["status"], TRAINER_STATUSES, "status", "Status")
    elif not partial:
        # anything but "inactive" means active
        out["status"] = "inactive" if data.get("status") == "inactive" else "active"
    return out


def create_trainer(data: dict) -> Trainer:
    values = _clean(data, partial=False)
    now = db.now_iso()
    with db.guarded("create trainer"):
        trainer_id = db.execute(
            """
            INSERT INTO trainers(name, email, phone, role, hire_date, status, created_at, updated_at)
            VALUES(?,?,?,?,?,?,?,?)
            """,
            (values["name"], values.get("email"), values["phone"], values["role"], values["hire_date"],
             values["status"], now, now),
        )
    logger.info("Created %s %r", values["role"].lower(), values["name"])
    notifications.emit(
        "New Trainer Added",
        f"{values['name']} has been added as a new {values['role'].lower()}.",
        "info",
    )
    return get_trainer(trainer_id)


def update_trainer(trainer_id: int, data: dict) -> Trainer:
    values = _clean(data, partial=True)
    existing = get_trainer(trainer_id)
    if not values:
        return existing
    sets = ", ".join(f"{k} = ?" for k in values)
    with db.guarded("update trainer"):
        db.execute(
            f"UPDATE trainers SET {sets}, updated_at = ? WHERE id = ?",
            tuple(values.values()) + (db.now_iso(), trainer_id),
        )
    trainer = get_trainer(trainer_id)
    notifications.emit("Trainer Updated", f"{trainer.name}'s record has been updated.", "info")
    return trainer


def delete_trainer(trainer_id: int) -> None:
    existing = get_trainer(trainer_id)
    with db.guarded("delete trainer"):
        db.execute("DELETE FROM trainers WHERE id = ?", (trainer_id,))
    notifications.emit("Trainer Deleted", f"{existing.name} has been removed from the system.", "info")
