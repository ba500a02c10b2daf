"""
expenses.py
Gym expenses (rent, equipment, salaries, ...).
"""

from __future__ import annotations

import logging

import db
import notifications
import utils
from errors import NotFoundError
from models import EXPENSE_STATUSES, Expense

logger = logging.getLogger(__name__)


def list_expenses(page: int = 1, limit: int = 10, search: str | None = None) -> db.Page:
    with db.guarded("fetch expenses"):
        return db.paginate(
            "expenses", "*", search, ("category", "description", "vendor"), "date DESC, id DESC",
            page=page, limit=limit, mapper=Expense.from_row,
        )


def all_expenses() -> list[Expense]:
    with db.guarded("fetch expenses"):
        return [Expense.from_row(r) for r in db.fetch_all("SELECT * FROM expenses ORDER BY date ASC, id ASC")]


def get_expense(expense_id: int) -> Expense:
    with db.guarded("fetch expense"):
        row = db.fetch_one("SELECT * FROM expenses WHERE id = ?", (expense_id,))
    if not row:
        raise NotFoundError("Expense", expense_id)
    return Expense.from_row(row)


def _clean(data: dict, partial: bool) -> dict:
    out = {}
    if not partial or "category" in data:
        out["category"] = utils.require_text(data.get("category"), "category", "Category")
    if "description" in data:
        out["description"] = utils.optional_text(data.get("description"))
    if not partial or "amount" in data:
        out["amount"] = utils.require_amount(data.get("amount"), "amount", "Amount")
    if not partial or "date" in data:
        out["date"] = utils.require_date(data.get("date"), "date", "Date")
    if not partial or "status" in data:
        out["status"] = utils.require_choice(data.get("status", "pending"), EXPENSE_STATUSES, "status", "Status")
    if "vendor" in data:
        out["vendor"] = utils.optional_text(data.get("vendor"))
    return out


def _label(expense: Expense) -> str:
    return f"{expense.description or expense.category} (Rs.{expense.amount:.2f})"


def create_expense(data: dict) -> Expense:
    values = _clean(data, partial=False)
    now = db.now_iso()
    with db.guarded("create expense"):
        expense_id = db.execute(
            """
            INSERT INTO expenses(category, description, amount, date, status, vendor, created_at, updated_at)
            VALUES(?,?,?,?,?,?,?,?)
            """,
            (values["category"], values.get("description"), values["amount"], values["date"],
             values["status"], values.get("vendor"), now, now),
        )
    expense = get_expense(expense_id)
    logger.info("Recorded expense %d: %s", expense_id, _label(expense))
    notifications.emit("Expense Added", f"{_label(expense)} has been recorded.", "info")
    return expense


def update_expense(expense_id: int, data: dict) -> Expense:
    values = _clean(data, partial=True)
    existing = get_expense(expense_id)
    if not values:
        return existing
    sets = ", ".join(f"{k} = ?" for k in values)
    with db.guarded("update expense"):
        db.execute(
            f"UPDATE expenses SET {sets}, updated_at = ? WHERE id = ?",
            tuple(values.values()) + (db.now_iso(), expense_id),
        )
    expense = get_expense(expense_id)
    notifications.emit("Expense Updated", f"{_label(expense)} has been updated.", "info")
    return expense


def delete_expense(expense_id: int) -> None:
    existing = get_expense(expense_id)
    with db.guarded("delete expense"):
        db.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))
    notifications.emit("Expense Deleted", f"{_label(existing)} has been removed.", "info")
