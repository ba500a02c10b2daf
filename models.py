"""
models.py
Lightweight domain helpers (lookup tables, dataclasses).
"""

from __future__ import annotations

from dataclasses import dataclass

# Two-letter codes embedded in member IDs
MONTH_CODES = {
    1: "JA",
    2: "FE",
    3: "MR",
    4: "AP",
    5: "MY",
    6: "JN",
    7: "JL",
    8: "AU",
    9: "SE",
    10: "OC",
    11: "NO",
    12: "DE",
}
UNKNOWN_MONTH_CODE = "XX"

MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

MEMBER_STATUSES = ("active", "inactive", "expired")
PAYMENT_STATUSES = ("paid", "unpaid")
PLAN_STATUSES = ("active", "inactive")
TRAINER_ROLES = ("Trainer", "Staff")
TRAINER_STATUSES = ("active", "inactive")
EXPENSE_STATUSES = ("paid", "pending", "overdue")
NOTIFICATION_TYPES = ("info", "success", "warning", "error")


@dataclass(frozen=True)
class Member:
    id: int | None
    member_id: str
    name: str
    email: str | None
    phone: str
    membership_type: str
    join_date: str
    expiry_date: str
    status: str  # active/inactive/expired
    payment_status: str  # paid/unpaid
    payment_amount: float
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row) -> "Member":
        return cls(
            id=row["id"],
            member_id=row["member_id"],
            name=row["name"],
            email=row["email"],
            phone=row["phone"],
            membership_type=row["membership_type"],
            join_date=row["join_date"],
            expiry_date=row["expiry_date"],
            status=row["status"],
            payment_status=row["payment_status"],
            payment_amount=float(row["payment_amount"] or 0),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass(frozen=True)
class MembershipPlan:
    id: int | None
    name: str
    price: float
    duration: str  # free text: "1 month", "3 months", "1 year"
    features: str | None
    status: str  # active/inactive

    @classmethod
    def from_row(cls, row) -> "MembershipPlan":
        return cls(
            id=row["id"],
            name=row["name"],
            price=float(row["price"]),
            duration=row["duration"],
            features=row["features"],
            status=row["status"],
        )


@dataclass(frozen=True)
class Trainer:
    id: int | None
    name: str
    email: str | None
    phone: str
    role: str  # Trainer/Staff
    hire_date: str
    status: str

    @classmethod
    def from_row(cls, row) -> "Trainer":
        return cls(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            phone=row["phone"],
            role=row["role"],
            hire_date=row["hire_date"],
            status=row["status"],
        )


@dataclass(frozen=True)
class Expense:
    id: int | None
    category: str
    description: str | None
    amount: float
    date: str
    status: str  # paid/pending/overdue
    vendor: str | None

    @classmethod
    def from_row(cls, row) -> "Expense":
        return cls(
            id=row["id"],
            category=row["category"],
            description=row["description"],
            amount=float(row["amount"]),
            date=row["date"],
            status=row["status"],
            vendor=row["vendor"],
        )


@dataclass(frozen=True)
class Notification:
    id: int
    title: str
    message: str
    type: str
    read: bool
    created_at: str

    @classmethod
    def from_row(cls, row) -> "Notification":
        return cls(
            id=row["id"],
            title=row["title"],
            message=row["message"],
            type=row["type"],
            read=bool(row["read"]),
            created_at=row["created_at"],
        )
