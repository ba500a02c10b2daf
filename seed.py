"""
seed.py
Sample data for trying the app out (Settings page button).
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

import expenses
import members
import plans
import trainers
from errors import ConflictError

logger = logging.getLogger(__name__)

SAMPLE_PLANS = [
    {"name": "Basic", "price": 5000.0, "duration": "1 month",
     "features": "Access to gym facilities, Basic equipment usage, Locker access"},
    {"name": "Premium", "price": 15000.0, "duration": "3 months",
     "features": "All Basic features, Group fitness classes, Personal trainer consultation (1 session)"},
    {"name": "Gold", "price": 30000.0, "duration": "6 months",
     "features": "All Premium features, Unlimited personal trainer sessions, Priority booking"},
    {"name": "Platinum", "price": 50000.0, "duration": "1 year",
     "features": "All Gold features, VIP lounge access, 24/7 gym access, Spa and sauna access"},
]


def insert_sample_plans() -> int:
    """Add the four standard plans, skipping names that already exist."""
    added = 0
    for plan in SAMPLE_PLANS:
        try:
            plans.create_plan(plan)
            added += 1
        except ConflictError:
            logger.info("Plan %r already exists, skipped", plan["name"])
    return added


def insert_sample_data() -> None:
    """
    Insert plans, 3 members, a trainer and a few expenses
    (members/expenses are added again on every run).
    """
    today = date.today()
    insert_sample_plans()

    samples = [
        ("Ahmed Hassan", "01000000001", "Basic", today - timedelta(days=25), "paid", 5000.0),
        ("Mona Ali", "01000000002", "Premium", today - timedelta(days=10), "paid", 15000.0),
        ("Omar Samy", "01000000003", "Basic", today - timedelta(days=60), "unpaid", 5000.0),
    ]
    for name, phone, plan, joined, payment_status, amount in samples:
        expiry = plans.compute_expiry(joined, plan)
        members.create_member({
            "name": name,
            "phone": phone,
            "membership_type": plan,
            "join_date": joined.isoformat(),
            "expiry_date": expiry,
            "status": "active" if expiry >= today.isoformat() else "expired",
            "payment_status": payment_status,
            "payment_amount": amount,
        })

    trainers.create_trainer({
        "name": "Karim Adel", "phone": "01000000010", "role": "Trainer", "hire_date": today.isoformat(),
    })

    for category, description, amount, days_ago, status in [
        ("Rent", "Monthly rent", 20000.0, 3, "paid"),
        ("Utilities", "Electricity bill", 3500.0, 12, "pending"),
        ("Equipment", "Treadmill service", 1800.0, 40, "paid"),
    ]:
        expenses.create_expense({
            "category": category,
            "description": description,
            "amount": amount,
            "date": (today - timedelta(days=days_ago)).isoformat(),
            "status": status,
        })
