"""
dashboard.py
Dashboard aggregates: members expiring this month, 12-month financial and
payments series, period overview with changes against the previous period.

The aggregators are pure: they take members/plans/expenses lists and an
explicit `today`. load_dashboard() reads the database and calls them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta

import pandas as pd

import expenses as expenses_repo
import members as members_repo
import plans as plans_repo
import utils
from models import MONTH_LABELS, Expense, Member, MembershipPlan

PERIODS = ("monthly", "quarterly", "half-yearly", "yearly")


@dataclass(frozen=True)
class ExpiringMember:
    member_id: str
    name: str
    email: str
    phone: str
    membership_type: str
    expiry_date: str
    days_remaining: int


@dataclass(frozen=True)
class Overview:
    revenue: float
    new_customers: int
    active_accounts: int
    growth_rate: float
    revenue_change: float
    customers_change: float
    accounts_change: float
    growth_change: float


def _as_date(today: date | datetime) -> date:
    # time of day is dropped so day differences are whole days
    return today.date() if isinstance(today, datetime) else today


# ---------- Expiring this month ----------

def expiring_members(members: list[Member], plans: list[MembershipPlan], today: date | datetime,
                     year: int | None = None, month: int | None = None) -> list[ExpiringMember]:
    """
    Active members whose plan-derived expiry falls in (year, month), default
    the current month, soonest first. Members with equal days remaining keep
    their input order.
    """
    today = _as_date(today)
    year = year or today.year
    month = month or today.month
    durations = {p.name: p.duration for p in plans}

    rows = []
    for m in members:
        if m.status != "active":
            continue
        expiry = utils.parse_iso(utils.calc_expiry_date(m.join_date, durations.get(m.membership_type)))
        if (expiry.year, expiry.month) != (year, month):
            continue
        rows.append(ExpiringMember(
            member_id=m.member_id,
            name=m.name,
            email=m.email or "",
            phone=m.phone or "",
            membership_type=m.membership_type,
            expiry_date=expiry.isoformat(),
            days_remaining=(expiry - today).days,
        ))
    return sorted(rows, key=lambda r: r.days_remaining)


# ---------- Financial chart ----------

def _monthly_sum(pairs: list[tuple[str, float]], periods: pd.PeriodIndex) -> pd.Series:
    if not pairs:
        return pd.Series(0.0, index=periods)
    frame = pd.DataFrame(pairs, columns=["date", "amount"])
    frame["period"] = pd.to_datetime(frame["date"]).dt.to_period("M")
    return frame.groupby("period")["amount"].sum().reindex(periods, fill_value=0.0).astype(float)


def financial_series(members: list[Member], expenses: list[Expense], today: date | datetime) -> pd.DataFrame:
    """
    Revenue (member payments by join month), expenses and profit for the
    12 months ending with the current one, oldest first.
    """
    today = _as_date(today)
    periods = pd.period_range(end=pd.Period(year=today.year, month=today.month, freq="M"), periods=12, freq="M")

    revenue = _monthly_sum([(m.join_date, m.payment_amount) for m in members], periods).round(2)
    spent = _monthly_sum([(e.date, e.amount) for e in expenses], periods).round(2)

    df = pd.DataFrame({
        "period": [str(p) for p in periods],
        "month": [MONTH_LABELS[p.month - 1] for p in periods],
        "revenue": revenue.to_numpy(),
        "expenses": spent.to_numpy(),
    })
    df["profit"] = (df["revenue"] - df["expenses"]).round(2)
    return df


def payments_series(members: list[Member], today: date | datetime) -> pd.DataFrame:
    """
    Payments received (paid members) and still due (unpaid members), by join
    month, for the 12 months ending with the current one.
    """
    today = _as_date(today)
    periods = pd.period_range(end=pd.Period(year=today.year, month=today.month, freq="M"), periods=12, freq="M")

    received = _monthly_sum(
        [(m.join_date, m.payment_amount) for m in members if m.payment_status == "paid"], periods
    ).round(2)
    due = _monthly_sum(
        [(m.join_date, m.payment_amount) for m in members if m.payment_status == "unpaid"], periods
    ).round(2)

    return pd.DataFrame({
        "period": [str(p) for p in periods],
        "month": [MONTH_LABELS[p.month - 1] for p in periods],
        "received": received.to_numpy(),
        "due": due.to_numpy(),
    })


# ---------- Overview ----------

def _month_start(year: int, month: int) -> date:
    # normalizes month outside 1..12
    return date(year + (month - 1) // 12, (month - 1) % 12 + 1, 1)


def period_range(period: str, ref: date) -> tuple[date, date]:
    """First and last day of the period containing ref."""
    if period == "quarterly":
        first = (ref.month - 1) // 3 * 3 + 1
        last = first + 2
    elif period == "half-yearly":
        first, last = (1, 6) if ref.month <= 6 else (7, 12)
    elif period == "yearly":
        first, last = 1, 12
    else:
        first = last = ref.month
    start = date(ref.year, first, 1)
    end = _month_start(ref.year, last + 1) - timedelta(days=1)
    return start, end


def previous_period_range(period: str, ref: date) -> tuple[date, date]:
    if period == "yearly":
        return period_range(period, date(ref.year - 1, ref.month, 1))
    start, _ = period_range(period, ref)
    return period_range(period, start - timedelta(days=1))


def _pct_change(current: float, previous: float) -> float:
    if previous != 0:
        return (current - previous) / abs(previous) * 100
    return 100.0 if current != 0 else 0.0


def overview(members: list[Member], expenses: list[Expense], today: date | datetime,
             period: str = "monthly") -> Overview:
    today = _as_date(today)
    if period not in PERIODS:
        period = "monthly"
    start, end = period_range(period, today)
    prev_start, prev_end = previous_period_range(period, today)

    def joined(lo: date, hi: date) -> list[Member]:
        return [m for m in members if lo <= utils.parse_iso(m.join_date) <= hi]

    def spent(lo: date, hi: date) -> float:
        return sum(e.amount for e in expenses if lo <= utils.parse_iso(e.date) <= hi)

    current, previous = joined(start, end), joined(prev_start, prev_end)
    revenue = sum(m.payment_amount for m in current)
    prev_revenue = sum(m.payment_amount for m in previous)

    active = sum(1 for m in members if m.status == "active")
    prev_active = sum(
        1 for m in members
        if utils.parse_iso(m.join_date) <= prev_end and utils.parse_iso(m.expiry_date) >= prev_end
    )

    growth = (revenue - spent(start, end)) / revenue * 100 if revenue > 0 else 0.0
    prev_growth = (prev_revenue - spent(prev_start, prev_end)) / prev_revenue * 100 if prev_revenue > 0 else 0.0

    return Overview(
        revenue=revenue,
        new_customers=len(current),
        active_accounts=active,
        growth_rate=growth,
        revenue_change=_pct_change(revenue, prev_revenue),
        customers_change=_pct_change(len(current), len(previous)),
        accounts_change=_pct_change(active, prev_active),
        growth_change=_pct_change(growth, prev_growth),
    )


def load_dashboard(today: date | None = None, period: str = "monthly") -> dict:
    today = today or date.today()
    members = members_repo.all_members()
    expenses = expenses_repo.all_expenses()
    return {
        "overview": overview(members, expenses, today, period),
        "expiring": expiring_members(members, plans_repo.all_plans(), today),
        "financial": financial_series(members, expenses, today),
        "payments": payments_series(members, today),
    }
