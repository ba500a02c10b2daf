"""
utils.py
Validation, dates, member ID encoding, expiry calculation, exports.

encode_member_id() and calc_expiry_date() are the only implementations of
those rules; the add-member preview, member creation and the dashboard all
call them.
"""

from __future__ import annotations

import re
from dataclasses import asdict, is_dataclass
from datetime import date, timedelta

import pandas as pd

from errors import ValidationError
from models import MONTH_CODES, UNKNOWN_MONTH_CODE

_LEADING_INT = re.compile(r"\d+")


def today_iso() -> str:
    return date.today().isoformat()


def parse_iso(d: str | date) -> date:
    if isinstance(d, date):
        return d
    return date.fromisoformat(d)


def add_months(start: date, months: int) -> date:
    """
    Add months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    # last day of target month
    if m == 12:
        next_month = date(y + 1, 1, 1)
    else:
        next_month = date(y, m + 1, 1)
    last_day = next_month - timedelta(days=1)
    day = min(start.day, last_day.day)
    return date(y, m, day)


def add_years(start: date, years: int) -> date:
    # Feb 29 lands on Feb 28 in a non-leap target year
    return add_months(start, 12 * years)


# ---------- Member IDs ----------

def month_code(month: int) -> str:
    return MONTH_CODES.get(month, UNKNOWN_MONTH_CODE)


def encode_member_id(join_date: str | date, sequential_number: int) -> str:
    """
    Build the 5-character member ID: last digit of the join year, two-letter
    month code, sequence number padded to two digits.

    5JA01 = first member who joined in January 2025 (or 2015, 2035...).
    Numbers >= 100 are not truncated and give a longer ID.
    """
    d = parse_iso(join_date)
    return f"{d.year % 10}{month_code(d.month)}{sequential_number:02d}"


# ---------- Expiry ----------

def duration_months(duration: str) -> int:
    """Leading integer of a duration like '3 months'; 1 when missing or 0."""
    tokens = duration.split()
    match = _LEADING_INT.match(tokens[0]) if tokens else None
    months = int(match.group()) if match else 0
    return months or 1


def calc_expiry_date(join_date: str | date, duration: str | None) -> str:
    """
    Expiry date for a membership starting on join_date.

    - duration mentions "year": +1 year (a leading number is ignored)
    - duration mentions "month": +N months, N = leading integer (default 1)
    - anything else, including no plan: +1 month
    """
    start = parse_iso(join_date)
    text = (duration or "").lower()
    if "year" in text:
        end = add_years(start, 1)
    elif "month" in text:
        end = add_months(start, duration_months(text))
    else:
        end = add_months(start, 1)
    return end.isoformat()


def infer_status(expiry_date_iso: str, today: date | None = None) -> str:
    today = today or date.today()
    return "active" if parse_iso(expiry_date_iso) >= today else "expired"


# ---------- Validation ----------

def require_text(value, field: str, label: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"{label} is required", field=field)
    return text


def optional_text(value) -> str | None:
    if value is None:
        return None
    return str(value).strip() or None


def require_date(value, field: str, label: str) -> str:
    text = require_text(value, field, label)
    try:
        return parse_iso(text).isoformat()
    except ValueError:
        raise ValidationError(f"{label} must be a valid ISO date (YYYY-MM-DD)", field=field) from None


def require_choice(value, choices: tuple[str, ...], field: str, label: str) -> str:
    if value not in choices:
        raise ValidationError(f"{label} must be one of: {', '.join(choices)}", field=field)
    return value


def require_amount(value, field: str, label: str) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be numeric", field=field) from None
    if amount < 0 or amount != amount:
        raise ValidationError(f"{label} must be >= 0", field=field)
    return amount


# ---------- Exports ----------

def rows_to_csv_bytes(rows) -> bytes:
    df = pd.DataFrame([asdict(r) if is_dataclass(r) else dict(r) for r in rows])
    return df.to_csv(index=False).encode("utf-8")
