from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional, Tuple

from app.errors import InvalidDateFormat, InvalidDateRange

DEFAULT_DATE_FORMAT = "%d-%m-%Y"

# Only these two literal layouts are accepted; strptime alone is too lenient
# (it takes "1-3-2024" for %d-%m-%Y).
_DATE_PATTERNS = (
    (re.compile(r"^\d{2}-\d{2}-\d{4}$"), "%d-%m-%Y"),
    (re.compile(r"^\d{4}-\d{2}-\d{2}$"), "%Y-%m-%d"),
)

# Single source of truth for classification thresholds (inclusive upper bounds).
AGEING_FRESH_MAX_DAYS = 30
AGEING_MID_MAX_DAYS = 60
EXPIRY_HIGH_RISK_BELOW_DAYS = 30
EXPIRY_MEDIUM_RISK_MAX_DAYS = 90

AGEING_BUCKETS = ("0-30", "30-60", "60+")
EXPIRY_RISKS = ("high", "medium", "low")


@dataclass(frozen=True)
class InventoryMetrics:
    ageing_days: int
    days_to_expiry: int
    ageing_bucket: str
    expiry_risk: str

    def to_dict(self) -> dict:
        return {
            "ageing_days": self.ageing_days,
            "days_to_expiry": self.days_to_expiry,
            "ageing_bucket": self.ageing_bucket,
            "expiry_risk": self.expiry_risk,
        }


def today() -> date:
    return date.today()


def utcnow() -> datetime:
    """Naive UTC timestamp for the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def parse_date_string(value: str, field: str | None = None) -> date:
    """Parse a DD-MM-YYYY or YYYY-MM-DD string.

    Raises InvalidDateFormat naming the offending string for anything else,
    including well-formed strings that are not real calendar dates.
    """
    if not isinstance(value, str):
        raise InvalidDateFormat(str(value), field=field)
    raw = value.strip()
    for pattern, fmt in _DATE_PATTERNS:
        if pattern.match(raw):
            try:
                return datetime.strptime(raw, fmt).date()
            except ValueError:
                break
    raise InvalidDateFormat(raw, field=field)


def format_date(d: date, fmt: str = DEFAULT_DATE_FORMAT) -> str:
    return _as_date(d).strftime(fmt)


def ageing_days(mfg_date: date, as_of: Optional[date] = None) -> int:
    # Not clamped: a future manufacturing date gives a negative age.
    return (_as_date(as_of or today()) - _as_date(mfg_date)).days


def days_to_expiry(exp_date: date, as_of: Optional[date] = None) -> int:
    return (_as_date(exp_date) - _as_date(as_of or today())).days


def ageing_bucket(days: int) -> str:
    if days <= AGEING_FRESH_MAX_DAYS:
        return "0-30"
    if days <= AGEING_MID_MAX_DAYS:
        return "30-60"
    return "60+"


def expiry_risk(days: int) -> str:
    if days < EXPIRY_HIGH_RISK_BELOW_DAYS:
        return "high"
    if days <= EXPIRY_MEDIUM_RISK_MAX_DAYS:
        return "medium"
    return "low"


def inventory_metrics(mfg_date: date, exp_date: date, as_of: Optional[date] = None) -> InventoryMetrics:
    ref = as_of or today()
    age = ageing_days(mfg_date, ref)
    left = days_to_expiry(exp_date, ref)
    return InventoryMetrics(
        ageing_days=age,
        days_to_expiry=left,
        ageing_bucket=ageing_bucket(age),
        expiry_risk=expiry_risk(left),
    )


def date_range(start: Optional[str], end: Optional[str], field: str | None = None) -> Optional[Tuple[date, date]]:
    """Build an inclusive (start, end) range from two optional strings.

    A range needs both ends; with either missing the filter is simply not
    applied.
    """
    if not start or not end:
        return None
    start_d = parse_date_string(start, field=field)
    end_d = parse_date_string(end, field=field)
    if start_d > end_d:
        raise InvalidDateRange(field=field)
    return start_d, end_d
