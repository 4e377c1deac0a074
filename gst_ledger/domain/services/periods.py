# gst_ledger/domain/services/periods.py
"""Period key helpers: 'YYYY-MM' months, 'YYYY-Qn' quarters, 'YYYY' years."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone

_MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
_QUARTER_RE = re.compile(r"^\d{4}-Q[1-4]$")
_YEAR_RE = re.compile(r"^\d{4}$")


@dataclass(frozen=True)
class PeriodKeys:
    month: str
    quarter: str
    year: str


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_iso() -> str:
    return utc_now().isoformat()


def parse_iso(value: str) -> datetime:
    """Parse an ISO date or datetime string ('Z' suffix accepted)."""
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return datetime.fromisoformat(raw)


def month_key(moment: date) -> str:
    return f"{moment.year}-{moment.month:02d}"


def quarter_key(moment: date) -> str:
    # Calendar quarters: Jan-Mar is Q1
    return f"{moment.year}-Q{(moment.month - 1) // 3 + 1}"


def year_key(moment: date) -> str:
    return str(moment.year)


def period_keys(iso_value: str) -> PeriodKeys:
    """Derive month/quarter/year keys from the date part of an ISO string."""
    moment = parse_iso(iso_value)
    return PeriodKeys(
        month=month_key(moment),
        quarter=quarter_key(moment),
        year=year_key(moment),
    )


def period_field(period: str) -> str:
    """Map a period key to the LedgerEntry field it matches against.

    Raises ValueError for keys that are none of YYYY-MM, YYYY-Qn, YYYY.
    """
    if _MONTH_RE.match(period):
        return "month"
    if _QUARTER_RE.match(period):
        return "quarter"
    if _YEAR_RE.match(period):
        return "year"
    raise ValueError(f"Unrecognised period key: {period!r}")


def current_month(now: datetime | None = None) -> str:
    return month_key(now or utc_now())


def current_quarter(now: datetime | None = None) -> str:
    return quarter_key(now or utc_now())


def due_date_after(moment: datetime, day: int = 20) -> datetime:
    """Return the given day of the month following ``moment`` (midnight)."""
    if moment.month == 12:
        year, month = moment.year + 1, 1
    else:
        year, month = moment.year, moment.month + 1
    return datetime(year, month, day, tzinfo=moment.tzinfo)
