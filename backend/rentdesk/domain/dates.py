# backend/rentdesk/domain/dates.py
from __future__ import annotations

import calendar
from datetime import date, datetime, time, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

# Calendar dates are persisted as noon timestamps so that no timezone
# conversion (UTC-3 .. UTC+11) can move them to a neighbouring day.
CANONICAL_TIME = time(12, 0, 0)


def utcnow() -> datetime:
    """Naive UTC wall-clock, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today_local(tz_name: str) -> date:
    return datetime.now(ZoneInfo(tz_name)).date()


def as_date(v: Any) -> Optional[date]:
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    try:
        return date.fromisoformat(str(v).strip()[:10])
    except ValueError:
        return None


def shift_month(year: int, month: int, n: int) -> tuple[int, int]:
    idx = year * 12 + (month - 1) + n
    return idx // 12, idx % 12 + 1


def period_label(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def parse_period(label: str) -> tuple[int, int]:
    y, m = [int(x) for x in label.split("-")]
    if not 1 <= m <= 12:
        raise ValueError(f"invalid period: {label}")
    return y, m


def add_months(d: date, n: int) -> date:
    """Calendar month arithmetic; the day is clamped to the target month's end."""
    y, m = shift_month(d.year, d.month, n)
    last = calendar.monthrange(y, m)[1]
    return date(y, m, min(d.day, last))


def add_months_dt(dt: datetime, n: int) -> datetime:
    d = add_months(dt.date(), n)
    return datetime.combine(d, dt.time())


def canonical_noon(d: date) -> datetime:
    return datetime.combine(as_date(d), CANONICAL_TIME)


def is_canonical_noon(dt: datetime) -> bool:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.time() == CANONICAL_TIME


def day_start(d: date) -> datetime:
    return datetime.combine(as_date(d), time.min)


def day_end(d: date) -> datetime:
    return datetime.combine(as_date(d), time.max)
