# backend/rentdesk/domain/schedule.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Optional, Sequence, Union

from .dates import as_date, period_label, shift_month
from .money import apply_percent, round_half_up

# -----------------------------------------------------------------------------
# Schedule generator
# -----------------------------------------------------------------------------
# Walks forward one calendar month per installment starting at the contract's
# start month. Pure: no store access, no clock.
#
# Rent adjustments happen at i = every, 2*every, ... (never at i = 0). Each
# event multiplies the running amount and the result is carried forward.
# -----------------------------------------------------------------------------

MIN_DUE_DAY = 1
MAX_DUE_DAY = 28

PercentInput = Union[int, float, Sequence[Any], None]


@dataclass(frozen=True)
class ScheduleItem:
    period: str  # "2026-01"
    due_date: date
    amount: int
    status: str = "PENDING"

    def as_dict(self) -> dict:
        return {
            "period": self.period,
            "due_date": self.due_date.isoformat(),
            "amount": self.amount,
            "status": self.status,
        }


def clamp_due_day(due_day: Any) -> int:
    try:
        d = int(due_day)
    except (TypeError, ValueError):
        d = MIN_DUE_DAY
    return max(MIN_DUE_DAY, min(MAX_DUE_DAY, d))


def required_adjustments_count(total_months: int, every_months: int) -> int:
    """Adjustment events that fall inside a lease of total_months."""
    if every_months <= 0 or total_months <= 1:
        return 0
    return (int(total_months) - 1) // int(every_months)


def adjustments_from_flat_percent(total_months: int, every_months: int, percent: float) -> list[dict]:
    """
    Back-compat for callers that send one percentage instead of a list:
    repeat it once per adjustment event, numbered from 1.
    """
    expected = required_adjustments_count(total_months, every_months)
    return [{"n": i + 1, "percentage": float(percent)} for i in range(expected)]


def _percent_value(entry: Any) -> float:
    if isinstance(entry, dict):
        entry = entry.get("percentage", 0)
    else:
        entry = getattr(entry, "percentage", entry)
    try:
        return float(entry)
    except (TypeError, ValueError):
        return 0.0


def _percent_for_event(adjust_percent: PercentInput, event_index: int) -> float:
    """event_index is 0-based; list entries missing for that event count as 0%."""
    if adjust_percent is None:
        return 0.0
    if isinstance(adjust_percent, (int, float)):
        return float(adjust_percent)
    if event_index < len(adjust_percent):
        return _percent_value(adjust_percent[event_index])
    return 0.0


def generate_schedule(
    start_date: Union[date, datetime, str],
    total_months: int,
    base_amount: Union[int, float],
    adjust_every_months: int = 0,
    adjust_percent: PercentInput = 0.0,
    due_day: int = 10,
) -> list[ScheduleItem]:
    """
    Build the ordered installment schedule of a lease.

    ``adjust_percent`` is either a flat percent applied at every adjustment
    event or an ordered list with one entry per event (plain numbers, dicts
    with a ``percentage`` key, or objects exposing ``.percentage``).
    """
    start = as_date(start_date)
    if start is None:
        raise ValueError(f"start_date is not a calendar date: {start_date!r}")

    months = int(total_months)
    if months < 1:
        raise ValueError("total_months must be >= 1")

    every = max(0, int(adjust_every_months or 0))
    day = clamp_due_day(due_day)

    current = round_half_up(base_amount)
    events = 0
    out: list[ScheduleItem] = []

    for i in range(months):
        if every > 0 and i > 0 and i % every == 0:
            current = apply_percent(current, _percent_for_event(adjust_percent, events))
            events += 1

        y, m = shift_month(start.year, start.month, i)
        out.append(ScheduleItem(period=period_label(y, m), due_date=date(y, m, day), amount=current))

    return out


def missing_items(schedule: Iterable[ScheduleItem], existing_periods: Iterable[str]) -> list[ScheduleItem]:
    """Items whose period is not stored yet (callers never overwrite stored periods)."""
    taken = set(existing_periods)
    return [it for it in schedule if it.period not in taken]


def schedule_for_contract(contract: Any, *, adjustments: Optional[Sequence[Any]] = None) -> list[ScheduleItem]:
    """Schedule from a stored Contract row (or any object with the same attributes)."""
    if adjustments is None:
        adjustments = contract.adjustments
    return generate_schedule(
        start_date=contract.start_date,
        total_months=contract.duration_months,
        base_amount=contract.base_rent,
        adjust_every_months=contract.adjust_every_months,
        adjust_percent=list(adjustments or []),
        due_day=contract.due_day,
    )
