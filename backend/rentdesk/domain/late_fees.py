# backend/rentdesk/domain/late_fees.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Union

from .dates import as_date
from .money import round_half_up, to_decimal

POLICY_TYPES = ("NONE", "FIXED", "PERCENT")


@dataclass(frozen=True)
class LateFeePolicy:
    """
    NONE    -> no penalty
    FIXED   -> value currency units per day late
    PERCENT -> value percent of the installment amount per day late (simple, not compounding)
    """

    type: str = "NONE"
    value: float = 0.0

    @classmethod
    def from_any(cls, v: Any) -> "LateFeePolicy":
        if v is None:
            return cls()
        if isinstance(v, LateFeePolicy):
            return v
        if isinstance(v, dict):
            t, val = v.get("type"), v.get("value")
        else:
            t, val = getattr(v, "type", None), getattr(v, "value", None)
        t = str(t or "NONE").strip().upper()
        if t not in POLICY_TYPES:
            raise ValueError(f"unknown late fee policy type: {t}")
        return cls(type=t, value=float(val or 0.0))

    def as_dict(self) -> dict:
        return {"type": self.type, "value": self.value}


def days_late(due_date: Union[date, datetime], today: date) -> int:
    """Whole calendar days after the due date; 0 on or before it."""
    due = as_date(due_date)
    if due is None:
        return 0
    return max(0, (today - due).days)


def compute_late_fee(
    amount: Union[int, float],
    due_date: Union[date, datetime],
    policy: Any,
    status: str,
    today: Optional[date] = None,
) -> int:
    """
    Accrued penalty as of ``today``. Never persisted: callers recompute on
    every read, so a policy change re-prices every open installment.
    """
    p = LateFeePolicy.from_any(policy)
    if p.type == "NONE" or (status or "").upper() == "PAID":
        return 0

    if today is None:
        # late import: keeps the pure calculator usable without app settings
        from ..config import settings
        from .dates import today_local

        today = today_local(settings.business_timezone)

    n = days_late(due_date, today)
    if n <= 0:
        return 0

    if p.type == "FIXED":
        fee = to_decimal(p.value) * n
    else:
        fee = to_decimal(amount) * to_decimal(p.value) / 100 * n

    return max(0, round_half_up(fee))
