# backend/rentdesk/domain/contract_status.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from .dates import add_months_dt

CONTRACT_STATUSES = ("DRAFT", "ACTIVE", "EXPIRING", "ENDED", "TERMINATED")

# contracts that still occupy their property
OCCUPYING_STATUSES = ("ACTIVE", "EXPIRING")

# only explicit user actions move a contract in or out of these
MANUAL_STATUSES = ("DRAFT", "TERMINATED")


def expiring_horizon(now: datetime, window_months: int) -> datetime:
    return add_months_dt(now, window_months)


def next_status(status: str, end_date: Optional[datetime], now: datetime, window_months: int = 3) -> str:
    """
    Time-driven transition of a contract.

      ACTIVE              and now < end <= now + window  -> EXPIRING
      ACTIVE | EXPIRING   and end <= now                 -> ENDED

    Everything else keeps its status.
    """
    if status not in OCCUPYING_STATUSES or end_date is None:
        return status

    if end_date <= now:
        return "ENDED"

    if status == "ACTIVE" and end_date <= expiring_horizon(now, window_months):
        return "EXPIRING"

    return status
