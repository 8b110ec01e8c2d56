# backend/rentdesk/domain/cash_ledger.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

MOVEMENT_TYPES = ("INCOME", "EXPENSE", "COMMISSION", "RETENTION", "ADJUSTMENT")
MOVEMENT_STATUSES = ("PENDING", "COLLECTED", "RETAINED", "READY_TO_TRANSFER", "TRANSFERRED", "VOID")
PARTY_TYPES = ("AGENCY", "OWNER", "TENANT", "GUARANTOR", "OTHER")

TERMINAL_STATUSES = ("TRANSFERRED", "VOID")

# money physically held by the agency
IN_HAND_STATUSES = ("COLLECTED", "RETAINED")

# PENDING -> COLLECTED | RETAINED -> READY_TO_TRANSFER -> TRANSFERRED
# transfer and void have their own handlers; this table covers the rest.
FORWARD_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "PENDING": ("COLLECTED", "RETAINED"),
    "COLLECTED": ("READY_TO_TRANSFER",),
    "RETAINED": ("READY_TO_TRANSFER",),
}


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def can_advance(current: str, target: str) -> bool:
    return target in FORWARD_TRANSITIONS.get(current, ())


def can_transfer(status: str) -> bool:
    return status == "READY_TO_TRANSFER"


@dataclass
class CashSummary:
    total: float = 0.0
    by_status: dict[str, float] = field(default_factory=dict)
    by_type: dict[str, float] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {"total": self.total, "by_status": dict(self.by_status), "by_type": dict(self.by_type)}


def summarize_movements(movements: Iterable[Any]) -> CashSummary:
    """
    Fold recomputed on every read (no cached aggregate).

    total = cash in hand: COLLECTED/RETAINED movements that are not EXPENSE
    (READY_TO_TRANSFER owner payouts are liabilities, not cash).
    """
    s = CashSummary()
    for m in movements:
        amount = float(getattr(m, "amount", 0) or 0)
        st = getattr(m, "status", "") or ""
        tp = getattr(m, "type", "") or ""

        if st in IN_HAND_STATUSES and tp != "EXPENSE":
            s.total += amount

        s.by_status[st] = s.by_status.get(st, 0.0) + amount
        s.by_type[tp] = s.by_type.get(tp, 0.0) + amount
    return s
