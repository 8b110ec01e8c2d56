# backend/rentdesk/services/dashboard.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.dates import period_label, today_local
from ..models import Installment


@dataclass(frozen=True)
class MonthSummary:
    period: str
    total: int
    collected: int
    pending: int
    count: int

    def as_dict(self) -> dict:
        return {
            "period": self.period,
            "total": self.total,
            "collected": self.collected,
            "pending": self.pending,
            "count": self.count,
        }


def month_summary(db: Session, *, tenant_id: str, today: Optional[date] = None) -> MonthSummary:
    """Billing of the current month in the business timezone."""
    today = today or today_local(settings.business_timezone)
    period = period_label(today.year, today.month)

    rows = db.execute(
        select(Installment.amount, Installment.paid_amount, Installment.status).where(
            Installment.tenant_id == tenant_id, Installment.period == period
        )
    ).all()

    total = 0
    collected = 0
    for amount, paid_amount, status in rows:
        amount = int(amount or 0)
        paid_amount = int(paid_amount or 0)
        total += amount
        if status == "PAID":
            collected += paid_amount if paid_amount > 0 else amount
        else:
            collected += paid_amount

    return MonthSummary(
        period=period,
        total=total,
        collected=collected,
        pending=max(0, total - collected),
        count=len(rows),
    )
