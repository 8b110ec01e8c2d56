# backend/rentdesk/services/listings.py
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.dates import today_local
from ..domain.late_fees import compute_late_fee, days_late
from ..models import Contract, Installment, Payment


def installment_view(inst: Installment, policy: Any, today: date) -> dict:
    """Stored columns plus the read-time late fee fields."""
    out = inst.as_dict()
    paid = inst.status == "PAID"
    out["days_late"] = 0 if paid else days_late(inst.due_date, today)
    out["late_fee_accrued"] = compute_late_fee(inst.amount, inst.due_date, policy, inst.status, today=today)
    return out


def list_installments(
    db: Session,
    *,
    tenant_id: str,
    contract_id: Optional[int] = None,
    status: Optional[str] = None,
    period: Optional[str] = None,
    limit: int = 500,
    today: Optional[date] = None,
) -> list[dict]:
    q = (
        select(Installment, Contract)
        .join(Contract, Contract.id == Installment.contract_id)
        .where(Installment.tenant_id == tenant_id)
    )
    if contract_id is not None:
        q = q.where(Installment.contract_id == contract_id)
    st = (status or "").strip().upper()
    if st and st != "ALL":
        q = q.where(Installment.status == st)
    if period:
        q = q.where(Installment.period == period.strip())

    today = today or today_local(settings.business_timezone)
    rows = db.execute(q.order_by(Installment.due_date, Installment.id).limit(limit)).all()
    return [installment_view(inst, contract.late_fee_policy, today) for inst, contract in rows]


def list_payments(
    db: Session,
    *,
    tenant_id: str,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    method: Optional[str] = None,
    contract_id: Optional[int] = None,
    reference: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 500,
) -> list[Payment]:
    q = select(Payment).where(Payment.tenant_id == tenant_id)

    if date_from is not None:
        q = q.where(Payment.payment_date >= date_from)
    if date_to is not None:
        q = q.where(Payment.payment_date <= date_to)

    m = (method or "").strip().upper()
    if m and m != "ALL":
        q = q.where(Payment.method == m)
    st = (status or "").strip().upper()
    if st and st != "ALL":
        q = q.where(Payment.status == st)
    if contract_id is not None:
        q = q.where(Payment.contract_id == contract_id)

    ref = (reference or "").strip()
    if ref:
        q = q.where(Payment.reference.icontains(ref, autoescape=True))

    return list(db.scalars(q.order_by(desc(Payment.payment_date), desc(Payment.id)).limit(limit)).all())
