# backend/rentdesk/routers/payments.py
from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..domain.dates import day_end, day_start
from ..schemas import InstallmentOut, PaymentCreate, PaymentOut, PaymentUpdate, VoidIn
from ..services.installment_lifecycle import edit_payment, void_payment
from ..services.listings import list_payments
from .installments import pay_installment

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("", response_model=dict)
def list_(
    date_from: date | None = Query(default=None, alias="from"),
    date_to: date | None = Query(default=None, alias="to"),
    method: str | None = Query(default=None),
    contract_id: int | None = Query(default=None),
    reference: str | None = Query(default=None),
    status: str | None = Query(default=None),
    limit: int = Query(default=500, ge=1, le=5000),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    rows = list_payments(
        db,
        tenant_id=p.tenant_id,
        date_from=day_start(date_from) if date_from else None,
        date_to=day_end(date_to) if date_to else None,
        method=method,
        contract_id=contract_id,
        reference=reference,
        status=status,
        limit=limit,
    )
    return {"ok": True, "payments": [PaymentOut.model_validate(r).model_dump(mode="json") for r in rows]}


@router.post("", response_model=dict, status_code=201)
def create(payload: PaymentCreate, db: Session = Depends(get_db), p=Depends(get_principal)):
    return pay_installment(payload, db, p)


@router.patch("/{payment_id}", response_model=dict)
def update(payment_id: int, payload: PaymentUpdate, db: Session = Depends(get_db), p=Depends(get_principal)):
    res = edit_payment(
        db,
        tenant_id=p.tenant_id,
        payment_id=payment_id,
        amount=payload.amount,
        method=payload.method,
        reference=payload.reference,
        notes=payload.notes,
        actor=p.actor,
    )
    return {
        "ok": True,
        "payment": PaymentOut.model_validate(res.payment).model_dump(mode="json"),
        "installment": InstallmentOut.model_validate(res.installment).model_dump(mode="json"),
    }


def _void(payment_id: int, payload: VoidIn | None, db: Session, p) -> dict:
    res = void_payment(
        db,
        tenant_id=p.tenant_id,
        payment_id=payment_id,
        reason=payload.reason if payload else None,
        voided_by=p.actor,
    )
    return {
        "ok": True,
        "already_void": res.already_void,
        "payment": PaymentOut.model_validate(res.payment).model_dump(mode="json"),
        "installment": (
            InstallmentOut.model_validate(res.installment).model_dump(mode="json") if res.installment is not None else None
        ),
        "voided_cash_movements": res.voided_movements,
    }


@router.post("/{payment_id}/void", response_model=dict)
def void(payment_id: int, payload: VoidIn | None = None, db: Session = Depends(get_db), p=Depends(get_principal)):
    return _void(payment_id, payload, db, p)


@router.delete("/{payment_id}", response_model=dict)
def delete(payment_id: int, payload: VoidIn | None = None, db: Session = Depends(get_db), p=Depends(get_principal)):
    # soft delete: same as void
    return _void(payment_id, payload, db, p)
