# backend/rentdesk/routers/installments.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..schemas import CashMovementOut, GenerateInstallmentsIn, InstallmentOut, PaymentCreate, PaymentOut
from ..services.batch_jobs import generate_installments_batch
from ..services.installment_lifecycle import PaymentResult, record_payment
from ..services.listings import list_installments

router = APIRouter(prefix="/installments", tags=["installments"])


def payment_response(res: PaymentResult) -> dict:
    return {
        "ok": True,
        "payment": PaymentOut.model_validate(res.payment).model_dump(mode="json"),
        "installment": InstallmentOut.model_validate(res.installment).model_dump(mode="json"),
        "cash_movements": [CashMovementOut.model_validate(m).model_dump(mode="json") for m in res.movements],
    }


def pay_installment(payload: PaymentCreate, db: Session, p) -> dict:
    res = record_payment(
        db,
        tenant_id=p.tenant_id,
        installment_id=payload.installment_id,
        amount=payload.amount,
        method=payload.method,
        reference=payload.reference,
        notes=payload.notes,
        payment_date=payload.payment_date,
        actor=p.actor,
        register_cash=payload.register_cash,
    )
    return payment_response(res)


@router.get("", response_model=dict)
def list_(
    contract_id: int | None = Query(default=None),
    status: str | None = Query(default=None),
    period: str | None = Query(default=None, pattern=r"^\d{4}-\d{2}$"),
    limit: int = Query(default=500, ge=1, le=5000),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    rows = list_installments(db, tenant_id=p.tenant_id, contract_id=contract_id, status=status, period=period, limit=limit)
    return {"ok": True, "installments": [InstallmentOut.model_validate(r).model_dump(mode="json") for r in rows]}


@router.post("/pay", response_model=dict, status_code=201)
def pay(payload: PaymentCreate, db: Session = Depends(get_db), p=Depends(get_principal)):
    return pay_installment(payload, db, p)


@router.post("/generate", response_model=dict)
def generate(
    payload: GenerateInstallmentsIn | None = None,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    contract_id = payload.contract_id if payload else None
    res = generate_installments_batch(db, tenant_id=p.tenant_id, contract_id=contract_id)
    return {"ok": True, **res.as_dict()}
