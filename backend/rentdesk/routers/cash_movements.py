# backend/rentdesk/routers/cash_movements.py
from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..domain.dates import day_end, day_start
from ..schemas import CashMovementOut, ManualMovementIn, MovementStatusIn, TransferIn, VoidIn
from ..services.cash_movements import (
    MovementChange,
    advance_status,
    create_manual_movement,
    list_movements,
    transfer_movement,
    void_movement,
)

router = APIRouter(prefix="/cash-movements", tags=["cash"])


def _change_out(res: MovementChange) -> dict:
    return {
        "ok": True,
        "changed": res.changed,
        "movement": CashMovementOut.model_validate(res.movement).model_dump(mode="json"),
    }


@router.get("", response_model=dict)
def list_(
    date_from: date | None = Query(default=None, alias="from"),
    date_to: date | None = Query(default=None, alias="to"),
    status: str | None = Query(default=None),
    type: str | None = Query(default=None),
    contract_id: int | None = Query(default=None),
    property_id: int | None = Query(default=None),
    owner_id: int | None = Query(default=None),
    tenant_person_id: int | None = Query(default=None),
    payment_id: int | None = Query(default=None),
    limit: int = Query(default=500, ge=1, le=5000),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    rows, summary = list_movements(
        db,
        tenant_id=p.tenant_id,
        date_from=day_start(date_from) if date_from else None,
        date_to=day_end(date_to) if date_to else None,
        status=status,
        type=type,
        contract_id=contract_id,
        property_id=property_id,
        owner_id=owner_id,
        tenant_person_id=tenant_person_id,
        payment_id=payment_id,
        limit=limit,
    )
    return {
        "ok": True,
        "movements": [CashMovementOut.model_validate(r).model_dump(mode="json") for r in rows],
        "summary": summary.as_dict(),
    }


@router.post("/manual", response_model=dict, status_code=201)
def create_manual(payload: ManualMovementIn, db: Session = Depends(get_db), p=Depends(get_principal)):
    row = create_manual_movement(
        db,
        tenant_id=p.tenant_id,
        contract_id=payload.contract_id,
        type=payload.type,
        status=payload.status,
        amount=payload.amount,
        subtype=payload.subtype,
        currency=payload.currency,
        movement_date=payload.movement_date,
        party_type=payload.party_type,
        party_id=payload.party_id,
        notes=payload.notes,
        actor=p.actor,
    )
    return {"ok": True, "movement": CashMovementOut.model_validate(row).model_dump(mode="json")}


@router.post("/{movement_id}/status", response_model=dict)
def set_status(movement_id: int, payload: MovementStatusIn, db: Session = Depends(get_db), p=Depends(get_principal)):
    return _change_out(advance_status(db, tenant_id=p.tenant_id, movement_id=movement_id, target=payload.status, actor=p.actor))


@router.post("/{movement_id}/transfer", response_model=dict)
def transfer(
    movement_id: int,
    payload: TransferIn | None = None,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    res = transfer_movement(
        db,
        tenant_id=p.tenant_id,
        movement_id=movement_id,
        transferred_by=p.actor,
        reference=payload.reference if payload else None,
    )
    return _change_out(res)


@router.post("/{movement_id}/void", response_model=dict)
def void(
    movement_id: int,
    payload: VoidIn | None = None,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    res = void_movement(
        db,
        tenant_id=p.tenant_id,
        movement_id=movement_id,
        reason=payload.reason if payload else None,
        voided_by=p.actor,
    )
    return _change_out(res)
