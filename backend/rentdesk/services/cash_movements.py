# backend/rentdesk/services/cash_movements.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..db import unit_of_work
from ..domain.audit import audit_write
from ..domain.cash_ledger import (
    MOVEMENT_STATUSES,
    MOVEMENT_TYPES,
    PARTY_TYPES,
    CashSummary,
    can_advance,
    can_transfer,
    is_terminal,
    summarize_movements,
)
from ..domain.dates import utcnow
from ..domain.errors import InvalidStateError, ValidationError
from ..domain.money import round_half_up
from ..models import CashMovement
from .installment_lifecycle import as_timestamp
from .ownership import must_get_contract, must_get_movement

log = logging.getLogger("rentdesk.cash")


@dataclass
class MovementChange:
    movement: CashMovement
    changed: bool


def _upper_or_none(v: Optional[str]) -> Optional[str]:
    s = (v or "").strip().upper()
    return None if not s or s == "ALL" else s


def list_movements(
    db: Session,
    *,
    tenant_id: str,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    status: Optional[str] = None,
    type: Optional[str] = None,
    contract_id: Optional[int] = None,
    property_id: Optional[int] = None,
    owner_id: Optional[int] = None,
    tenant_person_id: Optional[int] = None,
    payment_id: Optional[int] = None,
    limit: int = 500,
) -> tuple[list[CashMovement], CashSummary]:
    """Filtered movements (newest first) and the summary fold over exactly that set."""
    q = select(CashMovement).where(CashMovement.tenant_id == tenant_id)

    if date_from is not None:
        q = q.where(CashMovement.movement_date >= date_from)
    if date_to is not None:
        q = q.where(CashMovement.movement_date <= date_to)

    st = _upper_or_none(status)
    if st:
        q = q.where(CashMovement.status == st)
    tp = _upper_or_none(type)
    if tp:
        q = q.where(CashMovement.type == tp)

    if contract_id is not None:
        q = q.where(CashMovement.contract_id == contract_id)
    if property_id is not None:
        q = q.where(CashMovement.property_id == property_id)
    if owner_id is not None:
        q = q.where(CashMovement.owner_id == owner_id)
    if tenant_person_id is not None:
        q = q.where(CashMovement.tenant_person_id == tenant_person_id)
    if payment_id is not None:
        q = q.where(CashMovement.payment_id == payment_id)

    rows = list(db.scalars(q.order_by(desc(CashMovement.movement_date), desc(CashMovement.id)).limit(limit)).all())
    return rows, summarize_movements(rows)


def create_manual_movement(
    db: Session,
    *,
    tenant_id: str,
    contract_id: int,
    type: str,
    status: str,
    amount: Any,
    subtype: Optional[str] = None,
    currency: Optional[str] = None,
    movement_date: Any = None,
    party_type: Optional[str] = None,
    party_id: Optional[int] = None,
    notes: Optional[str] = None,
    actor: str = "system",
) -> CashMovement:
    """Office entry tied to a contract (deposit, repair expense, retention...)."""
    tp = (type or "").strip().upper()
    if tp not in MOVEMENT_TYPES:
        raise ValidationError(f"type must be one of {', '.join(MOVEMENT_TYPES)}")
    st = (status or "").strip().upper()
    if st not in MOVEMENT_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(MOVEMENT_STATUSES)}")
    if is_terminal(st):
        raise ValidationError(f"a new movement cannot start as {st}")
    pt = (party_type or "AGENCY").strip().upper()
    if pt not in PARTY_TYPES:
        raise ValidationError(f"party_type must be one of {', '.join(PARTY_TYPES)}")

    amount_i = round_half_up(amount)
    if amount_i <= 0:
        raise ValidationError("amount must be > 0")

    contract = must_get_contract(db, tenant_id=tenant_id, contract_id=contract_id)

    if party_id is None:
        if pt == "OWNER":
            party_id = contract.owner_id
        elif pt == "TENANT":
            party_id = contract.tenant_person_id

    with unit_of_work(db):
        row = CashMovement(
            tenant_id=tenant_id,
            type=tp,
            subtype=(subtype or "").strip() or None,
            status=st,
            amount=amount_i,
            currency=(currency or "").strip().upper() or contract.currency,
            movement_date=as_timestamp(movement_date),
            party_type=pt,
            party_id=party_id,
            contract_id=contract.id,
            property_id=contract.property_id,
            owner_id=contract.owner_id,
            tenant_person_id=contract.tenant_person_id,
            notes=notes,
            created_by=actor,
        )
        db.add(row)
        db.flush()
        audit_write(
            db,
            tenant_id=tenant_id,
            actor=actor,
            action="cash_movement.create",
            entity_type="CashMovement",
            entity_id=row.id,
            before=None,
            after=row.as_dict(),
        )

    log.info(
        "manual cash movement %s: %s %s %s",
        row.id,
        row.type,
        row.status,
        row.amount,
        extra={"tenant_id": tenant_id, "movement_id": row.id, "contract_id": contract.id},
    )
    return row


def advance_status(
    db: Session, *, tenant_id: str, movement_id: int, target: str, actor: str = "system"
) -> MovementChange:
    """PENDING -> COLLECTED|RETAINED -> READY_TO_TRANSFER. Transfer and void have their own calls."""
    target = (target or "").strip().upper()
    if target not in MOVEMENT_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(MOVEMENT_STATUSES)}")
    if target in ("TRANSFERRED", "VOID"):
        raise ValidationError(f"{target} is reached through its own endpoint, not a status change")

    m = must_get_movement(db, tenant_id=tenant_id, movement_id=movement_id)
    if m.status == target:
        return MovementChange(movement=m, changed=False)
    if not can_advance(m.status, target):
        raise InvalidStateError(f"cannot move cash movement from {m.status} to {target}")

    with unit_of_work(db):
        before = m.status
        m.status = target
        db.add(m)
        audit_write(
            db,
            tenant_id=tenant_id,
            actor=actor,
            action="cash_movement.status",
            entity_type="CashMovement",
            entity_id=m.id,
            before={"status": before},
            after={"status": target},
        )

    log.info("cash movement %s: %s -> %s", m.id, before, target, extra={"tenant_id": tenant_id, "movement_id": m.id})
    return MovementChange(movement=m, changed=True)


def transfer_movement(
    db: Session,
    *,
    tenant_id: str,
    movement_id: int,
    transferred_by: str = "system",
    reference: Optional[str] = None,
) -> MovementChange:
    m = must_get_movement(db, tenant_id=tenant_id, movement_id=movement_id)
    if m.status == "TRANSFERRED":
        return MovementChange(movement=m, changed=False)
    if not can_transfer(m.status):
        raise InvalidStateError(f"only READY_TO_TRANSFER movements can be transferred (status is {m.status})")

    with unit_of_work(db):
        m.status = "TRANSFERRED"
        m.transferred_at = utcnow()
        m.transferred_by = transferred_by
        m.transfer_ref = (reference or "").strip() or None
        db.add(m)
        audit_write(
            db,
            tenant_id=tenant_id,
            actor=transferred_by,
            action="cash_movement.transfer",
            entity_type="CashMovement",
            entity_id=m.id,
            before={"status": "READY_TO_TRANSFER"},
            after={"status": "TRANSFERRED", "transfer_ref": m.transfer_ref},
        )

    log.info("cash movement %s transferred", m.id, extra={"tenant_id": tenant_id, "movement_id": m.id})
    return MovementChange(movement=m, changed=True)


def void_movement(
    db: Session,
    *,
    tenant_id: str,
    movement_id: int,
    reason: Optional[str] = None,
    voided_by: str = "system",
) -> MovementChange:
    """VOID from any prior state, TRANSFERRED included; voiding twice is a no-op."""
    m = must_get_movement(db, tenant_id=tenant_id, movement_id=movement_id)
    if m.status == "VOID":
        return MovementChange(movement=m, changed=False)

    with unit_of_work(db):
        before = m.status
        m.status = "VOID"
        m.voided_at = utcnow()
        m.voided_by = voided_by
        m.void_reason = (reason or "").strip() or None
        db.add(m)
        audit_write(
            db,
            tenant_id=tenant_id,
            actor=voided_by,
            action="cash_movement.void",
            entity_type="CashMovement",
            entity_id=m.id,
            before={"status": before},
            after={"status": "VOID", "void_reason": m.void_reason},
        )

    log.info("cash movement %s voided (was %s)", m.id, before, extra={"tenant_id": tenant_id, "movement_id": m.id})
    return MovementChange(movement=m, changed=True)
