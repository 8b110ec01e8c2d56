# backend/rentdesk/services/ownership.py
from __future__ import annotations

from typing import Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.errors import NotFoundError
from ..models import CashMovement, Contract, Installment, Payment, Person, Property


def must_get_person(db: Session, *, tenant_id: str, person_id: int) -> Person:
    row = db.scalar(select(Person).where(Person.id == person_id, Person.tenant_id == tenant_id))
    if not row:
        raise NotFoundError("person not found")
    return row


def must_get_property(db: Session, *, tenant_id: str, property_id: int) -> Property:
    row = db.scalar(select(Property).where(Property.id == property_id, Property.tenant_id == tenant_id))
    if not row:
        raise NotFoundError("property not found")
    return row


def must_get_contract(db: Session, *, tenant_id: str, contract_id: Union[int, str]) -> Contract:
    """Accepts the numeric id or the human code (CID-001)."""
    row = None
    key = str(contract_id).strip()
    if key.isdigit():
        row = db.scalar(select(Contract).where(Contract.id == int(key), Contract.tenant_id == tenant_id))
    if row is None:
        row = db.scalar(select(Contract).where(Contract.code == key, Contract.tenant_id == tenant_id))
    if not row:
        raise NotFoundError("contract not found")
    return row


def must_get_installment(db: Session, *, tenant_id: str, installment_id: int) -> Installment:
    row = db.scalar(select(Installment).where(Installment.id == installment_id, Installment.tenant_id == tenant_id))
    if not row:
        raise NotFoundError("installment not found")
    return row


def must_get_payment(db: Session, *, tenant_id: str, payment_id: int) -> Payment:
    row = db.scalar(select(Payment).where(Payment.id == payment_id, Payment.tenant_id == tenant_id))
    if not row:
        raise NotFoundError("payment not found")
    return row


def must_get_movement(db: Session, *, tenant_id: str, movement_id: int) -> CashMovement:
    row = db.scalar(select(CashMovement).where(CashMovement.id == movement_id, CashMovement.tenant_id == tenant_id))
    if not row:
        raise NotFoundError("cash movement not found")
    return row
