# backend/rentdesk/services/installment_lifecycle.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import unit_of_work
from ..domain.audit import audit_write
from ..domain.cash_ledger import is_terminal
from ..domain.dates import canonical_noon, utcnow
from ..domain.errors import InvalidStateError, ValidationError
from ..domain.money import percent_of, round_half_up
from ..models import CashMovement, Contract, Installment, Payment
from .ownership import must_get_contract, must_get_installment, must_get_payment

log = logging.getLogger("rentdesk.installments")

PAYMENT_METHODS = ("CASH", "TRANSFER", "CARD", "OTHER")

# subtypes of the movements written for a rent payment
RENT_SUBTYPE = "RENT"
AGENCY_FEE_SUBTYPE = "AGENCY_FEE"
OWNER_NET_SUBTYPE = "OWNER_NET"


@dataclass
class PaymentResult:
    payment: Payment
    installment: Installment
    movements: list[CashMovement] = field(default_factory=list)


@dataclass
class VoidResult:
    payment: Payment
    installment: Optional[Installment]
    already_void: bool = False
    voided_movements: list[int] = field(default_factory=list)


def as_timestamp(v: Any) -> datetime:
    """Naive-UTC timestamp; a bare calendar date lands on canonical noon."""
    if v is None:
        return utcnow()
    if isinstance(v, datetime):
        if v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v
    if isinstance(v, date):
        return canonical_noon(v)
    raise ValidationError(f"invalid date: {v!r}")


def _payment_amount(v: Any) -> int:
    try:
        amount = round_half_up(v)
    except (ArithmeticError, TypeError, ValueError):
        raise ValidationError("amount must be a number")
    if amount <= 0:
        raise ValidationError("amount must be > 0")
    return amount


def _payment_method(v: Any) -> str:
    method = str(v or "").strip().upper()
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"method must be one of {', '.join(PAYMENT_METHODS)}")
    return method


def _commission_pct(contract: Contract) -> float:
    return max(0.0, min(100.0, float(contract.commission_monthly_pct or 0.0)))


def split_payment(amount: int, commission_pct: float) -> tuple[int, int]:
    """(agency commission, owner net) for one rent payment."""
    commission = percent_of(amount, commission_pct) if commission_pct > 0 else 0
    commission = min(commission, amount)
    return commission, amount - commission


def _ok_payments(db: Session, *, tenant_id: str, installment_id: int) -> list[Payment]:
    return list(
        db.scalars(
            select(Payment).where(
                Payment.tenant_id == tenant_id,
                Payment.installment_id == installment_id,
                Payment.status == "OK",
            )
        ).all()
    )


def recompute_installment(db: Session, inst: Installment, *, keep_partial: bool) -> Installment:
    """
    Re-derive paid_amount/status/paid_at from the OK payments still on record.

    keep_partial=False is the void path: anything short of fully paid falls
    back to PENDING. keep_partial=True is the edit path: 0 -> PENDING,
    short -> PARTIAL.
    """
    pays = _ok_payments(db, tenant_id=inst.tenant_id, installment_id=inst.id)
    paid = sum(int(p.amount or 0) for p in pays)
    inst.paid_amount = paid

    if paid >= int(inst.amount or 0) and pays:
        inst.status = "PAID"
        inst.paid_at = max(p.payment_date for p in pays)
    elif paid > 0 and keep_partial:
        inst.status = "PARTIAL"
        inst.paid_at = None
    else:
        inst.status = "PENDING"
        inst.paid_at = None

    db.add(inst)
    return inst


def _movement(contract: Contract, payment: Payment, *, actor: str, **kw: Any) -> CashMovement:
    return CashMovement(
        tenant_id=contract.tenant_id,
        currency=contract.currency,
        movement_date=payment.payment_date,
        contract_id=contract.id,
        property_id=contract.property_id,
        owner_id=contract.owner_id,
        tenant_person_id=contract.tenant_person_id,
        installment_id=payment.installment_id,
        payment_id=payment.id,
        created_by=actor,
        **kw,
    )


def payment_movements(contract: Contract, payment: Payment, *, actor: str) -> list[CashMovement]:
    """
    Rent in from the tenant, the agency's cut, and the owner's net awaiting
    transfer.
    """
    amount = int(payment.amount)
    commission, owner_net = split_payment(amount, _commission_pct(contract))

    out = [
        _movement(
            contract,
            payment,
            actor=actor,
            type="INCOME",
            subtype=RENT_SUBTYPE,
            status="COLLECTED",
            amount=amount,
            party_type="TENANT",
            party_id=contract.tenant_person_id,
            notes=f"Rent payment {payment.id}",
        )
    ]
    if commission > 0:
        out.append(
            _movement(
                contract,
                payment,
                actor=actor,
                type="COMMISSION",
                subtype=AGENCY_FEE_SUBTYPE,
                status="COLLECTED",
                amount=commission,
                party_type="AGENCY",
                party_id=None,
                notes=f"Agency fee {_commission_pct(contract):g}%",
            )
        )
    if owner_net > 0:
        out.append(
            _movement(
                contract,
                payment,
                actor=actor,
                type="EXPENSE",
                subtype=OWNER_NET_SUBTYPE,
                status="READY_TO_TRANSFER",
                amount=owner_net,
                party_type="OWNER",
                party_id=contract.owner_id,
                notes="Owner net pending transfer",
            )
        )
    return out


def record_payment(
    db: Session,
    *,
    tenant_id: str,
    installment_id: int,
    amount: Any,
    method: str = "CASH",
    reference: Optional[str] = None,
    notes: Optional[str] = None,
    payment_date: Any = None,
    actor: str = "system",
    register_cash: bool = True,
) -> PaymentResult:
    amount_i = _payment_amount(amount)
    method_s = _payment_method(method)
    paid_on = as_timestamp(payment_date)

    inst = must_get_installment(db, tenant_id=tenant_id, installment_id=installment_id)
    contract = must_get_contract(db, tenant_id=tenant_id, contract_id=inst.contract_id)
    before = inst.as_dict()

    with unit_of_work(db):
        payment = Payment(
            tenant_id=tenant_id,
            contract_id=inst.contract_id,
            installment_id=inst.id,
            payment_date=paid_on,
            amount=amount_i,
            method=method_s,
            reference=(reference or "").strip() or None,
            notes=notes,
            created_by=actor,
            status="OK",
        )
        db.add(payment)
        db.flush()

        # paid_amount is the running sum of OK payments, overpayment included
        inst.paid_amount = int(inst.paid_amount or 0) + amount_i
        if inst.paid_amount >= int(inst.amount or 0):
            inst.status = "PAID"
            inst.paid_at = paid_on
        else:
            inst.status = "PARTIAL"
            inst.paid_at = None
        db.add(inst)

        movements: list[CashMovement] = []
        if register_cash:
            movements = payment_movements(contract, payment, actor=actor)
            db.add_all(movements)

        audit_write(
            db,
            tenant_id=tenant_id,
            actor=actor,
            action="payment.create",
            entity_type="Payment",
            entity_id=payment.id,
            before=None,
            after=payment.as_dict(),
        )
        audit_write(
            db,
            tenant_id=tenant_id,
            actor=actor,
            action="installment.payment_applied",
            entity_type="Installment",
            entity_id=inst.id,
            before=before,
            after=inst.as_dict(),
        )

    log.info(
        "payment %s recorded on installment %s (%s): %s -> %s",
        payment.id,
        inst.id,
        inst.period,
        before["status"],
        inst.status,
        extra={"tenant_id": tenant_id, "installment_id": inst.id, "payment_id": payment.id},
    )
    return PaymentResult(payment=payment, installment=inst, movements=movements)


def void_payment(
    db: Session,
    *,
    tenant_id: str,
    payment_id: int,
    reason: Optional[str] = None,
    voided_by: str = "system",
) -> VoidResult:
    payment = must_get_payment(db, tenant_id=tenant_id, payment_id=payment_id)
    if payment.status == "VOID":
        return VoidResult(payment=payment, installment=None, already_void=True)

    out = VoidResult(payment=payment, installment=None)
    with unit_of_work(db):
        before = payment.as_dict()
        payment.status = "VOID"
        payment.voided_at = utcnow()
        payment.voided_by = voided_by
        payment.void_reason = (reason or "").strip() or None
        db.add(payment)
        db.flush()

        inst = db.scalar(
            select(Installment).where(Installment.id == payment.installment_id, Installment.tenant_id == tenant_id)
        )
        if inst is not None:
            recompute_installment(db, inst, keep_partial=False)
        out.installment = inst

        # every linked movement not already VOID, TRANSFERRED payouts included
        linked = db.scalars(
            select(CashMovement).where(
                CashMovement.tenant_id == tenant_id,
                CashMovement.payment_id == payment.id,
                CashMovement.status != "VOID",
            )
        ).all()
        for m in linked:
            m.status = "VOID"
            m.voided_at = payment.voided_at
            m.voided_by = voided_by
            m.void_reason = f"payment {payment.id} voided" + (f": {payment.void_reason}" if payment.void_reason else "")
            db.add(m)
            out.voided_movements.append(m.id)

        audit_write(
            db,
            tenant_id=tenant_id,
            actor=voided_by,
            action="payment.void",
            entity_type="Payment",
            entity_id=payment.id,
            before=before,
            after=payment.as_dict(),
        )

    log.info(
        "payment %s voided; installment now %s, %d cash movement(s) voided",
        payment.id,
        inst.status if inst is not None else "-",
        len(out.voided_movements),
        extra={"tenant_id": tenant_id, "payment_id": payment.id},
    )
    return out


def _resize_payment_movements(
    db: Session, *, contract: Contract, payment: Payment, tenant_id: str
) -> list[int]:
    """Re-derive the amounts of a payment's open movements; returns ids left as they were."""
    commission, owner_net = split_payment(int(payment.amount), _commission_pct(contract))
    wanted = {RENT_SUBTYPE: int(payment.amount), AGENCY_FEE_SUBTYPE: commission, OWNER_NET_SUBTYPE: owner_net}

    untouched: list[int] = []
    rows = db.scalars(
        select(CashMovement).where(CashMovement.tenant_id == tenant_id, CashMovement.payment_id == payment.id)
    ).all()
    for m in rows:
        target = wanted.get(m.subtype or "")
        if target is None or m.amount == target:
            continue
        if is_terminal(m.status) or target <= 0:
            untouched.append(m.id)
            continue
        m.amount = target
        db.add(m)
    return untouched


def edit_payment(
    db: Session,
    *,
    tenant_id: str,
    payment_id: int,
    amount: Any = None,
    method: Optional[str] = None,
    reference: Optional[str] = None,
    notes: Optional[str] = None,
    actor: str = "system",
) -> PaymentResult:
    payment = must_get_payment(db, tenant_id=tenant_id, payment_id=payment_id)
    if payment.status == "VOID":
        raise InvalidStateError("voided payments cannot be edited")

    new_amount = _payment_amount(amount) if amount is not None else None
    new_method = _payment_method(method) if method is not None else None

    with unit_of_work(db):
        before = payment.as_dict()
        if new_amount is not None:
            payment.amount = new_amount
        if new_method is not None:
            payment.method = new_method
        if reference is not None:
            payment.reference = reference.strip() or None
        if notes is not None:
            payment.notes = notes
        db.add(payment)
        db.flush()

        inst = must_get_installment(db, tenant_id=tenant_id, installment_id=payment.installment_id)
        recompute_installment(db, inst, keep_partial=True)

        untouched: list[int] = []
        if new_amount is not None and new_amount != before["amount"]:
            contract = must_get_contract(db, tenant_id=tenant_id, contract_id=payment.contract_id)
            untouched = _resize_payment_movements(db, contract=contract, payment=payment, tenant_id=tenant_id)

        audit_write(
            db,
            tenant_id=tenant_id,
            actor=actor,
            action="payment.update",
            entity_type="Payment",
            entity_id=payment.id,
            before=before,
            after=payment.as_dict(),
        )

    if untouched:
        log.warning(
            "payment %s amount changed; cash movements %s kept their amounts",
            payment.id,
            untouched,
            extra={"tenant_id": tenant_id, "payment_id": payment.id},
        )
    return PaymentResult(payment=payment, installment=inst)
