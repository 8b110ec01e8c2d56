# backend/rentdesk/services/contracts.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional, Sequence, Union

from sqlalchemy import delete, desc, func, select
from sqlalchemy.orm import Session

from ..config import settings
from ..db import unit_of_work
from ..domain.audit import audit_write
from ..domain.contract_status import CONTRACT_STATUSES, OCCUPYING_STATUSES
from ..domain.dates import add_months, canonical_noon, today_local, utcnow
from ..domain.errors import InvalidStateError, ValidationError
from ..domain.money import round_half_up
from ..domain.schedule import adjustments_from_flat_percent, required_adjustments_count, schedule_for_contract
from ..models import CashMovement, Contract, Installment, Payment
from ..schemas import ContractCreate, ContractUpdate
from .contract_sync import property_is_occupied, release_property_if_vacant, sync_contract_statuses
from .counters import next_contract_code
from .listings import installment_view
from .ownership import must_get_contract, must_get_person, must_get_property

log = logging.getLogger("rentdesk.contracts")


@dataclass
class ContractTotals:
    billed: int = 0
    paid: int = 0
    balance: int = 0
    installments_count: int = 0
    payments_count: int = 0
    paid_installments: int = 0
    pending_installments: int = 0
    total_paid_void: int = 0

    def as_dict(self) -> dict:
        return {
            "billed": self.billed,
            "paid": self.paid,
            "balance": self.balance,
            "installments_count": self.installments_count,
            "payments_count": self.payments_count,
            "paid_installments": self.paid_installments,
            "pending_installments": self.pending_installments,
            "total_paid_void": self.total_paid_void,
        }


@dataclass
class ContractDetail:
    contract: Contract
    installments: list[dict] = field(default_factory=list)
    payments: list[Payment] = field(default_factory=list)
    totals: ContractTotals = field(default_factory=ContractTotals)


def _entry_value(entry: Any, key: str, default: Any = None) -> Any:
    if isinstance(entry, dict):
        return entry.get(key, default)
    return getattr(entry, key, default)


def normalize_adjustments(
    duration_months: int,
    adjust_every_months: int,
    adjustments: Optional[Sequence[Any]] = None,
    flat_percent: Optional[float] = None,
) -> list[dict]:
    """
    Ordered {n, percentage} list with exactly one entry per adjustment event.

    A single legacy percentage expands to every event. A shorter list is
    padded with 0% events; a longer one is rejected.
    """
    expected = required_adjustments_count(duration_months, adjust_every_months)

    if adjustments is None:
        if flat_percent is None:
            return [{"n": i + 1, "percentage": 0.0} for i in range(expected)]
        return adjustments_from_flat_percent(duration_months, adjust_every_months, flat_percent)

    items = sorted(
        ({"n": int(_entry_value(a, "n", i + 1)), "percentage": float(_entry_value(a, "percentage", 0.0) or 0.0)}
         for i, a in enumerate(adjustments)),
        key=lambda a: a["n"],
    )
    if len({a["n"] for a in items}) != len(items):
        raise ValidationError("adjustment event numbers must be unique")
    if len(items) > expected:
        raise ValidationError(
            f"{len(items)} adjustments given but a {duration_months}-month lease adjusted every "
            f"{adjust_every_months} months has {expected} adjustment event(s)"
        )

    out = [{"n": i + 1, "percentage": a["percentage"]} for i, a in enumerate(items)]
    out.extend({"n": i + 1, "percentage": 0.0} for i in range(len(out), expected))
    return out


def _code_taken(db: Session, *, tenant_id: str, code: str) -> bool:
    return bool(db.scalar(select(func.count(Contract.id)).where(Contract.tenant_id == tenant_id, Contract.code == code)))


def _assign_code(db: Session, *, tenant_id: str, wanted: Optional[str]) -> str:
    code = (wanted or "").strip()
    if code:
        if _code_taken(db, tenant_id=tenant_id, code=code):
            raise ValidationError(f"contract code {code} is already in use")
        return code

    # hand-typed codes can occupy a generated number; skip past them
    while True:
        code = next_contract_code(db, tenant_id=tenant_id)
        if not _code_taken(db, tenant_id=tenant_id, code=code):
            return code


def create_contract(
    db: Session, *, tenant_id: str, data: ContractCreate, actor: str = "system"
) -> tuple[Contract, list[Installment]]:
    """
    Signs a lease: contract row, its full installment schedule and the
    property flip to RENTED, committed together.
    """
    duration = int(data.duration_months)
    if duration < 1:
        raise ValidationError("duration_months must be >= 1")
    every = int(data.adjust_every_months or 0)
    if every < 0:
        raise ValidationError("adjust_every_months must be >= 0")
    due_day = int(data.due_day if data.due_day is not None else settings.default_due_day)
    if not 1 <= due_day <= 28:
        raise ValidationError("due_day must be 1..28")
    base_rent = round_half_up(data.base_rent)
    if base_rent < 0:
        raise ValidationError("base_rent must be >= 0")

    adjustments = normalize_adjustments(duration, every, data.adjustments, data.adjust_percent)

    prop = must_get_property(db, tenant_id=tenant_id, property_id=data.property_id)
    owner = must_get_person(db, tenant_id=tenant_id, person_id=data.owner_id)
    tenant = must_get_person(db, tenant_id=tenant_id, person_id=data.tenant_person_id)
    if owner.type != "OWNER":
        raise ValidationError(f"person {owner.id} is not an OWNER")
    if tenant.type != "TENANT":
        raise ValidationError(f"person {tenant.id} is not a TENANT")
    if prop.status == "RENTED" or property_is_occupied(db, tenant_id=tenant_id, property_id=prop.id):
        raise InvalidStateError(f"property {prop.id} is already rented")

    start: date = data.start_date
    with unit_of_work(db):
        row = Contract(
            tenant_id=tenant_id,
            code=_assign_code(db, tenant_id=tenant_id, wanted=data.code),
            property_id=prop.id,
            owner_id=owner.id,
            tenant_person_id=tenant.id,
            start_date=canonical_noon(start),
            end_date=canonical_noon(add_months(start, duration)),
            duration_months=duration,
            base_rent=base_rent,
            status="ACTIVE",
            due_day=due_day,
            currency=(data.currency or "").strip().upper() or settings.default_currency,
            adjust_every_months=every,
            commission_monthly_pct=float(data.commission_monthly_pct or 0.0),
            commission_total_pct=float(data.commission_total_pct or 0.0),
            notes=data.notes,
        )
        row.adjustments = adjustments
        row.late_fee_policy = data.late_fee_policy.model_dump()
        db.add(row)
        db.flush()

        installments = [
            Installment(
                tenant_id=tenant_id,
                contract_id=row.id,
                period=it.period,
                due_date=it.due_date,
                amount=it.amount,
                paid_amount=0,
                status=it.status,
            )
            for it in schedule_for_contract(row)
        ]
        db.add_all(installments)

        prop.status = "RENTED"
        prop.current_tenant_id = tenant.id
        prop.available_from = None
        db.add(prop)
        db.flush()

        audit_write(
            db,
            tenant_id=tenant_id,
            actor=actor,
            action="contract.create",
            entity_type="Contract",
            entity_id=row.id,
            before=None,
            after=row.as_dict(),
        )

    log.info(
        "contract %s created with %d installments",
        row.code,
        len(installments),
        extra={"tenant_id": tenant_id, "contract_id": row.id},
    )
    return row, installments


def list_contracts(
    db: Session,
    *,
    tenant_id: str,
    status: Optional[str] = None,
    limit: int = 200,
    now: Optional[datetime] = None,
) -> list[Contract]:
    sync_contract_statuses(db, tenant_id=tenant_id, now=now)

    q = select(Contract).where(Contract.tenant_id == tenant_id)
    st = (status or "").strip().upper()
    if st and st != "ALL":
        if st not in CONTRACT_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(CONTRACT_STATUSES)}")
        q = q.where(Contract.status == st)
    return list(db.scalars(q.order_by(desc(Contract.created_at), desc(Contract.id)).limit(limit)).all())


def contract_detail(
    db: Session,
    *,
    tenant_id: str,
    contract_id: Union[int, str],
    now: Optional[datetime] = None,
    today: Optional[date] = None,
) -> ContractDetail:
    """
    Contract, installments (each with its late fee as of ``today``), payments
    and totals. Status sync runs first so the contract is never read stale.
    """
    sync_contract_statuses(db, tenant_id=tenant_id, now=now)

    contract = must_get_contract(db, tenant_id=tenant_id, contract_id=contract_id)
    today = today or today_local(settings.business_timezone)
    policy = contract.late_fee_policy

    installments = db.scalars(
        select(Installment)
        .where(Installment.tenant_id == tenant_id, Installment.contract_id == contract.id)
        .order_by(Installment.due_date)
    ).all()
    payments = list(
        db.scalars(
            select(Payment)
            .where(Payment.tenant_id == tenant_id, Payment.contract_id == contract.id)
            .order_by(desc(Payment.payment_date), desc(Payment.id))
        ).all()
    )

    totals = ContractTotals(installments_count=len(installments), payments_count=len(payments))
    for it in installments:
        totals.billed += int(it.amount or 0)
        if it.status == "PAID":
            totals.paid_installments += 1
    totals.pending_installments = totals.installments_count - totals.paid_installments
    for p in payments:
        if p.status == "OK":
            totals.paid += int(p.amount or 0)
        else:
            totals.total_paid_void += int(p.amount or 0)
    totals.balance = totals.billed - totals.paid

    return ContractDetail(
        contract=contract,
        installments=[installment_view(it, policy, today) for it in installments],
        payments=payments,
        totals=totals,
    )


def update_contract(
    db: Session, *, tenant_id: str, contract_id: Union[int, str], data: ContractUpdate, actor: str = "system"
) -> Contract:
    """
    Edits billing terms and notes. Stored installments keep their amounts:
    new terms only affect periods generated from now on.
    """
    row = must_get_contract(db, tenant_id=tenant_id, contract_id=contract_id)
    fields = data.model_dump(exclude_unset=True)

    every = fields.get("adjust_every_months")
    every = int(row.adjust_every_months) if every is None else int(every)
    adjustments = None
    if "adjustments" in fields or "adjust_every_months" in fields:
        src = fields.get("adjustments")
        adjustments = normalize_adjustments(row.duration_months, every, src if src is not None else row.adjustments)

    with unit_of_work(db):
        before = row.as_dict()

        if fields.get("due_day") is not None:
            row.due_day = int(fields["due_day"])
        if fields.get("currency"):
            row.currency = str(fields["currency"]).strip().upper()
        row.adjust_every_months = every
        if adjustments is not None:
            row.adjustments = adjustments
        if fields.get("late_fee_policy") is not None:
            row.late_fee_policy = fields["late_fee_policy"]
        if fields.get("commission_monthly_pct") is not None:
            row.commission_monthly_pct = float(fields["commission_monthly_pct"])
        if fields.get("commission_total_pct") is not None:
            row.commission_total_pct = float(fields["commission_total_pct"])
        if "notes" in fields:
            row.notes = fields["notes"]

        db.add(row)
        audit_write(
            db,
            tenant_id=tenant_id,
            actor=actor,
            action="contract.update",
            entity_type="Contract",
            entity_id=row.id,
            before=before,
            after=row.as_dict(),
        )

    log.info("contract %s billing terms updated", row.code, extra={"tenant_id": tenant_id, "contract_id": row.id})
    return row


def terminate_contract(
    db: Session,
    *,
    tenant_id: str,
    contract_id: Union[int, str],
    reason: Optional[str] = None,
    actor: str = "system",
    now: Optional[datetime] = None,
) -> tuple[Contract, bool]:
    """Early termination. Returns (contract, changed); repeating it is a no-op."""
    row = must_get_contract(db, tenant_id=tenant_id, contract_id=contract_id)
    if row.status == "TERMINATED":
        return row, False
    if row.status == "ENDED":
        raise InvalidStateError("contract already ended")

    now = now or utcnow()
    with unit_of_work(db):
        before = row.status
        row.status = "TERMINATED"
        db.add(row)
        db.flush()
        release_property_if_vacant(db, tenant_id=tenant_id, contract=row, available_from=now)
        audit_write(
            db,
            tenant_id=tenant_id,
            actor=actor,
            action="contract.terminate",
            entity_type="Contract",
            entity_id=row.id,
            before={"status": before},
            after={"status": "TERMINATED", "reason": reason},
        )

    log.info("contract %s terminated", row.code, extra={"tenant_id": tenant_id, "contract_id": row.id})
    return row, True


def delete_contract(db: Session, *, tenant_id: str, contract_id: Union[int, str], actor: str = "system") -> None:
    """Only for contracts with no money history; payments are never hard deleted."""
    row = must_get_contract(db, tenant_id=tenant_id, contract_id=contract_id)

    n_payments = db.scalar(
        select(func.count(Payment.id)).where(Payment.tenant_id == tenant_id, Payment.contract_id == row.id)
    )
    n_moves = db.scalar(
        select(func.count(CashMovement.id)).where(CashMovement.tenant_id == tenant_id, CashMovement.contract_id == row.id)
    )
    if n_payments or n_moves:
        raise InvalidStateError("contract has payments or cash movements; terminate it instead")

    with unit_of_work(db):
        snapshot = row.as_dict()
        was_occupying = row.status in OCCUPYING_STATUSES

        db.execute(delete(Installment).where(Installment.tenant_id == tenant_id, Installment.contract_id == row.id))
        row.status = "TERMINATED"
        db.flush()
        if was_occupying:
            release_property_if_vacant(db, tenant_id=tenant_id, contract=row, available_from=utcnow())
        db.delete(row)

        audit_write(
            db,
            tenant_id=tenant_id,
            actor=actor,
            action="contract.delete",
            entity_type="Contract",
            entity_id=snapshot["id"],
            before=snapshot,
            after=None,
        )

    log.info("contract %s deleted", snapshot["code"], extra={"tenant_id": tenant_id, "contract_id": snapshot["id"]})
