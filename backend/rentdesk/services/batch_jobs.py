# backend/rentdesk/services/batch_jobs.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..db import unit_of_work
from ..domain.audit import audit_write
from ..domain.dates import add_months, canonical_noon, is_canonical_noon
from ..domain.schedule import missing_items, schedule_for_contract
from ..models import Contract, Installment

log = logging.getLogger("rentdesk.jobs")


@dataclass
class GenerateResult:
    created: int = 0
    skipped: int = 0
    contracts: int = 0
    errors: list[dict] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"created": self.created, "skipped": self.skipped, "contracts": self.contracts, "errors": list(self.errors)}


@dataclass
class RepairResult:
    total_contracts: int = 0
    fixed: int = 0
    details: list[dict] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"total_contracts": self.total_contracts, "fixed": self.fixed, "details": list(self.details)}


def _existing_periods(db: Session, contract: Contract) -> set[str]:
    return set(
        db.scalars(
            select(Installment.period).where(
                Installment.tenant_id == contract.tenant_id,
                Installment.contract_id == contract.id,
            )
        ).all()
    )


def fill_missing_installments(db: Session, contract: Contract) -> tuple[int, int]:
    """Inserts the schedule periods this contract lacks. Returns (created, skipped); no commit."""
    schedule = schedule_for_contract(contract)
    todo = missing_items(schedule, _existing_periods(db, contract))
    db.add_all(
        Installment(
            tenant_id=contract.tenant_id,
            contract_id=contract.id,
            period=it.period,
            due_date=it.due_date,
            amount=it.amount,
            paid_amount=0,
            status=it.status,
        )
        for it in todo
    )
    return len(todo), len(schedule) - len(todo)


def generate_installments_batch(
    db: Session, *, tenant_id: Optional[str] = None, contract_id: Optional[int] = None
) -> GenerateResult:
    """
    Backfills installments for every ACTIVE contract (optionally one tenant or
    one contract). Stored periods are never rewritten, so reruns are safe.
    """
    q = select(Contract).where(Contract.status == "ACTIVE")
    if tenant_id is not None:
        q = q.where(Contract.tenant_id == tenant_id)
    if contract_id is not None:
        q = q.where(Contract.id == contract_id)

    out = GenerateResult()
    for c in db.scalars(q.order_by(Contract.id)).all():
        out.contracts += 1
        try:
            with unit_of_work(db):
                created, skipped = fill_missing_installments(db, c)
        except Exception as e:
            log.exception("installment generation failed", extra={"tenant_id": c.tenant_id, "contract_id": c.id})
            out.errors.append({"contract_id": c.id, "message": str(e)})
            continue
        out.created += created
        out.skipped += skipped

    log.info(
        "installment batch: %d contracts, %d created, %d skipped, %d failed",
        out.contracts,
        out.created,
        out.skipped,
        len(out.errors),
        extra={"tenant_id": tenant_id},
    )
    return out


def _repair_one(db: Session, c: Contract) -> str:
    start = canonical_noon(c.start_date.date())
    end = canonical_noon(add_months(start.date(), int(c.duration_months)))
    before = {"start_date": c.start_date, "end_date": c.end_date}

    c.start_date = start
    c.end_date = end
    db.add(c)

    existing = db.scalars(
        select(Installment).where(Installment.tenant_id == c.tenant_id, Installment.contract_id == c.id)
    ).all()
    # anything with money on it stays; payments must keep pointing at it
    kept = {it.period for it in existing if it.status == "PAID" or int(it.paid_amount or 0) > 0}
    drop_ids = [it.id for it in existing if it.period not in kept]
    if drop_ids:
        db.execute(delete(Installment).where(Installment.id.in_(drop_ids)))
    db.flush()

    created, _ = fill_missing_installments(db, c)

    audit_write(
        db,
        tenant_id=c.tenant_id,
        actor="system",
        action="contract.repair_start_date",
        entity_type="Contract",
        entity_id=c.id,
        before=before,
        after={"start_date": start, "end_date": end},
    )
    return f"start normalised to {start.date().isoformat()}; {len(kept)} paid period(s) kept, {created} regenerated"


def repair_start_dates(db: Session, *, tenant_id: str) -> RepairResult:
    """
    Normalises start dates that are not stored at canonical noon, recomputes
    the end date and regenerates every installment without money on it.
    Each contract is its own unit of work; one failure does not stop the rest.
    """
    contracts = db.scalars(select(Contract).where(Contract.tenant_id == tenant_id).order_by(Contract.id)).all()

    out = RepairResult(total_contracts=len(contracts))
    for c in contracts:
        if c.start_date is None or is_canonical_noon(c.start_date):
            continue
        try:
            with unit_of_work(db):
                msg = _repair_one(db, c)
        except Exception as e:
            log.exception("start date repair failed", extra={"tenant_id": tenant_id, "contract_id": c.id})
            out.details.append({"contract_id": c.id, "fixed": False, "message": str(e)})
            continue
        out.fixed += 1
        out.details.append({"contract_id": c.id, "fixed": True, "message": msg})

    log.info(
        "start date repair: %d of %d contracts fixed",
        out.fixed,
        out.total_contracts,
        extra={"tenant_id": tenant_id},
    )
    return out
