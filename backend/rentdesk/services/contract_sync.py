# backend/rentdesk/services/contract_sync.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..config import settings
from ..db import unit_of_work
from ..domain.audit import audit_write
from ..domain.contract_status import OCCUPYING_STATUSES, expiring_horizon, next_status
from ..domain.dates import utcnow
from ..models import Contract, Property

log = logging.getLogger("rentdesk.contract_sync")


@dataclass
class SyncResult:
    expiring: list[int] = field(default_factory=list)
    ended: list[int] = field(default_factory=list)
    released_properties: list[int] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.expiring or self.ended or self.released_properties)

    def as_dict(self) -> dict:
        return {
            "expiring": list(self.expiring),
            "ended": list(self.ended),
            "released_properties": list(self.released_properties),
        }


def property_is_occupied(
    db: Session, *, tenant_id: str, property_id: int, exclude_contract_id: Optional[int] = None
) -> bool:
    q = select(func.count(Contract.id)).where(
        Contract.tenant_id == tenant_id,
        Contract.property_id == property_id,
        Contract.status.in_(OCCUPYING_STATUSES),
    )
    if exclude_contract_id is not None:
        q = q.where(Contract.id != exclude_contract_id)
    return int(db.scalar(q) or 0) > 0


def release_property_if_vacant(
    db: Session,
    *,
    tenant_id: str,
    contract: Contract,
    available_from: Optional[datetime] = None,
) -> bool:
    """
    Frees the contract's property unless another ACTIVE/EXPIRING contract
    still holds it. Returns True when the property row changed.
    """
    if property_is_occupied(db, tenant_id=tenant_id, property_id=contract.property_id, exclude_contract_id=contract.id):
        return False

    prop = db.scalar(select(Property).where(Property.id == contract.property_id, Property.tenant_id == tenant_id))
    if prop is None:
        log.warning(
            "contract %s points at a missing property %s",
            contract.id,
            contract.property_id,
            extra={"tenant_id": tenant_id, "contract_id": contract.id},
        )
        return False

    free_from = available_from or contract.end_date
    if prop.status == "AVAILABLE" and prop.current_tenant_id is None and prop.available_from == free_from:
        return False

    prop.status = "AVAILABLE"
    prop.current_tenant_id = None
    prop.available_from = free_from
    db.add(prop)
    return True


def _apply_transitions(db: Session, *, tenant_id: str, now: datetime, window_months: int, out: SyncResult) -> None:
    horizon = expiring_horizon(now, window_months)
    candidates = db.scalars(
        select(Contract).where(
            Contract.tenant_id == tenant_id,
            Contract.status.in_(OCCUPYING_STATUSES),
            Contract.end_date <= horizon,
        )
    ).all()

    for c in candidates:
        new = next_status(c.status, c.end_date, now, window_months)
        if new == c.status:
            continue

        before = c.status
        c.status = new
        db.add(c)
        audit_write(
            db,
            tenant_id=tenant_id,
            actor="system",
            action="contract.status_sync",
            entity_type="Contract",
            entity_id=c.id,
            before={"status": before},
            after={"status": new},
        )
        if new == "ENDED":
            out.ended.append(c.id)
        else:
            out.expiring.append(c.id)


def _release(db: Session, *, tenant_id: str, contracts, out: SyncResult) -> None:
    for c in contracts:
        if not release_property_if_vacant(db, tenant_id=tenant_id, contract=c):
            continue
        if c.property_id not in out.released_properties:
            out.released_properties.append(c.property_id)


def _release_ended(db: Session, *, tenant_id: str, out: SyncResult) -> None:
    # contracts ended by this run: their property is freed whatever status it
    # was left in (RENTED, MAINTENANCE, ...)
    if out.ended:
        just_ended = db.scalars(
            select(Contract).where(Contract.tenant_id == tenant_id, Contract.id.in_(out.ended)).order_by(Contract.end_date)
        ).all()
        _release(db, tenant_id=tenant_id, contracts=just_ended, out=out)
        db.flush()

    # catch-up: contracts that ended in an earlier run whose property still
    # looks rented
    rows = db.scalars(
        select(Contract)
        .join(Property, Property.id == Contract.property_id)
        .where(
            Contract.tenant_id == tenant_id,
            Contract.status == "ENDED",
            Property.tenant_id == tenant_id,
            Property.status == "RENTED",
        )
        .order_by(Contract.end_date)
    ).all()
    _release(db, tenant_id=tenant_id, contracts=rows, out=out)


def sync_contract_statuses(
    db: Session,
    *,
    tenant_id: str,
    now: Optional[datetime] = None,
    window_months: Optional[int] = None,
) -> SyncResult:
    """
    Time-driven contract maintenance, run inline before contract reads.

    Every step is a set-operation keyed on current state, so running it twice
    (or from two requests at once) converges on the same rows.
    """
    now = now or utcnow()
    window = settings.expiring_window_months if window_months is None else int(window_months)

    out = SyncResult()
    with unit_of_work(db):
        _apply_transitions(db, tenant_id=tenant_id, now=now, window_months=window, out=out)
        db.flush()
        _release_ended(db, tenant_id=tenant_id, out=out)

    if out.changed:
        log.info(
            "contract sync: %d expiring, %d ended, %d properties released",
            len(out.expiring),
            len(out.ended),
            len(out.released_properties),
            extra={"tenant_id": tenant_id},
        )
    return out
