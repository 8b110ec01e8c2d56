# backend/rentdesk/cli/seed_demo.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import Person, Property
from ..schemas import ContractCreate
from ..services.contracts import create_contract


@dataclass(frozen=True)
class SeedResult:
    tenant_id: str
    owner_id: int
    tenant_person_id: int
    property_id: int
    contract_code: Optional[str]


def _get_or_create_person(db: Session, *, tenant_id: str, type: str, code: str, full_name: str) -> Person:
    row = db.scalar(select(Person).where(Person.tenant_id == tenant_id, Person.code == code))
    if row:
        return row
    row = Person(tenant_id=tenant_id, type=type, code=code, full_name=full_name)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _get_or_create_property(db: Session, *, tenant_id: str, code: str, owner_id: int) -> Property:
    row = db.scalar(select(Property).where(Property.tenant_id == tenant_id, Property.code == code))
    if row:
        return row
    row = Property(
        tenant_id=tenant_id,
        code=code,
        address_line="Av. Siempre Viva 742",
        unit="3B",
        city="Rosario",
        province="Santa Fe",
        owner_id=owner_id,
        status="AVAILABLE",
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def seed_demo(
    db: Session,
    *,
    tenant_id: str = "default",
    with_contract: bool = True,
    start_date: Optional[date] = None,
    base_rent: int = 350000,
) -> SeedResult:
    """Owner, tenant and one property; optionally a 24-month contract on it."""
    owner = _get_or_create_person(db, tenant_id=tenant_id, type="OWNER", code="OWN-001", full_name="Marta Gomez")
    tenant = _get_or_create_person(db, tenant_id=tenant_id, type="TENANT", code="TEN-001", full_name="Lucas Fernandez")
    prop = _get_or_create_property(db, tenant_id=tenant_id, code="PROP-001", owner_id=owner.id)

    code = None
    if with_contract and prop.status != "RENTED":
        contract, _ = create_contract(
            db,
            tenant_id=tenant_id,
            data=ContractCreate(
                property_id=prop.id,
                owner_id=owner.id,
                tenant_person_id=tenant.id,
                start_date=start_date or date.today().replace(day=1),
                duration_months=24,
                base_rent=base_rent,
                due_day=10,
                adjust_every_months=6,
                adjust_percent=12.0,
                late_fee_policy={"type": "PERCENT", "value": 0.5},
                commission_monthly_pct=8.0,
            ),
            actor="seed",
        )
        code = contract.code

    return SeedResult(
        tenant_id=tenant_id,
        owner_id=owner.id,
        tenant_person_id=tenant.id,
        property_id=prop.id,
        contract_code=code,
    )
