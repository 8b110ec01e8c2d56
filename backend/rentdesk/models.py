# backend/rentdesk/models.py
from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base
from .domain.dates import utcnow
from .domain.late_fees import LateFeePolicy


class RowMixin:
    def as_dict(self) -> dict[str, Any]:
        """Column snapshot used for audit before/after payloads."""
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}  # type: ignore[attr-defined]


# -----------------------------
# Audit / counters
# -----------------------------
class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    actor: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    action: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False)

    before_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    after_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class Counter(Base):
    __tablename__ = "counters"
    __table_args__ = (UniqueConstraint("tenant_id", "key", name="uq_counters_tenant_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    key: Mapped[str] = mapped_column(String(80), nullable=False)
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


# -----------------------------
# Collaborators: people / properties
# -----------------------------
class Person(RowMixin, Base):
    __tablename__ = "persons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    type: Mapped[str] = mapped_column(String(20), nullable=False)  # OWNER|TENANT|GUARANTOR
    code: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    full_name: Mapped[str] = mapped_column(String(160), nullable=False)
    dni_cuit: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class Property(RowMixin, Base):
    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    code: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    address_line: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    province: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    owner_id: Mapped[int] = mapped_column(Integer, ForeignKey("persons.id"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="AVAILABLE")  # AVAILABLE|RENTED|MAINTENANCE
    current_tenant_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("persons.id"), nullable=True)
    available_from: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


# -----------------------------
# Billing: contracts / installments / payments / cash
# -----------------------------
class Contract(RowMixin, Base):
    __tablename__ = "contracts"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_contracts_tenant_code"),
        Index("ix_contracts_tenant_status", "tenant_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(40), nullable=False)

    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    owner_id: Mapped[int] = mapped_column(Integer, ForeignKey("persons.id"), nullable=False, index=True)
    tenant_person_id: Mapped[int] = mapped_column(Integer, ForeignKey("persons.id"), nullable=False, index=True)

    # calendar dates stored at canonical noon
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    duration_months: Mapped[int] = mapped_column(Integer, nullable=False)

    base_rent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE")

    # billing terms
    due_day: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="ARS")
    adjust_every_months: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    adjustments_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # [{"n": 1, "percentage": 10.0}, ...]
    late_fee_type: Mapped[str] = mapped_column(String(20), nullable=False, default="NONE")  # NONE|FIXED|PERCENT
    late_fee_value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    commission_monthly_pct: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    commission_total_pct: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def adjustments(self) -> list[dict]:
        if not self.adjustments_json:
            return []
        return list(json.loads(self.adjustments_json))

    @adjustments.setter
    def adjustments(self, items: Optional[list[dict]]) -> None:
        self.adjustments_json = json.dumps(list(items or []))

    @property
    def late_fee_policy(self) -> LateFeePolicy:
        return LateFeePolicy(type=self.late_fee_type or "NONE", value=float(self.late_fee_value or 0.0))

    @late_fee_policy.setter
    def late_fee_policy(self, policy: Any) -> None:
        p = LateFeePolicy.from_any(policy)
        self.late_fee_type = p.type
        self.late_fee_value = p.value


class Installment(RowMixin, Base):
    __tablename__ = "installments"
    __table_args__ = (
        UniqueConstraint("tenant_id", "contract_id", "period", name="uq_installments_tenant_contract_period"),
        Index("ix_installments_tenant_due", "tenant_id", "due_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    contract_id: Mapped[int] = mapped_column(Integer, ForeignKey("contracts.id"), nullable=False, index=True)

    period: Mapped[str] = mapped_column(String(7), nullable=False)  # YYYY-MM
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    paid_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_reminder_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class Payment(RowMixin, Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    contract_id: Mapped[int] = mapped_column(Integer, ForeignKey("contracts.id"), nullable=False, index=True)
    installment_id: Mapped[int] = mapped_column(Integer, ForeignKey("installments.id"), nullable=False, index=True)

    payment_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False, default="CASH")  # CASH|TRANSFER|CARD|OTHER
    reference: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    status: Mapped[str] = mapped_column(String(10), nullable=False, default="OK")  # OK|VOID
    voided_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    voided_by: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    void_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class CashMovement(RowMixin, Base):
    __tablename__ = "cash_movements"
    __table_args__ = (Index("ix_cash_movements_tenant_date", "tenant_id", "movement_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    type: Mapped[str] = mapped_column(String(20), nullable=False)  # INCOME|EXPENSE|COMMISSION|RETENTION|ADJUSTMENT
    subtype: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)  # RENT|AGENCY_FEE|OWNER_NET|...
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="ARS")
    movement_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    party_type: Mapped[str] = mapped_column(String(20), nullable=False, default="AGENCY")
    party_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("persons.id"), nullable=True)

    contract_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("contracts.id"), nullable=True, index=True)
    property_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("properties.id"), nullable=True)
    owner_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("persons.id"), nullable=True)
    tenant_person_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("persons.id"), nullable=True)
    installment_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("installments.id"), nullable=True)
    payment_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("payments.id"), nullable=True, index=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    voided_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    voided_by: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    void_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    transferred_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    transferred_by: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    transfer_ref: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
