# backend/rentdesk/schemas.py
from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

PaymentMethod = Literal["CASH", "TRANSFER", "CARD", "OTHER"]
MovementType = Literal["INCOME", "EXPENSE", "COMMISSION", "RETENTION", "ADJUSTMENT"]
MovementStatus = Literal["PENDING", "COLLECTED", "RETAINED", "READY_TO_TRANSFER", "TRANSFERRED", "VOID"]
PartyType = Literal["AGENCY", "OWNER", "TENANT", "GUARANTOR", "OTHER"]
LateFeeType = Literal["NONE", "FIXED", "PERCENT"]

DateInput = Union[datetime, date]


def _date_or_datetime(v):
    # bare "YYYY-MM-DD" stays a calendar date instead of becoming midnight
    if isinstance(v, str) and len(v.strip()) == 10:
        return date.fromisoformat(v.strip())
    return v


# -------------------- Contracts --------------------

class AdjustmentIn(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    n: int = Field(ge=1)
    percentage: float = 0.0


class LateFeePolicyIn(BaseModel):
    # also validates the LateFeePolicy value object exposed by Contract
    model_config = ConfigDict(from_attributes=True)

    type: LateFeeType = "NONE"
    value: float = Field(default=0.0, ge=0)

    @field_validator("type", mode="before")
    @classmethod
    def _upper(cls, v):
        return str(v or "NONE").strip().upper()


class ContractCreate(BaseModel):
    property_id: int
    owner_id: int
    tenant_person_id: int
    code: Optional[str] = None

    start_date: date
    duration_months: int = Field(ge=1)
    base_rent: float = Field(ge=0)

    due_day: Optional[int] = Field(default=None, ge=1, le=28)
    currency: Optional[str] = None
    adjust_every_months: int = Field(default=0, ge=0)
    adjustments: Optional[list[AdjustmentIn]] = None
    # legacy single percentage applied at every adjustment event
    adjust_percent: Optional[float] = None

    late_fee_policy: LateFeePolicyIn = Field(default_factory=LateFeePolicyIn)
    commission_monthly_pct: float = Field(default=0.0, ge=0, le=100)
    commission_total_pct: float = Field(default=0.0, ge=0, le=100)
    notes: Optional[str] = None

    @field_validator("start_date", mode="before")
    @classmethod
    def _date_only(cls, v):
        # "2026-01-15T03:00:00Z" and friends collapse to their calendar date
        if isinstance(v, datetime):
            return v.date()
        if isinstance(v, str) and len(v) > 10:
            return v[:10]
        return v


class ContractUpdate(BaseModel):
    """Billing terms and notes only; installments already stored keep their amounts."""

    due_day: Optional[int] = Field(default=None, ge=1, le=28)
    currency: Optional[str] = None
    adjust_every_months: Optional[int] = Field(default=None, ge=0)
    adjustments: Optional[list[AdjustmentIn]] = None
    late_fee_policy: Optional[LateFeePolicyIn] = None
    commission_monthly_pct: Optional[float] = Field(default=None, ge=0, le=100)
    commission_total_pct: Optional[float] = Field(default=None, ge=0, le=100)
    notes: Optional[str] = None


class ContractTerminate(BaseModel):
    reason: Optional[str] = None


class ContractOut(BaseModel):
    id: int
    code: str
    property_id: int
    owner_id: int
    tenant_person_id: int
    start_date: datetime
    end_date: datetime
    duration_months: int
    base_rent: int
    status: str

    due_day: int
    currency: str
    adjust_every_months: int
    adjustments: list[AdjustmentIn] = Field(default_factory=list)
    late_fee_policy: LateFeePolicyIn
    commission_monthly_pct: float
    commission_total_pct: float
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# -------------------- Installments --------------------

class InstallmentOut(BaseModel):
    id: int
    contract_id: int
    period: str
    due_date: date
    amount: int
    paid_amount: int
    status: str
    paid_at: Optional[datetime] = None
    last_reminder_at: Optional[datetime] = None

    # derived on read, never stored
    days_late: int = 0
    late_fee_accrued: int = 0

    model_config = ConfigDict(from_attributes=True)


class GenerateInstallmentsIn(BaseModel):
    contract_id: Optional[int] = None


# -------------------- Payments --------------------

class PaymentCreate(BaseModel):
    installment_id: int
    amount: float = Field(gt=0)
    method: PaymentMethod = "CASH"
    reference: Optional[str] = None
    notes: Optional[str] = None
    payment_date: Optional[DateInput] = None
    register_cash: bool = True

    @field_validator("payment_date", mode="before")
    @classmethod
    def _payment_date(cls, v):
        return _date_or_datetime(v)

    @field_validator("method", mode="before")
    @classmethod
    def _method_upper(cls, v):
        return str(v or "CASH").strip().upper()


class PaymentUpdate(BaseModel):
    amount: Optional[float] = Field(default=None, gt=0)
    method: Optional[PaymentMethod] = None
    reference: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _not_empty(self):
        if self.amount is None and self.method is None and self.reference is None and self.notes is None:
            raise ValueError("nothing to update")
        return self


class VoidIn(BaseModel):
    reason: Optional[str] = None


class PaymentOut(BaseModel):
    id: int
    contract_id: int
    installment_id: int
    payment_date: datetime
    amount: int
    method: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    status: str
    voided_at: Optional[datetime] = None
    voided_by: Optional[str] = None
    void_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# -------------------- Cash movements --------------------

class ManualMovementIn(BaseModel):
    contract_id: int
    type: MovementType
    subtype: Optional[str] = None
    status: MovementStatus
    amount: float = Field(gt=0)
    currency: Optional[str] = None
    movement_date: Optional[DateInput] = None
    party_type: PartyType = "AGENCY"
    party_id: Optional[int] = None
    notes: Optional[str] = None

    @field_validator("movement_date", mode="before")
    @classmethod
    def _movement_date(cls, v):
        return _date_or_datetime(v)


class MovementStatusIn(BaseModel):
    status: MovementStatus


class TransferIn(BaseModel):
    reference: Optional[str] = None


class CashMovementOut(BaseModel):
    id: int
    type: str
    subtype: Optional[str] = None
    status: str
    amount: int
    currency: str
    movement_date: datetime
    party_type: str
    party_id: Optional[int] = None

    contract_id: Optional[int] = None
    property_id: Optional[int] = None
    owner_id: Optional[int] = None
    tenant_person_id: Optional[int] = None
    installment_id: Optional[int] = None
    payment_id: Optional[int] = None

    notes: Optional[str] = None
    created_by: Optional[str] = None
    voided_at: Optional[datetime] = None
    voided_by: Optional[str] = None
    void_reason: Optional[str] = None
    transferred_at: Optional[datetime] = None
    transferred_by: Optional[str] = None
    transfer_ref: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CashSummaryOut(BaseModel):
    total: float
    by_status: dict[str, float]
    by_type: dict[str, float]
