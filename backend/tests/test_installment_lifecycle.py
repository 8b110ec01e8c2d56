# backend/tests/test_installment_lifecycle.py
from __future__ import annotations

from datetime import date, datetime

import pytest
from sqlalchemy import func, select

from rentdesk.domain.errors import InvalidStateError, NotFoundError, ValidationError
from rentdesk.models import AuditEvent, CashMovement
from rentdesk.services.cash_movements import transfer_movement
from rentdesk.services.installment_lifecycle import edit_payment, record_payment, split_payment, void_payment

T = "default"


def _movements(db, payment_id):
    return {
        m.subtype: m
        for m in db.scalars(select(CashMovement).where(CashMovement.payment_id == payment_id)).all()
    }


def test_partial_then_full_payment(db, factory):
    _, installments = factory.contract(base_rent=1000)
    inst = installments[0]

    r1 = record_payment(db, tenant_id=T, installment_id=inst.id, amount=600, payment_date=date(2026, 1, 5))
    assert r1.installment.status == "PARTIAL"
    assert r1.installment.paid_amount == 600
    assert r1.installment.paid_at is None

    r2 = record_payment(db, tenant_id=T, installment_id=inst.id, amount=400, payment_date=date(2026, 1, 8))
    assert r2.installment.status == "PAID"
    assert r2.installment.paid_amount == 1000
    assert r2.installment.paid_at == datetime(2026, 1, 8, 12, 0)


def test_payment_writes_rent_commission_and_owner_net_movements(db, factory):
    contract, installments = factory.contract(base_rent=1000, commission_monthly_pct=8)
    res = record_payment(db, tenant_id=T, installment_id=installments[0].id, amount=1000, method="transfer")

    assert res.payment.method == "TRANSFER"
    by_sub = {m.subtype: m for m in res.movements}
    assert set(by_sub) == {"RENT", "AGENCY_FEE", "OWNER_NET"}

    rent = by_sub["RENT"]
    assert (rent.type, rent.status, rent.amount, rent.party_type) == ("INCOME", "COLLECTED", 1000, "TENANT")
    assert rent.party_id == contract.tenant_person_id

    fee = by_sub["AGENCY_FEE"]
    assert (fee.type, fee.status, fee.amount, fee.party_type) == ("COMMISSION", "COLLECTED", 80, "AGENCY")

    net = by_sub["OWNER_NET"]
    assert (net.type, net.status, net.amount, net.party_type) == ("EXPENSE", "READY_TO_TRANSFER", 920, "OWNER")
    assert net.party_id == contract.owner_id
    assert all(m.payment_id == res.payment.id and m.contract_id == contract.id for m in res.movements)


def test_register_cash_false_skips_movements(db, factory):
    _, installments = factory.contract()
    res = record_payment(db, tenant_id=T, installment_id=installments[0].id, amount=100, register_cash=False)
    assert res.movements == []
    assert _movements(db, res.payment.id) == {}


def test_split_payment_edges():
    assert split_payment(1000, 0) == (0, 1000)
    assert split_payment(1000, 100) == (1000, 0)
    assert split_payment(999, 12.5) == (125, 874)


def test_void_recomputes_to_pending_and_cascades(db, factory):
    _, installments = factory.contract(base_rent=1000)
    inst = installments[0]
    p600 = record_payment(db, tenant_id=T, installment_id=inst.id, amount=600, payment_date=date(2026, 1, 5)).payment
    p400 = record_payment(db, tenant_id=T, installment_id=inst.id, amount=400, payment_date=date(2026, 1, 8)).payment

    res = void_payment(db, tenant_id=T, payment_id=p400.id, reason="bounced", voided_by="ana")

    assert res.already_void is False
    assert res.payment.status == "VOID"
    assert res.payment.voided_by == "ana"
    assert res.payment.void_reason == "bounced"
    assert res.installment.status == "PENDING"
    assert res.installment.paid_amount == 600
    assert res.installment.paid_at is None

    assert {m.status for m in _movements(db, p400.id).values()} == {"VOID"}
    assert {m.status for m in _movements(db, p600.id).values()} == {"COLLECTED", "READY_TO_TRANSFER"}
    assert sorted(res.voided_movements) == sorted(m.id for m in _movements(db, p400.id).values())


def test_void_keeps_paid_when_survivors_cover_amount(db, factory):
    _, installments = factory.contract(base_rent=1000)
    inst = installments[0]
    record_payment(db, tenant_id=T, installment_id=inst.id, amount=1000, payment_date=date(2026, 1, 3))
    extra = record_payment(db, tenant_id=T, installment_id=inst.id, amount=200, payment_date=date(2026, 1, 9)).payment

    res = void_payment(db, tenant_id=T, payment_id=extra.id)
    assert res.installment.status == "PAID"
    assert res.installment.paid_amount == 1000
    assert res.installment.paid_at == datetime(2026, 1, 3, 12, 0)


def test_void_is_idempotent(db, factory):
    _, installments = factory.contract(base_rent=1000)
    inst = installments[0]
    record_payment(db, tenant_id=T, installment_id=inst.id, amount=600)
    p = record_payment(db, tenant_id=T, installment_id=inst.id, amount=400).payment

    first = void_payment(db, tenant_id=T, payment_id=p.id, voided_by="ana")
    voided_at = first.payment.voided_at
    audits = db.scalar(select(func.count(AuditEvent.id)).where(AuditEvent.action == "payment.void"))

    second = void_payment(db, tenant_id=T, payment_id=p.id, voided_by="bob")
    assert second.already_void is True
    assert second.voided_movements == []
    assert second.payment.voided_by == "ana"
    assert second.payment.voided_at == voided_at
    assert db.scalar(select(func.count(AuditEvent.id)).where(AuditEvent.action == "payment.void")) == audits
    db.refresh(inst)
    assert inst.paid_amount == 600


def test_void_cascades_to_transferred_movements(db, factory):
    _, installments = factory.contract(base_rent=1000, commission_monthly_pct=10)
    res = record_payment(db, tenant_id=T, installment_id=installments[0].id, amount=1000)
    net = next(m for m in res.movements if m.subtype == "OWNER_NET")
    transfer_movement(db, tenant_id=T, movement_id=net.id, reference="CBU-1")

    out = void_payment(db, tenant_id=T, payment_id=res.payment.id)

    assert net.id in out.voided_movements
    assert len(out.voided_movements) == 3
    moves = _movements(db, res.payment.id)
    assert {m.status for m in moves.values()} == {"VOID"}


def test_edit_payment_recomputes_with_partial(db, factory):
    _, installments = factory.contract(base_rent=1000)
    p = record_payment(db, tenant_id=T, installment_id=installments[0].id, amount=600).payment

    up = edit_payment(db, tenant_id=T, payment_id=p.id, amount=1000)
    assert up.installment.status == "PAID"
    assert up.installment.paid_at == up.payment.payment_date

    down = edit_payment(db, tenant_id=T, payment_id=p.id, amount=300, reference="REC-9")
    assert down.installment.status == "PARTIAL"
    assert down.installment.paid_amount == 300
    assert down.payment.reference == "REC-9"
    assert _movements(db, p.id)["RENT"].amount == 300


def test_edit_void_payment_is_invalid_state(db, factory):
    _, installments = factory.contract()
    p = record_payment(db, tenant_id=T, installment_id=installments[0].id, amount=100).payment
    void_payment(db, tenant_id=T, payment_id=p.id)
    with pytest.raises(InvalidStateError):
        edit_payment(db, tenant_id=T, payment_id=p.id, notes="late fix")


def test_payment_validation_runs_before_any_write(db, factory):
    _, installments = factory.contract()
    inst = installments[0]
    with pytest.raises(ValidationError):
        record_payment(db, tenant_id=T, installment_id=inst.id, amount=0)
    with pytest.raises(ValidationError):
        record_payment(db, tenant_id=T, installment_id=inst.id, amount=10, method="BITCOIN")
    with pytest.raises(NotFoundError):
        record_payment(db, tenant_id=T, installment_id=999999, amount=10)
    db.refresh(inst)
    assert inst.paid_amount == 0
    assert inst.status == "PENDING"


def test_other_tenant_cannot_pay(db, factory):
    _, installments = factory.contract()
    with pytest.raises(NotFoundError):
        record_payment(db, tenant_id="other-agency", installment_id=installments[0].id, amount=10)
