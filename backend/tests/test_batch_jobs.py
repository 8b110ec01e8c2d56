# backend/tests/test_batch_jobs.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, select

from rentdesk.models import AuditEvent, Contract, Installment
from rentdesk.services.batch_jobs import generate_installments_batch, repair_start_dates
from rentdesk.services.installment_lifecycle import record_payment

T = "default"


def _stored(db, contract_id):
    return db.scalars(
        select(Installment).where(Installment.contract_id == contract_id).order_by(Installment.period)
    ).all()


def _drop_periods(db, contract_id, periods):
    db.execute(delete(Installment).where(Installment.contract_id == contract_id, Installment.period.in_(periods)))
    db.commit()


def test_generate_backfills_missing_periods_only(db, factory):
    contract, installments = factory.contract(base_rent=1000)
    record_payment(db, tenant_id=T, installment_id=installments[0].id, amount=1000)
    _drop_periods(db, contract.id, [f"2026-{m:02d}" for m in range(5, 13)])

    res = generate_installments_batch(db, tenant_id=T)
    assert res.as_dict() == {"created": 8, "skipped": 4, "contracts": 1, "errors": []}

    rows = _stored(db, contract.id)
    assert len(rows) == 12
    assert rows[0].status == "PAID"
    assert rows[0].paid_amount == 1000
    assert rows[-1].period == "2026-12"

    again = generate_installments_batch(db, tenant_id=T)
    assert (again.created, again.skipped) == (0, 12)


def test_generate_covers_active_contracts_only(db, factory):
    active, _ = factory.contract()
    stopped, _ = factory.contract()
    stopped.status = "TERMINATED"
    db.commit()
    _drop_periods(db, active.id, ["2026-12"])
    _drop_periods(db, stopped.id, ["2026-12"])

    res = generate_installments_batch(db, tenant_id=T)
    assert res.contracts == 1
    assert res.created == 1
    assert len(_stored(db, stopped.id)) == 11


def test_generate_scopes(db, factory):
    a, _ = factory.contract()
    b, _ = factory.contract(tenant_id="other-agency")
    _drop_periods(db, a.id, ["2026-06"])
    _drop_periods(db, b.id, ["2026-06"])

    one = generate_installments_batch(db, contract_id=b.id)
    assert (one.contracts, one.created) == (1, 1)

    everyone = generate_installments_batch(db)
    assert (everyone.contracts, everyone.created) == (2, 1)


def test_repair_normalises_start_and_keeps_money(db, factory):
    contract, installments = factory.contract(base_rent=1000)
    record_payment(db, tenant_id=T, installment_id=installments[0].id, amount=1000)
    record_payment(db, tenant_id=T, installment_id=installments[1].id, amount=300)
    paid_id = installments[0].id

    contract.start_date = datetime(2026, 1, 1, 0, 0)
    contract.end_date = datetime(2026, 12, 31, 0, 0)
    installments[2].amount = 1
    db.commit()

    res = repair_start_dates(db, tenant_id=T)

    assert res.total_contracts == 1
    assert res.fixed == 1
    assert res.details[0]["contract_id"] == contract.id
    assert res.details[0]["fixed"] is True

    row = db.get(Contract, contract.id)
    assert row.start_date == datetime(2026, 1, 1, 12, 0)
    assert row.end_date == datetime(2027, 1, 1, 12, 0)

    rows = _stored(db, contract.id)
    assert len(rows) == 12
    assert rows[0].id == paid_id
    assert rows[0].status == "PAID"
    assert rows[1].paid_amount == 300
    assert rows[2].amount == 1000
    assert db.scalar(select(AuditEvent).where(AuditEvent.action == "contract.repair_start_date")) is not None


def test_repair_skips_canonical_contracts(db, factory):
    factory.contract()
    res = repair_start_dates(db, tenant_id=T)
    assert res.as_dict() == {"total_contracts": 1, "fixed": 0, "details": []}

    assert repair_start_dates(db, tenant_id="other-agency").total_contracts == 0
