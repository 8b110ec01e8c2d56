# backend/tests/test_cli_and_dashboard.py
from __future__ import annotations

import json
from datetime import date

from rentdesk.cli.__main__ import main
from rentdesk.services.dashboard import month_summary
from rentdesk.services.installment_lifecycle import record_payment

T = "default"


def test_month_summary_counts_current_period(db, factory):
    _, first = factory.contract(base_rent=1000)
    factory.contract(base_rent=500)
    feb = next(it for it in first if it.period == "2026-02")
    record_payment(db, tenant_id=T, installment_id=feb.id, amount=600)

    s = month_summary(db, tenant_id=T, today=date(2026, 2, 15))
    assert s.as_dict() == {"period": "2026-02", "total": 1500, "collected": 600, "pending": 900, "count": 2}

    empty = month_summary(db, tenant_id=T, today=date(2031, 1, 1))
    assert (empty.total, empty.count, empty.pending) == (0, 0, 0)


def _last_json(capsys) -> dict:
    lines = [ln for ln in capsys.readouterr().out.splitlines() if ln.strip()]
    return json.loads(lines[-1])


def test_cli_seed_then_batch_jobs(tmp_path, capsys):
    url = f"sqlite:///{tmp_path}/cli.db"

    assert main(["--database-url", url, "seed-demo", "--start-date", "2030-01-01"]) == 0
    seeded = _last_json(capsys)
    assert seeded["ok"] is True
    assert seeded["contract_code"] == "CID-001"

    # seeding twice reuses the rows and leaves the rented property alone
    assert main(["--database-url", url, "seed-demo"]) == 0
    assert _last_json(capsys)["contract_code"] is None

    assert main(["--database-url", url, "generate-installments"]) == 0
    gen = _last_json(capsys)
    assert (gen["created"], gen["skipped"], gen["contracts"]) == (0, 24, 1)

    assert main(["--database-url", url, "repair-start-dates"]) == 0
    assert _last_json(capsys)["fixed"] == 0
