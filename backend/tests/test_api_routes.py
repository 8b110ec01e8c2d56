# backend/tests/test_api_routes.py
from __future__ import annotations

H = {"X-Tenant-Id": "default", "X-User": "ana"}


def _create_contract(client, factory, **overrides):
    owner = factory.person("OWNER")
    tenant = factory.person("TENANT")
    prop = factory.property(owner=owner)
    body = {
        "property_id": prop.id,
        "owner_id": owner.id,
        "tenant_person_id": tenant.id,
        "start_date": "2030-01-01",
        "duration_months": 12,
        "base_rent": 1000,
        "due_day": 10,
        "commission_monthly_pct": 10,
    }
    body.update(overrides)
    r = client.post("/api/contracts", json=body, headers=H)
    assert r.status_code == 201, r.text
    return r.json()


def test_health_reports_database(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert body["database"]["status"] == "healthy"
    assert r.headers.get("X-Request-ID")


def test_request_id_is_echoed(client):
    r = client.get("/api/health", headers={"X-Request-ID": "req-123"})
    assert r.headers["X-Request-ID"] == "req-123"


def test_create_and_read_contract(client, factory):
    created = _create_contract(client, factory)
    assert created["ok"] is True
    c = created["contract"]
    assert c["code"] == "CID-001"
    assert c["start_date"] == "2030-01-01T12:00:00"
    assert len(created["installments"]) == 12
    assert created["installments"][0]["due_date"] == "2030-01-10"

    by_code = client.get(f"/api/contracts/{c['code']}", headers=H).json()
    by_id = client.get(f"/api/contracts/{c['id']}", headers=H).json()
    assert by_code["contract"]["id"] == by_id["contract"]["id"] == c["id"]
    assert by_code["totals"]["billed"] == 12000
    assert by_code["payments"] == []

    listed = client.get("/api/contracts", headers=H).json()
    assert [x["id"] for x in listed["contracts"]] == [c["id"]]


def test_contract_detail_exposes_billing_terms(client, factory):
    created = _create_contract(
        client,
        factory,
        adjust_every_months=6,
        adjustments=[{"n": 1, "percentage": 5}],
        late_fee_policy={"type": "fixed", "value": 10},
    )
    assert created["contract"]["late_fee_policy"] == {"type": "FIXED", "value": 10.0}

    r = client.get(f"/api/contracts/{created['contract']['id']}", headers=H)
    assert r.status_code == 200, r.text
    c = r.json()["contract"]
    assert c["late_fee_policy"] == {"type": "FIXED", "value": 10.0}
    assert c["adjustments"] == [{"n": 1, "percentage": 5.0}]
    assert c["adjust_every_months"] == 6

    plain = _create_contract(client, factory)["contract"]
    assert plain["late_fee_policy"] == {"type": "NONE", "value": 0.0}
    assert plain["adjustments"] == []


def test_contracts_are_tenant_scoped(client, factory):
    c = _create_contract(client, factory)["contract"]
    r = client.get(f"/api/contracts/{c['id']}", headers={"X-Tenant-Id": "other-agency"})
    assert r.status_code == 404
    body = r.json()
    assert body["ok"] is False
    assert body["error"] == "not_found"


def test_request_validation_uses_error_envelope(client):
    r = client.post("/api/contracts", json={}, headers=H)
    assert r.status_code == 400
    body = r.json()
    assert body["ok"] is False
    assert body["error"] == "validation_error"
    assert "property_id" in body["message"]


def test_pay_list_and_void_payments(client, factory):
    created = _create_contract(client, factory)
    inst = created["installments"][0]

    r = client.post(
        "/api/installments/pay",
        json={"installment_id": inst["id"], "amount": 600, "method": "transfer", "reference": "REC-1", "payment_date": "2030-01-05"},
        headers=H,
    )
    assert r.status_code == 201, r.text
    first = r.json()
    assert first["installment"]["status"] == "PARTIAL"
    assert first["payment"]["created_by"] == "ana"
    assert first["payment"]["payment_date"] == "2030-01-05T12:00:00"
    assert {m["subtype"] for m in first["cash_movements"]} == {"RENT", "AGENCY_FEE", "OWNER_NET"}

    r = client.post("/api/payments", json={"installment_id": inst["id"], "amount": 400, "reference": "other"}, headers=H)
    assert r.status_code == 201
    second = r.json()
    assert second["installment"]["status"] == "PAID"

    found = client.get("/api/payments", params={"reference": "rec"}, headers=H).json()["payments"]
    assert [p["id"] for p in found] == [first["payment"]["id"]]
    in_range = client.get("/api/payments", params={"from": "2030-01-05", "to": "2030-01-05"}, headers=H).json()
    assert [p["id"] for p in in_range["payments"]] == [first["payment"]["id"]]

    pid = second["payment"]["id"]
    v1 = client.post(f"/api/payments/{pid}/void", json={"reason": "bounced"}, headers=H).json()
    assert v1["already_void"] is False
    assert v1["installment"]["status"] == "PENDING"
    assert len(v1["voided_cash_movements"]) == 3

    v2 = client.delete(f"/api/payments/{pid}", headers=H).json()
    assert v2["already_void"] is True
    assert v2["payment"]["void_reason"] == "bounced"

    r = client.patch(f"/api/payments/{pid}", json={"notes": "x"}, headers=H)
    assert r.status_code == 409
    assert r.json()["error"] == "invalid_state"


def test_void_payment_route_reaches_transferred_payout(client, factory):
    created = _create_contract(client, factory)
    inst = created["installments"][0]
    paid = client.post("/api/installments/pay", json={"installment_id": inst["id"], "amount": 1000}, headers=H).json()
    net = next(m for m in paid["cash_movements"] if m["subtype"] == "OWNER_NET")
    client.post(f"/api/cash-movements/{net['id']}/transfer", json={"reference": "CBU-9"}, headers=H)

    r = client.post(f"/api/payments/{paid['payment']['id']}/void", json={"reason": "bounced"}, headers=H)
    assert r.status_code == 200, r.text
    body = r.json()
    assert net["id"] in body["voided_cash_movements"]
    assert sorted(body["voided_cash_movements"]) == sorted(m["id"] for m in paid["cash_movements"])
    assert "skipped_cash_movements" not in body

    listing = client.get("/api/cash-movements", params={"payment_id": paid["payment"]["id"]}, headers=H).json()
    assert {m["status"] for m in listing["movements"]} == {"VOID"}
    assert listing["summary"]["total"] == 0


def test_edit_payment_route(client, factory):
    inst = _create_contract(client, factory)["installments"][0]
    pid = client.post("/api/payments", json={"installment_id": inst["id"], "amount": 300}, headers=H).json()["payment"]["id"]

    r = client.patch(f"/api/payments/{pid}", json={"amount": 1000, "method": "CARD"}, headers=H)
    assert r.status_code == 200, r.text
    assert r.json()["payment"]["method"] == "CARD"
    assert r.json()["installment"]["status"] == "PAID"

    assert client.patch(f"/api/payments/{pid}", json={}, headers=H).status_code == 400


def test_cash_movement_routes(client, factory):
    created = _create_contract(client, factory)
    inst = created["installments"][0]
    paid = client.post("/api/installments/pay", json={"installment_id": inst["id"], "amount": 1000}, headers=H).json()
    net = next(m for m in paid["cash_movements"] if m["subtype"] == "OWNER_NET")

    listing = client.get("/api/cash-movements", params={"contract_id": created["contract"]["id"]}, headers=H).json()
    assert len(listing["movements"]) == 3
    assert listing["summary"]["total"] == 1100
    assert listing["summary"]["by_status"]["READY_TO_TRANSFER"] == 900

    t = client.post(f"/api/cash-movements/{net['id']}/transfer", json={"reference": "CBU-1"}, headers=H).json()
    assert t["changed"] is True
    assert t["movement"]["transferred_by"] == "ana"

    r = client.post(f"/api/cash-movements/{net['id']}/void", json={"reason": "sent to wrong account"}, headers=H)
    assert r.status_code == 200, r.text
    assert r.json()["changed"] is True
    assert r.json()["movement"]["status"] == "VOID"

    manual = client.post(
        "/api/cash-movements/manual",
        json={"contract_id": created["contract"]["id"], "type": "EXPENSE", "status": "PENDING", "amount": 55, "party_type": "OWNER"},
        headers=H,
    )
    assert manual.status_code == 201, manual.text
    mid = manual.json()["movement"]["id"]
    assert manual.json()["movement"]["party_id"] == created["contract"]["owner_id"]

    s = client.post(f"/api/cash-movements/{mid}/status", json={"status": "COLLECTED"}, headers=H).json()
    assert s["movement"]["status"] == "COLLECTED"
    bad = client.post(f"/api/cash-movements/{mid}/status", json={"status": "PENDING"}, headers=H)
    assert bad.status_code == 409


def test_terminate_and_delete_routes(client, factory):
    paid = _create_contract(client, factory)
    inst = paid["installments"][0]
    client.post("/api/payments", json={"installment_id": inst["id"], "amount": 10}, headers=H)

    r = client.post(f"/api/contracts/{paid['contract']['id']}/terminate", json={"reason": "moved"}, headers=H).json()
    assert r["changed"] is True
    assert r["contract"]["status"] == "TERMINATED"

    assert client.delete(f"/api/contracts/{paid['contract']['id']}", headers=H).status_code == 409

    clean = _create_contract(client, factory)["contract"]
    assert client.delete(f"/api/contracts/{clean['id']}", headers=H).json() == {"ok": True}
    assert client.get(f"/api/contracts/{clean['id']}", headers=H).status_code == 404


def test_installments_listing_and_batch_routes(client, factory):
    c = _create_contract(client, factory)["contract"]

    rows = client.get("/api/installments", params={"contract_id": c["id"], "period": "2030-03"}, headers=H).json()
    assert [r["period"] for r in rows["installments"]] == ["2030-03"]
    assert rows["installments"][0]["late_fee_accrued"] >= 0

    gen = client.post("/api/installments/generate", json={"contract_id": c["id"]}, headers=H).json()
    assert gen == {"ok": True, "created": 0, "skipped": 12, "contracts": 1, "errors": []}

    fix = client.get("/api/migrate/fix-start-dates", headers=H).json()
    assert fix["ok"] is True
    assert fix["fixed"] == 0

    dash = client.get("/api/dashboard/summary", headers=H).json()
    assert dash["ok"] is True
    assert set(dash) >= {"period", "total", "collected", "pending", "count"}
