# backend/tests/conftest.py
from __future__ import annotations

import os
import tempfile

# must point at a scratch file before rentdesk.config builds its settings
_TMP_DIR = tempfile.mkdtemp(prefix="rentdesk-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/import.db"
os.environ.setdefault("APP_ENV", "test")

from datetime import date  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from rentdesk.db import Database  # noqa: E402
from rentdesk.main import create_app  # noqa: E402
from rentdesk.models import Person, Property  # noqa: E402
from rentdesk.schemas import ContractCreate  # noqa: E402
from rentdesk.services.contracts import create_contract  # noqa: E402

TENANT = "default"


@pytest.fixture
def database(tmp_path):
    d = Database(f"sqlite:///{tmp_path}/rentdesk.db")
    d.create_schema()
    yield d
    d.dispose()


@pytest.fixture
def db(database):
    s = database.session()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def client(database):
    return TestClient(create_app(database=database))


class Factory:
    """Small builders for the rows contracts point at."""

    def __init__(self, db):
        self.db = db
        self._n = 0

    def person(self, type: str = "TENANT", full_name: str | None = None, tenant_id: str = TENANT) -> Person:
        self._n += 1
        row = Person(tenant_id=tenant_id, type=type, code=f"{type[:3]}-{self._n:03d}", full_name=full_name or f"{type} {self._n}")
        self.db.add(row)
        self.db.commit()
        return row

    def property(self, owner: Person | None = None, tenant_id: str = TENANT, status: str = "AVAILABLE") -> Property:
        owner = owner or self.person("OWNER", tenant_id=tenant_id)
        self._n += 1
        row = Property(
            tenant_id=tenant_id,
            code=f"PROP-{self._n:03d}",
            address_line=f"Calle {self._n} 100",
            city="Rosario",
            province="Santa Fe",
            owner_id=owner.id,
            status=status,
        )
        self.db.add(row)
        self.db.commit()
        return row

    def contract_payload(self, tenant_id: str = TENANT, **overrides: Any) -> ContractCreate:
        owner = self.person("OWNER", tenant_id=tenant_id)
        tenant = self.person("TENANT", tenant_id=tenant_id)
        prop = self.property(owner=owner, tenant_id=tenant_id)
        data: dict[str, Any] = {
            "property_id": prop.id,
            "owner_id": owner.id,
            "tenant_person_id": tenant.id,
            "start_date": date(2026, 1, 1),
            "duration_months": 12,
            "base_rent": 1000,
            "due_day": 10,
        }
        data.update(overrides)
        return ContractCreate(**data)

    def contract(self, tenant_id: str = TENANT, **overrides: Any):
        """Returns (contract, installments) created through the service."""
        return create_contract(self.db, tenant_id=tenant_id, data=self.contract_payload(tenant_id=tenant_id, **overrides))


@pytest.fixture
def factory(db):
    return Factory(db)
