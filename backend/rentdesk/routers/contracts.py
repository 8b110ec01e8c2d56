# backend/rentdesk/routers/contracts.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..schemas import ContractCreate, ContractOut, ContractTerminate, ContractUpdate, InstallmentOut, PaymentOut
from ..services.contracts import (
    contract_detail,
    create_contract,
    delete_contract,
    list_contracts,
    terminate_contract,
    update_contract,
)

router = APIRouter(prefix="/contracts", tags=["contracts"])


def _contract_out(row) -> dict:
    return ContractOut.model_validate(row).model_dump(mode="json")


@router.post("", response_model=dict, status_code=201)
def create(payload: ContractCreate, db: Session = Depends(get_db), p=Depends(get_principal)):
    row, installments = create_contract(db, tenant_id=p.tenant_id, data=payload, actor=p.actor)
    return {
        "ok": True,
        "contract": _contract_out(row),
        "installments": [InstallmentOut.model_validate(it).model_dump(mode="json") for it in installments],
    }


@router.get("", response_model=dict)
def list_(
    status: str | None = Query(default=None),
    limit: int = Query(default=200, ge=1, le=2000),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    rows = list_contracts(db, tenant_id=p.tenant_id, status=status, limit=limit)
    return {"ok": True, "contracts": [_contract_out(r) for r in rows]}


@router.get("/{contract_id}", response_model=dict)
def detail(contract_id: str, db: Session = Depends(get_db), p=Depends(get_principal)):
    d = contract_detail(db, tenant_id=p.tenant_id, contract_id=contract_id)
    return {
        "ok": True,
        "contract": _contract_out(d.contract),
        "installments": [InstallmentOut.model_validate(it).model_dump(mode="json") for it in d.installments],
        "payments": [PaymentOut.model_validate(x).model_dump(mode="json") for x in d.payments],
        "totals": d.totals.as_dict(),
    }


@router.patch("/{contract_id}", response_model=dict)
def update(contract_id: str, payload: ContractUpdate, db: Session = Depends(get_db), p=Depends(get_principal)):
    row = update_contract(db, tenant_id=p.tenant_id, contract_id=contract_id, data=payload, actor=p.actor)
    return {"ok": True, "contract": _contract_out(row)}


@router.post("/{contract_id}/terminate", response_model=dict)
def terminate(
    contract_id: str,
    payload: ContractTerminate | None = None,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    reason = payload.reason if payload else None
    row, changed = terminate_contract(db, tenant_id=p.tenant_id, contract_id=contract_id, reason=reason, actor=p.actor)
    return {"ok": True, "changed": changed, "contract": _contract_out(row)}


@router.delete("/{contract_id}", response_model=dict)
def delete(contract_id: str, db: Session = Depends(get_db), p=Depends(get_principal)):
    delete_contract(db, tenant_id=p.tenant_id, contract_id=contract_id, actor=p.actor)
    return {"ok": True}
