# backend/rentdesk/routers/dashboard.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..services.dashboard import month_summary

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary", response_model=dict)
def summary(db: Session = Depends(get_db), p=Depends(get_principal)):
    return {"ok": True, **month_summary(db, tenant_id=p.tenant_id).as_dict()}
