# backend/rentdesk/routers/migrate.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..services.batch_jobs import repair_start_dates

router = APIRouter(prefix="/migrate", tags=["migrate"])


@router.get("/fix-start-dates", response_model=dict)
def fix_start_dates(db: Session = Depends(get_db), p=Depends(get_principal)):
    res = repair_start_dates(db, tenant_id=p.tenant_id)
    return {"ok": True, **res.as_dict()}
