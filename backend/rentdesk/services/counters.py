# backend/rentdesk/services/counters.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import Counter

CONTRACT_CODE_KEY = "contract:CID"
CONTRACT_CODE_PREFIX = "CID"


def next_seq(db: Session, *, tenant_id: str, key: str) -> int:
    """
    Bumps the (tenant_id, key) counter inside the caller's transaction.
    The unique constraint on the row makes two first-time creators collide
    instead of both handing out 1.
    """
    row = db.scalar(
        select(Counter).where(Counter.tenant_id == tenant_id, Counter.key == key).with_for_update()
    )
    if row is None:
        row = Counter(tenant_id=tenant_id, key=key, seq=0)
        db.add(row)
    row.seq = int(row.seq or 0) + 1
    db.flush()
    return row.seq


def next_contract_code(db: Session, *, tenant_id: str) -> str:
    seq = next_seq(db, tenant_id=tenant_id, key=CONTRACT_CODE_KEY)
    return f"{CONTRACT_CODE_PREFIX}-{seq:03d}"
