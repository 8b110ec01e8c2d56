# backend/rentdesk/domain/audit.py
from __future__ import annotations

import json
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..models import AuditEvent
from .dates import utcnow


def _dumps(v: Optional[dict[str, Any]]) -> Optional[str]:
    if v is None:
        return None
    return json.dumps(v, sort_keys=True, default=str)


def audit_write(
    db: Session,
    *,
    tenant_id: str,
    actor: Optional[str],
    action: str,
    entity_type: str,
    entity_id: Any,
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
) -> AuditEvent:
    """
    Adds an AuditEvent to the current session. Never commits: the row lands in
    the same unit of work as the mutation it describes, or not at all.
    """
    row = AuditEvent(
        tenant_id=tenant_id,
        actor=actor,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before_json=_dumps(before),
        after_json=_dumps(after),
        created_at=utcnow(),
    )
    db.add(row)
    return row
