# backend/rentdesk/auth.py
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from .config import settings
from .domain.errors import ValidationError


@dataclass(frozen=True)
class Principal:
    tenant_id: str
    actor: str


def get_principal(request: Request) -> Principal:
    """
    Tenant scope and acting user come from request headers.

    Sign-in is handled in front of this service; here we only need to know
    which tenant's rows to touch and who to record in audit/void/transfer
    metadata.
    """
    tenant_id = (request.headers.get(settings.header_tenant_id) or settings.default_tenant_id).strip()
    if not tenant_id or len(tenant_id) > 64:
        raise ValidationError(f"invalid {settings.header_tenant_id} header")

    actor = (request.headers.get(settings.header_user) or "system").strip() or "system"
    return Principal(tenant_id=tenant_id, actor=actor[:120])
