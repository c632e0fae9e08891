"""Audit trail query router (Owner-Admin only). Reading the trail is itself audited."""
# ruff: noqa: B008

from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vozsegura.api.deps import client_context, require_owner_admin
from vozsegura.config import settings
from vozsegura.db.engine import get_session
from vozsegura.models.enums import AuditAction
from vozsegura.schemas.audit import AuditContext, AuditEntryOut, AuditFilters, AuditPageOut, PageMeta
from vozsegura.security.audit import audit_recorder
from vozsegura.security.tokens import TokenClaims

router = APIRouter(prefix="/api/audit", tags=["audit"])


@router.get("")
async def query_audit(
    actor_id: uuid.UUID | None = Query(None),
    action: AuditAction | None = Query(None),
    resource_table: str | None = Query(None, max_length=50),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    limit: int = Query(settings.audit.audit_default_page_size, ge=1, le=settings.audit.audit_max_page_size),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_session),
    admin: TokenClaims = Depends(require_owner_admin),
    context: AuditContext = Depends(client_context),
) -> AuditPageOut:
    filters = AuditFilters(
        actor_id=actor_id,
        action=action,
        resource_table=resource_table,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    page = await audit_recorder.find(db, filters)

    await audit_recorder.log(
        AuditAction.AUDIT_QUERY,
        actor_id=admin.account_id,
        context=context,
        resource_table="audit_log",
        details=filters.model_dump(mode="json", exclude_none=True),
    )
    return AuditPageOut(
        data=[AuditEntryOut.model_validate(entry) for entry in page.entries],
        meta=PageMeta(limit=page.limit, offset=page.offset, count=len(page.entries), total=page.total),
    )
