"""Audit trail recorder — append-only writes and the filtered query API.

record() writes in its own session so an audit row survives a rolled-back
primary transaction, and never raises. A failed write is reported on the
operational error channel (the `vozsegura.ops` logger) and the caller's
primary action proceeds.

No update or delete exists here or anywhere else.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vozsegura.config import settings
from vozsegura.db.engine import async_session_factory
from vozsegura.models.audit import AuditLog
from vozsegura.models.enums import AuditAction
from vozsegura.schemas.audit import AuditContext, AuditEntry, AuditFilters

logger = logging.getLogger(__name__)
ops_logger = logging.getLogger("vozsegura.ops")


@dataclass(frozen=True)
class AuditPage:
    entries: list[AuditLog]
    total: int
    limit: int
    offset: int


def build_audit_queries(filters: AuditFilters) -> tuple[Select[Any], Select[Any]]:
    """Build the (page, count) statements for a filter set, newest first."""
    query = select(AuditLog)
    count_query = select(func.count(AuditLog.id))

    conditions = []
    if filters.actor_id is not None:
        conditions.append(AuditLog.actor_id == filters.actor_id)
    if filters.action is not None:
        conditions.append(AuditLog.action == filters.action.value)
    if filters.resource_table:
        conditions.append(AuditLog.resource_table == filters.resource_table)
    if filters.date_from is not None:
        conditions.append(AuditLog.created_at >= filters.date_from)
    if filters.date_to is not None:
        conditions.append(AuditLog.created_at <= filters.date_to)

    if conditions:
        query = query.where(*conditions)
        count_query = count_query.where(*conditions)

    limit = min(filters.limit, settings.audit.audit_max_page_size)
    query = (
        query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset(filters.offset)
        .limit(limit)
    )
    return query, count_query


class AuditRecorder:
    """Best-effort writer and reader for the audit_log table."""

    def __init__(self, session_factory: Callable[[], Any]) -> None:
        self._session_factory = session_factory

    async def record(self, entry: AuditEntry) -> AuditLog | None:
        """Persist one entry. Returns the row, or None if the write failed."""
        try:
            async with self._session_factory() as db:
                row = AuditLog(
                    actor_id=entry.actor_id,
                    action=entry.action.value,
                    resource_table=entry.resource_table,
                    resource_id=entry.resource_id,
                    details=entry.details or None,
                    ip_address=entry.ip_address,
                    user_agent=entry.user_agent,
                    success=entry.success,
                )
                db.add(row)
                await db.commit()
                return row
        except Exception:
            ops_logger.exception(
                "Failed to persist audit entry: %s (actor=%s, success=%s)",
                entry.action.value,
                entry.actor_id,
                entry.success,
            )
            return None

    async def log(
        self,
        action: AuditAction,
        *,
        actor_id: uuid.UUID | None = None,
        context: AuditContext | None = None,
        success: bool = True,
        resource_table: str | None = None,
        resource_id: Any = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLog | None:
        """Shortcut used by the services: build an AuditEntry and record it."""
        context = context or AuditContext()
        entry = AuditEntry(
            action=action,
            actor_id=actor_id,
            resource_table=resource_table,
            resource_id=str(resource_id) if resource_id is not None else None,
            details=details or {},
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            success=success,
        )
        return await self.record(entry)

    async def find(self, db: AsyncSession, filters: AuditFilters) -> AuditPage:
        """Filtered, paginated query ordered newest-first."""
        query, count_query = build_audit_queries(filters)

        result = await db.execute(count_query)
        total = result.scalar() or 0

        result = await db.execute(query)
        entries = list(result.scalars().all())

        return AuditPage(
            entries=entries,
            total=total,
            limit=min(filters.limit, settings.audit.audit_max_page_size),
            offset=filters.offset,
        )


# Module-level singleton
audit_recorder = AuditRecorder(async_session_factory)
