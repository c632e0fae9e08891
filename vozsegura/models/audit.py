"""AuditLog model — immutable audit trail for every security-relevant action.

This table is append-only. The ORM refuses to flush updates or deletes of an
AuditLog row, and the initial migration installs a trigger that rejects
UPDATE/DELETE at the database level.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Boolean, String, event
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from vozsegura.models.base import Base, CreatedAtMixin


class ImmutableAuditError(RuntimeError):
    """Raised on any attempt to modify or remove an audit entry."""


class AuditLog(CreatedAtMixin, Base):
    """Immutable audit trail entry."""

    __tablename__ = "audit_log"

    # Who (nullable: unauthenticated actions are still logged)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)

    # What
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_table: Mapped[str | None] = mapped_column(String(64), index=True, comment="Table/model name")
    resource_id: Mapped[str | None] = mapped_column(String(64))
    details: Mapped[dict[str, Any] | None] = mapped_column(JSONB)

    # Client metadata, verbatim from the transport layer
    ip_address: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(String(500))

    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<AuditLog action={self.action} actor={self.actor_id} success={self.success}>"


@event.listens_for(AuditLog, "before_update")
def _refuse_update(mapper: Any, connection: Any, target: AuditLog) -> None:
    msg = f"audit_log rows are append-only (update attempted on {target.id})"
    raise ImmutableAuditError(msg)


@event.listens_for(AuditLog, "before_delete")
def _refuse_delete(mapper: Any, connection: Any, target: AuditLog) -> None:
    msg = f"audit_log rows are append-only (delete attempted on {target.id})"
    raise ImmutableAuditError(msg)
