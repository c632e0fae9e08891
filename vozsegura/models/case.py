"""Case model — the complaint record.

Owned by the case screens; the control plane only writes `supervisor_id`
(at creation, or later when re-running assignment for unassigned cases).
"""

from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from vozsegura.models.base import Base, TimestampMixin
from vozsegura.models.enums import CaseStatus


class Case(TimestampMixin, Base):
    """An anonymous complaint."""

    __tablename__ = "cases"

    anonymous_code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True, comment="DEN-YYYY-XXXX")
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str | None] = mapped_column(String(200))

    category: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=CaseStatus.PENDING.value, index=True)

    reporter_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="SET NULL")
    )
    supervisor_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="SET NULL"), index=True
    )

    def __repr__(self) -> str:
        return f"<Case code={self.anonymous_code} status={self.status} supervisor={self.supervisor_id}>"
