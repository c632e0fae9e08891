"""AssignmentRule model — (category, priority) -> supervisor routing table.

At most one active rule per (category, priority): checked by the rule engine
before writing (to name the conflicting rule) and enforced by the partial
unique index below (to close the race between concurrent writers).
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from vozsegura.models.base import Base, TimestampMixin

ACTIVE_PAIR_INDEX = "uq_assignment_rules_active_pair"


class AssignmentRule(TimestampMixin, Base):
    """Routes new cases of a category to a specific supervisor."""

    __tablename__ = "assignment_rules"
    __table_args__ = (
        Index(
            ACTIVE_PAIR_INDEX,
            "category",
            "priority",
            unique=True,
            postgresql_where=text("active"),
        ),
    )

    label: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)

    category: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # SET NULL keeps deactivated rules as history when a supervisor is hard-deleted
    supervisor_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="SET NULL"), index=True
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<AssignmentRule {self.category}/{self.priority} -> {self.supervisor_id} active={self.active}>"
