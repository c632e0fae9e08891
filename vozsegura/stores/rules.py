"""Assignment rule store."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vozsegura.errors import Conflict
from vozsegura.models.assignment_rule import AssignmentRule


class RuleStore:
    """Stateless queries; the AsyncSession is passed per call."""

    async def get(self, db: AsyncSession, rule_id: uuid.UUID) -> AssignmentRule | None:
        return await db.get(AssignmentRule, rule_id)

    async def list_rules(self, db: AsyncSession, active: bool | None = None) -> list[AssignmentRule]:
        query = select(AssignmentRule).order_by(AssignmentRule.priority.desc(), AssignmentRule.created_at.desc())
        if active is not None:
            query = query.where(AssignmentRule.active.is_(active))
        result = await db.execute(query)
        return list(result.scalars().all())

    async def find_active(
        self,
        db: AsyncSession,
        category: str,
        priority: int,
        exclude_id: uuid.UUID | None = None,
    ) -> AssignmentRule | None:
        query = select(AssignmentRule).where(
            AssignmentRule.active.is_(True),
            AssignmentRule.category == category,
            AssignmentRule.priority == priority,
        )
        if exclude_id is not None:
            query = query.where(AssignmentRule.id != exclude_id)
        result = await db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def active_for_category(self, db: AsyncSession, category: str) -> list[AssignmentRule]:
        """Active rules for a category, highest priority first."""
        result = await db.execute(
            select(AssignmentRule)
            .where(AssignmentRule.active.is_(True), AssignmentRule.category == category)
            .order_by(AssignmentRule.priority.desc())
        )
        return list(result.scalars().all())

    async def active_for_supervisor(self, db: AsyncSession, supervisor_id: uuid.UUID) -> list[AssignmentRule]:
        result = await db.execute(
            select(AssignmentRule).where(
                AssignmentRule.active.is_(True),
                AssignmentRule.supervisor_id == supervisor_id,
            )
        )
        return list(result.scalars().all())

    async def add(self, db: AsyncSession, rule: AssignmentRule) -> AssignmentRule:
        db.add(rule)
        await self._flush(db)
        return rule

    async def save(self, db: AsyncSession, rule: AssignmentRule) -> AssignmentRule:
        await self._flush(db)
        return rule

    async def _flush(self, db: AsyncSession) -> None:
        # The partial unique index catches writers that raced past the pre-check
        try:
            await db.flush()
        except IntegrityError as exc:
            await db.rollback()
            raise Conflict("An active rule already exists for this category and priority") from exc


# Module-level singleton
rule_store = RuleStore()
