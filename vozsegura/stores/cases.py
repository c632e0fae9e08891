"""Case store — the narrow slice of case persistence the control plane needs."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vozsegura.models.case import Case
from vozsegura.models.enums import OPEN_CASE_STATUSES


class CaseStore:
    """Stateless queries; the AsyncSession is passed per call."""

    async def code_exists(self, db: AsyncSession, code: str) -> bool:
        result = await db.execute(select(Case.id).where(Case.anonymous_code == code))
        return result.scalar_one_or_none() is not None

    async def add(self, db: AsyncSession, case: Case) -> Case:
        db.add(case)
        await db.flush()
        return case

    async def unassigned_open(self, db: AsyncSession) -> list[Case]:
        """Open cases with no supervisor, oldest first."""
        result = await db.execute(
            select(Case)
            .where(Case.supervisor_id.is_(None), Case.status.in_(OPEN_CASE_STATUSES))
            .order_by(Case.created_at.asc())
        )
        return list(result.scalars().all())

    async def set_supervisor(self, db: AsyncSession, case: Case, supervisor_id: uuid.UUID) -> Case:
        case.supervisor_id = supervisor_id
        await db.flush()
        return case


# Module-level singleton
case_store = CaseStore()
