"""Case intake — file a complaint and route it to a supervisor."""

from __future__ import annotations

import logging
import secrets
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from vozsegura.errors import Forbidden, Internal
from vozsegura.models.case import Case
from vozsegura.models.enums import AuditAction, CaseCategory, CasePriority, CaseStatus, Role
from vozsegura.routing.engine import assignment_engine
from vozsegura.schemas.audit import AuditContext
from vozsegura.schemas.cases import CaseCreate
from vozsegura.security.audit import audit_recorder
from vozsegura.security.tokens import TokenClaims
from vozsegura.stores.cases import case_store

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 20


def generate_case_code(year: int) -> str:
    """DEN-YYYY-XXXX, four random digits."""
    return f"DEN-{year}-{secrets.randbelow(10_000):04d}"


class CaseService:
    def __init__(
        self,
        cases: Any = case_store,
        engine: Any = assignment_engine,
        recorder: Any = audit_recorder,
    ) -> None:
        self._cases = cases
        self._engine = engine
        self._recorder = recorder

    async def create_case(
        self,
        db: AsyncSession,
        data: CaseCreate,
        reporter: TokenClaims | None = None,
        context: AuditContext | None = None,
    ) -> Case:
        """Persist a new case with its routing decision.

        Anonymous callers and reporters may file. Other roles handle cases,
        they do not file them.
        """
        if reporter is not None and reporter.role is not Role.REPORTER:
            raise Forbidden("Only reporters can file cases")

        code = await self._allocate_code(db)
        category = CaseCategory(data.category).value
        supervisor_id = await self._engine.assign(db, category)

        case = Case(
            anonymous_code=code,
            title=data.title,
            description=data.description,
            location=data.location,
            category=category,
            priority=int(CasePriority(data.priority)),
            status=CaseStatus.PENDING.value,
            reporter_id=reporter.account_id if reporter is not None else None,
            supervisor_id=supervisor_id,
        )
        await self._cases.add(db, case)
        await db.commit()

        actor_id = reporter.account_id if reporter is not None else None
        await self._recorder.log(
            AuditAction.CASE_CREATED,
            actor_id=actor_id,
            context=context,
            resource_table="cases",
            resource_id=case.id,
            details={"code": code, "category": category, "priority": case.priority},
        )
        if supervisor_id is not None:
            await self._recorder.log(
                AuditAction.CASE_ASSIGNED,
                actor_id=actor_id,
                context=context,
                resource_table="cases",
                resource_id=case.id,
                details={"supervisor_id": str(supervisor_id), "trigger": "intake"},
            )
        logger.info("Case %s filed (%s), supervisor=%s", code, category, supervisor_id)
        return case

    async def _allocate_code(self, db: AsyncSession) -> str:
        year = datetime.now(UTC).year
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_case_code(year)
            if not await self._cases.code_exists(db, code):
                return code
        logger.error("Could not allocate a free case code for %d after %d tries", year, MAX_CODE_ATTEMPTS)
        raise Internal


# Module-level singleton
case_service = CaseService()
