"""Case intake router."""
# ruff: noqa: B008

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from vozsegura.api.deps import client_context, optional_claims, require_owner_admin
from vozsegura.cases.service import case_service
from vozsegura.db.engine import get_session
from vozsegura.routing.engine import assignment_engine
from vozsegura.schemas.audit import AuditContext
from vozsegura.schemas.cases import CaseCreate, CaseReceipt, ReassignOut
from vozsegura.schemas.common import Envelope
from vozsegura.security.tokens import TokenClaims

router = APIRouter(prefix="/api/cases", tags=["cases"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_case(
    body: CaseCreate,
    db: AsyncSession = Depends(get_session),
    claims: TokenClaims | None = Depends(optional_claims),
    context: AuditContext = Depends(client_context),
) -> Envelope[CaseReceipt]:
    """File a case, anonymously or as a logged-in reporter."""
    case = await case_service.create_case(db, body, reporter=claims, context=context)
    return Envelope(
        message="Case received. Keep your code to follow up.",
        data=CaseReceipt.model_validate(case),
    )


@router.post("/reassign")
async def reassign_unassigned(
    db: AsyncSession = Depends(get_session),
    admin: TokenClaims = Depends(require_owner_admin),
    context: AuditContext = Depends(client_context),
) -> Envelope[ReassignOut]:
    assigned = await assignment_engine.reassign_unassigned(db, actor_id=admin.account_id, context=context)
    return Envelope(data=ReassignOut(assigned=len(assigned), case_ids=[case.id for case in assigned]))
