"""Assignment rule management router (Owner-Admin only)."""
# ruff: noqa: B008

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from vozsegura.api.deps import client_context, require_owner_admin
from vozsegura.db.engine import get_session
from vozsegura.routing.engine import assignment_engine
from vozsegura.schemas.audit import AuditContext
from vozsegura.schemas.common import Envelope
from vozsegura.schemas.rules import RuleCreate, RuleOut, RuleUpdate
from vozsegura.security.tokens import TokenClaims

router = APIRouter(prefix="/api/rules", tags=["rules"])


@router.get("")
async def list_rules(
    active: bool | None = Query(None),
    db: AsyncSession = Depends(get_session),
    _admin: TokenClaims = Depends(require_owner_admin),
) -> Envelope[list[RuleOut]]:
    rules = await assignment_engine.list_rules(db, active=active)
    return Envelope(data=[RuleOut.model_validate(rule) for rule in rules])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_rule(
    body: RuleCreate,
    db: AsyncSession = Depends(get_session),
    admin: TokenClaims = Depends(require_owner_admin),
    context: AuditContext = Depends(client_context),
) -> Envelope[RuleOut]:
    rule = await assignment_engine.create_rule(
        db,
        label=body.label,
        description=body.description,
        category=body.category,
        priority=body.priority,
        supervisor_id=body.supervisor_id,
        active=body.active,
        actor_id=admin.account_id,
        context=context,
    )
    return Envelope(message="Rule created", data=RuleOut.model_validate(rule))


@router.get("/{rule_id}")
async def get_rule(
    rule_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
    _admin: TokenClaims = Depends(require_owner_admin),
) -> Envelope[RuleOut]:
    rule = await assignment_engine.get_rule(db, rule_id)
    return Envelope(data=RuleOut.model_validate(rule))


@router.patch("/{rule_id}")
async def update_rule(
    rule_id: uuid.UUID,
    body: RuleUpdate,
    db: AsyncSession = Depends(get_session),
    admin: TokenClaims = Depends(require_owner_admin),
    context: AuditContext = Depends(client_context),
) -> Envelope[RuleOut]:
    rule = await assignment_engine.update_rule(
        db,
        rule_id,
        body.model_dump(exclude_unset=True),
        actor_id=admin.account_id,
        context=context,
    )
    return Envelope(message="Rule updated", data=RuleOut.model_validate(rule))


@router.delete("/{rule_id}")
async def deactivate_rule(
    rule_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
    admin: TokenClaims = Depends(require_owner_admin),
    context: AuditContext = Depends(client_context),
) -> Envelope[RuleOut]:
    """Deactivates; rules are never physically deleted."""
    rule = await assignment_engine.deactivate_rule(db, rule_id, actor_id=admin.account_id, context=context)
    return Envelope(message="Rule deactivated", data=RuleOut.model_validate(rule))
