"""Account administration router.

Supervisors may look up an account (PII masked); everything else is
Owner-Admin only.
"""
# ruff: noqa: B008

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from vozsegura.accounts.service import account_service, summarize
from vozsegura.api.deps import client_context, require_owner_admin, require_role
from vozsegura.db.engine import get_session
from vozsegura.models.enums import Role
from vozsegura.schemas.accounts import AccountCreate, AccountOut, AccountUpdate
from vozsegura.schemas.audit import AuditContext
from vozsegura.schemas.common import Envelope
from vozsegura.security.tokens import TokenClaims

router = APIRouter(prefix="/api/accounts", tags=["accounts"])


@router.get("")
async def list_accounts(
    role: Role | None = Query(None),
    db: AsyncSession = Depends(get_session),
    _admin: TokenClaims = Depends(require_owner_admin),
) -> Envelope[list[AccountOut]]:
    return Envelope(data=await account_service.list_accounts(db, role=role))


@router.post("/supervisors", status_code=status.HTTP_201_CREATED)
async def create_supervisor(
    body: AccountCreate,
    db: AsyncSession = Depends(get_session),
    admin: TokenClaims = Depends(require_owner_admin),
    context: AuditContext = Depends(client_context),
) -> Envelope[AccountOut]:
    account = await account_service.create_supervisor(db, body, admin.account_id, context)
    return Envelope(message="Supervisor created", data=summarize(account, reveal=True))


@router.get("/{account_id}")
async def get_account(
    account_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
    viewer: TokenClaims = Depends(require_role(Role.OWNER_ADMIN, Role.SUPERVISOR)),
    context: AuditContext = Depends(client_context),
) -> Envelope[AccountOut]:
    return Envelope(data=await account_service.get_account(db, account_id, viewer, context))


@router.patch("/{account_id}")
async def update_account(
    account_id: uuid.UUID,
    body: AccountUpdate,
    db: AsyncSession = Depends(get_session),
    admin: TokenClaims = Depends(require_owner_admin),
    context: AuditContext = Depends(client_context),
) -> Envelope[AccountOut]:
    account = await account_service.update_account(db, account_id, body, admin.account_id, context)
    return Envelope(message="Account updated", data=summarize(account, reveal=True))


@router.delete("/{account_id}")
async def delete_account(
    account_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
    admin: TokenClaims = Depends(require_owner_admin),
    context: AuditContext = Depends(client_context),
) -> Envelope[None]:
    """Hard delete, supervisors only."""
    await account_service.delete_account(db, account_id, admin.account_id, context)
    return Envelope(message="Supervisor deleted")
