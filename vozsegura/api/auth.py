"""Authentication router — login, registration, password recovery."""
# ruff: noqa: B008

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from vozsegura.accounts.service import account_service, summarize
from vozsegura.api.deps import client_context, current_claims
from vozsegura.auth.credentials import credential_verifier
from vozsegura.auth.recovery import recovery_flow
from vozsegura.db.engine import get_session
from vozsegura.errors import Unauthenticated
from vozsegura.schemas.accounts import AccountCreate, AccountOut
from vozsegura.schemas.audit import AuditContext
from vozsegura.schemas.auth import (
    CodeRequest,
    CodeRequestOut,
    CodeVerifyRequest,
    CompleteRecoveryRequest,
    IdentityVerifyRequest,
    LoginRequest,
    ResetTokenOut,
    TokenOut,
)
from vozsegura.schemas.common import Envelope
from vozsegura.security.tokens import TokenClaims
from vozsegura.stores.accounts import account_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login")
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_session),
    context: AuditContext = Depends(client_context),
) -> Envelope[TokenOut]:
    result = await credential_verifier.login(db, body.email, body.password, context)
    return Envelope(
        message="Login successful",
        data=TokenOut(
            access_token=result.token,
            expires_in=result.expires_in,
            account=summarize(result.account, reveal=True),
        ),
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    body: AccountCreate,
    db: AsyncSession = Depends(get_session),
    context: AuditContext = Depends(client_context),
) -> Envelope[AccountOut]:
    account = await account_service.register(db, body, context)
    return Envelope(message="Account created", data=summarize(account, reveal=True))


@router.get("/me")
async def me(
    claims: TokenClaims = Depends(current_claims),
    db: AsyncSession = Depends(get_session),
) -> Envelope[AccountOut]:
    account = await account_store.get_by_id(db, claims.account_id)
    if account is None:
        # Token outlived its account (deleted supervisor)
        raise Unauthenticated
    return Envelope(data=summarize(account, reveal=True))


# ── Recovery ─────────────────────────────────────────────────────────


@router.post("/recovery/verify-identity")
async def verify_identity(
    body: IdentityVerifyRequest,
    db: AsyncSession = Depends(get_session),
    context: AuditContext = Depends(client_context),
) -> Envelope[ResetTokenOut]:
    grant = await recovery_flow.verify_identity(
        db, body.email, body.surname, body.given_name, body.phone, context
    )
    return Envelope(
        message="Identity verified",
        data=ResetTokenOut(reset_token=grant.reset_token, expires_in=grant.expires_in),
    )


@router.post("/recovery/request-code")
async def request_code(
    body: CodeRequest,
    db: AsyncSession = Depends(get_session),
    context: AuditContext = Depends(client_context),
) -> Envelope[CodeRequestOut]:
    result = await recovery_flow.request_code(db, body.email, context)
    return Envelope(
        message=result.message,
        data=CodeRequestOut(message=result.message, expires_in=result.expires_in, dev_code=result.dev_code),
    )


@router.post("/recovery/verify-code")
async def verify_code(
    body: CodeVerifyRequest,
    db: AsyncSession = Depends(get_session),
    context: AuditContext = Depends(client_context),
) -> Envelope[ResetTokenOut]:
    grant = await recovery_flow.verify_code(db, body.email, body.code, context)
    return Envelope(
        message="Code verified",
        data=ResetTokenOut(reset_token=grant.reset_token, expires_in=grant.expires_in),
    )


@router.post("/recovery/complete")
async def complete_recovery(
    body: CompleteRecoveryRequest,
    db: AsyncSession = Depends(get_session),
    context: AuditContext = Depends(client_context),
) -> Envelope[None]:
    await recovery_flow.complete_recovery(db, body.email, body.new_password, body.reset_token, context)
    return Envelope(message="Password updated. You can now log in.")
