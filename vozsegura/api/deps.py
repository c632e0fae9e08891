"""FastAPI dependencies — bearer authentication, role gates, client metadata."""
# ruff: noqa: B008

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from vozsegura.errors import Forbidden, Unauthenticated
from vozsegura.models.enums import AuditAction, Role
from vozsegura.schemas.audit import AuditContext
from vozsegura.security.audit import audit_recorder
from vozsegura.security.tokens import TokenClaims, token_issuer

logger = logging.getLogger(__name__)

MAX_USER_AGENT_LENGTH = 500

# auto_error=False: a missing header becomes our own Unauthenticated, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)


def client_context(request: Request) -> AuditContext:
    """Client address and agent string, recorded verbatim in the audit trail."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    else:
        ip_address = request.headers.get("x-real-ip") or (request.client.host if request.client else None)

    user_agent = request.headers.get("user-agent")
    if user_agent is not None:
        user_agent = user_agent[:MAX_USER_AGENT_LENGTH]
    return AuditContext(ip_address=ip_address, user_agent=user_agent)


async def optional_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    context: AuditContext = Depends(client_context),
) -> TokenClaims | None:
    """Verified claims if a bearer token was sent, else None. A bad token is never ignored."""
    if credentials is None:
        return None
    try:
        return token_issuer.verify(credentials.credentials)
    except Unauthenticated:
        await audit_recorder.log(AuditAction.TOKEN_REJECTED, context=context, success=False)
        raise


async def current_claims(claims: TokenClaims | None = Depends(optional_claims)) -> TokenClaims:
    if claims is None:
        raise Unauthenticated
    return claims


def require_role(*roles: Role) -> Callable[..., Awaitable[TokenClaims]]:
    """Dependency factory: the caller must hold one of the given roles."""

    async def dependency(claims: TokenClaims = Depends(current_claims)) -> TokenClaims:
        if claims.role not in roles:
            logger.info("Role %s denied (needs one of %s)", claims.role.value, [r.value for r in roles])
            raise Forbidden
        return claims

    return dependency


require_owner_admin = require_role(Role.OWNER_ADMIN)
