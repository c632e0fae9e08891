"""Signed bearer tokens (HS256 JWT).

Two purposes share one signing key:
- session tokens: account id + email + role, valid token_ttl_days;
- reset tokens: continuation proof that recovery step 1 succeeded,
  bound to an email and a single-use server-side grant.

A token minted for one purpose is never accepted for the other. Every
verification failure surfaces as the same Unauthenticated; the real reason
only reaches the debug log.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from jose import JWTError, jwt

from vozsegura.config import settings
from vozsegura.errors import Unauthenticated
from vozsegura.models.enums import Role

logger = logging.getLogger(__name__)


class TokenPurpose(str, Enum):
    SESSION = "session"
    PASSWORD_RESET = "password_reset"


@dataclass(frozen=True)
class TokenClaims:
    """Verified identity carried by a session token."""

    account_id: uuid.UUID
    email: str
    role: Role
    expires_at: datetime


@dataclass(frozen=True)
class ResetClaims:
    """Verified continuation token from recovery step 1."""

    email: str
    grant_id: str


class SessionTokenIssuer:
    """Issues and verifies signed session and reset tokens."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        session_ttl: timedelta = timedelta(days=7),
        reset_ttl: timedelta = timedelta(minutes=5),
    ) -> None:
        if not secret:
            msg = "Token signing secret must not be empty"
            raise ValueError(msg)
        self._secret = secret
        self._algorithm = algorithm
        self.session_ttl = session_ttl
        self.reset_ttl = reset_ttl

    # ── Session tokens ───────────────────────────────────────────────

    def issue(self, account_id: uuid.UUID, email: str, role: Role | str, now: datetime | None = None) -> str:
        """Create a session token for an authenticated account."""
        now = now or datetime.now(UTC)
        payload = {
            "sub": str(account_id),
            "email": email,
            "role": Role(role).value,
            "purpose": TokenPurpose.SESSION.value,
            "iat": int(now.timestamp()),
            "exp": int((now + self.session_ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Decode and validate a session token.

        Raises:
            Unauthenticated: forged, expired, malformed or wrong-purpose token.
        """
        payload = self._decode(token, TokenPurpose.SESSION)
        try:
            return TokenClaims(
                account_id=uuid.UUID(payload["sub"]),
                email=payload["email"],
                role=Role(payload["role"]),
                expires_at=datetime.fromtimestamp(payload["exp"], UTC),
            )
        except (KeyError, ValueError, TypeError) as exc:
            logger.debug("Session token rejected: bad claims (%s)", exc)
            raise Unauthenticated from exc

    # ── Reset tokens ─────────────────────────────────────────────────

    def issue_reset_token(
        self, email: str, grant_id: str | None = None, now: datetime | None = None
    ) -> tuple[str, str]:
        """Create a continuation token. Returns (token, grant_id)."""
        now = now or datetime.now(UTC)
        grant_id = grant_id or secrets.token_urlsafe(16)
        payload = {
            "sub": email,
            "jti": grant_id,
            "purpose": TokenPurpose.PASSWORD_RESET.value,
            "iat": int(now.timestamp()),
            "exp": int((now + self.reset_ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm), grant_id

    def verify_reset_token(self, token: str) -> ResetClaims:
        payload = self._decode(token, TokenPurpose.PASSWORD_RESET)
        email, grant_id = payload.get("sub"), payload.get("jti")
        if not email or not grant_id:
            logger.debug("Reset token rejected: missing sub/jti")
            raise Unauthenticated
        return ResetClaims(email=email, grant_id=grant_id)

    # ── Internals ────────────────────────────────────────────────────

    def _decode(self, token: str, purpose: TokenPurpose) -> dict[str, Any]:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError as exc:
            logger.debug("Token rejected: %s", exc)
            raise Unauthenticated from exc
        if payload.get("purpose") != purpose.value:
            logger.debug("Token rejected: purpose %r, expected %r", payload.get("purpose"), purpose.value)
            raise Unauthenticated
        return payload


def _load_secret() -> str:
    secret = settings.security.jwt_secret
    if secret:
        return secret
    if settings.is_production:
        msg = "JWT_SECRET must be set in production"
        raise RuntimeError(msg)
    logger.warning("JWT_SECRET not set — using a random ephemeral secret (tokens won't survive restarts)")
    return secrets.token_urlsafe(48)


# Module-level singleton
token_issuer = SessionTokenIssuer(
    _load_secret(),
    algorithm=settings.security.jwt_algorithm,
    session_ttl=timedelta(days=settings.security.token_ttl_days),
    reset_ttl=timedelta(seconds=settings.security.reset_token_ttl_seconds),
)
