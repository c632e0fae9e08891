"""Credential verifier — login with brute-force lockout.

Reads the account, runs the LockoutPolicy state machine and writes the next
state back with a compare-and-swap on accounts.version. A concurrent login
that wrote first makes our CAS miss; we re-read and re-evaluate.

"No such account" and "wrong password" are indistinguishable to the caller,
in message and (thanks to a dummy bcrypt run) in timing. The audit trail
records the true reason.

Usage:
    from vozsegura.auth.credentials import credential_verifier

    result = await credential_verifier.login(db, email, password, context)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from vozsegura.auth.lockout import LockoutPolicy, LockState
from vozsegura.config import settings
from vozsegura.errors import AccountInactive, Internal, TemporarilyLocked, Unauthenticated
from vozsegura.models.account import Account
from vozsegura.models.enums import AccountStatus, AuditAction
from vozsegura.schemas.audit import AuditContext
from vozsegura.security.audit import audit_recorder
from vozsegura.security.passwords import burn_verification_time, verify_credential
from vozsegura.security.tokens import token_issuer
from vozsegura.stores.accounts import account_store, normalize_email

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
MAX_CAS_RETRIES = 3


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class LoginResult:
    token: str
    account: Account
    expires_in: int


class CredentialVerifier:
    """Authenticates email + password and maintains the lockout counters."""

    def __init__(
        self,
        accounts: Any = account_store,
        policy: LockoutPolicy | None = None,
        issuer: Any = token_issuer,
        recorder: Any = audit_recorder,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._accounts = accounts
        self._policy = policy or LockoutPolicy(
            threshold=settings.security.lockout_threshold,
            duration=timedelta(minutes=settings.security.lockout_minutes),
        )
        self._issuer = issuer
        self._recorder = recorder
        self._clock = clock

    async def login(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        context: AuditContext | None = None,
    ) -> LoginResult:
        """Verify credentials and issue a session token.

        Raises:
            Unauthenticated: unknown account or wrong password.
            TemporarilyLocked: lock window still running.
            AccountInactive: account deactivated by an administrator.
            Internal: lost the CAS race too many times.
        """
        email = normalize_email(email)
        for attempt in range(1, MAX_CAS_RETRIES + 1):
            result = await self._attempt(db, email, password, context)
            if result is not None:
                return result
            logger.info("Lockout CAS lost for %s (attempt %d), re-reading", email, attempt)

        logger.error("Lockout CAS lost %d times in a row for %s", MAX_CAS_RETRIES, email)
        raise Internal

    async def _attempt(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        context: AuditContext | None,
    ) -> LoginResult | None:
        """One read-evaluate-write pass. None means the CAS missed."""
        account = await self._accounts.get_by_email(db, email)
        if account is None:
            await asyncio.to_thread(burn_verification_time, password)
            await self._audit_failure(None, context, "unknown_account", email=email)
            raise Unauthenticated(INVALID_CREDENTIALS)

        now = self._clock()
        state = LockState.of(account)

        if state.is_locked(now):
            await self._audit_failure(account, context, "locked")
            raise TemporarilyLocked(retry_after=self._policy.retry_after(state, now))

        if account.status == AccountStatus.INACTIVE.value:
            await self._audit_failure(account, context, "inactive")
            raise AccountInactive

        valid = await asyncio.to_thread(verify_credential, password, account.password_hash)

        if not valid:
            next_state = self._policy.on_failure(state, now)
            written = await self._accounts.compare_and_set_lock_state(db, account.id, account.version, next_state)
            if not written:
                return None
            # Persist the counter before raising; the request session rolls back on error
            await db.commit()

            await self._audit_failure(
                account, context, "wrong_password", failed_attempts=next_state.failed_attempts
            )
            if next_state.locked_until is not None:
                logger.warning("Account %s locked until %s", account.id, next_state.locked_until.isoformat())
                await self._recorder.log(
                    AuditAction.ACCOUNT_LOCKED,
                    actor_id=account.id,
                    context=context,
                    resource_table="accounts",
                    resource_id=account.id,
                    details={
                        "failed_attempts": next_state.failed_attempts,
                        "locked_until": next_state.locked_until.isoformat(),
                    },
                )
            raise Unauthenticated(INVALID_CREDENTIALS)

        written = await self._accounts.compare_and_set_lock_state(
            db,
            account.id,
            account.version,
            self._policy.on_success(),
            last_login_at=now,
        )
        if not written:
            return None
        await db.commit()
        await db.refresh(account)

        token = self._issuer.issue(account.id, account.email, account.role, now=now)
        await self._recorder.log(
            AuditAction.LOGIN,
            actor_id=account.id,
            context=context,
            resource_table="accounts",
            resource_id=account.id,
        )
        logger.info("Login ok: %s (%s)", account.id, account.role)
        return LoginResult(
            token=token,
            account=account,
            expires_in=int(self._issuer.session_ttl.total_seconds()),
        )

    async def _audit_failure(
        self,
        account: Account | None,
        context: AuditContext | None,
        reason: str,
        **details: Any,
    ) -> None:
        await self._recorder.log(
            AuditAction.LOGIN_FAILED,
            actor_id=account.id if account is not None else None,
            context=context,
            success=False,
            resource_table="accounts",
            resource_id=account.id if account is not None else None,
            details={"reason": reason, **details},
        )


# Module-level singleton
credential_verifier = CredentialVerifier()
