"""Password recovery flow.

Two ways to prove who you are, one way to finish:

1a. verify_identity(): email + surname + given name + phone must all match
    the stored (decrypted) values. Mismatches name the failing field.
1b. request_code() / verify_code(): a 6-digit one-time code valid for five
    minutes. request_code() answers identically whether or not the email
    is registered.
2.  complete_recovery(): requires the continuation token returned by step 1.
    The token is signed and bound to the email; the matching server-side
    grant is consumed atomically, so each token resets at most one password.
"""

from __future__ import annotations

import asyncio
import logging
import re
import secrets
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from vozsegura.config import settings
from vozsegura.errors import Internal, InvalidInput, Unauthenticated
from vozsegura.models.account import Account
from vozsegura.models.enums import AuditAction
from vozsegura.schemas.audit import AuditContext
from vozsegura.security.audit import audit_recorder
from vozsegura.security.encryption import DecryptionError, field_encryptor
from vozsegura.security.passwords import hash_credential, validate_password_strength
from vozsegura.security.recovery_store import CodeCheck, recovery_store
from vozsegura.security.tokens import token_issuer
from vozsegura.stores.accounts import account_store, normalize_email

logger = logging.getLogger(__name__)

CODE_SENT_MESSAGE = "If the email is registered, a recovery code has been sent."
_CODE_FORMAT = re.compile(r"\d{6}")

# Field tag -> (encrypted column, message). Checked in this order.
_IDENTITY_FIELDS: tuple[tuple[str, str, str], ...] = (
    ("surname", "surname_encrypted", "Surname does not match our records"),
    ("given_name", "given_name_encrypted", "Given name does not match our records"),
    ("phone", "phone_encrypted", "Phone number does not match our records"),
)


@dataclass(frozen=True)
class ResetGrant:
    """Continuation token handed to the client after step 1."""

    reset_token: str
    expires_in: int


@dataclass(frozen=True)
class CodeRequestResult:
    message: str
    expires_in: int
    dev_code: str | None = None


def generate_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


class RecoveryFlow:
    def __init__(
        self,
        accounts: Any = account_store,
        store: Any = recovery_store,
        issuer: Any = token_issuer,
        recorder: Any = audit_recorder,
        encryptor: Any = field_encryptor,
        expose_codes: bool | None = None,
    ) -> None:
        self._accounts = accounts
        self._store = store
        self._issuer = issuer
        self._recorder = recorder
        self._encryptor = encryptor
        # Codes are only echoed back in local development
        self._expose_codes = settings.is_development if expose_codes is None else expose_codes

    # ── Step 1a: identity re-verification ────────────────────────────

    async def verify_identity(
        self,
        db: AsyncSession,
        email: str,
        surname: str,
        given_name: str,
        phone: str,
        context: AuditContext | None = None,
    ) -> ResetGrant:
        """Match all four identity fields, then issue a reset grant.

        Raises:
            InvalidInput: tagged with the first field that does not match.
            Internal: stored PII could not be decrypted.
        """
        email = normalize_email(email)
        account = await self._accounts.get_by_email(db, email)
        if account is None:
            await self._audit_identity_failure(None, context, "email")
            raise InvalidInput.for_field("email", "No account is registered with this email")

        supplied = {"surname": surname, "given_name": given_name, "phone": phone}
        for field, column, message in _IDENTITY_FIELDS:
            stored = self._decrypt(account, column)
            if stored is None or stored != supplied[field]:
                await self._audit_identity_failure(account, context, field)
                raise InvalidInput.for_field(field, message)

        await self._recorder.log(
            AuditAction.IDENTITY_VERIFIED,
            actor_id=account.id,
            context=context,
            resource_table="accounts",
            resource_id=account.id,
        )
        return await self._grant(email)

    # ── Step 1b: one-time code ───────────────────────────────────────

    async def request_code(
        self,
        db: AsyncSession,
        email: str,
        context: AuditContext | None = None,
    ) -> CodeRequestResult:
        """Issue a code if the account exists. The response never says whether it does."""
        email = normalize_email(email)
        expires_in = int(self._store.code_ttl.total_seconds())
        account = await self._accounts.get_by_email(db, email)
        if account is None:
            await self._recorder.log(
                AuditAction.RECOVERY_CODE_ISSUED,
                context=context,
                success=False,
                details={"reason": "unknown_account", "email": email},
            )
            return CodeRequestResult(message=CODE_SENT_MESSAGE, expires_in=expires_in)

        code = generate_code()
        expires_at = await self._store.put_code(email, code)
        await self._recorder.log(
            AuditAction.RECOVERY_CODE_ISSUED,
            actor_id=account.id,
            context=context,
            resource_table="accounts",
            resource_id=account.id,
            details={"expires_at": expires_at.isoformat()},
        )

        if self._expose_codes:
            logger.info("[dev] Recovery code for %s: %s", email, code)
            return CodeRequestResult(message=CODE_SENT_MESSAGE, expires_in=expires_in, dev_code=code)
        return CodeRequestResult(message=CODE_SENT_MESSAGE, expires_in=expires_in)

    async def verify_code(
        self,
        db: AsyncSession,
        email: str,
        code: str,
        context: AuditContext | None = None,
    ) -> ResetGrant:
        """Consume a live matching code and issue a reset grant.

        Raises:
            InvalidInput: on field `code` when malformed, missing, expired or wrong.
        """
        email = normalize_email(email)
        code = code.strip()
        if not _CODE_FORMAT.fullmatch(code):
            raise InvalidInput.for_field("code", "The code must be 6 digits")

        outcome = await self._store.check_code(email, code)
        account = await self._accounts.get_by_email(db, email)
        actor_id = account.id if account is not None else None

        if outcome is not CodeCheck.OK or account is None:
            await self._recorder.log(
                AuditAction.RECOVERY_CODE_FAILED,
                actor_id=actor_id,
                context=context,
                success=False,
                resource_table="accounts" if actor_id else None,
                resource_id=actor_id,
                details={"reason": outcome.value},
            )
            if outcome is CodeCheck.MISMATCH:
                raise InvalidInput.for_field("code", "Incorrect code")
            raise InvalidInput.for_field("code", "Code not found or expired")

        await self._recorder.log(
            AuditAction.RECOVERY_CODE_VERIFIED,
            actor_id=account.id,
            context=context,
            resource_table="accounts",
            resource_id=account.id,
        )
        return await self._grant(email)

    # ── Step 2: password replacement ─────────────────────────────────

    async def complete_recovery(
        self,
        db: AsyncSession,
        email: str,
        new_password: str,
        reset_token: str,
        context: AuditContext | None = None,
    ) -> Account:
        """Replace the password and clear any lockout.

        Raises:
            Unauthenticated: missing/forged/expired token, wrong email, or the
                grant was already used.
            InvalidInput: new password fails the strength policy.
        """
        email = normalize_email(email)
        claims = self._issuer.verify_reset_token(reset_token)
        if claims.email != email:
            logger.debug("Reset token email does not match request email")
            raise Unauthenticated

        # Before consuming the grant, so a weak password can be retried
        validate_password_strength(new_password)

        account = await self._accounts.get_by_email(db, email)
        if account is None or not await self._store.consume_grant(email, claims.grant_id):
            await self._recorder.log(
                AuditAction.PASSWORD_RESET_FAILED,
                actor_id=account.id if account is not None else None,
                context=context,
                success=False,
                details={"reason": "grant_missing_or_used"},
            )
            raise Unauthenticated

        password_hash = await asyncio.to_thread(hash_credential, new_password)
        await self._accounts.update(
            db,
            account,
            password_hash=password_hash,
            failed_attempts=0,
            locked_until=None,
        )
        await db.commit()

        await self._recorder.log(
            AuditAction.PASSWORD_RESET,
            actor_id=account.id,
            context=context,
            resource_table="accounts",
            resource_id=account.id,
        )
        logger.info("Password reset for account %s", account.id)
        return account

    # ── Internals ────────────────────────────────────────────────────

    async def _grant(self, email: str) -> ResetGrant:
        token, grant_id = self._issuer.issue_reset_token(email)
        await self._store.put_grant(email, grant_id)
        return ResetGrant(reset_token=token, expires_in=int(self._issuer.reset_ttl.total_seconds()))

    def _decrypt(self, account: Account, column: str) -> str | None:
        try:
            return self._encryptor.decrypt_optional(getattr(account, column))
        except DecryptionError as exc:
            logger.exception("Stored %s for account %s could not be decrypted", column, account.id)
            raise Internal from exc

    async def _audit_identity_failure(
        self,
        account: Account | None,
        context: AuditContext | None,
        field: str,
    ) -> None:
        await self._recorder.log(
            AuditAction.IDENTITY_VERIFICATION_FAILED,
            actor_id=account.id if account is not None else None,
            context=context,
            success=False,
            resource_table="accounts" if account is not None else None,
            resource_id=account.id if account is not None else None,
            details={"field": field},
        )


# Module-level singleton
recovery_flow = RecoveryFlow()
