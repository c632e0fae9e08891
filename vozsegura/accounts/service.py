"""Account administration — registration, supervisor management, summaries.

Only supervisor accounts are ever physically deleted; every other role is
soft-deactivated via status=inactive.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from vozsegura.errors import Conflict, Forbidden, Internal, NotFound
from vozsegura.models.account import Account
from vozsegura.models.enums import AccountStatus, AuditAction, Role
from vozsegura.schemas.accounts import AccountCreate, AccountOut, AccountUpdate
from vozsegura.schemas.audit import AuditContext
from vozsegura.security.audit import audit_recorder
from vozsegura.security.encryption import ENCRYPTED_FIELDS, DecryptionError, field_encryptor, mask_for_display
from vozsegura.security.passwords import hash_credential, validate_password_strength
from vozsegura.security.tokens import TokenClaims
from vozsegura.stores.accounts import account_store
from vozsegura.stores.rules import rule_store

logger = logging.getLogger(__name__)

_PII_COLUMNS = {field: f"{field}_encrypted" for field in sorted(ENCRYPTED_FIELDS)}


def summarize(account: Account, reveal: bool, encryptor: Any = field_encryptor) -> AccountOut:
    """Build the account summary, decrypting PII and masking it unless revealed."""
    pii: dict[str, str | None] = {}
    for field, column in _PII_COLUMNS.items():
        try:
            value = encryptor.decrypt_optional(getattr(account, column))
        except DecryptionError as exc:
            logger.exception("Stored %s for account %s could not be decrypted", column, account.id)
            raise Internal from exc
        pii[field] = value if reveal or value is None else mask_for_display(value)

    return AccountOut(
        id=account.id,
        email=account.email,
        role=account.role,
        status=account.lifecycle_status(datetime.now(UTC)).value,
        failed_attempts=account.failed_attempts,
        locked_until=account.locked_until,
        last_login_at=account.last_login_at,
        created_at=account.created_at,
        **pii,
    )


class AccountService:
    def __init__(
        self,
        accounts: Any = account_store,
        rules: Any = rule_store,
        recorder: Any = audit_recorder,
        encryptor: Any = field_encryptor,
    ) -> None:
        self._accounts = accounts
        self._rules = rules
        self._recorder = recorder
        self._encryptor = encryptor

    async def register(
        self,
        db: AsyncSession,
        data: AccountCreate,
        context: AuditContext | None = None,
    ) -> Account:
        """Public self-registration. Always creates a reporter."""
        return await self._create(db, data, Role.REPORTER, actor_id=None, context=context)

    async def create_supervisor(
        self,
        db: AsyncSession,
        data: AccountCreate,
        actor_id: uuid.UUID,
        context: AuditContext | None = None,
    ) -> Account:
        return await self._create(db, data, Role.SUPERVISOR, actor_id=actor_id, context=context)

    async def get_account(
        self,
        db: AsyncSession,
        account_id: uuid.UUID,
        viewer: TokenClaims,
        context: AuditContext | None = None,
    ) -> AccountOut:
        """Summary of one account. PII is plain for its owner and the Owner-Admin."""
        account = await self._get(db, account_id)
        reveal = viewer.account_id == account.id or viewer.role is Role.OWNER_ADMIN
        summary = summarize(account, reveal=reveal, encryptor=self._encryptor)

        if viewer.account_id != account.id:
            await self._recorder.log(
                AuditAction.ACCOUNT_VIEWED,
                actor_id=viewer.account_id,
                context=context,
                resource_table="accounts",
                resource_id=account.id,
                details={"masked": not reveal},
            )
        return summary

    async def list_accounts(self, db: AsyncSession, role: Role | None = None) -> list[AccountOut]:
        accounts = await self._accounts.list_accounts(db, role=role)
        return [summarize(account, reveal=True, encryptor=self._encryptor) for account in accounts]

    async def update_account(
        self,
        db: AsyncSession,
        account_id: uuid.UUID,
        data: AccountUpdate,
        actor_id: uuid.UUID,
        context: AuditContext | None = None,
    ) -> Account:
        """Edit PII or (de)activate. Reactivating also clears any lockout."""
        account = await self._get(db, account_id)
        changes = data.model_dump(exclude_unset=True)

        fields: dict[str, Any] = {}
        for field, column in _PII_COLUMNS.items():
            if field in changes:
                fields[column] = self._encryptor.encrypt_optional(changes[field])

        status = changes.get("status")
        if status is not None:
            if status == AccountStatus.INACTIVE.value and account.id == actor_id:
                raise Forbidden("You cannot deactivate your own account")
            fields["status"] = status
            if status == AccountStatus.ACTIVE.value:
                fields["failed_attempts"] = 0
                fields["locked_until"] = None

        await self._accounts.update(db, account, **fields)
        await db.commit()

        await self._recorder.log(
            AuditAction.ACCOUNT_UPDATED,
            actor_id=actor_id,
            context=context,
            resource_table="accounts",
            resource_id=account.id,
            # Field names only; values are PII
            details={"fields": sorted(changes)},
        )
        return account

    async def delete_account(
        self,
        db: AsyncSession,
        account_id: uuid.UUID,
        actor_id: uuid.UUID,
        context: AuditContext | None = None,
    ) -> None:
        """Hard-delete a supervisor. Anything else must be deactivated instead.

        Raises:
            Forbidden: the account is not a supervisor.
            Conflict: active assignment rules still route cases to it.
        """
        account = await self._get(db, account_id)
        if not account.is_supervisor:
            raise Forbidden("Only supervisor accounts can be deleted; deactivate this account instead")

        targeting = await self._rules.active_for_supervisor(db, account.id)
        if targeting:
            raise Conflict(
                f"Supervisor is the target of {len(targeting)} active assignment rule(s); "
                "deactivate or retarget them first",
                existing_id=str(targeting[0].id),
            )

        email = account.email
        await self._accounts.delete_supervisor(db, account)
        await db.commit()

        await self._recorder.log(
            AuditAction.ACCOUNT_DELETED,
            actor_id=actor_id,
            context=context,
            resource_table="accounts",
            resource_id=account_id,
            details={"email": email, "role": Role.SUPERVISOR.value},
        )
        logger.info("Supervisor %s deleted by %s", account_id, actor_id)

    # ── Internals ────────────────────────────────────────────────────

    async def _get(self, db: AsyncSession, account_id: uuid.UUID) -> Account:
        account = await self._accounts.get_by_id(db, account_id)
        if account is None:
            raise NotFound("Account not found")
        return account

    async def _create(
        self,
        db: AsyncSession,
        data: AccountCreate,
        role: Role,
        actor_id: uuid.UUID | None,
        context: AuditContext | None,
    ) -> Account:
        validate_password_strength(data.password)
        password_hash = await asyncio.to_thread(hash_credential, data.password)

        account = await self._accounts.create(
            db,
            email=data.email,
            password_hash=password_hash,
            role=role.value,
            status=AccountStatus.ACTIVE.value,
            failed_attempts=0,
            given_name_encrypted=self._encryptor.encrypt_optional(data.given_name),
            surname_encrypted=self._encryptor.encrypt_optional(data.surname),
            phone_encrypted=self._encryptor.encrypt_optional(data.phone),
        )
        await db.commit()

        await self._recorder.log(
            AuditAction.ACCOUNT_CREATED,
            actor_id=actor_id or account.id,
            context=context,
            resource_table="accounts",
            resource_id=account.id,
            details={"role": role.value},
        )
        logger.info("Account %s created (%s)", account.id, role.value)
        return account


# Module-level singleton
account_service = AccountService()
