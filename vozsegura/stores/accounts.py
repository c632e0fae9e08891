"""Account store — the only code that reads or writes the accounts table.

Lockout transitions go through compare_and_set_lock_state(), a conditional
UPDATE on the version column. Other edits use the ORM, whose version_id_col
check raises StaleDataError on a concurrent write.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from vozsegura.auth.lockout import LockState
from vozsegura.errors import Conflict
from vozsegura.models.account import Account
from vozsegura.models.case import Case
from vozsegura.models.enums import OPEN_CASE_STATUSES, AccountStatus, Role
from vozsegura.routing.selection import SupervisorLoad

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountStore:
    """Stateless queries; the AsyncSession is passed per call."""

    async def get_by_email(self, db: AsyncSession, email: str) -> Account | None:
        # populate_existing: a retry after a lost CAS must see the fresh row
        result = await db.execute(
            select(Account)
            .where(Account.email == normalize_email(email))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, db: AsyncSession, account_id: uuid.UUID) -> Account | None:
        return await db.get(Account, account_id, populate_existing=True)

    async def list_accounts(self, db: AsyncSession, role: Role | None = None) -> list[Account]:
        query = select(Account).order_by(Account.created_at.desc())
        if role is not None:
            query = query.where(Account.role == role.value)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def create(self, db: AsyncSession, **fields: Any) -> Account:
        """Insert an account. Duplicate email -> Conflict."""
        fields["email"] = normalize_email(fields["email"])
        account = Account(**fields)
        db.add(account)
        try:
            await db.flush()
        except IntegrityError as exc:
            await db.rollback()
            raise Conflict("Email already registered") from exc
        return account

    async def update(self, db: AsyncSession, account: Account, **fields: Any) -> Account:
        """Apply a partial update. Concurrent modification -> Conflict."""
        for name, value in fields.items():
            setattr(account, name, value)
        try:
            await db.flush()
        except StaleDataError as exc:
            await db.rollback()
            raise Conflict("Account was modified concurrently, retry the operation") from exc
        return account

    async def compare_and_set_lock_state(
        self,
        db: AsyncSession,
        account_id: uuid.UUID,
        expected_version: int,
        state: LockState,
        last_login_at: datetime | None = None,
    ) -> bool:
        """Write a lockout transition only if nobody else wrote since we read.

        Returns False when the version moved; the caller re-reads and retries.
        """
        values: dict[str, Any] = {
            "failed_attempts": state.failed_attempts,
            "locked_until": state.locked_until,
            "version": Account.version + 1,
        }
        if last_login_at is not None:
            values["last_login_at"] = last_login_at
        result = await db.execute(
            update(Account)
            .where(Account.id == account_id, Account.version == expected_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete_supervisor(self, db: AsyncSession, account: Account) -> None:
        """Hard delete. The only physical delete of an account, supervisors only."""
        await db.delete(account)
        await db.flush()

    async def list_supervisor_loads(self, db: AsyncSession) -> list[SupervisorLoad]:
        """Open-case count per Active supervisor (zero-load supervisors included)."""
        open_case = and_(Case.supervisor_id == Account.id, Case.status.in_(OPEN_CASE_STATUSES))
        result = await db.execute(
            select(Account.id, func.count(Case.id))
            .outerjoin(Case, open_case)
            .where(
                Account.role == Role.SUPERVISOR.value,
                Account.status == AccountStatus.ACTIVE.value,
            )
            .group_by(Account.id)
        )
        return [SupervisorLoad(supervisor_id=row[0], open_cases=row[1]) for row in result.all()]


# Module-level singleton
account_store = AccountStore()
