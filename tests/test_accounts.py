"""Tests for account administration."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import pytest

from tests.conftest import FakeAccountStore, FakeRecorder, FakeRuleStore, make_account
from vozsegura.accounts.service import AccountService, summarize
from vozsegura.errors import Conflict, Forbidden, Internal, InvalidInput, NotFound
from vozsegura.models.assignment_rule import AssignmentRule
from vozsegura.models.enums import AccountStatus, AuditAction, Role
from vozsegura.schemas.accounts import AccountCreate, AccountUpdate
from vozsegura.security.passwords import verify_credential
from vozsegura.security.tokens import TokenClaims


def _claims(account_id: uuid.UUID, role: Role) -> TokenClaims:
    return TokenClaims(
        account_id=account_id, email="x@example.com", role=role, expires_at=datetime.now(UTC) + timedelta(days=1)
    )


def _signup(**overrides) -> AccountCreate:
    data = {
        "email": "Lucia@Example.com",
        "password": "Segura#2024",
        "given_name": "Lucía",
        "surname": "Andrade Vera",
        "phone": "0987654321",
    }
    data.update(overrides)
    return AccountCreate(**data)


@pytest.fixture
def service(account_store, rule_store, recorder, encryptor) -> AccountService:
    return AccountService(accounts=account_store, rules=rule_store, recorder=recorder, encryptor=encryptor)


@pytest.fixture
def admin(account_store: FakeAccountStore, encryptor):
    return account_store.put(make_account(encryptor, email="admin@example.com", role=Role.OWNER_ADMIN))


class TestRegister:
    @pytest.mark.asyncio
    async def test_creates_reporter_with_encrypted_pii(self, service, encryptor, db, recorder) -> None:
        account = await service.register(db, _signup())

        assert account.role == Role.REPORTER.value
        assert account.email == "lucia@example.com"
        assert account.surname_encrypted != "Andrade Vera"
        assert encryptor.decrypt(account.surname_encrypted) == "Andrade Vera"
        assert verify_credential("Segura#2024", account.password_hash)
        assert recorder.actions == ["account_created"]
        assert recorder.entries[0]["actor_id"] == account.id

    @pytest.mark.asyncio
    async def test_weak_password(self, service, db) -> None:
        with pytest.raises(InvalidInput) as exc_info:
            await service.register(db, _signup(password="segura#2024"))
        assert "uppercase" in exc_info.value.field_errors["password"][0]

    @pytest.mark.asyncio
    async def test_duplicate_email(self, service, db) -> None:
        await service.register(db, _signup())
        with pytest.raises(Conflict):
            await service.register(db, _signup(email="lucia@example.com"))

    @pytest.mark.asyncio
    async def test_create_supervisor(self, service, admin, db, recorder) -> None:
        account = await service.create_supervisor(db, _signup(), admin.id)
        assert account.role == Role.SUPERVISOR.value
        assert recorder.last(AuditAction.ACCOUNT_CREATED)["actor_id"] == admin.id


class TestGetAccount:
    @pytest.mark.asyncio
    async def test_owner_admin_sees_plain_pii(self, service, admin, account_store, encryptor, db) -> None:
        target = account_store.put(make_account(encryptor, email="r@example.com", surname="Pérez Mora"))
        summary = await service.get_account(db, target.id, _claims(admin.id, Role.OWNER_ADMIN))
        assert summary.surname == "Pérez Mora"

    @pytest.mark.asyncio
    async def test_others_see_masked_pii(self, service, account_store, encryptor, db, recorder) -> None:
        target = account_store.put(make_account(encryptor, email="r@example.com", surname="Pérez Mora"))
        summary = await service.get_account(db, target.id, _claims(uuid.uuid4(), Role.SUPERVISOR))
        assert summary.surname == "P**** M***"
        assert summary.given_name == "A**"
        assert recorder.last(AuditAction.ACCOUNT_VIEWED)["details"] == {"masked": True}

    @pytest.mark.asyncio
    async def test_owner_sees_own_pii_without_audit(self, service, account_store, encryptor, db, recorder) -> None:
        me = account_store.put(make_account(encryptor, email="r@example.com"))
        summary = await service.get_account(db, me.id, _claims(me.id, Role.REPORTER))
        assert summary.given_name == "Ana"
        assert recorder.entries == []

    @pytest.mark.asyncio
    async def test_missing_pii_stays_none(self, service, admin, account_store, encryptor, db) -> None:
        target = account_store.put(make_account(encryptor, email="r@example.com", phone=None))
        summary = await service.get_account(db, target.id, _claims(uuid.uuid4(), Role.SUPERVISOR))
        assert summary.phone is None

    @pytest.mark.asyncio
    async def test_running_lock_is_reported_as_locked(self, service, admin, account_store, db) -> None:
        target = account_store.put(make_account(email="r@example.com"))
        target.failed_attempts = 5
        target.locked_until = datetime.now(UTC) + timedelta(minutes=10)

        summary = await service.get_account(db, target.id, _claims(admin.id, Role.OWNER_ADMIN))
        assert summary.status == AccountStatus.LOCKED.value

        target.locked_until = datetime.now(UTC) - timedelta(seconds=1)
        summary = await service.get_account(db, target.id, _claims(admin.id, Role.OWNER_ADMIN))
        assert summary.status == AccountStatus.ACTIVE.value

    @pytest.mark.asyncio
    async def test_unknown_account(self, service, admin, db) -> None:
        with pytest.raises(NotFound):
            await service.get_account(db, uuid.uuid4(), _claims(admin.id, Role.OWNER_ADMIN))

    def test_undecryptable_pii(self, encryptor) -> None:
        account = make_account(encryptor)
        account.phone_encrypted = "a:b:c"
        with pytest.raises(Internal):
            summarize(account, reveal=True, encryptor=encryptor)


class TestUpdateAccount:
    @pytest.mark.asyncio
    async def test_update_pii(self, service, admin, account_store, encryptor, db, recorder) -> None:
        target = account_store.put(make_account(encryptor, email="r@example.com"))
        await service.update_account(db, target.id, AccountUpdate(phone="0911111111"), admin.id)
        assert encryptor.decrypt(target.phone_encrypted) == "0911111111"
        # Field names only, never values
        assert recorder.last(AuditAction.ACCOUNT_UPDATED)["details"] == {"fields": ["phone"]}

    @pytest.mark.asyncio
    async def test_deactivate(self, service, admin, account_store, db) -> None:
        target = account_store.put(make_account(email="r@example.com"))
        await service.update_account(db, target.id, AccountUpdate(status="inactive"), admin.id)
        assert target.status == AccountStatus.INACTIVE.value

    @pytest.mark.asyncio
    async def test_reactivate_clears_lockout(self, service, admin, account_store, db) -> None:
        target = account_store.put(make_account(email="r@example.com", status=AccountStatus.INACTIVE))
        target.failed_attempts = 5
        target.locked_until = datetime.now(UTC) + timedelta(minutes=10)

        await service.update_account(db, target.id, AccountUpdate(status="active"), admin.id)

        assert target.status == AccountStatus.ACTIVE.value
        assert target.failed_attempts == 0
        assert target.locked_until is None

    @pytest.mark.asyncio
    async def test_cannot_deactivate_self(self, service, admin, db) -> None:
        with pytest.raises(Forbidden):
            await service.update_account(db, admin.id, AccountUpdate(status="inactive"), admin.id)

    def test_locked_is_not_an_admin_status(self) -> None:
        with pytest.raises(ValueError):
            AccountUpdate(status="locked")


class TestDeleteAccount:
    @pytest.mark.asyncio
    async def test_supervisor_hard_delete(self, service, admin, account_store, db, recorder) -> None:
        sup = account_store.put(make_account(email="s@example.com", role=Role.SUPERVISOR))
        await service.delete_account(db, sup.id, admin.id)
        assert sup.id not in account_store.accounts
        assert recorder.last(AuditAction.ACCOUNT_DELETED)["resource_id"] == sup.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [Role.REPORTER, Role.OWNER_ADMIN])
    async def test_other_roles_must_be_deactivated(self, service, admin, account_store, db, role) -> None:
        target = account_store.put(make_account(email="t@example.com", role=role))
        with pytest.raises(Forbidden, match="deactivate"):
            await service.delete_account(db, target.id, admin.id)
        assert target.id in account_store.accounts

    @pytest.mark.asyncio
    async def test_supervisor_targeted_by_active_rule(
        self, service, admin, account_store, rule_store: FakeRuleStore, db, recorder: FakeRecorder
    ) -> None:
        sup = account_store.put(make_account(email="s@example.com", role=Role.SUPERVISOR))
        rule = await rule_store.add(
            db, AssignmentRule(label="R", category="other", priority=0, supervisor_id=sup.id, active=True)
        )
        with pytest.raises(Conflict) as exc_info:
            await service.delete_account(db, sup.id, admin.id)
        assert exc_info.value.existing_id == str(rule.id)
        assert sup.id in account_store.accounts
