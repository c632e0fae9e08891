"""Shared fixtures — in-memory stand-ins for the stores, Redis and the audit recorder.

The services take their collaborators as constructor arguments, so tests
build them against these fakes and never touch PostgreSQL or Redis.
"""

from __future__ import annotations

import os

# Cheap bcrypt for the whole run; must be set before vozsegura.config is imported
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import uuid  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402
from typing import Any  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402

from vozsegura.errors import Conflict  # noqa: E402
from vozsegura.models.account import Account  # noqa: E402
from vozsegura.models.assignment_rule import AssignmentRule  # noqa: E402
from vozsegura.models.case import Case  # noqa: E402
from vozsegura.models.enums import OPEN_CASE_STATUSES, AccountStatus, Role  # noqa: E402
from vozsegura.routing.selection import SupervisorLoad  # noqa: E402
from vozsegura.security.encryption import FieldEncryptor  # noqa: E402
from vozsegura.security.passwords import hash_credential  # noqa: E402
from vozsegura.security.tokens import SessionTokenIssuer  # noqa: E402
from vozsegura.stores.accounts import normalize_email  # noqa: E402

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class FakeClock:
    """Injectable clock for lockout tests."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeRecorder:
    """Captures audit entries instead of writing them."""

    def __init__(self) -> None:
        self.entries: list[dict[str, Any]] = []

    async def log(self, action: Any, **kwargs: Any) -> None:
        self.entries.append({"action": action, **kwargs})

    @property
    def actions(self) -> list[str]:
        return [entry["action"].value for entry in self.entries]

    def last(self, action: Any) -> dict[str, Any]:
        return [entry for entry in self.entries if entry["action"] == action][-1]


class FakeRedis:
    """The handful of redis.asyncio commands the recovery store uses."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str) -> Any:
        return self.data.get(key)

    async def set(self, key: str, value: Any, ex: int | None = None) -> bool:
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if key in self.data:
                del self.data[key]
                self.ttls.pop(key, None)
                removed += 1
        return removed

    async def incr(self, key: str) -> int:
        self.data[key] = int(self.data.get(key, 0)) + 1
        return self.data[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return key in self.data


class FakeAccountStore:
    """Dict-backed AccountStore with the same compare-and-set semantics."""

    def __init__(self) -> None:
        self.accounts: dict[uuid.UUID, Account] = {}
        self.loads: list[SupervisorLoad] | None = None
        self.cas_calls = 0
        # Simulate a concurrent writer winning the next N CAS attempts
        self.lose_next_cas = 0

    def put(self, account: Account) -> Account:
        self.accounts[account.id] = account
        return account

    async def get_by_email(self, db: Any, email: str) -> Account | None:
        email = normalize_email(email)
        return next((a for a in self.accounts.values() if a.email == email), None)

    async def get_by_id(self, db: Any, account_id: uuid.UUID) -> Account | None:
        return self.accounts.get(account_id)

    async def list_accounts(self, db: Any, role: Role | None = None) -> list[Account]:
        return [a for a in self.accounts.values() if role is None or a.role == role.value]

    async def create(self, db: Any, **fields: Any) -> Account:
        fields["email"] = normalize_email(fields["email"])
        if any(a.email == fields["email"] for a in self.accounts.values()):
            raise Conflict("Email already registered")
        return self.put(Account(id=uuid.uuid4(), version=1, created_at=T0, updated_at=T0, **fields))

    async def update(self, db: Any, account: Account, **fields: Any) -> Account:
        for name, value in fields.items():
            setattr(account, name, value)
        account.version += 1
        return account

    async def compare_and_set_lock_state(
        self,
        db: Any,
        account_id: uuid.UUID,
        expected_version: int,
        state: Any,
        last_login_at: datetime | None = None,
    ) -> bool:
        self.cas_calls += 1
        account = self.accounts[account_id]
        if self.lose_next_cas:
            self.lose_next_cas -= 1
            account.version += 1
            return False
        if account.version != expected_version:
            return False
        account.failed_attempts = state.failed_attempts
        account.locked_until = state.locked_until
        if last_login_at is not None:
            account.last_login_at = last_login_at
        account.version += 1
        return True

    async def delete_supervisor(self, db: Any, account: Account) -> None:
        del self.accounts[account.id]

    async def list_supervisor_loads(self, db: Any) -> list[SupervisorLoad]:
        if self.loads is not None:
            return list(self.loads)
        return [
            SupervisorLoad(supervisor_id=a.id, open_cases=0)
            for a in self.accounts.values()
            if a.role == Role.SUPERVISOR.value and a.status == AccountStatus.ACTIVE.value
        ]


class FakeRuleStore:
    def __init__(self) -> None:
        self.rules: dict[uuid.UUID, AssignmentRule] = {}

    async def get(self, db: Any, rule_id: uuid.UUID) -> AssignmentRule | None:
        return self.rules.get(rule_id)

    async def list_rules(self, db: Any, active: bool | None = None) -> list[AssignmentRule]:
        rules = [r for r in self.rules.values() if active is None or r.active is active]
        return sorted(rules, key=lambda r: r.priority, reverse=True)

    async def find_active(
        self, db: Any, category: str, priority: int, exclude_id: uuid.UUID | None = None
    ) -> AssignmentRule | None:
        return next(
            (
                r
                for r in self.rules.values()
                if r.active and r.category == category and r.priority == priority and r.id != exclude_id
            ),
            None,
        )

    async def active_for_category(self, db: Any, category: str) -> list[AssignmentRule]:
        rules = [r for r in self.rules.values() if r.active and r.category == category]
        return sorted(rules, key=lambda r: r.priority, reverse=True)

    async def active_for_supervisor(self, db: Any, supervisor_id: uuid.UUID) -> list[AssignmentRule]:
        return [r for r in self.rules.values() if r.active and r.supervisor_id == supervisor_id]

    async def add(self, db: Any, rule: AssignmentRule) -> AssignmentRule:
        rule.id = rule.id or uuid.uuid4()
        rule.created_at = rule.updated_at = T0
        self.rules[rule.id] = rule
        return rule

    async def save(self, db: Any, rule: AssignmentRule) -> AssignmentRule:
        return rule

    def active_pairs(self) -> list[tuple[str, int]]:
        return [(r.category, r.priority) for r in self.rules.values() if r.active]


class FakeCaseStore:
    def __init__(self) -> None:
        self.cases: list[Case] = []
        self.taken_codes: set[str] = set()

    async def code_exists(self, db: Any, code: str) -> bool:
        return code in self.taken_codes or any(c.anonymous_code == code for c in self.cases)

    async def add(self, db: Any, case: Case) -> Case:
        case.id = case.id or uuid.uuid4()
        case.created_at = case.updated_at = T0
        self.cases.append(case)
        return case

    async def unassigned_open(self, db: Any) -> list[Case]:
        return [c for c in self.cases if c.supervisor_id is None and c.status in OPEN_CASE_STATUSES]

    async def set_supervisor(self, db: Any, case: Case, supervisor_id: uuid.UUID) -> Case:
        case.supervisor_id = supervisor_id
        return case


# ── Factories ────────────────────────────────────────────────────────


def make_account(
    encryptor: FieldEncryptor | None = None,
    *,
    email: str = "ana@example.com",
    password: str = "Secreta#2024",
    role: Role = Role.REPORTER,
    status: AccountStatus = AccountStatus.ACTIVE,
    given_name: str | None = "Ana",
    surname: str | None = "Pérez",
    phone: str | None = "+593991234567",
    account_id: uuid.UUID | None = None,
) -> Account:
    enc = encryptor.encrypt_optional if encryptor is not None else (lambda value: None)
    return Account(
        id=account_id or uuid.uuid4(),
        email=email,
        password_hash=hash_credential(password),
        role=role.value,
        status=status.value,
        failed_attempts=0,
        locked_until=None,
        version=1,
        given_name_encrypted=enc(given_name),
        surname_encrypted=enc(surname),
        phone_encrypted=enc(phone),
        last_login_at=None,
        created_at=T0,
        updated_at=T0,
    )


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def db() -> AsyncMock:
    """Stand-in AsyncSession: commit/refresh/rollback are awaited no-ops."""
    return AsyncMock()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recorder() -> FakeRecorder:
    return FakeRecorder()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def encryptor() -> FieldEncryptor:
    return FieldEncryptor(os.urandom(32))


@pytest.fixture
def issuer() -> SessionTokenIssuer:
    return SessionTokenIssuer("test-signing-secret")


@pytest.fixture
def account_store() -> FakeAccountStore:
    return FakeAccountStore()


@pytest.fixture
def rule_store() -> FakeRuleStore:
    return FakeRuleStore()


@pytest.fixture
def case_store() -> FakeCaseStore:
    return FakeCaseStore()
