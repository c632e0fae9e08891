"""Tests for the Redis-backed recovery code and grant store."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import pytest

from tests.conftest import FakeRedis
from vozsegura.security.recovery_store import MAX_CODE_ATTEMPTS, CodeCheck, RecoveryStore

EMAIL = "ana@example.com"
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


@pytest.fixture
def store(fake_redis: FakeRedis) -> RecoveryStore:
    return RecoveryStore(fake_redis, code_ttl_seconds=300, grant_ttl_seconds=300)


class TestCodes:
    @pytest.mark.asyncio
    async def test_put_sets_ttl_and_expiry(self, store, fake_redis) -> None:
        expires_at = await store.put_code(EMAIL, "123456", now=NOW)
        assert expires_at == NOW + timedelta(minutes=5)
        assert fake_redis.ttls["recovery:code:ana@example.com"] == 300
        assert json.loads(fake_redis.data["recovery:code:ana@example.com"])["code"] == "123456"

    @pytest.mark.asyncio
    async def test_correct_code_is_consumed_once(self, store) -> None:
        await store.put_code(EMAIL, "123456", now=NOW)
        assert await store.check_code(EMAIL, "123456", now=NOW + timedelta(minutes=1)) is CodeCheck.OK
        assert await store.check_code(EMAIL, "123456", now=NOW + timedelta(minutes=1)) is CodeCheck.MISSING

    @pytest.mark.asyncio
    async def test_missing(self, store) -> None:
        assert await store.check_code(EMAIL, "123456") is CodeCheck.MISSING

    @pytest.mark.asyncio
    async def test_correct_but_expired(self, store, fake_redis) -> None:
        await store.put_code(EMAIL, "123456", now=NOW)
        outcome = await store.check_code(EMAIL, "123456", now=NOW + timedelta(minutes=5, seconds=1))
        assert outcome is CodeCheck.EXPIRED
        assert "recovery:code:ana@example.com" not in fake_redis.data

    @pytest.mark.asyncio
    async def test_mismatch_keeps_code(self, store) -> None:
        await store.put_code(EMAIL, "123456", now=NOW)
        assert await store.check_code(EMAIL, "654321", now=NOW) is CodeCheck.MISMATCH
        assert await store.check_code(EMAIL, "123456", now=NOW) is CodeCheck.OK

    @pytest.mark.asyncio
    async def test_code_burned_after_repeated_mismatches(self, store) -> None:
        await store.put_code(EMAIL, "123456", now=NOW)
        for _ in range(MAX_CODE_ATTEMPTS):
            assert await store.check_code(EMAIL, "000000", now=NOW) is CodeCheck.MISMATCH
        assert await store.check_code(EMAIL, "123456", now=NOW) is CodeCheck.MISSING

    @pytest.mark.asyncio
    async def test_new_code_replaces_old(self, store) -> None:
        await store.put_code(EMAIL, "111111", now=NOW)
        await store.put_code(EMAIL, "222222", now=NOW)
        assert await store.check_code(EMAIL, "111111", now=NOW) is CodeCheck.MISMATCH
        assert await store.check_code(EMAIL, "222222", now=NOW) is CodeCheck.OK

    @pytest.mark.asyncio
    async def test_new_code_resets_attempts(self, store, fake_redis) -> None:
        await store.put_code(EMAIL, "111111", now=NOW)
        await store.check_code(EMAIL, "000000", now=NOW)
        await store.put_code(EMAIL, "222222", now=NOW)
        assert "recovery:attempts:ana@example.com" not in fake_redis.data


class TestGrants:
    @pytest.mark.asyncio
    async def test_grant_is_single_use(self, store) -> None:
        await store.put_grant(EMAIL, "grant-1")
        assert await store.consume_grant(EMAIL, "grant-1") is True
        assert await store.consume_grant(EMAIL, "grant-1") is False

    @pytest.mark.asyncio
    async def test_wrong_grant_id(self, store) -> None:
        await store.put_grant(EMAIL, "grant-1")
        assert await store.consume_grant(EMAIL, "grant-2") is False
        # The live grant is untouched
        assert await store.consume_grant(EMAIL, "grant-1") is True

    @pytest.mark.asyncio
    async def test_no_grant(self, store) -> None:
        assert await store.consume_grant(EMAIL, "grant-1") is False
