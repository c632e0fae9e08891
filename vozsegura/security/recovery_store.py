"""Redis-backed store for one-time recovery codes and reset grants.

Keys are per email, so there is at most one live code (and one live grant)
per account; issuing a new one overwrites the old. Both carry a Redis TTL,
so pending codes survive process restarts and are shared across replicas.

Consumption is an atomic DELETE: whoever deletes the key wins, a concurrent
second consumer sees 0 and is refused.

Usage:
    from vozsegura.security.recovery_store import recovery_store

    await recovery_store.put_code("a@x.com", "123456")
    outcome = await recovery_store.check_code("a@x.com", "123456")
"""

from __future__ import annotations

import hmac
import json
import logging
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from vozsegura.config import settings
from vozsegura.db.engine import redis_client

logger = logging.getLogger(__name__)

_CODE_KEY = "recovery:code:{email}"
_ATTEMPTS_KEY = "recovery:attempts:{email}"
_GRANT_KEY = "recovery:grant:{email}"

# Wrong guesses tolerated against one live code before it is burned
MAX_CODE_ATTEMPTS = 5


class CodeCheck(str, Enum):
    """Outcome of presenting a one-time code."""

    OK = "ok"
    MISSING = "missing"
    EXPIRED = "expired"
    MISMATCH = "mismatch"


class RecoveryStore:
    """One-time codes and reset grants with TTL semantics."""

    def __init__(self, redis: Any, code_ttl_seconds: int, grant_ttl_seconds: int) -> None:
        self._redis = redis
        self.code_ttl = timedelta(seconds=code_ttl_seconds)
        self.grant_ttl = timedelta(seconds=grant_ttl_seconds)

    # ── One-time codes ───────────────────────────────────────────────

    async def put_code(self, email: str, code: str, now: datetime | None = None) -> datetime:
        """Store a code for an email, replacing any live one. Returns its expiry."""
        now = now or datetime.now(UTC)
        expires_at = now + self.code_ttl
        value = json.dumps({"code": code, "expires_at": expires_at.isoformat()})
        await self._redis.set(_CODE_KEY.format(email=email), value, ex=int(self.code_ttl.total_seconds()))
        await self._redis.delete(_ATTEMPTS_KEY.format(email=email))
        return expires_at

    async def check_code(self, email: str, code: str, now: datetime | None = None) -> CodeCheck:
        """Verify and, on success, consume the code for an email.

        The stored expiry is checked independently of the Redis TTL, so a code
        past its five minutes is rejected even if the key lingers.
        """
        now = now or datetime.now(UTC)
        key = _CODE_KEY.format(email=email)
        raw = await self._redis.get(key)
        if raw is None:
            return CodeCheck.MISSING

        stored = json.loads(raw)
        if now >= datetime.fromisoformat(stored["expires_at"]):
            await self._redis.delete(key)
            return CodeCheck.EXPIRED

        if not hmac.compare_digest(str(stored["code"]), code):
            attempts_key = _ATTEMPTS_KEY.format(email=email)
            attempts = await self._redis.incr(attempts_key)
            if attempts == 1:
                await self._redis.expire(attempts_key, int(self.code_ttl.total_seconds()))
            if attempts >= MAX_CODE_ATTEMPTS:
                logger.warning("Recovery code burned after %d wrong attempts", attempts)
                await self._redis.delete(key, attempts_key)
            return CodeCheck.MISMATCH

        deleted = await self._redis.delete(key)
        if not deleted:
            # Another request consumed it between our GET and DELETE
            return CodeCheck.MISSING
        await self._redis.delete(_ATTEMPTS_KEY.format(email=email))
        return CodeCheck.OK

    # ── Reset grants ─────────────────────────────────────────────────

    async def put_grant(self, email: str, grant_id: str) -> None:
        """Record that recovery step 1 succeeded for this email."""
        await self._redis.set(_GRANT_KEY.format(email=email), grant_id, ex=int(self.grant_ttl.total_seconds()))

    async def consume_grant(self, email: str, grant_id: str) -> bool:
        """Atomically consume the grant if it matches. Single use."""
        key = _GRANT_KEY.format(email=email)
        stored = await self._redis.get(key)
        if stored is None or not hmac.compare_digest(str(stored), grant_id):
            return False
        return bool(await self._redis.delete(key))


# Module-level singleton
recovery_store = RecoveryStore(
    redis_client,
    code_ttl_seconds=settings.security.recovery_code_ttl_seconds,
    grant_ttl_seconds=settings.security.reset_token_ttl_seconds,
)
