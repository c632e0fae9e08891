"""Async database engine, session factory, Redis client and startup checks.

PostgreSQL (SQLAlchemy 2.0 async, asyncpg) holds accounts, rules, cases and
the audit trail. Redis only holds short-lived recovery state: one-time codes
and reset grants, all with a TTL.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncGenerator

import redis.asyncio as aioredis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from vozsegura.config import settings

logger = logging.getLogger(__name__)

AUDIT_TRIGGER = "trg_audit_log_immutable"

# ── PostgreSQL ───────────────────────────────────────────────────────

engine: AsyncEngine = create_async_engine(
    settings.db.database_url,
    echo=settings.log_level == "DEBUG",
    pool_size=settings.db.db_pool_size,
    max_overflow=settings.db.db_max_overflow,
    pool_pre_ping=True,
    pool_recycle=3600,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session for the routers.

    Services commit their own writes (the lockout counter must survive the
    error that follows it), so the final commit here is usually a no-op.
    Anything still pending is rolled back if the handler raised.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── Redis ────────────────────────────────────────────────────────────

redis_client: aioredis.Redis = aioredis.from_url(
    settings.db.redis_url,
    decode_responses=True,
)


# ── Startup / shutdown ───────────────────────────────────────────────


async def _audit_trigger_installed(conn: AsyncConnection) -> bool:
    result = await conn.execute(
        text("SELECT 1 FROM pg_trigger WHERE tgname = :name AND NOT tgisinternal"),
        {"name": AUDIT_TRIGGER},
    )
    return result.first() is not None


async def init_db() -> None:
    """Verify PostgreSQL and Redis are reachable.

    Development creates missing tables from the models. Production relies on
    Alembic and refuses to start if the audit_log immutability trigger from
    001_initial_schema is missing.
    """
    async with engine.begin() as conn:
        if settings.is_production:
            if not await _audit_trigger_installed(conn):
                msg = f"{AUDIT_TRIGGER} not found; run `alembic upgrade head` before starting"
                raise RuntimeError(msg)
        else:
            from vozsegura.models import Base

            await conn.run_sync(Base.metadata.create_all)

    await redis_client.ping()
    logger.info("PostgreSQL and Redis reachable")


async def close_db() -> None:
    await engine.dispose()
    await redis_client.aclose()


@contextlib.asynccontextmanager
async def db_lifespan() -> AsyncGenerator[None, None]:
    """Open and verify connections for the app's lifetime."""
    await init_db()
    try:
        yield
    finally:
        await close_db()
