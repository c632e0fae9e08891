"""FastAPI application entry point.

Usage:
    python -m vozsegura.main
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from vozsegura import __version__
from vozsegura.api import accounts, audit, auth, cases, rules
from vozsegura.api.errors import register_exception_handlers
from vozsegura.config import settings
from vozsegura.db.engine import db_lifespan

_NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "asyncio")


def configure_logging() -> None:
    """Render every record, stdlib or structlog, through one structlog formatter.

    Modules log with logging.getLogger(__name__); the root handler's
    ProcessorFormatter turns those records into JSON lines in production and
    console output elsewhere.
    """
    shared_processors = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if settings.is_production:
        renderer = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, settings.log_level))

    if settings.log_level != "DEBUG":
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("VozSegura %s starting (env=%s)", __version__, settings.environment)
    async with db_lifespan():
        yield
    logger.info("VozSegura stopped")


app = FastAPI(
    title="VozSegura API",
    description="Identity and case-routing control plane for anonymous complaints",
    version=__version__,
    lifespan=lifespan,
)

register_exception_handlers(app)

for module in (auth, accounts, rules, cases, audit):
    app.include_router(module.router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Liveness only; connectivity is verified once at startup."""
    return {
        "status": "ok",
        "environment": settings.environment,
        "version": __version__,
    }


def run() -> None:
    uvicorn.run(
        "vozsegura.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
