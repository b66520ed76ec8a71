"""
Investment Lifecycle API — application entry-point.

Wires middleware, exception handlers and routers, creates tables on startup
and drains in-flight webhooks on shutdown.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel

from investment_engine.api.v1.api import api_router
from investment_engine.core.cache import cache
from investment_engine.core.config import settings
from investment_engine.core.exceptions import add_exception_handlers
from investment_engine.core.logging import setup_logging
from investment_engine.core.resilience import db_circuit_breaker
from investment_engine.db.session import AsyncSessionLocal, engine
from investment_engine.middleware import RequestIDMiddleware, RequestTimingMiddleware
from investment_engine.services.notification_service import notifier

setup_logging()
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup: register the tables and create them, retrying while the database
    comes up.  If it never does, the app starts degraded and ``/health``
    reports ``database: false``.

    Shutdown: wait for pending webhooks, then dispose of the pool.
    """
    import investment_engine.db.base  # noqa: F401

    max_retries = 5
    retry_delay = 2
    for attempt in range(1, max_retries + 1):
        try:
            logger.info("Connecting to database (attempt %d/%d)", attempt, max_retries)
            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("Database tables ready")
            break
        except (SQLAlchemyError, OSError) as exc:
            if attempt == max_retries:
                logger.error(
                    "Database unreachable after %d attempts; starting in DEGRADED mode: %s",
                    max_retries,
                    exc,
                )
                break
            logger.warning(
                "Database connection failed (%s); retrying in %ds", exc, retry_delay
            )
            await asyncio.sleep(retry_delay)
            retry_delay *= 2

    yield

    logger.info("Shutting down: draining webhooks and disposing connection pool")
    await notifier.drain()
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=VERSION,
    description=(
        "Fixed-rate investment lifecycle: drafting and approval, monthly "
        "accrual and payouts, valuation, and withdrawals."
    ),
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# Outermost first.
app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness / readiness probe: database ping, breaker state, cache stats."""
    db_healthy = True
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError):
        logger.exception("Health check database ping failed")
        db_healthy = False

    return {
        "status": "ok" if db_healthy else "degraded",
        "version": VERSION,
        "database": db_healthy,
        "circuit_breaker": db_circuit_breaker.get_status(),
        "cache": cache.get_stats(),
        "webhooks": notifier.enabled,
    }
