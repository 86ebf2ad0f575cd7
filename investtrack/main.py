"""
Investment Tracker API — Application entry-point.

Initializes the FastAPI application, registers middleware, exception handlers,
routers, and manages the application lifecycle (database, interest scheduler).
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy import text
from sqlmodel import SQLModel

from investtrack.api.v1.api import api_router
from investtrack.core.config import settings
from investtrack.core.exceptions import add_exception_handlers
from investtrack.core.logging import setup_logging
from investtrack.db.session import build_engine, build_session_factory
from investtrack.middleware import RequestIDMiddleware, RequestTimingMiddleware
from investtrack.services.scheduler import InterestScheduler

# ── Initialise production logging (rotating files + JSON structured) ──
setup_logging()
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


# ────────────────────────────────────────────────────────────────────────────
# Application lifespan
# ────────────────────────────────────────────────────────────────────────────


async def _create_tables(app: FastAPI, max_retries: int = 5, retry_delay: int = 2) -> bool:
    """Create tables, retrying with exponential back-off while the DB comes up."""
    for attempt in range(1, max_retries + 1):
        try:
            logger.info("Connecting to database (attempt %d/%d)…", attempt, max_retries)
            async with app.state.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("Database tables ready")
            return True
        except Exception as exc:
            if attempt == max_retries:
                logger.error(
                    "Could not connect to database after %d attempts. The application "
                    "will start in DEGRADED mode and the interest scheduler stays off. "
                    "Last error: %s",
                    max_retries,
                    exc,
                )
                return False
            logger.warning(
                "Database connection failed (attempt %d/%d): %s; retrying in %ds…",
                attempt,
                max_retries,
                exc,
                retry_delay,
            )
            await asyncio.sleep(retry_delay)
            retry_delay *= 2
    return False


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup:
      - Builds the engine and session factory and keeps them on ``app.state``.
      - Creates tables (with retry).
      - Starts the interest scheduler when enabled and the database is up.

    Shutdown:
      - Stops the scheduler, then disposes of the connection pool.
    """
    # Registers the table models on SQLModel.metadata.
    import investtrack.models  # noqa: F401

    app.state.engine = build_engine(settings)
    app.state.session_factory = build_session_factory(app.state.engine)
    app.state.scheduler = None

    db_ready = await _create_tables(app)
    if db_ready and settings.INTEREST_SCHEDULER_ENABLED:
        scheduler = InterestScheduler(
            app.state.session_factory, settings.INTEREST_SWEEP_INTERVAL_SECONDS
        )
        scheduler.start()
        app.state.scheduler = scheduler

    yield

    if app.state.scheduler is not None:
        app.state.scheduler.stop()
    logger.info("Shutting down — disposing connection pool")
    await app.state.engine.dispose()


# ────────────────────────────────────────────────────────────────────────────
# FastAPI application instance
# ────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=VERSION,
    description=(
        "Personal investment tracking: an investment registry, a transaction "
        "ledger, fixed-rate interest accrual and variable-return updates."
    ),
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)


# ── Middleware (order matters: outermost = first to execute) ──
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

# ── Global error handlers ──
add_exception_handlers(app)

# ── API routers ──
app.include_router(api_router, prefix=settings.API_V1_STR)


# ── Health check ──


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Liveness and readiness check, including database connectivity.

    Runs ``SELECT 1`` through the application's session factory and reports
    whether the interest scheduler is running.
    """
    db_healthy = True
    try:
        async with request.app.state.session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Health check: database unreachable", exc_info=True)
        db_healthy = False

    scheduler = getattr(request.app.state, "scheduler", None)
    return {
        "status": "ok" if db_healthy else "degraded",
        "version": VERSION,
        "database": db_healthy,
        "scheduler": scheduler is not None and scheduler.running,
    }
