"""
backend/betadona/main.py

Purpose:
    Application entry point: builds the FastAPI app, seeds the default league
    and admin on startup, and owns the scheduler that runs the nightly
    matchday settlement.

Dependencies:
    - betadona.database
    - betadona.errors
    - betadona.workers.matchday_settlement
"""

import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import betadona.database as _db
from betadona.config import settings
from betadona.database import close_db, connect_db
from betadona.errors import register_exception_handlers
from betadona.middleware.logging import StructuredLoggingMiddleware, setup_logging
from betadona.providers.api_football import results_provider
from betadona.routers.admin import router as admin_router
from betadona.routers.auth import router as auth_router
from betadona.routers.bets import router as bets_router
from betadona.routers.standings import router as standings_router
from betadona.seed import seed_admin_user
from betadona.services.league_service import seed_default_league
from betadona.workers.matchday_settlement import run_scheduled_settlement

logger = logging.getLogger("betadona")
scheduler = AsyncIOScheduler(timezone="UTC")
SETTLEMENT_JOB_ID = "matchday_settlement"


def schedule_settlement() -> None:
    """Daily cron for yesterday's matchday; one instance at a time."""
    scheduler.add_job(
        run_scheduled_settlement,
        "cron",
        id=SETTLEMENT_JOB_ID,
        hour=settings.SETTLEMENT_CRON_HOUR,
        minute=settings.SETTLEMENT_CRON_MINUTE,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    logger.info(
        "Matchday settlement scheduled daily at %02d:%02d UTC (league %d)",
        settings.SETTLEMENT_CRON_HOUR, settings.SETTLEMENT_CRON_MINUTE,
        settings.SETTLEMENT_LEAGUE_ID,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)
    await connect_db()
    await seed_default_league()
    await seed_admin_user()

    if settings.SETTLEMENT_ENABLED:
        schedule_settlement()
    else:
        logger.info("Matchday settlement disabled (SETTLEMENT_ENABLED=false)")
    scheduler.start()

    try:
        yield
    finally:
        if scheduler.running:
            scheduler.shutdown(wait=False)
        await results_provider.aclose()
        await close_db()


app = FastAPI(
    title="Betadona",
    description="Simulated LaLiga betting league",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.BACKEND_CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)
app.add_middleware(StructuredLoggingMiddleware)

for _router in (auth_router, bets_router, standings_router, admin_router):
    app.include_router(_router)

register_exception_handlers(app)


@app.get("/health")
async def health():
    """Database ping plus the results provider's circuit state."""
    try:
        pong = await _db.db.command("ping")
        db_ok = pong.get("ok") == 1.0
    except Exception:
        logger.warning("Health check: database ping failed", exc_info=True)
        db_ok = False

    return {
        "status": "ok" if db_ok else "degraded",
        "database": "up" if db_ok else "down",
        "results_provider": {
            "name": results_provider.name,
            "circuit": results_provider.circuit_state,
        },
    }
