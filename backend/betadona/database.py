"""
backend/betadona/database.py

Purpose:
    MongoDB connection bootstrap and index management for profiles, bets,
    leagues and settlement bookkeeping.

Dependencies:
    - motor.motor_asyncio
    - betadona.config
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from betadona.config import settings

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None

logger = logging.getLogger("betadona.database")


async def connect_db() -> None:
    global client, db
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=25,
        minPoolSize=5,
        tz_aware=True,
    )
    db = client[settings.MONGO_DB]
    await _ensure_indexes()


async def close_db() -> None:
    global client
    if client:
        client.close()


async def _ensure_indexes() -> None:
    """Create indexes on startup. Idempotent, safe to run repeatedly."""

    # ---- Profiles ----
    await db.profiles.create_index("username", unique=True)
    await db.profiles.create_index([("league_id", 1), ("total_points", -1)])
    await db.profiles.create_index([("total_points", -1)])

    # ---- Bets ----
    # Settlement sweep: pending bets
    await db.bets.create_index("status")
    # Bet history + period cap counting
    await db.bets.create_index([("user_id", 1), ("created_at", -1)])
    # Standings step: settled bets not yet counted in total_points
    await db.bets.create_index([("user_id", 1), ("credited", 1)])
    await db.bets.create_index("settlement_id", sparse=True)

    # ---- Settlement runs ----
    await db.settlement_runs.create_index([("started_at", -1)])

    logger.info("MongoDB indexes ensured on %s", settings.MONGO_DB)
