"""Leagues are read-only reference data; the configured default is seeded on startup."""

import logging

from fastapi import HTTPException, status

import betadona.database as _db
from betadona.config import settings
from betadona.utils import utcnow

logger = logging.getLogger("betadona.league_service")


async def seed_default_league() -> bool:
    """Ensure the default league exists. Returns True when it was created."""
    result = await _db.db.leagues.update_one(
        {"_id": settings.DEFAULT_LEAGUE_ID},
        {"$setOnInsert": {"name": settings.DEFAULT_LEAGUE_NAME, "created_at": utcnow()}},
        upsert=True,
    )
    created = result.upserted_id is not None
    if created:
        logger.info(
            "Default league seeded: id=%d name=%s",
            settings.DEFAULT_LEAGUE_ID, settings.DEFAULT_LEAGUE_NAME,
        )
    return created


async def get_league(league_id: int) -> dict:
    league = await _db.db.leagues.find_one({"_id": league_id})
    if not league:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "League not found.")
    return league
