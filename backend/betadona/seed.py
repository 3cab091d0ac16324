import logging

import betadona.database as _db
from betadona.config import settings
from betadona.services import profile_service

logger = logging.getLogger("betadona.seed")


async def seed_admin_user() -> None:
    """Create the admin profile if configured via env and not yet present."""
    if not settings.SEED_ADMIN_USERNAME or not settings.SEED_ADMIN_PASSWORD:
        logger.debug("SEED_ADMIN_USERNAME not set, skipping seed")
        return

    existing = await _db.db.profiles.find_one({"username": settings.SEED_ADMIN_USERNAME})
    if existing:
        if not existing.get("is_admin"):
            await _db.db.profiles.update_one(
                {"_id": existing["_id"]},
                {"$set": {"is_admin": True}},
            )
            logger.info("Seed user promoted to admin")
        else:
            logger.info("Seed user already exists, skipping")
        return

    profile = await profile_service.create_profile(
        settings.SEED_ADMIN_USERNAME,
        settings.SEED_ADMIN_PASSWORD,
        is_admin=True,
    )
    logger.info("Seed user created (admin): %s", profile["_id"])
