"""
backend/betadona/services/profile_service.py

Purpose:
    Player profiles: signup/login, the standings table and the per-run
    standings update applied by matchday settlement.

Dependencies:
    - betadona.database
    - betadona.services.bet_service
    - betadona.services.auth_service
"""

import logging
from typing import Optional

from fastapi import HTTPException, status
from pymongo.errors import DuplicateKeyError, PyMongoError

import betadona.database as _db
from betadona.config import settings
from betadona.models.profile import StandingsEntry
from betadona.models.settlement import StandingsResult, UpdatedProfile
from betadona.services import bet_service
from betadona.services.auth_service import hash_password, verify_password
from betadona.utils import utcnow

logger = logging.getLogger("betadona.profile_service")


async def create_profile(
    username: str, password: str, league_id: Optional[int] = None, is_admin: bool = False,
) -> dict:
    """Create a player with a fresh weekly allowance and zero score."""
    league_id = league_id or settings.DEFAULT_LEAGUE_ID
    league = await _db.db.leagues.find_one({"_id": league_id})
    if not league:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "League not found.")

    now = utcnow()
    profile_doc = {
        "username": username,
        "hashed_password": hash_password(password),
        "league_id": league_id,
        "weekly_budget": float(settings.WEEKLY_BUDGET_DEFAULT),
        "total_points": 0.0,
        "last_payout": 0.0,
        "is_admin": is_admin,
        "period_started_at": now,
        "last_settlement_id": None,
        "applied_settlements": [],
        "created_at": now,
        "updated_at": now,
    }
    try:
        result = await _db.db.profiles.insert_one(profile_doc)
    except DuplicateKeyError:
        raise HTTPException(status.HTTP_409_CONFLICT, "This username is already taken.")
    profile_doc["_id"] = result.inserted_id

    logger.info("Profile created: user=%s league=%d", result.inserted_id, league_id)
    return profile_doc


async def authenticate(username: str, password: str) -> dict:
    profile = await _db.db.profiles.find_one({"username": username})
    if not profile or not verify_password(password, profile.get("hashed_password", "")):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid username or password.")
    return profile


async def get_standings(league_id: Optional[int] = None, limit: int = 50) -> list[StandingsEntry]:
    """Players ranked by cumulative score, highest first."""
    query: dict = {}
    if league_id is not None:
        query["league_id"] = league_id
    profiles = await _db.db.profiles.find(
        query, {"username": 1, "total_points": 1, "last_payout": 1},
    ).sort("total_points", -1).limit(limit).to_list(length=limit)

    return [
        StandingsEntry(
            rank=i + 1,
            user_id=str(p["_id"]),
            username=p.get("username", "Anonymous"),
            total_points=round(p.get("total_points", 0.0), 2),
            last_payout=round(p.get("last_payout", 0.0), 2),
        )
        for i, p in enumerate(profiles)
    ]


async def _credit_profile(profile: dict, settlement_id: str, now, session) -> Optional[float]:
    """Credit one profile inside a transaction. None when there is nothing to do.

    The first pass of a run resets the allowance and records the run id. A
    later pass of the same run only tops up bets settled since (e.g. after a
    failed bet write was retried). Each bet is counted once, flagged
    `credited` in the same transaction as the $inc.
    """
    bets = await bet_service.uncredited_bets(str(profile["_id"]), session=session)
    payout = round(sum(b.get("payout") or 0.0 for b in bets), 2)

    if settlement_id not in (profile.get("applied_settlements") or []):
        query = {"_id": profile["_id"], "applied_settlements": {"$ne": settlement_id}}
        update = {
            "$inc": {"total_points": payout},
            "$set": {
                "weekly_budget": float(settings.WEEKLY_BUDGET_DEFAULT),
                "last_payout": payout,
                "period_started_at": now,
                "last_settlement_id": settlement_id,
                "updated_at": now,
            },
            "$addToSet": {"applied_settlements": settlement_id},
        }
    elif bets:
        inc = {"total_points": payout}
        if profile.get("last_settlement_id") == settlement_id:
            inc["last_payout"] = payout
        query = {"_id": profile["_id"]}
        update = {"$inc": inc, "$set": {"updated_at": now}}
    else:
        return None

    result = await _db.db.profiles.update_one(query, update, session=session)
    if result.modified_count != 1:
        return None
    if bets:
        await bet_service.mark_credited([b["_id"] for b in bets], settlement_id, session=session)
    return payout


async def apply_standings(settlement_id: str) -> StandingsResult:
    """Apply one settlement run to every profile.

    Adds the net payout of the user's settled, not yet credited bets to
    total_points and resets the weekly allowance once per settlement_id
    (tracked in applied_settlements). A failure on one profile is logged and
    the sweep continues.
    """
    now = utcnow()
    outcome = StandingsResult()

    profiles = await _db.db.profiles.find(
        {},
        {"username": 1, "total_points": 1, "applied_settlements": 1, "last_settlement_id": 1},
    ).to_list(length=None)

    for profile in profiles:
        user_id = str(profile["_id"])
        try:
            async with await _db.client.start_session() as session:
                async with session.start_transaction():
                    payout = await _credit_profile(profile, settlement_id, now, session)
        except PyMongoError as exc:
            logger.error("Error updating user %s: %s", user_id, exc)
            outcome.failed.append(user_id)
            continue

        if payout is None:
            outcome.skipped += 1
            continue

        new_total = round(profile.get("total_points", 0.0) + payout, 2)
        outcome.updated.append(UpdatedProfile(
            user_id=user_id,
            username=profile.get("username", ""),
            payout=payout,
            total_points=new_total,
        ))
        logger.info(
            "User %s updated: payout %.2f, new total: %.2f",
            profile.get("username", user_id), payout, new_total,
        )

    return outcome
