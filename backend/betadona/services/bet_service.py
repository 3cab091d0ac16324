"""
backend/betadona/services/bet_service.py

Purpose:
    Bet slip placement against the weekly allowance, bet history reads and the
    settled-bet bookkeeping (grading writes, crediting flags) used by
    settlement.

Dependencies:
    - betadona.database
    - motor client sessions (multi-document transactions for placement and
      crediting)
"""

import logging
from datetime import datetime
from typing import Optional

from bson import ObjectId
from fastapi import HTTPException, status

import betadona.database as _db
from betadona.config import settings
from betadona.models.bet import BetCandidate, BetStatus
from betadona.utils import ensure_utc, utcnow

logger = logging.getLogger("betadona.bet_service")


class PlacementRejected(HTTPException):
    """A bet slip was refused; nothing was written."""

    def __init__(self, reason: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(status_code=status_code, detail=reason)
        self.reason = reason


def _validate_candidates(candidates: list[BetCandidate]) -> float:
    """Check every line of the slip and return the total stake."""
    if not candidates:
        raise PlacementRejected("Enter a stake for at least one bet.")
    for candidate in candidates:
        if candidate.stake <= 0:
            raise PlacementRejected("Every stake must be greater than zero.")
        # Whole cents only, so the summed total is exact at 2 dp
        if round(candidate.stake, 2) != candidate.stake:
            raise PlacementRejected("Stakes can have at most two decimal places.")
        if candidate.odds <= 1:
            raise PlacementRejected("Odds must be greater than 1.")
    return round(sum(c.stake for c in candidates), 2)


def _period_start(profile: dict) -> datetime:
    started = profile.get("period_started_at") or profile.get("created_at")
    return ensure_utc(started) if started else utcnow()


async def place_bets(user_id: str, candidates: list[BetCandidate]) -> tuple[list[dict], dict]:
    """Place a whole bet slip for one user, all or nothing.

    Validates:
    - every stake > 0 and every odds > 1
    - total stake fits in the weekly allowance
    - the per-period bet cap (if enabled) is not exceeded

    Inserting the bets and decrementing the allowance happen in a single
    transaction. Returns (inserted bets, updated profile).
    """
    total_stake = _validate_candidates(candidates)

    profile = await _db.db.profiles.find_one({"_id": ObjectId(user_id)})
    if not profile:
        raise PlacementRejected("Profile not found.", status.HTTP_404_NOT_FOUND)
    if profile["weekly_budget"] < total_stake:
        raise PlacementRejected("Insufficient budget.")

    cap = settings.BET_CAP_PER_PERIOD
    period_start = _period_start(profile)

    now = utcnow()
    bet_docs = [
        {
            "user_id": user_id,
            "match_description": c.match_description,
            "bet_selection": c.display_selection,
            "selection": c.structured_selection.model_dump() if c.structured_selection else None,
            "fixture_id": c.fixture_id,
            "stake": float(c.stake),
            "odds": float(c.odds),
            "status": BetStatus.pending.value,
            "payout": None,
            "settlement_id": None,
            "settled_at": None,
            "credited": False,
            "created_at": now,
        }
        for c in candidates
    ]

    async with await _db.client.start_session() as session:
        async with session.start_transaction():
            if cap:
                placed = await _db.db.bets.count_documents(
                    {"user_id": user_id, "created_at": {"$gte": period_start}},
                    session=session,
                )
                if placed + len(bet_docs) > cap:
                    raise PlacementRejected(
                        f"Bet limit reached: at most {cap} bets per week "
                        f"({placed} already placed)."
                    )

            updated = await _db.db.profiles.find_one_and_update(
                {"_id": profile["_id"], "weekly_budget": {"$gte": total_stake}},
                {
                    "$inc": {"weekly_budget": -total_stake},
                    "$set": {"updated_at": now},
                },
                return_document=True,
                session=session,
            )
            if not updated:
                raise PlacementRejected("Insufficient budget.")

            result = await _db.db.bets.insert_many(bet_docs, session=session)

    for doc, inserted_id in zip(bet_docs, result.inserted_ids):
        doc["_id"] = inserted_id

    logger.info(
        "Bets placed: user=%s count=%d total_stake=%.2f budget_left=%.2f",
        user_id, len(bet_docs), total_stake, updated["weekly_budget"],
    )
    return bet_docs, updated


async def get_user_bets(
    user_id: str, bet_status: Optional[BetStatus] = None, limit: int = 100,
) -> list[dict]:
    """Bet history for one user, newest first."""
    query: dict = {"user_id": user_id}
    if bet_status is not None:
        query["status"] = bet_status.value
    return await _db.db.bets.find(query).sort("created_at", -1).limit(limit).to_list(length=limit)


async def get_pending_bets() -> list[dict]:
    return await _db.db.bets.find({"status": BetStatus.pending.value}).to_list(length=None)


async def mark_settled(bet: dict, bet_status: BetStatus, payout: float, settlement_id: str) -> bool:
    """Persist a grading result. Only a still-pending bet is written.

    Returns False when the bet had already been settled by someone else.
    """
    result = await _db.db.bets.update_one(
        {"_id": bet["_id"], "status": BetStatus.pending.value},
        {"$set": {
            "status": bet_status.value,
            "payout": payout,
            "settlement_id": settlement_id,
            "settled_at": utcnow(),
            "credited": False,
        }},
    )
    return result.modified_count == 1


async def uncredited_bets(user_id: str, session=None) -> list[dict]:
    """Settled bets of one user whose payout has not reached the standings yet."""
    return await _db.db.bets.find(
        {
            "user_id": user_id,
            "status": {"$in": [BetStatus.won.value, BetStatus.lost.value]},
            "credited": {"$ne": True},
        },
        {"payout": 1, "settlement_id": 1},
        session=session,
    ).to_list(length=None)


async def mark_credited(bet_ids: list, settlement_id: str, session=None) -> int:
    """Flag bets as counted in total_points. Returns how many were flagged."""
    result = await _db.db.bets.update_many(
        {"_id": {"$in": bet_ids}, "credited": {"$ne": True}},
        {"$set": {"credited": True, "credited_in": settlement_id}},
        session=session,
    )
    return result.modified_count
