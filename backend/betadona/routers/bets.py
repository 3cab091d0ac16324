"""Bet slip and bet history endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from betadona.models.bet import (
    BetResponse,
    BetStatus,
    PlaceBetsRequest,
    PlaceBetsResponse,
    bet_to_response,
)
from betadona.services import bet_service
from betadona.services.auth_service import get_current_user

router = APIRouter(prefix="/api/bets", tags=["bets"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=PlaceBetsResponse)
async def place_bets(body: PlaceBetsRequest, user=Depends(get_current_user)):
    """Place every line of the bet slip at once, or none of them."""
    bets, profile = await bet_service.place_bets(str(user["_id"]), body.bets)
    return PlaceBetsResponse(
        bets=[bet_to_response(b) for b in bets],
        total_stake=round(sum(b["stake"] for b in bets), 2),
        weekly_budget=profile["weekly_budget"],
    )


@router.get("", response_model=list[BetResponse])
async def bet_history(
    bet_status: Optional[BetStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    user=Depends(get_current_user),
):
    bets = await bet_service.get_user_bets(str(user["_id"]), bet_status, limit)
    return [bet_to_response(b) for b in bets]
