from typing import Optional

from fastapi import APIRouter, Query

from betadona.models.profile import LeagueResponse, StandingsEntry
from betadona.services import league_service, profile_service

router = APIRouter(prefix="/api", tags=["standings"])


@router.get("/standings", response_model=list[StandingsEntry])
async def get_standings(
    league_id: Optional[int] = Query(None),
    limit: int = Query(50, ge=1, le=200),
):
    """League table, sorted by cumulative points descending.

    Public endpoint: returns username only.
    """
    return await profile_service.get_standings(league_id, limit)


@router.get("/leagues/{league_id}", response_model=LeagueResponse)
async def get_league(league_id: int):
    league = await league_service.get_league(league_id)
    return LeagueResponse(id=league["_id"], name=league["name"])
