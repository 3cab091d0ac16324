"""Profile, league and standings models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ProfileInDB(BaseModel):
    """One player. `_id` doubles as the user identifier."""
    username: str
    hashed_password: str
    league_id: int
    weekly_budget: float = 1000.0
    total_points: float = 0.0
    last_payout: float = 0.0
    is_admin: bool = False
    period_started_at: datetime
    last_settlement_id: Optional[str] = None
    applied_settlements: list[str] = []  # settlement ids already credited
    created_at: datetime
    updated_at: datetime


class ProfileCreate(BaseModel):
    username: str = Field(min_length=3, max_length=30, pattern=r"^[A-Za-z0-9_.-]+$")
    password: str = Field(min_length=8, max_length=128)
    league_id: Optional[int] = None


class ProfileLogin(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ProfileResponse(BaseModel):
    id: str
    username: str
    league_id: int
    weekly_budget: float
    total_points: float
    last_payout: float = 0.0
    period_started_at: Optional[datetime] = None


class StandingsEntry(BaseModel):
    rank: int
    user_id: str
    username: str
    total_points: float
    last_payout: float = 0.0


class LeagueResponse(BaseModel):
    id: int
    name: str


def profile_to_response(profile: dict) -> ProfileResponse:
    return ProfileResponse(
        id=str(profile["_id"]),
        username=profile["username"],
        league_id=profile["league_id"],
        weekly_budget=profile["weekly_budget"],
        total_points=profile.get("total_points", 0.0),
        last_payout=profile.get("last_payout", 0.0),
        period_started_at=profile.get("period_started_at"),
    )
