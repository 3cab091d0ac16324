"""Bet models: stored bet documents, structured selections, placement requests."""

import math
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


class BetStatus(str, Enum):
    pending = "pending"
    won = "won"
    lost = "lost"


# ---------- Structured selections ----------

class MatchWinnerSelection(BaseModel):
    kind: Literal["match_winner"] = "match_winner"
    side: Literal["home", "away", "draw"]


class OverUnderSelection(BaseModel):
    kind: Literal["over_under"] = "over_under"
    threshold: float
    direction: Literal["over", "under"]


class BothTeamsToScoreSelection(BaseModel):
    kind: Literal["both_teams_to_score"] = "both_teams_to_score"
    scores: bool  # True = "yes"


Selection = Annotated[
    Union[MatchWinnerSelection, OverUnderSelection, BothTeamsToScoreSelection],
    Field(discriminator="kind"),
]


# ---------- Stored bet ----------

class BetInDB(BaseModel):
    """A single simulated stake on a match outcome."""
    user_id: str
    match_description: str  # "Real Madrid vs Barcelona"
    bet_selection: str  # display string, "Match Winner: Real Madrid"
    selection: Optional[dict] = None  # structured Selection, if captured at placement
    fixture_id: Optional[int] = None
    stake: float
    odds: float
    status: BetStatus = BetStatus.pending
    payout: Optional[float] = None  # net: stake*odds - stake when won, -stake when lost
    settlement_id: Optional[str] = None
    settled_at: Optional[datetime] = None
    credited: bool = False  # payout counted in total_points
    credited_in: Optional[str] = None
    created_at: datetime


# ---------- Placement ----------

class BetCandidate(BaseModel):
    """One line of the bet slip."""
    match_description: str = Field(min_length=1, max_length=200)
    market: str = Field(min_length=1, max_length=80)
    selection: str = Field(min_length=1, max_length=120)
    odds: float
    stake: float
    fixture_id: Optional[int] = None
    structured_selection: Optional[Selection] = None

    @field_validator("stake", "odds")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("must be a finite number")
        return value

    @property
    def display_selection(self) -> str:
        return f"{self.market}: {self.selection}"


class PlaceBetsRequest(BaseModel):
    bets: list[BetCandidate] = Field(min_length=1, max_length=50)


class BetResponse(BaseModel):
    id: str
    match_description: str
    bet_selection: str
    stake: float
    odds: float
    potential_win: float
    status: str
    payout: Optional[float] = None
    fixture_id: Optional[int] = None
    settled_at: Optional[datetime] = None
    created_at: datetime


class PlaceBetsResponse(BaseModel):
    bets: list[BetResponse]
    total_stake: float
    weekly_budget: float


def bet_to_response(bet: dict) -> BetResponse:
    return BetResponse(
        id=str(bet["_id"]),
        match_description=bet["match_description"],
        bet_selection=bet["bet_selection"],
        stake=bet["stake"],
        odds=bet["odds"],
        potential_win=round(bet["stake"] * bet["odds"], 2),
        status=bet["status"],
        payout=bet.get("payout"),
        fixture_id=bet.get("fixture_id"),
        settled_at=bet.get("settled_at"),
        created_at=bet["created_at"],
    )
