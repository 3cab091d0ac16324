"""Settlement models: transient fixture results and run reports."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class FixtureResult(BaseModel):
    """A finished fixture as reported by the results provider. Never persisted."""
    fixture_id: Optional[int] = None
    home_team: str
    away_team: str
    home_goals: int
    away_goals: int
    completed: bool = True
    kickoff: Optional[datetime] = None

    @property
    def total_goals(self) -> int:
        return self.home_goals + self.away_goals

    @property
    def label(self) -> str:
        return f"{self.home_team} {self.home_goals}-{self.away_goals} {self.away_team}"


class SettlementOutcome(str, Enum):
    completed = "completed"
    no_fixtures = "no_fixtures"
    provider_error = "provider_error"
    already_running = "already_running"


class RunStatus(str, Enum):
    running = "running"
    completed = "completed"
    failed = "failed"


class SettledBet(BaseModel):
    bet_id: str
    user_id: str
    status: str
    payout: float
    fixture: str


class UpdatedProfile(BaseModel):
    user_id: str
    username: str
    payout: float
    total_points: float


class StandingsResult(BaseModel):
    updated: list[UpdatedProfile] = Field(default_factory=list)
    skipped: int = 0  # run already applied and no late bets to credit
    failed: list[str] = Field(default_factory=list)


class SettlementReport(BaseModel):
    settlement_id: str
    league_id: int
    target_date: date
    outcome: SettlementOutcome
    fixtures_found: int = 0
    bets_processed: int = 0
    bets_unmatched: int = 0
    bets_ungradeable: int = 0
    bets_failed: int = 0
    users_updated: int = 0
    users_failed: int = 0
    processed_bets: list[SettledBet] = Field(default_factory=list)
    updated_users: list[UpdatedProfile] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome not in (SettlementOutcome.provider_error, SettlementOutcome.already_running)


class SettlementRequest(BaseModel):
    """Admin trigger body."""
    target_date: Optional[date] = None
    league_id: Optional[int] = None
