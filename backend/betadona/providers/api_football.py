"""
backend/betadona/providers/api_football.py

Purpose:
    Adapter for API-Football v3 fixtures. Returns the finished fixtures of one
    league on one calendar day, normalized to FixtureResult, for matchday
    settlement.

Dependencies:
    - betadona.providers.http_client
    - betadona.config
"""

import logging
from datetime import date
from typing import Any, Optional

import httpx

from betadona.config import settings
from betadona.models.settlement import FixtureResult
from betadona.providers.base import BaseResultsProvider, ProviderError
from betadona.providers.http_client import CircuitOpenError, ResilientClient
from betadona.utils import parse_utc

logger = logging.getLogger("betadona.api_football")

PROVIDER_NAME = "api_football"

# Full time, after extra time, after penalties
FINISHED_STATUSES = ("FT", "AET", "PEN")


class ApiFootballProvider(BaseResultsProvider):
    """API-Football (api-sports.io) fixtures provider."""

    name = PROVIDER_NAME

    def __init__(self, client: Optional[ResilientClient] = None):
        self._client = client or ResilientClient(
            PROVIDER_NAME,
            timeout=settings.API_FOOTBALL_TIMEOUT_SECONDS,
            max_retries=settings.API_FOOTBALL_MAX_RETRIES,
        )

    @property
    def circuit_state(self) -> str:
        circuit = getattr(self._client, "circuit", None)
        return circuit.state if circuit else "closed"

    async def get_finished_fixtures(self, league_id: int, day: date) -> list[FixtureResult]:
        api_key = settings.API_FOOTBALL_KEY
        if not api_key:
            raise ProviderError("API_FOOTBALL_KEY is not configured")

        params = {
            "league": league_id,
            "date": day.isoformat(),
            "status": "-".join(FINISHED_STATUSES),
        }
        try:
            resp = await self._client.get(
                f"{settings.API_FOOTBALL_BASE_URL}/fixtures",
                params=params,
                headers={
                    "x-apisports-key": api_key,
                    "x-rapidapi-host": "v3.football.api-sports.io",
                },
            )
        except (httpx.HTTPError, CircuitOpenError) as exc:
            raise ProviderError(f"API-Football unreachable: {exc}") from exc

        if resp.status_code != 200:
            raise ProviderError(f"API-Football request failed: HTTP {resp.status_code}")

        try:
            payload = resp.json()
        except ValueError as exc:
            raise ProviderError("API-Football returned a non-JSON body") from exc

        # API-Football reports auth/quota problems with HTTP 200 + "errors"
        errors = payload.get("errors")
        if errors:
            raise ProviderError(f"API-Football error: {errors}")

        fixtures = [
            fixture
            for fixture in (_normalize(raw) for raw in payload.get("response") or [])
            if fixture is not None and fixture.completed
        ]
        logger.info(
            "API-Football: %d finished fixtures for league=%d date=%s",
            len(fixtures), league_id, day.isoformat(),
        )
        return fixtures

    async def aclose(self) -> None:
        await self._client.aclose()


def _normalize(raw: dict[str, Any]) -> FixtureResult | None:
    fixture = raw.get("fixture") or {}
    teams = raw.get("teams") or {}
    goals = raw.get("goals") or {}
    fulltime = (raw.get("score") or {}).get("fulltime") or {}

    home_goals = goals.get("home")
    away_goals = goals.get("away")
    if home_goals is None or away_goals is None:
        home_goals, away_goals = fulltime.get("home"), fulltime.get("away")
    if home_goals is None or away_goals is None:
        logger.debug("Skipping fixture %s without a final score", fixture.get("id"))
        return None

    status_short = ((fixture.get("status") or {}).get("short") or "").upper()
    kickoff = fixture.get("date")

    return FixtureResult(
        fixture_id=fixture.get("id"),
        home_team=(teams.get("home") or {}).get("name", ""),
        away_team=(teams.get("away") or {}).get("name", ""),
        home_goals=int(home_goals),
        away_goals=int(away_goals),
        completed=status_short in FINISHED_STATUSES,
        kickoff=parse_utc(kickoff) if kickoff else None,
    )


results_provider = ApiFootballProvider()
