"""
backend/tests/test_api_football_provider.py

Purpose:
    API-Football fixture normalization and the error cases that must abort a
    settlement run.
"""

from __future__ import annotations

from datetime import date
from types import SimpleNamespace

import httpx
import pytest

from betadona.providers.api_football import ApiFootballProvider
from betadona.providers.base import ProviderError

DAY = date(2026, 10, 18)


def _fixture(fid: int, home: str, away: str, goals: tuple, status: str = "FT") -> dict:
    return {
        "fixture": {"id": fid, "date": "2026-10-18T19:00:00+00:00", "status": {"short": status}},
        "league": {"id": 140},
        "teams": {"home": {"id": 541, "name": home}, "away": {"id": 529, "name": away}},
        "goals": {"home": goals[0], "away": goals[1]},
        "score": {"fulltime": {"home": goals[0], "away": goals[1]}},
    }


def _provider(monkeypatch, response=None, exc: Exception | None = None) -> tuple[ApiFootballProvider, list]:
    monkeypatch.setattr("betadona.providers.api_football.settings.API_FOOTBALL_KEY", "abc", raising=False)
    calls: list = []

    async def _fake_get(url, params=None, headers=None):
        calls.append({"url": url, "params": params, "headers": headers})
        if exc is not None:
            raise exc
        return response

    provider = ApiFootballProvider(client=SimpleNamespace(get=_fake_get))
    return provider, calls


@pytest.mark.asyncio
async def test_finished_fixtures_are_normalized(monkeypatch):
    payload = {
        "errors": [],
        "response": [
            _fixture(1035001, "Real Madrid", "Barcelona", (2, 1)),
            _fixture(1035002, "Villarreal", "Real Sociedad", (1, 1), status="AET"),
            _fixture(1035003, "Getafe", "Sevilla", (None, None), status="PST"),
            _fixture(1035004, "Betis", "Valencia", (0, 0), status="1H"),
        ],
    }
    response = SimpleNamespace(status_code=200, json=lambda: payload)
    provider, calls = _provider(monkeypatch, response)

    fixtures = await provider.get_finished_fixtures(140, DAY)

    assert calls[0]["url"].endswith("/fixtures")
    assert calls[0]["params"]["league"] == 140
    assert calls[0]["params"]["date"] == "2026-10-18"
    assert calls[0]["headers"]["x-apisports-key"] == "abc"
    assert [f.fixture_id for f in fixtures] == [1035001, 1035002]
    first = fixtures[0]
    assert (first.home_team, first.away_team) == ("Real Madrid", "Barcelona")
    assert (first.home_goals, first.away_goals) == (2, 1)
    assert first.kickoff.year == 2026
    assert first.label == "Real Madrid 2-1 Barcelona"


@pytest.mark.asyncio
async def test_empty_day_returns_empty_list(monkeypatch):
    response = SimpleNamespace(status_code=200, json=lambda: {"errors": [], "response": []})
    provider, _ = _provider(monkeypatch, response)
    assert await provider.get_finished_fixtures(140, DAY) == []


@pytest.mark.asyncio
async def test_non_success_status_raises(monkeypatch):
    response = SimpleNamespace(status_code=503, json=lambda: {})
    provider, _ = _provider(monkeypatch, response)
    with pytest.raises(ProviderError, match="503"):
        await provider.get_finished_fixtures(140, DAY)


@pytest.mark.asyncio
async def test_error_payload_raises(monkeypatch):
    response = SimpleNamespace(
        status_code=200,
        json=lambda: {"errors": {"token": "Error/Missing application key."}, "response": []},
    )
    provider, _ = _provider(monkeypatch, response)
    with pytest.raises(ProviderError):
        await provider.get_finished_fixtures(140, DAY)


@pytest.mark.asyncio
async def test_network_error_raises_provider_error(monkeypatch):
    provider, _ = _provider(monkeypatch, exc=httpx.ConnectError("connection refused"))
    with pytest.raises(ProviderError, match="unreachable"):
        await provider.get_finished_fixtures(140, DAY)


@pytest.mark.asyncio
async def test_missing_api_key_raises(monkeypatch):
    provider, calls = _provider(monkeypatch)
    monkeypatch.setattr("betadona.providers.api_football.settings.API_FOOTBALL_KEY", "", raising=False)
    with pytest.raises(ProviderError):
        await provider.get_finished_fixtures(140, DAY)
    assert calls == []
