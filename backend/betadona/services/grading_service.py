"""
backend/betadona/services/grading_service.py

Purpose:
    Pure bet grading: find the fixture a bet refers to, work out which
    outcome the bet backed, decide won/lost against the final score and
    compute the net payout.

Notes:
    - A structured fixture_id / selection recorded at placement always takes
      precedence. Text matching and keyword parsing of the display strings
      are the fallback for bets that carry neither.
    - Display strings come in English and Spanish renderings of the bet slip.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Iterable, Optional

from pydantic import TypeAdapter, ValidationError

from betadona.models.bet import (
    BetStatus,
    BothTeamsToScoreSelection,
    MatchWinnerSelection,
    OverUnderSelection,
    Selection,
)
from betadona.models.settlement import FixtureResult

_selection_adapter: TypeAdapter = TypeAdapter(Selection)

_BTTS_MARKETS = ("both teams to score", "ambos equipos marcan", "btts")
_OVER_UNDER_MARKETS = ("goals over/under", "goles mas/menos", "over/under", "mas/menos")
_MATCH_WINNER_MARKETS = ("match winner", "ganador del partido", "1x2")
# Offered on the slip but not settled automatically.
_UNSUPPORTED_MARKETS = (
    "double chance", "doble oportunidad", "handicap", "spread", "correct score", "resultado exacto",
)

_DRAW_RE = re.compile(r"\b(draw|empate)\b")
_YES_RE = re.compile(r"\b(yes|si)\b")
_NO_RE = re.compile(r"\bno\b")
_OVER_RE = re.compile(r"\b(over|mas de)\b")
_UNDER_RE = re.compile(r"\b(under|menos de)\b")
_DIRECTION_WITH_LINE_RE = re.compile(r"\b(over|under|mas de|menos de)\s*\d")
_NUMBER_RE = re.compile(r"(\d+(?:[.,]\d+)?)")
_WIN_RE = re.compile(r"\b(to win|gana|ganador)\b")


class UngradeableSelection(ValueError):
    """The selection text does not describe a market we can settle."""


def fold(text: str) -> str:
    """Lowercase, accent-free form used for every textual comparison."""
    normalized = unicodedata.normalize("NFKD", text or "")
    normalized = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    return " ".join(normalized.lower().split())


# ---------- Fixture matching ----------

def find_fixture(bet: dict, fixtures: Iterable[FixtureResult]) -> Optional[FixtureResult]:
    """Return the fixture this bet refers to, or None.

    Bets carrying a fixture_id join on it. Otherwise the match description has
    to contain both the home and the away team name.
    """
    fixture_id = bet.get("fixture_id")
    if fixture_id is not None:
        for fixture in fixtures:
            if fixture.fixture_id == fixture_id:
                return fixture
        return None

    description = fold(bet.get("match_description", ""))
    for fixture in fixtures:
        home, away = fold(fixture.home_team), fold(fixture.away_team)
        if home and away and home in description and away in description:
            return fixture
    return None


# ---------- Selection resolution ----------

def _outcome_part(text: str) -> str:
    """The part of "Market: Outcome" naming the outcome (whole text if no colon)."""
    if ":" in text:
        return text.rsplit(":", 1)[1].strip()
    return text


def _strip_markets(text: str, markets: Iterable[str]) -> str:
    for market in markets:
        text = text.replace(market, " ")
    return text


def parse_selection(bet_selection: str, fixture: FixtureResult) -> Selection:
    """Turn a display string into a structured selection for this fixture.

    Raises UngradeableSelection when no market family can be recognised or the
    backed outcome cannot be pinned down.
    """
    text = fold(bet_selection)
    if not text:
        raise UngradeableSelection("empty selection")
    outcome = _outcome_part(text)

    if any(market in text for market in _UNSUPPORTED_MARKETS):
        raise UngradeableSelection(f"unsupported market: {bet_selection!r}")

    if any(market in text for market in _BTTS_MARKETS):
        rest = _strip_markets(outcome, _BTTS_MARKETS)
        if _YES_RE.search(rest):
            return BothTeamsToScoreSelection(scores=True)
        if _NO_RE.search(rest):
            return BothTeamsToScoreSelection(scores=False)
        raise UngradeableSelection(f"both-teams-to-score without yes/no: {bet_selection!r}")

    if any(market in text for market in _OVER_UNDER_MARKETS) or _DIRECTION_WITH_LINE_RE.search(text):
        rest = _strip_markets(outcome, _OVER_UNDER_MARKETS)
        number = _NUMBER_RE.search(rest)
        if not number:
            raise UngradeableSelection(f"over/under without a goal line: {bet_selection!r}")
        threshold = float(number.group(1).replace(",", "."))
        if _OVER_RE.search(rest):
            return OverUnderSelection(threshold=threshold, direction="over")
        if _UNDER_RE.search(rest):
            return OverUnderSelection(threshold=threshold, direction="under")
        raise UngradeableSelection(f"over/under without a direction: {bet_selection!r}")

    home, away = fold(fixture.home_team), fold(fixture.away_team)
    is_match_winner = (
        any(market in text for market in _MATCH_WINNER_MARKETS)
        or _DRAW_RE.search(outcome) is not None
        or _WIN_RE.search(outcome) is not None
        or (home and home in outcome)
        or (away and away in outcome)
    )
    if is_match_winner:
        if home and home in outcome:
            return MatchWinnerSelection(side="home")
        if away and away in outcome:
            return MatchWinnerSelection(side="away")
        if _DRAW_RE.search(outcome):
            return MatchWinnerSelection(side="draw")
        raise UngradeableSelection(f"match winner names neither team nor draw: {bet_selection!r}")

    raise UngradeableSelection(f"unknown market: {bet_selection!r}")


def selection_for_bet(bet: dict, fixture: FixtureResult) -> Selection:
    """Structured selection stored on the bet, else parsed from its display string."""
    stored = bet.get("selection")
    if stored:
        try:
            return _selection_adapter.validate_python(stored)
        except ValidationError as exc:
            raise UngradeableSelection(f"invalid stored selection: {stored!r}") from exc
    return parse_selection(bet.get("bet_selection", ""), fixture)


# ---------- Grading ----------

def is_winning(selection: Selection, fixture: FixtureResult) -> bool:
    home, away = fixture.home_goals, fixture.away_goals

    if isinstance(selection, MatchWinnerSelection):
        if home > away:
            return selection.side == "home"
        if away > home:
            return selection.side == "away"
        return selection.side == "draw"

    if isinstance(selection, OverUnderSelection):
        if selection.direction == "over":
            return fixture.total_goals > selection.threshold
        return fixture.total_goals < selection.threshold

    if isinstance(selection, BothTeamsToScoreSelection):
        both_scored = home > 0 and away > 0
        return both_scored if selection.scores else not both_scored

    raise UngradeableSelection(f"unsupported selection type: {type(selection).__name__}")


def compute_payout(stake: float, odds: float, won: bool) -> float:
    """Net result relative to the stake: profit when won, minus the stake when lost."""
    if won:
        return round(stake * odds - stake, 2)
    return round(-stake, 2)


def grade_bet(bet: dict, fixture: FixtureResult) -> tuple[BetStatus, float]:
    """Grade one bet against its fixture. Raises UngradeableSelection."""
    selection = selection_for_bet(bet, fixture)
    won = is_winning(selection, fixture)
    payout = compute_payout(float(bet["stake"]), float(bet["odds"]), won)
    return (BetStatus.won if won else BetStatus.lost), payout
