from abc import ABC, abstractmethod
from datetime import date

from betadona.models.settlement import FixtureResult


class ProviderError(Exception):
    """The results provider could not deliver a usable answer."""


class BaseResultsProvider(ABC):
    """Abstract base class for fixture/result providers."""

    name: str = "base"

    @abstractmethod
    async def get_finished_fixtures(self, league_id: int, day: date) -> list[FixtureResult]:
        """Fetch completed fixtures with final scores for one league and calendar day.

        Must raise ProviderError when the upstream is unreachable or answers
        with anything but a usable payload. An empty list means the day simply
        had no finished matches.
        """
        ...
