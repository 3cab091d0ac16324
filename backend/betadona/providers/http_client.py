"""
backend/betadona/providers/http_client.py

Purpose:
    Outbound HTTP for results providers: retries with exponential backoff on
    rate limits, 5xx and network errors, plus a per-client circuit breaker so
    a dead upstream fails fast instead of stalling the settlement job.
"""

import asyncio
import logging
import time
from typing import Optional
from urllib.parse import urlparse

import httpx

logger = logging.getLogger("betadona.http_client")

_RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})
_NETWORK_ERRORS = (httpx.TimeoutException, httpx.ConnectError, httpx.RemoteProtocolError)
_MAX_DELAY_SECONDS = 60.0


class CircuitOpenError(RuntimeError):
    """Raised instead of calling an upstream that keeps failing."""


class CircuitBreaker:
    """Opens after `failure_threshold` consecutive failed calls.

    Once `recovery_timeout` seconds have passed since the last failure the
    breaker is half-open: one call goes through, and its outcome closes or
    re-opens it.
    """

    def __init__(self, name: str = "", failure_threshold: int = 3, recovery_timeout: int = 300):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.last_failure_time: Optional[float] = None
        self.is_open = False

    @property
    def state(self) -> str:
        if not self.is_open:
            return "closed"
        return "half_open" if self._recovered() else "open"

    def _recovered(self) -> bool:
        return bool(
            self.last_failure_time
            and time.time() - self.last_failure_time > self.recovery_timeout
        )

    def record_success(self) -> None:
        if self.is_open:
            logger.info("[%s] Circuit closed", self.name)
        self.failure_count = 0
        self.is_open = False

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()
        if not self.is_open and self.failure_count >= self.failure_threshold:
            self.is_open = True
            logger.warning(
                "[%s] Circuit opened after %d consecutive failures",
                self.name, self.failure_count,
            )

    def can_attempt(self) -> bool:
        return self.state != "open"


def _retry_after_seconds(response: httpx.Response) -> Optional[float]:
    for header in ("retry-after", "x-ratelimit-retry-after"):
        raw = response.headers.get(header)
        if raw is None:
            continue
        try:
            return float(raw)
        except (TypeError, ValueError):
            continue
    return None


def _loggable(url: str) -> str:
    """URL without its query string (API keys may travel there)."""
    parts = urlparse(str(url))
    return f"{parts.scheme}://{parts.netloc}{parts.path}"


class ResilientClient:
    """Thin wrapper around httpx.AsyncClient.

    A retryable status that survives every attempt is handed back as the
    response so the provider decides what it means. A network error that
    survives every attempt is re-raised. Both count as one breaker failure.
    """

    def __init__(
        self,
        name: str,
        timeout: float = 15.0,
        max_retries: int = 3,
        base_delay: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._name = name
        self._max_retries = max_retries
        self._base_delay = base_delay
        self.circuit = CircuitBreaker(name)

    def _backoff(self, attempt: int, response: Optional[httpx.Response] = None) -> float:
        hinted = _retry_after_seconds(response) if response is not None else None
        delay = hinted if hinted is not None else self._base_delay * (2 ** attempt)
        return min(delay, _MAX_DELAY_SECONDS)

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        if not self.circuit.can_attempt():
            raise CircuitOpenError(f"{self._name}: circuit open, not calling {_loggable(url)}")

        attempts = self._max_retries + 1
        failure: Optional[Exception] = None
        response: Optional[httpx.Response] = None

        for attempt in range(attempts):
            try:
                response = await self._client.request(method, url, **kwargs)
            except _NETWORK_ERRORS as exc:
                failure, response = exc, None
                logger.warning(
                    "[%s] %s %s failed (try %d of %d): %s",
                    self._name, method, _loggable(url), attempt + 1, attempts, exc,
                )
            else:
                if response.status_code not in _RETRYABLE_STATUSES:
                    self.circuit.record_success()
                    return response
                logger.warning(
                    "[%s] %s %s returned %d (try %d of %d)",
                    self._name, method, _loggable(url), response.status_code,
                    attempt + 1, attempts,
                )

            if attempt + 1 < attempts:
                await asyncio.sleep(self._backoff(attempt, response))

        self.circuit.record_failure()
        if response is not None:
            logger.error(
                "[%s] Giving up on %s %s after %d tries (HTTP %d)",
                self._name, method, _loggable(url), attempts, response.status_code,
            )
            return response

        logger.error(
            "[%s] Giving up on %s %s after %d tries: %s",
            self._name, method, _loggable(url), attempts, failure,
        )
        raise failure  # type: ignore[misc]

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()
