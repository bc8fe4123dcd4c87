"""Base HTTP client with circuit breaker and retry logic.

This module provides:
- CircuitState enum for circuit breaker states
- CircuitBreaker dataclass for tracking consecutive failures
- BaseAPIClient class that the token list and JSON-RPC clients build on
"""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

import httpx
import structlog

from tokenwatch.core.exceptions import CircuitBreakerOpenError, ExternalServiceError

log = structlog.get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation, requests allowed
    OPEN = "open"  # Circuit tripped, requests blocked
    HALF_OPEN = "half_open"  # Testing if service recovered


@dataclass
class CircuitBreaker:
    """Circuit breaker for a single upstream service.

    Opens after ``failure_threshold`` consecutive failures. Once
    ``cooldown_seconds`` have passed, one test request is let through
    (half-open); its outcome closes or reopens the circuit.

    Attributes:
        failure_threshold: Consecutive failures before opening.
        cooldown_seconds: Seconds to wait before the half-open test.
        failure_count: Current consecutive failure count.
        last_failure_time: Timestamp of most recent failure.
        state: Current circuit state.
    """

    failure_threshold: int = 5
    cooldown_seconds: int = 30
    failure_count: int = field(default=0, init=False)
    last_failure_time: datetime | None = field(default=None, init=False)
    state: CircuitState = field(default=CircuitState.CLOSED, init=False)

    def record_success(self) -> None:
        """Reset the failure count and close the circuit."""
        self.failure_count = 0
        self.state = CircuitState.CLOSED

    def record_failure(self) -> None:
        """Count a failure; open the circuit at the threshold.

        In HALF_OPEN state a single failure reopens the circuit.
        """
        self.failure_count += 1
        self.last_failure_time = datetime.now(UTC)

        if self.state == CircuitState.HALF_OPEN:
            self.state = CircuitState.OPEN
            log.warning("circuit_breaker_reopened", failure_count=self.failure_count)
        elif self.failure_count >= self.failure_threshold:
            self.state = CircuitState.OPEN
            log.warning(
                "circuit_breaker_opened",
                failure_count=self.failure_count,
                threshold=self.failure_threshold,
            )

    def can_execute(self) -> bool:
        """Check whether a request may be sent now.

        State transitions:
            - CLOSED: always allowed
            - OPEN: blocked until cooldown elapsed, then HALF_OPEN
            - HALF_OPEN: allowed (test request)
        """
        if self.state == CircuitState.CLOSED:
            return True

        if self.state == CircuitState.OPEN:
            if self.last_failure_time is None:
                return False

            elapsed = datetime.now(UTC) - self.last_failure_time
            if elapsed > timedelta(seconds=self.cooldown_seconds):
                self.state = CircuitState.HALF_OPEN
                log.info("circuit_breaker_half_open", cooldown_elapsed=elapsed.total_seconds())
                return True
            return False

        return True

    def raise_if_open(self) -> None:
        """Raise if the circuit is open and the cooldown has not elapsed.

        Raises:
            CircuitBreakerOpenError: If requests are currently blocked.
        """
        if not self.can_execute():
            raise CircuitBreakerOpenError(
                f"Circuit breaker is open. Next retry in "
                f"{self._time_until_half_open():.1f} seconds."
            )

    def _time_until_half_open(self) -> float:
        """Seconds until an open circuit allows a test request (0 if ready)."""
        if self.last_failure_time is None:
            return 0.0

        elapsed = datetime.now(UTC) - self.last_failure_time
        return max(0.0, self.cooldown_seconds - elapsed.total_seconds())


class BaseAPIClient:
    """HTTP client with retry and circuit breaker support.

    - Lazy httpx.AsyncClient creation (on first request)
    - Retries 429/5xx and connection errors with exponential backoff
    - Fails fast on other 4xx responses
    - Circuit breaker shared by every request of the instance

    Attributes:
        service_name: Name used in logs and ExternalServiceError.
        base_url: Base URL for all requests.
        timeout: Request timeout in seconds.
        headers: Default headers for all requests.

    Example:
        client = BaseAPIClient(base_url="https://api.example.com")
        try:
            response = await client.get("/endpoint")
        finally:
            await client.close()
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        circuit_breaker_threshold: int = 5,
        circuit_breaker_cooldown: int = 30,
        service_name: str | None = None,
        max_backoff_seconds: float = 4.0,
    ) -> None:
        """Initialize the client; the httpx client itself is created lazily.

        Args:
            base_url: Base URL for all requests.
            timeout: Request timeout in seconds.
            headers: Default headers for all requests.
            circuit_breaker_threshold: Consecutive failures before the circuit opens.
            circuit_breaker_cooldown: Seconds an open circuit waits before half-open.
            service_name: Name reported in logs and errors (defaults to base_url).
            max_backoff_seconds: Upper bound of the delay between retries.
        """
        self.base_url = base_url
        self.timeout = timeout
        self.headers = headers or {}
        self.service_name = service_name or base_url
        self.max_backoff_seconds = max_backoff_seconds
        self._client: httpx.AsyncClient | None = None
        self._circuit_breaker = CircuitBreaker(
            failure_threshold=circuit_breaker_threshold,
            cooldown_seconds=circuit_breaker_cooldown,
        )

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        """Breaker shared by every request of this client."""
        return self._circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        """Return the httpx client, creating it on first use.

        Returns:
            The client bound to base_url, timeout and headers.
        """
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.headers,
            )
            log.debug("httpx_client_created", service=self.service_name)
        return self._client

    async def close(self) -> None:
        """Close the httpx client and release resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            log.debug("httpx_client_closed", service=self.service_name)

    async def _request(
        self,
        method: str,
        path: str,
        max_retries: int = 3,
        **kwargs: Any,
    ) -> httpx.Response:
        """Make an HTTP request with retry and circuit breaker.

        Args:
            method: HTTP method.
            path: Path relative to base_url.
            max_retries: Attempts before giving up on 429, 5xx or connection errors.
            **kwargs: Passed through to httpx.AsyncClient.request.

        Returns:
            The successful response.

        Raises:
            CircuitBreakerOpenError: If the circuit breaker is open.
            ExternalServiceError: On a non-retryable status or once retries
                are exhausted.
        """
        self._circuit_breaker.raise_if_open()

        client = await self._get_client()
        last_error: Exception | None = None

        for attempt in range(max_retries):
            try:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
                self._circuit_breaker.record_success()
                return response

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code

                # 4xx errors (except 429) - no retry, fail immediately
                if 400 <= status_code < 500 and status_code != 429:
                    log.warning(
                        "request_client_error",
                        service=self.service_name,
                        method=method,
                        path=path,
                        status_code=status_code,
                    )
                    raise ExternalServiceError(
                        service=self.service_name,
                        message=str(e),
                        status_code=status_code,
                    ) from e

                self._circuit_breaker.record_failure()
                last_error = e
                log.warning(
                    "request_server_error",
                    service=self.service_name,
                    method=method,
                    path=path,
                    status_code=status_code,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                )

            except httpx.RequestError as e:
                self._circuit_breaker.record_failure()
                last_error = e
                log.warning(
                    "request_connection_error",
                    service=self.service_name,
                    method=method,
                    path=path,
                    error=str(e),
                    attempt=attempt + 1,
                    max_retries=max_retries,
                )

            if attempt < max_retries - 1:
                await asyncio.sleep(min(2**attempt, self.max_backoff_seconds))

        log.error(
            "request_max_retries_exceeded",
            service=self.service_name,
            method=method,
            path=path,
            max_retries=max_retries,
        )
        raise ExternalServiceError(
            service=self.service_name,
            message=f"Max retries ({max_retries}) exceeded: {last_error}",
        )

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        """Send a GET request.

        Args:
            path: Path relative to base_url.
            **kwargs: Query params, headers and other httpx options.

        Returns:
            The successful response.
        """
        return await self._request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        """Send a POST request.

        Args:
            path: Path relative to base_url.
            **kwargs: JSON body, headers and other httpx options.

        Returns:
            The successful response.
        """
        return await self._request("POST", path, **kwargs)
