"""
Async HTTP transport shared by every upstream client.

Handles deadline-bounded requests, retries on transient upstream failures,
rate-limit header inspection, and translation of error responses into typed
exceptions.
"""

import asyncio
import math
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx

from vanity_mirror.exceptions import (
    AuthError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    UpstreamError,
    VanityMirrorError,
)
from vanity_mirror.logging import get_logger, mask_sensitive_data
from vanity_mirror.timeout import DEFAULT_TIMEOUT_MS, fetch_with_timeout

logger = get_logger("http")

USER_AGENT = "vanity-mirror (+https://github.com/johnlarkin1/vanity-mirror)"
DEFAULT_RETRY_AFTER = 60


@dataclass
class RetryConfig:
    """Configuration for automatic retry behavior."""

    max_retries: int = 2
    backoff_factor: float = 2.0
    retry_on: list[int] = field(default_factory=lambda: [500, 502, 503, 504])
    max_backoff: float = 10.0  # Maximum backoff time in seconds
    jitter: float = 0.1  # Jitter factor (0.1 = ±10%)


@dataclass
class ErrorMessages:
    """Per-source wording for classified upstream failures."""

    unauthorized: str = "Authentication failed"
    forbidden: str = "Access denied"
    not_found: str = "Resource not found"
    rate_limited: str = "Rate limit exceeded"
    server_error: str = "Upstream API error"


class AsyncHTTPTransport:
    """
    Async transport for one upstream.

    Handles:
    - A hard per-call deadline (see ``timeout.fetch_with_timeout``)
    - Exponential backoff with jitter for 5xx and connection errors
    - Remaining-quota / reset headers, surfaced as RateLimitError
    - Error response parsing into typed exceptions

    4xx responses are never retried: bad credentials and exhausted quotas
    must surface immediately.
    """

    def __init__(
        self,
        source: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        retry_config: RetryConfig | None = None,
        headers: dict[str, str] | None = None,
        messages: ErrorMessages | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the transport.

        Args:
            source: Short source name used in errors and logs (e.g. "github")
            timeout_ms: Default per-call deadline in milliseconds
            retry_config: Configuration for retry behavior
            headers: Headers sent with every request
            messages: Error wording for this upstream
            http_client: Pre-built httpx client (tests inject a MockTransport)
            sleep: Awaitable sleep used for backoff, injectable for tests
        """
        self.source = source
        self.timeout_ms = timeout_ms
        self.retry_config = retry_config or RetryConfig()
        self.messages = messages or ErrorMessages()
        self._sleep = sleep
        self._owns_client = http_client is None

        self.headers = {"User-Agent": USER_AGENT, **(headers or {})}
        if http_client is None:
            # Deadlines are enforced per call by fetch_with_timeout
            http_client = httpx.AsyncClient(timeout=None)
        self._client = http_client

    async def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "AsyncHTTPTransport":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: Any = None,
        headers: dict[str, str] | None = None,
        timeout_ms: int | None = None,
    ) -> httpx.Response:
        """
        Make a request with automatic retry and return the 2xx/3xx response.

        Raises:
            RateLimitError: Upstream reports its quota exhausted
            AuthError / PermissionDeniedError / NotFoundError: 401 / 403 / 404
            UpstreamError: Any other failure status
            FetchTimeoutError: Deadline exceeded
        """
        async def make_request() -> httpx.Response:
            return await fetch_with_timeout(
                self._client,
                method,
                url,
                timeout_ms=timeout_ms or self.timeout_ms,
                params=params,
                json=json,
                data=data,
                headers={**self.headers, **(headers or {})},
            )

        return await self._execute_with_retry(make_request)

    async def request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        """Make a request and decode the JSON body."""
        response = await self.request(method, url, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                "INVALID_RESPONSE",
                f"{self.source} returned a non-JSON response",
                response.status_code,
                self.source,
            ) from e

    async def _execute_with_retry(
        self, request_fn: Callable[[], Awaitable[httpx.Response]]
    ) -> httpx.Response:
        """
        Execute a request with automatic retry on retryable errors.

        Args:
            request_fn: Async function that makes the HTTP request

        Returns:
            The successful response

        Raises:
            VanityMirrorError: On non-retryable errors or after max retries
        """
        for attempt in range(self.retry_config.max_retries + 1):
            try:
                response = await request_fn()
            except httpx.RequestError as e:
                # Connection-level failures are retryable
                if attempt >= self.retry_config.max_retries:
                    raise UpstreamError(
                        "CONNECTION_ERROR",
                        f"Could not reach {self.source}: {type(e).__name__}",
                        source=self.source,
                    ) from e
                await self._sleep(self._get_backoff_time(attempt))
                continue

            if response.status_code < 400 and not self._quota_exhausted(response):
                return response

            error = self._parse_error_response(response)

            if not self._should_retry(response.status_code, attempt):
                raise error

            logger.warning(
                "%s returned %s, retrying (attempt %d of %d)",
                self.source,
                response.status_code,
                attempt + 1,
                self.retry_config.max_retries,
            )
            await self._sleep(self._get_backoff_time(attempt))

        raise UpstreamError("UNKNOWN_ERROR", "Request failed with no error details", source=self.source)

    def _should_retry(self, status_code: int, attempt: int) -> bool:
        if attempt >= self.retry_config.max_retries:
            return False

        return status_code in self.retry_config.retry_on

    def _get_backoff_time(self, attempt: int) -> float:
        """
        Calculate backoff time for retry.

        Uses exponential backoff with jitter, capped at ``max_backoff``.
        """
        base_wait = self.retry_config.backoff_factor ** attempt

        jitter_range = base_wait * self.retry_config.jitter
        jitter = random.uniform(-jitter_range, jitter_range)

        return min(base_wait + jitter, self.retry_config.max_backoff)

    @staticmethod
    def _quota_exhausted(response: httpx.Response) -> bool:
        return response.status_code in (403, 429) and response.headers.get(
            "X-RateLimit-Remaining"
        ) == "0"

    def _rate_limit_error(self, response: httpx.Response) -> RateLimitError:
        """Build a RateLimitError from X-RateLimit-Reset or Retry-After."""
        now = time.time()
        reset_header = response.headers.get("X-RateLimit-Reset")
        retry_header = response.headers.get("Retry-After")

        reset_at: datetime | None = None
        retry_after = DEFAULT_RETRY_AFTER

        if reset_header:
            try:
                reset_epoch = int(reset_header)
                reset_at = datetime.fromtimestamp(reset_epoch, tz=timezone.utc)
                retry_after = max(1, math.ceil(reset_epoch - now))
            except ValueError:
                pass
        elif retry_header:
            try:
                retry_after = max(1, int(retry_header))
                reset_at = datetime.fromtimestamp(now + retry_after, tz=timezone.utc)
            except ValueError:
                pass

        resets = reset_at.isoformat() if reset_at else "unknown"
        return RateLimitError(
            "RATE_LIMITED",
            f"{self.messages.rate_limited}. Resets at {resets}",
            retry_after=retry_after,
            reset_at=reset_at,
            source=self.source,
        )

    def _parse_error_response(self, response: httpx.Response) -> VanityMirrorError:
        """
        Parse an error response into a typed exception.

        The upstream body is logged (masked) for diagnosis but never copied
        into the exception message.
        """
        status_code = response.status_code
        logger.debug(
            "%s error %s: %s",
            self.source,
            status_code,
            mask_sensitive_data(response.text[:500]),
        )

        if self._quota_exhausted(response) or status_code == 429:
            return self._rate_limit_error(response)
        if status_code == 401:
            return AuthError("UNAUTHENTICATED", self.messages.unauthorized, self.source)
        if status_code == 403:
            return PermissionDeniedError("PERMISSION_DENIED", self.messages.forbidden, self.source)
        if status_code == 404:
            return NotFoundError("NOT_FOUND", self.messages.not_found, self.source)
        return UpstreamError(
            "UPSTREAM_ERROR",
            f"{self.messages.server_error}: {status_code}",
            status_code,
            self.source,
        )
