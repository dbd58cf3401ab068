"""
Google Analytics 4 Data API client.

Authenticates as a service account: an RS256-signed assertion is exchanged at
the account's token URI for a one-hour access token, which is cached until
shortly before expiry and shared by every property this client queries.
"""

import asyncio
import time
from collections.abc import Callable
from typing import Any

import httpx

from vanity_mirror.cache import TTLCache
from vanity_mirror.config import ServiceAccountCredentials
from vanity_mirror.exceptions import (
    AuthError,
    ConfigError,
    PermissionDeniedError,
    TokenExchangeError,
    UpstreamError,
)
from vanity_mirror.logging import get_logger
from vanity_mirror.metrics import (
    DateWindow,
    calculate_trend,
    format_month_day,
    metric_with_trend,
    previous_period,
    round_half_up,
    round_to,
)
from vanity_mirror.signing import CachedToken, TokenCache, encode_jwt
from vanity_mirror.transport import AsyncHTTPTransport, ErrorMessages
from vanity_mirror.types.common import MetricWithTrend, TimeSeriesPoint
from vanity_mirror.types.web import TopPage, WebAnalytics, WebMetrics

logger = get_logger("clients.google_analytics")

DATA_API = "https://analyticsdata.googleapis.com/v1beta"
ANALYTICS_SCOPE = "https://www.googleapis.com/auth/analytics.readonly"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME = 3600
TOP_PAGES_LIMIT = 10

GA_MESSAGES = ErrorMessages(
    unauthorized="Google Analytics rejected the service account credentials",
    forbidden="Service account has no access to the Google Analytics property",
    not_found="Google Analytics property not found",
    rate_limited="Google Analytics quota exceeded",
    server_error="Google Analytics API error",
)


def _metric(row: dict[str, Any] | None, index: int) -> float:
    if not row:
        return 0.0
    values = row.get("metricValues") or []
    if index >= len(values):
        return 0.0
    return float(values[index].get("value") or 0)


def _dimension(row: dict[str, Any], index: int, default: str = "") -> str:
    values = row.get("dimensionValues") or []
    if index >= len(values):
        return default
    return values[index].get("value") or default


def to_top_page(row: dict[str, Any]) -> TopPage:
    """Normalize one top-pages row; bounce rate becomes a 0-100 percentage."""
    unique_visitors = int(_metric(row, 1))
    engagement = _metric(row, 2)
    return TopPage(
        page_path=_dimension(row, 0),
        page_title=_dimension(row, 1, "(not set)"),
        pageviews=int(_metric(row, 0)),
        unique_visitors=unique_visitors,
        avg_time_on_page=round_half_up(engagement / unique_visitors) if unique_visitors else 0,
        bounce_rate=round_to(_metric(row, 3) * 100, 1),
    )


class GoogleAnalyticsClient:
    """Async client for GA4 ``runReport`` queries."""

    def __init__(
        self,
        credentials: ServiceAccountCredentials,
        property_id: str | None = None,
        cache: TTLCache | None = None,
        transport: AsyncHTTPTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the Google Analytics client.

        Args:
            credentials: Service account used for every property
            property_id: Default (blog) property for ``fetch_analytics``
            cache: Cache for assembled analytics
            transport: Async HTTP transport for making requests
            http_client: Shared httpx client for the default transport
            clock: Wall clock for JWT ``iat``/``exp`` claims
        """
        self.credentials = credentials
        self.property_id = property_id
        self.cache = cache if cache is not None else TTLCache(namespace="google-analytics")
        self.transport = transport or AsyncHTTPTransport(
            "google-analytics", messages=GA_MESSAGES, http_client=http_client
        )
        self._clock = clock
        self.tokens = TokenCache(credentials.client_email, clock=clock)

    def build_assertion(self) -> str:
        """Sign the service-account assertion presented at the token URI."""
        issued_at = int(self._clock())
        claims = {
            "iss": self.credentials.client_email,
            "scope": ANALYTICS_SCOPE,
            "aud": self.credentials.token_uri,
            "iat": issued_at,
            "exp": issued_at + ASSERTION_LIFETIME,
        }
        headers = {"kid": self.credentials.private_key_id} if self.credentials.private_key_id else None
        return encode_jwt(claims, self.credentials.signer, headers)

    async def _exchange_token(self) -> CachedToken:
        try:
            data = await self.transport.request_json(
                "POST",
                self.credentials.token_uri,
                data={"grant_type": JWT_BEARER_GRANT, "assertion": self.build_assertion()},
            )
        except (AuthError, PermissionDeniedError) as e:
            raise TokenExchangeError(
                "TOKEN_EXCHANGE_FAILED", "Google rejected the service account assertion", e.source
            ) from e
        except UpstreamError as e:
            if e.status == 400:
                # invalid_grant: revoked key, disabled account or clock skew
                raise TokenExchangeError(
                    "TOKEN_EXCHANGE_FAILED", "Google rejected the service account assertion", e.source
                ) from e
            raise

        if not data.get("access_token"):
            raise TokenExchangeError(
                "TOKEN_EXCHANGE_FAILED", "Token response had no access_token", "google-analytics"
            )

        expires_in = int(data.get("expires_in") or ASSERTION_LIFETIME)
        return CachedToken(token=data["access_token"], expires_at=int(self._clock()) + expires_in)

    async def access_token(self) -> str:
        return await self.tokens.get(self._exchange_token)

    async def run_report(self, property_id: str, request: dict[str, Any]) -> list[dict[str, Any]]:
        """Run one report and return its rows (an empty list when there are none)."""
        token = await self.access_token()
        data = await self.transport.request_json(
            "POST",
            f"{DATA_API}/properties/{property_id}:runReport",
            json=request,
            headers={"Authorization": f"Bearer {token}"},
        )
        return data.get("rows") or []

    async def _totals(self, property_id: str, window: DateWindow) -> dict[str, Any] | None:
        rows = await self.run_report(
            property_id,
            {
                "dateRanges": [{"startDate": window.start_iso, "endDate": window.end_iso}],
                "metrics": [
                    {"name": "sessions"},
                    {"name": "totalUsers"},
                    {"name": "averageSessionDuration"},
                ],
            },
        )
        return rows[0] if rows else None

    async def fetch_time_series(
        self, property_id: str, window: DateWindow
    ) -> list[TimeSeriesPoint]:
        rows = await self.run_report(
            property_id,
            {
                "dateRanges": [{"startDate": window.start_iso, "endDate": window.end_iso}],
                "dimensions": [{"name": "date"}],
                "metrics": [{"name": "sessions"}, {"name": "totalUsers"}],
                "orderBys": [{"dimension": {"dimensionName": "date"}}],
            },
        )
        return [
            TimeSeriesPoint(
                date=format_month_day(_dimension(row, 0)),
                visitors=int(_metric(row, 0)),
                unique_visitors=int(_metric(row, 1)),
            )
            for row in rows
        ]

    async def fetch_top_pages(
        self, property_id: str, window: DateWindow, limit: int = TOP_PAGES_LIMIT
    ) -> list[TopPage]:
        rows = await self.run_report(
            property_id,
            {
                "dateRanges": [{"startDate": window.start_iso, "endDate": window.end_iso}],
                "dimensions": [{"name": "pagePath"}, {"name": "pageTitle"}],
                "metrics": [
                    {"name": "screenPageViews"},
                    {"name": "totalUsers"},
                    {"name": "userEngagementDuration"},
                    {"name": "bounceRate"},
                ],
                "orderBys": [{"metric": {"metricName": "screenPageViews"}, "desc": True}],
                "limit": limit,
            },
        )
        return [to_top_page(row) for row in rows]

    async def fetch_analytics_for_property(
        self, property_id: str, window: DateWindow
    ) -> WebAnalytics:
        """
        Get web analytics for any property the service account can read.

        Totals for the window and the previous window of equal length, the
        daily series and the top pages are requested concurrently.
        """
        cache_key = f"{property_id}:{window.cache_key()}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        current, previous, time_series, top_pages = await asyncio.gather(
            self._totals(property_id, window),
            self._totals(property_id, previous_period(window)),
            self.fetch_time_series(property_id, window),
            self.fetch_top_pages(property_id, window),
        )

        users = _metric(current, 1)
        prev_users = _metric(previous, 1)
        duration = _metric(current, 2)
        prev_duration = _metric(previous, 2)
        days = window.days

        analytics = WebAnalytics(
            metrics=WebMetrics(
                visitors=metric_with_trend(int(_metric(current, 0)), int(_metric(previous, 0))),
                unique_visitors=metric_with_trend(int(users), int(prev_users)),
                avg_session_duration=MetricWithTrend(
                    value=round_half_up(duration),
                    previous_value=round_half_up(prev_duration),
                    trend=calculate_trend(duration, prev_duration),
                ),
                avg_users_per_day=metric_with_trend(
                    round_half_up(users / days), round_half_up(prev_users / days)
                ),
            ),
            time_series=time_series,
            top_pages=top_pages,
        )

        self.cache.set(cache_key, analytics)
        return analytics

    async def fetch_analytics(self, window: DateWindow) -> WebAnalytics:
        """Get web analytics for the configured default property."""
        if not self.property_id:
            raise ConfigError("Missing BLOG_GA_PROPERTY_ID environment variable", "google-analytics")
        return await self.fetch_analytics_for_property(self.property_id, window)
