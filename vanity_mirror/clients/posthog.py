"""PostHog product analytics client."""

import asyncio
from collections.abc import Callable
from datetime import date, timedelta
from typing import Any

import httpx

from vanity_mirror.cache import TTLCache
from vanity_mirror.config import PostHogConfig
from vanity_mirror.logging import get_logger
from vanity_mirror.metrics import (
    DateWindow,
    format_month_day,
    metric_with_trend,
    previous_period,
    round_half_up,
)
from vanity_mirror.transport import AsyncHTTPTransport, ErrorMessages
from vanity_mirror.types.common import TimeSeriesPoint
from vanity_mirror.types.product import ActiveUsers, ProductAnalytics, ProductMetrics, TopEvent

logger = get_logger("clients.posthog")

POSTHOG_MESSAGES = ErrorMessages(
    unauthorized="PostHog authentication failed. Check your POSTHOG_API_KEY.",
    forbidden="PostHog denied access to the project",
    not_found="PostHog project not found. Check your POSTHOG_PROJECT_ID.",
    rate_limited="PostHog API rate limit exceeded",
    server_error="PostHog API error",
)

PAGEVIEW = "$pageview"
TOP_EVENTS_LIMIT = 10


def _trend_results(response: dict[str, Any]) -> list[dict[str, Any]]:
    # Older PostHog deployments answer with "result" instead of "results"
    return response.get("results") or response.get("result") or []


def aggregate_value(response: dict[str, Any]) -> int:
    """Read a BoldNumber result, falling back to summing the daily series."""
    results = _trend_results(response)
    if not results:
        return 0
    first = results[0]
    if first.get("aggregated_value") is not None:
        return round_half_up(first["aggregated_value"])
    return sum(first.get("data") or [])


def _window_clause(window: DateWindow) -> str:
    # Dates come from DateWindow, so they are always YYYY-MM-DD
    return (
        f"timestamp >= toDateTime('{window.start_iso} 00:00:00') "
        f"AND timestamp <= toDateTime('{window.end_iso} 23:59:59')"
    )


class PostHogClient:
    """Async client for the PostHog query API."""

    def __init__(
        self,
        config: PostHogConfig,
        cache: TTLCache | None = None,
        transport: AsyncHTTPTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        """
        Initialize the PostHog client.

        Args:
            config: API key, project and host
            cache: Cache for assembled analytics
            transport: Async HTTP transport for making requests
            http_client: Shared httpx client for the default transport
            today: Date source for the rolling active-user windows
        """
        self.config = config
        self.cache = cache if cache is not None else TTLCache(namespace="posthog")
        self.transport = transport or AsyncHTTPTransport(
            "posthog", messages=POSTHOG_MESSAGES, http_client=http_client
        )
        self._today = today
        self._headers = {"Authorization": f"Bearer {config.api_key}"}

    @property
    def query_url(self) -> str:
        return f"{self.config.host}/api/projects/{self.config.project_id}/query/"

    async def query(self, query: dict[str, Any]) -> dict[str, Any]:
        """POST one query document and return the decoded response."""
        return await self.transport.request_json(
            "POST", self.query_url, json={"query": query}, headers=self._headers
        )

    def _trends_query(
        self,
        window: DateWindow,
        event: str | None,
        math: str,
        bold_number: bool,
    ) -> dict[str, Any]:
        query: dict[str, Any] = {
            "kind": "TrendsQuery",
            "dateRange": {"date_from": window.start_iso, "date_to": window.end_iso},
            "series": [{"kind": "EventsNode", "event": event, "math": math}],
        }
        if bold_number:
            query["trendsFilter"] = {"display": "BoldNumber"}
        else:
            query["interval"] = "day"
        return query

    async def fetch_aggregate(
        self, window: DateWindow, event: str | None = PAGEVIEW, math: str = "total"
    ) -> int:
        """
        Total (or distinct-user) count of ``event`` over the window.

        ``event=None`` counts every event.
        """
        response = await self.query(self._trends_query(window, event, math, bold_number=True))
        return aggregate_value(response)

    async def fetch_session_duration(self, window: DateWindow) -> int:
        """Average session duration in seconds, or 0 when the query fails."""
        query = {
            "kind": "HogQLQuery",
            "query": (
                "SELECT avg(session.$session_duration) AS avg_duration "
                f"FROM events WHERE event = '{PAGEVIEW}' AND {_window_clause(window)}"
            ),
        }
        try:
            response = await self.query(query)
        except Exception as e:
            logger.warning("Failed to fetch session duration from PostHog: %s", e)
            return 0

        rows = response.get("results") or []
        if rows and isinstance(rows[0][0], (int, float)):
            return round_half_up(rows[0][0])
        return 0

    async def fetch_active_users(self) -> ActiveUsers:
        """Distinct pageview users over the last 1, 7 and 30 days."""
        today = self._today()
        dau, wau, mau = await asyncio.gather(
            *(
                self.fetch_aggregate(DateWindow(today - timedelta(days=days), today), math="dau")
                for days in (1, 7, 30)
            )
        )
        return ActiveUsers(dau=dau, wau=wau, mau=mau)

    async def fetch_time_series(self, window: DateWindow) -> list[TimeSeriesPoint]:
        """Daily pageviews and distinct users, one point per upstream day."""
        totals, uniques = await asyncio.gather(
            self.query(self._trends_query(window, PAGEVIEW, "total", bold_number=False)),
            self.query(self._trends_query(window, PAGEVIEW, "dau", bold_number=False)),
        )

        total_results = _trend_results(totals)
        if not total_results:
            return []

        total_data = total_results[0].get("data") or []
        days = total_results[0].get("days") or total_results[0].get("labels") or []
        unique_results = _trend_results(uniques)
        unique_data = (unique_results[0].get("data") or []) if unique_results else []

        return [
            TimeSeriesPoint(
                date=format_month_day(day),
                visitors=total_data[i] if i < len(total_data) else 0,
                unique_visitors=unique_data[i] if i < len(unique_data) else 0,
            )
            for i, day in enumerate(days)
        ]

    async def fetch_top_events(
        self, window: DateWindow, limit: int = TOP_EVENTS_LIMIT
    ) -> list[TopEvent]:
        """
        Most frequent custom events.

        PostHog's own ``$`` events are filtered out here; twice the limit is
        requested so enough custom events survive the filter.
        """
        query = {
            "kind": "HogQLQuery",
            "query": (
                "SELECT event, count() AS count, count(DISTINCT person_id) AS unique_users "
                f"FROM events WHERE {_window_clause(window)} "
                f"GROUP BY event ORDER BY count DESC LIMIT {limit * 2}"
            ),
        }
        try:
            response = await self.query(query)
        except Exception as e:
            logger.warning("Failed to fetch top events from PostHog: %s", e)
            return []

        events = [
            TopEvent(event_name=str(row[0]), count=int(row[1]), unique_users=int(row[2]))
            for row in response.get("results") or []
            if not str(row[0]).startswith("$")
        ]
        return events[:limit]

    async def fetch_analytics(self, window: DateWindow) -> ProductAnalytics:
        """
        Get product analytics for the window with trends against the
        previous window of equal length.
        """
        cache_key = f"analytics:{window.cache_key()}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        previous = previous_period(window)

        (
            visitors,
            prev_visitors,
            unique_visitors,
            prev_unique_visitors,
            events,
            prev_events,
            session,
            prev_session,
            active_users,
            time_series,
            top_events,
        ) = await asyncio.gather(
            self.fetch_aggregate(window),
            self.fetch_aggregate(previous),
            self.fetch_aggregate(window, math="dau"),
            self.fetch_aggregate(previous, math="dau"),
            self.fetch_aggregate(window, event=None),
            self.fetch_aggregate(previous, event=None),
            self.fetch_session_duration(window),
            self.fetch_session_duration(previous),
            self.fetch_active_users(),
            self.fetch_time_series(window),
            self.fetch_top_events(window),
        )

        analytics = ProductAnalytics(
            metrics=ProductMetrics(
                visitors=metric_with_trend(visitors, prev_visitors),
                unique_visitors=metric_with_trend(unique_visitors, prev_unique_visitors),
                total_events=metric_with_trend(events, prev_events),
                avg_session_duration=metric_with_trend(session, prev_session),
            ),
            active_users=active_users,
            time_series=time_series,
            top_events=top_events,
        )

        self.cache.set(cache_key, analytics)
        return analytics
