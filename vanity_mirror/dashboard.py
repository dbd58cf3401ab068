"""
Composition root and combined aggregators.

The Dashboard owns the shared httpx client, every per-source cache and the
request rate limiter, and wires them into the upstream clients. Sources whose
environment is incomplete are recorded rather than failing startup: asking
for them later raises the original ConfigError.
"""

import asyncio
import os
from collections.abc import Awaitable
from typing import Any

import httpx

from vanity_mirror.cache import SHORT_TTL, TTLCache
from vanity_mirror.clients.app_store import AppStoreClient
from vanity_mirror.clients.crates import CratesClient
from vanity_mirror.clients.github import GitHubClient
from vanity_mirror.clients.google_analytics import GoogleAnalyticsClient
from vanity_mirror.clients.npm import NpmClient
from vanity_mirror.clients.packages import PackagesClient
from vanity_mirror.clients.posthog import PostHogClient
from vanity_mirror.clients.pypi import PyPIClient
from vanity_mirror.clients.youtube import YouTubeClient
from vanity_mirror.config import (
    AppStoreConnectConfig,
    GitHubConfig,
    PackagesConfig,
    PostHogConfig,
    ServiceAccountCredentials,
    YouTubeConfig,
)
from vanity_mirror.exceptions import ConfigError, NotConfiguredError
from vanity_mirror.logging import get_logger
from vanity_mirror.metrics import DateWindow, round_to
from vanity_mirror.ratelimit import RateLimiter
from vanity_mirror.types.common import MetricWithTrend
from vanity_mirror.types.dashboard import (
    HeadlineMetric,
    OverviewAnalytics,
    OverviewMetrics,
    SourceInfo,
    SourceStatus,
    WalkInTheParquetAnalytics,
)

logger = get_logger("dashboard")


def weighted_trend(metrics: list[MetricWithTrend | None]) -> float:
    """
    Combine several trends, each weighted by its share of the summed value.

    Missing metrics are ignored; the result has one decimal.
    """
    present = [metric for metric in metrics if metric is not None]
    total = sum(metric.value for metric in present)
    if total == 0:
        return 0
    return round_to(sum(metric.trend * metric.value / total for metric in present), 1)


def _status(outcome: Any) -> SourceStatus:
    if isinstance(outcome, ConfigError):
        return "not-configured"
    if isinstance(outcome, BaseException):
        return "error"
    return "connected"


class Dashboard:
    """Holds every upstream client and answers the dashboard's pages."""

    def __init__(
        self,
        *,
        github: GitHubClient | None = None,
        packages: PackagesClient | None = None,
        posthog: PostHogClient | None = None,
        google_analytics: GoogleAnalyticsClient | None = None,
        app_store: AppStoreClient | None = None,
        youtube: YouTubeClient | None = None,
        vanity_mirror_property_id: str | None = None,
        walk_in_the_parquet_property_id: str | None = None,
        rate_limiter: RateLimiter | None = None,
        http_client: httpx.AsyncClient | None = None,
        config_errors: dict[str, ConfigError] | None = None,
    ) -> None:
        """
        Initialize the dashboard.

        Args:
            github / packages / posthog / google_analytics / app_store / youtube:
                Upstream clients; a missing client is reported through
                ``config_errors`` or as not configured
            vanity_mirror_property_id: GA4 property of the dashboard itself
            walk_in_the_parquet_property_id: GA4 property of the documentation site
            rate_limiter: Limiter applied to every route
            http_client: Shared httpx client, closed by ``close()``
            config_errors: Why a source could not be built, keyed by source name
        """
        self.github = github
        self.packages = packages
        self.posthog = posthog
        self.google_analytics = google_analytics
        self.app_store = app_store
        self.youtube = youtube
        self.vanity_mirror_property_id = vanity_mirror_property_id
        self.walk_in_the_parquet_property_id = walk_in_the_parquet_property_id
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self.http_client = http_client
        self.config_errors = config_errors or {}

    @classmethod
    def from_env(cls, http_client: httpx.AsyncClient | None = None) -> "Dashboard":
        """
        Build every client whose environment is complete.

        Caches use the 5 minute default, except PostHog which refreshes every
        minute.
        """
        http_client = http_client or httpx.AsyncClient(timeout=None)
        errors: dict[str, ConfigError] = {}

        def build(source: str, factory: Any) -> Any:
            try:
                return factory()
            except ConfigError as e:
                errors[source] = e
                logger.info("%s is not configured: %s", source, e.message)
                return None

        github = build(
            "github",
            lambda: GitHubClient(
                GitHubConfig.from_env(),
                cache=TTLCache(namespace="github"),
                http_client=http_client,
            ),
        )
        posthog = build(
            "posthog",
            lambda: PostHogClient(
                PostHogConfig.from_env(),
                cache=TTLCache(ttl=SHORT_TTL, namespace="posthog"),
                http_client=http_client,
            ),
        )
        google_analytics = build(
            "google-analytics",
            lambda: GoogleAnalyticsClient(
                ServiceAccountCredentials.from_env(),
                property_id=os.environ.get("BLOG_GA_PROPERTY_ID") or None,
                cache=TTLCache(namespace="google-analytics"),
                http_client=http_client,
            ),
        )
        youtube = build(
            "youtube",
            lambda: YouTubeClient(
                YouTubeConfig.from_env(),
                cache=TTLCache(namespace="youtube"),
                http_client=http_client,
            ),
        )

        app_store = None
        if AppStoreConnectConfig.is_configured():
            app_store = build(
                "app-store",
                lambda: AppStoreClient(
                    AppStoreConnectConfig.from_env(),
                    cache=TTLCache(namespace="app-store"),
                    http_client=http_client,
                ),
            )

        packages = PackagesClient(
            PackagesConfig.from_env(),
            npm=NpmClient(cache=TTLCache(namespace="npm"), http_client=http_client),
            pypi=PyPIClient(cache=TTLCache(namespace="pypi"), http_client=http_client),
            crates=CratesClient(cache=TTLCache(namespace="crates"), http_client=http_client),
            cache=TTLCache(namespace="packages"),
        )

        return cls(
            github=github,
            packages=packages,
            posthog=posthog,
            google_analytics=google_analytics,
            app_store=app_store,
            youtube=youtube,
            vanity_mirror_property_id=os.environ.get("VANITY_MIRROR_GA_PROPERTY_ID") or None,
            walk_in_the_parquet_property_id=(
                os.environ.get("WALK_IN_THE_PARQUET_GA_PROPERTY_ID") or None
            ),
            http_client=http_client,
            config_errors=errors,
        )

    async def close(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()

    def _require(self, source: str, client: Any) -> Any:
        if client is not None:
            return client
        if source in self.config_errors:
            raise self.config_errors[source]
        raise NotConfiguredError(f"{source} is not configured", source)

    async def fetch_blog(self, window: DateWindow):
        client = self._require("google-analytics", self.google_analytics)
        return await client.fetch_analytics(window)

    async def fetch_github(self):
        return await self._require("github", self.github).fetch_analytics()

    async def fetch_packages(self, window: DateWindow):
        return await self._require("packages", self.packages).fetch_analytics(window)

    async def fetch_tennis_scorigami(self, window: DateWindow):
        return await self._require("posthog", self.posthog).fetch_analytics(window)

    async def fetch_youtube(self):
        return await self._require("youtube", self.youtube).fetch_analytics()

    async def fetch_vanity_mirror(self, window: DateWindow):
        """Web analytics for the dashboard's own GA4 property."""
        if not self.vanity_mirror_property_id:
            raise NotConfiguredError("Vanity Mirror analytics not configured", "google-analytics")
        client = self._require("google-analytics", self.google_analytics)
        return await client.fetch_analytics_for_property(self.vanity_mirror_property_id, window)

    async def _optional_slice(self, name: str, pending: Awaitable[Any] | None) -> Any:
        if pending is None:
            return None
        try:
            return await pending
        except Exception as e:
            logger.warning("Walk in the Parquet %s data unavailable: %s", name, e)
            return None

    async def fetch_walk_in_the_parquet(self, window: DateWindow) -> WalkInTheParquetAnalytics:
        """
        Documentation-site analytics plus App Store analytics.

        Either slice is None when its source is unconfigured or fails.

        Raises:
            NotConfiguredError: Neither source is configured
        """
        ga_configured = bool(self.walk_in_the_parquet_property_id)
        app_store_configured = self.app_store is not None or "app-store" in self.config_errors

        if not ga_configured and not app_store_configured:
            raise NotConfiguredError(
                "No data sources configured. Set WALK_IN_THE_PARQUET_GA_PROPERTY_ID "
                "and/or App Store Connect credentials.",
                "walk-in-the-parquet",
            )

        documentation, app_store = await asyncio.gather(
            self._optional_slice(
                "documentation", self._documentation(window) if ga_configured else None
            ),
            self._optional_slice(
                "app store", self._app_store(window) if app_store_configured else None
            ),
        )
        return WalkInTheParquetAnalytics(documentation=documentation, app_store=app_store)

    async def _documentation(self, window: DateWindow):
        client = self._require("google-analytics", self.google_analytics)
        return await client.fetch_analytics_for_property(
            self.walk_in_the_parquet_property_id, window
        )

    async def _app_store(self, window: DateWindow):
        return await self._require("app-store", self.app_store).fetch_analytics(window)

    async def fetch_overview(self, window: DateWindow) -> OverviewAnalytics:
        """
        Snapshot of every windowed source with headline totals.

        Each source is fetched concurrently and reported as connected,
        erroring or not configured; failures never fail the overview.
        """
        blog, github, packages, tennis, walk = await asyncio.gather(
            self.fetch_blog(window),
            self.fetch_github(),
            self.fetch_packages(window),
            self.fetch_tennis_scorigami(window),
            self.fetch_walk_in_the_parquet(window),
            return_exceptions=True,
        )
        outcomes = {
            "blog": blog,
            "github": github,
            "packages": packages,
            "tennis-scorigami": tennis,
            "walk-in-the-parquet": walk,
        }
        for source, outcome in outcomes.items():
            if isinstance(outcome, BaseException) and not isinstance(outcome, ConfigError):
                logger.warning("Overview source %s failed: %s", source, outcome)

        def ok(outcome: Any) -> Any:
            return None if isinstance(outcome, BaseException) else outcome

        blog, github, packages, tennis, walk = (ok(o) for o in outcomes.values())
        documentation = walk.documentation if walk else None

        visitor_metrics = [
            blog.metrics.visitors if blog else None,
            tennis.metrics.visitors if tennis else None,
            documentation.metrics.visitors if documentation else None,
        ]

        names = {
            "blog": "Google Analytics",
            "github": "GitHub API",
            "packages": "npm/PyPI/crates.io",
            "tennis-scorigami": "PostHog",
            "walk-in-the-parquet": "GA + App Store",
        }
        sources = [
            SourceInfo(id=source, name=names[source], status=_status(outcome))
            for source, outcome in outcomes.items()
        ]

        return OverviewAnalytics(
            metrics=OverviewMetrics(
                total_visitors=HeadlineMetric(
                    value=sum(metric.value for metric in visitor_metrics if metric),
                    trend=weighted_trend(visitor_metrics),
                ),
                github_stars=github.metrics.total_stars if github else 0,
                package_downloads=HeadlineMetric(
                    value=packages.metrics.total_downloads if packages else 0,
                    trend=packages.metrics.weekly_trend if packages else 0,
                ),
                connected_sources=sum(1 for source in sources if source.status == "connected"),
                total_sources=len(sources),
            ),
            sources=sources,
            raw_data={
                "blog": blog,
                "github": github,
                "packages": packages,
                "tennisScorigami": tennis,
                "walkInTheParquet": walk,
            },
        )
