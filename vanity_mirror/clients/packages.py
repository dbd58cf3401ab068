"""Cross-registry package download analytics."""

import asyncio
from collections import defaultdict

import httpx

from vanity_mirror.cache import TTLCache
from vanity_mirror.clients.crates import CratesClient
from vanity_mirror.clients.npm import NpmClient
from vanity_mirror.clients.pypi import PyPIClient
from vanity_mirror.config import PackagesConfig
from vanity_mirror.exceptions import NotConfiguredError, UpstreamError
from vanity_mirror.logging import get_logger
from vanity_mirror.metrics import DateWindow, calculate_trend, previous_period
from vanity_mirror.types.common import BatchResult
from vanity_mirror.types.packages import (
    PackageDownloads,
    PackagesAnalytics,
    PackagesMetrics,
    RegistryTimeSeriesPoint,
    TopPackage,
)

logger = get_logger("clients.packages")


def build_time_series(packages: list[PackageDownloads]) -> list[RegistryTimeSeriesPoint]:
    """
    Sum daily downloads per registry and date, ascending by date.

    crates.io has no daily series, so its column stays zero.
    """
    points: dict[str, RegistryTimeSeriesPoint] = {}
    for package in packages:
        for entry in package.daily_downloads:
            point = points.setdefault(entry.date, RegistryTimeSeriesPoint(date=entry.date))
            setattr(point, package.registry, getattr(point, package.registry) + entry.downloads)
    return [points[day] for day in sorted(points)]


def top_package(packages: list[PackageDownloads]) -> TopPackage | None:
    """The package with the most downloads in the window (first one wins ties)."""
    if not packages:
        return None
    top = max(packages, key=lambda package: package.total_downloads)
    return TopPackage(name=top.name, registry=top.registry, weekly_downloads=top.weekly_downloads)


def period_trend(current: list[PackageDownloads], previous: list[PackageDownloads]) -> int:
    """
    Trend of summed downloads against the previous window.

    Only packages fetched successfully in both windows are compared, so a
    package that failed in one window does not read as growth or decline.
    """
    previous_totals = {(p.registry, p.name): p.total_downloads for p in previous}
    current_total = 0
    previous_total = 0
    for package in current:
        key = (package.registry, package.name)
        if key in previous_totals:
            current_total += package.total_downloads
            previous_total += previous_totals[key]
    return calculate_trend(current_total, previous_total)


class PackagesClient:
    """Aggregates npm, PyPI and crates.io into one analytics payload."""

    def __init__(
        self,
        config: PackagesConfig,
        npm: NpmClient | None = None,
        pypi: PyPIClient | None = None,
        crates: CratesClient | None = None,
        cache: TTLCache | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the packages client.

        Args:
            config: Package names per registry
            npm / pypi / crates: Registry clients (built on ``http_client`` when omitted)
            cache: Cache for the assembled analytics
            http_client: Shared httpx client for default registry clients
        """
        self.config = config
        self.npm = npm or NpmClient(http_client=http_client)
        self.pypi = pypi or PyPIClient(http_client=http_client)
        self.crates = crates or CratesClient(http_client=http_client)
        self.cache = cache if cache is not None else TTLCache(namespace="packages")

    async def _fetch_daily_registries(
        self, window: DateWindow
    ) -> BatchResult[PackageDownloads]:
        npm, pypi = await asyncio.gather(
            self.npm.fetch_packages(self.config.npm, window),
            self.pypi.fetch_packages(self.config.pypi, window),
        )
        npm.extend(pypi)
        return npm

    async def fetch_analytics(self, window: DateWindow) -> PackagesAnalytics:
        """
        Get download analytics for every configured package.

        npm and PyPI are fetched concurrently for the window and the previous
        window of equal length; crates.io follows sequentially.

        Raises:
            NotConfiguredError: No package lists are configured
            UpstreamError: Every configured package failed
        """
        if self.config.total == 0:
            raise NotConfiguredError(
                "No packages configured. Set NPM_PACKAGES, PYPI_PACKAGES, "
                "or CRATES_PACKAGES environment variables.",
                "packages",
            )

        cache_key = f"analytics:{window.cache_key()}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        current, previous = await asyncio.gather(
            self._fetch_daily_registries(window),
            self._fetch_daily_registries(previous_period(window)),
        )
        crates = await self.crates.fetch_packages(self.config.crates, window)

        daily_packages = list(current.successful)
        current.extend(crates)

        if current.errors:
            logger.warning("Some packages failed to fetch: %s", current.error_summary())

        if not current.successful:
            raise UpstreamError(
                "ALL_PACKAGES_FAILED",
                f"Failed to fetch any packages. Errors: {current.error_summary()}",
                source="packages",
            )

        packages = sorted(current.successful, key=lambda p: p.total_downloads, reverse=True)

        analytics = PackagesAnalytics(
            metrics=PackagesMetrics(
                total_downloads=sum(p.total_downloads for p in packages),
                weekly_downloads=sum(p.weekly_downloads for p in packages),
                package_count=len(packages),
                weekly_trend=period_trend(daily_packages, previous.successful),
            ),
            packages=packages,
            time_series=build_time_series(packages),
            top_package=top_package(packages),
        )

        self.cache.set(cache_key, analytics)
        return analytics
