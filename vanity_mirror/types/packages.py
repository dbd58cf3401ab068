"""Package-registry data models."""

from dataclasses import dataclass, field
from typing import Literal

PackageRegistry = Literal["npm", "pypi", "crates"]


@dataclass
class DailyDownloads:
    date: str  # YYYY-MM-DD
    downloads: int


@dataclass
class PackageDownloads:
    """
    Download statistics for one package over the requested window.

    ``weekly_downloads``/``monthly_downloads`` sum the last 7/30 entries of
    ``daily_downloads``. crates.io has no daily series, so its values are
    estimates derived from the 90-day total.
    """

    name: str
    registry: PackageRegistry
    total_downloads: int
    weekly_downloads: int
    monthly_downloads: int
    url: str
    daily_downloads: list[DailyDownloads] = field(default_factory=list)
    created_at: str | None = None


@dataclass
class RegistryTimeSeriesPoint:
    date: str
    npm: int = 0
    pypi: int = 0
    crates: int = 0


@dataclass
class TopPackage:
    name: str
    registry: PackageRegistry
    weekly_downloads: int


@dataclass
class PackagesMetrics:
    total_downloads: int
    weekly_downloads: int
    package_count: int
    weekly_trend: int


@dataclass
class PackagesAnalytics:
    metrics: PackagesMetrics
    packages: list[PackageDownloads]
    time_series: list[RegistryTimeSeriesPoint]
    top_package: TopPackage | None
