"""Combined-page data models."""

from dataclasses import dataclass
from typing import Any, Literal

from vanity_mirror.types.app_store import AppStoreAnalytics
from vanity_mirror.types.web import WebAnalytics

SourceStatus = Literal["connected", "error", "not-configured"]


@dataclass
class WalkInTheParquetAnalytics:
    """Documentation site plus app store; either slice may be missing."""

    documentation: WebAnalytics | None
    app_store: AppStoreAnalytics | None


@dataclass
class SourceInfo:
    id: str
    name: str
    status: SourceStatus


@dataclass
class HeadlineMetric:
    value: float
    trend: float  # percent, one decimal


@dataclass
class OverviewMetrics:
    total_visitors: HeadlineMetric
    github_stars: int
    package_downloads: HeadlineMetric
    connected_sources: int
    total_sources: int


@dataclass
class OverviewAnalytics:
    metrics: OverviewMetrics
    sources: list[SourceInfo]
    raw_data: dict[str, Any]
