"""Vanity Mirror type definitions.

This module exports all normalized data model types.
"""

from vanity_mirror.types.app_store import (
    APP_DOWNLOAD_PRODUCT_TYPES,
    AppStoreAnalytics,
    AppStoreReviewData,
    AppStoreSalesData,
    CustomerReview,
    DailySales,
    DownloadTrendPoint,
    ReviewSummary,
    SalesMetrics,
    SalesReportRow,
)
from vanity_mirror.types.common import BatchResult, ItemError, MetricWithTrend, TimeSeriesPoint
from vanity_mirror.types.dashboard import (
    HeadlineMetric,
    OverviewAnalytics,
    OverviewMetrics,
    SourceInfo,
    WalkInTheParquetAnalytics,
)
from vanity_mirror.types.github import (
    GitHubAnalytics,
    GitHubMetrics,
    GitHubRepository,
    LanguageBreakdown,
    StarHistoryPoint,
)
from vanity_mirror.types.packages import (
    DailyDownloads,
    PackageDownloads,
    PackagesAnalytics,
    PackagesMetrics,
    RegistryTimeSeriesPoint,
    TopPackage,
)
from vanity_mirror.types.product import ActiveUsers, ProductAnalytics, ProductMetrics, TopEvent
from vanity_mirror.types.web import TopPage, WebAnalytics, WebMetrics
from vanity_mirror.types.youtube import (
    ChannelMetrics,
    ViewsByMonthPoint,
    YouTubeAnalytics,
    YouTubeVideo,
)

__all__ = [
    # Shared
    "MetricWithTrend",
    "TimeSeriesPoint",
    "BatchResult",
    "ItemError",
    # Source control
    "GitHubAnalytics",
    "GitHubMetrics",
    "GitHubRepository",
    "LanguageBreakdown",
    "StarHistoryPoint",
    # Package registries
    "DailyDownloads",
    "PackageDownloads",
    "PackagesAnalytics",
    "PackagesMetrics",
    "RegistryTimeSeriesPoint",
    "TopPackage",
    # Product analytics
    "ActiveUsers",
    "ProductAnalytics",
    "ProductMetrics",
    "TopEvent",
    # Web analytics
    "TopPage",
    "WebAnalytics",
    "WebMetrics",
    # App store
    "APP_DOWNLOAD_PRODUCT_TYPES",
    "AppStoreAnalytics",
    "AppStoreReviewData",
    "AppStoreSalesData",
    "CustomerReview",
    "DailySales",
    "DownloadTrendPoint",
    "ReviewSummary",
    "SalesMetrics",
    "SalesReportRow",
    # Video
    "ChannelMetrics",
    "ViewsByMonthPoint",
    "YouTubeAnalytics",
    "YouTubeVideo",
    # Combined pages
    "HeadlineMetric",
    "OverviewAnalytics",
    "OverviewMetrics",
    "SourceInfo",
    "WalkInTheParquetAnalytics",
]
