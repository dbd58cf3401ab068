"""App-distribution (App Store Connect) data models."""

from dataclasses import dataclass, field

from vanity_mirror.types.common import MetricWithTrend

# Product type identifiers that count as an app download. Anything else
# (in-app purchases, subscriptions, new upstream types) is ignored.
APP_DOWNLOAD_PRODUCT_TYPES = frozenset({"F1", "F3", "1", "1F", "1T", "1TF", "7", "7F"})


@dataclass
class SalesReportRow:
    """The subset of a sales-report TSV row the dashboard uses."""

    title: str
    sku: str
    product_type_identifier: str
    units: int
    developer_proceeds: float
    begin_date: str  # YYYY-MM-DD
    end_date: str
    country_code: str
    currency_of_proceeds: str
    apple_identifier: str


@dataclass
class DailySales:
    date: str
    units: int
    proceeds: float


@dataclass
class AppStoreSalesData:
    total_units: int
    total_proceeds: float
    weekly_units: int
    weekly_proceeds: float
    reports_by_date: list[DailySales] = field(default_factory=list)


@dataclass
class CustomerReview:
    id: str
    rating: int
    title: str
    body: str
    reviewer_nickname: str
    created_date: str
    territory: str


@dataclass
class AppStoreReviewData:
    average_rating: float
    total_reviews: int
    recent_reviews: list[CustomerReview]
    rating_distribution: dict[int, int]


@dataclass
class SalesMetrics:
    total_downloads: MetricWithTrend
    weekly_downloads: MetricWithTrend
    total_revenue: MetricWithTrend
    weekly_revenue: MetricWithTrend


@dataclass
class ReviewSummary:
    average_rating: float
    total_reviews: int
    recent_reviews: list[CustomerReview]
    rating_distribution: dict[int, int]


@dataclass
class DownloadTrendPoint:
    date: str  # MM/DD
    downloads: int
    revenue: float


@dataclass
class AppStoreAnalytics:
    sales: SalesMetrics
    reviews: ReviewSummary
    download_trends: list[DownloadTrendPoint]
