"""Product-analytics (PostHog) data models."""

from dataclasses import dataclass

from vanity_mirror.types.common import MetricWithTrend, TimeSeriesPoint


@dataclass
class ActiveUsers:
    dau: int
    wau: int
    mau: int


@dataclass
class TopEvent:
    event_name: str
    count: int
    unique_users: int


@dataclass
class ProductMetrics:
    visitors: MetricWithTrend
    unique_visitors: MetricWithTrend
    total_events: MetricWithTrend
    avg_session_duration: MetricWithTrend  # seconds


@dataclass
class ProductAnalytics:
    metrics: ProductMetrics
    active_users: ActiveUsers
    time_series: list[TimeSeriesPoint]
    top_events: list[TopEvent]
