"""Web-analytics (Google Analytics 4) data models."""

from dataclasses import dataclass

from vanity_mirror.types.common import MetricWithTrend, TimeSeriesPoint


@dataclass
class TopPage:
    page_path: str
    page_title: str
    pageviews: int
    unique_visitors: int
    avg_time_on_page: int  # seconds
    bounce_rate: float  # 0-100, one decimal


@dataclass
class WebMetrics:
    visitors: MetricWithTrend
    unique_visitors: MetricWithTrend
    avg_session_duration: MetricWithTrend  # seconds
    avg_users_per_day: MetricWithTrend


@dataclass
class WebAnalytics:
    metrics: WebMetrics
    time_series: list[TimeSeriesPoint]
    top_pages: list[TopPage]
