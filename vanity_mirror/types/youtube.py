"""Video-platform (YouTube) data models."""

from dataclasses import dataclass


@dataclass
class YouTubeVideo:
    id: str
    title: str
    url: str
    thumbnail_url: str
    published_at: str
    view_count: int
    like_count: int
    comment_count: int


@dataclass
class ViewsByMonthPoint:
    month: str  # YYYY-MM
    views: int
    video_count: int


@dataclass
class ChannelMetrics:
    total_views: int
    subscribers: int
    total_videos: int
    channel_title: str
    channel_url: str


@dataclass
class YouTubeAnalytics:
    metrics: ChannelMetrics
    videos: list[YouTubeVideo]
    views_by_month: list[ViewsByMonthPoint]
