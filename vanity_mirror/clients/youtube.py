"""YouTube Data API v3 channel client."""

from collections import defaultdict
from typing import Any

import httpx

from vanity_mirror.cache import TTLCache
from vanity_mirror.config import YouTubeConfig
from vanity_mirror.exceptions import NotFoundError
from vanity_mirror.transport import AsyncHTTPTransport, ErrorMessages
from vanity_mirror.types.youtube import (
    ChannelMetrics,
    ViewsByMonthPoint,
    YouTubeAnalytics,
    YouTubeVideo,
)

YOUTUBE_API = "https://www.googleapis.com/youtube/v3"
MAX_RESULTS = 50

YOUTUBE_MESSAGES = ErrorMessages(
    unauthorized="YouTube API authentication failed. Check your YOUTUBE_API_KEY.",
    forbidden="YouTube API quota exceeded or access forbidden",
    not_found="YouTube channel not found",
    rate_limited="YouTube API rate limit exceeded",
    server_error="YouTube API error",
)


def _count(statistics: dict[str, Any], name: str) -> int:
    return int(statistics.get(name) or 0)


def _to_video(item: dict[str, Any]) -> YouTubeVideo:
    snippet = item.get("snippet") or {}
    statistics = item.get("statistics") or {}
    thumbnails = snippet.get("thumbnails") or {}
    thumbnail = thumbnails.get("medium") or thumbnails.get("default") or {}
    return YouTubeVideo(
        id=item["id"],
        title=snippet.get("title", ""),
        url=f"https://www.youtube.com/watch?v={item['id']}",
        thumbnail_url=thumbnail.get("url", ""),
        published_at=snippet.get("publishedAt", ""),
        view_count=_count(statistics, "viewCount"),
        like_count=_count(statistics, "likeCount"),
        comment_count=_count(statistics, "commentCount"),
    )


def views_by_month(videos: list[YouTubeVideo]) -> list[ViewsByMonthPoint]:
    """Lifetime views grouped by the month each video was published, ascending."""
    views: dict[str, int] = defaultdict(int)
    counts: dict[str, int] = defaultdict(int)
    for video in videos:
        month = video.published_at[:7]
        views[month] += video.view_count
        counts[month] += 1
    return [
        ViewsByMonthPoint(month=month, views=views[month], video_count=counts[month])
        for month in sorted(views)
    ]


class YouTubeClient:
    """Async client for a channel's statistics and uploads."""

    def __init__(
        self,
        config: YouTubeConfig,
        cache: TTLCache | None = None,
        transport: AsyncHTTPTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the YouTube client.

        Args:
            config: API key and channel
            cache: Cache for channel analytics
            transport: Async HTTP transport for making requests
            http_client: Shared httpx client for the default transport
        """
        self.config = config
        self.cache = cache if cache is not None else TTLCache(namespace="youtube")
        self.transport = transport or AsyncHTTPTransport(
            "youtube", messages=YOUTUBE_MESSAGES, http_client=http_client
        )

    async def _get(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        return await self.transport.request_json(
            "GET",
            f"{YOUTUBE_API}/{endpoint}",
            params={"key": self.config.api_key, **params},
            headers={"Accept": "application/json"},
        )

    async def fetch_channel(self) -> dict[str, Any]:
        data = await self._get(
            "channels", {"part": "snippet,statistics,contentDetails", "id": self.config.channel_id}
        )
        items = data.get("items") or []
        if not items:
            raise NotFoundError("NOT_FOUND", YOUTUBE_MESSAGES.not_found, "youtube")
        return items[0]

    async def fetch_video_ids(self, playlist_id: str) -> list[str]:
        """Every video id in the uploads playlist, following ``nextPageToken``."""
        video_ids: list[str] = []
        page_token = None
        while True:
            params = {"part": "contentDetails", "playlistId": playlist_id, "maxResults": MAX_RESULTS}
            if page_token:
                params["pageToken"] = page_token

            data = await self._get("playlistItems", params)
            video_ids.extend(item["contentDetails"]["videoId"] for item in data.get("items") or [])

            page_token = data.get("nextPageToken")
            if not page_token:
                break
        return video_ids

    async def fetch_videos(self, video_ids: list[str]) -> list[YouTubeVideo]:
        """Video details, requested 50 ids at a time."""
        videos: list[YouTubeVideo] = []
        for offset in range(0, len(video_ids), MAX_RESULTS):
            batch = video_ids[offset : offset + MAX_RESULTS]
            data = await self._get("videos", {"part": "snippet,statistics", "id": ",".join(batch)})
            videos.extend(_to_video(item) for item in data.get("items") or [])
        return videos

    async def fetch_analytics(self) -> YouTubeAnalytics:
        """
        Get channel totals and every upload, most viewed first.

        Account-scoped: always reports current totals.
        """
        cache_key = f"analytics:{self.config.channel_id}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        channel = await self.fetch_channel()
        snippet = channel.get("snippet") or {}
        statistics = channel.get("statistics") or {}
        uploads = channel["contentDetails"]["relatedPlaylists"]["uploads"]

        videos = await self.fetch_videos(await self.fetch_video_ids(uploads))
        videos.sort(key=lambda video: video.view_count, reverse=True)

        custom_url = snippet.get("customUrl")
        channel_url = (
            f"https://www.youtube.com/{custom_url}"
            if custom_url
            else f"https://www.youtube.com/channel/{self.config.channel_id}"
        )

        analytics = YouTubeAnalytics(
            metrics=ChannelMetrics(
                total_views=_count(statistics, "viewCount"),
                subscribers=_count(statistics, "subscriberCount"),
                total_videos=_count(statistics, "videoCount"),
                channel_title=snippet.get("title", ""),
                channel_url=channel_url,
            ),
            videos=videos,
            views_by_month=views_by_month(videos),
        )

        self.cache.set(cache_key, analytics)
        return analytics
