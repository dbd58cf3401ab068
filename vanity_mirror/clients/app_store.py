"""
App Store Connect sales and review client.

Requests are authorized with an ES256 JWT signed by the team's API key. The
token lives 20 minutes (Apple's maximum) and is reused until a minute before
it expires.
"""

import asyncio
import csv
import gzip
import io
import time
from collections.abc import Callable
from datetime import date, datetime, timedelta
from typing import Any

import httpx

from vanity_mirror.cache import TTLCache
from vanity_mirror.config import AppStoreConnectConfig
from vanity_mirror.exceptions import FetchTimeoutError, NotFoundError, UpstreamError
from vanity_mirror.logging import get_logger
from vanity_mirror.metrics import (
    DateWindow,
    format_month_day,
    metric_with_trend,
    previous_period,
    round_to,
)
from vanity_mirror.signing import CachedToken, TokenCache, encode_jwt
from vanity_mirror.transport import AsyncHTTPTransport, ErrorMessages
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

logger = get_logger("clients.app_store")

APP_STORE_API = "https://api.appstoreconnect.apple.com/v1"
AUDIENCE = "appstoreconnect-v1"
TOKEN_LIFETIME = 20 * 60
WEEKLY_REPORT_THRESHOLD_DAYS = 30
REVIEW_PAGE_SIZE = 50
RECENT_REVIEWS = 10

APP_STORE_MESSAGES = ErrorMessages(
    unauthorized="App Store Connect rejected the API key",
    forbidden="App Store Connect API key lacks the required role",
    not_found="App Store Connect resource not found",
    rate_limited="App Store Connect rate limit exceeded",
    server_error="App Store Connect API error",
)


def _normalize_report_date(value: str) -> str:
    # Sales reports write dates as MM/DD/YYYY
    try:
        return datetime.strptime(value, "%m/%d/%Y").date().isoformat()
    except ValueError:
        return value


def _int(value: str | None) -> int:
    try:
        return int(value or 0)
    except ValueError:
        return 0


def _float(value: str | None) -> float:
    try:
        return float(value or 0)
    except ValueError:
        return 0.0


def parse_sales_report(tsv: str) -> list[SalesReportRow]:
    """
    Parse a SUMMARY sales report.

    Rows whose column count does not match the header are skipped.
    """
    lines = tsv.strip().splitlines()
    if len(lines) < 2:
        return []

    header = lines[0].split("\t")
    rows = []
    for record in csv.reader(io.StringIO("\n".join(lines[1:])), delimiter="\t", quoting=csv.QUOTE_NONE):
        if len(record) != len(header):
            continue
        row = dict(zip(header, record))
        rows.append(
            SalesReportRow(
                title=row.get("Title", ""),
                sku=row.get("SKU", ""),
                product_type_identifier=row.get("Product Type Identifier", ""),
                units=_int(row.get("Units")),
                developer_proceeds=_float(row.get("Developer Proceeds")),
                begin_date=_normalize_report_date(row.get("Begin Date", "")),
                end_date=_normalize_report_date(row.get("End Date", "")),
                country_code=row.get("Country Code", ""),
                currency_of_proceeds=row.get("Currency of Proceeds", ""),
                apple_identifier=row.get("Apple Identifier", ""),
            )
        )
    return rows


def week_ending_sunday(day: date) -> date:
    """The Sunday that closes ``day``'s reporting week (``day`` itself if Sunday)."""
    return day + timedelta(days=(6 - day.weekday()) % 7)


def report_schedule(window: DateWindow) -> tuple[str, list[date]]:
    """
    Which reports cover the window.

    Spans shorter than 30 days use one DAILY report per day; longer spans use
    WEEKLY reports, which Apple dates by the Sunday ending each week.
    """
    if (window.end - window.start).days < WEEKLY_REPORT_THRESHOLD_DAYS:
        return "DAILY", window.each_day()

    sundays = []
    current = week_ending_sunday(window.start)
    last = week_ending_sunday(window.end)
    while current <= last:
        sundays.append(current)
        current += timedelta(days=7)
    return "WEEKLY", sundays


def summarize_sales(rows: list[SalesReportRow], window: DateWindow) -> AppStoreSalesData:
    """Total app-download rows, per report date and over the window's last week."""
    downloads = [row for row in rows if row.product_type_identifier in APP_DOWNLOAD_PRODUCT_TYPES]

    by_date: dict[str, DailySales] = {}
    for row in downloads:
        entry = by_date.setdefault(row.begin_date, DailySales(date=row.begin_date, units=0, proceeds=0.0))
        entry.units += row.units
        entry.proceeds += row.developer_proceeds

    week_start = (window.end - timedelta(days=7)).isoformat()
    last_week = [row for row in downloads if row.begin_date >= week_start]

    return AppStoreSalesData(
        total_units=sum(row.units for row in downloads),
        total_proceeds=sum(row.developer_proceeds for row in downloads),
        weekly_units=sum(row.units for row in last_week),
        weekly_proceeds=sum(row.developer_proceeds for row in last_week),
        reports_by_date=[by_date[day] for day in sorted(by_date)],
    )


def summarize_reviews(reviews: list[CustomerReview]) -> AppStoreReviewData:
    distribution = {rating: 0 for rating in range(1, 6)}
    total_rating = 0
    for review in reviews:
        if review.rating in distribution:
            distribution[review.rating] += 1
            total_rating += review.rating

    return AppStoreReviewData(
        average_rating=round_to(total_rating / len(reviews), 1) if reviews else 0,
        total_reviews=len(reviews),
        recent_reviews=reviews[:RECENT_REVIEWS],
        rating_distribution=distribution,
    )


def _to_review(item: dict[str, Any]) -> CustomerReview:
    attributes = item.get("attributes") or {}
    return CustomerReview(
        id=item["id"],
        rating=int(attributes.get("rating") or 0),
        title=attributes.get("title") or "",
        body=attributes.get("body") or "",
        reviewer_nickname=attributes.get("reviewerNickname") or "",
        created_date=attributes.get("createdDate") or "",
        territory=attributes.get("territory") or "",
    )


class AppStoreClient:
    """Async client for App Store Connect sales reports and reviews."""

    def __init__(
        self,
        config: AppStoreConnectConfig,
        cache: TTLCache | None = None,
        transport: AsyncHTTPTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the App Store Connect client.

        Args:
            config: API key, issuer, app and vendor identifiers
            cache: Cache for reports, reviews and analytics
            transport: Async HTTP transport for making requests
            http_client: Shared httpx client for the default transport
            clock: Wall clock for JWT claims
        """
        self.config = config
        self.cache = cache if cache is not None else TTLCache(namespace="app-store")
        self.transport = transport or AsyncHTTPTransport(
            "app-store", messages=APP_STORE_MESSAGES, http_client=http_client
        )
        self._clock = clock
        self.tokens = TokenCache(config.issuer_id, clock=clock)

    @staticmethod
    def is_configured() -> bool:
        return AppStoreConnectConfig.is_configured()

    async def _generate_token(self) -> CachedToken:
        issued_at = int(self._clock())
        expires_at = issued_at + TOKEN_LIFETIME
        token = encode_jwt(
            {"iss": self.config.issuer_id, "iat": issued_at, "exp": expires_at, "aud": AUDIENCE},
            self.config.signer,
            {"kid": self.config.key_id},
        )
        return CachedToken(token=token, expires_at=expires_at)

    async def _auth_headers(self, accept: str) -> dict[str, str]:
        token = await self.tokens.get(self._generate_token)
        return {"Authorization": f"Bearer {token}", "Accept": accept}

    async def fetch_report(self, frequency: str, report_date: date) -> list[SalesReportRow]:
        """
        Download one SUMMARY sales report.

        A report that does not exist yet (404) or hits a transient upstream failure
        contributes no rows. Credential and quota errors propagate.
        """
        params = {
            "filter[frequency]": frequency,
            "filter[reportDate]": report_date.isoformat(),
            "filter[reportSubType]": "SUMMARY",
            "filter[reportType]": "SALES",
            "filter[vendorNumber]": self.config.vendor_number,
        }
        try:
            response = await self.transport.request(
                "GET",
                f"{APP_STORE_API}/salesReports",
                params=params,
                headers=await self._auth_headers("application/a-gzip"),
            )
        except NotFoundError:
            return []
        except (UpstreamError, FetchTimeoutError) as e:
            logger.warning("Sales report %s %s unavailable: %s", frequency, report_date, e)
            return []

        body = response.content
        if body[:2] == b"\x1f\x8b":
            body = gzip.decompress(body)
        return parse_sales_report(body.decode("utf-8"))

    async def fetch_sales(self, window: DateWindow) -> AppStoreSalesData:
        """Aggregate every report covering the window, fetched concurrently."""
        cache_key = f"sales:{window.cache_key()}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        frequency, report_dates = report_schedule(window)
        reports = await asyncio.gather(
            *(self.fetch_report(frequency, report_date) for report_date in report_dates)
        )
        sales = summarize_sales([row for rows in reports for row in rows], window)

        self.cache.set(cache_key, sales)
        return sales

    async def fetch_reviews(self) -> AppStoreReviewData:
        """The 50 most recent customer reviews and their rating summary."""
        cached = self.cache.get("reviews")
        if cached is not None:
            return cached

        data = await self.transport.request_json(
            "GET",
            f"{APP_STORE_API}/apps/{self.config.app_id}/customerReviews",
            params={"sort": "-createdDate", "limit": REVIEW_PAGE_SIZE},
            headers=await self._auth_headers("application/json"),
        )
        reviews = summarize_reviews([_to_review(item) for item in data.get("data") or []])

        self.cache.set("reviews", reviews)
        return reviews

    async def fetch_analytics(self, window: DateWindow) -> AppStoreAnalytics:
        """
        Get downloads and revenue with trends against the previous window,
        plus the review summary.
        """
        cache_key = f"analytics:{window.cache_key()}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        current, previous, reviews = await asyncio.gather(
            self.fetch_sales(window),
            self.fetch_sales(previous_period(window)),
            self.fetch_reviews(),
        )

        analytics = AppStoreAnalytics(
            sales=SalesMetrics(
                total_downloads=metric_with_trend(current.total_units, previous.total_units),
                weekly_downloads=metric_with_trend(current.weekly_units, previous.weekly_units),
                total_revenue=metric_with_trend(current.total_proceeds, previous.total_proceeds),
                weekly_revenue=metric_with_trend(current.weekly_proceeds, previous.weekly_proceeds),
            ),
            reviews=ReviewSummary(
                average_rating=reviews.average_rating,
                total_reviews=reviews.total_reviews,
                recent_reviews=reviews.recent_reviews,
                rating_distribution=reviews.rating_distribution,
            ),
            download_trends=[
                DownloadTrendPoint(
                    date=format_month_day(entry.date),
                    downloads=entry.units,
                    revenue=entry.proceeds,
                )
                for entry in current.reports_by_date
            ],
        )

        self.cache.set(cache_key, analytics)
        return analytics
