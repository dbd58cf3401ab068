"""
Tests for the App Store Connect client and sales-report handling.

Feature: vanity-mirror
"""

import asyncio
import gzip
from datetime import date

import httpx
import pytest

from vanity_mirror.clients.app_store import (
    APP_STORE_API,
    AUDIENCE,
    AppStoreClient,
    parse_sales_report,
    report_schedule,
    summarize_reviews,
    summarize_sales,
    week_ending_sunday,
)
from vanity_mirror.config import AppStoreConnectConfig
from vanity_mirror.exceptions import AuthError, RateLimitError
from vanity_mirror.metrics import DateWindow
from vanity_mirror.signing import decode_jwt_unverified
from vanity_mirror.testing import MockUpstream, sales_report_tsv
from vanity_mirror.types.app_store import CustomerReview

NOW = 1_700_000_000.0
SALES_URL = f"{APP_STORE_API}/salesReports"

REPORTS = {
    "2024-01-29": [
        {"type": "1F", "units": 5, "proceeds": 1.4, "begin": "01/29/2024"},
        {"type": "IA1", "units": 100, "proceeds": 99.0, "begin": "01/29/2024"},
    ],
    "2024-01-30": [{"type": "1", "units": 3, "begin": "01/30/2024"}],
    "2024-01-26": [{"type": "F1", "units": 4, "begin": "01/26/2024"}],
}


def review(rating: int, review_id: str = "r") -> dict:
    return {
        "id": review_id,
        "type": "customerReviews",
        "attributes": {
            "rating": rating,
            "title": "Great",
            "body": "Works well",
            "reviewerNickname": "parquet-fan",
            "createdDate": "2024-01-20T10:00:00-08:00",
            "territory": "USA",
        },
    }


def sales_reports(request: httpx.Request) -> httpx.Response:
    rows = REPORTS.get(request.url.params["filter[reportDate]"])
    if rows is None:
        return httpx.Response(404, json={"errors": [{"code": "NOT_FOUND"}]})
    return httpx.Response(200, content=gzip.compress(sales_report_tsv(rows).encode("utf-8")))


def app_store_client(upstream: MockUpstream, config: AppStoreConnectConfig) -> AppStoreClient:
    return AppStoreClient(config, transport=upstream.transport("app-store"), clock=lambda: NOW)


# ============================================================================
# Report helpers
# ============================================================================


def test_parse_sales_report_normalizes_dates() -> None:
    tsv = sales_report_tsv([{"type": "1F", "units": 2, "proceeds": 0.7, "begin": "01/15/2024"}])

    [row] = parse_sales_report(tsv)

    assert row.begin_date == "2024-01-15"
    assert row.units == 2
    assert row.developer_proceeds == 0.7
    assert row.product_type_identifier == "1F"


def test_parse_sales_report_skips_ragged_rows() -> None:
    tsv = sales_report_tsv([{"units": 1}]) + "APPLE\tUS\ttruncated\n"

    assert len(parse_sales_report(tsv)) == 1
    assert parse_sales_report("") == []


def test_week_ending_sunday() -> None:
    assert week_ending_sunday(date(2024, 1, 1)) == date(2024, 1, 7)
    assert week_ending_sunday(date(2024, 1, 7)) == date(2024, 1, 7)


def test_short_windows_use_daily_reports() -> None:
    frequency, dates = report_schedule(DateWindow(date(2024, 1, 1), date(2024, 1, 30)))

    assert frequency == "DAILY"
    assert len(dates) == 30


def test_long_windows_use_weekly_reports() -> None:
    frequency, dates = report_schedule(DateWindow(date(2024, 1, 1), date(2024, 1, 31)))

    assert frequency == "WEEKLY"
    assert dates == [date(2024, 1, 7), date(2024, 1, 14), date(2024, 1, 21), date(2024, 1, 28), date(2024, 2, 4)]


def test_summarize_sales_counts_only_app_downloads() -> None:
    rows = parse_sales_report(sales_report_tsv(REPORTS["2024-01-29"] + REPORTS["2024-01-30"]))
    window = DateWindow(date(2024, 1, 1), date(2024, 1, 30))

    sales = summarize_sales(rows, window)

    assert sales.total_units == 8
    assert sales.total_proceeds == pytest.approx(1.4)
    assert sales.weekly_units == 8
    assert [(entry.date, entry.units) for entry in sales.reports_by_date] == [
        ("2024-01-29", 5),
        ("2024-01-30", 3),
    ]


def test_summarize_sales_weekly_slice() -> None:
    rows = parse_sales_report(
        sales_report_tsv([{"units": 2, "begin": "01/10/2024"}, {"units": 3, "begin": "01/25/2024"}])
    )

    sales = summarize_sales(rows, DateWindow(date(2024, 1, 1), date(2024, 1, 30)))

    assert sales.total_units == 5
    assert sales.weekly_units == 3


def test_summarize_reviews() -> None:
    reviews = [
        CustomerReview(str(i), rating, "", "", "", "", "USA") for i, rating in enumerate([5, 4, 5])
    ]

    summary = summarize_reviews(reviews)

    assert summary.average_rating == 4.7
    assert summary.total_reviews == 3
    assert summary.rating_distribution == {1: 0, 2: 0, 3: 0, 4: 1, 5: 2}
    assert summarize_reviews([]).average_rating == 0


# ============================================================================
# Client
# ============================================================================


def test_app_store_analytics(mock_upstream: MockUpstream, app_store_config: AppStoreConnectConfig) -> None:
    mock_upstream.add("GET", SALES_URL, handler=sales_reports)
    mock_upstream.add(
        "GET",
        f"{APP_STORE_API}/apps/1234567890/customerReviews",
        json={"data": [review(5, "a"), review(4, "b"), review(5, "c")]},
    )
    window = DateWindow(date(2024, 1, 28), date(2024, 1, 30))

    analytics = asyncio.run(app_store_client(mock_upstream, app_store_config).fetch_analytics(window))

    sales = analytics.sales
    assert (sales.total_downloads.value, sales.total_downloads.previous_value) == (8, 4)
    assert sales.total_downloads.trend == 100
    assert sales.weekly_downloads.value == 8
    assert sales.total_revenue.value == pytest.approx(1.4)
    assert sales.total_revenue.trend == 100
    assert [(p.date, p.downloads) for p in analytics.download_trends] == [("01/29", 5), ("01/30", 3)]
    assert analytics.reviews.average_rating == 4.7
    assert analytics.reviews.recent_reviews[0].reviewer_nickname == "parquet-fan"

    report_calls = mock_upstream.requests_to(SALES_URL)
    assert len(report_calls) == 6
    assert {call.url.params["filter[frequency]"] for call in report_calls} == {"DAILY"}
    assert report_calls[0].url.params["filter[vendorNumber]"] == "87654321"


def test_token_claims_and_reuse(mock_upstream: MockUpstream, app_store_config: AppStoreConnectConfig) -> None:
    mock_upstream.add("GET", SALES_URL, handler=sales_reports)
    client = app_store_client(mock_upstream, app_store_config)

    asyncio.run(client.fetch_sales(DateWindow(date(2024, 1, 28), date(2024, 1, 30))))

    tokens = {call.headers["Authorization"] for call in mock_upstream.requests_to(SALES_URL)}
    assert len(tokens) == 1
    header, claims = decode_jwt_unverified(tokens.pop().removeprefix("Bearer "))
    assert header["alg"] == "ES256"
    assert header["kid"] == "KEY123"
    assert claims == {"iss": "issuer-uuid", "iat": int(NOW), "exp": int(NOW) + 1200, "aud": AUDIENCE}


def test_failed_reports_contribute_nothing(
    mock_upstream: MockUpstream, app_store_config: AppStoreConnectConfig
) -> None:
    mock_upstream.add("GET", SALES_URL, status=500)
    client = app_store_client(mock_upstream, app_store_config)

    sales = asyncio.run(client.fetch_sales(DateWindow(date(2024, 1, 28), date(2024, 1, 30))))

    assert sales.total_units == 0
    assert sales.reports_by_date == []


@pytest.mark.parametrize(
    ("status", "headers", "error"),
    [
        (401, {}, AuthError),
        (429, {"Retry-After": "30"}, RateLimitError),
    ],
)
def test_rejected_credentials_and_quota_are_surfaced(
    mock_upstream: MockUpstream,
    app_store_config: AppStoreConnectConfig,
    status: int,
    headers: dict[str, str],
    error: type[Exception],
) -> None:
    mock_upstream.add("GET", SALES_URL, status=status, headers=headers)
    client = app_store_client(mock_upstream, app_store_config)

    with pytest.raises(error):
        asyncio.run(client.fetch_sales(DateWindow(date(2024, 1, 28), date(2024, 1, 30))))


def test_uncompressed_report_body(mock_upstream: MockUpstream, app_store_config: AppStoreConnectConfig) -> None:
    mock_upstream.add(
        "GET", SALES_URL, content=sales_report_tsv([{"units": 2, "begin": "01/30/2024"}]).encode()
    )
    client = app_store_client(mock_upstream, app_store_config)

    sales = asyncio.run(client.fetch_sales(DateWindow(date(2024, 1, 30), date(2024, 1, 30))))

    assert sales.total_units == 2
