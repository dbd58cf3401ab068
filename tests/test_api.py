"""
Tests for the HTTP boundary: envelope, status mapping and rate limiting.

Feature: vanity-mirror
"""

import threading
from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from vanity_mirror.api import create_app
from vanity_mirror.clients.github import GITHUB_API, GITHUB_MESSAGES, GitHubClient
from vanity_mirror.config import GitHubConfig
from vanity_mirror.dashboard import Dashboard
from vanity_mirror.envelope import (
    GENERIC_ERROR,
    TIMEOUT_ERROR,
    TOKEN_EXCHANGE_ERROR,
    camel_case,
    error_response,
    to_payload,
)
from vanity_mirror.exceptions import (
    AuthError,
    ConfigError,
    FetchTimeoutError,
    NotConfiguredError,
    NotFoundError,
    RateLimitError,
    TokenExchangeError,
    UpstreamError,
)
from vanity_mirror.metrics import DateWindow
from vanity_mirror.ratelimit import RateLimiter, RateLimitResult
from vanity_mirror.testing import MockUpstream
from vanity_mirror.types.common import TimeSeriesPoint
from vanity_mirror.types.github import GitHubAnalytics, GitHubMetrics

QUERY = "?startDate=2024-01-01&endDate=2024-01-30"


def github_analytics() -> GitHubAnalytics:
    return GitHubAnalytics(
        metrics=GitHubMetrics(
            total_stars=10,
            total_forks=2,
            total_watchers=10,
            repo_count=1,
            new_stars_this_week=0,
            stars_trend=0,
        ),
        repositories=[],
        star_history=[],
    )


def make_client(dashboard: Dashboard) -> TestClient:
    return TestClient(create_app(dashboard))


def github_failing_with(error: BaseException) -> TestClient:
    github = MagicMock()
    github.fetch_analytics = AsyncMock(side_effect=error)
    return make_client(Dashboard(github=github))


# ============================================================================
# Envelope
# ============================================================================


def test_camel_case() -> None:
    assert camel_case("total_stars") == "totalStars"
    assert camel_case("avg_time_on_page") == "avgTimeOnPage"
    assert camel_case("value") == "value"


def test_to_payload() -> None:
    payload = to_payload(
        {
            "tennisScorigami": TimeSeriesPoint("01/01", 3, 2, extra={"events": 9}),
            "day": date(2024, 1, 1),
            "ratings": {5: 2},
        }
    )

    assert payload == {
        "tennisScorigami": {"date": "01/01", "visitors": 3, "uniqueVisitors": 2, "events": 9},
        "day": "2024-01-01",
        "ratings": {5: 2},
    }


@pytest.mark.parametrize(
    ("error", "status", "message"),
    [
        (ConfigError("Missing GITHUB_USERNAME environment variable"), 500, "Missing GITHUB_USERNAME environment variable"),
        (NotConfiguredError("Vanity Mirror analytics not configured"), 503, "Vanity Mirror analytics not configured"),
        (AuthError("UNAUTHENTICATED", "GitHub authentication failed"), 401, "GitHub authentication failed"),
        (NotFoundError("NOT_FOUND", "YouTube channel not found"), 404, "YouTube channel not found"),
        (TokenExchangeError("TOKEN_EXCHANGE_FAILED", "invalid_grant detail"), 502, TOKEN_EXCHANGE_ERROR),
        (FetchTimeoutError("https://api.github.com/user/repos", 15000), 500, TIMEOUT_ERROR),
        (UpstreamError("UPSTREAM_ERROR", "GitHub API error: 500", 500), 500, GENERIC_ERROR),
        (RuntimeError("KeyError in parser"), 500, GENERIC_ERROR),
    ],
)
def test_error_response_mapping(error: BaseException, status: int, message: str) -> None:
    assert error_response(error) == (status, {"success": False, "error": message}, {})


def test_rate_limit_error_sets_retry_after() -> None:
    status, body, headers = error_response(RateLimitError("RATE_LIMITED", "Slow down", retry_after=42))

    assert status == 429
    assert body == {"success": False, "error": "Slow down"}
    assert headers == {"Retry-After": "42"}


# ============================================================================
# Routes
# ============================================================================


def test_success_envelope_is_camel_cased() -> None:
    github = MagicMock()
    github.fetch_analytics = AsyncMock(return_value=github_analytics())
    client = make_client(Dashboard(github=github))

    response = client.get("/api/github/analytics")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["metrics"]["totalStars"] == 10
    assert body["data"]["starHistory"] == []


def test_missing_window_is_rejected() -> None:
    client = make_client(Dashboard())

    response = client.get("/api/blog/analytics")

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "Missing required parameters: startDate and endDate are required",
    }


def test_malformed_window_is_rejected() -> None:
    client = make_client(Dashboard())

    response = client.get("/api/tennis-scorigami/analytics?startDate=2024-1-1&endDate=2024-01-30")

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid date format. Use YYYY-MM-DD"


def test_window_is_passed_through() -> None:
    ga = MagicMock()
    ga.fetch_analytics = AsyncMock(return_value={"ok": True})
    client = make_client(Dashboard(google_analytics=ga))

    response = client.get(f"/api/blog/analytics{QUERY}")

    assert response.json() == {"success": True, "data": {"ok": True}}
    ga.fetch_analytics.assert_awaited_once_with(DateWindow(date(2024, 1, 1), date(2024, 1, 30)))


def test_packages_window_defaults_to_last_thirty_days() -> None:
    packages = MagicMock()
    packages.fetch_analytics = AsyncMock(return_value={})
    client = make_client(Dashboard(packages=packages))

    response = client.get("/api/packages/analytics")

    assert response.status_code == 200
    [window] = packages.fetch_analytics.await_args.args
    assert window.days == 30
    assert window.end == date.today()


def test_packages_window_defaults_the_missing_start() -> None:
    packages = MagicMock()
    packages.fetch_analytics = AsyncMock(return_value={})
    client = make_client(Dashboard(packages=packages))

    response = client.get("/api/packages/analytics?endDate=2024-01-30")

    assert response.status_code == 200
    packages.fetch_analytics.assert_awaited_once_with(DateWindow(date(2024, 1, 1), date(2024, 1, 30)))


def test_packages_window_defaults_the_missing_end() -> None:
    packages = MagicMock()
    packages.fetch_analytics = AsyncMock(return_value={})
    client = make_client(Dashboard(packages=packages))
    start = date.today() - timedelta(days=6)

    response = client.get(f"/api/packages/analytics?startDate={start.isoformat()}")

    assert response.status_code == 200
    packages.fetch_analytics.assert_awaited_once_with(DateWindow(start, date.today()))


def test_packages_window_still_validates_the_given_side() -> None:
    client = make_client(Dashboard(packages=MagicMock()))

    response = client.get("/api/packages/analytics?endDate=2024-1-30")

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid date format. Use YYYY-MM-DD"


def test_unconfigured_source() -> None:
    client = make_client(
        Dashboard(config_errors={"youtube": ConfigError("Missing YOUTUBE_API_KEY environment variable", "youtube")})
    )

    response = client.get("/api/youtube/analytics")

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Missing YOUTUBE_API_KEY environment variable"}


def test_vanity_mirror_not_configured() -> None:
    response = make_client(Dashboard()).get(f"/api/vanity-mirror/analytics{QUERY}")

    assert response.status_code == 503
    assert response.json()["error"] == "Vanity Mirror analytics not configured"


@pytest.mark.parametrize(
    ("error", "status", "message"),
    [
        (AuthError("UNAUTHENTICATED", "GitHub authentication failed. Check your GITHUB_TOKEN."), 401, "GitHub authentication failed. Check your GITHUB_TOKEN."),
        (UpstreamError("UPSTREAM_ERROR", "GitHub API error: 503", 503), 500, GENERIC_ERROR),
        (FetchTimeoutError("https://api.github.com/user/repos", 15000), 500, TIMEOUT_ERROR),
        (ValueError("unexpected payload"), 500, GENERIC_ERROR),
    ],
)
def test_upstream_failures_are_mapped(error: BaseException, status: int, message: str) -> None:
    response = github_failing_with(error).get("/api/github/analytics")

    assert response.status_code == status
    assert response.json() == {"success": False, "error": message}


def test_upstream_rate_limit_carries_retry_after() -> None:
    error = RateLimitError("RATE_LIMITED", "GitHub API rate limit exceeded", retry_after=120)

    response = github_failing_with(error).get("/api/github/analytics")

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "120"


def test_requests_are_rate_limited_per_client() -> None:
    github = MagicMock()
    github.fetch_analytics = AsyncMock(return_value=github_analytics())
    client = make_client(Dashboard(github=github, rate_limiter=RateLimiter(max_requests=2)))
    headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}

    assert client.get("/api/github/analytics", headers=headers).status_code == 200
    assert client.get("/api/github/analytics", headers=headers).status_code == 200
    limited = client.get("/api/github/analytics", headers=headers)

    assert limited.status_code == 429
    assert limited.json() == {"success": False, "error": "Rate limit exceeded. Please try again later."}
    assert 1 <= int(limited.headers["Retry-After"]) <= 60
    # The limiter runs before the upstream is touched
    assert github.fetch_analytics.await_count == 2

    other = client.get("/api/github/analytics", headers={"X-Real-IP": "198.51.100.2"})
    assert other.status_code == 200


def test_injected_rate_limiter_is_kept() -> None:
    limiter = RateLimiter(max_requests=2)

    dashboard = Dashboard(rate_limiter=limiter)

    assert dashboard.rate_limiter is limiter


def test_rate_limit_check_runs_on_the_event_loop_thread() -> None:
    threads: dict[str, int] = {}

    class RecordingLimiter(RateLimiter):
        def check(self, key: str) -> RateLimitResult:
            threads["limiter"] = threading.get_ident()
            return super().check(key)

    def record_route_thread() -> GitHubAnalytics:
        threads["route"] = threading.get_ident()
        return github_analytics()

    github = MagicMock()
    github.fetch_analytics = AsyncMock(side_effect=record_route_thread)
    client = make_client(Dashboard(github=github, rate_limiter=RecordingLimiter()))

    assert client.get("/api/github/analytics").status_code == 200
    assert threads["limiter"] == threads["route"]


def test_failing_github_upstream_is_a_generic_500(mock_upstream: MockUpstream) -> None:
    mock_upstream.add("GET", f"{GITHUB_API}/users/octocat/repos", status=500, json={"message": "boom"})
    github = GitHubClient(
        GitHubConfig(username="octocat"),
        transport=mock_upstream.transport("github", GITHUB_MESSAGES),
    )

    response = make_client(Dashboard(github=github)).get("/api/github/analytics")

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": GENERIC_ERROR}


def test_overview_route() -> None:
    github = MagicMock()
    github.fetch_analytics = AsyncMock(return_value=github_analytics())
    client = make_client(Dashboard(github=github))

    response = client.get(f"/api/overview/analytics{QUERY}")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["metrics"]["githubStars"] == 10
    assert data["metrics"]["totalSources"] == 5
    assert data["metrics"]["connectedSources"] == 1
    assert set(data["rawData"]) == {"blog", "github", "packages", "tennisScorigami", "walkInTheParquet"}
    assert data["rawData"]["github"]["metrics"]["totalStars"] == 10
