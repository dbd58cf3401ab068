"""
Tests for the package-registry clients and cross-registry analytics.

Feature: vanity-mirror
"""

import asyncio
from datetime import date

import pytest

from vanity_mirror.clients.crates import CRATES_API, CratesClient
from vanity_mirror.clients.npm import NPM_DOWNLOADS_API, NpmClient
from vanity_mirror.clients.packages import PackagesClient, period_trend, top_package
from vanity_mirror.clients.pypi import PYPISTATS_API, PyPIClient, daily_series
from vanity_mirror.config import PackagesConfig
from vanity_mirror.exceptions import NotConfiguredError, UpstreamError
from vanity_mirror.metrics import DateWindow, previous_period
from vanity_mirror.testing import (
    MockUpstream,
    crate_payload,
    npm_range_payload,
    pypistats_payload,
)
from vanity_mirror.types.packages import PackageDownloads


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def npm_url(name: str, window: DateWindow) -> str:
    return f"{NPM_DOWNLOADS_API}/{window.start_iso}:{window.end_iso}/{name}"


def add_npm(upstream: MockUpstream, name: str, window: DateWindow, daily: int) -> None:
    upstream.add(
        "GET", npm_url(name, window), json=npm_range_payload(name, window.start, [daily] * window.days)
    )


def package(name: str, registry: str, total: int, weekly: int = 0) -> PackageDownloads:
    return PackageDownloads(
        name=name,
        registry=registry,
        total_downloads=total,
        weekly_downloads=weekly,
        monthly_downloads=total,
        url="",
    )


# ============================================================================
# Registry clients
# ============================================================================


def test_npm_weekly_and_monthly_are_trailing_sums(mock_upstream: MockUpstream, window: DateWindow) -> None:
    counts = list(range(1, 31))
    mock_upstream.add(
        "GET", npm_url("react", window), json=npm_range_payload("react", window.start, counts)
    )
    client = NpmClient(transport=mock_upstream.transport("npm"))

    result = asyncio.run(client.fetch_package("react", window))

    assert result.total_downloads == sum(counts)
    assert result.weekly_downloads == sum(range(24, 31))
    assert result.monthly_downloads == sum(counts)
    assert result.url == "https://www.npmjs.com/package/react"
    assert result.daily_downloads[0].date == "2024-01-01"


def test_npm_batch_isolates_failures(mock_upstream: MockUpstream, window: DateWindow) -> None:
    add_npm(mock_upstream, "react", window, 10)
    add_npm(mock_upstream, "lodash", window, 5)
    client = NpmClient(transport=mock_upstream.transport("npm"))

    result = asyncio.run(client.fetch_packages(["react", "does-not-exist", "lodash"], window))

    assert sorted(p.name for p in result.successful) == ["lodash", "react"]
    assert len(result.errors) == 1
    assert result.errors[0].name == "does-not-exist"
    assert result.errors[0].error == "npm package 'does-not-exist' not found"


def test_npm_scoped_names_are_encoded(mock_upstream: MockUpstream, window: DateWindow) -> None:
    mock_upstream.add(
        "GET",
        f"{NPM_DOWNLOADS_API}/{window.start_iso}:{window.end_iso}/%40scope%2Fpkg",
        json=npm_range_payload("@scope/pkg", window.start, [1]),
    )
    client = NpmClient(transport=mock_upstream.transport("npm"))

    result = asyncio.run(client.fetch_package("@scope/pkg", window))

    assert result.total_downloads == 1
    assert b"%40scope%2Fpkg" in mock_upstream.requests[0].url.raw_path


def test_pypi_prefers_without_mirrors_and_clips_window() -> None:
    window = DateWindow(date(2024, 1, 2), date(2024, 1, 3))
    rows = pypistats_payload("requests", date(2024, 1, 1), [1, 2, 3, 4])["data"]

    series = daily_series(rows, window)

    assert [(entry.date, entry.downloads) for entry in series] == [
        ("2024-01-02", 2),
        ("2024-01-03", 3),
    ]


def test_pypi_sums_categories_when_unsplit() -> None:
    window = DateWindow(date(2024, 1, 1), date(2024, 1, 1))
    rows = [
        {"category": "Linux", "date": "2024-01-01", "downloads": 4},
        {"category": "Windows", "date": "2024-01-01", "downloads": 6},
    ]

    assert daily_series(rows, window)[0].downloads == 10


def test_pypi_client(mock_upstream: MockUpstream, window: DateWindow) -> None:
    mock_upstream.add(
        "GET",
        f"{PYPISTATS_API}/requests/overall",
        json=pypistats_payload("requests", window.start, [2] * window.days),
    )
    client = PyPIClient(transport=mock_upstream.transport("pypi"))

    result = asyncio.run(client.fetch_package("requests", window))

    assert result.total_downloads == 60
    assert result.weekly_downloads == 14
    assert mock_upstream.requests[0].url.params["mirrors"] == "true"


def test_crates_estimates_and_pacing(mock_upstream: MockUpstream, window: DateWindow) -> None:
    for name in ("serde", "tokio"):
        mock_upstream.add("GET", f"{CRATES_API}/{name}", json=crate_payload(name, 1000, 900))
    sleep = RecordingSleep()
    client = CratesClient(transport=mock_upstream.transport("crates"), sleep=sleep)

    result = asyncio.run(client.fetch_packages(["serde", "missing", "tokio"], window))

    serde = result.successful[0]
    assert serde.weekly_downloads == 70
    assert serde.monthly_downloads == 300
    assert serde.total_downloads == 1000
    assert serde.daily_downloads == []
    assert [e.name for e in result.errors] == ["missing"]
    assert result.errors[0].error == "crates.io package 'missing' not found"
    # No pause after the last crate
    assert sleep.delays == [1.0, 1.0]


def test_crates_cached_regardless_of_window(mock_upstream: MockUpstream, window: DateWindow) -> None:
    mock_upstream.add("GET", f"{CRATES_API}/serde", json=crate_payload("serde"))
    client = CratesClient(transport=mock_upstream.transport("crates"), sleep=RecordingSleep())

    async def run() -> None:
        await client.fetch_package("serde", window)
        await client.fetch_package("serde", previous_period(window))

    asyncio.run(run())
    assert len(mock_upstream.requests) == 1


# ============================================================================
# Cross-registry analytics
# ============================================================================


def packages_client(upstream: MockUpstream, config: PackagesConfig, sleep=None) -> PackagesClient:
    return PackagesClient(
        config,
        npm=NpmClient(transport=upstream.transport("npm")),
        pypi=PyPIClient(transport=upstream.transport("pypi")),
        crates=CratesClient(transport=upstream.transport("crates"), sleep=sleep or RecordingSleep()),
    )


def test_packages_analytics(mock_upstream: MockUpstream, window: DateWindow) -> None:
    previous = previous_period(window)
    add_npm(mock_upstream, "react", window, 10)
    add_npm(mock_upstream, "react", previous, 5)
    mock_upstream.add(
        "GET",
        f"{PYPISTATS_API}/requests/overall",
        json=pypistats_payload("requests", previous.start, [2] * (previous.days + window.days)),
    )
    mock_upstream.add("GET", f"{CRATES_API}/serde", json=crate_payload("serde", 1000, 900))
    client = packages_client(
        mock_upstream, PackagesConfig(npm=["react"], pypi=["requests"], crates=["serde"])
    )

    analytics = asyncio.run(client.fetch_analytics(window))

    assert [p.name for p in analytics.packages] == ["serde", "react", "requests"]
    assert analytics.metrics.total_downloads == 1000 + 300 + 60
    assert analytics.metrics.weekly_downloads == 70 + 70 + 14
    assert analytics.metrics.package_count == 3
    # npm + PyPI: 360 now against 210 before
    assert analytics.metrics.weekly_trend == 71
    assert analytics.top_package.name == "serde"
    assert analytics.top_package.weekly_downloads == 70
    assert len(analytics.time_series) == 30
    first = analytics.time_series[0]
    assert (first.date, first.npm, first.pypi, first.crates) == ("2024-01-01", 10, 2, 0)


def test_partial_failure_still_reports(mock_upstream: MockUpstream, window: DateWindow) -> None:
    add_npm(mock_upstream, "react", window, 10)
    add_npm(mock_upstream, "react", previous_period(window), 10)
    client = packages_client(mock_upstream, PackagesConfig(npm=["react", "ghost"]))

    analytics = asyncio.run(client.fetch_analytics(window))

    assert [p.name for p in analytics.packages] == ["react"]
    assert analytics.metrics.weekly_trend == 0


def test_every_package_failing_is_an_error(mock_upstream: MockUpstream, window: DateWindow) -> None:
    client = packages_client(mock_upstream, PackagesConfig(npm=["ghost-a"], crates=["ghost-b"]))

    with pytest.raises(UpstreamError) as exc_info:
        asyncio.run(client.fetch_analytics(window))

    assert exc_info.value.code == "ALL_PACKAGES_FAILED"
    assert "ghost-a" in exc_info.value.message
    assert "ghost-b" in exc_info.value.message


def test_no_packages_configured(mock_upstream: MockUpstream, window: DateWindow) -> None:
    client = packages_client(mock_upstream, PackagesConfig())

    with pytest.raises(NotConfiguredError) as exc_info:
        asyncio.run(client.fetch_analytics(window))

    assert exc_info.value.status_code == 503
    assert mock_upstream.requests == []


def test_top_package_and_trend_helpers() -> None:
    assert top_package([]) is None
    top = top_package([package("a", "npm", 5, weekly=1), package("b", "pypi", 9, weekly=2)])
    assert (top.name, top.registry, top.weekly_downloads) == ("b", "pypi", 2)

    # "b" failed in the previous window, so it is left out of the comparison
    current = [package("a", "npm", 20), package("b", "npm", 1000)]
    previous = [package("a", "npm", 10)]
    assert period_trend(current, previous) == 100
    assert period_trend([], []) == 0
