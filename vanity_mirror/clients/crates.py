"""crates.io download statistics."""

import asyncio
from collections.abc import Awaitable, Callable

import httpx

from vanity_mirror.cache import TTLCache
from vanity_mirror.clients.registry import RegistryClient, describe_error
from vanity_mirror.metrics import DateWindow, round_half_up
from vanity_mirror.transport import AsyncHTTPTransport
from vanity_mirror.types.common import BatchResult, ItemError
from vanity_mirror.types.packages import PackageDownloads

CRATES_API = "https://crates.io/api/v1/crates"

# crates.io asks API users for at most one request per second
REQUEST_INTERVAL = 1.0
RECENT_DAYS = 90


class CratesClient(RegistryClient):
    """
    Lifetime and 90-day downloads from crates.io.

    crates.io has no daily breakdown and ignores dates, so results are cached
    per crate and the weekly/monthly figures are estimates.
    """

    registry = "crates"
    label = "crates.io"

    def __init__(
        self,
        cache: TTLCache | None = None,
        transport: AsyncHTTPTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        super().__init__(cache, transport, http_client)
        self._sleep = sleep

    def cache_key(self, name: str, window: DateWindow) -> str:
        return f"crates:{name}"

    async def _fetch(self, name: str, window: DateWindow) -> PackageDownloads:
        data = await self.transport.request_json("GET", f"{CRATES_API}/{name}")
        crate = data["crate"]

        daily_average = crate.get("recent_downloads", 0) / RECENT_DAYS

        return PackageDownloads(
            name=name,
            registry="crates",
            total_downloads=crate.get("downloads", 0),
            weekly_downloads=round_half_up(daily_average * 7),
            monthly_downloads=round_half_up(daily_average * 30),
            daily_downloads=[],
            url=f"https://crates.io/crates/{name}",
            created_at=crate.get("created_at"),
        )

    async def fetch_packages(
        self, names: list[str], window: DateWindow
    ) -> BatchResult[PackageDownloads]:
        """Fetch crates one at a time, pausing between calls."""
        result: BatchResult[PackageDownloads] = BatchResult()

        for index, name in enumerate(names):
            try:
                result.successful.append(await self.fetch_package(name, window))
            except Exception as e:
                result.errors.append(ItemError(name=name, error=describe_error(e)))

            if index < len(names) - 1:
                await self._sleep(REQUEST_INTERVAL)

        return result
