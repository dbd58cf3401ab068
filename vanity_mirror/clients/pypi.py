"""PyPI download statistics via pypistats.org."""

from collections import defaultdict

from vanity_mirror.clients.registry import RegistryClient
from vanity_mirror.metrics import DateWindow, windowed_sum
from vanity_mirror.types.packages import DailyDownloads, PackageDownloads

PYPISTATS_API = "https://pypistats.org/api/packages"


def daily_series(rows: list[dict], window: DateWindow) -> list[DailyDownloads]:
    """
    Collapse pypistats ``overall`` rows into one ascending series.

    The ``without_mirrors`` category is preferred; when it is absent every
    row is summed per date. Only dates inside ``window`` are kept.
    """
    preferred = [row for row in rows if row.get("category") == "without_mirrors"]
    rows = preferred or rows

    per_day: dict[str, int] = defaultdict(int)
    for row in rows:
        per_day[row["date"]] += row["downloads"]

    return [
        DailyDownloads(date=day, downloads=count)
        for day, count in sorted(per_day.items())
        if window.start_iso <= day <= window.end_iso
    ]


class PyPIClient(RegistryClient):
    """
    Daily downloads from pypistats.

    pypistats keeps roughly 180 days of history; older windows come back
    empty rather than failing.
    """

    registry = "pypi"
    label = "PyPI"

    async def _fetch(self, name: str, window: DateWindow) -> PackageDownloads:
        data = await self.transport.request_json(
            "GET", f"{PYPISTATS_API}/{name}/overall", params={"mirrors": "true"}
        )

        daily = daily_series(data.get("data", []), window)
        counts = [entry.downloads for entry in daily]

        return PackageDownloads(
            name=name,
            registry="pypi",
            total_downloads=sum(counts),
            weekly_downloads=windowed_sum(counts, 7),
            monthly_downloads=windowed_sum(counts, 30),
            daily_downloads=daily,
            url=f"https://pypi.org/project/{name}/",
        )
