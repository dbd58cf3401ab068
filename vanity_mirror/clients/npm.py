"""npm registry download statistics."""

from urllib.parse import quote

from vanity_mirror.clients.registry import RegistryClient
from vanity_mirror.metrics import DateWindow, windowed_sum
from vanity_mirror.types.packages import DailyDownloads, PackageDownloads

NPM_DOWNLOADS_API = "https://api.npmjs.org/downloads/range"


class NpmClient(RegistryClient):
    """Daily downloads from the npm ``downloads/range`` endpoint."""

    registry = "npm"
    label = "npm"

    async def _fetch(self, name: str, window: DateWindow) -> PackageDownloads:
        # Scoped names need the slash encoded: @scope/pkg -> %40scope%2Fpkg
        url = f"{NPM_DOWNLOADS_API}/{window.start_iso}:{window.end_iso}/{quote(name, safe='')}"
        data = await self.transport.request_json("GET", url)

        daily = [
            DailyDownloads(date=entry["day"], downloads=entry["downloads"])
            for entry in data.get("downloads", [])
        ]
        counts = [entry.downloads for entry in daily]

        return PackageDownloads(
            name=name,
            registry="npm",
            total_downloads=sum(counts),
            weekly_downloads=windowed_sum(counts, 7),
            monthly_downloads=windowed_sum(counts, 30),
            daily_downloads=daily,
            url=f"https://www.npmjs.com/package/{name}",
        )
