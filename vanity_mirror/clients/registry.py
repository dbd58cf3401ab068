"""Shared plumbing for the package-registry clients."""

import asyncio
from collections.abc import Awaitable, Callable

import httpx

from vanity_mirror.cache import TTLCache
from vanity_mirror.exceptions import NotFoundError, VanityMirrorError
from vanity_mirror.metrics import DateWindow
from vanity_mirror.transport import AsyncHTTPTransport, ErrorMessages
from vanity_mirror.types.common import BatchResult, ItemError
from vanity_mirror.types.packages import PackageDownloads, PackageRegistry


def describe_error(error: BaseException) -> str:
    """The human-readable part of an error, without the code prefix."""
    if isinstance(error, VanityMirrorError):
        return error.message
    return str(error) or type(error).__name__


async def settle(
    names: list[str],
    fetch: Callable[[str], Awaitable[PackageDownloads]],
) -> BatchResult[PackageDownloads]:
    """
    Run ``fetch`` for every name concurrently and split the outcomes.

    One failing package never cancels or fails its siblings.
    """
    result: BatchResult[PackageDownloads] = BatchResult()
    if not names:
        return result

    outcomes = await asyncio.gather(*(fetch(name) for name in names), return_exceptions=True)
    for name, outcome in zip(names, outcomes):
        if isinstance(outcome, BaseException):
            result.errors.append(ItemError(name=name, error=describe_error(outcome)))
        else:
            result.successful.append(outcome)
    return result


class RegistryClient:
    """
    Base class for a download-statistics client of one registry.

    Subclasses implement ``_fetch`` for a single package; caching, not-found
    wording and the all-settled batch live here.
    """

    registry: PackageRegistry
    label: str

    def __init__(
        self,
        cache: TTLCache | None = None,
        transport: AsyncHTTPTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the registry client.

        Args:
            cache: Cache for per-package results
            transport: Async HTTP transport for making requests
            http_client: Shared httpx client for the default transport
        """
        self.cache = cache if cache is not None else TTLCache(namespace=self.registry)
        self.transport = transport or AsyncHTTPTransport(
            self.registry,
            messages=ErrorMessages(
                rate_limited=f"{self.label} rate limit exceeded",
                server_error=f"{self.label} API error",
            ),
            http_client=http_client,
        )

    def cache_key(self, name: str, window: DateWindow) -> str:
        return f"{self.registry}:{name}:{window.cache_key()}"

    async def _fetch(self, name: str, window: DateWindow) -> PackageDownloads:
        raise NotImplementedError

    async def fetch_package(self, name: str, window: DateWindow) -> PackageDownloads:
        """
        Get download statistics for one package.

        Raises:
            NotFoundError: The registry does not know the package
        """
        cache_key = self.cache_key(name, window)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            result = await self._fetch(name, window)
        except NotFoundError as e:
            raise NotFoundError(
                "PACKAGE_NOT_FOUND", f"{self.label} package '{name}' not found", self.registry
            ) from e

        self.cache.set(cache_key, result)
        return result

    async def fetch_packages(
        self, names: list[str], window: DateWindow
    ) -> BatchResult[PackageDownloads]:
        """Fetch every package concurrently, isolating failures."""
        return await settle(names, lambda name: self.fetch_package(name, window))
