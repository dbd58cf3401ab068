"""
In-process TTL cache.

Each upstream client owns one TTLCache. Entries expire lazily: a stale entry
is only removed when it is next read. There is no size bound; the key space is
limited by the configured repositories, packages and properties.
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from vanity_mirror.logging import log_cache_event

T = TypeVar("T")

DEFAULT_TTL = 5 * 60.0  # seconds
SHORT_TTL = 60.0


@dataclass
class CacheEntry(Generic[T]):
    """A cached value and the clock reading after which it is stale."""

    data: T
    expires_at: float


class TTLCache:
    """
    Key/value store whose entries are valid for ``ttl`` seconds.

    A value stored at time T is returned for reads strictly before T + ttl;
    a read at or after T + ttl treats it as absent and drops it.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        namespace: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the cache.

        Args:
            ttl: Time-to-live in seconds
            namespace: Label used in cache log lines (usually the client name)
            clock: Monotonic clock, injectable for tests
        """
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        self.ttl = ttl
        self.namespace = namespace
        self._clock = clock
        self._entries: dict[str, CacheEntry[Any]] = {}

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None when absent or stale."""
        entry = self._entries.get(key)
        if entry is None:
            log_cache_event("miss", self.namespace, key)
            return None

        if self._clock() >= entry.expires_at:
            del self._entries[key]
            log_cache_event("expired", self.namespace, key)
            return None

        log_cache_event("hit", self.namespace, key)
        return entry.data

    def set(self, key: str, value: Any) -> None:
        """Store a value, replacing any previous entry."""
        self._entries[key] = CacheEntry(data=value, expires_at=self._clock() + self.ttl)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    async def get_or_set(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """
        Read-through helper.

        Returns the cached value when fresh; otherwise awaits ``factory()``,
        stores the result and returns it. Exceptions from the factory
        propagate and nothing is cached.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        value = await factory()
        self.set(key, value)
        return value

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
