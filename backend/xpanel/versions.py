"""Per-asset-kind cache of available release versions."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from xpanel.models import AssetKind
from xpanel.ttl_cache import TTLCache

VersionFetcher = Callable[[], Awaitable[list[str]]]


class VersionCacheSet:
    """One TTL cache per :class:`AssetKind`, refreshed lazily on read.

    A failed fetch leaves the previous (stale) list in place and propagates
    the error, so the next call retries. Concurrent misses on the same kind
    may both fetch; the last store wins.
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[AssetKind, TTLCache[list[str]]] = {kind: TTLCache() for kind in AssetKind}

    def entry(self, kind: AssetKind) -> TTLCache[list[str]]:
        return self._entries[AssetKind(kind)]

    async def get_versions(
        self,
        kind: AssetKind,
        fetch: VersionFetcher,
        now: float | None = None,
    ) -> list[str]:
        now = self._clock() if now is None else now
        entry = self.entry(kind)

        fresh, cached = await entry.get_if_fresh(self._ttl, now)
        if fresh:
            return list(cached or [])

        versions = list(await fetch())
        await entry.store(versions, now)
        return list(versions)
