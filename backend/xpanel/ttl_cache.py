"""Single-slot in-memory TTL cache."""

from __future__ import annotations

import asyncio
import time
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class TTLCache(Generic[T]):
    """One value plus the monotonic time it was last stored.

    The value is only meaningful once ``refreshed_at`` is set; a cache that
    was never stored reports ``None`` and is never fresh.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._value: Optional[T] = None
        self._refreshed_at: Optional[float] = None

    async def get(self) -> Optional[T]:
        async with self._lock:
            if self._refreshed_at is None:
                return None
            return self._value

    async def refreshed_at(self) -> Optional[float]:
        async with self._lock:
            return self._refreshed_at

    async def is_fresh(self, ttl_seconds: float, now: float | None = None) -> bool:
        now = time.monotonic() if now is None else now
        async with self._lock:
            return is_fresh(self._refreshed_at, ttl_seconds, now)

    async def get_if_fresh(self, ttl_seconds: float, now: float | None = None) -> tuple[bool, Optional[T]]:
        """Return ``(True, value)`` when fresh, ``(False, None)`` otherwise, in one lock hold."""
        now = time.monotonic() if now is None else now
        async with self._lock:
            if is_fresh(self._refreshed_at, ttl_seconds, now):
                return True, self._value
            return False, None

    async def store(self, value: T, now: float | None = None) -> None:
        now = time.monotonic() if now is None else now
        async with self._lock:
            self._value = value
            self._refreshed_at = now


def is_fresh(refreshed_at: Optional[float], ttl_seconds: float, now: float) -> bool:
    if refreshed_at is None:
        return False
    return (now - refreshed_at) <= ttl_seconds
