"""In-memory runtime state for the cached status snapshot and its refresh loop."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from contextlib import suppress
from typing import Optional

from xpanel.models import StatusSnapshot
from xpanel.services import StatusCollector
from xpanel.ttl_cache import is_fresh

logger = logging.getLogger("xpanel.state")


class StatusPoller:
    """Holds the latest status snapshot and refreshes it while the panel is watched.

    Readers always get the last stored snapshot immediately. The background
    tick only calls the collector when a status read happened within
    ``idle_cutoff_seconds``; otherwise it does nothing.
    """

    def __init__(
        self,
        idle_cutoff_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        now: float | None = None,
    ) -> None:
        self._clock = clock
        self._idle_cutoff = idle_cutoff_seconds
        self._lock = asyncio.Lock()
        self._snapshot: Optional[StatusSnapshot] = None
        self._last_requested_at: float = clock() if now is None else now
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def on_status_requested(self, now: float | None = None) -> Optional[StatusSnapshot]:
        now = self._clock() if now is None else now
        async with self._lock:
            self._last_requested_at = now
            return self._snapshot

    async def mark_active(self, now: float | None = None) -> None:
        now = self._clock() if now is None else now
        async with self._lock:
            self._last_requested_at = now

    async def last_requested_at(self) -> float:
        async with self._lock:
            return self._last_requested_at

    async def get_snapshot(self) -> Optional[StatusSnapshot]:
        """Peek at the snapshot without counting as a client read."""
        async with self._lock:
            return self._snapshot

    async def on_tick(self, collect: StatusCollector, now: float | None = None) -> bool:
        """Run one refresh cycle. Returns True when a new snapshot was stored."""
        now = self._clock() if now is None else now
        async with self._lock:
            if not is_fresh(self._last_requested_at, self._idle_cutoff, now):
                return False
            previous = self._snapshot

        try:
            snapshot = await collect(previous)
        except Exception:
            logger.warning("Status refresh failed; keeping previous snapshot", exc_info=True)
            return False

        async with self._lock:
            self._snapshot = snapshot
        return True

    def start(self, collect: StatusCollector, interval_seconds: float) -> None:
        """Start the background refresh task on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(
            self._refresh_loop(collect, interval_seconds),
            name="status-refresh-loop",
        )
        logger.info(
            "Status refresh started interval=%.1fs idle_cutoff=%.0fs",
            interval_seconds,
            self._idle_cutoff,
        )

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        logger.info("Status refresh stopped")

    async def _refresh_loop(self, collect: StatusCollector, interval_seconds: float) -> None:
        while True:
            started = self._clock()
            await self.on_tick(collect)
            elapsed = self._clock() - started
            await asyncio.sleep(max(0.0, interval_seconds - elapsed))
