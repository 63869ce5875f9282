"""Host and engine status collection backed by psutil."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Optional, TypeVar

import psutil

from xpanel.models import NetIO, NetTraffic, StatusSnapshot, Usage, XrayInfo

logger = logging.getLogger("xpanel.services.status")

T = TypeVar("T")


def _measure(name: str, probe: Callable[[], T], default: T) -> T:
    try:
        return probe()
    except (psutil.Error, OSError, AttributeError, ValueError) as exc:
        logger.debug("Status probe %s unavailable (%s)", name, exc.__class__.__name__)
        return default


def _rate(current: int, previous: int, elapsed: float) -> int:
    if elapsed <= 0 or current < previous:
        return 0
    return int((current - previous) / elapsed)


class SystemStatusCollector:
    """Builds a :class:`StatusSnapshot`; never raises.

    Network rates are derived from the previous snapshot's traffic totals, so
    the first snapshot after startup reports zero rates.
    """

    def __init__(
        self,
        xray_info: Optional[Callable[[], XrayInfo]] = None,
        *,
        disk_path: str = "/",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._xray_info = xray_info
        self._disk_path = disk_path
        self._clock = clock

    async def __call__(self, previous: Optional[StatusSnapshot]) -> StatusSnapshot:
        return await asyncio.to_thread(self.collect, previous)

    def collect(self, previous: Optional[StatusSnapshot]) -> StatusSnapshot:
        now = self._clock()

        vm = _measure("memory", psutil.virtual_memory, None)
        swap = _measure("swap", psutil.swap_memory, None)
        disk = _measure("disk", lambda: psutil.disk_usage(self._disk_path), None)
        counters = _measure("net_io", psutil.net_io_counters, None)
        boot_time = _measure("boot_time", psutil.boot_time, now)

        traffic = NetTraffic(
            sent=int(getattr(counters, "bytes_sent", 0)),
            recv=int(getattr(counters, "bytes_recv", 0)),
        )
        net_io = NetIO()
        if previous is not None:
            elapsed = now - previous.t
            net_io = NetIO(
                up=_rate(traffic.sent, previous.net_traffic.sent, elapsed),
                down=_rate(traffic.recv, previous.net_traffic.recv, elapsed),
            )

        return StatusSnapshot(
            t=now,
            cpu=float(_measure("cpu", lambda: psutil.cpu_percent(interval=None), 0.0)),
            cpu_cores=int(_measure("cpu_count", lambda: psutil.cpu_count(logical=False) or psutil.cpu_count() or 0, 0)),
            mem=Usage(current=int(getattr(vm, "used", 0)), total=int(getattr(vm, "total", 0))),
            swap=Usage(current=int(getattr(swap, "used", 0)), total=int(getattr(swap, "total", 0))),
            disk=Usage(current=int(getattr(disk, "used", 0)), total=int(getattr(disk, "total", 0))),
            xray=self._xray_info() if self._xray_info is not None else XrayInfo(),
            uptime=max(0, int(now - boot_time)),
            loads=[round(value, 2) for value in _measure("loadavg", psutil.getloadavg, (0.0, 0.0, 0.0))],
            tcp_count=len(_measure("tcp", lambda: psutil.net_connections("tcp"), [])),
            udp_count=len(_measure("udp", lambda: psutil.net_connections("udp"), [])),
            net_io=net_io,
            net_traffic=traffic,
        )
