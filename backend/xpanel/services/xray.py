"""Supervisor for the Xray engine subprocess."""

from __future__ import annotations

import asyncio
import logging
import platform
import re
from pathlib import Path
from typing import Optional

from xpanel import config
from xpanel.models import XrayInfo, XrayState

logger = logging.getLogger("xpanel.services.xray")

_GOARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "i386": "386",
    "i686": "386",
    "s390x": "s390x",
}
_VERSION_PATTERN = re.compile(r"Xray\s+(\S+)")


class XrayProcessError(RuntimeError):
    """Raised when the engine cannot be started or stopped."""


def binary_name(machine: str | None = None) -> str:
    machine = (machine or platform.machine()).lower()
    return f"xray-linux-{_GOARCH.get(machine, machine)}"


def binary_path() -> Path:
    return Path(config.XRAY_BIN_FOLDER) / binary_name()


class XrayProcess:
    def __init__(
        self,
        binary: str | Path,
        config_path: str | Path,
        log_path: str | Path,
        *,
        start_grace_seconds: float = config.XRAY_START_GRACE_SECONDS,
        stop_timeout_seconds: float = config.XRAY_STOP_TIMEOUT_SECONDS,
    ) -> None:
        self.binary = Path(binary)
        self.config_path = Path(config_path)
        self.log_path = Path(log_path)
        self._start_grace = start_grace_seconds
        self._stop_timeout = stop_timeout_seconds
        self._lock = asyncio.Lock()
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._error = ""
        self._version: Optional[str] = None

    def is_running(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    def state(self) -> XrayState:
        self._reap_exited()
        if self.is_running():
            return XrayState.RUNNING
        if self._error:
            return XrayState.ERROR
        return XrayState.STOP

    def info(self) -> XrayInfo:
        return XrayInfo(state=self.state(), error_msg=self._error, version=self._version or "Unknown")

    async def start(self) -> None:
        async with self._lock:
            await self._start_unlocked()

    async def stop(self) -> None:
        async with self._lock:
            await self._stop_unlocked()

    async def restart(self) -> None:
        async with self._lock:
            await self._stop_unlocked()
            await self._start_unlocked()

    async def _start_unlocked(self) -> None:
        if self.is_running():
            return
        if not self.binary.exists():
            raise self._fail(f"xray binary not found at {self.binary}")
        if not self.config_path.exists():
            raise self._fail(f"xray config not found at {self.config_path}")

        self._version = await self._read_version()
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        with self.log_path.open("ab") as log_file:
            proc = await asyncio.create_subprocess_exec(
                str(self.binary),
                "run",
                "-c",
                str(self.config_path),
                stdout=log_file,
                stderr=asyncio.subprocess.STDOUT,
                cwd=str(self.binary.parent),
            )

        try:
            code = await asyncio.wait_for(proc.wait(), timeout=self._start_grace)
        except asyncio.TimeoutError:
            self._proc = proc
            self._error = ""
            logger.info("xray started pid=%d version=%s", proc.pid, self._version)
            return
        raise self._fail(f"xray exited immediately with code {code}; see {self.log_path}")

    async def _stop_unlocked(self) -> None:
        proc = self._proc
        if proc is None or proc.returncode is not None:
            self._proc = None
            self._error = ""
            return

        try:
            proc.terminate()
            await asyncio.wait_for(proc.wait(), timeout=self._stop_timeout)
        except ProcessLookupError:
            pass
        except asyncio.TimeoutError:
            logger.warning("xray did not exit after %.1fs; killing pid=%d", self._stop_timeout, proc.pid)
            proc.kill()
            await proc.wait()
        self._proc = None
        self._error = ""
        logger.info("xray stopped")

    async def _read_version(self) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                str(self.binary),
                "-version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
            output, _ = await proc.communicate()
        except OSError as exc:
            raise self._fail(f"cannot execute {self.binary}: {exc}") from exc
        match = _VERSION_PATTERN.search(output.decode("utf-8", errors="replace"))
        return match.group(1) if match else "Unknown"

    def _reap_exited(self) -> None:
        """Record an engine exit that did not come from stop()."""
        proc = self._proc
        if proc is None or proc.returncode is None:
            return
        self._proc = None
        self._error = f"xray exited unexpectedly with code {proc.returncode}"
        logger.warning("%s; see %s", self._error, self.log_path)

    def _fail(self, message: str) -> XrayProcessError:
        self._error = message
        logger.warning("xray start failed: %s", message)
        return XrayProcessError(message)
