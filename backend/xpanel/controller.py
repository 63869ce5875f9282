"""Server controller: the operations exposed to the panel, each returning a Msg."""

from __future__ import annotations

import re
from dataclasses import dataclass

from xpanel import config
from xpanel.models import AssetKind, Msg
from xpanel.orchestrator import InstallOrchestrator
from xpanel.services import LogReader, PanelStorage, ProcessSupervisor, ReleaseSource
from xpanel.state import StatusPoller
from xpanel.versions import VersionCacheSet

FILENAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def is_valid_filename(filename: str) -> bool:
    return bool(FILENAME_PATTERN.match(filename or ""))


@dataclass(frozen=True)
class DatabaseExport:
    filename: str
    content: bytes


class ServerController:
    def __init__(
        self,
        *,
        poller: StatusPoller,
        versions: VersionCacheSet,
        supervisor: ProcessSupervisor,
        releases: ReleaseSource,
        logs: LogReader,
        storage: PanelStorage,
        export_filename: str = config.DB_EXPORT_FILENAME,
        max_log_lines: int = config.MAX_LOG_LINES,
    ) -> None:
        self.poller = poller
        self.versions = versions
        self.releases = releases
        self.logs = logs
        self.storage = storage
        self.export_filename = export_filename
        self.max_log_lines = max(1, max_log_lines)
        self.orchestrator = InstallOrchestrator(supervisor, releases, poller)

    async def get_status(self) -> Msg:
        snapshot = await self.poller.on_status_requested()
        return Msg.ok(snapshot)

    async def get_versions(self, kind: AssetKind) -> Msg:
        kind = AssetKind(kind)

        async def fetch() -> list[str]:
            return await self.releases.fetch_versions(kind)

        try:
            versions = await self.versions.get_versions(kind, fetch)
        except Exception as exc:
            return Msg.fail("Get versions", exc)
        return Msg.ok(versions)

    async def install_asset(self, kind: AssetKind, version: str) -> Msg:
        return await self.orchestrator.install_asset(kind, version)

    async def stop_service(self) -> Msg:
        return await self.orchestrator.stop_service()

    async def restart_service(self) -> Msg:
        return await self.orchestrator.restart_service()

    async def tail_logs(self, count: int) -> Msg:
        bounded = max(1, min(int(count), self.max_log_lines))
        try:
            lines = await self.logs.tail(bounded)
        except Exception as exc:
            return Msg.fail("Get logs", exc)
        return Msg.ok(lines)

    async def export_database(self) -> Msg:
        """On success ``obj`` is a :class:`DatabaseExport`."""
        filename = self.export_filename
        if not is_valid_filename(filename):
            return Msg.fail("Get database", "invalid filename")
        try:
            content = await self.storage.read_database_bytes()
        except Exception as exc:
            return Msg.fail("Get database", exc)
        return Msg.ok(DatabaseExport(filename=filename, content=content))

    async def export_config(self) -> Msg:
        try:
            config_json = await self.storage.read_config_json()
        except Exception as exc:
            return Msg.fail("Get config.json", exc)
        return Msg.ok(config_json)
