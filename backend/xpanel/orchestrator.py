"""Stop/install/restart sequencing for the engine and geo-data assets."""

from __future__ import annotations

from xpanel.models import AssetKind, Msg
from xpanel.services import ProcessSupervisor, ReleaseSource
from xpanel.state import StatusPoller

_INSTALL_ACTIONS = {
    AssetKind.XRAY: "Install xray",
    AssetKind.GEOIP: "Install geoip",
    AssetKind.GEOSITE: "Install geosite",
}


class InstallOrchestrator:
    """Drives process control and asset installs, reporting one outcome each.

    Nothing is retried or rolled back. A successful engine install leaves the
    engine stopped until :meth:`restart_service` is called.
    """

    def __init__(self, supervisor: ProcessSupervisor, releases: ReleaseSource, poller: StatusPoller):
        self.supervisor = supervisor
        self.releases = releases
        self.poller = poller

    async def install_asset(self, kind: AssetKind, version: str) -> Msg:
        kind = AssetKind(kind)
        action = _INSTALL_ACTIONS[kind]
        await self.poller.mark_active()

        if kind is AssetKind.XRAY:
            try:
                await self.supervisor.stop()
            except Exception as exc:
                return Msg.fail(action, exc)

        try:
            await self.releases.install(kind, version)
        except Exception as exc:
            return Msg.fail(action, exc)
        return Msg.result(action)

    async def stop_service(self) -> Msg:
        await self.poller.mark_active()
        try:
            await self.supervisor.stop()
        except Exception as exc:
            return Msg.fail("Stop xray", exc)
        return Msg.ok(msg="Xray stopped")

    async def restart_service(self) -> Msg:
        try:
            await self.supervisor.restart()
        except Exception as exc:
            return Msg.fail("Restart xray", exc)
        return Msg.ok(msg="Xray restarted")
