"""Collaborator interfaces used by the server controller, plus shared HTTP helpers."""

import logging
from typing import Any, Optional, Protocol

import httpx

from xpanel import config
from xpanel.log_redact import redact_url
from xpanel.models import AssetKind, StatusSnapshot

http_logger = logging.getLogger("xpanel.http")


class StatusCollector(Protocol):
    async def __call__(self, previous: Optional[StatusSnapshot]) -> StatusSnapshot: ...


class ReleaseSource(Protocol):
    async def fetch_versions(self, kind: AssetKind) -> list[str]: ...

    async def install(self, kind: AssetKind, version: str) -> None: ...


class ProcessSupervisor(Protocol):
    async def stop(self) -> None: ...

    async def restart(self) -> None: ...


class LogReader(Protocol):
    async def tail(self, count: int) -> list[str]: ...


class PanelStorage(Protocol):
    async def read_database_bytes(self) -> bytes: ...

    async def read_config_json(self) -> Any: ...


def github_headers() -> dict[str, str]:
    headers = {"Accept": "application/vnd.github+json"}
    if config.GITHUB_TOKEN:
        headers["Authorization"] = f"Bearer {config.GITHUB_TOKEN}"
    return headers


async def _log_outbound(request: httpx.Request) -> None:
    http_logger.debug("GitHub request %s %s", request.method, redact_url(str(request.url)))


async def _log_reply(response: httpx.Response) -> None:
    level = logging.INFO if response.is_success else logging.WARNING
    http_logger.log(
        level,
        "GitHub reply %s %s -> %d",
        response.request.method,
        redact_url(str(response.request.url)),
        response.status_code,
    )


def http_client(timeout_seconds: float, **kwargs: Any) -> httpx.AsyncClient:
    """Build an AsyncClient that logs each request and reply with secrets masked."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout=timeout_seconds),
        follow_redirects=True,
        event_hooks={"request": [_log_outbound], "response": [_log_reply]},
        **kwargs,
    )
