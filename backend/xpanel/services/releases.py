"""GitHub release listing and installation for the engine and geo-data files."""

from __future__ import annotations

import asyncio
import io
import logging
import os
import platform
import re
import tempfile
import zipfile
from pathlib import Path
from typing import Optional

import httpx

from xpanel import config
from xpanel.models import AssetKind
from xpanel.services import github_headers, http_client
from xpanel.services.xray import binary_name

logger = logging.getLogger("xpanel.services.releases")

_ZIP_ARCH = {
    "x86_64": "64",
    "amd64": "64",
    "aarch64": "arm64-v8a",
    "arm64": "arm64-v8a",
    "armv7l": "arm32-v7a",
    "i386": "32",
    "i686": "32",
    "s390x": "s390x",
}
# release asset name -> installed file name
_GEO_FILES = {
    AssetKind.GEOIP: ("geoip.dat", "geoip.dat"),
    AssetKind.GEOSITE: ("dlc.dat", "geosite.dat"),
}
_VERSION_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


class ReleaseError(RuntimeError):
    """Raised when a release listing or download fails."""


def version_key(tag: str) -> tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", tag)[:3])


def xray_zip_name(machine: str | None = None) -> str:
    machine = (machine or platform.machine()).lower()
    return f"Xray-linux-{_ZIP_ARCH.get(machine, machine)}.zip"


def _write_atomic(target: Path, content: bytes, mode: int = 0o644) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="wb",
        dir=target.parent,
        prefix=f"{target.name}.",
        suffix=".tmp",
        delete=False,
    ) as tmp:
        tmp.write(content)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_path = Path(tmp.name)
    os.chmod(tmp_path, mode)
    tmp_path.replace(target)


def _extract_xray(archive: bytes) -> bytes:
    try:
        with zipfile.ZipFile(io.BytesIO(archive)) as zf:
            return zf.read("xray")
    except KeyError as exc:
        raise ReleaseError("release archive does not contain the xray binary") from exc
    except zipfile.BadZipFile as exc:
        raise ReleaseError("downloaded release archive is not a valid zip") from exc


class GitHubReleases:
    def __init__(
        self,
        bin_folder: str | Path,
        *,
        repos: Optional[dict[AssetKind, str]] = None,
        api_url: str = config.GITHUB_API_URL,
        download_url: str = config.GITHUB_DOWNLOAD_URL,
        limit: int = config.RELEASES_LIMIT,
        min_xray_version: str = config.XRAY_MIN_VERSION,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.bin_folder = Path(bin_folder)
        self.repos = repos or {
            AssetKind.XRAY: config.XRAY_REPO,
            AssetKind.GEOIP: config.GEOIP_REPO,
            AssetKind.GEOSITE: config.GEOSITE_REPO,
        }
        self.api_url = api_url.rstrip("/")
        self.download_url = download_url.rstrip("/")
        self.limit = max(1, limit)
        self.min_xray_version = version_key(min_xray_version) if min_xray_version else ()
        self._transport = transport

    async def fetch_versions(self, kind: AssetKind) -> list[str]:
        kind = AssetKind(kind)
        repo = self.repos[kind]
        async with http_client(config.REQUEST_TIMEOUT_SECONDS, transport=self._transport) as client:
            try:
                resp = await client.get(
                    f"{self.api_url}/repos/{repo}/releases",
                    headers=github_headers(),
                    params={"per_page": 100},
                )
            except httpx.HTTPError as exc:
                raise ReleaseError(f"cannot reach GitHub for {repo}: {exc.__class__.__name__}") from exc

        if resp.status_code != 200:
            raise ReleaseError(f"GitHub returned HTTP {resp.status_code} for {repo}")
        try:
            releases = resp.json()
        except ValueError as exc:
            raise ReleaseError(f"GitHub returned invalid JSON for {repo}") from exc
        if not isinstance(releases, list):
            raise ReleaseError(f"unexpected release listing for {repo}")

        versions: list[str] = []
        for release in releases:
            if not isinstance(release, dict) or release.get("draft"):
                continue
            tag = release.get("tag_name")
            if not isinstance(tag, str) or not tag:
                continue
            if kind is AssetKind.XRAY and version_key(tag) < self.min_xray_version:
                continue
            versions.append(tag)
            if len(versions) >= self.limit:
                break
        return versions

    async def install(self, kind: AssetKind, version: str) -> None:
        kind = AssetKind(kind)
        if not _VERSION_PATTERN.match(version or ""):
            raise ReleaseError(f"invalid version {version!r}")

        if kind is AssetKind.XRAY:
            archive = await self._download(kind, version, xray_zip_name())
            binary = await asyncio.to_thread(_extract_xray, archive)
            target = self.bin_folder / binary_name()
            await asyncio.to_thread(_write_atomic, target, binary, 0o755)
        else:
            asset_name, file_name = _GEO_FILES[kind]
            content = await self._download(kind, version, asset_name)
            target = self.bin_folder / file_name
            await asyncio.to_thread(_write_atomic, target, content)

        logger.info("Installed %s %s to %s", kind.value, version, target)

    async def _download(self, kind: AssetKind, version: str, asset_name: str) -> bytes:
        repo = self.repos[kind]
        url = f"{self.download_url}/{repo}/releases/download/{version}/{asset_name}"
        async with http_client(config.DOWNLOAD_TIMEOUT_SECONDS, transport=self._transport) as client:
            try:
                resp = await client.get(url)
            except httpx.HTTPError as exc:
                raise ReleaseError(f"download of {asset_name} {version} failed: {exc.__class__.__name__}") from exc

        if resp.status_code != 200:
            raise ReleaseError(f"download of {asset_name} {version} returned HTTP {resp.status_code}")
        if not resp.content:
            raise ReleaseError(f"download of {asset_name} {version} was empty")
        return resp.content
