import asyncio
import io
import zipfile

import httpx
import pytest

from xpanel.models import AssetKind
from xpanel.services.releases import GitHubReleases, ReleaseError, version_key, xray_zip_name
from xpanel.services.xray import binary_name

REPOS = {
    AssetKind.XRAY: "XTLS/Xray-core",
    AssetKind.GEOIP: "v2fly/geoip",
    AssetKind.GEOSITE: "v2fly/domain-list-community",
}


def _releases(tmp_path, handler, **kwargs) -> GitHubReleases:
    return GitHubReleases(
        tmp_path,
        repos=REPOS,
        api_url="https://api.github.test",
        download_url="https://github.test",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _zip_with(members: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in members.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def test_version_key_orders_numerically():
    assert version_key("v1.10.0") > version_key("v1.8.4")
    assert version_key("v1.7.5") == (1, 7, 5)


def test_xray_zip_name_maps_machine():
    assert xray_zip_name("x86_64") == "Xray-linux-64.zip"
    assert xray_zip_name("aarch64") == "Xray-linux-arm64-v8a.zip"


def test_fetch_xray_versions_filters_old_and_drafts(tmp_path):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(
            200,
            json=[
                {"tag_name": "v1.8.6", "draft": False},
                {"tag_name": "v1.8.5", "draft": True},
                {"tag_name": "v1.8.4", "draft": False},
                {"tag_name": "v1.7.5", "draft": False},
                {"tag_name": "v1.6.1", "draft": False},
            ],
        )

    versions = asyncio.run(_releases(tmp_path, handler).fetch_versions(AssetKind.XRAY))

    assert versions == ["v1.8.6", "v1.8.4", "v1.7.5"]
    assert seen[0].startswith("https://api.github.test/repos/XTLS/Xray-core/releases")


def test_fetch_geo_versions_respects_limit(tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"tag_name": f"2024010{i}0000"} for i in range(9, 0, -1)])

    versions = asyncio.run(_releases(tmp_path, handler, limit=3).fetch_versions(AssetKind.GEOIP))

    assert versions == ["202401090000", "202401080000", "202401070000"]


def test_fetch_versions_http_error(tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"message": "API rate limit exceeded"})

    with pytest.raises(ReleaseError, match="HTTP 403"):
        asyncio.run(_releases(tmp_path, handler).fetch_versions(AssetKind.GEOSITE))


def test_fetch_versions_network_error(tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ReleaseError, match="cannot reach GitHub"):
        asyncio.run(_releases(tmp_path, handler).fetch_versions(AssetKind.XRAY))


def test_install_geosite_writes_renamed_file(tmp_path):
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url.path)
        return httpx.Response(200, content=b"geosite-bytes")

    asyncio.run(_releases(tmp_path, handler).install(AssetKind.GEOSITE, "20240101"))

    assert requested == ["/v2fly/domain-list-community/releases/download/20240101/dlc.dat"]
    assert (tmp_path / "geosite.dat").read_bytes() == b"geosite-bytes"


def test_install_xray_extracts_binary(tmp_path):
    archive = _zip_with({"xray": b"#!/bin/sh\necho xray\n", "geoip.dat": b"ignored"})

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == f"/XTLS/Xray-core/releases/download/v1.8.4/{xray_zip_name()}"
        return httpx.Response(200, content=archive)

    asyncio.run(_releases(tmp_path, handler).install(AssetKind.XRAY, "v1.8.4"))

    installed = tmp_path / binary_name()
    assert installed.read_bytes() == b"#!/bin/sh\necho xray\n"
    assert installed.stat().st_mode & 0o111


def test_install_xray_without_binary_in_archive(tmp_path):
    archive = _zip_with({"README.md": b"nothing here"})

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=archive)

    with pytest.raises(ReleaseError, match="does not contain"):
        asyncio.run(_releases(tmp_path, handler).install(AssetKind.XRAY, "v1.8.4"))
    assert not (tmp_path / binary_name()).exists()


def test_failed_download_leaves_existing_file(tmp_path):
    (tmp_path / "geoip.dat").write_bytes(b"old")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    with pytest.raises(ReleaseError, match="HTTP 404"):
        asyncio.run(_releases(tmp_path, handler).install(AssetKind.GEOIP, "202401010000"))
    assert (tmp_path / "geoip.dat").read_bytes() == b"old"


def test_install_rejects_path_like_version(tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(ReleaseError, match="invalid version"):
        asyncio.run(_releases(tmp_path, handler).install(AssetKind.GEOIP, "../../etc"))
