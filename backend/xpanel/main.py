"""xpanel server API: main application."""

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import FastAPI, Path
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from xpanel import config
from xpanel.controller import ServerController
from xpanel.log_redact import install_log_redaction
from xpanel.models import AssetKind, Msg
from xpanel.services.logs import LogFileReader
from xpanel.services.releases import GitHubReleases
from xpanel.services.status import SystemStatusCollector
from xpanel.services.storage import FileStorage
from xpanel.services.xray import XrayProcess, XrayProcessError, binary_path
from xpanel.state import StatusPoller
from xpanel.versions import VersionCacheSet

# --- Logging ---
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
install_log_redaction()
logger = logging.getLogger("xpanel.api")

xray_process = XrayProcess(binary_path(), config.XRAY_CONFIG_PATH, config.XRAY_LOG_PATH)
status_collector = SystemStatusCollector(xray_process.info)
controller = ServerController(
    poller=StatusPoller(config.STATUS_IDLE_CUTOFF_SECONDS),
    versions=VersionCacheSet(config.VERSION_CACHE_TTL_SECONDS),
    supervisor=xray_process,
    releases=GitHubReleases(config.XRAY_BIN_FOLDER),
    logs=LogFileReader(config.XRAY_LOG_PATH),
    storage=FileStorage(config.DB_PATH, config.XRAY_CONFIG_PATH),
)


@asynccontextmanager
async def _lifespan(_: FastAPI):
    if config.XRAY_AUTOSTART:
        try:
            await xray_process.start()
        except XrayProcessError as exc:
            logger.warning("xray did not start at boot: %s", exc)
    controller.poller.start(status_collector, config.STATUS_TICK_SECONDS)
    try:
        yield
    finally:
        await controller.poller.stop()
        await xray_process.stop()


# --- App ---
app = FastAPI(
    title="xpanel",
    version="1.0.0",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
    lifespan=_lifespan,
)

if config.CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

Version = Annotated[str, Path(min_length=1, max_length=64, pattern=r"^[A-Za-z0-9._-]+$")]


@app.post("/server/status", response_model=Msg)
async def status():
    return await controller.get_status()


@app.post("/server/getXrayVersion", response_model=Msg)
async def get_xray_version():
    return await controller.get_versions(AssetKind.XRAY)


@app.post("/server/getGeoipVersion", response_model=Msg)
async def get_geoip_version():
    return await controller.get_versions(AssetKind.GEOIP)


@app.post("/server/getGeositeVersion", response_model=Msg)
async def get_geosite_version():
    return await controller.get_versions(AssetKind.GEOSITE)


@app.post("/server/installXray/{version}", response_model=Msg)
async def install_xray(version: Version):
    return await controller.install_asset(AssetKind.XRAY, version)


@app.post("/server/installGeoip/{version}", response_model=Msg)
async def install_geoip(version: Version):
    return await controller.install_asset(AssetKind.GEOIP, version)


@app.post("/server/installGeosite/{version}", response_model=Msg)
async def install_geosite(version: Version):
    return await controller.install_asset(AssetKind.GEOSITE, version)


@app.post("/server/stopXrayService", response_model=Msg)
async def stop_xray_service():
    return await controller.stop_service()


@app.post("/server/restartXrayService", response_model=Msg)
async def restart_xray_service():
    return await controller.restart_service()


@app.post("/server/logs/{count}", response_model=Msg)
async def get_logs(count: Annotated[int, Path(ge=1)]):
    return await controller.tail_logs(count)


@app.get("/server/getDatabase")
async def get_database():
    result = await controller.export_database()
    if not result.success:
        return result
    export = result.obj
    return Response(
        content=export.content,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )


@app.post("/server/getConfigJson", response_model=Msg)
async def get_config_json():
    return await controller.export_config()


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
