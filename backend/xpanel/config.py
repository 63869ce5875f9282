"""Configuration: reads all settings from environment variables."""

import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_csv(name: str) -> list[str]:
    raw = os.getenv(name, "")
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_secret(name: str, default: str = "") -> str:
    """Resolve a secret from ``NAME`` or from the file named by ``NAME_FILE``."""
    value = os.getenv(name)
    if value:
        return value

    file_path = (os.getenv(f"{name}_FILE") or "").strip()
    if file_path:
        try:
            secret = Path(file_path).read_text(encoding="utf-8").strip()
        except OSError:
            return default
        return secret or default

    return default


LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS: list[str] = _env_csv("CORS_ORIGINS")

# Status poller
STATUS_TICK_SECONDS: float = float(os.getenv("STATUS_TICK_SECONDS", "2"))
STATUS_IDLE_CUTOFF_SECONDS: float = float(os.getenv("STATUS_IDLE_CUTOFF_SECONDS", "180"))

# Version listings
VERSION_CACHE_TTL_SECONDS: float = float(os.getenv("VERSION_CACHE_TTL_SECONDS", "60"))
RELEASES_LIMIT: int = int(os.getenv("RELEASES_LIMIT", "20"))
XRAY_MIN_VERSION: str = os.getenv("XRAY_MIN_VERSION", "1.7.5")

# GitHub releases
GITHUB_API_URL: str = os.getenv("GITHUB_API_URL", "https://api.github.com").rstrip("/")
GITHUB_DOWNLOAD_URL: str = os.getenv("GITHUB_DOWNLOAD_URL", "https://github.com").rstrip("/")
GITHUB_TOKEN: str = _env_secret("GITHUB_TOKEN")
XRAY_REPO: str = os.getenv("XRAY_REPO", "XTLS/Xray-core")
GEOIP_REPO: str = os.getenv("GEOIP_REPO", "v2fly/geoip")
GEOSITE_REPO: str = os.getenv("GEOSITE_REPO", "v2fly/domain-list-community")
REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "10"))
DOWNLOAD_TIMEOUT_SECONDS: float = float(os.getenv("DOWNLOAD_TIMEOUT_SECONDS", "120"))

# Xray engine
XRAY_BIN_FOLDER: str = os.getenv("XRAY_BIN_FOLDER", "/usr/local/x-ui/bin")
XRAY_CONFIG_PATH: str = os.getenv("XRAY_CONFIG_PATH", str(Path(XRAY_BIN_FOLDER) / "config.json"))
XRAY_LOG_PATH: str = os.getenv("XRAY_LOG_PATH", "/var/log/x-ui/xray.log")
XRAY_AUTOSTART: bool = _env_bool("XRAY_AUTOSTART", True)
XRAY_START_GRACE_SECONDS: float = float(os.getenv("XRAY_START_GRACE_SECONDS", "0.5"))
XRAY_STOP_TIMEOUT_SECONDS: float = float(os.getenv("XRAY_STOP_TIMEOUT_SECONDS", "5"))
MAX_LOG_LINES: int = int(os.getenv("MAX_LOG_LINES", "10000"))

# Panel storage
DB_PATH: str = os.getenv("DB_PATH", "/etc/x-ui/x-ui.db")
DB_EXPORT_FILENAME: str = os.getenv("DB_EXPORT_FILENAME", "x-ui.db")
