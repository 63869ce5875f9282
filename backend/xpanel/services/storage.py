"""Read-only access to the panel database file and the engine config."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

logger = logging.getLogger("xpanel.services.storage")


class StorageError(RuntimeError):
    """Raised when the database or config file cannot be read."""


class FileStorage:
    def __init__(self, db_path: str | Path, config_path: str | Path):
        self.db_path = Path(db_path)
        self.config_path = Path(config_path)

    async def read_database_bytes(self) -> bytes:
        return await asyncio.to_thread(self._read_database_bytes)

    async def read_config_json(self) -> Any:
        return await asyncio.to_thread(self._read_config_json)

    def _read_database_bytes(self) -> bytes:
        if not self.db_path.exists():
            raise StorageError(f"database not found at {self.db_path}")
        self._checkpoint()
        try:
            return self.db_path.read_bytes()
        except OSError as exc:
            raise StorageError(f"cannot read database: {exc.strerror or exc}") from exc

    def _checkpoint(self) -> None:
        # Flush WAL pages into the main file so the exported copy is complete.
        try:
            conn = sqlite3.connect(self.db_path, timeout=5)
            try:
                conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            finally:
                conn.close()
        except sqlite3.Error:
            logger.warning("WAL checkpoint failed for %s; exporting as-is", self.db_path, exc_info=True)

    def _read_config_json(self) -> Any:
        try:
            raw = self.config_path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise StorageError(f"config not found at {self.config_path}") from exc
        except OSError as exc:
            raise StorageError(f"cannot read config: {exc.strerror or exc}") from exc
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageError(f"config is not valid JSON (line {exc.lineno})") from exc
