"""Tail reader for the engine log file."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

_BLOCK_SIZE = 64 * 1024


class LogFileReader:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    async def tail(self, count: int) -> list[str]:
        return await asyncio.to_thread(self._tail, count)

    def _tail(self, count: int) -> list[str]:
        """Read blocks backwards from EOF until ``count`` non-empty lines are known."""
        if count <= 0 or not self.path.exists():
            return []
        with self.path.open("rb") as handle:
            position = handle.seek(0, os.SEEK_END)
            data = b""
            while True:
                pieces = data.split(b"\n")
                if position > 0:
                    # first piece may be the tail of an unread line
                    pieces = pieces[1:]
                lines = [piece.rstrip(b"\r") for piece in pieces]
                lines = [line for line in lines if line]
                if position == 0 or len(lines) >= count:
                    break
                step = min(_BLOCK_SIZE, position)
                position -= step
                handle.seek(position)
                data = handle.read(step) + data
        return [line.decode("utf-8", errors="replace") for line in lines[-count:]]
