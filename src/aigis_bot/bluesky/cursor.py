"""
Last-seen Jetstream cursor, kept in memory and flushed to disk periodically.
"""

import asyncio
from pathlib import Path

import structlog

logger = structlog.get_logger()


class CursorStore:
    """File-backed cursor guarded by a single lock.

    The consumer calls :meth:`update` for every event; a background task
    calls :meth:`flush` on an interval.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()
        self._cursor: int | None = None
        self._lock = asyncio.Lock()

    def load(self) -> int | None:
        """Read the stored cursor, if any, and make it current."""
        try:
            raw = self.path.read_text().strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Could not read cursor file", path=str(self.path), error=str(e))
            return None

        try:
            self._cursor = int(raw)
        except ValueError:
            logger.warning("Ignoring malformed cursor file", path=str(self.path))
            return None

        logger.info("Loaded cursor", cursor=self._cursor)
        return self._cursor

    async def update(self, cursor: int) -> None:
        async with self._lock:
            if self._cursor is None or cursor > self._cursor:
                self._cursor = cursor

    async def get(self) -> int | None:
        async with self._lock:
            return self._cursor

    async def flush(self) -> int | None:
        """Write the current cursor to disk and return it."""
        async with self._lock:
            cursor = self._cursor
        if cursor is None:
            return None
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(str(cursor))
        return cursor

    async def run_flusher(self, interval: float = 60.0) -> None:
        """Flush forever, every ``interval`` seconds."""
        while True:
            await asyncio.sleep(interval)
            try:
                cursor = await self.flush()
                if cursor is not None:
                    logger.debug("Stored cursor", cursor=cursor)
            except OSError as e:
                logger.error("Error storing cursor", error=str(e))
