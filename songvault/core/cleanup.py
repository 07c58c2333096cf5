"""
Best-effort removal of cover-image files orphaned by a cascade delete.

The database is already consistent when this runs, so a file that cannot be
removed is only logged and remembered for a later retry. Nothing here raises
and nothing here ever rolls back.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

# Limit concurrent unlinks so a large purge doesn't spawn a thread per file.
_MAX_CONCURRENT_REMOVALS = 4


class CoverCleaner:
    """
    Removes cover files after commit.

    Failed paths are kept in `pending` until `retry_pending()` succeeds for
    them. A path that is already gone counts as removed.
    """

    def __init__(self) -> None:
        self._semaphore = asyncio.Semaphore(_MAX_CONCURRENT_REMOVALS)
        self._pending: set[str] = set()

    @property
    def pending(self) -> frozenset[str]:
        return frozenset(self._pending)

    async def _remove_one(self, path: str) -> bool:
        async with self._semaphore:
            try:
                await asyncio.to_thread(Path(path).unlink, missing_ok=True)
            except OSError as e:
                logger.warning("Could not remove cover file %s: %s", path, e)
                return False
        logger.debug("Removed cover file %s", path)
        return True

    async def remove(self, paths: Iterable[str]) -> list[str]:
        """
        Remove files independently of each other.

        Returns the paths that could not be removed (they are also queued in
        `pending`).
        """
        unique = [p for p in dict.fromkeys(paths) if p]
        if not unique:
            return []
        results = await asyncio.gather(*(self._remove_one(p) for p in unique))
        failed: list[str] = []
        for path, ok in zip(unique, results):
            if ok:
                self._pending.discard(path)
            else:
                self._pending.add(path)
                failed.append(path)
        return failed

    async def retry_pending(self) -> list[str]:
        """Retry every queued path. Returns the ones that still failed."""
        return await self.remove(sorted(self._pending))
