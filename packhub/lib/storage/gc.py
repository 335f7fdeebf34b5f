"""Reference-counted garbage collection of unreferenced assets."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path

from packhub.lib import observability
from packhub.lib.storage.base import (
    DELETED,
    FAILED,
    NOT_FOUND,
    RETAINED,
    STILL_REFERENCED,
    CollectOutcome,
    StorageError,
)
from packhub.lib.storage.locks import KeyedLock
from packhub.lib.storage.resolver import BlobPathResolver

logger = logging.getLogger(__name__)

ReferenceCounter = Callable[[str], Awaitable[int]]


class GarbageCollector:
    """Delete candidate assets that no live record references any more.

    The reference count is recomputed by *count_references* for every
    candidate on every call; nothing is cached between calls. Each
    count-then-unlink runs under the filename's lock so an update holding the
    same lock cannot add a reference in between.
    """

    def __init__(
        self,
        resolver: BlobPathResolver,
        count_references: ReferenceCounter,
        locks: KeyedLock | None = None,
    ) -> None:
        self._resolver = resolver
        self._count_references = count_references
        self._locks = locks or KeyedLock()

    async def collect(self, filenames: Iterable[str]) -> dict[str, CollectOutcome]:
        candidates = sorted({f for f in filenames if f})
        outcomes: dict[str, CollectOutcome] = {}

        with observability.span("collect_assets", candidates=len(candidates)):
            for filename in candidates:
                try:
                    outcomes[filename] = await self._collect_one(filename)
                except (StorageError, OSError) as exc:
                    logger.warning("Could not collect %s: %s", filename, exc)
                    outcomes[filename] = CollectOutcome(FAILED, reason=str(exc))
                except Exception as exc:
                    logger.exception("Reference check failed for %s", filename)
                    outcomes[filename] = CollectOutcome(FAILED, reason=str(exc))
        return outcomes

    async def _collect_one(self, filename: str) -> CollectOutcome:
        async with self._locks.hold(filename):
            references = await self._count_references(filename)
            if references:
                logger.debug("Keeping %s, still referenced by %d record(s)", filename, references)
                return CollectOutcome(RETAINED, reason=STILL_REFERENCED)

            path = await asyncio.to_thread(self._unlink_first, filename)

        if path is None:
            logger.info("File not found for deletion: %s", filename)
            return CollectOutcome(RETAINED, reason=NOT_FOUND)

        logger.info("Deleted file: %s", path)
        return CollectOutcome(DELETED, path=path)

    def _unlink_first(self, filename: str) -> Path | None:
        path = self._resolver.resolve(filename)
        if path is None:
            return None
        try:
            path.unlink()
        except FileNotFoundError:
            return None
        return path
