"""Chunked upload staging and assembly."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import time
from pathlib import Path

from packhub.lib import observability
from packhub.lib.storage.base import (
    Category,
    ChunkResult,
    InvalidChunkRange,
    MissingChunk,
    StorageWriteFailure,
    validate_filename,
)
from packhub.lib.storage.locks import KeyedLock
from packhub.lib.storage.resolver import BlobPathResolver

logger = logging.getLogger(__name__)

_PARTIAL_NAME = ".assembling"
_COPY_BUFFER = 1024 * 1024


class ChunkAssembler:
    """Stage uploaded chunks per logical filename and assemble them into an archive.

    Each chunk lands in ``temp/<filename>/<chunk_index>``. Assembly is triggered
    by the chunk whose index is ``total_chunks - 1``; every earlier index must
    already be staged by then or the call fails with :class:`MissingChunk` and
    the staged chunks are kept so the client can resend the gap.

    The assembled file is written next to the chunks and renamed into the
    archives directory, so readers never see a partial archive.
    """

    def __init__(self, resolver: BlobPathResolver, locks: KeyedLock | None = None) -> None:
        self._resolver = resolver
        self._locks = locks or KeyedLock()

    async def receive_chunk(
        self,
        filename: str,
        chunk_index: int,
        total_chunks: int,
        data: bytes,
    ) -> ChunkResult:
        validate_filename(filename)
        if total_chunks < 1 or not 0 <= chunk_index < total_chunks:
            raise InvalidChunkRange(
                f"chunk_index {chunk_index} out of range for total_chunks {total_chunks}"
            )

        chunk_dir = self._resolver.staging_dir(filename)
        await asyncio.to_thread(self._write_chunk, chunk_dir, chunk_index, data)
        logger.debug("Staged chunk %d/%d for %s", chunk_index + 1, total_chunks, filename)

        if chunk_index + 1 != total_chunks:
            return ChunkResult.pending(filename)

        with observability.span("assemble_upload", filename=filename, chunks=total_chunks):
            async with self._locks.hold(filename):
                final_path = await asyncio.to_thread(
                    self._assemble, filename, chunk_dir, total_chunks
                )
        logger.info("Assembled %s from %d chunks", final_path, total_chunks)
        return ChunkResult.done(filename, final_path)

    async def sweep_staging(self, max_age: float, now: float | None = None) -> list[str]:
        """Remove staging directories untouched for more than *max_age* seconds."""
        now = time.time() if now is None else now
        removed = await asyncio.to_thread(self._sweep, now - max_age)
        for name in removed:
            logger.info("Removed abandoned upload staging for %s", name)
        return removed

    # -- internal helpers --

    @staticmethod
    def _write_chunk(chunk_dir: Path, chunk_index: int, data: bytes) -> None:
        try:
            chunk_dir.mkdir(parents=True, exist_ok=True)
            (chunk_dir / str(chunk_index)).write_bytes(data)
        except OSError as exc:
            raise StorageWriteFailure(f"Could not stage chunk {chunk_index}: {exc}") from exc

    def _assemble(self, filename: str, chunk_dir: Path, total_chunks: int) -> Path:
        chunk_paths = [chunk_dir / str(i) for i in range(total_chunks)]
        for index, path in enumerate(chunk_paths):
            if not path.is_file():
                raise MissingChunk(filename, index)

        destination = self._resolver.resolve(filename, Category.ARCHIVES)
        partial = chunk_dir / _PARTIAL_NAME
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            with open(partial, "wb") as out:
                for path in chunk_paths:
                    with open(path, "rb") as chunk:
                        shutil.copyfileobj(chunk, out, _COPY_BUFFER)
            os.replace(partial, destination)
        except OSError as exc:
            partial.unlink(missing_ok=True)
            raise StorageWriteFailure(f"Could not assemble {filename!r}: {exc}") from exc

        shutil.rmtree(chunk_dir, ignore_errors=True)
        return destination

    def _sweep(self, cutoff: float) -> list[str]:
        root = self._resolver.staging_root
        if not root.is_dir():
            return []

        removed = []
        for entry in sorted(root.iterdir()):
            if not entry.is_dir():
                continue
            try:
                stale = _newest_mtime(entry) < cutoff
            except FileNotFoundError:
                # Assembled and removed while we were looking.
                continue
            if stale:
                shutil.rmtree(entry, ignore_errors=True)
                removed.append(entry.name)
        return removed


def _newest_mtime(directory: Path) -> float:
    newest = directory.stat().st_mtime
    for child in directory.iterdir():
        newest = max(newest, child.stat().st_mtime)
    return newest
