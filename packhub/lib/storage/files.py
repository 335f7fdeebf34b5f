"""Direct (non-chunked) file writes and deletes."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from packhub.lib.storage.base import (
    AssetNotFound,
    Category,
    InvalidFilename,
    StorageWriteFailure,
)
from packhub.lib.storage.resolver import BlobPathResolver

logger = logging.getLogger(__name__)


async def save_upload(
    resolver: BlobPathResolver,
    field_name: str,
    filename: str,
    data: bytes,
) -> Path:
    """Write a single uploaded file into the category its form field names.

    An existing file with the same name is replaced.
    """
    category = resolver.category_for_field(field_name)
    if category is None:
        raise InvalidFilename(f"Invalid file field name: {field_name!r}")

    path = resolver.resolve(filename, category)
    await asyncio.to_thread(_write_file, path, data)
    logger.info("Stored upload %s in %s", filename, category.value)
    return path


async def delete_file(resolver: BlobPathResolver, category: Category, filename: str) -> Path:
    """Unlink *filename* from one category, bypassing reference checks."""
    path = resolver.resolve(filename, category)
    removed = await asyncio.to_thread(_unlink, path)
    if not removed:
        raise AssetNotFound(f"{filename} not found in {category.value}")
    logger.info("Deleted file: %s", path)
    return path


def _write_file(path: Path, data: bytes) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as exc:
        raise StorageWriteFailure(f"Could not write {path.name}: {exc}") from exc


def _unlink(path: Path) -> bool:
    if not path.is_file():
        return False
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True
