"""Storage categories, result types and the storage error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class Category(str, Enum):
    """Storage subdirectory an asset can live in.

    Declaration order is the probe order used for category-blind lookups.
    """

    SCREENSHOTS = "screenshots"
    THUMBNAILS = "thumbnails"
    ARCHIVES = "archives"
    BACKGROUNDS = "backgrounds"
    ROOT = "root"

    @property
    def dirname(self) -> str:
        """On-disk directory name relative to the storage base path."""
        return _CATEGORY_DIRS[self]


# Archives keep their historical directory name so existing upload trees stay valid.
_CATEGORY_DIRS = {
    Category.SCREENSHOTS: "screenshots",
    Category.THUMBNAILS: "thumbnails",
    Category.ARCHIVES: "modpacks",
    Category.BACKGROUNDS: "backgrounds",
    Category.ROOT: "",
}

PROBE_ORDER: tuple[Category, ...] = tuple(Category)

STAGING_DIRNAME = "temp"


class StorageError(Exception):
    """Base class for asset storage failures."""


class InvalidFilename(StorageError):
    """Raised when a filename could escape its storage directory."""


class InvalidChunkRange(StorageError):
    """Raised when chunk_index/total_chunks are out of range."""


class MissingChunk(StorageError):
    """Raised when assembly is triggered but an earlier chunk is absent."""

    def __init__(self, filename: str, chunk_index: int) -> None:
        super().__init__(f"Chunk {chunk_index} of {filename!r} has not been received")
        self.filename = filename
        self.chunk_index = chunk_index


class StorageWriteFailure(StorageError):
    """Raised when the filesystem rejects a write."""


class AssetNotFound(StorageError):
    """Raised when no category holds the requested file."""


def validate_filename(filename: str) -> str:
    """Return *filename* unchanged, or raise InvalidFilename if it is unsafe."""
    if not filename or filename in (".", ".."):
        raise InvalidFilename(f"Invalid filename: {filename!r}")
    if "/" in filename or "\\" in filename or "\x00" in filename:
        raise InvalidFilename(f"Invalid filename: {filename!r}")
    return filename


@dataclass(frozen=True)
class ChunkResult:
    """Outcome of receiving one chunk."""

    status: str
    filename: str
    final_path: Path | None = None

    @property
    def assembled(self) -> bool:
        return self.status == "assembled"

    @classmethod
    def pending(cls, filename: str) -> ChunkResult:
        return cls(status="pending", filename=filename)

    @classmethod
    def done(cls, filename: str, final_path: Path) -> ChunkResult:
        return cls(status="assembled", filename=filename, final_path=final_path)


DELETED = "deleted"
RETAINED = "retained"
FAILED = "failed"

STILL_REFERENCED = "still_referenced"
NOT_FOUND = "not_found"


@dataclass(frozen=True)
class CollectOutcome:
    """Per-filename result of a garbage collection pass."""

    status: str
    reason: str | None = None
    path: Path | None = None

    @property
    def deleted(self) -> bool:
        return self.status == DELETED
