"""Local asset storage: path resolution, chunked uploads and garbage collection."""

from packhub.lib.storage.base import (
    AssetNotFound,
    Category,
    ChunkResult,
    CollectOutcome,
    InvalidChunkRange,
    InvalidFilename,
    MissingChunk,
    StorageError,
    StorageWriteFailure,
)
from packhub.lib.storage.chunks import ChunkAssembler
from packhub.lib.storage.gc import GarbageCollector
from packhub.lib.storage.locks import KeyedLock
from packhub.lib.storage.resolver import BlobPathResolver

__all__ = [
    "AssetNotFound",
    "BlobPathResolver",
    "Category",
    "ChunkAssembler",
    "ChunkResult",
    "CollectOutcome",
    "GarbageCollector",
    "InvalidChunkRange",
    "InvalidFilename",
    "KeyedLock",
    "MissingChunk",
    "StorageError",
    "StorageWriteFailure",
]
