"""Lease store contract and an in-memory implementation."""

import asyncio
from dataclasses import dataclass, field
from typing import Protocol

import structlog

from gcslock.errors import (
    BucketNotFoundError,
    ObjectNotFoundError,
    PreconditionFailedError,
    StoreClosedError,
)
from gcslock.types import Metadata, Precondition, ReadStatus, WriteStatus

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReadResult:
    """Result of reading a lease object's attributes."""

    status: ReadStatus
    metadata: Metadata = field(default_factory=dict)
    generation: int = 0
    metageneration: int = 0
    error: Exception | None = None

    @classmethod
    def found(cls, metadata: Metadata | None, generation: int, metageneration: int) -> "ReadResult":
        return cls(
            status=ReadStatus.FOUND,
            metadata=dict(metadata or {}),
            generation=generation,
            metageneration=metageneration,
        )

    @classmethod
    def not_found(cls) -> "ReadResult":
        return cls(status=ReadStatus.NOT_FOUND)

    @classmethod
    def failed(cls, error: Exception) -> "ReadResult":
        return cls(status=ReadStatus.ERROR, error=error)


@dataclass(frozen=True)
class WriteResult:
    """Result of a conditioned write of a lease object."""

    status: WriteStatus
    error: Exception | None = None

    @classmethod
    def success(cls) -> "WriteResult":
        return cls(status=WriteStatus.SUCCESS)

    @classmethod
    def conflict(cls, error: Exception) -> "WriteResult":
        return cls(status=WriteStatus.CONFLICT, error=error)

    @classmethod
    def failed(cls, error: Exception) -> "WriteResult":
        return cls(status=WriteStatus.ERROR, error=error)


class LeaseStore(Protocol):
    """
    Object store capabilities the lock depends on.

    Implementations report outcomes as tagged results instead of raising, so
    that callers can tell "not found" and "conflict" apart from real failures.
    """

    async def read(self, bucket: str, name: str) -> ReadResult:
        """Fetch the metadata and version markers of an object."""
        ...

    async def write(
        self, bucket: str, name: str, metadata: Metadata, precondition: Precondition
    ) -> WriteResult:
        """Write an empty object carrying ``metadata`` if ``precondition`` holds."""
        ...

    async def close(self) -> None:
        """Release the store connection."""
        ...


@dataclass
class _StoredObject:
    metadata: Metadata
    generation: int
    metageneration: int


class InMemoryLeaseStore:
    """
    In-process lease store with object store versioning semantics.

    Every write replaces the object, bumping its generation and resetting its
    metageneration to 1. Preconditions are checked and applied atomically.
    Useful for tests and for processes sharing a lock within one event loop.
    """

    def __init__(self, buckets: tuple[str, ...] = ()) -> None:
        self._lock = asyncio.Lock()
        self._buckets: dict[str, dict[str, _StoredObject]] = {b: {} for b in buckets}
        self._generation = 0
        self._closed = False
        self.reads = 0
        self.writes = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def create_bucket(self, bucket: str) -> None:
        """Create an empty bucket. Existing buckets are left untouched."""
        self._buckets.setdefault(bucket, {})

    def put_object(self, bucket: str, name: str, metadata: Metadata | None = None) -> None:
        """Unconditionally write an object, creating the bucket if needed."""
        objects = self._buckets.setdefault(bucket, {})
        self._generation += 1
        objects[name] = _StoredObject(dict(metadata or {}), self._generation, 1)

    def delete_object(self, bucket: str, name: str) -> None:
        """Remove an object if present."""
        self._buckets.get(bucket, {}).pop(name, None)

    def get_metadata(self, bucket: str, name: str) -> Metadata | None:
        """Return a copy of an object's metadata, or None if it does not exist."""
        obj = self._buckets.get(bucket, {}).get(name)
        return dict(obj.metadata) if obj is not None else None

    async def read(self, bucket: str, name: str) -> ReadResult:
        async with self._lock:
            if self._closed:
                return ReadResult.failed(_closed_error("read", bucket, name))
            self.reads += 1
            objects = self._buckets.get(bucket)
            if objects is None:
                return ReadResult.failed(
                    BucketNotFoundError("read", bucket, name, "bucket does not exist")
                )
            obj = objects.get(name)
            if obj is None:
                return ReadResult.not_found()
            return ReadResult.found(obj.metadata, obj.generation, obj.metageneration)

    async def write(
        self, bucket: str, name: str, metadata: Metadata, precondition: Precondition
    ) -> WriteResult:
        async with self._lock:
            if self._closed:
                return WriteResult.failed(_closed_error("write", bucket, name))
            objects = self._buckets.get(bucket)
            if objects is None:
                return WriteResult.failed(
                    BucketNotFoundError("write", bucket, name, "bucket does not exist")
                )

            current = objects.get(name)
            if precondition.does_not_exist:
                if current is not None:
                    return WriteResult.conflict(
                        PreconditionFailedError("write", bucket, name, "object already exists")
                    )
            elif current is None:
                return WriteResult.conflict(
                    ObjectNotFoundError("write", bucket, name, "object no longer exists")
                )
            elif (current.generation, current.metageneration) != (
                precondition.generation,
                precondition.metageneration,
            ):
                return WriteResult.conflict(
                    PreconditionFailedError(
                        "write",
                        bucket,
                        name,
                        f"object is at generation {current.generation}"
                        f"/{current.metageneration}",
                    )
                )

            self._generation += 1
            objects[name] = _StoredObject(dict(metadata), self._generation, 1)
            self.writes += 1
            return WriteResult.success()

    async def close(self) -> None:
        async with self._lock:
            if self._closed:
                return
            self._closed = True
        logger.debug("lease_store_closed", store="memory")


def _closed_error(operation: str, bucket: str, name: str) -> StoreClosedError:
    return StoreClosedError(operation, bucket, name, "store is closed")
