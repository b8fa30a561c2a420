"""Main Lock implementation."""

import asyncio
import time
from collections.abc import Callable

import structlog

from gcslock.config import LockSettings, get_settings
from gcslock.errors import (
    GCSLockError,
    LockAcquireError,
    LockClosedError,
    LockHeldError,
)
from gcslock.lease import LeaseRecord, encode_not_before, truncate_timestamp, ttl_seconds
from gcslock.retry import RetryPolicy
from gcslock.store import LeaseStore, WriteResult
from gcslock.types import TTL, Precondition, ReadStatus, WriteStatus

logger = structlog.get_logger(__name__)


class Lock:
    """
    Forward-looking lock stored in the metadata of an object.

    Unlike a mutex, the lock is never released: acquire() records a future
    not-before timestamp on the lease object, and every acquire before that
    instant fails with LockHeldError. The minimum granularity is one second;
    locks are meant to be taken for minutes or hours.
    """

    def __init__(
        self,
        bucket: str,
        name: str,
        *,
        store: LeaseStore | None = None,
        settings: LockSettings | None = None,
        retry_policy: RetryPolicy | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """
        Initialize the lock. No request is made until acquire() is called.

        Args:
            bucket: Bucket holding the lease object
            name: Name of the lease object; distinct locks need distinct names
            store: Lease store to use. Defaults to a GCSLeaseStore built from
                settings. The lock owns the store and closes it in close().
            settings: Settings to use instead of the process-wide ones
            retry_policy: Backoff between contention rounds (overrides settings)
            clock: Function returning the current Unix time in seconds
        """
        if not bucket:
            raise ValueError("bucket must not be empty")
        if not name:
            raise ValueError("name must not be empty")

        settings = settings or get_settings()
        if store is None:
            from gcslock.gcs import GCSLeaseStore

            store = GCSLeaseStore(
                project=settings.project,
                user_agent=settings.user_agent,
                api_endpoint=settings.api_endpoint,
                anonymous=settings.anonymous,
            )

        self._bucket = bucket
        self._name = name
        self._store = store
        self._retry_policy = retry_policy or settings.retry_policy()
        self._clock = clock or time.time
        self._close_lock = asyncio.Lock()
        self._closed = False

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def name(self) -> str:
        return self._name

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> "Lock":
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit."""
        await self.close()

    async def acquire(self, ttl: TTL) -> None:
        """
        Acquire the lock for ``ttl``.

        Callers can inspect the error to learn when the lock expires:

            try:
                await lock.acquire(timedelta(minutes=5))
            except LockHeldError as exc:
                log.info("lock is held until %s", exc.not_before_time)

        Conflicts with concurrent writers are retried with backoff; other
        store failures are returned immediately.

        Args:
            ttl: How long the lock is held, truncated to whole seconds

        Raises:
            ValueError: If ttl is shorter than one second
            LockHeldError: If the lock is currently held (including by a
                previous acquire of this caller)
            LockAcquireError: If the store failed or every retry lost a
                contention round
            LockClosedError: If the lock is closed
            asyncio.CancelledError: If the calling task is cancelled
        """
        ttl_secs = ttl_seconds(ttl)
        if self._closed:
            raise LockClosedError("Cannot acquire a closed lock")

        # Captured once so every contention round targets the same window
        now = truncate_timestamp(self._clock())

        delays = self._retry_policy.delays()
        attempt = 0
        while True:
            attempt += 1
            write = await self._try_acquire(now, ttl_secs, attempt)
            if write.status is WriteStatus.SUCCESS:
                return

            # Lost the round to a concurrent writer; start over from a fresh read
            delay = next(delays, None)
            if delay is None:
                raise self._failure(
                    attempt, f"lost {attempt} contention rounds: {write.error}"
                ) from write.error
            logger.debug(
                "lease_conflict",
                bucket=self._bucket,
                name=self._name,
                attempt=attempt,
                retry_in=delay,
            )
            await asyncio.sleep(delay)
            if self._closed:
                raise LockClosedError("Lock was closed while acquiring")

    async def _try_acquire(self, now: int, ttl: int, attempt: int) -> WriteResult:
        """
        Run one read-check-write contention round.

        Returns the write result, which is either a success or a conflict.
        """
        read = await self._store.read(self._bucket, self._name)

        record: LeaseRecord | None
        if read.status is ReadStatus.FOUND:
            try:
                record = LeaseRecord.from_metadata(
                    self._bucket,
                    self._name,
                    read.metadata,
                    generation=read.generation,
                    metageneration=read.metageneration,
                )
            except GCSLockError as exc:
                raise self._failure(attempt, str(exc)) from exc
            if record.is_held(now):
                logger.debug(
                    "lease_held",
                    bucket=self._bucket,
                    name=self._name,
                    not_before=record.not_before,
                )
                raise LockHeldError(record.not_before)
        elif read.status is ReadStatus.NOT_FOUND:
            record = None
        else:
            raise self._failure(attempt, str(read.error)) from read.error

        # The lease is absent or expired. Competing writers that read the
        # same version race here; the precondition lets only one through.
        if record is None:
            precondition = Precondition.must_not_exist()
        else:
            precondition = Precondition.matches(record.generation, record.metageneration)

        not_before = now + ttl
        write = await self._store.write(
            self._bucket, self._name, encode_not_before(not_before), precondition
        )

        if write.status is WriteStatus.ERROR:
            raise self._failure(attempt, str(write.error)) from write.error
        if write.status is WriteStatus.SUCCESS:
            logger.info(
                "lease_written",
                bucket=self._bucket,
                name=self._name,
                not_before=not_before,
                attempt=attempt,
            )
        return write

    def _failure(self, attempt: int, reason: str) -> LockAcquireError:
        logger.warning(
            "lease_acquire_failed",
            bucket=self._bucket,
            name=self._name,
            attempts=attempt,
            reason=reason,
        )
        return LockAcquireError(self._bucket, self._name, attempt, reason)

    async def close(self) -> None:
        """Close the store connection. The lease object is left untouched."""
        async with self._close_lock:
            if self._closed:
                return
            self._closed = True
            await self._store.close()
