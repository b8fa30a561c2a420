"""Tests for basic Lock operations."""

from datetime import timedelta

import pytest

from gcslock import (
    BucketNotFoundError,
    CorruptLeaseError,
    InMemoryLeaseStore,
    Lock,
    LockAcquireError,
    LockClosedError,
    LockHeldError,
    LockSettings,
    RetryPolicy,
)
from gcslock.gcs import GCSLeaseStore

NOW = 1902902494
TTL = timedelta(minutes=5)


def stored_nbf(store: InMemoryLeaseStore) -> int:
    metadata = store.get_metadata("my-bucket", "my-object")
    assert metadata is not None
    return int(metadata["nbf"])


@pytest.mark.asyncio
async def test_lock_creation(store: InMemoryLeaseStore, clock) -> None:
    """Test that creating a lock makes no requests."""
    lock = Lock("my-bucket", "my-object", store=store, clock=clock)
    assert lock.bucket == "my-bucket"
    assert lock.name == "my-object"
    assert lock.retry_policy == RetryPolicy()
    assert not lock.closed
    assert store.reads == 0
    assert store.get_metadata("my-bucket", "my-object") is None


def test_lock_requires_identity(store: InMemoryLeaseStore) -> None:
    with pytest.raises(ValueError):
        Lock("", "my-object", store=store)
    with pytest.raises(ValueError):
        Lock("my-bucket", "", store=store)


def test_lock_defaults_to_gcs_store() -> None:
    """Test that a lock without a store gets a lazily connected GCS store."""
    settings = LockSettings(project="my-project", max_retries=2, base_delay=0.5)
    lock = Lock("my-bucket", "my-object", settings=settings)
    assert isinstance(lock._store, GCSLeaseStore)
    assert lock.retry_policy == RetryPolicy(max_retries=2, base_delay=0.5)


@pytest.mark.asyncio
async def test_acquire_bucket_missing(clock) -> None:
    """Test that a missing bucket is irrecoverable, not a held lock."""
    store = InMemoryLeaseStore()
    lock = Lock("my-bucket", "my-object", store=store, clock=clock)

    with pytest.raises(LockAcquireError) as exc_info:
        await lock.acquire(TTL)

    assert not isinstance(exc_info.value, LockHeldError)
    assert isinstance(exc_info.value.__cause__, BucketNotFoundError)
    assert exc_info.value.attempts == 1
    assert store.reads == 1


@pytest.mark.asyncio
async def test_acquire_object_missing(store: InMemoryLeaseStore, clock) -> None:
    """Test that the first acquire creates the lease object."""
    lock = Lock("my-bucket", "my-object", store=store, clock=clock)
    await lock.acquire(TTL)

    assert stored_nbf(store) == NOW + 300
    assert store.writes == 1


@pytest.mark.asyncio
async def test_acquire_lock_exists_not_expired(store: InMemoryLeaseStore, clock) -> None:
    """Test that a lease in the future is reported as held without writing."""
    store.put_object("my-bucket", "my-object", {"nbf": str(NOW + 150)})
    lock = Lock("my-bucket", "my-object", store=store, clock=clock)

    with pytest.raises(LockHeldError, match="lock held until 2030-04-20T08:04:04Z") as exc_info:
        await lock.acquire(TTL)

    assert exc_info.value.not_before == NOW + 150
    assert store.writes == 0
    assert stored_nbf(store) == NOW + 150


@pytest.mark.asyncio
async def test_acquire_lock_held_past_year_9999(store: InMemoryLeaseStore, clock) -> None:
    """Test that a far-future lease is reported as held with a readable message."""
    store.put_object("my-bucket", "my-object", {"nbf": "253402300800"})
    lock = Lock("my-bucket", "my-object", store=store, clock=clock)

    with pytest.raises(LockHeldError) as exc_info:
        await lock.acquire(TTL)

    assert str(exc_info.value) == "lock held until 10000-01-01T00:00:00Z"
    assert store.writes == 0


@pytest.mark.asyncio
async def test_acquire_lock_exists_expired(store: InMemoryLeaseStore, clock) -> None:
    """Test that an expired lease is taken over."""
    store.put_object("my-bucket", "my-object", {"nbf": str(NOW - 300)})
    lock = Lock("my-bucket", "my-object", store=store, clock=clock)

    await lock.acquire(TTL)

    assert stored_nbf(store) == NOW + 300


@pytest.mark.asyncio
async def test_acquire_object_without_lease(store: InMemoryLeaseStore, clock) -> None:
    """Test that an existing object without the lease key is available."""
    store.put_object("my-bucket", "my-object", {"owner": "someone"})
    lock = Lock("my-bucket", "my-object", store=store, clock=clock)

    await lock.acquire(TTL)

    assert store.get_metadata("my-bucket", "my-object") == {"nbf": str(NOW + 300)}


@pytest.mark.asyncio
async def test_acquire_corrupt_lease(store: InMemoryLeaseStore, fast_retry, clock) -> None:
    """Test that a corrupt lease fails immediately and is left alone."""
    store.put_object("my-bucket", "my-object", {"nbf": "not-a-number"})
    lock = Lock("my-bucket", "my-object", store=store, retry_policy=fast_retry, clock=clock)

    with pytest.raises(LockAcquireError) as exc_info:
        await lock.acquire(TTL)

    assert isinstance(exc_info.value.__cause__, CorruptLeaseError)
    assert store.reads == 1
    assert store.writes == 0


@pytest.mark.asyncio
async def test_reacquire_before_expiry(store: InMemoryLeaseStore, clock) -> None:
    """Test that the holder itself is refused until the lease expires."""
    lock = Lock("my-bucket", "my-object", store=store, clock=clock)
    await lock.acquire(TTL)

    clock.advance(60)
    with pytest.raises(LockHeldError) as exc_info:
        await lock.acquire(TTL)

    assert exc_info.value.not_before == NOW + 300
    assert str(exc_info.value) == "lock held until 2030-04-20T08:06:34Z"


@pytest.mark.asyncio
async def test_held_at_not_before_instant(store: InMemoryLeaseStore, clock) -> None:
    """Test that the lease is still held at exactly its not-before second."""
    lock = Lock("my-bucket", "my-object", store=store, clock=clock)
    await lock.acquire(10)

    clock.advance(10)
    with pytest.raises(LockHeldError):
        await lock.acquire(10)

    clock.advance(1)
    await lock.acquire(10)
    assert stored_nbf(store) == NOW + 21


@pytest.mark.asyncio
async def test_reacquire_after_expiry(store: InMemoryLeaseStore, clock) -> None:
    """Test that a new window starts from the time of the new acquire."""
    lock = Lock("my-bucket", "my-object", store=store, clock=clock)
    await lock.acquire(1)

    clock.advance(2)
    await lock.acquire(1)
    assert stored_nbf(store) == NOW + 3

    with pytest.raises(LockHeldError):
        await lock.acquire(1)


@pytest.mark.asyncio
async def test_sub_second_times_are_truncated(store: InMemoryLeaseStore, clock) -> None:
    clock.now = NOW + 0.999
    lock = Lock("my-bucket", "my-object", store=store, clock=clock)

    await lock.acquire(timedelta(seconds=30, milliseconds=900))

    assert stored_nbf(store) == NOW + 30


@pytest.mark.asyncio
async def test_acquire_rejects_short_ttl(store: InMemoryLeaseStore, clock) -> None:
    lock = Lock("my-bucket", "my-object", store=store, clock=clock)
    with pytest.raises(ValueError):
        await lock.acquire(timedelta(milliseconds=500))
    assert store.reads == 0


@pytest.mark.asyncio
async def test_distinct_names_are_distinct_locks(store: InMemoryLeaseStore, clock) -> None:
    """Test that locks on different objects do not interact."""
    first = Lock("my-bucket", "job-a", store=store, clock=clock)
    second = Lock("my-bucket", "job-b", store=store, clock=clock)

    await first.acquire(TTL)
    await second.acquire(TTL)


@pytest.mark.asyncio
async def test_close_leaves_lease(store: InMemoryLeaseStore, clock) -> None:
    """Test that closing releases the store but not the lease."""
    lock = Lock("my-bucket", "my-object", store=store, clock=clock)
    await lock.acquire(TTL)

    await lock.close()
    await lock.close()  # idempotent

    assert lock.closed
    assert store.closed
    assert stored_nbf(store) == NOW + 300


@pytest.mark.asyncio
async def test_acquire_after_close(store: InMemoryLeaseStore, clock) -> None:
    lock = Lock("my-bucket", "my-object", store=store, clock=clock)
    await lock.close()

    with pytest.raises(LockClosedError):
        await lock.acquire(TTL)


@pytest.mark.asyncio
async def test_context_manager_closes(store: InMemoryLeaseStore, clock) -> None:
    """Test async context manager support."""
    async with Lock("my-bucket", "my-object", store=store, clock=clock) as lock:
        await lock.acquire(TTL)
        assert not lock.closed

    assert lock.closed
    assert store.closed
