"""Basic usage example for gcslock, using the in-memory store."""

import asyncio
from datetime import timedelta

from gcslock import InMemoryLeaseStore, Lock, LockHeldError


async def main() -> None:
    """Demonstrate acquiring a lock and running into a held lease."""
    store = InMemoryLeaseStore(buckets=("my-bucket",))

    print("=== Basic Lock Example ===\n")

    async with Lock("my-bucket", "locks/report", store=store) as lock:
        # First acquire creates the lease object
        await lock.acquire(timedelta(seconds=2))
        print(f"Acquired, metadata: {store.get_metadata('my-bucket', 'locks/report')}")

        # Acquiring again before the lease expires fails, even for the holder
        try:
            await lock.acquire(timedelta(seconds=2))
        except LockHeldError as exc:
            print(f"Second acquire refused: {exc}")

        # Wait for the lease to run out (it is inclusive of its last second)
        await asyncio.sleep(3)
        await lock.acquire(timedelta(seconds=2))
        print(f"Re-acquired, metadata: {store.get_metadata('my-bucket', 'locks/report')}\n")

    print(f"Lock closed: {lock.closed}, lease kept: {store.get_metadata('my-bucket', 'locks/report')}")


if __name__ == "__main__":
    asyncio.run(main())
