"""Run a job at most once per hour across replicas, using a GCS bucket.

Usage:
    GCSLOCK_PROJECT=my-project python scheduled_job.py my-bucket

Start it on several machines at once: only one of them runs the job.
"""

import asyncio
import sys
from datetime import timedelta

import structlog

from gcslock import Lock, LockAcquireError, LockHeldError, get_settings
from gcslock.logging import bind_log_context, configure_logging

logger = structlog.get_logger(__name__)


async def run_job() -> None:
    logger.info("job_started")
    await asyncio.sleep(1)
    logger.info("job_finished")


async def main(bucket: str) -> int:
    settings = get_settings()
    configure_logging()
    bind_log_context(job="hourly-report")

    async with Lock(bucket, "locks/hourly-report", settings=settings) as lock:
        try:
            await lock.acquire(timedelta(hours=1))
        except LockHeldError as exc:
            logger.info("job_skipped", reason=str(exc), not_before=exc.not_before)
            return 0
        except LockAcquireError:
            logger.exception("lock_failed")
            return 1

    await run_job()
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(2)
    sys.exit(asyncio.run(main(sys.argv[1])))
