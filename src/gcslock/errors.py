"""Exception classes for gcslock."""

from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class GCSLockError(Exception):
    """Base exception for all gcslock errors."""


class LockHeldError(GCSLockError):
    """Raised when the lock is held until a time in the future."""

    def __init__(self, not_before: int) -> None:
        self.not_before = not_before
        super().__init__(not_before)

    @property
    def not_before_time(self) -> datetime:
        """
        UTC instant the lock expires.

        Raises:
            OverflowError: If the timestamp is outside the years 1-9999
        """
        return _EPOCH + timedelta(seconds=self.not_before)

    def __str__(self) -> str:
        return "lock held until " + format_utc(self.not_before)

    def __repr__(self) -> str:
        return f"LockHeldError(not_before={self.not_before})"


def format_utc(timestamp: int) -> str:
    """Render a Unix timestamp as RFC 3339 UTC, including years past 9999."""
    days, secs = divmod(timestamp, 86400)
    hour, rem = divmod(secs, 3600)
    minute, second = divmod(rem, 60)
    year, month, day = _civil_from_days(days)
    return f"{year:04d}-{month:02d}-{day:02d}T{hour:02d}:{minute:02d}:{second:02d}Z"


def _civil_from_days(days: int) -> tuple[int, int, int]:
    """Proleptic Gregorian date of a day count since 1970-01-01."""
    z = days + 719468
    era = z // 146097
    doe = z - era * 146097
    yoe = (doe - doe // 1460 + doe // 36524 - doe // 146096) // 365
    doy = doe - (365 * yoe + yoe // 4 - yoe // 100)
    mp = (5 * doy + 2) // 153
    day = doy - (153 * mp + 2) // 5 + 1
    month = mp + 3 if mp < 10 else mp - 9
    year = yoe + era * 400 + (1 if month <= 2 else 0)
    return year, month, day


class LockAcquireError(GCSLockError):
    """Raised when the lock could not be acquired because of a store failure."""

    def __init__(self, bucket: str, name: str, attempts: int, reason: str) -> None:
        self.bucket = bucket
        self.name = name
        self.attempts = attempts
        super().__init__(f"failed to acquire lock gs://{bucket}/{name}: {reason}")


class LockClosedError(GCSLockError):
    """Raised when operations are attempted on a closed lock."""


class StoreError(GCSLockError):
    """Raised by lease store adapters when a store operation fails."""

    def __init__(self, operation: str, bucket: str, name: str, reason: str) -> None:
        self.operation = operation
        self.bucket = bucket
        self.name = name
        super().__init__(f"failed to {operation} gs://{bucket}/{name}: {reason}")


class BucketNotFoundError(StoreError):
    """Raised when the bucket holding the lease does not exist."""


class ObjectNotFoundError(StoreError):
    """Raised when the lease object disappeared before a conditioned write."""


class PreconditionFailedError(StoreError):
    """Raised when the lease object changed before a conditioned write."""


class StoreClosedError(StoreError):
    """Raised when a closed store is used."""


class CorruptLeaseError(StoreError):
    """Raised when the lease metadata cannot be decoded."""
