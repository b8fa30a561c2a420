"""gcslock - Forward-looking distributed lock on top of object store preconditions."""

from gcslock.config import LockSettings, get_settings, set_settings
from gcslock.core import Lock
from gcslock.errors import (
    BucketNotFoundError,
    CorruptLeaseError,
    GCSLockError,
    LockAcquireError,
    LockClosedError,
    LockHeldError,
    ObjectNotFoundError,
    PreconditionFailedError,
    StoreClosedError,
    StoreError,
)
from gcslock.lease import NOT_BEFORE_KEY, LeaseRecord
from gcslock.retry import RetryPolicy
from gcslock.store import InMemoryLeaseStore, LeaseStore, ReadResult, WriteResult
from gcslock.types import Precondition, ReadStatus, WriteStatus

__version__ = "0.1.0"

__all__ = [
    "Lock",
    "LockSettings",
    "get_settings",
    "set_settings",
    "RetryPolicy",
    "LeaseRecord",
    "NOT_BEFORE_KEY",
    "LeaseStore",
    "InMemoryLeaseStore",
    "ReadResult",
    "WriteResult",
    "Precondition",
    "ReadStatus",
    "WriteStatus",
    "GCSLockError",
    "LockHeldError",
    "LockAcquireError",
    "LockClosedError",
    "StoreError",
    "BucketNotFoundError",
    "ObjectNotFoundError",
    "PreconditionFailedError",
    "StoreClosedError",
    "CorruptLeaseError",
]
