"""Lease record and its metadata encoding."""

import math
import re
from dataclasses import dataclass
from datetime import timedelta

from gcslock.errors import CorruptLeaseError
from gcslock.types import TTL, Metadata

# Metadata key where the not-before timestamp is stored
NOT_BEFORE_KEY = "nbf"

_INTEGER = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class LeaseRecord:
    """Lease state decoded from a lease object as last read from the store."""

    bucket: str
    name: str
    not_before: int
    generation: int
    metageneration: int

    @classmethod
    def from_metadata(
        cls,
        bucket: str,
        name: str,
        metadata: Metadata | None,
        *,
        generation: int,
        metageneration: int,
    ) -> "LeaseRecord":
        """
        Decode a lease record from object metadata.

        An object without the not-before key was never locked and decodes
        with ``not_before == 0``.

        Raises:
            CorruptLeaseError: If the not-before value is not an integer
        """
        return cls(
            bucket=bucket,
            name=name,
            not_before=decode_not_before(bucket, name, metadata),
            generation=generation,
            metageneration=metageneration,
        )

    def is_held(self, now: int) -> bool:
        """Return True if the lease is still valid at ``now`` (inclusive)."""
        return self.not_before >= now


def decode_not_before(bucket: str, name: str, metadata: Metadata | None) -> int:
    """Parse the not-before timestamp out of object metadata."""
    raw = (metadata or {}).get(NOT_BEFORE_KEY, "0")
    if not _INTEGER.fullmatch(raw):
        raise CorruptLeaseError(
            "decode lease", bucket, name, f"{NOT_BEFORE_KEY}={raw!r} is not an integer"
        )
    return int(raw)


def encode_not_before(not_before: int) -> Metadata:
    """Build the object metadata for a lease held until ``not_before``."""
    return {NOT_BEFORE_KEY: str(int(not_before))}


def truncate_timestamp(value: float) -> int:
    """Truncate a Unix timestamp to whole seconds."""
    return math.floor(value)


def ttl_seconds(ttl: TTL) -> int:
    """
    Truncate a lease duration to whole seconds.

    Raises:
        ValueError: If the duration is a bool, not finite, or shorter than
            one second
    """
    if isinstance(ttl, bool):
        raise ValueError(f"ttl must be a duration, got {ttl!r}")
    seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
    if not math.isfinite(seconds):
        raise ValueError(f"ttl must be finite, got {seconds!r}")
    whole = math.floor(seconds)
    if whole < 1:
        raise ValueError(f"ttl must be at least 1 second, got {seconds!r}")
    return whole
