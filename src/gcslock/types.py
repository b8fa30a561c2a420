"""Type definitions for gcslock."""

import enum
from dataclasses import dataclass
from datetime import timedelta
from typing import TypeAlias

# A lease duration, either a timedelta or a number of seconds
TTL: TypeAlias = timedelta | int | float

# Object metadata as stored on the lease object
Metadata: TypeAlias = dict[str, str]


class ReadStatus(enum.Enum):
    """Outcome of reading a lease object from the store."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


class WriteStatus(enum.Enum):
    """Outcome of a conditioned write to the store."""

    SUCCESS = "success"
    # The object was deleted or modified since it was read (retryable)
    CONFLICT = "conflict"
    ERROR = "error"


@dataclass(frozen=True)
class Precondition:
    """Existence/version condition a write must satisfy at write time."""

    does_not_exist: bool = False
    generation: int | None = None
    metageneration: int | None = None

    def __post_init__(self) -> None:
        if self.does_not_exist:
            if self.generation is not None or self.metageneration is not None:
                raise ValueError("does_not_exist cannot be combined with version matches")
        elif self.generation is None or self.metageneration is None:
            raise ValueError("generation and metageneration are both required")

    @classmethod
    def must_not_exist(cls) -> "Precondition":
        """Only write if the object does not exist."""
        return cls(does_not_exist=True)

    @classmethod
    def matches(cls, generation: int, metageneration: int) -> "Precondition":
        """Only write if the object is still at the given version."""
        return cls(generation=generation, metageneration=metageneration)
