"""Bounded Fibonacci backoff for lock contention rounds."""

from collections.abc import Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    """
    Backoff schedule applied between contention rounds of a single acquire.

    The n-th delay is ``base_delay`` scaled by the n-th Fibonacci number
    (1, 2, 3, 5, 8, ...), capped at ``max_delay`` when set. At most
    ``max_retries`` delays are produced, so an acquire makes at most
    ``max_retries + 1`` attempts.
    """

    max_retries: int = 5
    base_delay: float = 0.05  # seconds
    max_delay: float | None = None

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay <= 0:
            raise ValueError("base_delay must be > 0")
        if self.max_delay is not None and self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")

    @property
    def max_attempts(self) -> int:
        """Total number of attempts, including the first one."""
        return self.max_retries + 1

    def delays(self) -> Iterator[float]:
        """Yield the delay to sleep before each retry, in seconds."""
        prev, curr = 0.0, self.base_delay
        for _ in range(self.max_retries):
            prev, curr = curr, prev + curr
            if self.max_delay is not None:
                yield min(curr, self.max_delay)
            else:
                yield curr
