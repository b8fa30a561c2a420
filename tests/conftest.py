"""Shared fixtures for gcslock tests."""

from collections.abc import Iterator

import pytest

from gcslock import InMemoryLeaseStore, RetryPolicy, set_settings

# 2030-04-20T08:01:34Z
NOW = 1902902494


class FakeClock:
    """Settable replacement for time.time."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_settings() -> Iterator[None]:
    set_settings(None)
    yield
    set_settings(None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryLeaseStore:
    return InMemoryLeaseStore(buckets=("my-bucket",))


@pytest.fixture
def fast_retry() -> RetryPolicy:
    return RetryPolicy(max_retries=5, base_delay=0.001)
