"""Runtime settings for gcslock."""

import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gcslock.retry import RetryPolicy

DEFAULT_USER_AGENT = "gcslock/0.1.0 (+https://github.com/sethvargo/go-gcslock)"


def _resolve_env_file() -> str | None:
    env_file = os.getenv("GCSLOCK_ENV_FILE")
    if env_file:
        return env_file
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    candidate = Path(".env")
    return str(candidate) if candidate.is_file() else None


class LockSettings(BaseSettings):
    """Settings shared by all locks created in a process, read from GCSLOCK_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="GCSLOCK_",
        env_file=_resolve_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    project: str | None = Field(default=None, description="Project of the storage client.")
    user_agent: str = DEFAULT_USER_AGENT
    api_endpoint: str | None = Field(
        default=None, description="Storage API endpoint override, e.g. an emulator."
    )
    anonymous: bool = Field(default=False, description="Skip credential lookup (emulators).")
    max_retries: int = Field(default=5, ge=0, description="Retries after a lost contention round.")
    base_delay: float = Field(default=0.05, gt=0, description="First backoff delay in seconds.")
    max_delay: float | None = Field(default=None, gt=0)
    log_level: str = "info"

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.strip().lower()

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
        )


_CURRENT_SETTINGS: LockSettings | None = None


def get_settings() -> LockSettings:
    global _CURRENT_SETTINGS
    if _CURRENT_SETTINGS is None:
        _CURRENT_SETTINGS = LockSettings()
    return _CURRENT_SETTINGS


def set_settings(settings: LockSettings | None) -> None:
    global _CURRENT_SETTINGS
    _CURRENT_SETTINGS = settings
