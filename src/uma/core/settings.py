"""Runtime settings for the allocation engine."""
from __future__ import annotations

from datetime import date
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AllocationSettings(BaseSettings):
    """Environment-driven knobs; every field reads ``UMA_<FIELD>``."""

    model_config = SettingsConfigDict(
        env_prefix="UMA_",
        extra="forbid",
        str_strip_whitespace=True,
    )

    database_url: str = Field(default="sqlite+pysqlite:///:memory:")
    minimum_age: int = Field(default=10, ge=0, le=120)
    reference_month: int = Field(default=6, ge=1, le=12)
    reference_day: int = Field(default=1, ge=1, le=31)
    commit_retries: int = Field(default=3, ge=1, le=10)
    commit_backoff_seconds: float = Field(default=0.05, ge=0.0, le=5.0)
    log_level: str = Field(default="INFO")
    log_file: str | None = Field(default=None)

    @model_validator(mode="after")
    def _check_reference_date(self) -> "AllocationSettings":
        # 2000 is a leap year, so 29 February is accepted here.
        try:
            date(2000, self.reference_month, self.reference_day)
        except ValueError as exc:
            raise ValueError(
                f"reference date {self.reference_month:02d}-{self.reference_day:02d} is not a calendar day"
            ) from exc
        return self


@lru_cache(maxsize=1)
def load_settings() -> AllocationSettings:
    """Return process-wide settings read from the environment."""

    return AllocationSettings()


__all__ = ["AllocationSettings", "load_settings"]
