"""Clock abstractions confined to the core package."""
from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Protocol


class Clock(Protocol):
    """Clock abstraction for deterministic tests."""

    def now(self) -> datetime:  # pragma: no cover - protocol
        ...


class SystemClock(Clock):
    """Default implementation backed by the process wall clock."""

    def now(self) -> datetime:
        return datetime.now(UTC)


def today(clock: Clock) -> date:
    """Return the UTC calendar date reported by ``clock``."""

    return clock.now().astimezone(UTC).date()


__all__ = ["Clock", "SystemClock", "today"]
