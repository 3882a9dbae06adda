"""Common fixtures and helpers for allocation engine tests."""
from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

import pytest
from prometheus_client import CollectorRegistry

from uma.allocation.contracts import (
    Club,
    Gender,
    GenderRestriction,
    Member,
    Membership,
    Unit,
)
from uma.allocation.factories import build_orchestrator
from uma.allocation.memory import InMemoryAllocationStore
from uma.allocation.metrics import AllocationMeters
from uma.core.settings import AllocationSettings


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self._wall = start or datetime(2025, 3, 1, 9, 0, tzinfo=UTC)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._wall

    def advance(self, seconds: float) -> None:
        with self._lock:
            self._wall += timedelta(seconds=seconds)

    def set(self, moment: datetime) -> None:
        with self._lock:
            self._wall = moment


@dataclass(frozen=True)
class Eagles:
    club: Club
    unit_a: Unit
    unit_b: Unit


EAGLES_ID = "club-eagles"


def seed_eagles(store) -> Eagles:
    """Unit A admits ages 10-12 of any gender (2 seats); Unit B girls 13-15 (1 seat)."""

    unit_a = Unit("unit-a", EAGLES_ID, "Unit A", age_min=10, age_max=13, capacity=2)
    unit_b = Unit(
        "unit-b",
        EAGLES_ID,
        "Unit B",
        age_min=13,
        age_max=16,
        gender_restriction=GenderRestriction.FEMALE,
        capacity=1,
    )
    club = Club(EAGLES_ID, "Eagles", (unit_a, unit_b))
    store.add_club(club)
    return Eagles(club=club, unit_a=unit_a, unit_b=unit_b)


def enrol(
    store,
    key: str,
    *,
    born: date,
    gender: Gender = Gender.FEMALE,
    club_id: str = EAGLES_ID,
    unit_id: str | None = None,
) -> Membership:
    store.add_member(Member(f"member-{key}", born, gender, full_name=f"Member {key}"))
    return store.add_membership(
        Membership(f"membership-{key}", f"member-{key}", club_id, unit_id=unit_id)
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def meters(registry: CollectorRegistry) -> AllocationMeters:
    return AllocationMeters(registry)


@pytest.fixture
def settings() -> AllocationSettings:
    return AllocationSettings()


@pytest.fixture
def store() -> InMemoryAllocationStore:
    return InMemoryAllocationStore()


@pytest.fixture
def eagles(store: InMemoryAllocationStore) -> Eagles:
    return seed_eagles(store)


@pytest.fixture
def orchestrator(store, settings, clock, meters):
    return build_orchestrator(store, settings=settings, clock=clock, meters=meters)
