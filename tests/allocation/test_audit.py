from __future__ import annotations

from datetime import UTC, datetime

import pytest

from uma.allocation.audit import AllocationAuditTrail, deciding_record, derive_status
from uma.allocation.contracts import AllocationOutcome, AllocationRecord, AllocationStatus, Membership
from uma.allocation.memory import InMemoryAllocationStore

from .conftest import FakeClock

_WHEN = datetime(2025, 3, 1, tzinfo=UTC)


def _record(outcome: AllocationOutcome, new_unit_id: str | None = None) -> AllocationRecord:
    return AllocationRecord("ms-1", None, new_unit_id, outcome, "why", _WHEN)


@pytest.mark.parametrize(
    "membership, latest, expected",
    [
        (Membership("ms-1", "m", "c"), None, AllocationStatus.UNALLOCATED),
        (Membership("ms-1", "m", "c"), _record(AllocationOutcome.FAILED), AllocationStatus.ALLOCATION_FAILED),
        (Membership("ms-1", "m", "c"), _record(AllocationOutcome.INELIGIBLE), AllocationStatus.UNALLOCATED),
        (Membership("ms-1", "m", "c"), _record(AllocationOutcome.REMOVED), AllocationStatus.UNALLOCATED),
        (
            Membership("ms-1", "m", "c", unit_id="u"),
            _record(AllocationOutcome.ALLOCATED, "u"),
            AllocationStatus.ALLOCATED,
        ),
        (
            Membership("ms-1", "m", "c", unit_id="u"),
            _record(AllocationOutcome.NEEDS_REALLOCATION, "u"),
            AllocationStatus.NEEDS_REALLOCATION,
        ),
        (
            Membership("ms-1", "m", "c", unit_id="u2"),
            _record(AllocationOutcome.NEEDS_REALLOCATION, "u"),
            AllocationStatus.ALLOCATED,
        ),
        (
            Membership("ms-1", "m", "c", unit_id="u", is_active=False),
            _record(AllocationOutcome.ALLOCATED, "u"),
            AllocationStatus.UNALLOCATED,
        ),
    ],
)
def test_derive_status(membership, latest, expected) -> None:
    assert derive_status(membership, latest) is expected


def test_deciding_record_skips_attempts_that_left_the_unit_alone() -> None:
    membership = Membership("ms-1", "m", "c", unit_id="u")
    history = [
        _record(AllocationOutcome.ALLOCATED, "u"),
        _record(AllocationOutcome.NEEDS_REALLOCATION, "u"),
        _record(AllocationOutcome.REJECTED),
        _record(AllocationOutcome.FAILED),
    ]

    assert deciding_record(membership, history) is history[1]
    assert deciding_record(Membership("ms-1", "m", "c"), history) is history[-1]
    assert deciding_record(membership, []) is None


def test_trail_appends_in_order_and_reports_latest(clock: FakeClock) -> None:
    trail = AllocationAuditTrail(InMemoryAllocationStore(), clock=clock)
    first = trail.record(
        membership_id="ms-1",
        previous_unit_id=None,
        new_unit_id="u",
        outcome=AllocationOutcome.ALLOCATED,
        reason="auto-allocation",
    )
    clock.advance(60)
    second = trail.record(
        membership_id="ms-1",
        previous_unit_id="u",
        new_unit_id=None,
        outcome=AllocationOutcome.REMOVED,
        reason="removed",
    )
    trail.record(
        membership_id="ms-2",
        previous_unit_id=None,
        new_unit_id=None,
        outcome=AllocationOutcome.FAILED,
        reason="no compatible unit with available capacity",
    )

    assert first.record_id is not None and second.record_id is not None
    assert first.record_id < second.record_id
    assert [item.outcome for item in trail.history("ms-1")] == [
        AllocationOutcome.ALLOCATED,
        AllocationOutcome.REMOVED,
    ]
    assert second.timestamp_utc > first.timestamp_utc
    assert trail.latest("ms-1") == second
    assert set(trail.latest_for(["ms-1", "ms-2", "ms-3"])) == {"ms-1", "ms-2"}
    assert trail.status_of(Membership("ms-2", "m", "c")) is AllocationStatus.ALLOCATION_FAILED
