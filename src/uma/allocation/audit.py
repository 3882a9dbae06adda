"""Append-only allocation history and the status derived from it."""
from __future__ import annotations

from typing import Iterable, Sequence

from uma.core.clock import Clock, SystemClock

from .contracts import (
    AllocationOutcome,
    AllocationRecord,
    AllocationStatus,
    AuditStore,
    Membership,
)

_FAILED_OUTCOMES = frozenset({AllocationOutcome.FAILED})
# Outcomes that say something about the unit a membership currently holds.
_UNIT_STATE_OUTCOMES = frozenset(
    {
        AllocationOutcome.ALLOCATED,
        AllocationOutcome.REALLOCATED,
        AllocationOutcome.NEEDS_REALLOCATION,
    }
)


def derive_status(membership: Membership, latest: AllocationRecord | None) -> AllocationStatus:
    """Map the current unit pointer and the last decision onto a state.

    The unit pointer is authoritative for ``Allocated`` versus not; the latest
    record only refines it (``NeedsReallocation`` for the unit still held,
    ``AllocationFailed`` after a failed attempt).
    """

    if not membership.is_active:
        return AllocationStatus.UNALLOCATED
    if membership.unit_id is None:
        if latest is not None and latest.outcome in _FAILED_OUTCOMES:
            return AllocationStatus.ALLOCATION_FAILED
        return AllocationStatus.UNALLOCATED
    if (
        latest is not None
        and latest.outcome is AllocationOutcome.NEEDS_REALLOCATION
        and latest.new_unit_id == membership.unit_id
    ):
        return AllocationStatus.NEEDS_REALLOCATION
    return AllocationStatus.ALLOCATED


def deciding_record(
    membership: Membership, history: Sequence[AllocationRecord]
) -> AllocationRecord | None:
    """Return the newest record that still describes the membership's state.

    While a unit is held, rejected or failed attempts to move elsewhere do not
    change the standing of that unit, so they are skipped.
    """

    if not history:
        return None
    if membership.unit_id is None:
        return history[-1]
    for record in reversed(history):
        if record.outcome in _UNIT_STATE_OUTCOMES:
            return record
    return None


class AllocationAuditTrail:
    """Builds, appends and queries allocation records.

    No update or delete exists; corrections are new entries.
    """

    def __init__(self, store: AuditStore, *, clock: Clock | None = None) -> None:
        self._store = store
        self._clock = clock or SystemClock()

    def build(
        self,
        *,
        membership_id: str,
        previous_unit_id: str | None,
        new_unit_id: str | None,
        outcome: AllocationOutcome,
        reason: str,
    ) -> AllocationRecord:
        return AllocationRecord(
            membership_id=membership_id,
            previous_unit_id=previous_unit_id,
            new_unit_id=new_unit_id,
            outcome=outcome,
            reason=reason,
            timestamp_utc=self._clock.now(),
        )

    def record(
        self,
        *,
        membership_id: str,
        previous_unit_id: str | None,
        new_unit_id: str | None,
        outcome: AllocationOutcome,
        reason: str,
    ) -> AllocationRecord:
        record = self.build(
            membership_id=membership_id,
            previous_unit_id=previous_unit_id,
            new_unit_id=new_unit_id,
            outcome=outcome,
            reason=reason,
        )
        return self._store.append(record)

    def history(self, membership_id: str) -> Sequence[AllocationRecord]:
        return self._store.history(membership_id)

    def latest(self, membership_id: str) -> AllocationRecord | None:
        return self._store.latest_for([membership_id]).get(membership_id)

    def latest_for(self, membership_ids: Iterable[str]) -> dict[str, AllocationRecord]:
        return self._store.latest_for(membership_ids)

    def status_of(self, membership: Membership) -> AllocationStatus:
        if membership.unit_id is None:
            return derive_status(membership, self.latest(membership.membership_id))
        history = self.history(membership.membership_id)
        return derive_status(membership, deciding_record(membership, history))


__all__ = ["AllocationAuditTrail", "deciding_record", "derive_status"]
