"""Thread-safe in-memory implementation of the allocation collaborators."""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from itertools import count
from threading import RLock
from typing import Dict, Iterable, List, Sequence

from .contracts import (
    AllocationRecord,
    Club,
    CommitOutcome,
    CommitResult,
    Gender,
    Member,
    Membership,
    Unit,
)
from .errors import member_not_found


class InMemoryAllocationStore:
    """Members, clubs, memberships and the audit log behind one lock.

    ``commit_assignment`` performs the version check, the capacity recount and
    the audit append while holding the lock, so at most one writer can take
    the last slot of a unit.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._members: Dict[str, Member] = {}
        self._clubs: Dict[str, Club] = {}
        self._units: Dict[str, Unit] = {}
        self._memberships: Dict[str, Membership] = {}
        self._records: List[AllocationRecord] = []
        self._record_ids = count(1)

    # -- seeding ---------------------------------------------------------
    def add_member(self, member: Member) -> Member:
        with self._lock:
            self._members[member.member_id] = member
            return member

    def add_club(self, club: Club) -> Club:
        with self._lock:
            for unit in club.units:
                if unit.club_id != club.club_id:
                    raise ValueError(f"unit {unit.unit_id} belongs to club {unit.club_id}")
                self._units[unit.unit_id] = unit
            self._clubs[club.club_id] = club
            return club

    def add_unit(self, unit: Unit) -> Unit:
        with self._lock:
            club = self._clubs.get(unit.club_id)
            if club is None:
                raise KeyError(unit.club_id)
            units = tuple(existing for existing in club.units if existing.unit_id != unit.unit_id)
            self._clubs[club.club_id] = replace(club, units=units + (unit,))
            self._units[unit.unit_id] = unit
            return unit

    def add_membership(self, membership: Membership) -> Membership:
        with self._lock:
            if membership.club_id not in self._clubs:
                raise KeyError(membership.club_id)
            if membership.unit_id is not None:
                unit = self._units.get(membership.unit_id)
                if unit is None or unit.club_id != membership.club_id:
                    raise ValueError(f"unit {membership.unit_id} is not part of club {membership.club_id}")
            self._memberships[membership.membership_id] = membership
            return membership

    def deactivate(self, membership_id: str) -> Membership:
        with self._lock:
            current = self._memberships[membership_id]
            updated = replace(current, is_active=False, version=current.version + 1)
            self._memberships[membership_id] = updated
            return updated

    # -- MemberDirectory -------------------------------------------------
    def get_member(self, member_id: str) -> Member | None:
        with self._lock:
            return self._members.get(member_id)

    def update_gender(self, member_id: str, gender: Gender) -> Member:
        with self._lock:
            member = self._members.get(member_id)
            if member is None:
                raise member_not_found(member_id)
            updated = replace(member, gender=gender)
            self._members[member_id] = updated
            return updated

    # -- UnitCatalog -----------------------------------------------------
    def get_club(self, club_id: str) -> Club | None:
        with self._lock:
            return self._clubs.get(club_id)

    def get_unit(self, unit_id: str) -> Unit | None:
        with self._lock:
            return self._units.get(unit_id)

    # -- MembershipStore -------------------------------------------------
    def get_membership(self, membership_id: str) -> Membership | None:
        with self._lock:
            return self._memberships.get(membership_id)

    def list_active_for_member(self, member_id: str) -> Sequence[Membership]:
        with self._lock:
            return [
                item
                for item in self._memberships.values()
                if item.member_id == member_id and item.is_active
            ]

    def list_active_for_club(self, club_id: str) -> Sequence[Membership]:
        with self._lock:
            return [
                item
                for item in self._memberships.values()
                if item.club_id == club_id and item.is_active
            ]

    def count_active_in_unit(self, unit_id: str, *, exclude_membership_id: str | None = None) -> int:
        with self._lock:
            return sum(
                1
                for item in self._memberships.values()
                if item.is_active
                and item.unit_id == unit_id
                and item.membership_id != exclude_membership_id
            )

    def commit_assignment(
        self,
        membership_id: str,
        *,
        expected_version: int,
        new_unit_id: str | None,
        capacity: int | None,
        allocated_at: datetime,
        record: AllocationRecord | None = None,
    ) -> CommitResult:
        with self._lock:
            current = self._memberships.get(membership_id)
            if current is None or current.version != expected_version:
                return CommitResult(CommitOutcome.STALE, current)
            if new_unit_id is not None and capacity is not None:
                occupied = self.count_active_in_unit(new_unit_id, exclude_membership_id=membership_id)
                if occupied >= capacity:
                    return CommitResult(CommitOutcome.FULL, current)
            updated = replace(
                current,
                unit_id=new_unit_id,
                allocated_at_utc=allocated_at if new_unit_id is not None else None,
                version=current.version + 1,
            )
            self._memberships[membership_id] = updated
            stored = self._append_locked(record) if record is not None else None
            return CommitResult(CommitOutcome.COMMITTED, updated, stored)

    # -- AuditStore ------------------------------------------------------
    def append(self, record: AllocationRecord) -> AllocationRecord:
        with self._lock:
            return self._append_locked(record)

    def history(self, membership_id: str) -> Sequence[AllocationRecord]:
        with self._lock:
            return [record for record in self._records if record.membership_id == membership_id]

    def latest_for(self, membership_ids: Iterable[str]) -> dict[str, AllocationRecord]:
        wanted = set(membership_ids)
        latest: dict[str, AllocationRecord] = {}
        with self._lock:
            for record in self._records:
                if record.membership_id in wanted:
                    latest[record.membership_id] = record
        return latest

    def _append_locked(self, record: AllocationRecord) -> AllocationRecord:
        stored = replace(record, record_id=next(self._record_ids))
        self._records.append(stored)
        return stored


__all__ = ["InMemoryAllocationStore"]
