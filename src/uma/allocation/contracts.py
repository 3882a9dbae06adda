"""Core contracts and value objects for unit allocation."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Iterable, Protocol, Sequence


class Gender(str, Enum):
    """Member gender as recorded by member management."""

    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class GenderRestriction(str, Enum):
    """Gender admitted by a unit."""

    MALE = "Male"
    FEMALE = "Female"
    ANY = "Any"


class MemberStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    PENDING = "Pending"


class AllocationStatus(str, Enum):
    """Allocation state of a membership."""

    UNALLOCATED = "Unallocated"
    ALLOCATED = "Allocated"
    NEEDS_REALLOCATION = "NeedsReallocation"
    ALLOCATION_FAILED = "AllocationFailed"


class AllocationOutcome(str, Enum):
    """Decision kinds written to the audit trail."""

    ALLOCATED = "ALLOCATED"
    REALLOCATED = "REALLOCATED"
    REMOVED = "REMOVED"
    FAILED = "FAILED"
    INELIGIBLE = "INELIGIBLE"
    REJECTED = "REJECTED"
    NEEDS_REALLOCATION = "NEEDS_REALLOCATION"


class CommitOutcome(str, Enum):
    """Result of the guarded write of a membership's unit pointer."""

    COMMITTED = "COMMITTED"
    STALE = "STALE"
    FULL = "FULL"


@dataclass(frozen=True, slots=True)
class Member:
    member_id: str
    date_of_birth: date
    gender: Gender
    status: MemberStatus = MemberStatus.ACTIVE
    full_name: str = ""


@dataclass(frozen=True, slots=True)
class Unit:
    """Age/gender scoped sub-group of a club.

    ``age_min`` is inclusive, ``age_max`` exclusive; ``capacity`` of ``None``
    means unlimited.
    """

    unit_id: str
    club_id: str
    name: str
    age_min: int
    age_max: int
    gender_restriction: GenderRestriction = GenderRestriction.ANY
    capacity: int | None = None

    def __post_init__(self) -> None:
        if self.age_min >= self.age_max:
            raise ValueError(
                f"unit {self.unit_id}: age_min ({self.age_min}) must be lower than age_max ({self.age_max})"
            )
        if self.capacity is not None and self.capacity < 0:
            raise ValueError(f"unit {self.unit_id}: capacity must not be negative")

    @property
    def band_width(self) -> int:
        return self.age_max - self.age_min


@dataclass(frozen=True, slots=True)
class Club:
    club_id: str
    name: str
    units: tuple[Unit, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class Membership:
    """Link between a member and a club, optionally pointing at one unit.

    ``version`` increases on every unit change and guards concurrent commits.
    """

    membership_id: str
    member_id: str
    club_id: str
    unit_id: str | None = None
    is_active: bool = True
    allocated_at_utc: datetime | None = None
    version: int = 0


@dataclass(frozen=True, slots=True)
class AllocationRecord:
    """Immutable audit entry for one allocation decision."""

    membership_id: str
    previous_unit_id: str | None
    new_unit_id: str | None
    outcome: AllocationOutcome
    reason: str
    timestamp_utc: datetime
    record_id: int | None = None


@dataclass(frozen=True, slots=True)
class CommitResult:
    outcome: CommitOutcome
    membership: Membership | None = None
    record: AllocationRecord | None = None


class MemberDirectory(Protocol):
    """Read access to members plus the gender update owned by member management."""

    def get_member(self, member_id: str) -> Member | None:
        """Return the member or ``None`` when unknown."""

    def update_gender(self, member_id: str, gender: Gender) -> Member:
        """Persist the new gender and return the updated member."""


class UnitCatalog(Protocol):
    """Read-only access to clubs and their units."""

    def get_club(self, club_id: str) -> Club | None:
        """Return the club with all of its units or ``None``."""

    def get_unit(self, unit_id: str) -> Unit | None:
        """Return a single unit or ``None``."""


class MembershipStore(Protocol):
    """Membership reads plus the single guarded write the engine performs."""

    def get_membership(self, membership_id: str) -> Membership | None:
        ...

    def list_active_for_member(self, member_id: str) -> Sequence[Membership]:
        ...

    def list_active_for_club(self, club_id: str) -> Sequence[Membership]:
        ...

    def count_active_in_unit(self, unit_id: str, *, exclude_membership_id: str | None = None) -> int:
        ...

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
        """Replace the unit pointer atomically.

        Returns ``STALE`` when the membership changed since ``expected_version``
        and ``FULL`` when ``new_unit_id`` already holds ``capacity`` active
        memberships other than this one. ``record`` is appended in the same
        transaction on success only.
        """


class AuditStore(Protocol):
    """Append-only persistence for allocation records."""

    def append(self, record: AllocationRecord) -> AllocationRecord:
        ...

    def history(self, membership_id: str) -> Sequence[AllocationRecord]:
        """Return records oldest first."""

    def latest_for(self, membership_ids: Iterable[str]) -> dict[str, AllocationRecord]:
        """Return the most recent record per membership that has any."""


__all__ = [
    "AllocationOutcome",
    "AllocationRecord",
    "AllocationStatus",
    "AuditStore",
    "Club",
    "CommitOutcome",
    "CommitResult",
    "Gender",
    "GenderRestriction",
    "Member",
    "MemberDirectory",
    "MemberStatus",
    "Membership",
    "MembershipStore",
    "Unit",
    "UnitCatalog",
]
