"""Structured results returned by the orchestrator's public operations."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from .capacity import UnitCapacity
from .contracts import AllocationRecord, AllocationStatus, Gender, Unit
from .errors import AllocationError, ConcurrencyConflictError, NotFoundError


class ResultKind(str, Enum):
    OK = "OK"
    BUSINESS_FAILURE = "BUSINESS_FAILURE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"


class TaskType(str, Enum):
    """Follow-up task the surrounding service should open, if any."""

    MEMBER_UNDER_AGE = "MemberUnderAge"
    MEMBER_OVER_AGE = "MemberOverAge"
    ALLOCATE_UNIT = "AllocateUnit"
    CAPACITY_EXCEEDED = "CapacityExceeded"
    BIRTHDAY_REALLOCATION = "BirthdayReallocation"
    CHOOSE_REALLOCATION_UNIT = "ChooseReallocationUnit"
    NO_COMPATIBLE_UNIT = "NoCompatibleUnit"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def kind_for_error(error: AllocationError) -> ResultKind:
    if isinstance(error, NotFoundError):
        return ResultKind.NOT_FOUND
    if isinstance(error, ConcurrencyConflictError):
        return ResultKind.CONFLICT
    return ResultKind.VALIDATION_ERROR


@dataclass(frozen=True, slots=True)
class CompatibleUnit:
    unit: Unit
    current_count: int
    has_available_capacity: bool
    occupancy_percentage: float


@dataclass(frozen=True, slots=True)
class ReallocationCheck:
    needs_reallocation: bool
    age: int
    reference_year: int
    current_unit: Unit
    reason: str | None = None
    compatible_units: tuple[CompatibleUnit, ...] = ()

    @property
    def available_units(self) -> tuple[CompatibleUnit, ...]:
        return tuple(entry for entry in self.compatible_units if entry.has_available_capacity)


@dataclass(frozen=True, slots=True)
class MembershipAllocationState:
    membership_id: str
    member_id: str
    unit_id: str | None
    status: AllocationStatus
    last_reason: str | None = None
    last_decided_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class AllocationResult:
    """Outcome of one allocation operation on one membership."""

    kind: ResultKind
    message: str
    membership_id: str
    status: AllocationStatus | None = None
    unit_id: str | None = None
    previous_unit_id: str | None = None
    error_code: str | None = None
    task_type: TaskType | None = None
    record: AllocationRecord | None = None
    reallocation_check: ReallocationCheck | None = None
    suitability_warnings: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.kind is ResultKind.OK

    @classmethod
    def from_error(cls, error: AllocationError, membership_id: str) -> "AllocationResult":
        return cls(
            kind=kind_for_error(error),
            message=error.detail.message,
            membership_id=membership_id,
            error_code=error.detail.code,
        )

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class QueryResult(Generic[T]):
    kind: ResultKind
    message: str
    items: tuple[T, ...] = ()
    error_code: str | None = None

    @property
    def ok(self) -> bool:
        return self.kind is ResultKind.OK

    @classmethod
    def from_error(cls, error: AllocationError) -> "QueryResult[T]":
        return cls(kind=kind_for_error(error), message=error.detail.message, error_code=error.detail.code)

    def to_dict(self) -> dict[str, Any]:
        payload = {
            "kind": self.kind,
            "message": self.message,
            "error_code": self.error_code,
            "items": [asdict(item) for item in self.items],
        }
        return _jsonable(payload)


@dataclass(frozen=True, slots=True)
class GenderChangeResult:
    kind: ResultKind
    message: str
    member_id: str
    gender: Gender | None = None
    results: tuple[AllocationResult, ...] = field(default_factory=tuple)
    error_code: str | None = None

    @property
    def ok(self) -> bool:
        return self.kind is ResultKind.OK

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


__all__ = [
    "AllocationResult",
    "CompatibleUnit",
    "GenderChangeResult",
    "MembershipAllocationState",
    "QueryResult",
    "ReallocationCheck",
    "ResultKind",
    "TaskType",
    "UnitCapacity",
    "kind_for_error",
]
