"""Error hierarchy with machine-readable codes for allocation failures."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ErrorDetail:
    """Structured error payload returned to callers.

    Attributes
    ----------
    code:
        Machine-readable error code.
    message:
        Human-facing message, safe to show to administrators.
    details:
        Additional diagnostic context for operators.
    """

    code: str
    message: str
    details: str = ""


class AllocationError(Exception):
    """Base class for errors raised inside the engine."""

    def __init__(self, detail: ErrorDetail) -> None:
        super().__init__(detail.message)
        self.detail = detail

    @property
    def code(self) -> str:
        return self.detail.code

    def __str__(self) -> str:  # pragma: no cover - human readable path
        return f"{self.detail.code}: {self.detail.message}"


class NotFoundError(AllocationError):
    """A referenced membership, member, unit or club does not exist."""


class ValidationError(AllocationError):
    """The request is well-formed but refers to an inconsistent state."""


class ConcurrencyConflictError(AllocationError):
    """A concurrent writer won the race for the same membership or slot."""

    def __init__(self, detail: ErrorDetail, *, kind: str) -> None:
        super().__init__(detail)
        self.kind = kind


def membership_not_found(membership_id: str) -> NotFoundError:
    return NotFoundError(
        ErrorDetail("MEMBERSHIP_NOT_FOUND", "membership not found", f"membership_id={membership_id}")
    )


def member_not_found(member_id: str) -> NotFoundError:
    return NotFoundError(ErrorDetail("MEMBER_NOT_FOUND", "member not found", f"member_id={member_id}"))


def unit_not_found(unit_id: str) -> NotFoundError:
    return NotFoundError(ErrorDetail("UNIT_NOT_FOUND", "unit not found", f"unit_id={unit_id}"))


def club_not_found(club_id: str) -> NotFoundError:
    return NotFoundError(ErrorDetail("CLUB_NOT_FOUND", "club not found", f"club_id={club_id}"))


def unit_club_mismatch(unit_id: str, unit_club_id: str, membership_club_id: str) -> ValidationError:
    return ValidationError(
        ErrorDetail(
            "UNIT_CLUB_MISMATCH",
            "unit does not belong to the membership's club",
            f"unit_id={unit_id} unit_club={unit_club_id} membership_club={membership_club_id}",
        )
    )


def membership_inactive(membership_id: str) -> ValidationError:
    return ValidationError(
        ErrorDetail("MEMBERSHIP_INACTIVE", "membership is not active", f"membership_id={membership_id}")
    )


def not_allocated(membership_id: str) -> ValidationError:
    return ValidationError(
        ErrorDetail(
            "NOT_ALLOCATED",
            "membership is not allocated to any unit",
            f"membership_id={membership_id}",
        )
    )


def concurrency_conflict(membership_id: str, *, kind: str) -> ConcurrencyConflictError:
    return ConcurrencyConflictError(
        ErrorDetail(
            "CONCURRENCY_CONFLICT",
            "allocation lost a concurrent update; retry the request",
            f"membership_id={membership_id} kind={kind}",
        ),
        kind=kind,
    )


__all__ = [
    "AllocationError",
    "ConcurrencyConflictError",
    "ErrorDetail",
    "NotFoundError",
    "ValidationError",
    "club_not_found",
    "concurrency_conflict",
    "member_not_found",
    "membership_inactive",
    "membership_not_found",
    "not_allocated",
    "unit_club_mismatch",
    "unit_not_found",
]
