"""State-transition authority for membership unit allocation."""
from __future__ import annotations

from contextlib import ExitStack, contextmanager
from threading import Lock
from typing import Dict, Iterator, List, Sequence

from uma.core.clock import Clock, SystemClock

from .age import AgeCalculator
from .audit import AllocationAuditTrail, derive_status
from .capacity import CapacityTracker, UnitCapacity
from .contracts import (
    AllocationOutcome,
    AllocationRecord,
    AllocationStatus,
    AuditStore,
    Club,
    CommitOutcome,
    CommitResult,
    Gender,
    Member,
    MemberDirectory,
    Membership,
    MembershipStore,
    Unit,
    UnitCatalog,
)
from .eligibility import EligibilityEvaluator
from .errors import (
    AllocationError,
    ConcurrencyConflictError,
    club_not_found,
    concurrency_conflict,
    member_not_found,
    membership_inactive,
    membership_not_found,
    not_allocated,
    unit_club_mismatch,
    unit_not_found,
)
from .logging_utils import LoggerLike, build_logger
from .matcher import UnitCompatibilityMatcher
from .metrics import DEFAULT_METERS, MeterLike
from .results import (
    AllocationResult,
    CompatibleUnit,
    GenderChangeResult,
    MembershipAllocationState,
    QueryResult,
    ReallocationCheck,
    ResultKind,
    TaskType,
    kind_for_error,
)

AUTO_ALLOCATION_REASON = "auto-allocation"
MANUAL_ALLOCATION_REASON = "manual allocation"
REALLOCATION_REASON = "reallocation"
REMOVAL_REASON = "removed"
GENDER_CHANGE_REASON = "gender change"
NO_CAPACITY_REASON = "no compatible unit with available capacity"
COMPATIBLE_AGAIN_REASON = "current unit is compatible again"

# Extra selections after losing the race for a slot.
MAX_RESELECTIONS = 1


class KeyedLocks:
    """Process-local locks keyed by string, acquired in sorted order.

    An entry exists only while some caller holds or waits for it.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: Dict[str, Lock] = {}
        self._waiters: Dict[str, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def _acquire(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = Lock()
            self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                remaining = self._waiters[key] - 1
                if remaining:
                    self._waiters[key] = remaining
                else:
                    del self._waiters[key]
                    del self._locks[key]

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        with ExitStack() as stack:
            for key in sorted(set(keys)):
                stack.enter_context(self._acquire(key))
            yield


def _membership_key(membership_id: str) -> str:
    return f"membership:{membership_id}"


def _unit_key(unit_id: str) -> str:
    return f"unit:{unit_id}"


def _task_for_targets(available: int) -> TaskType:
    if available == 0:
        return TaskType.NO_COMPATIBLE_UNIT
    if available == 1:
        return TaskType.BIRTHDAY_REALLOCATION
    return TaskType.CHOOSE_REALLOCATION_UNIT


class AllocationOrchestrator:
    """Coordinates eligibility, matching, capacity and the audit trail.

    Public methods never raise :class:`AllocationError`; reference errors,
    business failures and lost races come back as result values. Writes to a
    membership are serialised per membership, and commits into a unit per
    unit, on top of the store's own version and capacity guard.
    """

    def __init__(
        self,
        *,
        members: MemberDirectory,
        units: UnitCatalog,
        memberships: MembershipStore,
        audit_store: AuditStore,
        age_calculator: AgeCalculator | None = None,
        eligibility: EligibilityEvaluator | None = None,
        matcher: UnitCompatibilityMatcher | None = None,
        clock: Clock | None = None,
        meters: MeterLike | None = None,
        logger: LoggerLike | None = None,
    ) -> None:
        self._members = members
        self._units = units
        self._memberships = memberships
        self._clock = clock or SystemClock()
        calculator = age_calculator or AgeCalculator()
        self._eligibility = eligibility or EligibilityEvaluator(age_calculator=calculator)
        self._matcher = matcher or UnitCompatibilityMatcher(age_calculator=calculator, clock=self._clock)
        self._capacity = CapacityTracker(memberships)
        self._audit = AllocationAuditTrail(audit_store, clock=self._clock)
        self._meters = meters or DEFAULT_METERS
        self._logger = logger or build_logger()
        self._locks = KeyedLocks()

    @property
    def audit_trail(self) -> AllocationAuditTrail:
        return self._audit

    @property
    def capacity(self) -> CapacityTracker:
        return self._capacity

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def auto_allocate(self, membership_id: str, *, reference_year: int | None = None) -> AllocationResult:
        """Place the membership in the best-fitting unit that has room."""

        try:
            with self._locks.hold(_membership_key(membership_id)):
                return self._auto_place(
                    membership_id,
                    reference_year=reference_year,
                    reason=AUTO_ALLOCATION_REASON,
                    clear_on_failure=False,
                )
        except AllocationError as error:
            return self._error_result(error, membership_id)

    def allocate_to_specific_unit(
        self, membership_id: str, unit_id: str, reason: str | None = None
    ) -> AllocationResult:
        """Manual placement; club and capacity are enforced, fit is advisory."""

        try:
            with self._locks.hold(_membership_key(membership_id)):
                return self._place_manually(
                    membership_id,
                    unit_id,
                    reason=reason or MANUAL_ALLOCATION_REASON,
                    outcome=AllocationOutcome.ALLOCATED,
                )
        except AllocationError as error:
            return self._error_result(error, membership_id)

    def reallocate(self, membership_id: str, new_unit_id: str, reason: str | None = None) -> AllocationResult:
        try:
            with self._locks.hold(_membership_key(membership_id)):
                return self._place_manually(
                    membership_id,
                    new_unit_id,
                    reason=reason or REALLOCATION_REASON,
                    outcome=AllocationOutcome.REALLOCATED,
                )
        except AllocationError as error:
            return self._error_result(error, membership_id)

    def remove_from_unit(self, membership_id: str) -> AllocationResult:
        try:
            with self._locks.hold(_membership_key(membership_id)):
                membership = self._load_active_membership(membership_id)
                if membership.unit_id is None:
                    raise not_allocated(membership_id)
                record = self._audit.build(
                    membership_id=membership_id,
                    previous_unit_id=membership.unit_id,
                    new_unit_id=None,
                    outcome=AllocationOutcome.REMOVED,
                    reason=REMOVAL_REASON,
                )
                committed = self._commit(membership, None, record)
                if committed.outcome is not CommitOutcome.COMMITTED:
                    self._note_conflict(membership_id, membership.unit_id, committed.outcome)
                    raise self._lost_race(membership_id, committed)
                return self._committed_result(committed, membership, "membership removed from unit")
        except AllocationError as error:
            return self._error_result(error, membership_id)

    def check_birthday_reallocation(
        self, membership_id: str, reference_year: int | None = None
    ) -> AllocationResult:
        """Detect whether the held unit still fits; never moves the membership."""

        try:
            with self._locks.hold(_membership_key(membership_id)):
                return self._check_current_unit(membership_id, reference_year)
        except AllocationError as error:
            return self._error_result(error, membership_id)

    def handle_gender_change(self, member_id: str, new_gender: Gender) -> GenderChangeResult:
        """Persist the new gender and re-place every membership it invalidates.

        Memberships are processed independently; one failing does not stop
        the others.
        """

        try:
            if self._members.get_member(member_id) is None:
                raise member_not_found(member_id)
            member = self._members.update_gender(member_id, new_gender)
        except AllocationError as error:
            self._note_error(error)
            return GenderChangeResult(
                kind=kind_for_error(error),
                message=error.detail.message,
                member_id=member_id,
                error_code=error.code,
            )

        results: List[AllocationResult] = []
        for membership in self._memberships.list_active_for_member(member_id):
            try:
                with self._locks.hold(_membership_key(membership.membership_id)):
                    results.append(self._reconcile_gender(membership.membership_id, member))
            except AllocationError as error:
                results.append(self._error_result(error, membership.membership_id))

        moved = sum(1 for item in results if item.record is not None and item.record.new_unit_id)
        self._logger.bind(member_id=member_id).info(
            "gender_change_processed",
            extra={
                "gender": member.gender.value,
                "memberships": len(results),
                "moved": moved,
            },
        )
        return GenderChangeResult(
            kind=ResultKind.OK,
            message="gender updated",
            member_id=member_id,
            gender=member.gender,
            results=tuple(results),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_members_needing_allocation(self, club_id: str) -> QueryResult[MembershipAllocationState]:
        try:
            self._load_club(club_id)
            candidates = [
                item for item in self._memberships.list_active_for_club(club_id) if item.unit_id is None
            ]
            latest = self._audit.latest_for(item.membership_id for item in candidates)
            states: List[MembershipAllocationState] = []
            for membership in candidates:
                record = latest.get(membership.membership_id)
                status = derive_status(membership, record)
                if status in (AllocationStatus.UNALLOCATED, AllocationStatus.ALLOCATION_FAILED):
                    states.append(self._state(membership, status, record))
            return QueryResult(
                kind=ResultKind.OK,
                message=f"{len(states)} membership(s) need allocation",
                items=tuple(states),
            )
        except AllocationError as error:
            self._note_error(error)
            return QueryResult.from_error(error)

    def get_club_capacity_status(self, club_id: str) -> QueryResult[UnitCapacity]:
        try:
            club = self._load_club(club_id)
            items = tuple(self._capacity.snapshot(unit) for unit in club.units)
            return QueryResult(kind=ResultKind.OK, message="capacity status", items=items)
        except AllocationError as error:
            self._note_error(error)
            return QueryResult.from_error(error)

    def get_unit_capacity(self, unit_id: str) -> QueryResult[UnitCapacity]:
        try:
            unit = self._load_unit(unit_id)
            snapshot = self._capacity.snapshot(unit)
            message = "unit has available capacity" if snapshot.has_available_capacity else "unit is full"
            return QueryResult(kind=ResultKind.OK, message=message, items=(snapshot,))
        except AllocationError as error:
            self._note_error(error)
            return QueryResult.from_error(error)

    def get_compatible_units(
        self, member_id: str, club_id: str, reference_year: int | None = None
    ) -> QueryResult[CompatibleUnit]:
        try:
            member = self._load_member(member_id)
            club = self._load_club(club_id)
            items = self._compatible_view(member, club, self._matcher.resolve_year(reference_year))
            return QueryResult(
                kind=ResultKind.OK, message=f"{len(items)} compatible unit(s)", items=tuple(items)
            )
        except AllocationError as error:
            self._note_error(error)
            return QueryResult.from_error(error)

    def get_allocation_history(self, membership_id: str) -> QueryResult[AllocationRecord]:
        try:
            self._load_membership(membership_id)
            history = tuple(self._audit.history(membership_id))
            return QueryResult(kind=ResultKind.OK, message=f"{len(history)} record(s)", items=history)
        except AllocationError as error:
            self._note_error(error)
            return QueryResult.from_error(error)

    def get_allocation_state(self, membership_id: str) -> QueryResult[MembershipAllocationState]:
        try:
            membership = self._load_membership(membership_id)
            latest = self._audit.latest(membership_id)
            state = self._state(membership, self._audit.status_of(membership), latest)
            return QueryResult(kind=ResultKind.OK, message=state.status.value, items=(state,))
        except AllocationError as error:
            self._note_error(error)
            return QueryResult.from_error(error)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _auto_place(
        self,
        membership_id: str,
        *,
        reference_year: int | None,
        reason: str,
        clear_on_failure: bool,
    ) -> AllocationResult:
        membership = self._load_active_membership(membership_id)
        member = self._load_member(membership.member_id)
        club = self._load_club(membership.club_id)
        year = self._matcher.resolve_year(reference_year)

        verdict = self._eligibility.is_eligible(member, year)
        if not verdict:
            return self._placement_failed(
                membership,
                outcome=AllocationOutcome.INELIGIBLE,
                reason=verdict.reason or "member is not eligible",
                task_type=TaskType.MEMBER_UNDER_AGE,
                clear_on_failure=clear_on_failure,
            )

        compatible = self._matcher.compatible_units(member, club, year)
        if not compatible:
            return self._placement_failed(
                membership,
                outcome=AllocationOutcome.FAILED,
                reason=NO_CAPACITY_REASON,
                task_type=self._no_match_task(member, club, year),
                clear_on_failure=clear_on_failure,
            )

        last: CommitResult | None = None
        for _ in range(MAX_RESELECTIONS + 1):
            available = self._capacity.filter_available(
                compatible, exclude_membership_id=membership.membership_id
            )
            if not available:
                return self._placement_failed(
                    membership,
                    outcome=AllocationOutcome.FAILED,
                    reason=NO_CAPACITY_REASON,
                    task_type=TaskType.CAPACITY_EXCEEDED,
                    clear_on_failure=clear_on_failure,
                )
            target = available[0]
            record = self._audit.build(
                membership_id=membership.membership_id,
                previous_unit_id=membership.unit_id,
                new_unit_id=target.unit_id,
                outcome=AllocationOutcome.ALLOCATED,
                reason=reason,
            )
            last = self._commit(membership, target, record)
            if last.outcome is CommitOutcome.COMMITTED:
                return self._committed_result(last, membership, f"allocated to unit {target.name}")
            self._note_conflict(membership.membership_id, target.unit_id, last.outcome)
            membership = self._refresh(membership_id, last)
        assert last is not None
        raise self._lost_race(membership_id, last)

    def _place_manually(
        self, membership_id: str, unit_id: str, *, reason: str, outcome: AllocationOutcome
    ) -> AllocationResult:
        membership = self._load_active_membership(membership_id)
        unit = self._load_unit(unit_id)
        if unit.club_id != membership.club_id:
            raise unit_club_mismatch(unit.unit_id, unit.club_id, membership.club_id)
        member = self._load_member(membership.member_id)
        warnings = self._suitability_warnings(member, unit)
        if membership.unit_id == unit.unit_id:
            return self._confirm_current_unit(membership, unit, reason, warnings)

        if not self._capacity.has_available_capacity(unit, exclude_membership_id=membership_id):
            return self._capacity_rejected(membership, unit, reason, warnings)
        record = self._audit.build(
            membership_id=membership_id,
            previous_unit_id=membership.unit_id,
            new_unit_id=unit.unit_id,
            outcome=outcome,
            reason=reason,
        )
        committed = self._commit(membership, unit, record)
        if committed.outcome is CommitOutcome.FULL:
            self._note_conflict(membership_id, unit.unit_id, committed.outcome)
            return self._capacity_rejected(membership, unit, reason, warnings)
        if committed.outcome is CommitOutcome.STALE:
            self._note_conflict(membership_id, unit.unit_id, committed.outcome)
            raise self._lost_race(membership_id, committed)
        verb = "reallocated" if outcome is AllocationOutcome.REALLOCATED else "allocated"
        return self._committed_result(
            committed, membership, f"{verb} to unit {unit.name}", warnings=warnings
        )

    def _no_match_task(self, member: Member, club: Club, year: int) -> TaskType:
        age = self._matcher.profile(member, year).age
        if club.units and all(age >= unit.age_max for unit in club.units):
            return TaskType.MEMBER_OVER_AGE
        return TaskType.ALLOCATE_UNIT

    def _confirm_current_unit(
        self, membership: Membership, unit: Unit, reason: str, warnings: Sequence[str]
    ) -> AllocationResult:
        # The slot is already held, so no capacity check or pointer change.
        record = self._write(
            membership_id=membership.membership_id,
            previous_unit_id=unit.unit_id,
            new_unit_id=unit.unit_id,
            outcome=AllocationOutcome.ALLOCATED,
            reason=reason,
        )
        self._logger.info(
            "allocation_committed",
            extra={
                "membership_id": membership.membership_id,
                "previous_unit_id": unit.unit_id,
                "unit_id": unit.unit_id,
                "outcome": record.outcome.value,
                "reason": reason,
                "version": membership.version,
            },
        )
        return AllocationResult(
            kind=ResultKind.OK,
            message=f"allocation to unit {unit.name} confirmed",
            membership_id=membership.membership_id,
            status=derive_status(membership, record),
            unit_id=unit.unit_id,
            previous_unit_id=unit.unit_id,
            record=record,
            suitability_warnings=tuple(warnings),
        )

    def _check_current_unit(self, membership_id: str, reference_year: int | None) -> AllocationResult:
        membership = self._load_active_membership(membership_id)
        if membership.unit_id is None:
            raise not_allocated(membership_id)
        unit = self._load_unit(membership.unit_id)
        member = self._load_member(membership.member_id)
        club = self._load_club(membership.club_id)
        year = self._matcher.resolve_year(reference_year)
        profile = self._matcher.profile(member, year)
        evaluation = self._matcher.evaluate(member, [unit], year)[0]
        status = self._audit.status_of(membership)

        if evaluation.passed:
            record = None
            if status is AllocationStatus.NEEDS_REALLOCATION:
                record = self._write(
                    membership_id=membership_id,
                    previous_unit_id=unit.unit_id,
                    new_unit_id=unit.unit_id,
                    outcome=AllocationOutcome.ALLOCATED,
                    reason=COMPATIBLE_AGAIN_REASON,
                )
            check = ReallocationCheck(
                needs_reallocation=False, age=profile.age, reference_year=year, current_unit=unit
            )
            return AllocationResult(
                kind=ResultKind.OK,
                message=f"unit {unit.name} is still compatible",
                membership_id=membership_id,
                status=AllocationStatus.ALLOCATED,
                unit_id=unit.unit_id,
                previous_unit_id=unit.unit_id,
                record=record,
                reallocation_check=check,
            )

        reason = "; ".join(
            str(entry["details"].get("message"))
            for entry in evaluation.trace
            if not entry["passed"]
        )
        targets = [
            entry for entry in self._compatible_view(member, club, year) if entry.unit.unit_id != unit.unit_id
        ]
        check = ReallocationCheck(
            needs_reallocation=True,
            age=profile.age,
            reference_year=year,
            current_unit=unit,
            reason=reason,
            compatible_units=tuple(targets),
        )
        record = None
        if status is not AllocationStatus.NEEDS_REALLOCATION:
            record = self._write(
                membership_id=membership_id,
                previous_unit_id=unit.unit_id,
                new_unit_id=unit.unit_id,
                outcome=AllocationOutcome.NEEDS_REALLOCATION,
                reason=reason,
            )
        self._logger.info(
            "reallocation_needed",
            extra={
                "membership_id": membership_id,
                "unit_id": unit.unit_id,
                "age": profile.age,
                "reference_year": year,
                "targets": [entry.unit.unit_id for entry in check.available_units],
            },
        )
        return AllocationResult(
            kind=ResultKind.OK,
            message="reallocation needed: " + reason,
            membership_id=membership_id,
            status=AllocationStatus.NEEDS_REALLOCATION,
            unit_id=unit.unit_id,
            previous_unit_id=unit.unit_id,
            task_type=_task_for_targets(len(check.available_units)),
            record=record,
            reallocation_check=check,
        )

    def _reconcile_gender(self, membership_id: str, member: Member) -> AllocationResult:
        membership = self._load_active_membership(membership_id)
        if membership.unit_id is None:
            return AllocationResult(
                kind=ResultKind.OK,
                message="membership holds no unit",
                membership_id=membership_id,
                status=self._audit.status_of(membership),
            )
        unit = self._load_unit(membership.unit_id)
        if self._matcher.is_compatible(member, unit):
            return AllocationResult(
                kind=ResultKind.OK,
                message=f"unit {unit.name} is still compatible",
                membership_id=membership_id,
                status=self._audit.status_of(membership),
                unit_id=unit.unit_id,
                previous_unit_id=unit.unit_id,
            )
        return self._auto_place(
            membership_id, reference_year=None, reason=GENDER_CHANGE_REASON, clear_on_failure=True
        )

    def _placement_failed(
        self,
        membership: Membership,
        *,
        outcome: AllocationOutcome,
        reason: str,
        task_type: TaskType,
        clear_on_failure: bool,
    ) -> AllocationResult:
        if clear_on_failure and membership.unit_id is not None:
            record = self._audit.build(
                membership_id=membership.membership_id,
                previous_unit_id=membership.unit_id,
                new_unit_id=None,
                outcome=outcome,
                reason=reason,
            )
            committed = self._commit(membership, None, record)
            if committed.outcome is not CommitOutcome.COMMITTED:
                self._note_conflict(membership.membership_id, membership.unit_id, committed.outcome)
                raise self._lost_race(membership.membership_id, committed)
            self._meters.record_decision(outcome)
            membership = committed.membership or membership
            stored = committed.record or record
        else:
            stored = self._write(
                membership_id=membership.membership_id,
                previous_unit_id=membership.unit_id,
                new_unit_id=None,
                outcome=outcome,
                reason=reason,
            )
        self._logger.warning(
            "allocation_failed",
            extra={
                "membership_id": membership.membership_id,
                "outcome": outcome.value,
                "reason": reason,
                "task_type": task_type.value,
            },
        )
        return AllocationResult(
            kind=ResultKind.BUSINESS_FAILURE,
            message=reason,
            membership_id=membership.membership_id,
            status=self._audit.status_of(membership),
            unit_id=membership.unit_id,
            previous_unit_id=stored.previous_unit_id,
            task_type=task_type,
            record=stored,
        )

    def _capacity_rejected(
        self, membership: Membership, unit: Unit, reason: str, warnings: Sequence[str]
    ) -> AllocationResult:
        message = f"unit {unit.name} is at capacity ({unit.capacity})"
        record = self._write(
            membership_id=membership.membership_id,
            previous_unit_id=membership.unit_id,
            new_unit_id=None,
            outcome=AllocationOutcome.REJECTED,
            reason=f"{reason}: {message}",
        )
        self._logger.warning(
            "allocation_failed",
            extra={
                "membership_id": membership.membership_id,
                "unit_id": unit.unit_id,
                "outcome": AllocationOutcome.REJECTED.value,
                "reason": message,
            },
        )
        return AllocationResult(
            kind=ResultKind.BUSINESS_FAILURE,
            message=message,
            membership_id=membership.membership_id,
            status=self._audit.status_of(membership),
            unit_id=membership.unit_id,
            previous_unit_id=membership.unit_id,
            task_type=TaskType.CAPACITY_EXCEEDED,
            record=record,
            suitability_warnings=tuple(warnings),
        )

    def _commit(self, membership: Membership, unit: Unit | None, record: AllocationRecord) -> CommitResult:
        keys = (_unit_key(unit.unit_id),) if unit is not None else ()
        with self._locks.hold(*keys):
            return self._memberships.commit_assignment(
                membership.membership_id,
                expected_version=membership.version,
                new_unit_id=unit.unit_id if unit is not None else None,
                capacity=unit.capacity if unit is not None else None,
                allocated_at=self._clock.now(),
                record=record,
            )

    def _committed_result(
        self,
        committed: CommitResult,
        before: Membership,
        message: str,
        *,
        warnings: Sequence[str] = (),
    ) -> AllocationResult:
        membership = committed.membership
        record = committed.record
        assert membership is not None and record is not None
        self._meters.record_decision(record.outcome)
        self._logger.info(
            "allocation_committed",
            extra={
                "membership_id": membership.membership_id,
                "previous_unit_id": before.unit_id,
                "unit_id": membership.unit_id,
                "outcome": record.outcome.value,
                "reason": record.reason,
                "version": membership.version,
            },
        )
        return AllocationResult(
            kind=ResultKind.OK,
            message=message,
            membership_id=membership.membership_id,
            status=derive_status(membership, record),
            unit_id=membership.unit_id,
            previous_unit_id=before.unit_id,
            record=record,
            suitability_warnings=tuple(warnings),
        )

    def _write(
        self,
        *,
        membership_id: str,
        previous_unit_id: str | None,
        new_unit_id: str | None,
        outcome: AllocationOutcome,
        reason: str,
    ) -> AllocationRecord:
        record = self._audit.record(
            membership_id=membership_id,
            previous_unit_id=previous_unit_id,
            new_unit_id=new_unit_id,
            outcome=outcome,
            reason=reason,
        )
        self._meters.record_decision(outcome)
        return record

    def _refresh(self, membership_id: str, committed: CommitResult) -> Membership:
        membership = committed.membership
        if membership is None:
            raise membership_not_found(membership_id)
        if not membership.is_active:
            raise membership_inactive(membership_id)
        return membership

    def _lost_race(self, membership_id: str, committed: CommitResult) -> ConcurrencyConflictError:
        return concurrency_conflict(membership_id, kind=committed.outcome.value.lower())

    def _note_conflict(self, membership_id: str, unit_id: str, outcome: CommitOutcome) -> None:
        kind = outcome.value.lower()
        self._meters.record_conflict(kind)
        self._logger.warning(
            "capacity_conflict",
            extra={"membership_id": membership_id, "unit_id": unit_id, "kind": kind},
        )

    def _note_error(self, error: AllocationError) -> None:
        if isinstance(error, ConcurrencyConflictError):
            return
        self._meters.record_validation_error(error.code)
        self._logger.warning(
            "allocation_rejected",
            extra={"code": error.code, "details": error.detail.details},
        )

    def _error_result(self, error: AllocationError, membership_id: str) -> AllocationResult:
        self._note_error(error)
        return AllocationResult.from_error(error, membership_id)

    def _suitability_warnings(self, member: Member, unit: Unit) -> List[str]:
        evaluation = self._matcher.evaluate(member, [unit])[0]
        return [
            str(entry["details"].get("message"))
            for entry in evaluation.trace
            if not entry["passed"]
        ]

    def _compatible_view(self, member: Member, club: Club, year: int) -> List[CompatibleUnit]:
        view: List[CompatibleUnit] = []
        for unit in self._matcher.compatible_units(member, club, year):
            snapshot = self._capacity.snapshot(unit)
            view.append(
                CompatibleUnit(
                    unit=unit,
                    current_count=snapshot.current_count,
                    has_available_capacity=snapshot.has_available_capacity,
                    occupancy_percentage=snapshot.occupancy_percentage,
                )
            )
        return view

    def _state(
        self, membership: Membership, status: AllocationStatus, record: AllocationRecord | None
    ) -> MembershipAllocationState:
        return MembershipAllocationState(
            membership_id=membership.membership_id,
            member_id=membership.member_id,
            unit_id=membership.unit_id,
            status=status,
            last_reason=record.reason if record is not None else None,
            last_decided_at=record.timestamp_utc if record is not None else None,
        )

    def _load_membership(self, membership_id: str) -> Membership:
        membership = self._memberships.get_membership(membership_id)
        if membership is None:
            raise membership_not_found(membership_id)
        return membership

    def _load_active_membership(self, membership_id: str) -> Membership:
        membership = self._load_membership(membership_id)
        if not membership.is_active:
            raise membership_inactive(membership_id)
        return membership

    def _load_member(self, member_id: str) -> Member:
        member = self._members.get_member(member_id)
        if member is None:
            raise member_not_found(member_id)
        return member

    def _load_club(self, club_id: str) -> Club:
        club = self._units.get_club(club_id)
        if club is None:
            raise club_not_found(club_id)
        return club

    def _load_unit(self, unit_id: str) -> Unit:
        unit = self._units.get_unit(unit_id)
        if unit is None:
            raise unit_not_found(unit_id)
        return unit


__all__ = [
    "AUTO_ALLOCATION_REASON",
    "AllocationOrchestrator",
    "GENDER_CHANGE_REASON",
    "KeyedLocks",
    "MANUAL_ALLOCATION_REASON",
    "NO_CAPACITY_REASON",
    "REALLOCATION_REASON",
    "REMOVAL_REASON",
]
