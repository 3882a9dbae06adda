"""SQLAlchemy implementation of the allocation collaborators."""
from __future__ import annotations

from datetime import UTC, datetime
from typing import Callable, Iterable, Sequence, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from uma.infrastructure.persistence.models import (
    AllocationRecordModel,
    ClubModel,
    MemberModel,
    MembershipModel,
    UnitModel,
)

from .contracts import (
    AllocationOutcome,
    AllocationRecord,
    Club,
    CommitOutcome,
    CommitResult,
    Gender,
    GenderRestriction,
    Member,
    MemberStatus,
    Membership,
    Unit,
)
from .errors import member_not_found
from .uow import SQLAlchemyUnitOfWork

T = TypeVar("T")


def _utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, OperationalError)


def _to_member(row: MemberModel) -> Member:
    return Member(
        member_id=row.member_id,
        date_of_birth=row.date_of_birth,
        gender=Gender(row.gender),
        status=MemberStatus(row.status),
        full_name=row.full_name,
    )


def _to_unit(row: UnitModel) -> Unit:
    return Unit(
        unit_id=row.unit_id,
        club_id=row.club_id,
        name=row.name,
        age_min=row.age_min,
        age_max=row.age_max,
        gender_restriction=GenderRestriction(row.gender_restriction),
        capacity=row.capacity,
    )


def _to_membership(row: MembershipModel) -> Membership:
    return Membership(
        membership_id=row.membership_id,
        member_id=row.member_id,
        club_id=row.club_id,
        unit_id=row.unit_id,
        is_active=row.is_active,
        allocated_at_utc=_utc(row.allocated_at_utc),
        version=row.version,
    )


def _to_record(row: AllocationRecordModel) -> AllocationRecord:
    return AllocationRecord(
        membership_id=row.membership_id,
        previous_unit_id=row.previous_unit_id,
        new_unit_id=row.new_unit_id,
        outcome=AllocationOutcome(row.outcome),
        reason=row.reason,
        timestamp_utc=_utc(row.timestamp_utc),
        record_id=row.id,
    )


def _record_row(record: AllocationRecord) -> AllocationRecordModel:
    return AllocationRecordModel(
        membership_id=record.membership_id,
        previous_unit_id=record.previous_unit_id,
        new_unit_id=record.new_unit_id,
        outcome=record.outcome.value,
        reason=record.reason,
        timestamp_utc=record.timestamp_utc,
    )


class SqlAlchemyAllocationStore:
    """Relational store; every call runs in its own unit of work.

    Transient ``OperationalError``s (lock timeouts, busy databases) are retried
    with exponential backoff before propagating.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        retries: int = 3,
        backoff_seconds: float = 0.05,
        sleeper: Callable[[float], None] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._retries = retries
        self._backoff_seconds = backoff_seconds
        self._sleeper = sleeper

    def _retrying(self) -> Retrying:
        options: dict[str, object] = {}
        if self._sleeper is not None:
            options["sleep"] = self._sleeper
        return Retrying(
            stop=stop_after_attempt(self._retries),
            wait=wait_exponential(multiplier=self._backoff_seconds, max=2.0),
            retry=retry_if_exception(_is_transient),
            reraise=True,
            **options,
        )

    def _run(self, work: Callable[[Session], T]) -> T:
        for attempt in self._retrying():
            with attempt:
                with SQLAlchemyUnitOfWork(self._session_factory) as uow:
                    return work(uow.session)
        raise AssertionError("unreachable")  # pragma: no cover

    # -- seeding ---------------------------------------------------------
    def add_member(self, member: Member) -> Member:
        def _work(session: Session) -> Member:
            session.add(
                MemberModel(
                    member_id=member.member_id,
                    full_name=member.full_name,
                    date_of_birth=member.date_of_birth,
                    gender=member.gender.value,
                    status=member.status.value,
                )
            )
            session.flush()
            return member

        return self._run(_work)

    def add_club(self, club: Club) -> Club:
        def _work(session: Session) -> Club:
            session.add(ClubModel(club_id=club.club_id, name=club.name))
            session.flush()
            for unit in club.units:
                if unit.club_id != club.club_id:
                    raise ValueError(f"unit {unit.unit_id} belongs to club {unit.club_id}")
                session.add(self._unit_row(unit))
            session.flush()
            return club

        return self._run(_work)

    def add_unit(self, unit: Unit) -> Unit:
        def _work(session: Session) -> Unit:
            session.add(self._unit_row(unit))
            session.flush()
            return unit

        return self._run(_work)

    def add_membership(self, membership: Membership) -> Membership:
        def _work(session: Session) -> Membership:
            session.add(
                MembershipModel(
                    membership_id=membership.membership_id,
                    member_id=membership.member_id,
                    club_id=membership.club_id,
                    unit_id=membership.unit_id,
                    is_active=membership.is_active,
                    allocated_at_utc=membership.allocated_at_utc,
                    version=membership.version,
                )
            )
            session.flush()
            return membership

        return self._run(_work)

    def deactivate(self, membership_id: str) -> Membership:
        def _work(session: Session) -> Membership:
            row = session.get(MembershipModel, membership_id, with_for_update=True)
            if row is None:
                raise KeyError(membership_id)
            row.is_active = False
            row.version += 1
            session.flush()
            return _to_membership(row)

        return self._run(_work)

    @staticmethod
    def _unit_row(unit: Unit) -> UnitModel:
        return UnitModel(
            unit_id=unit.unit_id,
            club_id=unit.club_id,
            name=unit.name,
            age_min=unit.age_min,
            age_max=unit.age_max,
            gender_restriction=unit.gender_restriction.value,
            capacity=unit.capacity,
        )

    # -- MemberDirectory -------------------------------------------------
    def get_member(self, member_id: str) -> Member | None:
        def _work(session: Session) -> Member | None:
            row = session.get(MemberModel, member_id)
            return _to_member(row) if row is not None else None

        return self._run(_work)

    def update_gender(self, member_id: str, gender: Gender) -> Member:
        def _work(session: Session) -> Member:
            row = session.get(MemberModel, member_id, with_for_update=True)
            if row is None:
                raise member_not_found(member_id)
            row.gender = gender.value
            session.flush()
            return _to_member(row)

        return self._run(_work)

    # -- UnitCatalog -----------------------------------------------------
    def get_club(self, club_id: str) -> Club | None:
        def _work(session: Session) -> Club | None:
            row = session.get(ClubModel, club_id)
            if row is None:
                return None
            units = session.execute(
                select(UnitModel).where(UnitModel.club_id == club_id).order_by(UnitModel.unit_id)
            ).scalars()
            return Club(club_id=row.club_id, name=row.name, units=tuple(_to_unit(unit) for unit in units))

        return self._run(_work)

    def get_unit(self, unit_id: str) -> Unit | None:
        def _work(session: Session) -> Unit | None:
            row = session.get(UnitModel, unit_id)
            return _to_unit(row) if row is not None else None

        return self._run(_work)

    # -- MembershipStore -------------------------------------------------
    def get_membership(self, membership_id: str) -> Membership | None:
        def _work(session: Session) -> Membership | None:
            row = session.get(MembershipModel, membership_id)
            return _to_membership(row) if row is not None else None

        return self._run(_work)

    def list_active_for_member(self, member_id: str) -> Sequence[Membership]:
        def _work(session: Session) -> list[Membership]:
            stmt = (
                select(MembershipModel)
                .where(MembershipModel.member_id == member_id, MembershipModel.is_active.is_(True))
                .order_by(MembershipModel.membership_id)
            )
            return [_to_membership(row) for row in session.execute(stmt).scalars()]

        return self._run(_work)

    def list_active_for_club(self, club_id: str) -> Sequence[Membership]:
        def _work(session: Session) -> list[Membership]:
            stmt = (
                select(MembershipModel)
                .where(MembershipModel.club_id == club_id, MembershipModel.is_active.is_(True))
                .order_by(MembershipModel.membership_id)
            )
            return [_to_membership(row) for row in session.execute(stmt).scalars()]

        return self._run(_work)

    def count_active_in_unit(self, unit_id: str, *, exclude_membership_id: str | None = None) -> int:
        return self._run(lambda session: self._count(session, unit_id, exclude_membership_id))

    @staticmethod
    def _count(session: Session, unit_id: str, exclude_membership_id: str | None) -> int:
        stmt = select(func.count()).select_from(MembershipModel).where(
            MembershipModel.unit_id == unit_id,
            MembershipModel.is_active.is_(True),
        )
        if exclude_membership_id is not None:
            stmt = stmt.where(MembershipModel.membership_id != exclude_membership_id)
        return int(session.execute(stmt).scalar_one())

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
        def _work(session: Session) -> CommitResult:
            if new_unit_id is not None:
                # Serialises writers targeting the same unit on backends with row locks.
                session.execute(
                    select(UnitModel.unit_id).where(UnitModel.unit_id == new_unit_id).with_for_update()
                )
            current = session.get(MembershipModel, membership_id)
            if current is None or current.version != expected_version:
                return CommitResult(
                    CommitOutcome.STALE, _to_membership(current) if current is not None else None
                )
            if new_unit_id is not None and capacity is not None:
                if self._count(session, new_unit_id, membership_id) >= capacity:
                    return CommitResult(CommitOutcome.FULL, _to_membership(current))
            changed = session.execute(
                update(MembershipModel)
                .where(
                    MembershipModel.membership_id == membership_id,
                    MembershipModel.version == expected_version,
                )
                .values(
                    unit_id=new_unit_id,
                    allocated_at_utc=allocated_at if new_unit_id is not None else None,
                    version=expected_version + 1,
                )
                .execution_options(synchronize_session=False)
            ).rowcount
            if changed != 1:
                return CommitResult(CommitOutcome.STALE, _to_membership(current))
            stored = None
            if record is not None:
                row = _record_row(record)
                session.add(row)
                session.flush()
                stored = _to_record(row)
            session.expire(current)
            return CommitResult(CommitOutcome.COMMITTED, _to_membership(current), stored)

        return self._run(_work)

    # -- AuditStore ------------------------------------------------------
    def append(self, record: AllocationRecord) -> AllocationRecord:
        def _work(session: Session) -> AllocationRecord:
            row = _record_row(record)
            session.add(row)
            session.flush()
            return _to_record(row)

        return self._run(_work)

    def history(self, membership_id: str) -> Sequence[AllocationRecord]:
        def _work(session: Session) -> list[AllocationRecord]:
            stmt = (
                select(AllocationRecordModel)
                .where(AllocationRecordModel.membership_id == membership_id)
                .order_by(AllocationRecordModel.id)
            )
            return [_to_record(row) for row in session.execute(stmt).scalars()]

        return self._run(_work)

    def latest_for(self, membership_ids: Iterable[str]) -> dict[str, AllocationRecord]:
        wanted = list(dict.fromkeys(membership_ids))
        if not wanted:
            return {}

        def _work(session: Session) -> dict[str, AllocationRecord]:
            newest = (
                select(func.max(AllocationRecordModel.id))
                .where(AllocationRecordModel.membership_id.in_(wanted))
                .group_by(AllocationRecordModel.membership_id)
            )
            stmt = select(AllocationRecordModel).where(AllocationRecordModel.id.in_(newest))
            return {row.membership_id: _to_record(row) for row in session.execute(stmt).scalars()}

        return self._run(_work)


__all__ = ["SqlAlchemyAllocationStore"]
