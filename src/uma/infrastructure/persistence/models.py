"""Relational schema for members, clubs, units, memberships and the allocation log."""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    ForeignKeyConstraint,
    Index,
    Integer,
    MetaData,
    String,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _metadata() -> MetaData:
    return MetaData(schema=None)


class Base(DeclarativeBase):
    metadata = _metadata()


class MemberModel(Base):
    __tablename__ = "members"

    member_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="Active")


class ClubModel(Base):
    __tablename__ = "clubs"

    club_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)


class UnitModel(Base):
    __tablename__ = "units"

    unit_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    club_id: Mapped[str] = mapped_column(ForeignKey("clubs.club_id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    age_min: Mapped[int] = mapped_column(Integer, nullable=False)
    age_max: Mapped[int] = mapped_column(Integer, nullable=False)
    gender_restriction: Mapped[str] = mapped_column(String(16), nullable=False, default="Any")
    capacity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint("age_min < age_max", name="ck_units_age_band"),
        CheckConstraint("capacity IS NULL OR capacity >= 0", name="ck_units_capacity"),
        UniqueConstraint("unit_id", "club_id", name="uq_units_unit_club"),
    )


class MembershipModel(Base):
    __tablename__ = "memberships"

    membership_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    member_id: Mapped[str] = mapped_column(ForeignKey("members.member_id"), nullable=False, index=True)
    club_id: Mapped[str] = mapped_column(ForeignKey("clubs.club_id"), nullable=False)
    unit_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allocated_at_utc: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        # A unit pointer can only reference a unit of the membership's own club.
        ForeignKeyConstraint(
            ["unit_id", "club_id"],
            ["units.unit_id", "units.club_id"],
            name="fk_memberships_unit_same_club",
        ),
        Index("ix_memberships_unit_active", "unit_id", "is_active"),
        Index("ix_memberships_club_active", "club_id", "is_active"),
    )


class AllocationRecordModel(Base):
    """Append-only allocation decisions."""

    __tablename__ = "allocation_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    membership_id: Mapped[str] = mapped_column(
        ForeignKey("memberships.membership_id"), nullable=False, index=True
    )
    previous_unit_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    new_unit_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    outcome: Mapped[str] = mapped_column(String(32), nullable=False)
    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    timestamp_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_allocation_records_membership_id_id", "membership_id", "id"),
        {"sqlite_autoincrement": True},
    )


@event.listens_for(AllocationRecordModel.__table__, "after_create")
def _install_append_only_triggers(target, connection, **_: object) -> None:
    dialect = connection.dialect.name
    if dialect == "sqlite":
        connection.exec_driver_sql(
            """
            CREATE TRIGGER allocation_records_no_update
            BEFORE UPDATE ON allocation_records
            BEGIN
                SELECT RAISE(ABORT, 'ALLOCATION_LOG_APPEND_ONLY');
            END;
            """
        )
        connection.exec_driver_sql(
            """
            CREATE TRIGGER allocation_records_no_delete
            BEFORE DELETE ON allocation_records
            BEGIN
                SELECT RAISE(ABORT, 'ALLOCATION_LOG_APPEND_ONLY');
            END;
            """
        )
    elif dialect == "postgresql":  # pragma: no cover - exercised in integration env
        connection.exec_driver_sql(
            """
            CREATE OR REPLACE FUNCTION allocation_records_guard()
            RETURNS trigger AS $$
            BEGIN
                RAISE EXCEPTION 'ALLOCATION_LOG_APPEND_ONLY';
            END;
            $$ LANGUAGE plpgsql;
            """
        )
        connection.exec_driver_sql(
            """
            CREATE TRIGGER allocation_records_no_update
            BEFORE UPDATE ON allocation_records
            FOR EACH ROW EXECUTE FUNCTION allocation_records_guard();
            """
        )
        connection.exec_driver_sql(
            """
            CREATE TRIGGER allocation_records_no_delete
            BEFORE DELETE ON allocation_records
            FOR EACH ROW EXECUTE FUNCTION allocation_records_guard();
            """
        )


__all__ = [
    "AllocationRecordModel",
    "Base",
    "ClubModel",
    "MemberModel",
    "MembershipModel",
    "UnitModel",
]
