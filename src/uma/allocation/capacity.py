"""Occupancy derived on demand from active memberships."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from .contracts import MembershipStore, Unit


@dataclass(frozen=True, slots=True)
class UnitCapacity:
    unit_id: str
    name: str
    current_count: int
    capacity: int | None
    has_available_capacity: bool

    @property
    def occupancy_percentage(self) -> float:
        if not self.capacity:
            return 0.0
        return self.current_count / self.capacity * 100


class CapacityTracker:
    """Point-in-time occupancy reads; nothing is cached between calls."""

    def __init__(self, memberships: MembershipStore) -> None:
        self._memberships = memberships

    def current_member_count(self, unit: Unit, *, exclude_membership_id: str | None = None) -> int:
        return self._memberships.count_active_in_unit(
            unit.unit_id, exclude_membership_id=exclude_membership_id
        )

    def has_available_capacity(self, unit: Unit, *, exclude_membership_id: str | None = None) -> bool:
        # ``exclude_membership_id`` lets a member already holding a slot in
        # ``unit`` keep counting as room for itself.
        if unit.capacity is None:
            return True
        return self.current_member_count(unit, exclude_membership_id=exclude_membership_id) < unit.capacity

    def filter_available(
        self, units: Iterable[Unit], *, exclude_membership_id: str | None = None
    ) -> List[Unit]:
        """Keep units with room, preserving the incoming order."""

        return [
            unit
            for unit in units
            if self.has_available_capacity(unit, exclude_membership_id=exclude_membership_id)
        ]

    def snapshot(self, unit: Unit) -> UnitCapacity:
        count = self.current_member_count(unit)
        return UnitCapacity(
            unit_id=unit.unit_id,
            name=unit.name,
            current_count=count,
            capacity=unit.capacity,
            has_available_capacity=unit.capacity is None or count < unit.capacity,
        )


__all__ = ["CapacityTracker", "UnitCapacity"]
