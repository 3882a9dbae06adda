from __future__ import annotations

from dataclasses import replace
from datetime import date

from uma.allocation.capacity import CapacityTracker, UnitCapacity
from uma.allocation.contracts import Unit

from .conftest import EAGLES_ID, enrol


def test_counts_only_active_memberships_in_the_unit(store, eagles) -> None:
    enrol(store, "1", born=date(2014, 1, 1), unit_id="unit-a")
    enrol(store, "2", born=date(2014, 1, 1), unit_id="unit-a")
    enrol(store, "3", born=date(2011, 1, 1), unit_id="unit-b")
    enrol(store, "4", born=date(2014, 1, 1))
    store.deactivate("membership-2")
    tracker = CapacityTracker(store)

    assert tracker.current_member_count(eagles.unit_a) == 1
    assert tracker.current_member_count(eagles.unit_b) == 1
    assert tracker.current_member_count(eagles.unit_a, exclude_membership_id="membership-1") == 0


def test_capacity_limits(store, eagles) -> None:
    tracker = CapacityTracker(store)
    enrol(store, "1", born=date(2011, 1, 1), unit_id="unit-b")

    assert tracker.has_available_capacity(eagles.unit_a)
    assert not tracker.has_available_capacity(eagles.unit_b)
    assert tracker.has_available_capacity(eagles.unit_b, exclude_membership_id="membership-1")

    unlimited = replace(eagles.unit_b, unit_id="unit-open", capacity=None)
    closed = replace(eagles.unit_b, unit_id="unit-closed", capacity=0)
    assert tracker.has_available_capacity(unlimited)
    assert not tracker.has_available_capacity(closed)


def test_filter_available_preserves_order(store, eagles) -> None:
    tracker = CapacityTracker(store)
    enrol(store, "1", born=date(2011, 1, 1), unit_id="unit-b")
    extra = Unit("unit-c", EAGLES_ID, "Unit C", 10, 16, capacity=None)

    kept = tracker.filter_available([eagles.unit_b, extra, eagles.unit_a])

    assert [unit.unit_id for unit in kept] == ["unit-c", "unit-a"]


def test_snapshot_reports_occupancy(store, eagles) -> None:
    enrol(store, "1", born=date(2014, 1, 1), unit_id="unit-a")

    snapshot = CapacityTracker(store).snapshot(eagles.unit_a)

    assert snapshot == UnitCapacity("unit-a", "Unit A", 1, 2, True)
    assert snapshot.occupancy_percentage == 50.0
    assert UnitCapacity("u", "U", 7, None, True).occupancy_percentage == 0.0
