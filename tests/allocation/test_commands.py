from __future__ import annotations

from datetime import date

import pytest
from freezegun import freeze_time
from pydantic import ValidationError

from uma.allocation.factories import build_orchestrator
from uma.application.commands import AllocationCommands

from .conftest import EAGLES_ID, enrol


@pytest.fixture
def commands(orchestrator) -> AllocationCommands:
    return AllocationCommands(orchestrator)


def test_auto_allocate_accepts_camel_case(store, eagles, commands) -> None:
    enrol(store, "x", born=date(2014, 3, 10))

    payload = commands.auto_allocate({"membershipId": " membership-x ", "referenceYear": 2025})

    assert payload["kind"] == "OK"
    assert payload["status"] == "Allocated"
    assert payload["unit_id"] == "unit-a"
    assert payload["record"]["outcome"] == "ALLOCATED"
    assert payload["record"]["timestamp_utc"].startswith("2025-03-01T09:00:00")


def test_manual_and_reallocation_payloads(store, eagles, commands) -> None:
    enrol(store, "x", born=date(2014, 3, 10))

    manual = commands.allocate_to_unit({"membership_id": "membership-x", "unitId": "unit-a", "reason": "  "})
    moved = commands.reallocate({"membershipId": "membership-x", "newUnitId": "unit-b", "reason": "parent request"})
    removed = commands.remove_from_unit({"membershipId": "membership-x"})

    assert manual["record"]["reason"] == "manual allocation"
    assert moved["record"]["reason"] == "parent request"
    assert moved["previous_unit_id"] == "unit-a"
    assert removed["status"] == "Unallocated"


def test_queries_render_items(store, eagles, commands) -> None:
    enrol(store, "x", born=date(2014, 3, 10))
    commands.auto_allocate({"membershipId": "membership-x", "referenceYear": 2025})

    capacity = commands.club_capacity_status({"clubId": EAGLES_ID})
    unit = commands.unit_capacity({"unitId": "unit-a"})
    compatible = commands.compatible_units({"memberId": "member-x", "clubId": EAGLES_ID, "referenceYear": 2025})
    history = commands.allocation_history({"membershipId": "membership-x"})
    state = commands.allocation_state({"membershipId": "membership-x"})
    pending = commands.members_needing_allocation({"clubId": EAGLES_ID})

    assert [item["current_count"] for item in capacity["items"]] == [1, 0]
    assert unit["items"][0]["has_available_capacity"] is True
    assert compatible["items"][0]["unit"]["gender_restriction"] == "Any"
    assert history["items"][0]["new_unit_id"] == "unit-a"
    assert state["items"][0]["status"] == "Allocated"
    assert pending["items"] == []


def test_gender_change_payload(store, eagles, commands) -> None:
    enrol(store, "x", born=date(2014, 3, 10), unit_id="unit-a")

    payload = commands.handle_gender_change({"memberId": "member-x", "newGender": "male"})

    assert payload["kind"] == "OK"
    assert payload["gender"] == "Male"
    assert payload["results"][0]["unit_id"] == "unit-a"


def test_birthday_check_payload_lists_targets(store, eagles, commands) -> None:
    enrol(store, "x", born=date(2014, 3, 10), unit_id="unit-a")

    payload = commands.check_birthday_reallocation({"membershipId": "membership-x", "referenceYear": 2027})

    check = payload["reallocation_check"]
    assert check["needs_reallocation"] is True
    assert check["compatible_units"][0]["unit"]["unit_id"] == "unit-b"
    assert payload["task_type"] == "BirthdayReallocation"


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"membershipId": "   "},
        {"membershipId": "membership-x", "referenceYear": "soon"},
    ],
)
def test_malformed_payloads_raise(commands, payload) -> None:
    with pytest.raises(ValidationError):
        commands.auto_allocate(payload)


def test_unknown_gender_is_rejected(commands) -> None:
    with pytest.raises(ValidationError):
        commands.handle_gender_change({"memberId": "member-x", "newGender": "unknown"})


@freeze_time("2027-03-01 12:00:00")
def test_reference_year_defaults_to_current_year(store, eagles, settings, meters) -> None:
    orchestrator = build_orchestrator(store, settings=settings, meters=meters)
    enrol(store, "x", born=date(2014, 3, 10), unit_id="unit-a")

    result = AllocationCommands(orchestrator).check_birthday_reallocation({"membershipId": "membership-x"})

    assert result["reallocation_check"]["reference_year"] == 2027
    assert result["status"] == "NeedsReallocation"
