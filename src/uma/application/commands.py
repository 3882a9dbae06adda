"""Command handlers translating plain payloads into orchestrator calls."""
from __future__ import annotations

from typing import Any, Mapping

from uma.allocation.orchestrator import AllocationOrchestrator

from .requests import (
    AllocateToUnitRequest,
    AutoAllocateRequest,
    BirthdayCheckRequest,
    ClubRequest,
    CompatibleUnitsRequest,
    GenderChangeRequest,
    MembershipRequest,
    ReallocateRequest,
    UnitRequest,
)

Payload = Mapping[str, Any]


class AllocationCommands:
    """One handler per engine operation, each returning a JSON-ready dict.

    Malformed payloads raise ``pydantic.ValidationError``.
    """

    def __init__(self, orchestrator: AllocationOrchestrator) -> None:
        self._orchestrator = orchestrator

    def auto_allocate(self, payload: Payload) -> dict[str, Any]:
        request = AutoAllocateRequest.model_validate(payload)
        return self._orchestrator.auto_allocate(
            request.membership_id, reference_year=request.reference_year
        ).to_dict()

    def allocate_to_unit(self, payload: Payload) -> dict[str, Any]:
        request = AllocateToUnitRequest.model_validate(payload)
        return self._orchestrator.allocate_to_specific_unit(
            request.membership_id, request.unit_id, request.reason
        ).to_dict()

    def reallocate(self, payload: Payload) -> dict[str, Any]:
        request = ReallocateRequest.model_validate(payload)
        return self._orchestrator.reallocate(request.membership_id, request.unit_id, request.reason).to_dict()

    def remove_from_unit(self, payload: Payload) -> dict[str, Any]:
        request = MembershipRequest.model_validate(payload)
        return self._orchestrator.remove_from_unit(request.membership_id).to_dict()

    def check_birthday_reallocation(self, payload: Payload) -> dict[str, Any]:
        request = BirthdayCheckRequest.model_validate(payload)
        return self._orchestrator.check_birthday_reallocation(
            request.membership_id, request.reference_year
        ).to_dict()

    def handle_gender_change(self, payload: Payload) -> dict[str, Any]:
        request = GenderChangeRequest.model_validate(payload)
        return self._orchestrator.handle_gender_change(request.member_id, request.new_gender).to_dict()

    def members_needing_allocation(self, payload: Payload) -> dict[str, Any]:
        request = ClubRequest.model_validate(payload)
        return self._orchestrator.get_members_needing_allocation(request.club_id).to_dict()

    def club_capacity_status(self, payload: Payload) -> dict[str, Any]:
        request = ClubRequest.model_validate(payload)
        return self._orchestrator.get_club_capacity_status(request.club_id).to_dict()

    def unit_capacity(self, payload: Payload) -> dict[str, Any]:
        request = UnitRequest.model_validate(payload)
        return self._orchestrator.get_unit_capacity(request.unit_id).to_dict()

    def compatible_units(self, payload: Payload) -> dict[str, Any]:
        request = CompatibleUnitsRequest.model_validate(payload)
        return self._orchestrator.get_compatible_units(
            request.member_id, request.club_id, request.reference_year
        ).to_dict()

    def allocation_history(self, payload: Payload) -> dict[str, Any]:
        request = MembershipRequest.model_validate(payload)
        return self._orchestrator.get_allocation_history(request.membership_id).to_dict()

    def allocation_state(self, payload: Payload) -> dict[str, Any]:
        request = MembershipRequest.model_validate(payload)
        return self._orchestrator.get_allocation_state(request.membership_id).to_dict()


__all__ = ["AllocationCommands"]
