"""Request models and command handlers for the surrounding service layer."""

from .commands import AllocationCommands
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

__all__ = [
    "AllocationCommands",
    "AllocateToUnitRequest",
    "AutoAllocateRequest",
    "BirthdayCheckRequest",
    "ClubRequest",
    "CompatibleUnitsRequest",
    "GenderChangeRequest",
    "MembershipRequest",
    "ReallocateRequest",
    "UnitRequest",
]
