"""DTOs accepting camelCase or snake_case payloads."""
from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from uma.allocation.contracts import Gender


def _normalize_identifier(value: Any) -> str:
    if value is None:
        raise ValueError("identifier is required")
    text = str(value).strip()
    if not text:
        raise ValueError("identifier is required")
    return text


def _optional_text(value: Any) -> str | None:
    if value in (None, ""):
        return None
    text = str(value).strip()
    return text or None


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="ignore")


class MembershipRequest(_Request):
    membership_id: str = Field(validation_alias=AliasChoices("membershipId", "membership_id"))

    @field_validator("membership_id", mode="before")
    @classmethod
    def _normalize_membership(cls, value: Any) -> str:
        return _normalize_identifier(value)


class AutoAllocateRequest(MembershipRequest):
    reference_year: int | None = Field(
        default=None, validation_alias=AliasChoices("referenceYear", "reference_year"), ge=1900, le=2200
    )


class BirthdayCheckRequest(AutoAllocateRequest):
    """Same shape as auto-allocation: a membership and an optional year."""


class AllocateToUnitRequest(MembershipRequest):
    unit_id: str = Field(validation_alias=AliasChoices("unitId", "unit_id"))
    reason: str | None = Field(default=None, max_length=500)

    @field_validator("unit_id", mode="before")
    @classmethod
    def _normalize_unit(cls, value: Any) -> str:
        return _normalize_identifier(value)

    @field_validator("reason", mode="before")
    @classmethod
    def _normalize_reason(cls, value: Any) -> str | None:
        return _optional_text(value)


class ReallocateRequest(AllocateToUnitRequest):
    unit_id: str = Field(validation_alias=AliasChoices("newUnitId", "new_unit_id", "unitId", "unit_id"))


class GenderChangeRequest(_Request):
    member_id: str = Field(validation_alias=AliasChoices("memberId", "member_id"))
    new_gender: Gender = Field(validation_alias=AliasChoices("newGender", "new_gender", "gender"))

    @field_validator("member_id", mode="before")
    @classmethod
    def _normalize_member(cls, value: Any) -> str:
        return _normalize_identifier(value)

    @field_validator("new_gender", mode="before")
    @classmethod
    def _normalize_gender(cls, value: Any) -> Any:
        if isinstance(value, str):
            text = value.strip()
            for gender in Gender:
                if text.lower() in (gender.value.lower(), gender.name.lower()):
                    return gender
        return value


class ClubRequest(_Request):
    club_id: str = Field(validation_alias=AliasChoices("clubId", "club_id"))

    @field_validator("club_id", mode="before")
    @classmethod
    def _normalize_club(cls, value: Any) -> str:
        return _normalize_identifier(value)


class UnitRequest(_Request):
    unit_id: str = Field(validation_alias=AliasChoices("unitId", "unit_id"))

    @field_validator("unit_id", mode="before")
    @classmethod
    def _normalize_unit(cls, value: Any) -> str:
        return _normalize_identifier(value)


class CompatibleUnitsRequest(ClubRequest):
    member_id: str = Field(validation_alias=AliasChoices("memberId", "member_id"))
    reference_year: int | None = Field(
        default=None, validation_alias=AliasChoices("referenceYear", "reference_year"), ge=1900, le=2200
    )

    @field_validator("member_id", mode="before")
    @classmethod
    def _normalize_member(cls, value: Any) -> str:
        return _normalize_identifier(value)


__all__ = [
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
