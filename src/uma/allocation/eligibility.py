"""Membership eligibility based on program-year age."""
from __future__ import annotations

from dataclasses import dataclass, field

from .age import AgeCalculator
from .contracts import Member

MINIMUM_AGE = 10


@dataclass(frozen=True, slots=True)
class EligibilityVerdict:
    eligible: bool
    age: int
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.eligible


@dataclass(frozen=True, slots=True)
class EligibilityEvaluator:
    """Decide whether a member may hold a unit at all."""

    age_calculator: AgeCalculator = field(default_factory=AgeCalculator)
    minimum_age: int = MINIMUM_AGE

    def is_eligible(self, member: Member, reference_year: int) -> EligibilityVerdict:
        age = self.age_calculator.age_on_reference_date(member.date_of_birth, reference_year)
        if age >= self.minimum_age:
            return EligibilityVerdict(eligible=True, age=age)
        cutoff = self.age_calculator.reference_date(reference_year)
        return EligibilityVerdict(
            eligible=False,
            age=age,
            reason=(
                f"member is younger than the minimum age of {self.minimum_age} "
                f"as of the reference date {cutoff.isoformat()}"
            ),
        )


__all__ = ["EligibilityEvaluator", "EligibilityVerdict", "MINIMUM_AGE"]
