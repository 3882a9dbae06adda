"""Unit compatibility rules and best-fit ordering."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Literal, Protocol, Sequence

from uma.core.clock import Clock, SystemClock, today

from .age import AgeCalculator
from .contracts import Club, Gender, GenderRestriction, Member, Unit

RuleCode = Literal["AGE_BAND", "GENDER_RESTRICTION"]


@dataclass(frozen=True)
class RuleResult:
    """Result of a rule evaluation."""

    passed: bool
    details: Dict[str, object]


@dataclass(frozen=True)
class MemberProfile:
    """Member attributes resolved for one reference year."""

    member_id: str
    age: int
    gender: Gender


class Rule(Protocol):
    """Protocol describing rule behaviour."""

    code: RuleCode

    def check(self, profile: MemberProfile, unit: Unit) -> RuleResult:
        """Evaluate rule for a resolved member profile."""


@dataclass(frozen=True)
class AgeBandRule:
    """Age must fall in ``[age_min, age_max)``."""

    code: RuleCode = "AGE_BAND"

    def check(self, profile: MemberProfile, unit: Unit) -> RuleResult:
        passed = unit.age_min <= profile.age < unit.age_max
        details: Dict[str, object] = {}
        if not passed:
            details = {
                "message": "member age is outside the unit's age band",
                "age": profile.age,
                "age_min": unit.age_min,
                "age_max": unit.age_max,
            }
        return RuleResult(passed=passed, details=details)


@dataclass(frozen=True)
class GenderRestrictionRule:
    """Unit restriction must be ``Any`` or equal the member's gender."""

    code: RuleCode = "GENDER_RESTRICTION"

    def check(self, profile: MemberProfile, unit: Unit) -> RuleResult:
        restriction = unit.gender_restriction
        passed = restriction is GenderRestriction.ANY or restriction.value == profile.gender.value
        details: Dict[str, object] = {}
        if not passed:
            details = {
                "message": "unit gender restriction does not admit the member",
                "gender": profile.gender.value,
                "restriction": restriction.value,
            }
        return RuleResult(passed=passed, details=details)


ALL_RULES: tuple[Rule, ...] = (AgeBandRule(), GenderRestrictionRule())


@dataclass(frozen=True)
class UnitEvaluation:
    unit: Unit
    passed: bool
    trace: Sequence[dict[str, object]]


def ranking_key(unit: Unit) -> tuple[int, int, str]:
    """Narrowest band first, then youngest band, then identifier."""

    return (unit.band_width, unit.age_min, unit.unit_id)


@dataclass
class UnitCompatibilityMatcher:
    """Filter a club's units down to those admitting a member, best fit first."""

    age_calculator: AgeCalculator = field(default_factory=AgeCalculator)
    clock: Clock = field(default_factory=SystemClock)
    rules: Sequence[Rule] = ALL_RULES

    def resolve_year(self, reference_date: date | int | None) -> int:
        if reference_date is None:
            return today(self.clock).year
        if isinstance(reference_date, int):
            return reference_date
        return reference_date.year

    def profile(self, member: Member, reference_date: date | int | None = None) -> MemberProfile:
        year = self.resolve_year(reference_date)
        age = self.age_calculator.age_on_reference_date(member.date_of_birth, year)
        return MemberProfile(member_id=member.member_id, age=age, gender=member.gender)

    def evaluate(
        self, member: Member, units: Iterable[Unit], reference_date: date | int | None = None
    ) -> List[UnitEvaluation]:
        profile = self.profile(member, reference_date)
        return [self._evaluate_unit(profile, unit) for unit in units]

    def is_compatible(self, member: Member, unit: Unit, reference_date: date | int | None = None) -> bool:
        return self._evaluate_unit(self.profile(member, reference_date), unit).passed

    def compatible_units(
        self, member: Member, club: Club, reference_date: date | int | None = None
    ) -> List[Unit]:
        evaluations = self.evaluate(member, club.units, reference_date)
        passed = [entry.unit for entry in evaluations if entry.passed]
        passed.sort(key=ranking_key)
        return passed

    def _evaluate_unit(self, profile: MemberProfile, unit: Unit) -> UnitEvaluation:
        trace: List[dict[str, object]] = []
        passed = True
        for rule in self.rules:
            result = rule.check(profile, unit)
            trace.append({"code": rule.code, "passed": result.passed, "details": result.details})
            if not result.passed:
                passed = False
        return UnitEvaluation(unit=unit, passed=passed, trace=trace)


__all__ = [
    "ALL_RULES",
    "AgeBandRule",
    "GenderRestrictionRule",
    "MemberProfile",
    "Rule",
    "RuleResult",
    "UnitCompatibilityMatcher",
    "UnitEvaluation",
    "ranking_key",
]
