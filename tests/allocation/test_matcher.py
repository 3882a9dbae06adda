from __future__ import annotations

from datetime import UTC, date, datetime

import pytest
from hypothesis import given, strategies as st

from uma.allocation.age import AgeCalculator
from uma.allocation.contracts import Club, Gender, GenderRestriction, Member, Unit
from uma.allocation.matcher import (
    AgeBandRule,
    GenderRestrictionRule,
    MemberProfile,
    UnitCompatibilityMatcher,
    ranking_key,
)

from .conftest import FakeClock


def _club(*units: Unit) -> Club:
    return Club("club-1", "Club", tuple(units))


def _unit(unit_id: str, age_min: int, age_max: int, restriction=GenderRestriction.ANY) -> Unit:
    return Unit(unit_id, "club-1", unit_id.upper(), age_min, age_max, restriction)


@pytest.fixture
def matcher(clock: FakeClock) -> UnitCompatibilityMatcher:
    return UnitCompatibilityMatcher(clock=clock)


def test_narrowest_band_wins_then_youngest_then_identifier(matcher: UnitCompatibilityMatcher) -> None:
    club = _club(
        _unit("broad", 5, 18),
        _unit("z-narrow", 10, 12),
        _unit("a-narrow", 10, 12),
        _unit("later", 11, 13),
    )
    member = Member("m", date(2014, 1, 1), Gender.MALE)  # 11 in 2025

    ordered = [unit.unit_id for unit in matcher.compatible_units(member, club, 2025)]

    assert ordered == ["a-narrow", "z-narrow", "later", "broad"]


def test_upper_bound_is_exclusive(matcher: UnitCompatibilityMatcher) -> None:
    club = _club(_unit("young", 10, 13), _unit("old", 13, 16))
    member = Member("m", date(2012, 6, 1), Gender.FEMALE)  # 13 in 2025

    assert [unit.unit_id for unit in matcher.compatible_units(member, club, 2025)] == ["old"]


def test_gender_restriction_filters_units(matcher: UnitCompatibilityMatcher) -> None:
    club = _club(
        _unit("girls", 10, 13, GenderRestriction.FEMALE),
        _unit("boys", 10, 13, GenderRestriction.MALE),
        _unit("mixed", 10, 13),
    )
    born = date(2014, 1, 1)

    girls = matcher.compatible_units(Member("f", born, Gender.FEMALE), club, 2025)
    boys = matcher.compatible_units(Member("b", born, Gender.MALE), club, 2025)
    other = matcher.compatible_units(Member("o", born, Gender.OTHER), club, 2025)

    assert {unit.unit_id for unit in girls} == {"girls", "mixed"}
    assert {unit.unit_id for unit in boys} == {"boys", "mixed"}
    assert [unit.unit_id for unit in other] == ["mixed"]


def test_no_match_returns_empty_list(matcher: UnitCompatibilityMatcher) -> None:
    club = _club(_unit("seniors", 16, 19))
    assert matcher.compatible_units(Member("m", date(2014, 1, 1), Gender.MALE), club, 2025) == []


def test_reference_year_defaults_to_clock(clock: FakeClock) -> None:
    matcher = UnitCompatibilityMatcher(clock=clock)
    club = _club(_unit("a", 10, 13), _unit("b", 13, 16))
    member = Member("m", date(2014, 1, 1), Gender.MALE)

    assert [unit.unit_id for unit in matcher.compatible_units(member, club)] == ["a"]
    clock.set(datetime(2027, 7, 1, tzinfo=UTC))
    assert [unit.unit_id for unit in matcher.compatible_units(member, club)] == ["b"]
    assert [unit.unit_id for unit in matcher.compatible_units(member, club, date(2025, 1, 1))] == ["a"]


def test_evaluation_trace_names_failed_rules(matcher: UnitCompatibilityMatcher) -> None:
    unit = _unit("girls", 13, 16, GenderRestriction.FEMALE)
    evaluation = matcher.evaluate(Member("m", date(2014, 1, 1), Gender.MALE), [unit], 2025)[0]

    assert not evaluation.passed
    assert [entry["code"] for entry in evaluation.trace if not entry["passed"]] == [
        "AGE_BAND",
        "GENDER_RESTRICTION",
    ]


def test_rules_in_isolation() -> None:
    unit = _unit("u", 10, 13, GenderRestriction.MALE)
    profile = MemberProfile("m", 12, Gender.MALE)
    assert AgeBandRule().check(profile, unit).passed
    assert GenderRestrictionRule().check(profile, unit).passed
    older = MemberProfile("m", 13, Gender.FEMALE)
    assert not AgeBandRule().check(older, unit).passed
    assert GenderRestrictionRule().check(older, unit).details["restriction"] == "Male"


@st.composite
def unit_sets(draw: st.DrawFn) -> list[Unit]:
    """Up to eight units with random bands, restrictions and capacities."""

    units = []
    for index in range(draw(st.integers(min_value=0, max_value=8))):
        age_min = draw(st.integers(min_value=5, max_value=20))
        units.append(
            Unit(
                f"u{index:02d}",
                "club-1",
                f"U{index}",
                age_min,
                age_min + draw(st.integers(min_value=1, max_value=8)),
                draw(st.sampled_from(list(GenderRestriction))),
                draw(st.sampled_from([None, 0, 1, 5])),
            )
        )
    return units


@st.composite
def members(draw: st.DrawFn) -> Member:
    born = draw(st.dates(min_value=date(2000, 1, 1), max_value=date(2020, 12, 31)))
    return Member("m", born, draw(st.sampled_from(list(Gender))))


def _admits(unit: Unit, member: Member, age: int) -> bool:
    return unit.age_min <= age < unit.age_max and (
        unit.gender_restriction is GenderRestriction.ANY
        or unit.gender_restriction.value == member.gender.value
    )


@given(unit_sets(), members(), st.integers(min_value=2020, max_value=2035))
def test_random_unit_sets_never_admit_incompatible_units(units: list[Unit], member: Member, year: int) -> None:
    """Exactly the admitting units come back, in ranking order."""

    matcher = UnitCompatibilityMatcher(clock=FakeClock())
    age = AgeCalculator().age_on_reference_date(member.date_of_birth, year)

    result = matcher.compatible_units(member, _club(*units), year)

    assert all(_admits(unit, member, age) for unit in result)
    assert {unit.unit_id for unit in result} == {unit.unit_id for unit in units if _admits(unit, member, age)}
    assert result == sorted(result, key=ranking_key)
