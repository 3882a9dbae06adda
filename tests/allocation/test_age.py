from __future__ import annotations

from datetime import date

import pytest

from uma.allocation.age import AgeCalculator, age_on_reference_date


@pytest.mark.parametrize(
    "born, year, expected",
    [
        (date(2015, 6, 1), 2025, 10),
        (date(2015, 5, 31), 2025, 10),
        (date(2015, 6, 2), 2025, 9),
        (date(2015, 12, 31), 2025, 9),
        (date(2015, 1, 1), 2025, 10),
    ],
)
def test_age_on_june_first(born: date, year: int, expected: int) -> None:
    assert age_on_reference_date(born, year) == expected


def test_born_on_reference_day_is_not_decremented() -> None:
    calculator = AgeCalculator()
    assert calculator.age_on_reference_date(date(2014, 6, 1), 2024) == 10


def test_birth_after_reference_date_yields_negative_age() -> None:
    assert age_on_reference_date(date(2026, 1, 15), 2025) == -1


def test_age_ignores_wall_clock_and_is_repeatable() -> None:
    calculator = AgeCalculator()
    first = calculator.age_on_reference_date(date(2012, 8, 20), 2030)
    second = calculator.age_on_reference_date(date(2012, 8, 20), 2030)
    assert first == second == 17


def test_custom_reference_day() -> None:
    calculator = AgeCalculator(reference_month=9, reference_day=1)
    assert calculator.age_on_reference_date(date(2015, 8, 31), 2025) == 10
    assert calculator.age_on_reference_date(date(2015, 9, 2), 2025) == 9
    assert calculator.reference_date(2025) == date(2025, 9, 1)


def test_reference_date_clamps_leap_day() -> None:
    calculator = AgeCalculator(reference_month=2, reference_day=29)
    assert calculator.reference_date(2024) == date(2024, 2, 29)
    assert calculator.reference_date(2025) == date(2025, 2, 28)


def test_leap_day_cutoff_uses_clamped_date_in_common_years() -> None:
    calculator = AgeCalculator(reference_month=2, reference_day=29)
    assert calculator.age_on_reference_date(date(2016, 2, 29), 2025) == 8
    assert calculator.age_on_reference_date(date(2016, 2, 28), 2025) == 9
    assert calculator.age_on_reference_date(date(2016, 2, 29), 2024) == 8
