"""Program-year age arithmetic anchored on a fixed calendar cutoff."""
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date

REFERENCE_MONTH = 6
REFERENCE_DAY = 1


@dataclass(frozen=True, slots=True)
class AgeCalculator:
    """Compute whole years elapsed on the club's reference day of a year.

    The reference day defaults to June 1st. Birth dates after the reference
    day yield negative ages; callers decide what that means.
    """

    reference_month: int = REFERENCE_MONTH
    reference_day: int = REFERENCE_DAY

    def reference_date(self, year: int) -> date:
        last_day = calendar.monthrange(year, self.reference_month)[1]
        return date(year, self.reference_month, min(self.reference_day, last_day))

    def age_on_reference_date(self, date_of_birth: date, year: int) -> int:
        cutoff = self.reference_date(year)
        age = year - date_of_birth.year
        if (date_of_birth.month, date_of_birth.day) > (cutoff.month, cutoff.day):
            age -= 1
        return age


_DEFAULT = AgeCalculator()


def age_on_reference_date(date_of_birth: date, year: int) -> int:
    """Age on June 1st of ``year``."""

    return _DEFAULT.age_on_reference_date(date_of_birth, year)


__all__ = ["AgeCalculator", "REFERENCE_DAY", "REFERENCE_MONTH", "age_on_reference_date"]
