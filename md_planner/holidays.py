from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping, Optional


class Country(str, Enum):
    """Holiday calendars known to the planner.

    ``NONE`` stands for "no calendar data": any unknown country code resolves to
    it and contributes no holidays, so weekday-only counts are returned instead
    of an error.
    """

    IT = "IT"
    RO = "RO"
    NONE = ""

    @classmethod
    def parse(cls, code: object) -> "Country":
        if isinstance(code, Country):
            return code
        if not isinstance(code, str):
            return cls.NONE
        try:
            return cls(code.strip().upper())
        except ValueError:
            return cls.NONE


_HolidayTable = Dict[Country, Dict[int, FrozenSet[str]]]


def _table(raw: Mapping[int, Iterable[str]]) -> Dict[int, FrozenSet[str]]:
    return {year: frozenset(days) for year, days in raw.items()}


_BUILTIN_HOLIDAYS: _HolidayTable = {
    Country.IT: _table(
        {
            2024: [
                "2024-01-01", "2024-01-06", "2024-04-01", "2024-04-25", "2024-05-01", "2024-06-02",
                "2024-08-15", "2024-11-01", "2024-12-08", "2024-12-25", "2024-12-26",
            ],
            2025: [
                "2025-01-01", "2025-01-06", "2025-04-21", "2025-04-25", "2025-05-01", "2025-06-02",
                "2025-08-15", "2025-11-01", "2025-12-08", "2025-12-25", "2025-12-26",
            ],
            2026: [
                "2026-01-01", "2026-01-06", "2026-04-06", "2026-04-25", "2026-05-01", "2026-06-02",
                "2026-08-15", "2026-11-01", "2026-12-08", "2026-12-25", "2026-12-26",
            ],
            2027: [
                "2027-01-01", "2027-01-06", "2027-03-29", "2027-04-25", "2027-05-01", "2027-06-02",
                "2027-08-15", "2027-11-01", "2027-12-08", "2027-12-25", "2027-12-26",
            ],
            2028: [
                "2028-01-01", "2028-01-06", "2028-04-17", "2028-04-25", "2028-05-01", "2028-06-02",
                "2028-08-15", "2028-11-01", "2028-12-08", "2028-12-25", "2028-12-26",
            ],
            2029: [
                "2029-01-01", "2029-01-06", "2029-04-02", "2029-04-25", "2029-05-01", "2029-06-02",
                "2029-08-15", "2029-11-01", "2029-12-08", "2029-12-25", "2029-12-26",
            ],
            2030: [
                "2030-01-01", "2030-01-06", "2030-04-22", "2030-04-25", "2030-05-01", "2030-06-02",
                "2030-08-15", "2030-11-01", "2030-12-08", "2030-12-25", "2030-12-26",
            ],
        }
    ),
    Country.RO: _table(
        {
            2024: [
                "2024-01-01", "2024-01-02", "2024-01-24", "2024-04-29", "2024-05-05", "2024-05-06",
                "2024-05-01", "2024-06-01", "2024-06-24", "2024-08-15", "2024-11-30", "2024-12-01",
                "2024-12-25", "2024-12-26",
            ],
            2025: [
                "2025-01-01", "2025-01-02", "2025-01-24", "2025-04-20", "2025-04-21", "2025-05-01",
                "2025-06-01", "2025-06-08", "2025-08-15", "2025-11-30", "2025-12-01", "2025-12-25",
                "2025-12-26",
            ],
            2026: [
                "2026-01-01", "2026-01-02", "2026-01-24", "2026-04-12", "2026-04-13", "2026-05-01",
                "2026-06-01", "2026-05-31", "2026-08-15", "2026-11-30", "2026-12-01", "2026-12-25",
                "2026-12-26",
            ],
            2027: [
                "2027-01-01", "2027-01-02", "2027-01-24", "2027-05-02", "2027-05-03", "2027-05-01",
                "2027-06-01", "2027-06-20", "2027-08-15", "2027-11-30", "2027-12-01", "2027-12-25",
                "2027-12-26",
            ],
            2028: [
                "2028-01-01", "2028-01-02", "2028-01-24", "2028-04-16", "2028-04-17", "2028-05-01",
                "2028-06-01", "2028-06-04", "2028-08-15", "2028-11-30", "2028-12-01", "2028-12-25",
                "2028-12-26",
            ],
            2029: [
                "2029-01-01", "2029-01-02", "2029-01-24", "2029-04-08", "2029-04-09", "2029-05-01",
                "2029-06-01", "2029-05-27", "2029-08-15", "2029-11-30", "2029-12-01", "2029-12-25",
                "2029-12-26",
            ],
            2030: [
                "2030-01-01", "2030-01-02", "2030-01-24", "2030-04-28", "2030-04-29", "2030-05-01",
                "2030-06-01", "2030-06-16", "2030-08-15", "2030-11-30", "2030-12-01", "2030-12-25",
                "2030-12-26",
            ],
        }
    ),
    Country.NONE: {},
}


class HolidayCalendar:
    """Read-only national holiday lookup keyed by country and year."""

    def __init__(self, table: Optional[_HolidayTable] = None) -> None:
        source = _BUILTIN_HOLIDAYS if table is None else table
        self._table: _HolidayTable = {country: dict(years) for country, years in source.items()}

    def holidays_for(self, country: object, year: int) -> FrozenSet[str]:
        return self._table.get(Country.parse(country), {}).get(year, frozenset())

    def is_holiday(self, day: date, country: object) -> bool:
        return day.isoformat() in self.holidays_for(country, day.year)

    def countries(self) -> FrozenSet[Country]:
        return frozenset(country for country, years in self._table.items() if years)

    def with_extra(self, extra: Mapping[str, Mapping[int, Iterable[str]]]) -> "HolidayCalendar":
        """Return a new calendar with ``extra`` dates merged into the table."""
        merged: _HolidayTable = {country: dict(years) for country, years in self._table.items()}
        for code, years in extra.items():
            country = Country.parse(code)
            if country is Country.NONE:
                raise ValueError(f"no holiday calendar for country '{code}'")
            country_table = merged.setdefault(country, {})
            for year, days in years.items():
                country_table[int(year)] = country_table.get(int(year), frozenset()) | frozenset(days)
        return HolidayCalendar(merged)


DEFAULT_CALENDAR = HolidayCalendar()
