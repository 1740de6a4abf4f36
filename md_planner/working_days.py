from __future__ import annotations

import calendar
import logging
import threading
from datetime import date, timedelta
from typing import Dict, Optional, Tuple

from .holidays import DEFAULT_CALENDAR, Country, HolidayCalendar
from .models import MonthKey, PlannerConfig, TeamMember, is_month_key, parse_month_key

logger = logging.getLogger(__name__)

MIN_YEAR = 2020
MAX_YEAR = 2030


class InvalidRangeError(ValueError):
    """Month or year outside the supported planning range."""


class MonthFormatError(ValueError):
    """Month key not in ``YYYY-MM`` form."""


class WorkingDaysCache:
    """Working-day counts keyed by ``(month, year, country)``.

    Entries are never invalidated automatically; holiday data is static for the
    lifetime of a calculator. All access goes through an internal lock so one
    cache may be shared between threads.
    """

    def __init__(self) -> None:
        self._entries: Dict[Tuple[int, int, Country], int] = {}
        self._lock = threading.RLock()

    def get(self, key: Tuple[int, int, Country]) -> Optional[int]:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: Tuple[int, int, Country], value: int) -> None:
        with self._lock:
            self._entries[key] = value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class ExistingAllocationIndex:
    """MDs already committed to other work, keyed by ``(team_member_id, month)``."""

    def __init__(self) -> None:
        self._entries: Dict[Tuple[str, MonthKey], float] = {}
        self._lock = threading.RLock()

    def get(self, team_member_id: str, month: MonthKey) -> float:
        with self._lock:
            return self._entries.get((team_member_id, month), 0)

    def set(self, team_member_id: str, month: MonthKey, mds: float) -> None:
        with self._lock:
            self._entries[(team_member_id, month)] = mds

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _validate_month(month: object) -> None:
    if isinstance(month, bool) or not isinstance(month, int) or month < 1 or month > 12:
        raise InvalidRangeError(f"Invalid month: {month}. Month must be between 1 and 12.")


def _validate_year(year: object) -> None:
    if isinstance(year, bool) or not isinstance(year, int) or year < MIN_YEAR or year > MAX_YEAR:
        raise InvalidRangeError(
            f"Invalid year: {year}. Year must be between {MIN_YEAR} and {MAX_YEAR}."
        )


def _validate_month_key(month: object) -> None:
    if not is_month_key(month):
        raise MonthFormatError(f"Invalid month format. Expected YYYY-MM, got: {month}")


def _is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def _last_day_of_month(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


class WorkingDaysCalculator:
    """Monthly working-day and capacity calculations for one team member at a time.

    The working-day cache and the existing-allocation index are instance state.
    Both are lock-guarded and may be injected, so a server can either share one
    calculator across requests or scope a fresh one per session.
    """

    def __init__(
        self,
        holiday_calendar: Optional[HolidayCalendar] = None,
        config: Optional[PlannerConfig] = None,
        cache: Optional[WorkingDaysCache] = None,
        existing_allocations: Optional[ExistingAllocationIndex] = None,
    ) -> None:
        self.config = config or PlannerConfig()
        base_calendar = holiday_calendar or DEFAULT_CALENDAR
        if self.config.extra_holidays:
            base_calendar = base_calendar.with_extra(self.config.extra_holidays)
        self.holidays = base_calendar
        self._cache = cache if cache is not None else WorkingDaysCache()
        self._existing = existing_allocations if existing_allocations is not None else ExistingAllocationIndex()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def calculate_working_days(self, month: int, year: int, country: object = "IT") -> int:
        _validate_month(month)
        _validate_year(year)
        key = (month, year, Country.parse(country))
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        working_days = self._count_working_days(month, year, key[2])
        self._cache.put(key, working_days)
        return working_days

    def _count_working_days(self, month: int, year: int, country: Country) -> int:
        first = date(year, month, 1)
        return self._count_between(first, _last_day_of_month(year, month), country)

    def _count_between(self, start: date, end: date, country: Country) -> int:
        holidays = self.holidays
        count = 0
        current = start
        while current <= end:
            if not _is_weekend(current) and not holidays.is_holiday(current, country):
                count += 1
            current += timedelta(days=1)
        return count

    def is_national_holiday(self, day: date, country: object = "IT") -> bool:
        return self.holidays.is_holiday(day, country)

    def calculate_working_days_between(
        self, start_date: date, end_date: date, country: object = None
    ) -> int:
        """Inclusive weekday count between two dates, minus national holidays.

        Without an explicit ``country`` the configured ``partial_month_calendar``
        is consulted (``IT`` by default), regardless of whose capacity is being
        computed.
        """
        calendar_country = Country.parse(
            self.config.partial_month_calendar if country is None else country
        )
        return self._count_between(start_date, end_date, calendar_country)

    def calculate_available_capacity(
        self,
        team_member: Optional[TeamMember],
        month: MonthKey,
        start_date: Optional[date] = None,
        exclude_existing_allocations: bool = False,
    ) -> float:
        if team_member is None:
            raise ValueError("Team member is required for capacity calculation")
        _validate_month_key(month)
        year, month_num = parse_month_key(month)

        window_start: Optional[date] = None
        if start_date is not None and (start_date.year, start_date.month) == (year, month_num):
            _validate_month(month_num)
            _validate_year(year)
            window_start = start_date
            base_country = Country.parse(self.config.partial_month_calendar)
            base = self.calculate_working_days_between(
                start_date, _last_day_of_month(year, month_num)
            )
        else:
            base_country = Country.parse(team_member.country or self.config.default_country)
            base = self.calculate_working_days(month_num, year, base_country)

        vacation = self._count_vacation_days(team_member, year, month_num, base_country, window_start)
        existing = 0 if exclude_existing_allocations else self._existing.get(team_member.id, month)
        available = max(0, base - vacation - existing)
        logger.debug(
            "capacity %s %s: %s = max(0, %s - %s - %s)",
            team_member.id,
            month,
            available,
            base,
            vacation,
            existing,
        )
        return available

    def _count_vacation_days(
        self,
        team_member: TeamMember,
        year: int,
        month: int,
        country: Country,
        window_start: Optional[date],
    ) -> int:
        count = 0
        for value in set(team_member.vacation_days_for_year(year)):
            try:
                day = date.fromisoformat(value)
            except ValueError as exc:
                raise ValueError(f"Invalid vacation date for {team_member.id}: {value}") from exc
            if (day.year, day.month) != (year, month):
                continue
            if window_start is not None and day < window_start:
                continue
            # weekends and holidays are already excluded from the base count
            if _is_weekend(day) or self.holidays.is_holiday(day, country):
                continue
            count += 1
        return count

    def get_existing_allocations(self, team_member_id: str, month: MonthKey) -> float:
        return self._existing.get(team_member_id, month)

    def set_existing_allocations(self, team_member_id: str, month: MonthKey, mds: float) -> None:
        _validate_month_key(month)
        if mds < 0:
            raise ValueError(f"existing allocation must be non-negative, got {mds}")
        self._existing.set(team_member_id, month, mds)

    def clear_cache(self) -> None:
        self._cache.clear()
