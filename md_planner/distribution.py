from __future__ import annotations

import copy
import logging
import math
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Protocol, Tuple

from dateutil.relativedelta import relativedelta

from .models import (
    AllocationEntry,
    Assignment,
    Distribution,
    EndDateEstimate,
    MonthKey,
    OverflowReport,
    PlannerConfig,
    TeamMember,
    is_month_key,
    month_key,
)
from .working_days import MonthFormatError, WorkingDaysCalculator

logger = logging.getLogger(__name__)


class TeamMemberNotFoundError(LookupError):
    def __init__(self, team_member_id: object) -> None:
        super().__init__("Team member not found")
        self.team_member_id = team_member_id


class InvalidDistributionRequest(ValueError):
    pass


class NoCapacityError(RuntimeError):
    def __init__(self, team_member_id: str) -> None:
        super().__init__(f"Team member {team_member_id} has no available capacity to estimate an end date")
        self.team_member_id = team_member_id


class TeamDirectory(Protocol):
    def get_team_member_by_id(self, team_member_id: str) -> Optional[TeamMember]:
        ...


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _first_of_month(value: date) -> date:
    return date(value.year, value.month, 1)


def months_between(start_date: date, end_date: date) -> List[MonthKey]:
    """Month keys covering ``[start_date, end_date)``, starting with the month of ``start_date``."""
    months: List[MonthKey] = []
    current = _first_of_month(start_date)
    while current < end_date:
        months.append(month_key(current))
        current += relativedelta(months=1)
    return months


class AutoDistribution:
    """Spread an MD budget over months using one member's real capacity."""

    def __init__(
        self,
        working_days_calculator: WorkingDaysCalculator,
        team_manager: TeamDirectory,
        config: Optional[PlannerConfig] = None,
    ) -> None:
        self.working_days_calculator = working_days_calculator
        self.team_manager = team_manager
        self.config = config or PlannerConfig()

    def _require_member(self, team_member_id: str) -> TeamMember:
        team_member = self.team_manager.get_team_member_by_id(team_member_id)
        if team_member is None:
            raise TeamMemberNotFoundError(team_member_id)
        return team_member

    def estimate_project_end_date(
        self, start_date: date, total_mds: float, team_member_id: str
    ) -> EndDateEstimate:
        team_member = self._require_member(team_member_id)
        if total_mds <= 0:
            return EndDateEstimate(end_date=start_date, months_needed=0, average_capacity=0)
        average, exact = self._average_monthly_capacity(team_member, start_date)
        if average <= 0:
            raise NoCapacityError(team_member.id)
        months_needed = math.ceil(total_mds / average)
        return EndDateEstimate(
            end_date=start_date + relativedelta(months=months_needed),
            months_needed=months_needed,
            average_capacity=average,
            exact=exact,
        )

    def calculate_project_end_date(self, start_date: date, total_mds: float, team_member_id: str) -> date:
        return self.estimate_project_end_date(start_date, total_mds, team_member_id).end_date

    def _average_monthly_capacity(self, team_member: TeamMember, start_date: date) -> Tuple[int, bool]:
        samples = self.config.capacity_sample_months
        fallback = team_member.fallback_capacity(self.config.default_monthly_capacity)
        total = 0.0
        exact = True
        for offset in range(samples):
            sample_month = month_key(start_date + relativedelta(months=offset))
            try:
                total += self.working_days_calculator.calculate_available_capacity(team_member, sample_month)
            except Exception as exc:
                logger.warning(
                    "capacity for %s in %s unavailable (%s); assuming %s MDs",
                    team_member.id,
                    sample_month,
                    exc,
                    fallback,
                )
                total += fallback
                exact = False
        return round_half_up(total / samples), exact

    def auto_distribute_mds(
        self, total_mds: float, start_date: date, end_date: date, team_member_id: str
    ) -> Distribution:
        if total_mds < 0:
            raise InvalidDistributionRequest("Total MDs must be positive")
        if total_mds == 0:
            return Distribution()
        if start_date >= end_date:
            raise InvalidDistributionRequest("Invalid date range: start date must be before end date")
        team_member = self._require_member(team_member_id)

        months = months_between(start_date, end_date)
        capacities: Dict[MonthKey, float] = {}
        allocations: Dict[MonthKey, AllocationEntry] = {}
        for idx, month in enumerate(months):
            capacities[month] = self.working_days_calculator.calculate_available_capacity(
                team_member,
                month,
                start_date if idx == 0 else None,
                True,
            )
            allocations[month] = AllocationEntry()
        total_capacity = sum(capacities.values())

        remaining = total_mds
        if total_capacity > 0:
            for month in months:
                if remaining <= 0:
                    break
                capacity = capacities[month]
                share = round_half_up(total_mds * capacity / total_capacity)
                planned = min(share, capacity, remaining)
                allocations[month].planned = planned
                allocations[month].actual = planned
                remaining -= planned
                logger.debug("%s: capacity %s, planned %s, remaining %s", month, capacity, planned, remaining)

        # rounding leftovers go to the first months with spare capacity
        for month in months:
            if remaining <= 0:
                break
            spare = capacities[month] - allocations[month].planned
            if spare <= 0:
                continue
            top_up = min(remaining, spare)
            allocations[month].planned += top_up
            allocations[month].actual += top_up
            remaining -= top_up

        if remaining > 0:
            last = months[-1]
            logger.warning(
                "insufficient capacity for %s: forcing %s MDs into %s",
                team_member.id,
                remaining,
                last,
            )
            allocations[last].planned += remaining
            allocations[last].actual += remaining
            remaining = 0

        overflow = sum(max(0, allocations[month].planned - capacities[month]) for month in months)
        return Distribution(
            allocations=allocations,
            capacities=capacities,
            has_overflow=overflow > 0,
            overflow_amount=overflow,
        )

    def check_capacity_overflow(
        self, team_member_id: str, month: MonthKey, new_allocation: float
    ) -> OverflowReport:
        team_member = self._require_member(team_member_id)
        exact = True
        try:
            max_capacity = self.working_days_calculator.calculate_available_capacity(team_member, month)
            max_capacity += self.working_days_calculator.get_existing_allocations(team_member_id, month)
        except Exception as exc:
            logger.warning("capacity check for %s in %s failed (%s); assuming zero capacity", team_member_id, month, exc)
            max_capacity = 0
            exact = False

        overflow_amount = max(0, new_allocation - max_capacity)
        if max_capacity == 0:
            utilization = math.inf if new_allocation > 0 else 0
        else:
            utilization = round_half_up(new_allocation / max_capacity * 100)
        return OverflowReport(
            has_overflow=overflow_amount > 0,
            overflow_amount=overflow_amount,
            max_capacity=max_capacity,
            utilization=utilization,
            exact=exact,
        )

    def redistribute_after_user_change(
        self, assignment: Assignment, changed_month: MonthKey, new_value: float
    ) -> Assignment:
        """Apply a manual edit and rebalance later months around it.

        Only months strictly after ``changed_month`` that are not locked are
        touched. On any failure the caller's assignment is returned unchanged
        apart from ``error``.
        """
        try:
            return self._redistribute(assignment, changed_month, new_value)
        except Exception as exc:
            logger.warning("redistribution of %s failed: %s", changed_month, exc)
            failed = copy.deepcopy(assignment)
            failed.error = str(exc)
            return failed

    def _redistribute(self, assignment: Assignment, changed_month: MonthKey, new_value: float) -> Assignment:
        if not is_month_key(changed_month):
            raise MonthFormatError(f"Invalid month format. Expected YYYY-MM, got: {changed_month}")
        if new_value < 0:
            raise ValueError(f"allocation must be non-negative, got {new_value}")
        result = copy.deepcopy(assignment)
        result.error = None
        result.has_unallocated_mds = False
        result.unallocated_amount = 0
        result.last_modified = _now_iso()

        entry = result.allocations.get(changed_month)
        old_value = entry.planned if entry else 0
        difference = old_value - new_value
        if entry is None:
            entry = AllocationEntry()
            result.allocations[changed_month] = entry
        entry.planned = new_value

        if difference == 0:
            return result

        future = sorted(month for month in result.month_keys() if month > changed_month)
        if difference > 0:
            team_member = self._require_member(assignment.team_member_id)
            leftover = self._spread_forward(result.allocations, future, difference, team_member)
        else:
            leftover = self._claw_back(result.allocations, future, -difference)

        if leftover > 0:
            logger.warning("%s MDs could not be rebalanced after editing %s", leftover, changed_month)
            result.has_unallocated_mds = True
            result.unallocated_amount = leftover
        return result

    def _spread_forward(
        self,
        allocations: Dict[MonthKey, AllocationEntry],
        future: List[MonthKey],
        surplus: float,
        team_member: TeamMember,
    ) -> float:
        remaining = surplus
        for month in future:
            if remaining <= 0:
                break
            entry = allocations[month]
            if entry.locked:
                continue
            capacity = self.working_days_calculator.calculate_available_capacity(team_member, month)
            to_add = min(remaining, max(0, capacity - entry.planned))
            if to_add > 0:
                entry.planned += to_add
                entry.actual = entry.planned
                remaining -= to_add
        return remaining

    @staticmethod
    def _claw_back(allocations: Dict[MonthKey, AllocationEntry], future: List[MonthKey], needed: float) -> float:
        remaining = needed
        for month in future:
            if remaining <= 0:
                break
            entry = allocations[month]
            if entry.locked:
                continue
            to_take = min(remaining, entry.planned)
            if to_take > 0:
                entry.planned -= to_take
                entry.actual = entry.planned
                remaining -= to_take
        return remaining
