from __future__ import annotations

import sys
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from md_planner.models import TeamMember
from md_planner.team import TeamManager
from md_planner.working_days import WorkingDaysCalculator


class StubCalculator:
    """Capacity source with fixed per-month values, recording every call."""

    def __init__(
        self,
        capacities: Optional[Dict[str, float]] = None,
        default: float = 22,
        error: Optional[Exception] = None,
        existing: Optional[Dict[str, float]] = None,
    ) -> None:
        self.capacities = dict(capacities or {})
        self.default = default
        self.error = error
        self.existing = dict(existing or {})
        self.calls: List[Tuple[str, Optional[date], bool]] = []

    def calculate_available_capacity(
        self, team_member, month, start_date=None, exclude_existing_allocations=False
    ):
        self.calls.append((month, start_date, exclude_existing_allocations))
        if self.error is not None:
            raise self.error
        return self.capacities.get(month, self.default)

    def get_existing_allocations(self, team_member_id, month):
        return self.existing.get(month, 0)


@pytest.fixture
def calculator() -> WorkingDaysCalculator:
    return WorkingDaysCalculator()


@pytest.fixture
def it_member() -> TeamMember:
    return TeamMember(id="tm-001", country="IT", monthly_capacity=22)


@pytest.fixture
def ro_member() -> TeamMember:
    return TeamMember(id="tm-002", country="RO")


@pytest.fixture
def team(it_member: TeamMember, ro_member: TeamMember) -> TeamManager:
    return TeamManager([it_member, ro_member])
