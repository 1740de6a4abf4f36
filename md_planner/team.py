from __future__ import annotations

import threading
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from .models import MonthKey, TeamMember, is_month_key, normalize_vacation_dates, parse_month_key


class TeamManager:
    """In-memory registry of team members, looked up by id."""

    def __init__(self, members: Iterable[TeamMember] = ()) -> None:
        self._members: Dict[str, TeamMember] = {}
        self._lock = threading.Lock()
        for member in members:
            self.add_team_member(member)

    def add_team_member(self, member: TeamMember) -> None:
        with self._lock:
            if member.id in self._members:
                raise ValueError(f"duplicate team member id '{member.id}'")
            self._members[member.id] = member

    def get_team_member_by_id(self, team_member_id: str) -> Optional[TeamMember]:
        with self._lock:
            return self._members.get(team_member_id)

    def all_team_members(self) -> List[TeamMember]:
        with self._lock:
            return sorted(self._members.values(), key=lambda m: m.id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._members)

    def _require(self, team_member_id: str) -> TeamMember:
        member = self._members.get(team_member_id)
        if member is None:
            raise LookupError("Team member not found")
        return member

    def add_vacation_days(self, team_member_id: str, year: int, dates: Iterable[str]) -> TeamMember:
        additions = normalize_vacation_dates(dates)
        with self._lock:
            member = self._require(team_member_id)
            current = member.vacation_days_for_year(year)
            merged = normalize_vacation_dates(current + additions)
            updated = replace(member, vacation_days={**member.vacation_days, year: merged})
            self._members[team_member_id] = updated
            return updated

    def remove_vacation_days(self, team_member_id: str, year: int, dates: Iterable[str]) -> TeamMember:
        removals = set(dates)
        with self._lock:
            member = self._require(team_member_id)
            kept = tuple(day for day in member.vacation_days_for_year(year) if day not in removals)
            updated = replace(member, vacation_days={**member.vacation_days, year: kept})
            self._members[team_member_id] = updated
            return updated

    def get_vacation_days_in_month(self, team_member_id: str, month: MonthKey) -> List[str]:
        if not is_month_key(month):
            raise ValueError(f"Invalid month format. Expected YYYY-MM, got: {month}")
        member = self.get_team_member_by_id(team_member_id)
        if member is None:
            return []
        year, _ = parse_month_key(month)
        return [day for day in member.vacation_days_for_year(year) if day.startswith(month)]
