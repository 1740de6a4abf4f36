from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd


MonthKey = str

DEFAULT_MONTHLY_CAPACITY = 22
METADATA_KEYS = frozenset(
    {"hasOverflow", "overflowAmount", "hasUnallocatedMDs", "unallocatedAmount", "error"}
)

_MONTH_KEY_RE = re.compile(r"^\d{4}-\d{2}$")
_ISO_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def month_key(value: date) -> MonthKey:
    return f"{value.year:04d}-{value.month:02d}"


def is_month_key(value: object) -> bool:
    return isinstance(value, str) and bool(_MONTH_KEY_RE.match(value))


def is_iso_day(value: object) -> bool:
    return isinstance(value, str) and bool(_ISO_DAY_RE.match(value))


def parse_month_key(value: MonthKey) -> Tuple[int, int]:
    """Split a ``YYYY-MM`` key into ``(year, month)`` without range checks."""
    year_text, month_text = value.split("-")
    return int(year_text), int(month_text)


@dataclass(frozen=True)
class TeamMember:
    """Team member record as supplied by the team manager."""

    id: str
    country: str = "IT"
    monthly_capacity: Optional[float] = None
    vacation_days: Dict[int, Tuple[str, ...]] = field(default_factory=dict)
    first_name: str = ""
    last_name: str = ""
    role: str = ""

    def vacation_days_for_year(self, year: int) -> Tuple[str, ...]:
        return self.vacation_days.get(year, ())

    def fallback_capacity(self, default: float = DEFAULT_MONTHLY_CAPACITY) -> float:
        return self.monthly_capacity if self.monthly_capacity else default

    @classmethod
    def from_dict(cls, data: Mapping[str, object], default_country: str = "IT") -> "TeamMember":
        member_id = data.get("id")
        if not member_id or not isinstance(member_id, str):
            raise ValueError("team member id is required")
        capacity = data.get("monthlyCapacity", data.get("monthly_capacity"))
        if capacity is not None:
            if isinstance(capacity, bool) or not isinstance(capacity, (int, float)) or capacity <= 0:
                raise ValueError(f"monthlyCapacity must be a positive number for {member_id}")
        raw_vacations = data.get("vacationDays", data.get("vacation_days")) or {}
        if not isinstance(raw_vacations, Mapping):
            raise ValueError(f"vacationDays must be an object for {member_id}")
        vacation_days: Dict[int, Tuple[str, ...]] = {}
        for year, dates in raw_vacations.items():
            if not isinstance(dates, (list, tuple)):
                raise ValueError(f"vacation days must be an array for {member_id}")
            vacation_days[int(year)] = normalize_vacation_dates(dates)
        return cls(
            id=member_id,
            country=str(data.get("country") or default_country),
            monthly_capacity=float(capacity) if capacity is not None else None,
            vacation_days=vacation_days,
            first_name=str(data.get("firstName", "") or ""),
            last_name=str(data.get("lastName", "") or ""),
            role=str(data.get("role", "") or ""),
        )


def normalize_vacation_dates(dates: Iterable[object]) -> Tuple[str, ...]:
    """Validate ISO day strings and drop duplicates, keeping first-seen order."""
    seen: List[str] = []
    for value in dates:
        if not is_iso_day(value):
            raise ValueError(f"Invalid date format: {value}")
        if value not in seen:
            seen.append(value)
    return tuple(seen)


@dataclass
class AllocationEntry:
    planned: float = 0
    actual: float = 0
    locked: bool = False

    def to_dict(self) -> Dict[str, object]:
        return {"planned": self.planned, "actual": self.actual, "locked": self.locked}

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "AllocationEntry":
        return cls(
            planned=data.get("planned") or 0,
            actual=data.get("actual") or 0,
            locked=bool(data.get("locked", False)),
        )


@dataclass
class Distribution:
    """Monthly allocation produced by the auto-distribution engine."""

    allocations: Dict[MonthKey, AllocationEntry] = field(default_factory=dict)
    capacities: Dict[MonthKey, float] = field(default_factory=dict)
    has_overflow: bool = False
    overflow_amount: float = 0

    def months(self) -> List[MonthKey]:
        return list(self.allocations)

    def total_planned(self) -> float:
        return sum(entry.planned for entry in self.allocations.values())

    def __getitem__(self, month: MonthKey) -> AllocationEntry:
        return self.allocations[month]

    def __contains__(self, month: object) -> bool:
        return month in self.allocations

    def __len__(self) -> int:
        return len(self.allocations)

    def to_dict(self) -> Dict[str, object]:
        if not self.allocations:
            return {}
        payload: Dict[str, object] = {
            month: entry.to_dict() for month, entry in self.allocations.items()
        }
        payload["hasOverflow"] = self.has_overflow
        payload["overflowAmount"] = self.overflow_amount
        return payload

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for month, entry in self.allocations.items():
            capacity = self.capacities.get(month, 0)
            rows.append(
                {
                    "month": month,
                    "capacity": capacity,
                    "planned": entry.planned,
                    "actual": entry.actual,
                    "locked": entry.locked,
                    "overflow": max(0, entry.planned - capacity),
                }
            )
        columns = ["month", "capacity", "planned", "actual", "locked", "overflow"]
        return pd.DataFrame(rows, columns=columns)


@dataclass(frozen=True)
class OverflowReport:
    has_overflow: bool
    overflow_amount: float
    max_capacity: float
    utilization: float
    exact: bool = True

    def to_dict(self) -> Dict[str, object]:
        return {
            "hasOverflow": self.has_overflow,
            "overflowAmount": self.overflow_amount,
            "maxCapacity": self.max_capacity,
            # JSON has no Infinity literal
            "utilization": None if self.utilization == float("inf") else self.utilization,
            "exact": self.exact,
        }


@dataclass(frozen=True)
class EndDateEstimate:
    end_date: date
    months_needed: int
    average_capacity: float
    exact: bool = True

    def to_dict(self) -> Dict[str, object]:
        return {
            "endDate": self.end_date.isoformat(),
            "monthsNeeded": self.months_needed,
            "averageCapacity": self.average_capacity,
            "exact": self.exact,
        }


_ASSIGNMENT_FIELDS = {
    "id",
    "teamMemberId",
    "allocations",
    "lastModified",
    "hasUnallocatedMDs",
    "unallocatedAmount",
    "error",
}


@dataclass
class Assignment:
    """Caller-owned allocation of one team member to a piece of work."""

    team_member_id: str
    allocations: Dict[MonthKey, AllocationEntry] = field(default_factory=dict)
    id: Optional[str] = None
    last_modified: Optional[str] = None
    has_unallocated_mds: bool = False
    unallocated_amount: float = 0
    error: Optional[str] = None
    extra: Dict[str, object] = field(default_factory=dict)

    def month_keys(self) -> List[MonthKey]:
        return [key for key in self.allocations if is_month_key(key)]

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "Assignment":
        team_member_id = data.get("teamMemberId")
        if not team_member_id or not isinstance(team_member_id, str):
            raise ValueError("assignment teamMemberId is required")
        raw_allocations = data.get("allocations") or {}
        if not isinstance(raw_allocations, Mapping):
            raise ValueError("assignment allocations must be an object")
        allocations = {
            month: AllocationEntry.from_dict(entry)
            for month, entry in raw_allocations.items()
            if month not in METADATA_KEYS and isinstance(entry, Mapping)
        }
        return cls(
            team_member_id=team_member_id,
            allocations=allocations,
            id=data.get("id"),
            last_modified=data.get("lastModified"),
            has_unallocated_mds=bool(data.get("hasUnallocatedMDs", False)),
            unallocated_amount=data.get("unallocatedAmount") or 0,
            error=data.get("error"),
            extra={key: value for key, value in data.items() if key not in _ASSIGNMENT_FIELDS},
        )

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = dict(self.extra)
        if self.id is not None:
            payload["id"] = self.id
        payload["teamMemberId"] = self.team_member_id
        payload["allocations"] = {month: entry.to_dict() for month, entry in self.allocations.items()}
        if self.last_modified is not None:
            payload["lastModified"] = self.last_modified
        if self.has_unallocated_mds:
            payload["hasUnallocatedMDs"] = True
            payload["unallocatedAmount"] = self.unallocated_amount
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True)
class PlannerConfig:
    default_country: str = "IT"
    default_monthly_capacity: float = DEFAULT_MONTHLY_CAPACITY
    capacity_sample_months: int = 3
    partial_month_calendar: str = "IT"
    extra_holidays: Dict[str, Dict[int, Tuple[str, ...]]] = field(default_factory=dict)
    logging_level: str = "INFO"
