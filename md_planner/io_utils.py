from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import pandas as pd
from dateutil import parser as dateparser

from .holidays import Country
from .models import Assignment, PlannerConfig, TeamMember, is_iso_day
from .team import TeamManager


def parse_date(value: object, field_name: str) -> date:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{field_name}' must be an ISO date string")
    try:
        return dateparser.isoparse(value.strip()).date()
    except (ValueError, TypeError) as exc:
        raise ValueError(f"invalid date in '{field_name}': {value}") from exc


def parse_optional_date(value: object, field_name: str) -> Optional[date]:
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return None
    return parse_date(value, field_name)


def _parse_extra_holidays(raw: object) -> Dict[str, Dict[int, Tuple[str, ...]]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError("extra_holidays must be an object")
    parsed: Dict[str, Dict[int, Tuple[str, ...]]] = {}
    for code, years in raw.items():
        if Country.parse(code) is Country.NONE:
            raise ValueError(f"extra_holidays: no holiday calendar for country '{code}'")
        if not isinstance(years, dict):
            raise ValueError(f"extra_holidays[{code}] must map years to date arrays")
        by_year: Dict[int, Tuple[str, ...]] = {}
        for year, days in years.items():
            try:
                year_int = int(year)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"extra_holidays[{code}]: invalid year '{year}'") from exc
            if not isinstance(days, list) or not all(is_iso_day(day) for day in days):
                raise ValueError(f"extra_holidays[{code}][{year}] must be an array of YYYY-MM-DD dates")
            wrong_year = [day for day in days if not day.startswith(f"{year_int:04d}-")]
            if wrong_year:
                raise ValueError(f"extra_holidays[{code}][{year}] contains dates from another year: {', '.join(wrong_year)}")
            by_year[year_int] = tuple(days)
        parsed[Country.parse(code).value] = by_year
    return parsed


def load_config(path: str | Path) -> PlannerConfig:
    data = json.loads(Path(path).read_text())
    if not isinstance(data, dict):
        raise ValueError("config file must be a JSON object")

    default_country = data.get("default_country", "IT")
    if not isinstance(default_country, str):
        raise ValueError("default_country must be a string")

    default_capacity = data.get("default_monthly_capacity", 22)
    if isinstance(default_capacity, bool) or not isinstance(default_capacity, (int, float)):
        raise ValueError("default_monthly_capacity must be a number")
    if default_capacity <= 0:
        raise ValueError("default_monthly_capacity must be positive")

    sample_months = data.get("capacity_sample_months", 3)
    if isinstance(sample_months, bool) or not isinstance(sample_months, int) or sample_months <= 0:
        raise ValueError("capacity_sample_months must be a positive integer")

    partial_month_calendar = data.get("partial_month_calendar", "IT")
    if not isinstance(partial_month_calendar, str):
        raise ValueError("partial_month_calendar must be a country code string")

    logging_level = data.get("logging_level", "INFO")
    if not isinstance(logging_level, str):
        raise ValueError("logging_level must be a string")

    return PlannerConfig(
        default_country=default_country,
        default_monthly_capacity=default_capacity,
        capacity_sample_months=sample_months,
        partial_month_calendar=partial_month_calendar,
        extra_holidays=_parse_extra_holidays(data.get("extra_holidays")),
        logging_level=logging_level,
    )


def team_from_records(records: object, default_country: str = "IT") -> TeamManager:
    if not isinstance(records, list):
        raise ValueError("team file must be a JSON array")
    members = []
    for entry in records:
        if not isinstance(entry, Mapping):
            raise ValueError("team entries must be objects")
        members.append(TeamMember.from_dict(entry, default_country=default_country))
    return TeamManager(members)


def load_team(path: str | Path, default_country: str = "IT") -> TeamManager:
    team = team_from_records(json.loads(Path(path).read_text()), default_country)
    if not len(team):
        raise ValueError("team file is empty")
    return team


def load_assignment(path: str | Path) -> Assignment:
    data = json.loads(Path(path).read_text())
    if not isinstance(data, dict):
        raise ValueError("assignment file must be a JSON object")
    return Assignment.from_dict(data)


def ensure_directory(path: str | Path) -> Path:
    target = Path(path)
    target.mkdir(parents=True, exist_ok=True)
    return target


def write_csv(df: pd.DataFrame, path: str | Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)


def write_json(payload: object, path: str | Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    Path(path).write_text(json.dumps(payload, indent=2) + "\n")
