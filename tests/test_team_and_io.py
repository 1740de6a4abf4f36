from __future__ import annotations

import json
from datetime import date

import pytest

from md_planner.io_utils import (
    load_assignment,
    load_config,
    load_team,
    parse_date,
    parse_optional_date,
    team_from_records,
    write_json,
)
from md_planner.models import AllocationEntry, Assignment, PlannerConfig, TeamMember
from md_planner.team import TeamManager


def write(tmp_path, name, payload):
    path = tmp_path / name
    path.write_text(json.dumps(payload))
    return path


class TestTeamManager:
    def test_lookup(self, team):
        assert team.get_team_member_by_id("tm-002").country == "RO"
        assert team.get_team_member_by_id("nobody") is None
        assert [m.id for m in team.all_team_members()] == ["tm-001", "tm-002"]
        assert len(team) == 2

    def test_duplicate_id_rejected(self, it_member):
        with pytest.raises(ValueError, match="duplicate"):
            TeamManager([it_member, it_member])

    def test_add_vacation_days(self, team):
        updated = team.add_vacation_days("tm-001", 2024, ["2024-02-05", "2024-02-06"])
        assert updated.vacation_days_for_year(2024) == ("2024-02-05", "2024-02-06")
        team.add_vacation_days("tm-001", 2024, ["2024-02-06", "2024-03-01"])
        assert team.get_team_member_by_id("tm-001").vacation_days_for_year(2024) == (
            "2024-02-05",
            "2024-02-06",
            "2024-03-01",
        )

    def test_add_vacation_days_rejects_bad_dates(self, team):
        with pytest.raises(ValueError, match="Invalid date format"):
            team.add_vacation_days("tm-001", 2024, ["05/02/2024"])
        assert team.get_team_member_by_id("tm-001").vacation_days_for_year(2024) == ()

    def test_remove_vacation_days(self, team):
        team.add_vacation_days("tm-001", 2024, ["2024-02-05", "2024-02-06"])
        updated = team.remove_vacation_days("tm-001", 2024, ["2024-02-05", "2024-07-01"])
        assert updated.vacation_days_for_year(2024) == ("2024-02-06",)

    def test_unknown_member(self, team):
        with pytest.raises(LookupError, match="Team member not found"):
            team.add_vacation_days("nobody", 2024, ["2024-02-05"])
        assert team.get_vacation_days_in_month("nobody", "2024-02") == []

    def test_vacation_days_in_month(self, team):
        team.add_vacation_days("tm-001", 2024, ["2024-02-05", "2024-03-01"])
        assert team.get_vacation_days_in_month("tm-001", "2024-02") == ["2024-02-05"]
        with pytest.raises(ValueError):
            team.get_vacation_days_in_month("tm-001", "2024-2")

    def test_vacation_change_affects_capacity(self, team, calculator):
        assert calculator.calculate_available_capacity(team.get_team_member_by_id("tm-001"), "2024-02") == 21
        team.add_vacation_days("tm-001", 2024, ["2024-02-05"])
        assert calculator.calculate_available_capacity(team.get_team_member_by_id("tm-001"), "2024-02") == 20


class TestRecords:
    def test_team_member_from_dict(self):
        member = TeamMember.from_dict(
            {
                "id": "tm-010",
                "firstName": "Ana",
                "monthlyCapacity": 18,
                "vacationDays": {"2024": ["2024-02-05", "2024-02-05"]},
            },
            default_country="RO",
        )
        assert member.country == "RO"
        assert member.monthly_capacity == 18
        assert member.vacation_days == {2024: ("2024-02-05",)}
        assert member.first_name == "Ana"

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"id": "tm-1", "monthlyCapacity": 0},
            {"id": "tm-1", "monthlyCapacity": "twenty"},
            {"id": "tm-1", "vacationDays": {"2024": ["2024/02/05"]}},
            {"id": "tm-1", "vacationDays": ["2024-02-05"]},
        ],
    )
    def test_team_member_from_dict_invalid(self, payload):
        with pytest.raises(ValueError):
            TeamMember.from_dict(payload)

    def test_assignment_from_dict_skips_metadata(self):
        assignment = Assignment.from_dict(
            {
                "id": "pa-1",
                "teamMemberId": "tm-001",
                "projectId": "prj-7",
                "allocations": {
                    "2024-02": {"planned": 20, "actual": 18, "locked": True},
                    "hasOverflow": False,
                    "overflowAmount": 0,
                },
            }
        )
        assert assignment.month_keys() == ["2024-02"]
        assert assignment.allocations["2024-02"] == AllocationEntry(planned=20, actual=18, locked=True)
        assert assignment.extra == {"projectId": "prj-7"}

    def test_assignment_to_dict(self):
        assignment = Assignment(
            team_member_id="tm-001",
            allocations={"2024-02": AllocationEntry(planned=5, actual=5)},
            id="pa-1",
            has_unallocated_mds=True,
            unallocated_amount=3,
            extra={"projectId": "prj-7"},
        )
        assert assignment.to_dict() == {
            "projectId": "prj-7",
            "id": "pa-1",
            "teamMemberId": "tm-001",
            "allocations": {"2024-02": {"planned": 5, "actual": 5, "locked": False}},
            "hasUnallocatedMDs": True,
            "unallocatedAmount": 3,
        }

    def test_assignment_requires_member(self):
        with pytest.raises(ValueError, match="teamMemberId"):
            Assignment.from_dict({"allocations": {}})


class TestDates:
    def test_parse_date(self):
        assert parse_date("2024-02-15", "start") == date(2024, 2, 15)
        assert parse_date("2024-02-15T10:30:00", "start") == date(2024, 2, 15)
        assert parse_date(date(2024, 2, 15), "start") == date(2024, 2, 15)

    @pytest.mark.parametrize("value", [None, "", "yesterday", 20240215])
    def test_parse_date_invalid(self, value):
        with pytest.raises(ValueError, match="start"):
            parse_date(value, "start")

    def test_parse_optional_date(self):
        assert parse_optional_date(None, "start") is None
        assert parse_optional_date("  ", "start") is None
        assert parse_optional_date("2024-03-01", "start") == date(2024, 3, 1)


class TestConfig:
    def test_defaults(self, tmp_path):
        assert load_config(write(tmp_path, "config.json", {})) == PlannerConfig()

    def test_full_config(self, tmp_path):
        cfg = load_config(
            write(
                tmp_path,
                "config.json",
                {
                    "default_country": "RO",
                    "default_monthly_capacity": 20,
                    "capacity_sample_months": 6,
                    "partial_month_calendar": "RO",
                    "extra_holidays": {"it": {"2024": ["2024-02-14"]}},
                    "logging_level": "DEBUG",
                },
            )
        )
        assert cfg.default_country == "RO"
        assert cfg.default_monthly_capacity == 20
        assert cfg.capacity_sample_months == 6
        assert cfg.partial_month_calendar == "RO"
        assert cfg.extra_holidays == {"IT": {2024: ("2024-02-14",)}}
        assert cfg.logging_level == "DEBUG"

    @pytest.mark.parametrize(
        "payload, message",
        [
            ([], "JSON object"),
            ({"default_monthly_capacity": 0}, "default_monthly_capacity"),
            ({"default_monthly_capacity": True}, "default_monthly_capacity"),
            ({"capacity_sample_months": 1.5}, "capacity_sample_months"),
            ({"default_country": 7}, "default_country"),
            ({"extra_holidays": {"FR": {"2024": ["2024-07-14"]}}}, "no holiday calendar"),
            ({"extra_holidays": {"IT": {"2024": ["2024-7-14"]}}}, "YYYY-MM-DD"),
            ({"extra_holidays": {"IT": {"2024": ["2025-01-02"]}}}, "another year"),
            ({"extra_holidays": {"IT": {"next": ["2025-01-02"]}}}, "invalid year"),
        ],
    )
    def test_invalid_config(self, tmp_path, payload, message):
        with pytest.raises(ValueError, match=message):
            load_config(write(tmp_path, "config.json", payload))


class TestFiles:
    def test_load_team(self, tmp_path):
        path = write(
            tmp_path,
            "team.json",
            [{"id": "tm-001", "country": "IT"}, {"id": "tm-002"}],
        )
        team = load_team(path, default_country="RO")
        assert team.get_team_member_by_id("tm-002").country == "RO"

    def test_load_team_empty(self, tmp_path):
        with pytest.raises(ValueError, match="empty"):
            load_team(write(tmp_path, "team.json", []))

    def test_team_records_must_be_list(self):
        with pytest.raises(ValueError, match="JSON array"):
            team_from_records({"id": "tm-001"})

    def test_assignment_file_round_trip(self, tmp_path):
        payload = {
            "id": "pa-1",
            "teamMemberId": "tm-001",
            "allocations": {"2024-02": {"planned": 20, "actual": 20, "locked": False}},
        }
        path = tmp_path / "nested" / "assignment.json"
        write_json(payload, path)
        assert load_assignment(path).to_dict() == payload
