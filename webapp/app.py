from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Optional, Tuple

from flask import Flask, jsonify, request

from md_planner.distribution import (
    AutoDistribution,
    NoCapacityError,
    TeamMemberNotFoundError,
)
from md_planner.io_utils import load_config, load_team, parse_date, parse_optional_date
from md_planner.models import Assignment, PlannerConfig
from md_planner.team import TeamManager
from md_planner.working_days import WorkingDaysCalculator


def _resolve_config() -> PlannerConfig:
    env_value = os.getenv("MD_PLANNER_CONFIG")
    if env_value:
        return load_config(Path(env_value).expanduser())
    return PlannerConfig()


def _resolve_team(config: PlannerConfig) -> TeamManager:
    env_value = os.getenv("MD_PLANNER_TEAM")
    if env_value:
        return load_team(Path(env_value).expanduser(), config.default_country)
    return TeamManager()


def _json_body() -> Dict[str, object]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("request body must be a JSON object")
    return data


def _number(data: Dict[str, object], key: str) -> float:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be a number")
    return value


def _string(data: Dict[str, object], key: str) -> str:
    value = data.get(key)
    if not value or not isinstance(value, str):
        raise ValueError(f"'{key}' is required")
    return value


def _error(message: str, status: int) -> Tuple[object, int]:
    return jsonify({"error": message}), status


def create_app(
    calculator: Optional[WorkingDaysCalculator] = None,
    team_manager: Optional[TeamManager] = None,
    config: Optional[PlannerConfig] = None,
) -> Flask:
    app = Flask(__name__)
    config = config or _resolve_config()
    team_manager = team_manager if team_manager is not None else _resolve_team(config)
    calculator = calculator or WorkingDaysCalculator(config=config)
    distributor = AutoDistribution(calculator, team_manager, config)
    app.config["PLANNER_CONFIG"] = config
    app.config["TEAM_MANAGER"] = team_manager
    app.config["CALCULATOR"] = calculator

    @app.errorhandler(TeamMemberNotFoundError)
    def member_not_found(exc: TeamMemberNotFoundError):
        return _error(str(exc), 404)

    @app.errorhandler(ValueError)
    def invalid_request(exc: ValueError):
        return _error(str(exc), 400)

    @app.errorhandler(NoCapacityError)
    def no_capacity(exc: NoCapacityError):
        return _error(str(exc), 422)

    @app.get("/api/team")
    def list_team():
        members = [
            {"id": member.id, "country": member.country, "monthlyCapacity": member.monthly_capacity}
            for member in team_manager.all_team_members()
        ]
        return jsonify({"members": members})

    @app.get("/api/working-days")
    def working_days():
        month = request.args.get("month", type=int)
        year = request.args.get("year", type=int)
        if month is None or year is None:
            return _error("'month' and 'year' query parameters are required integers", 400)
        country = request.args.get("country", config.default_country)
        days = calculator.calculate_working_days(month, year, country)
        return jsonify({"month": month, "year": year, "country": country, "workingDays": days})

    @app.get("/api/capacity/<member_id>/<month>")
    def capacity(member_id: str, month: str):
        member = team_manager.get_team_member_by_id(member_id)
        if member is None:
            raise TeamMemberNotFoundError(member_id)
        start_date = parse_optional_date(request.args.get("startDate"), "startDate")
        exclude_existing = request.args.get("excludeExisting", "false").lower() in {"1", "true", "yes"}
        available = calculator.calculate_available_capacity(member, month, start_date, exclude_existing)
        return jsonify({"teamMemberId": member_id, "month": month, "availableCapacity": available})

    @app.post("/api/end-date")
    def end_date():
        data = _json_body()
        estimate = distributor.estimate_project_end_date(
            parse_date(data.get("startDate"), "startDate"),
            _number(data, "totalMDs"),
            _string(data, "teamMemberId"),
        )
        return jsonify(estimate.to_dict())

    @app.post("/api/distribute")
    def distribute():
        data = _json_body()
        distribution = distributor.auto_distribute_mds(
            _number(data, "totalMDs"),
            parse_date(data.get("startDate"), "startDate"),
            parse_date(data.get("endDate"), "endDate"),
            _string(data, "teamMemberId"),
        )
        return jsonify(distribution.to_dict())

    @app.post("/api/overflow")
    def overflow():
        data = _json_body()
        report = distributor.check_capacity_overflow(
            _string(data, "teamMemberId"),
            _string(data, "month"),
            _number(data, "newAllocation"),
        )
        return jsonify(report.to_dict())

    @app.post("/api/redistribute")
    def redistribute():
        data = _json_body()
        raw_assignment = data.get("assignment")
        if not isinstance(raw_assignment, dict):
            return _error("'assignment' must be an object", 400)
        result = distributor.redistribute_after_user_change(
            Assignment.from_dict(raw_assignment),
            _string(data, "changedMonth"),
            _number(data, "newValue"),
        )
        return jsonify(result.to_dict())

    @app.post("/api/existing-allocations")
    def existing_allocations():
        data = _json_body()
        member_id = _string(data, "teamMemberId")
        month = _string(data, "month")
        calculator.set_existing_allocations(member_id, month, _number(data, "mds"))
        return jsonify({"success": True})

    @app.post("/api/cache/clear")
    def clear_cache():
        calculator.clear_cache()
        return jsonify({"success": True})

    return app


if __name__ == "__main__":
    create_app().run(debug=os.getenv("FLASK_DEBUG") == "1")
