from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .distribution import AutoDistribution, NoCapacityError
from .io_utils import (
    ensure_directory,
    load_assignment,
    load_config,
    load_team,
    parse_date,
    parse_optional_date,
    write_csv,
    write_json,
)
from .models import Distribution, PlannerConfig
from .team import TeamManager
from .working_days import WorkingDaysCalculator


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Man-day capacity and distribution planner (JSON in, CSV/JSON out)."
    )
    parser.add_argument("--config", help="Path to planner configuration JSON file")
    parser.add_argument("--team", help="Path to team members JSON file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    working_days = subparsers.add_parser("working-days", help="Working days in a calendar month")
    working_days.add_argument("--month", type=int, required=True)
    working_days.add_argument("--year", type=int, required=True)
    working_days.add_argument("--country", default=None, help="Holiday calendar (default: config)")

    capacity = subparsers.add_parser("capacity", help="Available capacity of a team member in a month")
    capacity.add_argument("--member", required=True)
    capacity.add_argument("--month", required=True, help="Month as YYYY-MM")
    capacity.add_argument("--start-date", help="Count from this date for a partial month")
    capacity.add_argument(
        "--exclude-existing",
        action="store_true",
        help="Do not subtract MDs already committed to other work",
    )

    end_date = subparsers.add_parser("end-date", help="Estimate when a budget of MDs is consumed")
    end_date.add_argument("--member", required=True)
    end_date.add_argument("--start", required=True, help="Start date (ISO)")
    end_date.add_argument("--total", type=float, required=True, help="Total MDs")

    distribute = subparsers.add_parser("distribute", help="Spread MDs across the months of a date range")
    distribute.add_argument("--member", required=True)
    distribute.add_argument("--total", type=float, required=True, help="Total MDs")
    distribute.add_argument("--start", required=True, help="Start date (ISO)")
    distribute.add_argument("--end", required=True, help="End date (ISO, exclusive)")
    distribute.add_argument("--outdir", default=None, help="Output directory (default: ./out)")
    distribute.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the distribution without writing distribution.csv",
    )

    redistribute = subparsers.add_parser("redistribute", help="Rebalance an assignment after editing one month")
    redistribute.add_argument("--assignment", required=True, help="Path to assignment JSON file")
    redistribute.add_argument("--month", required=True, help="Edited month as YYYY-MM")
    redistribute.add_argument("--value", type=float, required=True, help="New planned MDs for the month")
    redistribute.add_argument("--outdir", default=None, help="Output directory (default: ./out)")
    return parser


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(message)s")


def _require_team(args: argparse.Namespace, cfg: PlannerConfig) -> TeamManager:
    if not args.team:
        raise ValueError("missing required input path: --team")
    team_path = Path(args.team)
    if not team_path.exists():
        raise ValueError(f"team file not found at {team_path}")
    return load_team(team_path, cfg.default_country)


def _format_mds(value: float) -> str:
    return f"{value:g}"


def _print_distribution(distribution: Distribution) -> None:
    if not len(distribution):
        print("Nothing to distribute.")
        return
    print("Distribution:")
    for month in distribution.months():
        entry = distribution[month]
        capacity = distribution.capacities.get(month, 0)
        marker = " (over capacity)" if entry.planned > capacity else ""
        print(f"- {month}: {_format_mds(entry.planned)} / {_format_mds(capacity)} MDs{marker}")
    if distribution.has_overflow:
        print(f"\nOverflow: {_format_mds(distribution.overflow_amount)} MDs")
    else:
        print("\nOverflow: none")


def run(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        cfg = load_config(args.config) if args.config else PlannerConfig()
    except (OSError, ValueError) as exc:
        print(str(exc), file=sys.stderr)
        return 2
    _configure_logging(cfg.logging_level)
    calculator = WorkingDaysCalculator(config=cfg)

    try:
        if args.command == "working-days":
            country = args.country or cfg.default_country
            print(calculator.calculate_working_days(args.month, args.year, country))
            return 0

        team = _require_team(args, cfg)
        distributor = AutoDistribution(calculator, team, cfg)

        if args.command == "capacity":
            member = team.get_team_member_by_id(args.member)
            if member is None:
                raise LookupError("Team member not found")
            start_date = parse_optional_date(args.start_date, "start-date")
            available = calculator.calculate_available_capacity(
                member, args.month, start_date, args.exclude_existing
            )
            print(_format_mds(available))
            return 0

        if args.command == "end-date":
            estimate = distributor.estimate_project_end_date(
                parse_date(args.start, "start"), args.total, args.member
            )
            note = "" if estimate.exact else " (estimated with fallback capacity)"
            print(f"{estimate.end_date.isoformat()}{note}")
            return 0

        if args.command == "distribute":
            distribution = distributor.auto_distribute_mds(
                args.total, parse_date(args.start, "start"), parse_date(args.end, "end"), args.member
            )
            _print_distribution(distribution)
            if args.dry_run:
                return 0
            outdir = ensure_directory(args.outdir or "out")
            output_path = outdir / "distribution.csv"
            write_csv(distribution.to_frame(), output_path)
            print(f"Wrote {output_path}")
            return 0

        if args.command == "redistribute":
            assignment = load_assignment(args.assignment)
            result = distributor.redistribute_after_user_change(assignment, args.month, args.value)
            outdir = ensure_directory(args.outdir or "out")
            output_path = outdir / "assignment.json"
            write_json(result.to_dict(), output_path)
            print(f"Wrote {output_path}")
            if result.error:
                print(f"Redistribution failed: {result.error}", file=sys.stderr)
                return 1
            if result.has_unallocated_mds:
                print(f"Unallocated: {_format_mds(result.unallocated_amount)} MDs")
            return 0
    except (OSError, ValueError, LookupError, NoCapacityError) as exc:
        print(str(exc), file=sys.stderr)
        return 2
    print(f"unknown command {args.command}", file=sys.stderr)
    return 2


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
