#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app.logging_utils import setup_json_logging
from app.services.device_export import parse_device_export
from app.services.reconcile import reconcile_scans
from app.services.reconcile_types import (
    Shift,
    WorkDateRule,
    WorkDay,
    parse_hhmm,
    reconcile_config_from_settings,
)
from app.services.status_labels import status_label
from app.services.summary import period_stats_to_dict, summarize
from app.settings import get_settings


def parse_shift_option(value: str, index: int) -> Shift:
    """``name=HH:MM-HH:MM`` into a Shift; overnight when the end is not after the start."""
    name, sep, window = value.partition("=")
    start_text, dash, end_text = window.partition("-")
    if not sep or not dash or not name.strip():
        raise argparse.ArgumentTypeError(f"Invalid shift {value!r}, expected name=HH:MM-HH:MM")
    try:
        start_time = parse_hhmm(start_text)
        end_time = parse_hhmm(end_text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    return Shift(
        id=index,
        name=name.strip(),
        start_time=start_time,
        end_time=end_time,
        is_overnight=end_time <= start_time,
    )


def work_day_to_dict(work_day: WorkDay, locale: str) -> dict[str, Any]:
    return {
        "employee_id": work_day.employee_id,
        "work_date": work_day.work_date.isoformat(),
        "check_in": work_day.check_in.isoformat() if work_day.check_in else None,
        "check_out": work_day.check_out.isoformat() if work_day.check_out else None,
        "status": work_day.status.value,
        "status_label": status_label(work_day.status, locale),
        "late_minutes": work_day.late_minutes,
        "worked_hours": work_day.worked_hours,
        "matched_shift_name": work_day.matched_shift_name,
        "raw_scan_count": work_day.raw_scan_count,
        "flags": list(work_day.flags),
        "anomalous_scans": [item.isoformat() for item in work_day.anomalous_scans],
        "extra_scans": [item.isoformat() for item in work_day.extra_scans],
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Reconcile a badge terminal export into work days.")
    parser.add_argument("export_file", help="device export file, or - for stdin")
    parser.add_argument(
        "--shift",
        action="append",
        default=[],
        metavar="NAME=HH:MM-HH:MM",
        help="shift table entry, repeatable",
    )
    parser.add_argument(
        "--uniform-work-date",
        action="store_true",
        help="move every scan before the work-day start hour to the previous date",
    )
    parser.add_argument("--timezone", default=None, help="organization timezone name")
    parser.add_argument("--locale", default=None, help="status label locale (th or en)")
    parser.add_argument("--summary", action="store_true", help="include period statistics")
    parser.add_argument("--verbose", action="store_true", help="emit JSON logs to stderr")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_json_logging(logging.INFO if args.verbose else logging.ERROR)

    settings = get_settings()
    config = reconcile_config_from_settings(settings)
    if args.uniform_work_date:
        config = replace(config, work_date_rule=WorkDateRule.UNIFORM_EARLY_MORNING)
    if args.timezone:
        config = replace(config, timezone_name=args.timezone)
    locale = args.locale or settings.display_locale

    try:
        shifts = [parse_shift_option(value, index) for index, value in enumerate(args.shift, start=1)]
    except argparse.ArgumentTypeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if args.export_file == "-":
        text = sys.stdin.read()
    else:
        text = Path(args.export_file).read_text(encoding="utf-8-sig")

    result = reconcile_scans(parse_device_export(text), shifts, config=config)
    payload: dict[str, Any] = {
        "work_date_rule": config.work_date_rule.value,
        "work_days": [work_day_to_dict(item, locale) for item in result.work_days],
        "dropped_scans": [
            {"index": item.index, "reason": item.reason, "record": item.record}
            for item in result.dropped_scans
        ],
        "duplicate_scans": len(result.duplicate_scans),
        "failed_groups": [
            {"employee_id": employee_id, "work_date": work_date.isoformat()}
            for employee_id, work_date in result.failed_groups
        ],
        "warnings": list(result.warnings),
    }
    if args.summary and result.work_days:
        dates: list[date] = [item.work_date for item in result.work_days]
        payload["summary"] = period_stats_to_dict(summarize(result.work_days, min(dates), max(dates)))

    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0 if not result.failed_groups else 1


if __name__ == "__main__":
    raise SystemExit(main())
