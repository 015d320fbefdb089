from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any

from app.services.reconcile_types import (
    DEFAULT_CONFIG,
    DroppedScan,
    RawScan,
    ReconcileConfig,
    Shift,
    WorkDay,
    WorkDayStatus,
    minutes_of_day,
)
from app.services.scan_grouping import GroupKey, group_by_work_date, parse_raw_scans
from app.services.shift_matching import compute_late_minutes, find_best_shift
from app.services.work_date import is_carried_over

logger = logging.getLogger("app.reconcile")

# A lone scan at or after this hour is read as a check-out.
SINGLE_SCAN_CHECKOUT_HOUR = 12

FLAG_LATE = "LATE"
FLAG_OVERTIME = "OVERTIME"
FLAG_ANOMALOUS_SCANS = "ANOMALOUS_SCANS"
FLAG_EXTRA_SCANS = "EXTRA_SCANS"

_MISSING_STATUSES = {WorkDayStatus.MISSING_IN, WorkDayStatus.MISSING_OUT}

AssignedShiftMap = Mapping[tuple[str, int], Shift]


@dataclass
class ReconcileResult:
    work_days: list[WorkDay] = field(default_factory=list)
    scans: list[RawScan] = field(default_factory=list)
    dropped_scans: list[DroppedScan] = field(default_factory=list)
    duplicate_scans: list[RawScan] = field(default_factory=list)
    failed_groups: list[GroupKey] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class WorkDayOutcome:
    kind: str
    employee_id: str
    work_date: date
    status: WorkDayStatus
    previous_status: WorkDayStatus | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "employee_id": self.employee_id,
            "work_date": self.work_date.isoformat(),
            "status": self.status.value,
            "previous_status": self.previous_status.value if self.previous_status else None,
        }


def _in_overtime_window(check_out: datetime, start: time, end: time) -> bool:
    value = minutes_of_day(check_out)
    start_minutes = minutes_of_day(start)
    end_minutes = minutes_of_day(end)
    if start_minutes <= end_minutes:
        return start_minutes <= value <= end_minutes
    return value >= start_minutes or value <= end_minutes


def _ensure_chronological(scans: Sequence[RawScan]) -> None:
    for previous, current in zip(scans, scans[1:]):
        if current.timestamp < previous.timestamp:
            raise ValueError("reconcile_day expects scans in chronological order")


def reconcile_day(
    employee_id: str,
    work_date: date,
    scans: Sequence[RawScan],
    shifts: Sequence[Shift],
    *,
    config: ReconcileConfig | None = None,
    assigned_shift: Shift | None = None,
) -> WorkDay:
    """Derive the canonical record for one employee and one work date.

    ``scans`` must be the sorted, de-duplicated group built by
    ``group_by_work_date``. The first scan is always the check-in when there
    are two or more; the first later scan at least
    ``minimum_shift_separation_hours`` after it is the check-out. Closer
    scans are anomalous and later qualifying scans are extra; neither
    changes check-in or check-out.

    Status precedence: MISSING_IN / MISSING_OUT > OVERTIME > LATE > COMPLETE.
    ``assigned_shift`` (the employee's roster shift) takes priority over
    nearest-start matching against ``shifts``.
    """
    if not scans:
        raise ValueError("reconcile_day requires at least one scan")
    _ensure_chronological(scans)

    cfg = config or DEFAULT_CONFIG
    check_in: datetime | None = None
    check_out: datetime | None = None
    anomalous: list[datetime] = []
    extra: list[datetime] = []

    if len(scans) == 1:
        scan = scans[0]
        as_checkout = scan.timestamp.hour >= SINGLE_SCAN_CHECKOUT_HOUR
        if cfg.carried_over_single_scan_is_checkout and is_carried_over(scan.timestamp, work_date):
            as_checkout = True
        if as_checkout:
            check_out = scan.timestamp
        else:
            check_in = scan.timestamp
    else:
        check_in = scans[0].timestamp
        minimum_gap = timedelta(hours=cfg.minimum_shift_separation_hours)
        for candidate in scans[1:]:
            gap = candidate.timestamp - check_in
            if gap < minimum_gap or gap <= timedelta(0):
                anomalous.append(candidate.timestamp)
            elif check_out is None:
                check_out = candidate.timestamp
            else:
                extra.append(candidate.timestamp)

    if check_in is None:
        status = WorkDayStatus.MISSING_IN
    elif check_out is None:
        status = WorkDayStatus.MISSING_OUT
    else:
        status = WorkDayStatus.COMPLETE

    flags: set[str] = set()
    matched_shift: Shift | None = None
    late_minutes = 0
    if check_in is not None:
        matched_shift = assigned_shift or find_best_shift(
            check_in,
            shifts,
            tolerance_minutes=cfg.shift_match_tolerance_minutes,
        )
        if matched_shift is not None:
            late_minutes = compute_late_minutes(check_in, matched_shift)

    if late_minutes > cfg.late_threshold_minutes:
        flags.add(FLAG_LATE)
        if status == WorkDayStatus.COMPLETE:
            status = WorkDayStatus.LATE

    if check_out is not None and _in_overtime_window(
        check_out, cfg.overtime_window_start, cfg.overtime_window_end
    ):
        flags.add(FLAG_OVERTIME)
        if status not in _MISSING_STATUSES:
            status = WorkDayStatus.OVERTIME

    if status in _MISSING_STATUSES:
        flags.add(status.value)
    if anomalous:
        flags.add(FLAG_ANOMALOUS_SCANS)
    if extra:
        flags.add(FLAG_EXTRA_SCANS)

    worked_hours = 0.0
    if check_in is not None and check_out is not None:
        worked_hours = round((check_out - check_in).total_seconds() / 3600, 2)

    return WorkDay(
        employee_id=employee_id,
        work_date=work_date,
        check_in=check_in,
        check_out=check_out,
        status=status,
        late_minutes=late_minutes,
        worked_hours=worked_hours,
        matched_shift_id=matched_shift.id if matched_shift else None,
        matched_shift_name=matched_shift.name if matched_shift else None,
        raw_scan_count=len(scans),
        anomalous_scans=tuple(anomalous),
        extra_scans=tuple(extra),
        flags=tuple(sorted(flags)),
    )


def reconcile_scans(
    records: Iterable[Any],
    shifts: Iterable[Shift],
    *,
    config: ReconcileConfig | None = None,
    assigned_shifts: AssignedShiftMap | None = None,
) -> ReconcileResult:
    """Run the whole pipeline over raw scan records.

    Malformed records are dropped and reported, duplicates are collapsed and
    reported, and a failure in one (employee, work date) group never stops
    the other groups.
    """
    cfg = config or DEFAULT_CONFIG
    shift_list = list(shifts)
    assigned = assigned_shifts or {}
    result = ReconcileResult()

    scans, result.dropped_scans = parse_raw_scans(records, config=cfg)
    result.scans = scans
    grouping = group_by_work_date(scans, config=cfg)
    result.duplicate_scans = grouping.duplicates

    if not shift_list:
        result.warnings.append("EMPTY_SHIFT_TABLE")
        logger.warning("empty_shift_table", extra={"group_count": len(grouping.groups)})

    for key in sorted(grouping.groups):
        employee_id, work_date = key
        try:
            work_day = reconcile_day(
                employee_id,
                work_date,
                grouping.groups[key],
                shift_list,
                config=cfg,
                assigned_shift=assigned.get((employee_id, work_date.weekday())),
            )
        except Exception:
            logger.exception(
                "work_day_reconcile_failed",
                extra={"employee_id": employee_id, "work_date": work_date.isoformat()},
            )
            result.failed_groups.append(key)
            continue
        result.work_days.append(work_day)

    if result.dropped_scans:
        logger.warning(
            "scans_dropped",
            extra={"dropped_count": len(result.dropped_scans)},
        )
    return result


def work_days_in_range(
    work_days: Iterable[WorkDay],
    start_date: date,
    end_date: date,
    *,
    employee_id: str | None = None,
) -> list[WorkDay]:
    return [
        item
        for item in work_days
        if start_date <= item.work_date <= end_date
        and (employee_id is None or item.employee_id == employee_id)
    ]


def diff_work_day_outcomes(
    previous_statuses: Mapping[GroupKey, WorkDayStatus],
    work_days: Iterable[WorkDay],
) -> list[WorkDayOutcome]:
    """Events for an external dispatcher: new records and status changes."""
    outcomes: list[WorkDayOutcome] = []
    for item in work_days:
        previous = previous_statuses.get(item.key)
        if previous is None:
            outcomes.append(
                WorkDayOutcome(
                    kind="CREATED",
                    employee_id=item.employee_id,
                    work_date=item.work_date,
                    status=item.status,
                )
            )
        elif previous != item.status:
            outcomes.append(
                WorkDayOutcome(
                    kind="STATUS_CHANGED",
                    employee_id=item.employee_id,
                    work_date=item.work_date,
                    status=item.status,
                    previous_status=previous,
                )
            )
    return outcomes
