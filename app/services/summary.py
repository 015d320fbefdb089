from __future__ import annotations

from collections.abc import Collection, Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from app.services.reconcile import FLAG_LATE
from app.services.reconcile_types import RawScan, WorkDay, WorkDayStatus

ROSTER_ABSENT = "ABSENT"
ROSTER_HOLIDAY = "HOLIDAY"


def _empty_status_counts() -> dict[str, int]:
    return {status.value: 0 for status in WorkDayStatus}


@dataclass
class EmployeePeriodStats:
    employee_id: str
    total_days: int = 0
    complete_like_days: int = 0
    late_days: int = 0
    total_worked_hours: float = 0.0
    total_late_minutes: int = 0
    days_by_status: dict[str, int] = field(default_factory=_empty_status_counts)


@dataclass
class PeriodStats:
    period_start: date
    period_end: date
    total_days: int = 0
    complete_like_days: int = 0
    completion_rate: float = 0.0
    total_worked_hours: float = 0.0
    total_late_minutes: int = 0
    days_by_status: dict[str, int] = field(default_factory=_empty_status_counts)
    by_employee: dict[str, EmployeePeriodStats] = field(default_factory=dict)


@dataclass
class ScanActivity:
    employee_id: str
    daily_counts: dict[str, int] = field(default_factory=dict)
    monthly_counts: dict[str, int] = field(default_factory=dict)

    @property
    def total_days_scanned(self) -> int:
        return len(self.daily_counts)


@dataclass(frozen=True, slots=True)
class RosterDay:
    employee_id: str
    work_date: date
    status: str
    work_day: WorkDay | None = None


def summarize(
    work_days: Iterable[WorkDay],
    period_start: date,
    period_end: date,
) -> PeriodStats:
    """Aggregate reconciled days whose work date falls inside the period.

    Input records are only read. ``completion_rate`` is complete-like days
    (COMPLETE, LATE, OVERTIME) over all days, or 0.0 for an empty period.
    """
    if period_end < period_start:
        raise ValueError("period_end must not be before period_start")

    stats = PeriodStats(period_start=period_start, period_end=period_end)
    worked_hours_total = 0.0
    worked_hours_by_employee: dict[str, float] = {}

    for item in work_days:
        if not period_start <= item.work_date <= period_end:
            continue
        employee_stats = stats.by_employee.get(item.employee_id)
        if employee_stats is None:
            employee_stats = EmployeePeriodStats(employee_id=item.employee_id)
            stats.by_employee[item.employee_id] = employee_stats

        employee_stats.total_days += 1
        employee_stats.days_by_status[item.status.value] += 1
        employee_stats.total_late_minutes += item.late_minutes
        if FLAG_LATE in item.flags:
            employee_stats.late_days += 1
        if item.is_complete_like:
            employee_stats.complete_like_days += 1
        worked_hours_by_employee[item.employee_id] = (
            worked_hours_by_employee.get(item.employee_id, 0.0) + item.worked_hours
        )

        stats.total_days += 1
        stats.days_by_status[item.status.value] += 1
        stats.total_late_minutes += item.late_minutes
        if item.is_complete_like:
            stats.complete_like_days += 1
        worked_hours_total += item.worked_hours

    for employee_id, hours in worked_hours_by_employee.items():
        stats.by_employee[employee_id].total_worked_hours = round(hours, 2)
    stats.total_worked_hours = round(worked_hours_total, 2)
    if stats.total_days:
        stats.completion_rate = stats.complete_like_days / stats.total_days
    return stats


def summarize_scan_activity(scans: Iterable[RawScan]) -> dict[str, ScanActivity]:
    """Raw scan counts per employee per calendar day and per month."""
    by_employee: dict[str, ScanActivity] = {}
    for scan in scans:
        activity = by_employee.get(scan.employee_id)
        if activity is None:
            activity = ScanActivity(employee_id=scan.employee_id)
            by_employee[scan.employee_id] = activity
        day_key = scan.timestamp.strftime("%Y-%m-%d")
        month_key = scan.timestamp.strftime("%Y-%m")
        activity.daily_counts[day_key] = activity.daily_counts.get(day_key, 0) + 1
        activity.monthly_counts[month_key] = activity.monthly_counts.get(month_key, 0) + 1
    return by_employee


def iter_dates(start_date: date, end_date: date) -> Iterable[date]:
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def build_roster_report(
    work_days: Iterable[WorkDay],
    employee_ids: Iterable[str],
    start_date: date,
    end_date: date,
    *,
    holidays: Collection[date] = (),
) -> list[RosterDay]:
    by_key = {item.key: item for item in work_days}
    rows: list[RosterDay] = []
    for employee_id in employee_ids:
        for day in iter_dates(start_date, end_date):
            work_day = by_key.get((employee_id, day))
            if work_day is not None:
                status = work_day.status.value
            elif day in holidays:
                status = ROSTER_HOLIDAY
            else:
                status = ROSTER_ABSENT
            rows.append(
                RosterDay(
                    employee_id=employee_id,
                    work_date=day,
                    status=status,
                    work_day=work_day,
                )
            )
    return rows


def period_stats_to_dict(stats: PeriodStats) -> dict[str, Any]:
    return {
        "period_start": stats.period_start.isoformat(),
        "period_end": stats.period_end.isoformat(),
        "total_days": stats.total_days,
        "complete_like_days": stats.complete_like_days,
        "completion_rate": stats.completion_rate,
        "total_worked_hours": stats.total_worked_hours,
        "total_late_minutes": stats.total_late_minutes,
        "days_by_status": dict(stats.days_by_status),
        "by_employee": {
            employee_id: {
                "employee_id": item.employee_id,
                "total_days": item.total_days,
                "complete_like_days": item.complete_like_days,
                "late_days": item.late_days,
                "total_worked_hours": item.total_worked_hours,
                "total_late_minutes": item.total_late_minutes,
                "days_by_status": dict(item.days_by_status),
            }
            for employee_id, item in sorted(stats.by_employee.items())
        },
    }
