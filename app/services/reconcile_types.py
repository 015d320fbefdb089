from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime, time
from functools import lru_cache
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TIMEZONE = "Asia/Bangkok"

# [start, end) hours of the first-scan carve-out, and the hour a work day starts.
OVERNIGHT_BOUNDARY_START_HOUR = 2
OVERNIGHT_BOUNDARY_END_HOUR = 3
WORK_DAY_START_HOUR = 6


class WorkDayStatus(str, enum.Enum):
    COMPLETE = "COMPLETE"
    MISSING_IN = "MISSING_IN"
    MISSING_OUT = "MISSING_OUT"
    LATE = "LATE"
    OVERTIME = "OVERTIME"
    ANOMALOUS = "ANOMALOUS"


# Statuses that imply both a check-in and a check-out were found.
COMPLETE_LIKE_STATUSES = frozenset(
    {WorkDayStatus.COMPLETE, WorkDayStatus.LATE, WorkDayStatus.OVERTIME}
)


class WorkDateRule(str, enum.Enum):
    # 02:00-02:59 goes to the previous date only for the first scan of the calendar day.
    FIRST_SCAN_CARVE_OUT = "FIRST_SCAN_CARVE_OUT"
    # Every scan before the work-day start hour goes to the previous date.
    UNIFORM_EARLY_MORNING = "UNIFORM_EARLY_MORNING"


class InvalidScanError(ValueError):
    """A raw scan record without a usable employee id or timestamp."""


def parse_hhmm(value: str | time) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    raw = (value or "").strip()
    parts = raw.split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time of day: {value!r}")
    try:
        hour = int(parts[0])
        minute = int(parts[1])
    except ValueError as exc:
        raise ValueError(f"Invalid time of day: {value!r}") from exc
    return time(hour, minute)


def minutes_of_day(value: datetime | time) -> int:
    return value.hour * 60 + value.minute


@lru_cache
def resolve_timezone(name: str | None) -> ZoneInfo:
    raw_name = (name or "").strip() or DEFAULT_TIMEZONE
    try:
        return ZoneInfo(raw_name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo(DEFAULT_TIMEZONE)


@dataclass(frozen=True, slots=True)
class RawScan:
    """One badge event. ``timestamp`` is aware and expressed in organization local time."""

    employee_id: str
    timestamp: datetime
    source: str | None = None
    scan_id: str | None = None

    @property
    def calendar_date(self) -> date:
        return self.timestamp.date()

    def sort_key(self) -> tuple[datetime, str, str, str]:
        return (self.timestamp, self.employee_id, self.source or "", self.scan_id or "")


@dataclass(frozen=True, slots=True)
class Shift:
    id: int | str
    name: str
    start_time: time
    end_time: time
    is_overnight: bool = False

    @property
    def start_minutes(self) -> int:
        return minutes_of_day(self.start_time)


@dataclass(frozen=True, slots=True)
class WorkDay:
    employee_id: str
    work_date: date
    check_in: datetime | None
    check_out: datetime | None
    status: WorkDayStatus
    late_minutes: int
    worked_hours: float
    matched_shift_id: int | str | None
    matched_shift_name: str | None
    raw_scan_count: int
    anomalous_scans: tuple[datetime, ...] = ()
    extra_scans: tuple[datetime, ...] = ()
    flags: tuple[str, ...] = ()

    @property
    def key(self) -> tuple[str, date]:
        return (self.employee_id, self.work_date)

    @property
    def is_complete_like(self) -> bool:
        return self.status in COMPLETE_LIKE_STATUSES


@dataclass(frozen=True, slots=True)
class DroppedScan:
    index: int
    reason: str
    record: Any = None


@dataclass(frozen=True, slots=True)
class ReconcileConfig:
    timezone_name: str = DEFAULT_TIMEZONE
    late_threshold_minutes: int = 15
    minimum_shift_separation_hours: float = 6.0
    overnight_boundary_start_hour: int = OVERNIGHT_BOUNDARY_START_HOUR
    overnight_boundary_end_hour: int = OVERNIGHT_BOUNDARY_END_HOUR
    work_day_start_hour: int = WORK_DAY_START_HOUR
    work_date_rule: WorkDateRule = WorkDateRule.FIRST_SCAN_CARVE_OUT
    shift_match_tolerance_minutes: int = 120
    overtime_window_start: time = time(2, 50)
    overtime_window_end: time = time(3, 30)
    carried_over_single_scan_is_checkout: bool = False

    @property
    def timezone(self) -> ZoneInfo:
        return resolve_timezone(self.timezone_name)


DEFAULT_CONFIG = ReconcileConfig()


def reconcile_config_from_settings(settings: Any) -> ReconcileConfig:
    try:
        rule = WorkDateRule((settings.work_date_rule or "").strip().upper())
    except ValueError:
        rule = WorkDateRule.FIRST_SCAN_CARVE_OUT
    return ReconcileConfig(
        timezone_name=settings.attendance_timezone,
        late_threshold_minutes=max(0, int(settings.late_threshold_minutes)),
        minimum_shift_separation_hours=max(0.0, float(settings.minimum_shift_separation_hours)),
        overnight_boundary_start_hour=int(settings.overnight_boundary_start_hour),
        overnight_boundary_end_hour=int(settings.overnight_boundary_end_hour),
        work_day_start_hour=int(settings.work_day_start_hour),
        work_date_rule=rule,
        shift_match_tolerance_minutes=max(0, int(settings.shift_match_tolerance_minutes)),
        overtime_window_start=parse_hhmm(settings.overtime_window_start),
        overtime_window_end=parse_hhmm(settings.overtime_window_end),
        carried_over_single_scan_is_checkout=bool(settings.carried_over_single_scan_is_checkout),
    )
