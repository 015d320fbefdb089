from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from app.services.reconcile_types import WorkDayStatus


class WorkDayRead(BaseModel):
    employee_id: str
    work_date: date
    check_in: datetime | None
    check_out: datetime | None
    status: WorkDayStatus
    status_label: str
    late_minutes: int
    worked_hours: float
    matched_shift_id: str | None = None
    matched_shift_name: str | None = None
    raw_scan_count: int
    flags: list[str] = Field(default_factory=list)
    anomalous_scans: list[datetime] = Field(default_factory=list)
    extra_scans: list[datetime] = Field(default_factory=list)


class DroppedScanRead(BaseModel):
    index: int
    reason: str
    record: Any = None


class DuplicateScanRead(BaseModel):
    employee_id: str
    timestamp: datetime
    source: str | None = None
    scan_id: str | None = None


class WorkDayListResponse(BaseModel):
    start_date: date
    end_date: date
    employee_id: str | None = None
    locale: str
    items: list[WorkDayRead] = Field(default_factory=list)
    dropped_scans: list[DroppedScanRead] = Field(default_factory=list)
    duplicate_scans: list[DuplicateScanRead] = Field(default_factory=list)
    failed_groups: int = 0
    warnings: list[str] = Field(default_factory=list)


class EmployeePeriodStatsRead(BaseModel):
    employee_id: str
    total_days: int
    complete_like_days: int
    late_days: int
    total_worked_hours: float
    total_late_minutes: int
    days_by_status: dict[str, int]


class PeriodStatsRead(BaseModel):
    period_start: date
    period_end: date
    total_days: int
    complete_like_days: int
    completion_rate: float
    total_worked_hours: float
    total_late_minutes: int
    days_by_status: dict[str, int]
    by_employee: dict[str, EmployeePeriodStatsRead] = Field(default_factory=dict)


class ScanActivityRead(BaseModel):
    employee_id: str
    total_days_scanned: int
    daily_counts: dict[str, int] = Field(default_factory=dict)
    monthly_counts: dict[str, int] = Field(default_factory=dict)


class AnalyticsResponse(BaseModel):
    stats: PeriodStatsRead
    scan_activity: list[ScanActivityRead] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class RosterDayRead(BaseModel):
    employee_id: str
    work_date: date
    status: str
    status_label: str
    check_in: datetime | None = None
    check_out: datetime | None = None
    late_minutes: int = 0
    worked_hours: float = 0.0


class RosterReportResponse(BaseModel):
    start_date: date
    end_date: date
    locale: str
    rows: list[RosterDayRead] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ReconcileRequest(BaseModel):
    start_date: date
    end_date: date
    employee_id: str | None = Field(default=None, min_length=1, max_length=64)

    @model_validator(mode="after")
    def _normalize_employee_id(self) -> "ReconcileRequest":
        if self.employee_id is not None:
            self.employee_id = self.employee_id.strip() or None
        return self


class WorkDayOutcomeRead(BaseModel):
    kind: str
    employee_id: str
    work_date: date
    status: WorkDayStatus
    previous_status: WorkDayStatus | None = None


class ReconcileResponse(BaseModel):
    start_date: date
    end_date: date
    employee_id: str | None = None
    created: int
    updated: int
    dropped_scans: int
    duplicate_scans: int
    failed_groups: int
    outcomes: list[WorkDayOutcomeRead] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
