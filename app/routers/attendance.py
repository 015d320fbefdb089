import logging
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.audit import record_reconcile_run
from app.db import get_db
from app.errors import DATE_RANGE_TOO_LARGE, INVALID_DATE_RANGE, ApiError
from app.models import AuditActorType
from app.schemas import (
    AnalyticsResponse,
    DroppedScanRead,
    DuplicateScanRead,
    PeriodStatsRead,
    ReconcileRequest,
    ReconcileResponse,
    RosterDayRead,
    RosterReportResponse,
    ScanActivityRead,
    WorkDayListResponse,
    WorkDayOutcomeRead,
    WorkDayRead,
)
from app.services.attendance_feed import (
    list_active_shifts,
    list_assigned_shifts,
    list_attendance_logs,
    list_holiday_dates,
    list_roster_employee_ids,
    load_work_day_statuses,
    upsert_work_days,
)
from app.services.reconcile import (
    ReconcileResult,
    diff_work_day_outcomes,
    reconcile_scans,
    work_days_in_range,
)
from app.services.reconcile_types import ReconcileConfig, WorkDay, reconcile_config_from_settings
from app.services.status_labels import normalize_locale, status_label
from app.services.summary import (
    build_roster_report,
    period_stats_to_dict,
    summarize,
    summarize_scan_activity,
)
from app.settings import get_settings

router = APIRouter(tags=["attendance"])
outcome_logger = logging.getLogger("app.work_days")


def _client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def _validate_date_range(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise ApiError(
            status_code=422,
            code=INVALID_DATE_RANGE,
            message="start_date cannot be greater than end_date.",
        )
    max_days = get_settings().max_report_days
    if (end_date - start_date).days + 1 > max_days:
        raise ApiError(
            status_code=422,
            code=DATE_RANGE_TOO_LARGE,
            message=f"Date range cannot exceed {max_days} days.",
        )


def _reconcile_config() -> ReconcileConfig:
    return reconcile_config_from_settings(get_settings())


def _resolve_locale(locale: str | None) -> str:
    return normalize_locale(locale or get_settings().display_locale)


def _reconcile_range(
    db: Session,
    *,
    start_date: date,
    end_date: date,
    employee_id: str | None,
    config: ReconcileConfig,
) -> tuple[ReconcileResult, list[WorkDay]]:
    records = list_attendance_logs(
        db,
        start_date=start_date,
        end_date=end_date,
        employee_id=employee_id,
        config=config,
    )
    result = reconcile_scans(
        records,
        list_active_shifts(db),
        config=config,
        assigned_shifts=list_assigned_shifts(db, employee_id=employee_id),
    )
    # The feed window reaches into neighbouring days; only report the requested ones.
    work_days = work_days_in_range(result.work_days, start_date, end_date, employee_id=employee_id)
    return result, work_days


def _newest_first(work_days: list[WorkDay]) -> list[WorkDay]:
    by_employee = sorted(work_days, key=lambda item: item.employee_id)
    return sorted(by_employee, key=lambda item: item.work_date, reverse=True)


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(key): _json_safe(item) for key, item in value.items()}
    return repr(value)


def _work_day_read(work_day: WorkDay, locale: str) -> WorkDayRead:
    return WorkDayRead(
        employee_id=work_day.employee_id,
        work_date=work_day.work_date,
        check_in=work_day.check_in,
        check_out=work_day.check_out,
        status=work_day.status,
        status_label=status_label(work_day.status, locale),
        late_minutes=work_day.late_minutes,
        worked_hours=work_day.worked_hours,
        matched_shift_id=str(work_day.matched_shift_id) if work_day.matched_shift_id is not None else None,
        matched_shift_name=work_day.matched_shift_name,
        raw_scan_count=work_day.raw_scan_count,
        flags=list(work_day.flags),
        anomalous_scans=list(work_day.anomalous_scans),
        extra_scans=list(work_day.extra_scans),
    )


@router.get("/api/logs", response_model=WorkDayListResponse)
def list_work_days(
    start_date: date = Query(...),
    end_date: date = Query(...),
    employee_id: str | None = Query(default=None, min_length=1, max_length=64),
    locale: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> WorkDayListResponse:
    _validate_date_range(start_date, end_date)
    resolved_locale = _resolve_locale(locale)
    result, work_days = _reconcile_range(
        db,
        start_date=start_date,
        end_date=end_date,
        employee_id=employee_id,
        config=_reconcile_config(),
    )
    return WorkDayListResponse(
        start_date=start_date,
        end_date=end_date,
        employee_id=employee_id,
        locale=resolved_locale,
        items=[_work_day_read(item, resolved_locale) for item in _newest_first(work_days)],
        dropped_scans=[
            DroppedScanRead(index=item.index, reason=item.reason, record=_json_safe(item.record))
            for item in result.dropped_scans
        ],
        duplicate_scans=[
            DuplicateScanRead(
                employee_id=item.employee_id,
                timestamp=item.timestamp,
                source=item.source,
                scan_id=item.scan_id,
            )
            for item in result.duplicate_scans
        ],
        failed_groups=len(result.failed_groups),
        warnings=list(result.warnings),
    )


@router.get("/api/logs/analytics", response_model=AnalyticsResponse)
def get_log_analytics(
    start_date: date = Query(...),
    end_date: date = Query(...),
    employee_id: str | None = Query(default=None, min_length=1, max_length=64),
    db: Session = Depends(get_db),
) -> AnalyticsResponse:
    _validate_date_range(start_date, end_date)
    result, work_days = _reconcile_range(
        db,
        start_date=start_date,
        end_date=end_date,
        employee_id=employee_id,
        config=_reconcile_config(),
    )
    stats = summarize(work_days, start_date, end_date)
    activity = summarize_scan_activity(
        scan for scan in result.scans if start_date <= scan.calendar_date <= end_date
    )
    return AnalyticsResponse(
        stats=PeriodStatsRead.model_validate(period_stats_to_dict(stats)),
        scan_activity=[
            ScanActivityRead(
                employee_id=item.employee_id,
                total_days_scanned=item.total_days_scanned,
                daily_counts=item.daily_counts,
                monthly_counts=item.monthly_counts,
            )
            for _, item in sorted(activity.items())
        ],
        warnings=list(result.warnings),
    )


@router.get("/api/reports/attendance", response_model=RosterReportResponse)
def get_attendance_report(
    start_date: date = Query(...),
    end_date: date = Query(...),
    employee_id: str | None = Query(default=None, min_length=1, max_length=64),
    locale: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> RosterReportResponse:
    _validate_date_range(start_date, end_date)
    resolved_locale = _resolve_locale(locale)
    result, work_days = _reconcile_range(
        db,
        start_date=start_date,
        end_date=end_date,
        employee_id=employee_id,
        config=_reconcile_config(),
    )
    rows = build_roster_report(
        work_days,
        list_roster_employee_ids(db, employee_id=employee_id),
        start_date,
        end_date,
        holidays=list_holiday_dates(db, start_date=start_date, end_date=end_date),
    )
    return RosterReportResponse(
        start_date=start_date,
        end_date=end_date,
        locale=resolved_locale,
        rows=[
            RosterDayRead(
                employee_id=row.employee_id,
                work_date=row.work_date,
                status=row.status,
                status_label=status_label(row.status, resolved_locale),
                check_in=row.work_day.check_in if row.work_day else None,
                check_out=row.work_day.check_out if row.work_day else None,
                late_minutes=row.work_day.late_minutes if row.work_day else 0,
                worked_hours=row.work_day.worked_hours if row.work_day else 0.0,
            )
            for row in rows
        ],
        warnings=list(result.warnings),
    )


@router.post("/api/work-days/reconcile", response_model=ReconcileResponse)
def reconcile_work_days(
    payload: ReconcileRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> ReconcileResponse:
    _validate_date_range(payload.start_date, payload.end_date)
    request_id = getattr(request.state, "request_id", None)
    result, work_days = _reconcile_range(
        db,
        start_date=payload.start_date,
        end_date=payload.end_date,
        employee_id=payload.employee_id,
        config=_reconcile_config(),
    )

    previous_statuses = load_work_day_statuses(
        db,
        start_date=payload.start_date,
        end_date=payload.end_date,
        employee_id=payload.employee_id,
    )
    outcomes = diff_work_day_outcomes(previous_statuses, work_days)
    created, updated = upsert_work_days(db, work_days)

    for outcome in outcomes:
        outcome_logger.info(
            "work_day_status_changed",
            extra={"request_id": request_id, **outcome.to_dict()},
        )

    record_reconcile_run(
        db,
        actor_type=AuditActorType.SYSTEM,
        actor_id=str(getattr(request.state, "actor_id", "system")),
        start_date=payload.start_date,
        end_date=payload.end_date,
        employee_id=payload.employee_id,
        counts={
            "created": created,
            "updated": updated,
            "dropped_scans": len(result.dropped_scans),
            "duplicate_scans": len(result.duplicate_scans),
            "failed_groups": len(result.failed_groups),
        },
        success=not result.failed_groups,
        ip=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        request_id=request_id,
    )

    return ReconcileResponse(
        start_date=payload.start_date,
        end_date=payload.end_date,
        employee_id=payload.employee_id,
        created=created,
        updated=updated,
        dropped_scans=len(result.dropped_scans),
        duplicate_scans=len(result.duplicate_scans),
        failed_groups=len(result.failed_groups),
        outcomes=[
            WorkDayOutcomeRead(
                kind=item.kind,
                employee_id=item.employee_id,
                work_date=item.work_date,
                status=item.status,
                previous_status=item.previous_status,
            )
            for item in outcomes
        ],
        warnings=list(result.warnings),
    )
