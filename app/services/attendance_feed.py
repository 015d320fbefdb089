from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import AttendanceLog, Employee, EmployeeShift, Holiday, MasterTime, WorkDayRecord
from app.services.reconcile_types import DEFAULT_CONFIG, ReconcileConfig, Shift, WorkDay, WorkDayStatus

logger = logging.getLogger("app.attendance_feed")


def scan_window_utc(
    start_date: date,
    end_date: date,
    *,
    config: ReconcileConfig | None = None,
) -> tuple[datetime, datetime]:
    """UTC bounds of the raw scans needed to reconcile ``start_date..end_date``.

    The window starts at local midnight so per-day ordinals are seeded from
    the first scan of each calendar day, and runs until the work-day start
    hour after ``end_date`` to pick up overnight check-outs.
    """
    cfg = config or DEFAULT_CONFIG
    tz = cfg.timezone
    start_local = datetime.combine(start_date, time.min, tzinfo=tz)
    end_local = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=tz) + timedelta(
        hours=cfg.work_day_start_hour
    )
    return start_local.astimezone(timezone.utc), end_local.astimezone(timezone.utc)


def _log_record(row: AttendanceLog) -> dict[str, Any]:
    return {
        "id": row.id,
        "employee_id": row.employee_id,
        "timestamp": row.timestamp,
        "source": row.source,
    }


def list_attendance_logs(
    db: Session,
    *,
    start_date: date,
    end_date: date,
    employee_id: str | None = None,
    config: ReconcileConfig | None = None,
) -> list[dict[str, Any]]:
    start_utc, end_utc = scan_window_utc(start_date, end_date, config=config)
    stmt = select(AttendanceLog).where(
        AttendanceLog.timestamp >= start_utc,
        AttendanceLog.timestamp < end_utc,
    )
    if employee_id:
        stmt = stmt.where(AttendanceLog.employee_id == employee_id)
    stmt = stmt.order_by(AttendanceLog.timestamp.asc(), AttendanceLog.id.asc())
    return [_log_record(row) for row in db.scalars(stmt).all()]


def list_active_shifts(db: Session) -> list[Shift]:
    rows = db.scalars(
        select(MasterTime)
        .where(MasterTime.is_active.is_(True))
        .order_by(MasterTime.start_time.asc(), MasterTime.id.asc())
    ).all()
    return [
        Shift(
            id=row.id,
            name=row.shift_name,
            start_time=row.start_time,
            end_time=row.end_time,
            is_overnight=bool(row.is_overnight),
        )
        for row in rows
    ]


def list_assigned_shifts(
    db: Session,
    *,
    employee_id: str | None = None,
) -> dict[tuple[str, int], Shift]:
    stmt = select(EmployeeShift).where(EmployeeShift.is_active.is_(True))
    if employee_id:
        stmt = stmt.where(EmployeeShift.employee_id == employee_id)
    result: dict[tuple[str, int], Shift] = {}
    for row in db.scalars(stmt.order_by(EmployeeShift.id.asc())).all():
        result[(row.employee_id, row.day_of_week)] = Shift(
            id=f"employee_shift:{row.id}",
            name=row.shift_name,
            start_time=row.start_time,
            end_time=row.end_time,
            is_overnight=row.end_time <= row.start_time,
        )
    return result


def list_holiday_dates(db: Session, *, start_date: date, end_date: date) -> set[date]:
    rows = db.scalars(
        select(Holiday).where(
            Holiday.start_date <= end_date,
            Holiday.end_date >= start_date,
        )
    ).all()
    dates: set[date] = set()
    for row in rows:
        current = max(row.start_date, start_date)
        last = min(row.end_date, end_date)
        while current <= last:
            dates.add(current)
            current += timedelta(days=1)
    return dates


def list_roster_employee_ids(db: Session, *, employee_id: str | None = None) -> list[str]:
    stmt = select(Employee.employee_id).where(Employee.is_active.is_(True))
    if employee_id:
        stmt = stmt.where(Employee.employee_id == employee_id)
    return list(db.scalars(stmt.order_by(Employee.employee_id.asc())).all())


def _list_work_day_records(
    db: Session,
    *,
    start_date: date,
    end_date: date,
    employee_ids: Iterable[str] | None = None,
) -> list[WorkDayRecord]:
    stmt = select(WorkDayRecord).where(
        WorkDayRecord.work_date >= start_date,
        WorkDayRecord.work_date <= end_date,
    )
    if employee_ids is not None:
        stmt = stmt.where(WorkDayRecord.employee_id.in_(sorted(set(employee_ids))))
    return list(db.scalars(stmt).all())


def load_work_day_statuses(
    db: Session,
    *,
    start_date: date,
    end_date: date,
    employee_id: str | None = None,
) -> dict[tuple[str, date], WorkDayStatus]:
    records = _list_work_day_records(
        db,
        start_date=start_date,
        end_date=end_date,
        employee_ids=[employee_id] if employee_id else None,
    )
    return {(item.employee_id, item.work_date): item.status for item in records}


def _apply_work_day(record: WorkDayRecord, work_day: WorkDay) -> None:
    record.check_in = work_day.check_in
    record.check_out = work_day.check_out
    record.status = work_day.status
    record.late_minutes = work_day.late_minutes
    record.worked_hours = work_day.worked_hours
    record.matched_shift_id = str(work_day.matched_shift_id) if work_day.matched_shift_id is not None else None
    record.matched_shift_name = work_day.matched_shift_name
    record.raw_scan_count = work_day.raw_scan_count
    record.flags = list(work_day.flags)
    record.anomalous_scans = [item.isoformat() for item in work_day.anomalous_scans]


def upsert_work_days(db: Session, work_days: list[WorkDay]) -> tuple[int, int]:
    """Insert or update cached records keyed by (employee_id, work_date)."""
    if not work_days:
        return 0, 0

    existing = {
        (item.employee_id, item.work_date): item
        for item in _list_work_day_records(
            db,
            start_date=min(item.work_date for item in work_days),
            end_date=max(item.work_date for item in work_days),
            employee_ids=[item.employee_id for item in work_days],
        )
    }

    created = 0
    updated = 0
    for work_day in work_days:
        record = existing.get(work_day.key)
        if record is None:
            record = WorkDayRecord(employee_id=work_day.employee_id, work_date=work_day.work_date)
            _apply_work_day(record, work_day)
            db.add(record)
            existing[work_day.key] = record
            created += 1
        else:
            _apply_work_day(record, work_day)
            updated += 1

    db.commit()
    logger.info(
        "work_days_upserted",
        extra={"created_count": created, "updated_count": updated},
    )
    return created, updated
