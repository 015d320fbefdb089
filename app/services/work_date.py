"""Work-date resolution for raw badge scans.

A scan made in the very early morning usually closes the previous night's
shift, so it is attributed to the previous civil date. Two rule versions are
kept side by side because both are in use:

``FIRST_SCAN_CARVE_OUT``
    Scans in ``[overnight_boundary_start_hour, overnight_boundary_end_hour)``
    move to the previous date only when they are the first scan of their
    calendar day for that employee. Any other scan before
    ``work_day_start_hour`` also moves to the previous date.

``UNIFORM_EARLY_MORNING``
    Every scan before ``work_day_start_hour`` moves to the previous date,
    regardless of its ordinal position.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from app.services.reconcile_types import DEFAULT_CONFIG, ReconcileConfig, WorkDateRule

FIRST_SCAN_ORDINAL = 0


def resolve_work_date(
    scan_local_ts: datetime,
    ordinal_index_in_calendar_day: int,
    *,
    config: ReconcileConfig | None = None,
) -> date:
    if ordinal_index_in_calendar_day < 0:
        raise ValueError("ordinal_index_in_calendar_day must be >= 0")

    cfg = config or DEFAULT_CONFIG
    hour = scan_local_ts.hour
    calendar_date = scan_local_ts.date()
    previous_date = calendar_date - timedelta(days=1)

    in_overnight_boundary = cfg.overnight_boundary_start_hour <= hour < cfg.overnight_boundary_end_hour
    if in_overnight_boundary and cfg.work_date_rule == WorkDateRule.FIRST_SCAN_CARVE_OUT:
        if ordinal_index_in_calendar_day == FIRST_SCAN_ORDINAL:
            return previous_date
        return calendar_date

    if hour < cfg.work_day_start_hour:
        return previous_date
    return calendar_date


def is_carried_over(scan_local_ts: datetime, work_date: date) -> bool:
    return scan_local_ts.date() != work_date
