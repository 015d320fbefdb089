from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo

from app.services.reconcile_types import (
    DEFAULT_CONFIG,
    DroppedScan,
    InvalidScanError,
    RawScan,
    ReconcileConfig,
)
from app.services.work_date import resolve_work_date

logger = logging.getLogger("app.reconcile")

GroupKey = tuple[str, date]


@dataclass
class ScanGrouping:
    groups: dict[GroupKey, list[RawScan]] = field(default_factory=dict)
    duplicates: list[RawScan] = field(default_factory=list)

    @property
    def scan_count(self) -> int:
        return sum(len(items) for items in self.groups.values())


def _record_value(record: Any, *names: str) -> Any:
    for name in names:
        if isinstance(record, Mapping):
            if name in record:
                return record[name]
        elif hasattr(record, name):
            return getattr(record, name)
    return None


def _normalize_timestamp(raw: Any, tz: ZoneInfo) -> datetime:
    if raw is None:
        raise InvalidScanError("MISSING_TIMESTAMP")

    if isinstance(raw, datetime):
        value = raw
    elif isinstance(raw, str):
        text = raw.strip()
        if not text:
            raise InvalidScanError("MISSING_TIMESTAMP")
        if text.endswith(("Z", "z")):
            text = f"{text[:-1]}+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError as exc:
            raise InvalidScanError("UNPARSEABLE_TIMESTAMP") from exc
    else:
        raise InvalidScanError("UNPARSEABLE_TIMESTAMP")

    # Naive values are already organization local civil time.
    try:
        local = value.replace(tzinfo=tz) if value.tzinfo is None else value.astimezone(tz)
    except OverflowError as exc:
        raise InvalidScanError("UNPARSEABLE_TIMESTAMP") from exc
    # Work-date resolution may step back one day.
    if local.date() == date.min:
        raise InvalidScanError("UNPARSEABLE_TIMESTAMP")
    return local


def _normalize_employee_id(raw: Any) -> str:
    if raw is None or isinstance(raw, bool):
        raise InvalidScanError("MISSING_EMPLOYEE_ID")
    employee_id = str(raw).strip()
    if not employee_id:
        raise InvalidScanError("MISSING_EMPLOYEE_ID")
    return employee_id


def parse_raw_scan(record: Any, *, tz: ZoneInfo) -> RawScan:
    if isinstance(record, RawScan):
        return RawScan(
            employee_id=_normalize_employee_id(record.employee_id),
            timestamp=_normalize_timestamp(record.timestamp, tz),
            source=record.source,
            scan_id=record.scan_id,
        )

    employee_id = _normalize_employee_id(_record_value(record, "employee_id"))
    timestamp = _normalize_timestamp(_record_value(record, "timestamp"), tz)
    source = _record_value(record, "source", "device")
    scan_id = _record_value(record, "id", "scan_id")
    return RawScan(
        employee_id=employee_id,
        timestamp=timestamp,
        source=str(source) if source is not None else None,
        scan_id=str(scan_id) if scan_id is not None else None,
    )


def parse_raw_scans(
    records: Iterable[Any],
    *,
    config: ReconcileConfig | None = None,
) -> tuple[list[RawScan], list[DroppedScan]]:
    cfg = config or DEFAULT_CONFIG
    tz = cfg.timezone
    scans: list[RawScan] = []
    dropped: list[DroppedScan] = []
    for index, record in enumerate(records):
        try:
            scans.append(parse_raw_scan(record, tz=tz))
        except InvalidScanError as exc:
            reason = str(exc)
            dropped.append(DroppedScan(index=index, reason=reason, record=record))
            logger.warning(
                "scan_rejected",
                extra={"index": index, "reason": reason, "record": record},
            )
    return scans, dropped


def group_by_work_date(
    scans: Iterable[RawScan],
    *,
    config: ReconcileConfig | None = None,
) -> ScanGrouping:
    """Group scans by (employee, work date) in one chronological sweep.

    Scans are sorted globally before ordinals are assigned. A scan with the
    same employee, calendar day and HH:MM:SS as an earlier one is collapsed
    into it. The ordinal counter per (employee, calendar day) only counts the
    scans that survive de-duplication.
    """
    cfg = config or DEFAULT_CONFIG
    grouping = ScanGrouping()
    seen_times: set[tuple[str, date, str]] = set()
    calendar_counter: dict[tuple[str, date], int] = {}

    for scan in sorted(scans, key=RawScan.sort_key):
        calendar_date = scan.calendar_date
        dedupe_key = (scan.employee_id, calendar_date, scan.timestamp.strftime("%H:%M:%S"))
        if dedupe_key in seen_times:
            grouping.duplicates.append(scan)
            logger.info(
                "scan_duplicate_collapsed",
                extra={
                    "employee_id": scan.employee_id,
                    "timestamp": scan.timestamp.isoformat(),
                },
            )
            continue
        seen_times.add(dedupe_key)

        calendar_key = (scan.employee_id, calendar_date)
        ordinal = calendar_counter.get(calendar_key, 0)
        calendar_counter[calendar_key] = ordinal + 1

        work_date = resolve_work_date(scan.timestamp, ordinal, config=cfg)
        grouping.groups.setdefault((scan.employee_id, work_date), []).append(scan)

    return grouping
