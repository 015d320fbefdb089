"""Reader for the badge terminal text export.

Each line holds ``<employee_id> <DD-MM-YYYY> <HH:MM[:SS]>`` separated by
whitespace, in organization local time. Lines that cannot be read are still
returned so that the reconciliation run rejects and counts them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

EXPORT_SOURCE = "device_export"
_DATE_TIME_FORMATS = ("%d-%m-%Y %H:%M", "%d-%m-%Y %H:%M:%S")


def _parse_local_datetime(date_text: str, time_text: str) -> datetime | None:
    joined = f"{date_text} {time_text}"
    for fmt in _DATE_TIME_FORMATS:
        try:
            return datetime.strptime(joined, fmt)
        except ValueError:
            continue
    return None


def parse_device_export(text: str, *, source: str = EXPORT_SOURCE) -> list[dict[str, Any]]:
    records: list[dict[str, Any]] = []
    for line_number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        parts = line.split()
        employee_id = parts[0] if parts else None
        timestamp: Any = None
        if len(parts) >= 3:
            parsed = _parse_local_datetime(parts[1], parts[2])
            timestamp = parsed.isoformat() if parsed else f"{parts[1]} {parts[2]}"
        elif len(parts) == 2:
            timestamp = parts[1]

        records.append(
            {
                "id": f"line-{line_number}",
                "employee_id": employee_id,
                "timestamp": timestamp,
                "source": source,
            }
        )
    return records
