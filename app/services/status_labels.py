from __future__ import annotations

from app.services.reconcile_types import WorkDayStatus
from app.services.summary import ROSTER_ABSENT, ROSTER_HOLIDAY

DEFAULT_LOCALE = "th"

STATUS_LABELS: dict[str, dict[str, str]] = {
    "th": {
        WorkDayStatus.COMPLETE.value: "ปกติ",
        WorkDayStatus.MISSING_IN.value: "ขาดลงชื่อเข้า",
        WorkDayStatus.MISSING_OUT.value: "ขาดลงชื่อออก",
        WorkDayStatus.LATE.value: "มาสาย",
        WorkDayStatus.OVERTIME.value: "OT",
        WorkDayStatus.ANOMALOUS.value: "ระบุไม่ได้ (เวลาใกล้เคียง)",
        ROSTER_ABSENT: "ขาดงาน",
        ROSTER_HOLIDAY: "วันหยุด",
    },
    "en": {
        WorkDayStatus.COMPLETE.value: "Complete",
        WorkDayStatus.MISSING_IN.value: "Missing check-in",
        WorkDayStatus.MISSING_OUT.value: "Missing check-out",
        WorkDayStatus.LATE.value: "Late",
        WorkDayStatus.OVERTIME.value: "Overtime",
        WorkDayStatus.ANOMALOUS.value: "Anomalous",
        ROSTER_ABSENT: "Absent",
        ROSTER_HOLIDAY: "Holiday",
    },
}


def normalize_locale(locale: str | None) -> str:
    value = (locale or "").strip().lower()
    if value in STATUS_LABELS:
        return value
    # "th-TH" style tags fall back to their language part.
    language = value.split("-", 1)[0].split("_", 1)[0]
    if language in STATUS_LABELS:
        return language
    return DEFAULT_LOCALE


def status_label(status: WorkDayStatus | str, locale: str | None = None) -> str:
    code = status.value if isinstance(status, WorkDayStatus) else str(status)
    labels = STATUS_LABELS[normalize_locale(locale)]
    return labels.get(code, code)
