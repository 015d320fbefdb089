from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from app.services.reconcile_types import WorkDayStatus


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "issues": list(self.issues),
            "warnings": list(self.warnings),
        }


# Columns the reconciliation reads or writes; extra columns are fine.
REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "attendance_logs": {"id", "employee_id", "timestamp", "source"},
    "master_times": {"id", "shift_name", "start_time", "end_time", "is_active"},
    "employee_shifts": {"employee_id", "day_of_week", "start_time", "end_time", "is_active"},
    "work_days": {"employee_id", "work_date", "status", "flags", "anomalous_scans"},
    "alembic_version": {"version_num"},
}

REQUIRED_ENUM_VALUES: dict[str, set[str]] = {
    "work_day_status": {status.value for status in WorkDayStatus},
}


def _check_tables(inspector: Any, issues: list[str]) -> None:
    for table_name, required_columns in REQUIRED_TABLE_COLUMNS.items():
        try:
            present = {str(item.get("name")) for item in inspector.get_columns(table_name)}
        except Exception as exc:
            issues.append(f"TABLE_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue
        missing = sorted(required_columns - present)
        if missing:
            issues.append(f"MISSING_COLUMNS:{table_name}:{','.join(missing)}")


def _check_enums(inspector: Any, issues: list[str], warnings: list[str]) -> None:
    try:
        enums = inspector.get_enums() or []
    except Exception as exc:
        warnings.append(f"ENUM_INSPECTION_FAILED:{exc.__class__.__name__}")
        return

    labels_by_name = {
        str(item.get("name")): {str(label) for label in item.get("labels") or []}
        for item in enums
        if item.get("name")
    }
    for enum_name, required_values in REQUIRED_ENUM_VALUES.items():
        labels = labels_by_name.get(enum_name)
        if labels is None:
            warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
            continue
        missing = sorted(required_values - labels)
        if missing:
            issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{','.join(missing)}")


def _check_alembic_version(engine: Engine, issues: list[str]) -> None:
    try:
        with engine.connect() as connection:
            row = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
    except Exception as exc:
        issues.append(f"ALEMBIC_VERSION_CHECK_FAILED:{exc.__class__.__name__}")
        return
    if not (str(row).strip() if row is not None else ""):
        issues.append("ALEMBIC_VERSION_EMPTY")


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    """Check that the database matches what the reconciliation service expects."""
    issues: list[str] = []
    warnings: list[str] = []
    checked_at_utc = datetime.now(timezone.utc)

    inspector = inspect(engine)
    _check_tables(inspector, issues)
    _check_enums(inspector, issues, warnings)
    _check_alembic_version(engine, issues)

    return SchemaGuardResult(
        ok=not issues,
        checked_at_utc=checked_at_utc,
        issues=issues,
        warnings=warnings,
    )
