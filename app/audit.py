from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from app.models import AuditActorType, AuditLog

logger = logging.getLogger("app.audit")

RECONCILE_ACTION = "WORK_DAYS_RECONCILED"


def record_reconcile_run(
    db: Session,
    *,
    actor_type: AuditActorType,
    actor_id: str,
    start_date: date,
    end_date: date,
    employee_id: str | None,
    counts: dict[str, int],
    success: bool = True,
    ip: str | None = None,
    user_agent: str | None = None,
    request_id: str | None = None,
) -> bool:
    """Persist one audit row per reconciliation run; never raises on write failure."""
    details: dict[str, Any] = {
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "employee_id": employee_id,
        **counts,
    }
    entry = AuditLog(
        ts_utc=datetime.now(timezone.utc),
        actor_type=actor_type,
        actor_id=actor_id,
        action=RECONCILE_ACTION,
        entity_type="work_day",
        entity_id=employee_id,
        ip=ip,
        user_agent=user_agent,
        success=success,
        details=details,
    )
    db.add(entry)
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "audit_log_write_failed",
            extra={"request_id": request_id, "action": RECONCILE_ACTION, "actor_id": actor_id},
        )
        return False

    logger.info(
        "audit_event",
        extra={
            "request_id": request_id,
            "action": RECONCILE_ACTION,
            "actor_type": actor_type.value,
            "actor_id": actor_id,
            "success": success,
            "details": details,
        },
    )
    return True
