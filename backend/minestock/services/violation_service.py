# Overview: Service-layer operations for denied-attempt forensics.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..context import ExecutionContext
from ..extensions import db
from ..models import ViolationRecord

RESTRICTION_HOLIDAY = "HOLIDAY"
RESTRICTION_WEEKDAY = "WEEKDAY"
RESTRICTION_AUTHORIZATION = "AUTHORIZATION"
RESTRICTION_KINDS = {RESTRICTION_HOLIDAY, RESTRICTION_WEEKDAY, RESTRICTION_AUTHORIZATION}


def record_violation(
    context: ExecutionContext,
    *,
    operation: str,
    entity: str,
    restriction_kind: str,
    detail: str | None = None,
    occurred_at: datetime | None = None,
) -> None:
    """
    Log a denied attempt for security monitoring.

    Fail-safe: a monitoring failure must not compound an already-denied
    operation, so any error here is logged and swallowed.
    """
    try:
        with db.session.begin_nested():
            db.session.add(
                ViolationRecord(
                    attempted_operation=operation,
                    attempted_entity=entity,
                    restriction_type=restriction_kind,
                    details=detail,
                    actor=context.actor,
                    ip_address=context.ip_address,
                    session_info=context.session_info(),
                    occurred_at=occurred_at or context.now(),
                )
            )
    except Exception:  # noqa: BLE001
        current_app.logger.warning(
            "Violation write failed (operation=%s entity=%s restriction=%s)",
            operation,
            entity,
            restriction_kind,
            exc_info=True,
        )


def list_violations(*, restriction_kind: str | None = None, limit: int = 100) -> list[ViolationRecord]:
    query = db.session.query(ViolationRecord)
    if restriction_kind:
        query = query.filter(ViolationRecord.restriction_type == restriction_kind.upper())
    limit = max(1, min(int(limit or 100), 500))
    return query.order_by(ViolationRecord.id.desc()).limit(limit).all()
