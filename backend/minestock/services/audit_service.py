# Overview: Service-layer operations for the audit trail; best-effort, append-only writes.

"""
Audit Trail Invariants (authoritative)

- Append-only: no updates/deletes of existing records.
- record_audit NEVER raises. A failed write is logged, rolled back to its own
  savepoint and reported through the AUDIT_FAILED sentinel, so audit logging
  can never block or corrupt the business operation it describes.
- Entries describing an applied mutation share that mutation's transaction;
  they become durable when the unit of work commits.
- occurred_at is the unit of work's clock; actor/session/origin come from
  the ExecutionContext.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable

from flask import current_app

from ..context import ExecutionContext
from ..extensions import db
from ..models import AuditRecord
from minestock.time_utils import parse_iso_datetime

AUDIT_SUCCESS = "SUCCESS"
AUDIT_DENIED = "DENIED"
AUDIT_ERROR = "ERROR"
AUDIT_STATUSES = {AUDIT_SUCCESS, AUDIT_DENIED, AUDIT_ERROR}

AUDIT_FAILED = -1

# Entity names as recorded in audit_log.entity
ENTITY_RESOURCES = "RESOURCES"
ENTITY_USAGE_EVENTS = "USAGE_EVENTS"
ENTITY_REORDERS = "REORDERS"

RESOURCE_AUDIT_FIELDS = (
    "name",
    "category",
    "unit_of_measure",
    "stock_level",
    "threshold",
    "supplier_id",
    "unit_price_cents",
)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def model_state(obj, fields: Iterable[str] = RESOURCE_AUDIT_FIELDS) -> dict:
    """Snapshot selected attributes of a model instance as a JSON-ready dict."""
    return {name: _jsonable(getattr(obj, name)) for name in fields}


def changed_fields(before: dict, after: dict) -> tuple[dict, dict]:
    """Reduce two snapshots to the keys whose values differ."""
    keys = [k for k in after if before.get(k) != after.get(k)]
    return {k: before.get(k) for k in keys}, {k: after.get(k) for k in keys}


def record_audit(
    context: ExecutionContext,
    *,
    entity: str,
    operation: str,
    record_id: Any = None,
    before: dict | None = None,
    after: dict | None = None,
    outcome: str = AUDIT_SUCCESS,
    message: str | None = None,
    occurred_at: datetime | None = None,
) -> int:
    """
    Append one audit record. Returns its id, or AUDIT_FAILED on any failure.

    The insert runs inside a SAVEPOINT: if it fails only the audit row is
    rolled back and the caller's transaction continues untouched.
    """
    try:
        with db.session.begin_nested():
            record = AuditRecord(
                entity=entity,
                operation=operation,
                record_id=None if record_id is None else str(record_id),
                old_values=_jsonable(before) if before is not None else None,
                new_values=_jsonable(after) if after is not None else None,
                status=outcome,
                message=message[:4000] if message else None,
                actor=context.actor,
                occurred_at=occurred_at or context.now(),
                ip_address=context.ip_address,
                session_id=context.session_id,
                machine_name=context.machine_name,
            )
            db.session.add(record)
        return record.id
    except Exception:  # noqa: BLE001
        current_app.logger.warning(
            "Audit write failed (entity=%s operation=%s record_id=%s outcome=%s)",
            entity,
            operation,
            record_id,
            outcome,
            exc_info=True,
        )
        return AUDIT_FAILED


def list_audit_records(
    *,
    entity: str | None = None,
    operation: str | None = None,
    status: str | None = None,
    actor: str | None = None,
    since: datetime | str | None = None,
    limit: int = 100,
) -> list[AuditRecord]:
    """Newest-first audit records with optional filters."""
    query = db.session.query(AuditRecord)
    if entity:
        query = query.filter(AuditRecord.entity == entity.upper())
    if operation:
        query = query.filter(AuditRecord.operation == operation.upper())
    if status:
        query = query.filter(AuditRecord.status == status.upper())
    if actor:
        query = query.filter(AuditRecord.actor == actor)
    if isinstance(since, str):
        since = parse_iso_datetime(since)
    if since is not None:
        query = query.filter(AuditRecord.occurred_at >= since)

    limit = max(1, min(int(limit or 100), 500))
    return query.order_by(AuditRecord.id.desc()).limit(limit).all()
