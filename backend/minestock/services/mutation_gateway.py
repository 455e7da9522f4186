# Overview: Single choke point for every insert/update/delete on resources.

"""
Mutation Gateway

Every Resource write goes through this module. Per mutation:

1. Calendar gate (calendar_service.is_restricted at the unit of work's "now").
2. Restricted:
   - roll back the unit of work (nothing partial survives)
   - write a ViolationRecord and a DENIED audit record, commit them
   - raise RestrictionViolation (one code per operation x restriction kind)
3. Allowed:
   - apply the mutation and flush
   - stage a SUCCESS audit entry with the changed-field diff
     (flushed in one batch when the unit of work commits)
4. Updates that take stock_level from >= threshold to < threshold trigger an
   automatic reorder. Failures there are recorded as ERROR audit entries and
   never undo the triggering update.

Usage events and reorders are audited by their own services without a gate.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import InsufficientStockError, RestrictionViolation
from ..extensions import db
from ..models import Resource, Reorder
from .audit_service import (
    AUDIT_DENIED,
    AUDIT_ERROR,
    ENTITY_RESOURCES,
    changed_fields,
    model_state,
    record_audit,
)
from .calendar_service import is_restricted
from .unit_of_work import UnitOfWork
from .violation_service import record_violation

OP_INSERT = "INSERT"
OP_UPDATE = "UPDATE"
OP_DELETE = "DELETE"
OP_AUTO_REORDER = "AUTO_REORDER"
OP_AUTO_REORDER_ERROR = "AUTO_REORDER_ERROR"


def ensure_permitted(uow: UnitOfWork, operation: str, *, record_id=None, detail: str | None = None) -> None:
    kind = is_restricted(uow.now)
    if kind is None:
        return
    deny(uow, operation, kind, record_id=record_id, detail=detail)


def deny(uow: UnitOfWork, operation: str, kind: str, *, record_id=None, detail: str | None = None) -> None:
    """
    Abort the unit of work and persist the evidence of the attempt.

    The rollback happens first so the violation/audit rows are the only
    thing this transaction commits.
    """
    db.session.rollback()
    uow.discard()

    record_violation(
        uow.context,
        operation=operation,
        entity=ENTITY_RESOURCES,
        restriction_kind=kind,
        detail=detail,
        occurred_at=uow.now,
    )
    record_audit(
        uow.context,
        entity=ENTITY_RESOURCES,
        operation=operation,
        record_id=record_id,
        outcome=AUDIT_DENIED,
        message=f"Operation restricted: {kind}",
        occurred_at=uow.now,
    )
    db.session.commit()

    current_app.logger.info(
        "Denied %s on %s (restriction=%s actor=%s)", operation, ENTITY_RESOURCES, kind, uow.context.actor
    )
    raise RestrictionViolation(operation, kind, entity=ENTITY_RESOURCES)


def insert_resource(uow: UnitOfWork, **fields) -> Resource:
    ensure_permitted(uow, OP_INSERT, detail=f"Create resource {fields.get('name')!r}")

    resource = Resource(**fields)
    resource.last_updated = uow.now
    db.session.add(resource)
    db.session.flush()

    uow.stage_audit(
        entity=ENTITY_RESOURCES,
        operation=OP_INSERT,
        record_id=resource.id,
        after=model_state(resource),
    )
    return resource


def update_resource(uow: UnitOfWork, resource: Resource, changes: dict) -> Resource:
    ensure_permitted(uow, OP_UPDATE, record_id=resource.id, detail=f"Update resource {resource.id}")

    before = model_state(resource)
    old_stock = Decimal(str(resource.stock_level))
    old_threshold = Decimal(str(resource.threshold))

    for key, value in changes.items():
        setattr(resource, key, value)
    resource.last_updated = uow.now
    db.session.flush()

    old_values, new_values = changed_fields(before, model_state(resource))
    if new_values:
        uow.stage_audit(
            entity=ENTITY_RESOURCES,
            operation=OP_UPDATE,
            record_id=resource.id,
            before=old_values,
            after=new_values,
        )

    _trigger_auto_reorder(uow, resource, old_stock, old_threshold)
    return resource


def delete_resource(uow: UnitOfWork, resource: Resource) -> None:
    ensure_permitted(uow, OP_DELETE, record_id=resource.id, detail=f"Delete resource {resource.id}")

    before = model_state(resource)
    resource_id = resource.id
    db.session.delete(resource)
    db.session.flush()

    uow.stage_audit(
        entity=ENTITY_RESOURCES,
        operation=OP_DELETE,
        record_id=resource_id,
        before=before,
    )


def apply_stock_delta(
    uow: UnitOfWork,
    resource: Resource,
    delta: Decimal,
    *,
    gated: bool = True,
    audit: bool = True,
    message: str | None = None,
) -> tuple[Decimal, Decimal]:
    """
    Move stock_level by `delta` (negative for consumption).

    gated=False is only for callers that already passed the gate in this
    unit of work. audit=False lets the caller fold the stock change into its
    own audit entry.

    Returns (stock_before, stock_after).
    """
    if gated:
        ensure_permitted(uow, OP_UPDATE, record_id=resource.id, detail=message)

    old_stock = Decimal(str(resource.stock_level))
    old_threshold = Decimal(str(resource.threshold))
    new_stock = old_stock + Decimal(str(delta))
    if new_stock < 0:
        raise InsufficientStockError(
            f"Insufficient stock for {resource.name}: {old_stock} available",
            available=old_stock,
            requested=-Decimal(str(delta)),
        )

    resource.stock_level = new_stock
    resource.last_updated = uow.now
    db.session.flush()

    if audit:
        uow.stage_audit(
            entity=ENTITY_RESOURCES,
            operation=OP_UPDATE,
            record_id=resource.id,
            before={"stock_level": float(old_stock)},
            after={"stock_level": float(new_stock)},
            message=message,
        )

    _trigger_auto_reorder(uow, resource, old_stock, old_threshold)
    return old_stock, new_stock


def _crossed_below(old_stock: Decimal, old_threshold: Decimal, resource: Resource) -> bool:
    new_stock = Decimal(str(resource.stock_level))
    new_threshold = Decimal(str(resource.threshold))
    return old_stock >= old_threshold and new_stock < new_threshold


def _trigger_auto_reorder(uow: UnitOfWork, resource: Resource, old_stock: Decimal, old_threshold: Decimal) -> Reorder | None:
    """
    Fire-and-forget reorder on a downward threshold crossing.

    Runs in a savepoint: whatever goes wrong is rolled back to the savepoint,
    written as an ERROR audit record and logged. The stock update stands.
    """
    if not _crossed_below(old_stock, old_threshold, resource):
        return None

    from .reorder_service import create_auto_reorder_in, find_active_reorder

    system_actor = current_app.config.get("SYSTEM_ACTOR", "SYSTEM_AUTO")

    if find_active_reorder(resource.id) is not None:
        current_app.logger.info(
            "Resource %s crossed below threshold; active reorder already exists", resource.id
        )
        return None

    marker = uow.checkpoint()
    try:
        with db.session.begin_nested():
            reorder = create_auto_reorder_in(uow, resource)
    except Exception as exc:  # noqa: BLE001
        uow.rollback_to(marker)
        current_app.logger.warning(
            "Auto-reorder failed for resource %s: %s", resource.id, exc, exc_info=True
        )
        record_audit(
            uow.context,
            entity=ENTITY_RESOURCES,
            operation=OP_AUTO_REORDER_ERROR,
            record_id=resource.id,
            outcome=AUDIT_ERROR,
            message=f"Failed to create auto reorder: {exc}",
            occurred_at=uow.now,
        )
        return None

    uow.stage_audit(
        entity=ENTITY_RESOURCES,
        operation=OP_AUTO_REORDER,
        record_id=resource.id,
        before={"old_stock": float(old_stock), "threshold": float(resource.threshold)},
        after={"new_stock": float(resource.stock_level), "reorder_qty": float(reorder.quantity)},
        message=f"Auto reorder {reorder.id} created by {system_actor}",
    )
    current_app.logger.info(
        "Auto reorder %s created for resource %s (quantity=%s)", reorder.id, resource.id, reorder.quantity
    )
    return reorder
