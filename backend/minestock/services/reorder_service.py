# Overview: Reorder engine; sizing, duplicate guard, lifecycle transitions, deliveries.

"""
Reorder Lifecycle Invariants (authoritative)

STATUS FLOW:
    PENDING -> APPROVED -> ORDERED -> DELIVERED
    PENDING / APPROVED / ORDERED -> CANCELLED

- DELIVERED and CANCELLED are terminal: any further transition is InvalidStateError.
- Moves go forward only. Skipping ahead (PENDING -> ORDERED) is allowed,
  moving back (ORDERED -> APPROVED) is not.
- At most one active reorder (PENDING/APPROVED/ORDERED) per resource. The
  check runs under a row lock on the resource and its active reorders.
- APPROVED stamps approval_date/approved_by only when they are unset.
- DELIVERED increments stock by the reorder quantity only when
  actual_delivery was unset, so stock is added exactly once.
- Stock increments go through mutation_gateway and are therefore gated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_CEILING, ROUND_HALF_UP
from typing import Iterable

from flask import current_app

from ..context import ExecutionContext
from ..errors import InvalidStateError, MineStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Resource, Reorder
from ..validation import coerce_decimal
from minestock.time_utils import utcnow
from . import mutation_gateway
from .analytics_service import average_daily_usage
from .audit_service import AUDIT_ERROR, ENTITY_REORDERS, ENTITY_RESOURCES, model_state, record_audit
from .concurrency import lock_for_update, run_with_retry
from .unit_of_work import UnitOfWork

STATUS_PENDING = "PENDING"
STATUS_APPROVED = "APPROVED"
STATUS_ORDERED = "ORDERED"
STATUS_DELIVERED = "DELIVERED"
STATUS_CANCELLED = "CANCELLED"

ACTIVE_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_ORDERED)
TERMINAL_STATUSES = (STATUS_DELIVERED, STATUS_CANCELLED)
# Forward order for the non-cancel path
STATUS_RANK = {STATUS_PENDING: 0, STATUS_APPROVED: 1, STATUS_ORDERED: 2, STATUS_DELIVERED: 3}
ALL_STATUSES = set(STATUS_RANK) | {STATUS_CANCELLED}

REORDER_AUDIT_FIELDS = (
    "resource_id",
    "quantity",
    "status",
    "order_date",
    "expected_delivery",
    "actual_delivery",
    "approval_date",
    "approved_by",
)


@dataclass
class BulkDeliveryResult:
    succeeded: int = 0
    failed: int = 0
    errors: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"succeeded": self.succeeded, "failed": self.failed, "errors": self.errors}


def _decimal(value) -> Decimal:
    return Decimal(str(value))


def _normalize_status(value: str) -> str:
    status = (value or "").strip().upper()
    if status not in ALL_STATUSES:
        raise ValidationError(f"Unknown reorder status: {value!r}")
    return status


def _load_resource_locked(resource_id: int) -> Resource:
    resource = lock_for_update(db.session.query(Resource).filter(Resource.id == resource_id)).first()
    if resource is None:
        raise NotFoundError(f"Resource {resource_id} not found")
    return resource


def _quantity_for(resource: Resource, now: datetime) -> int:
    config = current_app.config
    average = average_daily_usage(resource.id, now=now)
    coverage = Decimal(config.get("REORDER_COVERAGE_DAYS", 30))
    lead_time = Decimal(config.get("REORDER_LEAD_TIME_DAYS", 7))

    demand = (average * coverage + average * lead_time).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    floor = (_decimal(resource.threshold) * 2).to_integral_value(rounding=ROUND_CEILING)
    return int(max(demand, floor))


def optimal_quantity(resource_id: int, *, now: datetime | None = None) -> int:
    """
    Demand over coverage + lead time, never below 2 x threshold.

    Raises:
        NotFoundError: unknown resource
    """
    resource = db.session.get(Resource, resource_id)
    if resource is None:
        raise NotFoundError(f"Resource {resource_id} not found")
    return _quantity_for(resource, now or utcnow())


def find_active_reorder(resource_id: int, *, lock: bool = False) -> Reorder | None:
    query = db.session.query(Reorder).filter(
        Reorder.resource_id == resource_id,
        Reorder.status.in_(ACTIVE_STATUSES),
    )
    if lock:
        query = lock_for_update(query)
    return query.first()


def create_auto_reorder_in(uow: UnitOfWork, resource: Resource, *, approved_by: str | None = None) -> Reorder:
    """Create a PENDING reorder inside an open unit of work."""
    if _decimal(resource.stock_level) >= _decimal(resource.threshold):
        raise InvalidStateError(
            f"Resource {resource.id} stock ({resource.stock_level}) is not below threshold ({resource.threshold})",
            code="STOCK_ABOVE_THRESHOLD",
        )

    active = find_active_reorder(resource.id, lock=True)
    if active is not None:
        raise InvalidStateError(
            f"Active reorder {active.id} ({active.status}) already exists for resource {resource.id}",
            code="ACTIVE_REORDER_EXISTS",
        )

    try:
        quantity = _quantity_for(resource, uow.now)
    except (ArithmeticError, InvalidOperation, TypeError):
        current_app.logger.warning("Reorder sizing failed for resource %s", resource.id, exc_info=True)
        quantity = None
    if not quantity or quantity <= 0:
        quantity = _decimal(resource.threshold) * 2

    expected_days = int(current_app.config.get("REORDER_EXPECTED_DELIVERY_DAYS", 7))
    reorder = Reorder(
        resource_id=resource.id,
        order_date=uow.now,
        quantity=quantity,
        status=STATUS_PENDING,
        expected_delivery=uow.now + timedelta(days=expected_days),
        approved_by=approved_by,
    )
    db.session.add(reorder)
    db.session.flush()

    uow.stage_audit(
        entity=ENTITY_REORDERS,
        operation="INSERT",
        record_id=reorder.id,
        after=model_state(reorder, REORDER_AUDIT_FIELDS),
        message=f"New reorder for resource ID {resource.id}, quantity: {quantity}",
    )
    return reorder


def create_auto_reorder(context: ExecutionContext, resource_id: int, *, approved_by: str | None = None) -> Reorder:
    """
    Create a reorder for a below-threshold resource.

    Raises:
        NotFoundError: unknown resource
        InvalidStateError: stock not below threshold (STOCK_ABOVE_THRESHOLD)
            or an active reorder exists (ACTIVE_REORDER_EXISTS)
    """
    def _op():
        with UnitOfWork(context) as uow:
            resource = _load_resource_locked(resource_id)
            return create_auto_reorder_in(uow, resource, approved_by=approved_by)

    return run_with_retry(_op)


def transition_status(
    context: ExecutionContext,
    order_id: int,
    new_status: str,
    *,
    updated_by: str | None = None,
) -> Reorder:
    """
    Move a reorder along its lifecycle.

    Raises:
        NotFoundError: unknown reorder
        ValidationError: unknown status
        InvalidStateError: reorder is terminal, or the move goes backwards
        RestrictionViolation: DELIVERED on a restricted day (stock change is gated)
    """
    status = _normalize_status(new_status)

    def _op():
        with UnitOfWork(context) as uow:
            reorder = lock_for_update(db.session.query(Reorder).filter(Reorder.id == order_id)).first()
            if reorder is None:
                raise NotFoundError(f"Reorder {order_id} not found")

            old_status = reorder.status
            if old_status in TERMINAL_STATUSES:
                raise InvalidStateError(
                    f"Reorder {order_id} is already {old_status}",
                    code="REORDER_TERMINAL",
                )
            if status != STATUS_CANCELLED and STATUS_RANK[status] < STATUS_RANK[old_status]:
                raise InvalidStateError(
                    f"Reorder {order_id} cannot move from {old_status} back to {status}",
                    code="INVALID_TRANSITION",
                )

            before = model_state(reorder, REORDER_AUDIT_FIELDS)

            if status == STATUS_DELIVERED and reorder.actual_delivery is None:
                resource = _load_resource_locked(reorder.resource_id)
                mutation_gateway.apply_stock_delta(
                    uow,
                    resource,
                    _decimal(reorder.quantity),
                    message=f"Delivery of reorder {reorder.id}",
                )
                reorder.actual_delivery = uow.now

            if status == STATUS_APPROVED:
                if reorder.approval_date is None:
                    reorder.approval_date = uow.now
                if reorder.approved_by is None:
                    reorder.approved_by = updated_by or context.actor

            reorder.status = status
            db.session.flush()

            uow.stage_audit(
                entity=ENTITY_REORDERS,
                operation="UPDATE",
                record_id=reorder.id,
                before=before,
                after=model_state(reorder, REORDER_AUDIT_FIELDS),
                message=f"Reorder ID {reorder.id} status changed from {old_status} to {status}",
            )
            return reorder

    return run_with_retry(_op)


def pair_delivery_lists(resource_ids: list, quantities: list) -> list[tuple]:
    if len(resource_ids) != len(quantities):
        raise ValidationError(
            f"Resource list count ({len(resource_ids)}) does not match quantity list count ({len(quantities)})"
        )
    return list(zip(resource_ids, quantities))


def _positive_quantity(value) -> Decimal:
    quantity = coerce_decimal("quantity", value)
    if quantity <= 0:
        raise ValidationError(f"Quantity must be positive: {value!r}")
    return quantity


def process_bulk_delivery(
    context: ExecutionContext,
    items: Iterable[tuple],
    *,
    delivery_date: datetime | None = None,
) -> BulkDeliveryResult:
    """
    Add delivered quantities to many resources in one unit of work.

    The calendar gate is checked once for the whole batch and raises if
    closed. After that every item runs in its own savepoint: a bad item is
    logged, audited as ERROR and counted, and the rest carry on.
    """
    items = list(items)
    label = (delivery_date or context.now()).date().isoformat()

    with UnitOfWork(context) as uow:
        mutation_gateway.ensure_permitted(
            uow,
            mutation_gateway.OP_UPDATE,
            detail=f"Bulk delivery of {len(items)} item(s) dated {label}",
        )

        result = BulkDeliveryResult()
        for position, (resource_id, quantity) in enumerate(items, start=1):
            marker = uow.checkpoint()
            try:
                with db.session.begin_nested():
                    amount = _positive_quantity(quantity)
                    resource = _load_resource_locked(resource_id)
                    mutation_gateway.apply_stock_delta(
                        uow,
                        resource,
                        amount,
                        gated=False,
                        message=f"Bulk delivery {label}: +{amount}",
                    )
                result.succeeded += 1
            except Exception as exc:  # noqa: BLE001
                uow.rollback_to(marker)
                result.failed += 1
                detail = exc.message if isinstance(exc, MineStockError) else str(exc)
                result.errors.append({"position": position, "resource_id": resource_id, "error": detail})
                current_app.logger.warning(
                    "Bulk delivery item %s (resource %s) failed: %s", position, resource_id, detail
                )
                record_audit(
                    context,
                    entity=ENTITY_RESOURCES,
                    operation="BULK_DELIVERY",
                    record_id=resource_id,
                    outcome=AUDIT_ERROR,
                    message=f"Error updating resource {resource_id}: {detail}",
                    occurred_at=uow.now,
                )

        current_app.logger.info(
            "Bulk delivery processed: %s succeeded, %s failed", result.succeeded, result.failed
        )
        return result


def reorder_all_low_stock(context: ExecutionContext) -> dict:
    """
    Create reorders for every below-threshold resource, most depleted first.

    Per-resource failures are collected in the result, never raised.
    """
    system_actor = current_app.config.get("SYSTEM_ACTOR", "SYSTEM_AUTO")
    candidates = (
        db.session.query(Resource.id)
        .filter(Resource.stock_level < Resource.threshold)
        .order_by((Resource.stock_level * 1.0 / Resource.threshold).asc(), Resource.id.asc())
        .all()
    )

    created: list[dict] = []
    skipped: list[dict] = []
    for (resource_id,) in candidates:
        try:
            reorder = create_auto_reorder(context, resource_id, approved_by=system_actor)
        except MineStockError as exc:
            skipped.append({"resource_id": resource_id, "code": exc.code, "error": exc.message})
            continue
        created.append(reorder.to_dict())

    return {"created": created, "skipped": skipped}


def get_reorder(order_id: int) -> Reorder:
    reorder = db.session.get(Reorder, order_id)
    if reorder is None:
        raise NotFoundError(f"Reorder {order_id} not found")
    return reorder


def list_reorders(*, resource_id: int | None = None, statuses: Iterable[str] | None = None) -> list[Reorder]:
    query = db.session.query(Reorder)
    if resource_id is not None:
        query = query.filter(Reorder.resource_id == resource_id)
    if statuses:
        query = query.filter(Reorder.status.in_([_normalize_status(s) for s in statuses]))
    return query.order_by(Reorder.order_date.desc(), Reorder.id.desc()).all()
