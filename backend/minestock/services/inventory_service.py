# Overview: Service-layer operations for resources and usage; encapsulates business logic and database work.

"""
Inventory Service

Resource writes (create/update/delete) and stock-consuming usage all pass
through mutation_gateway, so they are calendar-gated and audited there.

record_usage check order:
1. resource exists            -> NotFoundError
2. quantity > 0               -> ValidationError
3. quantity <= stock (locked) -> InsufficientStockError
4. calendar gate              -> RestrictionViolation

A successful usage writes one UsageEvent and one USAGE_EVENTS audit record
whose new_values carry stock_before/stock_after.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..context import ExecutionContext
from ..errors import InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Resource, Reorder, Supplier, UsageEvent
from ..validation import (
    RESOURCE_POLICY,
    RESOURCE_UPDATE_POLICY,
    coerce_decimal,
    enforce_rules_resource,
    validate_payload,
)
from . import mutation_gateway
from .audit_service import ENTITY_USAGE_EVENTS, model_state
from .concurrency import lock_for_update, run_with_retry
from .unit_of_work import UnitOfWork

STOCK_INSUFFICIENT = "INSUFFICIENT_STOCK"
STOCK_WARNING = "WARNING"
STOCK_SUFFICIENT = "SUFFICIENT_STOCK"

USAGE_AUDIT_FIELDS = ("resource_id", "quantity", "used_at", "department", "operator_id", "equipment_used", "notes")


@dataclass
class StockCheck:
    status: str
    message: str
    available: Decimal
    requested: Decimal
    threshold: Decimal

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "message": self.message,
            "available": float(self.available),
            "requested": float(self.requested),
            "threshold": float(self.threshold),
        }


def _require_supplier(supplier_id: int | None) -> None:
    if supplier_id is None:
        return
    if db.session.get(Supplier, supplier_id) is None:
        raise ValidationError(f"Supplier {supplier_id} not found")


def _ensure_unique_name(name: str, *, exclude_id: int | None = None) -> None:
    query = db.session.query(Resource.id).filter(func.lower(Resource.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Resource.id != exclude_id)
    if query.first() is not None:
        raise ValidationError(f"Resource '{name}' already exists")


def get_resource(resource_id: int) -> Resource:
    resource = db.session.get(Resource, resource_id)
    if resource is None:
        raise NotFoundError(f"Resource {resource_id} not found")
    return resource


def list_resources(*, category: str | None = None, below_threshold: bool = False) -> list[Resource]:
    query = db.session.query(Resource)
    if category:
        query = query.filter(Resource.category == category)
    if below_threshold:
        query = query.filter(Resource.stock_level < Resource.threshold)
    return query.order_by(Resource.name.asc()).all()


def create_resource(context: ExecutionContext, payload: dict) -> Resource:
    """
    Provision a new resource (gated INSERT).

    Raises:
        ValidationError: bad payload, duplicate name, unknown supplier
        RestrictionViolation: restricted day
    """
    patch = validate_payload(model=Resource, payload=payload, policy=RESOURCE_POLICY, partial=False)
    enforce_rules_resource(patch)
    if patch.get("stock_level") is None:
        patch["stock_level"] = Decimal("0")
    _ensure_unique_name(patch["name"])
    _require_supplier(patch.get("supplier_id"))

    def _op():
        with UnitOfWork(context) as uow:
            return mutation_gateway.insert_resource(uow, **patch)

    return run_with_retry(_op)


def update_resource(context: ExecutionContext, resource_id: int, changes: dict) -> Resource:
    """
    Update descriptive fields and threshold (gated UPDATE).

    stock_level is not writable here; it only moves through usage and deliveries.
    Lowering stock below a raised threshold can trigger an automatic reorder.
    """
    patch = validate_payload(model=Resource, payload=changes, policy=RESOURCE_UPDATE_POLICY, partial=True)
    enforce_rules_resource(patch)

    def _op():
        with UnitOfWork(context) as uow:
            resource = lock_for_update(db.session.query(Resource).filter(Resource.id == resource_id)).first()
            if resource is None:
                raise NotFoundError(f"Resource {resource_id} not found")
            if "name" in patch:
                _ensure_unique_name(patch["name"], exclude_id=resource.id)
            if "supplier_id" in patch:
                _require_supplier(patch["supplier_id"])
            return mutation_gateway.update_resource(uow, resource, patch)

    return run_with_retry(_op)


def delete_resource(context: ExecutionContext, resource_id: int) -> None:
    """
    Physically delete a resource with no history (gated DELETE).

    Raises:
        NotFoundError: unknown resource
        InvalidStateError: resource has usage or reorder history
        RestrictionViolation: restricted day
    """
    def _op():
        with UnitOfWork(context) as uow:
            resource = lock_for_update(db.session.query(Resource).filter(Resource.id == resource_id)).first()
            if resource is None:
                raise NotFoundError(f"Resource {resource_id} not found")

            has_usage = db.session.query(UsageEvent.id).filter(UsageEvent.resource_id == resource_id).first()
            has_reorders = db.session.query(Reorder.id).filter(Reorder.resource_id == resource_id).first()
            if has_usage is not None or has_reorders is not None:
                raise InvalidStateError(
                    f"Resource {resource_id} has usage or reorder history and cannot be deleted",
                    code="RESOURCE_HAS_HISTORY",
                )
            mutation_gateway.delete_resource(uow, resource)

    run_with_retry(_op)


def record_usage(
    context: ExecutionContext,
    resource_id: int,
    quantity,
    *,
    department: str | None = None,
    operator_id: str | None = None,
    equipment_used: str | None = None,
    notes: str | None = None,
    used_at: datetime | None = None,
) -> UsageEvent:
    """
    Consume stock and append a usage event.

    The resource row is locked before the stock check so two callers cannot
    both see "sufficient stock".
    """
    def _op():
        with UnitOfWork(context) as uow:
            resource = lock_for_update(db.session.query(Resource).filter(Resource.id == resource_id)).first()
            if resource is None:
                raise NotFoundError(f"Resource {resource_id} not found")

            amount = coerce_decimal("quantity", quantity)
            if amount <= 0:
                raise ValidationError("quantity must be > 0")

            available = Decimal(str(resource.stock_level))
            if amount > available:
                raise InsufficientStockError(
                    f"Insufficient stock: only {available} available for {resource.name}",
                    available=available,
                    requested=amount,
                )

            stock_before, stock_after = mutation_gateway.apply_stock_delta(
                uow,
                resource,
                -amount,
                audit=False,
                message=f"Usage of {amount} for resource {resource.id}",
            )

            event = UsageEvent(
                resource_id=resource.id,
                quantity=amount,
                used_at=used_at or uow.now,
                department=department,
                operator_id=operator_id,
                equipment_used=equipment_used,
                notes=notes,
            )
            db.session.add(event)
            db.session.flush()

            after = model_state(event, USAGE_AUDIT_FIELDS)
            after["stock_before"] = float(stock_before)
            after["stock_after"] = float(stock_after)
            uow.stage_audit(
                entity=ENTITY_USAGE_EVENTS,
                operation="INSERT",
                record_id=event.id,
                after=after,
                message=f"Usage of {amount} recorded for resource ID {resource.id}",
            )

            if stock_after < Decimal(str(resource.threshold)):
                current_app.logger.warning(
                    "Resource %s stock %s is below threshold %s", resource.id, stock_after, resource.threshold
                )
            return event

    return run_with_retry(_op)


def check_stock_availability(resource_id: int, quantity_needed) -> StockCheck:
    """
    Classify a prospective usage without changing anything.

    INSUFFICIENT_STOCK: more than available
    WARNING: available, but stock would fall below threshold
    SUFFICIENT_STOCK: otherwise
    """
    resource = get_resource(resource_id)
    needed = coerce_decimal("quantity_needed", quantity_needed)
    available = Decimal(str(resource.stock_level))
    threshold = Decimal(str(resource.threshold))

    if needed > available:
        status = STOCK_INSUFFICIENT
        message = f"Only {available} available for {resource.name}"
    elif available - needed < threshold:
        status = STOCK_WARNING
        message = "Stock will drop below threshold after this usage"
    else:
        status = STOCK_SUFFICIENT
        message = f"{available} available"
    return StockCheck(status, message, available, needed, threshold)
