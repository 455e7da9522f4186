# backend/minestock/routes/inventory.py
"""
Resource, usage and supplier routes.

Every route runs with an ExecutionContext built from request headers
(see decorators.with_execution_context). Resource writes and usage are
calendar-gated: on a weekday or holiday they answer 403 with a
*_RESTRICTED code.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
"""
from flask import Blueprint, g, request

from ..decorators import domain_errors, with_execution_context
from ..models import Supplier, UsageEvent
from ..services import analytics_service, inventory_service, reorder_service, supplier_service
from ..validation import SUPPLIER_POLICY, USAGE_POLICY, validate_payload


resources_bp = Blueprint("resources", __name__, url_prefix="/api/resources")
suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@resources_bp.get("")
@domain_errors
def list_resources_route():
    category = request.args.get("category")
    below_threshold = request.args.get("below_threshold", "false").lower() == "true"
    resources = inventory_service.list_resources(category=category, below_threshold=below_threshold)
    return {"items": [r.to_dict() for r in resources], "count": len(resources)}


@resources_bp.get("/<int:resource_id>")
@domain_errors
def get_resource_route(resource_id: int):
    return {"resource": inventory_service.get_resource(resource_id).to_dict()}


@resources_bp.post("")
@with_execution_context
@domain_errors
def create_resource_route():
    payload = request.get_json(silent=True) or {}
    resource = inventory_service.create_resource(g.exec_context, payload)
    return {"resource": resource.to_dict()}, 201


@resources_bp.patch("/<int:resource_id>")
@with_execution_context
@domain_errors
def update_resource_route(resource_id: int):
    payload = request.get_json(silent=True) or {}
    resource = inventory_service.update_resource(g.exec_context, resource_id, payload)
    return {"resource": resource.to_dict()}


@resources_bp.delete("/<int:resource_id>")
@with_execution_context
@domain_errors
def delete_resource_route(resource_id: int):
    inventory_service.delete_resource(g.exec_context, resource_id)
    return "", 204


@resources_bp.post("/<int:resource_id>/usage")
@with_execution_context
@domain_errors
def record_usage_route(resource_id: int):
    """
    Record consumption.

    Body: {quantity, used_at?, department?, operator_id?, equipment_used?, notes?}
    Returns the usage event and the resource after the deduction.
    """
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=UsageEvent, payload=payload, policy=USAGE_POLICY, partial=False)

    event = inventory_service.record_usage(
        g.exec_context,
        resource_id,
        patch["quantity"],
        department=patch.get("department"),
        operator_id=patch.get("operator_id"),
        equipment_used=patch.get("equipment_used"),
        notes=patch.get("notes"),
        used_at=patch.get("used_at"),
    )
    resource = inventory_service.get_resource(resource_id)
    return {"usage": event.to_dict(), "resource": resource.to_dict()}, 201


@resources_bp.get("/<int:resource_id>/stock-check")
@domain_errors
def stock_check_route(resource_id: int):
    quantity = request.args.get("quantity")
    if quantity is None:
        return {"error": "quantity is required"}, 400
    check = inventory_service.check_stock_availability(resource_id, quantity)
    return {"resource_id": resource_id, **check.to_dict()}


@resources_bp.get("/<int:resource_id>/analytics")
@domain_errors
def resource_analytics_route(resource_id: int):
    window_days = request.args.get("window_days", type=int)
    resource = inventory_service.get_resource(resource_id)
    average = analytics_service.average_daily_usage(resource_id, window_days)
    trend = analytics_service.consumption_trend(resource_id, window_days)
    return {
        "resource_id": resource.id,
        "average_daily_usage": float(average),
        "days_until_stockout": analytics_service.stockout_days(resource_id),
        "consumption_trend": trend.to_dict(),
        "optimal_reorder_quantity": reorder_service.optimal_quantity(resource_id),
    }


@resources_bp.post("/<int:resource_id>/reorders")
@with_execution_context
@domain_errors
def create_reorder_route(resource_id: int):
    payload = request.get_json(silent=True) or {}
    reorder = reorder_service.create_auto_reorder(
        g.exec_context,
        resource_id,
        approved_by=payload.get("approved_by"),
    )
    return {"reorder": reorder.to_dict()}, 201


@suppliers_bp.get("")
@domain_errors
def list_suppliers_route():
    suppliers = supplier_service.list_suppliers(search=request.args.get("search"))
    return {"items": [s.to_dict() for s in suppliers], "count": len(suppliers)}


@suppliers_bp.get("/<int:supplier_id>")
@domain_errors
def get_supplier_route(supplier_id: int):
    return {"supplier": supplier_service.get_supplier(supplier_id).to_dict()}


@suppliers_bp.post("")
@domain_errors
def create_supplier_route():
    patch = validate_payload(
        model=Supplier, payload=request.get_json(silent=True), policy=SUPPLIER_POLICY, partial=False
    )
    supplier = supplier_service.create_supplier(**patch)
    return {"supplier": supplier.to_dict()}, 201
