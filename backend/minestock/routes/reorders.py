# backend/minestock/routes/reorders.py
"""
Reorder lifecycle and delivery routes.

- Status changes: PENDING -> APPROVED -> ORDERED -> DELIVERED, or CANCELLED.
- DELIVERED adds stock, so it is calendar-gated like any resource update.
- Bulk deliveries accept either {"items": [{"resource_id", "quantity"}, ...]}
  or parallel lists {"resource_ids": [...], "quantities": [...]}.
"""
from flask import Blueprint, g, request

from ..decorators import domain_errors, with_execution_context
from ..errors import ValidationError
from ..services import reorder_service
from minestock.time_utils import parse_iso_datetime


reorders_bp = Blueprint("reorders", __name__, url_prefix="/api/reorders")
deliveries_bp = Blueprint("deliveries", __name__, url_prefix="/api/deliveries")


@reorders_bp.get("")
@domain_errors
def list_reorders_route():
    resource_id = request.args.get("resource_id", type=int)
    status = request.args.get("status")
    statuses = [s for s in status.split(",") if s.strip()] if status else None
    reorders = reorder_service.list_reorders(resource_id=resource_id, statuses=statuses)
    return {"items": [r.to_dict() for r in reorders], "count": len(reorders)}


@reorders_bp.get("/<int:order_id>")
@domain_errors
def get_reorder_route(order_id: int):
    return {"reorder": reorder_service.get_reorder(order_id).to_dict()}


@reorders_bp.post("/<int:order_id>/status")
@with_execution_context
@domain_errors
def transition_reorder_route(order_id: int):
    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    if not status:
        return {"error": "status is required"}, 400
    reorder = reorder_service.transition_status(
        g.exec_context,
        order_id,
        status,
        updated_by=payload.get("updated_by"),
    )
    return {"reorder": reorder.to_dict()}


@reorders_bp.post("/check-all")
@with_execution_context
@domain_errors
def reorder_all_route():
    return reorder_service.reorder_all_low_stock(g.exec_context)


def _delivery_items(payload: dict) -> list[tuple]:
    if "items" in payload:
        items = payload.get("items")
        if not isinstance(items, list):
            raise ValidationError("items must be a list")
        pairs = []
        for item in items:
            if not isinstance(item, dict):
                raise ValidationError("each item must be an object with resource_id and quantity")
            pairs.append((item.get("resource_id"), item.get("quantity")))
        return pairs

    resource_ids = payload.get("resource_ids")
    quantities = payload.get("quantities")
    if not isinstance(resource_ids, list) or not isinstance(quantities, list):
        raise ValidationError("Provide items, or resource_ids and quantities lists")
    return reorder_service.pair_delivery_lists(resource_ids, quantities)


@deliveries_bp.post("/bulk")
@with_execution_context
@domain_errors
def bulk_delivery_route():
    """
    Process a delivery covering many resources.

    Returns 200 with {succeeded, failed, errors} even when some items fail.
    """
    payload = request.get_json(silent=True) or {}
    items = _delivery_items(payload)

    delivery_date = None
    if payload.get("delivery_date"):
        try:
            delivery_date = parse_iso_datetime(payload["delivery_date"])
        except ValueError:
            raise ValidationError("delivery_date must be an ISO-8601 datetime")

    result = reorder_service.process_bulk_delivery(g.exec_context, items, delivery_date=delivery_date)
    return result.to_dict()
