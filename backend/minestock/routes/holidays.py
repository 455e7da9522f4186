# backend/minestock/routes/holidays.py
"""
Holiday calendar routes and the current gate decision.
"""
from flask import Blueprint, g, request

from ..decorators import domain_errors, with_execution_context
from ..errors import ValidationError
from ..models import Holiday
from ..services import calendar_service
from ..validation import HOLIDAY_POLICY, validate_payload
from minestock.time_utils import parse_iso_date


holidays_bp = Blueprint("holidays", __name__, url_prefix="/api/holidays")


@holidays_bp.get("")
@domain_errors
def list_holidays_route():
    holidays = calendar_service.list_holidays()
    return {"items": [h.to_dict() for h in holidays], "count": len(holidays)}


@holidays_bp.post("")
@with_execution_context
@domain_errors
def add_holiday_route():
    patch = validate_payload(
        model=Holiday, payload=request.get_json(silent=True), policy=HOLIDAY_POLICY, partial=False
    )
    try:
        holiday_date = parse_iso_date(patch["holiday_date"])
    except (AttributeError, TypeError, ValueError):
        raise ValidationError("holiday_date must be YYYY-MM-DD")
    if holiday_date is None:
        raise ValidationError("holiday_date is required")

    holiday = calendar_service.add_holiday(
        holiday_date=holiday_date,
        name=patch["name"],
        is_recurring=patch.get("is_recurring", False),
        recurrence_type=patch.get("recurrence_type"),
        created_by=g.exec_context.actor,
    )
    return {"holiday": holiday.to_dict()}, 201


@holidays_bp.get("/status")
@with_execution_context
@domain_errors
def calendar_status_route():
    return calendar_service.calendar_status(g.exec_context.now())
