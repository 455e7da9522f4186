# backend/minestock/routes/reports.py
"""
Read-only report endpoints.

Reports compose analytics and audit queries; none of them write.
"""
from flask import Blueprint, request

from ..decorators import domain_errors
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/low-stock")
@domain_errors
def low_stock_route():
    threshold_pct = request.args.get("threshold_pct", type=int)
    return reporting_service.low_stock_report(threshold_pct=threshold_pct)


@reports_bp.get("/stock-check")
@domain_errors
def stock_check_route():
    return reporting_service.stock_level_check()


@reports_bp.get("/monthly")
@domain_errors
def monthly_route():
    return reporting_service.monthly_consumption_report(
        month=request.args.get("month", type=int),
        year=request.args.get("year", type=int),
    )


@reports_bp.get("/audit")
@domain_errors
def audit_summary_route():
    days = request.args.get("days", 30, type=int)
    return reporting_service.audit_report(days=days)


@reports_bp.get("/usage-window")
@domain_errors
def usage_window_route():
    return reporting_service.usage_window_analytics(
        request.args.get("resource_id", type=int),
        days=request.args.get("days", type=int),
    )
