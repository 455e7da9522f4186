# backend/minestock/routes/system.py
"""
System health endpoint.

Reports database connectivity and the calendar gate's current decision,
so operators can see at a glance whether resource writes are open.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Resource, Reorder, Holiday
from ..services.calendar_service import calendar_status
from minestock.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def check_database_health() -> dict:
    """Row counts for the core tables; any failure marks the database unhealthy."""
    started = time.perf_counter()
    try:
        details = {
            "resources": db.session.query(Resource).count(),
            "reorders": db.session.query(Reorder).count(),
            "holidays": db.session.query(Holiday).count(),
        }
    except Exception:
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(started), "error": "Database error"}
    return {"status": "healthy", "latency_ms": _elapsed_ms(started), "details": details}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable (body includes the calendar gate status)
    - 503: database unhealthy
    """
    started = time.perf_counter()
    now = utcnow()

    database = check_database_health()
    healthy = database["status"] == "healthy"

    body = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(now),
        "checks": {"database": database},
        "calendar": calendar_status(now) if healthy else None,
    }
    body["total_latency_ms"] = _elapsed_ms(started)
    return body, 200 if healthy else 503
