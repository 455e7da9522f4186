# backend/minestock/routes/audit.py
"""
Audit trail and security violation queries. Read-only; records are append-only.
"""
from flask import Blueprint, request

from ..decorators import domain_errors
from ..errors import ValidationError
from ..services import audit_service, violation_service


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")


@audit_bp.get("")
@domain_errors
def list_audit_route():
    """
    Query parameters: entity, operation, status, actor, since (ISO-8601), limit (max 500)
    """
    try:
        records = audit_service.list_audit_records(
            entity=request.args.get("entity"),
            operation=request.args.get("operation"),
            status=request.args.get("status"),
            actor=request.args.get("actor"),
            since=request.args.get("since"),
            limit=request.args.get("limit", 100, type=int),
        )
    except ValueError:
        raise ValidationError("since must be an ISO-8601 datetime")
    return {"items": [r.to_dict() for r in records], "count": len(records)}


@audit_bp.get("/violations")
@domain_errors
def list_violations_route():
    violations = violation_service.list_violations(
        restriction_kind=request.args.get("restriction"),
        limit=request.args.get("limit", 100, type=int),
    )
    return {"items": [v.to_dict() for v in violations], "count": len(violations)}
