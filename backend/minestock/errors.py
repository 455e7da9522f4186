# Overview: Typed domain errors surfaced to callers of the stock core.

"""
Error taxonomy

Business-rule violations are raised to the caller as one of these types and
are never swallowed. Failures of the audit/violation recorders are handled
at the recorder boundary and never reach this hierarchy.

Each error carries:
- code: stable machine-readable identifier (callers switch on this)
- http_status: status used by the API layer
"""

from __future__ import annotations


class MineStockError(Exception):
    """Base class for all domain errors."""
    code = "MINESTOCK_ERROR"
    http_status = 400

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class NotFoundError(MineStockError):
    """Resource, reorder or supplier id is absent."""
    code = "NOT_FOUND"
    http_status = 404


class InsufficientStockError(MineStockError):
    """Requested quantity exceeds current stock."""
    code = "INSUFFICIENT_STOCK"
    http_status = 409

    def __init__(self, message: str, *, available=None, requested=None):
        super().__init__(message)
        self.available = available
        self.requested = requested


class InvalidStateError(MineStockError):
    """Operation conflicts with the current lifecycle state."""
    code = "INVALID_STATE"
    http_status = 409


class ValidationError(MineStockError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"
    http_status = 400


# Distinct signalled condition per (operation, restriction kind).
RESTRICTION_CODES = {
    ("INSERT", "WEEKDAY"): "INSERT_WEEKDAY_RESTRICTED",
    ("INSERT", "HOLIDAY"): "INSERT_HOLIDAY_RESTRICTED",
    ("UPDATE", "WEEKDAY"): "UPDATE_WEEKDAY_RESTRICTED",
    ("UPDATE", "HOLIDAY"): "UPDATE_HOLIDAY_RESTRICTED",
    ("DELETE", "WEEKDAY"): "DELETE_WEEKDAY_RESTRICTED",
    ("DELETE", "HOLIDAY"): "DELETE_HOLIDAY_RESTRICTED",
}

_RESTRICTION_HINTS = {
    "WEEKDAY": "not allowed on weekdays (Monday-Friday). Please try on weekends only.",
    "HOLIDAY": "not allowed on holidays. Please try on non-holiday days.",
}


class RestrictionViolation(MineStockError):
    """A gated mutation was attempted while the calendar gate is closed."""
    http_status = 403

    def __init__(self, operation: str, kind: str, *, entity: str = "RESOURCES"):
        hint = _RESTRICTION_HINTS.get(kind, "not allowed at this time.")
        super().__init__(
            f"{operation} operation {hint}",
            code=RESTRICTION_CODES.get((operation, kind), f"{operation}_{kind}_RESTRICTED"),
        )
        self.operation = operation
        self.kind = kind
        self.entity = entity

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["operation"] = self.operation
        data["restriction"] = self.kind
        return data
