# Overview: Request decorators for API routes.

from functools import wraps
from flask import current_app, g, request

from .context import ExecutionContext
from .errors import MineStockError
from .time_utils import parse_iso_datetime


def with_execution_context(f):
    """
    Build the caller's ExecutionContext from the request.

    Sets g.exec_context from:
    - X-Actor (defaults to "anonymous")
    - X-Session-Id, X-Machine-Name
    - request.remote_addr
    - X-Effective-At (ISO-8601) when the app runs with TESTING=True, so
      tests can pin the calendar gate to a given day

    Module is the blueprint name, action is the endpoint function.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        effective_at = None
        if current_app.config.get("TESTING"):
            raw = request.headers.get("X-Effective-At")
            if raw:
                try:
                    effective_at = parse_iso_datetime(raw)
                except ValueError:
                    return {"error": "X-Effective-At must be an ISO-8601 datetime"}, 400

        g.exec_context = ExecutionContext(
            actor=(request.headers.get("X-Actor") or "anonymous").strip()[:100],
            session_id=request.headers.get("X-Session-Id"),
            ip_address=request.remote_addr,
            machine_name=request.headers.get("X-Machine-Name"),
            module=request.blueprint,
            action=f.__name__,
            effective_at=effective_at,
        )
        return f(*args, **kwargs)

    return decorated_function


def domain_errors(f):
    """
    Translate domain errors into JSON responses.

    MineStockError -> {"error", "code", ...} with the error's http_status.
    Anything else is logged with a traceback and returned as 500.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except MineStockError as e:
            return e.to_dict(), e.http_status
        except Exception:
            current_app.logger.exception("Unhandled error in %s", request.path)
            return {"error": "Internal server error"}, 500

    return decorated_function
