# Overview: Request decorators and error responses shared by the API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .errors import LedgerError, LedgerInconsistency


ACTOR_HEADER = "X-Actor-Id"


def require_actor(f):
    """
    Require the acting staff id from the identity gateway.

    Authentication happens upstream; this service only receives an opaque,
    already-validated staff id in the X-Actor-Id header and exposes it as
    g.actor_id.

    Returns 401 if the header is missing or not an integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(ACTOR_HEADER, "").strip()
        if not raw:
            return jsonify({"error": "unauthenticated", "message": f"{ACTOR_HEADER} header required"}), 401
        try:
            g.actor_id = int(raw)
        except ValueError:
            return jsonify({"error": "unauthenticated", "message": f"{ACTOR_HEADER} must be an integer"}), 401

        return f(*args, **kwargs)

    return decorated_function


def error_response(exc: LedgerError):
    """JSON body and status code for a domain error."""
    if isinstance(exc, LedgerInconsistency):
        # Already logged at CRITICAL by the engine; tag the request that hit it
        current_app.logger.error("Ledger inconsistency surfaced on %s %s", request.method, request.path)
    return jsonify(exc.to_dict()), exc.http_status


def internal_error(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "internal_error", "message": "Internal server error"}), 500
