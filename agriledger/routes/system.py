# agriledger/routes/system.py
"""
Health check and audit trail endpoints.
"""

import time
from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import text

from ..extensions import db
from ..errors import LedgerError
from ..services.ledger_service import list_ledger_events
from ..validation import int_arg
from ..decorators import error_response, internal_error
from agriledger.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }), 200 if healthy else 503


@system_bp.get("/ledger/events")
def ledger_events_route():
    try:
        ledger_events = list_ledger_events(
            entity_type=request.args.get("entity_type"),
            entity_id=int_arg(request.args, "entity_id"),
            limit=int_arg(request.args, "limit") or 200,
        )
        return jsonify({"events": [ev.to_dict() for ev in ledger_events]}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list ledger events")
