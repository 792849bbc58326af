# agriledger/routes/requests.py
"""
Item request routes.

WHY: Chairmen request items for their cluster; an administrator approves or
rejects. Approval is checked against stock at decision time and never moves
stock itself.
"""
from flask import Blueprint, request, jsonify, g

from ..errors import LedgerError
from ..services import approval_service
from ..validation import str_field, lines_field, int_arg
from ..decorators import require_actor, error_response, internal_error


requests_bp = Blueprint("requests", __name__, url_prefix="/api/requests")


@requests_bp.post("/")
@require_actor
def submit_request_route():
    """Body: {"lines": [{"item_id": 3, "quantity": 5}, ...]}; requester is the actor."""
    payload = request.get_json(silent=True) or {}
    try:
        item_request = approval_service.submit(g.actor_id, lines_field(payload))
        return jsonify({"request": item_request.to_dict()}), 201
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to submit request")


@requests_bp.get("/")
def list_requests_route():
    try:
        item_requests = approval_service.list_requests(
            status=request.args.get("status"),
            requester_id=int_arg(request.args, "requester_id"),
        )
        return jsonify({"requests": [r.to_dict() for r in item_requests]}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list requests")


@requests_bp.get("/<int:request_id>")
def get_request_route(request_id: int):
    try:
        item_request = approval_service.get_request(request_id)
        return jsonify({"request": item_request.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load request")


@requests_bp.put("/<int:request_id>/lines")
@require_actor
def edit_lines_route(request_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        item_request = approval_service.edit_lines(request_id, lines_field(payload))
        return jsonify({"request": item_request.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to edit request lines")


@requests_bp.post("/<int:request_id>/decision")
@require_actor
def decide_route(request_id: int):
    """
    Body: {"decision": "approved" | "rejected"}

    Returns:
        200: Decision recorded
        409: Insufficient stock (request stays pending) or request already decided
    """
    payload = request.get_json(silent=True) or {}
    try:
        item_request = approval_service.decide(
            request_id,
            str_field(payload, "decision", required=True),
            staff_id=g.actor_id,
        )
        return jsonify({"request": item_request.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to decide request")


@requests_bp.delete("/<int:request_id>")
@require_actor
def cancel_request_route(request_id: int):
    try:
        approval_service.cancel(request_id)
        return jsonify({"cancelled": request_id}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to cancel request")
