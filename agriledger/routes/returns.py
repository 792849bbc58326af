# agriledger/routes/returns.py
"""
Return claim routes.

DESIGN:
- Claims are filed against a disbursement (status: pending)
- A reviewer moves them to returned / on-hold / rejected
- Stock is credited or reversed by the ledger according to the previous
  status; repeating a status is a no-op
"""

from flask import Blueprint, request, jsonify, g

from ..errors import LedgerError
from ..services import stock_service
from ..validation import int_field, str_field, int_arg
from ..decorators import require_actor, error_response, internal_error


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("/")
@require_actor
def create_return_route():
    """
    File a return claim.

    Request body:
    {
        "disbursement_id": 12,
        "quantity": 2,
        "reason": "Seeds were wet",   (optional)
        "cluster": "Cluster 4"        (optional)
    }

    Returns:
        201: Return created with pending status
        400: Quantity exceeds what remains claimable on the disbursement
        404: Disbursement not found
    """
    payload = request.get_json(silent=True) or {}
    try:
        record = stock_service.create_return(
            int_field(payload, "disbursement_id"),
            int_field(payload, "quantity"),
            reason=str_field(payload, "reason"),
            cluster=str_field(payload, "cluster", max_length=128),
        )
        return jsonify({"return": record.to_dict()}), 201
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create return")


@returns_bp.get("/")
def list_returns_route():
    try:
        records = stock_service.list_returns(
            status=request.args.get("status"),
            cluster=request.args.get("cluster"),
            farmer_id=int_arg(request.args, "farmer_id"),
        )
        return jsonify({"returns": [r.to_dict() for r in records]}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list returns")


@returns_bp.post("/<int:return_id>/status")
@require_actor
def set_return_status_route(return_id: int):
    """
    Review a return claim.

    Request body: {"status": "returned" | "on-hold" | "rejected"}

    Returns:
        200: Status applied; item reflects any credit or reversal
        400: Unknown status
        404: Return not found
        409: Ledger inconsistency (reversal would make stock negative)
    """
    payload = request.get_json(silent=True) or {}
    try:
        record = stock_service.set_return_status(
            return_id,
            str_field(payload, "status", required=True),
            staff_id=g.actor_id,
        )
        item = stock_service.get_item(record.item_id)
        return jsonify({"return": record.to_dict(), "item": item.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update return status")
