# agriledger/routes/assets.py
"""
Machinery lending routes.

An asset is Available or Borrowed. Borrow and return are the only ways its
availability changes.
"""
from flask import Blueprint, request, jsonify

from ..errors import LedgerError, ValidationError
from ..services import lending_service
from ..validation import int_field, str_field, int_arg, bool_arg
from ..decorators import require_actor, error_response, internal_error


assets_bp = Blueprint("assets", __name__, url_prefix="/api")


@assets_bp.get("/assets")
def list_assets_route():
    try:
        assets = lending_service.list_assets(available=bool_arg(request.args, "available"))
        return jsonify({"assets": [a.to_dict() for a in assets]}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list assets")


@assets_bp.post("/assets")
@require_actor
def register_asset_route():
    """Body: {"reference_number": "TRC-001", "name": "Hand tractor", "condition": "okay"}"""
    payload = request.get_json(silent=True) or {}
    try:
        asset = lending_service.register_asset(
            str_field(payload, "reference_number", required=True, max_length=64),
            str_field(payload, "name", required=True, max_length=255),
            condition=str_field(payload, "condition", max_length=32) or "okay",
        )
        return jsonify({"asset": asset.to_dict()}), 201
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to register asset")


@assets_bp.patch("/assets/<int:asset_id>")
@require_actor
def update_asset_route(asset_id: int):
    """Body: {"name": "...", "condition": "..."} (both optional). Availability is not editable."""
    payload = request.get_json(silent=True) or {}
    try:
        if "is_available" in payload:
            raise ValidationError("availability changes only through borrow and return")
        asset = lending_service.update_asset(
            asset_id,
            name=str_field(payload, "name", max_length=255) if "name" in payload else None,
            condition=str_field(payload, "condition", max_length=32),
        )
        return jsonify({"asset": asset.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update asset")


@assets_bp.delete("/assets/<int:asset_id>")
@require_actor
def delete_asset_route(asset_id: int):
    try:
        lending_service.delete_asset(asset_id)
        return jsonify({"deleted": asset_id}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to delete asset")


@assets_bp.get("/assets/reference/<string:reference_number>")
def find_asset_route(reference_number: str):
    try:
        asset = lending_service.find_asset_by_reference(reference_number)
        open_loan = lending_service.get_open_loan(asset.id)
        return jsonify({
            "asset": asset.to_dict(),
            "open_loan": open_loan.to_dict() if open_loan else None,
        }), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to look up asset")


@assets_bp.post("/assets/<int:asset_id>/borrow")
@require_actor
def borrow_route(asset_id: int):
    """
    Lend an asset.

    Request body:
    {
        "farmer_id": 7,
        "date_borrowed": "2026-05-01",     (optional, default: now)
        "scheduled_return": "2026-05-08"
    }

    Returns:
        201: Loan opened, asset unavailable
        409: Asset already borrowed
    """
    payload = request.get_json(silent=True) or {}
    try:
        loan = lending_service.borrow(
            asset_id,
            int_field(payload, "farmer_id"),
            payload.get("date_borrowed"),
            payload.get("scheduled_return"),
        )
        return jsonify({"loan": loan.to_dict(), "asset": loan.asset.to_dict()}), 201
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to borrow asset")


@assets_bp.post("/assets/<int:asset_id>/return")
@require_actor
def return_asset_route(asset_id: int):
    """Body: {"remarks": "ok", "condition": "needs-repair"} (both optional)"""
    payload = request.get_json(silent=True) or {}
    try:
        loan = lending_service.return_asset(
            asset_id,
            remarks=str_field(payload, "remarks"),
            condition=str_field(payload, "condition", max_length=32),
        )
        return jsonify({"loan": loan.to_dict(), "asset": loan.asset.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to return asset")


@assets_bp.get("/loans")
def list_loans_route():
    try:
        loans = lending_service.list_loans(
            asset_id=int_arg(request.args, "asset_id"),
            farmer_id=int_arg(request.args, "farmer_id"),
            open_only=bool(bool_arg(request.args, "open")),
        )
        return jsonify({"loans": [loan.to_dict() for loan in loans]}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list loans")


@assets_bp.get("/loans/overdue")
def list_overdue_loans_route():
    try:
        loans = lending_service.list_overdue_loans(request.args.get("as_of"))
        return jsonify({"loans": [loan.to_dict() for loan in loans]}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list overdue loans")
