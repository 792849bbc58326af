# agriledger/routes/items.py
"""
Stock routes: items, restocking and disbursement.

Mutating routes require the X-Actor-Id header (acting staff id). Quantities
are never accepted as a field to set; stock moves only through the ledger
commands behind these endpoints.
"""
from flask import Blueprint, request, jsonify, g

from ..errors import LedgerError, ValidationError
from ..services import stock_service
from ..validation import int_field, str_field, lines_field, int_arg
from ..decorators import require_actor, error_response, internal_error


items_bp = Blueprint("items", __name__, url_prefix="/api")


# =============================================================================
# ITEMS
# =============================================================================

@items_bp.get("/items")
def list_items_route():
    try:
        items = stock_service.list_items(
            classification=request.args.get("classification"),
            search=request.args.get("q"),
        )
        return jsonify({"items": [item.to_dict() for item in items]}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list items")


@items_bp.post("/items")
@require_actor
def register_item_route():
    """
    Register a stocked good.

    Request body:
    {
        "name": "Hybrid rice seed",
        "quantity": 40,            (optional, default: 0)
        "classification": "seeds", (optional)
        "barcode": "4800016",      (optional, unique)
        "unit": "sack",            (optional)
        "description": "..."       (optional)
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        item = stock_service.register_item(
            str_field(payload, "name", required=True, max_length=255),
            int_field(payload, "quantity", required=False, default=0),
            description=str_field(payload, "description"),
            classification=str_field(payload, "classification", max_length=64),
            barcode=str_field(payload, "barcode", max_length=128),
            unit=str_field(payload, "unit", max_length=32),
            staff_id=g.actor_id,
        )
        return jsonify({"item": item.to_dict()}), 201
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to register item")


@items_bp.get("/items/<int:item_id>")
def get_item_route(item_id: int):
    try:
        item = stock_service.get_item(item_id)
        summary = stock_service.get_stock_summary(item_id)
        return jsonify({"item": item.to_dict(), "summary": summary}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load item")


@items_bp.get("/items/barcode/<string:barcode>")
def find_item_by_barcode_route(barcode: str):
    try:
        item = stock_service.find_item_by_barcode(barcode)
        return jsonify({"item": item.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to look up barcode")


@items_bp.post("/items/<int:item_id>/receive")
@require_actor
def receive_stock_route(item_id: int):
    """Restock. Body: {"quantity": 10, "note": "delivery from DA"}"""
    payload = request.get_json(silent=True) or {}
    try:
        item = stock_service.receive_stock(
            item_id,
            int_field(payload, "quantity"),
            staff_id=g.actor_id,
            note=str_field(payload, "note", max_length=255),
        )
        return jsonify({"item": item.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to receive stock")


@items_bp.post("/items/<int:item_id>/adjust")
@require_actor
def adjust_stock_route(item_id: int):
    """Physical count. Body: {"counted_quantity": 8, "note": "monthly count"}"""
    payload = request.get_json(silent=True) or {}
    try:
        item = stock_service.adjust_stock(
            item_id,
            int_field(payload, "counted_quantity"),
            staff_id=g.actor_id,
            note=str_field(payload, "note", max_length=255),
        )
        return jsonify({"item": item.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to adjust stock")


_ITEM_FIELD_LIMITS = {"name": 255, "description": None, "classification": 64, "barcode": 128, "unit": 32}


@items_bp.patch("/items/<int:item_id>")
@require_actor
def update_item_route(item_id: int):
    """
    Edit descriptive fields. Only keys present in the body are changed.

    Quantity cannot be set here; use /receive or /adjust.
    """
    payload = request.get_json(silent=True) or {}
    try:
        if "quantity" in payload:
            raise ValidationError("quantity cannot be edited; use receive or adjust")
        changes = {
            key: str_field(payload, key, max_length=limit)
            for key, limit in _ITEM_FIELD_LIMITS.items()
            if key in payload
        }
        item = stock_service.update_item(item_id, staff_id=g.actor_id, **changes)
        return jsonify({"item": item.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update item")


@items_bp.delete("/items/<int:item_id>")
@require_actor
def delete_item_route(item_id: int):
    try:
        stock_service.delete_item(item_id, staff_id=g.actor_id)
        return jsonify({"deleted": item_id}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to delete item")


# =============================================================================
# DISBURSEMENTS
# =============================================================================

@items_bp.post("/disbursements")
@require_actor
def disburse_route():
    """
    Disburse goods to a farmer. The acting staff member is the giver.

    Single item:
    {"farmer_id": 7, "item_id": 3, "quantity": 2}

    Scan session (all-or-nothing):
    {"farmer_id": 7, "lines": [{"item_id": 3, "quantity": 2}, {"item_id": 5, "quantity": 1}]}

    Returns:
        201: Disbursement record(s) created
        404: Item, farmer or staff not found
        409: Insufficient stock (nothing was disbursed)
    """
    payload = request.get_json(silent=True) or {}
    try:
        farmer_id = int_field(payload, "farmer_id")
        if "lines" in payload:
            records = stock_service.disburse_batch(farmer_id, g.actor_id, lines_field(payload))
            return jsonify({
                "batch_reference": records[0].batch_reference,
                "disbursements": [r.to_dict() for r in records],
            }), 201

        record = stock_service.disburse(
            int_field(payload, "item_id"),
            farmer_id,
            g.actor_id,
            int_field(payload, "quantity"),
        )
        return jsonify({"disbursement": record.to_dict()}), 201
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to disburse")


@items_bp.get("/disbursements")
def list_disbursements_route():
    try:
        records = stock_service.list_disbursements(
            item_id=int_arg(request.args, "item_id"),
            farmer_id=int_arg(request.args, "farmer_id"),
            batch_reference=request.args.get("batch_reference"),
            limit=int_arg(request.args, "limit") or 200,
        )
        return jsonify({"disbursements": [r.to_dict() for r in records]}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list disbursements")
