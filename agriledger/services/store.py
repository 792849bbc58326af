# Overview: Entity Store; lookups the ledger, lending and approval services build on.

"""
Every service resolves rows through these helpers instead of querying models
directly, so "not there" always surfaces as NotFound and "lock it" always
means lock_for_update.
"""

from __future__ import annotations

from ..extensions import db
from ..errors import NotFound
from ..models import (
    Item,
    Farmer,
    Staff,
    Asset,
    AssetLoanRecord,
    DisbursementRecord,
    ReturnRecord,
    ApprovalRequest,
)
from .concurrency import lock_for_update


def _get(model, entity_id: int, label: str, *, lock: bool = False):
    query = db.session.query(model).filter_by(id=entity_id)
    if lock:
        query = lock_for_update(query)
    row = query.first()
    if row is None:
        raise NotFound(f"{label} {entity_id} not found", details={"entity": label, "id": entity_id})
    return row


def get_item(item_id: int, *, lock: bool = False) -> Item:
    return _get(Item, item_id, "item", lock=lock)


def get_items_locked(item_ids) -> dict[int, Item]:
    """
    Lock several items in ascending id order.

    A fixed lock order keeps two batch commands touching the same items from
    deadlocking each other.
    """
    items = {}
    for item_id in sorted(set(item_ids)):
        items[item_id] = get_item(item_id, lock=True)
    return items


def get_farmer(farmer_id: int) -> Farmer:
    return _get(Farmer, farmer_id, "farmer")


def get_staff(staff_id: int) -> Staff:
    return _get(Staff, staff_id, "staff")


def get_asset(asset_id: int, *, lock: bool = False) -> Asset:
    return _get(Asset, asset_id, "asset", lock=lock)


def get_disbursement(disbursement_id: int, *, lock: bool = False) -> DisbursementRecord:
    return _get(DisbursementRecord, disbursement_id, "disbursement", lock=lock)


def get_return(return_id: int, *, lock: bool = False) -> ReturnRecord:
    return _get(ReturnRecord, return_id, "return", lock=lock)


def get_request(request_id: int, *, lock: bool = False) -> ApprovalRequest:
    return _get(ApprovalRequest, request_id, "request", lock=lock)


def find_item_by_barcode(barcode: str) -> Item:
    item = db.session.query(Item).filter_by(barcode=barcode.strip()).first()
    if item is None:
        raise NotFound(f"Item with barcode {barcode} not found", details={"entity": "item", "barcode": barcode})
    return item


def find_asset_by_reference(reference_number: str) -> Asset:
    asset = db.session.query(Asset).filter_by(reference_number=reference_number.strip()).first()
    if asset is None:
        raise NotFound(
            f"Asset {reference_number} not found",
            details={"entity": "asset", "reference_number": reference_number},
        )
    return asset


def open_loans_for(asset_id: int) -> list[AssetLoanRecord]:
    """Open loans for an asset, most recent borrow first."""
    return (
        db.session.query(AssetLoanRecord)
        .filter(AssetLoanRecord.asset_id == asset_id, AssetLoanRecord.actual_return.is_(None))
        .order_by(AssetLoanRecord.date_borrowed.desc(), AssetLoanRecord.id.desc())
        .all()
    )
