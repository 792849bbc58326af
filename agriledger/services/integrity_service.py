# Overview: Read-only invariant audit over stock and lending state.

"""
Reports, never repairs. A violation here means an earlier write bypassed the
ledger commands or the database was edited by hand; an operator decides what
to do about it.
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Item, Asset, AssetLoanRecord, DisbursementRecord, ReturnRecord
from .stock_service import RETURN_STATUS_REJECTED


def find_invariant_violations() -> list[dict]:
    violations = []

    for item in db.session.query(Item).filter(Item.quantity < 0).order_by(Item.id):
        violations.append({
            "kind": "negative_quantity",
            "entity_type": "item",
            "entity_id": item.id,
            "detail": f"quantity is {item.quantity}",
        })

    open_counts = dict(
        db.session.query(AssetLoanRecord.asset_id, func.count(AssetLoanRecord.id))
        .filter(AssetLoanRecord.actual_return.is_(None))
        .group_by(AssetLoanRecord.asset_id)
        .all()
    )
    for asset in db.session.query(Asset).order_by(Asset.id):
        open_loans = open_counts.get(asset.id, 0)
        if open_loans > 1:
            violations.append({
                "kind": "multiple_open_loans",
                "entity_type": "asset",
                "entity_id": asset.id,
                "detail": f"{open_loans} open loans",
            })
        if asset.is_available and open_loans:
            violations.append({
                "kind": "availability_mismatch",
                "entity_type": "asset",
                "entity_id": asset.id,
                "detail": f"marked available with {open_loans} open loan(s)",
            })
        elif not asset.is_available and not open_loans:
            violations.append({
                "kind": "availability_mismatch",
                "entity_type": "asset",
                "entity_id": asset.id,
                "detail": "marked borrowed with no open loan",
            })

    claimed = dict(
        db.session.query(ReturnRecord.disbursement_id, func.sum(ReturnRecord.quantity))
        .filter(ReturnRecord.status != RETURN_STATUS_REJECTED)
        .group_by(ReturnRecord.disbursement_id)
        .all()
    )
    for record in db.session.query(DisbursementRecord).order_by(DisbursementRecord.id):
        expected = claimed.get(record.id) or 0
        if record.claimed_quantity != expected:
            violations.append({
                "kind": "claim_counter_mismatch",
                "entity_type": "disbursement",
                "entity_id": record.id,
                "detail": f"claimed_quantity is {record.claimed_quantity}, open claims total {expected}",
            })

    return violations
