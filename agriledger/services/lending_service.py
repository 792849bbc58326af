# Overview: Asset Lending State Machine; the only code path that writes Asset.is_available.

"""
Lending lifecycle:
1. Available: no open loan (initial state)
2. Borrowed: exactly one open AssetLoanRecord (actual_return IS NULL)

borrow() and return_asset() each read "is there an open loan", write the loan
row and flip is_available in one transaction with the asset row locked and
version-checked, so a second borrow cannot slip in between the check and the
write.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db, events
from ..errors import AssetUnavailable, NoOpenLoan, ValidationError
from ..models import Asset, AssetLoanRecord
from agriledger.time_utils import utcnow, normalize_datetime
from . import store
from .concurrency import run_with_retry
from .ledger_service import append_ledger_event
from .notifications import ChangeEvent, ENTITY_ASSET


DEFAULT_RETURN_REMARKS = "Returned successfully"


def _as_datetime(value, field: str) -> datetime:
    try:
        return normalize_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date or datetime")


def register_asset(reference_number: str, name: str, condition: str = "okay") -> Asset:
    """Add a machine or tool to the lending pool (available)."""
    if not reference_number or not str(reference_number).strip():
        raise ValidationError("reference_number is required")
    if not name or not str(name).strip():
        raise ValidationError("name is required")
    reference_number = str(reference_number).strip()

    def _op():
        if db.session.query(Asset).filter_by(reference_number=reference_number).first() is not None:
            raise ValidationError(f"asset {reference_number} already exists")

        asset = Asset(
            reference_number=reference_number,
            name=str(name).strip(),
            condition=condition or "okay",
            is_available=True,
        )
        db.session.add(asset)
        db.session.flush()

        append_ledger_event(
            event_type="asset.registered",
            entity_type=ENTITY_ASSET,
            entity_id=asset.id,
            new_value=True,
        )
        asset_id = asset.id
        db.session.commit()
        return asset, ChangeEvent(ENTITY_ASSET, asset_id, True, "asset.registered")

    asset, change = run_with_retry(_op)
    events.publish(change)
    return asset


def update_asset(asset_id: int, *, name: str | None = None, condition: str | None = None) -> Asset:
    """Rename an asset or record its condition. Availability is not editable."""
    if name is not None and not str(name).strip():
        raise ValidationError("name cannot be empty")

    def _op():
        asset = store.get_asset(asset_id, lock=True)

        changed = []
        if name is not None and asset.name != str(name).strip():
            asset.name = str(name).strip()
            changed.append("name")
        if condition and asset.condition != condition:
            asset.condition = condition
            changed.append("condition")
        if not changed:
            db.session.commit()
            return asset, None

        append_ledger_event(
            event_type="asset.updated",
            entity_type=ENTITY_ASSET,
            entity_id=asset.id,
            new_value=asset.is_available,
            note=", ".join(changed),
        )
        available = asset.is_available
        db.session.commit()
        return asset, ChangeEvent(ENTITY_ASSET, asset_id, available, "asset.updated")

    asset, change = run_with_retry(_op)
    if change is not None:
        events.publish(change)
    return asset


def delete_asset(asset_id: int) -> None:
    """
    Remove an asset that has never been lent.

    Raises:
        AssetUnavailable: the asset is currently borrowed
        ValidationError: the asset has loan history
    """
    def _op():
        asset = store.get_asset(asset_id, lock=True)
        if store.open_loans_for(asset.id):
            raise AssetUnavailable(
                f"Asset {asset.reference_number} is currently borrowed",
                details={"asset_id": asset.id},
            )
        loans = db.session.query(AssetLoanRecord).filter_by(asset_id=asset.id).count()
        if loans:
            raise ValidationError(
                f"Asset {asset.reference_number} has loan history and cannot be deleted",
                details={"asset_id": asset.id, "loans": loans},
            )

        append_ledger_event(
            event_type="asset.deleted",
            entity_type=ENTITY_ASSET,
            entity_id=asset.id,
            note=asset.reference_number,
        )
        db.session.delete(asset)
        db.session.commit()

    run_with_retry(_op)
    events.publish(ChangeEvent(ENTITY_ASSET, asset_id, None, "asset.deleted"))


def borrow(asset_id: int, farmer_id: int, date_borrowed=None, scheduled_return=None) -> AssetLoanRecord:
    """
    Lend an available asset to a farmer.

    Raises:
        ValidationError: scheduled_return missing or before date_borrowed
        NotFound: asset or farmer unresolved
        AssetUnavailable: the asset already has an open loan
    """
    borrowed_at = _as_datetime(date_borrowed, "date_borrowed")
    if scheduled_return is None:
        raise ValidationError("scheduled_return is required")
    due_at = _as_datetime(scheduled_return, "scheduled_return")
    if due_at < borrowed_at:
        raise ValidationError("scheduled_return cannot be before date_borrowed")

    def _op():
        asset = store.get_asset(asset_id, lock=True)
        store.get_farmer(farmer_id)

        if not asset.is_available or store.open_loans_for(asset.id):
            raise AssetUnavailable(
                f"Asset {asset.reference_number} is currently borrowed",
                details={"asset_id": asset.id},
            )

        loan = AssetLoanRecord(
            asset_id=asset.id,
            farmer_id=farmer_id,
            date_borrowed=borrowed_at,
            scheduled_return=due_at,
            actual_return=None,
        )
        db.session.add(loan)
        asset.is_available = False
        db.session.flush()

        append_ledger_event(
            event_type="asset.borrowed",
            entity_type=ENTITY_ASSET,
            entity_id=asset.id,
            new_value=False,
            occurred_at=borrowed_at,
            note=f"loan {loan.id} to farmer {farmer_id}",
        )
        db.session.commit()
        return loan, ChangeEvent(ENTITY_ASSET, asset_id, False, "asset.borrowed")

    loan, change = run_with_retry(_op)
    events.publish(change)
    return loan


def return_asset(asset_id: int, remarks: str | None = None, condition: str | None = None) -> AssetLoanRecord:
    """
    Close the asset's open loan and make it available again.

    If several loans are open (a past invariant violation) the most recent by
    borrow date is closed and a warning is logged.

    Raises:
        NotFound: asset unresolved
        NoOpenLoan: nothing to close
    """
    def _op():
        asset = store.get_asset(asset_id, lock=True)
        open_loans = store.open_loans_for(asset.id)
        if not open_loans:
            raise NoOpenLoan(
                f"Asset {asset.reference_number} has no open loan",
                details={"asset_id": asset.id},
            )
        if len(open_loans) > 1:
            current_app.logger.warning(
                "Asset %s has %d open loans (ids %s); closing the most recent",
                asset.id, len(open_loans), [loan.id for loan in open_loans],
            )

        loan = open_loans[0]
        loan.actual_return = utcnow()
        loan.remarks = remarks or DEFAULT_RETURN_REMARKS

        # Availability follows the loans that remain open
        asset.is_available = len(open_loans) == 1
        if condition:
            asset.condition = condition

        append_ledger_event(
            event_type="asset.returned",
            entity_type=ENTITY_ASSET,
            entity_id=asset.id,
            new_value=asset.is_available,
            occurred_at=loan.actual_return,
            note=f"loan {loan.id}: {loan.remarks}",
        )
        available = asset.is_available
        db.session.commit()
        return loan, ChangeEvent(ENTITY_ASSET, asset_id, available, "asset.returned")

    loan, change = run_with_retry(_op)
    events.publish(change)
    return loan


# =============================================================================
# QUERIES
# =============================================================================

def get_asset(asset_id: int) -> Asset:
    return store.get_asset(asset_id)


def find_asset_by_reference(reference_number: str) -> Asset:
    return store.find_asset_by_reference(reference_number)


def get_open_loan(asset_id: int) -> AssetLoanRecord | None:
    store.get_asset(asset_id)
    open_loans = store.open_loans_for(asset_id)
    return open_loans[0] if open_loans else None


def list_assets(*, available: bool | None = None) -> list[Asset]:
    q = db.session.query(Asset)
    if available is not None:
        q = q.filter(Asset.is_available.is_(available))
    return q.order_by(Asset.reference_number.asc()).all()


def list_loans(
    *,
    asset_id: int | None = None,
    farmer_id: int | None = None,
    open_only: bool = False,
) -> list[AssetLoanRecord]:
    q = db.session.query(AssetLoanRecord)
    if asset_id is not None:
        q = q.filter(AssetLoanRecord.asset_id == asset_id)
    if farmer_id is not None:
        q = q.filter(AssetLoanRecord.farmer_id == farmer_id)
    if open_only:
        q = q.filter(AssetLoanRecord.actual_return.is_(None))
    return q.order_by(AssetLoanRecord.date_borrowed.desc(), AssetLoanRecord.id.desc()).all()


def list_overdue_loans(as_of=None) -> list[AssetLoanRecord]:
    """Open loans whose scheduled return is before as_of (default now)."""
    cutoff = _as_datetime(as_of, "as_of")
    return (
        db.session.query(AssetLoanRecord)
        .filter(
            AssetLoanRecord.actual_return.is_(None),
            AssetLoanRecord.scheduled_return < cutoff,
        )
        .order_by(AssetLoanRecord.scheduled_return.asc(), AssetLoanRecord.id.asc())
        .all()
    )
