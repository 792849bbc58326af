# Overview: Stock Ledger Engine; the only code path that writes Item.quantity.

"""
Agri Ledger stock invariants (authoritative)

Quantity model:
- Item.quantity is stored, not derived, and is written ONLY by the commands in
  this module: register_item, receive_stock, adjust_stock, disburse,
  disburse_batch and set_return_status.
- Item.quantity >= 0 after every command. A command that would break this
  fails without partial effect.

Disbursement:
- One DisbursementRecord per line, created in the same transaction as the
  matching decrement. Records are never edited apart from their claim
  counter (see Return claims).
- A batch (one scan session) is all-or-nothing.

Return review (the transition table):
- new == returned and prev != returned              -> +quantity
- new in (on-hold, rejected) and prev == returned   -> -quantity
- anything else                                     -> no stock change
- A reversal that would drive the item below zero is a LedgerInconsistency:
  logged at CRITICAL, never clamped.

Return claims:
- DisbursementRecord.claimed_quantity is the sum of the non-rejected claims
  on that disbursement and never exceeds its quantity. Filing a claim and
  moving a claim out of rejected both reserve units under the disbursement
  row's version_id; rejecting releases them.

Atomicity:
- Each command is one read-validate-write closure run by run_with_retry.
  Rows are locked with lock_for_update and every mutable row carries a
  version_id, so a write from a stale read raises StaleDataError and the
  closure re-runs against fresh state.
- The audit event is appended inside the same transaction.
- Change events are published only after commit.
"""

from __future__ import annotations

import uuid
from collections import OrderedDict

from flask import current_app
from sqlalchemy import func

from ..extensions import db, events
from ..errors import InsufficientStock, LedgerInconsistency, ValidationError
from ..models import Item, DisbursementRecord, ReturnRecord, ApprovalRequestLine
from agriledger.time_utils import utcnow
from . import store
from .concurrency import run_with_retry
from .ledger_service import append_ledger_event
from .notifications import ChangeEvent, ENTITY_ITEM, ENTITY_RETURN


# =============================================================================
# RETURN STATUS CONSTANTS
# =============================================================================

RETURN_STATUS_PENDING = "pending"
RETURN_STATUS_RETURNED = "returned"
RETURN_STATUS_ON_HOLD = "on-hold"
RETURN_STATUS_REJECTED = "rejected"

REVIEW_STATUSES = frozenset({
    RETURN_STATUS_RETURNED,
    RETURN_STATUS_ON_HOLD,
    RETURN_STATUS_REJECTED,
})


# =============================================================================
# INPUT HELPERS
# =============================================================================

def require_positive_int(value, field: str) -> int:
    # bool is an int subclass; True must not mean "1 sack"
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value <= 0:
        raise ValidationError(f"{field} must be positive")
    return value


def normalize_lines(lines) -> list[tuple[int, int]]:
    """
    Accept [(item_id, quantity), ...] or [{"item_id": .., "quantity": ..}, ...].

    Order is preserved; the list must not be empty.
    """
    if not lines:
        raise ValidationError("at least one line is required")

    normalized = []
    for index, line in enumerate(lines):
        if isinstance(line, dict):
            item_id = line.get("item_id")
            quantity = line.get("quantity")
        else:
            try:
                item_id, quantity = line
            except (TypeError, ValueError):
                raise ValidationError(f"line {index} must be (item_id, quantity)")
        if isinstance(item_id, bool) or not isinstance(item_id, int):
            raise ValidationError(f"line {index}: item_id must be an integer")
        normalized.append((item_id, require_positive_int(quantity, f"line {index} quantity")))
    return normalized


def sum_lines(lines: list[tuple[int, int]]) -> "OrderedDict[int, int]":
    totals: OrderedDict[int, int] = OrderedDict()
    for item_id, quantity in lines:
        totals[item_id] = totals.get(item_id, 0) + quantity
    return totals


def _publish(change_events) -> None:
    events.publish_all(change_events)


# =============================================================================
# ITEM REGISTRATION, RESTOCK & COUNT
# =============================================================================

def register_item(
    name: str,
    quantity: int = 0,
    *,
    description: str | None = None,
    classification: str | None = None,
    barcode: str | None = None,
    unit: str | None = None,
    staff_id: int | None = None,
) -> Item:
    """Create an Item with an initial on-hand quantity (may be zero)."""
    if not name or not str(name).strip():
        raise ValidationError("name is required")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
        raise ValidationError("quantity must be a non-negative integer")
    barcode = barcode.strip() if barcode else None

    def _op():
        if barcode and db.session.query(Item).filter_by(barcode=barcode).first() is not None:
            raise ValidationError(f"barcode {barcode} is already assigned")

        item = Item(
            name=str(name).strip(),
            description=description,
            quantity=quantity,
            classification=classification,
            barcode=barcode,
            unit=unit,
        )
        db.session.add(item)
        db.session.flush()

        append_ledger_event(
            event_type="stock.registered",
            entity_type=ENTITY_ITEM,
            entity_id=item.id,
            quantity_delta=quantity,
            new_value=quantity,
            actor_id=staff_id,
        )
        item_id, new_quantity = item.id, item.quantity
        db.session.commit()
        return item, ChangeEvent(ENTITY_ITEM, item_id, new_quantity, "stock.registered")

    item, change = run_with_retry(_op)
    _publish([change])
    return item


def receive_stock(
    item_id: int,
    quantity: int,
    *,
    staff_id: int | None = None,
    note: str | None = None,
) -> Item:
    """Restock: add delivered goods to on-hand quantity."""
    quantity = require_positive_int(quantity, "quantity")

    def _op():
        item = store.get_item(item_id, lock=True)
        item.quantity += quantity

        append_ledger_event(
            event_type="stock.received",
            entity_type=ENTITY_ITEM,
            entity_id=item.id,
            quantity_delta=quantity,
            new_value=item.quantity,
            actor_id=staff_id,
            note=note,
        )
        new_quantity = item.quantity
        db.session.commit()
        return item, ChangeEvent(ENTITY_ITEM, item_id, new_quantity, "stock.received")

    item, change = run_with_retry(_op)
    _publish([change])
    return item


def adjust_stock(
    item_id: int,
    counted_quantity: int,
    *,
    staff_id: int | None = None,
    note: str | None = None,
) -> Item:
    """
    Set on-hand quantity to a physical count.

    The signed difference is written to the audit trail as stock.adjusted.
    A count equal to the current quantity changes nothing.
    """
    if isinstance(counted_quantity, bool) or not isinstance(counted_quantity, int):
        raise ValidationError("counted_quantity must be an integer")
    if counted_quantity < 0:
        raise ValidationError("counted_quantity cannot be negative")

    def _op():
        item = store.get_item(item_id, lock=True)
        delta = counted_quantity - item.quantity
        if delta == 0:
            db.session.commit()
            return item, []

        item.quantity = counted_quantity
        append_ledger_event(
            event_type="stock.adjusted",
            entity_type=ENTITY_ITEM,
            entity_id=item.id,
            quantity_delta=delta,
            new_value=item.quantity,
            actor_id=staff_id,
            note=note,
        )
        db.session.commit()
        return item, [ChangeEvent(ENTITY_ITEM, item_id, counted_quantity, "stock.adjusted")]

    item, changes = run_with_retry(_op)
    _publish(changes)
    return item


_UNSET = object()


def update_item(
    item_id: int,
    *,
    name=_UNSET,
    description=_UNSET,
    classification=_UNSET,
    barcode=_UNSET,
    unit=_UNSET,
    staff_id: int | None = None,
) -> Item:
    """
    Edit an item's descriptive fields. Quantity is not editable here; use
    receive_stock or adjust_stock.
    """
    if name is not _UNSET and (not name or not str(name).strip()):
        raise ValidationError("name cannot be empty")
    if barcode is not _UNSET:
        barcode = barcode.strip() if barcode else None

    def _op():
        item = store.get_item(item_id, lock=True)

        if barcode is not _UNSET and barcode and barcode != item.barcode:
            taken = db.session.query(Item).filter(Item.barcode == barcode, Item.id != item.id).first()
            if taken is not None:
                raise ValidationError(f"barcode {barcode} is already assigned")

        changed = []
        for field, value in (
            ("name", str(name).strip() if name is not _UNSET else _UNSET),
            ("description", description),
            ("classification", classification),
            ("barcode", barcode),
            ("unit", unit),
        ):
            if value is not _UNSET and getattr(item, field) != value:
                setattr(item, field, value)
                changed.append(field)

        if not changed:
            db.session.commit()
            return item, []

        append_ledger_event(
            event_type="item.updated",
            entity_type=ENTITY_ITEM,
            entity_id=item.id,
            new_value=item.quantity,
            actor_id=staff_id,
            note=", ".join(changed),
        )
        quantity = item.quantity
        db.session.commit()
        return item, [ChangeEvent(ENTITY_ITEM, item_id, quantity, "item.updated")]

    item, changes = run_with_retry(_op)
    _publish(changes)
    return item


def delete_item(item_id: int, *, staff_id: int | None = None) -> None:
    """
    Remove an item that has never moved.

    Items referenced by a disbursement, return or request line keep their
    history and cannot be deleted.
    """
    def _op():
        item = store.get_item(item_id, lock=True)

        references = {
            "disbursements": db.session.query(DisbursementRecord).filter_by(item_id=item.id).count(),
            "returns": db.session.query(ReturnRecord).filter_by(item_id=item.id).count(),
            "request_lines": db.session.query(ApprovalRequestLine).filter_by(item_id=item.id).count(),
        }
        if any(references.values()):
            raise ValidationError(
                f"Item {item.id} has ledger history and cannot be deleted",
                details={"item_id": item.id, **references},
            )

        append_ledger_event(
            event_type="item.deleted",
            entity_type=ENTITY_ITEM,
            entity_id=item.id,
            quantity_delta=-item.quantity if item.quantity else None,
            actor_id=staff_id,
            note=item.name,
        )
        db.session.delete(item)
        db.session.commit()

    run_with_retry(_op)
    _publish([ChangeEvent(ENTITY_ITEM, item_id, None, "item.deleted")])


# =============================================================================
# DISBURSEMENT
# =============================================================================

def disburse(item_id: int, farmer_id: int, staff_id: int, quantity: int) -> DisbursementRecord:
    """
    Give goods to a farmer: create the record and decrement stock together.

    Raises:
        ValidationError: quantity not a positive integer
        NotFound: item, farmer or staff unresolved
        InsufficientStock: on-hand quantity below the request (no effect)
    """
    quantity = require_positive_int(quantity, "quantity")

    def _op():
        item = store.get_item(item_id, lock=True)
        store.get_farmer(farmer_id)
        store.get_staff(staff_id)

        if item.quantity < quantity:
            raise InsufficientStock(
                f"Cannot disburse {quantity} of {item.name}: only {item.quantity} on hand",
                shortages=[{"item_id": item.id, "requested": quantity, "available": item.quantity}],
            )

        item.quantity -= quantity
        record = DisbursementRecord(
            item_id=item.id,
            farmer_id=farmer_id,
            staff_id=staff_id,
            quantity=quantity,
            occurred_at=utcnow(),
        )
        db.session.add(record)
        db.session.flush()

        append_ledger_event(
            event_type="stock.disbursed",
            entity_type=ENTITY_ITEM,
            entity_id=item.id,
            quantity_delta=-quantity,
            new_value=item.quantity,
            actor_id=staff_id,
            occurred_at=record.occurred_at,
            note=f"disbursement {record.id} to farmer {farmer_id}",
        )
        new_quantity = item.quantity
        db.session.commit()
        return record, ChangeEvent(ENTITY_ITEM, item_id, new_quantity, "stock.disbursed")

    record, change = run_with_retry(_op)
    _publish([change])
    return record


def disburse_batch(farmer_id: int, staff_id: int, lines) -> list[DisbursementRecord]:
    """
    Save a whole scan session: several items handed over at once.

    All lines succeed or none do. Quantities for a repeated item are summed
    before the stock check, and the created records share a batch_reference.
    """
    normalized = normalize_lines(lines)
    totals = sum_lines(normalized)

    def _op():
        store.get_farmer(farmer_id)
        store.get_staff(staff_id)
        items = store.get_items_locked(totals.keys())

        shortages = [
            {"item_id": item_id, "requested": requested, "available": items[item_id].quantity}
            for item_id, requested in totals.items()
            if items[item_id].quantity < requested
        ]
        if shortages:
            raise InsufficientStock(
                f"Insufficient stock for {len(shortages)} of {len(totals)} items",
                shortages=shortages,
            )

        batch_reference = uuid.uuid4().hex
        occurred_at = utcnow()
        records = []
        for item_id, quantity in normalized:
            item = items[item_id]
            item.quantity -= quantity
            record = DisbursementRecord(
                item_id=item_id,
                farmer_id=farmer_id,
                staff_id=staff_id,
                quantity=quantity,
                batch_reference=batch_reference,
                occurred_at=occurred_at,
            )
            db.session.add(record)
            records.append(record)
        db.session.flush()

        for record in records:
            append_ledger_event(
                event_type="stock.disbursed",
                entity_type=ENTITY_ITEM,
                entity_id=record.item_id,
                quantity_delta=-record.quantity,
                new_value=items[record.item_id].quantity,
                actor_id=staff_id,
                occurred_at=occurred_at,
                note=f"disbursement {record.id} (batch {batch_reference}) to farmer {farmer_id}",
            )

        changes = [
            ChangeEvent(ENTITY_ITEM, item_id, items[item_id].quantity, "stock.disbursed")
            for item_id in totals
        ]
        db.session.commit()
        return records, changes

    records, changes = run_with_retry(_op)
    _publish(changes)
    return records


# =============================================================================
# RETURNS
# =============================================================================

def _reserve_claim(disbursement: DisbursementRecord, quantity: int) -> None:
    """Count quantity against the disbursement's claim cap or refuse."""
    if quantity > disbursement.claimable_quantity:
        raise ValidationError(
            f"Cannot return {quantity} units. Disbursed: {disbursement.quantity}, "
            f"already claimed: {disbursement.claimed_quantity}, "
            f"available: {disbursement.claimable_quantity}",
            details={
                "disbursement_id": disbursement.id,
                "disbursed": disbursement.quantity,
                "already_claimed": disbursement.claimed_quantity,
            },
        )
    disbursement.claimed_quantity += quantity


def create_return(
    disbursement_id: int,
    quantity: int,
    reason: str | None = None,
    cluster: str | None = None,
) -> ReturnRecord:
    """
    File a return claim against a disbursement (status: pending).

    No stock moves until a reviewer marks it returned. The claim plus every
    earlier non-rejected claim on the same disbursement may not exceed what
    was disbursed.
    """
    quantity = require_positive_int(quantity, "quantity")

    def _op():
        disbursement = store.get_disbursement(disbursement_id, lock=True)
        _reserve_claim(disbursement, quantity)

        record = ReturnRecord(
            disbursement_id=disbursement.id,
            item_id=disbursement.item_id,
            farmer_id=disbursement.farmer_id,
            quantity=quantity,
            reason=reason,
            cluster=cluster,
            status=RETURN_STATUS_PENDING,
            created_at=utcnow(),
        )
        db.session.add(record)
        db.session.flush()

        append_ledger_event(
            event_type="return.filed",
            entity_type=ENTITY_RETURN,
            entity_id=record.id,
            new_value=RETURN_STATUS_PENDING,
            note=reason,
        )
        record_id = record.id
        db.session.commit()
        return record, ChangeEvent(ENTITY_RETURN, record_id, RETURN_STATUS_PENDING, "return.filed")

    record, change = run_with_retry(_op)
    _publish([change])
    return record


def return_quantity_delta(prev: str, new: str, quantity: int) -> int:
    """Stock change for moving a return from prev to new status."""
    if new == RETURN_STATUS_RETURNED and prev != RETURN_STATUS_RETURNED:
        return quantity
    if new in (RETURN_STATUS_ON_HOLD, RETURN_STATUS_REJECTED) and prev == RETURN_STATUS_RETURNED:
        return -quantity
    return 0


def set_return_status(return_id: int, new_status: str, staff_id: int | None = None) -> ReturnRecord:
    """
    Review a return claim and apply the matching stock delta.

    Calling again with the status the record already has is a no-op.
    Rejecting a claim releases its units from the disbursement's claim cap;
    moving it out of rejected takes them again, and fails if another claim
    has taken them in the meantime.

    Raises:
        ValidationError: new_status not one of returned / on-hold / rejected,
            or a rejected claim no longer fits the claim cap
        NotFound: return (or reviewing staff) unresolved
        LedgerInconsistency: reversing the credit would make stock negative
    """
    if new_status not in REVIEW_STATUSES:
        raise ValidationError(
            f"status must be one of {', '.join(sorted(REVIEW_STATUSES))}",
            details={"status": new_status},
        )

    def _op():
        record = store.get_return(return_id, lock=True)
        if staff_id is not None:
            store.get_staff(staff_id)

        prev = record.status
        if prev == new_status:
            db.session.commit()
            return record, []

        # Lock order: return, disbursement, item
        disbursement = store.get_disbursement(record.disbursement_id, lock=True)
        if prev == RETURN_STATUS_REJECTED:
            _reserve_claim(disbursement, record.quantity)
        elif new_status == RETURN_STATUS_REJECTED:
            disbursement.claimed_quantity -= record.quantity

        item = store.get_item(record.item_id, lock=True)
        delta = return_quantity_delta(prev, new_status, record.quantity)

        if item.quantity + delta < 0:
            current_app.logger.critical(
                "LEDGER INCONSISTENCY: reversing return %s (%s -> %s) would take item %s "
                "from %s to %s",
                record.id, prev, new_status, item.id, item.quantity, item.quantity + delta,
            )
            raise LedgerInconsistency(
                f"Reversing return {record.id} would make item {item.id} quantity negative",
                details={
                    "return_id": record.id,
                    "item_id": item.id,
                    "on_hand": item.quantity,
                    "reversal": -delta,
                },
            )

        changes = []
        if delta:
            event_type = "stock.return_credited" if delta > 0 else "stock.return_reversed"
            item.quantity += delta
            append_ledger_event(
                event_type=event_type,
                entity_type=ENTITY_ITEM,
                entity_id=item.id,
                quantity_delta=delta,
                new_value=item.quantity,
                actor_id=staff_id,
                note=f"return {record.id}: {prev} -> {new_status}",
            )
            changes.append(ChangeEvent(ENTITY_ITEM, item.id, item.quantity, event_type))

        record.status = new_status
        record.reviewed_at = utcnow()
        record.reviewed_by_staff_id = staff_id
        append_ledger_event(
            event_type="return.reviewed",
            entity_type=ENTITY_RETURN,
            entity_id=record.id,
            new_value=new_status,
            actor_id=staff_id,
            note=f"{prev} -> {new_status}",
        )
        changes.append(ChangeEvent(ENTITY_RETURN, record.id, new_status, "return.reviewed"))

        db.session.commit()
        return record, changes

    record, changes = run_with_retry(_op)
    _publish(changes)
    return record


# =============================================================================
# QUERIES
# =============================================================================

def get_item(item_id: int) -> Item:
    return store.get_item(item_id)


def find_item_by_barcode(barcode: str) -> Item:
    return store.find_item_by_barcode(barcode)


def list_items(*, classification: str | None = None, search: str | None = None) -> list[Item]:
    q = db.session.query(Item)
    if classification:
        q = q.filter(Item.classification == classification)
    if search:
        q = q.filter(Item.name.ilike(f"%{search}%"))
    return q.order_by(Item.name.asc(), Item.id.asc()).all()


def list_disbursements(
    *,
    item_id: int | None = None,
    farmer_id: int | None = None,
    batch_reference: str | None = None,
    limit: int = 200,
) -> list[DisbursementRecord]:
    q = db.session.query(DisbursementRecord)
    if item_id is not None:
        q = q.filter(DisbursementRecord.item_id == item_id)
    if farmer_id is not None:
        q = q.filter(DisbursementRecord.farmer_id == farmer_id)
    if batch_reference is not None:
        q = q.filter(DisbursementRecord.batch_reference == batch_reference)
    return (
        q.order_by(DisbursementRecord.occurred_at.desc(), DisbursementRecord.id.desc())
        .limit(limit)
        .all()
    )


def list_returns(
    *,
    status: str | None = None,
    cluster: str | None = None,
    farmer_id: int | None = None,
) -> list[ReturnRecord]:
    q = db.session.query(ReturnRecord)
    if status is not None:
        q = q.filter(ReturnRecord.status == status)
    if cluster is not None:
        q = q.filter(ReturnRecord.cluster == cluster)
    if farmer_id is not None:
        q = q.filter(ReturnRecord.farmer_id == farmer_id)
    return q.order_by(ReturnRecord.created_at.desc(), ReturnRecord.id.desc()).all()


def get_stock_summary(item_id: int) -> dict:
    """On-hand quantity with disbursed and return-credited totals."""
    item = store.get_item(item_id)

    disbursed = (
        db.session.query(func.coalesce(func.sum(DisbursementRecord.quantity), 0))
        .filter(DisbursementRecord.item_id == item.id)
        .scalar()
    )
    credited = (
        db.session.query(func.coalesce(func.sum(ReturnRecord.quantity), 0))
        .filter(ReturnRecord.item_id == item.id, ReturnRecord.status == RETURN_STATUS_RETURNED)
        .scalar()
    )
    pending_claims = (
        db.session.query(func.count(ReturnRecord.id))
        .filter(ReturnRecord.item_id == item.id, ReturnRecord.status == RETURN_STATUS_PENDING)
        .scalar()
    )

    return {
        "item_id": item.id,
        "name": item.name,
        "quantity_on_hand": item.quantity,
        "total_disbursed": int(disbursed or 0),
        "total_returned": int(credited or 0),
        "pending_return_claims": int(pending_claims or 0),
    }
