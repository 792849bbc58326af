# Overview: Request Approval Gateway; batch item requests checked against live stock.

"""
Item request lifecycle:
1. pending: submitted by a requester (chairman); lines replaceable, may be
   withdrawn
2. approved: every line was covered by on-hand stock at decision time
3. rejected: declined; no stock check

approved and rejected are terminal. Approval certifies that disbursement may
proceed; it never moves stock. Stock is checked at decision time, not at
submission time, because it may change while the request waits for review.
"""

from __future__ import annotations

from ..extensions import db, events
from ..errors import InsufficientStock, RequestClosed, ValidationError
from ..models import ApprovalRequest, ApprovalRequestLine
from agriledger.time_utils import utcnow
from . import store
from .concurrency import run_with_retry
from .ledger_service import append_ledger_event
from .notifications import ChangeEvent, ENTITY_REQUEST
from .stock_service import normalize_lines, sum_lines


REQUEST_STATUS_PENDING = "pending"
REQUEST_STATUS_APPROVED = "approved"
REQUEST_STATUS_REJECTED = "rejected"

DECISIONS = frozenset({REQUEST_STATUS_APPROVED, REQUEST_STATUS_REJECTED})


def _ensure_pending(request: ApprovalRequest) -> None:
    if request.status != REQUEST_STATUS_PENDING:
        raise RequestClosed(
            f"Request {request.id} is already {request.status}",
            details={"request_id": request.id, "status": request.status},
        )


def _build_lines(request: ApprovalRequest, lines: list[tuple[int, int]]) -> None:
    for item_id, _ in lines:
        store.get_item(item_id)
    request.lines = [
        ApprovalRequestLine(position=position, item_id=item_id, quantity=quantity)
        for position, (item_id, quantity) in enumerate(lines)
    ]


def submit(requester_id: int, lines) -> ApprovalRequest:
    """Create a pending request. No stock check happens here."""
    normalized = normalize_lines(lines)

    def _op():
        store.get_staff(requester_id)

        request = ApprovalRequest(
            requester_id=requester_id,
            status=REQUEST_STATUS_PENDING,
            created_at=utcnow(),
        )
        _build_lines(request, normalized)
        db.session.add(request)
        db.session.flush()

        append_ledger_event(
            event_type="request.submitted",
            entity_type=ENTITY_REQUEST,
            entity_id=request.id,
            new_value=REQUEST_STATUS_PENDING,
            actor_id=requester_id,
            note=f"{len(normalized)} lines",
        )
        request_id = request.id
        db.session.commit()
        return request, ChangeEvent(ENTITY_REQUEST, request_id, REQUEST_STATUS_PENDING, "request.submitted")

    request, change = run_with_retry(_op)
    events.publish(change)
    return request


def edit_lines(request_id: int, lines) -> ApprovalRequest:
    """Replace the line list wholesale. Only while pending."""
    normalized = normalize_lines(lines)

    def _op():
        request = store.get_request(request_id, lock=True)
        _ensure_pending(request)

        _build_lines(request, normalized)
        # Touch the parent row so a concurrent decide() sees a version bump
        request.updated_at = utcnow()

        append_ledger_event(
            event_type="request.edited",
            entity_type=ENTITY_REQUEST,
            entity_id=request.id,
            new_value=REQUEST_STATUS_PENDING,
            actor_id=request.requester_id,
            note=f"{len(normalized)} lines",
        )
        db.session.commit()
        return request, ChangeEvent(ENTITY_REQUEST, request_id, REQUEST_STATUS_PENDING, "request.edited")

    request, change = run_with_retry(_op)
    events.publish(change)
    return request


def decide(request_id: int, decision: str, staff_id: int | None = None) -> ApprovalRequest:
    """
    Approve or reject a pending request.

    Approval re-checks each line against current stock; if any line is short
    the whole decision fails with InsufficientStock and the request stays
    pending.
    """
    if decision not in DECISIONS:
        raise ValidationError(
            "decision must be approved or rejected",
            details={"decision": decision},
        )

    def _op():
        request = store.get_request(request_id, lock=True)
        _ensure_pending(request)
        if staff_id is not None:
            store.get_staff(staff_id)

        if decision == REQUEST_STATUS_APPROVED:
            totals = sum_lines([(line.item_id, line.quantity) for line in request.lines])
            # Items locked in ascending id order, same as disburse_batch
            items = store.get_items_locked(totals.keys())
            shortages = []
            for item_id, requested in totals.items():
                item = items[item_id]
                if item.quantity < requested:
                    shortages.append({
                        "item_id": item.id,
                        "name": item.name,
                        "requested": requested,
                        "available": item.quantity,
                    })
            if shortages:
                raise InsufficientStock(
                    f"Request {request.id} cannot be approved: {len(shortages)} line(s) exceed stock",
                    shortages=shortages,
                )

        request.status = decision
        request.decided_at = utcnow()
        request.decided_by_staff_id = staff_id

        append_ledger_event(
            event_type=f"request.{decision}",
            entity_type=ENTITY_REQUEST,
            entity_id=request.id,
            new_value=decision,
            actor_id=staff_id,
        )
        db.session.commit()
        return request, ChangeEvent(ENTITY_REQUEST, request_id, decision, f"request.{decision}")

    request, change = run_with_retry(_op)
    events.publish(change)
    return request


def cancel(request_id: int) -> None:
    """Withdraw a pending request; the request and its lines are removed."""
    def _op():
        request = store.get_request(request_id, lock=True)
        _ensure_pending(request)

        append_ledger_event(
            event_type="request.cancelled",
            entity_type=ENTITY_REQUEST,
            entity_id=request.id,
            actor_id=request.requester_id,
        )
        db.session.delete(request)
        db.session.commit()

    run_with_retry(_op)
    events.publish(ChangeEvent(ENTITY_REQUEST, request_id, None, "request.cancelled"))


# =============================================================================
# QUERIES
# =============================================================================

def get_request(request_id: int) -> ApprovalRequest:
    return store.get_request(request_id)


def list_requests(*, status: str | None = None, requester_id: int | None = None) -> list[ApprovalRequest]:
    q = db.session.query(ApprovalRequest)
    if status is not None:
        q = q.filter(ApprovalRequest.status == status)
    if requester_id is not None:
        q = q.filter(ApprovalRequest.requester_id == requester_id)
    return q.order_by(ApprovalRequest.created_at.desc(), ApprovalRequest.id.desc()).all()
