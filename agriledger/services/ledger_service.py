# Overview: Append-only audit trail written alongside every stock and asset mutation.

from __future__ import annotations

from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import LedgerEvent
from agriledger.time_utils import utcnow
"""
Agri Ledger audit invariants (authoritative)

- Append-only: no updates or deletes of existing events.
- No domain logic here; callers decide what happened and record it.
- Events are written inside the same DB transaction as the mutation they
  record, so a rolled-back command leaves no audit row behind.
- occurred_at is business time; created_at is system time (DB default).
"""


def append_ledger_event(
    *,
    event_type: str,
    entity_type: str,
    entity_id: int,
    quantity_delta: int | None = None,
    new_value=None,
    actor_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
) -> LedgerEvent:
    ev = LedgerEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        quantity_delta=quantity_delta,
        new_value=None if new_value is None else str(new_value),
        actor_id=actor_id,
        occurred_at=occurred_at or utcnow(),
        note=note[:255] if note else None,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_ledger_events(
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    limit: int = 200,
) -> list[LedgerEvent]:
    q = db.session.query(LedgerEvent)
    if entity_type is not None:
        q = q.filter(LedgerEvent.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(LedgerEvent.entity_id == entity_id)
    return q.order_by(LedgerEvent.occurred_at.desc(), LedgerEvent.id.desc()).limit(limit).all()
