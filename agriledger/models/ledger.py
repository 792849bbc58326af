from __future__ import annotations

from ..extensions import db
from agriledger.time_utils import to_utc_z


class LedgerEvent(db.Model):
    """
    Append-only audit row.

    Written in the same transaction as the mutation it records; never updated
    or deleted. occurred_at is business time, created_at is system time.
    """
    __tablename__ = "ledger_events"
    __table_args__ = (
        db.Index("ix_ledger_events_entity", "entity_type", "entity_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_type = db.Column(db.String(64), nullable=False, index=True)  # e.g. stock.disbursed
    entity_type = db.Column(db.String(32), nullable=False)  # item, asset, item_return, item_request
    entity_id = db.Column(db.Integer, nullable=False)

    # Signed change to Item.quantity, when the event moved stock
    quantity_delta = db.Column(db.Integer, nullable=True)
    # New quantity / availability / status rendered as text
    new_value = db.Column(db.String(64), nullable=True)

    actor_id = db.Column(db.Integer, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    note = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "quantity_delta": self.quantity_delta,
            "new_value": self.new_value,
            "actor_id": self.actor_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
            "note": self.note,
        }
