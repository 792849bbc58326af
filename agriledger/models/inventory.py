from __future__ import annotations

from ..extensions import db
from agriledger.time_utils import to_utc_z


class Item(db.Model):
    """
    A stocked good.

    QUANTITY OWNERSHIP:
    Item.quantity is written only by services/stock_service.py. Routes, the CLI
    and other services read it but never assign it.

    CONCURRENCY:
    version_id is the optimistic lock column. An UPDATE issued from a stale
    read matches zero rows and raises StaleDataError, which the ledger's retry
    loop turns into a fresh read.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_items_quantity_non_negative"),
        db.Index("ix_items_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    classification = db.Column(db.String(64), nullable=True, index=True)  # seeds, fertilizer, tools, ...
    barcode = db.Column(db.String(128), nullable=True, unique=True)
    unit = db.Column(db.String(32), nullable=True)  # sack, kg, piece

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Item id={self.id} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "quantity": self.quantity,
            "classification": self.classification,
            "barcode": self.barcode,
            "unit": self.unit,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class DisbursementRecord(db.Model):
    """
    Goods handed to a farmer by a staff member.

    Created once together with the matching decrement of Item.quantity and
    never deleted. item, farmer, staff and quantity never change.

    CLAIM COUNTER:
    claimed_quantity is the sum of this disbursement's return claims that are
    not rejected. It is written only by stock_service.create_return and
    stock_service.set_return_status, under version_id, so two claims racing
    for the same units cannot both pass the cap.
    """
    __tablename__ = "disbursements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_disbursements_quantity_positive"),
        db.CheckConstraint(
            "claimed_quantity >= 0 AND claimed_quantity <= quantity",
            name="ck_disbursements_claimed_within_quantity",
        ),
        db.Index("ix_disbursements_item_occurred", "item_id", "occurred_at"),
        db.Index("ix_disbursements_farmer_occurred", "farmer_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    farmer_id = db.Column(db.Integer, db.ForeignKey("farmers.id"), nullable=False, index=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    claimed_quantity = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    # Rows saved together from one scan session share this reference
    batch_reference = db.Column(db.String(64), nullable=True, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    item = db.relationship("Item")
    farmer = db.relationship("Farmer")
    staff = db.relationship("Staff")

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def claimable_quantity(self) -> int:
        return self.quantity - self.claimed_quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "farmer_id": self.farmer_id,
            "staff_id": self.staff_id,
            "quantity": self.quantity,
            "claimed_quantity": self.claimed_quantity,
            "batch_reference": self.batch_reference,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class ReturnRecord(db.Model):
    """
    A farmer's claim that previously disbursed goods are coming back.

    LIFECYCLE:
    1. pending: claim filed (no stock effect)
    2. returned: goods are back on the shelf (+quantity)
    3. on-hold / rejected: claim held or denied; if it had been credited,
       the credit is reversed (-quantity)

    Transitions may repeat (returned -> on-hold -> returned). Each one is
    evaluated against the status it replaces, never re-applied blindly.
    """
    __tablename__ = "item_returns"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_item_returns_quantity_positive"),
        db.Index("ix_item_returns_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    disbursement_id = db.Column(db.Integer, db.ForeignKey("disbursements.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    farmer_id = db.Column(db.Integer, db.ForeignKey("farmers.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)  # pending, returned, on-hold, rejected

    # Grouping reference (farmer cluster / cohort that filed the claim)
    cluster = db.Column(db.String(128), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reviewed_by_staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    disbursement = db.relationship("DisbursementRecord", backref=db.backref("returns", lazy=True))
    item = db.relationship("Item")

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "disbursement_id": self.disbursement_id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "farmer_id": self.farmer_id,
            "quantity": self.quantity,
            "reason": self.reason,
            "status": self.status,
            "cluster": self.cluster,
            "created_at": to_utc_z(self.created_at),
            "reviewed_at": to_utc_z(self.reviewed_at),
            "reviewed_by_staff_id": self.reviewed_by_staff_id,
            "version_id": self.version_id,
        }
