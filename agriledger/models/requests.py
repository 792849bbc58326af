from __future__ import annotations

from ..extensions import db
from agriledger.time_utils import to_utc_z


class ApprovalRequest(db.Model):
    """
    Batch request for items, reviewed by an administrator.

    LIFECYCLE:
    1. pending: lines may be replaced or the request withdrawn
    2. approved / rejected: terminal and immutable

    Approval certifies that stock covered every line at decision time. It does
    not move stock; the decrement happens when goods are disbursed.
    """
    __tablename__ = "item_requests"
    __table_args__ = (
        db.Index("ix_item_requests_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    requester_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)  # pending, approved, rejected

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    decided_by_staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "ApprovalRequestLine",
        backref="request",
        order_by="ApprovalRequestLine.position",
        cascade="all, delete-orphan",
        lazy=True,
    )

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "requester_id": self.requester_id,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "decided_at": to_utc_z(self.decided_at),
            "decided_by_staff_id": self.decided_by_staff_id,
            "version_id": self.version_id,
            "lines": [line.to_dict() for line in self.lines],
        }


class ApprovalRequestLine(db.Model):
    __tablename__ = "item_request_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_item_request_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.Integer, db.ForeignKey("item_requests.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "quantity": self.quantity,
        }
