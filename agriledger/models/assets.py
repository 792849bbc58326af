from __future__ import annotations

from ..extensions import db
from agriledger.time_utils import to_utc_z


class Asset(db.Model):
    """
    Reusable machinery or tool lent to farmers.

    AVAILABILITY OWNERSHIP:
    is_available is written only by services/lending_service.py and is false
    exactly when an open AssetLoanRecord exists for the asset.
    """
    __tablename__ = "assets"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    reference_number = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)

    # Physical condition tag recorded at intake and on each return
    condition = db.Column(db.String(32), nullable=False, default="okay")

    is_available = db.Column(db.Boolean, nullable=False, default=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Asset id={self.id} ref={self.reference_number!r} available={self.is_available}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reference_number": self.reference_number,
            "name": self.name,
            "condition": self.condition,
            "is_available": self.is_available,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class AssetLoanRecord(db.Model):
    """One lending episode. Open while actual_return is NULL."""
    __tablename__ = "asset_loans"
    __table_args__ = (
        db.Index("ix_asset_loans_asset_open", "asset_id", "actual_return"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    asset_id = db.Column(db.Integer, db.ForeignKey("assets.id"), nullable=False, index=True)
    farmer_id = db.Column(db.Integer, db.ForeignKey("farmers.id"), nullable=False, index=True)

    date_borrowed = db.Column(db.DateTime(timezone=True), nullable=False)
    scheduled_return = db.Column(db.DateTime(timezone=True), nullable=False)
    actual_return = db.Column(db.DateTime(timezone=True), nullable=True)

    remarks = db.Column(db.Text, nullable=True)

    asset = db.relationship("Asset", backref=db.backref("loans", lazy=True))
    farmer = db.relationship("Farmer")

    @property
    def is_open(self) -> bool:
        return self.actual_return is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "asset_id": self.asset_id,
            "asset_reference": self.asset.reference_number if self.asset else None,
            "farmer_id": self.farmer_id,
            "date_borrowed": to_utc_z(self.date_borrowed),
            "scheduled_return": to_utc_z(self.scheduled_return),
            "actual_return": to_utc_z(self.actual_return),
            "remarks": self.remarks,
            "is_open": self.is_open,
        }
