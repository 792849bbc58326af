from __future__ import annotations

from ..extensions import db
from agriledger.time_utils import to_utc_z


class Farmer(db.Model):
    """
    Farmer reference row.

    Profile CRUD lives outside this service; the ledger only needs a stable id
    to attach disbursements, returns and loans to, plus the QR reference the
    scanner reads.
    """
    __tablename__ = "farmers"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    reference_number = db.Column(db.String(64), nullable=False, unique=True)
    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=False)
    cluster = db.Column(db.String(128), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Farmer id={self.id} ref={self.reference_number!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reference_number": self.reference_number,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "cluster": self.cluster,
            "created_at": to_utc_z(self.created_at),
        }


class Staff(db.Model):
    __tablename__ = "staff"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(32), nullable=False, default="staff")  # staff, chairman, admin

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Staff id={self.id} name={self.name!r} role={self.role!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "created_at": to_utc_z(self.created_at),
        }
