from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..time_utils import to_utc_z


class OrderPricingHistory(db.Model):
    """
    Append-only snapshots of an order's amount.

    IMMUTABLE: Rows are never updated or deleted. No FK to orders so the
    audit trail outlives the order itself.
    """
    __tablename__ = "order_pricing_history"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, nullable=False, index=True)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_by = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "total_price": f"{Decimal(self.total_price):.2f}",
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
            "notes": self.notes,
        }


class OrderRecordPricingHistory(db.Model):
    """Append-only snapshots of an order record's unit and total price."""
    __tablename__ = "order_record_pricing_history"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, nullable=False, index=True)
    record_id = db.Column(db.Integer, nullable=False, index=True)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_by = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "record_id": self.record_id,
            "unit_price": f"{Decimal(self.unit_price):.2f}",
            "total_price": f"{Decimal(self.total_price):.2f}",
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
            "notes": self.notes,
        }
