from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date


def _money(value) -> str | None:
    if value is None:
        return None
    return f"{Decimal(value):.2f}"


class Order(db.Model):
    """
    A customer's garment-care job.

    quantity and amount are derived totals over the order's existing records;
    order_service.apply_totals() is the only writer. Any change of
    amount is mirrored by an order_pricing_history row.

    Status values must match lifecycle_service.OrderStatus.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_customer_status", "customer_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_date = db.Column(db.Date, nullable=False, index=True)
    reference_no = db.Column(db.String(50), nullable=False, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    delivery_date = db.Column(db.Date, nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, default="Pending", index=True)
    billing_status = db.Column(db.String(20), nullable=False, default="pending", index=True)  # pending, invoiced, paid

    amount = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    is_paid = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_date": to_iso_date(self.order_date),
            "reference_no": self.reference_no,
            "customer_id": self.customer_id,
            "quantity": self.quantity,
            "notes": self.notes,
            "delivery_date": to_iso_date(self.delivery_date),
            "status": self.status,
            "billing_status": self.billing_status,
            "amount": _money(self.amount),
            "is_paid": self.is_paid,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class OrderRecord(db.Model):
    """
    One line of an order: a quantity of garments sharing a wash/process treatment.

    total_price = unit_price * quantity; every change of either price is
    mirrored by an order_record_pricing_history row.
    """
    __tablename__ = "order_records"
    __table_args__ = (
        db.Index("ix_order_records_order_status", "order_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    item_type_id = db.Column(db.Integer, db.ForeignKey("item_types.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    wash_type = db.Column(db.String(50), nullable=False, index=True)
    # Ordered list of process codes (unique, validated on write)
    process_types = db.Column(db.JSON, nullable=False, default=list)
    tracking_number = db.Column(db.String(20), nullable=True, index=True)

    status = db.Column(db.String(20), nullable=False, default="Pending", index=True)

    unit_price = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    total_price = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    is_paid = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    order = db.relationship(
        "Order",
        backref=db.backref("records", lazy=True, passive_deletes=True, order_by="OrderRecord.id"),
    )
    item_type = db.relationship("ItemType")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "item_type_id": self.item_type_id,
            "quantity": self.quantity,
            "wash_type": self.wash_type,
            "process_types": list(self.process_types or []),
            "tracking_number": self.tracking_number,
            "status": self.status,
            "unit_price": _money(self.unit_price),
            "total_price": _money(self.total_price),
            "is_paid": self.is_paid,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class MachineAssignment(db.Model):
    """
    Binds part of a record's quantity to a washing/drying machine pairing.

    order_id duplicates record.order_id for query convenience. The sum of
    assignment quantities for a record never exceeds record.quantity
    (enforced by assignment_service.assign under a write lock).
    """
    __tablename__ = "machine_assignments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    record_id = db.Column(db.Integer, db.ForeignKey("order_records.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_by_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    washing_machine = db.Column(db.String(50), nullable=True)
    drying_machine = db.Column(db.String(50), nullable=True)
    tracking_number = db.Column(db.String(20), nullable=True, index=True)

    status = db.Column(db.String(20), nullable=False, default="In Progress", index=True)
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    record = db.relationship(
        "OrderRecord",
        backref=db.backref("assignments", lazy=True, passive_deletes=True, order_by="MachineAssignment.id"),
    )
    order = db.relationship("Order", backref=db.backref("assignments", lazy=True, passive_deletes=True))
    assigned_by = db.relationship("Employee", backref=db.backref("assignments", lazy=True, passive_deletes=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "record_id": self.record_id,
            "order_id": self.order_id,
            "assigned_by_id": self.assigned_by_id,
            "quantity": self.quantity,
            "washing_machine": self.washing_machine,
            "drying_machine": self.drying_machine,
            "tracking_number": self.tracking_number,
            "status": self.status,
            "assigned_at": to_utc_z(self.assigned_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
