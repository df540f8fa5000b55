from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date


def _money(value) -> str | None:
    if value is None:
        return None
    return f"{Decimal(value):.2f}"


class Invoice(db.Model):
    """
    Billable document over one or more orders.

    tax_amount and total are always derived from subtotal and tax_rate
    (invoice_service computes them together); they are stored for reporting.
    Status values must match lifecycle_service.InvoiceStatus.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_status_due", "status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(50), nullable=False, unique=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    # Ordered list of billed order ids
    order_ids = db.Column(db.JSON, nullable=False, default=list)

    subtotal = db.Column(db.Numeric(10, 2), nullable=False)
    tax_rate = db.Column(db.Numeric(5, 4), nullable=False)
    tax_amount = db.Column(db.Numeric(10, 2), nullable=False)
    total = db.Column(db.Numeric(10, 2), nullable=False)

    payment_terms = db.Column(db.Integer, nullable=False)
    issue_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, default="draft", index=True)
    payment_date = db.Column(db.Date, nullable=True)
    payment_method = db.Column(db.String(50), nullable=True)
    payment_reference = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))

    def to_dict(self, include_records: bool = False) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "order_ids": list(self.order_ids or []),
            "subtotal": _money(self.subtotal),
            "tax_rate": f"{Decimal(self.tax_rate):.4f}",
            "tax_amount": _money(self.tax_amount),
            "total": _money(self.total),
            "payment_terms": self.payment_terms,
            "issue_date": to_iso_date(self.issue_date),
            "due_date": to_iso_date(self.due_date),
            "status": self.status,
            "payment_date": to_iso_date(self.payment_date),
            "payment_method": self.payment_method,
            "payment_reference": self.payment_reference,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_records:
            data["records"] = [r.to_dict() for r in self.records]
        return data


class InvoiceRecord(db.Model):
    """
    Billing-time copy of an order record's price.

    order_id/record_id are plain references (no FK): the frozen copy must not
    follow later edits or deletion of the live record.
    """
    __tablename__ = "invoice_records"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = db.Column(db.Integer, nullable=False, index=True)
    record_id = db.Column(db.Integer, nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship(
        "Invoice",
        backref=db.backref("records", lazy=True, passive_deletes=True, order_by="InvoiceRecord.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "order_id": self.order_id,
            "record_id": self.record_id,
            "quantity": self.quantity,
            "unit_price": _money(self.unit_price),
            "total_price": _money(self.total_price),
            "created_at": to_utc_z(self.created_at),
        }
