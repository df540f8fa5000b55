# Overview: Invoice aggregate: billing of orders with frozen record prices, payment and status lifecycle.

"""
Invoice Service

WHY: An invoice is a legal snapshot. The records it bills are copied into
invoice_records at creation time; later price edits or deletion of the live
records never change an issued invoice.

DESIGN PRINCIPLES:
- A record is billed at most once across non-cancelled invoices
- subtotal is the sum of the frozen record totals; tax and total are derived
- Deleting or cancelling an invoice never touches record or order prices
- Order billing_status follows its invoices (pending -> invoiced -> paid)
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app
from sqlalchemy import select

from ..extensions import db
from ..models import Customer, Invoice, InvoiceRecord, Order, OrderRecord
from ..time_utils import today as utc_today
from ..validation import (
    CENT,
    quantize_money,
    to_code,
    to_date,
    to_id_list,
    to_non_negative_int,
    to_tax_rate,
)
from . import lifecycle_service
from .lifecycle_service import INVOICE, BillingStatus, InvoiceStatus, RecordStatus
from .concurrency import begin_write, lock_for_update, run_with_retry
from .document_service import next_invoice_number
from .errors import (
    AlreadyPaid,
    DuplicateReference,
    NoBillableRecords,
    NotFound,
    ValidationError,
)


# =============================================================================
# TAX
# =============================================================================

def compute_tax(subtotal: Decimal, tax_rate: Decimal) -> tuple[Decimal, Decimal]:
    """
    Return (tax_amount, total) for a subtotal.

    tax_amount = round_half_up(subtotal * tax_rate, 2); total = subtotal + tax_amount.
    """
    tax_amount = (Decimal(subtotal) * Decimal(tax_rate)).quantize(CENT, rounding=ROUND_HALF_UP)
    return tax_amount, quantize_money(Decimal(subtotal) + tax_amount)


# =============================================================================
# QUERIES
# =============================================================================

def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFound("Invoice", invoice_id)
    return invoice


def _get_invoice_locked(invoice_id: int) -> Invoice:
    invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
    if invoice is None:
        raise NotFound("Invoice", invoice_id)
    return invoice


def list_invoices(
    customer_id: int | None = None,
    status: str | None = None,
    limit: int = 200,
) -> list[Invoice]:
    q = db.session.query(Invoice)
    if customer_id is not None:
        q = q.filter_by(customer_id=customer_id)
    if status is not None:
        q = q.filter_by(status=lifecycle_service.validate_status(INVOICE, status).value)
    return q.order_by(Invoice.issue_date.desc(), Invoice.id.desc()).limit(limit).all()


def _live_billed_record_ids(exclude_invoice_id: int | None = None):
    """Subquery of record ids already on a non-cancelled invoice."""
    stmt = (
        select(InvoiceRecord.record_id)
        .join(Invoice, Invoice.id == InvoiceRecord.invoice_id)
        .where(Invoice.status != InvoiceStatus.CANCELLED.value)
    )
    if exclude_invoice_id is not None:
        stmt = stmt.where(Invoice.id != exclude_invoice_id)
    return stmt


def _release_orders(order_ids, *, exclude_invoice_id: int) -> list[int]:
    """
    Orders no longer covered by any live invoice go back to billing_status pending.

    Paid orders keep their status. Runs inside the caller's transaction.
    """
    released = []
    for order_id in sorted(set(order_ids)):
        order = db.session.get(Order, order_id)
        if order is None or order.billing_status != BillingStatus.INVOICED.value:
            continue
        still_billed = (
            db.session.query(InvoiceRecord.id)
            .join(Invoice, Invoice.id == InvoiceRecord.invoice_id)
            .filter(
                InvoiceRecord.order_id == order_id,
                Invoice.id != exclude_invoice_id,
                Invoice.status != InvoiceStatus.CANCELLED.value,
            )
            .first()
        )
        if still_billed is None:
            order.billing_status = BillingStatus.PENDING.value
            released.append(order_id)
    db.session.flush()
    return released


# =============================================================================
# INVOICE CREATION
# =============================================================================

def create_invoice(
    customer_id: int,
    order_ids,
    tax_rate=None,
    payment_terms=None,
    *,
    due_date=None,
    issue_date=None,
    invoice_number: str | None = None,
    notes: str | None = None,
) -> Invoice:
    """
    Bill the unbilled, non-cancelled records of a customer's orders.

    Each billable record is copied into an invoice record with its current
    quantity and prices. tax_rate and payment_terms default to the app's
    DEFAULT_TAX_RATE / DEFAULT_PAYMENT_TERMS_DAYS. The invoice number is
    allocated per issue year (INV-2026-0001) when omitted.

    Raises:
        NotFound: customer or an order does not exist
        ValidationError: order of another customer, bad ids, rate or dates
        DuplicateReference: invoice_number already used
        NoBillableRecords: nothing left to bill on the given orders
    """
    ids = to_id_list(order_ids, "order_ids")
    config = current_app.config
    rate = to_tax_rate(tax_rate if tax_rate is not None else config["DEFAULT_TAX_RATE"])
    terms = to_non_negative_int(
        payment_terms if payment_terms is not None else config["DEFAULT_PAYMENT_TERMS_DAYS"],
        "payment_terms",
    )
    issued = to_date(issue_date, "issue_date", required=False) or utc_today()
    due = to_date(due_date, "due_date", required=False) or issued + timedelta(days=terms)
    if due < issued:
        raise ValidationError("due_date cannot be before issue_date")
    number = to_code(invoice_number, "invoice_number") if invoice_number is not None else None

    def _op():
        begin_write()
        customer = db.session.get(Customer, customer_id)
        if customer is None:
            raise NotFound("Customer", customer_id)

        orders = {
            o.id: o
            for o in lock_for_update(db.session.query(Order).filter(Order.id.in_(ids))).all()
        }
        for order_id in ids:
            order = orders.get(order_id)
            if order is None:
                raise NotFound("Order", order_id)
            if order.customer_id != customer.id:
                raise ValidationError(
                    f"Order {order_id} does not belong to customer {customer.id}",
                    details={"order_id": order_id, "customer_id": order.customer_id},
                )

        billable = (
            db.session.query(OrderRecord)
            .filter(
                OrderRecord.order_id.in_(ids),
                OrderRecord.status != RecordStatus.CANCELLED.value,
                OrderRecord.id.not_in(_live_billed_record_ids()),
            )
            .order_by(OrderRecord.order_id, OrderRecord.id)
            .all()
        )
        if not billable:
            raise NoBillableRecords(
                "No billable records on the requested orders",
                details={"order_ids": ids},
            )

        ref = number
        if ref is not None:
            if db.session.query(Invoice.id).filter_by(invoice_number=ref).first():
                raise DuplicateReference(
                    f"Invoice number '{ref}' already exists",
                    details={"invoice_number": ref},
                )
        else:
            ref = next_invoice_number(issued.year)
            while db.session.query(Invoice.id).filter_by(invoice_number=ref).first():
                ref = next_invoice_number(issued.year)

        subtotal = quantize_money(sum((Decimal(r.total_price) for r in billable), Decimal("0")))
        tax_amount, total = compute_tax(subtotal, rate)

        invoice = Invoice(
            invoice_number=ref,
            customer_id=customer.id,
            customer_name=customer.display_name,
            order_ids=ids,
            subtotal=subtotal,
            tax_rate=rate,
            tax_amount=tax_amount,
            total=total,
            payment_terms=terms,
            issue_date=issued,
            due_date=due,
            status=InvoiceStatus.DRAFT.value,
            notes=notes,
        )
        db.session.add(invoice)
        db.session.flush()

        for record in billable:
            db.session.add(InvoiceRecord(
                invoice_id=invoice.id,
                order_id=record.order_id,
                record_id=record.id,
                quantity=record.quantity,
                unit_price=record.unit_price,
                total_price=record.total_price,
            ))

        billed_orders = {r.order_id for r in billable}
        for order_id in billed_orders:
            order = orders[order_id]
            if order.billing_status == BillingStatus.PENDING.value:
                order.billing_status = BillingStatus.INVOICED.value

        db.session.commit()
        current_app.logger.info(
            "Created invoice %s for customer %s: %s records, total %s",
            invoice.invoice_number, customer.id, len(billable), invoice.total,
        )
        return invoice

    return run_with_retry(_op)


# =============================================================================
# LIFECYCLE
# =============================================================================

def set_status(invoice_id: int, new_status) -> Invoice:
    """
    Send, flag overdue or cancel an invoice.

    Payment goes through mark_paid() so the payment details are recorded.
    Cancelling releases the invoice's orders for billing again.
    """
    target = lifecycle_service.validate_status(INVOICE, new_status)
    if target == InvoiceStatus.PAID:
        raise ValidationError("Use mark_paid to record a payment")

    def _op():
        begin_write()
        invoice = _get_invoice_locked(invoice_id)
        lifecycle_service.require_transition(INVOICE, invoice.id, invoice.status, target)
        previous = invoice.status
        invoice.status = target.value

        if target == InvoiceStatus.CANCELLED:
            order_ids = [r.order_id for r in invoice.records]
            _release_orders(order_ids, exclude_invoice_id=invoice.id)

        db.session.commit()
        current_app.logger.info(
            "Invoice %s status %s -> %s", invoice.invoice_number, previous, invoice.status
        )
        return invoice

    return run_with_retry(_op)


def mark_paid(
    invoice_id: int,
    payment_date=None,
    method: str | None = None,
    reference: str | None = None,
) -> Invoice:
    """
    Record payment of an invoice.

    The billed records are flagged is_paid; an order whose non-cancelled
    records are all paid becomes is_paid with billing_status paid.

    Raises:
        AlreadyPaid: invoice is already paid
        InvalidTransition: invoice is cancelled
    """
    paid_on = to_date(payment_date, "payment_date", required=False) or utc_today()

    def _op():
        begin_write()
        invoice = _get_invoice_locked(invoice_id)
        if invoice.status == InvoiceStatus.PAID.value:
            raise AlreadyPaid(
                f"Invoice {invoice.invoice_number} is already paid",
                details={"payment_date": invoice.payment_date.isoformat() if invoice.payment_date else None},
            )
        lifecycle_service.require_transition(INVOICE, invoice.id, invoice.status, InvoiceStatus.PAID)

        invoice.status = InvoiceStatus.PAID.value
        invoice.payment_date = paid_on
        invoice.payment_method = method
        invoice.payment_reference = reference

        record_ids = [r.record_id for r in invoice.records]
        order_ids = sorted({r.order_id for r in invoice.records})
        if record_ids:
            for record in db.session.query(OrderRecord).filter(OrderRecord.id.in_(record_ids)).all():
                record.is_paid = True
        db.session.flush()

        for order in db.session.query(Order).filter(Order.id.in_(order_ids)).all():
            unpaid = (
                db.session.query(OrderRecord.id)
                .filter(
                    OrderRecord.order_id == order.id,
                    OrderRecord.status != RecordStatus.CANCELLED.value,
                    OrderRecord.is_paid.is_(False),
                )
                .first()
            )
            if unpaid is None:
                order.is_paid = True
                order.billing_status = BillingStatus.PAID.value

        db.session.commit()
        current_app.logger.info(
            "Invoice %s paid on %s (%s)", invoice.invoice_number, paid_on, method or "unspecified"
        )
        return invoice

    return run_with_retry(_op)


def mark_overdue(today: date | None = None) -> list[Invoice]:
    """Flag every sent invoice whose due date has passed."""
    as_of = to_date(today, "today", required=False) or utc_today()

    def _op():
        begin_write()
        invoices = (
            lock_for_update(
                db.session.query(Invoice).filter(
                    Invoice.status == InvoiceStatus.SENT.value,
                    Invoice.due_date < as_of,
                )
            )
            .order_by(Invoice.id)
            .all()
        )
        for invoice in invoices:
            invoice.status = InvoiceStatus.OVERDUE.value
        db.session.commit()
        if invoices:
            current_app.logger.info("Marked %s invoice(s) overdue as of %s", len(invoices), as_of)
        return invoices

    return run_with_retry(_op)


def delete_invoice(invoice_id: int) -> dict:
    """
    Delete an invoice and its frozen records.

    Record and order prices are untouched; orders left without a live
    invoice return to billing_status pending.
    """
    def _op():
        begin_write()
        invoice = _get_invoice_locked(invoice_id)
        invoice_number = invoice.invoice_number
        order_ids = [r.order_id for r in invoice.records]

        records_deleted = (
            db.session.query(InvoiceRecord)
            .filter_by(invoice_id=invoice_id)
            .delete(synchronize_session="fetch")
        )
        db.session.query(Invoice).filter_by(id=invoice_id).delete(synchronize_session="fetch")
        released = _release_orders(order_ids, exclude_invoice_id=invoice_id)

        db.session.commit()
        current_app.logger.info(
            "Deleted invoice %s (%s records), released orders %s",
            invoice_number, records_deleted, released,
        )
        return {
            "invoice_id": invoice_id,
            "invoice_number": invoice_number,
            "records_deleted": records_deleted,
            "orders_released": released,
        }

    return run_with_retry(_op)
