"""Invoice aggregate: frozen record prices, tax, payment and billing status of orders."""

from datetime import date
from decimal import Decimal

import pytest

from garmentcare.extensions import db
from garmentcare.models import Invoice, InvoiceRecord, Order
from garmentcare.services import invoice_service, order_service, record_service
from garmentcare.services.errors import (
    AlreadyPaid,
    DuplicateReference,
    InvalidTransition,
    NoBillableRecords,
    NotFound,
    ValidationError,
)


@pytest.fixture
def hundred_order(db_session, customer):
    """Order worth exactly 100.00 (20 x 5.00)."""
    order = order_service.create_order(customer.id, "2026-02-01", "2026-02-03")
    record_service.add_record(
        order.id, quantity=20, wash_type="regular", process_types=["wash"], unit_price="5.00"
    )
    return order


def _invoice(customer, order_ids, **kwargs):
    kwargs.setdefault("tax_rate", "0.0800")
    kwargs.setdefault("issue_date", "2026-02-05")
    return invoice_service.create_invoice(customer.id, order_ids, **kwargs)


class TestComputeTax:
    def test_example(self):
        assert invoice_service.compute_tax(Decimal("100.00"), Decimal("0.0800")) == (
            Decimal("8.00"), Decimal("108.00"),
        )

    def test_half_up(self):
        # 10.05 * 0.05 = 0.5025 -> 0.50 ; 10.10 * 0.05 = 0.505 -> 0.51
        assert invoice_service.compute_tax(Decimal("10.05"), Decimal("0.05"))[0] == Decimal("0.50")
        assert invoice_service.compute_tax(Decimal("10.10"), Decimal("0.05"))[0] == Decimal("0.51")


class TestCreateInvoice:
    def test_totals_and_number(self, db_session, customer, hundred_order):
        invoice = _invoice(customer, [hundred_order.id], payment_terms=14)

        assert invoice.invoice_number == "INV-2026-0001"
        assert invoice.status == "draft"
        assert invoice.customer_name == "Asha Rao"
        assert Decimal(invoice.subtotal) == Decimal("100.00")
        assert Decimal(invoice.tax_amount) == Decimal("8.00")
        assert Decimal(invoice.total) == Decimal("108.00")
        assert invoice.due_date == date(2026, 2, 19)
        assert invoice.order_ids == [hundred_order.id]
        assert order_service.get_order(hundred_order.id).billing_status == "invoiced"

    def test_defaults_from_config(self, db_session, customer, hundred_order):
        invoice = invoice_service.create_invoice(customer.id, [hundred_order.id], issue_date="2026-03-01")

        assert Decimal(invoice.tax_rate) == Decimal("0.1000")
        assert invoice.payment_terms == 30
        assert invoice.due_date == date(2026, 3, 31)

    def test_prices_are_frozen(self, db_session, customer, hundred_order):
        invoice = _invoice(customer, [hundred_order.id])
        [record] = order_service.get_order(hundred_order.id).records

        record_service.set_price(record.id, "9.99")

        [line] = invoice_service.get_invoice(invoice.id).records
        assert Decimal(line.unit_price) == Decimal("5.00")
        assert Decimal(line.total_price) == Decimal("100.00")
        assert Decimal(invoice_service.get_invoice(invoice.id).subtotal) == Decimal("100.00")

    def test_frozen_copy_survives_record_deletion(self, db_session, customer, hundred_order):
        invoice = _invoice(customer, [hundred_order.id])
        order_service.delete_order(hundred_order.id)

        assert db.session.query(InvoiceRecord).filter_by(invoice_id=invoice.id).count() == 1

    def test_record_is_not_billed_twice(self, db_session, customer, hundred_order):
        _invoice(customer, [hundred_order.id])
        with pytest.raises(NoBillableRecords):
            _invoice(customer, [hundred_order.id])
        assert db.session.query(Invoice).count() == 1

    def test_new_records_are_billable_later(self, db_session, customer, hundred_order):
        _invoice(customer, [hundred_order.id])
        record_service.add_record(
            hundred_order.id, quantity=1, wash_type="dry", process_types=["press"], unit_price="3.00"
        )

        second = _invoice(customer, [hundred_order.id])
        assert Decimal(second.subtotal) == Decimal("3.00")
        assert second.invoice_number == "INV-2026-0002"

    def test_cancelled_records_are_not_billed(self, db_session, customer, order, priced_record):
        record_service.set_status(priced_record.id, "Cancelled")
        with pytest.raises(NoBillableRecords):
            _invoice(customer, [order.id])

    def test_order_of_other_customer(self, db_session, customer, other_customer, hundred_order):
        with pytest.raises(ValidationError):
            _invoice(other_customer, [hundred_order.id])

    def test_missing_order(self, db_session, customer):
        with pytest.raises(NotFound):
            _invoice(customer, [404])

    def test_empty_and_duplicate_order_ids(self, db_session, customer, hundred_order):
        with pytest.raises(ValidationError):
            _invoice(customer, [])
        with pytest.raises(ValidationError):
            _invoice(customer, [hundred_order.id, hundred_order.id])

    def test_duplicate_invoice_number(self, db_session, customer, hundred_order, order, priced_record):
        _invoice(customer, [hundred_order.id], invoice_number="INV-X")
        with pytest.raises(DuplicateReference):
            _invoice(customer, [order.id], invoice_number="INV-X")

    def test_due_date_before_issue_date(self, db_session, customer, hundred_order):
        with pytest.raises(ValidationError):
            _invoice(customer, [hundred_order.id], due_date="2026-01-01")


class TestPayment:
    def test_mark_paid(self, db_session, customer, hundred_order):
        invoice = _invoice(customer, [hundred_order.id])

        invoice = invoice_service.mark_paid(invoice.id, "2026-02-10", method="cash", reference="R-1")

        assert invoice.status == "paid"
        assert invoice.payment_date == date(2026, 2, 10)
        order = order_service.get_order(hundred_order.id)
        assert order.is_paid
        assert order.billing_status == "paid"
        assert all(r.is_paid for r in order.records)

    def test_already_paid(self, db_session, customer, hundred_order):
        invoice = _invoice(customer, [hundred_order.id])
        invoice_service.mark_paid(invoice.id)

        with pytest.raises(AlreadyPaid):
            invoice_service.mark_paid(invoice.id)

    def test_cancelled_invoice_cannot_be_paid(self, db_session, customer, hundred_order):
        invoice = _invoice(customer, [hundred_order.id])
        invoice_service.set_status(invoice.id, "cancelled")

        with pytest.raises(InvalidTransition):
            invoice_service.mark_paid(invoice.id)


class TestInvoiceStatus:
    def test_send_then_overdue(self, db_session, customer, hundred_order):
        invoice = _invoice(customer, [hundred_order.id], payment_terms=10)
        invoice_service.set_status(invoice.id, "sent")

        flagged = invoice_service.mark_overdue(date(2026, 2, 16))

        assert [i.id for i in flagged] == [invoice.id]
        assert invoice_service.get_invoice(invoice.id).status == "overdue"

    def test_mark_overdue_ignores_drafts_and_not_yet_due(self, db_session, customer, hundred_order):
        invoice = _invoice(customer, [hundred_order.id], payment_terms=10)

        assert invoice_service.mark_overdue(date(2026, 3, 1)) == []
        invoice_service.set_status(invoice.id, "sent")
        assert invoice_service.mark_overdue(date(2026, 2, 15)) == []

    def test_paid_only_through_mark_paid(self, db_session, customer, hundred_order):
        invoice = _invoice(customer, [hundred_order.id])
        with pytest.raises(ValidationError):
            invoice_service.set_status(invoice.id, "paid")

    def test_cancel_releases_orders(self, db_session, customer, hundred_order):
        invoice = _invoice(customer, [hundred_order.id])

        invoice_service.set_status(invoice.id, "cancelled")

        assert order_service.get_order(hundred_order.id).billing_status == "pending"
        # Released records can be billed again
        again = _invoice(customer, [hundred_order.id])
        assert Decimal(again.subtotal) == Decimal("100.00")


class TestDeleteInvoice:
    def test_delete_keeps_prices_and_releases_order(self, db_session, customer, hundred_order):
        invoice = _invoice(customer, [hundred_order.id])
        invoice_id = invoice.id

        result = invoice_service.delete_invoice(invoice_id)

        assert result["records_deleted"] == 1
        assert result["orders_released"] == [hundred_order.id]
        assert db.session.get(Invoice, invoice_id) is None
        assert db.session.query(InvoiceRecord).filter_by(invoice_id=invoice_id).count() == 0
        order = db.session.get(Order, hundred_order.id)
        assert order.billing_status == "pending"
        assert Decimal(order.amount) == Decimal("100.00")

    def test_list_invoices(self, db_session, customer, other_customer, hundred_order):
        invoice = _invoice(customer, [hundred_order.id])

        assert [i.id for i in invoice_service.list_invoices(customer_id=customer.id)] == [invoice.id]
        assert invoice_service.list_invoices(customer_id=other_customer.id) == []
        assert invoice_service.list_invoices(status="sent") == []
