# Overview: Order aggregate: creation, derived totals, status lifecycle and cascade delete.

"""
Order Service

An order owns its records (and, through them, their machine assignments).
Order quantity and amount are never edited directly: apply_totals() re-reads
the live records and writes the sums back, appending an order pricing
history row whenever the amount moves. Every record mutation calls it inside
its own transaction, so the totals are settled when that transaction commits.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, Sequence

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer, Order, OrderRecord, MachineAssignment
from ..validation import quantize_money, to_code, to_date, to_positive_int
from . import lifecycle_service
from .lifecycle_service import ORDER, OrderStatus
from .concurrency import begin_write, lock_for_update, run_with_retry
from .document_service import next_order_reference
from .errors import DuplicateReference, NotFound, ValidationError
from .pricing_history_service import record_order_price


# Orders in these states no longer accept new or edited records
CLOSED_STATUSES = {OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value}


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFound("Order", order_id)
    return order


def get_order_locked(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise NotFound("Order", order_id)
    return order


def list_orders(
    *,
    customer_id: int | None = None,
    status: str | None = None,
    billing_status: str | None = None,
    limit: int = 200,
) -> list[Order]:
    q = db.session.query(Order)
    if customer_id is not None:
        q = q.filter_by(customer_id=customer_id)
    if status is not None:
        q = q.filter_by(status=lifecycle_service.validate_status(ORDER, status).value)
    if billing_status is not None:
        q = q.filter_by(billing_status=billing_status)
    return q.order_by(Order.order_date.desc(), Order.id.desc()).limit(limit).all()


def create_order(
    customer_id: int,
    order_date,
    delivery_date,
    reference_no: str | None = None,
    notes: str | None = None,
    records: Sequence[Mapping[str, Any]] | None = None,
) -> Order:
    """
    Create a Pending order, optionally together with its records.

    reference_no is allocated (ORD001, ORD002, ...) when omitted. Every record
    spec is validated up front, and the order, its records and their pricing
    history commit in one transaction: a bad record leaves nothing behind.

    Raises:
        NotFound: customer or item type does not exist
        DuplicateReference: reference_no already used
        ValidationError: malformed dates, delivery before order date, or a
            malformed record spec
    """
    from .record_service import insert_record, parse_record_spec

    customer_id = to_positive_int(customer_id, "customer_id")
    if records is not None and not isinstance(records, (list, tuple)):
        raise ValidationError("records must be a list")
    for spec in records or []:
        if not isinstance(spec, Mapping):
            raise ValidationError("each record must be an object")
    record_fields = [parse_record_spec(spec) for spec in records or []]
    order_date = to_date(order_date, "order_date")
    delivery_date = to_date(delivery_date, "delivery_date")
    if delivery_date < order_date:
        raise ValidationError("delivery_date cannot be before order_date")
    if reference_no is not None:
        reference_no = to_code(reference_no, "reference_no")

    def _op():
        begin_write()
        if db.session.get(Customer, customer_id) is None:
            raise NotFound("Customer", customer_id)

        ref = reference_no
        if ref is not None:
            if db.session.query(Order.id).filter_by(reference_no=ref).first():
                raise DuplicateReference(
                    f"Order reference '{ref}' already exists",
                    details={"reference_no": ref},
                )
        else:
            ref = next_order_reference()
            # Skip numbers already taken by hand-entered references
            while db.session.query(Order.id).filter_by(reference_no=ref).first():
                ref = next_order_reference()

        order = Order(
            customer_id=customer_id,
            order_date=order_date,
            delivery_date=delivery_date,
            reference_no=ref,
            notes=notes,
            quantity=0,
            amount=Decimal("0.00"),
            status=OrderStatus.PENDING.value,
        )
        db.session.add(order)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise DuplicateReference(
                f"Order reference '{ref}' already exists",
                details={"reference_no": ref},
            )

        if record_fields:
            for fields in record_fields:
                insert_record(order, fields)
            apply_totals(order, note="Order created with records")

        db.session.commit()
        current_app.logger.info(
            "Created order %s (%s) with %s records", order.id, order.reference_no, len(record_fields)
        )
        return order

    return run_with_retry(_op)


def add_record(order_id: int, record_spec: Mapping[str, Any]):
    """
    Add a record to an order.

    record_spec keys: quantity, wash_type, process_types and optionally
    item_type_id, unit_price, actor, note.
    """
    from .record_service import add_record as _add_record, RECORD_SPEC_FIELDS

    unknown = set(record_spec) - RECORD_SPEC_FIELDS
    if unknown:
        raise ValidationError(f"Unknown record fields: {', '.join(sorted(unknown))}")
    return _add_record(order_id, **record_spec)


def apply_totals(order: Order, *, actor: str | None = None, note: str | None = None) -> Order:
    """
    Re-derive quantity and amount from the order's live records.

    Runs inside the caller's transaction (flush only). Idempotent: when the
    totals already match nothing is written and no history row is added.
    """
    db.session.flush()
    records = db.session.query(OrderRecord).filter_by(order_id=order.id).all()

    quantity = sum(r.quantity for r in records)
    amount = quantize_money(sum((Decimal(r.total_price or 0) for r in records), Decimal("0")))

    if order.quantity != quantity:
        order.quantity = quantity

    if Decimal(order.amount or 0) != amount:
        order.amount = amount
        record_order_price(
            order,
            total_price=amount,
            actor=actor,
            note=note or "Order amount recomputed from records",
        )

    db.session.flush()
    return order


def recompute_totals(order_id: int, *, actor: str | None = None, note: str | None = None) -> Order:
    """Standalone recompute of an order's totals (safe to call at any time)."""
    def _op():
        begin_write()
        order = get_order_locked(order_id)
        apply_totals(order, actor=actor, note=note)
        db.session.commit()
        return order

    return run_with_retry(_op)


def set_status(order_id: int, new_status) -> Order:
    """
    Move an order along Pending -> Processing -> Ready -> Delivered, or cancel it.

    Raises:
        NotFound: order does not exist
        InvalidTransition: move not allowed from the current status
    """
    def _op():
        begin_write()
        order = get_order_locked(order_id)
        target = lifecycle_service.require_transition(ORDER, order.id, order.status, new_status)
        previous = order.status
        order.status = target.value
        db.session.commit()
        current_app.logger.info("Order %s status %s -> %s", order.id, previous, order.status)
        return order

    return run_with_retry(_op)


def delete_order(order_id: int) -> dict:
    """
    Delete an order with its records and their machine assignments.

    One transaction: assignments, then records, then the order row. Pricing
    history rows and invoice records are independent copies and stay.
    """
    def _op():
        begin_write()
        order = get_order_locked(order_id)
        reference_no = order.reference_no

        record_ids = select(OrderRecord.id).where(OrderRecord.order_id == order_id)
        assignments_deleted = (
            db.session.query(MachineAssignment)
            .filter(
                (MachineAssignment.order_id == order_id)
                | MachineAssignment.record_id.in_(record_ids)
            )
            .delete(synchronize_session="fetch")
        )
        records_deleted = (
            db.session.query(OrderRecord)
            .filter_by(order_id=order_id)
            .delete(synchronize_session="fetch")
        )
        db.session.query(Order).filter_by(id=order_id).delete(synchronize_session="fetch")

        db.session.commit()
        current_app.logger.info(
            "Deleted order %s (%s): %s records, %s assignments",
            order_id, reference_no, records_deleted, assignments_deleted,
        )
        return {
            "order_id": order_id,
            "reference_no": reference_no,
            "records_deleted": records_deleted,
            "assignments_deleted": assignments_deleted,
        }

    return run_with_retry(_op)


def get_order_details(order_id: int) -> dict:
    """Order with its records, each record's assignments and capacity stats."""
    from .assignment_service import get_record_stats

    order = get_order(order_id)
    records = (
        db.session.query(OrderRecord)
        .filter_by(order_id=order_id)
        .order_by(OrderRecord.id)
        .all()
    )

    data = order.to_dict()
    data["customer_name"] = order.customer.display_name if order.customer else None
    data["records"] = []
    for record in records:
        row = record.to_dict()
        row["assignments"] = [a.to_dict() for a in record.assignments]
        row["stats"] = get_record_stats(record.id)
        data["records"].append(row)
    return data
