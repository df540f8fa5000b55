# Overview: Order record manager: line items, pricing with history, status lifecycle, cascade delete.

"""
Order Record Service

WHY: Records carry the prices and quantities an order's totals are derived
from, so every mutation here is one transaction that:
    1. writes the record,
    2. appends an order_record_pricing_history row when a price moved,
    3. re-derives the parent order's totals (order_service.apply_totals).
A price change without its history row (or the reverse) is never committed.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping

from flask import current_app

from ..extensions import db
from ..models import ItemType, MachineAssignment, Order, OrderRecord
from ..validation import quantize_money, to_code, to_money, to_positive_int, to_process_types
from . import lifecycle_service
from .lifecycle_service import RECORD, AssignmentStatus, RecordStatus
from .concurrency import begin_write, lock_for_update, run_with_retry
from .errors import (
    AssignmentsIncomplete,
    InvalidTransition,
    NotFound,
    OverAssignment,
    ValidationError,
)
from .document_service import next_record_letter_index
from .order_service import CLOSED_STATUSES, apply_totals, get_order_locked
from .assignment_service import assigned_quantity
from .pricing_history_service import record_record_price


RECORD_SPEC_FIELDS = {
    "quantity",
    "wash_type",
    "process_types",
    "item_type_id",
    "unit_price",
    "actor",
    "note",
}

# Records in these states are frozen
FINAL_STATUSES = {RecordStatus.COMPLETED.value, RecordStatus.CANCELLED.value}

_UNSET = object()


def _letters(index: int) -> str:
    """1 -> A, 26 -> Z, 27 -> AA (spreadsheet-style column letters)."""
    letters = ""
    while index > 0:
        index, rem = divmod(index - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


def _next_tracking_number(order: Order) -> str:
    """<order id><letter>: 12A, 12B, ... from the order's letter sequence."""
    tracking = f"{order.id}{_letters(next_record_letter_index(order.id))}"
    # Skip letters already held by records created outside the sequence
    while db.session.query(OrderRecord.id).filter_by(tracking_number=tracking).first():
        tracking = f"{order.id}{_letters(next_record_letter_index(order.id))}"
    return tracking


def parse_record_spec(record_spec: Mapping[str, Any]) -> dict:
    """
    Validate one record spec (quantity, wash_type, process_types and optionally
    item_type_id, unit_price, actor, note) before any write happens.
    """
    unknown = set(record_spec) - RECORD_SPEC_FIELDS
    if unknown:
        raise ValidationError(f"Unknown record fields: {', '.join(sorted(unknown))}")
    unit_price = record_spec.get("unit_price")
    item_type_id = record_spec.get("item_type_id")
    return {
        "quantity": to_positive_int(record_spec.get("quantity"), "quantity"),
        "wash_type": to_code(record_spec.get("wash_type"), "wash_type"),
        "process_types": to_process_types(record_spec.get("process_types")),
        "item_type_id": to_positive_int(item_type_id, "item_type_id") if item_type_id is not None else None,
        "unit_price": to_money(unit_price, "unit_price") if unit_price is not None else None,
        "actor": record_spec.get("actor"),
        "note": record_spec.get("note"),
    }


def insert_record(order: Order, fields: Mapping[str, Any]) -> OrderRecord:
    """
    Insert a parsed record into a locked, open order.

    Runs inside the caller's transaction (flush only). The caller re-derives
    the order totals before committing.
    """
    if order.status in CLOSED_STATUSES:
        raise InvalidTransition(
            f"Cannot add records to order {order.id} in status '{order.status}'",
            details={"status": order.status},
        )
    item_type_id = fields.get("item_type_id")
    if item_type_id is not None and db.session.get(ItemType, item_type_id) is None:
        raise NotFound("ItemType", item_type_id)

    record = OrderRecord(
        order_id=order.id,
        item_type_id=item_type_id,
        quantity=fields["quantity"],
        wash_type=fields["wash_type"],
        process_types=fields["process_types"],
        tracking_number=_next_tracking_number(order),
        status=RecordStatus.PENDING.value,
        unit_price=Decimal("0.00"),
        total_price=Decimal("0.00"),
    )
    db.session.add(record)
    db.session.flush()

    if fields.get("unit_price") is not None:
        _apply_price(record, fields["unit_price"])
        record_record_price(record, actor=fields.get("actor"), note=fields.get("note") or "Priced on creation")
    return record


def _apply_price(record: OrderRecord, unit_price: Decimal) -> None:
    record.unit_price = unit_price
    record.total_price = quantize_money(unit_price * record.quantity)


def get_record(record_id: int) -> OrderRecord:
    record = db.session.get(OrderRecord, record_id)
    if record is None:
        raise NotFound("OrderRecord", record_id)
    return record


def get_record_locked(record_id: int) -> OrderRecord:
    record = lock_for_update(db.session.query(OrderRecord).filter_by(id=record_id)).first()
    if record is None:
        raise NotFound("OrderRecord", record_id)
    return record


def add_record(
    order_id: int,
    *,
    quantity,
    wash_type,
    process_types,
    item_type_id: int | None = None,
    unit_price=None,
    actor: str | None = None,
    note: str | None = None,
) -> OrderRecord:
    """
    Add a line item to an open order.

    When unit_price is given the record is priced in the same transaction
    (with its history row); otherwise prices start at 0.00.

    Raises:
        NotFound: order or item type does not exist
        InvalidTransition: order is Delivered or Cancelled
        ValidationError: malformed quantity, wash type, process types or price
    """
    fields = parse_record_spec({
        "quantity": quantity,
        "wash_type": wash_type,
        "process_types": process_types,
        "item_type_id": item_type_id,
        "unit_price": unit_price,
        "actor": actor,
        "note": note,
    })

    def _op():
        begin_write()
        order = get_order_locked(order_id)
        record = insert_record(order, fields)
        apply_totals(order, actor=actor, note=f"Record {record.tracking_number} added")
        db.session.commit()
        current_app.logger.info("Added record %s to order %s", record.tracking_number, order.id)
        return record

    return run_with_retry(_op)


def set_price(record_id: int, unit_price, actor: str | None = None, note: str | None = None) -> OrderRecord:
    """
    Price a record: total_price = unit_price * quantity.

    Record write, history row and order recompute commit together.
    """
    price = to_money(unit_price, "unit_price")

    def _op():
        begin_write()
        record = get_record_locked(record_id)
        order = get_order_locked(record.order_id)

        _apply_price(record, price)
        record_record_price(record, actor=actor, note=note or "Record pricing updated")
        apply_totals(order, actor=actor, note=note)

        db.session.commit()
        return record

    return run_with_retry(_op)


def save_order_pricing(
    order_id: int,
    prices: Mapping[int, object],
    actor: str | None = None,
    note: str | None = None,
) -> Order:
    """
    Price several records of one order in a single transaction.

    prices maps record id -> unit price. Every record must belong to the order.
    """
    if not prices:
        raise ValidationError("prices must not be empty")
    parsed = {
        to_positive_int(record_id, "record_id"): to_money(price, "unit_price")
        for record_id, price in prices.items()
    }

    def _op():
        begin_write()
        order = get_order_locked(order_id)
        records = (
            lock_for_update(
                db.session.query(OrderRecord).filter(OrderRecord.id.in_(list(parsed)))
            ).all()
        )
        found = {r.id: r for r in records}
        for record_id in parsed:
            record = found.get(record_id)
            if record is None:
                raise NotFound("OrderRecord", record_id)
            if record.order_id != order.id:
                raise ValidationError(
                    f"Record {record_id} does not belong to order {order.id}",
                    details={"record_id": record_id, "order_id": order.id},
                )

        for record_id, price in parsed.items():
            record = found[record_id]
            _apply_price(record, price)
            record_record_price(record, actor=actor, note=note or "Order pricing saved")

        apply_totals(order, actor=actor, note=note or "Order pricing saved")
        db.session.commit()
        return order

    return run_with_retry(_op)


def update_record(
    record_id: int,
    *,
    quantity=None,
    wash_type=None,
    process_types=None,
    item_type_id=_UNSET,
    actor: str | None = None,
) -> OrderRecord:
    """
    Edit an open record.

    A new quantity re-derives total_price from the current unit price (with a
    history row) and may not drop below what is already on machines.

    Raises:
        InvalidTransition: record is Completed or Cancelled
        OverAssignment: quantity below the assigned quantity
    """
    new_quantity = to_positive_int(quantity, "quantity") if quantity is not None else None
    new_wash_type = to_code(wash_type, "wash_type") if wash_type is not None else None
    new_process_types = to_process_types(process_types) if process_types is not None else None

    def _op():
        begin_write()
        record = get_record_locked(record_id)
        if record.status in FINAL_STATUSES:
            raise InvalidTransition(
                f"Cannot edit record {record.id} in status '{record.status}'",
                details={"status": record.status},
            )
        order = get_order_locked(record.order_id)

        if new_wash_type is not None:
            record.wash_type = new_wash_type
        if new_process_types is not None:
            record.process_types = new_process_types
        if item_type_id is not _UNSET:
            if item_type_id is not None and db.session.get(ItemType, item_type_id) is None:
                raise NotFound("ItemType", item_type_id)
            record.item_type_id = item_type_id

        if new_quantity is not None and new_quantity != record.quantity:
            assigned = assigned_quantity(record.id)
            if new_quantity < assigned:
                raise OverAssignment(
                    f"Record {record.id} already has {assigned} assigned; quantity cannot drop to {new_quantity}",
                    details={"assigned": assigned, "requested_quantity": new_quantity},
                )
            record.quantity = new_quantity
            _apply_price(record, Decimal(record.unit_price or 0))
            record_record_price(record, actor=actor, note=f"Quantity changed to {new_quantity}")

        apply_totals(order, actor=actor)
        db.session.commit()
        return record

    return run_with_retry(_op)


def set_status(record_id: int, new_status) -> OrderRecord:
    """
    Move a record along Pending -> InProgress -> Completed, or cancel it.

    Completion needs every machine assignment of the record to be Completed;
    the record is never advanced automatically by its assignments.

    Raises:
        InvalidTransition: backward or skipping move
        AssignmentsIncomplete: open assignments when completing
    """
    def _op():
        begin_write()
        record = get_record_locked(record_id)
        target = lifecycle_service.require_transition(RECORD, record.id, record.status, new_status)

        if target == RecordStatus.COMPLETED:
            open_assignments = (
                db.session.query(MachineAssignment.id, MachineAssignment.status)
                .filter(
                    MachineAssignment.record_id == record.id,
                    MachineAssignment.status != AssignmentStatus.COMPLETED.value,
                )
                .all()
            )
            if open_assignments:
                raise AssignmentsIncomplete(
                    f"Record {record.id} has {len(open_assignments)} assignment(s) not completed",
                    details={
                        "assignments": [
                            {"id": a_id, "status": a_status} for a_id, a_status in open_assignments
                        ]
                    },
                )

        record.status = target.value
        db.session.commit()
        return record

    return run_with_retry(_op)


def delete_record(record_id: int, actor: str | None = None) -> dict:
    """Delete a record and its assignments, then re-derive the order totals."""
    def _op():
        begin_write()
        record = get_record_locked(record_id)
        order = get_order_locked(record.order_id)
        tracking_number = record.tracking_number

        assignments_deleted = (
            db.session.query(MachineAssignment)
            .filter_by(record_id=record_id)
            .delete(synchronize_session="fetch")
        )
        db.session.query(OrderRecord).filter_by(id=record_id).delete(synchronize_session="fetch")

        apply_totals(order, actor=actor, note=f"Record {tracking_number} deleted")
        db.session.commit()
        current_app.logger.info(
            "Deleted record %s of order %s with %s assignments",
            record_id, order.id, assignments_deleted,
        )
        return {
            "record_id": record_id,
            "order_id": order.id,
            "assignments_deleted": assignments_deleted,
        }

    return run_with_retry(_op)
