# Overview: Append-only pricing snapshots for orders and order records.

"""
Pricing history invariants

- Append-only: rows are inserted once per price-affecting mutation and never
  updated or deleted afterwards.
- Rows are written inside the same DB transaction as the price change they
  record (flush only; the calling unit of work commits).
- No domain logic here: callers decide when a price changed.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from ..extensions import db
from ..models import Order, OrderRecord, OrderPricingHistory, OrderRecordPricingHistory
from .errors import NotFound


SYSTEM_ACTOR = "system"


def record_order_price(
    order: Order,
    *,
    total_price: Decimal,
    actor: Optional[str] = None,
    note: Optional[str] = None,
) -> OrderPricingHistory:
    row = OrderPricingHistory(
        order_id=order.id,
        total_price=total_price,
        created_by=actor or SYSTEM_ACTOR,
        notes=note,
    )
    db.session.add(row)
    db.session.flush()
    return row


def record_record_price(
    record: OrderRecord,
    *,
    actor: Optional[str] = None,
    note: Optional[str] = None,
) -> OrderRecordPricingHistory:
    """Snapshot the record's current unit/total price."""
    row = OrderRecordPricingHistory(
        order_id=record.order_id,
        record_id=record.id,
        unit_price=record.unit_price,
        total_price=record.total_price,
        created_by=actor or SYSTEM_ACTOR,
        notes=note,
    )
    db.session.add(row)
    db.session.flush()
    return row


def get_order_pricing(order_id: int) -> dict:
    """
    Current pricing of an order and its records plus the history trail,
    newest first.
    """
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFound("Order", order_id)

    records = (
        db.session.query(OrderRecord)
        .filter_by(order_id=order_id)
        .order_by(OrderRecord.id)
        .all()
    )
    order_history = (
        db.session.query(OrderPricingHistory)
        .filter_by(order_id=order_id)
        .order_by(OrderPricingHistory.id.desc())
        .all()
    )
    record_history = (
        db.session.query(OrderRecordPricingHistory)
        .filter_by(order_id=order_id)
        .order_by(OrderRecordPricingHistory.id.desc())
        .all()
    )

    return {
        "order_id": order.id,
        "current": {
            "amount": f"{Decimal(order.amount):.2f}",
            "records": [
                {
                    "record_id": r.id,
                    "tracking_number": r.tracking_number,
                    "quantity": r.quantity,
                    "unit_price": f"{Decimal(r.unit_price):.2f}",
                    "total_price": f"{Decimal(r.total_price):.2f}",
                }
                for r in records
            ],
        },
        "order_history": [h.to_dict() for h in order_history],
        "record_history": [h.to_dict() for h in record_history],
    }


def get_record_pricing_history(record_id: int) -> list[OrderRecordPricingHistory]:
    return (
        db.session.query(OrderRecordPricingHistory)
        .filter_by(record_id=record_id)
        .order_by(OrderRecordPricingHistory.id.desc())
        .all()
    )
