"""Append-only pricing history for orders and records."""

from decimal import Decimal

import pytest

from garmentcare.services import pricing_history_service, record_service
from garmentcare.services.errors import NotFound


def test_order_pricing_view(db_session, order, priced_record):
    record_service.set_price(priced_record.id, "6.00", actor="desk", note="rush surcharge")

    view = pricing_history_service.get_order_pricing(order.id)

    assert view["current"]["amount"] == "60.00"
    assert view["current"]["records"][0]["unit_price"] == "6.00"
    # Newest first
    assert [h["total_price"] for h in view["order_history"]] == ["60.00", "50.00"]
    assert view["record_history"][0]["notes"] == "rush surcharge"
    assert view["record_history"][0]["created_by"] == "desk"


def test_actor_defaults_to_system(db_session, order):
    record = record_service.add_record(
        order.id, quantity=1, wash_type="regular", process_types=["wash"], unit_price="4.00"
    )

    [row] = pricing_history_service.get_record_pricing_history(record.id)
    assert row.created_by == pricing_history_service.SYSTEM_ACTOR
    assert Decimal(row.unit_price) == Decimal("4.00")


def test_history_is_not_rewritten(db_session, priced_record):
    first = pricing_history_service.get_record_pricing_history(priced_record.id)[0]
    first_id, first_total = first.id, Decimal(first.total_price)

    record_service.set_price(priced_record.id, "1.00")

    rows = pricing_history_service.get_record_pricing_history(priced_record.id)
    assert len(rows) == 2
    oldest = rows[-1]
    assert (oldest.id, Decimal(oldest.total_price)) == (first_id, first_total)


def test_missing_order(db_session):
    with pytest.raises(NotFound):
        pricing_history_service.get_order_pricing(31337)
