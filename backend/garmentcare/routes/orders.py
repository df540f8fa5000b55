# Overview: Flask API routes for orders and order records; parses input and returns JSON responses.

# backend/garmentcare/routes/orders.py
"""Order and order record API routes"""

from flask import Blueprint, request, jsonify, current_app

from ..services import order_service, record_service
from ..services.errors import FulfillmentError, ValidationError
from ..validation import to_positive_int


orders_bp = Blueprint("orders", __name__, url_prefix="/api")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON object body required")
    return data


@orders_bp.get("/orders")
def list_orders_route():
    """List orders, newest first. Filters: customer_id, status, billing_status, limit."""
    try:
        orders = order_service.list_orders(
            customer_id=request.args.get("customer_id", type=int),
            status=request.args.get("status"),
            billing_status=request.args.get("billing_status"),
            limit=min(request.args.get("limit", 200, type=int), 1000),
        )
        return jsonify({"orders": [o.to_dict() for o in orders]}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/orders")
def create_order_route():
    """
    Create an order, optionally with its records.

    Body: customer_id, order_date, delivery_date, reference_no?, notes?, records?[]
    """
    try:
        data = _json_body()
        if data.get("customer_id") is None:
            return jsonify({"error": "customer_id required"}), 400
        customer_id = to_positive_int(data["customer_id"], "customer_id")

        order = order_service.create_order(
            customer_id=customer_id,
            order_date=data.get("order_date"),
            delivery_date=data.get("delivery_date"),
            reference_no=data.get("reference_no"),
            notes=data.get("notes"),
            records=data.get("records"),
        )

        return jsonify({"order": order_service.get_order_details(order.id)}), 201

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/orders/<int:order_id>")
def get_order_route(order_id: int):
    """Order with records, assignments and per-record capacity stats."""
    try:
        return jsonify({"order": order_service.get_order_details(order_id)}), 200
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status


@orders_bp.delete("/orders/<int:order_id>")
def delete_order_route(order_id: int):
    try:
        result = order_service.delete_order(order_id)
        return jsonify(result), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/orders/<int:order_id>/status")
def set_order_status_route(order_id: int):
    try:
        data = _json_body()
        order = order_service.set_status(order_id, data.get("status"))
        return jsonify({"order": order.to_dict()}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to change order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/orders/<int:order_id>/records")
def add_record_route(order_id: int):
    """Body: quantity, wash_type, process_types[], item_type_id?, unit_price?, actor?, note?"""
    try:
        data = _json_body()
        record = order_service.add_record(order_id, data)
        return jsonify({"record": record.to_dict()}), 201

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to add order record")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/records/<int:record_id>")
def get_record_route(record_id: int):
    try:
        record = record_service.get_record(record_id)
        return jsonify({"record": record.to_dict()}), 200
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status


@orders_bp.patch("/records/<int:record_id>")
def update_record_route(record_id: int):
    """Body: any of quantity, wash_type, process_types, item_type_id, actor."""
    try:
        data = _json_body()
        kwargs = {k: data[k] for k in ("quantity", "wash_type", "process_types", "item_type_id") if k in data}
        record = record_service.update_record(record_id, actor=data.get("actor"), **kwargs)
        return jsonify({"record": record.to_dict()}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update order record")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/records/<int:record_id>")
def delete_record_route(record_id: int):
    try:
        result = record_service.delete_record(record_id, actor=request.args.get("actor"))
        return jsonify(result), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete order record")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/records/<int:record_id>/price")
def set_record_price_route(record_id: int):
    """Body: unit_price (decimal string), actor?, note?"""
    try:
        data = _json_body()
        if data.get("unit_price") is None:
            return jsonify({"error": "unit_price required"}), 400

        record = record_service.set_price(
            record_id,
            data["unit_price"],
            actor=data.get("actor"),
            note=data.get("note"),
        )
        return jsonify({"record": record.to_dict()}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to price order record")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/records/<int:record_id>/status")
def set_record_status_route(record_id: int):
    try:
        data = _json_body()
        record = record_service.set_status(record_id, data.get("status"))
        return jsonify({"record": record.to_dict()}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to change record status")
        return jsonify({"error": "Internal server error"}), 500
