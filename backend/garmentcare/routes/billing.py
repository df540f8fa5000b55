# Overview: Flask API routes for invoices, payments and order pricing history.

# backend/garmentcare/routes/billing.py
"""Billing API routes"""

from flask import Blueprint, request, jsonify, current_app

from ..services import invoice_service, pricing_history_service, record_service
from ..services.errors import FulfillmentError


billing_bp = Blueprint("billing", __name__, url_prefix="/api/billing")


@billing_bp.get("/invoices")
def list_invoices_route():
    try:
        invoices = invoice_service.list_invoices(
            customer_id=request.args.get("customer_id", type=int),
            status=request.args.get("status"),
        )
        return jsonify({"invoices": [i.to_dict() for i in invoices]}), 200
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status


@billing_bp.post("/invoices")
def create_invoice_route():
    """
    Create a draft invoice.

    Body: customer_id, order_ids[], tax_rate?, payment_terms?, issue_date?,
          due_date?, invoice_number?, notes?
    Returns 422 no_billable_records when every record is billed or cancelled.
    """
    try:
        data = request.get_json(silent=True) or {}
        customer_id = data.get("customer_id")
        if not customer_id:
            return jsonify({"error": "customer_id required"}), 400

        invoice = invoice_service.create_invoice(
            customer_id,
            data.get("order_ids"),
            tax_rate=data.get("tax_rate"),
            payment_terms=data.get("payment_terms"),
            due_date=data.get("due_date"),
            issue_date=data.get("issue_date"),
            invoice_number=data.get("invoice_number"),
            notes=data.get("notes"),
        )
        return jsonify({"invoice": invoice.to_dict(include_records=True)}), 201

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.get("/invoices/<int:invoice_id>")
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id)
        return jsonify({"invoice": invoice.to_dict(include_records=True)}), 200
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status


@billing_bp.delete("/invoices/<int:invoice_id>")
def delete_invoice_route(invoice_id: int):
    try:
        return jsonify(invoice_service.delete_invoice(invoice_id)), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete invoice")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.post("/invoices/<int:invoice_id>/status")
def set_invoice_status_route(invoice_id: int):
    """Body: status (sent, overdue or cancelled)."""
    try:
        data = request.get_json(silent=True) or {}
        invoice = invoice_service.set_status(invoice_id, data.get("status"))
        return jsonify({"invoice": invoice.to_dict()}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to change invoice status")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.post("/invoices/<int:invoice_id>/pay")
def pay_invoice_route(invoice_id: int):
    """Body: payment_date?, payment_method?, payment_reference?"""
    try:
        data = request.get_json(silent=True) or {}
        invoice = invoice_service.mark_paid(
            invoice_id,
            payment_date=data.get("payment_date"),
            method=data.get("payment_method"),
            reference=data.get("payment_reference"),
        )
        return jsonify({"invoice": invoice.to_dict()}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record invoice payment")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.get("/orders/<int:order_id>/pricing")
def get_order_pricing_route(order_id: int):
    """Current record prices plus order and record pricing history, newest first."""
    try:
        return jsonify(pricing_history_service.get_order_pricing(order_id)), 200
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status


@billing_bp.post("/orders/<int:order_id>/pricing")
def save_order_pricing_route(order_id: int):
    """Body: prices {record_id: unit_price}, actor?, note?"""
    try:
        data = request.get_json(silent=True) or {}
        prices = data.get("prices")
        if not isinstance(prices, dict):
            return jsonify({"error": "prices must be an object of record_id -> unit_price"}), 400

        record_service.save_order_pricing(
            order_id,
            prices,
            actor=data.get("actor"),
            note=data.get("note"),
        )
        return jsonify(pricing_history_service.get_order_pricing(order_id)), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to save order pricing")
        return jsonify({"error": "Internal server error"}), 500
