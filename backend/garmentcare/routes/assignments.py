# Overview: Flask API routes for machine assignments.

# backend/garmentcare/routes/assignments.py
"""Machine assignment API routes"""

from flask import Blueprint, request, jsonify, current_app

from ..services import assignment_service
from ..services.errors import FulfillmentError


assignments_bp = Blueprint("assignments", __name__, url_prefix="/api")


@assignments_bp.get("/records/<int:record_id>/assignments")
def list_assignments_route(record_id: int):
    try:
        assignments = assignment_service.list_assignments(record_id)
        return jsonify({
            "assignments": [a.to_dict() for a in assignments],
            "stats": assignment_service.get_record_stats(record_id),
        }), 200
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status


@assignments_bp.post("/records/<int:record_id>/assignments")
def assign_route(record_id: int):
    """
    Assign part of a record to machines.

    Body: order_id, employee_id, quantity, washing_machine?, drying_machine?
    Returns 409 over_assignment when the record has less remaining.
    """
    try:
        data = request.get_json(silent=True) or {}
        order_id = data.get("order_id")
        employee_id = data.get("employee_id")
        if not all([order_id, employee_id]):
            return jsonify({"error": "order_id and employee_id required"}), 400

        assignment = assignment_service.assign(
            record_id,
            order_id,
            employee_id,
            data.get("quantity"),
            washing_machine=data.get("washing_machine"),
            drying_machine=data.get("drying_machine"),
        )
        return jsonify({"assignment": assignment.to_dict()}), 201

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to assign record")
        return jsonify({"error": "Internal server error"}), 500


@assignments_bp.post("/assignments/<int:assignment_id>/status")
def advance_assignment_route(assignment_id: int):
    try:
        data = request.get_json(silent=True) or {}
        assignment = assignment_service.advance(assignment_id, data.get("status"))
        return jsonify({"assignment": assignment.to_dict()}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to advance assignment")
        return jsonify({"error": "Internal server error"}), 500


@assignments_bp.post("/assignments/<int:assignment_id>/machines")
def reassign_route(assignment_id: int):
    try:
        data = request.get_json(silent=True) or {}
        assignment = assignment_service.reassign(
            assignment_id,
            washing_machine=data.get("washing_machine"),
            drying_machine=data.get("drying_machine"),
        )
        return jsonify({"assignment": assignment.to_dict()}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to reassign machines")
        return jsonify({"error": "Internal server error"}), 500


@assignments_bp.delete("/assignments/<int:assignment_id>")
def delete_assignment_route(assignment_id: int):
    try:
        return jsonify(assignment_service.delete_assignment(assignment_id)), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete assignment")
        return jsonify({"error": "Internal server error"}), 500
