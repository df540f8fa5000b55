# Overview: Typed domain errors raised by the fulfillment and billing services.

"""
Error kinds reported by the order/billing core.

Every error is a recoverable, structured outcome: routes translate them to
JSON responses via to_dict() and http_status; nothing here terminates the
process. Errors raised inside a unit of work roll the session back before
they reach the caller (see concurrency.run_with_retry).
"""

from __future__ import annotations


class FulfillmentError(Exception):
    """Base class for domain errors raised by the core services."""

    code = "error"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationError(FulfillmentError, ValueError):
    """400-level input problem."""
    code = "validation_error"
    http_status = 400


class NotFound(FulfillmentError):
    """Referenced entity is absent."""
    code = "not_found"
    http_status = 404

    def __init__(self, entity: str, entity_id, details: dict | None = None):
        super().__init__(f"{entity} {entity_id} not found", details)
        self.entity = entity
        self.entity_id = entity_id


class DuplicateReference(FulfillmentError):
    """Unique reference (order reference number, invoice number) already taken."""
    code = "duplicate_reference"
    http_status = 409


class InvalidTransition(FulfillmentError):
    """Illegal status move for an order, record, assignment or invoice."""
    code = "invalid_transition"
    http_status = 409


class OverAssignment(FulfillmentError):
    """Assigned quantity would exceed the record's quantity."""
    code = "over_assignment"
    http_status = 409


class AssignmentsIncomplete(FulfillmentError):
    """Record cannot complete while machine assignments are still open."""
    code = "assignments_incomplete"
    http_status = 409


class NoBillableRecords(FulfillmentError):
    """None of the requested orders has a record that can be invoiced."""
    code = "no_billable_records"
    http_status = 422


class AlreadyPaid(FulfillmentError):
    """Invoice is already paid and cannot be paid or moved again."""
    code = "already_paid"
    http_status = 409


class Conflict(FulfillmentError):
    """Transaction lost a race against a concurrent writer, even after retry."""
    code = "conflict"
    http_status = 409
