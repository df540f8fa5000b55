# Overview: Status enumerations and legal-transition tables for orders, records, assignments and invoices.

"""
Garment-care lifecycle rules

================================================================================
PURPOSE: One closed set of statuses per entity, one transition table per entity
================================================================================

STATE MACHINES:
    Order:       Pending -> Processing -> Ready -> Delivered
                 Pending | Processing | Ready -> Cancelled
    Record:      Pending -> InProgress -> Completed
                 Pending | InProgress -> Cancelled
    Assignment:  In Progress -> Washing Done -> Drying Done -> Completed
    Invoice:     draft -> sent -> overdue
                 draft | sent | overdue -> paid       (invoice_service.mark_paid only)
                 draft | sent | overdue -> cancelled

RULES:
1. Cannot skip states (Pending -> Completed is forbidden for records)
2. Cannot reverse states (Completed -> Pending is forbidden)
3. Terminal states (Delivered, Cancelled, Completed, paid) have no exits
4. Same-state moves are rejected, the caller asked for a change that is not one

Statuses are persisted as plain strings; the values below must match the
column defaults in models/.
================================================================================
"""

from __future__ import annotations

from enum import Enum

from .errors import InvalidTransition, ValidationError


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    READY = "Ready"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class RecordStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class AssignmentStatus(str, Enum):
    IN_PROGRESS = "In Progress"
    WASHING_DONE = "Washing Done"
    DRYING_DONE = "Drying Done"
    COMPLETED = "Completed"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class BillingStatus(str, Enum):
    PENDING = "pending"
    INVOICED = "invoiced"
    PAID = "paid"


ORDER = "order"
RECORD = "record"
ASSIGNMENT = "assignment"
INVOICE = "invoice"

STATUS_ENUMS: dict[str, type[Enum]] = {
    ORDER: OrderStatus,
    RECORD: RecordStatus,
    ASSIGNMENT: AssignmentStatus,
    INVOICE: InvoiceStatus,
}

TRANSITIONS: dict[str, set[tuple[Enum, Enum]]] = {
    ORDER: {
        (OrderStatus.PENDING, OrderStatus.PROCESSING),
        (OrderStatus.PROCESSING, OrderStatus.READY),
        (OrderStatus.READY, OrderStatus.DELIVERED),
        (OrderStatus.PENDING, OrderStatus.CANCELLED),
        (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
        (OrderStatus.READY, OrderStatus.CANCELLED),
    },
    RECORD: {
        (RecordStatus.PENDING, RecordStatus.IN_PROGRESS),
        (RecordStatus.IN_PROGRESS, RecordStatus.COMPLETED),
        (RecordStatus.PENDING, RecordStatus.CANCELLED),
        (RecordStatus.IN_PROGRESS, RecordStatus.CANCELLED),
    },
    ASSIGNMENT: {
        (AssignmentStatus.IN_PROGRESS, AssignmentStatus.WASHING_DONE),
        (AssignmentStatus.WASHING_DONE, AssignmentStatus.DRYING_DONE),
        (AssignmentStatus.DRYING_DONE, AssignmentStatus.COMPLETED),
    },
    INVOICE: {
        (InvoiceStatus.DRAFT, InvoiceStatus.SENT),
        (InvoiceStatus.SENT, InvoiceStatus.OVERDUE),
        (InvoiceStatus.DRAFT, InvoiceStatus.PAID),
        (InvoiceStatus.SENT, InvoiceStatus.PAID),
        (InvoiceStatus.OVERDUE, InvoiceStatus.PAID),
        (InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED),
        (InvoiceStatus.SENT, InvoiceStatus.CANCELLED),
        (InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED),
    },
}


def validate_status(kind: str, status) -> Enum:
    """
    Coerce a status value (enum member or raw string) into the entity's enum.

    Raises:
        ValidationError: If status is not one of the entity's states
    """
    enum_cls = STATUS_ENUMS[kind]
    if isinstance(status, enum_cls):
        return status
    try:
        return enum_cls(status)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(
            f"Invalid {kind} status '{status}'. Must be one of: {allowed}",
            details={"allowed": [m.value for m in enum_cls]},
        )


def can_transition(kind: str, from_status, to_status) -> bool:
    current = validate_status(kind, from_status)
    target = validate_status(kind, to_status)
    return (current, target) in TRANSITIONS[kind]


def allowed_targets(kind: str, from_status) -> list[str]:
    current = validate_status(kind, from_status)
    return sorted(target.value for source, target in TRANSITIONS[kind] if source == current)


def require_transition(kind: str, entity_id, from_status, to_status) -> Enum:
    """
    Validate a transition and return the target status.

    Raises:
        ValidationError: If either status is unknown
        InvalidTransition: If the move is not in the entity's table
    """
    target = validate_status(kind, to_status)
    if not can_transition(kind, from_status, target):
        current = validate_status(kind, from_status)
        raise InvalidTransition(
            f"Cannot move {kind} {entity_id} from '{current.value}' to '{target.value}'",
            details={
                "from": current.value,
                "to": target.value,
                "allowed": allowed_targets(kind, current),
            },
        )
    return target
