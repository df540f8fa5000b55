"""Transition tables for orders, records, assignments and invoices."""

import pytest

from garmentcare.services import lifecycle_service
from garmentcare.services.errors import InvalidTransition, ValidationError
from garmentcare.services.lifecycle_service import (
    ASSIGNMENT,
    INVOICE,
    ORDER,
    RECORD,
    AssignmentStatus,
    OrderStatus,
    RecordStatus,
)


@pytest.mark.parametrize("kind,from_status,to_status", [
    (ORDER, "Pending", "Processing"),
    (ORDER, "Processing", "Ready"),
    (ORDER, "Ready", "Delivered"),
    (ORDER, "Ready", "Cancelled"),
    (RECORD, "Pending", "InProgress"),
    (RECORD, "InProgress", "Completed"),
    (RECORD, "InProgress", "Cancelled"),
    (ASSIGNMENT, "In Progress", "Washing Done"),
    (ASSIGNMENT, "Drying Done", "Completed"),
    (INVOICE, "draft", "sent"),
    (INVOICE, "sent", "overdue"),
    (INVOICE, "overdue", "paid"),
])
def test_allowed_transitions(kind, from_status, to_status):
    assert lifecycle_service.can_transition(kind, from_status, to_status)


@pytest.mark.parametrize("kind,from_status,to_status", [
    (ORDER, "Pending", "Ready"),
    (ORDER, "Delivered", "Cancelled"),
    (ORDER, "Processing", "Pending"),
    (RECORD, "Pending", "Completed"),
    (RECORD, "Completed", "Pending"),
    (RECORD, "Cancelled", "InProgress"),
    (ASSIGNMENT, "In Progress", "Completed"),
    (ASSIGNMENT, "Completed", "In Progress"),
    (INVOICE, "paid", "cancelled"),
    (INVOICE, "cancelled", "draft"),
])
def test_forbidden_transitions(kind, from_status, to_status):
    assert not lifecycle_service.can_transition(kind, from_status, to_status)


def test_same_state_is_not_a_transition():
    assert not lifecycle_service.can_transition(ORDER, "Pending", "Pending")


def test_require_transition_returns_enum_member():
    target = lifecycle_service.require_transition(RECORD, 1, "Pending", "InProgress")
    assert target is RecordStatus.IN_PROGRESS


def test_require_transition_reports_allowed_targets():
    with pytest.raises(InvalidTransition) as exc:
        lifecycle_service.require_transition(ORDER, 7, OrderStatus.PENDING, OrderStatus.DELIVERED)
    assert exc.value.details["from"] == "Pending"
    assert exc.value.details["allowed"] == ["Cancelled", "Processing"]


def test_unknown_status_is_validation_error():
    with pytest.raises(ValidationError):
        lifecycle_service.validate_status(ASSIGNMENT, "Ironing")


def test_terminal_states_have_no_exits():
    assert lifecycle_service.allowed_targets(ASSIGNMENT, AssignmentStatus.COMPLETED) == []
    assert lifecycle_service.allowed_targets(ORDER, "Delivered") == []
    assert lifecycle_service.allowed_targets(INVOICE, "paid") == []
