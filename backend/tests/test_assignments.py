"""Machine assignment tracker: capacity, tracking numbers, progress and employee detachment."""

import pytest

from garmentcare.extensions import db
from garmentcare.models import Employee, MachineAssignment
from garmentcare.services import assignment_service, record_service, staff_service
from garmentcare.services.errors import (
    InvalidTransition,
    NotFound,
    OverAssignment,
    ValidationError,
)


class TestAssign:
    def test_full_quantity_then_one_more_is_rejected(self, db_session, order, priced_record, employee):
        assignment = assignment_service.assign(
            priced_record.id, order.id, employee.id, 10,
            washing_machine="W1", drying_machine="D1",
        )
        assert assignment.status == "In Progress"

        with pytest.raises(OverAssignment) as exc:
            assignment_service.assign(priced_record.id, order.id, employee.id, 1)

        assert exc.value.details["remaining"] == 0
        assert db.session.query(MachineAssignment).filter_by(record_id=priced_record.id).count() == 1

    def test_partial_assignments_up_to_capacity(self, db_session, order, priced_record, employee):
        assignment_service.assign(priced_record.id, order.id, employee.id, 6)
        assignment_service.assign(priced_record.id, order.id, employee.id, 4)

        stats = assignment_service.get_record_stats(priced_record.id)
        assert stats["assigned_quantity"] == 10
        assert stats["remaining_quantity"] == 0
        assert stats["assignments_by_status"]["In Progress"] == 2

    def test_tracking_numbers(self, db_session, order, priced_record, employee):
        first = assignment_service.assign(priced_record.id, order.id, employee.id, 2)
        second = assignment_service.assign(priced_record.id, order.id, employee.id, 2)

        assert first.tracking_number == f"{order.id}A1"
        assert second.tracking_number == f"{order.id}A2"

    def test_tracking_number_after_delete_is_not_reused(self, db_session, order, priced_record, employee):
        first = assignment_service.assign(priced_record.id, order.id, employee.id, 2)
        assignment_service.assign(priced_record.id, order.id, employee.id, 2)
        assignment_service.delete_assignment(first.id)

        third = assignment_service.assign(priced_record.id, order.id, employee.id, 2)
        assert third.tracking_number == f"{order.id}A3"

    def test_order_mismatch(self, db_session, customer, order, priced_record, employee):
        with pytest.raises(ValidationError):
            assignment_service.assign(priced_record.id, order.id + 1, employee.id, 1)

    def test_non_positive_quantity(self, db_session, order, priced_record, employee):
        with pytest.raises(ValidationError):
            assignment_service.assign(priced_record.id, order.id, employee.id, 0)

    def test_missing_employee(self, db_session, order, priced_record):
        with pytest.raises(NotFound):
            assignment_service.assign(priced_record.id, order.id, 999, 1)

    def test_missing_record(self, db_session, order, employee):
        with pytest.raises(NotFound):
            assignment_service.assign(999, order.id, employee.id, 1)

    def test_cancelled_record(self, db_session, order, priced_record, employee):
        record_service.set_status(priced_record.id, "Cancelled")
        with pytest.raises(InvalidTransition):
            assignment_service.assign(priced_record.id, order.id, employee.id, 1)


class TestProgress:
    def test_advance_in_order(self, db_session, order, priced_record, employee):
        assignment = assignment_service.assign(priced_record.id, order.id, employee.id, 3)

        for status in ("Washing Done", "Drying Done", "Completed"):
            assignment = assignment_service.advance(assignment.id, status)

        assert assignment.status == "Completed"
        # Record status is never moved by its assignments
        assert record_service.get_record(priced_record.id).status == "Pending"

    def test_skip_rejected(self, db_session, order, priced_record, employee):
        assignment = assignment_service.assign(priced_record.id, order.id, employee.id, 3)
        with pytest.raises(InvalidTransition):
            assignment_service.advance(assignment.id, "Completed")

    def test_reassign_machines(self, db_session, order, priced_record, employee):
        assignment = assignment_service.assign(
            priced_record.id, order.id, employee.id, 3, washing_machine="W1", drying_machine="D1"
        )

        assignment = assignment_service.reassign(assignment.id, washing_machine="W2")

        assert assignment.washing_machine == "W2"
        assert assignment.drying_machine == "D1"

    def test_reassign_needs_a_machine(self, db_session, order, priced_record, employee):
        assignment = assignment_service.assign(priced_record.id, order.id, employee.id, 3)
        with pytest.raises(ValidationError):
            assignment_service.reassign(assignment.id)

    def test_completed_assignment_cannot_move(self, db_session, order, priced_record, employee):
        assignment = assignment_service.assign(priced_record.id, order.id, employee.id, 3)
        for status in ("Washing Done", "Drying Done", "Completed"):
            assignment_service.advance(assignment.id, status)

        with pytest.raises(InvalidTransition):
            assignment_service.reassign(assignment.id, drying_machine="D9")

    def test_delete_frees_capacity(self, db_session, order, priced_record, employee):
        assignment = assignment_service.assign(priced_record.id, order.id, employee.id, 10)

        result = assignment_service.delete_assignment(assignment.id)

        assert result["quantity_released"] == 10
        assert assignment_service.get_record_stats(priced_record.id)["remaining_quantity"] == 10
        assignment_service.assign(priced_record.id, order.id, employee.id, 10)


class TestEmployeeDetach:
    def test_unassign_employee_keeps_assignments(self, db_session, order, priced_record, employee):
        assignment_service.assign(priced_record.id, order.id, employee.id, 2)
        assignment_service.assign(priced_record.id, order.id, employee.id, 3)

        count = assignment_service.unassign_employee(employee.id)

        assert count == 2
        rows = db.session.query(MachineAssignment).filter_by(record_id=priced_record.id).all()
        assert len(rows) == 2
        assert all(row.assigned_by_id is None for row in rows)

    def test_delete_employee(self, db_session, order, priced_record, employee):
        assignment = assignment_service.assign(priced_record.id, order.id, employee.id, 2)
        employee_id = employee.id

        result = staff_service.delete_employee(employee_id)

        assert result["assignments_unassigned"] == 1
        assert db.session.get(Employee, employee_id) is None
        assert assignment_service.get_assignment(assignment.id).assigned_by_id is None

    def test_delete_missing_employee(self, db_session):
        with pytest.raises(NotFound):
            staff_service.delete_employee(42)
