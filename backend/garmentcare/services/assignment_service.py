# Overview: Machine assignment tracker: capacity-checked assignment of record quantity to machines.

"""
Machine Assignment Service

CAPACITY INVARIANT:
    sum(assignment.quantity for a record) <= record.quantity

assign() reads the already-assigned quantity and inserts the new assignment in
one transaction that holds the write lock (row lock on the record; on SQLite
the whole write lock via BEGIN IMMEDIATE), so two concurrent assigns can never
both pass the check against the same remaining quantity.

Assignment progress never changes the record's status; records are completed
explicitly through record_service.set_status().
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Employee, MachineAssignment, OrderRecord
from ..validation import to_code, to_positive_int
from . import lifecycle_service
from .lifecycle_service import ASSIGNMENT, AssignmentStatus, RecordStatus
from .concurrency import begin_write, lock_for_update, run_with_retry
from .errors import InvalidTransition, NotFound, OverAssignment, ValidationError


def assigned_quantity(record_id: int) -> int:
    return (
        db.session.query(func.coalesce(func.sum(MachineAssignment.quantity), 0))
        .filter(MachineAssignment.record_id == record_id)
        .scalar()
    ) or 0


def _next_tracking_number(record: OrderRecord) -> str:
    """<record tracking><n>: 12A1, 12A2, ... one past the highest suffix in use."""
    prefix = record.tracking_number or str(record.id)
    existing = (
        db.session.query(MachineAssignment.tracking_number)
        .filter(MachineAssignment.record_id == record.id)
        .all()
    )
    highest = 0
    for (tracking,) in existing:
        if tracking and tracking.startswith(prefix):
            suffix = tracking[len(prefix):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
    return f"{prefix}{highest + 1}"


def _optional_machine(value, field: str) -> str | None:
    if value is None:
        return None
    return to_code(value, field)


def get_assignment(assignment_id: int) -> MachineAssignment:
    assignment = db.session.get(MachineAssignment, assignment_id)
    if assignment is None:
        raise NotFound("MachineAssignment", assignment_id)
    return assignment


def _get_assignment_locked(assignment_id: int) -> MachineAssignment:
    assignment = lock_for_update(
        db.session.query(MachineAssignment).filter_by(id=assignment_id)
    ).first()
    if assignment is None:
        raise NotFound("MachineAssignment", assignment_id)
    return assignment


def list_assignments(record_id: int) -> list[MachineAssignment]:
    if db.session.get(OrderRecord, record_id) is None:
        raise NotFound("OrderRecord", record_id)
    return (
        db.session.query(MachineAssignment)
        .filter_by(record_id=record_id)
        .order_by(MachineAssignment.id)
        .all()
    )


def assign(
    record_id: int,
    order_id: int,
    employee_id: int,
    quantity,
    washing_machine: str | None = None,
    drying_machine: str | None = None,
) -> MachineAssignment:
    """
    Put part of a record's quantity on a washing/drying machine pairing.

    Raises:
        NotFound: record or employee does not exist
        ValidationError: order_id is not the record's order, or quantity <= 0
        InvalidTransition: record is Completed or Cancelled
        OverAssignment: quantity exceeds what is left of the record
    """
    quantity = to_positive_int(quantity, "quantity")
    washing_machine = _optional_machine(washing_machine, "washing_machine")
    drying_machine = _optional_machine(drying_machine, "drying_machine")

    def _op():
        begin_write()
        record = lock_for_update(db.session.query(OrderRecord).filter_by(id=record_id)).first()
        if record is None:
            raise NotFound("OrderRecord", record_id)
        if record.order_id != order_id:
            raise ValidationError(
                f"Record {record.id} does not belong to order {order_id}",
                details={"record_order_id": record.order_id, "order_id": order_id},
            )
        if record.status in (RecordStatus.COMPLETED.value, RecordStatus.CANCELLED.value):
            raise InvalidTransition(
                f"Cannot assign record {record.id} in status '{record.status}'",
                details={"status": record.status},
            )
        if db.session.get(Employee, employee_id) is None:
            raise NotFound("Employee", employee_id)

        assigned = assigned_quantity(record.id)
        remaining = record.quantity - assigned
        if quantity > remaining:
            raise OverAssignment(
                f"Cannot assign {quantity} of record {record.id}: only {remaining} remaining",
                details={
                    "record_quantity": record.quantity,
                    "assigned": assigned,
                    "remaining": remaining,
                    "requested": quantity,
                },
            )

        assignment = MachineAssignment(
            record_id=record.id,
            order_id=record.order_id,
            assigned_by_id=employee_id,
            quantity=quantity,
            washing_machine=washing_machine,
            drying_machine=drying_machine,
            tracking_number=_next_tracking_number(record),
            status=AssignmentStatus.IN_PROGRESS.value,
        )
        db.session.add(assignment)
        db.session.commit()
        current_app.logger.info(
            "Assigned %s of record %s (%s) as %s",
            quantity, record.id, record.tracking_number, assignment.tracking_number,
        )
        return assignment

    return run_with_retry(_op)


def advance(assignment_id: int, new_status) -> MachineAssignment:
    """In Progress -> Washing Done -> Drying Done -> Completed; no skips, no reversal."""
    def _op():
        begin_write()
        assignment = _get_assignment_locked(assignment_id)
        target = lifecycle_service.require_transition(
            ASSIGNMENT, assignment.id, assignment.status, new_status
        )
        assignment.status = target.value
        db.session.commit()
        return assignment

    return run_with_retry(_op)


def reassign(
    assignment_id: int,
    washing_machine: str | None = None,
    drying_machine: str | None = None,
) -> MachineAssignment:
    """Move an open assignment to other machines. Quantity is unchanged."""
    washing = _optional_machine(washing_machine, "washing_machine")
    drying = _optional_machine(drying_machine, "drying_machine")
    if washing is None and drying is None:
        raise ValidationError("At least one of washing_machine or drying_machine is required")

    def _op():
        begin_write()
        assignment = _get_assignment_locked(assignment_id)
        if assignment.status == AssignmentStatus.COMPLETED.value:
            raise InvalidTransition(
                f"Assignment {assignment.id} is completed and cannot be reassigned",
                details={"status": assignment.status},
            )
        if washing is not None:
            assignment.washing_machine = washing
        if drying is not None:
            assignment.drying_machine = drying
        db.session.commit()
        return assignment

    return run_with_retry(_op)


def delete_assignment(assignment_id: int) -> dict:
    """Remove one assignment; its quantity becomes available again."""
    def _op():
        begin_write()
        assignment = _get_assignment_locked(assignment_id)
        result = {
            "assignment_id": assignment.id,
            "record_id": assignment.record_id,
            "quantity_released": assignment.quantity,
        }
        db.session.delete(assignment)
        db.session.commit()
        return result

    return run_with_retry(_op)


def _unassign_employee_locked(employee_id: int) -> int:
    """Null out assigned_by_id on the employee's assignments (caller commits)."""
    return (
        db.session.query(MachineAssignment)
        .filter_by(assigned_by_id=employee_id)
        .update({MachineAssignment.assigned_by_id: None}, synchronize_session="fetch")
    )


def unassign_employee(employee_id: int) -> int:
    """
    Detach an employee from every assignment they created.

    Assignments stay; only the reference is cleared. Returns the count.
    """
    def _op():
        begin_write()
        count = _unassign_employee_locked(employee_id)
        db.session.commit()
        return count

    return run_with_retry(_op)


def get_record_stats(record_id: int) -> dict:
    record = db.session.get(OrderRecord, record_id)
    if record is None:
        raise NotFound("OrderRecord", record_id)

    rows = (
        db.session.query(
            MachineAssignment.status,
            func.count(MachineAssignment.id),
            func.coalesce(func.sum(MachineAssignment.quantity), 0),
        )
        .filter(MachineAssignment.record_id == record_id)
        .group_by(MachineAssignment.status)
        .all()
    )
    by_status = {status.value: 0 for status in AssignmentStatus}
    assigned = 0
    total_assignments = 0
    for status, count, qty in rows:
        by_status[status] = count
        assigned += qty
        total_assignments += count

    return {
        "record_id": record.id,
        "total_quantity": record.quantity,
        "assigned_quantity": assigned,
        "remaining_quantity": record.quantity - assigned,
        "total_assignments": total_assignments,
        "assignments_by_status": by_status,
    }
