# Overview: Employee lifecycle hooks that touch machine assignments.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Employee
from .assignment_service import _unassign_employee_locked
from .concurrency import begin_write, lock_for_update, run_with_retry
from .errors import NotFound


def delete_employee(employee_id: int) -> dict:
    """
    Delete an employee, keeping the assignments they created.

    Assignments are detached first (assigned_by_id = NULL) so no assignment
    row is ever lost with the employee.
    """
    def _op():
        begin_write()
        employee = lock_for_update(db.session.query(Employee).filter_by(id=employee_id)).first()
        if employee is None:
            raise NotFound("Employee", employee_id)

        unassigned = _unassign_employee_locked(employee.id)
        db.session.delete(employee)
        db.session.commit()
        current_app.logger.info(
            "Deleted employee %s; detached %s assignment(s)", employee_id, unassigned
        )
        return {"employee_id": employee_id, "assignments_unassigned": unassigned}

    return run_with_retry(_op)
