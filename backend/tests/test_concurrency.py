# Overview: Threaded concurrency tests over a temporary file database.

"""
Concurrency tests for the capacity check and number allocation.

Each worker thread runs in its own app context (own session and connection)
against a real SQLite file, so the write lock taken by the services is what
serializes them.
"""
import os
import tempfile
import threading
import unittest

from garmentcare import create_app
from garmentcare.extensions import db
from garmentcare.models import Customer, Employee, MachineAssignment
from garmentcare.services import assignment_service, invoice_service, order_service, record_service
from garmentcare.services.errors import OverAssignment


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "SQLALCHEMY_ENGINE_OPTIONS": {
                "connect_args": {"timeout": 30, "check_same_thread": False},
            },
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            customer = Customer(customer_code="CC1", first_name="Concurrent", last_name="Customer")
            employee = Employee(employee_code="CE1", first_name="Concurrent", last_name="Worker")
            db.session.add_all([customer, employee])
            db.session.commit()
            self.customer_id = customer.id
            self.employee_id = employee.id

            order = order_service.create_order(self.customer_id, "2026-01-10", "2026-01-15")
            record = record_service.add_record(
                order.id, quantity=10, wash_type="regular", process_types=["wash"], unit_price="5.00"
            )
            self.order_id = order.id
            self.record_id = record.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run_threads(self, target, count):
        results = []
        lock = threading.Lock()

        def worker():
            with self.app.app_context():
                try:
                    value = target()
                    with lock:
                        results.append(value)
                except Exception as exc:
                    with lock:
                        results.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker) for _ in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def test_concurrent_assign_never_exceeds_capacity(self):
        def assign_three():
            assignment = assignment_service.assign(self.record_id, self.order_id, self.employee_id, 3)
            return assignment.tracking_number

        results = self._run_threads(assign_three, 8)

        successes = [r for r in results if isinstance(r, str)]
        failures = [r for r in results if not isinstance(r, str)]
        self.assertEqual(len(successes), 3)
        self.assertTrue(all(isinstance(f, OverAssignment) for f in failures), failures)
        self.assertEqual(len(successes), len(set(successes)))

        with self.app.app_context():
            assigned = sum(
                a.quantity
                for a in db.session.query(MachineAssignment).filter_by(record_id=self.record_id)
            )
        self.assertLessEqual(assigned, 10)
        self.assertEqual(assigned, 9)

    def test_concurrent_order_references_are_unique(self):
        def create():
            return order_service.create_order(self.customer_id, "2026-01-11", "2026-01-12").reference_no

        results = self._run_threads(create, 10)

        errors = [r for r in results if isinstance(r, Exception)]
        self.assertFalse(errors)
        self.assertEqual(len(results), len(set(results)))

    def test_concurrent_invoicing_bills_record_once(self):
        def bill():
            return invoice_service.create_invoice(
                self.customer_id, [self.order_id], tax_rate="0.0800", issue_date="2026-01-20"
            ).invoice_number

        results = self._run_threads(bill, 4)

        numbers = [r for r in results if isinstance(r, str)]
        self.assertEqual(len(numbers), 1)
