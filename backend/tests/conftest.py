"""
Pytest fixtures for garment-care backend tests.

Provides test database setup, master data fixtures, and test client.
"""

import pytest

from garmentcare import create_app
from garmentcare.extensions import db
from garmentcare.models import Customer, Employee, ItemType
from garmentcare.services import order_service, record_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_TAX_RATE': '0.1000',
        'DEFAULT_PAYMENT_TERMS_DAYS': 30,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(customer_code="C001", first_name="Asha", last_name="Rao")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def other_customer(db_session):
    customer = Customer(customer_code="C002", first_name="Vikram", last_name="Shah")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def employee(db_session):
    employee = Employee(employee_code="E001", first_name="Ravi", last_name="Kumar")
    db_session.add(employee)
    db_session.commit()
    return employee


@pytest.fixture(scope='function')
def item_type(db_session):
    item_type = ItemType(code="SHIRT", name="Shirt", category="Tops")
    db_session.add(item_type)
    db_session.commit()
    return item_type


@pytest.fixture(scope='function')
def order(db_session, customer):
    """Empty Pending order for the default customer."""
    return order_service.create_order(
        customer_id=customer.id,
        order_date="2026-01-10",
        delivery_date="2026-01-15",
        reference_no="ORD-100",
    )


@pytest.fixture(scope='function')
def priced_record(order, item_type):
    """10 garments at 5.00 each on the default order."""
    return record_service.add_record(
        order.id,
        quantity=10,
        wash_type="regular",
        process_types=["wash", "iron"],
        item_type_id=item_type.id,
        unit_price="5.00",
        actor="tester",
    )
