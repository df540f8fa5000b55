# Overview: Flask CLI command groups for bootstrap, master data and billing maintenance.

# backend/garmentcare/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to the package (PowerShell: $env:FLASK_APP="garmentcare").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default item types.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Master data:
# - python -m flask customers create --code C001 --first-name Asha --last-name Rao
# - python -m flask employees create --code E001 --first-name Ravi --last-name Kumar
# - python -m flask employees delete 3
#   Deletes the employee; their machine assignments are kept, detached.
#
# Orders:
# - python -m flask orders recompute 12
#   Re-derive quantity/amount of an order from its records.
#
# Billing maintenance:
# - python -m flask invoices mark-overdue [--as-of 2026-01-31]
#   Flag sent invoices whose due date has passed.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Customer, Employee, ItemType
from .services import invoice_service, order_service, staff_service
from .services.errors import FulfillmentError


DEFAULT_ITEM_TYPES = [
    ("SHIRT", "Shirt", "Tops"),
    ("TROUSER", "Trousers", "Bottoms"),
    ("SAREE", "Saree", "Traditional"),
    ("BEDSHEET", "Bed Sheet", "Household"),
    ("CURTAIN", "Curtain", "Household"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create missing tables and seed the default item types."""
    click.echo("START Initializing garment-care database...")
    db.create_all()

    created = 0
    for code, name, category in DEFAULT_ITEM_TYPES:
        if db.session.query(ItemType).filter_by(code=code).first():
            continue
        db.session.add(ItemType(code=code, name=name, category=category))
        created += 1
    db.session.commit()
    click.echo(f"PASS Item types created: {created}")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset")


@click.group('customers')
def customers_group():
    """Customer master data."""


@customers_group.command('create')
@click.option('--code', required=True)
@click.option('--first-name', required=True)
@click.option('--last-name', required=True)
@click.option('--email', default=None)
@click.option('--phone', default=None)
@with_appcontext
def create_customer(code, first_name, last_name, email, phone):
    if db.session.query(Customer).filter_by(customer_code=code).first():
        raise click.ClickException(f"Customer code {code} already exists")
    customer = Customer(
        customer_code=code, first_name=first_name, last_name=last_name, email=email, phone=phone
    )
    db.session.add(customer)
    db.session.commit()
    click.echo(f"PASS Created customer {customer.display_name} (ID: {customer.id})")


@click.group('employees')
def employees_group():
    """Employee master data."""


@employees_group.command('create')
@click.option('--code', required=True)
@click.option('--first-name', required=True)
@click.option('--last-name', required=True)
@with_appcontext
def create_employee(code, first_name, last_name):
    if db.session.query(Employee).filter_by(employee_code=code).first():
        raise click.ClickException(f"Employee code {code} already exists")
    employee = Employee(employee_code=code, first_name=first_name, last_name=last_name)
    db.session.add(employee)
    db.session.commit()
    click.echo(f"PASS Created employee {employee.display_name} (ID: {employee.id})")


@employees_group.command('delete')
@click.argument('employee_id', type=int)
@with_appcontext
def delete_employee(employee_id):
    try:
        result = staff_service.delete_employee(employee_id)
    except FulfillmentError as e:
        raise click.ClickException(e.message)
    click.echo(
        f"PASS Deleted employee {employee_id}; "
        f"{result['assignments_unassigned']} assignment(s) detached"
    )


@click.group('orders')
def orders_group():
    """Order maintenance commands."""


@orders_group.command('recompute')
@click.argument('order_id', type=int)
@click.option('--actor', default=None, help='Recorded as created_by on the pricing history row')
@with_appcontext
def recompute_order(order_id, actor):
    try:
        order = order_service.recompute_totals(order_id, actor=actor, note="Recomputed from CLI")
    except FulfillmentError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Order {order.reference_no}: quantity={order.quantity} amount={order.amount}")


@click.group('invoices')
def invoices_group():
    """Billing maintenance commands."""


@invoices_group.command('mark-overdue')
@click.option('--as-of', 'as_of', default=None, help='ISO date; defaults to today (UTC)')
@with_appcontext
def mark_overdue(as_of):
    try:
        invoices = invoice_service.mark_overdue(as_of)
    except FulfillmentError as e:
        raise click.ClickException(e.message)
    for invoice in invoices:
        click.echo(f"  {invoice.invoice_number} due {invoice.due_date.isoformat()}")
    click.echo(f"Marked {len(invoices)} invoice(s) overdue.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(customers_group)
    app.cli.add_command(employees_group)
    app.cli.add_command(orders_group)
    app.cli.add_command(invoices_group)
