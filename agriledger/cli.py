# Overview: Flask CLI command groups for bootstrap, seeding and ledger checks.

# agriledger/cli.py
# Commands Legend (run with FLASK_APP=agriledger):
#
# System bootstrap:
# - flask system init-db
#   Create all tables (idempotent; use `flask db upgrade` where migrations are managed).
# - flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Reference rows:
# - flask farmers add --ref FRM-0001 --first-name Juan --last-name Cruz --cluster "Cluster 4"
# - flask staff add --name "Ana Reyes" --role admin
#
# Stock:
# - flask items add --name "Hybrid rice seed" --quantity 40 --barcode 4800016 --unit sack
# - flask items list
# - flask items adjust --id 3 --count 38 --note "monthly count"
#   Set on-hand quantity to a physical count; the difference is audited.
#
# Lending:
# - flask assets add --ref TRC-001 --name "Hand tractor"
# - flask assets list
#
# Integrity:
# - flask ledger verify
#   Report negative quantities, availability / open-loan mismatches and return-claim
#   counter drift. Exits 1 on findings.

import sys

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import LedgerError
from .models import Farmer, Staff
from .services import stock_service, lending_service
from .services.integrity_service import find_invariant_violations


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    db.create_all()
    click.echo("Tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    if not yes:
        click.confirm("This drops every table and all data. Continue?", abort=True)
    db.drop_all()
    db.create_all()
    click.echo("Database reset.")


@click.group('farmers')
def farmers_group():
    """Farmer reference rows."""


@farmers_group.command('add')
@click.option('--ref', 'reference_number', required=True, help='QR reference number')
@click.option('--first-name', required=True)
@click.option('--last-name', required=True)
@click.option('--cluster', default=None)
@with_appcontext
def add_farmer(reference_number, first_name, last_name, cluster):
    farmer = Farmer(
        reference_number=reference_number,
        first_name=first_name,
        last_name=last_name,
        cluster=cluster,
    )
    db.session.add(farmer)
    db.session.commit()
    click.echo(f"Farmer {farmer.id} ({reference_number}) created.")


@click.group('staff')
def staff_group():
    """Staff reference rows."""


@staff_group.command('add')
@click.option('--name', required=True)
@click.option('--role', type=click.Choice(['staff', 'chairman', 'admin']), default='staff')
@with_appcontext
def add_staff(name, role):
    staff = Staff(name=name, role=role)
    db.session.add(staff)
    db.session.commit()
    click.echo(f"Staff {staff.id} ({name}, {role}) created.")


@click.group('items')
def items_group():
    """Stocked goods."""


@items_group.command('add')
@click.option('--name', required=True)
@click.option('--quantity', type=int, default=0, show_default=True)
@click.option('--classification', default=None)
@click.option('--barcode', default=None)
@click.option('--unit', default=None)
@with_appcontext
def add_item(name, quantity, classification, barcode, unit):
    try:
        item = stock_service.register_item(
            name,
            quantity,
            classification=classification,
            barcode=barcode,
            unit=unit,
        )
    except LedgerError as e:
        raise click.ClickException(e.message)
    click.echo(f"Item {item.id} ({item.name}) registered with quantity {item.quantity}.")


@items_group.command('adjust')
@click.option('--id', 'item_id', type=int, required=True)
@click.option('--count', 'counted_quantity', type=int, required=True, help='Physically counted quantity')
@click.option('--note', default=None)
@with_appcontext
def adjust_item(item_id, counted_quantity, note):
    try:
        item = stock_service.adjust_stock(item_id, counted_quantity, note=note)
    except LedgerError as e:
        raise click.ClickException(e.message)
    click.echo(f"Item {item.id} ({item.name}) now at {item.quantity}.")


@items_group.command('list')
@with_appcontext
def list_items():
    items = stock_service.list_items()
    if not items:
        click.echo("No items.")
        return
    for item in items:
        click.echo(f"{item.id:>5}  {item.quantity:>7}  {item.unit or '':<8} {item.name}")


@click.group('assets')
def assets_group():
    """Lendable machinery and tools."""


@assets_group.command('add')
@click.option('--ref', 'reference_number', required=True)
@click.option('--name', required=True)
@click.option('--condition', default='okay', show_default=True)
@with_appcontext
def add_asset(reference_number, name, condition):
    try:
        asset = lending_service.register_asset(reference_number, name, condition=condition)
    except LedgerError as e:
        raise click.ClickException(e.message)
    click.echo(f"Asset {asset.id} ({asset.reference_number}) registered.")


@assets_group.command('list')
@with_appcontext
def list_assets():
    for asset in lending_service.list_assets():
        state = "available" if asset.is_available else "borrowed"
        click.echo(f"{asset.id:>5}  {asset.reference_number:<12} {state:<10} {asset.condition:<12} {asset.name}")


@click.group('ledger')
def ledger_group():
    """Ledger integrity checks."""


@ledger_group.command('verify')
@with_appcontext
def verify_ledger():
    violations = find_invariant_violations()
    if not violations:
        click.echo("OK: no invariant violations.")
        return
    for v in violations:
        click.echo(f"{v['kind']}: {v['entity_type']} {v['entity_id']} ({v['detail']})", err=True)
    sys.exit(1)


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(farmers_group)
    app.cli.add_command(staff_group)
    app.cli.add_command(items_group)
    app.cli.add_command(assets_group)
    app.cli.add_command(ledger_group)
