# Overview: Flask CLI command groups for bootstrap, inspection, and daily maintenance.

# backend/lottoledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Store management:
# - python -m flask stores list
# - python -m flask stores create --name "Main Street" --code MAIN --timezone America/New_York
#
# Box inspection:
# - python -m flask boxes list --store-id 1 [--all]
#
# Daily maintenance (schedule once after midnight, store time):
# - python -m flask tickets reset-daily --store-id 1
# - python -m flask tickets reset-daily --all-stores

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .services import box_service, store_service, ticket_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema ready.")


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

    click.echo("PASS Database reset complete.")


@click.group('stores')
def stores_group():
    """Store management commands."""


@stores_group.command('list')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive stores too')
@with_appcontext
def list_stores_cli(show_all):
    """List stores."""
    stores = store_service.list_stores(include_inactive=show_all)
    if not stores:
        click.echo("No stores found.")
        return

    click.echo(f"{'ID':<5} {'Code':<10} {'Name':<30} {'Timezone':<25} {'Active'}")
    for store in stores:
        click.echo(
            f"{store.id:<5} {(store.code or '-'):<10} {store.name:<30} "
            f"{store.timezone:<25} {'yes' if store.is_active else 'no'}"
        )


@stores_group.command('create')
@click.option('--name', required=True, help='Store name')
@click.option('--code', default=None, help='Unique short code')
@click.option('--timezone', 'tz_name', default=None, help='IANA timezone (default: DEFAULT_STORE_TIMEZONE)')
@with_appcontext
def create_store_cli(name, code, tz_name):
    """Create a store."""
    try:
        store = store_service.create_store(name=name, code=code, timezone=tz_name)
    except LedgerError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created store {store.id} ({store.name}, {store.timezone})")


@click.group('boxes')
def boxes_group():
    """Box inspection commands."""


@boxes_group.command('list')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive boxes too')
@with_appcontext
def list_boxes_cli(store_id, show_all):
    """
    List boxes with their counters and sales.

    Example:
        flask boxes list --store-id 1
        flask boxes list --store-id 1 --all
    """
    boxes = box_service.list_boxes(store_id, include_inactive=show_all)
    if not boxes:
        click.echo("No boxes found.")
        return

    click.echo(f"{'ID':<5} {'Box':<8} {'Game':<8} {'Open':>8} {'Close':>8} {'Sales':>12} {'Active'}")
    for box in boxes:
        sales = box_service.calculate_sales(box) / 100
        click.echo(
            f"{box.id:<5} {box.box_number:<8} {box.game_number:<8} "
            f"{box.opening_number:>8} {box.closing_number:>8} {sales:>12.2f} "
            f"{'yes' if box.is_active else 'no'}"
        )


@click.group('tickets')
def tickets_group():
    """Ticket pack maintenance commands."""


@tickets_group.command('reset-daily')
@click.option('--store-id', type=int, help='Store ID')
@click.option('--all-stores', is_flag=True, help='Reset every active store')
@with_appcontext
def reset_daily_cli(store_id, all_stores):
    """
    Carry yesterday's closing serials into today's opening serials.

    Safe to run more than once a day.
    """
    if not store_id and not all_stores:
        raise click.UsageError("Pass --store-id or --all-stores")

    store_ids = [s.id for s in store_service.list_stores()] if all_stores else [store_id]
    for sid in store_ids:
        try:
            count = ticket_service.reset_daily_numbers_for_store(sid)
        except LedgerError as e:
            raise click.ClickException(f"Store {sid}: {e.message}")
        click.echo(f"Store {sid}: reset {count} pack(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(boxes_group)
    app.cli.add_command(tickets_group)
