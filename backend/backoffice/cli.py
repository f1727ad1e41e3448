# Overview: Flask CLI command groups for bootstrap, inspection, and ledger audit.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (use `flask db upgrade` for managed schemas).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Shift inspection:
# - python -m flask shifts current
# - python -m flask shifts history --limit 20
#
# Stock inspection:
# - python -m flask stock items [--tracked]
# - python -m flask stock adjustments
# - python -m flask stock show 3
#
# Supplier inspection:
# - python -m flask suppliers list [--all]
# - python -m flask suppliers balances [--all]
#
# Ledger audit:
# - python -m flask audit verify
#   Exit code 1 when any ledger invariant is violated.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import (
    audit_service,
    inventory_service,
    shift_service,
    stock_adjustment_service,
    supplier_service,
)
from .validation import LedgerError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


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


@click.group('shifts')
def shifts_group():
    """Cash drawer shift inspection."""


def _echo_shift_row(s: dict):
    click.echo(
        f"{s['id']:<5} {s['status']:<8} {s['opened_at'] or '-':<22} {s['closed_at'] or '-':<22} "
        f"{s['start_cash']:>12} {s['total_sales']:>12} {s['total_expenses']:>12} "
        f"{s['end_cash_expected'] or '-':>12} {s['end_cash_actual'] or '-':>12} "
        f"{s['difference'] or '-':>10} {s['outcome'] or '-'}"
    )


def _echo_shift_header():
    click.echo("\n" + "=" * 150)
    click.echo(
        f"{'ID':<5} {'Status':<8} {'Opened':<22} {'Closed':<22} {'Start':>12} {'Sales':>12} "
        f"{'Expenses':>12} {'Expected':>12} {'Actual':>12} {'Diff':>10} Outcome"
    )
    click.echo("=" * 150)


@shifts_group.command('current')
@with_appcontext
def current_shift_cli():
    """Show the open shift, if any."""
    shift = shift_service.get_current_shift()
    if shift is None:
        click.echo("No shift is open.")
        return
    _echo_shift_header()
    _echo_shift_row(shift)
    click.echo("=" * 150 + "\n")


@shifts_group.command('history')
@click.option('--limit', type=int, default=None, help='Max shifts to show')
@with_appcontext
def shift_history_cli(limit):
    """
    List recent shifts, open first.

    Example:
        flask shifts history
        flask shifts history --limit 50
    """
    try:
        shifts = shift_service.get_shift_history(limit)
    except LedgerError as e:
        raise click.BadParameter(str(e), param_hint="--limit")

    if not shifts:
        click.echo("No shifts found.")
        return

    _echo_shift_header()
    for s in shifts:
        _echo_shift_row(s)
    click.echo("=" * 150 + "\n")


@click.group('stock')
def stock_group():
    """Menu item stock and adjustment inspection."""


@stock_group.command('items')
@click.option('--tracked', 'tracked_only', is_flag=True, help='Only stock-tracked items')
@with_appcontext
def list_items_cli(tracked_only):
    """List menu items with their current stock."""
    items = inventory_service.list_menu_items(tracked_only=tracked_only)
    if not items:
        click.echo("No menu items found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Category':<15} {'Tracked':<8} {'Stock':>8}")
    click.echo("=" * 80)
    for item in items:
        tracked = "Yes" if item.track_stock else "No"
        stock = str(item.stock_quantity) if item.track_stock else "-"
        click.echo(f"{item.id:<5} {item.name[:30]:<30} {(item.category or '-')[:15]:<15} {tracked:<8} {stock:>8}")
    click.echo("=" * 80 + "\n")


@stock_group.command('adjustments')
@with_appcontext
def list_adjustments_cli():
    """List stock adjustments, newest first."""
    rows = stock_adjustment_service.list_adjustments()
    if not rows:
        click.echo("No stock adjustments found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Date':<12} {'Lines':>6}  {'Reason'}")
    click.echo("=" * 80)
    for row in rows:
        click.echo(f"{row['id']:<5} {row['adjustment_date']:<12} {row['item_count']:>6}  {row['reason']}")
    click.echo("=" * 80 + "\n")


@stock_group.command('show')
@click.argument('adjustment_id', type=int)
@with_appcontext
def show_adjustment_cli(adjustment_id):
    """Replay one adjustment exactly as recorded."""
    try:
        details = stock_adjustment_service.get_adjustment_details(adjustment_id)
    except LedgerError as e:
        raise click.ClickException(str(e))

    header = details["adjustment"]
    click.echo(f"\nAdjustment {header['id']} on {header['adjustment_date']}: {header['reason']}")
    if header["notes"]:
        click.echo(f"Notes: {header['notes']}")
    click.echo("=" * 80)
    click.echo(f"{'Item':<30} {'Mode':<8} {'Qty':>6} {'Prev':>8} {'Change':>8} {'New':>8}")
    click.echo("=" * 80)
    for line in details["items"]:
        click.echo(
            f"{(line['item_name'] or '-')[:30]:<30} {line['mode']:<8} {line['quantity']:>6} "
            f"{line['previous_stock']:>8} {line['quantity_change']:>+8} {line['new_stock']:>8}"
        )
    click.echo("=" * 80 + "\n")


@click.group('suppliers')
def suppliers_group():
    """Supplier account inspection."""


@suppliers_group.command('list')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive suppliers too')
@with_appcontext
def list_suppliers_cli(show_all):
    suppliers = supplier_service.list_suppliers(include_inactive=show_all)
    if not suppliers:
        click.echo("No suppliers found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Phone':<18} {'Active'}")
    click.echo("=" * 80)
    for s in suppliers:
        active_str = "Yes" if s.is_active else "No"
        click.echo(f"{s.id:<5} {s.name[:30]:<30} {(s.phone or '-')[:18]:<18} {active_str}")
    click.echo("=" * 80 + "\n")


@suppliers_group.command('balances')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive suppliers too')
@with_appcontext
def balances_cli(show_all):
    """Balance due per supplier, summed from full history."""
    rows = supplier_service.get_balance_summaries(include_inactive=show_all)
    if not rows:
        click.echo("No suppliers found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<5} {'Name':<30} {'Purchases':>14} {'Paid':>14} {'Balance due':>14}  {'Last purchase'}")
    click.echo("=" * 100)
    for r in rows:
        click.echo(
            f"{r['supplier_id']:<5} {r['supplier_name'][:30]:<30} {r['total_purchases']:>14} "
            f"{r['total_paid']:>14} {r['balance_due']:>14}  {r['last_purchase_date'] or '-'}"
        )
    click.echo("=" * 100 + "\n")


@click.group('audit')
def audit_group():
    """Ledger invariant checks."""


@audit_group.command('verify')
@with_appcontext
def verify_cli():
    """Re-derive every ledger invariant from stored history."""
    report = audit_service.verify_ledgers()
    for name, count in report["checked"].items():
        click.echo(f"checked {name}: {count}")

    if report["ok"]:
        click.echo("PASS No ledger violations found.")
        return

    for v in report["violations"]:
        click.echo(f"FAIL [{v['check']}] {v['entity_type']} {v['entity_id']}: {v['message']}")
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(shifts_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(suppliers_group)
    app.cli.add_command(audit_group)
