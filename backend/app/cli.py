# Overview: Flask CLI command groups for schema bootstrap, report cache rebuilds and HPP recalculation.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to the app factory (PowerShell: $env:FLASK_APP="app:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use "flask db upgrade" for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Report cache:
# - python -m flask reports update-cache [--date 2025-11-09] [--force]
#   Rebuild the transaction cache and daily summary for one date (default: today, UTC).
#   --force first removes the date's cache rows (drops rows of orders that no longer exist).
# - python -m flask reports refresh-summary --date 2025-11-09 [--days 7]
#   Recompute the daily summary for a date (and the N-1 days before it).
#
# HPP (product cost basis):
# - python -m flask hpp recalc [--product-id 12] [--method latest|average|current]
#   Recalculate one product, or every active product with a composition.
# - python -m flask hpp compare --product-id 12
#   Show a product's HPP under every costing method.

import click
from datetime import timedelta
from flask.cli import with_appcontext

from .extensions import db
from .report_cache import get_report_cache
from .services import cost_basis_service
from .services.concurrency import run_with_retry
from .time_utils import parse_iso_date, utcnow


def _parse_date_option(value):
    if value is None:
        return utcnow().date()
    try:
        return parse_iso_date(value)
    except ValueError:
        raise click.BadParameter("date must be YYYY-MM-DD")


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (no-op for tables that already exist)."""
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


@click.group('reports')
def reports_group():
    """Report cache maintenance commands."""


@reports_group.command('update-cache')
@click.option('--date', 'date_str', help='Report date YYYY-MM-DD (default: today, UTC)')
@click.option('--force', is_flag=True, help="Delete the date's cache rows before rebuilding")
@with_appcontext
def update_cache(date_str, force):
    """
    Rebuild report_transaction_cache and report_sales_daily for one date.

    Safe to run repeatedly: every row is recomputed from the orders table.
    """
    day = _parse_date_option(date_str)
    cache = get_report_cache()

    click.echo(f"START Updating report cache for date: {day.isoformat()}")

    def _op():
        rebuilt = cache.orders.rebuild_for_date(db.session.connection(), day, force=force)
        db.session.commit()
        return rebuilt

    try:
        rebuilt = run_with_retry(_op)
    except Exception as exc:
        db.session.rollback()
        click.echo(f"FAIL Failed to update report cache: {exc}", err=True)
        raise SystemExit(1)

    click.echo(f"PASS Cached {rebuilt} transactions")
    click.echo("PASS Daily summary updated")


@reports_group.command('refresh-summary')
@click.option('--date', 'date_str', required=True, help='Last report date YYYY-MM-DD')
@click.option('--days', type=int, default=1, show_default=True, help='Number of days ending at --date')
@with_appcontext
def refresh_summary(date_str, days):
    """Recompute report_sales_daily rows without touching the transaction cache."""
    if days < 1:
        raise click.BadParameter("days must be >= 1")
    end_day = _parse_date_option(date_str)
    cache = get_report_cache()

    def _op():
        conn = db.session.connection()
        outcomes = [
            cache.summary.refresh(conn, end_day - timedelta(days=offset))
            for offset in range(days)
        ]
        db.session.commit()
        return outcomes

    outcomes = run_with_retry(_op)
    failed = sum(1 for outcome in outcomes if outcome != "rebuilt")
    click.echo(f"PASS Refreshed {days - failed} daily summaries ({failed} failed)")


@click.group('hpp')
def hpp_group():
    """Product cost basis (HPP) commands."""


@hpp_group.command('recalc')
@click.option('--product-id', type=int, help='Recalculate only this product')
@click.option('--method', type=click.Choice(list(cost_basis_service.COST_METHODS)), help='Costing method (default: HPP_DEFAULT_METHOD)')
@with_appcontext
def recalc_hpp(product_id, method):
    """Recalculate and store product cost from compositions."""
    propagator = get_report_cache().cost_basis

    def _op():
        conn = db.session.connection()
        if product_id is not None:
            change = propagator.recalculate_product(conn, product_id, method)
            changes = [change] if change else []
        else:
            changes = propagator.recalculate_all(conn, method)
        db.session.commit()
        return changes

    changes = run_with_retry(_op)
    if not changes:
        click.echo("No products updated.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<6} {'Product':<30} {'Old cost':>14} {'New cost':>14} {'Diff':>14}")
    click.echo("="*90)
    for change in changes:
        old = str(change.old_cost) if change.old_cost is not None else "-"
        click.echo(f"{change.product_id:<6} {change.product_name[:30]:<30} {old:>14} "
                   f"{str(change.new_cost):>14} {str(change.difference):>14}")
    click.echo("="*90 + "\n")
    click.echo(f"PASS Updated {len(changes)} products")


@hpp_group.command('compare')
@click.option('--product-id', type=int, required=True)
@with_appcontext
def compare_hpp(product_id):
    """Print a product's HPP under each costing method."""
    try:
        result = cost_basis_service.compare_methods(db.session.connection(), product_id)
    except cost_basis_service.CostBasisError as exc:
        raise click.ClickException(str(exc))

    click.echo(f"{result['product_name']} (ID: {result['product_id']})")
    click.echo(f"  stored cost: {result['current_cost'] or '-'}  price: {result['current_price']}")
    for method, total in result["hpp_methods"].items():
        click.echo(f"  {method:<8} {total or 'n/a'}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(reports_group)
    app.cli.add_command(hpp_group)
