# Overview: Flask CLI command groups for bootstrap, inspection, and polling views.

# backend/bakery/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default owner, manager and sales rep.
# - python -m flask system seed-demo
#   Add demo bread types with prices (skips names that already exist).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username ada --role sales_rep [--display-name "Ada"]
# - python -m flask users select-shift ada night
#   Persist a user's shift toggle.
#
# Products:
# - python -m flask products list [--all]
# - python -m flask products create --name "Agege Bread" --price-cents 120000
#
# Inventory (polling views):
# - python -m flask inventory show --shift morning [--day 2026-03-14] [--owner-id 3]
# - python -m flask inventory watch --shift night --interval 30
#   Re-run the reconciliation every N seconds until interrupted.
#
# Batches:
# - python -m flask batches list [--shift morning] [--status active]
# - python -m flask batches tick
#   Recompute progress once (moves due batches to quality_check).
# - python -m flask batches watch [--interval 90]
#   Tick on a cadence while any batch is active, then exit.
# - python -m flask batches stats [--shift night]
#
# Reports:
# - python -m flask reports save --username ada --shift morning [--day 2026-03-14] [--clear-sales]
# - python -m flask reports list [--username ada]

import time

import click
from flask.cli import with_appcontext

from .extensions import db
from .enums import Role, Shift, BatchStatus
from .models import User
from .services import batch_service, inventory_service, products_service, report_service
from .services.shift_service import resolve_shift_window, select_shift
from .time_utils import utcnow, to_utc_z
from .validation import ConflictError, NotFoundError, ValidationError, parse_day


DEMO_PRODUCTS = [
    ("Agege Bread", 120000),
    ("Butter Bread", 150000),
    ("Coconut Bread", 180000),
    ("Whole Wheat Loaf", 200000),
    ("Sardine Bread", 80000),
]

DEFAULT_USERS = [
    ("owner", "Owner", Role.OWNER),
    ("manager", "Manager", Role.MANAGER),
    ("sales", "Sales Rep", Role.SALES_REP),
]

SHIFT_CHOICE = click.Choice([s.value for s in Shift])


def _user_by_username(username: str) -> User:
    user = db.session.query(User).filter_by(username=username).first()
    if user is None:
        raise click.ClickException(f"User '{username}' not found")
    return user


def _money(cents: int) -> str:
    return f"{cents / 100:,.2f}"


def _print_figures(figures) -> None:
    click.echo("\n" + "=" * 100)
    click.echo(
        f"{'Product':<25} {'Produced':>9} {'Sold':>6} {'Stock':>6} {'Status':<7} "
        f"{'Sold value':>13} {'Remaining target':>17}"
    )
    click.echo("=" * 100)
    for p in figures.products:
        click.echo(
            f"{p.product_name:<25} {p.produced_units:>9} {p.sold_units:>6} {p.current_stock_units:>6} "
            f"{p.status.value:<7} {_money(p.sold_value):>13} {_money(p.remaining_target):>17}"
        )
    click.echo("-" * 100)
    click.echo(
        f"{'TOTAL':<25} {figures.total_produced_units:>9} {figures.total_sold_units:>6} {'':>6} {'':<7} "
        f"{_money(figures.total_sold_value):>13} {_money(figures.total_remaining_target):>17}"
    )
    click.echo(f"Alerts: {figures.low_stock_count} low, {figures.out_of_stock_count} out of stock")
    click.echo("=" * 100 + "\n")


# =============================================================================
# system
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the bakery backend: tables and default users.

    Creates (if missing):
    - owner (role owner)
    - manager (role manager)
    - sales (role sales_rep)
    """
    click.echo("START Initializing bakery backend...")
    db.create_all()

    for username, display_name, role in DEFAULT_USERS:
        existing = db.session.query(User).filter_by(username=username).first()
        if existing:
            click.echo(f"PASS Using existing user: {username} (ID: {existing.id})")
            continue
        user = User(username=username, display_name=display_name, role=role)
        db.session.add(user)
        db.session.commit()
        click.echo(f"PASS Created user: {username} (ID: {user.id}, role: {role.value})")

    click.echo("PASS Initialization complete. Pass the user id in the X-User-Id header.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Add demo bread types with prices."""
    created = 0
    for name, price_cents in DEMO_PRODUCTS:
        try:
            products_service.create_product(name=name, price_cents=price_cents)
            created += 1
        except ConflictError:
            click.echo(f"SKIP {name} already exists")
    click.echo(f"PASS Created {created} product(s)")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


# =============================================================================
# users
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--display-name', default=None, help='Display name')
@click.option('--role', type=click.Choice([r.value for r in Role]), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, display_name, role):
    """Create a staff user."""
    if db.session.query(User).filter_by(username=username).first():
        raise click.ClickException(f"User '{username}' already exists")
    user = User(username=username, display_name=display_name, role=Role(role))
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user: {username} (ID: {user.id}) with role '{role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role and selected shift."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<12} {'Shift':<10} {'Active'}")
    click.echo("=" * 80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(
            f"{user.id:<5} {user.username:<20} {Role(user.role).value:<12} "
            f"{Shift(user.selected_shift).value:<10} {active_str}"
        )
    click.echo("=" * 80 + "\n")


@users_group.command('select-shift')
@click.argument('username')
@click.argument('shift', type=SHIFT_CHOICE)
@with_appcontext
def select_shift_cli(username, shift):
    """Persist a user's shift toggle."""
    user = select_shift(_user_by_username(username).id, shift)
    click.echo(f"PASS {user.username} is now on the {Shift(user.selected_shift).value} shift")


# =============================================================================
# products
# =============================================================================

@click.group('products')
def products_group():
    """Product (bread type) commands."""


@products_group.command('list')
@click.option('--all', 'show_all', is_flag=True, help='Include inactive products')
@with_appcontext
def list_products_cli(show_all):
    products = products_service.list_products(include_inactive=show_all)
    if not products:
        click.echo("No products found.")
        return
    click.echo("\n" + "=" * 70)
    click.echo(f"{'ID':<5} {'Name':<30} {'Price':>14} {'Active'}")
    click.echo("=" * 70)
    for p in products:
        price = _money(p.price_cents) if p.price_cents is not None else "-"
        click.echo(f"{p.id:<5} {p.name:<30} {price:>14} {'Yes' if p.is_active else 'No'}")
    click.echo("=" * 70 + "\n")


@products_group.command('create')
@click.option('--name', prompt=True, help='Product name')
@click.option('--price-cents', type=int, default=None, help='Unit price in minor units')
@with_appcontext
def create_product_cli(name, price_cents):
    try:
        product = products_service.create_product(name=name, price_cents=price_cents)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created product: {product.name} (ID: {product.id})")


# =============================================================================
# inventory
# =============================================================================

@click.group('inventory')
def inventory_group():
    """Inventory figures (read-only)."""


def _reconcile_from_options(shift, day, owner_id):
    try:
        return inventory_service.reconcile(shift=shift, day=parse_day(day), owner_id=owner_id, include_idle=True)
    except ValidationError as e:
        raise click.ClickException(str(e))


@inventory_group.command('show')
@click.option('--shift', type=SHIFT_CHOICE, required=True)
@click.option('--day', default=None, help='Local day YYYY-MM-DD (default today)')
@click.option('--owner-id', type=int, default=None, help='Scope sales and remaining counts to one seller')
@with_appcontext
def show_inventory(shift, day, owner_id):
    figures = _reconcile_from_options(shift, day, owner_id)
    click.echo(f"Inventory for {figures.shift.value} shift, {figures.day.isoformat()}")
    _print_figures(figures)


@inventory_group.command('watch')
@click.option('--shift', type=SHIFT_CHOICE, required=True)
@click.option('--owner-id', type=int, default=None)
@click.option('--interval', type=int, default=None, help='Seconds between refreshes')
@with_appcontext
def watch_inventory(shift, owner_id, interval):
    """Re-run the reconciliation every --interval seconds (Ctrl+C to stop)."""
    from flask import current_app

    interval = interval or current_app.config["INVENTORY_POLL_INTERVAL_SECONDS"]
    try:
        while True:
            figures = _reconcile_from_options(shift, None, owner_id)
            click.echo(f"[{to_utc_z(utcnow())}] {figures.shift.value} shift, {figures.day.isoformat()}")
            _print_figures(figures)
            # End the read transaction so the next pass sees new events
            db.session.remove()
            time.sleep(interval)
    except KeyboardInterrupt:
        click.echo("Stopped.")


# =============================================================================
# batches
# =============================================================================

@click.group('batches')
def batches_group():
    """Production batch commands."""


@batches_group.command('list')
@click.option('--shift', type=SHIFT_CHOICE, default=None)
@click.option('--status', type=click.Choice([s.value for s in BatchStatus]), default=None)
@click.option('--limit', type=int, default=50)
@with_appcontext
def list_batches_cli(shift, status, limit):
    batches = batch_service.list_batches(shift=shift, status=status, limit=limit)
    now = utcnow()
    if not batches:
        click.echo("No batches found.")
        return
    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<5} {'Number':<8} {'Product':<25} {'Shift':<8} {'Status':<14} {'Progress':>8} {'Target':>7} {'Actual':>7}")
    click.echo("=" * 100)
    for b in batches:
        actual = b.actual_quantity if b.actual_quantity is not None else "-"
        click.echo(
            f"{b.id:<5} {b.batch_number:<8} {b.product.name:<25} {Shift(b.shift).value:<8} "
            f"{BatchStatus(b.status).value:<14} {batch_service.compute_progress(b, now):>7.1f}% {b.target_quantity:>7} {actual:>7}"
        )
    click.echo("=" * 100 + "\n")


@batches_group.command('tick')
@with_appcontext
def tick_batches_cli():
    """Recompute progress for active batches once."""
    moved = batch_service.tick_batch_progress()
    for b in moved:
        click.echo(f"PASS Batch {b.batch_number} ({b.product.name}) moved to quality_check")
    click.echo(f"Ticked at {to_utc_z(utcnow())}; {len(moved)} batch(es) moved")


@batches_group.command('watch')
@click.option('--interval', type=int, default=None, help='Seconds between ticks')
@with_appcontext
def watch_batches_cli(interval):
    """Tick on a cadence while any batch is active, then exit."""
    from flask import current_app

    interval = interval or current_app.config["BATCH_TICK_INTERVAL_SECONDS"]
    try:
        while batch_service.has_active_batches():
            moved = batch_service.tick_batch_progress()
            click.echo(f"[{to_utc_z(utcnow())}] tick: {len(moved)} batch(es) moved to quality_check")
            db.session.remove()
            time.sleep(interval)
    except KeyboardInterrupt:
        click.echo("Stopped.")
        return
    click.echo("No active batches.")


@batches_group.command('stats')
@click.option('--shift', type=SHIFT_CHOICE, default=None)
@with_appcontext
def batch_stats_cli(shift):
    window = resolve_shift_window(utcnow(), shift)
    stats = batch_service.batch_stats(shift=shift, today_start=window.start)
    click.echo(f"Batches ({stats['shift']}): {stats['total_batches']} total, {stats['today_batches']} today")
    for status, count in stats["by_status"].items():
        click.echo(f"  {status:<14} {count}")
    click.echo(f"Completion rate: {stats['completion_rate']:.1f}%")
    click.echo(f"Efficiency rate: {stats['efficiency_rate']:.1f}%")


# =============================================================================
# reports
# =============================================================================

@click.group('reports')
def reports_group():
    """Shift report commands."""


@reports_group.command('save')
@click.option('--username', required=True)
@click.option('--shift', type=SHIFT_CHOICE, required=True)
@click.option('--day', default=None, help='Local day YYYY-MM-DD (default today)')
@click.option('--feedback', default=None)
@click.option('--clear-sales', is_flag=True, help="End the shift: clear the seller's sales after the save")
@with_appcontext
def save_report_cli(username, shift, day, feedback, clear_sales):
    """Reconcile a seller's shift and save (or update) their report."""
    user = _user_by_username(username)
    session = report_service.ReportSaveSession(owner_id=user.id, shift=shift, day=parse_day(day))
    try:
        outcome, report = session.build_and_save(feedback=feedback)
    except (ValidationError, NotFoundError) as e:
        raise click.ClickException(str(e))
    click.echo(
        f"PASS Report {report.id} {outcome.value}: revenue {_money(report.total_revenue_cents)}, "
        f"{report.total_items_sold} item(s) sold, remaining {_money(report.total_remaining_cents)}"
    )

    if clear_sales:
        # Sales are only cleared once the report is safely stored
        if not session.completed:
            raise click.ClickException("Report was not saved; sales left in place")
        deleted = inventory_service.clear_shift_sales(user.id, shift)
        click.echo(f"PASS Cleared {deleted} sale(s) for {username} ({shift} shift)")


@reports_group.command('list')
@click.option('--username', default=None)
@click.option('--limit', type=int, default=20)
@with_appcontext
def list_reports_cli(username, limit):
    owner_id = _user_by_username(username).id if username else None
    reports = report_service.list_shift_reports(owner_id=owner_id, limit=limit)
    if not reports:
        click.echo("No reports found.")
        return
    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Owner':<6} {'Date':<12} {'Shift':<8} {'Revenue':>14} {'Items':>6} {'Remaining':>14}")
    click.echo("=" * 80)
    for r in reports:
        click.echo(
            f"{r.id:<5} {r.owner_user_id:<6} {r.report_date.isoformat():<12} {Shift(r.shift).value:<8} "
            f"{_money(r.total_revenue_cents):>14} {r.total_items_sold:>6} {_money(r.total_remaining_cents):>14}"
        )
    click.echo("=" * 80 + "\n")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(batches_group)
    app.cli.add_command(reports_group)
