# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/medpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Tenant (store) management:
# - python -m flask tenants create --store-name "City Pharmacy" --name "Asha" --email owner@city.test --password "Password123!"
#   Register a store and its owner login.
# - python -m flask tenants list
#   List all tenants with user, medicine, and bill counts.
#
# User inspection/bootstrap:
# - python -m flask users create-staff --tenant-id 1 --name "Ravi" --email ravi@city.test --password "Password123!"
# - python -m flask users list [--tenant-id 1]
#
# Sessions:
# - python -m flask sessions cleanup --older-than-days 30
#   Delete expired or revoked session tokens.
#
# Catalog inspection:
# - python -m flask catalog low-stock --tenant-id 1
# - python -m flask catalog expiring --tenant-id 1 --days 30

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Medicine, Sale, Tenant, User
from .services.auth_service import AuthError, PasswordValidationError, create_staff_user, register_owner
from .services import catalog_service
from .services import session_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (existing tables are left untouched)."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask tenants create' to add a store.")


# =============================================================================
# TENANT MANAGEMENT COMMANDS
# =============================================================================

@click.group('tenants')
def tenants_group():
    """Tenant (store) management commands."""


@tenants_group.command('create')
@click.option('--store-name', required=True, help='Store name')
@click.option('--name', required=True, help='Owner name')
@click.option('--email', required=True, help='Owner email (login)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Owner password')
@click.option('--timezone', 'tz_name', default='UTC', help='IANA timezone, e.g. Asia/Kolkata')
@with_appcontext
def create_tenant_cli(store_name, name, email, password, tz_name):
    """Register a store (tenant) together with its OWNER user."""
    try:
        tenant, user = register_owner(
            store_name=store_name,
            name=name,
            email=email,
            password=password,
            timezone=tz_name,
        )
    except (AuthError, PasswordValidationError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created tenant: {tenant.store_name} (ID: {tenant.id}), owner {user.email}")


@tenants_group.command('list')
@with_appcontext
def list_tenants():
    """List all tenants."""
    tenants = db.session.query(Tenant).order_by(Tenant.id.asc()).all()

    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Store':<30} {'Active':<8} {'Users':<7} {'Medicines':<10} {'Bills'}")
    click.echo("="*80)

    for tenant in tenants:
        user_count = db.session.query(User).filter_by(tenant_id=tenant.id).count()
        medicine_count = db.session.query(Medicine).filter_by(tenant_id=tenant.id).count()
        bill_count = db.session.query(Sale).filter_by(tenant_id=tenant.id).count()
        active_str = "Yes" if tenant.is_active else "No"

        click.echo(
            f"{tenant.id:<5} {tenant.store_name:<30} {active_str:<8} "
            f"{user_count:<7} {medicine_count:<10} {bill_count}"
        )

    click.echo("="*80 + "\n")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create-staff')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--name', prompt=True, help='Name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_staff_cli(tenant_id, name, email, password):
    """Create a STAFF login inside a tenant."""
    try:
        user = create_staff_user(tenant_id, name=name, email=email, password=password)
    except (AuthError, PasswordValidationError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created staff user: {user.email} (ID: {user.id}, Tenant: {tenant_id})")


@users_group.command('list')
@click.option('--tenant-id', type=int, help='Filter by tenant ID')
@with_appcontext
def list_users(tenant_id):
    """List users with role and active status."""
    query = db.session.query(User)
    if tenant_id:
        query = query.filter_by(tenant_id=tenant_id)
    users = query.order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Tenant':<8} {'Email':<35} {'Role':<8} {'Active'}")
    click.echo("="*80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.tenant_id:<8} {user.email:<35} {user.role:<8} {active_str}")
    click.echo("="*80 + "\n")


# =============================================================================
# MAINTENANCE COMMANDS
# =============================================================================

@click.group('sessions')
def sessions_group():
    """Session token maintenance commands."""


@sessions_group.command('cleanup')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions(older_than_days):
    """Delete expired or revoked sessions created before the cutoff."""
    deleted = session_service.cleanup_expired_sessions(older_than_days=older_than_days)
    click.echo(f"PASS Deleted {deleted} session(s).")


@click.group('catalog')
def catalog_group():
    """Catalog inspection commands."""


def _echo_medicines(medicines):
    click.echo(f"{'ID':<6} {'Name':<30} {'Batch':<16} {'Qty':<6} {'Expiry'}")
    for m in medicines:
        click.echo(f"{m.id:<6} {m.name[:30]:<30} {m.batch_number:<16} {m.quantity:<6} {m.expiry_date.isoformat()}")


@catalog_group.command('low-stock')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@with_appcontext
def low_stock_cli(tenant_id):
    """Active, in-stock medicines at or below their low-stock threshold."""
    medicines = catalog_service.low_stock_medicines(tenant_id)
    if not medicines:
        click.echo("No low-stock medicines.")
        return
    _echo_medicines(medicines)


@catalog_group.command('expiring')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--days', type=int, default=30, show_default=True)
@with_appcontext
def expiring_cli(tenant_id, days):
    """Active medicines expiring within the next N days."""
    medicines = catalog_service.expiring_medicines(tenant_id, days)
    if not medicines:
        click.echo(f"No medicines expiring in the next {days} days.")
        return
    _echo_medicines(medicines)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(users_group)
    app.cli.add_command(sessions_group)
    app.cli.add_command(catalog_group)
