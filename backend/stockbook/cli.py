# Overview: Flask CLI command groups for bootstrap, users, and stock maintenance.

# backend/stockbook/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--admin-password "Password123!"]
#   Idempotent: creates all tables and a default admin user.
#
# Users:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username cashier1 --email c1@stockbook.local --password "Password123!" --role cashier
#   Create a user (prompts if options are omitted).
#
# Stock maintenance:
# - python -m flask stock reconcile
#   Report products whose cached quantity differs from their lot sums.
# - python -m flask stock reconcile --fix
#   Overwrite the cached quantity with the lot sums.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .permissions import ROLES
from .services.auth_service import create_user, PasswordValidationError
from .services.reporting_service import reconcile_quantity_cache


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', help='Username of the default admin')
@click.option('--admin-email', default='admin@stockbook.local', help='Email of the default admin')
@click.option('--admin-password', default='Password123!', help='Password of the default admin')
@with_appcontext
def init_system(admin_username, admin_email, admin_password):
    """
    Create tables and a default admin user.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing stockbook...")
    db.create_all()
    click.echo("PASS Tables ready")

    existing = db.session.query(User).filter_by(username=admin_username).first()
    if existing:
        click.echo(f"PASS Admin user '{admin_username}' already exists")
        return

    try:
        create_user(admin_username, admin_email, admin_password, role="admin")
    except (PasswordValidationError, ValueError) as e:
        raise click.ClickException(f"Failed to create admin user: {e}")
    click.echo(f"PASS Created admin user: {admin_username} ({admin_email})")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with role and active status."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return
    for u in users:
        status = "active" if u.is_active else "inactive"
        click.echo(f"{u.id:>4}  {u.username:<20} {u.email:<32} {u.role:<8} {status}")


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    """
    Create a new user.

    Password must meet strength requirements: 8+ chars, uppercase,
    lowercase, digit and special character.
    """
    try:
        create_user(username=username, email=email, password=password, role=role)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        raise SystemExit(1)
    except ValueError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {username} ({email}) with role '{role}'")


@click.group('stock')
def stock_group():
    """Stock maintenance commands."""


@stock_group.command('reconcile')
@click.option('--fix', is_flag=True, help='Overwrite cached quantities with lot sums')
@with_appcontext
def reconcile_stock(fix):
    """Compare Product.quantity_on_hand with the sum of active lot quantities."""
    drift = reconcile_quantity_cache(fix=fix)
    if not drift:
        click.echo("PASS No drift: every cached quantity matches its lots")
        return

    for entry in drift:
        click.echo(f"DRIFT {entry['sku']}: cached={entry['cached']} lots={entry['lot_sum']}")
    if fix:
        click.echo(f"PASS Fixed {len(drift)} product(s)")
    else:
        click.echo(f"WARN {len(drift)} product(s) drifting; rerun with --fix to repair")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)
