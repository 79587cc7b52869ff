# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/retailpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Owner (tenant) management:
# - python -m flask owners create --email owner@shop.local --password "Password123!" --first-name Ada --last-name Shop
#   Create an OWNER account, i.e. a new tenant.
# - python -m flask owners list
#   List owners with their store and employee counts.
#
# Credentials:
# - python -m flask tokens issue --email cashier@shop.local
#   Sign a credential for an existing active user (support/debugging).

import click
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .models import Role, Store, User
from .services.auth_service import register_owner
from .services.token_service import issue_credential


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema created")


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
    click.echo("CREATE Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('owners')
def owners_group():
    """Owner (tenant root) management."""


@owners_group.command('create')
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--first-name', prompt=True)
@click.option('--last-name', prompt=True)
@click.option('--phone', default=None)
@with_appcontext
def create_owner(email, password, first_name, last_name, phone):
    """Create an OWNER account (a new tenant)."""
    payload = {
        "email": email,
        "password": password,
        "first_name": first_name,
        "last_name": last_name,
    }
    if phone:
        payload["phone"] = phone

    try:
        user, _ = register_owner(payload)
    except PosError as exc:
        raise click.ClickException(exc.message)

    click.echo(f"PASS Created owner {user.email} (ID: {user.id}, tenant: {user.tenant_id})")


@owners_group.command('list')
@with_appcontext
def list_owners():
    """List all owners."""
    owners = db.session.query(User).filter_by(role=Role.OWNER).order_by(User.id).all()

    if not owners:
        click.echo("No owners found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Email':<40} {'Active':<8} {'Stores':<8} {'Employees'}")
    click.echo("="*80)

    for owner in owners:
        store_count = db.session.query(Store).filter_by(owner_id=owner.id).count()
        employee_count = db.session.query(User).filter_by(owner_id=owner.id).count()
        active_str = "Yes" if owner.is_active else "No"
        click.echo(f"{owner.id:<5} {owner.email:<40} {active_str:<8} {store_count:<8} {employee_count}")

    click.echo("="*80 + "\n")


@click.group('tokens')
def tokens_group():
    """Credential issuing for support and debugging."""


@tokens_group.command('issue')
@click.option('--email', required=True, help='Email of an existing user')
@click.option('--expires-in', type=int, default=None, help='Lifetime in seconds')
@with_appcontext
def issue_token(email, expires_in):
    """Print a signed credential for an active user."""
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        raise click.ClickException(f"User not found: {email}")
    if not user.is_active:
        raise click.ClickException(f"User is deactivated: {email}")

    click.echo(issue_credential(user, expires_in=expires_in))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(owners_group)
    app.cli.add_command(tokens_group)
