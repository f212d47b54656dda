# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/greenstore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and seeds missing settings.
#
# Users:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --name "Ana" --email ana@store.local --password "Password123!" --role manager
#   Create a user (prompts if options are omitted).
#
# Settings:
# - python -m flask settings list
# - python -m flask settings set max_stock_adjust 100
#
# Stock diagnostics:
# - python -m flask stock reconcile [--product-id 1]
#   Compare cached current_stock with the sum of movements; nothing is changed.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, ROLE_LEVELS, User
from .amounts import quantity_str
from .services.auth_service import create_user, PasswordValidationError
from .services import settings_service, stock_service


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create tables and seed missing settings. Safe to run repeatedly."""
    click.echo("START Initializing greenstore...")
    db.create_all()
    added = settings_service.ensure_default_settings()
    db.session.commit()
    click.echo(f"PASS Settings seeded: {added} added")
    click.echo("DONE")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address (used for approvals)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLE_LEVELS)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(name, email, password, role):
    """Create a new user. Password must be at least 8 characters."""
    try:
        user = create_user(name=name, email=email, password=password, role=role)
        db.session.commit()
    except PasswordValidationError as e:
        db.session.rollback()
        click.echo(f"FAIL Password validation failed: {str(e)}")
        return
    except ValueError as e:
        db.session.rollback()
        click.echo(f"FAIL {str(e)}")
        return

    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<20} {'Email':<30} {'Role':<12} {'Active'}")
    click.echo("=" * 80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.name:<20} {user.email:<30} {user.role:<12} {active_str}")
    click.echo("=" * 80 + "\n")


@click.group('settings')
def settings_group():
    """Policy settings."""


@settings_group.command('list')
@with_appcontext
def list_settings():
    for key, value in settings_service.get_all_settings().items():
        click.echo(f"{key:<24} {value}")


@settings_group.command('set')
@click.argument('key')
@click.argument('value')
@with_appcontext
def set_setting(key, value):
    """Upsert one setting. "0" disables a ceiling."""
    settings_service.upsert_settings({key: value}, actor_user_id=None)
    db.session.commit()
    click.echo(f"PASS {key} = {value}")


@click.group('stock')
def stock_group():
    """Stock ledger diagnostics."""


@stock_group.command('reconcile')
@click.option('--product-id', type=int, help='Check a single product')
@with_appcontext
def reconcile_stock_cli(product_id):
    """Report products whose current_stock differs from their movement sum."""
    if product_id:
        product_ids = [product_id]
    else:
        product_ids = [pid for (pid,) in db.session.query(Product.id).order_by(Product.id.asc()).all()]

    drifted = 0
    for pid in product_ids:
        report = stock_service.reconcile_stock(pid)
        if report["drift"] != 0:
            drifted += 1
            click.echo(
                f"WARN  product {pid}: current_stock={quantity_str(report['current_stock'])} "
                f"ledger_sum={quantity_str(report['ledger_sum'])} drift={quantity_str(report['drift'])}"
            )

    click.echo(f"DONE {len(product_ids)} checked, {drifted} with drift")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(settings_group)
    app.cli.add_command(stock_group)
