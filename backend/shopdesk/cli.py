# Overview: Flask CLI command groups for bootstrap and shop administration.

# backend/shopdesk/cli.py
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
# Shop management (MULTI-TENANT):
# - python -m flask shops list
#   List all shops with owner and member counts.
# - python -m flask shops create --email owner@example.com --password "Password123!" --name "Corner Shop"
#   Register an owner account together with its shop.
#
# User management:
# - python -m flask users add-member --shop-id 1 --email cashier@example.com --role cashier [--password ...]
#   Add (or re-role) a member; creates the user if the email is new.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Shop, ShopMember, User, SHOP_ROLES
from .services.auth_service import (
    create_user,
    register_shop_owner,
    add_shop_member,
    normalize_email,
    PasswordValidationError,
)
from .validation import ValidationError, ConflictError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
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

    click.echo("PASS Database reset complete. Run 'python -m flask shops create' to add a shop.")


@click.group('shops')
def shops_group():
    """Shop (tenant) management commands."""


@shops_group.command('list')
@with_appcontext
def list_shops():
    """List all shops."""
    shops = db.session.query(Shop).order_by(Shop.id.asc()).all()

    if not shops:
        click.echo("No shops found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Slug':<25} {'Active':<8} {'Members'}")
    click.echo("="*80)

    for shop in shops:
        member_count = db.session.query(ShopMember).filter_by(shop_id=shop.id).count()
        active_str = "Yes" if shop.is_active else "No"
        click.echo(f"{shop.id:<5} {shop.name:<30} {shop.slug:<25} {active_str:<8} {member_count}")

    click.echo("="*80 + "\n")


@shops_group.command('create')
@click.option('--email', required=True, help='Owner email')
@click.option('--password', prompt=True, hide_input=True, help='Owner password')
@click.option('--name', 'shop_name', required=True, help='Shop name')
@click.option('--full-name', default=None, help='Owner full name')
@click.option('--currency', default=None, help='ISO currency code')
@with_appcontext
def create_shop_cli(email, password, shop_name, full_name, currency):
    """Register an owner account together with its shop."""
    try:
        user, shop = register_shop_owner(
            email=email,
            password=password,
            full_name=full_name,
            shop_name=shop_name,
            currency=currency,
        )
    except (PasswordValidationError, ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created shop: {shop.name} (ID: {shop.id}, Slug: {shop.slug}) owned by {user.email}")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('add-member')
@click.option('--shop-id', type=int, required=True, help='Shop ID')
@click.option('--email', required=True, help='User email')
@click.option('--role', type=click.Choice(SHOP_ROLES), required=True, help='Role in the shop')
@click.option('--password', default=None, help='Password (required if the user is new)')
@click.option('--full-name', default=None, help='Full name for a new user')
@with_appcontext
def add_member_cli(shop_id, email, role, password, full_name):
    """Add a user to a shop, creating the account if needed."""
    shop = db.session.get(Shop, shop_id)
    if not shop:
        click.echo(f"FAIL Shop {shop_id} not found")
        raise SystemExit(1)

    try:
        user = db.session.query(User).filter_by(email=normalize_email(email)).first()
        if user is None:
            if not password:
                click.echo("FAIL --password is required to create a new user")
                raise SystemExit(1)
            user = create_user(email, password, full_name)
        add_shop_member(shop_id=shop.id, user_id=user.id, role=role)
    except (PasswordValidationError, ValidationError, ConflictError) as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"PASS {user.email} is now '{role}' in {shop.name}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(shops_group)
    app.cli.add_command(users_group)
