# Overview: Flask CLI command groups for bootstrap and maintenance.

# backend/ombor/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: flask --app ombor <group> <command> [options]
#
# System bootstrap:
# - flask --app ombor system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - flask --app ombor system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - flask --app ombor system seed
#   Insert a few demo categories, products and a debtor (skips existing names).
#
# Maintenance:
# - flask --app ombor maintenance reconcile [--fix]
#   Compare category product counts and debtor balances with their source rows.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, Debtor, Product
from .services import catalog_service, debtor_service, maintenance_service
from .validation import ConflictError


DEMO_CATEGORIES = [
    {"name": "Ichimliklar", "color": "#3b82f6", "icon": "cup"},
    {"name": "Shirinliklar", "color": "#f59e0b", "icon": "candy"},
]

DEMO_PRODUCTS = [
    # (category name, product fields)
    ("Ichimliklar", {"name": "Coca-Cola 1L", "barcode": "4780000000011", "price": 12000, "cost": 9000, "quantity": 48}),
    ("Ichimliklar", {"name": "Suv 0.5L", "barcode": "4780000000028", "price": 3000, "cost": 1800, "quantity": 120}),
    ("Shirinliklar", {"name": "Shokolad", "barcode": "4780000000035", "price": 8000, "cost": 5500, "quantity": 6}),
]


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@with_appcontext
def reset_db(yes):
    """Drop every table and recreate the empty schema (development only)."""
    if not yes and not click.confirm(
        f"WARN Wipe all categories, products, sales and debtors in {db.engine.url.database}?"
    ):
        click.echo("Aborted, nothing changed")
        return

    db.drop_all()
    db.create_all()
    click.echo("PASS Empty schema recreated")


@system_group.command('seed')
@with_appcontext
def seed():
    """Insert demo categories, products and one debtor."""
    categories = {}
    for fields in DEMO_CATEGORIES:
        existing = db.session.query(Category).filter_by(name=fields["name"]).first()
        if existing:
            click.echo(f"WARN  Category '{fields['name']}' already exists, skipping...")
            categories[fields["name"]] = existing
            continue
        categories[fields["name"]] = catalog_service.create_category(dict(fields))
        click.echo(f"PASS Created category: {fields['name']}")

    for category_name, fields in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(barcode=fields["barcode"]).first():
            click.echo(f"WARN  Product '{fields['name']}' already exists, skipping...")
            continue
        patch = dict(fields, category_id=categories[category_name].id)
        catalog_service.create_product(patch)
        click.echo(f"PASS Created product: {fields['name']}")

    try:
        debtor_service.create_debtor({"name": "Demo Mijoz", "phone": "+998900000000"})
        click.echo("PASS Created debtor: Demo Mijoz")
    except ConflictError:
        click.echo("WARN  Demo debtor already exists, skipping...")

    click.echo(
        f"\nDONE {db.session.query(Category).count()} categories, "
        f"{db.session.query(Product).count()} products, "
        f"{db.session.query(Debtor).count()} debtors"
    )


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('reconcile')
@click.option('--fix', is_flag=True, help='Rewrite drifted category product counts')
@with_appcontext
def reconcile_cli(fix):
    """
    Check denormalized counters.

    Category product_count is compared with the live product count; debtor
    debt_amount with the sum of its ledger entries.
    """
    result = maintenance_service.reconcile(fix=fix)

    if not result["categories"]:
        click.echo("PASS Category product counts match")
    for row in result["categories"]:
        click.echo(
            f"FAIL Category {row['category_id']} '{row['name']}': "
            f"stored={row['stored']} actual={row['actual']}"
        )

    if not result["debtors"]:
        click.echo("PASS Debtor balances match their ledgers")
    for row in result["debtors"]:
        click.echo(
            f"FAIL Debtor {row['debtor_id']} '{row['name']}': "
            f"debt_amount={row['debt_amount']} ledger_total={row['ledger_total']}"
        )

    if result["fixed"]:
        click.echo(f"FIXED {len(result['categories'])} category count(s) rewritten")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(maintenance_group)
