# Overview: Flask CLI command group for catalog bootstrap, inspection, and maintenance.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask catalog <command> [options]
#
# Bootstrap:
# - python -m flask catalog seed --org org_123 --user user_123
#   Seed demo warehouses, categories and stocked products for one organization.
#   Skips organizations that already have warehouses.
#
# Inspection:
# - python -m flask catalog low-stock --org org_123 [--limit 50]
#   Print inventory rows at or below their product's low stock threshold.
#
# Export:
# - python -m flask catalog export-movements --org org_123 --format xlsx --output movements.xlsx
#   Write the organization's stock movement log as CSV or Excel.
#
# Template library:
# - python -m flask catalog seed-templates
#   Add the built-in category templates that are not in the database yet.
#
# Maintenance:
# - python -m flask catalog cleanup-images --org org_123 --dry-run
#   List (or remove) stored product photos that no product references.

from decimal import Decimal

import click
from flask.cli import with_appcontext

from .export_utils import EXPORT_FORMATS, render_export
from .extensions import db
from .formatters import format_currency, format_datetime
from .models import Warehouse
from .services import (
    category_service,
    inventory_service,
    products_service,
    storage_service,
    template_service,
    warehouse_service,
)
from .services.storage_service import StorageError
from .time_utils import export_date_stamp

SEED_USER_NAME = "Seed Script"

SEED_WAREHOUSES = [
    {
        "name": "Main Office", "type": "office", "status": "active", "is_default": True,
        "address": "100 Market St", "city": "Springfield", "state_province": "IL",
        "postal_code": "62701", "country": "US",
    },
    {
        "name": "Service Van 1", "type": "vehicle", "status": "active", "is_default": False,
        "address": "100 Market St", "city": "Springfield", "state_province": "IL",
        "postal_code": "62701", "country": "US", "notes": "Field technician stock",
    },
]

# category name -> subcategory names
SEED_TAXONOMY = {
    "Electronics": ["Cables", "Adapters"],
    "Office Supplies": ["Paper"],
}

# (sku, name, category, subcategory, cost, price, threshold, quantity in default warehouse)
SEED_PRODUCTS = [
    ("CBL-USBC-1M", "USB-C Cable 1m", "Electronics", "Cables", "2.10", "9.99", 10, 40),
    ("CBL-HDMI-2M", "HDMI Cable 2m", "Electronics", "Cables", "3.50", "14.99", 5, 4),
    ("ADP-USBC-HDMI", "USB-C to HDMI Adapter", "Electronics", "Adapters", "6.75", "24.99", 5, 12),
    ("PPR-A4-500", "A4 Copy Paper (500 sheets)", "Office Supplies", "Paper", "3.20", "6.49", 20, 15),
]


# Built-in category templates, one per kind of business
TEMPLATE_LIBRARY = [
    {
        "name": "Electrician",
        "business_type": "Trades",
        "icon": "zap",
        "description": "Wiring, lighting and electrical supplies",
        "categories": [
            {
                "name": "Wiring",
                "features": [{"name": "Gauge", "input_type": "select", "options": ["12 AWG", "14 AWG", "16 AWG"]}],
                "subcategories": [
                    {"name": "Cable", "features": [{"name": "Length", "input_type": "number", "unit": "m"}]},
                    {"name": "Connectors"},
                ],
            },
            {
                "name": "Lighting",
                "features": [{"name": "Wattage", "input_type": "number", "unit": "W"}],
                "subcategories": [{"name": "LED Fixtures"}, {"name": "Bulbs"}],
            },
        ],
    },
    {
        "name": "Plumber",
        "business_type": "Trades",
        "icon": "droplet",
        "description": "Pipes, fittings and fixtures",
        "categories": [
            {
                "name": "Pipes",
                "features": [
                    {"name": "Material", "input_type": "select", "options": ["Copper", "PEX", "PVC"]},
                    {"name": "Diameter", "input_type": "number", "unit": "mm", "is_required": True},
                ],
                "subcategories": [{"name": "Supply"}, {"name": "Drain"}],
            },
            {"name": "Fixtures", "subcategories": [{"name": "Faucets"}, {"name": "Valves"}]},
        ],
    },
    {
        "name": "IT Services",
        "business_type": "Technology",
        "icon": "monitor",
        "description": "Networking and computer hardware",
        "categories": [
            {
                "name": "Networking",
                "subcategories": [
                    {"name": "Switches", "features": [{"name": "Port Count", "input_type": "number"}]},
                    {"name": "Patch Cables"},
                ],
            },
            {
                "name": "Computers",
                "features": [{"name": "Refurbished", "input_type": "boolean"}],
                "subcategories": [{"name": "Laptops"}, {"name": "Desktops"}],
            },
        ],
    },
]

@click.group('catalog')
def catalog_group():
    """Catalog bootstrap, inspection and maintenance commands."""


@catalog_group.command('seed')
@click.option('--org', 'org_id', required=True, help='Organization id (from the auth provider)')
@click.option('--user', 'user_id', required=True, help='User id recorded as creator')
@with_appcontext
def seed(org_id, user_id):
    """
    Seed demo data for one organization.

    Creates:
    - Two warehouses (office + vehicle), the office as default
    - Categories with subcategories
    - Products with prices and low stock thresholds
    - Opening stock in the default warehouse (receipt movements)
    """
    existing = db.session.query(Warehouse).filter_by(organization_id=org_id).count()
    if existing:
        click.echo(f"SKIP Organization {org_id} already has {existing} warehouse(s)")
        return

    click.echo(f"START Seeding organization {org_id}...")
    actor = {"org_id": org_id, "user_id": user_id, "user_name": SEED_USER_NAME}

    warehouses = [warehouse_service.create_warehouse(**actor, patch=dict(w)) for w in SEED_WAREHOUSES]
    default_warehouse = warehouses[0]
    click.echo(f"PASS Created warehouses: {', '.join(w['name'] for w in warehouses)}")

    subcategory_ids = {}
    for category_name, subcategory_names in SEED_TAXONOMY.items():
        category = category_service.create_category(**actor, patch={"name": category_name})
        for sub_name in subcategory_names:
            sub = category_service.create_subcategory(
                **actor, patch={"category_id": category["id"], "name": sub_name},
            )
            subcategory_ids[(category_name, sub_name)] = (category["id"], sub["id"])
    click.echo(f"PASS Created categories: {', '.join(SEED_TAXONOMY)}")

    for sku, name, category_name, sub_name, cost, price, threshold, quantity in SEED_PRODUCTS:
        category_id, subcategory_id = subcategory_ids[(category_name, sub_name)]
        product = products_service.create_product(**actor, patch={
            "sku": sku,
            "name": name,
            "category_id": category_id,
            "subcategory_id": subcategory_id,
            "cost": Decimal(cost),
            "price": Decimal(price),
            "low_stock_threshold": threshold,
            "status": "active",
        })
        inventory_service.adjust_inventory(
            **actor,
            product_id=product["id"],
            warehouse_id=default_warehouse["id"],
            quantity_change=quantity,
            movement_type="receipt",
            reason="Opening stock",
        )
        click.echo(f"  {sku:<16} {name:<30} {format_currency(Decimal(price)):>10}  qty {quantity}")

    click.echo(f"PASS Seeded {len(SEED_PRODUCTS)} products")


@catalog_group.command('seed-templates')
@with_appcontext
def seed_templates():
    """Add the built-in category templates that are not present yet."""
    added = template_service.seed_library(TEMPLATE_LIBRARY)
    if not added:
        click.echo("SKIP All templates already present")
        return
    click.echo(f"PASS Added {added} template(s)")


@catalog_group.command('low-stock')
@click.option('--org', 'org_id', required=True, help='Organization id')
@click.option('--limit', type=int, default=None, help='Max rows')
@with_appcontext
def low_stock(org_id, limit):
    """Print inventory rows at or below their low stock threshold."""
    rows = inventory_service.list_low_stock(org_id, limit=limit)
    if not rows:
        click.echo("No low stock items")
        return

    click.echo(f"{'SKU':<16} {'Product':<30} {'Warehouse':<20} {'Qty':>6} {'Threshold':>10}")
    click.echo("-" * 86)
    for r in rows:
        click.echo(
            f"{r['product_sku']:<16} {r['product_name'][:30]:<30} {r['warehouse_name'][:20]:<20} "
            f"{r['quantity']:>6} {r['low_stock_threshold']:>10}"
        )
    click.echo(f"\nTotal: {len(rows)} row(s)")


@catalog_group.command('export-movements')
@click.option('--org', 'org_id', required=True, help='Organization id')
@click.option('--format', 'fmt', type=click.Choice(sorted(EXPORT_FORMATS)), default='csv', help='File format')
@click.option('--output', type=click.Path(dir_okay=False, writable=True), default=None, help='Output file path')
@with_appcontext
def export_movements(org_id, fmt, output):
    """Write the organization's stock movement log to a file."""
    rows = inventory_service.movement_export_rows(org_id)
    for row in rows:
        row["Date"] = format_datetime(row["Date"])
    body, _, ext = render_export(
        rows, inventory_service.MOVEMENT_EXPORT_COLUMNS, fmt, sheet_title="Stock Movements",
    )
    path = output or f"stock_movements_{export_date_stamp()}.{ext}"
    with open(path, "wb") as fh:
        fh.write(body)
    click.echo(f"PASS Wrote {len(rows)} movement(s) to {path}")


@catalog_group.command('cleanup-images')
@click.option('--org', 'org_id', required=True, help='Organization id')
@click.option('--dry-run', is_flag=True, help='List orphaned photos without removing them')
@with_appcontext
def cleanup_images(org_id, dry_run):
    """Remove stored product photos that no product references."""
    try:
        orphaned = storage_service.cleanup_orphaned_images(org_id, dry_run=dry_run)
    except StorageError as e:
        raise click.ClickException(f"Storage request failed: {e}")

    for path in orphaned:
        click.echo(f"  {path}")
    verb = "Found" if dry_run else "Removed"
    click.echo(f"PASS {verb} {len(orphaned)} orphaned photo(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(catalog_group)
