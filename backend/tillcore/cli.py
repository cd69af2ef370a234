# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/tillcore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Store bootstrap:
# - python -m flask stores create --name "Main Street" --code "MAIN" [--tax-rate-bps 700] [--no-vat]
#   Create a store with its pricing configuration (defaults from Config).
# - python -m flask stores list
#   List stores with tax rate, VAT toggle and default payment method.
#
# Catalog bootstrap:
# - python -m flask products create --store-id 1 --sku TEA-01 --name "Tea" --price-cents 500 --stock 20
#   Create a product; opening stock is booked as a RESTOCK movement.
# - python -m flask products list --store-id 1 [--all]
#   List products with stock levels (LOW marks stock <= min_stock).
#
# Stock:
# - python -m flask stock adjust --store-id 1 --product-id 3 --type set --quantity 12 --reason "Cycle count"
#   Manual add/subtract/set; always writes a movement.
# - python -m flask stock movements --store-id 1 [--product-id 3] [--limit 20]
#   Show stock history, newest first.
#
# Bills:
# - python -m flask bills list --store-id 1 [--status VOIDED] [--limit 20]
#   Recent bills with totals.
# - python -m flask bills void --store-id 1 --bill-id 5 --user-id 1 --reason "Customer changed mind" [--keep-stock]
#   Void a bill; stock is restored unless --keep-stock.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Store
from .services import catalog_service, checkout_service, settings_service, stock_ledger
from .services.checkout_schemas import CheckoutError
from .services.settings_service import SettingsError
from .services.stock_ledger import ADJUSTMENT_TYPES, StockError
from .validation import ValidationError


def _money(cents: int) -> str:
    return f"{cents / 100:.2f}"


# ============================================================================
# Stores
# ============================================================================

@click.group('stores')
def stores_group():
    """Store (tenant) provisioning commands."""


@stores_group.command('create')
@click.option('--name', required=True, help='Store name')
@click.option('--code', help='Short code (unique)')
@click.option('--tax-rate-bps', type=int, default=None, help='Tax rate in basis points (700 = 7%)')
@click.option('--vat/--no-vat', 'vat_enabled', default=None, help='Apply tax at checkout')
@click.option('--payment-method', default=None, help='Default payment method')
@with_appcontext
def create_store_cli(name, code, tax_rate_bps, vat_enabled, payment_method):
    """Create a store with its pricing configuration."""
    try:
        store = settings_service.create_store(
            name=name,
            code=code,
            tax_rate_bps=tax_rate_bps,
            vat_enabled=vat_enabled,
            default_payment_method=payment_method,
        )
    except (SettingsError, ValidationError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(
        f"PASS Created store: {store.name} (ID: {store.id}, Code: {store.code or '-'}, "
        f"Tax: {store.tax_rate_bps} bps, VAT: {'on' if store.vat_enabled else 'off'})"
    )


@stores_group.command('list')
@with_appcontext
def list_stores():
    """List all stores."""
    stores = db.session.query(Store).order_by(Store.id.asc()).all()
    if not stores:
        click.echo("No stores found.")
        return

    click.echo("\n" + "="*72)
    click.echo(f"{'ID':<5} {'Name':<28} {'Code':<10} {'Tax bps':<9} {'VAT':<5} {'Payment'}")
    click.echo("="*72)
    for store in stores:
        vat = "on" if store.vat_enabled else "off"
        click.echo(
            f"{store.id:<5} {store.name:<28} {store.code or '-':<10} "
            f"{store.tax_rate_bps:<9} {vat:<5} {store.default_payment_method}"
        )
    click.echo("="*72 + "\n")


# ============================================================================
# Products
# ============================================================================

@click.group('products')
def products_group():
    """Catalog bootstrap commands."""


@products_group.command('create')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--sku', required=True, help='SKU (unique within store)')
@click.option('--name', required=True, help='Product name')
@click.option('--price-cents', type=int, required=True, help='Unit price in cents')
@click.option('--cost-cents', type=int, default=0, help='Unit cost in cents')
@click.option('--stock', 'initial_stock', type=int, default=0, help='Opening stock')
@click.option('--min-stock', type=int, default=0, help='Low-stock threshold')
@click.option('--promo-quantity', type=int, default=None, help='Promo tier size')
@click.option('--promo-price-cents', type=int, default=None, help='Price per promo tier')
@with_appcontext
def create_product_cli(store_id, sku, name, price_cents, cost_cents, initial_stock, min_stock,
                       promo_quantity, promo_price_cents):
    """Create a product."""
    try:
        product = catalog_service.create_product(
            store_id=store_id,
            sku=sku,
            name=name,
            price_cents=price_cents,
            cost_cents=cost_cents,
            initial_stock=initial_stock,
            min_stock=min_stock,
            promo_quantity=promo_quantity,
            promo_price_cents=promo_price_cents,
        )
    except (SettingsError, ValidationError, StockError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(
        f"PASS Created product: {product.name} (ID: {product.id}, SKU: {product.sku}, "
        f"Price: {_money(product.price_cents)}, Stock: {product.stock})"
    )


@products_group.command('list')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive products')
@with_appcontext
def list_products_cli(store_id, include_inactive):
    """List products with stock levels."""
    products = catalog_service.list_products(store_id=store_id, include_inactive=include_inactive)
    if not products:
        click.echo("No products found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'SKU':<14} {'Name':<28} {'Price':>10} {'Stock':>7} {'Sold':>7}")
    click.echo("="*80)
    for p in products:
        flag = " LOW" if p.is_low_stock else ""
        click.echo(
            f"{p.id:<5} {p.sku:<14} {p.name[:28]:<28} {_money(p.price_cents):>10} "
            f"{p.stock:>7} {p.total_sold:>7}{flag}"
        )
    click.echo("="*80 + "\n")


# ============================================================================
# Stock
# ============================================================================

@click.group('stock')
def stock_group():
    """Stock ledger commands."""


@stock_group.command('adjust')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--type', 'adjustment_type', type=click.Choice(ADJUSTMENT_TYPES), required=True)
@click.option('--quantity', type=int, required=True)
@click.option('--reason', default=None)
@click.option('--movement-type', default=None, help='ADJUSTMENT (default), DAMAGED, RETURN, RESTOCK')
@click.option('--user-id', type=int, default=None)
@with_appcontext
def adjust_stock_cli(store_id, product_id, adjustment_type, quantity, reason, movement_type, user_id):
    """Manually adjust stock for a product."""
    try:
        product, movement = stock_ledger.adjust(
            store_id=store_id,
            product_id=product_id,
            user_id=user_id,
            adjustment_type=adjustment_type,
            quantity=quantity,
            reason=reason,
            movement_type=movement_type,
        )
    except StockError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(
        f"PASS {product.name}: {movement.previous_quantity} -> {movement.new_quantity} "
        f"({movement.movement_type}, {movement.quantity_change:+d})"
    )


@stock_group.command('movements')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--product-id', type=int, default=None)
@click.option('--limit', type=int, default=20)
@with_appcontext
def list_movements_cli(store_id, product_id, limit):
    """Show stock history, newest first."""
    try:
        movements = stock_ledger.list_movements(store_id=store_id, product_id=product_id, limit=limit)
    except StockError as e:
        click.echo(f"FAIL {e}")
        return

    if not movements:
        click.echo("No movements found.")
        return

    for m in movements:
        click.echo(
            f"{m.created_at}  #{m.id:<5} {m.movement_type:<10} product={m.product_id:<5} "
            f"{m.quantity_change:+d} ({m.previous_quantity} -> {m.new_quantity})  {m.reason or ''}"
        )


# ============================================================================
# Bills
# ============================================================================

@click.group('bills')
def bills_group():
    """Bill inspection and void commands."""


@bills_group.command('list')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--status', default=None, help='COMPLETED or VOIDED')
@click.option('--limit', type=int, default=20)
@with_appcontext
def list_bills_cli(store_id, status, limit):
    """List recent bills."""
    bills = checkout_service.list_bills(store_id=store_id, status=status, limit=limit)
    if not bills:
        click.echo("No bills found.")
        return

    for bill in bills:
        click.echo(
            f"{bill.bill_number:<20} {bill.status:<10} {bill.payment_method:<8} "
            f"total={_money(bill.total_cents):>10}  items={len(bill.items)}"
        )


@bills_group.command('void')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--bill-id', type=int, required=True)
@click.option('--user-id', type=int, required=True)
@click.option('--reason', required=True)
@click.option('--keep-stock', is_flag=True, help='Do not return sold units to stock')
@with_appcontext
def void_bill_cli(store_id, bill_id, user_id, reason, keep_stock):
    """Void a completed bill."""
    try:
        bill = checkout_service.void_bill(
            store_id=store_id,
            bill_id=bill_id,
            user_id=user_id,
            reason=reason,
            restore_stock=False if keep_stock else None,
        )
    except (CheckoutError, StockError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Voided {bill.bill_number}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(stores_group)
    app.cli.add_command(products_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(bills_group)
