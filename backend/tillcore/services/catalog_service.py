# Overview: Minimal catalog provisioning used by bootstrap commands and tests.

from __future__ import annotations

from ..extensions import db
from ..models import Product
from ..validation import MAX_PRICE_CENTS, ValidationError
from . import stock_ledger
from .concurrency import commit_or_rollback
from .settings_service import get_store


def create_product(
    *,
    store_id: int,
    sku: str,
    name: str,
    price_cents: int,
    cost_cents: int = 0,
    initial_stock: int = 0,
    min_stock: int = 0,
    promo_quantity: int | None = None,
    promo_price_cents: int | None = None,
    user_id: int | None = None,
) -> Product:
    """
    Create a product in a store.

    Stock always starts at zero; a non-zero initial_stock is booked as a
    RESTOCK movement so the ledger explains every unit on hand.
    """
    get_store(store_id)

    if not sku or not name:
        raise ValidationError("sku and name are required")
    if price_cents < 0 or price_cents > MAX_PRICE_CENTS:
        raise ValidationError(f"price_cents must be between 0 and {MAX_PRICE_CENTS}")
    if initial_stock < 0:
        raise ValidationError("initial_stock cannot be negative")
    if (promo_quantity is None) != (promo_price_cents is None):
        raise ValidationError("promo_quantity and promo_price_cents must be set together")
    if promo_quantity is not None and promo_quantity < 2:
        raise ValidationError("promo_quantity must be >= 2")

    existing = db.session.query(Product).filter_by(store_id=store_id, sku=sku).first()
    if existing is not None:
        raise ValidationError(f"SKU '{sku}' already exists in this store")

    product = Product(
        store_id=store_id,
        sku=sku,
        name=name,
        price_cents=price_cents,
        cost_cents=cost_cents,
        stock=0,
        min_stock=min_stock,
        promo_quantity=promo_quantity,
        promo_price_cents=promo_price_cents,
    )
    db.session.add(product)
    commit_or_rollback()

    if initial_stock:
        product, _ = stock_ledger.restock(
            store_id=store_id,
            product_id=product.id,
            user_id=user_id,
            quantity=initial_stock,
            notes="Opening stock",
        )
    return product


def list_products(*, store_id: int, include_inactive: bool = False) -> list[Product]:
    q = db.session.query(Product).filter_by(store_id=store_id)
    if not include_inactive:
        q = q.filter_by(is_active=True)
    return q.order_by(Product.name.asc(), Product.id.asc()).all()
