# Overview: Service-layer operations for stock; owns every write to Product.stock.

"""
Stock Ledger Invariants (authoritative)

- Product.stock is the authoritative on-hand quantity and is never negative
  after a committed movement.
- Every change to Product.stock appends exactly one StockMovement in the same
  DB transaction, recording previous_quantity, new_quantity and the signed
  quantity_change. Movements are never updated or deleted.
- Decrements are a compare-and-swap:
      UPDATE products SET stock = stock - :q WHERE id = :id AND stock >= :q
  Zero rows updated means insufficient stock and nothing was written. Two
  concurrent checkouts on the same product therefore serialize on the row
  and the second one re-evaluates the predicate against the first one's
  result; last-writer-wins cannot happen.
- decrement()/increment() only flush. The caller owns the transaction
  (checkout commits all lines together). adjust()/restock() commit.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import Product, StockMovement
from ..models.stock import (
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_RESTOCK,
    MOVEMENT_SALE,
    MOVEMENT_TYPES,
)
from .concurrency import commit_or_rollback, lock_for_update


ADJUST_ADD = "add"
ADJUST_SUBTRACT = "subtract"
ADJUST_SET = "set"

ADJUSTMENT_TYPES = (ADJUST_ADD, ADJUST_SUBTRACT, ADJUST_SET)


class StockError(Exception):
    """Raised for stock operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientStockError(StockError):
    """A movement would take on-hand below zero. Nothing was written."""


class StockConflictError(StockError):
    """The row changed between read and write (absolute 'set' adjustments)."""


def _get_product(store_id: int, product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise StockError("Product not found", details={"product_id": product_id})
    if product.store_id != store_id:
        raise StockError("Product does not belong to store", details={"product_id": product_id})
    return product


def _current_stock(product_id: int) -> int:
    # Column query: always hits the DB, never the identity map.
    return int(db.session.query(Product.stock).filter_by(id=product_id).scalar() or 0)


def _record_movement(
    product: Product,
    *,
    movement_type: str,
    quantity_change: int,
    previous_quantity: int,
    new_quantity: int,
    user_id: int | None,
    reason: str | None,
    notes: str | None = None,
    bill_id: int | None = None,
) -> StockMovement:
    movement = StockMovement(
        store_id=product.store_id,
        product_id=product.id,
        movement_type=movement_type,
        quantity_change=quantity_change,
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
        user_id=user_id,
        reason=reason,
        notes=notes,
        bill_id=bill_id,
    )
    db.session.add(movement)
    db.session.flush()

    # Core UPDATEs bypass the ORM; make the loaded Product reflect the row.
    db.session.expire(product, ["stock", "total_sold"])
    return movement


def _require_positive(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise StockError("quantity must be an integer")
    if quantity <= 0:
        raise StockError("quantity must be > 0")
    return quantity


def decrement(
    *,
    store_id: int,
    product_id: int,
    quantity: int,
    reason: str,
    user_id: int | None = None,
    movement_type: str = MOVEMENT_SALE,
    bill_id: int | None = None,
    notes: str | None = None,
) -> StockMovement:
    """
    Atomically take `quantity` units out of stock and record the movement.

    Raises InsufficientStockError (no mutation) when on-hand < quantity.
    """
    quantity = _require_positive(quantity)
    product = _get_product(store_id, product_id)

    values = {"stock": Product.stock - quantity}
    if movement_type == MOVEMENT_SALE:
        values["total_sold"] = Product.total_sold + quantity

    stmt = (
        update(Product)
        .where(
            Product.id == product_id,
            Product.store_id == store_id,
            Product.stock >= quantity,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)

    if result.rowcount != 1:
        on_hand = _current_stock(product_id)
        raise InsufficientStockError(
            f"Insufficient stock for {product.name}",
            details={"items": [{
                "product_id": product_id,
                "product_name": product.name,
                "requested_quantity": quantity,
                "on_hand": on_hand,
            }]},
        )

    new_quantity = _current_stock(product_id)
    return _record_movement(
        product,
        movement_type=movement_type,
        quantity_change=-quantity,
        previous_quantity=new_quantity + quantity,
        new_quantity=new_quantity,
        user_id=user_id,
        reason=reason,
        notes=notes,
        bill_id=bill_id,
    )


def increment(
    *,
    store_id: int,
    product_id: int,
    quantity: int,
    reason: str,
    user_id: int | None = None,
    movement_type: str = MOVEMENT_RESTOCK,
    bill_id: int | None = None,
    notes: str | None = None,
    reverse_sale: bool = False,
) -> StockMovement:
    """Put `quantity` units back into stock. reverse_sale also rolls back total_sold."""
    quantity = _require_positive(quantity)
    product = _get_product(store_id, product_id)

    values = {"stock": Product.stock + quantity}
    if reverse_sale:
        values["total_sold"] = Product.total_sold - quantity

    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.store_id == store_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.session.execute(stmt)

    new_quantity = _current_stock(product_id)
    return _record_movement(
        product,
        movement_type=movement_type,
        quantity_change=quantity,
        previous_quantity=new_quantity - quantity,
        new_quantity=new_quantity,
        user_id=user_id,
        reason=reason,
        notes=notes,
        bill_id=bill_id,
    )


def _set_absolute(
    *,
    product: Product,
    target: int,
    user_id: int | None,
    reason: str,
    notes: str | None,
    movement_type: str,
) -> StockMovement:
    current = _current_stock(product.id)
    stmt = (
        update(Product)
        .where(Product.id == product.id, Product.stock == current)
        .values(stock=target)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        raise StockConflictError(
            "Stock changed while adjusting; reload and try again",
            details={"product_id": product.id},
        )

    return _record_movement(
        product,
        movement_type=movement_type,
        quantity_change=target - current,
        previous_quantity=current,
        new_quantity=target,
        user_id=user_id,
        reason=reason,
        notes=notes,
    )


def adjust(
    *,
    store_id: int,
    product_id: int,
    user_id: int | None,
    adjustment_type: str,
    quantity: int,
    reason: str | None = None,
    notes: str | None = None,
    movement_type: str | None = None,
) -> tuple[Product, StockMovement]:
    """
    Manual, out-of-band stock movement (restock, damage, correction).

    - add:      stock += quantity
    - subtract: stock -= quantity (rejected if it would go negative)
    - set:      stock = quantity; quantity_change = target - current

    Always records a movement, including a 'set' to the current value.
    """
    if adjustment_type not in ADJUSTMENT_TYPES:
        raise StockError(f"adjustment_type must be one of {list(ADJUSTMENT_TYPES)}")

    movement_type = (movement_type or MOVEMENT_ADJUSTMENT).upper()
    if movement_type not in MOVEMENT_TYPES:
        raise StockError(f"movement_type must be one of {list(MOVEMENT_TYPES)}")
    if movement_type == MOVEMENT_SALE:
        raise StockError("SALE movements are only written by checkout")

    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise StockError("quantity must be an integer")

    reason = reason or f"Stock adjustment ({adjustment_type})"

    try:
        product = _get_product(store_id, product_id, lock=True)

        if adjustment_type == ADJUST_SET:
            if quantity < 0:
                raise StockError("Stock cannot be negative")
            movement = _set_absolute(
                product=product,
                target=quantity,
                user_id=user_id,
                reason=reason,
                notes=notes,
                movement_type=movement_type,
            )
        elif adjustment_type == ADJUST_ADD:
            movement = increment(
                store_id=store_id,
                product_id=product_id,
                quantity=quantity,
                reason=reason,
                user_id=user_id,
                movement_type=movement_type,
                notes=notes,
            )
        else:
            movement = decrement(
                store_id=store_id,
                product_id=product_id,
                quantity=quantity,
                reason=reason,
                user_id=user_id,
                movement_type=movement_type,
                notes=notes,
            )
    except Exception:
        db.session.rollback()
        raise

    commit_or_rollback()

    current_app.logger.info(
        "Stock %s on product %s: %s -> %s (%s)",
        adjustment_type,
        product_id,
        movement.previous_quantity,
        movement.new_quantity,
        movement.movement_type,
    )
    return product, movement


def restock(
    *,
    store_id: int,
    product_id: int,
    user_id: int | None,
    quantity: int,
    notes: str | None = None,
) -> tuple[Product, StockMovement]:
    try:
        movement = increment(
            store_id=store_id,
            product_id=product_id,
            quantity=quantity,
            reason="Restock",
            user_id=user_id,
            movement_type=MOVEMENT_RESTOCK,
            notes=notes,
        )
    except Exception:
        db.session.rollback()
        raise

    commit_or_rollback()
    product = db.session.get(Product, product_id)
    return product, movement


def list_movements(
    *,
    store_id: int,
    product_id: int | None = None,
    movement_type: str | None = None,
    limit: int = 100,
) -> list[StockMovement]:
    q = StockMovement.query.filter_by(store_id=store_id)
    if product_id is not None:
        _get_product(store_id, product_id)
        q = q.filter_by(product_id=product_id)
    if movement_type:
        q = q.filter_by(movement_type=movement_type.upper())

    return q.order_by(
        StockMovement.created_at.desc(),
        StockMovement.id.desc(),
    ).limit(limit).all()
