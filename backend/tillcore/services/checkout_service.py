# Overview: Server-side checkout commit and bill lifecycle; one DB transaction per checkout.

"""
Checkout Service - all-or-nothing commit of a tendered cart

WHY: A checkout touches stock on N products plus two documents. Either all
of it is persisted or none of it is; there is no partially-sold cart.

Commit protocol (single DB transaction):
1. Validate payload: non-empty, totals reconcile, tender covers total.
2. Snapshot lines into BillItem/SaleItem rows (name and price copied).
3. Decrement stock per line through the stock ledger (compare-and-swap).
   Any shortage aborts the whole transaction with InsufficientStockError.
4. Insert Bill and Sale.
5. Commit and return (bill, sale).

No retry loop: a failed attempt is reported and the terminal keeps its
cart so the cashier can correct and resubmit.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Bill, BillItem, Product, Sale, SaleItem
from ..models.billing import BILL_STATUS_COMPLETED, BILL_STATUS_VOIDED
from ..models.stock import MOVEMENT_RETURN, MOVEMENT_SALE
from ..time_utils import utcnow
from . import stock_ledger
from .checkout_schemas import (
    BillNotFoundError,
    CheckoutError,
    CheckoutPayload,
    EmptyCartError,
)
from .concurrency import commit_or_rollback, lock_for_update
from .document_service import DOCUMENT_BILL, DOCUMENT_SALE, next_document_number
from .stock_ledger import InsufficientStockError


def _load_products(store_id: int, payload: CheckoutPayload) -> dict[int, Product]:
    product_ids = {item.product_id for item in payload.items}
    products = (
        db.session.query(Product)
        .filter(Product.id.in_(product_ids), Product.store_id == store_id)
        .all()
    )
    by_id = {product.id: product for product in products}

    missing = sorted(product_ids - set(by_id))
    if missing:
        raise CheckoutError(
            "Some products were not found; reload the catalog",
            details={"product_ids": missing},
        )

    inactive = sorted(pid for pid, product in by_id.items() if not product.is_active)
    if inactive:
        raise CheckoutError("Some products are no longer for sale", details={"product_ids": inactive})

    return by_id


def _snapshot_lines(payload: CheckoutPayload, products: dict[int, Product]) -> list[dict]:
    """
    Frozen copies of each line.

    Submitted name/price win (they are what the customer saw); the current
    catalog values fill anything the terminal left out.
    """
    lines = []
    for item in payload.items:
        product = products[item.product_id]
        unit_price_cents = (
            item.unit_price_cents if item.unit_price_cents is not None else product.price_cents
        )
        total_cents = (
            item.total_cents
            if item.total_cents is not None
            else unit_price_cents * item.quantity - item.discount_cents
        )
        lines.append({
            "product_id": product.id,
            "product_name": item.product_name or product.name,
            "quantity": item.quantity,
            "unit_price_cents": unit_price_cents,
            "discount_cents": item.discount_cents,
            "total_cents": total_cents,
        })
    return lines


def commit_checkout(*, store_id: int, user_id: int, payload: CheckoutPayload) -> tuple[Bill, Sale]:
    """
    Validate and atomically commit a checkout.

    Raises:
        EmptyCartError / InsufficientPaymentError / CheckoutValidationError:
            before anything is written.
        InsufficientStockError: one or more lines exceed on-hand; rolled back.
        CheckoutError: unknown or inactive products; rolled back.
    """
    if not payload.items:
        raise EmptyCartError()
    payload.check_reconciles()
    tender = payload.resolve_tender()

    try:
        products = _load_products(store_id, payload)
        lines = _snapshot_lines(payload, products)

        bill_number = next_document_number(store_id=store_id, document_type=DOCUMENT_BILL)
        sale_number = next_document_number(store_id=store_id, document_type=DOCUMENT_SALE)

        totals = {
            "subtotal_cents": payload.subtotal_cents,
            "discount_cents": payload.discount_cents,
            "discount_percent": payload.discount_percent,
            "surcharge_cents": payload.surcharge_cents,
            "surcharge_percent": payload.surcharge_percent,
            "tax_cents": payload.tax_cents,
            "total_cents": payload.total_cents,
            "payment_method": tender.payment_method,
            "amount_received_cents": tender.amount_received_cents,
            "change_cents": tender.change_cents,
        }

        bill = Bill(
            store_id=store_id,
            bill_number=bill_number,
            user_id=user_id,
            status=BILL_STATUS_COMPLETED,
            customer_name=payload.customer_name,
            notes=payload.notes,
            items=[BillItem(**line) for line in lines],
            **totals,
        )
        db.session.add(bill)
        db.session.flush()

        shortages = []
        for line in lines:
            try:
                stock_ledger.decrement(
                    store_id=store_id,
                    product_id=line["product_id"],
                    quantity=line["quantity"],
                    reason=f"Sale {sale_number}",
                    user_id=user_id,
                    movement_type=MOVEMENT_SALE,
                    bill_id=bill.id,
                )
            except InsufficientStockError as exc:
                shortages.extend(exc.details.get("items", []))

        if shortages:
            names = ", ".join(item["product_name"] for item in shortages)
            raise InsufficientStockError(
                f"Insufficient stock: {names}",
                details={"items": shortages},
            )

        sale = Sale(
            store_id=store_id,
            sale_number=sale_number,
            bill_id=bill.id,
            user_id=user_id,
            status=BILL_STATUS_COMPLETED,
            payment_status="PAID",
            items=[SaleItem(**line) for line in lines],
            **totals,
        )
        db.session.add(sale)
        db.session.flush()
    except Exception:
        db.session.rollback()
        raise

    commit_or_rollback()

    current_app.logger.info(
        "Checkout committed: %s (%s) store=%s user=%s total_cents=%s lines=%s",
        bill.bill_number,
        sale.sale_number,
        store_id,
        user_id,
        bill.total_cents,
        len(lines),
    )
    return bill, sale


def get_bill(*, store_id: int, bill_id: int) -> Bill:
    bill = db.session.query(Bill).filter_by(id=bill_id, store_id=store_id).first()
    if bill is None:
        raise BillNotFoundError("Bill not found", details={"bill_id": bill_id})
    return bill


def list_bills(*, store_id: int, status: str | None = None, limit: int = 100) -> list[Bill]:
    q = db.session.query(Bill).filter_by(store_id=store_id)
    if status:
        q = q.filter_by(status=status.upper())
    return q.order_by(Bill.created_at.desc(), Bill.id.desc()).limit(limit).all()


def void_bill(
    *,
    store_id: int,
    bill_id: int,
    user_id: int,
    reason: str,
    restore_stock: bool | None = None,
) -> Bill:
    """
    Transition a bill (and its sale) COMPLETED -> VOIDED.

    With restore_stock (default from VOID_RESTORES_STOCK) each line is returned to stock as a RETURN
    movement linked to the bill. Without it, stock is left as sold.
    """
    if restore_stock is None:
        restore_stock = bool(current_app.config.get("VOID_RESTORES_STOCK", True))

    try:
        bill = lock_for_update(
            db.session.query(Bill).filter_by(id=bill_id, store_id=store_id)
        ).first()
        if bill is None:
            raise BillNotFoundError("Bill not found", details={"bill_id": bill_id})

        if bill.status == BILL_STATUS_VOIDED:
            raise CheckoutError("Bill already voided", details={"bill_id": bill_id})
        if bill.status != BILL_STATUS_COMPLETED:
            raise CheckoutError(f"Cannot void bill with status {bill.status}")

        if restore_stock:
            for item in bill.items:
                stock_ledger.increment(
                    store_id=store_id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    reason=f"Void {bill.bill_number}",
                    user_id=user_id,
                    movement_type=MOVEMENT_RETURN,
                    bill_id=bill.id,
                    reverse_sale=True,
                )

        now = utcnow()
        bill.status = BILL_STATUS_VOIDED
        bill.voided_by_user_id = user_id
        bill.voided_at = now
        bill.void_reason = reason

        sale = bill.sale
        if sale is not None:
            sale.status = BILL_STATUS_VOIDED
            sale.voided_at = now
    except Exception:
        db.session.rollback()
        raise

    commit_or_rollback()

    current_app.logger.info(
        "Bill voided: %s by user=%s restore_stock=%s reason=%r",
        bill.bill_number,
        user_id,
        restore_stock,
        reason,
    )
    return bill
