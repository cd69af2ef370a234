# Overview: Pure cart pricing; turns cart lines and adjustments into a totals breakdown.

"""
Pricing Engine

Computation order (fixed; receipts depend on it):

1. Item total   = line base - item discount
                  line base is unit price x quantity, or the promo tier price
                  item discount is base x pct/100 (percent) or the raw amount
2. Subtotal     = sum of item totals
3. Discount     = subtotal x pct/100, or the raw amount
4. Surcharge    = subtotal x pct/100, or the raw amount (NOT the discounted base)
5. Tax          = (subtotal - discount + surcharge) x rate/100 when VAT is on
6. Total        = subtotal - discount + surcharge + tax
7. Tender       = cash: change = max(received - total, 0)
                  other: received is forced to total, change = 0

All arithmetic is exact Decimal over cents. Nothing is rounded between
steps; Totals.rounded() is the single presentation boundary. Negative
adjustments are passed through unclamped.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable


PERCENT = "percent"
AMOUNT = "amount"
ADJUSTMENT_TYPES = (PERCENT, AMOUNT)

PAYMENT_CASH = "CASH"

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("1")


def to_cents(value: Decimal) -> int:
    """Round an exact cent amount to whole cents (half-up)."""
    return int(Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def normalize_payment_method(method: str | None) -> str:
    if not method:
        return PAYMENT_CASH
    return str(method).strip().upper() or PAYMENT_CASH


def is_cash(method: str | None) -> bool:
    return normalize_payment_method(method) == PAYMENT_CASH


@dataclass(frozen=True)
class PricingConfig:
    """Tenant tax configuration, snapshotted for the lifetime of a cart session."""

    tax_rate: Decimal = Decimal("7")  # percent
    vat_enabled: bool = True
    default_payment_method: str = PAYMENT_CASH

    @classmethod
    def from_store(cls, store) -> "PricingConfig":
        return cls(
            tax_rate=Decimal(store.tax_rate_bps) / HUNDRED,
            vat_enabled=bool(store.vat_enabled),
            default_payment_method=normalize_payment_method(store.default_payment_method),
        )

    @classmethod
    def from_dict(cls, data: dict) -> "PricingConfig":
        return cls(
            tax_rate=Decimal(int(data.get("tax_rate_bps", 700))) / HUNDRED,
            vat_enabled=bool(data.get("vat_enabled", True)),
            default_payment_method=normalize_payment_method(data.get("default_payment_method")),
        )


def apply_adjustment(base: Decimal, value: Decimal, adjustment_type: str) -> Decimal:
    if adjustment_type == PERCENT:
        return base * (Decimal(value) / HUNDRED)
    return Decimal(value)


def line_base(item) -> Decimal:
    """
    Undiscounted line amount in cents.

    Promo tier: with promo_quantity=3 and promo_price=250, seven units cost
    2 x 250 + 1 x unit price. Applies only once quantity reaches the tier.
    """
    product = item.product
    promo_qty = product.promo_quantity
    promo_price = product.promo_price_cents
    if promo_qty and promo_price and item.quantity >= promo_qty:
        sets, remainder = divmod(item.quantity, promo_qty)
        return Decimal(sets * promo_price + remainder * product.price_cents)
    return Decimal(product.price_cents * item.quantity)


def item_discount(item, base: Decimal) -> Decimal:
    return apply_adjustment(base, item.discount, item.discount_type)


def item_total(item) -> Decimal:
    base = line_base(item)
    return base - item_discount(item, base)


@dataclass(frozen=True)
class LineBreakdown:
    item_id: str
    product_id: int
    product_name: str
    quantity: int
    unit_price_cents: int
    base: Decimal
    discount: Decimal
    total: Decimal


@dataclass(frozen=True)
class RoundedTotals:
    subtotal_cents: int
    discount_cents: int
    surcharge_cents: int
    tax_cents: int
    total_cents: int

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "surcharge_cents": self.surcharge_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
        }


@dataclass(frozen=True)
class Totals:
    """Exact (unrounded) breakdown. Use rounded() for anything a customer sees."""

    subtotal: Decimal
    discount: Decimal
    surcharge: Decimal
    tax: Decimal
    total: Decimal
    lines: tuple[LineBreakdown, ...] = ()

    def rounded(self) -> RoundedTotals:
        subtotal_cents = to_cents(self.subtotal)
        discount_cents = to_cents(self.discount)
        surcharge_cents = to_cents(self.surcharge)
        tax_cents = to_cents(self.tax)
        # Derived from the rounded parts so a printed receipt always adds up.
        return RoundedTotals(
            subtotal_cents=subtotal_cents,
            discount_cents=discount_cents,
            surcharge_cents=surcharge_cents,
            tax_cents=tax_cents,
            total_cents=subtotal_cents - discount_cents + surcharge_cents + tax_cents,
        )


def compute_totals(
    items: Iterable,
    *,
    config: PricingConfig,
    global_discount: Decimal = ZERO,
    global_discount_type: str = PERCENT,
    global_surcharge: Decimal = ZERO,
    global_surcharge_type: str = PERCENT,
) -> Totals:
    lines = []
    for item in items:
        base = line_base(item)
        discount = item_discount(item, base)
        lines.append(LineBreakdown(
            item_id=item.id,
            product_id=item.product.id,
            product_name=item.product.name,
            quantity=item.quantity,
            unit_price_cents=item.product.price_cents,
            base=base,
            discount=discount,
            total=base - discount,
        ))

    subtotal = sum((line.total for line in lines), ZERO)
    discount = apply_adjustment(subtotal, global_discount, global_discount_type)
    surcharge = apply_adjustment(subtotal, global_surcharge, global_surcharge_type)

    if config.vat_enabled:
        tax = (subtotal - discount + surcharge) * (config.tax_rate / HUNDRED)
    else:
        tax = ZERO

    total = subtotal - discount + surcharge + tax
    return Totals(
        subtotal=subtotal,
        discount=discount,
        surcharge=surcharge,
        tax=tax,
        total=total,
        lines=tuple(lines),
    )


def compute_session_totals(session) -> Totals:
    return compute_totals(
        session.items,
        config=session.pricing,
        global_discount=session.global_discount,
        global_discount_type=session.global_discount_type,
        global_surcharge=session.global_surcharge,
        global_surcharge_type=session.global_surcharge_type,
    )


@dataclass(frozen=True)
class Tender:
    payment_method: str
    amount_received_cents: int
    change_cents: int


def compute_tender(total_cents: int, payment_method: str | None, amount_received_cents: int) -> Tender:
    method = normalize_payment_method(payment_method)
    if method != PAYMENT_CASH:
        return Tender(payment_method=method, amount_received_cents=total_cents, change_cents=0)
    return Tender(
        payment_method=method,
        amount_received_cents=amount_received_cents,
        change_cents=max(amount_received_cents - total_cents, 0),
    )
