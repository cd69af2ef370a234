# Overview: In-memory cart session for one terminal; no I/O.

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal

from ..validation import ValidationError, coerce_decimal, coerce_int, coerce_str
from .pricing import (
    ADJUSTMENT_TYPES,
    PERCENT,
    ZERO,
    PricingConfig,
    Totals,
    compute_session_totals,
    normalize_payment_method,
)


@dataclass(frozen=True)
class ProductSnapshot:
    """The slice of a catalog product the cart needs for pricing."""

    id: int
    name: str
    price_cents: int
    promo_quantity: int | None = None
    promo_price_cents: int | None = None

    def __post_init__(self):
        if self.id is None:
            raise ValidationError("product id is required")
        coerce_int("price_cents", self.price_cents)

    @classmethod
    def from_product(cls, product) -> "ProductSnapshot":
        return cls(
            id=product.id,
            name=product.name,
            price_cents=product.price_cents,
            promo_quantity=product.promo_quantity,
            promo_price_cents=product.promo_price_cents,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "ProductSnapshot":
        return cls(
            id=coerce_int("id", data.get("id")),
            name=coerce_str("name", data.get("name"), required=True),
            price_cents=coerce_int("price_cents", data.get("price_cents"), minimum=0),
            promo_quantity=coerce_int("promo_quantity", data.get("promo_quantity"), minimum=1, required=False),
            promo_price_cents=coerce_int("promo_price_cents", data.get("promo_price_cents"), minimum=0, required=False),
        )


def _check_adjustment_type(name: str, value: str) -> str:
    if value not in ADJUSTMENT_TYPES:
        raise ValidationError(f"{name} must be one of {list(ADJUSTMENT_TYPES)}")
    return value


@dataclass
class CartItem:
    """
    One cart line. discount is a percent when discount_type is 'percent',
    otherwise an amount in cents.
    """

    product: ProductSnapshot
    quantity: int = 1
    discount: Decimal = ZERO
    discount_type: str = PERCENT
    note: str | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        self.quantity = coerce_int("quantity", self.quantity, minimum=1)
        self.discount = coerce_decimal("discount", self.discount, default=ZERO)
        _check_adjustment_type("discount_type", self.discount_type)


UPDATABLE_ITEM_FIELDS = {"quantity", "discount", "discount_type", "note"}


class CartSession:
    """
    Pending transaction state for one terminal.

    Passed explicitly to pricing and checkout; there is no module-level
    cart. The pricing config is captured when the session is opened and only
    changes through refresh_pricing_config().
    """

    def __init__(self, pricing: PricingConfig | None = None, *, store_id: int | None = None):
        self.store_id = store_id
        self.pricing = pricing or PricingConfig()
        self.items: list[CartItem] = []
        self.global_discount: Decimal = ZERO
        self.global_discount_type: str = PERCENT
        self.global_surcharge: Decimal = ZERO
        self.global_surcharge_type: str = PERCENT
        self.payment_method: str = self.pricing.default_payment_method
        self.amount_received_cents: int = 0

    # -- lines ---------------------------------------------------------------

    def find_item(self, item_id: str) -> CartItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def add_item(self, product) -> CartItem:
        """Add one unit. No stock check here; stock is enforced at checkout."""
        if not isinstance(product, ProductSnapshot):
            product = ProductSnapshot.from_product(product)

        for item in self.items:
            if item.product.id == product.id:
                item.quantity += 1
                return item

        item = CartItem(product=product)
        self.items.append(item)
        return item

    def update_item(self, item_id: str, **partial) -> CartItem | None:
        """
        Merge quantity/discount/discount_type/note into a line.

        quantity=0 removes the line and returns None.
        """
        unknown = set(partial) - UPDATABLE_ITEM_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update cart item fields: {sorted(unknown)}")

        item = self.find_item(item_id)
        if item is None:
            raise ValidationError(f"Cart item {item_id} not found")

        if "quantity" in partial:
            quantity = coerce_int("quantity", partial["quantity"], minimum=0)
            if quantity == 0:
                self.remove_item(item_id)
                return None
        else:
            quantity = item.quantity

        discount = coerce_decimal("discount", partial["discount"]) if "discount" in partial else item.discount
        discount_type = (
            _check_adjustment_type("discount_type", partial["discount_type"])
            if "discount_type" in partial
            else item.discount_type
        )

        note = coerce_str("note", partial["note"], max_length=255) if "note" in partial else item.note

        item.quantity = quantity
        item.discount = discount
        item.discount_type = discount_type
        item.note = note
        return item

    def remove_item(self, item_id: str) -> None:
        self.items = [item for item in self.items if item.id != item_id]

    def clear(self) -> None:
        """Reset the whole pending transaction, not just the line list."""
        self.items = []
        self.global_discount = ZERO
        self.global_surcharge = ZERO
        self.amount_received_cents = 0

    def reset_after_checkout(self) -> None:
        self.clear()
        self.payment_method = self.pricing.default_payment_method

    # -- adjustments and tender ---------------------------------------------

    def set_global_discount(self, value, discount_type: str = PERCENT) -> None:
        self.global_discount = coerce_decimal("global_discount", value)
        self.global_discount_type = _check_adjustment_type("global_discount_type", discount_type)

    def set_global_surcharge(self, value, surcharge_type: str = PERCENT) -> None:
        self.global_surcharge = coerce_decimal("global_surcharge", value)
        self.global_surcharge_type = _check_adjustment_type("global_surcharge_type", surcharge_type)

    def set_payment_method(self, method: str) -> None:
        self.payment_method = normalize_payment_method(method)

    def set_amount_received(self, amount_cents) -> None:
        self.amount_received_cents = coerce_int("amount_received_cents", amount_cents, minimum=0)

    def refresh_pricing_config(self, pricing: PricingConfig) -> None:
        """Explicitly adopt a newer tenant tax configuration mid-session."""
        self.pricing = pricing

    # -- reads ---------------------------------------------------------------

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def totals(self) -> Totals:
        # Recomputed on every call; nothing is cached between mutations.
        return compute_session_totals(self)
