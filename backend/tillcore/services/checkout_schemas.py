# Overview: Checkout request contract shared by the terminal client and the server.

"""
CheckoutPayload wire format (JSON, snake_case, money in cents):

    {
      "user_id": 7,                      # optional; the X-User-Id header wins
      "payment_method": "CASH",
      "subtotal_cents": 100000,
      "discount_cents": 10000, "discount_percent": 10,
      "surcharge_cents": 0,    "surcharge_percent": 0,
      "tax_cents": 6300,
      "total_cents": 96300,
      "amount_received_cents": 100000,
      "change_cents": 3700,
      "customer_name": null, "notes": null,
      "items": [
        {"product_id": 1, "product_name": "Tea", "quantity": 2,
         "unit_price_cents": 50000, "discount_cents": 0, "total_cents": 100000}
      ]
    }

Response: {"bill": Bill, "sale": Sale}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..validation import (
    ValidationError,
    coerce_decimal,
    coerce_int,
    coerce_money_cents,
    coerce_str,
)
from .pricing import (
    PERCENT,
    ZERO,
    RoundedTotals,
    Tender,
    Totals,
    compute_tender,
    normalize_payment_method,
    to_cents,
)


class CheckoutError(Exception):
    """Raised for checkout business-rule failures."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class BillNotFoundError(CheckoutError):
    pass


class CheckoutValidationError(ValidationError):
    """Rejected before any stock or bill is touched."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class EmptyCartError(CheckoutValidationError):
    def __init__(self, message: str = "Cart is empty", details: dict | None = None):
        super().__init__(message, details)


class InsufficientPaymentError(CheckoutValidationError):
    def __init__(self, total_cents: int, amount_received_cents: int):
        super().__init__(
            "Amount received is less than the total",
            details={
                "total_cents": total_cents,
                "amount_received_cents": amount_received_cents,
                "short_by_cents": total_cents - amount_received_cents,
            },
        )


@dataclass(frozen=True)
class BillItemPayload:
    product_id: int
    quantity: int
    discount_cents: int = 0
    product_name: str | None = None
    unit_price_cents: int | None = None
    total_cents: int | None = None

    @classmethod
    def from_dict(cls, data, index: int = 0) -> "BillItemPayload":
        if not isinstance(data, dict):
            raise ValidationError(f"items[{index}] must be an object")
        return cls(
            product_id=coerce_int(f"items[{index}].product_id", data.get("product_id"), minimum=1),
            quantity=coerce_int(f"items[{index}].quantity", data.get("quantity"), minimum=1),
            discount_cents=coerce_money_cents(
                f"items[{index}].discount_cents", data.get("discount_cents", 0)
            ),
            product_name=coerce_str(f"items[{index}].product_name", data.get("product_name"), max_length=255),
            unit_price_cents=coerce_int(
                f"items[{index}].unit_price_cents", data.get("unit_price_cents"), minimum=0, required=False
            ),
            total_cents=coerce_money_cents(
                f"items[{index}].total_cents", data.get("total_cents"), required=False
            ),
        )

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
        }


@dataclass(frozen=True)
class CheckoutPayload:
    payment_method: str
    subtotal_cents: int
    total_cents: int
    amount_received_cents: int
    items: tuple[BillItemPayload, ...] = field(default_factory=tuple)
    discount_cents: int = 0
    discount_percent: Decimal = ZERO
    surcharge_cents: int = 0
    surcharge_percent: Decimal = ZERO
    tax_cents: int = 0
    change_cents: int = 0
    user_id: int | None = None
    customer_name: str | None = None
    notes: str | None = None

    @classmethod
    def from_dict(cls, data) -> "CheckoutPayload":
        if not isinstance(data, dict):
            raise ValidationError("Checkout payload must be a JSON object")

        raw_items = data.get("items")
        if raw_items is None or not isinstance(raw_items, list):
            raise ValidationError("items must be a list")
        if not raw_items:
            raise EmptyCartError()

        total_cents = coerce_money_cents("total_cents", data.get("total_cents"))
        received = data.get("amount_received_cents")

        return cls(
            payment_method=normalize_payment_method(data.get("payment_method")),
            subtotal_cents=coerce_money_cents("subtotal_cents", data.get("subtotal_cents")),
            total_cents=total_cents,
            # Terminals may omit it for card payments: treat as exact tender.
            amount_received_cents=(
                total_cents if received is None
                else coerce_money_cents("amount_received_cents", received)
            ),
            items=tuple(BillItemPayload.from_dict(item, i) for i, item in enumerate(raw_items)),
            discount_cents=coerce_money_cents("discount_cents", data.get("discount_cents", 0)),
            discount_percent=coerce_decimal("discount_percent", data.get("discount_percent"), default=ZERO),
            surcharge_cents=coerce_money_cents("surcharge_cents", data.get("surcharge_cents", 0)),
            surcharge_percent=coerce_decimal("surcharge_percent", data.get("surcharge_percent"), default=ZERO),
            tax_cents=coerce_money_cents("tax_cents", data.get("tax_cents", 0)),
            change_cents=coerce_money_cents("change_cents", data.get("change_cents", 0)),
            user_id=coerce_int("user_id", data.get("user_id"), minimum=1, required=False),
            customer_name=coerce_str("customer_name", data.get("customer_name"), max_length=255),
            notes=coerce_str("notes", data.get("notes")),
        )

    @classmethod
    def from_session(cls, session, totals: Totals | None = None, *, user_id: int | None = None) -> "CheckoutPayload":
        """Snapshot a cart session and its rounded totals into a request."""
        totals = totals or session.totals()
        rounded = totals.rounded()
        tender = compute_tender(rounded.total_cents, session.payment_method, session.amount_received_cents)

        items = tuple(
            BillItemPayload(
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                discount_cents=to_cents(line.discount),
                total_cents=to_cents(line.total),
            )
            for line in totals.lines
        )

        return cls(
            payment_method=tender.payment_method,
            subtotal_cents=rounded.subtotal_cents,
            total_cents=rounded.total_cents,
            amount_received_cents=tender.amount_received_cents,
            items=items,
            discount_cents=rounded.discount_cents,
            discount_percent=session.global_discount if session.global_discount_type == PERCENT else ZERO,
            surcharge_cents=rounded.surcharge_cents,
            surcharge_percent=session.global_surcharge if session.global_surcharge_type == PERCENT else ZERO,
            tax_cents=rounded.tax_cents,
            change_cents=tender.change_cents,
            user_id=user_id,
        )

    @property
    def rounded_totals(self) -> RoundedTotals:
        return RoundedTotals(
            subtotal_cents=self.subtotal_cents,
            discount_cents=self.discount_cents,
            surcharge_cents=self.surcharge_cents,
            tax_cents=self.tax_cents,
            total_cents=self.total_cents,
        )

    def check_reconciles(self) -> None:
        """total must equal subtotal - discount + surcharge + tax to the cent."""
        expected = self.subtotal_cents - self.discount_cents + self.surcharge_cents + self.tax_cents
        if expected != self.total_cents:
            raise CheckoutValidationError(
                "Totals do not reconcile",
                details={"expected_total_cents": expected, "total_cents": self.total_cents},
            )

        line_totals = [item.total_cents for item in self.items]
        if all(total is not None for total in line_totals):
            # Each line was rounded on its own; allow one cent of drift per line.
            drift = abs(sum(line_totals) - self.subtotal_cents)
            if drift > len(line_totals):
                raise CheckoutValidationError(
                    "Item totals do not add up to subtotal",
                    details={"items_total_cents": sum(line_totals), "subtotal_cents": self.subtotal_cents},
                )

    def resolve_tender(self) -> Tender:
        """
        Cash must cover the total; change is recomputed here rather than
        trusted. Any other method is forced to an exact tender.
        """
        tender = compute_tender(self.total_cents, self.payment_method, self.amount_received_cents)
        if tender.amount_received_cents < self.total_cents:
            raise InsufficientPaymentError(self.total_cents, tender.amount_received_cents)
        return tender

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "payment_method": self.payment_method,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "discount_percent": float(self.discount_percent),
            "surcharge_cents": self.surcharge_cents,
            "surcharge_percent": float(self.surcharge_percent),
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "amount_received_cents": self.amount_received_cents,
            "change_cents": self.change_cents,
            "customer_name": self.customer_name,
            "notes": self.notes,
            "items": [item.to_dict() for item in self.items],
        }
