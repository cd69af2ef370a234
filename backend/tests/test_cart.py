"""
Cart session tests (no database).

Verifies:
- add_item merges repeat scans into one line
- update_item validates before mutating; quantity 0 removes the line
- clear / reset_after_checkout reset the whole pending transaction
- the pricing snapshot only changes through refresh_pricing_config
"""

from decimal import Decimal

import pytest

from tillcore.services.cart import CartItem, CartSession, ProductSnapshot
from tillcore.services.pricing import AMOUNT, PricingConfig
from tillcore.validation import ValidationError


TEA = ProductSnapshot(id=1, name="Tea", price_cents=50000)
CAKE = ProductSnapshot(id=2, name="Cake", price_cents=250)


@pytest.fixture
def session():
    return CartSession(PricingConfig(tax_rate=Decimal("7"), vat_enabled=True, default_payment_method="CASH"))


class TestAddItem:
    def test_repeat_scan_increments_quantity(self, session):
        first = session.add_item(TEA)
        second = session.add_item(TEA)
        assert first is second
        assert len(session.items) == 1
        assert session.items[0].quantity == 2

    def test_distinct_products_get_distinct_lines(self, session):
        session.add_item(TEA)
        session.add_item(CAKE)
        assert [item.product.id for item in session.items] == [1, 2]
        assert session.item_count == 2

    def test_accepts_catalog_objects(self, session):
        class Row:
            id = 9
            name = "Coffee"
            price_cents = 300
            promo_quantity = None
            promo_price_cents = None

        item = session.add_item(Row())
        assert item.product == ProductSnapshot(id=9, name="Coffee", price_cents=300)

    def test_snapshot_from_catalog_json(self):
        snap = ProductSnapshot.from_dict({"id": "3", "name": "Bun", "price_cents": 100,
                                          "promo_quantity": 3, "promo_price_cents": 250})
        assert snap == ProductSnapshot(id=3, name="Bun", price_cents=100, promo_quantity=3, promo_price_cents=250)
        with pytest.raises(ValidationError):
            ProductSnapshot.from_dict({"id": 3, "name": "Bun", "price_cents": 1.5})

    def test_cart_item_rejects_zero_quantity(self):
        with pytest.raises(ValidationError):
            CartItem(product=TEA, quantity=0)


class TestUpdateItem:
    def test_partial_merge(self, session):
        item = session.add_item(TEA)
        session.update_item(item.id, quantity=3, discount="5", note="gift")
        assert item.quantity == 3
        assert item.discount == Decimal("5")
        assert item.note == "gift"

    def test_quantity_zero_removes_line(self, session):
        item = session.add_item(TEA)
        assert session.update_item(item.id, quantity=0) is None
        assert session.is_empty

    def test_invalid_field_leaves_item_untouched(self, session):
        item = session.add_item(TEA)
        with pytest.raises(ValidationError):
            session.update_item(item.id, quantity=4, discount_type="bogus")
        assert item.quantity == 1
        assert item.discount_type == "percent"

    def test_unknown_field_rejected(self, session):
        item = session.add_item(TEA)
        with pytest.raises(ValidationError):
            session.update_item(item.id, price_cents=1)

    def test_unknown_item_rejected(self, session):
        with pytest.raises(ValidationError):
            session.update_item("missing", quantity=2)

    def test_negative_quantity_rejected(self, session):
        item = session.add_item(TEA)
        with pytest.raises(ValidationError):
            session.update_item(item.id, quantity=-1)


class TestReset:
    def _fill(self, session):
        session.add_item(TEA)
        session.set_global_discount(10)
        session.set_global_surcharge(50, AMOUNT)
        session.set_payment_method("card")
        session.set_amount_received(100000)

    def test_clear_resets_adjustments(self, session):
        self._fill(session)
        session.clear()
        assert session.is_empty
        assert session.global_discount == 0
        assert session.global_surcharge == 0
        assert session.amount_received_cents == 0

    def test_reset_after_checkout_restores_default_payment(self, session):
        self._fill(session)
        session.reset_after_checkout()
        assert session.is_empty
        assert session.payment_method == "CASH"


class TestPricingSnapshot:
    def test_totals_use_snapshot_until_refresh(self, session):
        session.add_item(TEA)
        assert session.totals().rounded().tax_cents == 3500

        session.refresh_pricing_config(PricingConfig(tax_rate=Decimal("10"), vat_enabled=True))
        assert session.totals().rounded().tax_cents == 5000

    def test_totals_follow_every_mutation(self, session):
        item = session.add_item(TEA)
        before = session.totals().rounded().total_cents
        session.update_item(item.id, quantity=2)
        assert session.totals().rounded().total_cents == before * 2
