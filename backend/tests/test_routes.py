"""
HTTP API tests.

Verifies status codes and response shapes for bills, stock and settings,
plus the identity header requirement.
"""

from decimal import Decimal

import pytest

from tillcore.extensions import db
from tillcore.models import Product
from tillcore.services.cart import CartSession
from tillcore.services.checkout_schemas import CheckoutPayload
from tillcore.services.pricing import PricingConfig


def _checkout_body(store, lines, received=None):
    session = CartSession(PricingConfig.from_store(store))
    for product, quantity in lines:
        item = session.add_item(product)
        session.update_item(item.id, quantity=quantity)
    if received is None:
        received = session.totals().rounded().total_cents
    session.set_amount_received(received)
    return CheckoutPayload.from_session(session).to_dict()


class TestIdentity:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/bills/"),
            ("POST", "/api/bills/"),
            ("GET", "/api/bills/1"),
            ("POST", "/api/bills/1/void"),
            ("POST", "/api/stock/adjust"),
            ("POST", "/api/stock/restock"),
            ("GET", "/api/stock/movements"),
            ("GET", "/api/settings/pricing"),
            ("PUT", "/api/settings/pricing"),
        ],
    )
    def test_missing_headers_401(self, client, method, path):
        response = client.open(path, method=method, json={})
        assert response.status_code == 401

    def test_non_numeric_header_401(self, client):
        response = client.get("/api/bills/", headers={"X-User-Id": "abc", "X-Store-Id": "1"})
        assert response.status_code == 401

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json["status"] == "healthy"
        assert response.json["checks"]["database"]["status"] == "healthy"


class TestBills:
    def test_create_bill(self, client, headers, store, tea):
        body = _checkout_body(store, [(tea, 2)], received=200000)
        response = client.post("/api/bills/", json=body, headers=headers)

        assert response.status_code == 201
        bill = response.json["bill"]
        assert bill["total_cents"] == 107000
        assert bill["change_cents"] == 93000
        assert bill["user_id"] == 7
        assert bill["items"][0]["product_name"] == "Tea"
        assert response.json["sale"]["bill_id"] == bill["id"]

    def test_header_user_wins_over_body(self, client, headers, store, tea):
        body = _checkout_body(store, [(tea, 1)])
        body["user_id"] = 99
        response = client.post("/api/bills/", json=body, headers=headers)
        assert response.json["bill"]["user_id"] == 7

    def test_insufficient_stock_409(self, client, headers, store, tea, cake):
        body = _checkout_body(store, [(tea, 1), (cake, 4)])
        response = client.post("/api/bills/", json=body, headers=headers)

        assert response.status_code == 409
        assert response.json["details"]["items"][0]["product_id"] == cake.id
        assert db.session.query(Product.stock).filter_by(id=tea.id).scalar() == 10

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda b: b.update(items=[]),
            lambda b: b.update(items="nope"),
            lambda b: b["items"][0].update(quantity=0),
            lambda b: b["items"][0].update(quantity=1.5),
            lambda b: b.update(total_cents="12.5"),
            lambda b: b.update(amount_received_cents=1),
        ],
    )
    def test_invalid_payload_400(self, client, headers, store, tea, mutate):
        body = _checkout_body(store, [(tea, 1)])
        mutate(body)
        response = client.post("/api/bills/", json=body, headers=headers)
        assert response.status_code == 400
        assert "error" in response.json

    def test_non_json_body_400(self, client, headers):
        response = client.post("/api/bills/", data="not json", headers=headers)
        assert response.status_code == 400

    def test_list_and_get(self, client, headers, store, tea):
        created = client.post("/api/bills/", json=_checkout_body(store, [(tea, 1)]), headers=headers).json["bill"]

        listing = client.get("/api/bills/?limit=5", headers=headers)
        assert listing.status_code == 200
        assert listing.json["count"] == 1
        assert "items" not in listing.json["items"][0]

        detail = client.get(f"/api/bills/{created['id']}", headers=headers)
        assert detail.status_code == 200
        assert detail.json["bill"]["bill_number"] == created["bill_number"]

    def test_get_missing_404(self, client, headers):
        assert client.get("/api/bills/999", headers=headers).status_code == 404

    def test_bill_invisible_to_other_store(self, client, headers, store, other_store, tea):
        created = client.post("/api/bills/", json=_checkout_body(store, [(tea, 1)]), headers=headers).json["bill"]
        other = {"X-User-Id": "7", "X-Store-Id": str(other_store.id)}
        assert client.get(f"/api/bills/{created['id']}", headers=other).status_code == 404

    def test_void(self, client, headers, store, tea):
        created = client.post("/api/bills/", json=_checkout_body(store, [(tea, 2)]), headers=headers).json["bill"]

        response = client.post(f"/api/bills/{created['id']}/void", json={"reason": "Wrong table"}, headers=headers)
        assert response.status_code == 200
        assert response.json["bill"]["status"] == "VOIDED"
        assert response.json["bill"]["void_reason"] == "Wrong table"

        again = client.post(f"/api/bills/{created['id']}/void", json={"reason": "again"}, headers=headers)
        assert again.status_code == 400

    def test_void_requires_reason(self, client, headers, store, tea):
        created = client.post("/api/bills/", json=_checkout_body(store, [(tea, 1)]), headers=headers).json["bill"]
        response = client.post(f"/api/bills/{created['id']}/void", json={}, headers=headers)
        assert response.status_code == 400

    def test_void_missing_404(self, client, headers):
        response = client.post("/api/bills/999/void", json={"reason": "x"}, headers=headers)
        assert response.status_code == 404


class TestStock:
    def test_adjust(self, client, headers, tea):
        response = client.post(
            "/api/stock/adjust",
            json={"product_id": tea.id, "adjustment_type": "subtract", "quantity": 9, "reason": "Spoiled",
                  "movement_type": "DAMAGED"},
            headers=headers,
        )
        assert response.status_code == 201
        assert response.json["product"]["stock"] == 1
        assert response.json["product"]["is_low_stock"] is False
        assert response.json["movement"]["movement_type"] == "DAMAGED"
        assert response.json["movement"]["quantity_change"] == -9

    def test_adjust_low_stock_flag(self, client, headers, product_factory):
        product = product_factory(sku="MILK", name="Milk", price_cents=120, stock=5, min_stock=2)
        response = client.post(
            "/api/stock/adjust",
            json={"product_id": product.id, "adjustment_type": "set", "quantity": 2},
            headers=headers,
        )
        assert response.json["product"]["is_low_stock"] is True

    def test_adjust_below_zero_409(self, client, headers, cake):
        response = client.post(
            "/api/stock/adjust",
            json={"product_id": cake.id, "adjustment_type": "subtract", "quantity": 4},
            headers=headers,
        )
        assert response.status_code == 409

    def test_adjust_sale_type_rejected(self, client, headers, tea):
        response = client.post(
            "/api/stock/adjust",
            json={"product_id": tea.id, "adjustment_type": "add", "quantity": 1, "movement_type": "SALE"},
            headers=headers,
        )
        assert response.status_code == 400

    def test_restock_and_movements(self, client, headers, cake):
        response = client.post(
            "/api/stock/restock", json={"product_id": cake.id, "quantity": 7, "notes": "Delivery"}, headers=headers
        )
        assert response.status_code == 201
        assert response.json["product"]["stock"] == 10

        movements = client.get(f"/api/stock/movements?product_id={cake.id}&limit=1", headers=headers)
        assert movements.status_code == 200
        assert movements.json["count"] == 1
        assert movements.json["items"][0]["notes"] == "Delivery"
        assert movements.json["items"][0]["product_name"] == "Cake"

    def test_restock_zero_400(self, client, headers, cake):
        response = client.post("/api/stock/restock", json={"product_id": cake.id, "quantity": 0}, headers=headers)
        assert response.status_code == 400

    def test_movements_unknown_product_404(self, client, headers):
        response = client.get("/api/stock/movements?product_id=999", headers=headers)
        assert response.status_code == 404


class TestPricingSettings:
    def test_get(self, client, headers, store):
        response = client.get("/api/settings/pricing", headers=headers)
        assert response.status_code == 200
        assert response.json == {
            "store_id": store.id,
            "tax_rate_bps": 700,
            "vat_enabled": True,
            "default_payment_method": "CASH",
        }

    def test_put_partial(self, client, headers):
        response = client.put(
            "/api/settings/pricing",
            json={"tax_rate_bps": 1000, "default_payment_method": "card"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json["tax_rate_bps"] == 1000
        assert response.json["vat_enabled"] is True
        assert response.json["default_payment_method"] == "CARD"

    @pytest.mark.parametrize(
        "body",
        [
            {"tax_rate_bps": -1},
            {"tax_rate_bps": 10001},
            {"tax_rate_bps": 7.5},
            {"vat_enabled": "yes"},
            {"default_payment_method": "  "},
            {"currency": "EUR"},
        ],
    )
    def test_put_invalid_400(self, client, headers, body):
        response = client.put("/api/settings/pricing", json=body, headers=headers)
        assert response.status_code == 400

    def test_unknown_store_404(self, client):
        response = client.get("/api/settings/pricing", headers={"X-User-Id": "1", "X-Store-Id": "999"})
        assert response.status_code == 404

    def test_new_session_picks_up_change(self, client, headers, store, tea):
        client.put("/api/settings/pricing", json={"tax_rate_bps": 1000}, headers=headers)
        db.session.refresh(store)
        session = CartSession(PricingConfig.from_store(store))
        session.add_item(tea)
        assert session.totals().rounded().tax_cents == 5000
        assert session.pricing.tax_rate == Decimal("10")
