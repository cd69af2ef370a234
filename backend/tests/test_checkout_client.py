"""
Terminal checkout orchestrator tests.

Drives the real Flask app through httpx.WSGITransport.

Verifies:
- preconditions reject locally with no request issued
- a committed checkout clears the cart and resets tender state
- a rejected checkout leaves the cart exactly as it was
- only one submission may be in flight
"""

from decimal import Decimal

import httpx
import pytest

from tillcore.extensions import db
from tillcore.models import Bill, Product
from tillcore.services.cart import CartSession
from tillcore.services.checkout_client import (
    REJECT_EMPTY_CART,
    REJECT_IN_FLIGHT,
    REJECT_INSUFFICIENT_PAYMENT,
    REJECT_INSUFFICIENT_STOCK,
    REJECT_NETWORK,
    REJECT_SERVER,
    CheckoutOrchestrator,
    Committed,
    HttpCheckoutTransport,
    Rejected,
)
from tillcore.services.pricing import PricingConfig


def _stock(product_id):
    return db.session.query(Product.stock).filter_by(id=product_id).scalar()


class SpyTransport:
    """Counts requests and forwards them to the wrapped transport."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = []

    def create_bill(self, payload):
        self.calls.append(payload)
        return self.inner.create_bill(payload)


@pytest.fixture
def transport(app, store):
    client = httpx.Client(transport=httpx.WSGITransport(app=app), base_url="http://terminal.test")
    spy = SpyTransport(HttpCheckoutTransport("http://terminal.test", user_id=7, store_id=store.id, client=client))
    yield spy
    client.close()


@pytest.fixture
def session(store):
    return CartSession(PricingConfig.from_store(store), store_id=store.id)


@pytest.fixture
def orchestrator(session, transport):
    return CheckoutOrchestrator(session, transport, user_id=7)


def _reference_cart(session, tea, received):
    item = session.add_item(tea)
    session.update_item(item.id, quantity=2)
    session.set_global_discount(Decimal("10"))
    session.set_amount_received(received)
    return item


class TestPreconditions:
    def test_empty_cart(self, orchestrator, transport):
        result = orchestrator.submit()
        assert isinstance(result, Rejected)
        assert result.kind == REJECT_EMPTY_CART
        assert transport.calls == []

    def test_short_cash_rejected_without_request(self, orchestrator, transport, session, tea):
        _reference_cart(session, tea, received=90000)

        result = orchestrator.submit()

        assert isinstance(result, Rejected)
        assert result.kind == REJECT_INSUFFICIENT_PAYMENT
        assert result.details["total_cents"] == 96300
        assert result.details["short_by_cents"] == 6300
        assert transport.calls == []
        assert session.items[0].quantity == 2
        assert session.amount_received_cents == 90000
        assert _stock(tea.id) == 10


class TestCommitted:
    def test_reference_checkout_clears_cart(self, orchestrator, transport, session, tea):
        _reference_cart(session, tea, received=100000)
        session.set_global_surcharge(0)

        result = orchestrator.submit()

        assert isinstance(result, Committed)
        assert result.committed
        assert result.bill["total_cents"] == 96300
        assert result.bill["tax_cents"] == 6300
        assert result.bill["change_cents"] == 3700
        assert result.sale["bill_id"] == result.bill["id"]
        assert len(transport.calls) == 1

        assert session.is_empty
        assert session.global_discount == 0
        assert session.amount_received_cents == 0
        assert session.payment_method == "CASH"
        assert _stock(tea.id) == 8

    def test_card_payment_committed_as_exact_tender(self, orchestrator, session, tea):
        session.add_item(tea)
        session.set_payment_method("card")

        result = orchestrator.submit()

        assert isinstance(result, Committed)
        assert result.bill["payment_method"] == "CARD"
        assert result.bill["amount_received_cents"] == result.bill["total_cents"] == 53500
        assert result.bill["change_cents"] == 0
        assert session.payment_method == "CASH"


class TestRejected:
    def test_insufficient_stock_keeps_cart(self, orchestrator, session, tea, cake):
        session.add_item(tea)
        cake_item = session.add_item(cake)
        session.update_item(cake_item.id, quantity=5)
        session.set_amount_received(100000)

        result = orchestrator.submit()

        assert isinstance(result, Rejected)
        assert result.kind == REJECT_INSUFFICIENT_STOCK
        assert [i["product_id"] for i in result.details["items"]] == [cake.id]
        assert [(i.product.id, i.quantity) for i in session.items] == [(tea.id, 1), (cake.id, 5)]
        assert session.amount_received_cents == 100000
        assert _stock(tea.id) == 10
        assert db.session.query(Bill).count() == 0

    def test_network_error_keeps_cart(self, session, tea):
        def fail(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.Client(transport=httpx.MockTransport(fail))
        orchestrator = CheckoutOrchestrator(
            session, HttpCheckoutTransport("http://offline.test", user_id=7, store_id=1, client=client)
        )
        session.add_item(tea)
        session.set_amount_received(60000)

        result = orchestrator.submit()

        assert isinstance(result, Rejected)
        assert result.kind == REJECT_NETWORK
        assert len(session.items) == 1
        assert not orchestrator.in_flight

    def test_server_error_is_not_committed(self, session, tea):
        client = httpx.Client(transport=httpx.MockTransport(
            lambda request: httpx.Response(500, json={"error": "Internal server error"})
        ))
        orchestrator = CheckoutOrchestrator(
            session, HttpCheckoutTransport("http://broken.test", user_id=7, store_id=1, client=client)
        )
        session.add_item(tea)
        session.set_amount_received(60000)

        result = orchestrator.submit()

        assert isinstance(result, Rejected)
        assert not result.committed
        assert result.kind == REJECT_SERVER
        assert result.reason == "Internal server error"
        assert len(session.items) == 1


class TestInFlightGuard:
    def test_second_submit_rejected_while_first_in_flight(self, session, transport, tea):
        nested = []

        class ReentrantTransport:
            def create_bill(self, payload):
                nested.append(orchestrator.submit())
                return transport.create_bill(payload)

        orchestrator = CheckoutOrchestrator(session, ReentrantTransport(), user_id=7)
        session.add_item(tea)
        session.set_amount_received(60000)

        result = orchestrator.submit()

        assert isinstance(result, Committed)
        assert len(nested) == 1
        assert nested[0].kind == REJECT_IN_FLIGHT
        assert len(transport.calls) == 1
        assert _stock(tea.id) == 9
        assert not orchestrator.in_flight

    def test_lock_released_after_rejection(self, orchestrator):
        assert orchestrator.submit().kind == REJECT_EMPTY_CART
        assert not orchestrator.in_flight
        assert orchestrator.submit().kind == REJECT_EMPTY_CART
