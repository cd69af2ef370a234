# Overview: Terminal-side checkout orchestration; preflight, submit over HTTP, settle the cart.

"""
Terminal Checkout Orchestrator

WHY: The terminal must never treat an in-flight or failed checkout as
committed. submit() returns exactly one of:

- Committed(bill, sale): server committed; the cart session is reset.
- Rejected(reason, kind, details): nothing committed; the cart session is
  left exactly as it was so the cashier can fix it and resubmit.

Preconditions are checked locally with no I/O (empty cart, short cash).
Only one submit may be outstanding per orchestrator; a second one while the
first is in flight is rejected immediately (double-click protection).
There are no automatic retries.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

import httpx

from .cart import CartSession
from .checkout_schemas import (
    CheckoutPayload,
    CheckoutValidationError,
    EmptyCartError,
    InsufficientPaymentError,
)
from .pricing import is_cash


REJECT_EMPTY_CART = "empty_cart"
REJECT_INSUFFICIENT_PAYMENT = "insufficient_payment"
REJECT_INSUFFICIENT_STOCK = "insufficient_stock"
REJECT_VALIDATION = "validation"
REJECT_SERVER = "server"
REJECT_NETWORK = "network"
REJECT_IN_FLIGHT = "in_flight"


@dataclass(frozen=True)
class Committed:
    bill: dict
    sale: dict

    committed = True


@dataclass(frozen=True)
class Rejected:
    reason: str
    kind: str
    details: dict = field(default_factory=dict)

    committed = False


class HttpCheckoutTransport:
    """
    POSTs checkout payloads to the bills endpoint.

    Identity and store are resolved by the terminal's login and forwarded as
    headers; this class does not authenticate.
    """

    def __init__(
        self,
        base_url: str,
        *,
        user_id: int,
        store_id: int,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.store_id = store_id
        self.client = client or httpx.Client(timeout=timeout)

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "X-User-Id": str(self.user_id),
            "X-Store-Id": str(self.store_id),
        }

    def create_bill(self, payload: dict) -> httpx.Response:
        return self.client.post(f"{self.base_url}/api/bills/", headers=self._headers(), json=payload)

    def close(self) -> None:
        self.client.close()


def _response_body(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class CheckoutOrchestrator:
    def __init__(self, session: CartSession, transport, *, user_id: int | None = None):
        self.session = session
        self.transport = transport
        self.user_id = user_id
        self._submit_lock = threading.Lock()

    @property
    def in_flight(self) -> bool:
        return self._submit_lock.locked()

    def preflight(self) -> CheckoutPayload:
        """
        Local checks plus payload snapshot. Raises EmptyCartError or
        InsufficientPaymentError; never touches the network.
        """
        if self.session.is_empty:
            raise EmptyCartError()

        totals = self.session.totals()
        total_cents = totals.rounded().total_cents
        if is_cash(self.session.payment_method) and self.session.amount_received_cents < total_cents:
            raise InsufficientPaymentError(total_cents, self.session.amount_received_cents)

        return CheckoutPayload.from_session(self.session, totals, user_id=self.user_id)

    def submit(self) -> Committed | Rejected:
        if not self._submit_lock.acquire(blocking=False):
            return Rejected("A checkout is already in progress", REJECT_IN_FLIGHT)

        try:
            try:
                payload = self.preflight()
            except EmptyCartError as exc:
                return Rejected(str(exc), REJECT_EMPTY_CART, exc.details)
            except InsufficientPaymentError as exc:
                return Rejected(str(exc), REJECT_INSUFFICIENT_PAYMENT, exc.details)
            except CheckoutValidationError as exc:
                return Rejected(str(exc), REJECT_VALIDATION, exc.details)

            try:
                response = self.transport.create_bill(payload.to_dict())
            except httpx.HTTPError as exc:
                return Rejected(f"Could not reach the server: {exc}", REJECT_NETWORK)

            result = self._interpret(response)
            if isinstance(result, Committed):
                self.session.reset_after_checkout()
            return result
        finally:
            self._submit_lock.release()

    @staticmethod
    def _interpret(response: httpx.Response) -> Committed | Rejected:
        body = _response_body(response)

        if response.status_code == 201 and "bill" in body:
            return Committed(bill=body["bill"], sale=body.get("sale") or {})

        reason = body.get("error") or f"Checkout failed (HTTP {response.status_code})"
        details = body.get("details") or {}
        if response.status_code == 409:
            return Rejected(reason, REJECT_INSUFFICIENT_STOCK, details)
        if response.status_code == 400:
            return Rejected(reason, REJECT_VALIDATION, details)
        return Rejected(reason, REJECT_SERVER, details)
