"""API tests for the checkout endpoint.

The view gets its cart and service from ``apps.checkout.providers``; the
tests patch those symbols to inject an in-memory cart and a service wired
with stubs and a recording sleep, then assert the HTTP mapping of each
checkout outcome.
"""

import threading

import pytest
from django.core.cache import cache
from django.test import Client

from apps.checkout.adapters import InMemoryCart, OrderStoreStub, PaymentsStub, SessionCart
from apps.checkout.domain import CheckoutService, PaymentConfirmation
from apps.checkout.idempotency import checkout_lock_key

CHECKOUT_URL = "/api/checkout/"
AUTH = {"HTTP_AUTHORIZATION": "Bearer jwt-token"}
BODY = {"client_secret": "pi_123_secret_abc", "payment_method": "pm_card_visa"}


class BrokenOrders:
    async def create(self, order, auth_token):
        raise RuntimeError("backend unavailable")


@pytest.fixture
def wire(monkeypatch, recording_sleep):
    """Install a cart and a stub-backed service into the providers."""

    def _wire(cart, orders=None, payments=None):
        monkeypatch.setattr("apps.checkout.providers.get_cart", lambda request: cart, raising=True)
        monkeypatch.setattr(
            "apps.checkout.providers.get_checkout_service",
            lambda c, payment_handle=None: CheckoutService(
                payments=payments or PaymentsStub(),
                orders=orders or OrderStoreStub(),
                cart=c,
                sleep=recording_sleep,
            ),
            raising=True,
        )
        return cart

    return _wire


def post(client, body=None, **extra):
    return client.post(CHECKOUT_URL, data=body or BODY, content_type="application/json", **extra)


def test_checkout_ok(client, wire, cart_items):
    cart = wire(InMemoryCart(cart_items))
    r = post(client, **AUTH)
    assert r.status_code == 201
    body = r.json()
    assert body["attempts"] == 1
    order = body["order"]
    assert order["id"].startswith("ORD-")
    assert order["status"] == "paid"
    assert order["total_cents"] == 3985
    assert order["shipping_cents"] == 595
    assert order["payment_reference"].startswith("pi_")
    assert order["status_history"][0]["status"] == "paid"
    assert cart.cleared is True


def test_checkout_declined_returns_402(client, wire, cart_items):
    cart = wire(InMemoryCart(cart_items))
    r = post(client, {**BODY, "payment_method": "pm_card_chargeDeclined"}, **AUTH)
    assert r.status_code == 402
    body = r.json()
    assert body["detail"] == "PAYMENT_FAILED"
    assert body["attempts"] == 1
    assert body["exhausted"] is False
    assert body["error"]["code"] == "card_declined"
    assert body["error"]["retryable"] is False
    assert body["error"]["requires_alternate_instrument"] is True
    assert body["error"]["message"]
    assert cart.cleared is False


def test_checkout_retryable_error_exhausted(client, wire, cart_items, recording_sleep):
    wire(InMemoryCart(cart_items))
    r = post(client, {**BODY, "payment_method": "pm_card_processingError"}, **AUTH)
    assert r.status_code == 402
    body = r.json()
    assert body["attempts"] == 3
    assert body["exhausted"] is True
    assert body["error"]["retryable"] is True
    assert recording_sleep.calls == [1.0, 2.0]


def test_checkout_order_not_recorded_returns_502(client, wire, cart_items):
    cart = wire(InMemoryCart(cart_items), orders=BrokenOrders())
    r = post(client, **AUTH)
    assert r.status_code == 502
    body = r.json()
    assert body["detail"] == "ORDER_NOT_RECORDED"
    assert body["retry_payment"] is False
    assert body["payment_reference"].startswith("pi_")
    assert body["payment_reference"] in body["message"]
    assert body["order_id"].startswith("ORD-")
    assert cart.cleared is False


def test_checkout_requires_bearer_token(client, wire, cart_items):
    wire(InMemoryCart(cart_items))
    r = post(client)
    assert r.status_code == 401
    assert r.json()["detail"] == "AUTHENTICATION_REQUIRED"


def test_checkout_validation_error(client, wire, cart_items):
    wire(InMemoryCart(cart_items))
    r = post(client, {"client_secret": "not-a-secret", "payment_method": "card_visa"}, **AUTH)
    assert r.status_code == 400


def test_checkout_empty_cart(client, wire):
    wire(InMemoryCart([]))
    r = post(client, **AUTH)
    assert r.status_code == 400
    assert r.json()["detail"] == "EMPTY_CART"


def test_checkout_invalid_session_cart(client, wire):
    wire(SessionCart({"cart": [{"sku": "?", "name": "", "quantity": 0, "unit_price_cents": 1}]}))
    r = post(client, **AUTH)
    assert r.status_code == 400
    assert r.json()["detail"] == "INVALID_CART"


def test_overlapping_checkouts_for_same_intent(wire, cart_items):
    """A second submit while the first is confirming gets 409; one order only."""
    entered = threading.Event()
    release = threading.Event()

    class HeldPayments:
        def __init__(self):
            self.calls = 0

        async def confirm(self, client_secret, payment_method):
            self.calls += 1
            entered.set()
            release.wait(timeout=5)
            return PaymentConfirmation(payment_reference="pi_held")

    payments = HeldPayments()
    orders = OrderStoreStub()
    wire(InMemoryCart(cart_items), orders=orders, payments=payments)

    results = {}

    def first_submit():
        results["first"] = post(Client(), **AUTH)

    worker = threading.Thread(target=first_submit)
    worker.start()
    try:
        assert entered.wait(timeout=5)
        second = post(Client(), **AUTH)
    finally:
        release.set()
        worker.join(timeout=10)

    assert second.status_code == 409
    assert second.json()["detail"] == "CHECKOUT_IN_PROGRESS"
    assert results["first"].status_code == 201
    assert payments.calls == 1
    assert len(orders.records) == 1


def test_checkout_refused_while_lock_held(client, wire, cart_items):
    cart = wire(InMemoryCart(cart_items))
    cache.add(checkout_lock_key(BODY["client_secret"]), 1, 60)
    r = post(client, **AUTH)
    assert r.status_code == 409
    assert cart.cleared is False


def test_lock_released_after_checkout(client, wire, cart_items):
    wire(InMemoryCart(cart_items), orders=BrokenOrders())
    assert post(client, **AUTH).status_code == 502
    assert cache.get(checkout_lock_key(BODY["client_secret"])) is None
    assert post(client, **AUTH).status_code == 502


def test_unexpected_result_is_not_reported_as_payment_failure(client, monkeypatch, cart_items):
    class OddService:
        async def complete_checkout(self, draft, payment, on_retry=None):
            return object()

    monkeypatch.setattr("apps.checkout.providers.get_cart", lambda request: InMemoryCart(cart_items))
    monkeypatch.setattr("apps.checkout.providers.get_checkout_service", lambda c, payment_handle=None: OddService())
    with pytest.raises(TypeError):
        post(client, **AUTH)
    assert cache.get(checkout_lock_key(BODY["client_secret"])) is None


def test_ping_echoes_request_id(client):
    r = client.get("/api/checkout/ping/", HTTP_X_REQUEST_ID="req-123")
    assert r.status_code == 200
    assert r.json() == {"ok": True}
    assert r["X-Request-ID"] == "req-123"


def test_request_id_generated_when_missing(client):
    r = client.get("/api/checkout/ping/")
    assert len(r["X-Request-ID"]) == 36


def test_oversized_body_rejected(client, settings):
    settings.API_MAX_BYTES = 16
    r = post(client, **AUTH)
    assert r.status_code == 413
    assert r.json()["detail"] == "PAYLOAD_TOO_LARGE"
