"""Tests for the in-process stub adapters, order ids and shipping rules."""

import re

import pytest

from apps.checkout.adapters import STUB_PAYMENT_ERRORS, InMemoryCart, OrderStoreStub, PaymentsStub, SessionCart
from apps.checkout.domain import Order, OrderItem
from apps.checkout.errors import PaymentProcessorError, classify
from apps.checkout.idempotency import generate_order_id, payload_fingerprint
from apps.checkout.shipping import calculate_shipping, has_free_shipping
from apps.checkout.status import OrderStatus


def make_order(order_id="ORD-1", total=1845):
    return Order(
        id=order_id,
        items=[OrderItem("MUG-01", "Taza", 1, total - 595)],
        subtotal_cents=total - 595,
        shipping_cents=595,
        total_cents=total,
        status=OrderStatus.PAID,
        status_history=[],
        created_at="2026-01-01T00:00:00+00:00",
        payment_reference="pi_1",
    )


def test_order_ids_are_prefixed_and_unique():
    ids = {generate_order_id() for _ in range(500)}
    assert len(ids) == 500
    assert all(re.fullmatch(r"ORD-[0-9A-F]{32}", i) for i in ids)


def test_payload_fingerprint_ignores_key_order():
    assert payload_fingerprint({"a": 1, "b": [1, 2]}) == payload_fingerprint({"b": [1, 2], "a": 1})
    assert payload_fingerprint({"a": 1}) != payload_fingerprint({"a": 2})


@pytest.mark.parametrize(
    "subtotal,shipping",
    [(1, 595), (4999, 595), (5000, 0), (12000, 0)],
)
def test_shipping(subtotal, shipping):
    assert calculate_shipping(subtotal) == shipping
    assert has_free_shipping(subtotal) is (shipping == 0)


@pytest.mark.asyncio
async def test_payments_stub_confirms():
    out = await PaymentsStub().confirm("pi_1_secret_x", "pm_card_visa")
    assert re.fullmatch(r"pi_[0-9a-f]{24}", out.payment_reference)
    assert out.last4 == "4242"


@pytest.mark.asyncio
@pytest.mark.parametrize("token", sorted(STUB_PAYMENT_ERRORS))
async def test_payments_stub_test_tokens_fail(token):
    with pytest.raises(PaymentProcessorError) as e:
        await PaymentsStub().confirm("pi_1_secret_x", token)
    assert classify(e.value).code == STUB_PAYMENT_ERRORS[token][1]


@pytest.mark.asyncio
async def test_order_store_replay_returns_same_record():
    store = OrderStoreStub()
    order = make_order()
    first = await store.create(order, "t")
    second = await store.create(order, "t")
    assert first == second
    assert first["orderId"] == "ORD-1"
    assert len(store.records) == 1
    assert store.calls == 2


@pytest.mark.asyncio
async def test_order_store_conflict_on_different_payload():
    store = OrderStoreStub()
    await store.create(make_order(total=1845), "t")
    with pytest.raises(ValueError) as e:
        await store.create(make_order(total=2000), "t")
    assert str(e.value) == "IDEMPOTENCY_CONFLICT"


def test_in_memory_cart_clear():
    cart = InMemoryCart([OrderItem("MUG-01", "Taza", 1, 100)])
    assert len(cart.get_items()) == 1
    cart.clear()
    assert cart.get_items() == []
    assert cart.cleared


class FakeSession(dict):
    modified = False


def test_session_cart_reads_and_normalizes_items():
    session = FakeSession(cart=[{"sku": "mug-01", "name": "Taza", "quantity": 2, "unit_price_cents": 1250}])
    items = SessionCart(session).get_items()
    assert items == [OrderItem("MUG-01", "Taza", 2, 1250)]


def test_session_cart_empty_session():
    assert SessionCart(FakeSession()).get_items() == []


def test_session_cart_clear_marks_session_modified():
    session = FakeSession(cart=[{"sku": "MUG-01", "name": "Taza", "quantity": 1, "unit_price_cents": 100}])
    SessionCart(session).clear()
    assert "cart" not in session
    assert session.modified is True
