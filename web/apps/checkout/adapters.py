"""In-process stub adapters for the checkout ports.

These stubs implement ``PaymentConfirmationPort``, ``OrderPersistencePort``
and ``CartStore`` without any network calls. They are intended for unit
tests and local development where deterministic behavior is useful and the
payment processor and order backend are not available.
"""

import uuid
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

from .domain import Order, OrderItem, PaymentConfirmation
from .errors import PaymentProcessorError
from .idempotency import payload_fingerprint
from .schemas import CartItemIn

# Test payment method tokens and the processor error each one triggers.
STUB_PAYMENT_ERRORS: Dict[str, tuple] = {
    "pm_card_chargeDeclined": ("card_error", "card_declined", "Your card was declined."),
    "pm_card_expired": ("card_error", "expired_card", "Your card has expired."),
    "pm_card_incorrectCvc": ("card_error", "incorrect_cvc", "Your card's security code is incorrect."),
    "pm_card_insufficientFunds": ("card_error", "insufficient_funds", "Your card has insufficient funds."),
    "pm_card_processingError": ("card_error", "processing_error", "An error occurred while processing your card."),
}


class PaymentsStub:
    """Stub implementation of ``PaymentConfirmationPort``.

    Confirms every payment except the test tokens listed in
    ``STUB_PAYMENT_ERRORS``, which raise the matching processor error.
    """

    async def confirm(self, client_secret: str, payment_method: str) -> PaymentConfirmation:
        """Confirm a mock payment.

        Returns:
            PaymentConfirmation: With a generated ``pi_`` reference.

        Raises:
            PaymentProcessorError: For the failing test tokens.
        """
        failure = STUB_PAYMENT_ERRORS.get(payment_method)
        if failure:
            type_, code, message = failure
            raise PaymentProcessorError(type=type_, code=code, message=message)
        return PaymentConfirmation(
            payment_reference="pi_" + uuid.uuid4().hex[:24],
            card_brand="visa",
            last4="4242",
        )


class OrderStoreStub:
    """Stub implementation of ``OrderPersistencePort`` keyed by order id.

    Creating the same order id twice with the same payload returns the
    stored record; reusing an id with a different payload raises
    ``ValueError("IDEMPOTENCY_CONFLICT")``.
    """

    def __init__(self):
        self.records: Dict[str, Dict[str, Any]] = {}
        self._fingerprints: Dict[str, str] = {}
        self.calls = 0

    async def create(self, order: Order, auth_token: str) -> Mapping[str, Any]:
        self.calls += 1
        payload = order.to_payload()
        fp = payload_fingerprint(payload)
        existing = self._fingerprints.get(order.id)
        if existing is not None:
            if existing != fp:
                raise ValueError("IDEMPOTENCY_CONFLICT")
            return self.records[order.id]
        record = {"id": len(self.records) + 1, **payload}
        self.records[order.id] = record
        self._fingerprints[order.id] = fp
        return record


class InMemoryCart:
    """``CartStore`` backed by a plain list."""

    def __init__(self, items: Optional[List[OrderItem]] = None):
        self.items: List[OrderItem] = list(items or [])
        self.cleared = False

    def get_items(self) -> List[OrderItem]:
        return list(self.items)

    def clear(self) -> None:
        self.items = []
        self.cleared = True


class SessionCart:
    """``CartStore`` reading the cart kept in the customer's session.

    The session holds a list of ``{sku, name, quantity, unit_price_cents}``
    mappings under ``SESSION_KEY``. Malformed entries are rejected by the
    ``CartItemIn`` schema.
    """

    SESSION_KEY = "cart"

    def __init__(self, session: MutableMapping):
        self.session = session

    def get_items(self) -> List[OrderItem]:
        raw = self.session.get(self.SESSION_KEY) or []
        items = [CartItemIn.model_validate(entry) for entry in raw]
        return [
            OrderItem(sku=i.sku, name=i.name, quantity=i.quantity, unit_price_cents=i.unit_price_cents)
            for i in items
        ]

    def clear(self) -> None:
        self.session.pop(self.SESSION_KEY, None)
        if hasattr(self.session, "modified"):
            self.session.modified = True
