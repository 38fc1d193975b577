"""Domain models, ports and service for checkout.

This module contains the dataclasses used for order drafts, persisted
orders and checkout results, the protocol definitions (ports) for the
external collaborators (payment confirmation, order persistence and the
cart), and the domain service that completes a checkout.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Protocol, Union

from .errors import ErrorRecord
from .idempotency import generate_order_id
from .messages import ORDER_NOT_RECORDED_MESSAGE
from .retry import BASE_DELAY_MS, MAX_ATTEMPTS, MAX_DELAY_MS, OnRetry, Sleep, retry_with_backoff
from .shipping import calculate_shipping
from .status import OrderStatus, StatusHistoryEntry

logger = logging.getLogger("checkout")
support_logger = logging.getLogger("checkout.support")


# ---- Entities / DTOs ----
@dataclass(frozen=True)
class OrderItem:
    """A single line item in an order.

    Attributes:
        sku: The stock-keeping unit identifier for the product.
        name: Product name as shown in the cart.
        quantity: Number of units requested for this SKU.
        unit_price_cents: Unit price in integer cents.
    """

    sku: str
    name: str
    quantity: int
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents


@dataclass(frozen=True)
class OrderDraft:
    """Priced cart snapshot submitted for checkout.

    ``total_cents`` must equal ``subtotal_cents + shipping_cents``; this is
    checked once here and never re-derived later.

    Raises:
        ValueError: ``EMPTY_CART`` when there are no items,
            ``TOTAL_MISMATCH`` when the amounts do not add up.
    """

    items: List[OrderItem]
    subtotal_cents: int
    shipping_cents: int
    total_cents: int
    currency: str = "EUR"

    def __post_init__(self):
        if not self.items:
            raise ValueError("EMPTY_CART")
        if self.total_cents != self.subtotal_cents + self.shipping_cents:
            raise ValueError("TOTAL_MISMATCH")

    @classmethod
    def from_items(cls, items: List[OrderItem], currency: str = "EUR") -> "OrderDraft":
        """Price a list of items, adding shipping."""
        subtotal = sum(i.line_total_cents for i in items)
        shipping = calculate_shipping(subtotal)
        return cls(
            items=list(items),
            subtotal_cents=subtotal,
            shipping_cents=shipping,
            total_cents=subtotal + shipping,
            currency=currency,
        )


@dataclass(frozen=True)
class Order:
    """Order built after a confirmed payment.

    Attributes:
        id: Locally generated identifier, also used as idempotency key.
        status: Current status; ``paid`` when created by checkout.
        status_history: Append-only list of status changes.
        payment_reference: Processor reference of the captured payment.
        created_at: ISO-8601 creation timestamp.
        external_id: Identifier assigned by the persistence service, once
            stored.
    """

    id: str
    items: List[OrderItem]
    subtotal_cents: int
    shipping_cents: int
    total_cents: int
    status: OrderStatus
    status_history: List[StatusHistoryEntry]
    created_at: str
    payment_reference: Optional[str] = None
    currency: str = "EUR"
    external_id: Optional[str] = None

    def to_payload(self) -> dict:
        """Serialize the order for the persistence service."""
        return {
            "orderId": self.id,
            "items": [
                {
                    "sku": i.sku,
                    "name": i.name,
                    "quantity": i.quantity,
                    "unitPriceCents": i.unit_price_cents,
                }
                for i in self.items
            ],
            "subtotalCents": self.subtotal_cents,
            "shippingCents": self.shipping_cents,
            "totalCents": self.total_cents,
            "currency": self.currency,
            "orderStatus": self.status.value,
            "statusHistory": [
                {"status": h.status.value, "date": h.timestamp, "note": h.note}
                for h in self.status_history
            ],
            "paymentIntentId": self.payment_reference,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class PaymentContext:
    """What the checkout needs to confirm a payment and store the order.

    Only tokens are carried here; raw card data never reaches this system.
    """

    client_secret: str
    payment_method: str
    auth_token: str


@dataclass(frozen=True)
class PaymentConfirmation:
    payment_reference: str
    card_brand: Optional[str] = None
    last4: Optional[str] = None


# ---- Checkout results ----
@dataclass(frozen=True)
class CheckoutSuccess:
    order: Order
    attempts: int = 1


@dataclass(frozen=True)
class CheckoutFailure:
    """Payment was not captured. Safe to let the customer start over.

    ``exhausted`` tells a retryable error that ran out of attempts apart
    from an error that was never worth retrying.
    """

    error: ErrorRecord
    attempts: int
    exhausted: bool = False


@dataclass(frozen=True)
class CheckoutPartialFailure:
    """Payment was captured but the order could not be stored.

    Must not be presented as a retryable payment error: the customer has
    already paid. ``order`` is the draft that failed to persist, kept for
    manual reconciliation.
    """

    payment_reference: str
    reason: str
    order: Order

    @property
    def localized_message(self) -> str:
        return ORDER_NOT_RECORDED_MESSAGE.format(reference=self.payment_reference)


CheckoutResult = Union[CheckoutSuccess, CheckoutPartialFailure, CheckoutFailure]


# ---- Ports (DIP) ----
class PaymentConfirmationPort(Protocol):
    """Port describing payment confirmation.

    Implementations raise on failure; the raised value is classified by
    ``errors.classify``.
    """

    async def confirm(self, client_secret: str, payment_method: str) -> PaymentConfirmation:
        raise NotImplementedError()


class OrderPersistencePort(Protocol):
    """Port describing order persistence.

    ``create`` returns the stored record (at least an ``id``) or raises.
    """

    async def create(self, order: Order, auth_token: str) -> Mapping[str, Any]:
        raise NotImplementedError()


class CartStore(Protocol):
    def get_items(self) -> List[OrderItem]:
        raise NotImplementedError()

    def clear(self) -> None:
        raise NotImplementedError()


# ---- Domain service ----
class CheckoutService:
    """Domain service that completes a checkout.

    Confirms the payment through the retry engine, then stores the order
    exactly once. One instance serves one customer session; a second
    checkout on the same instance is refused while the first is running.
    """

    def __init__(
        self,
        payments: PaymentConfirmationPort,
        orders: OrderPersistencePort,
        cart: CartStore,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay_ms: int = BASE_DELAY_MS,
        max_delay_ms: int = MAX_DELAY_MS,
        sleep: Sleep = asyncio.sleep,
    ):
        """Initialize the service with required dependencies.

        Args:
            payments: Port used to confirm payments.
            orders: Port used to store confirmed orders.
            cart: Cart of the session; cleared once the order is stored.
            max_attempts: Payment confirmation attempts, including the first.
            base_delay_ms: Backoff after the first failed attempt.
            max_delay_ms: Backoff cap.
            sleep: Awaitable sleep used between attempts.
        """
        self.payments = payments
        self.orders = orders
        self.cart = cart
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self._sleep = sleep
        self._in_progress = False

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    async def complete_checkout(
        self,
        draft: OrderDraft,
        payment: PaymentContext,
        on_retry: Optional[OnRetry] = None,
    ) -> CheckoutResult:
        """Confirm the payment and store the order.

        Args:
            draft: Priced cart snapshot.
            payment: Payment tokens and the customer's auth token.
            on_retry: Progress callback, ``on_retry(attempt, error)``,
                called before each backoff sleep.

        Returns:
            CheckoutSuccess: Payment confirmed and order stored; the cart
                has been cleared.
            CheckoutFailure: Payment not confirmed; nothing was stored.
            CheckoutPartialFailure: Payment confirmed but the order could
                not be stored; the cart is left intact.

        Raises:
            RuntimeError: ``CHECKOUT_IN_PROGRESS`` when called again before
                the previous call finished.
        """
        if self._in_progress:
            raise RuntimeError("CHECKOUT_IN_PROGRESS")
        self._in_progress = True
        try:
            return await self._complete(draft, payment, on_retry)
        finally:
            self._in_progress = False

    async def _complete(
        self,
        draft: OrderDraft,
        payment: PaymentContext,
        on_retry: Optional[OnRetry],
    ) -> CheckoutResult:
        # 1) Confirm payment
        outcome = await retry_with_backoff(
            lambda: self.payments.confirm(payment.client_secret, payment.payment_method),
            max_attempts=self.max_attempts,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms,
            on_retry=on_retry,
            sleep=self._sleep,
        )
        if not outcome.success:
            logger.info(
                "payment not confirmed",
                extra={
                    "attempts": outcome.attempts,
                    "error_kind": outcome.error.kind.value,
                    "error_code": outcome.error.code,
                    "exhausted": outcome.exhausted,
                },
            )
            return CheckoutFailure(
                error=outcome.error, attempts=outcome.attempts, exhausted=outcome.exhausted
            )

        confirmation: PaymentConfirmation = outcome.data
        order = self._build_order(draft, confirmation)
        logger.info(
            "payment confirmed",
            extra={"order_id": order.id, "attempts": outcome.attempts},
        )

        # 2) Store the order, once
        try:
            stored = await self.orders.create(order, payment.auth_token)
        except Exception as exc:
            support_logger.error(
                "order not recorded after payment capture",
                extra={
                    "order_id": order.id,
                    "payment_reference": confirmation.payment_reference,
                    "total_cents": order.total_cents,
                    "reason": str(exc),
                },
            )
            return CheckoutPartialFailure(
                payment_reference=confirmation.payment_reference,
                reason=str(exc) or type(exc).__name__,
                order=order,
            )

        external_id = stored.get("id") if isinstance(stored, Mapping) else None
        if external_id is not None:
            order = replace(order, external_id=str(external_id))

        # 3) Only now is it safe to drop the cart; the order stands either way
        try:
            self.cart.clear()
        except Exception as exc:
            support_logger.error(
                "cart not cleared after order recorded",
                extra={
                    "order_id": order.id,
                    "payment_reference": confirmation.payment_reference,
                    "reason": str(exc) or type(exc).__name__,
                },
            )
        logger.info("order recorded", extra={"order_id": order.id, "external_id": order.external_id})
        return CheckoutSuccess(order=order, attempts=outcome.attempts)

    @staticmethod
    def _build_order(draft: OrderDraft, confirmation: PaymentConfirmation) -> Order:
        now = datetime.now(timezone.utc).isoformat()
        return Order(
            id=generate_order_id(),
            items=list(draft.items),
            subtotal_cents=draft.subtotal_cents,
            shipping_cents=draft.shipping_cents,
            total_cents=draft.total_cents,
            status=OrderStatus.PAID,
            status_history=[StatusHistoryEntry(status=OrderStatus.PAID, timestamp=now, note="Pago confirmado")],
            created_at=now,
            payment_reference=confirmation.payment_reference,
            currency=draft.currency,
        )
