"""Service provider helpers for wiring CheckoutService with ports.

``get_checkout_service`` returns a configured ``CheckoutService``. When
``settings.USE_HTTP_ADAPTERS`` is truthy it uses the HTTP clients for the
payment processor and the order backend; otherwise it falls back to the
in-process stubs used by tests and local development.

The payment client is not a module-level singleton. Each service gets a
``PaymentClientHandle`` that builds the client on first use and is owned by
that service alone.
"""

from typing import Callable, Optional

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .adapters import OrderStoreStub, PaymentsStub, SessionCart
from .config import validate_payments_environment
from .domain import CartStore, CheckoutService, PaymentConfirmation, PaymentConfirmationPort
from .http_adapters import HttpOrderPersistenceClient, HttpPaymentConfirmationClient


class PaymentClientHandle:
    """Lazily constructed payment client with a single owner.

    The factory runs on the first ``confirm`` call (or ``get``), never at
    import time, and its result is reused for the lifetime of the handle.
    """

    def __init__(self, factory: Callable[[], PaymentConfirmationPort]):
        self._factory = factory
        self._client: Optional[PaymentConfirmationPort] = None

    @property
    def loaded(self) -> bool:
        return self._client is not None

    def get(self) -> PaymentConfirmationPort:
        if self._client is None:
            self._client = self._factory()
        return self._client

    def reset(self) -> None:
        self._client = None

    async def confirm(self, client_secret: str, payment_method: str) -> PaymentConfirmation:
        return await self.get().confirm(client_secret, payment_method)


def _http_payment_client() -> HttpPaymentConfirmationClient:
    """Build the HTTP payment client after validating the configuration.

    Raises:
        ImproperlyConfigured: When the payments settings have errors.
    """
    result = validate_payments_environment()
    if not result.valid:
        raise ImproperlyConfigured("; ".join(result.errors))
    return HttpPaymentConfirmationClient()


def default_payment_handle() -> PaymentClientHandle:
    if getattr(settings, "USE_HTTP_ADAPTERS", True):
        return PaymentClientHandle(_http_payment_client)
    return PaymentClientHandle(PaymentsStub)


def get_cart(request) -> CartStore:
    """Return the cart of the session attached to ``request``."""
    return SessionCart(request.session)


def get_checkout_service(
    cart: CartStore,
    payment_handle: Optional[PaymentClientHandle] = None,
) -> CheckoutService:
    """Return a configured CheckoutService instance.

    Args:
        cart: Cart of the current session.
        payment_handle: Payment client handle; a new one is created when
            omitted.

    Returns:
        CheckoutService: A service instance with appropriate ports.
    """
    handle = payment_handle or default_payment_handle()
    if getattr(settings, "USE_HTTP_ADAPTERS", True):
        orders = HttpOrderPersistenceClient()
    else:
        orders = OrderStoreStub()

    return CheckoutService(
        payments=handle,
        orders=orders,
        cart=cart,
        max_attempts=getattr(settings, "CHECKOUT_RETRY_MAX_ATTEMPTS", 3),
        base_delay_ms=getattr(settings, "CHECKOUT_RETRY_BASE_DELAY_MS", 1000),
        max_delay_ms=getattr(settings, "CHECKOUT_RETRY_MAX_DELAY_MS", 8000),
    )
