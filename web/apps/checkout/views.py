"""HTTP views for the checkout app.

Views are kept small: they validate the request (via Pydantic), read the
session cart, delegate to ``CheckoutService`` and map the checkout result
to an HTTP response.

The service comes from ``providers.get_checkout_service()`` which wires
HTTP adapter-backed ports or in-process stubs depending on runtime
settings, so tests and local development can swap implementations
without changing view logic.

Result mapping for ``POST /api/checkout/``:

- 201 with the stored order when payment and persistence succeed.
- 402 with the classified payment error when the payment is not confirmed.
- 502 with ``ORDER_NOT_RECORDED`` and the payment reference when the
  payment was captured but the order could not be stored. The body tells
  the client not to offer payment again.
- 409 with ``CHECKOUT_IN_PROGRESS`` while another request is checking out
  the same payment intent (cache lock keyed on the client secret hash).
"""

import logging

from asgiref.sync import async_to_sync
from django.conf import settings
from django.core.cache import cache
from pydantic import ValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from . import providers
from .domain import (
    CheckoutFailure,
    CheckoutPartialFailure,
    CheckoutSuccess,
    Order,
    OrderDraft,
    PaymentContext,
)
from .errors import ErrorRecord, is_retryable, requires_alternate_instrument
from .idempotency import checkout_lock_key
from .schemas import CheckoutRequestDTO, OrderReadDTO, PaymentErrorOut

logger = logging.getLogger("checkout")


def _bearer_token(request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _order_body(order: Order) -> dict:
    dto = OrderReadDTO.model_validate(
        {
            "id": order.id,
            "status": order.status.value,
            "items": [
                {
                    "sku": i.sku,
                    "name": i.name,
                    "quantity": i.quantity,
                    "unit_price_cents": i.unit_price_cents,
                }
                for i in order.items
            ],
            "subtotal_cents": order.subtotal_cents,
            "shipping_cents": order.shipping_cents,
            "total_cents": order.total_cents,
            "currency": order.currency,
            "payment_reference": order.payment_reference,
            "external_id": order.external_id,
            "created_at": order.created_at,
            "status_history": [
                {"status": h.status.value, "timestamp": h.timestamp, "note": h.note}
                for h in order.status_history
            ],
        }
    )
    return dto.model_dump(exclude_none=True)


def _error_body(record: ErrorRecord) -> dict:
    dto = PaymentErrorOut(
        kind=record.kind.value,
        code=record.code,
        message=record.localized_message,
        suggestion=record.suggestion,
        retryable=is_retryable(record),
        requires_alternate_instrument=requires_alternate_instrument(record),
    )
    return dto.model_dump(exclude_none=True)


class CheckoutPingView(APIView):
    """Simple health-check endpoint for the checkout module."""

    def get(self, request):
        return Response({"ok": True})


class CheckoutView(APIView):
    """Complete the checkout of the session cart."""

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "checkout"

    def post(self, request):
        """Confirm the payment and store the order.

        Args:
            request (Request): DRF request with JSON body
                ``{client_secret, payment_method}`` and an
                ``Authorization: Bearer <token>`` header.

        Returns:
            Response: One of the following responses.
            - 201 with {order, attempts} on success.
            - 400 for body validation errors or an empty cart.
            - 401 when the bearer token is missing.
            - 402 with {detail: "PAYMENT_FAILED", error, attempts, exhausted}.
            - 409 with {detail: "CHECKOUT_IN_PROGRESS"} while another
              checkout of the same payment intent is running.
            - 502 with {detail: "ORDER_NOT_RECORDED", payment_reference,
              message, retry_payment: false} on partial failure.
        """
        # 1) Pydantic validation
        try:
            dto = CheckoutRequestDTO.model_validate(request.data)
        except ValidationError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        token = _bearer_token(request)
        if token is None:
            return Response({"detail": "AUTHENTICATION_REQUIRED"}, status=status.HTTP_401_UNAUTHORIZED)

        # 2) Cart snapshot
        cart = providers.get_cart(request)
        try:
            draft = OrderDraft.from_items(
                cart.get_items(), currency=getattr(settings, "CHECKOUT_CURRENCY", "EUR")
            )
        except ValidationError:
            return Response({"detail": "INVALID_CART"}, status=status.HTTP_400_BAD_REQUEST)
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        # 3) One checkout per payment intent at a time, across requests
        lock_key = checkout_lock_key(dto.client_secret)
        if not cache.add(lock_key, 1, getattr(settings, "CHECKOUT_LOCK_TIMEOUT_SECS", 120)):
            logger.info("checkout refused, another one is in progress")
            return Response({"detail": "CHECKOUT_IN_PROGRESS"}, status=status.HTTP_409_CONFLICT)

        # 4) Domain
        service = providers.get_checkout_service(cart)
        payment = PaymentContext(
            client_secret=dto.client_secret,
            payment_method=dto.payment_method,
            auth_token=token,
        )
        try:
            result = async_to_sync(service.complete_checkout)(draft, payment)
        finally:
            cache.delete(lock_key)

        # 5) Response
        if isinstance(result, CheckoutSuccess):
            return Response(
                {"order": _order_body(result.order), "attempts": result.attempts},
                status=status.HTTP_201_CREATED,
            )

        if isinstance(result, CheckoutPartialFailure):
            return Response(
                {
                    "detail": "ORDER_NOT_RECORDED",
                    "payment_reference": result.payment_reference,
                    "order_id": result.order.id,
                    "message": result.localized_message,
                    "retry_payment": False,
                },
                status=status.HTTP_502_BAD_GATEWAY,
            )

        if isinstance(result, CheckoutFailure):
            return Response(
                {
                    "detail": "PAYMENT_FAILED",
                    "error": _error_body(result.error),
                    "attempts": result.attempts,
                    "exhausted": result.exhausted,
                },
                status=status.HTTP_402_PAYMENT_REQUIRED,
            )

        raise TypeError(f"Unexpected checkout result: {type(result).__name__}")
