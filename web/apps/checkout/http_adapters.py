"""HTTP adapter clients for the checkout ports.

This module implements concrete async HTTP clients for the checkout ports
using ``httpx``. It adds:

- Request correlation: propagates ``X-Request-ID`` from the ContextVar set
  by the gateway middleware.
- Processor error mapping: error responses from the payment processor are
  raised as ``PaymentProcessorError`` so ``errors.classify`` can read their
  ``type``/``code`` pair. Transport errors (``httpx.NetworkError``,
  ``httpx.TimeoutException``) propagate unchanged and are classified as
  network errors and timeouts.
- Order idempotency: the persistence client sends the order id as
  ``Idempotency-Key`` so the order backend can recognize a replay.

Neither client retries on its own. Payment confirmation is retried by the
checkout service; order persistence is never retried.
"""

import logging
import time
from typing import Any, Mapping, Optional

import httpx
from django.conf import settings

from gateway.middleware import REQUEST_ID_CTX

from .domain import Order, PaymentConfirmation
from .errors import ErrorKind, PaymentProcessorError

logger = logging.getLogger("checkout.http")


class OrderPersistenceError(Exception):
    """The order backend refused or failed to store an order."""

    def __init__(self, status_code: int, detail: str = ""):
        super().__init__(f"ORDER_PERSISTENCE_FAILED ({status_code}): {detail}".rstrip(": "))
        self.status_code = status_code
        self.detail = detail


# ---------------- Helpers ---------------- #

def _request_headers(extra: Optional[dict] = None) -> dict:
    """Build base headers including X-Request-ID and any extras.

    Args:
        extra: Optional dict of additional headers to include.

    Returns:
        dict: Final headers dictionary for the outgoing request.
    """
    headers: dict[str, str] = {}
    rid = REQUEST_ID_CTX.get()
    if rid and rid != "-":
        headers["X-Request-ID"] = rid
    if extra:
        headers.update(extra)
    return headers


def _json_body(resp: httpx.Response) -> dict:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _processor_error(resp: httpx.Response) -> PaymentProcessorError:
    """Map a non-200 processor response to a ``PaymentProcessorError``.

    A structured ``{"error": {"type": ..., "code": ...}}`` body wins. Without
    one, the status code decides: 429 is a rate limit, 401 an authentication
    problem, 5xx a transient processing error, anything else an invalid
    request.
    """
    err = _json_body(resp).get("error")
    if isinstance(err, dict) and err.get("type"):
        return PaymentProcessorError.from_payload(err)

    status = resp.status_code
    if status == 429:
        return PaymentProcessorError(ErrorKind.RATE_LIMIT_ERROR.value, "rate_limit", "Too many requests")
    if status == 401:
        return PaymentProcessorError(ErrorKind.AUTHENTICATION_ERROR.value, "authentication_failed", "Unauthorized")
    if 500 <= status < 600:
        return PaymentProcessorError(ErrorKind.API_ERROR.value, "processing_error", f"Processor returned {status}")
    return PaymentProcessorError(ErrorKind.INVALID_REQUEST_ERROR.value, None, f"Processor returned {status}")


# ---------------- Payments Adapter ---------------- #

class HttpPaymentConfirmationClient:
    """HTTP client confirming payment intents with the payment processor."""

    def __init__(
        self,
        base_url: str | None = None,
        publishable_key: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = base_url or settings.PAYMENTS_BASE_URL
        self.publishable_key = publishable_key or getattr(settings, "PAYMENTS_PUBLISHABLE_KEY", "")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECS

    async def confirm(self, client_secret: str, payment_method: str) -> PaymentConfirmation:
        """Confirm a payment intent with a tokenized payment method.

        Args:
            client_secret: Client secret of the payment intent.
            payment_method: Tokenized payment method reference.

        Returns:
            PaymentConfirmation: Reference of the captured payment and the
            displayable card details (brand, last 4 digits).

        Raises:
            PaymentProcessorError: When the processor rejects the payment.
            httpx.RequestError: For network/transport errors.
        """
        payload = {"client_secret": client_secret, "payment_method": payment_method}
        headers = _request_headers({"Authorization": f"Bearer {self.publishable_key}"})
        started = time.monotonic()

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                f"{self.base_url}/payment_intents/confirm", json=payload, headers=headers
            )

        logger.info(
            "payment confirmation answered",
            extra={"status_code": resp.status_code, "elapsed_ms": int((time.monotonic() - started) * 1000)},
        )
        if resp.status_code != 200:
            raise _processor_error(resp)

        data = _json_body(resp)
        reference = data.get("id") or data.get("payment_reference")
        if not reference:
            raise PaymentProcessorError(
                ErrorKind.API_ERROR.value, "api_error", "Confirmation without payment reference"
            )
        card = data.get("card") or {}
        return PaymentConfirmation(
            payment_reference=reference,
            card_brand=card.get("brand"),
            last4=card.get("last4"),
        )


# ---------------- Orders Adapter ---------------- #

class HttpOrderPersistenceClient:
    """HTTP client storing orders in the commerce backend."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.ORDERS_API_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECS

    async def create(self, order: Order, auth_token: str) -> Mapping[str, Any]:
        """Store a confirmed order.

        The request body is ``{"data": order.to_payload()}``; the customer's
        token authenticates the request and the order id is sent as
        ``Idempotency-Key``.

        Returns:
            Mapping: ``{"id": <backend id>, "data": <stored record>}``.

        Raises:
            OrderPersistenceError: For any non-2xx response.
            httpx.RequestError: For network/transport errors.
        """
        headers = _request_headers(
            {"Authorization": f"Bearer {auth_token}", "Idempotency-Key": order.id}
        )
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                f"{self.base_url}/api/orders", json={"data": order.to_payload()}, headers=headers
            )

        if resp.status_code not in (200, 201):
            err = _json_body(resp).get("error")
            detail = err.get("message", "") if isinstance(err, dict) else ""
            logger.warning(
                "order backend rejected order",
                extra={"status_code": resp.status_code, "order_id": order.id},
            )
            raise OrderPersistenceError(resp.status_code, detail)

        body = _json_body(resp)
        data = body.get("data") if isinstance(body.get("data"), dict) else body
        return {"id": data.get("documentId") or data.get("id"), "data": data}
