"""Classification of payment failures.

Every failure raised while confirming a payment goes through ``classify``
before anything else looks at it. The result is an ``ErrorRecord`` whose
``kind`` is one of a closed set of values, so callers (the retry engine,
the checkout service, the HTTP view) dispatch on the tag instead of
inspecting processor payloads or exception types themselves.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import httpx
from django.conf import settings

from .messages import DEFAULT_ERROR_MESSAGE, ERROR_SUGGESTIONS, STRIPE_ERROR_MESSAGES

logger = logging.getLogger("checkout.errors")


class ErrorKind(str, Enum):
    """Closed set of error kinds produced by the classifier."""

    CARD_ERROR = "card_error"
    VALIDATION_ERROR = "validation_error"
    API_ERROR = "api_error"
    NETWORK_ERROR = "network_error"
    RATE_LIMIT_ERROR = "rate_limit_error"
    AUTHENTICATION_ERROR = "authentication_error"
    INVALID_REQUEST_ERROR = "invalid_request_error"
    UNKNOWN_ERROR = "unknown_error"


_KNOWN_KINDS = {k.value for k in ErrorKind}

RETRYABLE_CODES = frozenset(
    {
        "incorrect_cvc",
        "incorrect_number",
        "invalid_expiry_month",
        "invalid_expiry_year",
        "network_error",
        "timeout",
        "processing_error",
    }
)

ALTERNATE_INSTRUMENT_CODES = frozenset(
    {
        "card_declined",
        "expired_card",
        "insufficient_funds",
        "lost_card",
        "stolen_card",
        "card_not_supported",
    }
)

_NETWORK_NAMES = {"NetworkError", "ConnectError", "ConnectionError", "ReadError", "WriteError"}
_TIMEOUT_NAMES = {"TimeoutError", "TimeoutException"}


@dataclass(frozen=True)
class ErrorRecord:
    """Normalized payment failure.

    Attributes:
        kind: Error kind from the closed ``ErrorKind`` set.
        code: Fine-grained code (e.g. a decline reason), if known.
        message: Original technical message. Diagnostic only.
        localized_message: Message to show to the customer. Never empty.
        decline_code: Issuer decline code, when the processor sent one.
        field: Request field the processor blamed, when present.
    """

    kind: ErrorKind
    message: str
    localized_message: str
    code: Optional[str] = None
    decline_code: Optional[str] = None
    field: Optional[str] = None

    @property
    def suggestion(self) -> Optional[str]:
        return get_error_suggestion(self.code)


class PaymentProcessorError(Exception):
    """Structured failure reported by the payment processor.

    Raised by the payment confirmation adapters when the processor answers
    with an error body (``type``/``code`` pair) instead of a confirmation.
    """

    def __init__(
        self,
        type: str,
        code: Optional[str] = None,
        message: str = "",
        decline_code: Optional[str] = None,
        param: Optional[str] = None,
    ):
        super().__init__(message or code or type)
        self.type = type
        self.code = code
        self.message = message
        self.decline_code = decline_code
        self.param = param

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PaymentProcessorError":
        """Build the exception from a processor ``{"type": ..., "code": ...}`` body."""
        return cls(
            type=str(payload.get("type") or ErrorKind.UNKNOWN_ERROR.value),
            code=payload.get("code"),
            message=payload.get("message") or "",
            decline_code=payload.get("decline_code"),
            param=payload.get("param"),
        )


def _processor_fields(raw: Any) -> Optional[dict]:
    """Extract processor fields when ``raw`` carries a ``type``; else None."""
    if isinstance(raw, Mapping):
        if raw.get("type") is None:
            return None
        get = raw.get
    else:
        if getattr(raw, "type", None) is None or isinstance(raw, type):
            return None

        def get(name):
            return getattr(raw, name, None)

    return {
        "type": str(get("type")),
        "code": get("code"),
        "message": get("message"),
        "decline_code": get("decline_code"),
        "param": get("param"),
    }


def _is_network_fault(raw: BaseException) -> bool:
    if isinstance(raw, (httpx.NetworkError, ConnectionError)):
        return True
    if type(raw).__name__ in _NETWORK_NAMES:
        return True
    return "network" in str(raw).lower()


def _is_timeout(raw: BaseException) -> bool:
    if isinstance(raw, (httpx.TimeoutException, TimeoutError)):
        return True
    if type(raw).__name__ in _TIMEOUT_NAMES:
        return True
    return "timeout" in str(raw).lower()


def _diagnostics_enabled() -> bool:
    return bool(getattr(settings, "PAYMENT_ERROR_DIAGNOSTICS", getattr(settings, "DEBUG", False)))


def _log_diagnostics(record: ErrorRecord) -> None:
    if not _diagnostics_enabled():
        return
    logger.debug(
        "payment error classified",
        extra={
            "error_kind": record.kind.value,
            "error_code": record.code,
            "error_message": record.message,
            "decline_code": record.decline_code,
            "error_field": record.field,
        },
    )


def classify(raw: Any) -> ErrorRecord:
    """Normalize any failure into an ``ErrorRecord``.

    The function never raises. Recognized inputs, in order:

    - processor errors (anything carrying a ``type``): the code is looked
      up in the localized message table; unknown codes keep the code but get
      the generic message.
    - network faults: ``network_error``.
    - timeouts: ``api_error`` with code ``timeout``.
    - anything else: ``unknown_error`` with the stringified value.

    Args:
        raw: Exception, processor payload or arbitrary value.

    Returns:
        ErrorRecord: The classified error.
    """
    fields = _processor_fields(raw)
    if fields is not None:
        code = fields["code"] or "unknown"
        kind = fields["type"]
        record = ErrorRecord(
            kind=ErrorKind(kind) if kind in _KNOWN_KINDS else ErrorKind.UNKNOWN_ERROR,
            code=code,
            message=fields["message"] or "Unknown error",
            localized_message=STRIPE_ERROR_MESSAGES.get(code, DEFAULT_ERROR_MESSAGE),
            decline_code=fields["decline_code"],
            field=fields["param"],
        )
        _log_diagnostics(record)
        return record

    if isinstance(raw, BaseException):
        if _is_network_fault(raw):
            record = ErrorRecord(
                kind=ErrorKind.NETWORK_ERROR,
                code="network_error",
                message=str(raw),
                localized_message=STRIPE_ERROR_MESSAGES["network_error"],
            )
            _log_diagnostics(record)
            return record
        if _is_timeout(raw):
            record = ErrorRecord(
                kind=ErrorKind.API_ERROR,
                code="timeout",
                message=str(raw),
                localized_message=STRIPE_ERROR_MESSAGES["timeout"],
            )
            _log_diagnostics(record)
            return record

    try:
        message = str(raw)
    except Exception:
        message = repr(raw)
    record = ErrorRecord(
        kind=ErrorKind.UNKNOWN_ERROR,
        message=message,
        localized_message=DEFAULT_ERROR_MESSAGE,
    )
    _log_diagnostics(record)
    return record


def is_retryable(record: ErrorRecord) -> bool:
    """True when re-running the same operation may plausibly succeed."""
    return record.code in RETRYABLE_CODES if record.code else False


def requires_alternate_instrument(record: ErrorRecord) -> bool:
    """True when the customer has to pay with a different card."""
    return record.code in ALTERNATE_INSTRUMENT_CODES if record.code else False


def get_error_suggestion(code: Optional[str]) -> Optional[str]:
    """Return the actionable hint for ``code``, if there is one."""
    if not code:
        return None
    return ERROR_SUGGESTIONS.get(code)
