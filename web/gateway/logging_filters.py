"""Logging filters for the storefront.

``RequestIdFilter`` adds the current request id to every record so the
JSON formatter can emit ``request_id``. ``SensitiveDataFilter`` masks
payment secrets (intent client secrets, payment method tokens, bearer
tokens) in messages and in ``extra`` fields before they are written.
"""

import re
from logging import Filter, LogRecord

from .middleware import REQUEST_ID_CTX

SECRET_PATTERNS = (
    re.compile(r"\b(pi_[A-Za-z0-9]+_secret_)[A-Za-z0-9]+"),
    re.compile(r"\b(pm_)[A-Za-z0-9_]+"),
    re.compile(r"(Bearer\s+)[^\s,;\"']+", re.IGNORECASE),
)
SENSITIVE_FIELDS = ("client_secret", "payment_method", "auth_token", "authorization")
MASK = "***"


def mask_secrets(text: str) -> str:
    """Replace the secret part of every known token in ``text``."""
    for pattern in SECRET_PATTERNS:
        text = pattern.sub(lambda m: m.group(1) + MASK, text)
    return text


class RequestIdFilter(Filter):
    """Attach a ``request_id`` attribute to log records.

    Records emitted outside a request get ``"-"``.
    """

    def filter(self, record: LogRecord) -> bool:
        record.request_id = REQUEST_ID_CTX.get()
        return True


class SensitiveDataFilter(Filter):
    """Mask payment secrets in log records. Never drops a record."""

    def filter(self, record: LogRecord) -> bool:
        if record.args:
            record.msg = record.getMessage()
            record.args = None
        if isinstance(record.msg, str):
            record.msg = mask_secrets(record.msg)
        for name in SENSITIVE_FIELDS:
            if getattr(record, name, None):
                setattr(record, name, MASK)
        return True
