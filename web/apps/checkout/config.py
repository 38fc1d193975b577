"""Validation of the payments configuration.

Catches the usual deployment mistakes before the first payment is
attempted: a missing or placeholder publishable key, a key with the wrong
format, live keys outside production, test keys in production.
"""

import re
from dataclasses import dataclass, field
from typing import List

from django.conf import settings

KEY_RE = re.compile(r"^pk_(test|live)_")
PLACEHOLDER = "your_publishable_key_here"


@dataclass
class EnvValidationResult:
    """Outcome of ``validate_payments_environment``.

    Attributes:
        valid: True when there are no errors (warnings are allowed).
        errors: Problems that must be fixed before taking payments.
        warnings: Problems worth fixing that do not block payments.
        environment: ``development``, ``test`` or ``production``.
    """

    environment: str
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def validate_payments_environment() -> EnvValidationResult:
    """Check the payments settings for the current environment.

    Reads ``APP_ENV``, ``PAYMENTS_PUBLISHABLE_KEY`` and
    ``PAYMENTS_BASE_URL`` from Django settings.

    Returns:
        EnvValidationResult: Collected errors and warnings.
    """
    env = getattr(settings, "APP_ENV", "development")
    result = EnvValidationResult(environment=env)
    key = getattr(settings, "PAYMENTS_PUBLISHABLE_KEY", "") or ""

    if not key:
        result.errors.append("PAYMENTS_PUBLISHABLE_KEY is not set.")
    elif PLACEHOLDER in key:
        result.errors.append("PAYMENTS_PUBLISHABLE_KEY is still set to the placeholder value.")
    else:
        if not KEY_RE.match(key):
            result.errors.append(
                "Invalid publishable key format. Must start with 'pk_test_' or 'pk_live_'."
            )
        if env != "production" and key.startswith("pk_live_"):
            result.errors.append("Live publishable key used outside production.")
        if env == "production" and key.startswith("pk_test_"):
            result.errors.append("Test publishable key used in production.")

    base_url = getattr(settings, "PAYMENTS_BASE_URL", "") or ""
    if env == "production" and base_url.startswith("http://"):
        result.warnings.append("PAYMENTS_BASE_URL does not use HTTPS in production.")

    return result
