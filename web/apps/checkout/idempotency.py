"""Order identifiers and payload fingerprints for idempotent persistence.

Every order draft gets its identifier on the client side, right after the
payment is confirmed. The identifier doubles as the ``Idempotency-Key``
sent to the order persistence service, so a replayed create for the same
draft can be recognized instead of producing a second order for a single
captured payment.
"""

import hashlib
import json
import uuid

ORDER_ID_PREFIX = "ORD-"


def generate_order_id() -> str:
    """Return a new order identifier.

    The identifier is ``ORD-`` followed by the 32 hex digits of a random
    UUIDv4 (122 random bits), uppercased.

    Returns:
        str: e.g. ``ORD-9F1C2B7E4A3D4E0F8B6A1C2D3E4F5A6B``.
    """
    return ORDER_ID_PREFIX + uuid.uuid4().hex.upper()


def payload_fingerprint(payload: dict) -> str:
    """Compute a stable SHA-256 hash for a JSON-serializable payload.

    The payload is serialized with sorted keys and compact separators so the
    same content always hashes the same way.

    Args:
        payload: A JSON-serializable dictionary.

    Returns:
        str: Hex-encoded SHA-256 digest of the normalized payload.
    """
    body = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


CHECKOUT_LOCK_PREFIX = "checkout:lock:"


def checkout_lock_key(client_secret: str) -> str:
    """Return the cache key guarding checkout of one payment intent.

    The client secret is hashed so it never ends up in cache keys.
    """
    return CHECKOUT_LOCK_PREFIX + hashlib.sha256(client_secret.encode("utf-8")).hexdigest()
