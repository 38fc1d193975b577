"""Shipping cost rules used when pricing an order draft.

Amounts are integer cents.
"""

SHIPPING_COST_CENTS = 595
FREE_SHIPPING_THRESHOLD_CENTS = 5000


def has_free_shipping(subtotal_cents: int) -> bool:
    return subtotal_cents >= FREE_SHIPPING_THRESHOLD_CENTS


def calculate_shipping(subtotal_cents: int) -> int:
    """Return the shipping cost for a subtotal (0 above the free threshold)."""
    return 0 if has_free_shipping(subtotal_cents) else SHIPPING_COST_CENTS
