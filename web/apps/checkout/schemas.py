"""Pydantic schemas for checkout.

Request validation for the checkout API and the cart kept in the session,
plus the read schemas used to render results.
"""

import re
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


SKU_RE = re.compile(r"^[A-Z0-9_-]{3,32}$")
CLIENT_SECRET_RE = re.compile(r"^[A-Za-z0-9]+_[A-Za-z0-9]+_secret_[A-Za-z0-9]+$")


class CartItemIn(BaseModel):
    """Schema for a cart line stored in the session.

    Attributes:
        sku: Product SKU. Normalized to uppercase and validated against a
            regex (3-32 chars, uppercase letters, digits, '_' and '-').
        name: Product name.
        quantity: Positive integer indicating units requested.
        unit_price_cents: Positive unit price in cents.
    """

    sku: str = Field(min_length=3, max_length=32)
    name: str = Field(min_length=1, max_length=200)
    quantity: int = Field(gt=0)
    unit_price_cents: int = Field(gt=0)

    @field_validator("sku")
    @classmethod
    def validate_sku(cls, v: str) -> str:
        """Validate and normalize SKU to uppercase.

        Raises:
            ValueError: When the SKU does not match the expected pattern.
        """
        v2 = v.upper()
        if not SKU_RE.match(v2):
            raise ValueError("Invalid SKU format")
        return v2


class CheckoutRequestDTO(BaseModel):
    """Schema for the checkout request body.

    Attributes:
        client_secret: Client secret of the payment intent, as issued by the
            processor (``pi_..._secret_...``).
        payment_method: Tokenized payment method reference (``pm_...``).
    """

    client_secret: str = Field(min_length=1, max_length=255)
    payment_method: str = Field(min_length=3, max_length=255)

    @field_validator("client_secret")
    @classmethod
    def validate_client_secret(cls, v: str) -> str:
        if not CLIENT_SECRET_RE.match(v):
            raise ValueError("Invalid client secret format")
        return v

    @field_validator("payment_method")
    @classmethod
    def validate_payment_method(cls, v: str) -> str:
        if not v.startswith("pm_"):
            raise ValueError("Invalid payment method reference")
        return v


class OrderItemOut(BaseModel):
    sku: str
    name: str
    quantity: int
    unit_price_cents: int


class StatusHistoryOut(BaseModel):
    status: str
    timestamp: str
    note: Optional[str] = None


class OrderReadDTO(BaseModel):
    """Read schema for an order returned by the checkout API."""

    id: str
    status: str
    items: List[OrderItemOut]
    subtotal_cents: int
    shipping_cents: int
    total_cents: int
    currency: str
    payment_reference: Optional[str] = None
    external_id: Optional[str] = None
    created_at: str
    status_history: List[StatusHistoryOut] = []


class PaymentErrorOut(BaseModel):
    """Customer-facing view of a classified payment error."""

    kind: str
    code: Optional[str] = None
    message: str
    suggestion: Optional[str] = None
    retryable: bool
    requires_alternate_instrument: bool
