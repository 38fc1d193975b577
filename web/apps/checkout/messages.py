"""User-facing messages for payment errors.

Maps processor error codes (decline codes, validation codes, transport
failures) to the Spanish messages shown in the storefront, plus short
actionable suggestions for the codes where the customer can do something
about it.
"""

STRIPE_ERROR_MESSAGES: dict[str, str] = {
    # declines
    "card_declined": "Tu tarjeta fue rechazada. Por favor, contacta con tu banco.",
    "generic_decline": "Tu tarjeta fue rechazada. Intenta con otra tarjeta.",
    "expired_card": "Tu tarjeta ha caducado. Por favor, usa otra tarjeta.",
    # card data
    "incorrect_cvc": "El código de seguridad (CVV/CVC) es incorrecto.",
    "incorrect_number": "El número de tarjeta es incorrecto.",
    "invalid_number": "El número de tarjeta no es válido.",
    "invalid_expiry_month": "El mes de expiración no es válido.",
    "invalid_expiry_year": "El año de expiración no es válido.",
    "invalid_expiry_month_past": "La fecha de expiración está en el pasado.",
    # funds / issuer
    "insufficient_funds": "Tu tarjeta no tiene fondos suficientes.",
    "processing_error": "Hubo un error al procesar el pago. Intenta de nuevo.",
    "issuer_not_available": "El banco emisor no está disponible. Intenta más tarde.",
    "authentication_required": "Tu banco requiere autenticación adicional.",
    "card_not_supported": "Este tipo de tarjeta no es compatible.",
    "card_velocity_exceeded": "Has realizado demasiadas transacciones. Intenta más tarde.",
    "lost_card": "Esta tarjeta fue reportada como perdida.",
    "stolen_card": "Esta tarjeta fue reportada como robada.",
    # transport / server
    "network_error": "Sin conexión. Verifica tu internet.",
    "api_error": "Error del servidor de pagos. Intenta de nuevo en unos minutos.",
    "timeout": "Tiempo de espera agotado. Por favor, intenta de nuevo.",
}

DEFAULT_ERROR_MESSAGE = (
    "Hubo un problema al procesar tu pago. Por favor, intenta de nuevo."
)

ERROR_SUGGESTIONS: dict[str, str] = {
    "card_declined": "Contacta con tu banco o intenta con otra tarjeta.",
    "expired_card": "Por favor, usa una tarjeta válida.",
    "incorrect_cvc": "Verifica el código de 3 o 4 dígitos en el reverso de tu tarjeta.",
    "insufficient_funds": "Intenta con otra tarjeta o forma de pago.",
    "network_error": "Revisa tu conexión a internet.",
    "timeout": "Espera unos segundos antes de intentar nuevamente.",
}

ORDER_NOT_RECORDED_MESSAGE = (
    "Tu pago se ha procesado correctamente, pero no pudimos registrar tu "
    "pedido. Contacta con soporte indicando la referencia de pago {reference}. "
    "No vuelvas a pagar."
)
