"""Order status lifecycle.

Defines the order statuses, the fixed table of legal transitions between
them, and the predicates used to render order progress (badges and the
order timeline).

Normal flow::

    pending -> paid -> processing -> shipped -> delivered

Orders can be cancelled until they ship and refunded once shipped.
``cancelled`` and ``refunded`` are terminal. Orders are only persisted once
payment is confirmed, so the first stored status is ``paid``; ``pending``
is the conceptual start.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional


class OrderStatus(str, Enum):
    """Enumeration of the order statuses."""

    PENDING = "pending"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


ORDER_STATUS_TRANSITIONS: Mapping[OrderStatus, frozenset] = MappingProxyType(
    {
        OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
        OrderStatus.PAID: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
        OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
        OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.REFUNDED}),
        OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
        OrderStatus.CANCELLED: frozenset(),
        OrderStatus.REFUNDED: frozenset(),
    }
)

ACTIVE_ORDER_STATUSES = (
    OrderStatus.PENDING,
    OrderStatus.PAID,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
)

ERROR_ORDER_STATUSES = (OrderStatus.CANCELLED, OrderStatus.REFUNDED)

# Statuses shown in the order timeline, in order. Error statuses are not
# part of it.
DISPLAY_SEQUENCE = (
    OrderStatus.PENDING,
    OrderStatus.PAID,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)


@dataclass(frozen=True)
class StatusConfig:
    label: str
    color: str
    description: str
    icon: str


STATUS_DISPLAY: Mapping[OrderStatus, StatusConfig] = MappingProxyType(
    {
        OrderStatus.PENDING: StatusConfig(
            "Pago Pendiente", "gray", "Estamos esperando la confirmación del pago.", "clock"
        ),
        OrderStatus.PAID: StatusConfig(
            "Pago Confirmado", "blue", "Hemos recibido tu pago correctamente.", "credit-card"
        ),
        OrderStatus.PROCESSING: StatusConfig(
            "En Preparación", "yellow", "Estamos preparando tu pedido para el envío.", "box"
        ),
        OrderStatus.SHIPPED: StatusConfig(
            "Enviado", "orange", "Tu pedido está en camino.", "truck"
        ),
        OrderStatus.DELIVERED: StatusConfig(
            "Entregado", "green", "Tu pedido ha sido entregado.", "check-circle"
        ),
        OrderStatus.CANCELLED: StatusConfig(
            "Cancelado", "red", "Este pedido ha sido cancelado.", "x-circle"
        ),
        OrderStatus.REFUNDED: StatusConfig(
            "Reembolsado", "purple", "El importe de este pedido ha sido reembolsado.", "arrow-counterclockwise"
        ),
    }
)


@dataclass(frozen=True)
class StatusHistoryEntry:
    """One recorded status change.

    Attributes:
        status: Status the order moved into.
        timestamp: ISO-8601 timestamp of the change.
        note: Optional free-text note (e.g. a cancellation reason).
    """

    status: OrderStatus
    timestamp: str
    note: Optional[str] = None


@dataclass(frozen=True)
class TimelineStep:
    status: OrderStatus
    label: str
    completed: bool
    current: bool
    timestamp: Optional[str] = None


class InvalidStatusTransition(ValueError):
    """Raised when a status change is not in the transition table."""

    def __init__(self, current: OrderStatus, to: OrderStatus):
        super().__init__("INVALID_STATUS_TRANSITION")
        self.current = current
        self.to = to


def is_valid_transition(current: OrderStatus, to: OrderStatus) -> bool:
    """True when ``to`` is directly reachable from ``current``."""
    return to in ORDER_STATUS_TRANSITIONS[current]


def is_terminal(status: OrderStatus) -> bool:
    return not ORDER_STATUS_TRANSITIONS[status]


def is_error_status(status: OrderStatus) -> bool:
    return status in ERROR_ORDER_STATUSES


def is_active_status(status: OrderStatus) -> bool:
    return status in ACTIVE_ORDER_STATUSES


def can_request_cancellation(status: OrderStatus) -> bool:
    """True while the order can still move to ``cancelled``."""
    return is_valid_transition(status, OrderStatus.CANCELLED)


def get_status_config(status: OrderStatus) -> StatusConfig:
    return STATUS_DISPLAY[status]


def should_show_as_complete(
    status: OrderStatus,
    current_status: OrderStatus,
    history: Optional[Iterable[StatusHistoryEntry]] = None,
) -> bool:
    """Decide whether ``status`` renders as reached in a progress view.

    Rules, first match wins:

    1. ``status`` appears in ``history``.
    2. ``status`` is an error status and is the current status.
    3. ``status`` and the current status are both ``delivered``.
    4. ``status`` comes strictly before ``current_status`` in
       ``DISPLAY_SEQUENCE``.

    Without history, a cancelled or refunded order cannot show which of
    the earlier statuses it went through: rule 4 never matches when the
    current status is outside the display sequence.
    """
    if history and any(entry.status == status for entry in history):
        return True
    if is_error_status(status) and status == current_status:
        return True
    if status == OrderStatus.DELIVERED and current_status == OrderStatus.DELIVERED:
        return True
    if status not in DISPLAY_SEQUENCE or current_status not in DISPLAY_SEQUENCE:
        return False
    return DISPLAY_SEQUENCE.index(status) < DISPLAY_SEQUENCE.index(current_status)


def apply_transition(
    current: OrderStatus,
    to: OrderStatus,
    history: Iterable[StatusHistoryEntry] = (),
    note: Optional[str] = None,
    at: Optional[datetime] = None,
) -> List[StatusHistoryEntry]:
    """Validate a status change and return the extended history.

    The given history is not modified; a new list with the entry appended
    is returned.

    Raises:
        InvalidStatusTransition: If ``to`` is not reachable from ``current``.
    """
    if not is_valid_transition(current, to):
        raise InvalidStatusTransition(current, to)
    when = at or datetime.now(timezone.utc)
    return [*history, StatusHistoryEntry(status=to, timestamp=when.isoformat(), note=note)]


def build_timeline(
    current_status: OrderStatus,
    history: Optional[Iterable[StatusHistoryEntry]] = None,
) -> List[TimelineStep]:
    """Derive the timeline shown on the order detail page."""
    entries = list(history or ())
    steps = []
    for status in DISPLAY_SEQUENCE:
        first = next((e for e in entries if e.status == status), None)
        steps.append(
            TimelineStep(
                status=status,
                label=STATUS_DISPLAY[status].label,
                completed=should_show_as_complete(status, current_status, entries),
                current=status == current_status,
                timestamp=first.timestamp if first else None,
            )
        )
    return steps
