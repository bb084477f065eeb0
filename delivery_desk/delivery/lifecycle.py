"""
Delivery order status lifecycle.

    pending -> in_preparation -> ready -> delivered

Strictly linear. ``delivered`` is terminal and drops the order from every
active view.
"""

from typing import Optional

from delivery_desk.core.exceptions import InvalidTransitionError
from delivery_desk.schemas import OrderStatus

STATUS_FLOW: tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.IN_PREPARATION,
    OrderStatus.READY,
    OrderStatus.DELIVERED,
)

# Button shown on a card to move the order to its next status
ACTION_LABELS: dict[OrderStatus, str] = {
    OrderStatus.PENDING: "START",
    OrderStatus.IN_PREPARATION: "READY",
    OrderStatus.READY: "HAND OVER",
}


def next_status(status: OrderStatus) -> Optional[OrderStatus]:
    index = STATUS_FLOW.index(status)
    if index + 1 < len(STATUS_FLOW):
        return STATUS_FLOW[index + 1]
    return None


def is_terminal(status: OrderStatus) -> bool:
    return next_status(status) is None


def ensure_transition(current: OrderStatus, requested: OrderStatus) -> None:
    """
    Raises:
        InvalidTransitionError: Unless ``requested`` directly follows ``current``
    """
    if next_status(current) != requested:
        raise InvalidTransitionError(current.value, requested.value)
