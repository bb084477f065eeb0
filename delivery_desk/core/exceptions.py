"""
Delivery Desk Error Taxonomy

Every failure the delivery manager can report derives from DeliveryError
and carries a machine-readable code, so command results and HTTP responses
can describe the failure without parsing messages.
"""

from typing import Optional


class DeliveryError(Exception):
    """Base class for all delivery desk errors."""

    code = "delivery_error"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class EmptyCartError(DeliveryError):
    """Order creation was requested without any line item."""

    code = "empty_cart"

    def __init__(self, message: str = "Add at least one dish to the order"):
        super().__init__(message)


class PersistenceError(DeliveryError):
    """The order store rejected a read or write."""

    code = "persistence_error"


class OrderNotFoundError(PersistenceError):
    """The order store has no order with the given id."""

    code = "order_not_found"

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class ExtractionError(DeliveryError):
    """The receipt extraction service returned nothing usable."""

    code = "extraction_error"


class InvalidTransitionError(DeliveryError):
    """A status change skipped or reversed the delivery lifecycle."""

    code = "invalid_transition"

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move order from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


class ConfirmationRequiredError(DeliveryError):
    """A destructive command was issued without explicit confirmation."""

    code = "confirmation_required"

    def __init__(self, order_id: str):
        super().__init__(f"Deleting order {order_id} requires confirmation")
        self.order_id = order_id
