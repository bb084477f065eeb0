"""
Core module initialization.
Exports configuration, logging utilities and the error taxonomy.
"""

from delivery_desk.core.config import get_settings, setup_logging, Settings, EnvironmentMode
from delivery_desk.core.exceptions import (
    DeliveryError,
    EmptyCartError,
    PersistenceError,
    OrderNotFoundError,
    ExtractionError,
    InvalidTransitionError,
    ConfirmationRequiredError,
)

__all__ = [
    "get_settings",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "DeliveryError",
    "EmptyCartError",
    "PersistenceError",
    "OrderNotFoundError",
    "ExtractionError",
    "InvalidTransitionError",
    "ConfirmationRequiredError",
]
