"""
Receipt Extraction Service Abstract Base Class

Defines the interface for services that read a photo of a platform receipt
and return its order data. Results are best-effort: any field may be
missing and the item list may be empty.
"""

import json
import re
from abc import ABC, abstractmethod

from pydantic import ValidationError

from delivery_desk.core.exceptions import ExtractionError
from delivery_desk.schemas import ExtractedOrder

JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

RECEIPT_PROMPT = """Analyze this image of a delivery receipt/order and extract the data as JSON.

Extract:
- orderId: order number/code if present
- items: array of objects with { name: dish name, quantity: quantity, price: unit price if visible }
- total: order total if visible
- deliveryTime: requested delivery time if present (HH:MM)
- customerName: customer name if present
- customerAddress: address if present
- notes: any special notes

Reply ONLY with valid JSON, without markdown or any other text.
If a field is not present, omit it.

Example output:
{"orderId":"123","items":[{"name":"Pizza Margherita","quantity":2,"price":8.00}],"total":16.00}"""


def parse_extraction_text(text: str) -> ExtractedOrder:
    """
    Pull the first JSON object out of a model reply and validate it.

    Unreadable fields inside the object are dropped by ExtractedOrder, so
    a partial receipt still comes back.

    Raises:
        ExtractionError: If the reply holds no JSON object
    """
    match = JSON_BLOCK.search(text or "")
    if not match:
        raise ExtractionError("Could not extract any data from the receipt")
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Receipt data is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise ExtractionError("Receipt data is not a JSON object")
    try:
        return ExtractedOrder.model_validate(payload)
    except ValidationError as e:
        raise ExtractionError(f"Receipt data is malformed: {e.error_count()} invalid field(s)") from e


class BaseExtractionService(ABC):
    """Abstract base class for receipt extraction services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def extract(self, image: bytes, mime_type: str = "image/jpeg") -> ExtractedOrder:
        """
        Read order data off a receipt image.

        Raises:
            ExtractionError: If the service fails or returns nothing usable
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check service connectivity."""
        pass
