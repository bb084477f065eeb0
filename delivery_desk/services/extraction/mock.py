"""
Mock Receipt Extraction Service

Simulates receipt scanning for development. No image is analyzed; a
canned extraction is returned after a short simulated delay.

Behavior:
    - Simulates model latency
    - Randomly fails at the configured rate, like an unreadable photo
"""

import asyncio
import random
import logging
from typing import Optional

from delivery_desk.core.exceptions import ExtractionError
from delivery_desk.schemas import ExtractedItem, ExtractedOrder
from delivery_desk.services.extraction.base import BaseExtractionService

logger = logging.getLogger(__name__)


DEFAULT_EXTRACTION = ExtractedOrder(
    reference_id="JE48213",
    items=[
        ExtractedItem(name="Margherita", quantity=2, price=8.0),
        ExtractedItem(name="Coca-Cola", quantity=2, price=3.0),
        ExtractedItem(name="Patatine Fritte", quantity=1, price=4.0),
    ],
    total=26.0,
    customer_name="Giulia Rossi",
    customer_address="Via Roma 12",
)


class MockExtractionService(BaseExtractionService):
    """
    Mock implementation of the extraction service.

    Example:
        >>> service = MockExtractionService(failure_rate=0.0)
        >>> result = await service.extract(b"...")
        >>> len(result.items)
        3
    """

    def __init__(
        self,
        result: Optional[ExtractedOrder] = None,
        failure_rate: float = 0.05,
        min_latency: float = 0.5,
        max_latency: float = 1.5,
    ):
        self.result = result or DEFAULT_EXTRACTION
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        logger.info(f"MockExtractionService initialized (failure_rate={failure_rate:.0%})")

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _simulate_latency(self) -> None:
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def extract(self, image: bytes, mime_type: str = "image/jpeg") -> ExtractedOrder:
        await self._simulate_latency()

        if not image:
            raise ExtractionError("Empty image")

        if self._should_fail():
            logger.warning("Mock extraction failed (simulated)")
            raise ExtractionError("Could not extract any data from the receipt")

        logger.info(f"Mock extraction returned {len(self.result.items)} item(s) ({len(image)} bytes, {mime_type})")
        return self.result.model_copy(deep=True)

    async def health_check(self) -> bool:
        return True
