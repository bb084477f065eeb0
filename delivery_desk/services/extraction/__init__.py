"""
Receipt Extraction Service Factory

Returns the mock or Gemini extraction service based on ENV_MODE.
"""

import logging
from functools import lru_cache

from delivery_desk.core.config import get_settings
from delivery_desk.services.extraction.base import (
    BaseExtractionService,
    parse_extraction_text,
)
from delivery_desk.services.extraction.mock import MockExtractionService
from delivery_desk.services.extraction.gemini import GeminiExtractionService

logger = logging.getLogger(__name__)


@lru_cache()
def get_extraction_service() -> BaseExtractionService:
    """Get the configured extraction service."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Extraction Service: Using MockExtractionService (development mode)")
        return MockExtractionService(failure_rate=0.05)
    else:
        logger.info(f"Extraction Service: Using GeminiExtractionService ({settings.env_mode.value} mode)")
        return GeminiExtractionService()


def reset_extraction_service() -> None:
    """Clear the cached service instance."""
    get_extraction_service.cache_clear()


__all__ = [
    "get_extraction_service",
    "reset_extraction_service",
    "parse_extraction_text",
    "BaseExtractionService",
    "MockExtractionService",
    "GeminiExtractionService",
]
