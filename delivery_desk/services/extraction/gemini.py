"""
Gemini Receipt Extraction Service

Production implementation using the Google Generative Language API.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - GEMINI_API_KEY must be set in environment

The receipt image is sent inline (base64) together with a prompt asking
for a JSON object; the first JSON object in the reply text is validated
into an ExtractedOrder.
"""

import base64
import logging
from typing import Any, Optional

import httpx

from delivery_desk.core.config import get_settings
from delivery_desk.core.exceptions import ExtractionError
from delivery_desk.schemas import ExtractedOrder
from delivery_desk.services.extraction.base import (
    BaseExtractionService,
    RECEIPT_PROMPT,
    parse_extraction_text,
)

logger = logging.getLogger(__name__)


class GeminiExtractionService(BaseExtractionService):
    """
    Receipt extraction through Gemini ``generateContent``.

    Example:
        >>> service = GeminiExtractionService()
        >>> result = await service.extract(image_bytes, "image/png")
        >>> print(result.reference_id)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Raises:
            ValueError: If no API key is configured
        """
        settings = get_settings()

        self._api_key = api_key or settings.gemini_api_key
        if not self._api_key:
            raise ValueError(
                "GEMINI_API_KEY is required for receipt scanning. "
                "Set it in your .env file or environment variables."
            )

        self._model = model or settings.gemini_model
        self._base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self._timeout = timeout or settings.extraction_timeout_seconds
        self._transport = transport

        logger.info(f"GeminiExtractionService initialized (model={self._model})")

    @property
    def provider_name(self) -> str:
        return "gemini"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    @staticmethod
    def _build_request(image: bytes, mime_type: str) -> dict[str, Any]:
        return {
            "contents": [{
                "parts": [
                    {"text": RECEIPT_PROMPT},
                    {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(image).decode("ascii")}},
                ]
            }]
        }

    @staticmethod
    def _reply_text(data: Any) -> str:
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"] or ""
        except (KeyError, IndexError, TypeError):
            return ""

    async def extract(self, image: bytes, mime_type: str = "image/jpeg") -> ExtractedOrder:
        if not image:
            raise ExtractionError("Empty image")

        logger.debug(f"Gemini: scanning receipt ({len(image)} bytes, {mime_type})")

        try:
            async with self._client() as client:
                response = await client.post(
                    f"/models/{self._model}:generateContent",
                    params={"key": self._api_key},
                    json=self._build_request(image, mime_type),
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Gemini returned HTTP {e.response.status_code}")
            raise ExtractionError(f"Receipt scan failed (HTTP {e.response.status_code})") from e
        except httpx.HTTPError as e:
            logger.error(f"Gemini request failed: {e}")
            raise ExtractionError(f"Receipt scan failed: {e}") from e
        except ValueError as e:
            raise ExtractionError("Receipt scan returned a non-JSON response") from e

        extraction = parse_extraction_text(self._reply_text(data))
        logger.info(f"Gemini extracted {len(extraction.items)} item(s)")
        return extraction

    async def health_check(self) -> bool:
        try:
            async with self._client() as client:
                response = await client.get(f"/models/{self._model}", params={"key": self._api_key})
                return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(f"Gemini health check failed: {e}")
            return False
