"""Language detection and translation client.

Talks to a LibreTranslate-compatible HTTP API (``/detect``, ``/translate``)
through httpx, and post-processes translated survey text into the
vocabulary the catalogs use.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx

from garden.config import settings

logger = logging.getLogger(__name__)

# Translated words replaced by the term the catalogs use
WORD_MAPPINGS: dict[str, str] = {
    "wide": "Ample",
}


class TranslationError(Exception):
    """Raised when the translation service cannot be reached or answers badly."""
    pass


def apply_word_mappings(text: str) -> str:
    """Swap a whole translated string for its catalog term, if mapped."""
    return WORD_MAPPINGS.get(text.strip().lower(), text)


def to_title_case(text: str) -> str:
    """``"home garden"`` -> ``"Home Garden"``."""
    return " ".join(word[:1].upper() + word[1:] for word in text.lower().split())


class TranslationClient:
    """Async client for language detection and translation."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.translation.base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.translation.api_key
        self.timeout = timeout or settings.translation.timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    def _payload(self, **fields: Any) -> dict[str, Any]:
        if self.api_key:
            fields["api_key"] = self.api_key
        return fields

    async def detect_language(self, text: str) -> str | None:
        """ISO code of the most likely language of ``text``, or None.

        Raises:
            TranslationError: If the service call fails
        """
        if not text or not text.strip():
            return None
        try:
            async with self._client() as client:
                response = await client.post("/detect", json=self._payload(q=text))
                response.raise_for_status()
                detections = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TranslationError(f"Language detection failed: {e}") from e

        if not detections:
            return None
        best = max(detections, key=lambda d: d.get("confidence", 0))
        return best.get("language")

    async def translate_text(self, text: str, target_language: str) -> str:
        """Translate ``text``; on failure the original text is kept."""
        try:
            async with self._client() as client:
                response = await client.post(
                    "/translate",
                    json=self._payload(q=text, source="auto", target=target_language, format="text"),
                )
                response.raise_for_status()
                return response.json()["translatedText"]
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.warning(f"Translation failed for {text!r}: {e}")
            return text

    async def translate_survey_text(self, text: str, target_language: str) -> str:
        """Translate and normalize one survey value."""
        if not text or not text.strip():
            return text
        translated = await self.translate_text(text, target_language)
        return to_title_case(apply_word_mappings(translated))
