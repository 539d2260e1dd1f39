"""Remote translation provider speaking the /translate JSON protocol.

Request:  {"text", "targetLanguage", "sourceLanguage"?, "action"}
Response: {"translatedText"} | {"language"}; a degraded reply carries an
"error" field with HTTP 200, which is treated as a failure here.
"""

from typing import Any

import httpx
import structlog

from linguachat.core.exceptions import TranslationProviderError
from linguachat.core.languages import normalize_language
from linguachat.services.translation.base import TranslationProvider

logger = structlog.get_logger(__name__)


class HttpTranslationProvider(TranslationProvider):
    """httpx client for a remote translation endpoint."""

    def __init__(
        self,
        endpoint_url: str,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = endpoint_url
        self._timeout = timeout_seconds
        self._client = client

    async def _post(self, body: dict[str, Any]) -> dict[str, Any]:
        try:
            if self._client is not None:
                response = await self._client.post(self._url, json=body, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._url, json=body)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("translation_http_failed", url=self._url, error=str(e))
            raise TranslationProviderError(f"Translation endpoint failed: {e}") from e
        if not isinstance(data, dict):
            raise TranslationProviderError("Translation endpoint returned a non-object body")
        if data.get("error"):
            raise TranslationProviderError(f"Translation endpoint error: {data['error']}")
        return data

    async def detect(self, text: str) -> str:
        data = await self._post({"text": text, "action": "detect"})
        language = data.get("language")
        if not language:
            raise TranslationProviderError("Translation endpoint returned no language")
        return normalize_language(language)

    async def translate(
        self,
        text: str,
        target: str,
        source: str | None = None,
    ) -> str:
        body: dict[str, Any] = {
            "text": text,
            "targetLanguage": target,
            "action": "translate",
        }
        if source:
            body["sourceLanguage"] = source
        data = await self._post(body)
        translated = data.get("translatedText")
        if not translated:
            raise TranslationProviderError("Translation endpoint returned no text")
        return translated
