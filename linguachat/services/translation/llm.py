"""LLM-backed translation providers.

LLMTranslationProvider prompts a hosted model for detection and
translation. PassthroughTranslationProvider stands in when no model
credentials are configured: text comes back unchanged and every message is
treated as the default language.
"""

import structlog

from linguachat.core.exceptions import TranslationProviderError
from linguachat.core.languages import (
    DEFAULT_LANGUAGE,
    SUPPORTED_LANGUAGES,
    language_name,
    normalize_language,
)
from linguachat.services.llm.base import LLMError, LLMProvider
from linguachat.services.translation.base import TranslationProvider

logger = structlog.get_logger(__name__)

_LANGUAGE_LIST = ", ".join(f"{code}: {name}" for code, name in SUPPORTED_LANGUAGES.items())

SYSTEM_PROMPT = (
    "You are a translation engine inside a chat application. Reply with the "
    "requested output only: no quotes, notes or explanations."
)


def build_detect_prompt(text: str) -> str:
    return (
        "Detect the language of the following text and return only the language code "
        f"from this list: {_LANGUAGE_LIST}. Only return the 2-letter code, nothing else:"
        f"\n\n{text}"
    )


def build_translate_prompt(text: str, target: str, source: str | None = None) -> str:
    if source and source in SUPPORTED_LANGUAGES:
        head = (
            f"Translate the following text from {language_name(source)} "
            f"to {language_name(target)}."
        )
    else:
        head = f"Translate the following text to {language_name(target)}."
    return (
        f"{head} Only return the translated text, no explanations or additional content:"
        f"\n\n{text}"
    )


class LLMTranslationProvider(TranslationProvider):
    """Translation and detection through an LLMProvider."""

    def __init__(self, llm: LLMProvider) -> None:
        self._llm = llm

    async def detect(self, text: str) -> str:
        try:
            response = await self._llm.generate(
                build_detect_prompt(text),
                system_prompt=SYSTEM_PROMPT,
                max_tokens=8,
                temperature=0.0,
            )
        except LLMError as e:
            raise TranslationProviderError(f"Language detection failed: {e}") from e
        detected = normalize_language(response.text)
        logger.debug("language_detected", raw=response.text.strip()[:16], language=detected)
        return detected

    async def translate(
        self,
        text: str,
        target: str,
        source: str | None = None,
    ) -> str:
        if target not in SUPPORTED_LANGUAGES:
            raise TranslationProviderError(f"Unsupported target language: {target!r}")
        try:
            response = await self._llm.generate(
                build_translate_prompt(text, target, source),
                system_prompt=SYSTEM_PROMPT,
                max_tokens=max(256, len(text) * 4),
            )
        except LLMError as e:
            raise TranslationProviderError(f"Translation failed: {e}") from e
        translated = response.text.strip()
        if not translated:
            raise TranslationProviderError("Translation returned empty text")
        return translated


class PassthroughTranslationProvider(TranslationProvider):
    """Identity translation for deployments without model credentials."""

    async def detect(self, text: str) -> str:
        return DEFAULT_LANGUAGE

    async def translate(
        self,
        text: str,
        target: str,
        source: str | None = None,
    ) -> str:
        return text
