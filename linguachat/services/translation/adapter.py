"""Translation facade used by the chat pipeline.

detect() and translate() never raise: failures degrade to the default
language and to the untranslated text. try_translate() reports a failure
as None so callers can tell "translated" apart from "fell back", which the
translation cache relies on to avoid storing failures.
"""

import structlog

from linguachat.core.config import Settings
from linguachat.core.languages import DEFAULT_LANGUAGE, is_supported
from linguachat.services.llm.base import LLMProvider
from linguachat.services.translation.base import TranslationProvider
from linguachat.services.translation.http import HttpTranslationProvider
from linguachat.services.translation.llm import (
    LLMTranslationProvider,
    PassthroughTranslationProvider,
)

logger = structlog.get_logger(__name__)


class TranslationAdapter:
    """Wraps a TranslationProvider with graceful degradation."""

    def __init__(
        self,
        provider: TranslationProvider,
        default_language: str = DEFAULT_LANGUAGE,
    ) -> None:
        self._provider = provider
        self._default_language = default_language

    @property
    def provider(self) -> TranslationProvider:
        return self._provider

    async def detect(self, text: str) -> str:
        """Detect the language of *text*, falling back to the default language."""
        try:
            language = await self._provider.detect(text)
        except Exception as e:
            logger.warning("language_detection_failed", error=str(e), text_len=len(text))
            return self._default_language
        if not is_supported(language):
            return self._default_language
        return language

    async def try_translate(
        self,
        text: str,
        target: str,
        source: str | None = None,
    ) -> str | None:
        """Translate *text*, returning None when the provider failed."""
        try:
            return await self._provider.translate(text, target, source)
        except Exception as e:
            logger.warning(
                "translation_failed",
                error=str(e),
                target=target,
                source=source,
                text_len=len(text),
            )
            return None

    async def translate(
        self,
        text: str,
        target: str,
        source: str | None = None,
    ) -> str:
        """Translate *text*, returning it unchanged when the provider failed."""
        translated = await self.try_translate(text, target, source)
        return text if translated is None else translated


def build_translation_provider(
    settings: Settings,
    llm: LLMProvider | None,
) -> TranslationProvider:
    """Select the provider for this deployment.

    A configured remote endpoint wins; otherwise the LLM is used when
    credentials exist; otherwise text passes through untranslated.
    """
    if settings.translation_service_url:
        return HttpTranslationProvider(
            settings.translation_service_url,
            timeout_seconds=settings.translation_timeout_seconds,
        )
    if llm is not None and settings.has_translation_credentials:
        return LLMTranslationProvider(llm)
    logger.warning("translation_credentials_missing_using_passthrough")
    return PassthroughTranslationProvider()
