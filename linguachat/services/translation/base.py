"""Abstract translation provider interface.

Providers raise TranslationProviderError on any failure. Fallback to the
original text or the default language is the job of TranslationAdapter,
never of a provider.
"""

from abc import ABC, abstractmethod


class TranslationProvider(ABC):
    """Detects languages and translates text."""

    @abstractmethod
    async def detect(self, text: str) -> str:
        """Return a supported language code for *text*.

        Raises:
            TranslationProviderError: If detection could not be performed.
        """
        ...

    @abstractmethod
    async def translate(
        self,
        text: str,
        target: str,
        source: str | None = None,
    ) -> str:
        """Translate *text* into *target*, optionally hinting the *source*.

        Raises:
            TranslationProviderError: If translation could not be performed.
        """
        ...
