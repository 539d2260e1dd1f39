"""Ordered chain of LLM providers: the first one that answers wins."""

from collections.abc import Sequence

import structlog

from linguachat.services.llm.base import LLMError, LLMProvider, LLMResponse

logger = structlog.get_logger(__name__)


class FallbackLLMProvider(LLMProvider):
    name = "fallback"

    def __init__(self, providers: Sequence[LLMProvider]) -> None:
        if not providers:
            raise ValueError("FallbackLLMProvider needs at least one provider")
        self._providers = list(providers)
        logger.info(
            "fallback_provider_initialized",
            providers=[p.name for p in self._providers],
        )

    async def generate(
        self,
        prompt: str,
        system_prompt: str = "",
        max_tokens: int = 512,
        temperature: float = 0.0,
    ) -> LLMResponse:
        last_error: Exception | None = None
        for provider in self._providers:
            try:
                return await provider.generate(prompt, system_prompt, max_tokens, temperature)
            except Exception as e:
                last_error = e
                logger.warning(
                    "llm_provider_failed_trying_next",
                    provider=provider.name,
                    error=str(e),
                )
        raise LLMError(self.name, f"all providers failed, last error: {last_error}") from last_error
