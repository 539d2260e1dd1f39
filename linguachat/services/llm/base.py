"""Hosted-model interface behind the LLM translation provider.

Only services/translation/llm.py talks to an LLMProvider; chat code goes
through the TranslationAdapter. Concrete providers are built once in the
lifespan (see main.build_llm_provider).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class LLMError(RuntimeError):
    """A model call failed or returned nothing usable."""

    def __init__(self, provider: str, message: str, rate_limited: bool = False) -> None:
        self.provider = provider
        self.rate_limited = rate_limited
        super().__init__(f"{provider}: {message}")


@dataclass(frozen=True)
class LLMResponse:
    text: str
    model: str = ""


class LLMProvider(ABC):
    name = "llm"

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: str = "",
        max_tokens: int = 512,
        temperature: float = 0.0,
    ) -> LLMResponse:
        """Return the model's completion of *prompt*.

        Translation wants deterministic output, hence temperature 0 by
        default. Raises LLMError on timeout, API error or empty output.
        """
        ...
