"""Cerebras-hosted model, used as the secondary translator.

Cerebras exposes an OpenAI-compatible chat API, so the openai SDK is the
client.
"""

import asyncio

import structlog
from openai import APIStatusError, AsyncOpenAI

from linguachat.services.llm.base import LLMError, LLMProvider, LLMResponse

logger = structlog.get_logger(__name__)

CEREBRAS_BASE_URL = "https://api.cerebras.ai/v1"


class CerebrasProvider(LLMProvider):
    name = "cerebras"

    def __init__(
        self,
        api_key: str,
        model: str = "llama3.1-8b",
        timeout_seconds: float = 10.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=CEREBRAS_BASE_URL)
        self._model = model
        self._timeout = timeout_seconds
        logger.info("cerebras_provider_initialized", model=model)

    async def generate(
        self,
        prompt: str,
        system_prompt: str = "",
        max_tokens: int = 512,
        temperature: float = 0.0,
    ) -> LLMResponse:
        chat = [{"role": "system", "content": system_prompt}] if system_prompt else []
        chat.append({"role": "user", "content": prompt})
        try:
            completion = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._model,
                    messages=chat,
                    max_tokens=max_tokens,
                    temperature=temperature,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("cerebras_request_timeout", model=self._model, timeout=self._timeout)
            raise LLMError(self.name, "timed out") from e
        except APIStatusError as e:
            logger.error(
                "cerebras_request_failed",
                model=self._model,
                status=e.status_code,
                error=str(e),
            )
            raise LLMError(self.name, str(e), rate_limited=e.status_code == 429) from e
        except Exception as e:
            logger.error("cerebras_request_failed", model=self._model, error=str(e))
            raise LLMError(self.name, str(e)) from e

        text = ""
        if completion.choices:
            text = (completion.choices[0].message.content or "").strip()
        if not text:
            raise LLMError(self.name, "empty response")
        return LLMResponse(text=text, model=self._model)
