"""Gemini model for language detection and translation."""

import google.generativeai as genai
import structlog

from linguachat.services.llm.base import LLMError, LLMProvider, LLMResponse

logger = structlog.get_logger(__name__)


def _response_text(response) -> str:
    # .text raises when the reply was blocked or has no text part.
    try:
        return response.text or ""
    except (ValueError, AttributeError):
        pass
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return ""
    parts = getattr(candidates[0].content, "parts", None) or []
    return "".join(getattr(part, "text", "") or "" for part in parts)


class GeminiProvider(LLMProvider):
    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        timeout_seconds: float = 10.0,
    ) -> None:
        genai.configure(api_key=api_key)
        self._model_name = model
        self._timeout = timeout_seconds
        self._models: dict[str, genai.GenerativeModel] = {}
        logger.info("gemini_provider_initialized", model=model)

    def _model(self, system_prompt: str) -> genai.GenerativeModel:
        # Detection and translation each use one fixed system prompt.
        model = self._models.get(system_prompt)
        if model is None:
            model = genai.GenerativeModel(
                model_name=self._model_name,
                system_instruction=system_prompt or None,
            )
            self._models[system_prompt] = model
        return model

    async def generate(
        self,
        prompt: str,
        system_prompt: str = "",
        max_tokens: int = 512,
        temperature: float = 0.0,
    ) -> LLMResponse:
        try:
            response = await self._model(system_prompt).generate_content_async(
                prompt,
                generation_config=genai.GenerationConfig(
                    max_output_tokens=max_tokens,
                    temperature=temperature,
                ),
                request_options={"timeout": self._timeout},
            )
        except Exception as e:
            message = str(e)
            rate_limited = "429" in message or "quota" in message.lower()
            logger.error(
                "gemini_request_failed",
                model=self._model_name,
                error=message,
                rate_limited=rate_limited,
            )
            raise LLMError(self.name, message, rate_limited=rate_limited) from e

        text = _response_text(response).strip()
        if not text:
            logger.warning("gemini_empty_response", model=self._model_name)
            raise LLMError(self.name, "empty response")
        return LLMResponse(text=text, model=self._model_name)
