"""Stateless translate/detect endpoint."""

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from linguachat.api.deps import get_translation_adapter
from linguachat.core.exceptions import (
    InvalidActionError,
    TranslationProviderError,
    UnsupportedLanguageError,
)
from linguachat.core.languages import is_supported, normalize_language
from linguachat.schemas.translate import TranslateRequest, TranslateResponse
from linguachat.services.translation.adapter import TranslationAdapter

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["translate"])


@router.post(
    "/translate",
    response_model=TranslateResponse,
    response_model_exclude_none=True,
    response_model_by_alias=True,
)
async def translate(
    body: TranslateRequest,
    translator: TranslationAdapter = Depends(get_translation_adapter),
) -> TranslateResponse | JSONResponse:
    """Translate text or detect its language.

    A provider failure is reported in the body with HTTP 200 so callers can
    fall back to the original text.
    """
    if body.action not in ("translate", "detect"):
        raise InvalidActionError(f"Invalid action: {body.action!r}")
    if body.action == "translate":
        if not body.target_language or not is_supported(body.target_language):
            raise UnsupportedLanguageError(body.target_language or "")

    provider = translator.provider
    try:
        if body.action == "detect":
            detected = await provider.detect(body.text)
            return TranslateResponse(language=normalize_language(detected))
        translated = await provider.translate(
            body.text, body.target_language, body.source_language
        )
        return TranslateResponse(translated_text=translated)
    except TranslationProviderError as e:
        logger.warning("translate_endpoint_failed", action=body.action, error=str(e))
        return JSONResponse(
            status_code=200,
            content={
                "translatedText": None,
                "language": None,
                "error": "Translation failed",
            },
        )
