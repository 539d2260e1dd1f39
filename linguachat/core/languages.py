"""Supported language codes and normalisation helpers."""

from typing import Literal

LanguageCode = Literal[
    "en", "es", "fr", "de", "it", "pt", "ru", "ja", "ko", "zh",
    "ar", "hi", "bn", "te", "mr", "ta", "gu", "kn", "ml", "pa",
]

SUPPORTED_LANGUAGES: dict[str, str] = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "ja": "Japanese",
    "ko": "Korean",
    "zh": "Chinese (Simplified)",
    "ar": "Arabic",
    "hi": "Hindi",
    "bn": "Bengali",
    "te": "Telugu",
    "mr": "Marathi",
    "ta": "Tamil",
    "gu": "Gujarati",
    "kn": "Kannada",
    "ml": "Malayalam",
    "pa": "Punjabi",
}

DEFAULT_LANGUAGE = "en"


def is_supported(code: str | None) -> bool:
    return code is not None and code in SUPPORTED_LANGUAGES


def normalize_language(code: str | None, default: str = DEFAULT_LANGUAGE) -> str:
    """Lower-case and strip a model-produced code; unsupported values map to *default*."""
    if not code:
        return default
    cleaned = code.strip().strip(".'\"`").lower()
    return cleaned if cleaned in SUPPORTED_LANGUAGES else default


def language_name(code: str) -> str:
    return SUPPORTED_LANGUAGES[code]
