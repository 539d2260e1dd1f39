"""Translation endpoint schemas (camelCase on the wire)."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class TranslateRequest(BaseModel):
    """POST /v1/translate request body."""

    model_config = ConfigDict(populate_by_name=True)

    text: str = ""
    target_language: str | None = Field(default=None, alias="targetLanguage")
    source_language: str | None = Field(default=None, alias="sourceLanguage")
    action: Literal["translate", "detect"] | str


class TranslateResponse(BaseModel):
    """Either translatedText or language is set; error marks a degraded reply."""

    model_config = ConfigDict(populate_by_name=True)

    translated_text: str | None = Field(default=None, alias="translatedText")
    language: str | None = None
    error: str | None = None
