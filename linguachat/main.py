"""FastAPI application entrypoint.

All routes prefixed /v1. Auto-generated OpenAPI docs at /docs.

The translation stack (Gemini primary, optional Cerebras fallback, or a
remote translation endpoint), the Redis change feed and the translation
cache are created once during the lifespan and stored on app.state for
injection via Depends().
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from linguachat.api.v1.conversations import router as conversations_router
from linguachat.api.v1.health import router as health_router
from linguachat.api.v1.messages import router as messages_router
from linguachat.api.v1.profiles import router as profiles_router
from linguachat.api.v1.realtime import router as realtime_router
from linguachat.api.v1.translate import router as translate_router
from linguachat.core.config import Settings, settings
from linguachat.core.exceptions import LinguaChatError
from linguachat.db.postgres import close_postgres
from linguachat.db.redis import close_redis, get_redis
from linguachat.services.chat.translation_cache import TranslationCacheManager
from linguachat.services.llm.base import LLMProvider
from linguachat.services.llm.cerebras import CerebrasProvider
from linguachat.services.llm.fallback import FallbackLLMProvider
from linguachat.services.llm.gemini import GeminiProvider
from linguachat.services.realtime.feed import RedisChangeFeed
from linguachat.services.translation.adapter import (
    TranslationAdapter,
    build_translation_provider,
)


def _configure_logging() -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


_configure_logging()

logger = structlog.get_logger(__name__)


def build_llm_provider(config: Settings) -> LLMProvider | None:
    """Gemini first, Cerebras second; None when neither key is configured."""
    providers: list[LLMProvider] = []
    if config.gemini_api_key:
        providers.append(
            GeminiProvider(
                api_key=config.gemini_api_key,
                model=config.gemini_model,
                timeout_seconds=config.translation_timeout_seconds,
            )
        )
    if config.cerebras_api_key:
        providers.append(
            CerebrasProvider(
                api_key=config.cerebras_api_key,
                model=config.cerebras_model,
                timeout_seconds=config.translation_timeout_seconds,
            )
        )

    if len(providers) > 1:
        return FallbackLLMProvider(providers)
    return providers[0] if providers else None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle."""
    # --- Startup ---
    logger.info("app_startup", env=settings.app_env)

    llm = build_llm_provider(settings)
    translator = TranslationAdapter(
        build_translation_provider(settings, llm),
        default_language=settings.default_language,
    )
    app.state.translation_adapter = translator
    app.state.translation_cache = TranslationCacheManager(translator)
    app.state.change_feed = RedisChangeFeed(await get_redis())

    logger.info(
        "app_providers_ready",
        translation_provider=type(translator.provider).__name__,
    )
    yield

    # --- Shutdown ---
    logger.info("app_shutdown")

    await app.state.translation_cache.drain()
    await close_redis()
    await close_postgres()


app = FastAPI(
    title="LinguaChat API",
    description="Two-party real-time chat with automatic message translation.",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS: permissive for development only
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if not settings.is_production else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LinguaChatError)
async def linguachat_error_handler(request: Request, exc: LinguaChatError) -> JSONResponse:
    """Structured error response for all LinguaChat exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


# Mount all v1 routers
app.include_router(health_router, prefix="/v1")
app.include_router(translate_router, prefix="/v1")
app.include_router(profiles_router, prefix="/v1")
app.include_router(conversations_router, prefix="/v1")
app.include_router(messages_router, prefix="/v1")
app.include_router(realtime_router, prefix="/v1")
