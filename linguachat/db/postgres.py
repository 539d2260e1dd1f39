"""PostgreSQL engine, session factory and request-scoped sessions.

Chat services commit their own units of work (a send, a create, a delete).
The request dependency commits whatever is still pending afterwards, which
covers the simple profile and contact writes, and rolls back on error.
"""

from collections.abc import AsyncGenerator

import structlog
from sqlalchemy import MetaData, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from linguachat.core.config import settings
from linguachat.core.exceptions import DatabaseConnectionError, LinguaChatError

logger = structlog.get_logger(__name__)

NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


engine: AsyncEngine = create_async_engine(
    settings.postgres_url,
    pool_size=settings.postgres_pool_size,
    max_overflow=settings.postgres_max_overflow,
    pool_pre_ping=True,
)

# Rows outlive the commit: services build responses after committing.
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session. Driver failures surface as DatabaseConnectionError (503)."""
    async with async_session_factory() as session:
        try:
            yield session
            if session.in_transaction():
                await session.commit()
        except LinguaChatError:
            await session.rollback()
            raise
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("postgres_session_error", error=str(e))
            raise DatabaseConnectionError(f"Database operation failed: {e}") from e
        except Exception:
            await session.rollback()
            raise


async def ping_postgres(session: AsyncSession) -> bool:
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("postgres_ping_failed", error=str(e))
        return False
    return True


async def close_postgres() -> None:
    logger.info("postgres_shutdown")
    await engine.dispose()
