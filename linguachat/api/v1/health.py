"""Readiness endpoint: reports Postgres and Redis reachability."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from linguachat.api.deps import get_db
from linguachat.db.postgres import ping_postgres
from linguachat.db.redis import RedisClient, get_redis

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(
    db: AsyncSession = Depends(get_db),
    redis: RedisClient = Depends(get_redis),
) -> dict[str, str]:
    checks = {
        "postgres": "ok" if await ping_postgres(db) else "unavailable",
        "redis": "ok" if await redis.ping() else "unavailable",
    }
    status = "ok" if all(v == "ok" for v in checks.values()) else "degraded"
    return {"status": status, **checks}
