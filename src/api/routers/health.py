"""Health check endpoints."""
import logging
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.dependencies import get_redis_client, get_session_factory
from core.redis import RedisClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Liveness and dependency status."""

    status: Literal["healthy", "degraded"]
    database: Literal["healthy", "unhealthy"]
    cache: Literal["healthy", "unavailable"]


@router.get("/healthz", response_model=HealthResponse)
async def health_check(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    redis_client: RedisClient = Depends(get_redis_client),
) -> HealthResponse:
    """
    Check proxy, database and cache health.

    The cache is optional, so an unavailable cache does not degrade the status.
    """
    db_status: Literal["healthy", "unhealthy"] = "healthy"
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database health check failed")
        db_status = "unhealthy"

    cache_status = "healthy" if await redis_client.ping() else "unavailable"

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        database=db_status,
        cache=cache_status,
    )
