"""Health check endpoints.

- /health: process liveness
- /healthz: DB and Redis connectivity with component details
"""

from typing import Any

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import text

from backend.chatbot.config import Settings, get_settings
from backend.chatbot.db.engine import get_async_engine

router = APIRouter()


async def check_db(settings: Settings) -> tuple[bool, str]:
    """Check database connectivity.

    Returns:
        (is_ok, status_message)
    """
    if not settings.database_url:
        return (False, "not_configured")

    try:
        async with get_async_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


async def check_redis(settings: Settings) -> tuple[bool, str]:
    """Check Redis connectivity.

    Returns:
        (is_ok, status_message)
    """
    if not settings.redis_url:
        return (True, "not_configured")

    client = Redis.from_url(settings.redis_url, decode_responses=True)
    try:
        await client.ping()
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")
    finally:
        await client.aclose()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe; 200 whenever the process is serving."""
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz() -> dict[str, Any] | Response:
    """Readiness probe.

    Returns:
        200 with component status if DB and Redis are usable
        503 if either fails
    """
    settings = get_settings()

    db_ok, db_status = await check_db(settings)
    redis_ok, redis_status = await check_redis(settings)

    response_body = {
        "status": "ok" if db_ok and redis_ok else "degraded",
        "components": {"db": db_status, "redis": redis_status},
    }

    if not (db_ok and redis_ok):
        return JSONResponse(content=response_body, status_code=503)

    return response_body
