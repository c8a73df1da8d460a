"""Health check endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from recipebox.config import settings
from recipebox.core.redis_client import check_redis_connection
from recipebox.core.storage import check_storage_connection
from recipebox.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Health of the service and of each backing store."""

    database: str
    redis: str
    storage: str


def _state(healthy: bool) -> str:
    return "healthy" if healthy else "unhealthy"


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """Liveness probe. Does not touch any backing store."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Detailed health check",
)
async def detailed_health_check() -> DetailedHealthResponse:
    """
    Health of the identity database, the token cache and the avatar bucket.

    The identity database is required; redis and storage outages only
    degrade the service.

    Returns:
        Overall status plus one entry per backing store
    """
    db_healthy = await check_database_connection()
    redis_healthy = await check_redis_connection()
    storage_healthy = await check_storage_connection()

    if not db_healthy:
        overall = "unhealthy"
    elif redis_healthy and storage_healthy:
        overall = "healthy"
    else:
        overall = "degraded"

    return DetailedHealthResponse(
        status=overall,
        version=settings.app_version,
        environment=settings.environment,
        database=_state(db_healthy),
        redis=_state(redis_healthy),
        storage=_state(storage_healthy),
    )


@router.get("/ping", status_code=status.HTTP_200_OK, summary="Simple ping")
async def ping() -> dict[str, str]:
    return {"message": "pong"}
