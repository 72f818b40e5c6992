"""Health check routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from ..schemas.visit import HealthResponse

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    """Report whether the counter store is reachable."""
    connection = request.app.state.connection
    redis_ok = connection.is_connected()
    return HealthResponse(
        status="healthy" if redis_ok else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        services={"redis": "connected" if redis_ok else "disconnected"},
    )
