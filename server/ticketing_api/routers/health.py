"""Health check router."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..schemas.health import HealthResponse, HealthStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/health", tags=["health"])


@router.post("/ping", response_model=HealthResponse)
async def health_ping(request: Request) -> JSONResponse:
    """
    Health check endpoint.

    Returns current service status, live hold and connection counts, and
    background worker state.
    """
    state = request.app.state
    response_data = HealthResponse(
        status=HealthStatus.HEALTHY,
        timestamp=datetime.now(timezone.utc),
        version="1.0.0",
        active_holds=await state.hold_table.active_count(),
        realtime_connections=state.notifier.connection_count,
        workers=state.worker_manager.get_worker_status(),
    )

    logger.debug(
        "Health check requested",
        extra={
            "status": response_data.status,
            "active_holds": response_data.active_holds,
            "realtime_connections": response_data.realtime_connections,
        }
    )

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )
