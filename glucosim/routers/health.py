"""Health check endpoints for container orchestration."""

from typing import Any

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse

from glucosim.database import check_database_connection
from glucosim.services.demo_data import DemoDataService, ServiceState, get_demo_service

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=None)
async def health_check(service: DemoDataService = Depends(get_demo_service)) -> Response:
    """
    Health check endpoint with database and demo service status.

    Returns 200 with status "healthy" when the database is reachable and
    the demo service (if enabled) is not unhealthy; 503 with "degraded"
    otherwise.
    """
    db_connected = await check_database_connection()
    demo_ok = not service.config.enabled or service.state != ServiceState.UNHEALTHY

    content = {
        "status": "healthy" if db_connected and demo_ok else "degraded",
        "database": "connected" if db_connected else "disconnected",
        "demo": str(service.state) if service.config.enabled else "disabled",
    }
    return JSONResponse(
        status_code=(
            status.HTTP_200_OK
            if db_connected and demo_ok
            else status.HTTP_503_SERVICE_UNAVAILABLE
        ),
        content=content,
    )


@router.get("/health/live")
async def liveness_probe() -> dict[str, Any]:
    """
    Liveness probe.

    Succeeds while the process is running; does not check dependencies.
    """
    return {"status": "alive"}


@router.get("/health/ready", response_model=None)
async def readiness_probe() -> Response:
    """
    Readiness probe.

    Succeeds once the database is reachable and requests can be served.
    """
    db_connected = await check_database_connection()

    if db_connected:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"status": "ready", "database": "connected"},
        )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "not_ready", "database": "disconnected"},
    )
