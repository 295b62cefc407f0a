"""Demo mode control endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from glucosim.database import get_db
from glucosim.logging_config import get_logger
from glucosim.schemas.demo import DemoStatusResponse, ErrorResponse, RegenerationResponse
from glucosim.services.demo_data import (
    DemoDataService,
    DemoModeDisabledError,
    RegenerationInProgressError,
    get_demo_service,
)
from glucosim.services.demo_storage import DEMO_DATA_SOURCE, SqlAlchemyDemoStore, StorageError

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/demo", tags=["demo"])


@router.get(
    "/status",
    response_model=DemoStatusResponse,
    responses={
        500: {"model": ErrorResponse, "description": "Storage unavailable"},
    },
)
async def get_demo_status(
    db: AsyncSession = Depends(get_db),
    service: DemoDataService = Depends(get_demo_service),
) -> DemoStatusResponse:
    """Service state plus how much generated data is stored."""
    try:
        counts = await SqlAlchemyDemoStore(db).count_by_data_source(DEMO_DATA_SOURCE)
    except StorageError as e:
        logger.error("Failed to count demo data", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to read demo data counts",
        ) from e

    current = service.status()
    return DemoStatusResponse(
        state=current.state,
        enabled=current.enabled,
        regenerating=current.regenerating,
        last_entry_at=current.last_entry_at,
        last_regeneration=(
            RegenerationResponse.model_validate(current.last_regeneration)
            if current.last_regeneration
            else None
        ),
        entries=counts["entries"],
        treatments=counts["treatments"],
    )


@router.post(
    "/regenerate",
    response_model=RegenerationResponse,
    responses={
        200: {"description": "Demo data regenerated"},
        400: {"model": ErrorResponse, "description": "Demo mode disabled"},
        409: {"model": ErrorResponse, "description": "Regeneration already running"},
        500: {"model": ErrorResponse, "description": "Storage failure"},
    },
)
async def regenerate_demo_data(
    db: AsyncSession = Depends(get_db),
    service: DemoDataService = Depends(get_demo_service),
) -> RegenerationResponse:
    """Clear all generated data and backfill the history again."""
    try:
        summary = await service.regenerate(SqlAlchemyDemoStore(db))
    except DemoModeDisabledError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Demo mode is disabled",
        ) from e
    except RegenerationInProgressError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A regeneration is already running",
        ) from e
    except StorageError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Regeneration failed: {e}",
        ) from e

    return RegenerationResponse.model_validate(summary)
