"""Stored treatments, filtered with MongoDB-style ``find`` expressions."""

from collections.abc import Sequence

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from glucosim.config import settings
from glucosim.core.query.sql import UnsupportedQueryError
from glucosim.database import get_db
from glucosim.logging_config import get_logger
from glucosim.models.treatment import Treatment
from glucosim.routers.entries import unsupported_query_detail
from glucosim.schemas.demo import ErrorResponse
from glucosim.schemas.treatment import TreatmentResponse
from glucosim.services.stored_data import find_treatments

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/treatments", tags=["treatments"])


@router.get(
    "",
    response_model=list[TreatmentResponse],
    responses={
        200: {"description": "Matching treatments, newest first"},
        400: {"model": ErrorResponse, "description": "Unsupported query"},
    },
)
async def list_treatments(
    find: str | None = Query(None, description="JSON find expression"),
    count: int = Query(
        settings.default_query_count,
        ge=1,
        le=settings.max_query_count,
        description="Maximum number of treatments to return",
    ),
    db: AsyncSession = Depends(get_db),
) -> Sequence[Treatment]:
    """List treatments matching ``find``."""
    try:
        rows = await find_treatments(db, find, count)
    except UnsupportedQueryError as e:
        logger.info("Rejected treatments query", operators=e.operators, fields=e.fields)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=unsupported_query_detail(e),
        ) from e

    return rows
