"""Stored CGM entries, filtered with MongoDB-style ``find`` expressions."""

from collections.abc import Sequence

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from glucosim.config import settings
from glucosim.core.query.sql import UnsupportedQueryError
from glucosim.database import get_db
from glucosim.logging_config import get_logger
from glucosim.models.entry import Entry
from glucosim.schemas.demo import ErrorResponse
from glucosim.schemas.entry import EntryResponse
from glucosim.services.stored_data import find_entries

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/entries", tags=["entries"])


def unsupported_query_detail(error: UnsupportedQueryError) -> str:
    """Human-readable 400 detail naming what the query cannot use."""
    parts = [str(error)]
    if error.operators:
        parts.append(f"operators: {', '.join(error.operators)}")
    if error.fields:
        parts.append(f"fields: {', '.join(error.fields)}")
    return "; ".join(parts)


@router.get(
    "",
    response_model=list[EntryResponse],
    responses={
        200: {"description": "Matching entries, newest first"},
        400: {"model": ErrorResponse, "description": "Unsupported query"},
    },
)
async def list_entries(
    find: str | None = Query(None, description="JSON find expression"),
    count: int = Query(
        settings.default_query_count,
        ge=1,
        le=settings.max_query_count,
        description="Maximum number of entries to return",
    ),
    db: AsyncSession = Depends(get_db),
) -> Sequence[Entry]:
    """List entries matching ``find``.

    Supports equality, ``$gt``/``$gte``/``$lt``/``$lte``, ``$in`` and a
    root ``$and``/``$or``; other operators are rejected with 400.
    """
    try:
        rows = await find_entries(db, find, count)
    except UnsupportedQueryError as e:
        logger.info(
            "Rejected entries query",
            operators=e.operators,
            fields=e.fields,
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=unsupported_query_detail(e),
        ) from e

    return rows
