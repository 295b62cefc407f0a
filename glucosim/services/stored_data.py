"""Reads of stored entries and treatments through ``find`` queries."""

from collections.abc import Mapping, Sequence
from typing import Any, Final

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from glucosim.core.query import parse_query
from glucosim.core.query.sql import build_filters
from glucosim.logging_config import get_logger
from glucosim.models.entry import Entry
from glucosim.models.treatment import Treatment

logger = get_logger(__name__)

# Nightscout field names that differ from the ORM attribute names
ENTRY_FIELD_MAP: Final[Mapping[str, str]] = {
    "dateString": "date_string",
    "sysTime": "date_string",
    "date": "mills",
}
TREATMENT_FIELD_MAP: Final[Mapping[str, str]] = {
    "eventType": "event_type",
    "created_at": "event_created_at",
    "enteredBy": "entered_by",
    "foodType": "food_type",
    "date": "mills",
}


async def find_rows(
    db: AsyncSession,
    model: type[Any],
    find: str | None,
    count: int,
    field_map: Mapping[str, str] | None = None,
) -> Sequence[Any]:
    """Newest-first rows of ``model`` matching a JSON find expression.

    Raises:
        UnsupportedQueryError: If the query uses operators or fields that
            cannot be executed
    """
    parsed = parse_query(find)
    statement = select(model)
    if not parsed.is_empty:
        clauses = build_filters(parsed, model, field_map=field_map, strict=True)
        if clauses:
            statement = statement.where(*clauses)
    statement = statement.order_by(model.mills.desc()).limit(count)

    result = await db.execute(statement)
    rows = result.scalars().all()
    logger.debug(
        "Executed find query",
        table=model.__tablename__,
        conditions=not parsed.is_empty,
        returned=len(rows),
    )
    return rows


async def find_entries(db: AsyncSession, find: str | None, count: int) -> Sequence[Entry]:
    return await find_rows(db, Entry, find, count, ENTRY_FIELD_MAP)


async def find_treatments(
    db: AsyncSession, find: str | None, count: int
) -> Sequence[Treatment]:
    return await find_rows(db, Treatment, find, count, TREATMENT_FIELD_MAP)
