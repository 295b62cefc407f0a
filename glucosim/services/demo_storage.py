"""Storage for generated demo data.

The generator hands over readings and treatments in batches; this module
writes them as Entry/Treatment rows tagged with a data source so a later
regeneration can clear exactly what it wrote before.
"""

from collections.abc import Sequence
from typing import Any, Protocol

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from glucosim.core.simulation.models import GlucoseReading, TreatmentEvent
from glucosim.logging_config import get_logger
from glucosim.models.entry import Entry
from glucosim.models.treatment import Treatment

logger = get_logger(__name__)

DEMO_DATA_SOURCE = "demo-service"


class StorageError(Exception):
    """Raised when generated data cannot be written or cleared."""


class DemoDataStore(Protocol):
    """What the demo service needs from persistence."""

    async def create_entries(self, readings: Sequence[GlucoseReading]) -> int: ...

    async def create_treatments(self, events: Sequence[TreatmentEvent]) -> int: ...

    async def delete_entries_by_data_source(self, data_source: str) -> int: ...

    async def delete_treatments_by_data_source(self, data_source: str) -> int: ...

    async def count_by_data_source(self, data_source: str) -> dict[str, int]: ...

    async def has_demo_data(self, data_source: str = DEMO_DATA_SOURCE) -> bool: ...


def reading_to_row(reading: GlucoseReading, data_source: str) -> dict[str, Any]:
    """Column values for one generated reading."""
    value = int(reading.value)
    return {
        "type": reading.type,
        "device": reading.device,
        "mills": reading.mills,
        "date": reading.timestamp,
        "date_string": reading.timestamp.isoformat(),
        "sgv": value,
        "mgdl": value,
        "direction": reading.direction,
        "delta": reading.delta,
        "filtered": reading.filtered,
        "unfiltered": reading.unfiltered,
        "rssi": reading.rssi,
        "noise": reading.noise,
        "data_source": data_source,
    }


def treatment_to_row(event: TreatmentEvent, data_source: str) -> dict[str, Any]:
    """Column values for one generated treatment."""
    return {
        "event_type": str(event.event_type),
        "mills": event.mills,
        "event_created_at": event.timestamp.isoformat(),
        "insulin": event.insulin,
        "carbs": event.carbs,
        "rate": event.rate,
        "duration": event.duration_minutes,
        "food_type": event.food_type,
        "entered_by": event.entered_by,
        "notes": event.notes,
        "data_source": data_source,
    }


class SqlAlchemyDemoStore:
    """DemoDataStore backed by an AsyncSession.

    Every write commits on success and rolls back on failure, raising
    StorageError so the caller can decide whether to retry or abort.
    """

    def __init__(self, db: AsyncSession, data_source: str = DEMO_DATA_SOURCE):
        self.db = db
        self.data_source = data_source

    async def _insert(self, model: type[Any], rows: list[dict[str, Any]], kind: str) -> int:
        if not rows:
            return 0
        try:
            await self.db.execute(insert(model), rows)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to store demo data", kind=kind, count=len(rows), error=str(e))
            raise StorageError(f"Failed to store {len(rows)} demo {kind}") from e
        return len(rows)

    async def create_entries(self, readings: Sequence[GlucoseReading]) -> int:
        rows = [reading_to_row(r, self.data_source) for r in readings]
        return await self._insert(Entry, rows, "entries")

    async def create_treatments(self, events: Sequence[TreatmentEvent]) -> int:
        rows = [treatment_to_row(e, self.data_source) for e in events]
        return await self._insert(Treatment, rows, "treatments")

    async def _delete(self, model: type[Any], data_source: str, kind: str) -> int:
        try:
            result = await self.db.execute(delete(model).where(model.data_source == data_source))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Failed to clear demo data", kind=kind, data_source=data_source, error=str(e)
            )
            raise StorageError(f"Failed to clear {kind} for {data_source}") from e
        deleted = result.rowcount
        logger.info("Cleared demo data", kind=kind, data_source=data_source, deleted=deleted)
        return deleted

    async def delete_entries_by_data_source(self, data_source: str) -> int:
        return await self._delete(Entry, data_source, "entries")

    async def delete_treatments_by_data_source(self, data_source: str) -> int:
        return await self._delete(Treatment, data_source, "treatments")

    async def count_by_data_source(self, data_source: str) -> dict[str, int]:
        """Number of stored entries and treatments written by ``data_source``."""
        try:
            entries = await self.db.scalar(
                select(func.count()).select_from(Entry).where(Entry.data_source == data_source)
            )
            treatments = await self.db.scalar(
                select(func.count())
                .select_from(Treatment)
                .where(Treatment.data_source == data_source)
            )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to count data for {data_source}") from e
        return {"entries": entries or 0, "treatments": treatments or 0}

    async def has_demo_data(self, data_source: str = DEMO_DATA_SOURCE) -> bool:
        try:
            found = await self.db.scalar(
                select(Entry.id).where(Entry.data_source == data_source).limit(1)
            )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to check data for {data_source}") from e
        return found is not None
