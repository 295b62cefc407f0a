"""Tests for persisting generated demo data."""

import uuid
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from glucosim.core.simulation.enums import TreatmentEventType, TrendDirection
from glucosim.core.simulation.models import GlucoseReading, TreatmentEvent
from glucosim.services.demo_storage import (
    DEMO_DATA_SOURCE,
    SqlAlchemyDemoStore,
    StorageError,
    reading_to_row,
    treatment_to_row,
)


@pytest.fixture
def reading(fixed_now):
    return GlucoseReading(
        timestamp=fixed_now,
        value=123,
        delta=4.2,
        direction=TrendDirection.FORTY_FIVE_UP,
        device="demo-cgm",
        filtered=124,
        unfiltered=121,
        rssi=80,
        noise=1,
    )


@pytest.fixture
def treatment(fixed_now):
    return TreatmentEvent(
        timestamp=fixed_now,
        event_type=TreatmentEventType.MEAL_BOLUS,
        entered_by="demo-user",
        insulin=4.5,
    )


class TestRowMapping:
    """Tests for converting generated records to column values."""

    def test_reading_row(self, reading, fixed_now):
        row = reading_to_row(reading, DEMO_DATA_SOURCE)

        assert row["sgv"] == 123
        assert row["mgdl"] == 123
        assert row["mills"] == int(fixed_now.timestamp() * 1000)
        assert row["date"] == fixed_now
        assert row["date_string"] == "2024-03-13T12:00:00+00:00"
        assert row["direction"] == TrendDirection.FORTY_FIVE_UP
        assert row["data_source"] == "demo-service"
        assert row["type"] == "sgv"

    def test_treatment_row(self, treatment):
        row = treatment_to_row(treatment, DEMO_DATA_SOURCE)

        assert row["event_type"] == "Meal Bolus"
        assert row["insulin"] == 4.5
        assert row["carbs"] is None
        assert row["entered_by"] == "demo-user"
        assert row["event_created_at"] == "2024-03-13T12:00:00+00:00"
        assert row["data_source"] == "demo-service"


class TestSqlAlchemyDemoStore:
    """Tests for the AsyncSession-backed store."""

    @pytest.mark.asyncio
    async def test_create_entries_bulk_inserts_and_commits(self, mock_db, reading, fixed_now):
        later = GlucoseReading(
            timestamp=fixed_now + timedelta(minutes=5),
            value=125,
            delta=2.0,
            direction=TrendDirection.FLAT,
            device="demo-cgm",
        )
        store = SqlAlchemyDemoStore(mock_db)

        created = await store.create_entries([reading, later])

        assert created == 2
        mock_db.execute.assert_awaited_once()
        _, rows = mock_db.execute.await_args.args
        assert [row["sgv"] for row in rows] == [123, 125]
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_create_nothing_skips_database(self, mock_db):
        store = SqlAlchemyDemoStore(mock_db)

        assert await store.create_entries([]) == 0
        assert await store.create_treatments([]) == 0
        mock_db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_treatments(self, mock_db, treatment):
        store = SqlAlchemyDemoStore(mock_db, data_source="custom")

        assert await store.create_treatments([treatment]) == 1
        _, rows = mock_db.execute.await_args.args
        assert rows[0]["data_source"] == "custom"

    @pytest.mark.asyncio
    async def test_insert_failure_rolls_back(self, mock_db, reading):
        mock_db.execute.side_effect = OperationalError("INSERT", {}, Exception("db down"))
        store = SqlAlchemyDemoStore(mock_db)

        with pytest.raises(StorageError):
            await store.create_entries([reading])

        mock_db.rollback.assert_awaited_once()
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_returns_rowcount(self, mock_db):
        mock_db.execute.return_value = MagicMock(rowcount=42)
        store = SqlAlchemyDemoStore(mock_db)

        assert await store.delete_entries_by_data_source(DEMO_DATA_SOURCE) == 42
        assert await store.delete_treatments_by_data_source(DEMO_DATA_SOURCE) == 42
        assert mock_db.commit.await_count == 2

    @pytest.mark.asyncio
    async def test_delete_failure_rolls_back(self, mock_db):
        mock_db.execute.side_effect = OperationalError("DELETE", {}, Exception("db down"))
        store = SqlAlchemyDemoStore(mock_db)

        with pytest.raises(StorageError):
            await store.delete_treatments_by_data_source(DEMO_DATA_SOURCE)

        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_count_by_data_source(self, mock_db):
        mock_db.scalar.side_effect = [288, 30]
        store = SqlAlchemyDemoStore(mock_db)

        assert await store.count_by_data_source(DEMO_DATA_SOURCE) == {
            "entries": 288,
            "treatments": 30,
        }

    @pytest.mark.asyncio
    async def test_has_demo_data(self, mock_db):
        store = SqlAlchemyDemoStore(mock_db)

        mock_db.scalar.return_value = None
        assert not await store.has_demo_data()

        mock_db.scalar.return_value = uuid.uuid4()
        assert await store.has_demo_data()
