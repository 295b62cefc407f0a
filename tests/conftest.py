"""Pytest configuration and shared fixtures.

Nothing here needs a running database: API tests swap the session
dependency for an AsyncMock and the demo service for a fresh instance.
"""

import os
import random
from collections.abc import AsyncGenerator
from datetime import date, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

# Set testing mode BEFORE importing the app so the engine uses NullPool
os.environ["TESTING"] = "true"

from glucosim.config import DemoModeSettings, settings

settings.testing = True

from glucosim.core.simulation.models import (
    GlucoseReading,
    PharmacokineticProfile,
    ScenarioParameters,
    TreatmentEvent,
)
from glucosim.database import get_db
from glucosim.main import app
from glucosim.services.demo_data import DemoDataService, get_demo_service


def make_config(**overrides) -> DemoModeSettings:
    """Demo settings with a short, seeded backfill."""
    values = {
        "enabled": True,
        "history_days": 2,
        "batch_size": 500,
        "seed": 1234,
    }
    values.update(overrides)
    return DemoModeSettings(**values)


def make_profile(**overrides) -> PharmacokineticProfile:
    """Rapid-acting insulin profile with default therapy settings."""
    values = {
        "dia_hours": 4.0,
        "peak_minutes": 75.0,
        "current_basal_rate": 1.0,
        "carb_ratio": 10.0,
        "insulin_sensitivity_factor": 50.0,
        "min_bg": 80.0,
        "max_bg": 120.0,
        "autosens_min": 0.7,
        "autosens_max": 1.2,
        "max_iob": 10.0,
        "max_basal": 4.0,
        "min_5m_carb_impact": 8.0,
        "max_cob": 120.0,
    }
    values.update(overrides)
    return PharmacokineticProfile(**values)


def make_params(**overrides) -> ScenarioParameters:
    """Neutral Normal-day parameters."""
    values = {
        "fasting_glucose": 100.0,
        "carb_ratio": 10.0,
        "basal_multiplier": 1.0,
        "insulin_sensitivity_multiplier": 1.0,
        "dawn_phenomenon_strength": 0.0,
    }
    values.update(overrides)
    return ScenarioParameters(**values)


class InMemoryDemoStore:
    """DemoDataStore that keeps everything in lists."""

    def __init__(self):
        self.entries: list[GlucoseReading] = []
        self.treatments: list[TreatmentEvent] = []
        self.entry_batches: list[int] = []
        self.treatment_batches: list[int] = []
        self.deleted_sources: list[str] = []

    async def create_entries(self, readings) -> int:
        self.entries.extend(readings)
        self.entry_batches.append(len(readings))
        return len(readings)

    async def create_treatments(self, events) -> int:
        self.treatments.extend(events)
        self.treatment_batches.append(len(events))
        return len(events)

    async def delete_entries_by_data_source(self, data_source: str) -> int:
        self.deleted_sources.append(data_source)
        deleted = len(self.entries)
        self.entries = []
        return deleted

    async def delete_treatments_by_data_source(self, data_source: str) -> int:
        deleted = len(self.treatments)
        self.treatments = []
        return deleted

    async def count_by_data_source(self, data_source: str) -> dict[str, int]:
        return {"entries": len(self.entries), "treatments": len(self.treatments)}

    async def has_demo_data(self, data_source: str = "demo-service") -> bool:
        return bool(self.entries)


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source."""
    return random.Random(42)


@pytest.fixture
def demo_config() -> DemoModeSettings:
    return make_config()


@pytest.fixture
def config_factory():
    return make_config


@pytest.fixture
def profile_factory():
    return make_profile


@pytest.fixture
def params_factory():
    return make_params


@pytest.fixture
def profile() -> PharmacokineticProfile:
    return make_profile()


@pytest.fixture
def params() -> ScenarioParameters:
    return make_params()


@pytest.fixture
def store() -> InMemoryDemoStore:
    return InMemoryDemoStore()


@pytest.fixture
def weekday() -> date:
    """A Wednesday."""
    return date(2024, 3, 13)


@pytest.fixture
def weekend_day() -> date:
    """A Saturday."""
    return date(2024, 3, 16)


@pytest.fixture
def fixed_now() -> datetime:
    return datetime.fromisoformat("2024-03-13T12:00:00+00:00")


@pytest.fixture
def mock_db() -> AsyncMock:
    """AsyncSession stand-in; tests set ``execute``/``scalar`` return values."""
    db = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def demo_service() -> DemoDataService:
    return DemoDataService(config=make_config())


@pytest.fixture
async def client(mock_db, demo_service) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with the database and demo service swapped out."""

    async def override_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_demo_service] = lambda: demo_service
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
