"""Tests for the background scheduler and the live demo job."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import make_config
from glucosim.services import scheduler as scheduler_module
from glucosim.services.demo_storage import StorageError
from glucosim.services.scheduler import (
    DEMO_ENTRY_JOB_ID,
    generate_demo_entry,
    get_scheduler,
    scheduler_lifespan,
    start_scheduler,
    stop_scheduler,
)


@pytest.fixture(autouse=True)
async def clean_scheduler():
    yield
    stop_scheduler()


def session_maker_for(db):
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=db)
    session.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=session)


class TestSchedulerLifecycle:
    """Tests for starting and stopping the scheduler."""

    @pytest.mark.asyncio
    async def test_demo_job_registered_when_enabled(self):
        with patch.object(scheduler_module, "demo_settings", make_config(interval_minutes=3)):
            scheduler = start_scheduler()

        job = scheduler.get_job(DEMO_ENTRY_JOB_ID)
        assert job is not None
        assert job.trigger.interval.total_seconds() == 180
        assert get_scheduler() is scheduler

    @pytest.mark.asyncio
    async def test_no_demo_job_when_disabled(self):
        with patch.object(scheduler_module, "demo_settings", make_config(enabled=False)):
            scheduler = start_scheduler()

        assert scheduler.get_job(DEMO_ENTRY_JOB_ID) is None

    @pytest.mark.asyncio
    async def test_start_twice_returns_same_instance(self):
        first = start_scheduler()
        assert start_scheduler() is first

    @pytest.mark.asyncio
    async def test_stop_clears_instance(self):
        start_scheduler()
        stop_scheduler()

        assert get_scheduler() is None

    @pytest.mark.asyncio
    async def test_lifespan(self):
        async with scheduler_lifespan():
            assert get_scheduler() is not None

        assert get_scheduler() is None


class TestGenerateDemoEntry:
    """Tests for the scheduled live entry job."""

    @pytest.mark.asyncio
    async def test_skips_when_service_stopped(self, demo_service):
        with (
            patch.object(scheduler_module, "get_demo_service", return_value=demo_service),
            patch.object(scheduler_module, "get_session_maker") as mock_maker,
        ):
            await generate_demo_entry()

        mock_maker.assert_not_called()

    @pytest.mark.asyncio
    async def test_skips_while_regenerating(self, demo_service):
        demo_service.start()

        with (
            patch.object(scheduler_module, "get_demo_service", return_value=demo_service),
            patch.object(scheduler_module, "get_session_maker") as mock_maker,
        ):
            async with demo_service._regeneration_lock:
                await generate_demo_entry()

        mock_maker.assert_not_called()

    @pytest.mark.asyncio
    async def test_writes_entry_when_running(self, demo_service, mock_db):
        demo_service.start()

        with (
            patch.object(scheduler_module, "get_demo_service", return_value=demo_service),
            patch.object(
                scheduler_module, "get_session_maker", return_value=session_maker_for(mock_db)
            ),
        ):
            await generate_demo_entry()

        mock_db.execute.assert_awaited_once()
        mock_db.commit.assert_awaited_once()
        assert demo_service.last_entry_at is not None

    @pytest.mark.asyncio
    async def test_storage_failure_is_logged_not_raised(self, demo_service, mock_db):
        demo_service.start()
        demo_service.generate_and_save_entry = AsyncMock(side_effect=StorageError("db down"))

        with (
            patch.object(scheduler_module, "get_demo_service", return_value=demo_service),
            patch.object(
                scheduler_module, "get_session_maker", return_value=session_maker_for(mock_db)
            ),
        ):
            await generate_demo_entry()

        assert demo_service.is_running
