"""Tests for the application startup hook."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import make_config
from glucosim import main
from glucosim.services.demo_data import DemoDataService, ServiceState
from glucosim.services.demo_storage import StorageError


def session_factory_for(db):
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=db)
    session.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=session)


@pytest.fixture
def service():
    service = DemoDataService(config=make_config(regenerate_on_startup=False))
    service.start()
    return service


class TestStartDemoMode:
    """Tests for the background demo startup task."""

    @pytest.mark.asyncio
    async def test_runs_service_startup(self, service):
        service.startup = AsyncMock()

        with (
            patch.object(main, "get_demo_service", return_value=service),
            patch.object(main, "get_db_session", session_factory_for(AsyncMock())),
        ):
            await main.start_demo_mode()

        service.startup.assert_awaited_once()
        assert service.state == ServiceState.RUNNING

    @pytest.mark.asyncio
    async def test_storage_error_marks_service_unhealthy(self, service):
        service.startup = AsyncMock(side_effect=StorageError("disk full"))

        with (
            patch.object(main, "get_demo_service", return_value=service),
            patch.object(main, "get_db_session", session_factory_for(AsyncMock())),
        ):
            await main.start_demo_mode()

        assert service.state == ServiceState.UNHEALTHY

    @pytest.mark.asyncio
    async def test_unexpected_error_is_logged_and_marks_service_unhealthy(self, service):
        service.startup = AsyncMock(side_effect=RuntimeError("boom"))

        with (
            patch.object(main, "get_demo_service", return_value=service),
            patch.object(main, "get_db_session", session_factory_for(AsyncMock())),
            patch.object(main, "logger") as mock_logger,
        ):
            await main.start_demo_mode()

        assert service.state == ServiceState.UNHEALTHY
        mock_logger.exception.assert_called_once()
        assert mock_logger.exception.call_args.kwargs["error"] == "boom"

    @pytest.mark.asyncio
    async def test_session_failure_marks_service_unhealthy(self, service):
        with (
            patch.object(main, "get_demo_service", return_value=service),
            patch.object(main, "get_db_session", side_effect=OSError("connection refused")),
        ):
            await main.start_demo_mode()

        assert service.state == ServiceState.UNHEALTHY
