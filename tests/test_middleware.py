"""Tests for the correlation ID middleware."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from glucosim.logging_config import correlation_id_ctx
from glucosim.middleware import CORRELATION_ID_HEADER, CorrelationIdMiddleware


@pytest.fixture
def echo_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(CorrelationIdMiddleware)

    @app.get("/echo")
    async def echo():
        return {"correlation_id": correlation_id_ctx.get()}

    @app.get("/boom")
    async def boom():
        raise RuntimeError("boom")

    return app


class TestCorrelationIdMiddleware:
    """Tests for binding and echoing correlation IDs."""

    @pytest.mark.asyncio
    async def test_reuses_incoming_header(self, echo_app):
        async with AsyncClient(
            transport=ASGITransport(app=echo_app), base_url="http://test"
        ) as ac:
            response = await ac.get("/echo", headers={CORRELATION_ID_HEADER: "req-42"})

        assert response.json() == {"correlation_id": "req-42"}
        assert response.headers[CORRELATION_ID_HEADER] == "req-42"

    @pytest.mark.asyncio
    async def test_generates_id_when_missing(self, echo_app):
        async with AsyncClient(
            transport=ASGITransport(app=echo_app), base_url="http://test"
        ) as ac:
            response = await ac.get("/echo")

        generated = response.headers[CORRELATION_ID_HEADER]
        assert generated
        assert response.json()["correlation_id"] == generated
        assert correlation_id_ctx.get() is None

    @pytest.mark.asyncio
    async def test_failed_request_logged_and_reraised(self, echo_app):
        with patch("glucosim.middleware.correlation.logger") as mock_logger:
            async with AsyncClient(
                transport=ASGITransport(app=echo_app, raise_app_exceptions=True),
                base_url="http://test",
            ) as ac:
                with pytest.raises(RuntimeError):
                    await ac.get("/boom")

        mock_logger.exception.assert_called_once()
        assert mock_logger.exception.call_args.kwargs["path"] == "/boom"

    @pytest.mark.asyncio
    async def test_non_http_scopes_pass_through(self):
        inner = AsyncMock()
        middleware = CorrelationIdMiddleware(inner)
        scope = {"type": "lifespan"}

        await middleware(scope, AsyncMock(), AsyncMock())

        inner.assert_awaited_once()
        assert inner.await_args.args[0] is scope
