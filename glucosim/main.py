"""glucosim FastAPI application."""

import asyncio
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from glucosim.config import settings
from glucosim.database import close_database, create_tables, get_db_session
from glucosim.logging_config import get_logger, setup_logging
from glucosim.middleware import CorrelationIdMiddleware
from glucosim.routers.demo import router as demo_router
from glucosim.routers.entries import router as entries_router
from glucosim.routers.health import router as health_router
from glucosim.routers.treatments import router as treatments_router
from glucosim.services.demo_data import get_demo_service
from glucosim.services.demo_storage import SqlAlchemyDemoStore, StorageError
from glucosim.services.scheduler import start_scheduler, stop_scheduler

setup_logging(
    log_format=settings.log_format,
    log_level=settings.log_level,
    service_name=settings.service_name,
)
logger = get_logger(__name__)


async def start_demo_mode() -> None:
    """Run the demo service's startup backfill and first live entry."""
    service = get_demo_service()
    try:
        async with get_db_session() as db:
            await service.startup(SqlAlchemyDemoStore(db))
    except StorageError as e:
        logger.error("Demo data startup failed", error=str(e))
        service.mark_unhealthy(str(e))
    except Exception as e:
        logger.exception("Unexpected error during demo data startup", error=str(e))
        service.mark_unhealthy(str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    if settings.auto_create_tables and not settings.testing:
        await create_tables()

    # The backfill can take a while; serve requests while it runs
    demo_startup = asyncio.create_task(start_demo_mode())
    start_scheduler()
    logger.info("glucosim API started")

    yield

    # Shutdown
    logger.info("Shutting down glucosim API...")
    get_demo_service().stop()
    if not demo_startup.done():
        demo_startup.cancel()
        try:
            await demo_startup
        except asyncio.CancelledError:
            logger.info("Demo data startup cancelled")
    stop_scheduler()
    await close_database()
    logger.info("glucosim API shutdown complete")


app = FastAPI(
    title="glucosim API",
    description="Synthetic CGM demo data and Nightscout-style stored data queries",
    version="0.1.0",
    lifespan=lifespan,
)

# Correlation IDs for request tracing
app.add_middleware(CorrelationIdMiddleware)

app.include_router(health_router)
app.include_router(demo_router)
app.include_router(entries_router)
app.include_router(treatments_router)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint."""
    return {
        "name": "glucosim API",
        "version": "0.1.0",
        "docs": "/docs",
    }
