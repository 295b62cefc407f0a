"""Demo data service.

Owns the lifecycle of the synthetic patient: clearing and regenerating the
historical backfill, appending live readings on a schedule, and reporting
its own state to the health and demo endpoints.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

from glucosim.config import DemoModeSettings, demo_settings
from glucosim.core.simulation.models import GlucoseReading, TreatmentEvent
from glucosim.core.simulation.trajectory import GlucoseTrajectoryEngine
from glucosim.logging_config import bind_correlation_id, get_logger
from glucosim.services.demo_storage import DEMO_DATA_SOURCE, DemoDataStore, StorageError

logger = get_logger(__name__)


class ServiceState(StrEnum):
    """Lifecycle state of the demo service."""

    STOPPED = "stopped"
    RUNNING = "running"
    UNHEALTHY = "unhealthy"


class DemoModeDisabledError(Exception):
    """Raised when a demo operation is requested while demo mode is off."""


class RegenerationInProgressError(Exception):
    """Raised when a regeneration is requested while another one runs."""


@dataclass(frozen=True)
class RegenerationSummary:
    """Outcome of one clear-then-regenerate run."""

    run_id: str
    entries_deleted: int
    treatments_deleted: int
    entries_created: int
    treatments_created: int
    days: int
    cancelled: bool
    duration_seconds: float


@dataclass(frozen=True)
class DemoServiceStatus:
    state: ServiceState
    enabled: bool
    regenerating: bool
    last_entry_at: datetime | None
    last_regeneration: RegenerationSummary | None


class _BatchWriter:
    """Buffers generated records and flushes them in fixed-size chunks."""

    def __init__(self, store: DemoDataStore, batch_size: int):
        self.store = store
        self.batch_size = batch_size
        self.readings: list[GlucoseReading] = []
        self.treatments: list[TreatmentEvent] = []
        self.entries_created = 0
        self.treatments_created = 0

    def add(self, readings: list[GlucoseReading], treatments: list[TreatmentEvent]) -> None:
        self.readings.extend(readings)
        self.treatments.extend(treatments)

    async def flush_full_batches(self, cancel: asyncio.Event) -> bool:
        """Write every complete batch; False if cancelled between batches."""
        while len(self.readings) >= self.batch_size:
            if cancel.is_set():
                return False
            batch, self.readings = (
                self.readings[: self.batch_size],
                self.readings[self.batch_size :],
            )
            self.entries_created += await self.store.create_entries(batch)
        while len(self.treatments) >= self.batch_size:
            if cancel.is_set():
                return False
            batch, self.treatments = (
                self.treatments[: self.batch_size],
                self.treatments[self.batch_size :],
            )
            self.treatments_created += await self.store.create_treatments(batch)
        return True

    async def flush_remaining(self) -> None:
        if self.readings:
            self.entries_created += await self.store.create_entries(self.readings)
            self.readings = []
        if self.treatments:
            self.treatments_created += await self.store.create_treatments(self.treatments)
            self.treatments = []


class DemoDataService:
    """Generates and stores demo data for one synthetic patient.

    State transitions:
        stopped -> running      start()
        running -> stopped      stop()
        any     -> unhealthy    mark_unhealthy() or a failed regeneration
        unhealthy -> running    start()
    """

    def __init__(
        self,
        config: DemoModeSettings | None = None,
        engine: GlucoseTrajectoryEngine | None = None,
    ):
        self.config = config or demo_settings
        self.engine = engine or GlucoseTrajectoryEngine(self.config)
        self.state = ServiceState.STOPPED
        self.last_entry_at: datetime | None = None
        self.last_regeneration: RegenerationSummary | None = None
        self._cancel = asyncio.Event()
        self._regeneration_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self.state == ServiceState.RUNNING

    @property
    def is_regenerating(self) -> bool:
        return self._regeneration_lock.locked()

    def _require_enabled(self) -> None:
        if not self.config.enabled:
            raise DemoModeDisabledError("Demo mode is disabled")

    def start(self) -> None:
        self._require_enabled()
        self._cancel.clear()
        self.state = ServiceState.RUNNING
        logger.info("Demo data service started", interval_minutes=self.config.interval_minutes)

    def stop(self) -> None:
        """Stop the service and cancel a regeneration in progress."""
        self._cancel.set()
        if self.state != ServiceState.STOPPED:
            self.state = ServiceState.STOPPED
            logger.info("Demo data service stopped")

    def mark_unhealthy(self, reason: str | None = None) -> None:
        self.state = ServiceState.UNHEALTHY
        logger.warning("Demo data service marked unhealthy", reason=reason)

    def status(self) -> DemoServiceStatus:
        return DemoServiceStatus(
            state=self.state,
            enabled=self.config.enabled,
            regenerating=self.is_regenerating,
            last_entry_at=self.last_entry_at,
            last_regeneration=self.last_regeneration,
        )

    async def regenerate(
        self, store: DemoDataStore, end: datetime | None = None
    ) -> RegenerationSummary:
        """Clear previously generated data and backfill ``history_days``.

        Days are simulated one at a time and written in chunks of
        ``batch_size`` so the full history never has to be held in memory.
        A stop() between days or batches ends the run early; whatever was
        already written stays in storage.

        Raises:
            DemoModeDisabledError: If demo mode is off
            RegenerationInProgressError: If another regeneration is running
            StorageError: If clearing or writing fails
        """
        self._require_enabled()
        if self._regeneration_lock.locked():
            raise RegenerationInProgressError("A demo data regeneration is already running")

        async with self._regeneration_lock:
            self._cancel.clear()
            with bind_correlation_id(f"demo-regen-{uuid.uuid4().hex[:12]}") as run_id:
                try:
                    summary = await self._regenerate(store, run_id, end)
                except StorageError as e:
                    self.mark_unhealthy(str(e))
                    raise
            self.last_regeneration = summary
            return summary

    async def _regenerate(
        self, store: DemoDataStore, run_id: str, end: datetime | None
    ) -> RegenerationSummary:
        started = time.perf_counter()
        logger.info("Regenerating demo data", history_days=self.config.history_days)

        entries_deleted = await store.delete_entries_by_data_source(DEMO_DATA_SOURCE)
        treatments_deleted = await store.delete_treatments_by_data_source(DEMO_DATA_SOURCE)

        # A fresh engine per run keeps seeded backfills identical across runs
        engine = GlucoseTrajectoryEngine(self.config)
        writer = _BatchWriter(store, self.config.batch_size)
        days = 0
        cancelled = False

        for result in engine.iter_historical_days(end or datetime.now(UTC)):
            if self._cancel.is_set():
                cancelled = True
                break
            writer.add(result.readings, result.treatments)
            days += 1
            if not await writer.flush_full_batches(self._cancel):
                cancelled = True
                break
            # Let request handlers run between simulated days
            await asyncio.sleep(0)

        if not cancelled:
            await writer.flush_remaining()

        summary = RegenerationSummary(
            run_id=run_id,
            entries_deleted=entries_deleted,
            treatments_deleted=treatments_deleted,
            entries_created=writer.entries_created,
            treatments_created=writer.treatments_created,
            days=days,
            cancelled=cancelled,
            duration_seconds=round(time.perf_counter() - started, 3),
        )
        if cancelled:
            logger.warning(
                "Demo data regeneration cancelled",
                days=days,
                entries=summary.entries_created,
                treatments=summary.treatments_created,
            )
        else:
            logger.info(
                "Completed demo data regeneration",
                days=days,
                entries=summary.entries_created,
                treatments=summary.treatments_created,
                duration_seconds=summary.duration_seconds,
            )
        return summary

    async def generate_and_save_entry(
        self, store: DemoDataStore, now: datetime | None = None
    ) -> GlucoseReading:
        """Advance the live random walk by one reading and store it."""
        self._require_enabled()
        reading = self.engine.generate_current_entry(now)
        await store.create_entries([reading])
        self.last_entry_at = reading.timestamp
        logger.info(
            "Generated demo entry",
            sgv=int(reading.value),
            direction=str(reading.direction),
        )
        return reading

    async def startup(self, store: DemoDataStore) -> RegenerationSummary | None:
        """Start the service and prepare storage for a new demo session.

        Regenerates the backfill when ``clear_on_startup`` or
        ``regenerate_on_startup`` is set, then writes the first live entry
        so the current reading is never stale after a restart.
        """
        if not self.config.enabled:
            logger.info("Demo mode is disabled, demo data service will not run")
            return None

        self.start()
        summary = None
        if self.config.clear_on_startup or self.config.regenerate_on_startup:
            summary = await self.regenerate(store)
        await self.generate_and_save_entry(store)
        return summary


_service: DemoDataService | None = None


def get_demo_service() -> DemoDataService:
    """Process-wide demo service, created on first use."""
    global _service
    if _service is None:
        _service = DemoDataService()
    return _service


def reset_demo_service() -> None:
    """Drop the process-wide service so the next call rebuilds it."""
    global _service
    if _service is not None:
        _service.stop()
    _service = None
