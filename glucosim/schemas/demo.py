"""Demo mode schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from glucosim.services.demo_data import ServiceState


class ErrorResponse(BaseModel):
    """Error response schema."""

    detail: str = Field(..., description="Error message")


class RegenerationResponse(BaseModel):
    """Result of a clear-then-regenerate run."""

    model_config = ConfigDict(from_attributes=True)

    run_id: str = Field(..., description="Correlation ID of the run's log lines")
    entries_deleted: int = Field(..., ge=0)
    treatments_deleted: int = Field(..., ge=0)
    entries_created: int = Field(..., ge=0)
    treatments_created: int = Field(..., ge=0)
    days: int = Field(..., ge=0, description="Number of simulated days")
    cancelled: bool = Field(..., description="True if the run was stopped early")
    duration_seconds: float = Field(..., ge=0)


class DemoStatusResponse(BaseModel):
    """Current state of the demo data service."""

    state: ServiceState
    enabled: bool
    regenerating: bool
    last_entry_at: datetime | None = None
    last_regeneration: RegenerationResponse | None = None
    entries: int = Field(..., ge=0, description="Stored demo entries")
    treatments: int = Field(..., ge=0, description="Stored demo treatments")
