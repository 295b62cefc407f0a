"""CGM entry schemas.

Entries are returned in the Nightscout field naming clients expect
(``dateString``, ``_id``), serialized from the ORM rows.
"""

import uuid

from pydantic import BaseModel, ConfigDict, Field, computed_field

from glucosim.core.simulation.enums import TrendDirection


class EntryResponse(BaseModel):
    """A single CGM entry."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID = Field(..., serialization_alias="_id")
    type: str = Field(..., description="Entry type, 'sgv' for sensor glucose")
    device: str | None = None
    mills: int = Field(..., description="Epoch milliseconds")
    date_string: str = Field(..., serialization_alias="dateString")
    sgv: int | None = Field(None, description="Sensor glucose in mg/dL")
    mgdl: int | None = None
    direction: TrendDirection | None = None
    delta: float | None = Field(None, description="Change since the previous entry")
    filtered: float | None = None
    unfiltered: float | None = None
    rssi: int | None = None
    noise: int | None = None
    data_source: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def date(self) -> int:
        """Epoch milliseconds, as Nightscout clients read it."""
        return self.mills
