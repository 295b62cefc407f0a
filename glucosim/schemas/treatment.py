"""Treatment schemas."""

import uuid

from pydantic import BaseModel, ConfigDict, Field


class TreatmentResponse(BaseModel):
    """A single treatment in Nightscout field naming."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID = Field(..., serialization_alias="_id")
    event_type: str = Field(..., serialization_alias="eventType")
    mills: int = Field(..., description="Epoch milliseconds")
    event_created_at: str = Field(..., serialization_alias="created_at")
    insulin: float | None = Field(None, description="Insulin in units")
    carbs: float | None = Field(None, description="Carbohydrates in grams")
    rate: float | None = Field(None, description="Basal rate in U/h")
    duration: int | None = Field(None, description="Duration in minutes")
    food_type: str | None = Field(None, serialization_alias="foodType")
    entered_by: str | None = Field(None, serialization_alias="enteredBy")
    notes: str | None = None
    data_source: str | None = None
