"""Treatment model.

Insulin, carb and basal events in the Nightscout treatment shape.
"""

import uuid

from sqlalchemy import BigInteger, Float, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from glucosim.models.base import Base, TimestampMixin


class Treatment(Base, TimestampMixin):
    """One treatment record.

    ``event_type`` holds the Nightscout event string ("Meal Bolus",
    "Temp Basal", ...); it is free text because uploaders may send types
    this service never generates.
    """

    __tablename__ = "treatments"

    __table_args__ = (
        Index("ix_treatments_data_source_mills", "data_source", "mills"),
        Index("ix_treatments_event_type_mills", "event_type", "mills"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    event_type: Mapped[str] = mapped_column(String(50), nullable=False)

    mills: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)

    # ISO-8601 time of the event as reported by the uploader
    event_created_at: Mapped[str] = mapped_column(String(40), nullable=False)

    insulin: Mapped[float | None] = mapped_column(Float, nullable=True)
    carbs: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Basal rate in U/h and duration in minutes
    rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)

    food_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    entered_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    data_source: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<Treatment(event_type={self.event_type}, mills={self.mills})>"
