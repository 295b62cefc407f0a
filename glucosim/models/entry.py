"""CGM entry model.

Stores sensor glucose values in the Nightscout entry shape so clients
can read them back with ``find`` queries.
"""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Enum, Float, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from glucosim.core.simulation.enums import TrendDirection
from glucosim.models.base import Base, TimestampMixin


class Entry(Base, TimestampMixin):
    """One CGM reading.

    ``mills`` (epoch milliseconds) is the canonical timestamp; ``date``
    and ``date_string`` carry the same instant for clients that expect
    them. ``data_source`` marks who wrote the row so generated data can
    be cleared without touching anything else.
    """

    __tablename__ = "entries"

    __table_args__ = (
        # Index for time-ordered reads of one source
        Index("ix_entries_data_source_mills", "data_source", "mills"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # "sgv" for sensor glucose values
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="sgv")

    device: Mapped[str | None] = mapped_column(String(100), nullable=True)

    mills: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)

    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    date_string: Mapped[str] = mapped_column(String(40), nullable=False)

    # Glucose in mg/dL
    sgv: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mgdl: Mapped[int | None] = mapped_column(Integer, nullable=True)

    direction: Mapped[TrendDirection | None] = mapped_column(
        Enum(
            TrendDirection,
            name="trenddirection",
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=True,
    )

    # Change since the previous reading (mg/dL)
    delta: Mapped[float | None] = mapped_column(Float, nullable=True)

    filtered: Mapped[float | None] = mapped_column(Float, nullable=True)
    unfiltered: Mapped[float | None] = mapped_column(Float, nullable=True)
    rssi: Mapped[int | None] = mapped_column(Integer, nullable=True)
    noise: Mapped[int | None] = mapped_column(Integer, nullable=True)

    data_source: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<Entry(mills={self.mills}, sgv={self.sgv}, direction={self.direction})>"
