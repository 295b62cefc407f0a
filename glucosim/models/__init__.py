# Database Models
from glucosim.models.base import Base, TimestampMixin
from glucosim.models.entry import Entry
from glucosim.models.treatment import Treatment

__all__ = [
    "Base",
    "Entry",
    "TimestampMixin",
    "Treatment",
]
