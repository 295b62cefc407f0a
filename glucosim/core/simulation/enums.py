"""Simulation enums.

String values of ``TrendDirection`` and ``TreatmentEventType`` are part of
the stored-data contract: reporting consumers match on them verbatim.
"""

from enum import StrEnum, auto


class DayScenario(StrEnum):
    """Archetype of a simulated day."""

    normal = auto()
    high_day = auto()
    low_day = auto()
    exercise = auto()
    sick_day = auto()
    stress_day = auto()
    poor_sleep = auto()


class TrendDirection(StrEnum):
    """CGM trend arrow derived from the 5-minute glucose delta."""

    DOUBLE_UP = "DoubleUp"  # > +10 mg/dL per reading
    SINGLE_UP = "SingleUp"  # > +5
    FORTY_FIVE_UP = "FortyFiveUp"  # > +2
    FLAT = "Flat"  # -2 .. +2
    FORTY_FIVE_DOWN = "FortyFiveDown"  # > -5
    SINGLE_DOWN = "SingleDown"  # > -10
    DOUBLE_DOWN = "DoubleDown"  # <= -10


class TreatmentEventType(StrEnum):
    """Treatment tags emitted by the generator."""

    CARBS = "Carbs"
    MEAL_BOLUS = "Meal Bolus"
    SNACK_BOLUS = "Snack Bolus"
    CORRECTION_BOLUS = "Correction Bolus"
    SMB = "SMB"
    TEMP_BASAL = "Temp Basal"
    SCHEDULED_BASAL = "Scheduled Basal"
    CARB_CORRECTION = "Carb Correction"


class DayState(StrEnum):
    """Lifecycle of one simulated day."""

    not_started = auto()
    simulating = auto()
    day_complete = auto()
