"""Physiological simulation of a person with type 1 diabetes on AID.

Produces synthetic CGM readings and treatment records for demo and test
environments. Each simulated day picks an archetype (normal, high, low,
exercise, sick, stress, poor sleep), plans meals and basal changes for
it, and runs the insulin/carb physiology in 5-minute ticks while a
closed-loop style controller reacts to highs and lows.

The output is plausible, not clinical: never use it to dose insulin.
"""

from glucosim.core.simulation.enums import (
    DayScenario,
    DayState,
    TreatmentEventType,
    TrendDirection,
)
from glucosim.core.simulation.models import (
    BasalAdjustment,
    CarbEvent,
    DayCarryOver,
    DayResult,
    GlucoseReading,
    InsulinDose,
    MealEvent,
    PharmacokineticProfile,
    ScenarioParameters,
    TreatmentEvent,
)
from glucosim.core.simulation.physiology import PhysiologySimulator
from glucosim.core.simulation.random_source import RandomSource, create_random_source
from glucosim.core.simulation.trajectory import GlucoseTrajectoryEngine, calculate_direction

__all__ = [
    "BasalAdjustment",
    "CarbEvent",
    "DayCarryOver",
    "DayResult",
    "DayScenario",
    "DayState",
    "GlucoseReading",
    "GlucoseTrajectoryEngine",
    "InsulinDose",
    "MealEvent",
    "PharmacokineticProfile",
    "PhysiologySimulator",
    "RandomSource",
    "ScenarioParameters",
    "TreatmentEvent",
    "TreatmentEventType",
    "TrendDirection",
    "calculate_direction",
    "create_random_source",
]
