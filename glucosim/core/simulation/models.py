"""Simulation data records.

Plain frozen dataclasses: the generator builds hundreds of thousands of
these for a multi-month backfill, so they stay free of validation
machinery. Times are timezone-aware UTC datetimes.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from glucosim.core.simulation.enums import DayScenario, TreatmentEventType, TrendDirection


def to_mills(moment: datetime) -> int:
    """Epoch milliseconds for an aware datetime."""
    return int(moment.timestamp() * 1000)


@dataclass(frozen=True, slots=True)
class InsulinDose:
    """One discrete bolus or one temp-basal delivery window.

    Temp basal doses carry the units delivered over the whole window;
    negative units model a reduction relative to the scheduled basal.
    """

    start_time: datetime
    units: float
    is_temp_basal: bool = False
    temp_basal_duration_minutes: int = 0


@dataclass(frozen=True, slots=True)
class CarbEvent:
    """One meal or correction-carb intake."""

    start_time: datetime
    grams: float
    absorption_hours: float


@dataclass(frozen=True)
class PharmacokineticProfile:
    """Insulin and carb response of the patient for one simulated day."""

    dia_hours: float
    peak_minutes: float
    current_basal_rate: float
    carb_ratio: float
    insulin_sensitivity_factor: float
    min_bg: float
    max_bg: float
    autosens_min: float
    autosens_max: float
    max_iob: float
    max_basal: float
    min_5m_carb_impact: float
    max_cob: float

    @property
    def dia_minutes(self) -> float:
        return self.dia_hours * 60.0


@dataclass(frozen=True)
class ScenarioParameters:
    """Physiological knobs for one simulated calendar day."""

    fasting_glucose: float
    carb_ratio: float
    basal_multiplier: float
    insulin_sensitivity_multiplier: float
    dawn_phenomenon_strength: float
    has_exercise: bool = False

    def __post_init__(self) -> None:
        if self.basal_multiplier <= 0 or self.insulin_sensitivity_multiplier <= 0:
            msg = "scenario multipliers must be strictly positive"
            raise ValueError(msg)
        if self.carb_ratio <= 0:
            msg = "carb_ratio must be strictly positive"
            raise ValueError(msg)


@dataclass(frozen=True)
class MealEvent:
    """A planned meal and the (possibly mistimed) bolus that goes with it.

    Negative ``bolus_offset_minutes`` means the meal was pre-bolused.
    """

    meal_time: datetime
    carbs: float
    food_type: str
    bolus_offset_minutes: int
    glycemic_index: float

    @property
    def bolus_time(self) -> datetime:
        return self.meal_time + timedelta(minutes=self.bolus_offset_minutes)

    @property
    def is_snack(self) -> bool:
        return self.food_type == "Snack"


@dataclass(frozen=True)
class BasalAdjustment:
    """A planned temp basal (absolute rate in U/h)."""

    time: datetime
    rate: float
    duration_minutes: int


@dataclass(frozen=True)
class GlucoseReading:
    """One emitted CGM reading."""

    timestamp: datetime
    value: float
    delta: float | None
    direction: TrendDirection
    device: str
    filtered: float | None = None
    unfiltered: float | None = None
    rssi: int | None = None
    noise: int | None = None
    type: str = "sgv"

    @property
    def mills(self) -> int:
        return to_mills(self.timestamp)


@dataclass(frozen=True)
class TreatmentEvent:
    """One emitted treatment record."""

    timestamp: datetime
    event_type: TreatmentEventType
    entered_by: str
    insulin: float | None = None
    carbs: float | None = None
    rate: float | None = None
    duration_minutes: int | None = None
    food_type: str | None = None
    notes: str | None = None

    @property
    def mills(self) -> int:
        return to_mills(self.timestamp)


@dataclass
class DayResult:
    """Everything one simulated day produced, plus the state carried forward."""

    day: date
    scenario: DayScenario
    parameters: ScenarioParameters
    readings: list[GlucoseReading] = field(default_factory=list)
    treatments: list[TreatmentEvent] = field(default_factory=list)
    ending_glucose: float = 0.0
    ending_momentum: float = 0.0


@dataclass(frozen=True)
class DayCarryOver:
    """Glucose state handed from one day to the next."""

    glucose: float
    momentum: float
