"""Simulation tuning constants.

Clinically motivated defaults for the synthetic patient. The global
therapy settings (basal rate, ISF, carb ratio, ...) come from
DemoModeSettings; the values here shape how a day deviates from them
and how the simulated closed loop reacts.
"""

from dataclasses import dataclass
from typing import Final

from glucosim.core.simulation.enums import DayScenario

# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------

TICK_MINUTES: Final[int] = 5

# ---------------------------------------------------------------------------
# Day archetype selection (percent weights, evaluated cumulatively)
# ---------------------------------------------------------------------------

# With a modern AID system most days are unremarkable.
WEEKDAY_SCENARIO_WEIGHTS: Final[tuple[tuple[DayScenario, int], ...]] = (
    (DayScenario.normal, 50),
    (DayScenario.high_day, 15),
    (DayScenario.low_day, 13),
    (DayScenario.exercise, 10),
    (DayScenario.stress_day, 6),
    (DayScenario.poor_sleep, 4),
    (DayScenario.sick_day, 2),
)

WEEKEND_SCENARIO_WEIGHTS: Final[tuple[tuple[DayScenario, int], ...]] = (
    (DayScenario.normal, 40),
    (DayScenario.high_day, 15),
    (DayScenario.exercise, 15),
    (DayScenario.poor_sleep, 10),
    (DayScenario.low_day, 10),
    (DayScenario.stress_day, 7),
    (DayScenario.sick_day, 3),
)

# ---------------------------------------------------------------------------
# Per-archetype parameter ranges
# ---------------------------------------------------------------------------

# Every day draws a variation factor in [0.9, 1.1) that some parameters follow.
DAILY_VARIATION_RANGE: Final[tuple[float, float]] = (0.9, 1.1)


@dataclass(frozen=True)
class Uniform:
    """Value drawn uniformly from [low, high)."""

    low: float
    high: float


@dataclass(frozen=True)
class DailyScaled:
    """Value equal to ``base + daily_variation * weight`` (no extra draw)."""

    base: float
    weight: float = 0.0


@dataclass(frozen=True)
class ScenarioRanges:
    """Bounds for one archetype's ScenarioParameters.

    ``fasting_glucose`` is an integer range [low, high). ``carb_ratio`` is
    a factor applied to the configured carb ratio.
    """

    fasting_glucose: tuple[int, int]
    carb_ratio: Uniform | DailyScaled
    basal_multiplier: Uniform | DailyScaled
    insulin_sensitivity_multiplier: Uniform | DailyScaled
    dawn_phenomenon_strength: Uniform | DailyScaled
    has_exercise: bool = False


SCENARIO_RANGES: Final[dict[DayScenario, ScenarioRanges]] = {
    DayScenario.normal: ScenarioRanges(
        fasting_glucose=(85, 115),
        carb_ratio=DailyScaled(0.95, 0.1),
        basal_multiplier=Uniform(0.95, 1.05),
        insulin_sensitivity_multiplier=DailyScaled(0.95, 0.1),
        dawn_phenomenon_strength=Uniform(0.1, 0.25),
    ),
    DayScenario.high_day: ScenarioRanges(
        fasting_glucose=(110, 135),
        carb_ratio=DailyScaled(0.95, 0.05),
        basal_multiplier=Uniform(1.0, 1.1),
        insulin_sensitivity_multiplier=Uniform(0.85, 0.95),
        dawn_phenomenon_strength=Uniform(0.2, 0.35),
    ),
    DayScenario.low_day: ScenarioRanges(
        fasting_glucose=(70, 95),
        carb_ratio=DailyScaled(0.0, 1.2),
        basal_multiplier=Uniform(0.75, 0.9),
        insulin_sensitivity_multiplier=Uniform(1.2, 1.4),
        dawn_phenomenon_strength=DailyScaled(0.05),
    ),
    # Exercise increases sensitivity and needs less basal.
    DayScenario.exercise: ScenarioRanges(
        fasting_glucose=(80, 105),
        carb_ratio=DailyScaled(1.2),
        basal_multiplier=Uniform(0.65, 0.8),
        insulin_sensitivity_multiplier=Uniform(1.3, 1.6),
        dawn_phenomenon_strength=DailyScaled(0.1),
        has_exercise=True,
    ),
    DayScenario.sick_day: ScenarioRanges(
        fasting_glucose=(125, 155),
        carb_ratio=DailyScaled(0.9),
        basal_multiplier=Uniform(1.1, 1.2),
        insulin_sensitivity_multiplier=Uniform(0.75, 0.85),
        dawn_phenomenon_strength=DailyScaled(0.25),
    ),
    DayScenario.stress_day: ScenarioRanges(
        fasting_glucose=(105, 125),
        carb_ratio=DailyScaled(0.95),
        basal_multiplier=Uniform(1.0, 1.1),
        insulin_sensitivity_multiplier=Uniform(0.85, 0.95),
        dawn_phenomenon_strength=DailyScaled(0.2),
    ),
    DayScenario.poor_sleep: ScenarioRanges(
        fasting_glucose=(95, 125),
        carb_ratio=DailyScaled(0.95),
        basal_multiplier=Uniform(1.0, 1.1),
        insulin_sensitivity_multiplier=Uniform(0.9, 1.0),
        dawn_phenomenon_strength=DailyScaled(0.25),
    ),
}

# ---------------------------------------------------------------------------
# Pharmacokinetic profile limits (oref defaults)
# ---------------------------------------------------------------------------

PROFILE_MAX_IOB: Final[float] = 10.0
PROFILE_MAX_BASAL: Final[float] = 4.0
PROFILE_MIN_BG: Final[float] = 80.0
PROFILE_MAX_BG: Final[float] = 120.0
PROFILE_AUTOSENS_MIN: Final[float] = 0.7
PROFILE_AUTOSENS_MAX: Final[float] = 1.2
PROFILE_MIN_5M_CARB_IMPACT: Final[float] = 8.0
PROFILE_MAX_COB: Final[float] = 120.0

# Carbs reach peak absorption a third of the way through their window.
CARB_PEAK_FRACTION: Final[float] = 1.0 / 3.0

# ---------------------------------------------------------------------------
# Background physiology (mg/dL per 5-minute tick)
# ---------------------------------------------------------------------------

LIVER_OUTPUT_BASE: Final[float] = 0.5
LIVER_OUTPUT_SPREAD: Final[float] = 0.3
BASAL_COVERAGE_PER_MULTIPLIER: Final[float] = 0.7

DAWN_START_HOUR: Final[float] = 4.0
DAWN_END_HOUR: Final[float] = 8.0
DAWN_EFFECT_SCALE: Final[float] = 1.5

# (start hour, end hour, effect) windows for exercise days; the last wraps midnight.
EXERCISE_EFFECT_WINDOWS: Final[tuple[tuple[float, float, float], ...]] = (
    (16.0, 17.0, -2.5),
    (17.0, 18.0, -1.8),
    (18.0, 22.0, -0.8),
    (22.0, 6.0, -0.3),
)

CGM_NOISE_AMPLITUDE: Final[float] = 3.0
SENSOR_ARTIFACT_PROBABILITY: Final[float] = 0.002
SENSOR_ARTIFACT_AMPLITUDE: Final[float] = 15.0

# Weight of the previous momentum; the rest is the new tick's change.
MOMENTUM_RETENTION: Final[float] = 0.1
MAX_MOMENTUM_PER_TICK: Final[float] = 15.0
CARRY_OVER_MOMENTUM_FACTOR: Final[float] = 0.5

GLUCOSE_FLOOR: Final[float] = 40.0

# ---------------------------------------------------------------------------
# Reactive (closed-loop style) dosing
# ---------------------------------------------------------------------------

LOW_TREATMENT_THRESHOLD: Final[float] = 70.0
SEVERE_LOW_THRESHOLD: Final[float] = 55.0
SEVERE_LOW_CARBS: Final[tuple[int, int]] = (15, 25)
MILD_LOW_CARBS: Final[tuple[int, int]] = (10, 18)
LOW_TREATMENT_ABSORPTION_HOURS: Final[float] = 0.4

HIGH_OFFSET: Final[float] = 10.0
MANUAL_CORRECTION_OFFSET: Final[float] = 30.0
AUTO_CORRECTION_OFFSET: Final[float] = 15.0
MANUAL_CORRECTION_PROBABILITY: Final[float] = 0.25
WAKING_HOURS: Final[tuple[int, int]] = (7, 22)

# Share of the estimated IOB subtracted from the correction need.
IOB_STACKING_WEIGHT: Final[float] = 0.6

HIGH_TEMP_BASAL_BASE: Final[float] = 1.1
HIGH_TEMP_BASAL_MAX_BOOST: Final[float] = 0.3
HIGH_TEMP_BASAL_SCALE: Final[float] = 150.0

MANUAL_CORRECTION_BOUNDS: Final[tuple[float, float]] = (0.5, 6.0)
AUTO_CORRECTION_SHARE: Final[tuple[float, float]] = (0.5, 0.7)
AUTO_CORRECTION_BOUNDS: Final[tuple[float, float]] = (0.1, 4.0)
AUTO_CORRECTION_MIN_NEED: Final[float] = 0.1
MICRO_BOLUS_SHARE: Final[float] = 0.25
MICRO_BOLUS_BOUNDS: Final[tuple[float, float]] = (0.05, 1.2)
MICRO_BOLUS_MIN_NEED: Final[float] = 0.05

# Predictive low suspend
LOW_SUSPEND_THRESHOLD: Final[float] = 90.0
FALLING_SUSPEND_THRESHOLD: Final[float] = 100.0
FALLING_MOMENTUM_THRESHOLD: Final[float] = -0.3
# (glucose below, share of scheduled basal kept)
LOW_BASAL_REDUCTION_STEPS: Final[tuple[tuple[float, float], ...]] = (
    (75.0, 0.0),
    (85.0, 0.2),
)
LOW_BASAL_DEFAULT_SHARE: Final[float] = 0.4

# ---------------------------------------------------------------------------
# Meal bolus behaviour
# ---------------------------------------------------------------------------

MEAL_CORRECTION_PROBABILITY: Final[float] = 0.85
MEAL_CORRECTION_CAP: Final[float] = 5.0
MIN_MEAL_BOLUS: Final[float] = 0.1

# ---------------------------------------------------------------------------
# Treatment authorship
# ---------------------------------------------------------------------------

ENTERED_BY_USER: Final[str] = "demo-user"
ENTERED_BY_PUMP: Final[str] = "demo-pump"
