"""Day scenario generator.

Picks the archetype of each simulated day and plans what happens on it:
scenario parameters, the pharmacokinetic profile derived from them, the
meal plan with realistic bolus timing, planned temp basals and the
scheduled basal program.

All randomness comes from the ``rng`` argument so a seeded source
reproduces a whole day.
"""

from collections.abc import Sequence
from datetime import UTC, date, datetime, time, timedelta

from glucosim.config import DemoModeSettings
from glucosim.core.simulation.constants import (
    DAILY_VARIATION_RANGE,
    ENTERED_BY_PUMP,
    HIGH_OFFSET,
    MEAL_CORRECTION_CAP,
    MEAL_CORRECTION_PROBABILITY,
    MIN_MEAL_BOLUS,
    PROFILE_AUTOSENS_MAX,
    PROFILE_AUTOSENS_MIN,
    PROFILE_MAX_BASAL,
    PROFILE_MAX_BG,
    PROFILE_MAX_COB,
    PROFILE_MAX_IOB,
    PROFILE_MIN_5M_CARB_IMPACT,
    PROFILE_MIN_BG,
    SCENARIO_RANGES,
    WEEKDAY_SCENARIO_WEIGHTS,
    WEEKEND_SCENARIO_WEIGHTS,
    DailyScaled,
    Uniform,
)
from glucosim.core.simulation.enums import DayScenario, TreatmentEventType
from glucosim.core.simulation.models import (
    BasalAdjustment,
    MealEvent,
    PharmacokineticProfile,
    ScenarioParameters,
    TreatmentEvent,
)
from glucosim.core.simulation.random_source import RandomSource, uniform

# (cumulative probability, offset range [low, high)) per meal; the last tier catches the rest
BolusTimingTiers = Sequence[tuple[float, tuple[int, int]]]

BREAKFAST_BOLUS_TIMING: BolusTimingTiers = (
    (0.25, (-15, -3)),  # pre-bolused
    (0.55, (0, 10)),
    (0.80, (10, 25)),
    (0.93, (25, 50)),
    (1.00, (50, 90)),  # forgot, bolused later
)
LUNCH_BOLUS_TIMING: BolusTimingTiers = (
    (0.20, (-10, 0)),
    (0.50, (0, 10)),
    (0.75, (10, 25)),
    (0.92, (25, 45)),
    (1.00, (45, 75)),
)
DINNER_BOLUS_TIMING: BolusTimingTiers = (
    (0.25, (-15, -3)),
    (0.55, (0, 15)),
    (0.80, (15, 35)),
    (1.00, (35, 60)),
)

# Carb ranges [low, high) by scenario: (low day, high day, any other day)
BREAKFAST_CARBS = ((15, 30), (35, 55), (25, 45))
LUNCH_CARBS = ((20, 40), (40, 65), (30, 50))
DINNER_CARBS = ((25, 45), (45, 70), (35, 60))

BREAKFAST_SKIP_PROBABILITY = 0.1


def day_start(day: date) -> datetime:
    """Midnight UTC at the start of ``day``."""
    return datetime.combine(day, time.min, tzinfo=UTC)


def _is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def select_day_scenario(day: date, rng: RandomSource) -> DayScenario:
    """Weighted choice of the day archetype.

    Weekends use a separate table with more exercise and poor sleep.
    """
    weights = WEEKEND_SCENARIO_WEIGHTS if _is_weekend(day) else WEEKDAY_SCENARIO_WEIGHTS
    roll = rng.randrange(0, 100)
    cumulative = 0
    for scenario, weight in weights:
        cumulative += weight
        if roll < cumulative:
            return scenario
    return weights[-1][0]


def _draw(spec: Uniform | DailyScaled, daily_variation: float, rng: RandomSource) -> float:
    if isinstance(spec, Uniform):
        return uniform(rng, spec.low, spec.high)
    return spec.base + daily_variation * spec.weight


def get_scenario_parameters(
    scenario: DayScenario,
    rng: RandomSource,
    config: DemoModeSettings,
) -> ScenarioParameters:
    """Draw the physiological parameters for one day of ``scenario``."""
    ranges = SCENARIO_RANGES[scenario]
    daily_variation = uniform(rng, *DAILY_VARIATION_RANGE)

    fasting = rng.randrange(*ranges.fasting_glucose)
    carb_factor = _draw(ranges.carb_ratio, daily_variation, rng)
    basal_multiplier = _draw(ranges.basal_multiplier, daily_variation, rng)
    sensitivity = _draw(ranges.insulin_sensitivity_multiplier, daily_variation, rng)
    dawn = _draw(ranges.dawn_phenomenon_strength, daily_variation, rng)

    return ScenarioParameters(
        fasting_glucose=float(fasting),
        carb_ratio=config.carb_ratio * carb_factor,
        basal_multiplier=basal_multiplier,
        insulin_sensitivity_multiplier=sensitivity,
        dawn_phenomenon_strength=dawn,
        has_exercise=ranges.has_exercise,
    )


def create_profile(config: DemoModeSettings, params: ScenarioParameters) -> PharmacokineticProfile:
    """Pharmacokinetic profile for one day: configured therapy scaled by the scenario."""
    return PharmacokineticProfile(
        dia_hours=config.insulin_duration_minutes / 60.0,
        peak_minutes=config.insulin_peak_minutes,
        current_basal_rate=config.basal_rate * params.basal_multiplier,
        carb_ratio=config.carb_ratio / params.insulin_sensitivity_multiplier,
        insulin_sensitivity_factor=(
            config.insulin_sensitivity_factor * params.insulin_sensitivity_multiplier
        ),
        min_bg=PROFILE_MIN_BG,
        max_bg=PROFILE_MAX_BG,
        autosens_min=PROFILE_AUTOSENS_MIN,
        autosens_max=PROFILE_AUTOSENS_MAX,
        max_iob=PROFILE_MAX_IOB,
        max_basal=PROFILE_MAX_BASAL,
        min_5m_carb_impact=PROFILE_MIN_5M_CARB_IMPACT,
        max_cob=PROFILE_MAX_COB,
    )


def _carb_range(scenario: DayScenario, table: tuple[tuple[int, int], ...]) -> tuple[int, int]:
    low, high, other = table
    if scenario == DayScenario.low_day:
        return low
    if scenario == DayScenario.high_day:
        return high
    return other


def _bolus_offset(rng: RandomSource, tiers: BolusTimingTiers) -> int:
    roll = rng.random()
    for threshold, offsets in tiers:
        if roll < threshold:
            return rng.randrange(*offsets)
    return rng.randrange(*tiers[-1][1])


def _main_meal(
    start: datetime,
    rng: RandomSource,
    scenario: DayScenario,
    name: str,
    first_hour: int,
    hour_spread: int,
    carbs: tuple[tuple[int, int], ...],
    timing: BolusTimingTiers,
    gi_range: tuple[float, float],
) -> MealEvent:
    hour = first_hour + rng.randrange(0, hour_spread)
    minute = rng.randrange(0, 12) * 5
    grams = rng.randrange(*_carb_range(scenario, carbs))
    offset = _bolus_offset(rng, timing)
    return MealEvent(
        meal_time=start + timedelta(hours=hour, minutes=minute),
        carbs=float(grams),
        food_type=name,
        bolus_offset_minutes=offset,
        glycemic_index=uniform(rng, *gi_range),
    )


def _snack(
    start: datetime, hours: float, grams: int, offset: int, glycemic_index: float
) -> MealEvent:
    return MealEvent(
        meal_time=start + timedelta(hours=hours),
        carbs=float(grams),
        food_type="Snack",
        bolus_offset_minutes=offset,
        glycemic_index=glycemic_index,
    )


def generate_meal_plan(day: date, scenario: DayScenario, rng: RandomSource) -> list[MealEvent]:
    """Plan the day's meals and snacks.

    Breakfast is skipped 10% of the time; lunch and dinner always happen;
    up to four snacks appear with independent probabilities. Each meal has
    a bolus offset drawn from a tiered distribution of pre-bolus and late
    bolus behaviour.
    """
    start = day_start(day)
    meals: list[MealEvent] = []

    if rng.random() >= BREAKFAST_SKIP_PROBABILITY:
        meals.append(
            _main_meal(
                start, rng, scenario, "Breakfast",
                first_hour=6, hour_spread=4, carbs=BREAKFAST_CARBS,
                timing=BREAKFAST_BOLUS_TIMING, gi_range=(0.7, 1.5),
            )
        )
    meals.append(
        _main_meal(
            start, rng, scenario, "Lunch",
            first_hour=11, hour_spread=3, carbs=LUNCH_CARBS,
            timing=LUNCH_BOLUS_TIMING, gi_range=(0.6, 1.5),
        )
    )
    meals.append(
        _main_meal(
            start, rng, scenario, "Dinner",
            first_hour=17, hour_spread=4, carbs=DINNER_CARBS,
            timing=DINNER_BOLUS_TIMING, gi_range=(0.5, 1.5),
        )
    )

    # Mid-morning snack
    if rng.random() < 0.4:
        offset = rng.randrange(15, 45) if rng.random() < 0.5 else rng.randrange(0, 15)
        hours = uniform(rng, 10, 11.5)
        grams = rng.randrange(10, 20)
        meals.append(_snack(start, hours, grams, offset, uniform(rng, 1.0, 1.4)))

    # Afternoon snack
    if rng.random() < 0.35:
        offset = rng.randrange(10, 40) if rng.random() < 0.6 else rng.randrange(0, 10)
        hours = uniform(rng, 15, 16.5)
        grams = rng.randrange(10, 25)
        meals.append(_snack(start, hours, grams, offset, uniform(rng, 1.0, 1.5)))

    # Late night snack
    if rng.random() < 0.15:
        hours = uniform(rng, 21, 23)
        grams = rng.randrange(8, 20)
        offset = rng.randrange(5, 30)
        meals.append(_snack(start, hours, grams, offset, uniform(rng, 1.0, 1.4)))

    # Unplanned high-GI eating
    if rng.random() < 0.1:
        hours = 8 + rng.randrange(0, 12) + rng.random()
        grams = rng.randrange(8, 15)
        offset = rng.randrange(10, 35)
        meals.append(_snack(start, hours, grams, offset, 1.2))

    return meals


def generate_basal_adjustments(
    day: date,
    scenario: DayScenario,
    rng: RandomSource,
    config: DemoModeSettings,
) -> list[BasalAdjustment]:
    """Plan scenario-driven temp basals (absolute rates)."""
    start = day_start(day)
    adjustments: list[BasalAdjustment] = []

    if scenario == DayScenario.exercise:
        # Reduced basal from the hour before exercise
        exercise_hour = rng.randrange(16, 20)
        adjustments.append(
            BasalAdjustment(
                start + timedelta(hours=exercise_hour - 1), config.basal_rate * 0.5, 120
            )
        )

    if scenario == DayScenario.low_day and rng.random() < 0.5:
        hour = rng.randrange(10, 16)
        adjustments.append(
            BasalAdjustment(start + timedelta(hours=hour), config.basal_rate * 0.6, 60)
        )

    if scenario == DayScenario.high_day and rng.random() < 0.5:
        hour = rng.randrange(10, 18)
        adjustments.append(
            BasalAdjustment(start + timedelta(hours=hour), config.basal_rate * 1.3, 120)
        )

    return adjustments


def circadian_basal_multiplier(hour: int, dawn_strength: float) -> float:
    """Shape of the programmed basal profile over the day."""
    if 3 <= hour < 8:
        return 1.0 + dawn_strength * (1 - abs(hour - 5.5) / 2.5)
    if 12 <= hour < 14:
        return 1.1
    if hour >= 22 or hour < 3:
        return 0.9
    return 1.0


def generate_scheduled_basal(
    day: date,
    params: ScenarioParameters,
    config: DemoModeSettings,
) -> list[TreatmentEvent]:
    """Hourly "Scheduled Basal" records for the pump's basal program."""
    start = day_start(day)
    base_rate = config.basal_rate * params.basal_multiplier
    dawn = params.dawn_phenomenon_strength
    return [
        TreatmentEvent(
            timestamp=start + timedelta(hours=hour),
            event_type=TreatmentEventType.SCHEDULED_BASAL,
            entered_by=ENTERED_BY_PUMP,
            rate=round(base_rate * circadian_basal_multiplier(hour, dawn), 2),
            duration_minutes=60,
        )
        for hour in range(24)
    ]


def calculate_meal_bolus(
    carbs: float,
    glucose: float,
    params: ScenarioParameters,
    rng: RandomSource,
    config: DemoModeSettings,
) -> float:
    """Bolus a person would give for a meal, including human error.

    Carb counting is mostly accurate; a correction is usually added when
    glucose is above target; a rare forgotten or doubled-up dose shrinks
    or grows the total.

    Returns:
        Units rounded to 0.1, never below 0.1
    """
    counting_roll = rng.random()
    if counting_roll < 0.10:
        estimated = carbs * uniform(rng, 0.85, 0.90)
    elif counting_roll < 0.90:
        estimated = carbs * uniform(rng, 0.95, 1.05)
    else:
        estimated = carbs * uniform(rng, 1.0, 1.1)

    total = estimated / params.carb_ratio

    target = config.target_glucose
    if glucose > target + HIGH_OFFSET and rng.random() < MEAL_CORRECTION_PROBABILITY:
        effective_isf = config.insulin_sensitivity_factor * params.insulin_sensitivity_multiplier
        correction = (glucose - target) / effective_isf * uniform(rng, 0.8, 1.0)
        total += min(correction, MEAL_CORRECTION_CAP)

    if rng.random() < 0.02:
        total *= uniform(rng, 0.5, 0.8)
    elif rng.random() < 0.01:
        total *= uniform(rng, 1.3, 1.5)

    return max(MIN_MEAL_BOLUS, round(total, 1))
