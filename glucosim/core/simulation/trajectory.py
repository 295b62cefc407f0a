"""Glucose trajectory engine.

Drives the physiology simulator through a day in 5-minute ticks, layers
scenario effects on top of the insulin/carb physiology, reacts to highs
and lows the way an automated insulin delivery system would, and emits
CGM readings and treatment records.

Two insulin-on-board figures exist on purpose: the simulator tracks every
dose precisely, while the engine keeps a cheap decaying estimate that only
gates how aggressive corrections are.
"""

import math
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta

from glucosim.config import DemoModeSettings
from glucosim.core.simulation import activity
from glucosim.core.simulation.constants import (
    AUTO_CORRECTION_BOUNDS,
    AUTO_CORRECTION_MIN_NEED,
    AUTO_CORRECTION_OFFSET,
    AUTO_CORRECTION_SHARE,
    BASAL_COVERAGE_PER_MULTIPLIER,
    CARRY_OVER_MOMENTUM_FACTOR,
    CGM_NOISE_AMPLITUDE,
    DAWN_EFFECT_SCALE,
    DAWN_END_HOUR,
    DAWN_START_HOUR,
    ENTERED_BY_PUMP,
    ENTERED_BY_USER,
    EXERCISE_EFFECT_WINDOWS,
    FALLING_MOMENTUM_THRESHOLD,
    FALLING_SUSPEND_THRESHOLD,
    GLUCOSE_FLOOR,
    HIGH_OFFSET,
    HIGH_TEMP_BASAL_BASE,
    HIGH_TEMP_BASAL_MAX_BOOST,
    HIGH_TEMP_BASAL_SCALE,
    IOB_STACKING_WEIGHT,
    LIVER_OUTPUT_BASE,
    LIVER_OUTPUT_SPREAD,
    LOW_BASAL_DEFAULT_SHARE,
    LOW_BASAL_REDUCTION_STEPS,
    LOW_SUSPEND_THRESHOLD,
    LOW_TREATMENT_ABSORPTION_HOURS,
    LOW_TREATMENT_THRESHOLD,
    MANUAL_CORRECTION_BOUNDS,
    MANUAL_CORRECTION_OFFSET,
    MANUAL_CORRECTION_PROBABILITY,
    MAX_MOMENTUM_PER_TICK,
    MICRO_BOLUS_BOUNDS,
    MICRO_BOLUS_MIN_NEED,
    MICRO_BOLUS_SHARE,
    MILD_LOW_CARBS,
    MOMENTUM_RETENTION,
    SENSOR_ARTIFACT_AMPLITUDE,
    SENSOR_ARTIFACT_PROBABILITY,
    SEVERE_LOW_CARBS,
    SEVERE_LOW_THRESHOLD,
    TICK_MINUTES,
    WAKING_HOURS,
)
from glucosim.core.simulation.enums import DayScenario, DayState, TreatmentEventType, TrendDirection
from glucosim.core.simulation.models import (
    BasalAdjustment,
    DayCarryOver,
    DayResult,
    GlucoseReading,
    MealEvent,
    ScenarioParameters,
    TreatmentEvent,
)
from glucosim.core.simulation.physiology import PhysiologySimulator
from glucosim.core.simulation.random_source import (
    RandomSource,
    centered,
    create_random_source,
    uniform,
)
from glucosim.core.simulation.scenarios import (
    calculate_meal_bolus,
    create_profile,
    day_start,
    generate_basal_adjustments,
    generate_meal_plan,
    generate_scheduled_basal,
    get_scenario_parameters,
    select_day_scenario,
)
from glucosim.logging_config import get_logger

logger = get_logger(__name__)

# Half-width of the window in which a planned basal adjustment matches a tick
BASAL_MATCH_TOLERANCE_MINUTES = TICK_MINUTES / 2


def calculate_direction(delta: float) -> TrendDirection:
    """Map a 5-minute glucose change onto a CGM trend arrow."""
    if delta > 10:
        return TrendDirection.DOUBLE_UP
    if delta > 5:
        return TrendDirection.SINGLE_UP
    if delta > 2:
        return TrendDirection.FORTY_FIVE_UP
    if delta > -2:
        return TrendDirection.FLAT
    if delta > -5:
        return TrendDirection.FORTY_FIVE_DOWN
    if delta > -10:
        return TrendDirection.SINGLE_DOWN
    return TrendDirection.DOUBLE_DOWN


def _clamp(value: float, bounds: tuple[float, float]) -> float:
    low, high = bounds
    return max(low, min(high, value))


def _fractional_hour(moment: datetime) -> float:
    return moment.hour + moment.minute / 60.0


def dawn_effect(hour: float, params: ScenarioParameters) -> float:
    """Liver glucose release in the early morning, peaking around 6am."""
    if not DAWN_START_HOUR <= hour < DAWN_END_HOUR:
        return 0.0
    span = DAWN_END_HOUR - DAWN_START_HOUR
    intensity = math.sin((hour - DAWN_START_HOUR) * math.pi / span)
    return params.dawn_phenomenon_strength * DAWN_EFFECT_SCALE * intensity


def exercise_effect(hour: float, params: ScenarioParameters) -> float:
    """Glucose drop from exercise and the increased sensitivity after it."""
    if not params.has_exercise:
        return 0.0
    for start, end, effect in EXERCISE_EFFECT_WINDOWS:
        in_window = start <= hour < end if start < end else hour >= start or hour < end
        if in_window:
            return effect
    return 0.0


@dataclass
class _DayRun:
    """Mutable state of one day being simulated."""

    scenario: DayScenario
    params: ScenarioParameters
    simulator: PhysiologySimulator
    result: DayResult
    glucose: float
    momentum: float
    estimated_iob: float = 0.0
    pending_adjustments: list[BasalAdjustment] = field(default_factory=list)


class GlucoseTrajectoryEngine:
    """Generates synthetic CGM and treatment data from the demo configuration.

    Historical days are simulated one after another so glucose and momentum
    carry across midnight. Live mode advances an independent random walk.
    """

    def __init__(self, config: DemoModeSettings, rng: RandomSource | None = None):
        self.config = config
        self.rng = rng if rng is not None else create_random_source(config.seed)
        self.state = DayState.not_started
        self.current_glucose = config.initial_glucose

    # ------------------------------------------------------------------
    # Record factories
    # ------------------------------------------------------------------

    def _reading(
        self, timestamp: datetime, glucose: float, delta: float, noise_max: int
    ) -> GlucoseReading:
        return GlucoseReading(
            timestamp=timestamp,
            value=round(glucose),
            delta=round(delta, 1),
            direction=calculate_direction(delta),
            device=self.config.device,
            filtered=round(glucose + centered(self.rng, 2)),
            unfiltered=round(glucose + centered(self.rng, 5)),
            rssi=self.rng.randrange(0, 101),
            noise=self.rng.randrange(0, noise_max),
        )

    @staticmethod
    def _temp_basal(timestamp: datetime, rate: float, duration: int) -> TreatmentEvent:
        return TreatmentEvent(
            timestamp=timestamp,
            event_type=TreatmentEventType.TEMP_BASAL,
            entered_by=ENTERED_BY_PUMP,
            rate=rate,
            duration_minutes=duration,
        )

    # ------------------------------------------------------------------
    # Day simulation
    # ------------------------------------------------------------------

    def _schedule_meals(self, run: _DayRun, meal_plan: list[MealEvent]) -> None:
        """Load the whole meal plan into the simulator before the first tick."""
        start_glucose = run.glucose
        for meal in meal_plan:
            absorption = activity.absorption_hours_for_glycemic_index(
                self.config.carb_absorption_duration_minutes, meal.glycemic_index
            )
            run.simulator.add_carbs(meal.meal_time, meal.carbs, absorption)

            bolus = calculate_meal_bolus(
                meal.carbs, start_glucose, run.params, self.rng, self.config
            )
            run.simulator.add_insulin_dose(meal.bolus_time, bolus)

            run.result.treatments.append(
                TreatmentEvent(
                    timestamp=meal.meal_time,
                    event_type=TreatmentEventType.CARBS,
                    entered_by=ENTERED_BY_USER,
                    carbs=meal.carbs,
                    food_type=meal.food_type,
                )
            )
            run.result.treatments.append(
                TreatmentEvent(
                    timestamp=meal.bolus_time,
                    event_type=(
                        TreatmentEventType.SNACK_BOLUS
                        if meal.is_snack
                        else TreatmentEventType.MEAL_BOLUS
                    ),
                    entered_by=ENTERED_BY_USER,
                    insulin=bolus,
                )
            )

    def _apply_basal_adjustment(self, run: _DayRun, now: datetime) -> None:
        for adjustment in run.pending_adjustments:
            offset = abs((adjustment.time - now).total_seconds()) / 60.0
            if offset < BASAL_MATCH_TOLERANCE_MINUTES:
                run.result.treatments.append(
                    self._temp_basal(now, adjustment.rate, adjustment.duration_minutes)
                )
                run.simulator.add_insulin_dose(
                    now,
                    adjustment.rate * adjustment.duration_minutes / 60.0,
                    is_temp_basal=True,
                    duration_minutes=adjustment.duration_minutes,
                )
                run.pending_adjustments.remove(adjustment)
                return

    def _advance_glucose(self, run: _DayRun, now: datetime) -> float:
        """One tick of physiology plus scenario effects, smoothed through momentum."""
        hour = _fractional_hour(now)
        physiology_change = run.simulator.simulate_next_glucose(run.glucose, now) - run.glucose

        liver_output = LIVER_OUTPUT_BASE + self.rng.random() * LIVER_OUTPUT_SPREAD
        basal_coverage = run.params.basal_multiplier * BASAL_COVERAGE_PER_MULTIPLIER
        net_change = (
            physiology_change
            + (liver_output - basal_coverage)
            + dawn_effect(hour, run.params)
            + exercise_effect(hour, run.params)
        )
        target_change = net_change + centered(self.rng, CGM_NOISE_AMPLITUDE)

        momentum = run.momentum * MOMENTUM_RETENTION + target_change * (1 - MOMENTUM_RETENTION)
        run.momentum = _clamp(momentum, (-MAX_MOMENTUM_PER_TICK, MAX_MOMENTUM_PER_TICK))

        glucose = run.glucose + run.momentum
        if self.rng.random() < SENSOR_ARTIFACT_PROBABILITY:
            glucose += centered(self.rng, SENSOR_ARTIFACT_AMPLITUDE)

        if run.scenario == DayScenario.sick_day:
            glucose += self.rng.random() - 0.3
        elif run.scenario == DayScenario.stress_day and self.rng.random() < 0.05:
            glucose += self.rng.randrange(2, 6)

        return glucose

    def _treat_low(self, run: _DayRun, now: datetime) -> None:
        carb_range = SEVERE_LOW_CARBS if run.glucose < SEVERE_LOW_THRESHOLD else MILD_LOW_CARBS
        grams = self.rng.randrange(*carb_range)
        run.result.treatments.append(
            TreatmentEvent(
                timestamp=now,
                event_type=TreatmentEventType.CARB_CORRECTION,
                entered_by=ENTERED_BY_USER,
                carbs=float(grams),
                notes="Low treatment",
            )
        )
        run.simulator.add_carbs(now, grams, LOW_TREATMENT_ABSORPTION_HOURS)

    def _deliver(self, run: _DayRun, now: datetime, units: float) -> None:
        run.simulator.add_insulin_dose(now, units)
        run.estimated_iob += units

    def _treat_high(self, run: _DayRun, now: datetime) -> None:
        target = self.config.target_glucose
        above_target = run.glucose - target
        effective_isf = (
            self.config.insulin_sensitivity_factor * run.params.insulin_sensitivity_multiplier
        )
        needed = above_target / effective_isf
        to_deliver = max(0.0, needed - run.estimated_iob * IOB_STACKING_WEIGHT)

        if now.minute in (0, 30):
            duration = self.config.temp_basal_duration_minutes
            boost = min(HIGH_TEMP_BASAL_MAX_BOOST, above_target / HIGH_TEMP_BASAL_SCALE)
            rate = self.config.basal_rate * (HIGH_TEMP_BASAL_BASE + boost)
            run.result.treatments.append(self._temp_basal(now, round(rate, 2), duration))
            # Only the insulin above the scheduled basal changes glucose
            extra = (rate - self.config.basal_rate) * duration / 60.0
            run.simulator.add_insulin_dose(
                now, extra, is_temp_basal=True, duration_minutes=duration
            )
            run.estimated_iob += extra

        waking_start, waking_end = WAKING_HOURS
        is_waking = waking_start <= now.hour < waking_end
        if (
            is_waking
            and run.glucose > target + MANUAL_CORRECTION_OFFSET
            and self.rng.random() < MANUAL_CORRECTION_PROBABILITY
        ):
            bolus = _clamp(needed, MANUAL_CORRECTION_BOUNDS)
            run.result.treatments.append(
                TreatmentEvent(
                    timestamp=now,
                    event_type=TreatmentEventType.CORRECTION_BOLUS,
                    entered_by=ENTERED_BY_USER,
                    insulin=round(bolus, 1),
                    notes="Manual correction",
                )
            )
            self._deliver(run, now, bolus)
        elif (
            run.glucose > target + AUTO_CORRECTION_OFFSET
            and now.minute % TICK_MINUTES == 0
            and to_deliver > AUTO_CORRECTION_MIN_NEED
        ):
            share = uniform(self.rng, *AUTO_CORRECTION_SHARE)
            bolus = _clamp(to_deliver * share, AUTO_CORRECTION_BOUNDS)
            run.result.treatments.append(
                TreatmentEvent(
                    timestamp=now,
                    event_type=TreatmentEventType.CORRECTION_BOLUS,
                    entered_by=ENTERED_BY_PUMP,
                    insulin=round(bolus, 1),
                )
            )
            self._deliver(run, now, bolus)
        elif to_deliver > MICRO_BOLUS_MIN_NEED:
            bolus = _clamp(to_deliver * MICRO_BOLUS_SHARE, MICRO_BOLUS_BOUNDS)
            run.result.treatments.append(
                TreatmentEvent(
                    timestamp=now,
                    event_type=TreatmentEventType.SMB,
                    entered_by=ENTERED_BY_PUMP,
                    insulin=round(bolus, 2),
                )
            )
            self._deliver(run, now, bolus)

    def _reduce_basal(self, run: _DayRun, now: datetime) -> None:
        """Predictive low suspend: cut the basal rate while low or falling."""
        if now.minute not in (0, 30):
            return
        share = LOW_BASAL_DEFAULT_SHARE
        for threshold, step_share in LOW_BASAL_REDUCTION_STEPS:
            if run.glucose < threshold:
                share = step_share
                break
        basal = self.config.basal_rate
        reduced = basal * share
        duration = self.config.temp_basal_duration_minutes
        run.result.treatments.append(self._temp_basal(now, round(reduced, 2), duration))
        run.simulator.add_insulin_dose(
            now,
            -(basal - reduced) * duration / 60.0,
            is_temp_basal=True,
            duration_minutes=duration,
        )

    def _react(self, run: _DayRun, now: datetime) -> None:
        target = self.config.target_glucose
        if run.glucose < LOW_TREATMENT_THRESHOLD:
            self._treat_low(run, now)
        elif run.glucose > target + HIGH_OFFSET:
            self._treat_high(run, now)
        elif run.glucose < LOW_SUSPEND_THRESHOLD or (
            run.glucose < FALLING_SUSPEND_THRESHOLD and run.momentum < FALLING_MOMENTUM_THRESHOLD
        ):
            self._reduce_basal(run, now)

    def simulate_day(
        self,
        day: date,
        scenario: DayScenario,
        params: ScenarioParameters,
        meal_plan: list[MealEvent],
        basal_adjustments: list[BasalAdjustment],
        start_glucose: float | None = None,
        start_momentum: float = 0.0,
    ) -> DayResult:
        """Simulate one calendar day (UTC) in 5-minute ticks.

        Args:
            day: Calendar day to simulate
            scenario: Archetype of the day
            params: Scenario parameters drawn for the day
            meal_plan: Meals and their boluses
            basal_adjustments: Planned temp basals
            start_glucose: Glucose at midnight; drawn around the fasting level if None
            start_momentum: Momentum at midnight (already damped by the caller)

        Returns:
            Readings, treatments and the state to carry into the next day
        """
        self.state = DayState.simulating
        if start_glucose is None:
            start_glucose = params.fasting_glucose + centered(self.rng, 20)

        run = _DayRun(
            scenario=scenario,
            params=params,
            simulator=PhysiologySimulator(create_profile(self.config, params)),
            result=DayResult(day=day, scenario=scenario, parameters=params),
            glucose=start_glucose,
            momentum=start_momentum,
            pending_adjustments=list(basal_adjustments),
        )
        self._schedule_meals(run, meal_plan)

        iob_decay = 1.0 - TICK_MINUTES / self.config.insulin_duration_minutes
        last_glucose = run.glucose
        now = day_start(day)
        end = now + timedelta(days=1)

        while now < end:
            self._apply_basal_adjustment(run, now)

            glucose = self._advance_glucose(run, now)
            run.glucose = max(GLUCOSE_FLOOR, min(self.config.max_glucose, glucose))
            run.estimated_iob *= iob_decay

            self._react(run, now)

            run.result.readings.append(
                self._reading(now, run.glucose, run.glucose - last_glucose, noise_max=3)
            )
            last_glucose = run.glucose

            now += timedelta(minutes=TICK_MINUTES)
            run.simulator.cleanup_expired(now)

        run.result.treatments.extend(generate_scheduled_basal(day, params, self.config))
        run.result.ending_glucose = run.glucose
        run.result.ending_momentum = run.momentum
        self.state = DayState.day_complete

        logger.debug(
            "Simulated demo day",
            day=day.isoformat(),
            scenario=str(scenario),
            readings=len(run.result.readings),
            treatments=len(run.result.treatments),
            ending_glucose=round(run.glucose, 1),
        )
        return run.result

    def generate_day(self, day: date, carry: DayCarryOver | None = None) -> DayResult:
        """Plan and simulate one day, continuing from ``carry`` when given."""
        scenario = select_day_scenario(day, self.rng)
        params = get_scenario_parameters(scenario, self.rng, self.config)
        meal_plan = generate_meal_plan(day, scenario, self.rng)
        adjustments = generate_basal_adjustments(day, scenario, self.rng, self.config)

        if carry is None:
            return self.simulate_day(day, scenario, params, meal_plan, adjustments)
        return self.simulate_day(
            day,
            scenario,
            params,
            meal_plan,
            adjustments,
            start_glucose=carry.glucose,
            start_momentum=carry.momentum * CARRY_OVER_MOMENTUM_FACTOR,
        )

    def iter_historical_days(self, end: datetime | None = None) -> Iterator[DayResult]:
        """Yield simulated days from ``history_days`` before ``end`` up to its day.

        Days are produced sequentially because each one starts where the
        previous one ended.
        """
        end = end or datetime.now(UTC)
        current = (end - timedelta(days=self.config.history_days)).date()
        last = end.date()
        carry: DayCarryOver | None = None

        while current <= last:
            result = self.generate_day(current, carry)
            carry = DayCarryOver(glucose=result.ending_glucose, momentum=result.ending_momentum)
            yield result
            current += timedelta(days=1)

    def generate_historical_data(
        self, end: datetime | None = None
    ) -> tuple[list[GlucoseReading], list[TreatmentEvent]]:
        """Collect every reading and treatment of the backfill window."""
        end = end or datetime.now(UTC)
        readings: list[GlucoseReading] = []
        treatments: list[TreatmentEvent] = []

        logger.info(
            "Generating historical demo data",
            start=(end - timedelta(days=self.config.history_days)).date().isoformat(),
            end=end.date().isoformat(),
        )
        for result in self.iter_historical_days(end):
            readings.extend(result.readings)
            treatments.extend(result.treatments)

        logger.info(
            "Generated historical demo data",
            entries=len(readings),
            treatments=len(treatments),
        )
        return readings, treatments

    # ------------------------------------------------------------------
    # Live mode
    # ------------------------------------------------------------------

    def _random_walk_step(self) -> float:
        """Gaussian step (Box-Muller) scaled by the configured walk variance."""
        u1 = 1.0 - self.rng.random()
        u2 = self.rng.random()
        z0 = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
        return z0 * self.config.walk_variance

    def generate_current_entry(self, now: datetime | None = None) -> GlucoseReading:
        """Advance the live random walk and return a reading for ``now``."""
        now = now or datetime.now(UTC)
        change = self._random_walk_step()
        self.current_glucose = max(
            self.config.min_glucose,
            min(self.config.max_glucose, self.current_glucose + change),
        )
        return self._reading(now, self.current_glucose, change, noise_max=5)
