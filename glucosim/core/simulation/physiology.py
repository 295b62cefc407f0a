"""Physiology simulator.

Keeps the active insulin doses and carb intakes of one simulated day and
turns them into the insulin/carb part of the next glucose value. It is a
numerical integrator, not a validator: negative units (temp-basal
reductions) or odd carb amounts are accepted as given.
"""

from datetime import datetime, timedelta

from glucosim.core.simulation import activity
from glucosim.core.simulation.constants import TICK_MINUTES
from glucosim.core.simulation.models import CarbEvent, InsulinDose, PharmacokineticProfile
from glucosim.logging_config import get_logger

logger = get_logger(__name__)


def _elapsed_minutes(start: datetime, at_time: datetime) -> float:
    return (at_time - start).total_seconds() / 60.0


class PhysiologySimulator:
    """Accumulates doses and carbs and sums their glucose effect per tick."""

    def __init__(self, profile: PharmacokineticProfile):
        self.profile = profile
        self.insulin_doses: list[InsulinDose] = []
        self.carb_events: list[CarbEvent] = []

    def add_insulin_dose(
        self,
        time: datetime,
        units: float,
        is_temp_basal: bool = False,
        duration_minutes: int = 0,
    ) -> InsulinDose:
        """Schedule an insulin delivery starting at ``time``."""
        dose = InsulinDose(
            start_time=time,
            units=units,
            is_temp_basal=is_temp_basal,
            temp_basal_duration_minutes=duration_minutes if is_temp_basal else 0,
        )
        self.insulin_doses.append(dose)
        return dose

    def add_carbs(self, time: datetime, grams: float, absorption_hours: float) -> CarbEvent:
        """Schedule a carb intake starting at ``time``."""
        event = CarbEvent(start_time=time, grams=grams, absorption_hours=absorption_hours)
        self.carb_events.append(event)
        return event

    def _dose_activity(self, dose: InsulinDose, at_time: datetime) -> float:
        elapsed = _elapsed_minutes(dose.start_time, at_time)
        if dose.is_temp_basal:
            return activity.temp_basal_activity(
                elapsed, dose.units, dose.temp_basal_duration_minutes, self.profile
            )
        return dose.units * activity.insulin_activity(elapsed, self.profile)

    def insulin_activity(self, at_time: datetime) -> float:
        """Total insulin activity (U/min) of all active doses."""
        return sum(self._dose_activity(dose, at_time) for dose in self.insulin_doses)

    def carb_absorption(self, at_time: datetime) -> float:
        """Total carb absorption rate (g/min) of all active intakes."""
        return sum(
            event.grams
            * activity.carb_absorption_rate(
                _elapsed_minutes(event.start_time, at_time), event.absorption_hours
            )
            for event in self.carb_events
        )

    def insulin_on_board(self, at_time: datetime) -> float:
        """Units not yet acted, summed over every dose that has started."""
        total = 0.0
        for dose in self.insulin_doses:
            elapsed = _elapsed_minutes(dose.start_time, at_time)
            if elapsed < 0:
                continue  # scheduled for later
            if dose.is_temp_basal:
                total += activity.temp_basal_on_board(
                    elapsed, dose.units, dose.temp_basal_duration_minutes, self.profile
                )
            else:
                total += dose.units * activity.insulin_on_board(elapsed, self.profile)
        return total

    def carbs_on_board(self, at_time: datetime) -> float:
        """Grams not yet absorbed, summed over every intake that has started."""
        total = 0.0
        for event in self.carb_events:
            elapsed = _elapsed_minutes(event.start_time, at_time)
            if elapsed < 0:
                continue
            total += event.grams * activity.carbs_on_board(elapsed, event.absorption_hours)
        return total

    def simulate_next_glucose(
        self,
        current_glucose: float,
        time: datetime,
        interval_minutes: float = TICK_MINUTES,
    ) -> float:
        """Glucose after one interval, counting only insulin and carb action.

        Scenario effects (liver output, dawn, exercise, sensor noise) are
        layered on by the caller.
        """
        insulin_drop = activity.insulin_glucose_effect(
            self.insulin_activity(time), self.profile, interval_minutes
        )
        carb_rise = activity.carb_glucose_effect(
            self.carb_absorption(time), self.profile, interval_minutes
        )
        return current_glucose - insulin_drop + carb_rise

    def _insulin_expiry(self, dose: InsulinDose) -> datetime:
        window = self.profile.dia_minutes + dose.temp_basal_duration_minutes
        return dose.start_time + timedelta(minutes=window)

    def cleanup_expired(self, time: datetime) -> int:
        """Drop doses and carbs whose action window has fully elapsed.

        Returns:
            Number of records removed
        """
        before = len(self.insulin_doses) + len(self.carb_events)
        self.insulin_doses = [d for d in self.insulin_doses if time <= self._insulin_expiry(d)]
        self.carb_events = [
            e
            for e in self.carb_events
            if time <= e.start_time + timedelta(hours=max(e.absorption_hours, 0.0))
        ]
        removed = before - len(self.insulin_doses) - len(self.carb_events)
        if removed:
            logger.debug(
                "Expired simulator records removed",
                removed=removed,
                active_doses=len(self.insulin_doses),
                active_carbs=len(self.carb_events),
            )
        return removed
