"""Insulin and carbohydrate activity curves.

Pure functions describing how much of a single dose is still on board,
and how fast it is acting, a given number of minutes after it started.
Insulin follows the oref exponential curve used by OpenAPS/AAPS for
rapid-acting analogues; carbs follow a triangular absorption profile.
"""

import math

from glucosim.core.simulation.constants import CARB_PEAK_FRACTION, TICK_MINUTES
from glucosim.core.simulation.models import PharmacokineticProfile


def _exponential_shape(peak_minutes: float, dia_minutes: float) -> tuple[float, float, float]:
    """Return (tau, a, S) for the oref exponential insulin curve."""
    tau = peak_minutes * (1 - peak_minutes / dia_minutes) / (1 - 2 * peak_minutes / dia_minutes)
    a = 2 * tau / dia_minutes
    s = 1 / (1 - a + (1 + a) * math.exp(-dia_minutes / tau))
    return tau, a, s


def _uses_exponential_curve(peak_minutes: float, dia_minutes: float) -> bool:
    # The exponential curve is only defined while the peak sits in the first half
    return 0 < peak_minutes < dia_minutes / 2


def _triangle_rate(elapsed: float, peak: float, duration: float) -> float:
    """Unit-area triangle rising to ``peak`` and ending at ``duration``."""
    height = 2.0 / duration
    if elapsed < peak:
        return height * (elapsed / peak)
    return height * ((duration - elapsed) / (duration - peak))


def _triangle_remaining(elapsed: float, peak: float, duration: float) -> float:
    """Area of the unit triangle that lies after ``elapsed``."""
    height = 2.0 / duration
    if elapsed < peak:
        consumed = 0.5 * elapsed * height * (elapsed / peak)
        return 1.0 - consumed
    tail = duration - elapsed
    return 0.5 * tail * height * (tail / (duration - peak))


def insulin_activity(elapsed_minutes: float, profile: PharmacokineticProfile) -> float:
    """Fraction of a 1-unit dose acting per minute.

    Zero before the dose starts and once the duration of insulin action has
    elapsed. Integrates to 1.0 over the dose lifetime.

    Args:
        elapsed_minutes: Minutes since the dose started
        profile: Pharmacokinetic profile supplying DIA and peak time

    Returns:
        Activity in units per minute per unit delivered
    """
    dia = profile.dia_minutes
    if elapsed_minutes <= 0 or elapsed_minutes >= dia:
        return 0.0

    peak = profile.peak_minutes
    if not _uses_exponential_curve(peak, dia):
        return _triangle_rate(elapsed_minutes, min(peak, dia), dia)

    tau, _, s = _exponential_shape(peak, dia)
    t = elapsed_minutes
    return max(0.0, (s / tau**2) * t * (1 - t / dia) * math.exp(-t / tau))


def insulin_on_board(elapsed_minutes: float, profile: PharmacokineticProfile) -> float:
    """Fraction of a dose that has not acted yet.

    Args:
        elapsed_minutes: Minutes since the dose started
        profile: Pharmacokinetic profile supplying DIA and peak time

    Returns:
        Remaining fraction (1.0 at or before start, 0.0 after DIA)
    """
    dia = profile.dia_minutes
    if elapsed_minutes <= 0:
        return 1.0
    if elapsed_minutes >= dia:
        return 0.0

    peak = profile.peak_minutes
    if not _uses_exponential_curve(peak, dia):
        return max(0.0, min(1.0, _triangle_remaining(elapsed_minutes, min(peak, dia), dia)))

    tau, a, s = _exponential_shape(peak, dia)
    t = elapsed_minutes
    remaining = 1 - s * (1 - a) * (
        (t**2 / (tau * dia * (1 - a)) - t / tau - 1) * math.exp(-t / tau) + 1
    )
    return max(0.0, min(1.0, remaining))


def _pulses(units: float, duration_minutes: int) -> tuple[int, float]:
    count = max(1, int(duration_minutes // TICK_MINUTES))
    return count, units / count


def temp_basal_activity(
    elapsed_minutes: float,
    units: float,
    duration_minutes: int,
    profile: PharmacokineticProfile,
) -> float:
    """Activity (U/min) of insulin delivered evenly over a temp-basal window.

    Delivery is discretised into 5-minute pulses, each following the
    single-dose curve.
    """
    count, pulse_units = _pulses(units, duration_minutes)
    return sum(
        pulse_units * insulin_activity(elapsed_minutes - k * TICK_MINUTES, profile)
        for k in range(count)
    )


def temp_basal_on_board(
    elapsed_minutes: float,
    units: float,
    duration_minutes: int,
    profile: PharmacokineticProfile,
) -> float:
    """Units of a temp-basal window still on board (undelivered pulses included)."""
    count, pulse_units = _pulses(units, duration_minutes)
    return sum(
        pulse_units * insulin_on_board(elapsed_minutes - k * TICK_MINUTES, profile)
        for k in range(count)
    )


def carb_absorption_rate(elapsed_minutes: float, absorption_hours: float) -> float:
    """Fraction of a meal absorbed per minute.

    Triangular profile peaking a third of the way through the window.
    Zero outside the window and for non-positive windows.
    """
    duration = absorption_hours * 60.0
    if duration <= 0 or elapsed_minutes <= 0 or elapsed_minutes >= duration:
        return 0.0
    return _triangle_rate(elapsed_minutes, duration * CARB_PEAK_FRACTION, duration)


def carbs_on_board(elapsed_minutes: float, absorption_hours: float) -> float:
    """Fraction of a meal not yet absorbed."""
    duration = absorption_hours * 60.0
    if elapsed_minutes <= 0:
        return 1.0
    if duration <= 0 or elapsed_minutes >= duration:
        return 0.0
    remaining = _triangle_remaining(elapsed_minutes, duration * CARB_PEAK_FRACTION, duration)
    return max(0.0, min(1.0, remaining))


def absorption_hours_for_glycemic_index(base_minutes: float, glycemic_index: float) -> float:
    """Absorption window for a meal: higher glycemic index absorbs faster."""
    return base_minutes / 60.0 / glycemic_index


def insulin_glucose_effect(
    activity_units_per_minute: float,
    profile: PharmacokineticProfile,
    interval_minutes: float = TICK_MINUTES,
) -> float:
    """Glucose drop (mg/dL) caused by insulin acting over one interval."""
    return activity_units_per_minute * profile.insulin_sensitivity_factor * interval_minutes


def carb_glucose_effect(
    grams_per_minute: float,
    profile: PharmacokineticProfile,
    interval_minutes: float = TICK_MINUTES,
) -> float:
    """Glucose rise (mg/dL) caused by carbs absorbed over one interval."""
    carb_sensitivity = profile.insulin_sensitivity_factor / profile.carb_ratio
    return grams_per_minute * carb_sensitivity * interval_minutes
