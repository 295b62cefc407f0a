"""Tests for the physiology simulator."""

from datetime import timedelta

import pytest

from glucosim.core.simulation.physiology import PhysiologySimulator


@pytest.fixture
def simulator(profile):
    return PhysiologySimulator(profile)


class TestDosesAndCarbs:
    """Tests for recording insulin and carbs."""

    def test_add_insulin_dose(self, simulator, fixed_now):
        dose = simulator.add_insulin_dose(fixed_now, 2.0)

        assert dose.units == 2.0
        assert not dose.is_temp_basal
        assert simulator.insulin_doses == [dose]

    def test_duration_ignored_for_boluses(self, simulator, fixed_now):
        dose = simulator.add_insulin_dose(fixed_now, 1.0, duration_minutes=30)
        assert dose.temp_basal_duration_minutes == 0

    def test_add_carbs(self, simulator, fixed_now):
        event = simulator.add_carbs(fixed_now, 45.0, 3.0)

        assert event.grams == 45.0
        assert simulator.carb_events == [event]


class TestSimulateNextGlucose:
    """Tests for the insulin/carb contribution to the next glucose value."""

    def test_unchanged_without_doses(self, simulator, fixed_now):
        assert simulator.simulate_next_glucose(120.0, fixed_now) == 120.0

    def test_insulin_lowers_glucose(self, simulator, fixed_now):
        simulator.add_insulin_dose(fixed_now, 2.0)
        later = fixed_now + timedelta(minutes=75)

        assert simulator.simulate_next_glucose(150.0, later) < 150.0

    def test_carbs_raise_glucose(self, simulator, fixed_now):
        simulator.add_carbs(fixed_now, 40.0, 3.0)
        later = fixed_now + timedelta(minutes=60)

        assert simulator.simulate_next_glucose(100.0, later) > 100.0

    def test_future_dose_has_no_effect_yet(self, simulator, fixed_now):
        simulator.add_insulin_dose(fixed_now + timedelta(minutes=30), 5.0)

        assert simulator.simulate_next_glucose(120.0, fixed_now) == 120.0
        assert simulator.insulin_on_board(fixed_now) == 0.0

    def test_negative_temp_basal_raises_glucose(self, simulator, fixed_now):
        simulator.add_insulin_dose(fixed_now, -0.5, is_temp_basal=True, duration_minutes=30)
        later = fixed_now + timedelta(minutes=60)

        assert simulator.simulate_next_glucose(100.0, later) > 100.0

    def test_matching_carbs_and_insulin_roughly_cancel_over_time(self, simulator, fixed_now):
        """30 g covered by 3 U at a 10 g/U ratio nets out by the end of DIA."""
        simulator.add_carbs(fixed_now, 30.0, 3.0)
        simulator.add_insulin_dose(fixed_now, 3.0)

        glucose = 100.0
        now = fixed_now
        for _ in range(48):
            glucose = simulator.simulate_next_glucose(glucose, now)
            now += timedelta(minutes=5)

        assert glucose == pytest.approx(100.0, abs=5.0)


class TestOnBoard:
    """Tests for insulin and carbs on board."""

    def test_full_dose_on_board_at_start(self, simulator, fixed_now):
        simulator.add_insulin_dose(fixed_now, 3.0)
        assert simulator.insulin_on_board(fixed_now) == pytest.approx(3.0)

    def test_iob_decays(self, simulator, fixed_now):
        simulator.add_insulin_dose(fixed_now, 3.0)
        assert simulator.insulin_on_board(fixed_now + timedelta(hours=2)) < 3.0
        assert simulator.insulin_on_board(fixed_now + timedelta(hours=4)) == 0.0

    def test_carbs_on_board(self, simulator, fixed_now):
        simulator.add_carbs(fixed_now, 30.0, 3.0)
        assert simulator.carbs_on_board(fixed_now) == pytest.approx(30.0)
        assert simulator.carbs_on_board(fixed_now + timedelta(hours=1)) == pytest.approx(20.0)


class TestCleanupExpired:
    """Tests for dropping records whose action has finished."""

    def test_keeps_dose_until_dia_elapsed(self, simulator, fixed_now):
        simulator.add_insulin_dose(fixed_now, 1.0)

        assert simulator.cleanup_expired(fixed_now + timedelta(minutes=240)) == 0
        assert simulator.cleanup_expired(fixed_now + timedelta(minutes=245)) == 1
        assert simulator.insulin_doses == []

    def test_temp_basal_lives_for_dia_plus_duration(self, simulator, fixed_now):
        simulator.add_insulin_dose(fixed_now, 0.5, is_temp_basal=True, duration_minutes=30)

        assert simulator.cleanup_expired(fixed_now + timedelta(minutes=265)) == 0
        assert simulator.cleanup_expired(fixed_now + timedelta(minutes=275)) == 1

    def test_carbs_expire_after_absorption(self, simulator, fixed_now):
        simulator.add_carbs(fixed_now, 20.0, 2.0)

        assert simulator.cleanup_expired(fixed_now + timedelta(hours=2)) == 0
        assert simulator.cleanup_expired(fixed_now + timedelta(hours=2, minutes=5)) == 1
        assert simulator.carb_events == []

    def test_removes_only_expired(self, simulator, fixed_now):
        simulator.add_insulin_dose(fixed_now, 1.0)
        simulator.add_insulin_dose(fixed_now + timedelta(hours=3), 1.0)

        removed = simulator.cleanup_expired(fixed_now + timedelta(hours=5))

        assert removed == 1
        assert len(simulator.insulin_doses) == 1
