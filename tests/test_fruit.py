"""Tests for swd_sim.fruit: fruit-quality proxy and harvest latch."""

import numpy as np
import pytest

from swd_sim.fruit import MAX_QUALITY, MIN_QUALITY, FruitQualityModel
from swd_sim.parameters import Parameters


def run_days(model, temperatures, dt=0.05, start=0.0):
    """Step the model through whole days; return one quality per step."""
    out = []
    steps_per_day = int(round(1.0 / dt))
    for d, T in enumerate(temperatures):
        for k in range(steps_per_day):
            t = round(start + d + k * dt, 9)
            out.append(model.update(T, dt, t))
    return np.array(out)


class TestFruitQuality:
    def test_initial_state(self):
        model = FruitQualityModel()
        assert model.quality == MIN_QUALITY
        assert model.day_crossed_max == -1.0
        assert not model.harvest_triggered

    def test_from_parameters(self):
        p = Parameters({"fruit time lag": 20, "fruit gt multiplier": 6})
        model = FruitQualityModel.from_parameters(p)
        assert model.time_lag == 20.0
        assert model.gt_multiplier == 6.0

    def test_stays_in_bounds(self):
        rng = np.random.default_rng(1)
        temps = rng.uniform(-5, 35, size=400)
        q = run_days(FruitQualityModel(), temps)
        assert q.min() >= MIN_QUALITY
        assert q.max() <= MAX_QUALITY

    def test_no_ripening_at_base_temperature(self):
        q = run_days(FruitQualityModel(base_temp=4.0), [4.0] * 30)
        np.testing.assert_array_equal(q, MIN_QUALITY)

    def test_ripens_when_warm(self):
        model = FruitQualityModel()
        q = run_days(model, [25.0] * 80)
        assert q[-1] > 0.9
        assert model.day_crossed_max > 0

    def test_harvest_declines_after_lag(self):
        model = FruitQualityModel(time_lag=10)
        q = run_days(model, [25.0] * 200)
        assert model.harvest_triggered
        assert q.max() == MAX_QUALITY
        assert q[-1] == pytest.approx(MIN_QUALITY)

    def test_day_zero_resets_quality(self):
        model = FruitQualityModel()
        model.quality = 0.7
        model.harvest_triggered = True
        # T at base temperature: no ripening, and the latch is cleared
        assert model.update(0.0, 0.05, 365.0) == MIN_QUALITY
        assert not model.harvest_triggered

    def test_daily_buffer_written(self):
        model = FruitQualityModel()
        run_days(model, [25.0] * 5)
        assert model.daily[4] > model.daily[0]
        assert model.daily[100] == MIN_QUALITY

    def test_reset(self):
        model = FruitQualityModel()
        run_days(model, [25.0] * 80)
        model.reset()
        assert model.quality == MIN_QUALITY
        assert model.day_crossed_max == -1.0
        np.testing.assert_array_equal(model.daily, MIN_QUALITY)

    def test_configure_keeps_state(self):
        model = FruitQualityModel()
        run_days(model, [25.0] * 10)
        q = model.quality
        model.configure(Parameters({"fruit harvest drop": 0.5}))
        assert model.harvest_drop == 0.5
        assert model.quality == q


class TestLaggedQuality:
    def test_before_lag_window(self):
        model = FruitQualityModel(time_lag=50)
        model.daily[:] = 0.99
        assert model.lagged_quality(30) == MIN_QUALITY
        assert not model.harvest_triggered

    def test_latches_above_cutoff(self):
        model = FruitQualityModel(time_lag=5, harvest_cutoff=0.95)
        model.daily[10] = 0.99
        assert model.lagged_quality(15) == MAX_QUALITY
        assert model.harvest_triggered
        # Once latched, later lookups read as fully ripe
        model.daily[11] = 0.2
        assert model.lagged_quality(16) == MAX_QUALITY

    def test_below_cutoff_passes_through(self):
        model = FruitQualityModel(time_lag=5, harvest_cutoff=0.95)
        model.daily[10] = 0.4
        assert model.lagged_quality(15) == 0.4
