"""Tests for swd_sim.rates: vital rate curves and per-stage assembly."""

import math

import numpy as np
import pytest

from swd_sim.parameters import Parameters
from swd_sim.rates import (
    BRIERE_T0,
    BRIERE_TL,
    RateTable,
    compute_stage_rates,
    development_rate,
    diapause_fertility_factor,
    fertility,
    fruit_development_effect,
    fruit_effects,
    fruit_mortality_effect,
    growth_time,
    mortality_rate,
    stage_mortality,
)
from swd_sim.types import Stage


@pytest.fixture
def table():
    return RateTable(Parameters())


# ── Fertility ─────────────────────────────────────────────────────────

class TestFertility:
    def test_peak_magnitude(self):
        """Roughly two eggs per female per day near the optimum."""
        assert fertility(25.0, 30.0) == pytest.approx(2.03, abs=0.05)

    def test_zero_above_tmax(self):
        assert fertility(31.0, 30.0) == 0.0

    def test_lower_tmax_cuts_off(self):
        assert fertility(25.0, 24.0) == 0.0

    def test_zero_outside_band(self):
        assert fertility(-60.0, 30.0) == 0.0

    def test_finite_and_non_negative(self):
        for T in np.linspace(-10, 30, 41):
            f = fertility(float(T), 30.0)
            assert math.isfinite(f)
            assert f >= 0.0

    def test_peaks_near_optimum(self):
        assert fertility(23.26, 30.0) > fertility(15.0, 30.0)
        assert fertility(23.26, 30.0) > fertility(29.0, 30.0)


# ── Diapause factor ───────────────────────────────────────────────────

class TestDiapauseFactor:
    def test_short_days_suppress(self):
        assert diapause_fertility_factor(8.0) < 0.01

    def test_long_days_release(self):
        assert diapause_fertility_factor(16.0) > 0.99

    def test_monotone_in_day_length(self):
        values = [diapause_fertility_factor(h) for h in range(0, 25)]
        assert all(b >= a for a, b in zip(values, values[1:]))

    def test_bounded(self):
        for h in range(0, 25):
            assert 0.0 <= diapause_fertility_factor(h) <= 1.0


# ── Development ───────────────────────────────────────────────────────

class TestDevelopment:
    def test_zero_outside_window(self):
        assert development_rate(BRIERE_T0 - 0.1, 0.72) == 0.0
        assert development_rate(BRIERE_TL + 0.1, 0.72) == 0.0

    def test_positive_inside_window(self):
        assert development_rate(25.0, 0.72) > 0.0

    def test_scales_with_dev_max(self):
        assert development_rate(20.0, 0.36) == pytest.approx(
            2.0 * development_rate(20.0, 0.72)
        )


# ── Mortality ─────────────────────────────────────────────────────────

class TestMortality:
    BETAS = (0.1602, -0.0077, 0.00032, -0.000002)

    def test_max_outside_window(self):
        assert mortality_rate(40.0, self.BETAS, 8.1776, 3.0, 33.0, 0.33) == 0.33
        assert mortality_rate(0.0, self.BETAS, 8.1776, 3.0, 33.0, 0.33) == 0.33

    def test_polynomial_inside_window(self):
        assert mortality_rate(8.1776, self.BETAS, 8.1776, 3.0, 33.0, 0.33) == \
            pytest.approx(0.1602)

    def test_vectorized_matches_scalar(self, table):
        mort = stage_mortality(21.0, table)
        p = Parameters()
        for stage in Stage:
            betas = [p.stage_value(stage, f"mortality beta{i}") for i in range(4)]
            expected = mortality_rate(
                21.0, betas,
                p.stage_value(stage, "mortality tau"),
                p.stage_value(stage, "mortality min temp"),
                p.stage_value(stage, "mortality max temp"),
                p.stage_value(stage, "mortality max"),
            )
            assert mort[stage] == pytest.approx(expected)


# ── Fruit effects ─────────────────────────────────────────────────────

class TestFruitEffects:
    def test_development_effect_half_saturation(self):
        # quality 0.5 → ratio 1 → m/2 + 1 − m
        assert fruit_development_effect(0.5, 4.0, 0.75) == pytest.approx(0.625)

    def test_development_effect_without_weight(self):
        assert fruit_development_effect(0.05, 4.0, 0.0) == 1.0

    def test_mortality_effect_poor_fruit(self):
        # Very poor fruit adds nearly 10% of the maximum
        assert fruit_mortality_effect(0.05, 4.0, 0.5) == pytest.approx(0.05, rel=1e-3)

    def test_ignore_fruit_is_neutral(self):
        effects = fruit_effects(0.05, 4.0, 0.75, np.full(13, 0.5), ignore_fruit=True)
        assert effects['development'] == 1.0
        np.testing.assert_array_equal(effects['mortality'], np.zeros(13))

    def test_growth_time_nan_at_base(self):
        assert math.isnan(growth_time(4.0, 4.0))
        assert math.isnan(growth_time(4.0, -2.0))

    def test_growth_time_above_base(self):
        assert growth_time(4.0, 15.0) == pytest.approx(1100.0 / 11.0 + 30.0)


# ── Per-stage assembly ────────────────────────────────────────────────

class TestStageRates:
    def test_terminal_stages_do_not_develop(self, table):
        rates = compute_stage_rates(25.0, 0.5, table)
        assert rates.development[Stage.MALES] == 0.0
        assert rates.development[Stage.FEMALES7] == 0.0

    def test_female_ageing_is_constant(self, table):
        cold = compute_stage_rates(5.0, 0.5, table)
        warm = compute_stage_rates(25.0, 0.5, table)
        assert cold.development[Stage.FEMALES2] == pytest.approx(0.1)
        assert warm.development[Stage.FEMALES2] == pytest.approx(0.1)

    def test_fruit_scales_juvenile_development_only(self, table):
        base = compute_stage_rates(25.0, 0.05, table, ignore_fruit=True)
        poor = compute_stage_rates(25.0, 0.05, table)
        assert poor.development[Stage.EGGS] < base.development[Stage.EGGS]
        assert poor.development[Stage.FEMALES1] == base.development[Stage.FEMALES1]

    def test_fruit_adds_mortality_to_every_stage(self, table):
        base = compute_stage_rates(25.0, 0.05, table, ignore_fruit=True)
        poor = compute_stage_rates(25.0, 0.05, table)
        added = poor.mortality - base.mortality
        np.testing.assert_allclose(
            added, 0.1 * table.mort_max / (1.0 + 0.1 ** 4),
        )

    def test_fertility_multiplier(self, table):
        full = compute_stage_rates(25.0, 0.5, table)
        half = compute_stage_rates(25.0, 0.5, table, fertility_multiplier=0.5)
        assert half.fertility == pytest.approx(0.5 * full.fertility)

    def test_shapes(self, table):
        rates = compute_stage_rates(20.0, 0.5, table)
        assert rates.development.shape == (13,)
        assert rates.mortality.shape == (13,)
        assert rates.predation.shape == (13,)
        assert rates.egg_viability.shape == (7,)
        assert rates.male_proportion == 0.5
