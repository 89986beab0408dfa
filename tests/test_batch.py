"""Tests for swd_sim.batch: thread-pool batch driver and sweeps."""

import logging

import numpy as np
import pytest

from swd_sim.batch import (
    RunSpec,
    diapause_sweep,
    execute_run,
    fruit_sweep,
    isolate_stage_overrides,
    population_sweep,
    run_batch,
    sweep_from_config,
)
from swd_sim.config import default_config
from swd_sim.model import run_cell_simulation
from swd_sim.parameters import Parameters
from swd_sim.types import STAGE_NAMES


class TestIsolateStage:
    def test_only_named_stage_injected(self):
        overrides = isolate_stage_overrides('females1', 100)
        assert overrides['initial females1'] == 100.0
        assert sum(overrides.values()) == 100.0
        assert len(overrides) == len(STAGE_NAMES)

    def test_unknown_stage(self):
        with pytest.raises(ValueError, match="Unknown stage"):
            isolate_stage_overrides('adults', 10)


class TestSweeps:
    def test_population_sweep_grid(self):
        specs = population_sweep(n_start_days=365)
        assert len(specs) == 365 * 4 * 2
        assert all(s.ignore_fruit and s.ignore_diapause for s in specs)
        assert {s.start_day for s in specs} == set(range(365))

    def test_fruit_sweep_grid(self):
        specs = fruit_sweep()
        gts = sorted({s.overrides["fruit gt multiplier"] for s in specs})
        lags = sorted({s.overrides["fruit time lag"] for s in specs})
        assert gts[0] == 1.0 and gts[-1] == 10.0 and len(gts) == 37
        assert lags[0] == 0.0 and lags[-1] == 365.0 and len(lags) == 74
        assert len(specs) == 37 * 74
        assert all(s.ignore_diapause and not s.ignore_fruit for s in specs)
        assert all(s.start_day == 0 for s in specs)

    def test_diapause_sweep_grid(self):
        specs = diapause_sweep()
        assert len(specs) == 38 * 25
        assert all(s.start_day == 75 for s in specs)
        assert all(s.ignore_fruit and not s.ignore_diapause for s in specs)
        assert specs[-1].overrides["diapause critical temp"] == 37.0
        assert specs[-1].overrides["diapause daylight hours"] == 24.0

    def test_output_paths(self, tmp_path):
        specs = fruit_sweep([2.5], [10], output_dir=tmp_path)
        assert specs[0].output_path.endswith(
            "f_output___gtMult2.5_harvestLag10_365daysRun.txt"
        )

    def test_no_output_dir_means_no_files(self):
        assert all(s.output_path is None for s in diapause_sweep([5], [12]))

    def test_sweep_from_config(self):
        config = default_config()
        config.batch.population_start_days = 2
        config.batch.population_sizes = [10.0]
        specs = sweep_from_config('population', config)
        assert len(specs) == 2 * 1 * 2

    def test_unknown_sweep(self):
        with pytest.raises(ValueError, match="Unknown sweep"):
            sweep_from_config('weather', default_config())


class TestExecuteRun:
    def test_matches_direct_run(self):
        spec = RunSpec(
            label="eggs", overrides=isolate_stage_overrides('eggs', 10),
            start_day=0, ignore_fruit=True, ignore_diapause=True, run_days=30,
        )
        base = Parameters()
        result = execute_run(spec, base, [25.0])
        direct = run_cell_simulation(
            base.with_overrides(spec.overrides), temperatures=[25.0],
            num_days=30, start_day=0, ignore_fruit=True, ignore_diapause=True,
        )
        np.testing.assert_array_equal(result.populations, direct.populations)

    def test_base_parameters_untouched(self):
        base = Parameters()
        spec = RunSpec(label="x", overrides={"fruit time lag": 5.0}, run_days=1)
        execute_run(spec, base, [25.0])
        assert base["fruit time lag"] == 50.0


class TestRunBatch:
    def _specs(self, n=5):
        return [
            RunSpec(
                label=f"run{i}",
                overrides=isolate_stage_overrides('females1', 10.0 * (i + 1)),
                start_day=0, ignore_fruit=True, ignore_diapause=True,
                run_days=20,
            )
            for i in range(n)
        ]

    def test_results_in_spec_order(self):
        summaries = run_batch(self._specs(), Parameters(), [22.0], workers=2)
        assert [s.spec.label for s in summaries] == [f"run{i}" for i in range(5)]
        totals = [s.row['total_females'] for s in summaries]
        assert totals == sorted(totals)

    def test_independent_of_worker_count(self):
        one = run_batch(self._specs(), Parameters(), [22.0], workers=1)
        many = run_batch(self._specs(), Parameters(), [22.0], workers=4)
        assert [s.row for s in one] == [s.row for s in many]

    def test_keep_results(self):
        summaries = run_batch(
            self._specs(2), Parameters(), [22.0], workers=2, keep_results=True,
        )
        assert summaries[0].result.n_steps == 400
        dropped = run_batch(self._specs(2), Parameters(), [22.0], workers=2)
        assert dropped[0].result is None

    def test_writes_run_files(self, tmp_path):
        specs = fruit_sweep([2.0], [0, 5], run_days=3, output_dir=tmp_path)
        summaries = run_batch(specs, Parameters(), [20.0], workers=2)
        for s in summaries:
            assert s.output_path.exists()
            assert s.output_path.read_text().startswith("Time:\t")

    def test_thresholds_applied(self):
        summaries = run_batch(
            self._specs(1), Parameters(), [22.0], workers=1,
            thresholds=[5.0], keep_results=True,
        )
        assert summaries[0].result.thresholds[0] == 5.0
        assert summaries[0].result.threshold_days[0] == 0.0

    def test_logs_progress(self, caplog):
        with caplog.at_level(logging.INFO, logger="swd_sim.batch"):
            run_batch(self._specs(3), Parameters(), [22.0], workers=2)
        assert "batch 2/2 done" in caplog.text

    def test_invalid_workers(self):
        with pytest.raises(ValueError, match="workers"):
            run_batch(self._specs(1), Parameters(), [22.0], workers=0)

    def test_empty_temperatures(self):
        with pytest.raises(ValueError, match="temperatures"):
            run_batch(self._specs(1), Parameters(), [], workers=1)

    def test_worker_error_propagates(self):
        bad = RunSpec(label="bad", overrides={"male proportion": 3.0}, run_days=1)
        with pytest.raises(ValueError, match="male proportion"):
            run_batch([bad], Parameters(), [22.0], workers=1)
