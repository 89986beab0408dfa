"""Batch driver and sensitivity sweeps.

Runs many independent single-cell simulations on a bounded thread pool.
Specs are dispatched in batches of pool size; the caller blocks until a
batch has finished before the next one is submitted. Each run builds its
own CellSimulator from the shared base Parameters with the run's
overrides applied (Parameters.with_overrides returns a new snapshot), so
workers never share mutable state.

Sweeps (all 365-day runs at dt = 0.05 by default):
  population  injection day × initial population × injected stage,
              fruit and diapause ignored
  fruit       gt multiplier 1→10 (step 0.25) × harvest lag 0→365
              (step 5), diapause ignored
  diapause    critical temperature 0→37 × daylight hours 0→24,
              fruit ignored, injection on day 75

Injecting a stage zeroes the initial population of every other stage.
"""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

import numpy as np

from swd_sim.model import CellSimResult, CellSimulator, collect_result
from swd_sim.output import run_filename, summary_row, write_run_file
from swd_sim.parameters import Parameters
from swd_sim.types import STAGE_NAMES, stage_from_name

logger = logging.getLogger(__name__)

DEFAULT_POPULATION_SIZES = (10.0, 100.0, 1000.0, 10000.0)
DEFAULT_POPULATION_STAGES = ('eggs', 'females1')


# ═══════════════════════════════════════════════════════════════════════
# RUN SPECS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RunSpec:
    """One simulation in a batch.

    Attributes:
        label: Identifier used in logs and the summary table.
        overrides: Parameter name → value applied on top of the base
            snapshot for this run only.
        start_day: Explicit injection day (-1 = diapause-gated).
        output_path: Run file to write, or None to skip.
    """
    label: str
    overrides: Dict[str, float] = field(default_factory=dict)
    start_day: int = -1
    ignore_fruit: bool = False
    ignore_diapause: bool = False
    run_days: float = 365.0
    dt: float = 0.05
    output_path: Optional[str] = None


@dataclass
class RunSummary:
    """Outcome of one batch run."""
    spec: RunSpec
    row: Dict[str, object]
    output_path: Optional[Path] = None
    result: Optional[CellSimResult] = None   # Only kept when requested


def isolate_stage_overrides(stage: str, initial_population: float) -> Dict[str, float]:
    """Initial-population overrides that inject only ``stage``.

    Raises:
        ValueError: If ``stage`` is not a stage name.
    """
    injected = STAGE_NAMES[stage_from_name(stage)]
    return {
        f"initial {name}": (float(initial_population) if name == injected else 0.0)
        for name in STAGE_NAMES
    }


def execute_run(
    spec: RunSpec,
    base_params: Parameters,
    temperatures: Sequence[float],
    thresholds: Optional[Sequence[float]] = None,
) -> CellSimResult:
    """Run one spec on a fresh simulator and return its result."""
    params = base_params.with_overrides(spec.overrides)
    sim = CellSimulator(params, dt=spec.dt)
    if thresholds is not None:
        for i, value in enumerate(thresholds):
            sim.cell.set_threshold(i, value)
    sim.run(
        temperatures, spec.run_days,
        ignore_fruit=spec.ignore_fruit,
        ignore_diapause=spec.ignore_diapause,
        start_day=spec.start_day,
    )
    return collect_result(
        sim.cell, spec.dt, spec.run_days, spec.start_day,
        spec.ignore_fruit, spec.ignore_diapause,
    )


def _run_and_report(
    spec: RunSpec,
    base_params: Parameters,
    temperatures: np.ndarray,
    thresholds: Optional[Sequence[float]],
    keep_results: bool,
) -> RunSummary:
    result = execute_run(spec, base_params, temperatures, thresholds)
    path = None
    if spec.output_path is not None:
        path = write_run_file(spec.output_path, result)
    return RunSummary(
        spec=spec,
        row=summary_row(spec.label, result),
        output_path=path,
        result=result if keep_results else None,
    )


# ═══════════════════════════════════════════════════════════════════════
# BATCH EXECUTION
# ═══════════════════════════════════════════════════════════════════════

def run_batch(
    specs: Iterable[RunSpec],
    base_params: Parameters,
    temperatures: Sequence[float],
    workers: Optional[int] = None,
    thresholds: Optional[Sequence[float]] = None,
    keep_results: bool = False,
) -> List[RunSummary]:
    """Run every spec, ``workers`` at a time.

    Args:
        specs: Runs to execute, in order.
        base_params: Snapshot every run starts from (never modified).
        temperatures: Daily temperature series shared read-only by all runs.
        workers: Pool size (defaults to os.cpu_count()).
        thresholds: Optional adult-female thresholds for every run.
        keep_results: Keep full CellSimResults (memory grows with the batch).

    Returns:
        One RunSummary per spec, in spec order.

    Raises:
        ValueError: If workers < 1 or temperatures is empty.
    """
    specs = list(specs)
    workers = workers if workers is not None else (os.cpu_count() or 1)
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")
    temps = np.asarray(temperatures, dtype=np.float64)
    if temps.size == 0:
        raise ValueError("temperatures must not be empty")
    temps.flags.writeable = False

    summaries: List[RunSummary] = []
    n_batches = (len(specs) + workers - 1) // workers
    t0 = time.perf_counter()

    with ThreadPoolExecutor(max_workers=workers) as pool:
        for b, start in enumerate(range(0, len(specs), workers), start=1):
            chunk = specs[start:start + workers]
            futures = [
                pool.submit(
                    _run_and_report, spec, base_params, temps,
                    thresholds, keep_results,
                )
                for spec in chunk
            ]
            summaries.extend(f.result() for f in futures)
            logger.info(
                "batch %d/%d done (%d runs, last: %s)",
                b, n_batches, len(chunk), chunk[-1].label,
            )

    logger.info(
        "%d runs finished in %.1f s", len(summaries), time.perf_counter() - t0,
    )
    return summaries


# ═══════════════════════════════════════════════════════════════════════
# SWEEPS
# ═══════════════════════════════════════════════════════════════════════

def _output_path(
    output_dir: Optional[Union[str, Path]], kind: str, run_days: float, **labels,
) -> Optional[str]:
    if output_dir is None:
        return None
    return str(Path(output_dir) / run_filename(kind, run_days, **labels))


def population_sweep(
    population_sizes: Sequence[float] = DEFAULT_POPULATION_SIZES,
    stages: Sequence[str] = DEFAULT_POPULATION_STAGES,
    n_start_days: int = 365,
    run_days: float = 365.0,
    dt: float = 0.05,
    output_dir: Optional[Union[str, Path]] = None,
) -> List[RunSpec]:
    """Injection day × initial population × injected stage."""
    specs = []
    for start_day in range(n_start_days):
        for size in population_sizes:
            for stage in stages:
                specs.append(RunSpec(
                    label=f"pop{size:g}_{stage}_day{start_day}",
                    overrides=isolate_stage_overrides(stage, size),
                    start_day=start_day,
                    ignore_fruit=True,
                    ignore_diapause=True,
                    run_days=run_days,
                    dt=dt,
                    output_path=_output_path(
                        output_dir, 'population', run_days,
                        initial_population=size, stage=stage,
                        start_day=start_day,
                    ),
                ))
    return specs


def fruit_sweep(
    gt_multipliers: Optional[Sequence[float]] = None,
    time_lags: Optional[Sequence[float]] = None,
    stage: str = 'females1',
    initial_population: float = 10.0,
    start_day: int = 0,
    run_days: float = 365.0,
    dt: float = 0.05,
    output_dir: Optional[Union[str, Path]] = None,
) -> List[RunSpec]:
    """Fruit gt multiplier × harvest lag, diapause ignored."""
    if gt_multipliers is None:
        gt_multipliers = [1.0 + 0.25 * i for i in range(37)]
    if time_lags is None:
        time_lags = [float(lag) for lag in range(0, 366, 5)]

    specs = []
    for gt in gt_multipliers:
        for lag in time_lags:
            overrides = isolate_stage_overrides(stage, initial_population)
            overrides["fruit gt multiplier"] = gt
            overrides["fruit time lag"] = lag
            specs.append(RunSpec(
                label=f"gt{gt:g}_lag{lag:g}",
                overrides=overrides,
                start_day=start_day,
                ignore_fruit=False,
                ignore_diapause=True,
                run_days=run_days,
                dt=dt,
                output_path=_output_path(
                    output_dir, 'fruit', run_days,
                    gt_multiplier=gt, time_lag=lag,
                ),
            ))
    return specs


def diapause_sweep(
    critical_temps: Optional[Sequence[float]] = None,
    daylight_hours: Optional[Sequence[float]] = None,
    stage: str = 'females1',
    initial_population: float = 10.0,
    start_day: int = 75,
    run_days: float = 365.0,
    dt: float = 0.05,
    output_dir: Optional[Union[str, Path]] = None,
) -> List[RunSpec]:
    """Critical temperature × daylight hours, fruit ignored."""
    if critical_temps is None:
        critical_temps = [float(t) for t in range(38)]
    if daylight_hours is None:
        daylight_hours = [float(h) for h in range(25)]

    specs = []
    for crit in critical_temps:
        for hours in daylight_hours:
            overrides = isolate_stage_overrides(stage, initial_population)
            overrides["diapause critical temp"] = crit
            overrides["diapause daylight hours"] = hours
            specs.append(RunSpec(
                label=f"tcrit{crit:g}_hours{hours:g}",
                overrides=overrides,
                start_day=start_day,
                ignore_fruit=True,
                ignore_diapause=False,
                run_days=run_days,
                dt=dt,
                output_path=_output_path(
                    output_dir, 'diapause', run_days,
                    critical_temp=crit, daylight_hours=hours,
                ),
            ))
    return specs


SWEEPS = {
    'population': population_sweep,
    'fruit': fruit_sweep,
    'diapause': diapause_sweep,
}


def sweep_from_config(kind: str, config, output_dir=None) -> List[RunSpec]:
    """Build one of the named sweeps from a config's ``batch`` section."""
    b = config.batch
    if kind == 'population':
        return population_sweep(
            b.population_sizes, b.population_stages, b.population_start_days,
            b.run_days, b.dt, output_dir,
        )
    if kind == 'fruit':
        return fruit_sweep(
            stage=b.fruit_stage,
            initial_population=b.fruit_initial_population,
            run_days=b.run_days, dt=b.dt, output_dir=output_dir,
        )
    if kind == 'diapause':
        return diapause_sweep(
            stage=b.diapause_stage,
            initial_population=b.diapause_initial_population,
            start_day=b.diapause_start_day,
            run_days=b.run_days, dt=b.dt, output_dir=output_dir,
        )
    raise ValueError(f"Unknown sweep '{kind}'; expected one of {list(SWEEPS)}")
