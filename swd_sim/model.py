"""Single-cell simulation: orchestration, statistics and run driver.

Per integration step the cell:
  1. updates the fruit-quality proxy
  2. transitions the diapause gate and derives the fertility multiplier
     (or waits, without integrating, until the gate first arms)
  3. assembles rates for all 13 stages, with fruit effects unless ignored
  4. advances the stage vector by one Euler step
  5. appends stage values and fruit quality to the history
  6. updates running maxima (and when they occurred) and Σ value·dt totals
  7. records the first time total adult females reach each threshold

CellSimulator owns the simulation clock on top of a CellSimulation:
daily temperature lookup (looping the series), injection on an explicit
start day, and fixed-step run loops. run_cell_simulation() wraps both
into one call returning a CellSimResult.

References:
  - Wiman et al. (2014) PLoS ONE 9:e106909 (stage-structured SWD model)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from swd_sim.daylight import model_day_length
from swd_sim.diapause import DiapauseGate, InjectionTrigger
from swd_sim.fruit import DAYS_PER_YEAR, FruitQualityModel
from swd_sim.parameters import Parameters, parameters_from_config
from swd_sim.perf import PerfMonitor
from swd_sim.population import PopulationEngine
from swd_sim.rates import RateTable, compute_stage_rates, diapause_fertility_factor
from swd_sim.recorders import DiapauseEffectRecorder
from swd_sim.temperature import temperatures_from_config
from swd_sim.types import (
    FEMALE_SLICE,
    N_STAGES,
    N_THRESHOLDS,
    STAGE_NAMES,
    Stage,
)
from swd_sim.utils import n_integration_steps

if TYPE_CHECKING:
    from swd_sim.config import SimulationConfig

DayLengthFn = Callable[[int, int, float], float]

# Series name for the sum of the seven female age classes
FEMALES = "females"


def _series_index(name: Union[str, Stage]) -> Optional[int]:
    """Stage-vector index for a series name; None for the female total."""
    if isinstance(name, Stage):
        return int(name)
    key = name.strip().lower()
    if key == FEMALES:
        return None
    if key not in STAGE_NAMES:
        raise KeyError(
            f"Unknown series '{name}'; expected a stage name or '{FEMALES}'"
        )
    return STAGE_NAMES.index(key)


def _check_threshold_index(index: int) -> None:
    if not (0 <= index < N_THRESHOLDS):
        raise IndexError(
            f"threshold index must be in [0, {N_THRESHOLDS - 1}], got {index}"
        )


# ═══════════════════════════════════════════════════════════════════════
# CELL
# ═══════════════════════════════════════════════════════════════════════

class CellSimulation:
    """One spatial cell: population, fruit proxy, diapause gate, statistics.

    The parameter snapshot is copied on construction; later changes to
    the caller's object never reach the cell.

    Args:
        params: Parameter snapshot.
        day_length: f(year, day_of_year, latitude) → hours.
        recorder: Optional per-day diapause multiplier recorder.
        perf: Optional component timer.
    """

    def __init__(
        self,
        params: Optional[Parameters] = None,
        day_length: DayLengthFn = model_day_length,
        recorder: Optional[DiapauseEffectRecorder] = None,
        perf: Optional[PerfMonitor] = None,
    ):
        self.params = (params if params is not None else Parameters()).copy()
        self.day_length = day_length
        self.recorder = recorder
        self.perf = perf if perf is not None else PerfMonitor(enabled=False)

        self.population = PopulationEngine()
        self.fruit = FruitQualityModel.from_parameters(self.params)
        self.gate = DiapauseGate(
            self.params["diapause critical temp"],
            self.params["diapause daylight hours"],
        )
        self.trigger = InjectionTrigger()
        self._table = RateTable(self.params)
        self._thresholds = np.zeros(N_THRESHOLDS, dtype=np.float64)
        self.temperature = self.params["constant temp"]
        self.reset_time()

    # ── Parameters ───────────────────────────────────────────────────

    def set_parameter(self, name: str, value: float) -> None:
        """Replace one parameter (validated) without resetting state."""
        self.params = self.params.with_overrides({name: value})
        self._table = RateTable(self.params)
        self.fruit.configure(self.params)
        self.gate.critical_temp = self.params["diapause critical temp"]
        self.gate.daylight_hours = self.params["diapause daylight hours"]

    # ── Lifecycle ────────────────────────────────────────────────────

    def reset_time(self) -> None:
        """Return to time 0: empty population, cleared statistics and state.

        Threshold values are kept; their crossing days reset to -1.
        """
        self.population.reset()
        self.fruit.reset()
        self.gate.reset()
        self.trigger.reset()
        self.fertility_multiplier = 1.0

        self._times: List[float] = []
        self._history: List[np.ndarray] = []
        self._fruit_history: List[float] = []

        self._max = np.zeros(N_STAGES, dtype=np.float64)
        self._max_day = np.zeros(N_STAGES, dtype=np.float64)
        self._total = np.zeros(N_STAGES, dtype=np.float64)
        self._max_females = 0.0
        self._max_females_day = 0.0
        self._total_females = 0.0
        self._threshold_days = np.full(N_THRESHOLDS, -1.0)

    def inject_initial_population(self) -> None:
        """Set every stage to its configured initial population.

        Marks injection as forced so the diapause gate never injects again.
        """
        self.population.set_population(self.params.initial_population())
        self.trigger.forced = True

    def set_injection_forced(self, forced: bool = True) -> None:
        """Tie injection to an explicit start day instead of the gate."""
        self.trigger.forced = forced

    # ── Step ─────────────────────────────────────────────────────────

    def step(
        self,
        temperature: float,
        ignore_fruit: bool = False,
        ignore_diapause: bool = False,
        dt: float = 0.05,
        current_time: float = 0.0,
    ) -> None:
        """Advance the cell by one integration step of length dt."""
        self.temperature = temperature

        with self.perf.track("fruit"):
            quality = self.fruit.update(temperature, dt, current_time)

        integrate = True
        multiplier = 1.0
        if not ignore_diapause:
            with self.perf.track("diapause"):
                year, day_of_year = divmod(int(current_time), DAYS_PER_YEAR)
                hours = self.day_length(
                    year, day_of_year, self.params["latitude"],
                )
                armed = self.gate.update(hours, temperature)
                multiplier = armed * diapause_fertility_factor(hours)

                if self.trigger.blocks_integration(bool(armed)):
                    integrate = False
                elif self.trigger.observe(bool(armed), int(current_time)):
                    self.inject_initial_population()
        self.fertility_multiplier = multiplier

        if integrate:
            with self.perf.track("rates"):
                rates = compute_stage_rates(
                    temperature, quality, self._table,
                    ignore_fruit=ignore_fruit,
                    fertility_multiplier=multiplier,
                )
            with self.perf.track("integrate"):
                self.population.integrate(rates, dt)

        with self.perf.track("statistics"):
            self._record(current_time, dt, quality)

        if self.recorder is not None:
            self.recorder.capture(current_time, multiplier)

    def _record(self, current_time: float, dt: float, quality: float) -> None:
        values = self.population.values
        females = float(values[FEMALE_SLICE].sum())

        self._times.append(current_time)
        self._history.append(values)
        self._fruit_history.append(quality)

        self._total += values * dt
        self._total_females += females * dt

        # Strict comparison: ties keep the earlier day
        higher = self._max < values
        self._max = np.where(higher, values, self._max)
        self._max_day = np.where(higher, current_time, self._max_day)
        if self._max_females < females:
            self._max_females = females
            self._max_females_day = current_time

        reached = (females >= self._thresholds) & (self._threshold_days < 0)
        self._threshold_days[reached] = current_time

    # ── Accessors ────────────────────────────────────────────────────

    @property
    def fruit_quality(self) -> float:
        return self.fruit.quality

    @property
    def crossed_diapause_day(self) -> int:
        return self.trigger.crossed_day

    @property
    def day_crossed_max_fruit(self) -> float:
        return self.fruit.day_crossed_max

    @property
    def n_steps(self) -> int:
        return len(self._times)

    def current(self, name: Union[str, Stage]) -> float:
        idx = _series_index(name)
        if idx is None:
            return self.population.total_females()
        return self.population[Stage(idx)]

    def maximum(self, name: Union[str, Stage]) -> float:
        idx = _series_index(name)
        return self._max_females if idx is None else float(self._max[idx])

    def day_of_maximum(self, name: Union[str, Stage]) -> float:
        idx = _series_index(name)
        return self._max_females_day if idx is None else float(self._max_day[idx])

    def cumulative_total(self, name: Union[str, Stage]) -> float:
        idx = _series_index(name)
        return self._total_females if idx is None else float(self._total[idx])

    def history(self, name: Union[str, Stage]) -> np.ndarray:
        """Recorded values of one series, one entry per step."""
        if not self._history:
            return np.zeros(0, dtype=np.float64)
        stacked = np.vstack(self._history)
        idx = _series_index(name)
        if idx is None:
            return stacked[:, FEMALE_SLICE].sum(axis=1)
        return stacked[:, idx].copy()

    def times(self) -> np.ndarray:
        return np.asarray(self._times, dtype=np.float64)

    def fruit_quality_history(self) -> np.ndarray:
        return np.asarray(self._fruit_history, dtype=np.float64)

    def female_stage(self, index: int) -> float:
        """Current abundance of female age class ``index`` (0–6)."""
        return self.population.female_stage(index)

    def threshold_day(self, index: int) -> float:
        """First time total females reached threshold ``index`` (-1 = never)."""
        _check_threshold_index(index)
        return float(self._threshold_days[index])

    def set_threshold(self, index: int, value: float) -> None:
        _check_threshold_index(index)
        self._thresholds[index] = value

    @property
    def thresholds(self) -> np.ndarray:
        return self._thresholds.copy()

    @property
    def threshold_days(self) -> np.ndarray:
        return self._threshold_days.copy()


# ═══════════════════════════════════════════════════════════════════════
# DRIVER
# ═══════════════════════════════════════════════════════════════════════

class CellSimulator:
    """Clock and forcing around one CellSimulation.

    Time is derived from a step counter (origin + k·dt, rounded to 1e-9)
    instead of a running float sum, so day boundaries land exactly.

    Args:
        params: Parameter snapshot (defaults if None).
        dt: Integration step (days).
        day_length, recorder, perf: Passed to the CellSimulation.
    """

    def __init__(
        self,
        params: Optional[Parameters] = None,
        dt: float = 0.05,
        day_length: DayLengthFn = model_day_length,
        recorder: Optional[DiapauseEffectRecorder] = None,
        perf: Optional[PerfMonitor] = None,
    ):
        if dt <= 0:
            raise ValueError(f"dt must be > 0, got {dt}")
        self.cell = CellSimulation(
            params, day_length=day_length, recorder=recorder, perf=perf,
        )
        self.dt = dt
        self._origin = 0.0
        self._steps = 0
        self._injected = False

    @property
    def time(self) -> float:
        return round(self._origin + self._steps * self.dt, 9)

    def set_dt(self, dt: float) -> None:
        if dt <= 0:
            raise ValueError(f"dt must be > 0, got {dt}")
        self._origin = self.time
        self._steps = 0
        self.dt = dt

    def set_parameter(self, name: str, value: float) -> None:
        self.cell.set_parameter(name, value)

    def reset_time(self) -> None:
        self._origin = 0.0
        self._steps = 0
        self._injected = False
        self.cell.reset_time()

    def run(
        self,
        temperatures: Sequence[float],
        num_days: float,
        ignore_fruit: bool = False,
        ignore_diapause: bool = False,
        start_day: int = -1,
    ) -> None:
        """Run for ``num_days`` with one temperature per simulated day.

        Day d uses temperatures[d % len(temperatures)]. When start_day >= 0
        the initial population is injected on the first step of that day
        and the diapause gate only records its crossing day.

        Raises:
            ValueError: If num_days is negative or temperatures is empty.
        """
        if num_days < 0:
            raise ValueError(f"num_days must be >= 0, got {num_days}")
        temps = np.asarray(temperatures, dtype=np.float64)
        if temps.size == 0:
            raise ValueError("temperatures must not be empty")

        if start_day >= 0:
            self.cell.set_injection_forced(True)

        for _ in range(n_integration_steps(num_days, self.dt)):
            t = self.time
            if int(t) == start_day and not self._injected:
                self._injected = True
                self.cell.inject_initial_population()
            temp = float(temps[int(t) % temps.size])
            self.cell.step(temp, ignore_fruit, ignore_diapause, self.dt, t)
            self._steps += 1

    def run_constant(
        self,
        temperature: float,
        num_days: float,
        ignore_fruit: bool = False,
        ignore_diapause: bool = False,
    ) -> None:
        """Run at a fixed temperature; injection is left to the gate."""
        if num_days < 0:
            raise ValueError(f"num_days must be >= 0, got {num_days}")
        for _ in range(n_integration_steps(num_days, self.dt)):
            self.cell.step(
                temperature, ignore_fruit, ignore_diapause, self.dt, self.time,
            )
            self._steps += 1


# ═══════════════════════════════════════════════════════════════════════
# ONE-CALL RUNS
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class CellSimResult:
    """Histories and summary statistics of one cell run."""
    dt: float = 0.05
    run_days: float = 0.0
    start_day: int = -1
    ignore_fruit: bool = False
    ignore_diapause: bool = False

    # Per-step timeseries (length = n_steps)
    times: Optional[np.ndarray] = None
    populations: Optional[np.ndarray] = None      # (n_steps, 13)
    fruit_quality: Optional[np.ndarray] = None

    # Summary keyed by stage name or 'females'
    peak: Dict[str, float] = field(default_factory=dict)
    peak_day: Dict[str, float] = field(default_factory=dict)
    cumulative: Dict[str, float] = field(default_factory=dict)

    crossed_diapause_day: int = -1
    day_crossed_max_fruit: float = -1.0
    thresholds: Optional[np.ndarray] = None
    threshold_days: Optional[np.ndarray] = None

    def series(self, name: Union[str, Stage]) -> np.ndarray:
        """Timeseries of one stage, or of all females for 'females'."""
        idx = _series_index(name)
        if idx is None:
            return self.populations[:, FEMALE_SLICE].sum(axis=1)
        return self.populations[:, idx]

    @property
    def n_steps(self) -> int:
        return 0 if self.times is None else len(self.times)


def collect_result(
    cell: CellSimulation,
    dt: float,
    run_days: float,
    start_day: int = -1,
    ignore_fruit: bool = False,
    ignore_diapause: bool = False,
) -> CellSimResult:
    """Snapshot a cell's histories and statistics into a CellSimResult."""
    names = list(STAGE_NAMES) + [FEMALES]
    if cell.n_steps:
        populations = np.vstack(cell._history)
    else:
        populations = np.zeros((0, N_STAGES), dtype=np.float64)
    return CellSimResult(
        dt=dt,
        run_days=run_days,
        start_day=start_day,
        ignore_fruit=ignore_fruit,
        ignore_diapause=ignore_diapause,
        times=cell.times(),
        populations=populations,
        fruit_quality=cell.fruit_quality_history(),
        peak={n: cell.maximum(n) for n in names},
        peak_day={n: cell.day_of_maximum(n) for n in names},
        cumulative={n: cell.cumulative_total(n) for n in names},
        crossed_diapause_day=cell.crossed_diapause_day,
        day_crossed_max_fruit=cell.day_crossed_max_fruit,
        thresholds=cell.thresholds,
        threshold_days=cell.threshold_days,
    )


def run_cell_simulation(
    params: Optional[Parameters] = None,
    temperatures: Optional[Sequence[float]] = None,
    num_days: float = 365.0,
    dt: float = 0.05,
    start_day: int = -1,
    ignore_fruit: bool = False,
    ignore_diapause: bool = False,
    thresholds: Optional[Sequence[float]] = None,
    day_length: DayLengthFn = model_day_length,
    recorder: Optional[DiapauseEffectRecorder] = None,
    perf: Optional[PerfMonitor] = None,
) -> CellSimResult:
    """Run one cell from time 0 and collect its result.

    Args:
        params: Parameter snapshot (defaults if None).
        temperatures: Daily temperatures, looped (constant temp if None).
        num_days: Simulated horizon (days).
        dt: Integration step (days).
        start_day: Explicit injection day; -1 leaves injection to the gate.
        ignore_fruit: Disable fruit effects on development and mortality.
        ignore_diapause: Disable the diapause gate (multiplier fixed at 1).
        thresholds: Up to ten adult-female thresholds (missing → 0).
        day_length: f(year, day_of_year, latitude) → hours.
        recorder: Optional diapause multiplier recorder.
        perf: Optional component timer.

    Returns:
        CellSimResult with histories and summary statistics.
    """
    sim = CellSimulator(
        params, dt=dt, day_length=day_length, recorder=recorder, perf=perf,
    )
    if thresholds is not None:
        if len(thresholds) > N_THRESHOLDS:
            raise ValueError(
                f"at most {N_THRESHOLDS} thresholds, got {len(thresholds)}"
            )
        for i, value in enumerate(thresholds):
            sim.cell.set_threshold(i, value)
    if temperatures is None:
        temperatures = [sim.cell.params["constant temp"]]

    sim.run(temperatures, num_days, ignore_fruit, ignore_diapause, start_day)
    return collect_result(
        sim.cell, dt, num_days, start_day, ignore_fruit, ignore_diapause,
    )


def run_from_config(
    config: "SimulationConfig",
    recorder: Optional[DiapauseEffectRecorder] = None,
    perf: Optional[PerfMonitor] = None,
) -> CellSimResult:
    """Run the single simulation described by a validated config."""
    sim_cfg = config.simulation
    return run_cell_simulation(
        params=parameters_from_config(config),
        temperatures=temperatures_from_config(config),
        num_days=sim_cfg.run_days,
        dt=sim_cfg.dt,
        start_day=sim_cfg.start_day,
        ignore_fruit=sim_cfg.ignore_fruit,
        ignore_diapause=sim_cfg.ignore_diapause,
        thresholds=sim_cfg.thresholds,
        recorder=recorder,
        perf=perf,
    )


__all__ = [
    "FEMALES",
    "CellSimResult",
    "CellSimulation",
    "CellSimulator",
    "collect_result",
    "run_cell_simulation",
    "run_from_config",
]
