"""Configuration system for SWD-Sim.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → scenario override → sweep overrides

The configuration is validated here, before anything reaches the
simulation core. The core itself only sees the flattened, named
:class:`~swd_sim.parameters.Parameters` snapshot built from it.

References:
  - configs/default.yaml (shipped defaults, mirrors the dataclasses below)
"""

from __future__ import annotations

import dataclasses
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from swd_sim.parameters import (
    EGG_VIABILITY_DEFAULTS,
    INITIAL_POPULATION_DEFAULTS,
    MORTALITY_SHAPE_DEFAULTS,
    STAGE_DEFAULTS,
)
from swd_sim.types import (
    FEMALE_STAGES,
    N_THRESHOLDS,
    STAGE_NAMES,
    Stage,
)


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationSection:
    """Run timing, forcing and model switches."""
    dt: float = 0.05               # Euler step (days)
    run_days: float = 100.0        # Simulated horizon (days)
    start_day: int = -1            # Explicit injection day; -1 = diapause-gated
    ignore_fruit: bool = False
    ignore_diapause: bool = False
    temperature_source: str = 'constant'  # 'constant', 'file', or 'sinusoidal'
    constant_temp: float = 15.0    # °C, for 'constant'
    temperature_file: str = 'data/temperatures.txt'  # one daily value per line
    temp_mean: float = 12.0        # °C, for 'sinusoidal'
    temp_amplitude: float = 10.0   # °C half-range, for 'sinusoidal'
    temp_peak_doy: int = 200       # Day of year of the temperature maximum
    thresholds: List[float] = field(
        default_factory=lambda: [0.0] * N_THRESHOLDS
    )                              # Adult-female population thresholds


@dataclass
class PopulationSection:
    """Population-level parameters."""
    male_proportion: float = 0.5   # Fraction of emerging adults that are male
    latitude: float = 46.49        # Degrees N, drives day length
    fertility_tmax: float = 30.0   # °C above which no eggs are laid
    initial: Dict[str, float] = field(
        default_factory=lambda: {
            STAGE_NAMES[s]: v for s, v in INITIAL_POPULATION_DEFAULTS.items()
        }
    )


@dataclass
class FruitSection:
    """Fruit-ripeness proxy parameters."""
    n: float = 4.0                 # Steepness of the fruit effect curve
    m: float = 0.75                # Weight of fruit on development [0, 1]
    time_lag: float = 50.0         # Days between cutoff and harvest decline
    base_temp: float = 4.0         # °C below which fruit does not ripen
    gt_multiplier: float = 4.0     # Scale on 1/g(T) ripening term
    harvest_cutoff: float = 0.95   # Quality that triggers harvest [0, 1]
    harvest_drop: float = 0.1      # Relative daily decline after harvest [0, 1]


@dataclass
class DiapauseSection:
    """Diapause gate thresholds."""
    critical_temp: float = 18.0    # °C that arms the gate
    daylight_hours: float = 10.0   # Day length (h) that opens/closes the gate


@dataclass
class StageSection:
    """Per-stage development and mortality coefficients.

    development_max is None for terminal stages (males, females7);
    egg_viability is None for non-female stages.
    """
    development_max: Optional[float] = None
    mortality_max: float = 0.0
    mortality_min_temp: float = 3.0
    mortality_max_temp: float = 33.0
    mortality_tau: float = 8.1776
    beta0: float = 0.0
    beta1: float = -0.0077
    beta2: float = 0.00032
    beta3: float = -0.000002
    predation: float = 0.0
    egg_viability: Optional[float] = None

    @property
    def betas(self) -> List[float]:
        return [self.beta0, self.beta1, self.beta2, self.beta3]


def default_stage_sections() -> Dict[str, StageSection]:
    """One StageSection per stage, populated with model defaults."""
    stages: Dict[str, StageSection] = {}
    for stage in Stage:
        dev_max, mort_max, beta0 = STAGE_DEFAULTS[stage]
        viability = None
        if stage in FEMALE_STAGES:
            viability = EGG_VIABILITY_DEFAULTS[stage - Stage.FEMALES1]
        stages[STAGE_NAMES[stage]] = StageSection(
            development_max=dev_max,
            mortality_max=mort_max,
            mortality_min_temp=MORTALITY_SHAPE_DEFAULTS["min temp"],
            mortality_max_temp=MORTALITY_SHAPE_DEFAULTS["max temp"],
            mortality_tau=MORTALITY_SHAPE_DEFAULTS["tau"],
            beta0=beta0,
            beta1=MORTALITY_SHAPE_DEFAULTS["beta1"],
            beta2=MORTALITY_SHAPE_DEFAULTS["beta2"],
            beta3=MORTALITY_SHAPE_DEFAULTS["beta3"],
            egg_viability=viability,
        )
    return stages


@dataclass
class BatchSection:
    """Batch sweep control."""
    workers: Optional[int] = None  # None = os.cpu_count()
    dt: float = 0.05
    run_days: float = 365.0
    population_sizes: List[float] = field(
        default_factory=lambda: [10.0, 100.0, 1000.0, 10000.0]
    )
    population_stages: List[str] = field(
        default_factory=lambda: ['eggs', 'females1']
    )
    population_start_days: int = 365   # Sweep start days 0..N-1
    fruit_stage: str = 'females1'
    fruit_initial_population: float = 10.0
    diapause_stage: str = 'females1'
    diapause_initial_population: float = 10.0
    diapause_start_day: int = 75


@dataclass
class OutputSection:
    """Output control."""
    directory: str = "results/"
    write_run_files: bool = True   # One tab-delimited file per run
    summary_csv: bool = True       # One CSV row per run


@dataclass
class SimulationConfig:
    """Complete simulation configuration.

    Load from YAML via `load_config()`. Sections map 1:1 to YAML top-level keys.
    """
    simulation: SimulationSection = field(default_factory=SimulationSection)
    population: PopulationSection = field(default_factory=PopulationSection)
    fruit: FruitSection = field(default_factory=FruitSection)
    diapause: DiapauseSection = field(default_factory=DiapauseSection)
    stages: Dict[str, StageSection] = field(default_factory=default_stage_sections)
    batch: BatchSection = field(default_factory=BatchSection)
    output: OutputSection = field(default_factory=OutputSection)


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values are replaced
    - Keys in override but not base are added

    Args:
        base: Base dictionary (modified in place).
        override: Override dictionary.

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


def _yaml_to_config(data: Dict) -> SimulationConfig:
    """Convert a merged YAML dict to a SimulationConfig."""
    sections = {}
    section_map = {
        'simulation': SimulationSection,
        'fruit': FruitSection,
        'diapause': DiapauseSection,
        'batch': BatchSection,
        'output': OutputSection,
    }
    for key, cls in section_map.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()

    # Initial populations merge onto the defaults stage by stage
    population = PopulationSection()
    if isinstance(data.get('population'), dict):
        pop_data = dict(data['population'])
        initial = pop_data.pop('initial', None) or {}
        population = _dict_to_section(PopulationSection, pop_data)
        population.initial.update(
            {str(k).lower(): v for k, v in initial.items()}
        )
    sections['population'] = population

    stages = default_stage_sections()
    if isinstance(data.get('stages'), dict):
        for name, overrides in data['stages'].items():
            key = str(name).lower()
            if key not in stages:
                raise ValueError(
                    f"stages.{name} is not a stage; expected one of {STAGE_NAMES}"
                )
            if isinstance(overrides, dict):
                merged = deep_merge(dataclasses.asdict(stages[key]), overrides)
                stages[key] = _dict_to_section(StageSection, merged)
    sections['stages'] = stages

    return SimulationConfig(**sections)


def validate_config(config: SimulationConfig) -> None:
    """Validate configuration constraints. Raises ValueError on failure.

    Checks:
      - Timing (dt > 0, run_days >= 0) and temperature source are valid
      - Proportions and fruit coefficients lie in their ranges
      - Diapause daylight hours lie in [0, 24]
      - Stage coefficients and initial populations are non-negative
      - Batch sweep stages are real stage names
    """
    sim = config.simulation
    if sim.dt <= 0:
        raise ValueError(f"simulation.dt must be > 0, got {sim.dt}")
    if sim.run_days < 0:
        raise ValueError(
            f"simulation.run_days must be >= 0, got {sim.run_days}"
        )

    valid_sources = {"constant", "file", "sinusoidal"}
    if sim.temperature_source not in valid_sources:
        raise ValueError(
            f"simulation.temperature_source must be one of {valid_sources}, "
            f"got '{sim.temperature_source}'"
        )
    if sim.temperature_source == "file":
        if not os.path.isfile(sim.temperature_file):
            warnings.warn(
                f"simulation.temperature_file '{sim.temperature_file}' "
                f"does not exist. Temperature loading will fail at runtime.",
                UserWarning,
                stacklevel=2,
            )

    if len(sim.thresholds) != N_THRESHOLDS:
        raise ValueError(
            f"simulation.thresholds must have {N_THRESHOLDS} elements, "
            f"got {len(sim.thresholds)}"
        )

    # Population
    pop = config.population
    if not (0.0 <= pop.male_proportion <= 1.0):
        raise ValueError(
            f"population.male_proportion must be in [0, 1], "
            f"got {pop.male_proportion}"
        )
    for name, count in pop.initial.items():
        if name not in STAGE_NAMES:
            raise ValueError(
                f"population.initial.{name} is not a stage; "
                f"expected one of {STAGE_NAMES}"
            )
        if count < 0:
            raise ValueError(
                f"population.initial.{name} must be >= 0, got {count}"
            )

    # Fruit
    fruit = config.fruit
    for attr in ('m', 'harvest_cutoff', 'harvest_drop'):
        val = getattr(fruit, attr)
        if not (0.0 <= val <= 1.0):
            raise ValueError(f"fruit.{attr} must be in [0, 1], got {val}")
    if not (0.0 <= fruit.time_lag <= 365.0):
        raise ValueError(
            f"fruit.time_lag must be in [0, 365], got {fruit.time_lag}"
        )
    if fruit.gt_multiplier <= 0:
        raise ValueError(
            f"fruit.gt_multiplier must be > 0, got {fruit.gt_multiplier}"
        )

    # Diapause
    if not (0.0 <= config.diapause.daylight_hours <= 24.0):
        raise ValueError(
            f"diapause.daylight_hours must be in [0, 24], "
            f"got {config.diapause.daylight_hours}"
        )

    # Stages
    terminal = {STAGE_NAMES[Stage.MALES], STAGE_NAMES[Stage.FEMALES7]}
    female_names = {STAGE_NAMES[s] for s in FEMALE_STAGES}
    for name, st in config.stages.items():
        if name in terminal and st.development_max is not None:
            raise ValueError(
                f"stages.{name}.development_max must be unset; "
                f"{name} do not develop further"
            )
        if name not in terminal and st.development_max is None:
            raise ValueError(f"stages.{name}.development_max is required")
        if st.development_max is not None and st.development_max < 0:
            raise ValueError(
                f"stages.{name}.development_max must be >= 0, "
                f"got {st.development_max}"
            )
        if st.mortality_max < 0:
            raise ValueError(
                f"stages.{name}.mortality_max must be >= 0, "
                f"got {st.mortality_max}"
            )
        if st.predation < 0:
            raise ValueError(
                f"stages.{name}.predation must be >= 0, got {st.predation}"
            )
        if name in female_names:
            if st.egg_viability is None or st.egg_viability < 0:
                raise ValueError(
                    f"stages.{name}.egg_viability must be >= 0, "
                    f"got {st.egg_viability}"
                )
        elif st.egg_viability is not None:
            raise ValueError(
                f"stages.{name}.egg_viability only applies to female stages"
            )

    # Batch
    batch = config.batch
    if batch.workers is not None and batch.workers < 1:
        raise ValueError(f"batch.workers must be >= 1, got {batch.workers}")
    if batch.dt <= 0:
        raise ValueError(f"batch.dt must be > 0, got {batch.dt}")
    for stage_name in (list(batch.population_stages)
                       + [batch.fruit_stage, batch.diapause_stage]):
        if stage_name not in STAGE_NAMES:
            raise ValueError(
                f"batch stage '{stage_name}' is not a stage; "
                f"expected one of {STAGE_NAMES}"
            )
    if any(p < 0 for p in batch.population_sizes):
        raise ValueError("batch.population_sizes must all be >= 0")


def load_config(
    base_path: Union[str, Path],
    scenario_path: Optional[Union[str, Path]] = None,
    sweep_overrides: Optional[Dict] = None,
) -> SimulationConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → scenario → sweep overrides.
    Each layer overrides only the fields it specifies.

    Args:
        base_path: Path to base configuration YAML.
        scenario_path: Optional scenario override YAML.
        sweep_overrides: Optional dict of parameter sweep overrides.

    Returns:
        Validated SimulationConfig.

    Raises:
        FileNotFoundError: If base_path doesn't exist.
        ValueError: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    with open(base_path) as f:
        config_dict = yaml.safe_load(f) or {}

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if scenario_path.exists():
            with open(scenario_path) as f:
                scenario = yaml.safe_load(f) or {}
            deep_merge(config_dict, scenario)

    if sweep_overrides is not None:
        deep_merge(config_dict, sweep_overrides)

    config = _yaml_to_config(config_dict)
    validate_config(config)
    return config


def default_config() -> SimulationConfig:
    """Return a SimulationConfig with all default values."""
    config = SimulationConfig()
    validate_config(config)
    return config
