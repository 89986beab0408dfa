"""Named parameter snapshot consumed by the simulation core.

The core never touches configuration dataclasses directly. It reads
real-valued parameters by name from an immutable :class:`Parameters`
mapping, e.g. ``params["eggs mortality max"]`` or
``params["fruit time lag"]``. Names follow the pattern

  - ``<stage> development max``            (juveniles, females1–6)
  - ``<stage> mortality max|min temp|max temp|tau|beta0..beta3``
  - ``<stage> mortality due to predation``
  - ``females<i> egg viability``           (i = 1..7)
  - ``initial <stage>``                    (all 13 stages)
  - ``fruit n|m|time lag|base temp|gt multiplier|harvest cutoff|harvest drop``
  - ``diapause critical temp``, ``diapause daylight hours``
  - ``time``, ``constant temp``, ``male proportion``, ``latitude``,
    ``fertility tmax``

Snapshots are copied, never shared: :meth:`Parameters.with_overrides`
returns a new validated snapshot and leaves the original untouched, so a
batch loop can derive per-run parameters without leaking changes back
into completed runs.

References:
  - Tochen et al. (2014) Environ. Entomol. 43:501–510 (stage mortality)
  - Wiman et al. (2014) PLoS ONE 9:e106909 (stage-structured SWD model)
"""

from __future__ import annotations

import warnings
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterator, Optional, Union

import numpy as np

from swd_sim.types import (
    DEVELOPING_STAGES,
    FEMALE_STAGES,
    JUVENILE_STAGES,
    N_FEMALE_STAGES,
    N_STAGES,
    STAGE_NAMES,
    Stage,
)

if TYPE_CHECKING:
    from swd_sim.config import SimulationConfig


# ═══════════════════════════════════════════════════════════════════════
# DEFAULTS
# ═══════════════════════════════════════════════════════════════════════

# Per-stage (development max, mortality max, mortality beta0).
# None = stage has no development (terminal adult stages).
STAGE_DEFAULTS = {
    Stage.EGGS:     (0.72,     0.3288, 0.1602),
    Stage.INSTAR1:  (0.94,     0.2688, 0.1402),
    Stage.INSTAR2:  (0.68,     0.1020, 0.0846),
    Stage.INSTAR3:  (0.32,     0.1068, 0.0862),
    Stage.PUPAE:    (0.17,     0.0303, 0.0607),
    Stage.MALES:    (None,     0.1398, 0.0972),
    Stage.FEMALES1: (1.0 / 80, 0.0537, 0.0685),
    Stage.FEMALES2: (1.0 / 10, 0.1200, 0.0906),
    Stage.FEMALES3: (1.0 / 10, 0.4500, 0.2006),
    Stage.FEMALES4: (1.0 / 5,  0.0,    0.0506),
    Stage.FEMALES5: (1.0 / 4,  0.7500, 0.3006),
    Stage.FEMALES6: (1.0 / 5,  0.6000, 0.2506),
    Stage.FEMALES7: (None,     0.8367, 0.3295),
}

# Shared mortality-curve shape for every stage
MORTALITY_SHAPE_DEFAULTS = {
    "min temp": 3.0,
    "max temp": 33.0,
    "tau": 8.1776,
    "beta1": -0.0077,
    "beta2": 0.00032,
    "beta3": -0.000002,
}

EGG_VIABILITY_DEFAULTS = (0.832, 0.807, 0.763, 0.556, 0.324, 0.257, 0.0)

INITIAL_POPULATION_DEFAULTS = {
    Stage.EGGS: 3.0,
    Stage.INSTAR1: 5.0,
    Stage.INSTAR2: 7.0,
    Stage.INSTAR3: 4.0,
    Stage.PUPAE: 8.0,
    Stage.MALES: 5.0,
    **{s: 4.0 for s in FEMALE_STAGES},
}


def default_parameter_map() -> Dict[str, float]:
    """Build the full name → value mapping with model defaults."""
    values: Dict[str, float] = {
        # Fruit quality sub-model
        "fruit n": 4.0,
        "fruit m": 0.75,
        "fruit time lag": 50.0,
        "fruit base temp": 4.0,
        "fruit gt multiplier": 4.0,
        "fruit harvest cutoff": 0.95,
        "fruit harvest drop": 0.1,
        # Diapause gate
        "diapause critical temp": 18.0,
        "diapause daylight hours": 10.0,
        # General
        "time": 100.0,
        "constant temp": 15.0,
        "male proportion": 0.5,
        "latitude": 46.49,
        "fertility tmax": 30.0,
    }

    for stage in Stage:
        name = STAGE_NAMES[stage]
        values[f"initial {name}"] = INITIAL_POPULATION_DEFAULTS[stage]

        dev_max, mort_max, beta0 = STAGE_DEFAULTS[stage]
        if dev_max is not None:
            values[f"{name} development max"] = dev_max
        values[f"{name} mortality max"] = mort_max
        values[f"{name} mortality beta0"] = beta0
        for key, val in MORTALITY_SHAPE_DEFAULTS.items():
            values[f"{name} mortality {key}"] = val
        values[f"{name} mortality due to predation"] = 0.0

    for i, viability in enumerate(EGG_VIABILITY_DEFAULTS):
        values[f"females{i + 1} egg viability"] = viability

    return values


# ═══════════════════════════════════════════════════════════════════════
# VALIDATION
# ═══════════════════════════════════════════════════════════════════════

_UNIT_INTERVAL = (
    "male proportion",
    "fruit m",
    "fruit harvest cutoff",
    "fruit harvest drop",
)


def validate_parameters(values: Mapping) -> None:
    """Validate a flat parameter mapping. Raises ValueError on failure.

    Checks:
      - Proportions and fruit coefficients lie in [0, 1]
      - Fruit time lag is non-negative
      - Diapause daylight hours lie in [0, 24]
      - Initial populations, max mortality, predation mortality,
        development max and egg viability are non-negative
      - Juvenile development max is strictly positive
    """
    for name in _UNIT_INTERVAL:
        val = values[name]
        if not (0.0 <= val <= 1.0):
            raise ValueError(f"'{name}' must be in [0, 1], got {val}")

    if values["fruit time lag"] < 0:
        raise ValueError(
            f"'fruit time lag' must be >= 0, got {values['fruit time lag']}"
        )

    hours = values["diapause daylight hours"]
    if not (0.0 <= hours <= 24.0):
        raise ValueError(
            f"'diapause daylight hours' must be in [0, 24], got {hours}"
        )

    for name, val in values.items():
        if (name.startswith("initial ")
                or name.endswith(" mortality max")
                or name.endswith(" mortality due to predation")
                or name.endswith(" development max")
                or name.endswith(" egg viability")):
            if val < 0:
                raise ValueError(f"'{name}' must be >= 0, got {val}")

    # The Brière curve divides by the juvenile development max
    for stage in JUVENILE_STAGES:
        name = f"{STAGE_NAMES[stage]} development max"
        if values[name] <= 0:
            raise ValueError(f"'{name}' must be > 0, got {values[name]}")


# ═══════════════════════════════════════════════════════════════════════
# PARAMETER SNAPSHOT
# ═══════════════════════════════════════════════════════════════════════

class Parameters(Mapping):
    """Immutable, validated name → value parameter snapshot.

    Args:
        values: Optional overrides applied on top of the defaults. Every
            key must be a known parameter name.
    """

    def __init__(self, values: Optional[Mapping] = None):
        merged = default_parameter_map()
        if values:
            for name, val in values.items():
                key = name.strip().lower()
                if key not in merged:
                    raise KeyError(f"Unknown parameter '{name}'")
                merged[key] = float(val)
        validate_parameters(merged)
        self._values: Dict[str, float] = merged

    # ── Mapping protocol ─────────────────────────────────────────────

    def __getitem__(self, name: str) -> float:
        try:
            return self._values[name]
        except KeyError:
            raise KeyError(f"Unknown parameter '{name}'") from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Parameters({len(self._values)} values)"

    # ── Derived snapshots ────────────────────────────────────────────

    def copy(self) -> "Parameters":
        return Parameters(self._values)

    def with_overrides(self, overrides: Mapping) -> "Parameters":
        """Return a new validated snapshot with ``overrides`` applied."""
        merged = dict(self._values)
        merged.update(overrides)
        return Parameters(merged)

    def to_dict(self) -> Dict[str, float]:
        return dict(self._values)

    @classmethod
    def from_config(cls, config: "SimulationConfig") -> "Parameters":
        return parameters_from_config(config)

    # ── Stage-structured views ───────────────────────────────────────

    def stage_value(self, stage: Stage, field_name: str) -> float:
        """Look up ``"<stage> <field_name>"``, e.g. ('pupae', 'mortality tau')."""
        return self[f"{STAGE_NAMES[stage]} {field_name}"]

    def initial_population(self) -> np.ndarray:
        """Configured initial population for all 13 stages."""
        return np.array(
            [self[f"initial {name}"] for name in STAGE_NAMES],
            dtype=np.float64,
        )

    def development_max(self) -> np.ndarray:
        """Development max per stage; 0 for males and females7."""
        out = np.zeros(N_STAGES, dtype=np.float64)
        for stage in DEVELOPING_STAGES:
            out[stage] = self.stage_value(stage, "development max")
        return out

    def egg_viability(self) -> np.ndarray:
        """Egg viability for the seven female age classes."""
        return np.array(
            [self[f"females{i + 1} egg viability"]
             for i in range(N_FEMALE_STAGES)],
            dtype=np.float64,
        )

    def mortality_table(self) -> Dict[str, np.ndarray]:
        """Per-stage mortality coefficients as arrays of length 13.

        Keys: 'max', 'min_temp', 'max_temp', 'tau', 'betas' (13×4),
        'predation'.
        """
        def column(field_name: str) -> np.ndarray:
            return np.array(
                [self.stage_value(s, f"mortality {field_name}") for s in Stage],
                dtype=np.float64,
            )

        betas = np.stack(
            [column(f"beta{i}") for i in range(4)], axis=1,
        )
        return {
            'max': column("max"),
            'min_temp': column("min temp"),
            'max_temp': column("max temp"),
            'tau': column("tau"),
            'betas': betas,
            'predation': column("due to predation"),
        }


# ═══════════════════════════════════════════════════════════════════════
# LOADERS
# ═══════════════════════════════════════════════════════════════════════

def load_parameter_text(
    path: Union[str, Path],
    base: Optional[Parameters] = None,
) -> Parameters:
    """Load a ``name: value`` parameter file on top of ``base``.

    Lines whose name is not a known parameter are ignored; names are
    case-insensitive. The file does not have to list every parameter.

    Args:
        path: Text file with one ``name: value`` pair per line.
        base: Snapshot to start from (defaults if None).

    Returns:
        New validated Parameters.

    Raises:
        FileNotFoundError: If path doesn't exist.
        ValueError: If a known name has a missing or non-numeric value
            (message names the line), or the result fails validation.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Parameter file not found: {path}")

    base = base if base is not None else Parameters()
    overrides: Dict[str, float] = {}

    with open(path) as f:
        for line_number, line in enumerate(f, start=1):
            parts = line.rstrip("\n").split(": ")
            name = parts[0].strip().lower()
            if name not in base:
                continue
            if len(parts) < 2 or not parts[1].strip():
                raise ValueError(
                    f"Input error - value not present - on line {line_number}"
                )
            try:
                overrides[name] = float(parts[1])
            except ValueError:
                raise ValueError(
                    f"Input error - invalid value - on line {line_number}"
                ) from None

    if not overrides:
        warnings.warn(
            f"No parameters were changed (no valid input in {path}).",
            UserWarning,
            stacklevel=2,
        )
        return base.copy()

    return base.with_overrides(overrides)


def parameters_from_config(config: "SimulationConfig") -> Parameters:
    """Flatten a validated SimulationConfig into a Parameters snapshot."""
    sim = config.simulation
    pop = config.population
    fruit = config.fruit
    diap = config.diapause

    values: Dict[str, float] = {
        "fruit n": fruit.n,
        "fruit m": fruit.m,
        "fruit time lag": fruit.time_lag,
        "fruit base temp": fruit.base_temp,
        "fruit gt multiplier": fruit.gt_multiplier,
        "fruit harvest cutoff": fruit.harvest_cutoff,
        "fruit harvest drop": fruit.harvest_drop,
        "diapause critical temp": diap.critical_temp,
        "diapause daylight hours": diap.daylight_hours,
        "time": sim.run_days,
        "constant temp": sim.constant_temp,
        "male proportion": pop.male_proportion,
        "latitude": pop.latitude,
        "fertility tmax": pop.fertility_tmax,
    }

    for name, count in pop.initial.items():
        values[f"initial {name}"] = count

    for name, section in config.stages.items():
        if section.development_max is not None:
            values[f"{name} development max"] = section.development_max
        values[f"{name} mortality max"] = section.mortality_max
        values[f"{name} mortality min temp"] = section.mortality_min_temp
        values[f"{name} mortality max temp"] = section.mortality_max_temp
        values[f"{name} mortality tau"] = section.mortality_tau
        for i, beta in enumerate(section.betas):
            values[f"{name} mortality beta{i}"] = beta
        values[f"{name} mortality due to predation"] = section.predation
        if section.egg_viability is not None:
            values[f"{name} egg viability"] = section.egg_viability

    return Parameters(values)
