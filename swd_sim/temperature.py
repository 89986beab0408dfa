"""Daily temperature forcing.

A run consumes one temperature per simulated day; the series is reused
from the start when the run is longer than the series.

Sources:
  - constant: the same value every day
  - file:     one value per line (blank lines skipped)
  - sinusoidal: annual cosine cycle peaking on ``peak_doy``

    T(d) = T_mean + A × cos(2π × (d − d_peak) / 365)
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Union

import numpy as np

if TYPE_CHECKING:
    from swd_sim.config import SimulationConfig

DAYS_PER_YEAR = 365


def constant_series(value: float, n_days: int = DAYS_PER_YEAR) -> np.ndarray:
    """Daily series with every day at ``value``."""
    if n_days < 1:
        raise ValueError(f"n_days must be >= 1, got {n_days}")
    return np.full(n_days, float(value), dtype=np.float64)


def sinusoidal_series(
    n_days: int = DAYS_PER_YEAR,
    mean_temp: float = 12.0,
    amplitude: float = 10.0,
    peak_doy: int = 200,
) -> np.ndarray:
    """Daily temperatures from a sinusoidal annual cycle.

    Args:
        n_days: Length of the series (days).
        mean_temp: Annual mean temperature (°C).
        amplitude: Half-range of the annual cycle (°C).
        peak_doy: 0-indexed day of the annual maximum.

    Returns:
        1-D array of shape (n_days,).
    """
    if n_days < 1:
        raise ValueError(f"n_days must be >= 1, got {n_days}")
    day_of_year = np.arange(n_days) % DAYS_PER_YEAR
    phase = 2.0 * np.pi * (day_of_year - peak_doy) / DAYS_PER_YEAR
    return mean_temp + amplitude * np.cos(phase)


def load_temperature_file(path: Union[str, Path]) -> np.ndarray:
    """Read one daily temperature per line.

    Raises:
        FileNotFoundError: If path doesn't exist.
        ValueError: If a line is not a number (message names the line),
            or the file holds no values.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Temperature file not found: {path}")

    values = []
    with open(path) as f:
        for line_number, line in enumerate(f, start=1):
            text = line.strip()
            if not text:
                continue
            try:
                values.append(float(text))
            except ValueError:
                raise ValueError(
                    f"{path}: line {line_number} is not a temperature: {text!r}"
                ) from None

    if not values:
        raise ValueError(f"{path}: no temperature values")
    return np.asarray(values, dtype=np.float64)


def temperatures_from_config(config: "SimulationConfig") -> np.ndarray:
    """Build the daily series selected by ``simulation.temperature_source``."""
    sim = config.simulation
    if sim.temperature_source == 'constant':
        return constant_series(sim.constant_temp)
    if sim.temperature_source == 'file':
        return load_temperature_file(sim.temperature_file)
    if sim.temperature_source == 'sinusoidal':
        return sinusoidal_series(
            mean_temp=sim.temp_mean,
            amplitude=sim.temp_amplitude,
            peak_doy=sim.temp_peak_doy,
        )
    raise ValueError(
        f"Unknown temperature_source '{sim.temperature_source}'"
    )
