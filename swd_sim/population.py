"""Stage-vector population engine.

Holds the 13 stage abundances and advances them by explicit Euler steps:

  dE/dt  = f · Σᵢ vᵢ·Fᵢ − E·(μ_E + p_E + d_E)
  dL1/dt = d_E·E − L1·(μ + p + d)                (likewise L2, L3, P)
  dM/dt  = s·d_P·P − M·(μ_M + p_M)
  dF1/dt = (1 − s)·d_P·P − F1·(μ + p + d)
  dFi/dt = d_{F(i−1)}·F(i−1) − Fi·(μ + p + d)    i = 2..6
  dF7/dt = d_F6·F6 − F7·(μ + p)

with f fertility, vᵢ egg viability, μ natural (+ fruit) mortality, p
predation, d development and s the male proportion.

The update is simultaneous: every right-hand side reads an immutable
snapshot of the previous vector, and the new vector replaces it in one
assignment. Abundances are not clamped at zero.
"""

from __future__ import annotations

import numpy as np

from swd_sim.rates import StageRates
from swd_sim.types import FEMALE_SLICE, N_FEMALE_STAGES, N_STAGES, Stage

_E, _L3, _P = int(Stage.EGGS), int(Stage.INSTAR3), int(Stage.PUPAE)
_M, _F1, _F6, _F7 = (
    int(Stage.MALES), int(Stage.FEMALES1), int(Stage.FEMALES6), int(Stage.FEMALES7),
)


def stage_derivatives(prev: np.ndarray, rates: StageRates) -> np.ndarray:
    """d(stage)/dt for every stage, from the previous stage vector."""
    dev = rates.development
    outflow = prev * (rates.mortality + rates.predation + dev)

    inflow = np.zeros(N_STAGES, dtype=np.float64)
    inflow[_E] = rates.fertility * float(
        np.dot(rates.egg_viability, prev[FEMALE_SLICE])
    )
    # Juvenile chain: each stage fed by its predecessor's development
    inflow[_E + 1:_P + 1] = dev[_E:_L3 + 1] * prev[_E:_L3 + 1]

    emergence = dev[_P] * prev[_P]
    inflow[_M] = rates.male_proportion * emergence
    inflow[_F1] = (1.0 - rates.male_proportion) * emergence

    # Female ageing chain
    inflow[_F1 + 1:_F7 + 1] = dev[_F1:_F6 + 1] * prev[_F1:_F6 + 1]

    return inflow - outflow


def euler_step(prev: np.ndarray, rates: StageRates, dt: float) -> np.ndarray:
    """Return prev + dt·f(prev) as a new array; prev is not modified."""
    return prev + stage_derivatives(prev, rates) * dt


class PopulationEngine:
    """The 13 stage abundances of one cell."""

    def __init__(self):
        self._values = np.zeros(N_STAGES, dtype=np.float64)

    @property
    def values(self) -> np.ndarray:
        """Copy of the current stage vector."""
        return self._values.copy()

    def __getitem__(self, stage: Stage) -> float:
        return float(self._values[stage])

    def reset(self) -> None:
        self._values = np.zeros(N_STAGES, dtype=np.float64)

    def set_population(self, values: np.ndarray) -> None:
        """Replace the stage vector (e.g. with configured initial populations)."""
        values = np.asarray(values, dtype=np.float64)
        if values.shape != (N_STAGES,):
            raise ValueError(
                f"stage vector must have shape ({N_STAGES},), got {values.shape}"
            )
        self._values = values.copy()

    def integrate(self, rates: StageRates, dt: float) -> np.ndarray:
        """Advance one Euler step and return the new stage vector."""
        snapshot = self._values.copy()
        snapshot.flags.writeable = False
        self._values = euler_step(snapshot, rates, dt)
        return self.values

    def female_stage(self, index: int) -> float:
        """Abundance of female age class ``index`` (0 = females1 … 6 = females7).

        Raises:
            IndexError: If index is outside [0, 6].
        """
        if not (0 <= index < N_FEMALE_STAGES):
            raise IndexError(
                f"female stage index must be in [0, {N_FEMALE_STAGES - 1}], "
                f"got {index}"
            )
        return float(self._values[_F1 + index])

    def female_stages(self) -> np.ndarray:
        return self._values[FEMALE_SLICE].copy()

    def total_females(self) -> float:
        return float(self._values[FEMALE_SLICE].sum())
