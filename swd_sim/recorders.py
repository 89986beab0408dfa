"""Optional diagnostic recorders attached to a cell.

DiapauseEffectRecorder keeps the fertility multiplier applied on each
day of the year, the quantity usually plotted to check when diapause
suppresses reproduction. It is attached to one CellSimulation as an
observer; nothing is stored at module level, so concurrent runs never
share a recorder unless the caller passes the same one.

Usage:
    recorder = DiapauseEffectRecorder(enabled=True)
    sim = CellSimulator(params, recorder=recorder)
    sim.run(temperatures, 365)
    recorder.to_text()   # one "day<TAB>multiplier" line per day
"""

from __future__ import annotations

from pathlib import Path
from typing import Union

import numpy as np

from swd_sim.fruit import DAYS_PER_YEAR


class DiapauseEffectRecorder:
    """Per-day diapause fertility multiplier.

    When enabled=False, all methods are no-ops.
    """

    def __init__(self, enabled: bool = False):
        self.enabled = enabled
        self.multipliers = np.full(DAYS_PER_YEAR, np.nan, dtype=np.float64)
        self.n_captured = 0

    def capture(self, sim_time: float, fertility_multiplier: float) -> None:
        """Store the multiplier for the day containing ``sim_time``.

        Later sub-steps of the same day overwrite earlier ones.
        """
        if not self.enabled:
            return
        self.multipliers[int(sim_time) % DAYS_PER_YEAR] = fertility_multiplier
        self.n_captured += 1

    def reset(self) -> None:
        self.multipliers[:] = np.nan
        self.n_captured = 0

    def to_text(self) -> str:
        lines = []
        for day, value in enumerate(self.multipliers):
            if not np.isnan(value):
                lines.append(f"{day}\t{value}")
        return '\n'.join(lines)

    def save(self, path: Union[str, Path]) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_text() + '\n')
