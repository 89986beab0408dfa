"""Fruit-ripeness proxy with a lagged harvest decline.

Quality q ∈ [0.05, 1] ripens with temperature through the growth-time
curve g(T) and, once the quality recorded ``time_lag`` days earlier has
passed the harvest cutoff, declines at the harvest drop rate:

  dq/dt = q · (gt_multiplier / g(T) − drop · [q_lag > cutoff])

When T is at or below the base temperature g(T) is undefined (NaN) and
only the harvest term applies. After each Euler step q is clamped to
[0.05, 1].

One sample per day is kept in a 365-slot buffer; the last sub-step of
the day overwrites earlier ones. Day index 0 of every year restarts the
cycle at q = 0.05 with the harvest latch cleared.
"""

from __future__ import annotations

import math

import numpy as np

from swd_sim.parameters import Parameters
from swd_sim.rates import growth_time
from swd_sim.utils import round_half_up_2dp

DAYS_PER_YEAR = 365
MIN_QUALITY = 0.05
MAX_QUALITY = 1.0


class FruitQualityModel:
    """Scalar fruit quality with a daily lag buffer.

    Args:
        time_lag: Days between reaching the cutoff and harvest decline.
        base_temp: Temperature (°C) at or below which fruit does not ripen.
        gt_multiplier: Scale on the 1/g(T) ripening term.
        harvest_cutoff: Lagged quality above which the harvest latches.
        harvest_drop: Relative daily quality decline after harvest.
    """

    def __init__(
        self,
        time_lag: float = 50.0,
        base_temp: float = 4.0,
        gt_multiplier: float = 4.0,
        harvest_cutoff: float = 0.95,
        harvest_drop: float = 0.1,
    ):
        self.time_lag = time_lag
        self.base_temp = base_temp
        self.gt_multiplier = gt_multiplier
        self.harvest_cutoff = harvest_cutoff
        self.harvest_drop = harvest_drop
        self.daily = np.full(DAYS_PER_YEAR, MIN_QUALITY, dtype=np.float64)
        self.reset()

    @classmethod
    def from_parameters(cls, params: Parameters) -> "FruitQualityModel":
        return cls(
            time_lag=params["fruit time lag"],
            base_temp=params["fruit base temp"],
            gt_multiplier=params["fruit gt multiplier"],
            harvest_cutoff=params["fruit harvest cutoff"],
            harvest_drop=params["fruit harvest drop"],
        )

    def configure(self, params: Parameters) -> None:
        """Pick up new coefficients without touching the current state."""
        self.time_lag = params["fruit time lag"]
        self.base_temp = params["fruit base temp"]
        self.gt_multiplier = params["fruit gt multiplier"]
        self.harvest_cutoff = params["fruit harvest cutoff"]
        self.harvest_drop = params["fruit harvest drop"]

    def reset(self) -> None:
        self.quality = MIN_QUALITY
        self.harvest_triggered = False
        self.day_crossed_max = -1.0
        self.daily[:] = MIN_QUALITY

    def lagged_quality(self, day_index: int) -> float:
        """Quality ``time_lag`` days ago, updating the harvest latch.

        Before the lag window opens in a year the latch is cleared and the
        floor value is returned. Once latched the lagged value reads as 1
        so ripening cannot resume until the next year.
        """
        lagged = MIN_QUALITY
        if day_index - self.time_lag > 0:
            lagged = float(self.daily[int(day_index - self.time_lag)])
            if lagged > self.harvest_cutoff:
                self.harvest_triggered = True
        else:
            self.harvest_triggered = False

        if self.harvest_triggered:
            lagged = MAX_QUALITY
        return lagged

    def derivative(self, temperature: float, lagged: float) -> float:
        harvest = self.harvest_drop if lagged > self.harvest_cutoff else 0.0
        gt = growth_time(self.base_temp, temperature)
        if math.isnan(gt):
            return self.quality * (-harvest)
        return self.quality * (self.gt_multiplier / gt - harvest)

    def update(self, temperature: float, dt: float, sim_time: float) -> float:
        """Advance quality by one Euler step of length dt at time sim_time.

        Returns:
            New quality in [0.05, 1].
        """
        day_index = int(sim_time) % DAYS_PER_YEAR
        if day_index == 0:
            self.quality = MIN_QUALITY

        lagged = self.lagged_quality(day_index)
        q = self.quality + self.derivative(temperature, lagged) * dt
        self.quality = min(max(q, MIN_QUALITY), MAX_QUALITY)

        if self.day_crossed_max < 0 and round_half_up_2dp(self.quality) == 1.0:
            self.day_crossed_max = sim_time

        self.daily[day_index] = self.quality
        return self.quality
