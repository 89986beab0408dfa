"""Utility functions for SWD-Sim.

Rounding and step-count helpers shared by the fruit model and the
simulation clock.
"""

from __future__ import annotations

import math


def round_half_up_2dp(value: float) -> float:
    """Round to two decimals by truncating at the third, then half-up.

    0.125 → 0.13 and 0.124 → 0.12. Integer arithmetic truncates toward
    zero, so negative inputs round toward zero on ties.
    """
    scaled = int(value * 1000)
    sign = -1 if scaled < 0 else 1
    tens, remainder = divmod(abs(scaled), 10)
    tens *= sign
    if sign * remainder >= 5:
        tens += 1
    return tens / 100.0


def n_integration_steps(num_days: float, dt: float) -> int:
    """Number of Euler steps needed to cover ``num_days`` with step ``dt``.

    Counts k = 0, 1, 2, ... while round_half_up_2dp(k·dt) < num_days.
    """
    if dt <= 0:
        raise ValueError(f"dt must be > 0, got {dt}")
    if num_days < 0:
        raise ValueError(f"num_days must be >= 0, got {num_days}")
    # Rounding can reach num_days up to ~0.01 early; start safely below it
    n = max(int(math.floor((num_days - 0.01) / dt)) - 1, 0)
    while round_half_up_2dp(n * dt) < num_days:
        n += 1
    return n
