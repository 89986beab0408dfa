"""Diapause gating and gated population injection.

Two small state machines that communicate through one boolean event:

  DiapauseGate     armed/open flags driven by day length and temperature.
                   Decides how much reproduction is suppressed each step.
  InjectionTrigger watches for the first step on which the gate is armed
                   and, unless an explicit start day already forced
                   injection, requests that the configured initial
                   population be placed in the cell.

Gate transition (both right-hand sides use the previous flags):

  open'  = 0     if armed == 0
         = 1     if hours >= threshold
         = open  otherwise
  armed' = 0     if armed == 1 and open == 1 and hours < threshold
         = 1     if open == 0 and T > T_crit
         = armed otherwise

Fertility multiplier = armed' × diapause_fertility_factor(hours).

In words: warm weather arms the gate, long days open it, and the first
short day after that closes it for the rest of the season.
"""

from __future__ import annotations

from swd_sim.rates import diapause_fertility_factor


class DiapauseGate:
    """Two-flag diapause gate.

    Args:
        critical_temp: Temperature (°C) above which a closed gate arms.
        daylight_hours: Day length (h) at which an armed gate opens, and
            below which an open gate closes.
    """

    def __init__(self, critical_temp: float, daylight_hours: float):
        self.critical_temp = critical_temp
        self.daylight_hours = daylight_hours
        self.armed = 0
        self.open = 0

    def reset(self) -> None:
        self.armed = 0
        self.open = 0

    def update(self, hours: float, temperature: float) -> int:
        """Apply one transition and return the new armed flag."""
        armed_prev, open_prev = self.armed, self.open

        if armed_prev == 0:
            open_new = 0
        elif hours >= self.daylight_hours:
            open_new = 1
        else:
            open_new = open_prev

        if armed_prev * open_prev > 0 and hours < self.daylight_hours:
            armed_new = 0
        elif open_prev == 0 and temperature > self.critical_temp:
            armed_new = 1
        else:
            armed_new = armed_prev

        self.open = open_new
        self.armed = armed_new
        return armed_new

    def step(self, hours: float, temperature: float) -> float:
        """Transition the gate and return this step's fertility multiplier."""
        armed = self.update(hours, temperature)
        return armed * diapause_fertility_factor(hours)


class InjectionTrigger:
    """Latches the first gate-armed event and decides on injection.

    Attributes:
        crossed: True once the gate has armed at least once.
        crossed_day: Integer day of the first armed step (-1 = never).
        forced: True when injection is tied to an explicit start day (or
            has already happened), so the gate must not inject again.
    """

    def __init__(self):
        self.crossed = False
        self.crossed_day = -1
        self.forced = False

    def reset(self) -> None:
        self.crossed = False
        self.crossed_day = -1
        self.forced = False

    def blocks_integration(self, gate_armed: bool) -> bool:
        """True while the cell is still waiting for its first gate event."""
        return not gate_armed and not self.crossed and not self.forced

    def observe(self, gate_armed: bool, day: int) -> bool:
        """Feed one gate event; return True if the population should be injected."""
        if not gate_armed or self.crossed:
            return False
        self.crossed = True
        self.crossed_day = day
        return not self.forced
