"""Astronomical day-length approximation.

Day length from latitude and day of year, using the cosine approximation
to solar declination. The simulation clock starts on 1 January; the
date is shifted by the number of days between the winter solstice and
the start of the year so that the cosine term peaks at the solstice.

References:
  - Forsythe et al. (1995) Ecol. Model. 80:87–95 (day-length models)
"""

from __future__ import annotations

import math

EARTH_AXIAL_TILT = 23.439   # degrees
_HALF_YEAR = 182.625        # days

# December solstice day-of-month, 2000–2020
_SOLSTICE_DAYS = (
    21, 21, 22, 22, 21, 21, 22, 22, 21, 21, 21,
    22, 21, 21, 21, 22, 21, 21, 21, 22, 21,
)
_SOLSTICE_FIRST_YEAR = 2000
_SOLSTICE_DEFAULT = 21


def solstice_day(year: int) -> int:
    """Day of December on which the winter solstice falls.

    Years outside the tabulated range fall back to the 21st.
    """
    idx = year - _SOLSTICE_FIRST_YEAR
    if 0 <= idx < len(_SOLSTICE_DAYS):
        return _SOLSTICE_DAYS[idx]
    return _SOLSTICE_DEFAULT


def solstice_offset(year: int) -> int:
    """Days from the December solstice to the end of the month."""
    return 31 - solstice_day(year)


def day_length_hours(date: float, latitude: float) -> float:
    """Hours of daylight on ``date`` days after the winter solstice.

    h = acos(1 − m) · 24/180°,  m = 1 − tan(φ)·tan(ε·cos(π·d/182.625))

    with m clamped to [0, 2] (polar day/night).

    Args:
        date: Days since the winter solstice.
        latitude: Degrees north.

    Returns:
        Day length in hours, in [0, 24].
    """
    j = math.pi / _HALF_YEAR
    m = 1.0 - math.tan(math.radians(latitude)) * math.tan(
        math.radians(EARTH_AXIAL_TILT) * math.cos(j * date)
    )
    m = min(max(m, 0.0), 2.0)
    return math.degrees(math.acos(1.0 - m)) / 180.0 * 24.0


def model_day_length(year: int, day_of_year: int, latitude: float) -> float:
    """Day length for the simulation clock.

    Args:
        year: Year index (or calendar year) used for the solstice table.
        day_of_year: 0-indexed day since 1 January.
        latitude: Degrees north.
    """
    return day_length_hours(day_of_year + solstice_offset(year), latitude)
