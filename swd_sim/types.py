"""Core data types for SWD-Sim.

This module is the SINGLE SOURCE OF TRUTH for:
  - Stage enumeration and the canonical stage order of the stage vector
  - Stage name strings used as parameter-name prefixes
  - Index helpers for the juvenile and adult-female blocks

All modules import these types from here. No other module hard-codes
stage indices.
"""

from enum import IntEnum
from typing import Tuple


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class Stage(IntEnum):
    """Life stages of Drosophila suzukii, in stage-vector order.

    Transitions (development flows):
      EGGS → INSTAR1 → INSTAR2 → INSTAR3 → PUPAE
      PUPAE → MALES (male proportion) | FEMALES1 (1 − male proportion)
      FEMALES1 → FEMALES2 → ... → FEMALES7 (age classes, terminal)
    """
    EGGS     = 0
    INSTAR1  = 1
    INSTAR2  = 2
    INSTAR3  = 3
    PUPAE    = 4
    MALES    = 5   # Terminal; no development
    FEMALES1 = 6
    FEMALES2 = 7
    FEMALES3 = 8
    FEMALES4 = 9
    FEMALES5 = 10
    FEMALES6 = 11
    FEMALES7 = 12  # Terminal; no development


N_STAGES = 13
N_FEMALE_STAGES = 7
N_THRESHOLDS = 10

STAGE_NAMES: Tuple[str, ...] = tuple(s.name.lower() for s in Stage)

JUVENILE_STAGES: Tuple[Stage, ...] = (
    Stage.EGGS, Stage.INSTAR1, Stage.INSTAR2, Stage.INSTAR3, Stage.PUPAE,
)

FEMALE_STAGES: Tuple[Stage, ...] = tuple(
    Stage(i) for i in range(Stage.FEMALES1, Stage.FEMALES7 + 1)
)

# Slice into the stage vector covering the seven female age classes
FEMALE_SLICE = slice(int(Stage.FEMALES1), int(Stage.FEMALES7) + 1)

# Stages that carry a "<stage> development max" parameter
DEVELOPING_STAGES: Tuple[Stage, ...] = JUVENILE_STAGES + FEMALE_STAGES[:-1]

# Aggregated series reported in run summaries (six stages + all females)
SUMMARY_SERIES: Tuple[str, ...] = (
    "eggs", "instar1", "instar2", "instar3", "pupae", "males", "females",
)


def stage_from_name(name: str) -> Stage:
    """Look up a Stage by its lower-case name (e.g. 'females3').

    Raises:
        ValueError: If the name is not a stage.
    """
    key = name.strip().lower()
    if key not in STAGE_NAMES:
        raise ValueError(
            f"Unknown stage '{name}'; expected one of {STAGE_NAMES}"
        )
    return Stage(STAGE_NAMES.index(key))
