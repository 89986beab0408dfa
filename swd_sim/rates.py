"""Temperature- and fruit-dependent vital rates.

Pure functions mapping temperature, fruit quality and stage parameters to
instantaneous rates (per day):

  - Fertility: eggs per female per day, a high-order polynomial fit that
    is only defined inside a bounded temperature band
  - Development: Brière curve for juvenile stages; constant ageing rate
    for adult female age classes
  - Mortality: cubic polynomial in (T − τ), saturating at the stage's
    maximum outside its tolerated temperature window
  - Fruit effects: a saturating function of (quality / 0.5)^n that scales
    juvenile development and adds to mortality of every stage
  - Diapause: reproductive suppression as a logistic function of day length

No function here holds state. :func:`compute_stage_rates` assembles the
per-stage vectors consumed by the population engine.

References:
  - Brière et al. (1999) Environ. Entomol. 28:22–29 (development curve)
  - Tochen et al. (2014) Environ. Entomol. 43:501–510 (fertility, mortality)
  - Wiman et al. (2014) PLoS ONE 9:e106909 (stage-structured SWD model)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict

import numpy as np

from swd_sim.parameters import Parameters
from swd_sim.types import (
    FEMALE_STAGES,
    JUVENILE_STAGES,
    N_STAGES,
    Stage,
)


# ═══════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════

# Fertility curve: f(T) = C · (2740.50 − (T − 23.26)²)^88.38
# defined where T² + d² < l²
_FERT_D = 5.88
_FERT_L = 52.68
_FERT_PEAK = 2740.50
_FERT_TOPT = 23.26
_FERT_EXPONENT = 88.38
_FERT_LOG_COEF = math.log(3.3315e-304)

# Diapause fertility suppression (generalized logistic in day length)
_DIAP_A = 0.04056
_DIAP_K = 99.8
_DIAP_V = 1.2428535918
_DIAP_M = 0.0
_DIAP_Q = 3.23967951563418e-16
_DIAP_B = -2.871323611

# Brière juvenile development
BRIERE_A = 0.0001113
BRIERE_T0 = 9.8504
BRIERE_TL = 30.99

# Fruit quality at which the fruit effect is half-saturated
FRUIT_HALF_SATURATION = 0.5

# Fruit ripening growth-time curve: gt = 1100/(T − base) + 30
_GT_SCALE = 1100.0
_GT_OFFSET = 30.0

_JUVENILE_SLICE = slice(int(Stage.EGGS), int(Stage.PUPAE) + 1)


# ═══════════════════════════════════════════════════════════════════════
# SCALAR RATE FUNCTIONS
# ═══════════════════════════════════════════════════════════════════════

def fertility(T: float, tmax: float) -> float:
    """Eggs per female per day at temperature T.

    Evaluated in log space: the coefficient (≈3e-304) and the power term
    (≈1e303) each sit at the edge of float64 range, but their product is
    O(1).

    Args:
        T: Temperature (°C).
        tmax: Temperature above which no eggs are laid (°C).

    Returns:
        Fertility ≥ 0; 0 above tmax or outside the fitted band.
    """
    if T > tmax:
        return 0.0
    if not (T * T + _FERT_D * _FERT_D < _FERT_L * _FERT_L):
        return 0.0
    base = _FERT_PEAK - (T - _FERT_TOPT) ** 2
    if base <= 0.0:
        return 0.0
    return math.exp(_FERT_LOG_COEF + _FERT_EXPONENT * math.log(base))


def diapause_fertility_factor(hours: float) -> float:
    """Fraction of fertility retained at a given day length.

    effect = A + (K − A) / (1 + Q·exp(−B·(h − M)))^(1/v)   (percent suppressed)
    factor = (100 − effect) / 100

    Args:
        hours: Day length (h).

    Returns:
        Factor in [0, 1]; ~0 on short days, ~1 on long days.
    """
    exp_term = _DIAP_Q * math.exp(-_DIAP_B * (hours - _DIAP_M))
    effect = _DIAP_A + (_DIAP_K - _DIAP_A) / (1.0 + exp_term) ** (1.0 / _DIAP_V)
    return (100.0 - effect) / 100.0


def development_rate(T: float, dev_max: float) -> float:
    """Brière juvenile development rate.

    r(T) = a·T·(T − T0)·sqrt(TL − T) / dev_max   for T0 ≤ T ≤ TL, else 0.
    """
    if T < BRIERE_T0 or T > BRIERE_TL:
        return 0.0
    return BRIERE_A * T * (T - BRIERE_T0) * math.sqrt(BRIERE_TL - T) / dev_max


def mortality_rate(
    T: float,
    betas,
    tau: float,
    t_lower: float,
    t_upper: float,
    max_mortality: float,
) -> float:
    """Natural mortality: Σ βᵢ·(T − τ)ⁱ inside [t_lower, t_upper], else max.

    The polynomial is not clamped to max_mortality inside the window.
    """
    if not (t_lower <= T <= t_upper):
        return max_mortality
    x = T - tau
    return betas[0] + betas[1] * x + betas[2] * x * x + betas[3] * x ** 3


def _fruit_ratio(quality: float, n: float) -> float:
    return (quality / FRUIT_HALF_SATURATION) ** n


def fruit_development_effect(quality: float, n: float, m: float) -> float:
    """Multiplier on juvenile development: m·r/(1 + r) + 1 − m."""
    ratio = _fruit_ratio(quality, n)
    return m * ratio / (1.0 + ratio) + 1.0 - m


def fruit_mortality_effect(quality: float, n: float, max_mortality: float) -> float:
    """Additive mortality: 0.1·max_mortality/(1 + r).

    Poor fruit (low quality) raises mortality by up to 10% of the stage max.
    """
    ratio = _fruit_ratio(quality, n)
    return 0.1 * max_mortality / (1.0 + ratio)


def growth_time(base_temp: float, T: float) -> float:
    """Fruit growth time g(T); NaN at or below the base temperature."""
    if T <= base_temp:
        return float('nan')
    return _GT_SCALE / (T - base_temp) + _GT_OFFSET


# ═══════════════════════════════════════════════════════════════════════
# PER-STAGE RATE ASSEMBLY
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class StageRates:
    """Rates for all 13 stages at one integration step.

    development[i] is the per-capita outflow from stage i into its
    successor (0 for males and females7).
    """
    development: np.ndarray        # (13,) float64
    mortality: np.ndarray          # (13,) natural + fruit, float64
    predation: np.ndarray          # (13,) float64
    egg_viability: np.ndarray      # (7,) float64
    fertility: float               # eggs/female/day after diapause scaling
    male_proportion: float


class RateTable:
    """Per-stage coefficients pulled once from a Parameters snapshot.

    The snapshot is immutable, so the lookups are cached as arrays and
    reused every step.
    """

    def __init__(self, params: Parameters):
        self.dev_max = params.development_max()
        mort = params.mortality_table()
        self.mort_max = mort['max']
        self.mort_min_temp = mort['min_temp']
        self.mort_max_temp = mort['max_temp']
        self.mort_tau = mort['tau']
        self.mort_betas = mort['betas']
        self.predation = mort['predation']
        self.egg_viability = params.egg_viability()
        self.male_proportion = params["male proportion"]
        self.fertility_tmax = params["fertility tmax"]
        self.fruit_n = params["fruit n"]
        self.fruit_m = params["fruit m"]


def stage_mortality(T: float, table: RateTable) -> np.ndarray:
    """Natural mortality for all 13 stages (vectorized mortality_rate)."""
    x = T - table.mort_tau
    powers = np.stack([np.ones_like(x), x, x * x, x ** 3], axis=1)
    poly = np.sum(table.mort_betas * powers, axis=1)
    inside = (table.mort_min_temp <= T) & (T <= table.mort_max_temp)
    return np.where(inside, poly, table.mort_max)


def stage_development(T: float, table: RateTable) -> np.ndarray:
    """Development for all 13 stages before fruit effects.

    Juveniles follow the Brière curve; females1–6 age at a constant rate
    equal to their development max; males and females7 do not develop.
    """
    dev = np.zeros(N_STAGES, dtype=np.float64)
    for stage in JUVENILE_STAGES:
        dev[stage] = development_rate(T, table.dev_max[stage])
    for stage in FEMALE_STAGES[:-1]:
        dev[stage] = table.dev_max[stage]
    return dev


def compute_stage_rates(
    T: float,
    fruit_quality: float,
    table: RateTable,
    ignore_fruit: bool = False,
    fertility_multiplier: float = 1.0,
) -> StageRates:
    """Assemble every stage's rates for one step.

    Args:
        T: Temperature (°C).
        fruit_quality: Current fruit quality in [0.05, 1].
        table: Cached per-stage coefficients.
        ignore_fruit: If True, the development multiplier is 1 and the
            mortality addend is 0.
        fertility_multiplier: Diapause scaling on fertility (1 when the
            diapause gate is not modelled).

    Returns:
        StageRates for the population engine.
    """
    development = stage_development(T, table)
    mortality = stage_mortality(T, table)

    effects = fruit_effects(
        fruit_quality, table.fruit_n, table.fruit_m, table.mort_max,
        ignore_fruit,
    )
    # Fruit scales juvenile development only; it adds to every stage's mortality
    development[_JUVENILE_SLICE] *= effects['development']
    mortality = mortality + effects['mortality']

    return StageRates(
        development=development,
        mortality=mortality,
        predation=table.predation.copy(),
        egg_viability=table.egg_viability.copy(),
        fertility=fertility(T, table.fertility_tmax) * fertility_multiplier,
        male_proportion=table.male_proportion,
    )


def fruit_effects(quality: float, n: float, m: float,
                  max_mortality: np.ndarray,
                  ignore_fruit: bool) -> Dict[str, object]:
    """Fruit development multiplier and per-stage mortality addends.

    Returns:
        {'development': float, 'mortality': ndarray} with the neutral
        values (1, zeros) when ignore_fruit is set.
    """
    if ignore_fruit:
        return {
            'development': 1.0,
            'mortality': np.zeros_like(max_mortality, dtype=np.float64),
        }
    max_mortality = np.asarray(max_mortality, dtype=np.float64)
    return {
        'development': fruit_development_effect(quality, n, m),
        'mortality': fruit_mortality_effect(quality, n, max_mortality),
    }
