# wealth_sim/variates.py
from __future__ import annotations

import math
from typing import Optional, Protocol

import numpy as np

from .data_structures import Regime
from .historical import BootstrapSource


class UniformSource(Protocol):
    """Anything with random() -> float in [0, 1). numpy Generators qualify."""

    def random(self) -> float: ...


# Degrees of freedom of the equity return t-distribution
STOCK_RETURN_DF = 5


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    return np.random.default_rng(seed)


# ---------- Samplers ----------


def standard_normal(rng: UniformSource) -> float:
    """
    Box-Muller transform. u1 == 0 is redrawn so log() stays finite.
    """
    u1 = rng.random()
    while u1 == 0.0:
        u1 = rng.random()
    u2 = rng.random()
    return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


def gamma(shape: float, rng: UniformSource) -> float:
    """
    Gamma(shape, 1) via Marsaglia-Tsang.

    shape < 1 is boosted: Gamma(a) = Gamma(a + 1) * U^(1/a).
    The acceptance rate is > 95% for shape >= 1, so the loop is short.
    """
    if shape < 1.0:
        return gamma(shape + 1.0, rng) * rng.random() ** (1.0 / shape)

    d = shape - 1.0 / 3.0
    c = 1.0 / math.sqrt(9.0 * d)

    while True:
        x = standard_normal(rng)
        v = 1.0 + c * x
        while v <= 0.0:
            x = standard_normal(rng)
            v = 1.0 + c * x

        v = v * v * v
        u = rng.random()

        # squeeze
        if u < 1.0 - 0.0331 * (x * x) * (x * x):
            return d * v
        if u > 0.0 and math.log(u) < 0.5 * x * x + d * (1.0 - v + math.log(v)):
            return d * v


def chi_squared(df: float, rng: UniformSource) -> float:
    return 2.0 * gamma(df / 2.0, rng)


def student_t(mean: float, std_dev: float, df: float, rng: UniformSource) -> float:
    """
    Student's t with location `mean`, rescaled so its standard deviation
    equals `std_dev` (requires df > 2).

    A t(df) variate has variance df / (df - 2), hence the scale
    std_dev * sqrt((df - 2) / df).
    """
    scale = std_dev * math.sqrt((df - 2.0) / df)
    z = standard_normal(rng)
    v = chi_squared(df, rng)
    return mean + scale * z / math.sqrt(v / df)


def bootstrap_return(source: BootstrapSource, regime: Regime, rng: UniformSource) -> float:
    """Draw one historical annual return (percent) for `regime`, with replacement."""
    returns = source.returns_by_regime[regime]
    idx = min(int(rng.random() * len(returns)), len(returns) - 1)
    return float(returns[idx])
