# wealth_sim/models/returns.py
from __future__ import annotations

from ..data_structures import Regime, RegimeSettings
from ..historical import get_bootstrap_source
from ..variates import STOCK_RETURN_DF, UniformSource, bootstrap_return, standard_normal, student_t

# Annual equity returns are clamped to +/-40%. The S&P 500 range since 1928
# is roughly +53% (1954) / -43% (1931).
STOCK_RETURN_MAX = 0.40
STOCK_RETURN_MIN = -0.40

# Currency return (percent) by regime: flight to safety in crashes
# appreciates the home currency.
FX_PARAMS = {
    Regime.NORMAL: {"mean": 0.0, "std_dev": 8.0},
    Regime.CRASH: {"mean": -10.0, "std_dev": 10.0},
    Regime.RECOVERY: {"mean": 5.0, "std_dev": 8.0},
}


def stock_return(regime: Regime, settings: RegimeSettings, rng: UniformSource) -> float:
    """
    Nominal equity return for one year, as a fraction.

    Parametric mode draws from a fat-tailed t(5) with the regime's mean and
    stddev; bootstrap mode resamples the index history of that regime.
    """
    source = get_bootstrap_source(settings.bootstrap_index)
    if source is not None:
        raw = bootstrap_return(source, regime, rng) / 100
    else:
        mean, std_dev = settings.mean_and_std(regime)
        raw = student_t(mean, std_dev, STOCK_RETURN_DF, rng) / 100
    return max(STOCK_RETURN_MIN, min(STOCK_RETURN_MAX, raw))


def fx_return(regime: Regime, rng: UniformSource) -> float:
    params = FX_PARAMS[regime]
    return standard_normal(rng) * (params["std_dev"] / 100) + params["mean"] / 100


def effective_stock_return(
    regime: Regime,
    base_return: float,
    foreign_ratio: float,
    rng: UniformSource,
) -> float:
    """
    Blend the domestic and currency-converted foreign parts of equities.
    `foreign_ratio` is in percent; no FX draw happens when it is <= 0.
    """
    if foreign_ratio <= 0:
        return base_return

    ratio = foreign_ratio / 100
    fx = fx_return(regime, rng)
    domestic_part = (1 - ratio) * base_return
    foreign_part = ratio * ((1 + base_return) * (1 + fx) - 1)
    return domestic_part + foreign_part
