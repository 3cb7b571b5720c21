import math

import pytest

from wealth_sim.data_structures import Regime, RegimeSettings
from wealth_sim.models.returns import (
    STOCK_RETURN_MAX,
    STOCK_RETURN_MIN,
    effective_stock_return,
    fx_return,
    stock_return,
)
from wealth_sim.variates import make_rng

# standard_normal() == 2.0 for this pair of uniforms
Z_TWO = [math.exp(-2), 0.0]


def test_stock_return_clamped_high():
    settings = RegimeSettings(normal_return=100, normal_std_dev=0)
    assert stock_return(Regime.NORMAL, settings, make_rng(1)) == STOCK_RETURN_MAX


def test_stock_return_clamped_low():
    settings = RegimeSettings(crash_return=-100, crash_std_dev=0)
    assert stock_return(Regime.CRASH, settings, make_rng(1)) == STOCK_RETURN_MIN


def test_stock_return_parametric_uses_regime_mean():
    settings = RegimeSettings(recovery_return=17, recovery_std_dev=0)
    assert stock_return(Regime.RECOVERY, settings, make_rng(3)) == pytest.approx(0.17)


def test_stock_return_always_within_bounds():
    rng = make_rng(99)
    settings = RegimeSettings(crash_return=-30, crash_std_dev=40)
    draws = [stock_return(Regime.CRASH, settings, rng) for _ in range(2_000)]
    assert min(draws) >= STOCK_RETURN_MIN
    assert max(draws) <= STOCK_RETURN_MAX


def test_stock_return_bootstrap(scripted):
    settings = RegimeSettings(bootstrap_index="sp500")
    # first S&P 500 crash year: 1930, -24.90%
    assert stock_return(Regime.CRASH, settings, scripted([0.0])) == pytest.approx(-0.249)


def test_stock_return_bootstrap_is_clamped(scripted):
    settings = RegimeSettings(bootstrap_index="sp500")
    # second crash year is 1931 (-43.34%), clamped to -40%
    assert stock_return(Regime.CRASH, settings, scripted([1.5 / 12])) == STOCK_RETURN_MIN


def test_fx_return_by_regime(scripted):
    assert fx_return(Regime.NORMAL, scripted(Z_TWO)) == pytest.approx(0.16)
    assert fx_return(Regime.CRASH, scripted(Z_TWO)) == pytest.approx(0.10)
    assert fx_return(Regime.RECOVERY, scripted(Z_TWO)) == pytest.approx(0.21)


def test_effective_return_domestic_only_draws_nothing(scripted):
    rng = scripted([])
    assert effective_stock_return(Regime.NORMAL, 0.1, 0, rng) == 0.1
    assert rng.calls == 0


def test_effective_return_fully_foreign(scripted):
    # (1.1 * 1.16) - 1
    assert effective_stock_return(Regime.NORMAL, 0.1, 100, scripted(Z_TWO)) == pytest.approx(0.276)


def test_effective_return_blended(scripted):
    # 0.5 * 0.1 + 0.5 * 0.276
    assert effective_stock_return(Regime.NORMAL, 0.1, 50, scripted(Z_TWO)) == pytest.approx(0.188)
