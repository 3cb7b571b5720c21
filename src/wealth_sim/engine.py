# ============================================================
#  engine.py: Trial simulator and Monte Carlo driver
# ============================================================

from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor
from dataclasses import replace
from typing import List, Optional, Sequence

import numpy as np

from .data_structures import (
    AssetBalances,
    Regime,
    SimulationParams,
    SimulationResult,
    TrialResult,
    TrialYearResult,
)
from .models import (
    adjust_recovery_target_for_cash_flow,
    apply_growth,
    create_initial_regime_state,
    determine_next_regime,
    effective_stock_return,
    is_crash_regime,
    is_depleted,
    process_cash_flow,
    process_cash_flow_by_priority,
    rebalance_excess_cash,
    replenish_cash,
    stock_return,
    total_assets,
)
from .statistics import aggregate_simulation_results
from .variates import UniformSource

DEFAULT_NUM_TRIALS = 1000


# ============================================================
#  Single trial
# ============================================================


def run_single_trial(params: SimulationParams, rng: UniformSource) -> TrialResult:
    assets = params.initial_assets
    settings = params.regime_settings
    priority = params.withdrawal_priority

    balances = AssetBalances(stocks=assets.stocks, bonds=assets.bonds, cash=assets.cash)
    regime_state = create_initial_regime_state()
    depletion_year: Optional[int] = None
    crash_count = 0
    yearly_results: List[TrialYearResult] = []

    # Year-end total of the previous year, drives the replenishment source
    previous_total = total_assets(balances)

    for plan in params.annual_plans:
        # --------------------------------------------------------
        # 1. Regime transition on the start-of-year equity balance
        # --------------------------------------------------------
        previous_regime = regime_state.current
        regime_state = determine_next_regime(regime_state, settings, balances.stocks, rng)
        if regime_state.current is Regime.CRASH and previous_regime is not Regime.CRASH:
            crash_count += 1

        # --------------------------------------------------------
        # 2. Net cash flow
        # --------------------------------------------------------
        if priority is None:
            flow = process_cash_flow(plan.income, plan.expense, balances)
        else:
            order = priority.crash if is_crash_regime(regime_state.current) else priority.normal
            flow = process_cash_flow_by_priority(
                plan.income,
                plan.expense,
                balances,
                order,
                assets.cash_limit,
                assets.bonds_limit,
                settings.withdrawal_tax_rate,
            )
        balances = flow.balances

        # --------------------------------------------------------
        # 3. Growth
        # --------------------------------------------------------
        base_return = stock_return(regime_state.current, settings, rng)
        if regime_state.current is Regime.CRASH:
            # crash depth sets the expected recovery length
            regime_state = replace(regime_state, crash_return=base_return)
        equity_return = effective_stock_return(
            regime_state.current, base_return, assets.foreign_ratio, rng
        )
        balances = apply_growth(balances, settings.bond_return, equity_return, assets.bonds_limit)

        # --------------------------------------------------------
        # 4. Year-end rebalancing and cash replenishment
        # --------------------------------------------------------
        balances = rebalance_excess_cash(balances, assets.cash_limit, assets.bonds_limit)

        if priority is None:
            current_total = total_assets(balances)
            change = (
                (current_total - previous_total) / previous_total * 100
                if previous_total > 0
                else 0.0
            )
            # flat/down year: spare equities
            balances = replenish_cash(
                balances, assets.cash_limit, change <= 0, settings.withdrawal_tax_rate
            )

        regime_state = adjust_recovery_target_for_cash_flow(regime_state, plan.net_income)

        # --------------------------------------------------------
        # 5. Depletion check and record
        # --------------------------------------------------------
        total = total_assets(balances)
        depleted = is_depleted(balances)
        if depleted and depletion_year is None:
            depletion_year = plan.year

        reported = balances.clamped()
        yearly_results.append(
            TrialYearResult(
                year=plan.year,
                age=plan.age,
                regime=regime_state.current,
                stocks_balance=reported.stocks,
                bonds_balance=reported.bonds,
                cash_balance=reported.cash,
                total_assets=max(0.0, total),
                income=plan.income,
                basic_expense=plan.basic_expense,
                extra_expense=plan.extra_expense,
                is_depleted=depleted,
                shortfall=flow.shortfall,
            )
        )

        previous_total = total

    return TrialResult(
        yearly_results=yearly_results,
        depletion_year=depletion_year,
        crash_count=crash_count,
    )


# ============================================================
#  Monte Carlo
# ============================================================


def _run_chunk(params: SimulationParams, seeds: Sequence[np.random.SeedSequence]) -> List[TrialResult]:
    return [run_single_trial(params, np.random.default_rng(s)) for s in seeds]


def _split(items: list, n: int) -> List[list]:
    size, extra = divmod(len(items), n)
    chunks, start = [], 0
    for i in range(n):
        end = start + size + (1 if i < extra else 0)
        chunks.append(items[start:end])
        start = end
    return [c for c in chunks if c]


def run_monte_carlo(
    params: SimulationParams,
    num_trials: int = DEFAULT_NUM_TRIALS,
    seed: Optional[int] = None,
    workers: int = 1,
) -> List[TrialResult]:
    """
    Run `num_trials` independent trials.

    Every trial gets its own generator spawned from one SeedSequence, so a
    given seed reproduces the same trials whatever the worker count.
    """
    if num_trials <= 0:
        return []

    seeds = np.random.SeedSequence(seed).spawn(num_trials)

    if workers <= 1:
        return _run_chunk(params, seeds)

    chunks = _split(seeds, workers)
    results: List[TrialResult] = []
    with ProcessPoolExecutor(max_workers=workers) as ex:
        # map() keeps chunk order, so trial order matches the serial run
        for chunk_results in ex.map(_run_chunk, [params] * len(chunks), chunks):
            results.extend(chunk_results)
    return results


def run_simulation(
    params: SimulationParams,
    num_trials: int = DEFAULT_NUM_TRIALS,
    seed: Optional[int] = None,
    workers: int = 1,
) -> SimulationResult:
    """Monte Carlo run plus aggregation."""
    trials = run_monte_carlo(params, num_trials=num_trials, seed=seed, workers=workers)
    result = aggregate_simulation_results(trials, params.annual_plans, params.initial_assets.total)
    result.metadata.update({"num_trials": num_trials, "seed": seed, "workers": workers})
    return result
