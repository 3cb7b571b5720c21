from __future__ import annotations

from dataclasses import asdict
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from .data_structures import (
    AnnualPlan,
    Regime,
    SimulationResult,
    SummaryMetrics,
    TrialResult,
    YearlyResult,
)


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------


def _round_currency(val: float) -> float:
    """Nearest whole unit, ties rounded up."""
    return float(np.floor(val + 0.5))


def _round_rate(val: float) -> float:
    """One decimal, ties rounded up."""
    return float(np.floor(val * 10 + 0.5)) / 10


def percentile(values, p: float) -> float:
    """
    Linear interpolation between the two closest ranks at p/100 * (n - 1).
    Empty input returns 0.
    """
    arr = np.asarray(values, dtype=np.float64)
    return float(np.percentile(arr, p)) if arr.size > 0 else 0.0


def trial_matrix(trials: Sequence[TrialResult], attr: str = "total_assets", horizon: Optional[int] = None) -> np.ndarray:
    """
    Stack one TrialYearResult attribute into a [P, T] array.
    Missing years are filled with 0.
    """
    if horizon is None:
        horizon = max((len(t.yearly_results) for t in trials), default=0)
    out = np.zeros((len(trials), horizon), dtype=np.float64)
    for i, trial in enumerate(trials):
        for j, yr in enumerate(trial.yearly_results[:horizon]):
            out[i, j] = getattr(yr, attr)
    return out


def _age_by_year(plans: Sequence[AnnualPlan]) -> dict:
    return {p.year: p.age for p in plans}


# ------------------------------------------------------------
# Depletion
# ------------------------------------------------------------


def depletion_probability(trials: Sequence[TrialResult]) -> float:
    if not trials:
        return 0.0
    depleted = sum(1 for t in trials if t.depletion_year is not None)
    return depleted / len(trials) * 100


def median_depletion_year(trials: Sequence[TrialResult]) -> Optional[float]:
    """Median over the depleted trials only."""
    years = [t.depletion_year for t in trials if t.depletion_year is not None]
    if not years:
        return None
    return percentile(years, 50)


def depletion_year_percentile(trials: Sequence[TrialResult], plans: Sequence[AnnualPlan], p: float) -> Optional[float]:
    """
    Trials that never deplete count as final_year + 1. A percentile past
    the final year means "no depletion" and is reported as None.
    """
    if not trials or not plans:
        return None
    final_year = plans[-1].year
    years = [
        t.depletion_year if t.depletion_year is not None else final_year + 1
        for t in trials
    ]
    val = percentile(years, p)
    return None if val > final_year else val


def depletion_age_percentile(trials: Sequence[TrialResult], plans: Sequence[AnnualPlan], p: float) -> Optional[float]:
    if not trials or not plans:
        return None
    final_age = plans[-1].age
    ages_by_year = _age_by_year(plans)
    ages = [
        ages_by_year.get(t.depletion_year, final_age + 1)
        if t.depletion_year is not None
        else final_age + 1
        for t in trials
    ]
    val = percentile(ages, p)
    return None if val > final_age else val


def average_depletion_age(trials: Sequence[TrialResult], plans: Sequence[AnnualPlan]) -> Optional[float]:
    ages_by_year = _age_by_year(plans)
    ages = [
        ages_by_year[t.depletion_year]
        for t in trials
        if t.depletion_year is not None and t.depletion_year in ages_by_year
    ]
    if not ages:
        return None
    return float(np.mean(ages))


# ------------------------------------------------------------
# Withdrawal, crashes, recovery, drawdown
# ------------------------------------------------------------


def safe_withdrawal_rate(plans: Sequence[AnnualPlan], initial_assets: float) -> Optional[float]:
    """
    Average yearly withdrawal need (expense above income) as a percentage
    of the initial total, one decimal.
    """
    if initial_assets <= 0 or not plans:
        return None
    avg_withdrawal = float(np.mean([max(0.0, p.expense - p.income) for p in plans]))
    if avg_withdrawal == 0:
        return None
    return _round_rate(avg_withdrawal / initial_assets * 100)


def average_crash_count(trials: Sequence[TrialResult]) -> float:
    if not trials:
        return 0.0
    return sum(t.crash_count for t in trials) / len(trials)


def recovery_run_lengths(trial: TrialResult) -> List[int]:
    """Lengths of maximal runs of recovery years, trailing run included."""
    runs, current = [], 0
    for yr in trial.yearly_results:
        if yr.regime is Regime.RECOVERY:
            current += 1
        elif current:
            runs.append(current)
            current = 0
    if current:
        runs.append(current)
    return runs


def average_recovery_years(trials: Sequence[TrialResult]) -> Optional[float]:
    runs = [n for t in trials for n in recovery_run_lengths(t)]
    if not runs:
        return None
    return float(np.mean(runs))


def max_drawdowns(trials: Sequence[TrialResult], initial_assets: float) -> np.ndarray:
    """
    Largest peak-to-trough decline of total assets per trial, in percent.
    The running peak starts at the initial total.
    """
    totals = trial_matrix(trials, "total_assets")
    if totals.size == 0:
        return np.zeros(len(trials), dtype=np.float64)

    paths = np.hstack([np.full((totals.shape[0], 1), initial_assets), totals])
    peaks = np.maximum.accumulate(paths, axis=1)
    with np.errstate(divide="ignore", invalid="ignore"):
        dd = np.where(peaks > 0, (peaks - paths) / peaks, 0.0)
    return dd.max(axis=1) * 100


# ------------------------------------------------------------
# Representative trial
# ------------------------------------------------------------


def select_median_trial_index(trials: Sequence[TrialResult]) -> Optional[int]:
    """
    Trial whose whole path is closest (sum of squared deviations) to the
    per-year median path.
    """
    if not trials:
        return None
    totals = trial_matrix(trials, "total_assets")
    if totals.shape[1] == 0:
        return 0
    median_path = np.percentile(totals, 50, axis=0)
    sse = np.sum((totals - median_path) ** 2, axis=1)
    return int(np.argmin(sse))


# ------------------------------------------------------------
# Aggregation
# ------------------------------------------------------------


def aggregate_yearly_results(trials: Sequence[TrialResult], plans: Sequence[AnnualPlan]) -> List[YearlyResult]:
    horizon = len(plans)
    totals = trial_matrix(trials, "total_assets", horizon)
    stocks = trial_matrix(trials, "stocks_balance", horizon)
    bonds = trial_matrix(trials, "bonds_balance", horizon)
    cash = trial_matrix(trials, "cash_balance", horizon)

    results = []
    for j, plan in enumerate(plans):
        col = totals[:, j]
        results.append(
            YearlyResult(
                year=plan.year,
                age=plan.age,
                income=plan.income,
                basic_expense=plan.basic_expense,
                extra_expense=plan.extra_expense,
                assets_5th=_round_currency(percentile(col, 5)),
                assets_10th=_round_currency(percentile(col, 10)),
                assets_25th=_round_currency(percentile(col, 25)),
                assets_50th=_round_currency(percentile(col, 50)),
                assets_75th=_round_currency(percentile(col, 75)),
                assets_95th=_round_currency(percentile(col, 95)),
                stocks_50th=_round_currency(percentile(stocks[:, j], 50)),
                bonds_50th=_round_currency(percentile(bonds[:, j], 50)),
                cash_50th=_round_currency(percentile(cash[:, j], 50)),
            )
        )
    return results


def calculate_summary_metrics(
    trials: Sequence[TrialResult],
    plans: Sequence[AnnualPlan],
    initial_assets: float,
) -> SummaryMetrics:
    horizon = len(plans)
    totals = trial_matrix(trials, "total_assets", horizon)
    final_assets = totals[:, -1] if horizon > 0 else np.zeros(0)
    min_assets = totals.min(axis=1) if horizon > 0 else np.zeros(0)
    drawdowns = max_drawdowns(trials, initial_assets)

    dep_prob = _round_rate(depletion_probability(trials))
    avg_dep_age = average_depletion_age(trials, plans)
    avg_recovery = average_recovery_years(trials)

    def _final(p):
        return _round_currency(percentile(final_assets, p))

    def _min(p):
        return _round_currency(percentile(min_assets, p))

    return SummaryMetrics(
        success_rate=_round_rate(100 - dep_prob),
        safe_withdrawal_rate=safe_withdrawal_rate(plans, initial_assets),
        depletion_age_75th=depletion_age_percentile(trials, plans, 75),
        depletion_age_50th=depletion_age_percentile(trials, plans, 50),
        depletion_age_25th=depletion_age_percentile(trials, plans, 25),
        depletion_age_10th=depletion_age_percentile(trials, plans, 10),
        depletion_year_75th=depletion_year_percentile(trials, plans, 75),
        depletion_year_50th=depletion_year_percentile(trials, plans, 50),
        depletion_year_25th=depletion_year_percentile(trials, plans, 25),
        depletion_year_10th=depletion_year_percentile(trials, plans, 10),
        median_depletion_year=median_depletion_year(trials),
        final_assets_5th=_final(5),
        final_assets_10th=_final(10),
        final_assets_25th=_final(25),
        final_assets_50th=_final(50),
        final_assets_75th=_final(75),
        final_assets_95th=_final(95),
        min_assets_10th=_min(10),
        min_assets_25th=_min(25),
        min_assets_50th=_min(50),
        min_assets_75th=_min(75),
        average_crash_count=_round_rate(average_crash_count(trials)),
        average_recovery_years=None if avg_recovery is None else _round_rate(avg_recovery),
        average_depletion_age=None if avg_dep_age is None else _round_rate(avg_dep_age),
        max_drawdown_50th=_round_rate(percentile(drawdowns, 50)),
        max_drawdown_90th=_round_rate(percentile(drawdowns, 90)),
        depletion_probability=dep_prob,
    )


def aggregate_simulation_results(
    trials: Sequence[TrialResult],
    plans: Sequence[AnnualPlan],
    initial_assets: float,
) -> SimulationResult:
    return SimulationResult(
        trial_results=list(trials),
        yearly_results=aggregate_yearly_results(trials, plans),
        summary=calculate_summary_metrics(trials, plans, initial_assets),
        median_trial_index=select_median_trial_index(trials),
    )


# ------------------------------------------------------------
# Tabular views
# ------------------------------------------------------------


def yearly_results_frame(yearly: Sequence[YearlyResult]) -> pd.DataFrame:
    return pd.DataFrame([asdict(y) for y in yearly])


def trial_frame(trial: TrialResult) -> pd.DataFrame:
    rows = []
    for yr in trial.yearly_results:
        row = asdict(yr)
        row["regime"] = yr.regime.value
        rows.append(row)
    return pd.DataFrame(rows)
