import os
import json
from dataclasses import asdict

import zarr
import numpy as np
import pandas as pd

from .data_structures import (
    REGIME_CODES,
    REGIMES_BY_CODE,
    SimulationResult,
    SummaryMetrics,
    TrialResult,
    TrialYearResult,
    YearlyResult,
)
from .statistics import trial_matrix, yearly_results_frame


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------


def _save_array(store, key, arr):
    if arr is None or arr.size == 0:
        return
    store.array(key, arr, chunks=True, overwrite=True)


def _load_array(store, key):
    return store[key][...] if key in store else None


def _regime_codes(trials) -> np.ndarray:
    horizon = max((len(t.yearly_results) for t in trials), default=0)
    codes = np.zeros((len(trials), horizon), dtype=np.int8)
    for i, trial in enumerate(trials):
        for j, yr in enumerate(trial.yearly_results):
            codes[i, j] = REGIME_CODES[yr.regime]
    return codes


# ------------------------------------------------------------
# Save SimulationResult -> directory (metadata.json + data.zarr + CSV)
# ------------------------------------------------------------


def save_results(result: SimulationResult, outdir: str):
    os.makedirs(outdir, exist_ok=True)
    trials = result.trial_results
    first = trials[0].yearly_results if trials else []

    meta = {
        "num_trials": len(trials),
        "horizon": len(first),
        "median_trial_index": result.median_trial_index,
        "summary": asdict(result.summary),
        "metadata": result.metadata,
    }
    with open(os.path.join(outdir, "metadata.json"), "w") as f:
        json.dump(meta, f, indent=2)

    if result.yearly_results:
        yearly_results_frame(result.yearly_results).to_csv(
            os.path.join(outdir, "yearly_results.csv"), index=False
        )

    root = zarr.open_group(os.path.join(outdir, "data.zarr"), mode="w")

    # Plan columns echoed on every trial year
    _save_array(root, "year", np.array([y.year for y in first], dtype=np.int64))
    _save_array(root, "age", np.array([y.age for y in first], dtype=np.int64))
    _save_array(root, "income", np.array([y.income for y in first], dtype=np.float64))
    _save_array(root, "basic_expense", np.array([y.basic_expense for y in first], dtype=np.float64))
    _save_array(root, "extra_expense", np.array([y.extra_expense for y in first], dtype=np.float64))

    # [P, T] trial paths
    trials_grp = root.create_group("trials")
    for attr in ("stocks_balance", "bonds_balance", "cash_balance", "total_assets", "shortfall"):
        _save_array(trials_grp, attr, trial_matrix(trials, attr))
    _save_array(trials_grp, "is_depleted", trial_matrix(trials, "is_depleted").astype(bool))
    _save_array(trials_grp, "regime", _regime_codes(trials))

    # [P] per-trial outcomes; NaN = never depleted
    _save_array(
        trials_grp,
        "depletion_year",
        np.array(
            [np.nan if t.depletion_year is None else t.depletion_year for t in trials],
            dtype=np.float64,
        ),
    )
    _save_array(trials_grp, "crash_count", np.array([t.crash_count for t in trials], dtype=np.int64))


# ------------------------------------------------------------
# Load directory -> SimulationResult
# ------------------------------------------------------------


def load_results(outdir: str) -> SimulationResult:
    with open(os.path.join(outdir, "metadata.json"), "r") as f:
        meta = json.load(f)

    root = zarr.open_group(os.path.join(outdir, "data.zarr"), mode="r")
    g = root["trials"]

    years = _load_array(root, "year")
    ages = _load_array(root, "age")
    income = _load_array(root, "income")
    basic = _load_array(root, "basic_expense")
    extra = _load_array(root, "extra_expense")

    stocks = _load_array(g, "stocks_balance")
    bonds = _load_array(g, "bonds_balance")
    cash = _load_array(g, "cash_balance")
    totals = _load_array(g, "total_assets")
    shortfall = _load_array(g, "shortfall")
    depleted = _load_array(g, "is_depleted")
    regimes = _load_array(g, "regime")
    depletion_year = _load_array(g, "depletion_year")
    crash_count = _load_array(g, "crash_count")

    trials = []
    for i in range(meta["num_trials"]):
        yearly = [
            TrialYearResult(
                year=int(years[j]),
                age=int(ages[j]),
                regime=REGIMES_BY_CODE[int(regimes[i, j])],
                stocks_balance=float(stocks[i, j]),
                bonds_balance=float(bonds[i, j]),
                cash_balance=float(cash[i, j]),
                total_assets=float(totals[i, j]),
                income=float(income[j]),
                basic_expense=float(basic[j]),
                extra_expense=float(extra[j]),
                is_depleted=bool(depleted[i, j]),
                shortfall=float(shortfall[i, j]),
            )
            for j in range(meta["horizon"])
        ]
        dy = depletion_year[i]
        trials.append(
            TrialResult(
                yearly_results=yearly,
                depletion_year=None if np.isnan(dy) else int(dy),
                crash_count=int(crash_count[i]),
            )
        )

    csv_path = os.path.join(outdir, "yearly_results.csv")
    yearly_results = []
    if os.path.exists(csv_path):
        yearly_results = [YearlyResult(**row) for row in pd.read_csv(csv_path).to_dict(orient="records")]

    return SimulationResult(
        trial_results=trials,
        yearly_results=yearly_results,
        summary=SummaryMetrics(**meta["summary"]),
        median_trial_index=meta["median_trial_index"],
        metadata=meta["metadata"],
    )
