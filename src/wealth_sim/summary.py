import os
from typing import Optional

import numpy as np
import pandas as pd

from .data_structures import Regime, SimulationResult
from .statistics import trial_frame


# ------------------------------------------------------------
# Formatting helpers
# ------------------------------------------------------------


def _format_amount(val: Optional[float]) -> str:
    if val is None:
        return "N/A"
    return f"{val:,.0f}"


def _format_pct(val: Optional[float]) -> str:
    if val is None:
        return "N/A"
    return f"{val:.1f}%"


def _format_age(val: Optional[float]) -> str:
    if val is None:
        return "No depletion"
    return f"{val:.1f}"


def _format_years(val: Optional[float]) -> str:
    if val is None:
        return "N/A"
    return f"{val:.1f} years"


# ------------------------------------------------------------
# Main summary generation
# ------------------------------------------------------------


def generate_summary(result: SimulationResult, out_dir: str) -> str:
    """
    Writes a quantitative markdown report of a simulation run and returns
    its path.
    """
    s = result.summary
    meta = result.metadata
    lines = []

    # --- Header ---
    lines.append(f"# Simulation Summary Report: {os.path.basename(os.path.normpath(out_dir))}\n")
    lines.append(f"**Timestamp:** {pd.Timestamp.now()}\n")

    # --- 1. Simulation Parameters ---
    lines.append("## 1. Simulation Parameters\n")
    lines.append("| Parameter | Value |")
    lines.append("| :--- | :--- |")
    lines.append(f"| Trials | {len(result.trial_results):,} |")
    lines.append(f"| Horizon | {len(result.yearly_results)} years |")
    lines.append(f"| Seed | {meta.get('seed', 'N/A')} |")
    assets = meta.get("initial_assets", {})
    for key in ("stocks", "bonds", "cash", "cash_limit", "bonds_limit", "foreign_ratio"):
        if key in assets:
            lines.append(f"| {key} | {assets[key]} |")
    settings = meta.get("regime_settings", {})
    for key, val in settings.items():
        lines.append(f"| {key} | {val} |")
    lines.append("\n")

    # --- 2. Headline ---
    lines.append("## 2. Headline Metrics\n")
    lines.append("| Metric | Value |")
    lines.append("| :--- | :--- |")
    lines.append(f"| Success Rate | {_format_pct(s.success_rate)} |")
    lines.append(f"| Depletion Probability | {_format_pct(s.depletion_probability)} |")
    lines.append(f"| Safe Withdrawal Rate | {_format_pct(s.safe_withdrawal_rate)} |")
    lines.append(f"| Average Crash Count | {s.average_crash_count:.1f} |")
    lines.append(f"| Average Recovery Length | {_format_years(s.average_recovery_years)} |")
    lines.append(f"| Average Depletion Age | {_format_age(s.average_depletion_age)} |")
    lines.append(f"| Median Max Drawdown | {_format_pct(s.max_drawdown_50th)} |")
    lines.append(f"| 90th pct Max Drawdown | {_format_pct(s.max_drawdown_90th)} |")
    lines.append("\n")

    # --- 3. Scenarios ---
    lines.append("## 3. Outcomes by Scenario\n")
    lines.append("| Scenario | Depletion Age | Depletion Year | Final Assets | Minimum Assets |")
    lines.append("| :--- | :--- | :--- | :--- | :--- |")
    scenarios = [
        ("Optimistic (75th)", s.depletion_age_75th, s.depletion_year_75th, s.final_assets_75th, s.min_assets_75th),
        ("Median (50th)", s.depletion_age_50th, s.depletion_year_50th, s.final_assets_50th, s.min_assets_50th),
        ("Pessimistic (25th)", s.depletion_age_25th, s.depletion_year_25th, s.final_assets_25th, s.min_assets_25th),
        ("Worst (10th)", s.depletion_age_10th, s.depletion_year_10th, s.final_assets_10th, s.min_assets_10th),
    ]
    for label, age, year, final, minimum in scenarios:
        lines.append(
            f"| {label} | {_format_age(age)} | {_format_age(year)} | {_format_amount(final)} | {_format_amount(minimum)} |"
        )
    lines.append(
        f"\nFinal assets 5th / 95th: {_format_amount(s.final_assets_5th)} / {_format_amount(s.final_assets_95th)}\n"
    )

    # --- 4. Regime occupancy ---
    regimes = [yr.regime for t in result.trial_results for yr in t.yearly_results]
    if regimes:
        lines.append("## 4. Regime Occupancy\n")
        lines.append("| Regime | Share of Years |")
        lines.append("| :--- | :--- |")
        counts = pd.Series([r.value for r in regimes]).value_counts(normalize=True)
        for regime in Regime:
            lines.append(f"| {regime.value} | {_format_pct(float(counts.get(regime.value, 0.0)) * 100)} |")
        lines.append("\n")

    # --- 5. Percentile bands ---
    if result.yearly_results:
        lines.append("## 5. Total Assets Percentile Bands\n")
        lines.append("| Year | Age | 10th | 25th | 50th | 75th |")
        lines.append("| :--- | :--- | :--- | :--- | :--- | :--- |")
        for y in result.yearly_results:
            lines.append(
                f"| {y.year} | {y.age} | {_format_amount(y.assets_10th)} | {_format_amount(y.assets_25th)} "
                f"| {_format_amount(y.assets_50th)} | {_format_amount(y.assets_75th)} |"
            )
        lines.append("\n")

    # --- 6. Representative trial ---
    trial = result.median_trial
    if trial is not None and trial.yearly_results:
        lines.append("## 6. Representative Trial\n")
        df = trial_frame(trial)[
            ["year", "age", "regime", "stocks_balance", "bonds_balance", "cash_balance", "total_assets"]
        ]
        lines.append("| " + " | ".join(df.columns) + " |")
        lines.append("| " + " | ".join([":---"] * len(df.columns)) + " |")
        for row in df.itertuples(index=False):
            cells = [
                _format_amount(v) if isinstance(v, (float, np.floating)) else str(v)
                for v in row
            ]
            lines.append("| " + " | ".join(cells) + " |")
        lines.append(
            f"\nDepletion year: {trial.depletion_year or 'none'}; crashes: {trial.crash_count}\n"
        )

    path = os.path.join(out_dir, "summary.md")
    with open(path, "w") as f:
        f.write("\n".join(lines))
    return path
