"""
plotting.py: Static charts for a simulation run.

1. Fan chart of total assets percentile bands
2. Final assets distribution
3. Representative trial balances with its regime strip

Designed for use with Matplotlib and Seaborn.
"""

import os
import numpy as np
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import matplotlib.ticker as mticker
import seaborn as sns

from .data_structures import Regime, SimulationResult
from .statistics import trial_matrix


sns.set_theme(style="whitegrid", context="paper", font_scale=1.1)
PALETTE = sns.color_palette("deep")

REGIME_COLORS = {
    Regime.NORMAL: "#d9f0d3",
    Regime.CRASH: "#f4a582",
    Regime.RECOVERY: "#fddbc7",
}


def _ensure_dir(path: str):
    if not os.path.exists(path):
        os.makedirs(path)


def _save_fig(fig, outdir, filename):
    """Saves figure to PNG."""
    path = os.path.join(outdir, f"{filename}.png")
    fig.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return path


def plot_fan_chart(result: SimulationResult, outdir: str) -> str:
    yearly = result.yearly_results
    x = [y.age for y in yearly]

    fig, ax = plt.subplots(figsize=(10, 5))
    ax.fill_between(x, [y.assets_10th for y in yearly], [y.assets_75th for y in yearly],
                    color=PALETTE[0], alpha=0.15, label="10th–75th")
    ax.fill_between(x, [y.assets_25th for y in yearly], [y.assets_75th for y in yearly],
                    color=PALETTE[0], alpha=0.25, label="25th–75th")
    ax.plot(x, [y.assets_50th for y in yearly], color=PALETTE[0], lw=2, label="Median")
    ax.plot(x, [y.assets_10th for y in yearly], color=PALETTE[3], lw=1, ls="--", label="10th")

    ax.set_xlabel("Age")
    ax.set_ylabel("Total assets")
    ax.set_title("Total Assets Percentile Bands")
    ax.yaxis.set_major_formatter(mticker.StrMethodFormatter("{x:,.0f}"))
    ax.legend(loc="upper left")
    return _save_fig(fig, outdir, "fan_chart")


def plot_final_assets_hist(result: SimulationResult, outdir: str) -> str:
    totals = trial_matrix(result.trial_results, "total_assets")
    final = totals[:, -1] if totals.size else np.zeros(0)

    fig, ax = plt.subplots(figsize=(8, 5))
    sns.histplot(final, bins=50, color=PALETTE[0], ax=ax)
    ax.axvline(result.summary.final_assets_50th, color="black", ls="--", lw=1, label="Median")
    ax.set_xlabel("Final total assets")
    ax.set_title(f"Final Assets Distribution (success rate {result.summary.success_rate:.1f}%)")
    ax.legend()
    return _save_fig(fig, outdir, "final_assets_hist")


def plot_median_trial(result: SimulationResult, outdir: str) -> str:
    trial = result.median_trial
    years = trial.yearly_results
    x = np.array([y.age for y in years])

    fig, ax = plt.subplots(figsize=(10, 5))
    for y in years:
        ax.axvspan(y.age - 0.5, y.age + 0.5, color=REGIME_COLORS[y.regime], alpha=0.6, lw=0)
    ax.stackplot(
        x,
        [y.cash_balance for y in years],
        [y.bonds_balance for y in years],
        [y.stocks_balance for y in years],
        labels=["Cash", "Bonds", "Stocks"],
        colors=[PALETTE[2], PALETTE[1], PALETTE[0]],
        alpha=0.85,
    )
    ax.set_xlabel("Age")
    ax.set_ylabel("Balance")
    ax.set_title("Representative Trial (closest to the median path)")
    ax.yaxis.set_major_formatter(mticker.StrMethodFormatter("{x:,.0f}"))
    ax.legend(loc="upper left")
    return _save_fig(fig, outdir, "median_trial")


def plot_all(result: SimulationResult, outdir: str):
    _ensure_dir(outdir)
    if not result.yearly_results:
        print("[WARN] Empty plan horizon, nothing to plot.")
        return []
    paths = [
        plot_fan_chart(result, outdir),
        plot_final_assets_hist(result, outdir),
    ]
    if result.median_trial is not None:
        paths.append(plot_median_trial(result, outdir))
    return paths
