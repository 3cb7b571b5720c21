import os
from dataclasses import asdict, fields
from datetime import datetime

import yaml

from .data_structures import (
    ASSET_TYPES,
    BOOTSTRAP_INDICES,
    AnnualPlan,
    InitialAssets,
    RegimeSettings,
    SimulationParams,
    WithdrawalPriority,
)
from .engine import DEFAULT_NUM_TRIALS, run_simulation
from .funds import MAX_STOCK_FUNDS, StockFund, get_preset, total_stocks, weighted_foreign_ratio
from .plans import apply_overrides, generate_annual_plans
from .results_io import save_results, load_results
from .plotting import plot_all
from .summary import generate_summary


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------


def now_id() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def ensure_dir(path: str):
    if not os.path.exists(path):
        os.makedirs(path)


def discover_runs(root: str = "results"):
    if not os.path.exists(root):
        return []
    return sorted(d for d in os.listdir(root) if os.path.isdir(os.path.join(root, d)))


# ------------------------------------------------------------
# Input Builders
# ------------------------------------------------------------


def build_stock_funds(items) -> list:
    if len(items) > MAX_STOCK_FUNDS:
        raise ValueError(f"Too many stock funds: {len(items)} (max {MAX_STOCK_FUNDS})")
    funds = []
    for item in items:
        if "preset" in item:
            ratio = get_preset(item["preset"]).foreign_ratio
        else:
            ratio = float(item.get("foreign_ratio", 0.0))
        funds.append(
            StockFund(
                amount=float(item.get("amount", 0.0)),
                foreign_ratio=ratio,
                name=item.get("name", item.get("preset", "")),
            )
        )
    return funds


def build_initial_assets(cfg: dict) -> InitialAssets:
    stocks = float(cfg.get("stocks", 0.0))
    foreign_ratio = float(cfg.get("foreign_ratio", 0.0))

    if "stock_funds" in cfg:
        funds = build_stock_funds(cfg["stock_funds"])
        if "stocks" in cfg or "foreign_ratio" in cfg:
            print("[WARN] 'stock_funds' given: 'stocks' and 'foreign_ratio' are derived from the funds.")
        stocks = total_stocks(funds)
        foreign_ratio = weighted_foreign_ratio(funds)

    defaults = InitialAssets()
    return InitialAssets(
        stocks=stocks,
        bonds=float(cfg.get("bonds", defaults.bonds)),
        cash=float(cfg.get("cash", defaults.cash)),
        cash_limit=float(cfg.get("cash_limit", defaults.cash_limit)),
        bonds_limit=float(cfg.get("bonds_limit", defaults.bonds_limit)),
        age=int(cfg.get("age", defaults.age)),
        foreign_ratio=foreign_ratio,
    )


def build_annual_plans(cfg: dict, age: int) -> list:
    """
    Either an explicit `annual_plans` row list or a generated `plan` block.
    """
    if "annual_plans" in cfg:
        return [
            AnnualPlan(
                year=int(row["year"]),
                age=int(row.get("age", age + i)),
                income=float(row.get("income", 0.0)),
                basic_expense=float(row.get("basic_expense", 0.0)),
                extra_expense=float(row.get("extra_expense", 0.0)),
            )
            for i, row in enumerate(cfg["annual_plans"])
        ]

    pcfg = cfg.get("plan", {})
    plans = generate_annual_plans(
        start_year=int(pcfg.get("start_year", datetime.now().year)),
        duration=int(pcfg.get("duration", 30)),
        age=age,
        income=float(pcfg.get("income", 0.0)),
        basic_expense=float(pcfg.get("basic_expense", 0.0)),
        extra_expense=float(pcfg.get("extra_expense", 0.0)),
        income_growth_rate=float(pcfg.get("income_growth_rate", 0.0)),
        expense_growth_rate=float(pcfg.get("expense_growth_rate", 0.0)),
    )
    return apply_overrides(plans, pcfg.get("overrides", []))


def build_regime_settings(cfg: dict) -> RegimeSettings:
    known = {f.name for f in fields(RegimeSettings)}
    for key in cfg:
        if key not in known:
            print(f"[WARN] Unknown regime setting '{key}' ignored.")

    index = cfg.get("bootstrap_index", "none")
    if index not in BOOTSTRAP_INDICES:
        raise ValueError(f"Unknown bootstrap index: {index}")

    kwargs = {}
    for key in known:
        if key not in cfg or key == "bootstrap_index":
            continue
        val = cfg[key]
        kwargs[key] = None if val is None else float(val)
    return RegimeSettings(bootstrap_index=index, **kwargs)


def _bucket_order(order) -> tuple:
    for bucket in order:
        if bucket not in ASSET_TYPES:
            raise ValueError(f"Unknown asset bucket: {bucket}")
    return tuple(order)


def build_withdrawal_priority(cfg):
    if cfg is None:
        return None
    defaults = WithdrawalPriority()
    return WithdrawalPriority(
        normal=_bucket_order(cfg.get("normal", defaults.normal)),
        crash=_bucket_order(cfg.get("crash", defaults.crash)),
    )


def build_params(cfg: dict) -> SimulationParams:
    """Build SimulationParams from a parsed YAML config."""
    assets = build_initial_assets(cfg.get("assets", {}))
    return SimulationParams(
        initial_assets=assets,
        annual_plans=tuple(build_annual_plans(cfg, assets.age)),
        regime_settings=build_regime_settings(cfg.get("regime", {})),
        withdrawal_priority=build_withdrawal_priority(cfg.get("withdrawal_priority")),
    )


# ------------------------------------------------------------
# Run experiment defined by YAML config
# ------------------------------------------------------------


def run_experiment_from_config(config_file: str, root: str = "results") -> str:
    with open(config_file, "r") as f:
        cfg = yaml.safe_load(f)

    exp_name = cfg.get("name", "experiment")
    rid = f"{now_id()}_{exp_name}"
    outdir = os.path.join(root, rid)
    ensure_dir(outdir)

    params = build_params(cfg)

    num_trials = int(cfg.get("trials", DEFAULT_NUM_TRIALS))
    seed = cfg.get("seed", 42)
    workers = int(cfg.get("workers", 1))

    print("\n=== Running Experiment ===")
    print(f"Config: {config_file}")
    print(f"Run ID: {rid}")
    print(f"Trials: {num_trials}")
    print(f"Horizon: {len(params.annual_plans)} years")
    print(f"Market model: {params.regime_settings.bootstrap_index if params.regime_settings.bootstrap_index != 'none' else 'parametric'}")
    print(f"Withdrawal policy: {'priority list' if params.withdrawal_priority else 'cash-buffer waterfall'}")
    print()

    results = run_simulation(params, num_trials=num_trials, seed=seed, workers=workers)
    results.metadata.update(
        {
            "name": exp_name,
            "initial_assets": asdict(params.initial_assets),
            "regime_settings": asdict(params.regime_settings),
        }
    )

    print(f"Success rate: {results.summary.success_rate:.1f}%")

    # Save results + metadata
    print(f"Saving results → {outdir}")
    save_results(results, outdir)

    summary_path = generate_summary(results, outdir)
    print(f"Summary report → {summary_path}")

    with open(os.path.join(outdir, "config_used.yaml"), "w") as f:
        yaml.safe_dump(cfg, f)

    print("Done.")
    return outdir


# ------------------------------------------------------------
# Plotting an experiment
# ------------------------------------------------------------


def plot_experiment(run_dir: str):
    print(f"Loading results from: {run_dir}")
    results = load_results(run_dir)

    outdir = os.path.join(run_dir, "plots")
    ensure_dir(outdir)

    print("Generating charts...")
    plot_all(results, outdir)

    print("Plots saved in:", outdir)


# ------------------------------------------------------------
# Compare experiments (final assets distributions)
# ------------------------------------------------------------


def compare_experiments(runs: list, root: str = "results") -> str:
    loaded = {}
    for rd in runs:
        path = os.path.join(root, rd)
        print(f"Loading {path}...")
        loaded[rd] = load_results(path)

    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt
    import seaborn as sns

    from .statistics import trial_matrix

    plt.figure(figsize=(8, 5))
    for rd, res in loaded.items():
        totals = trial_matrix(res.trial_results, "total_assets")
        if totals.size == 0:
            print(f"[WARN] Run {rd} has no trial data, skipped.")
            continue
        label = f"{rd} ({res.summary.success_rate:.1f}% success)"
        sns.histplot(totals[:, -1], label=label, kde=False, stat="density", alpha=0.6, bins=50)

    plt.legend()
    plt.title("Final Assets Distribution Comparison")
    plt.xlabel("Final total assets")
    plt.tight_layout()
    outpath = os.path.join(root, "compare_final_assets.png")
    plt.savefig(outpath)
    plt.close()
    print(f"Saved comparison plot → {outpath}")
    return outpath


# ------------------------------------------------------------
# List all runs
# ------------------------------------------------------------


def list_experiments(root: str = "results"):
    runs = discover_runs(root)
    print("\n=== Available Experiment Runs ===")
    if not runs:
        print("(none)")
        return
    for r in runs:
        print(" •", r)
