from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional, Tuple


# ----------------------------------------------------------------------
# Enumerations
# ----------------------------------------------------------------------


class Regime(str, Enum):
    NORMAL = "normal"
    CRASH = "crash"
    RECOVERY = "recovery"


# Integer codes used when regimes are stored as arrays
REGIME_CODES = {Regime.NORMAL: 0, Regime.CRASH: 1, Regime.RECOVERY: 2}
REGIMES_BY_CODE = {v: k for k, v in REGIME_CODES.items()}

ASSET_TYPES = ("stocks", "bonds", "cash")
BOOTSTRAP_INDICES = ("none", "sp500", "acwi")


# ----------------------------------------------------------------------
# Inputs
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class AnnualPlan:
    year: int
    age: int
    income: float = 0.0
    basic_expense: float = 0.0
    extra_expense: float = 0.0

    @property
    def expense(self) -> float:
        return self.basic_expense + self.extra_expense

    @property
    def net_income(self) -> float:
        return self.income - self.expense


@dataclass(frozen=True)
class InitialAssets:
    """
    Starting balance sheet plus the ceilings used by the waterfall.

    `foreign_ratio` is the share of equities denominated in a foreign
    currency, in percent (0-100).
    """

    stocks: float = 0.0
    bonds: float = 0.0
    cash: float = 0.0
    cash_limit: float = 500.0
    bonds_limit: float = 1000.0
    age: int = 30
    foreign_ratio: float = 0.0

    @property
    def total(self) -> float:
        return self.stocks + self.bonds + self.cash


@dataclass(frozen=True)
class RegimeSettings:
    """
    Market model configuration. All rates are percentages (7 means 7%).
    """

    normal_return: float = 12.0
    normal_std_dev: float = 12.0
    crash_return: float = -24.0
    crash_std_dev: float = 12.0
    recovery_return: float = 17.0
    recovery_std_dev: float = 12.0
    crash_probability: float = 12.0
    bond_return: float = 1.2
    withdrawal_tax_rate: float = 10.0
    bootstrap_index: str = "none"
    average_recovery_years: Optional[float] = 2.5

    def mean_and_std(self, regime: Regime) -> Tuple[float, float]:
        if regime is Regime.NORMAL:
            return self.normal_return, self.normal_std_dev
        if regime is Regime.CRASH:
            return self.crash_return, self.crash_std_dev
        if regime is Regime.RECOVERY:
            return self.recovery_return, self.recovery_std_dev
        raise ValueError(f"Unknown regime: {regime}")


@dataclass(frozen=True)
class WithdrawalPriority:
    """Bucket order used when withdrawing (normal years vs crash/recovery years)."""

    normal: Tuple[str, ...] = ("stocks", "cash", "bonds")
    crash: Tuple[str, ...] = ("cash", "bonds", "stocks")


@dataclass(frozen=True)
class SimulationParams:
    initial_assets: InitialAssets
    annual_plans: Tuple[AnnualPlan, ...]
    regime_settings: RegimeSettings = field(default_factory=RegimeSettings)
    withdrawal_priority: Optional[WithdrawalPriority] = None


# ----------------------------------------------------------------------
# Per-trial state
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class AssetBalances:
    stocks: float = 0.0
    bonds: float = 0.0
    cash: float = 0.0

    @property
    def total(self) -> float:
        return self.stocks + self.bonds + self.cash

    def clamped(self) -> "AssetBalances":
        return AssetBalances(
            stocks=max(0.0, self.stocks),
            bonds=max(0.0, self.bonds),
            cash=max(0.0, self.cash),
        )


@dataclass(frozen=True)
class RegimeState:
    current: Regime = Regime.NORMAL
    precrash_stocks_balance: float = 0.0  # recovery target
    years_in_recovery: int = 0
    crash_return: float = 0.0  # realized equity return of the crash year (-0.35 = -35%)


# ----------------------------------------------------------------------
# Trial output
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class TrialYearResult:
    year: int
    age: int
    regime: Regime
    stocks_balance: float
    bonds_balance: float
    cash_balance: float
    total_assets: float
    income: float
    basic_expense: float
    extra_expense: float
    is_depleted: bool
    shortfall: float = 0.0


@dataclass
class TrialResult:
    yearly_results: List[TrialYearResult] = field(default_factory=list)
    depletion_year: Optional[int] = None
    crash_count: int = 0


# ----------------------------------------------------------------------
# Aggregates
# ----------------------------------------------------------------------


@dataclass
class YearlyResult:
    year: int
    age: int
    income: float
    basic_expense: float
    extra_expense: float
    assets_5th: float
    assets_10th: float
    assets_25th: float
    assets_50th: float
    assets_75th: float
    assets_95th: float
    stocks_50th: float
    bonds_50th: float
    cash_50th: float


@dataclass
class SummaryMetrics:
    # Headline
    success_rate: float
    safe_withdrawal_rate: Optional[float]

    # Depletion age and year by scenario (75th = optimistic, 10th = worst)
    depletion_age_75th: Optional[float]
    depletion_age_50th: Optional[float]
    depletion_age_25th: Optional[float]
    depletion_age_10th: Optional[float]
    depletion_year_75th: Optional[float]
    depletion_year_50th: Optional[float]
    depletion_year_25th: Optional[float]
    depletion_year_10th: Optional[float]
    median_depletion_year: Optional[float]

    final_assets_5th: float
    final_assets_10th: float
    final_assets_25th: float
    final_assets_50th: float
    final_assets_75th: float
    final_assets_95th: float

    min_assets_10th: float
    min_assets_25th: float
    min_assets_50th: float
    min_assets_75th: float

    # Risk
    average_crash_count: float
    average_recovery_years: Optional[float]
    average_depletion_age: Optional[float]
    max_drawdown_50th: float  # %
    max_drawdown_90th: float  # %
    depletion_probability: float


@dataclass
class SimulationResult:
    """
    Everything produced by one Monte Carlo run.
    """

    trial_results: List[TrialResult]
    yearly_results: List[YearlyResult]
    summary: SummaryMetrics

    # Index into trial_results of the representative trajectory (None when no trials)
    median_trial_index: Optional[int] = None

    # General-purpose metadata (seed, trial count, inputs)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def median_trial(self) -> Optional[TrialResult]:
        if self.median_trial_index is None:
            return None
        return self.trial_results[self.median_trial_index]
