from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class StockFundPreset:
    id: str
    label: str
    foreign_ratio: float  # %


@dataclass(frozen=True)
class StockFund:
    amount: float
    foreign_ratio: float = 0.0  # %
    name: str = ""


STOCK_FUND_PRESETS = (
    StockFundPreset("all_country", "All-country world equity", 88.0),
    StockFundPreset("developed_ex_jp", "Developed markets ex-home", 100.0),
    StockFundPreset("sp500", "S&P 500 / US equity", 100.0),
    StockFundPreset("domestic", "Domestic equity", 0.0),
    StockFundPreset("emerging", "Emerging markets equity", 100.0),
    StockFundPreset("balanced", "Balanced (8 asset classes)", 75.0),
)

MAX_STOCK_FUNDS = 10


def get_preset(preset_id: str) -> StockFundPreset:
    for preset in STOCK_FUND_PRESETS:
        if preset.id == preset_id:
            return preset
    raise ValueError(f"Unknown stock fund preset: {preset_id}")


def find_closest_preset(foreign_ratio: float) -> StockFundPreset:
    """Map a bare foreign ratio onto a preset (used for legacy configs)."""
    if foreign_ratio == 0:
        return get_preset("domestic")
    if foreign_ratio == 100:
        return get_preset("sp500")
    if 85 <= foreign_ratio <= 92:
        return get_preset("all_country")
    return get_preset("balanced")


def total_stocks(funds: Sequence[StockFund]) -> float:
    return sum(f.amount for f in funds)


def weighted_foreign_ratio(funds: Sequence[StockFund]) -> float:
    """Amount-weighted foreign ratio (%); 0 when nothing is invested."""
    total = total_stocks(funds)
    if total == 0:
        return 0.0
    return sum(f.amount * f.foreign_ratio for f in funds) / total
