# wealth_sim/models/waterfall.py
"""
Per-year cash-flow and rebalancing stages over the three asset buckets.

Each stage takes an AssetBalances and returns a new one, so the order
(cash flow -> growth -> excess-cash sweep -> cash replenishment) can be
checked stage by stage.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Sequence

from ..data_structures import AssetBalances


@dataclass(frozen=True)
class CashFlowResult:
    balances: AssetBalances
    shortfall: float = 0.0  # demand left uncovered after every bucket is empty


def total_assets(balances: AssetBalances) -> float:
    return balances.stocks + balances.bonds + balances.cash


def is_depleted(balances: AssetBalances) -> bool:
    return total_assets(balances) <= 0


def _tax_multiplier(tax_rate: float) -> float:
    return 1 + tax_rate / 100


# ---------- 1. Net cash flow ----------


def process_cash_flow(income: float, expense: float, balances: AssetBalances) -> CashFlowResult:
    """
    Book income and expense against cash; a negative cash balance is
    covered from bonds, then stocks.
    """
    cash = balances.cash + income - expense
    if cash >= 0:
        return CashFlowResult(replace(balances, cash=cash))

    deficit = -cash
    from_bonds = min(balances.bonds, deficit)
    remaining = deficit - from_bonds
    from_stocks = 0.0
    if remaining > 0:
        from_stocks = min(balances.stocks, remaining)
        remaining -= from_stocks

    return CashFlowResult(
        AssetBalances(
            stocks=balances.stocks - from_stocks,
            bonds=balances.bonds - from_bonds,
            cash=0.0,
        ),
        shortfall=remaining,
    )


# ---------- 2. Growth ----------


def apply_growth(
    balances: AssetBalances,
    bond_return: float,
    stock_return: float,
    bonds_limit: float,
) -> AssetBalances:
    """
    bond_return is in percent, stock_return a fraction.

    A positive equity gain is banked into bonds while bonds are below their
    ceiling; the rest (or any loss) stays with equities.
    """
    bonds = balances.bonds + balances.bonds * (bond_return / 100)
    stocks = balances.stocks
    stock_gain = stocks * stock_return

    if stock_gain > 0 and bonds < bonds_limit:
        to_bonds = min(stock_gain, bonds_limit - bonds)
        bonds += to_bonds
        stocks += stock_gain - to_bonds
    else:
        stocks += stock_gain

    return replace(balances, stocks=stocks, bonds=bonds)


# ---------- 3. Excess-cash rebalancing ----------


def rebalance_excess_cash(balances: AssetBalances, cash_limit: float, bonds_limit: float) -> AssetBalances:
    if balances.cash <= cash_limit:
        return balances

    excess = balances.cash - cash_limit
    to_bonds = min(excess, max(0.0, bonds_limit - balances.bonds))
    return AssetBalances(
        stocks=balances.stocks + (excess - to_bonds),
        bonds=balances.bonds + to_bonds,
        cash=cash_limit,
    )


# ---------- 4. Cash replenishment ----------


def _draw_taxed(source_balance: float, target: float, multiplier: float):
    """Debit up to target * multiplier from a bucket; returns (debit, net credit)."""
    debit = min(source_balance, target * multiplier)
    return debit, debit / multiplier


def replenish_cash(
    balances: AssetBalances,
    cash_limit: float,
    from_bonds: bool,
    tax_rate: float = 0.0,
) -> AssetBalances:
    """
    Top cash up to its ceiling from bonds first (from_bonds=True) or stocks
    first, overflowing to the other bucket. The source bucket is debited
    (1 + tax_rate/100) times the cash credited.
    """
    if balances.cash >= cash_limit:
        return balances

    multiplier = _tax_multiplier(tax_rate)
    deficit = cash_limit - balances.cash
    stocks, bonds, cash = balances.stocks, balances.bonds, balances.cash

    if from_bonds:
        debit, credit = _draw_taxed(bonds, deficit, multiplier)
        bonds -= debit
        cash += credit
        remaining = deficit - credit
        if remaining > 0:
            debit, credit = _draw_taxed(stocks, remaining, multiplier)
            stocks -= debit
            cash += credit
    else:
        debit, credit = _draw_taxed(stocks, deficit, multiplier)
        stocks -= debit
        cash += credit
        remaining = deficit - credit
        if remaining > 0:
            debit, credit = _draw_taxed(bonds, remaining, multiplier)
            bonds -= debit
            cash += credit

    return AssetBalances(stocks=stocks, bonds=bonds, cash=cash)


# ---------- Priority-list policy ----------


def withdraw_by_priority(
    amount: float,
    balances: AssetBalances,
    order: Sequence[str],
    tax_rate: float = 0.0,
) -> CashFlowResult:
    """
    Withdraw `amount` walking the buckets in `order`. Stocks and bonds are
    taxed on withdrawal; cash is not.
    """
    values = {"stocks": balances.stocks, "bonds": balances.bonds, "cash": balances.cash}
    multiplier = _tax_multiplier(tax_rate)
    remaining = amount

    for bucket in order:
        if remaining <= 0:
            break
        if bucket == "cash":
            taken = min(values["cash"], remaining)
            values["cash"] -= taken
            remaining -= taken
        else:
            debit, credit = _draw_taxed(values[bucket], remaining, multiplier)
            values[bucket] -= debit
            remaining -= credit

    return CashFlowResult(AssetBalances(**values), shortfall=max(0.0, remaining))


def deposit_by_priority(
    amount: float,
    balances: AssetBalances,
    cash_limit: float,
    bonds_limit: float,
) -> AssetBalances:
    """Fill cash to its ceiling, then bonds to theirs, the rest goes to stocks."""
    to_cash = min(amount, max(0.0, cash_limit - balances.cash))
    remaining = amount - to_cash
    to_bonds = min(remaining, max(0.0, bonds_limit - balances.bonds))
    remaining -= to_bonds
    return AssetBalances(
        stocks=balances.stocks + remaining,
        bonds=balances.bonds + to_bonds,
        cash=balances.cash + to_cash,
    )


def process_cash_flow_by_priority(
    income: float,
    expense: float,
    balances: AssetBalances,
    order: Sequence[str],
    cash_limit: float,
    bonds_limit: float,
    tax_rate: float = 0.0,
) -> CashFlowResult:
    net = income - expense
    if net < 0:
        return withdraw_by_priority(-net, balances, order, tax_rate)
    return CashFlowResult(deposit_by_priority(net, balances, cash_limit, bonds_limit))
