# wealth_sim/models/regime.py
from __future__ import annotations

from dataclasses import replace

from ..data_structures import Regime, RegimeSettings, RegimeState
from ..historical import get_bootstrap_source
from ..variates import UniformSource

DEFAULT_AVERAGE_RECOVERY_YEARS = 2.5


def create_initial_regime_state() -> RegimeState:
    return RegimeState(
        current=Regime.NORMAL,
        precrash_stocks_balance=0.0,
        years_in_recovery=0,
        crash_return=0.0,
    )


def is_crash_regime(regime: Regime) -> bool:
    """Crash and recovery years both preserve equities when withdrawing."""
    return regime in (Regime.CRASH, Regime.RECOVERY)


# ---------- History-dependent transition inputs ----------


def double_dip_crash_probability(base_crash_probability: float, years_in_recovery: int) -> float:
    """
    Re-crash probability (%) during recovery. Early recovery years are the
    most fragile: x1.5 in year 1, x1.15 in year 2, unchanged afterwards.
    """
    if years_in_recovery == 1:
        return base_crash_probability * 1.5
    if years_in_recovery == 2:
        return base_crash_probability * 1.15
    return base_crash_probability


def crash_depth_recovery_multiplier(crash_return: float) -> float:
    """
    Multiplier on the average recovery length for a crash of the given
    depth (fraction, -0.35 = -35%).
    """
    if crash_return > -0.20:
        return 0.6
    if crash_return > -0.35:
        return 1.0
    return 2.0


def effective_crash_probability(settings: RegimeSettings) -> float:
    source = get_bootstrap_source(settings.bootstrap_index)
    if source is not None:
        return source.crash_probability
    return settings.crash_probability


def base_recovery_years(settings: RegimeSettings) -> float:
    source = get_bootstrap_source(settings.bootstrap_index)
    if source is not None:
        return source.average_recovery_years
    if settings.average_recovery_years is None:
        return DEFAULT_AVERAGE_RECOVERY_YEARS
    return settings.average_recovery_years


# ---------- State machine ----------


def _enter_crash(current_stocks_balance: float) -> RegimeState:
    # crash_return is filled in by the trial once the crash year's return is drawn
    return RegimeState(
        current=Regime.CRASH,
        precrash_stocks_balance=current_stocks_balance,
        years_in_recovery=0,
        crash_return=0.0,
    )


def determine_next_regime(
    state: RegimeState,
    settings: RegimeSettings,
    current_stocks_balance: float,
    rng: UniformSource,
) -> RegimeState:
    """
    Advance the regime by one year.

    normal   -> crash with the crash probability, else stays normal
    crash    -> recovery unconditionally
    recovery -> crash (double dip), normal (probabilistic or once equities
                regain the pre-crash level), else recovery one year longer
    """
    crash_probability = effective_crash_probability(settings)

    if state.current is Regime.NORMAL:
        if rng.random() * 100 < crash_probability:
            return _enter_crash(current_stocks_balance)
        return state

    if state.current is Regime.CRASH:
        return RegimeState(
            current=Regime.RECOVERY,
            precrash_stocks_balance=state.precrash_stocks_balance,
            years_in_recovery=1,
            crash_return=state.crash_return,
        )

    if state.current is Regime.RECOVERY:
        dip_probability = double_dip_crash_probability(crash_probability, state.years_in_recovery)
        if rng.random() * 100 < dip_probability:
            return _enter_crash(current_stocks_balance)

        # Memoryless approximation of a fixed-mean recovery length
        adjusted_years = base_recovery_years(settings) * crash_depth_recovery_multiplier(
            state.crash_return
        )
        # zero-length recovery always exits
        exit_probability = (1.0 / adjusted_years) * 100 if adjusted_years > 0 else float("inf")
        if rng.random() * 100 < exit_probability:
            return create_initial_regime_state()

        if current_stocks_balance >= state.precrash_stocks_balance:
            return create_initial_regime_state()

        return replace(state, years_in_recovery=state.years_in_recovery + 1)

    raise ValueError(f"Unknown regime: {state.current}")


def adjust_recovery_target_for_cash_flow(state: RegimeState, net_income: float) -> RegimeState:
    """
    Move the recovery target by the year's net income during crash/recovery.
    Clamped at 0, otherwise persistent deficits could make recovery unreachable.
    """
    if state.current is Regime.NORMAL:
        return state
    return replace(state, precrash_stocks_balance=max(0.0, state.precrash_stocks_balance + net_income))
