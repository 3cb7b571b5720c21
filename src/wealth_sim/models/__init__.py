from .regime import (
    create_initial_regime_state,
    determine_next_regime,
    adjust_recovery_target_for_cash_flow,
    double_dip_crash_probability,
    crash_depth_recovery_multiplier,
    is_crash_regime,
)
from .returns import (
    stock_return,
    fx_return,
    effective_stock_return,
)
from .waterfall import (
    CashFlowResult,
    process_cash_flow,
    apply_growth,
    rebalance_excess_cash,
    replenish_cash,
    withdraw_by_priority,
    deposit_by_priority,
    process_cash_flow_by_priority,
    total_assets,
    is_depleted,
)
