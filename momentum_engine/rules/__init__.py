"""Rule library.

Includes:
- Account and position risk
- Entry rules (liquidity, timing, spread, location, added positions)
- Exit rules (blanket overrides, minimum targets, trailing, flatten)
"""

from .entry_rules import (
    SpreadStatus,
    VwapDistance,
    has_minimum_volume,
    is_against_first_five_minutes,
    is_against_momentum_start_price,
    is_allowed_for_partial_entry,
    is_blocked_by_timing,
    is_daily_range_too_small,
    is_entry_more_than_half_daily_range,
    is_near_against_watch_level,
    is_outside_tradable_area,
    is_reverse_of_momentum_candle,
    is_spread_too_large,
    is_timing_and_entry_allowed_for_higher_timeframe,
    liquidity_scale,
    mid_range_breakout_size,
    no_trade_zone_reason,
    spread_status,
    vwap_distance_status,
    watch_area_reason,
)
from .exit_rules import (
    CheckRulesResult,
    added_position,
    all_orders_rules,
    allow_first_few_exits,
    batch_overflow,
    blanket_time_override,
    common_adjust_stops,
    early_exit_override,
    flatten_rules,
    increasing_target,
    incremental_trailing_stop,
    less_tight_than_closed_candles,
    minimum_target_for_batch,
    minimum_target_for_single,
    oversized_override,
    tighten_stop,
    trail_stop_single,
)
from .risk import (
    calculate_total_shares,
    entry_orders_risk_in_dollars,
    is_allowed_as_paper_cut,
    is_breakeven,
    is_over_daily_max_loss,
    is_over_daily_max_loss_with_position,
    is_oversized,
    is_paper_cut,
    max_daily_loss_limit,
    position_risk_in_dollars,
    position_risk_multiples,
    risk_in_dollar_to_multiples,
    risk_multiplier_for_next_entry,
    size_for_tightened_stop,
)

__all__ = [
    # Entry
    "SpreadStatus",
    "VwapDistance",
    "has_minimum_volume",
    "is_against_first_five_minutes",
    "is_against_momentum_start_price",
    "is_allowed_for_partial_entry",
    "is_blocked_by_timing",
    "is_daily_range_too_small",
    "is_entry_more_than_half_daily_range",
    "is_near_against_watch_level",
    "is_outside_tradable_area",
    "is_reverse_of_momentum_candle",
    "is_spread_too_large",
    "is_timing_and_entry_allowed_for_higher_timeframe",
    "liquidity_scale",
    "mid_range_breakout_size",
    "no_trade_zone_reason",
    "spread_status",
    "vwap_distance_status",
    "watch_area_reason",
    # Exit
    "CheckRulesResult",
    "added_position",
    "all_orders_rules",
    "allow_first_few_exits",
    "batch_overflow",
    "blanket_time_override",
    "common_adjust_stops",
    "early_exit_override",
    "flatten_rules",
    "increasing_target",
    "incremental_trailing_stop",
    "less_tight_than_closed_candles",
    "minimum_target_for_batch",
    "minimum_target_for_single",
    "oversized_override",
    "tighten_stop",
    "trail_stop_single",
    # Risk
    "calculate_total_shares",
    "entry_orders_risk_in_dollars",
    "is_allowed_as_paper_cut",
    "is_breakeven",
    "is_over_daily_max_loss",
    "is_over_daily_max_loss_with_position",
    "is_oversized",
    "is_paper_cut",
    "max_daily_loss_limit",
    "position_risk_in_dollars",
    "position_risk_multiples",
    "risk_in_dollar_to_multiples",
    "risk_multiplier_for_next_entry",
    "size_for_tightened_stop",
]
