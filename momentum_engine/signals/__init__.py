"""Signal library: pure functions over candles, VWAP and ATR."""

from .bars import (
    body_ratio,
    conditionally_has_reversal_bar_since_open,
    first_bar_is_pin_bar,
    has_higher_high,
    has_lower_low,
    has_new_high_low,
    has_reversal_bar_since_open,
    is_bar_same_direction,
    is_consecutive_bars_same_direction,
    is_green_bar,
    is_green_open_bar,
    is_higher_lows,
    is_lower_highs,
    is_red_bar,
    is_red_open_bar,
    is_reversal_bar,
)
from .retest import (
    BreakoutAnalysis,
    PullbackResult,
    PullbackStatus,
    analyze_breakout_patterns,
    count_wave_since_entry,
    first_breakout_candle,
    first_candle_closed_beyond_price,
    first_pullback_status,
    has_closed_beyond_price,
    has_lost_key_level,
    has_level_retest,
    has_retest_level,
    is_confirmed_false_breakout,
)
from .targets import (
    default_minimum_targets,
    minimum_profit_for_batch,
    minimum_profit_for_half,
    minimum_profit_target_for_batch,
    minimum_profit_target_for_single,
    minimum_profits,
    profit_targets_from_config,
    profit_to_target,
    slot_index,
)
from .vwap_patterns import (
    directional_distance_to_vwap,
    has_closed_outside_vwap,
    has_premarket_breakout,
    has_two_consecutive_closes_against,
    is_price_worse_than_key_level,
    is_price_worse_than_vwap,
    open_extension_from_vwap_in_atr,
    vwap_bounce_fail_status,
)
from .zones import (
    TradableArea,
    dual_level_momentum_disallow_reason,
    is_entry_outside_vwap_and_key_level,
    is_more_than_minimum_target,
    is_price_outside_key_level,
    is_price_outside_level,
    open_zone_score,
    single_level_momentum_disallow_reason,
    tradable_area,
)

__all__ = [
    # Bars
    "body_ratio",
    "conditionally_has_reversal_bar_since_open",
    "first_bar_is_pin_bar",
    "has_higher_high",
    "has_lower_low",
    "has_new_high_low",
    "has_reversal_bar_since_open",
    "is_bar_same_direction",
    "is_consecutive_bars_same_direction",
    "is_green_bar",
    "is_green_open_bar",
    "is_higher_lows",
    "is_lower_highs",
    "is_red_bar",
    "is_red_open_bar",
    "is_reversal_bar",
    # Retest and pullback
    "BreakoutAnalysis",
    "PullbackResult",
    "PullbackStatus",
    "analyze_breakout_patterns",
    "count_wave_since_entry",
    "first_breakout_candle",
    "first_candle_closed_beyond_price",
    "first_pullback_status",
    "has_closed_beyond_price",
    "has_lost_key_level",
    "has_level_retest",
    "has_retest_level",
    "is_confirmed_false_breakout",
    # Targets
    "default_minimum_targets",
    "minimum_profit_for_batch",
    "minimum_profit_for_half",
    "minimum_profit_target_for_batch",
    "minimum_profit_target_for_single",
    "minimum_profits",
    "profit_targets_from_config",
    "profit_to_target",
    "slot_index",
    # VWAP
    "directional_distance_to_vwap",
    "has_closed_outside_vwap",
    "has_premarket_breakout",
    "has_two_consecutive_closes_against",
    "is_price_worse_than_key_level",
    "is_price_worse_than_vwap",
    "open_extension_from_vwap_in_atr",
    "vwap_bounce_fail_status",
    # Zones
    "TradableArea",
    "dual_level_momentum_disallow_reason",
    "is_entry_outside_vwap_and_key_level",
    "is_more_than_minimum_target",
    "is_price_outside_key_level",
    "is_price_outside_level",
    "open_zone_score",
    "single_level_momentum_disallow_reason",
    "tradable_area",
]
