"""VWAP continuation: ride the trend that keeps holding VWAP."""

from typing import List, Optional

from momentum_engine.market.snapshot import MarketSnapshot
from momentum_engine.rules.exit_rules import CheckRulesResult
from momentum_engine.signals.retest import has_lost_key_level
from momentum_engine.signals.vwap_patterns import (
    is_price_worse_than_vwap,
    last_closed_against_vwap,
    minimum_distance_to_vwap,
)
from momentum_engine.strategy.admission import validate_common_entry_rules
from momentum_engine.tradebooks.base import (
    PARTIAL_TARGETS_LONG,
    PARTIAL_TARGETS_SHORT,
    DisplayLevel,
    SingleKeyLevelTradebook,
    TradebookContext,
    TradeManagementInstructions,
    directional_instructions,
    tight_stop_levels_for_trend,
)
from momentum_engine.tradebooks.breakout import percentage_of_atr
from momentum_engine.tradebooks.open_drive import has_reversal_move, reversal_move_stats
from momentum_engine.tradebooks.states import TradebookState, describe_state
from momentum_engine.utils import ids


def min_distance_to_vwap(snapshot: MarketSnapshot, is_long: bool) -> Optional[float]:
    """Closest the closed candles came to VWAP on the momentum side."""
    distances = [
        minimum_distance_to_vwap(is_long, c, v)
        for c, v in zip(snapshot.closed_candles, snapshot.closed_vwaps)
    ]
    if not distances:
        return None
    return min(distances)


class VwapContinuation(SingleKeyLevelTradebook):
    """Trend continuation while price holds VWAP beyond the key level.

    MOMENTUM -> PULLBACK on the first candle that undercuts the previous one.
    PULLBACK -> MOMENTUM on a new extreme of day, -> FAILED when the key
    level is lost or the last closed candle closes through VWAP. Every state
    returns to OBSERVING when flat.
    """

    def __init__(self, symbol, is_long, key_level, plan, alerts=None):
        name = "Long VWAP Continuation" if is_long else "Short VWAP Continuation"
        super().__init__(symbol, is_long, key_level, plan, name, alerts)
        self.extreme_before_pullback = 0.0

    @property
    def id(self) -> str:
        return ids.VWAP_CONTINUATION_LONG if self.is_long else ids.VWAP_CONTINUATION_SHORT

    # ==================== State machine ====================

    def day_extreme(self, snapshot: MarketSnapshot) -> float:
        return snapshot.high_of_day if self.is_long else snapshot.low_of_day

    def on_enter_state(self, new_state, snapshot) -> str:
        if new_state == TradebookState.MOMENTUM:
            return "partial small during momentum"
        if new_state == TradebookState.PULLBACK:
            if snapshot is not None:
                self.extreme_before_pullback = self.day_extreme(snapshot)
            return "check the depth of pullback"
        if new_state == TradebookState.FAILED:
            return "consider exiting"
        return ""

    def refresh_state(self, snapshot: MarketSnapshot) -> None:
        if not self.is_enabled():
            return
        if self.state == TradebookState.OBSERVING:
            if self.has_position_for_tradebook(snapshot):
                self.transition_to_state(TradebookState.MOMENTUM, snapshot)
            return

        if not self.has_position_for_tradebook(snapshot):
            self.transition_to_state(TradebookState.OBSERVING, snapshot)
            return

        if self.state == TradebookState.MOMENTUM:
            candles = snapshot.candles
            if len(candles) < 2:
                return
            current, previous = candles[-1], candles[-2]
            if (self.is_long and current.low < previous.low) or (not self.is_long and current.high > previous.high):
                self.transition_to_state(TradebookState.PULLBACK, snapshot)
        elif self.state == TradebookState.PULLBACK:
            if has_lost_key_level(snapshot.closed_candles, self.is_long, self.key_level_price):
                self.transition_to_state(TradebookState.FAILED, snapshot)
                return
            extreme = self.day_extreme(snapshot)
            if (self.is_long and extreme > self.extreme_before_pullback) or (
                not self.is_long and extreme < self.extreme_before_pullback
            ):
                self.transition_to_state(TradebookState.MOMENTUM, snapshot)
            elif last_closed_against_vwap(snapshot, self.is_long):
                self.transition_to_state(TradebookState.FAILED, snapshot)

    # ==================== Entries ====================

    def has_vwap_crossed_key_level(self, snapshot: MarketSnapshot) -> bool:
        vwap = snapshot.current_vwap
        return vwap > self.key_level.high if self.is_long else vwap < self.key_level.low

    def validate_entry(self, snapshot: MarketSnapshot, context: TradebookContext, entry_price: float,
                       stop_price: float, use_market_order: bool) -> float:
        if self.is_entry_inside_key_level(entry_price):
            if self.has_vwap_crossed_key_level(snapshot):
                self.log.error(f"not valid entry price {entry_price} as new above water breakout")
            else:
                self.log.error(f"entry {entry_price} inside key level {self.key_level_price}")
            return 0.0
        request = self.entry_request(snapshot, context, entry_price, stop_price, use_market_order)
        return validate_common_entry_rules(request, self.key_level, True)

    def trigger_entry(self, snapshot, context, use_market_order, dry_run, parameters) -> float:
        entry_price = context.prices.breakout_entry_price(snapshot, self.is_long, use_market_order)
        stop_price = context.prices.stop_loss_price(snapshot, self.is_long)
        size = self.validate_entry(snapshot, context, entry_price, stop_price, use_market_order)
        if size == 0:
            self.log.error(f"{self.symbol} not allowed entry")
            return 0.0
        self.submit_level_entry(snapshot, context, dry_run, use_market_order, entry_price, stop_price, size)
        return size

    # ==================== Exit predicates ====================

    def _vwap_predicate(self, snapshot: MarketSnapshot, price: float) -> CheckRulesResult:
        if is_price_worse_than_vwap(snapshot, self.is_long, price):
            return CheckRulesResult.disallow("new price is worse than vwap")
        return CheckRulesResult.disallow("default disallow")

    def limit_order_predicate(self, snapshot, key_index, new_price) -> CheckRulesResult:
        return self._vwap_predicate(snapshot, new_price)

    def stop_order_predicate(self, snapshot, key_index, new_price) -> CheckRulesResult:
        return self._vwap_predicate(snapshot, new_price)

    def market_out_predicate(self, snapshot, key_index) -> CheckRulesResult:
        return self._vwap_predicate(snapshot, snapshot.current_price)

    # ==================== Display ====================

    def live_stats(self, snapshot, context) -> str:
        if not self.is_enabled():
            return ""
        atr_average = context.trading_plan.atr.average
        distance = min_distance_to_vwap(snapshot, self.is_long)
        distance_text = "n/a" if distance is None else percentage_of_atr(distance, atr_average)
        has_move = has_reversal_move(snapshot, self.is_long, atr_average)
        return (
            self.common_live_stats()
            + f"state: {describe_state(self.state)}, min dis2vwap: {distance_text} atr, "
            + reversal_move_stats(self.is_long, has_move)
        )

    def trade_management_instructions(self) -> TradeManagementInstructions:
        return directional_instructions(
            self.is_long,
            {
                "conditions to trim": ["first close below vwap"],
                "add or re-entry": ["pullback to vwap holds with a higher low"],
                "partial targets": PARTIAL_TARGETS_LONG,
            },
            {
                "conditions to trim": ["first close above vwap"],
                "add or re-entry": ["bounce to vwap fails with a lower high"],
                "partial targets": PARTIAL_TARGETS_SHORT,
            },
            ["lose vwap"],
            ["reclaim vwap"],
        )

    def tight_stop_levels(self, snapshot: MarketSnapshot) -> List[DisplayLevel]:
        return tight_stop_levels_for_trend(snapshot, self.is_long)
