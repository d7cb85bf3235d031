"""VWAP bounce failed (short) and VWAP pushdown failed (long).

The short side sells a bounce into VWAP that fails to reclaim it, then counts
the legs down that follow. The long side mirrors it: a pushdown into VWAP that
fails, then the legs up.
"""

from typing import List

from momentum_engine.config.schema import TradebooksConfig
from momentum_engine.market.snapshot import MarketSnapshot
from momentum_engine.rules.entry_rules import is_reverse_of_momentum_candle
from momentum_engine.rules.exit_rules import CheckRulesResult
from momentum_engine.signals.vwap_patterns import is_price_worse_than_vwap, vwap_bounce_fail_status
from momentum_engine.strategy.admission import validate_common_entry_rules
from momentum_engine.tradebooks.base import (
    DisplayLevel,
    SingleKeyLevelTradebook,
    TradebookContext,
    TradeManagementInstructions,
    directional_instructions,
    tight_stop_levels_for_trend,
)
from momentum_engine.tradebooks.states import TradebookState
from momentum_engine.utils import ids

LEG_TWO_LIMIT_MAX_INDEX = 5
LEG_TWO_STOP_MAX_INDEX = 6


class VwapContinuationFailed(SingleKeyLevelTradebook):
    """Fade of a failed VWAP test.

    State machine, short side (long mirrors highs and lows):

    - OBSERVING -> LOST_VWAP once the position is on, any state -> OBSERVING
      once flat
    - LOST_VWAP -> RECLAIMED_VWAP on a new high after a close above VWAP,
      BOUNCE on any other new high, LEG_DOWN on a new low of day
    - BOUNCE -> RECLAIMED_VWAP on a new high after a close above VWAP,
      LEG_DOWN on a new low of day
    - LEG_DOWN -> BOUNCE on a new high
    """

    def __init__(self, symbol, is_long, key_level, plan, alerts=None):
        name = "Long VWAP Pushdown Failed" if is_long else "Short VWAP Bounce Failed"
        super().__init__(symbol, is_long, key_level, plan, name, alerts)
        self.wait_for_close = True
        self.leg_counter = 0
        self.extreme_to_break = 0.0

    @property
    def id(self) -> str:
        return ids.LONG_VWAP_PUSHDOWN_FAILED if self.is_long else ids.SHORT_VWAP_BOUNCE_FAILED

    def update_config(self, config: TradebooksConfig) -> None:
        if self.is_long:
            toggles = [config.vwap_open_level.long_vwap_pushdown_fail, config.vwap_level_open.long_vwap_pushdown_fail]
        else:
            toggles = [config.open_level_vwap.short_vwap_bounce_fail, config.level_open_vwap.short_vwap_bounce_fail]
        if any(not t.wait_for_close for t in toggles):
            self.wait_for_close = False

    # ==================== State machine ====================

    def day_extreme(self, snapshot: MarketSnapshot) -> float:
        """High of day for the long side, low of day for the short side."""
        return snapshot.high_of_day if self.is_long else snapshot.low_of_day

    def has_new_counter_extreme(self, snapshot: MarketSnapshot) -> bool:
        """The forming candle broke the previous candle against the trade."""
        candles = snapshot.candles
        if len(candles) < 2:
            return False
        current, previous = candles[-1], candles[-2]
        return current.low < previous.low if self.is_long else current.high > previous.high

    def has_reclaimed_vwap(self, snapshot: MarketSnapshot) -> bool:
        """The previous candle closed back through the current VWAP."""
        if len(snapshot.candles) < 2:
            return False
        close = snapshot.candles[-2].close
        vwap = snapshot.current_vwap
        return close < vwap if self.is_long else close > vwap

    def has_new_day_extreme(self, snapshot: MarketSnapshot) -> bool:
        extreme = self.day_extreme(snapshot)
        return extreme > self.extreme_to_break if self.is_long else extreme < self.extreme_to_break

    def scale_out_callout(self) -> str:
        move = "pullback" if self.is_long else "bounce"
        return f"expect future {move}, scale out 10-30%"

    def on_enter_state(self, new_state, snapshot) -> str:
        if new_state == TradebookState.LOST_VWAP:
            self.leg_counter = 0
            if snapshot is not None:
                self.extreme_to_break = self.day_extreme(snapshot)
            return self.scale_out_callout()
        if new_state == TradebookState.LEG_DOWN:
            self.leg_counter += 1
            return self.scale_out_callout()
        if new_state == TradebookState.RECLAIMED_VWAP:
            return "exit the trade"
        if new_state == TradebookState.BOUNCE:
            if snapshot is not None:
                self.extreme_to_break = self.day_extreme(snapshot)
            return "evaluate bounce height, look for recycle shares"
        return ""

    def refresh_state(self, snapshot: MarketSnapshot) -> None:
        if not self.is_enabled():
            return
        has_position = self.has_position_for_tradebook(snapshot)
        if self.state == TradebookState.OBSERVING:
            if has_position:
                self.transition_to_state(TradebookState.LOST_VWAP, snapshot)
            return
        if not has_position:
            self.transition_to_state(TradebookState.OBSERVING, snapshot)
            return
        if self.state == TradebookState.RECLAIMED_VWAP:
            return

        counter_move = self.has_new_counter_extreme(snapshot)
        if self.state == TradebookState.LOST_VWAP:
            if counter_move:
                if self.has_reclaimed_vwap(snapshot):
                    self.transition_to_state(TradebookState.RECLAIMED_VWAP, snapshot)
                else:
                    self.transition_to_state(TradebookState.BOUNCE, snapshot)
            elif self.has_new_day_extreme(snapshot):
                self.transition_to_state(TradebookState.LEG_DOWN, snapshot)
        elif self.state == TradebookState.BOUNCE:
            if counter_move and self.has_reclaimed_vwap(snapshot):
                self.transition_to_state(TradebookState.RECLAIMED_VWAP, snapshot)
            elif self.has_new_day_extreme(snapshot):
                self.transition_to_state(TradebookState.LEG_DOWN, snapshot)
        elif self.state == TradebookState.LEG_DOWN:
            if counter_move:
                self.transition_to_state(TradebookState.BOUNCE, snapshot)

    # ==================== Entries ====================

    def validate_entry(self, snapshot: MarketSnapshot, context: TradebookContext, entry_price: float,
                       stop_price: float, use_market_order: bool) -> float:
        if is_price_worse_than_vwap(snapshot, self.is_long, snapshot.current_price):
            self.log.warning("price is not beyond vwap yet")
            self.announce("not above vwap yet" if self.is_long else "not below vwap yet")

        if is_reverse_of_momentum_candle(snapshot, self.is_long, use_market_order):
            if self.is_long:
                self.log.error("cannot market long when current candle is red")
            else:
                self.log.error("cannot market short when current candle is green")
            return 0.0

        if self.wait_for_close:
            expected = "pushing down to vwap" if self.is_long else "bouncing off vwap"
            if vwap_bounce_fail_status(snapshot, self.is_long) != expected:
                self.log.error(f"wait for close: last closed candle is not {expected}")
                self.announce("not pushing down to vwap yet" if self.is_long else "not bouncing off vwap yet")
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
        if self.is_long:
            self.announce("make sure vwap pushed down with a higher low, all 3 parts triggered")
        else:
            self.announce("make sure vwap bounced with a lower high, all 3 parts triggered")
        self.submit_level_entry(snapshot, context, dry_run, use_market_order, entry_price, stop_price, size)
        return size

    # ==================== Exit predicates ====================

    def _leg_predicate(self, key_index: int, max_index: int) -> CheckRulesResult:
        if self.leg_counter == 2 and key_index <= max_index:
            return CheckRulesResult.allow("leg 2")
        if self.leg_counter >= 3:
            return CheckRulesResult.allow("leg 3+")
        return CheckRulesResult.disallow("default disallow")

    def limit_order_predicate(self, snapshot, key_index, new_price) -> CheckRulesResult:
        if is_price_worse_than_vwap(snapshot, self.is_long, new_price):
            return CheckRulesResult.allow("lose vwap")
        return self._leg_predicate(key_index, LEG_TWO_LIMIT_MAX_INDEX)

    def stop_order_predicate(self, snapshot, key_index, new_price) -> CheckRulesResult:
        if is_price_worse_than_vwap(snapshot, self.is_long, new_price):
            return CheckRulesResult.allow("new price is worse than vwap")
        return self._leg_predicate(key_index, LEG_TWO_STOP_MAX_INDEX)

    def market_out_predicate(self, snapshot, key_index) -> CheckRulesResult:
        if is_price_worse_than_vwap(snapshot, self.is_long, snapshot.current_price):
            return CheckRulesResult.allow("lose vwap")
        return self._leg_predicate(key_index, LEG_TWO_STOP_MAX_INDEX)

    # ==================== Display ====================

    def state_text(self) -> str:
        if self.state == TradebookState.OBSERVING:
            return "vwap pushdown failed" if self.is_long else "vwap bounce failed"
        if self.state == TradebookState.LOST_VWAP:
            return "lost vwap"
        if self.state == TradebookState.LEG_DOWN:
            return f"leg up {self.leg_counter}" if self.is_long else f"leg down {self.leg_counter}"
        if self.state == TradebookState.BOUNCE:
            return "pullback" if self.is_long else "bounce"
        return "reclaimed vwap"

    def live_stats(self, snapshot, context) -> str:
        if not self.is_enabled():
            return ""
        status = vwap_bounce_fail_status(snapshot, self.is_long)
        return self.common_live_stats() + f"state: {self.state_text()}, {status}"

    def trade_management_instructions(self) -> TradeManagementInstructions:
        return directional_instructions(
            self.is_long,
            {
                "conditions to trim": ["10-30% on each new leg up", "more on leg 2 and leg 3"],
                "add or re-entry": ["recycle shares on a pullback that holds above vwap"],
            },
            {
                "conditions to trim": ["10-30% on each new leg down", "more on leg 2 and leg 3"],
                "add or re-entry": ["recycle shares on a bounce that fails below vwap"],
            },
            ["lose vwap"],
            ["reclaim vwap"],
        )

    def tight_stop_levels(self, snapshot: MarketSnapshot) -> List[DisplayLevel]:
        return tight_stop_levels_for_trend(snapshot, self.is_long)
