"""VWAP scalp off a level the trader has a strong reason to trust."""

from typing import List

from momentum_engine.config.schema import VwapScalpPlan
from momentum_engine.market.snapshot import MarketSnapshot
from momentum_engine.signals.targets import round_price
from momentum_engine.tradebooks.base import (
    PARTIAL_TARGETS_LONG,
    PARTIAL_TARGETS_SHORT,
    DisplayLevel,
    EntryParameters,
    Tradebook,
    TradebookContext,
    TradeManagementInstructions,
    directional_instructions,
    tight_stop_levels_for_trend,
)
from momentum_engine.utils import ids

SCALP_SIZE = 0.21
MAX_ENTRY_RISK_RATIO = 0.3


class VwapScalp(Tradebook):
    """Fixed size scalp, capped by a max entry during the first candle.

    While the opening candle forms against the plan's original key level,
    every counter-colour tick widens the max entry to the day's extreme plus
    30% of the day's range. From the second candle on there is no cap.
    """

    def __init__(self, symbol, is_long, plan: VwapScalpPlan, alerts=None):
        name = "Long VWAP Scalp" if is_long else "Short VWAP Scalp"
        super().__init__(symbol, is_long, name, plan, alerts)
        self.max_entry = plan.max_entry

    @property
    def id(self) -> str:
        return ids.VWAP_SCALP_LONG if self.is_long else ids.VWAP_SCALP_SHORT

    @property
    def scalp_plan(self) -> VwapScalpPlan:
        return self.plan

    def eligible_entry_parameters(self) -> EntryParameters:
        return EntryParameters(use_current_candle_high=True, use_first_new_high=True)

    # ==================== Max entry ====================

    def on_tick(self, snapshot: MarketSnapshot) -> None:
        candles = snapshot.candles
        if len(candles) == 0:
            return
        if len(candles) >= 2:
            if self.max_entry > 0:
                self.log.debug("second candle started, max entry cleared")
                self.max_entry = 0.0
            return
        open_price = candles[0].open
        key_level = self.scalp_plan.original_key_level
        if self.is_long and open_price >= key_level:
            return
        if not self.is_long and open_price <= key_level:
            return
        last = candles[-1]
        risk = snapshot.high_of_day - snapshot.low_of_day + 0.01
        if self.is_long and last.close <= last.open:
            self.update_max_entry(round_price(snapshot.high_of_day + MAX_ENTRY_RISK_RATIO * risk))
        elif not self.is_long and last.close >= last.open:
            self.update_max_entry(round_price(snapshot.low_of_day - MAX_ENTRY_RISK_RATIO * risk))

    def update_max_entry(self, new_value: float) -> None:
        """Seed the cap, then only ever widen it."""
        if self.max_entry == 0:
            self.max_entry = new_value
        elif self.is_long:
            self.max_entry = max(self.max_entry, new_value)
        else:
            self.max_entry = min(self.max_entry, new_value)
        self.log.debug(f"max entry {self.max_entry}")

    # ==================== Entries ====================

    def validate_entry(self, snapshot: MarketSnapshot, entry_price: float) -> float:
        if not self.scalp_plan.strong_reason_to_use_this_level:
            self.log.error(f"{self.symbol} not allowed entry because of missing strong reason to use this level")
            return 0.0

        vwap = snapshot.current_vwap
        if (self.is_long and snapshot.low_of_day > vwap) or (not self.is_long and snapshot.high_of_day < vwap):
            self.log.warning(f"not touch vwap yet: {vwap}")

        if self.max_entry > 0:
            if self.is_long and entry_price > self.max_entry:
                self.log.error(f"entry price {entry_price} is greater than max entry {self.max_entry}")
                return 0.0
            if not self.is_long and entry_price < self.max_entry:
                self.log.error(f"entry price {entry_price} is less than max entry {self.max_entry}")
                return 0.0
        return SCALP_SIZE

    def trigger_entry(self, snapshot, context: TradebookContext, use_market_order, dry_run, parameters) -> float:
        entry_price = context.prices.breakout_entry_price(snapshot, self.is_long, use_market_order)
        stop_price = context.prices.stop_loss_price(snapshot, self.is_long)
        size = self.validate_entry(snapshot, entry_price)
        if size == 0:
            self.log.error(f"{self.symbol} not allowed entry")
            return 0.0
        risk_level_price = context.prices.risk_level_price(snapshot, stop_price)
        self.submit_entry_orders(context, dry_run, use_market_order, entry_price, stop_price, risk_level_price, size)
        return size

    # ==================== Display ====================

    def live_stats(self, snapshot, context) -> str:
        if not self.is_enabled():
            return ""
        cap = f"max entry: {self.max_entry}" if self.max_entry > 0 else "max entry: none"
        return self.common_live_stats() + cap

    def trade_management_instructions(self) -> TradeManagementInstructions:
        return directional_instructions(
            self.is_long,
            {
                "conditions to fail": ["lose vwap, low of day breakdown"],
                "conditions to trim": ["first new low on M1, M5, M15"],
                "add or re-entry": ["none, just scalp"],
                "partial targets": PARTIAL_TARGETS_LONG,
            },
            {
                "conditions to fail": ["reclaim of vwap, high of day breakout"],
                "conditions to trim": ["first new high on M1, M5, M15"],
                "add or re-entry": ["none, just scalp"],
                "partial targets": PARTIAL_TARGETS_SHORT,
            },
            ["lose vwap"],
            ["reclaim vwap"],
        )

    def tight_stop_levels(self, snapshot: MarketSnapshot) -> List[DisplayLevel]:
        return tight_stop_levels_for_trend(snapshot, self.is_long)
