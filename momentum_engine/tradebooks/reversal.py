"""Breakout reversal: reclaim of a reversal level from the wrong side of VWAP."""

from momentum_engine.config.schema import ReversalPlan
from momentum_engine.market.snapshot import MarketSnapshot
from momentum_engine.tradebooks.base import (
    Tradebook,
    TradebookContext,
    TradeManagementInstructions,
    directional_instructions,
)
from momentum_engine.utils import ids

REVERSAL_SIZE = 0.21 / 2


class BreakoutReversal(Tradebook):
    """Half of a scalp size, entered beyond the plan's key level while still
    on the far side of VWAP."""

    def __init__(self, symbol, is_long, plan: ReversalPlan, alerts=None):
        name = "Long Reversal" if is_long else "Short Reversal"
        super().__init__(symbol, is_long, name, plan, alerts)
        self.key_level = plan.key_level
        self.enable_by_default = True

    @property
    def id(self) -> str:
        return ids.REVERSAL_LONG if self.is_long else ids.REVERSAL_SHORT

    def validate_entry(self, snapshot: MarketSnapshot, entry_price: float) -> float:
        if not self.is_enabled():
            return 0.0
        key_level = self.key_level
        if self.is_long and entry_price < key_level:
            self.log.error(f"entry price {entry_price} is not above key level {key_level}")
            return 0.0
        if not self.is_long and entry_price > key_level:
            self.log.error(f"entry price {entry_price} is not below key level {key_level}")
            return 0.0

        vwap = snapshot.current_vwap
        if self.is_long and entry_price > vwap:
            self.log.error(f"entry price {entry_price} must be below vwap {vwap} to avoid vwap shakeout")
            return 0.0
        if not self.is_long and entry_price < vwap:
            self.log.error(f"entry price {entry_price} must be above vwap {vwap} to avoid vwap shakeout")
            return 0.0
        return REVERSAL_SIZE

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

    def live_stats(self, snapshot, context) -> str:
        if not self.is_enabled():
            return ""
        return self.common_live_stats() + f"reversal level: {self.key_level}"

    def trade_management_instructions(self) -> TradeManagementInstructions:
        return directional_instructions(
            self.is_long,
            {
                "conditions to fail": ["low of day"],
                "conditions to trim": ["decide how much and whether to trim on first new low below vwap"],
                "add or re-entry": ["vwap pushdown fail, add back previous partials"],
                "partial targets": ["about 50%: push to vwap"],
            },
            {
                "conditions to fail": ["high of day"],
                "conditions to trim": ["decide how much and whether to trim on first new high above vwap"],
                "add or re-entry": ["vwap bounce fail, add back previous partials"],
                "partial targets": ["about 50%: dip to vwap"],
            },
            ["lose level"],
            ["reclaim level"],
        )
