"""Open drive: momentum straight out of the open through the key level."""

from typing import List

from momentum_engine.market.snapshot import MarketSnapshot
from momentum_engine.signals.bars import conditionally_has_reversal_bar_since_open
from momentum_engine.strategy.admission import validate_common_entry_rules
from momentum_engine.tradebooks.base import (
    PARTIAL_TARGETS_LONG,
    PARTIAL_TARGETS_SHORT,
    DisplayLevel,
    EntryParameters,
    SingleKeyLevelTradebook,
    TradebookContext,
    TradeManagementInstructions,
    directional_instructions,
    tight_stop_levels_for_trend,
)
from momentum_engine.utils import ids

NO_REVERSAL_SIZE_RATIO = 0.5
FIRST_MINUTE_SECONDS = 60


def has_reversal_move(snapshot: MarketSnapshot, is_long: bool, atr_average: float) -> bool:
    """Red-to-green (long) or green-to-red (short) since the open."""
    return conditionally_has_reversal_bar_since_open(
        snapshot.candles, is_long, True, True, snapshot.previous_day_close, atr_average
    )


def reversal_move_stats(is_long: bool, has_move: bool) -> str:
    """Live stats fragment.

    Examples:
        >>> reversal_move_stats(True, False)
        'red2green: no'
    """
    prefix = "red2green" if is_long else "green2red"
    return f"{prefix}: {'yes' if has_move else 'no'}"


class OpenDrive(SingleKeyLevelTradebook):
    """Either direction. Half size when the first minute shows no reversal."""

    def __init__(self, symbol, is_long, key_level, plan, alerts=None):
        name = "Long Open Drive" if is_long else "Short Open Drive"
        super().__init__(symbol, is_long, key_level, plan, name, alerts)

    @property
    def id(self) -> str:
        return ids.OPEN_DRIVE_LONG if self.is_long else ids.OPEN_DRIVE_SHORT

    def eligible_entry_parameters(self) -> EntryParameters:
        return EntryParameters(use_current_candle_high=True, use_first_new_high=True)

    def trigger_entry(self, snapshot, context, use_market_order, dry_run, parameters) -> float:
        entry_price = context.prices.breakout_entry_price(snapshot, self.is_long, use_market_order)
        stop_price = context.prices.stop_loss_price(snapshot, self.is_long)
        size = self.validate_entry(snapshot, context, entry_price, stop_price, use_market_order)
        if size == 0:
            self.log.error(f"{self.symbol} not allowed entry")
            return 0.0
        self.submit_level_entry(snapshot, context, dry_run, use_market_order, entry_price, stop_price, size)
        return size

    def validate_entry(self, snapshot: MarketSnapshot, context: TradebookContext, entry_price: float,
                       stop_price: float, use_market_order: bool) -> float:
        reduce_ratio = 1.0
        if snapshot.seconds_since_open < FIRST_MINUTE_SECONDS:
            if not has_reversal_move(snapshot, self.is_long, context.trading_plan.atr.average):
                self.log.info(f"{self.symbol} has no reversal movement for OpenDrive")
                reduce_ratio = NO_REVERSAL_SIZE_RATIO

        if self.is_entry_inside_key_level(entry_price):
            self.log.error(f"entry {entry_price} inside key level {self.key_level_price}")
            return 0.0

        request = self.entry_request(snapshot, context, entry_price, stop_price, use_market_order)
        return validate_common_entry_rules(request, self.key_level, True) * reduce_ratio

    def live_stats(self, snapshot, context) -> str:
        if not self.is_enabled():
            return ""
        has_move = has_reversal_move(snapshot, self.is_long, context.trading_plan.atr.average)
        return self.common_live_stats() + reversal_move_stats(self.is_long, has_move)

    def trade_management_instructions(self) -> TradeManagementInstructions:
        return directional_instructions(
            self.is_long,
            {
                "conditions to trim": [
                    "80%: break below entry signal candle (M1, M5, M15)",
                    "50%: M1 new low before 9:35 AM",
                    "10-30%: M5/M15 new low",
                ],
                "add or re-entry": [
                    "reclaim of previous exit levels",
                    "after vwap cross above key level, pullback to vwap holds",
                ],
                "partial targets": PARTIAL_TARGETS_LONG,
            },
            {
                "conditions to trim": [
                    "80%: break above entry signal candle (M1, M5, M15)",
                    "50%: M1 new high before 9:35 AM",
                    "10-30%: M5/M15 new high",
                ],
                "add or re-entry": [
                    "reclaim of previous exit levels",
                    "after vwap cross below key level, pullback to vwap holds",
                ],
                "partial targets": PARTIAL_TARGETS_SHORT,
            },
            ["incremental new low"],
            ["incremental new high"],
        )

    def tight_stop_levels(self, snapshot: MarketSnapshot) -> List[DisplayLevel]:
        return tight_stop_levels_for_trend(snapshot, self.is_long)
