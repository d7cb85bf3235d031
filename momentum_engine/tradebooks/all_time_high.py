"""All-time-high VWAP continuation (long only)."""

from typing import List, Sequence, Tuple

from momentum_engine.config.schema import AllTimeHighVwapContinuationPlan
from momentum_engine.market.candles import Candle
from momentum_engine.market.snapshot import MarketSnapshot
from momentum_engine.rules.entry_rules import is_timing_and_entry_allowed_for_higher_timeframe
from momentum_engine.signals.vwap_patterns import has_two_consecutive_closes_against
from momentum_engine.strategy.admission import check_basic_global_entry_rules
from momentum_engine.tradebooks.base import (
    DisplayLevel,
    EntryParameters,
    Tradebook,
    TradebookContext,
    TradeManagementInstructions,
    tight_stop_levels_for_trend,
)
from momentum_engine.utils import ids


def closed_buckets_with_vwap(snapshot: MarketSnapshot, timeframe: int) -> Tuple[List[Candle], List[float]]:
    """Closed ``timeframe``-minute candles and the VWAP printed at each bucket's last minute."""
    if timeframe <= 1:
        return list(snapshot.closed_candles), list(snapshot.closed_vwaps)
    closed_count = max(snapshot.seconds_since_open, 0) // (timeframe * 60)
    buckets = snapshot.aggregate(timeframe)[:closed_count]
    vwaps: Sequence[float] = snapshot.vwap_series
    bucket_vwaps = []
    for i in range(len(buckets)):
        end = min((i + 1) * timeframe, len(vwaps)) - 1
        bucket_vwaps.append(vwaps[end])
    return buckets, bucket_vwaps


class AllTimeHighVwapContinuation(Tradebook):
    """Continuation above both VWAP and the all-time high.

    The entry timeframe comes from the entry parameters. Two consecutive
    closed candles of that timeframe against VWAP or against the all-time
    high end the setup.
    """

    def __init__(self, symbol, is_long, plan: AllTimeHighVwapContinuationPlan, alerts=None):
        if not is_long:
            raise ValueError("AllTimeHighVwapContinuation tradebook only supports long positions")
        super().__init__(symbol, True, "ATH VWAP Cont", plan, alerts)
        self.all_time_high = plan.all_time_high
        self.enable_by_default = True

    @property
    def id(self) -> str:
        return ids.ATH_VWAP_CONTINUATION

    def eligible_entry_parameters(self) -> EntryParameters:
        return EntryParameters(use_current_candle_high=True, use_first_new_high=True)

    def has_given_up(self, snapshot: MarketSnapshot, timeframe: int) -> bool:
        buckets, vwaps = closed_buckets_with_vwap(snapshot, timeframe)
        if has_two_consecutive_closes_against(buckets, True, vwaps):
            self.log.error(f"has two candles against vwap for M{timeframe}, giving up")
            return True
        if has_two_consecutive_closes_against(buckets, True, [self.all_time_high] * len(buckets)):
            self.log.error(f"has two candles against all-time high for M{timeframe}, giving up")
            return True
        return False

    def validate_entry(self, snapshot: MarketSnapshot, context: TradebookContext, entry_price: float,
                       stop_price: float, use_market_order: bool, timeframe: int) -> float:
        vwap = snapshot.current_vwap
        if entry_price <= vwap:
            self.log.error(f"entry price {entry_price} must be above VWAP {vwap}")
            return 0.0
        if entry_price <= self.all_time_high:
            self.log.error(f"entry price {entry_price} must be above all-time high {self.all_time_high}")
            return 0.0
        if snapshot.high_of_day <= self.all_time_high:
            self.log.warning(
                f"price has not broken above all-time high {self.all_time_high}, "
                f"current high: {snapshot.high_of_day}"
            )
        if not is_timing_and_entry_allowed_for_higher_timeframe(snapshot, entry_price, True, timeframe):
            self.log.error("not timing and entry allowed for higher timeframe")
            return 0.0
        request = self.entry_request(snapshot, context, entry_price, stop_price, use_market_order)
        return check_basic_global_entry_rules(request)

    def trigger_entry(self, snapshot, context: TradebookContext, use_market_order, dry_run,
                      parameters: EntryParameters) -> float:
        timeframe = parameters.timeframe
        if self.has_given_up(snapshot, timeframe):
            return 0.0
        entry_price = context.prices.breakout_entry_price(snapshot, True, use_market_order)
        stop_price = context.prices.stop_loss_price(snapshot, True)
        size = self.validate_entry(snapshot, context, entry_price, stop_price, use_market_order, timeframe)
        if size == 0:
            self.log.error("not allowed entry")
            return 0.0
        risk_level = self.plan.default_risk_level or stop_price
        self.submit_entry_orders(
            context, dry_run, use_market_order, entry_price, stop_price,
            context.prices.risk_level_price(snapshot, risk_level), size,
        )
        return size

    def live_stats(self, snapshot, context) -> str:
        if not self.is_enabled():
            return ""
        above = snapshot.current_price > self.all_time_high
        return self.common_live_stats() + f"ath: {self.all_time_high}, above ath: {above}"

    def trade_management_instructions(self) -> TradeManagementInstructions:
        return TradeManagementInstructions(
            {
                "conditions to fail": ["two closes below vwap", "two closes back below all-time high"],
                "conditions to trim": ["first new low on the entry timeframe"],
                "add or re-entry": ["pullback to all-time high holds", "pullback to vwap holds"],
                "partial targets": [
                    "10-30%: 1 minute push, 1st leg up",
                    "30-60%: 5 minute push, 2nd leg up",
                    "60-90%: 15 minute push, 3rd leg up, 1+ ATR",
                ],
            },
            ["lose vwap", "lose all-time high"],
        )

    def tight_stop_levels(self, snapshot: MarketSnapshot) -> List[DisplayLevel]:
        return tight_stop_levels_for_trend(snapshot, True)
