"""Gap tradebooks: gap and go (long) and gap and crap (short)."""

from typing import List

from momentum_engine.config.schema import GapAndCrapPlan, GapAndGoPlan
from momentum_engine.market.snapshot import MarketSnapshot
from momentum_engine.strategy.admission import check_basic_global_entry_rules
from momentum_engine.tradebooks.base import (
    DisplayLevel,
    Tradebook,
    TradebookContext,
    TradeManagementInstructions,
    tight_stop_levels_for_trend,
)
from momentum_engine.utils import ids

MIN_GAP_PERCENT = 0.5
GAP_AND_CRAP_MAX_SECONDS = 3600


class GapAndGo(Tradebook):
    """Long continuation of a gap, stopped at the low of day."""

    def __init__(self, symbol, is_long, plan: GapAndGoPlan, alerts=None):
        if not is_long:
            raise ValueError("GapAndGo tradebook only supports long positions")
        super().__init__(symbol, True, "Long Gap and Go", plan, alerts)
        self.enable_by_default = True

    @property
    def id(self) -> str:
        return ids.GAP_AND_GO_LONG

    def trigger_entry(self, snapshot, context: TradebookContext, use_market_order, dry_run, parameters) -> float:
        entry_price = context.prices.breakout_entry_price(snapshot, True, use_market_order)
        stop_price = snapshot.low_of_day
        risk_level = self.plan.default_risk_level or stop_price
        request = self.entry_request(snapshot, context, entry_price, stop_price, use_market_order)
        size = check_basic_global_entry_rules(request)
        if size == 0:
            self.log.error(f"{self.symbol} not allowed entry")
            return 0.0
        self.submit_entry_orders(
            context, dry_run, use_market_order, entry_price, stop_price,
            context.prices.risk_level_price(snapshot, risk_level), size,
        )
        return size

    def trade_management_instructions(self) -> TradeManagementInstructions:
        return TradeManagementInstructions(
            {
                "conditions to fail": ["new low of day breakdown", "reclaim open price (gap fill fails)"],
                "conditions to trim": ["first new low after initial push", "M5 reversal candle"],
                "add or re-entry": ["add on open price rejection if strong", "add on VWAP rejection"],
                "partial targets": [
                    "25-40%: first leg push toward previous close",
                    "40-60%: approach previous day close",
                    "60-80%: reclaim previous day close",
                    "80-100%: extended target beyond previous close",
                ],
            },
            ["new low of day, lose gap continuation momentum"],
        )

    def tight_stop_levels(self, snapshot: MarketSnapshot) -> List[DisplayLevel]:
        return tight_stop_levels_for_trend(snapshot, True)


def gap_percent(open_price: float, previous_close: float) -> float:
    """Gap size as a percentage of the previous close.

    Examples:
        >>> gap_percent(10.1, 10.0)
        1.0
    """
    return round((open_price - previous_close) / previous_close * 100, 4)


class GapAndCrap(Tradebook):
    """Short fade of a gap up that turns down within the first hour."""

    def __init__(self, symbol, is_long, plan: GapAndCrapPlan, alerts=None):
        if is_long:
            raise ValueError("GapAndCrap tradebook only supports short positions")
        super().__init__(symbol, False, "Short Gap and Crap", plan, alerts)
        self.enable_by_default = True

    @property
    def id(self) -> str:
        return ids.GAP_AND_CRAP_SHORT

    def validate_entry(self, snapshot: MarketSnapshot, context: TradebookContext, entry_price: float,
                       stop_price: float, use_market_order: bool) -> float:
        open_price = snapshot.open_price
        previous_close = snapshot.previous_day_close
        if not open_price or not previous_close:
            self.log.error("missing open price or previous day candle")
            return 0.0

        gap = open_price - previous_close
        if gap <= 0:
            self.log.error(f"no gap up for short gap and crap, gap: {gap:.2f}")
            return 0.0
        percent = gap_percent(open_price, previous_close)
        if percent < MIN_GAP_PERCENT:
            self.log.error(f"gap too small: {percent:.2f}%")
            return 0.0

        if snapshot.current_price >= open_price:
            self.log.error(
                f"price not reversing down from gap up, current: {snapshot.current_price}, open: {open_price}"
            )
            return 0.0
        if snapshot.seconds_since_open > GAP_AND_CRAP_MAX_SECONDS:
            self.log.error(f"too late for gap and crap, {snapshot.seconds_since_open} seconds since open")
            return 0.0
        if use_market_order:
            candle = snapshot.current_candle
            if candle is not None and candle.close > candle.open:
                self.log.error("current candle is against momentum, use stop order instead")
                return 0.0

        request = self.entry_request(snapshot, context, entry_price, stop_price, use_market_order)
        return check_basic_global_entry_rules(request)

    def trigger_entry(self, snapshot, context: TradebookContext, use_market_order, dry_run, parameters) -> float:
        entry_price = context.prices.breakout_entry_price(snapshot, False, use_market_order)
        stop_price = snapshot.high_of_day
        size = self.validate_entry(snapshot, context, entry_price, stop_price, use_market_order)
        if size == 0:
            self.log.error(f"{self.symbol} not allowed entry")
            return 0.0
        self.submit_entry_orders(
            context, dry_run, use_market_order, entry_price, stop_price,
            context.prices.risk_level_price(snapshot, stop_price), size,
        )
        return size

    def live_stats(self, snapshot, context) -> str:
        if not self.is_enabled():
            return ""
        if not snapshot.open_price or not snapshot.previous_day_close:
            return self.common_live_stats() + "gap: n/a"
        percent = gap_percent(snapshot.open_price, snapshot.previous_day_close)
        return self.common_live_stats() + f"gap: {percent:.2f}%"

    def trade_management_instructions(self) -> TradeManagementInstructions:
        return TradeManagementInstructions(
            {
                "conditions to fail": ["new high of day breakout", "reclaim open price"],
                "conditions to trim": ["first new high after initial drop", "M5 reversal candle"],
                "add or re-entry": ["add on open price rejection", "add on VWAP rejection"],
                "partial targets": [
                    "25-40%: first leg down toward vwap",
                    "40-60%: approach previous day close",
                    "60-80%: fill the gap",
                ],
            },
            ["new high of day, lose gap reversal momentum"],
        )

    def tight_stop_levels(self, snapshot: MarketSnapshot) -> List[DisplayLevel]:
        return tight_stop_levels_for_trend(snapshot, False)
