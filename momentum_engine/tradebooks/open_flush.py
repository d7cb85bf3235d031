"""Open flush: fade of an open that ran into VWAP or through the premarket range."""

from momentum_engine.config.schema import LevelMomentumPlan
from momentum_engine.market.snapshot import MarketSnapshot
from momentum_engine.rules.risk import size_for_tightened_stop
from momentum_engine.signals.vwap_patterns import (
    atr_threshold,
    has_premarket_breakout,
    open_extension_from_vwap_in_atr,
)
from momentum_engine.strategy.admission import validate_common_entry_rules
from momentum_engine.tradebooks.base import (
    SingleKeyLevelTradebook,
    TradebookContext,
    TradeManagementInstructions,
    directional_instructions,
)
from momentum_engine.utils import ids

MAX_SECONDS_SINCE_OPEN = 300
BOTH_SIGNALS_SIZE_RATIO = 0.8
ONE_SIGNAL_SIZE_RATIO = 0.4
WIDE_TARGET_LADDER = [3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 10.0, 11.0, 12.0]


class OpenFlush(SingleKeyLevelTradebook):
    """First five minutes only.

    Needs a premarket breakout against the trade or an open stretched far
    enough from VWAP. Sized on the wide stop and submitted with the tight one.
    """

    def __init__(self, symbol, is_long, key_level, plan, alerts=None):
        name = "Long Open Flush" if is_long else "Short Open Flush"
        super().__init__(symbol, is_long, key_level, plan, name, alerts)

    @property
    def id(self) -> str:
        return ids.OPEN_FLUSH_LONG if self.is_long else ids.OPEN_FLUSH_SHORT

    def flush_signals(self, snapshot: MarketSnapshot, context: TradebookContext):
        """``(premarket breakout, extension meets threshold, extension in ATR)``."""
        plan = context.trading_plan
        breakout = has_premarket_breakout(snapshot, not self.is_long)
        extension = open_extension_from_vwap_in_atr(snapshot, self.is_long, plan.atr.average)
        return breakout, extension > atr_threshold(plan.market_cap_in_millions), extension

    def flush_plan(self) -> LevelMomentumPlan:
        """Copy of the plan with wide targets and free exits."""
        plan = self.level_momentum_plan.model_copy(deep=True)
        plan.plan_configs.always_allow_flatten = True
        plan.plan_configs.always_allow_move_stop = True
        plan.targets.initial_targets.rrr = list(WIDE_TARGET_LADDER)
        plan.targets.initial_targets.daily_ranges = list(WIDE_TARGET_LADDER)
        return plan

    def trigger_entry(self, snapshot, context, use_market_order, dry_run, parameters) -> float:
        breakout, extension_ok, _ = self.flush_signals(snapshot, context)
        if not breakout and not extension_ok:
            self.log.error("no premarket breakout and vwap extension is too short")
            return 0.0

        if use_market_order:
            entry_price = snapshot.current_price
        else:
            entry_price = snapshot.high_of_day if self.is_long else snapshot.low_of_day
        if self.is_long:
            wide_stop = min(snapshot.premarket_low, snapshot.low_of_day) if snapshot.premarket_low else snapshot.low_of_day
            tight_stop = snapshot.low_of_day
        else:
            wide_stop = max(snapshot.premarket_high, snapshot.high_of_day)
            tight_stop = snapshot.high_of_day

        size = self.validate_entry(snapshot, context, entry_price, wide_stop, use_market_order)
        if size == 0:
            self.log.error(f"{self.symbol} not allowed entry")
            return 0.0

        size = size_for_tightened_stop(entry_price, wide_stop, tight_stop, size)
        size *= BOTH_SIGNALS_SIZE_RATIO if breakout and extension_ok else ONE_SIGNAL_SIZE_RATIO
        self.submit_level_entry(
            snapshot, context, dry_run, use_market_order, entry_price, tight_stop, size, self.flush_plan()
        )
        return size

    def validate_entry(self, snapshot: MarketSnapshot, context: TradebookContext, entry_price: float,
                       stop_price: float, use_market_order: bool) -> float:
        if snapshot.seconds_since_open > MAX_SECONDS_SINCE_OPEN:
            self.log.error("only allowed for first 5 minutes")
            return 0.0
        request = self.entry_request(
            snapshot, context, entry_price, stop_price, use_market_order, should_check_entry_distance=True
        )
        return validate_common_entry_rules(request, self.key_level, False)

    def live_stats(self, snapshot, context) -> str:
        if not self.is_enabled():
            return ""
        breakout, _, extension = self.flush_signals(snapshot, context)
        return self.common_live_stats() + f"vwap from open: {extension} atr, premkt b/o: {breakout}"

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
            ["low of day"],
            ["high of day"],
        )
