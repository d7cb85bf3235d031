"""Breakout tradebooks anchored on the single key level.

AboveWaterBreakout trades the break of a key level that sits above VWAP (the
short side is the below-water breakdown). EmergingStrengthBreakout trades the
break of a key level price has to climb to from below VWAP, and requires a
close beyond the level first.
"""

from dataclasses import dataclass
from typing import List, Optional

from momentum_engine.config.schema import TradebooksConfig
from momentum_engine.market.candles import Candle
from momentum_engine.market.snapshot import MarketSnapshot
from momentum_engine.rules.exit_rules import CheckRulesResult
from momentum_engine.signals.retest import (
    PullbackStatus,
    analyze_breakout_patterns,
    first_breakout_candle,
    first_pullback_status,
    has_closed_beyond_price,
    has_lost_key_level,
)
from momentum_engine.signals.vwap_patterns import is_price_worse_than_key_level
from momentum_engine.signals.zones import has_closed_outside_key_level
from momentum_engine.strategy.admission import validate_common_entry_rules
from momentum_engine.tradebooks.base import (
    PARTIAL_TARGETS_LONG,
    PARTIAL_TARGETS_SHORT,
    EntryParameters,
    SingleKeyLevelTradebook,
    TradebookContext,
    TradeManagementInstructions,
    directional_instructions,
)
from momentum_engine.tradebooks.states import TradebookState, describe_state
from momentum_engine.utils import ids


@dataclass(frozen=True)
class RetestScan:
    """Pullback candles after the first close beyond the level."""

    has_retest: bool = False
    touched_level: bool = False
    deepest: float = 0.0


def scan_retest(candles: List[Candle], start_index: int, is_long: bool, level: float) -> RetestScan:
    """Counter-colour candles after ``start_index`` and how deep they went.

    Examples:
        >>> bars = [Candle(9.8, 10.3, 9.7, 10.2), Candle(10.2, 10.25, 9.95, 10.05)]
        >>> scan_retest(bars, 0, True, 10.0)
        RetestScan(has_retest=True, touched_level=True, deepest=9.95)
    """
    has_retest = False
    touched = False
    deepest = 0.0
    for c in candles[start_index + 1:]:
        if is_long and c.close < c.open:
            has_retest = True
            touched = touched or c.low <= level
            deepest = c.low if deepest == 0 else min(deepest, c.low)
        elif not is_long and c.close > c.open:
            has_retest = True
            touched = touched or c.high >= level
            deepest = c.high if deepest == 0 else max(deepest, c.high)
    return RetestScan(has_retest, touched, deepest)


def percentage_of_atr(distance: float, atr_average: float) -> str:
    """
    Examples:
        >>> percentage_of_atr(0.5, 2.0)
        '25%'
    """
    if atr_average <= 0:
        return "n/a"
    return f"{round(distance / atr_average * 100)}%"


class BaseBreakoutTradebook(SingleKeyLevelTradebook):
    """Breakout state machine and exit predicates.

    OBSERVING -> MOMENTUM once the tradebook holds a position. MOMENTUM and
    PULLBACK follow the first pullback since entry, FAILED once the key level
    is lost. FAILED returns to OBSERVING when flat.
    """

    def __init__(self, symbol, is_long, key_level, plan, name, alerts=None):
        super().__init__(symbol, is_long, key_level, plan, name, alerts)
        self.wait_for_close = True
        self.allow_close_within = False

    def apply_toggle(self, wait_for_close: bool, allow_close_within: bool) -> None:
        if not wait_for_close:
            self.wait_for_close = False
        if allow_close_within:
            self.allow_close_within = True

    # ==================== State machine ====================

    def refresh_state(self, snapshot: MarketSnapshot) -> None:
        if not self.is_enabled():
            return
        if self.state == TradebookState.OBSERVING:
            self.check_for_position(snapshot)
        elif self.state == TradebookState.FAILED:
            if not self.has_position_for_tradebook(snapshot):
                self.transition_to_state(TradebookState.OBSERVING, snapshot)
        elif self.state in (TradebookState.MOMENTUM, TradebookState.PULLBACK):
            self.check_for_pullback(snapshot)

    def check_for_position(self, snapshot: MarketSnapshot) -> None:
        if self.has_position_for_tradebook(snapshot):
            self.transition_to_state(TradebookState.MOMENTUM, snapshot)
        else:
            self.transition_to_state(TradebookState.OBSERVING, snapshot)

    def check_for_pullback(self, snapshot: MarketSnapshot) -> None:
        if not self.has_position_for_tradebook(snapshot):
            self.transition_to_state(TradebookState.OBSERVING, snapshot)
            return
        if has_lost_key_level(snapshot.closed_candles, self.is_long, self.key_level_price):
            self.transition_to_state(TradebookState.FAILED, snapshot)
            return
        pullback = first_pullback_status(snapshot)
        if pullback.status == PullbackStatus.IN_PROGRESS:
            self.transition_to_state(TradebookState.PULLBACK, snapshot)
        elif pullback.status == PullbackStatus.RECOVERED:
            self.transition_to_state(TradebookState.MOMENTUM, snapshot)

    # ==================== Entries ====================

    def validate_entry(self, snapshot: MarketSnapshot, context: TradebookContext, entry_price: float,
                       stop_price: float, use_market_order: bool) -> float:
        """Entry beyond the key level, or beyond every candle that tested it."""
        if not has_closed_outside_key_level(snapshot, self.is_long, self.key_level):
            self.log.error(f"{self.symbol} has not closed outside key level")
            threshold = self.tested_level_threshold(snapshot)
            if threshold is None:
                self.log.error(f"{self.symbol} has no candles tested key level")
                return 0.0
            if (self.is_long and entry_price < threshold) or (not self.is_long and entry_price > threshold):
                self.log.error(f"{self.symbol} entry price {entry_price} is inside threshold {threshold}")
                return 0.0
        request = self.entry_request(snapshot, context, entry_price, stop_price, use_market_order)
        return validate_common_entry_rules(request, self.key_level, True)

    def tested_level_threshold(self, snapshot: MarketSnapshot) -> Optional[float]:
        """Lowest high (long) or highest low (short) among closed candles that poked through the level."""
        level = self.key_level
        tested = [
            c for c in snapshot.closed_candles
            if (self.is_long and c.high > level.high) or (not self.is_long and c.low < level.low)
        ]
        if not tested:
            return None
        if self.is_long:
            return min(c.high for c in tested)
        return max(c.low for c in tested)

    def submit_validated(self, snapshot, context, dry_run, use_market_order, entry_price,
                         stop_price, size_ratio: float = 1.0) -> float:
        size = self.validate_entry(snapshot, context, entry_price, stop_price, use_market_order) * size_ratio
        if size == 0:
            self.log.error(f"{self.symbol} not allowed entry")
            return 0.0
        self.submit_level_entry(snapshot, context, dry_run, use_market_order, entry_price, stop_price, size)
        return size

    def trigger_closed_beyond_level(self, snapshot, context, use_market_order, dry_run,
                                    entry_price: float, closed_index: int) -> float:
        """A candle already closed beyond the level; inspect the retest after it."""
        stop_price = context.prices.stop_loss_price(snapshot, self.is_long)
        retest = scan_retest(list(snapshot.candles), closed_index, self.is_long, self.key_level_price)
        if not retest.has_retest:
            self.log.info("closed beyond level, no retest yet")
        elif retest.touched_level:
            self.log.info(f"retest touched level, stop at deepest retest {retest.deepest}")
            stop_price = retest.deepest
        else:
            self.log.info("retest held above level")
        return self.submit_validated(snapshot, context, dry_run, use_market_order, entry_price, stop_price)

    def trigger_entry(self, snapshot, context, use_market_order, dry_run, parameters) -> float:
        level = self.key_level_price
        analysis = analyze_breakout_patterns(snapshot.candles, self.is_long, level)
        entry_price = context.prices.breakout_entry_price(snapshot, self.is_long, use_market_order)
        if analysis.first_candle_closed_beyond_level is not None:
            return self.trigger_closed_beyond_level(
                snapshot, context, use_market_order, dry_run, entry_price,
                analysis.first_candle_closed_beyond_level_index,
            )
        return self.trigger_without_close(snapshot, context, use_market_order, dry_run, entry_price, analysis)

    def trigger_without_close(self, snapshot, context, use_market_order, dry_run, entry_price, analysis) -> float:
        """No candle closed beyond the level yet."""
        if self.wait_for_close:
            self.log.error(f"{self.symbol} must wait for a candle closed beyond level")
            return 0.0
        stop_price = context.prices.stop_loss_price(snapshot, self.is_long)
        testing = analysis.first_testing_candle
        if testing is not None and analysis.first_testing_candle_is_closed:
            extreme = testing.high if self.is_long else testing.low
            reclaiming = (self.is_long and entry_price < extreme) or (not self.is_long and entry_price > extreme)
            if reclaiming and not self.allow_close_within:
                self.log.error(f"closed within level, entry {entry_price} has not cleared the test candle {extreme}")
                return 0.0
            self.log.info("closed within level, entering on new high" if self.is_long else
                          "closed within level, entering on new low")
        return self.submit_validated(snapshot, context, dry_run, use_market_order, entry_price, stop_price)

    # ==================== Exit predicates ====================

    def has_lost_level(self, snapshot: MarketSnapshot) -> bool:
        return has_lost_key_level(snapshot.closed_candles, self.is_long, self.key_level_price)

    def limit_order_predicate(self, snapshot, key_index, new_price) -> CheckRulesResult:
        if self.has_lost_level(snapshot):
            return CheckRulesResult.allow("lost key level")
        if is_price_worse_than_key_level(self.is_long, self.key_level_price, new_price):
            return CheckRulesResult.disallow("new price is worse than key level")
        return CheckRulesResult.disallow("default disallow")

    def stop_order_predicate(self, snapshot, key_index, new_price) -> CheckRulesResult:
        self.log.info("breakout tradebook check rules")
        if self.has_lost_level(snapshot):
            return CheckRulesResult.allow("lost key level")
        if is_price_worse_than_key_level(self.is_long, self.key_level_price, new_price):
            return CheckRulesResult.disallow("new price is worse than key level")

        pullback = first_pullback_status(snapshot)
        if pullback.status == PullbackStatus.RECOVERED:
            if self.is_long:
                if new_price > pullback.pivot:
                    return CheckRulesResult.disallow("new price is higher than 1st pullback low")
                return CheckRulesResult.allow("new price respects 1st pullback low")
            if new_price < pullback.pivot:
                return CheckRulesResult.disallow("new price is lower than 1st pullback high")
            return CheckRulesResult.allow("new price respects 1st pullback high")

        breakout = first_breakout_candle(snapshot.closed_candles, self.is_long, self.key_level_price)
        if breakout is None:
            return CheckRulesResult.disallow("breakout candle not found")
        if self.is_long:
            if new_price > breakout.low:
                return CheckRulesResult.disallow("new price is higher than breakout candle low")
            return CheckRulesResult.allow("new price respects breakout candle low")
        if new_price < breakout.high:
            return CheckRulesResult.disallow("new price is lower than breakdown candle high")
        return CheckRulesResult.allow("new price respects breakdown candle high")

    def market_out_predicate(self, snapshot, key_index) -> CheckRulesResult:
        if self.has_lost_level(snapshot):
            return CheckRulesResult.allow("lost key level")
        if is_price_worse_than_key_level(self.is_long, self.key_level_price, snapshot.current_price):
            return CheckRulesResult.disallow("new price is worse than key level")
        return CheckRulesResult.disallow("default disallow")

    # ==================== Display ====================

    def live_stats(self, snapshot, context) -> str:
        if not self.is_enabled():
            return ""
        level = self.key_level_price
        closed_outside = has_closed_beyond_price(snapshot.candles, self.is_long, level)
        distance = percentage_of_atr(abs(level - snapshot.current_vwap), context.trading_plan.atr.average)
        return (
            self.common_live_stats()
            + f"state: {describe_state(self.state)}, level to vwap: {distance} atr, "
            f"closed outside: {closed_outside}"
        )

    def trade_management_instructions(self) -> TradeManagementInstructions:
        return directional_instructions(
            self.is_long,
            {
                "conditions to fail": [
                    "next new low after closed a candle (M1, M5, M15) below key level",
                    "break below the low of breakout candle (M1, M5, M15)",
                ],
                "conditions to trim": [
                    "deep pullback, partial some during bounce to half way or near double top",
                ],
                "add or re-entry": [
                    "reclaim of previous exit levels",
                    "after vwap cross above key level, pullback to vwap holds",
                ],
                "partial targets": PARTIAL_TARGETS_LONG,
            },
            {
                "conditions to fail": [
                    "next new high after closed a candle (M1, M5, M15) above key level",
                    "break above the high of breakdown candle (M1, M5, M15)",
                ],
                "conditions to trim": [
                    "deep pullback, partial some during pushdown to half way or near double bottom",
                ],
                "add or re-entry": [
                    "reclaim of previous exit levels",
                    "after vwap cross below key level, pullback to vwap holds",
                ],
                "partial targets": PARTIAL_TARGETS_SHORT,
            },
            ["lose level"],
            ["reclaim level"],
        )


class AboveWaterBreakout(BaseBreakoutTradebook):
    """Long above-water breakout, short below-water breakdown."""

    def __init__(self, symbol, is_long, key_level, plan, alerts=None):
        name = "Long Above Water Breakout" if is_long else "Short Below Water Breakdown"
        super().__init__(symbol, is_long, key_level, plan, name, alerts)

    @property
    def id(self) -> str:
        return ids.ABOVE_WATER_BREAKOUT if self.is_long else ids.BELOW_WATER_BREAKDOWN

    def update_config(self, config: TradebooksConfig) -> None:
        if self.is_long:
            toggle = config.level_open_vwap.long_above_water_breakout
        else:
            toggle = config.vwap_open_level.short_below_water_breakdown
        self.apply_toggle(toggle.wait_for_close, toggle.allow_close_within)

    def eligible_entry_parameters(self) -> EntryParameters:
        return EntryParameters(use_current_candle_high=True, use_market_order_with_tight_stop=True)


class EmergingStrengthBreakout(BaseBreakoutTradebook):
    """Long emerging strength breakout, short emerging weakness breakdown."""

    def __init__(self, symbol, is_long, key_level, plan, alerts=None):
        name = "Long Emerging Strength Breakout" if is_long else "Short Emerging Weakness Breakdown"
        super().__init__(symbol, is_long, key_level, plan, name, alerts)

    @property
    def id(self) -> str:
        if self.is_long:
            return ids.EMERGING_STRENGTH_BREAKOUT_LONG
        return ids.EMERGING_WEAKNESS_BREAKDOWN_SHORT

    def update_config(self, config: TradebooksConfig) -> None:
        if self.is_long:
            toggle = config.level_vwap_open.long_emerging_strength_breakout
        else:
            toggle = config.open_vwap_level.short_emerging_weakness_breakdown
        self.apply_toggle(toggle.wait_for_close, toggle.allow_close_within)

    def trigger_without_close(self, snapshot, context, use_market_order, dry_run, entry_price, analysis) -> float:
        self.log.error(f"{self.symbol} must wait for a candle closed beyond level")
        return 0.0
