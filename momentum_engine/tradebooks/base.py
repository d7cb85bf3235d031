"""Base tradebook abstraction.

A tradebook is one strategy variant for one symbol and direction. It owns a
small state machine, turns a trader's entry request into an admission call
and an order instruction, and supplies the strategy stage of exit
adjudication. Everything it decides is recomputed from the snapshot it is
handed; only the state, the enable flag and a few counters persist.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from momentum_engine.config.schema import (
    BasePlan,
    EngineSettings,
    LevelArea,
    LevelMomentumPlan,
    TradebooksConfig,
    TradingPlan,
)
from momentum_engine.market.protocols import AlertSink, EntryPriceService, LoggingAlertSink, OrderGateway
from momentum_engine.market.snapshot import ExitPair, MarketSnapshot
from momentum_engine.rules.exit_rules import CheckRulesResult, common_adjust_stops
from momentum_engine.strategy.admission import EntryRequest
from momentum_engine.strategy.exit_adjudication import (
    adjudicate_limit_adjustment,
    adjudicate_market_out,
    adjudicate_stop_adjustment,
)
from momentum_engine.tradebooks.states import TradebookState, describe_state
from momentum_engine.utils.logging import log_for


@dataclass(frozen=True)
class EntryParameters:
    """How the entry price may be picked for a tradebook.

    Attributes:
        use_current_candle_high: Stop entry at the forming candle's extreme
        use_first_new_high: Stop entry at the first new high/low
        use_market_order_with_tight_stop: Market entry with a tight stop
        timeframe: Entry timeframe in minutes
    """

    use_current_candle_high: bool = True
    use_first_new_high: bool = False
    use_market_order_with_tight_stop: bool = False
    timeframe: int = 1

    def __post_init__(self):
        """Validate parameters."""
        if self.timeframe < 1:
            raise ValueError(f"timeframe must be >= 1, got {self.timeframe}")


@dataclass(frozen=True)
class TradeManagementInstructions:
    """Checklist shown to the trader once in a trade."""

    sections: Dict[str, List[str]] = field(default_factory=dict)
    conditions_to_fail: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DisplayLevel:
    """A price level worth drawing, with its caption."""

    level: float
    title: str


@dataclass(frozen=True)
class TradebookContext:
    """Collaborators and session configuration a tradebook needs per call."""

    trading_plan: TradingPlan
    settings: EngineSettings
    prices: EntryPriceService
    gateway: Optional[OrderGateway] = None


def tight_stop_levels_for_trend(snapshot: MarketSnapshot, is_long: bool) -> List[DisplayLevel]:
    """Tight stop suggestions during the first five minutes.

    First minute: the opening candle's body. Second minute: that body plus
    the opening candle's extreme. Up to five minutes: the last closed candle.
    """
    seconds = snapshot.seconds_since_open
    candles = snapshot.candles
    levels: List[DisplayLevel] = []
    if seconds < 0 or not candles:
        return levels
    first = candles[0]
    body_low = min(first.open, first.close)
    body_high = max(first.open, first.close)
    if seconds <= 60:
        levels.append(DisplayLevel(body_low if is_long else body_high, "tight stop, re-entry after shakeout"))
    elif seconds <= 120:
        levels.append(DisplayLevel(body_low if is_long else body_high, "tight stop 50%, re-entry after shakeout"))
        levels.append(DisplayLevel(first.low if is_long else first.high, "better stop"))
    elif seconds <= 300 and len(candles) >= 2:
        previous = candles[-2]
        text = "first new low" if is_long else "first new high"
        levels.append(DisplayLevel(previous.low if is_long else previous.high,
                                   f"tight stop {text}, re-entry after shakeout"))
    return levels


class Tradebook(ABC):
    """Abstract base class for all tradebooks.

    Subclasses implement:
    1. ``id`` (unique per symbol)
    2. ``trigger_entry`` (entry prices, admission, submission)
    3. Optionally ``refresh_state`` and the exit predicates
    """

    def __init__(
        self,
        symbol: str,
        is_long: bool,
        name: str,
        plan: BasePlan,
        alerts: Optional[AlertSink] = None,
    ) -> None:
        """Initialize tradebook.

        Args:
            symbol: Ticker.
            is_long: Direction.
            name: Display name.
            plan: Strategy plan copied onto every submitted entry.
            alerts: Sink for spoken callouts.
        """
        self.symbol = symbol
        self.is_long = is_long
        self.name = name
        self.plan = plan
        self.alerts = alerts or LoggingAlertSink()
        self.enabled = False
        self.enable_by_default = False
        self.disable_exit_rules = False
        self.state = TradebookState.OBSERVING
        self.sizing_count = plan.plan_configs.sizing_count or 10

    @property
    @abstractmethod
    def id(self) -> str:
        """Unique id within the symbol's registry."""

    @property
    def log(self):
        return log_for(self.symbol, self.id)

    # ==================== Lifecycle ====================

    def enable(self) -> None:
        self.enabled = True

    def disable(self) -> None:
        self.enabled = False

    def is_enabled(self) -> bool:
        return self.enabled

    def update_config(self, config: TradebooksConfig) -> None:
        """Pick up per-ordering options. Most tradebooks have none."""

    def announce(self, message: str) -> None:
        self.alerts.announce(self.symbol, message)

    def transition_to_state(self, new_state: TradebookState, snapshot: Optional[MarketSnapshot] = None) -> bool:
        """Move to ``new_state``.

        Returns False and does nothing when already there, so repeated
        refreshes never repeat side effects.
        """
        if self.state == new_state:
            return False
        self.log.debug(f"{describe_state(self.state)} -> {describe_state(new_state)}")
        self.state = new_state
        callout = self.on_enter_state(new_state, snapshot)
        if callout:
            self.announce(callout)
        return True

    def on_enter_state(self, new_state: TradebookState, snapshot: Optional[MarketSnapshot]) -> str:
        """Hook run once per state change; returns a callout or an empty string."""
        return ""

    def refresh_state(self, snapshot: MarketSnapshot) -> None:
        """Advance the state machine from the latest snapshot."""

    def on_tick(self, snapshot: MarketSnapshot) -> None:
        """Per time-and-sales hook."""

    def on_new_candle_close(self, snapshot: MarketSnapshot) -> None:
        """Per candle-close hook."""

    # ==================== Entries ====================

    def eligible_entry_parameters(self) -> EntryParameters:
        return EntryParameters()

    def start_entry(
        self,
        snapshot: MarketSnapshot,
        context: TradebookContext,
        use_market_order: bool,
        dry_run: bool,
        parameters: Optional[EntryParameters] = None,
    ) -> float:
        """Entry point for a trader initiated entry; returns the allowed size."""
        self.log.info(f"Starting entry for {self.symbol} ({self.id})")
        self.announce("is it a high quality setup?")
        return self.trigger_entry(snapshot, context, use_market_order, dry_run, parameters or EntryParameters())

    @abstractmethod
    def trigger_entry(
        self,
        snapshot: MarketSnapshot,
        context: TradebookContext,
        use_market_order: bool,
        dry_run: bool,
        parameters: EntryParameters,
    ) -> float:
        """Compute prices, run admission and submit. Returns the allowed size, 0 when rejected."""

    def entry_request(
        self,
        snapshot: MarketSnapshot,
        context: TradebookContext,
        entry_price: float,
        stop_price: float,
        use_market_order: bool,
        should_check_entry_distance: bool = False,
        plan: Optional[BasePlan] = None,
    ) -> EntryRequest:
        return EntryRequest(
            snapshot=snapshot,
            trading_plan=context.trading_plan,
            settings=context.settings,
            is_long=self.is_long,
            entry_price=entry_price,
            stop_price=stop_price,
            base_plan=plan or self.plan,
            use_market_order=use_market_order,
            should_check_entry_distance=should_check_entry_distance,
            tag=self.id,
        )

    def has_position_for_tradebook(self, snapshot: MarketSnapshot) -> bool:
        """The open position is in this direction and was entered by this tradebook."""
        position = snapshot.position
        if not position.has_value or position.is_long != self.is_long:
            return False
        return position.tradebook_id == self.id

    def submit_entry_orders(
        self,
        context: TradebookContext,
        dry_run: bool,
        use_market_order: bool,
        entry_price: float,
        stop_price: float,
        risk_level_price: float,
        size: float,
        plan: Optional[BasePlan] = None,
    ) -> None:
        """Hand one entry instruction to the gateway.

        The plan is deep-copied so later edits to the session plan never
        reach an order already in flight.
        """
        if dry_run:
            self.announce(f"{self.symbol} dry run, not submitting orders")
            return
        if context.gateway is None:
            self.log.error("no order gateway, entry not submitted")
            return
        plan_copy = (plan or self.plan).model_copy(deep=True)
        plan_copy.plan_configs.sizing_count = self.sizing_count
        self.log.info(f"sizing count: {self.sizing_count}")
        context.gateway.submit_entry(
            self.symbol,
            self.is_long,
            entry_price,
            stop_price,
            risk_level_price,
            size,
            plan_copy,
            self.id,
            use_market_order,
        )

    # ==================== Exit predicates ====================

    def limit_order_predicate(self, snapshot: MarketSnapshot, key_index: int, new_price: float) -> CheckRulesResult:
        self.log.info("base tradebook check rules")
        return CheckRulesResult.allow("base tradebook")

    def stop_order_predicate(self, snapshot: MarketSnapshot, key_index: int, new_price: float) -> CheckRulesResult:
        self.log.info("base tradebook check rules")
        return common_adjust_stops(snapshot, new_price)

    def market_out_predicate(self, snapshot: MarketSnapshot, key_index: int) -> CheckRulesResult:
        self.log.info("base tradebook check rules")
        return CheckRulesResult.allow("base tradebook")

    def adjust_limit_order(
        self,
        snapshot: MarketSnapshot,
        context: TradebookContext,
        key_index: int,
        pair: Optional[ExitPair],
        new_price: float,
    ) -> CheckRulesResult:
        """Whether a profit target may move to ``new_price``."""
        if self.disable_exit_rules:
            return CheckRulesResult.allow("disabled")
        return adjudicate_limit_adjustment(
            snapshot, context.settings, pair, new_price,
            lambda: self.limit_order_predicate(snapshot, key_index, new_price), tag=self.id,
        )

    def adjust_stop_order(
        self,
        snapshot: MarketSnapshot,
        context: TradebookContext,
        key_index: int,
        new_price: float,
    ) -> CheckRulesResult:
        """Whether a protective stop may move to ``new_price``."""
        if self.disable_exit_rules:
            return CheckRulesResult.allow("disabled")
        return adjudicate_stop_adjustment(
            snapshot, context.settings, context.trading_plan.atr, key_index, new_price,
            lambda: self.stop_order_predicate(snapshot, key_index, new_price), tag=self.id,
        )

    def market_out(self, snapshot: MarketSnapshot, context: TradebookContext, key_index: int) -> CheckRulesResult:
        """Whether one exit pair may be closed at market."""
        if self.disable_exit_rules:
            return CheckRulesResult.allow("disabled")
        return adjudicate_market_out(
            snapshot, context.settings, context.trading_plan.atr, key_index,
            lambda: self.market_out_predicate(snapshot, key_index), tag=self.id,
        )

    # ==================== Display ====================

    def trade_management_instructions(self) -> TradeManagementInstructions:
        return TradeManagementInstructions()

    def tight_stop_levels(self, snapshot: MarketSnapshot) -> List[DisplayLevel]:
        return []

    def common_live_stats(self) -> str:
        return f"size: {self.sizing_count}, "

    def live_stats(self, snapshot: MarketSnapshot, context: TradebookContext) -> str:
        """One-line status for the trader, empty when disabled."""
        if not self.is_enabled():
            return ""
        return self.common_live_stats()

    def __repr__(self) -> str:
        """String representation."""
        status = "ENABLED" if self.enabled else "DISABLED"
        return f"{self.id} [{status}, {describe_state(self.state)}]"


def directional_instructions(
    is_long: bool,
    for_long: Dict[str, List[str]],
    for_short: Dict[str, List[str]],
    fail_long: List[str],
    fail_short: List[str],
) -> TradeManagementInstructions:
    """Pick the long or short checklist."""
    if is_long:
        return TradeManagementInstructions(dict(for_long), list(fail_long))
    return TradeManagementInstructions(dict(for_short), list(fail_short))


PARTIAL_TARGETS_LONG = [
    "10-30%: 1 minute push, 1st leg up",
    "30-60%: 5 minute push, 2nd leg up",
    "60-90%: 15 minute push, 3rd leg up, 1+ ATR",
]
PARTIAL_TARGETS_SHORT = [
    "10-30%: 1 minute drop, 1st leg down",
    "30-60%: 5 minute drop, 2nd leg down",
    "60-90%: 15 minute drop, 3rd leg down, 1+ ATR",
]


class SingleKeyLevelTradebook(Tradebook):
    """Tradebook anchored on the plan's single momentum key level."""

    def __init__(
        self,
        symbol: str,
        is_long: bool,
        key_level: LevelArea,
        plan: LevelMomentumPlan,
        name: str,
        alerts: Optional[AlertSink] = None,
    ) -> None:
        super().__init__(symbol, is_long, name, plan, alerts)
        self.key_level = key_level

    @property
    def level_momentum_plan(self) -> LevelMomentumPlan:
        return self.plan

    @property
    def key_level_price(self) -> float:
        """Band high for longs, band low for shorts."""
        return self.key_level.high if self.is_long else self.key_level.low

    def is_entry_inside_key_level(self, entry_price: float) -> bool:
        level = self.key_level_price
        return entry_price < level if self.is_long else entry_price > level

    def submit_level_entry(
        self,
        snapshot: MarketSnapshot,
        context: TradebookContext,
        dry_run: bool,
        use_market_order: bool,
        entry_price: float,
        stop_price: float,
        size: float,
        plan: Optional[BasePlan] = None,
    ) -> None:
        risk_level_price = context.prices.risk_level_price(snapshot, stop_price)
        self.submit_entry_orders(
            context, dry_run, use_market_order, entry_price, stop_price, risk_level_price, size, plan
        )
