"""Decision engine facade.

Single entry point the host application drives:
- session lifecycle (start of day, market open)
- market events (candle close, time and sales tick)
- trader requests (entries, exit order changes, flatten)
- the red to green algorithm

Every call reads a fresh snapshot from the market data provider, so
repeating an event repeats the same computation. Entry submissions pass
through the submission guard, so a repeated entry request never submits
twice.

Example::

    engine = DecisionEngine(load_config(path), data=provider, gateway=broker)
    engine.start_session()
    engine.on_market_open()
    engine.on_tick("TSLA")
    size = engine.request_entry("TSLA", ids.OPEN_DRIVE_LONG)
"""

from datetime import date
from typing import Callable, Dict, Optional

from loguru import logger

from momentum_engine.config.schema import EngineConfig, RedToGreenPlan
from momentum_engine.market.protocols import (
    AlertSink,
    CandleEntryPriceService,
    EntryPriceService,
    MarketDataProvider,
    OrderGateway,
)
from momentum_engine.market.snapshot import ExitPair, MarketSnapshot, OrderModel, OrderType
from momentum_engine.rules.exit_rules import CheckRulesResult, tighten_stop
from momentum_engine.session.algos import ReversalEntryAlgo
from momentum_engine.session.context import SessionContext
from momentum_engine.session.level_alerts import LevelCrossTracker
from momentum_engine.session.scheduler import RecheckScheduler
from momentum_engine.strategy.exit_adjudication import adjudicate_flatten, adjudicate_trail_stop
from momentum_engine.strategy.selector import PriceOrdering, update_tradebooks_status
from momentum_engine.tradebooks.base import EntryParameters, Tradebook
from momentum_engine.utils.logging import log_for


class DecisionEngine:
    """Intraday decision engine for every symbol of a session.

    Args:
        config: Engine configuration with the day's trading plans.
        data: Snapshot source.
        gateway: Order gateway. Without one, entries are priced and admitted
            but never submitted.
        prices: Entry/stop price service (defaults to candle extremes).
        alerts: Callout sink (defaults to the log).
        clock: Monotonic clock for the recheck scheduler.
    """

    def __init__(
        self,
        config: EngineConfig,
        data: MarketDataProvider,
        gateway: Optional[OrderGateway] = None,
        prices: Optional[EntryPriceService] = None,
        alerts: Optional[AlertSink] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config
        self.data = data
        self.context = SessionContext(config.settings, prices or CandleEntryPriceService(), gateway, alerts)
        self.scheduler = RecheckScheduler(clock)
        self.red_to_green = ReversalEntryAlgo(self.context, self.scheduler, data)
        self.level_alerts = LevelCrossTracker(self.context.alerts)
        self._had_position: Dict[str, bool] = {}

        for plan in config.plans.values():
            self.context.add_plan(plan)

        logger.info(
            f"Initialized DecisionEngine '{config.name}' v{config.version} with "
            f"{len(config.plans)} symbols, dry_run={config.settings.dry_run}"
        )

    # ==================== Session lifecycle ====================

    def start_session(self, session_date: Optional[date] = None) -> None:
        """Discard the previous day's state and rebuild every tradebook."""
        self.red_to_green.stop_all()
        self.scheduler.clear()
        self.level_alerts.reset()
        self._had_position.clear()
        self.context.rollover(session_date)

    def on_market_open(self) -> Dict[str, Optional[PriceOrdering]]:
        """Select tradebooks for every symbol from the opening prices."""
        return {symbol: self.refresh_selection(symbol) for symbol in self.context.symbols}

    def refresh_selection(self, symbol: str) -> Optional[PriceOrdering]:
        """Re-run the strategy selector for ``symbol``."""
        snapshot = self._snapshot(symbol, "selection")
        registry = self.context.registry(symbol)
        plan = self.context.plan(symbol)
        if snapshot is None or registry is None or plan is None:
            return None
        return update_tradebooks_status(registry, plan, snapshot)

    # ==================== Market events ====================

    def on_new_candle_close(self, symbol: str) -> None:
        """A one minute candle closed; the snapshot's last candle is the new one."""
        snapshot = self._snapshot(symbol, "candle close")
        registry = self.context.registry(symbol)
        plan = self.context.plan(symbol)
        if snapshot is None or registry is None or plan is None:
            return
        self.level_alerts.check_on_close(plan, snapshot)
        registry.refresh_states(snapshot)
        for tradebook in registry.enabled():
            tradebook.on_new_candle_close(snapshot)
        self._track_position(snapshot)

    def on_tick(self, symbol: str) -> int:
        """A time and sales print for ``symbol``.

        Returns:
            Number of scheduled rechecks run.
        """
        snapshot = self._snapshot(symbol, "tick")
        registry = self.context.registry(symbol)
        plan = self.context.plan(symbol)
        if snapshot is not None and registry is not None and plan is not None:
            self.level_alerts.check_before_close(plan, snapshot)
            for tradebook in registry.enabled():
                tradebook.on_tick(snapshot)
            registry.refresh_states(snapshot)
            self._track_position(snapshot)
        return self.scheduler.run_pending()

    def run_pending(self) -> int:
        """Run due rechecks without a market event."""
        return self.scheduler.run_pending()

    def _track_position(self, snapshot: MarketSnapshot) -> None:
        had_position = self._had_position.get(snapshot.symbol, False)
        has_position = snapshot.position.has_value
        if had_position and not has_position:
            log_for(snapshot.symbol, "engine").info("position closed, submissions released")
            self.context.guard.release(snapshot.symbol)
        self._had_position[snapshot.symbol] = has_position

    # ==================== Entries ====================

    def request_entry(
        self,
        symbol: str,
        tradebook_id: str,
        use_market_order: bool = False,
        parameters: Optional[EntryParameters] = None,
        dry_run: Optional[bool] = None,
    ) -> float:
        """Trader initiated entry through one tradebook.

        Returns:
            Allowed size fraction, 0 when rejected.
        """
        log = log_for(symbol, tradebook_id)
        snapshot = self._snapshot(symbol, "entry")
        tradebook = self._tradebook(symbol, tradebook_id)
        tradebook_context = self.context.tradebook_context(symbol)
        if snapshot is None or tradebook_context is None:
            return 0.0
        if tradebook is None:
            log.error(f"unknown tradebook {tradebook_id}, entry rejected")
            return 0.0
        if not tradebook.is_enabled():
            log.error(f"tradebook {tradebook_id} is disabled, entry rejected")
            return 0.0
        if dry_run is None:
            dry_run = self.context.settings.dry_run
        return tradebook.start_entry(snapshot, tradebook_context, use_market_order, dry_run, parameters)

    def cancel_entries(self, symbol: str, is_long: Optional[bool] = None) -> None:
        """Cancel pending entries and release their submission guard."""
        directions = (True, False) if is_long is None else (is_long,)
        for direction in directions:
            if self.context.gateway is not None:
                self.context.gateway.cancel_entry_orders(symbol, direction)
            else:
                self.context.guard.release(symbol, direction)

    def start_red_to_green(self, symbol: str, is_long: bool, plan: Optional[RedToGreenPlan] = None) -> bool:
        """Start the red to green algorithm, using the plan's section when none is given."""
        trading_plan = self.context.plan(symbol)
        if trading_plan is None:
            log_for(symbol, "engine").error("no trading plan, red to green not started")
            return False
        plan = plan or trading_plan.direction_plans(is_long).red_to_green_plan
        return self.red_to_green.start(symbol, is_long, plan)

    def stop_red_to_green(self, symbol: str) -> None:
        self.red_to_green.stop(symbol)

    # ==================== Exits ====================

    def request_limit_adjustment(self, symbol: str, key_index: int, new_price: float) -> CheckRulesResult:
        """Whether the profit target of slot ``key_index`` may move to ``new_price``."""
        snapshot = self._snapshot(symbol, "limit adjustment")
        if snapshot is None or not snapshot.position.has_value:
            return CheckRulesResult.disallow("no position")
        tradebook = self._position_tradebook(snapshot)
        if tradebook is None:
            return CheckRulesResult.allow("no tradebook rules for position")
        pair = _find_pair(snapshot, key_index)
        return tradebook.adjust_limit_order(
            snapshot, self.context.tradebook_context(symbol), key_index, pair, new_price
        )

    def request_stop_adjustment(self, symbol: str, key_index: int, new_price: float) -> CheckRulesResult:
        """Whether the stop of slot ``key_index`` may move to ``new_price``.

        A stop moved while it would still lock in a loss is rejected first,
        unless the settings allow tightening.
        """
        snapshot = self._snapshot(symbol, "stop adjustment")
        if snapshot is None or not snapshot.position.has_value:
            return CheckRulesResult.disallow("no position")
        position = snapshot.position
        pair = _find_pair(snapshot, key_index)
        quantity = pair.quantity if pair is not None and pair.quantity > 0 else abs(position.net_quantity)
        order = OrderModel(OrderType.STOP, is_buy=not position.is_long, quantity=quantity, stop_price=new_price)
        tighten = tighten_stop(order, new_price, snapshot, self.context.settings)
        if not tighten.allowed:
            log_for(symbol, position.tradebook_id).error(tighten.reason)
            return tighten

        tradebook = self._position_tradebook(snapshot)
        if tradebook is None:
            return CheckRulesResult.allow("no tradebook rules for position")
        return tradebook.adjust_stop_order(snapshot, self.context.tradebook_context(symbol), key_index, new_price)

    def request_market_out(self, symbol: str, key_index: int) -> CheckRulesResult:
        """Whether slot ``key_index`` may be closed at market."""
        snapshot = self._snapshot(symbol, "market out")
        if snapshot is None or not snapshot.position.has_value:
            return CheckRulesResult.disallow("no position")
        tradebook = self._position_tradebook(snapshot)
        if tradebook is None:
            return CheckRulesResult.allow("no tradebook rules for position")
        return tradebook.market_out(snapshot, self.context.tradebook_context(symbol), key_index)

    def request_flatten(self, symbol: str) -> CheckRulesResult:
        """Whether the whole position may be closed at market."""
        snapshot = self._snapshot(symbol, "flatten")
        plan = self.context.plan(symbol)
        if snapshot is None or plan is None or not snapshot.position.has_value:
            return CheckRulesResult.disallow("no position")
        return adjudicate_flatten(snapshot, self.context.settings, plan.atr, tag=snapshot.position.tradebook_id)

    def request_trail_stop(self, symbol: str, batch_index: int, timeframe: int) -> CheckRulesResult:
        """Whether slot ``batch_index`` may trail its stop on ``timeframe`` candles."""
        snapshot = self._snapshot(symbol, "trail stop")
        if snapshot is None or not snapshot.position.has_value:
            return CheckRulesResult.disallow("no position")
        return adjudicate_trail_stop(snapshot, batch_index, timeframe, tag=snapshot.position.tradebook_id)

    # ==================== Display ====================

    def live_stats(self, symbol: str) -> Dict[str, str]:
        """Status line of every enabled tradebook, keyed by id."""
        snapshot = self._snapshot(symbol, "live stats")
        registry = self.context.registry(symbol)
        tradebook_context = self.context.tradebook_context(symbol)
        if snapshot is None or registry is None or tradebook_context is None:
            return {}
        return {t.id: t.live_stats(snapshot, tradebook_context) for t in registry.enabled()}

    def summary(self) -> str:
        lines = [f"session {self.context.session_id}"]
        for symbol in self.context.symbols:
            lines.append(self.context.registry(symbol).summary())
        return "\n".join(lines)

    # ==================== Helpers ====================

    def _snapshot(self, symbol: str, action: str) -> Optional[MarketSnapshot]:
        snapshot = self.data.snapshot(symbol)
        if snapshot is None:
            log_for(symbol, "engine").error(f"no market data, {action} skipped")
        return snapshot

    def _tradebook(self, symbol: str, tradebook_id: str) -> Optional[Tradebook]:
        registry = self.context.registry(symbol)
        if registry is None:
            log_for(symbol, "engine").error("no trading plan for symbol")
            return None
        return registry.get(tradebook_id)

    def _position_tradebook(self, snapshot: MarketSnapshot) -> Optional[Tradebook]:
        tradebook_id = snapshot.position.tradebook_id
        tradebook = self._tradebook(snapshot.symbol, tradebook_id)
        if tradebook is None:
            log_for(snapshot.symbol, "engine").info(f"position tradebook {tradebook_id or 'none'} not found, allow")
        return tradebook


def _find_pair(snapshot: MarketSnapshot, key_index: int) -> Optional[ExitPair]:
    for pair in snapshot.position.exit_pairs:
        if pair.key_index == key_index:
            return pair
    return None
