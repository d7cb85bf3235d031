"""Automated first-minute reversal entry ("red to green").

The algorithm waits for the first minute to close, then rechecks every
``recheck_interval_seconds`` until the symbol has printed a reversal bar,
shows tradable liquidity and has a daily range worth trading. It submits
one entry and stops, or gives up once its recheck window has passed.

Each recheck is a fresh computation from the latest snapshot; nothing is
carried between rechecks except the algorithm's own bookkeeping.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from momentum_engine.config.schema import RedToGreenPlan
from momentum_engine.market.protocols import MarketDataProvider
from momentum_engine.rules.entry_rules import is_daily_range_too_small, liquidity_scale
from momentum_engine.session.context import SessionContext
from momentum_engine.session.scheduler import CancellationToken, RecheckScheduler
from momentum_engine.signals.bars import has_reversal_bar_since_open
from momentum_engine.strategy.admission import EntryRequest, check_red_to_green_plan_entry_rules
from momentum_engine.utils import ids
from momentum_engine.utils.logging import log_for

RUN_IMMEDIATELY_AFTER_SECONDS = 55
FIRST_LOOP_AT_SECONDS = 61
RECHECK_WINDOW_SECONDS = 60


@dataclass
class AlgoState:
    """Bookkeeping of one running algorithm."""

    is_long: bool
    plan: RedToGreenPlan
    token: CancellationToken
    first_loop_seconds: Optional[int] = None
    initial_size_multiplier: float = 0.0


class ReversalEntryAlgo:
    """Red to green entry, at most one per symbol.

    Args:
        context: Session context (plans, settings, prices, gateway).
        scheduler: Recheck scheduler driving the loop.
        data: Snapshot source read on every recheck.
    """

    def __init__(self, context: SessionContext, scheduler: RecheckScheduler, data: MarketDataProvider):
        self.context = context
        self.scheduler = scheduler
        self.data = data
        self.states: Dict[str, AlgoState] = {}

    def _log(self, symbol: str, is_long: bool):
        return log_for(symbol, ids.generate_log_tag(symbol, is_long, "red2green"))

    def is_running(self, symbol: str) -> bool:
        return symbol in self.states

    def start(self, symbol: str, is_long: bool, plan: Optional[RedToGreenPlan] = None) -> bool:
        """Start the algorithm for ``symbol``.

        Runs the entry at once when the first minute is nearly over,
        otherwise schedules the first recheck just after it closes.

        Returns:
            True when an entry was run or a recheck scheduled.
        """
        log = self._log(symbol, is_long)
        plan = plan or RedToGreenPlan()
        if symbol in self.states:
            log.error("already having a red to green, skip")
            return False

        snapshot = self.data.snapshot(symbol)
        if snapshot is None:
            log.error("no market data, red to green not started")
            return False

        seconds = snapshot.seconds_since_open
        if seconds >= RUN_IMMEDIATELY_AFTER_SECONDS:
            log.info("run red to green immediately")
            self.run_plan(symbol, is_long, plan)
            return True

        wait_seconds = FIRST_LOOP_AT_SECONDS - seconds
        log.info(f"schedule red to green in {wait_seconds} seconds")
        token = CancellationToken(f"{symbol} red to green")
        self.states[symbol] = AlgoState(is_long=is_long, plan=plan, token=token)
        self.scheduler.schedule(wait_seconds, lambda: self.loop(symbol, True), token=token, name=token.name)
        return True

    def stop(self, symbol: str) -> None:
        """Cancel the algorithm; a pending recheck becomes a no-op."""
        state = self.states.pop(symbol, None)
        if state is not None:
            state.token.cancel("stopped")
            self._log(symbol, state.is_long).info("red to green stopped")

    def stop_all(self) -> None:
        for symbol in list(self.states):
            self.stop(symbol)

    def _schedule_next(self, symbol: str, state: AlgoState) -> None:
        self.scheduler.schedule(
            self.context.settings.recheck_interval_seconds,
            lambda: self.loop(symbol, False),
            token=state.token,
            name=state.token.name,
        )

    def loop(self, symbol: str, is_first_loop: bool) -> None:
        """One recheck of the entry conditions."""
        state = self.states.get(symbol)
        if state is None or state.token.cancelled:
            log_for(symbol, "red2green").info("algo canceled, exiting")
            return
        log = self._log(symbol, state.is_long)

        snapshot = self.data.snapshot(symbol)
        trading_plan = self.context.plan(symbol)
        if snapshot is None or trading_plan is None:
            log.error("no market data or trading plan, exiting algo")
            self.states.pop(symbol, None)
            return

        seconds = snapshot.seconds_since_open
        if state.first_loop_seconds is None:
            state.first_loop_seconds = seconds
        if seconds > state.first_loop_seconds + RECHECK_WINDOW_SECONDS:
            log.info(f"exiting after {RECHECK_WINDOW_SECONDS} seconds of rechecks")
            self.states.pop(symbol, None)
            return

        plan = state.plan
        has_reversal = has_reversal_bar_since_open(
            snapshot.candles, state.is_long, plan.strict_mode, plan.consider_current_candle_after_one_minute
        )
        scale = liquidity_scale(snapshot, trading_plan.market_cap_in_millions)
        enough_range = not is_daily_range_too_small(snapshot, trading_plan.atr.average)

        if has_reversal and scale > 0 and enough_range:
            state.initial_size_multiplier = self.run_plan(symbol, state.is_long, plan)
            if state.initial_size_multiplier <= 0:
                log.error("size is 0, exiting algo")
            self.states.pop(symbol, None)
            return

        interval = self.context.settings.recheck_interval_seconds
        if not has_reversal:
            log.error(f"not reversal, recheck after {interval} seconds")
        if not enough_range:
            log.error(f"range too small, recheck after {interval} seconds")
        if scale == 0:
            log.error(f"not enough liquidity, recheck after {interval} seconds")
        self._schedule_next(symbol, state)

    def run_plan(self, symbol: str, is_long: bool, plan: RedToGreenPlan) -> float:
        """Price, admit and submit one red to green entry.

        Returns:
            Allowed size fraction, 0 when rejected.
        """
        log = self._log(symbol, is_long)
        snapshot = self.data.snapshot(symbol)
        tradebook_context = self.context.tradebook_context(symbol)
        if snapshot is None or tradebook_context is None:
            log.error("no market data or trading plan, red to green not run")
            return 0.0

        prices = tradebook_context.prices
        entry_price = prices.breakout_entry_price(snapshot, is_long, False)
        stop_price = prices.stop_loss_price(snapshot, is_long)
        tradebook_id = ids.RED_TO_GREEN_LONG if is_long else ids.RED_TO_GREEN_SHORT
        request = EntryRequest(
            snapshot=snapshot,
            trading_plan=tradebook_context.trading_plan,
            settings=tradebook_context.settings,
            is_long=is_long,
            entry_price=entry_price,
            stop_price=stop_price,
            base_plan=plan,
            use_market_order=False,
            should_check_entry_distance=False,
            tag=tradebook_id,
        )
        size = check_red_to_green_plan_entry_rules(request, plan)
        if size == 0:
            return 0.0

        if tradebook_context.settings.dry_run:
            log.info(f"dry run, red to green size {size} not submitted")
            return size
        if tradebook_context.gateway is None:
            log.error("no order gateway, red to green not submitted")
            return size
        risk_level_price = prices.risk_level_price(snapshot, stop_price)
        tradebook_context.gateway.submit_entry(
            symbol,
            is_long,
            entry_price,
            stop_price,
            risk_level_price,
            size,
            plan.model_copy(deep=True),
            tradebook_id,
            False,
        )
        log.info(f"red to green submitted: entry {entry_price}, stop {stop_price}, size {size}")
        return size
