"""Key level cross callouts.

Price that opens on one side of a momentum level and trades through it is
worth a callout the first time it happens, and again (once) when a candle
closes after the cross to say whether the break held.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from momentum_engine.config.schema import TradingPlan
from momentum_engine.market.protocols import AlertSink, LoggingAlertSink
from momentum_engine.market.snapshot import MarketSnapshot


@dataclass
class LevelCrossState:
    crossed_before_close: bool = False
    crossed_on_close: bool = False


def momentum_levels(plan: TradingPlan) -> List[Tuple[str, float, float]]:
    """Named (high, low) levels to watch: the single key level or both dual levels.

    Examples:
        >>> from momentum_engine.config.schema import AverageTrueRange, LevelArea, Analysis
        >>> plan = TradingPlan(symbol="TSLA", atr=AverageTrueRange(average=5.0),
        ...                    analysis=Analysis(single_momentum_key_levels=[LevelArea(high=101, low=100)]))
        >>> momentum_levels(plan)
        [('key level', 101.0, 100.0)]
    """
    single = plan.single_momentum_level()
    if single is not None:
        return [("key level", single.high, single.low)]
    dual = plan.dual_momentum_levels()
    if dual is not None:
        return [("level high", dual.high, dual.high), ("level low", dual.low, dual.low)]
    return []


def _has_crossed(open_price: float, high: float, low: float, snapshot: MarketSnapshot) -> bool:
    is_open_above = open_price > high
    is_open_below = open_price < low
    return (is_open_above and snapshot.low_of_day < low) or (is_open_below and snapshot.high_of_day > high)


class LevelCrossTracker:
    """Once-per-level cross callouts for every symbol of a session."""

    def __init__(self, alerts: Optional[AlertSink] = None):
        self.alerts = alerts or LoggingAlertSink()
        self.states: Dict[Tuple[str, str], LevelCrossState] = {}

    def _state(self, symbol: str, name: str) -> LevelCrossState:
        return self.states.setdefault((symbol, name), LevelCrossState())

    def check_before_close(self, plan: TradingPlan, snapshot: MarketSnapshot) -> List[str]:
        """Announce intra-candle crosses. Returns the callouts made."""
        open_price = snapshot.open_price
        if open_price is None:
            return []
        callouts = []
        for name, high, low in momentum_levels(plan):
            state = self._state(snapshot.symbol, name)
            if state.crossed_before_close:
                continue
            if _has_crossed(open_price, high, low, snapshot):
                state.crossed_before_close = True
                callouts.append(f"{snapshot.symbol} crossing {name}")
        for message in callouts:
            self.alerts.announce(snapshot.symbol, message)
        return callouts

    def check_on_close(self, plan: TradingPlan, snapshot: MarketSnapshot) -> List[str]:
        """Announce whether the candle that just closed held the cross."""
        open_price = snapshot.open_price
        closed = snapshot.closed_candles
        if open_price is None or not closed:
            return []
        last_closed = closed[-1]
        callouts = []
        for name, high, low in momentum_levels(plan):
            state = self._state(snapshot.symbol, name)
            if state.crossed_on_close or not _has_crossed(open_price, high, low, snapshot):
                continue
            state.crossed_on_close = True
            started_long = open_price > high
            closed_beyond = (started_long and last_closed.close < low) or (
                not started_long and last_closed.close > high
            )
            if closed_beyond:
                direction = "break down" if started_long else "breakout"
                callouts.append(
                    f"{snapshot.symbol} closed outside {name}, look for retest and next {direction}"
                )
            else:
                direction = "breakout" if started_long else "break down"
                callouts.append(f"{snapshot.symbol} closed inside {name}, potential false {direction}")
        for message in callouts:
            self.alerts.announce(snapshot.symbol, message)
        return callouts

    def reset(self, symbol: Optional[str] = None) -> None:
        if symbol is None:
            self.states.clear()
            return
        for key in [k for k in self.states if k[0] == symbol]:
            del self.states[key]
