"""Retest, breakout and pullback detection.

Every function re-scans the candle history from its anchor (the open or the
last entry) on each call. Nothing is carried between calls.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from momentum_engine.config.schema import LevelArea
from momentum_engine.market.candles import Candle
from momentum_engine.market.snapshot import MarketSnapshot


class PullbackStatus(str, Enum):
    """Progress of the first pullback after entry."""

    NOT_VALID = "not valid"
    NOT_STARTED = "not started"
    IN_PROGRESS = "in progress"
    RECOVERED = "recovered"


@dataclass(frozen=True)
class PullbackResult:
    """First pullback status and its pivot (0 until a pullback starts)."""

    status: PullbackStatus
    pivot: float = 0.0


@dataclass(frozen=True)
class BreakoutAnalysis:
    """First candle to touch a level and first candle to close beyond it."""

    first_testing_candle: Optional[Candle] = None
    first_testing_candle_is_closed: bool = False
    first_candle_closed_beyond_level: Optional[Candle] = None
    first_candle_closed_beyond_level_index: int = -1


def first_candle_closed_beyond_price(candles: Sequence[Candle], is_long: bool,
                                     price: float) -> Optional[Candle]:
    """First closed candle (the last candle is forming) closing at or beyond ``price``."""
    for c in candles[:-1]:
        if (is_long and c.close >= price) or (not is_long and c.close <= price):
            return c
    return None


def has_closed_beyond_price(candles: Sequence[Candle], is_long: bool, price: float) -> bool:
    return first_candle_closed_beyond_price(candles, is_long, price) is not None


def first_breakout_candle(closed_candles: Sequence[Candle], is_long: bool,
                          level: float) -> Optional[Candle]:
    """First closed candle closing at or beyond ``level``."""
    for c in closed_candles:
        if (is_long and c.close >= level) or (not is_long and c.close <= level):
            return c
    return None


def has_lost_key_level(closed_candles: Sequence[Candle], is_long: bool, level: float) -> bool:
    """Key level lost after a breakout.

    After the first close at or beyond ``level``, any later close back inside
    the level, or any later candle undercutting the breakout candle's extreme,
    counts as lost.

    Examples:
        >>> bars = [Candle(9, 10.5, 9, 10.2), Candle(10.2, 10.4, 9.8, 9.9)]
        >>> has_lost_key_level(bars, True, 10.0)
        True
    """
    breakout = None
    for c in closed_candles:
        if breakout is None:
            if (is_long and c.close >= level) or (not is_long and c.close <= level):
                breakout = c
            continue
        if is_long and (c.close < level or c.low < breakout.low):
            return True
        if not is_long and (c.close > level or c.high > breakout.high):
            return True
    return False


def has_level_retest(snapshot: MarketSnapshot, is_long: bool, level: float) -> bool:
    """Day range has reached back to ``level``."""
    if is_long:
        return snapshot.low_of_day <= level
    return snapshot.high_of_day >= level


def has_retest_level(snapshot: MarketSnapshot, is_long: bool, key_level: LevelArea) -> bool:
    """Price came back to the key level after opening beyond (or inside) it."""
    open_price = snapshot.open_price
    if not open_price:
        return False
    if is_long:
        if open_price > key_level.high:
            return snapshot.low_of_day < key_level.high
        return open_price > key_level.low and snapshot.low_of_day < key_level.low
    if open_price < key_level.low:
        return snapshot.high_of_day > key_level.low
    return open_price < key_level.high and snapshot.high_of_day > key_level.high


def analyze_breakout_patterns(candles: Sequence[Candle], is_long: bool,
                              level: float) -> BreakoutAnalysis:
    """Locate the first test of ``level`` and the first close beyond it."""
    testing = None
    testing_closed = False
    closed_beyond = None
    closed_beyond_index = -1
    last = len(candles) - 1
    for i, c in enumerate(candles):
        is_closed = i < last
        if testing is None and ((is_long and c.high >= level) or (not is_long and c.low <= level)):
            testing = c
            testing_closed = is_closed
        if closed_beyond is None and is_closed:
            if (is_long and c.close >= level) or (not is_long and c.close <= level):
                closed_beyond = c
                closed_beyond_index = i
    return BreakoutAnalysis(testing, testing_closed, closed_beyond, closed_beyond_index)


def is_confirmed_false_breakout(closed_candles: Sequence[Candle], is_long: bool,
                                level: float) -> bool:
    """A close beyond ``level`` followed by at least two closes back inside."""
    first = -1
    for i, c in enumerate(closed_candles):
        if (is_long and c.close > level) or (not is_long and c.close < level):
            first = i
            break
    if first == -1 or first + 2 > len(closed_candles) - 1:
        return False
    for c in closed_candles[first + 1:-1]:
        if (is_long and c.close > level) or (not is_long and c.close < level):
            return False
    return True


def _candles_since_last_entry(snapshot: MarketSnapshot) -> Optional[Sequence[Candle]]:
    position = snapshot.position
    if not position.has_value or position.last_entry_candle_index is None:
        return None
    return snapshot.candles_since(position.last_entry_candle_index)


def first_pullback_status(snapshot: MarketSnapshot) -> PullbackResult:
    """Status of the first pullback since the last entry.

    A pullback starts when a candle undercuts the previous candle's low (long)
    and that low becomes the pivot. It has recovered once price makes a new
    high beyond the running high since entry; until then the pivot tracks the
    lowest low.
    """
    candles = _candles_since_last_entry(snapshot)
    if not candles:
        return PullbackResult(PullbackStatus.NOT_VALID)
    is_long = snapshot.position.is_long

    status = PullbackStatus.NOT_STARTED
    pivot = 0.0
    extreme = candles[0].high if is_long else candles[0].low
    i = 0
    while i + 1 < len(candles):
        i += 1
        current, previous = candles[i], candles[i - 1]
        if is_long:
            extreme = max(extreme, current.high)
            if current.low < previous.low:
                status, pivot = PullbackStatus.IN_PROGRESS, current.low
                break
        else:
            extreme = min(extreme, current.low)
            if current.high > previous.high:
                status, pivot = PullbackStatus.IN_PROGRESS, current.high
                break

    while status == PullbackStatus.IN_PROGRESS and i + 1 < len(candles):
        i += 1
        current = candles[i]
        if is_long:
            pivot = min(pivot, current.low)
            if current.high > extreme:
                status = PullbackStatus.RECOVERED
        else:
            pivot = max(pivot, current.high)
            if current.low < extreme:
                status = PullbackStatus.RECOVERED
    return PullbackResult(status, pivot)


def count_wave_since_entry(snapshot: MarketSnapshot) -> int:
    """Elliott-style wave count (1-5) since the last entry, 0 without a position."""
    candles = _candles_since_last_entry(snapshot)
    if candles is None:
        return 0
    is_long = snapshot.position.is_long

    def against(current: Candle, previous: Candle) -> bool:
        return current.low < previous.low if is_long else current.high > previous.high

    def with_trend(current: Candle, previous: Candle) -> bool:
        return current.high > previous.high if is_long else current.low < previous.low

    wave = 1
    i = 0
    for next_wave, test in ((2, against), (3, with_trend), (4, against), (5, with_trend)):
        found = False
        while i + 1 < len(candles):
            i += 1
            if test(candles[i], candles[i - 1]):
                wave = next_wave
                found = True
                break
        if not found:
            break
    return wave
