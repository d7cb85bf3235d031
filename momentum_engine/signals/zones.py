"""Key-level and VWAP zone scoring.

The open zone score places the open relative to the key level and the VWAP
printed just before the open. It drives both the strategy selector and the
open-zone momentum checks that decide whether an entry through the key level
is allowed yet.
"""

from dataclasses import dataclass
from typing import Optional

from momentum_engine.config.schema import LevelArea
from momentum_engine.market.snapshot import MarketSnapshot
from momentum_engine.signals.bars import has_higher_high, has_lower_low
from momentum_engine.signals.retest import has_closed_beyond_price
from momentum_engine.signals.vwap_patterns import has_closed_outside_vwap

RETEST_BUFFER_ATR_RATIO = 0.03
LARGE_CAP_MILLIONS = 100000


def is_price_outside_level(is_long: bool, price: float, level: float, strict: bool) -> bool:
    """Price at or beyond ``level`` in the trade direction.

    Examples:
        >>> is_price_outside_level(True, 10.0, 10.0, False)
        True
        >>> is_price_outside_level(True, 10.0, 10.0, True)
        False
    """
    if strict:
        return price > level if is_long else price < level
    return price >= level if is_long else price <= level


def is_price_outside_key_level(is_long: bool, key_level: LevelArea, price: float) -> bool:
    """At or above the band high (long), at or below the band low (short)."""
    level = key_level.high if is_long else key_level.low
    return is_price_outside_level(is_long, price, level, False)


def open_zone_score(open_price: Optional[float], last_vwap_before_open: float,
                    key_level: LevelArea) -> int:
    """Score the open against the key level and pre-open VWAP.

    Returns:
        +1 when the open is at or above the key-level high and that high is
        above VWAP, or the open is above both outright. -1 for the mirror.
        0 otherwise, including before the open.

    Examples:
        >>> open_zone_score(101.0, 99.0, LevelArea(high=100, low=100))
        1
        >>> open_zone_score(99.5, 99.0, LevelArea(high=100, low=100))
        0
    """
    if not open_price:
        return 0
    vwap = last_vwap_before_open
    if (open_price >= key_level.high and key_level.high > vwap) or open_price > max(
        key_level.high, vwap
    ):
        return 1
    if (open_price <= key_level.low and key_level.low < vwap) or open_price < min(
        key_level.low, vwap
    ):
        return -1
    return 0


def is_entry_outside_vwap_and_key_level(snapshot: MarketSnapshot, is_long: bool,
                                        key_level: LevelArea, entry_price: float) -> bool:
    if not is_price_outside_key_level(is_long, key_level, entry_price):
        return False
    return is_price_outside_level(is_long, entry_price, snapshot.current_vwap, False)


def is_more_than_minimum_target(is_long: bool, key_level: LevelArea,
                                entry_price: float, stop_price: float) -> bool:
    """Key level is more than 0.5R beyond the entry in the trade direction."""
    risk = abs(entry_price - stop_price)
    if is_long:
        return key_level.low > entry_price + 0.5 * risk
    return key_level.high < entry_price - 0.5 * risk


def has_closed_or_open_outside_key_level(snapshot: MarketSnapshot, is_long: bool,
                                         key_level: LevelArea) -> bool:
    """Any closed candle opened or closed strictly beyond the key level."""
    for c in snapshot.closed_candles:
        if is_long and (c.close > key_level.high or c.open > key_level.high):
            return True
        if not is_long and (c.close < key_level.low or c.open < key_level.low):
            return True
    return False


def has_closed_outside_key_level(snapshot: MarketSnapshot, is_long: bool,
                                 key_level: LevelArea) -> bool:
    threshold = key_level.high if is_long else key_level.low
    return has_closed_beyond_price(snapshot.candles, is_long, threshold)


def has_closed_outside_both_key_level_and_vwap(snapshot: MarketSnapshot, is_long: bool,
                                               level: float) -> bool:
    for c, v in zip(snapshot.closed_candles, snapshot.closed_vwaps):
        if (is_long and c.close > level and c.close > v) or (
            not is_long and c.close < level and c.close < v
        ):
            return True
    return False


# ==================== Open-zone momentum checks ====================


def _open_in_momentum_zone(scenario: str, is_long: bool, entry_price: float,
                           key_level: LevelArea) -> str:
    if (is_long and entry_price < key_level.high) or (not is_long and entry_price > key_level.low):
        return f"{scenario}, but entry is not in momentum zone"
    return ""


def _open_in_opposite_momentum_zone(scenario: str, snapshot: MarketSnapshot, is_long: bool,
                                    key_level: LevelArea, entry_is_momentum: bool) -> str:
    if not has_closed_or_open_outside_key_level(snapshot, is_long, key_level):
        return f"{scenario}, has not closed outside key level yet"
    if not entry_is_momentum:
        return f"{scenario}, but entry is not in momentum zone"
    vwap = snapshot.current_vwap
    if (is_long and vwap > key_level.high) or (not is_long and vwap < key_level.low):
        if has_closed_outside_vwap(snapshot, is_long):
            return ""
        return (
            f"{scenario}, current vwap is not supporting key level and has not "
            f"1 candle closed outside vwap before"
        )
    return ""


def _open_in_vwap_momentum_inside_key_level(scenario: str, snapshot: MarketSnapshot,
                                            is_long: bool, key_level: LevelArea,
                                            entry_is_momentum: bool) -> str:
    if not has_closed_or_open_outside_key_level(snapshot, is_long, key_level):
        return f"{scenario}, not closed outside key level yet"
    if not entry_is_momentum:
        return f"{scenario}, entry not in momentum zone"
    return ""


def _open_outside_key_level_against_vwap(scenario: str, snapshot: MarketSnapshot,
                                         is_long: bool, entry_price: float,
                                         key_level: LevelArea, atr_average: float) -> str:
    level = key_level.high if is_long else key_level.low
    if (is_long and entry_price < level) or (not is_long and entry_price > level):
        return f"{scenario}, entry price is still inside key level"

    buffer = RETEST_BUFFER_ATR_RATIO * atr_average
    level_with_buffer = level + buffer if is_long else level - buffer
    for c in snapshot.candles:
        if (is_long and c.low < level_with_buffer) or (not is_long and c.high > level_with_buffer):
            return ""

    if (is_long and has_lower_low(snapshot.candles)) or (
        not is_long and has_higher_high(snapshot.candles)
    ):
        return ""
    return f"{scenario}, not retest key level yet. and not both false breakout"


def single_level_momentum_disallow_reason(
    snapshot: MarketSnapshot,
    is_long: bool,
    entry_price: float,
    stop_price: float,
    key_level: LevelArea,
    atr_average: float,
) -> str:
    """Reason an entry through a single key level is not allowed yet.

    The open is classified into one of four scenarios by its zone score and
    its side of VWAP, and each scenario has its own confirmation requirement.
    An open exactly on the key level fits no scenario and is disallowed.

    Args:
        snapshot: Market state.
        is_long: Trade direction.
        entry_price: Proposed entry.
        stop_price: Proposed stop.
        key_level: Momentum key level.
        atr_average: ATR used for the retest buffer.

    Returns:
        Empty string when allowed, otherwise the disallow reason.
    """
    open_price = snapshot.open_price
    if open_price is None:
        return "no open price yet"
    above_vwap = open_price > snapshot.last_vwap_before_open
    entry_is_momentum = is_entry_outside_vwap_and_key_level(snapshot, is_long, key_level, entry_price)
    score = open_zone_score(open_price, snapshot.last_vwap_before_open, key_level)

    if (is_long and score > 0) or (not is_long and score < 0):
        return _open_in_momentum_zone("open in momentum zone", is_long, entry_price, key_level)
    if (is_long and score < 0) or (not is_long and score > 0):
        return _open_in_opposite_momentum_zone(
            "open in opposite momentum zone", snapshot, is_long, key_level, entry_is_momentum
        )
    if (is_long and open_price < key_level.high and above_vwap) or (
        not is_long and open_price > key_level.low and not above_vwap
    ):
        return _open_in_vwap_momentum_inside_key_level(
            "open in vwap momentum zone but inside key level",
            snapshot, is_long, key_level, entry_is_momentum,
        )
    if (is_long and open_price > key_level.high and not above_vwap) or (
        not is_long and open_price < key_level.low and above_vwap
    ):
        return _open_outside_key_level_against_vwap(
            "open outside key level but against vwap",
            snapshot, is_long, entry_price, key_level, atr_average,
        )
    return f"disallowed due to unexpected case {open_price}, {key_level.high}-{key_level.low}"


def dual_level_momentum_disallow_reason(snapshot: MarketSnapshot, is_long: bool,
                                        entry_price: float, levels: LevelArea) -> str:
    """Reason an entry between two momentum levels is not allowed yet."""
    if (is_long and entry_price < levels.high) or (not is_long and entry_price > levels.low):
        return "entry is inside level"
    open_price = snapshot.open_price
    if open_price is not None and (
        (is_long and open_price > levels.high) or (not is_long and open_price < levels.low)
    ):
        return ""
    if len(snapshot.candles) <= 1:
        return "no closed candles"
    threshold = levels.high if is_long else levels.low
    if not has_closed_beyond_price(snapshot.candles, is_long, threshold):
        return "no candles closed outside"
    return ""


# ==================== Tradable area ====================


@dataclass(frozen=True)
class TradableArea:
    """Band between the key level and one ATR (half for mega caps) beyond it."""

    high: float
    low: float
    distance_to_vwap: float

    def contains(self, price: float) -> bool:
        return self.low <= price <= self.high


def tradable_area(key_level: LevelArea, is_long: bool, atr_average: float,
                  market_cap_in_millions: float) -> TradableArea:
    """Tradable band for a direction.

    Examples:
        >>> area = tradable_area(LevelArea(high=100, low=99), True, 4.0, 0)
        >>> (area.low, area.high)
        (100.0, 104.0)
    """
    multiplier = 0.5 if market_cap_in_millions > LARGE_CAP_MILLIONS else 1.0
    distance_to_vwap = round(atr_average / 4, 2)
    if is_long:
        level = key_level.high
        return TradableArea(round(level + atr_average * multiplier, 2), level, distance_to_vwap)
    level = key_level.low
    return TradableArea(level, round(level - atr_average * multiplier, 2), distance_to_vwap)


def has_price_been_in_tradable_area(snapshot: MarketSnapshot, area: TradableArea) -> bool:
    """Day range overlapped the tradable band."""
    return not (snapshot.high_of_day < area.low or snapshot.low_of_day > area.high)
