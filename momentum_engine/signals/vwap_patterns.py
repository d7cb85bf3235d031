"""VWAP relationships and premarket context."""

from typing import Sequence

from momentum_engine.market.candles import Candle
from momentum_engine.market.snapshot import MarketSnapshot

LARGE_CAP_MILLIONS = 100000


def is_price_worse_than_vwap(snapshot: MarketSnapshot, is_long: bool, price: float) -> bool:
    """Price is on the losing side of the current VWAP."""
    vwap = snapshot.current_vwap
    return price < vwap if is_long else price > vwap


def is_price_worse_than_key_level(is_long: bool, level: float, price: float) -> bool:
    return price < level if is_long else price > level


def directional_distance_to_vwap(is_long: bool, price: float, vwap: float) -> float:
    """Distance from VWAP on the momentum side, 0 when on or across it.

    Examples:
        >>> directional_distance_to_vwap(True, 10.5, 10.0)
        0.5
        >>> directional_distance_to_vwap(True, 9.5, 10.0)
        0
    """
    if (is_long and price <= vwap) or (not is_long and price >= vwap):
        return 0
    return abs(price - vwap)


def minimum_distance_to_vwap(is_long: bool, candle: Candle, vwap: float) -> float:
    price = candle.low if is_long else candle.high
    return directional_distance_to_vwap(is_long, price, vwap)


def has_closed_outside_vwap(snapshot: MarketSnapshot, is_long: bool) -> bool:
    """Any closed candle closed strictly beyond its VWAP."""
    for c, v in zip(snapshot.closed_candles, snapshot.closed_vwaps):
        if (is_long and c.close > v) or (not is_long and c.close < v):
            return True
    return False


def last_closed_against_vwap(snapshot: MarketSnapshot, is_long: bool) -> bool:
    """The most recently closed candle closed against its VWAP."""
    if len(snapshot.closed_candles) == 0:
        return False
    c = snapshot.closed_candles[-1]
    v = snapshot.closed_vwaps[-1]
    return c.close < v if is_long else c.close > v


def has_two_consecutive_closes_against(closed: Sequence[Candle], is_long: bool,
                                       levels: Sequence[float]) -> bool:
    """Two consecutive closed candles closed against their paired level.

    ``levels`` is aligned with ``closed`` and may be a VWAP series or a
    constant level repeated.
    """
    streak = 0
    for c, level in zip(closed, levels):
        if (is_long and c.close < level) or (not is_long and c.close > level):
            streak += 1
            if streak >= 2:
                return True
        else:
            streak = 0
    return False


def has_premarket_breakout(snapshot: MarketSnapshot, is_long: bool) -> bool:
    """Regular session traded beyond the premarket high (long) or low (short)."""
    if is_long:
        return snapshot.high_of_day > snapshot.premarket_high
    return snapshot.low_of_day < snapshot.premarket_low


def open_extension_from_vwap_in_atr(snapshot: MarketSnapshot, is_long: bool,
                                    atr_average: float) -> float:
    """How far the open sat against VWAP, in ATR units.

    Zero when the open was already on the momentum side of VWAP.
    """
    open_price = snapshot.open_price or snapshot.current_price
    vwap = snapshot.last_vwap_before_open
    if (is_long and open_price > vwap) or (not is_long and open_price < vwap):
        return 0
    if atr_average <= 0:
        return 0
    return round(abs(open_price - vwap) / atr_average, 2)


def atr_threshold(market_cap_in_millions: float) -> float:
    """VWAP extension needed for an open flush, in ATR units."""
    return 0.5 if market_cap_in_millions >= LARGE_CAP_MILLIONS else 1.0


def vwap_bounce_fail_status(snapshot: MarketSnapshot, is_long: bool) -> str:
    """Live status for a VWAP bounce (short) or pushdown (long) failure.

    "bouncing off vwap" when the last closed candle reached VWAP and closed
    back on the trade side of it, otherwise which side of VWAP price is on.
    """
    vwap = snapshot.current_vwap
    if len(snapshot.closed_candles) > 0:
        c = snapshot.closed_candles[-1]
        v = snapshot.closed_vwaps[-1]
        if not is_long and c.high >= v and c.close < v:
            return "bouncing off vwap"
        if is_long and c.low <= v and c.close > v:
            return "pushing down to vwap"
    return "above vwap" if snapshot.current_price > vwap else "below vwap"
