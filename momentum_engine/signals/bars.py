"""Single-bar and bar-sequence classification.

Pure functions over candles. Every ratio guards ``range == 0`` so flat
pre-open prints never divide by zero.
"""

from typing import Optional, Sequence

from momentum_engine.market.candles import Candle

STRICT_BODY_AND_WICK_RATIO = 0.45
STRICT_WICK_RATIO = 0.32
WICK_RATIO = 0.33
OPEN_BAR_BODY_RATIO = 0.34
PIN_BAR_BODY_RATIO = 0.35


def is_red_bar(bar: Candle) -> bool:
    return bar.close < bar.open


def is_green_bar(bar: Candle) -> bool:
    return bar.close > bar.open


def body_ratio(bar: Candle) -> float:
    """Body as a fraction of range, 0 for a flat bar."""
    if bar.range == 0:
        return 0.0
    return bar.body / bar.range


def has_top_wick(bar: Candle) -> bool:
    if bar.range == 0:
        return False
    return bar.top_wick / bar.range > WICK_RATIO


def has_bottom_wick(bar: Candle) -> bool:
    if bar.range == 0:
        return False
    return bar.bottom_wick / bar.range > WICK_RATIO


def is_reversal_bar_strict(bar: Candle, is_long: bool) -> bool:
    """Strict rejection test.

    Long: red bar, or red body plus bottom wick above 45% of range, or bottom
    wick alone above 32% of range. Short mirrors with green body and top wick.
    """
    if bar.range == 0:
        return False
    if is_long:
        red_body = bar.open - bar.close if is_red_bar(bar) else 0.0
        return (
            is_red_bar(bar)
            or (red_body + bar.bottom_wick) / bar.range > STRICT_BODY_AND_WICK_RATIO
            or bar.bottom_wick / bar.range > STRICT_WICK_RATIO
        )
    green_body = bar.close - bar.open if is_green_bar(bar) else 0.0
    return (
        is_green_bar(bar)
        or (green_body + bar.top_wick) / bar.range > STRICT_BODY_AND_WICK_RATIO
        or bar.top_wick / bar.range > STRICT_WICK_RATIO
    )


def is_reversal_bar(bar: Candle, is_long: bool, strict: bool) -> bool:
    """Whether ``bar`` shows rejection against the prevailing direction.

    Non-strict mode also accepts an opposing-colour bar or either wick above
    33% of range.

    Args:
        bar: Candle to classify.
        is_long: Direction of the intended trade.
        strict: Only apply the strict thresholds.

    Returns:
        True if the bar is a reversal bar. Always False when range is 0.

    Examples:
        >>> is_reversal_bar(Candle(10, 10.5, 9, 9.1), True, True)
        True
        >>> is_reversal_bar(Candle(10, 10, 10, 10), True, False)
        False
    """
    if bar.range == 0:
        return False
    if is_reversal_bar_strict(bar, is_long):
        return True
    if strict:
        return False
    if is_long:
        return is_red_bar(bar) or has_bottom_wick(bar) or has_top_wick(bar)
    return is_green_bar(bar) or has_top_wick(bar) or has_bottom_wick(bar)


def is_red_open_bar(bar: Candle) -> bool:
    """Red with a body of at least a third of the range."""
    return is_red_bar(bar) and body_ratio(bar) >= OPEN_BAR_BODY_RATIO


def is_green_open_bar(bar: Candle) -> bool:
    return is_green_bar(bar) and body_ratio(bar) >= OPEN_BAR_BODY_RATIO


def first_bar_is_pin_bar(candles: Sequence[Candle]) -> bool:
    """Body of the first candle since open is at most 35% of its range."""
    if len(candles) == 0 or candles[0].range == 0:
        return False
    return body_ratio(candles[0]) <= PIN_BAR_BODY_RATIO


def has_reversal_bar_since_open(
    candles: Sequence[Candle],
    is_long: bool,
    strict: bool,
    consider_current_candle_after_one_minute: bool,
) -> bool:
    """Whether any candle since open rejected the trade direction.

    During the first minute the forming candle is classified with
    :func:`is_reversal_bar`. Afterwards any opposing-colour closed candle
    counts, and the forming candle counts too when requested.
    """
    if len(candles) == 0:
        return False
    if len(candles) == 1:
        return is_reversal_bar(candles[0], is_long, strict)

    end = len(candles) if consider_current_candle_after_one_minute else len(candles) - 1
    for c in candles[:end]:
        if (is_long and is_red_bar(c)) or (not is_long and is_green_bar(c)):
            return True
    return False


def conditionally_has_reversal_bar_since_open(
    candles: Sequence[Candle],
    is_long: bool,
    strict: bool,
    consider_current_candle_after_one_minute: bool,
    previous_day_close: Optional[float],
    atr_average: float,
) -> bool:
    """Reversal check that is waived after a large counter gap.

    A long after a gap down of more than 80% of ATR (or a short after such a gap
    up) does not need to wait for a reversal bar.
    """
    has_reversal = has_reversal_bar_since_open(
        candles, is_long, strict, consider_current_candle_after_one_minute
    )
    if len(candles) == 0 or previous_day_close is None:
        return has_reversal
    gap = candles[0].open - previous_day_close
    threshold = atr_average * 0.8
    if (is_long and gap < 0 and abs(gap) > threshold) or (
        not is_long and gap > 0 and gap > threshold
    ):
        return True
    return has_reversal


def is_bar_same_direction(bar: Candle, is_long: bool) -> bool:
    return is_green_bar(bar) if is_long else is_red_bar(bar)


def is_consecutive_bars_same_direction(candles: Sequence[Candle], is_long: bool) -> bool:
    """Last 5 bars (last 3 once there are 10 or more) all go the same way."""
    n = len(candles)
    if n < 5:
        return False
    lookback = 5 if n < 10 else 3
    return all(is_bar_same_direction(c, is_long) for c in candles[n - lookback:])


def is_higher_lows(candles: Sequence[Candle], max_count: int) -> bool:
    """Lows never decrease within the first ``max_count`` candles."""
    if len(candles) == 0:
        return False
    previous_low = candles[0].low
    for c in candles[1:max_count]:
        if c.low < previous_low:
            return False
        previous_low = c.low
    return True


def is_lower_highs(candles: Sequence[Candle], max_count: int) -> bool:
    """Highs never increase within the first ``max_count`` candles."""
    if len(candles) == 0:
        return False
    previous_high = candles[0].high
    for c in candles[1:max_count]:
        if c.high > previous_high:
            return False
        previous_high = c.high
    return True


def has_lower_low(candles: Sequence[Candle]) -> bool:
    """Any candle undercut the previous candle's low."""
    return any(candles[i].low < candles[i - 1].low for i in range(1, len(candles)))


def has_higher_high(candles: Sequence[Candle]) -> bool:
    """Any candle exceeded the previous candle's high."""
    return any(candles[i].high > candles[i - 1].high for i in range(1, len(candles)))


def has_new_high_low(candles: Sequence[Candle], is_long: bool) -> bool:
    """Forming candle broke the previous candle's high (long) or low (short)."""
    if len(candles) < 2:
        return False
    last, previous = candles[-1], candles[-2]
    return last.high > previous.high if is_long else last.low < previous.low
