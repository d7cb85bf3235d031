"""Minimum profit target math for partial exit slots.

Each slot has up to three candidate profits: a multiple of risk, a fraction of
the ATR daily range minus risk, and a fixed price-level distance. The nearest
candidate wins, so a slot's minimum target is the most conservative of them.
"""

from typing import List, Optional

from momentum_engine.config.schema import (
    DEFAULT_MINIMUM_DAILY_RANGES,
    DEFAULT_MINIMUM_RRR,
    AverageTrueRange,
    ExitTargetsSet,
)
from momentum_engine.market.snapshot import MarketSnapshot

DEFAULT_LADDER_RRR = 2.0
DEFAULT_LADDER_DAILY_RANGE = 1.0


def default_minimum_targets() -> ExitTargetsSet:
    return ExitTargetsSet(
        price_levels=[0.0] * 10,
        rrr=list(DEFAULT_MINIMUM_RRR),
        daily_ranges=list(DEFAULT_MINIMUM_DAILY_RANGES),
    )


def round_price(price: float) -> float:
    """Round to cents."""
    return round(price, 2)


def profit_to_target(is_long: bool, entry_price: float, profit: float) -> float:
    """Target price ``profit`` away from entry in the trade direction.

    Examples:
        >>> profit_to_target(True, 100.0, 1.7)
        101.7
        >>> profit_to_target(False, 100.0, 1.7)
        98.3
    """
    if is_long:
        return round_price(entry_price + profit)
    return round_price(entry_price - profit)


def profits_using_risk_ratios(batch_count: int, ratios: List[float], risk: float) -> List[float]:
    """Risk multiples per slot, RRR 2 for slots beyond the ladder."""
    return [
        (ratios[i] if i < len(ratios) else DEFAULT_LADDER_RRR) * risk for i in range(batch_count)
    ]


def profits_using_daily_ranges(batch_count: int, ranges: List[float], risk: float,
                               atr_average: float) -> List[float]:
    """ATR fraction minus risk per slot, ratio 1 for slots beyond the ladder."""
    return [
        atr_average * (ranges[i] if i < len(ranges) else DEFAULT_LADDER_DAILY_RANGE) - risk
        for i in range(batch_count)
    ]


def minimum_profits(
    entry_price: float,
    stop_price: float,
    batch_count: int,
    atr: AverageTrueRange,
    today_range: float,
    apply_min_atr: bool,
    targets: ExitTargetsSet,
) -> List[float]:
    """Minimum profit per slot before conversion to prices.

    Args:
        entry_price: Entry price.
        stop_price: Initial stop.
        batch_count: Number of slots.
        atr: ATR of the symbol.
        today_range: Today's high minus low. Zero disables the ATR candidate.
        apply_min_atr: Clamp each profit up to ``atr.average * minimum_multiplier - risk``.
        targets: Ladders to use.

    Returns:
        One profit per slot.

    Examples:
        >>> atr = AverageTrueRange(average=4.0)
        >>> minimum_profits(100, 98, 1, atr, 1.0, False, default_minimum_targets())
        [-0.4]
    """
    risk = abs(entry_price - stop_price)
    profit_from_min_atr = round_price(atr.average * atr.minimum_multiplier - risk)

    by_rrr = profits_using_risk_ratios(batch_count, targets.rrr, risk)
    by_range = by_rrr
    if today_range != 0:
        by_range = profits_using_daily_ranges(batch_count, targets.daily_ranges, risk, atr.average)

    result = []
    for i in range(batch_count):
        candidates = [by_rrr[i], by_range[i]]
        if i < len(targets.price_levels) and targets.price_levels[i] != 0:
            candidates.append(abs(targets.price_levels[i] - entry_price))
        profit = min(candidates)
        if apply_min_atr and profit < profit_from_min_atr:
            profit = profit_from_min_atr
        result.append(round(profit, 10))
    return result


def profit_targets_from_config(
    is_long: bool,
    entry_price: float,
    stop_price: float,
    batch_count: int,
    atr: AverageTrueRange,
    today_range: float,
    apply_min_atr: bool,
    targets: ExitTargetsSet,
) -> List[float]:
    """Minimum target price per slot."""
    return [
        profit_to_target(is_long, entry_price, p)
        for p in minimum_profits(
            entry_price, stop_price, batch_count, atr, today_range, apply_min_atr, targets
        )
    ]


def minimum_profit_for_batch(risk: float, daily_range: float) -> float:
    """Whole-position minimum: 3R capped by 90% of daily range minus risk."""
    if daily_range == 0:
        return risk * 3
    return min(risk * 3, 0.9 * daily_range - risk)


def minimum_profit_for_half(risk: float, daily_range: float) -> float:
    """Half-position minimum: 2R capped by 90% of daily range minus risk."""
    if daily_range == 0:
        return risk * 2
    return min(risk * 2, 0.9 * daily_range - risk)


def slot_index(initial_batch_count: int, exit_pairs_count: int, key_index: int) -> int:
    """Map a working pair's key index to its ladder slot.

    Slots already exited are skipped, so with 10 slots and 7 pairs left the
    first remaining pair sits on slot 3. An oversized position keeps its index.

    Examples:
        >>> slot_index(10, 7, 0)
        3
        >>> slot_index(10, 12, 4)
        4
    """
    if exit_pairs_count > initial_batch_count:
        return key_index
    return key_index + (initial_batch_count - exit_pairs_count)


def is_current_trade_first_signal(snapshot: MarketSnapshot, is_long: bool) -> bool:
    """Whether the open trade was the first signal of the day.

    True when the first fill came within a minute of the open, when the plan
    is a first-new-high plan, or for a red-to-green plan entered within two
    minutes on a reversing open candle.
    """
    position = snapshot.position
    if not position.has_value or position.first_entry_seconds_ago is None:
        return False
    entry_seconds_since_open = snapshot.seconds_since_open - position.first_entry_seconds_ago
    if entry_seconds_since_open < 60:
        return True
    plan_type = position.plan.plan_type if position.plan else None
    if plan_type == "FirstNewHigh":
        return True
    if plan_type == "RedToGreen" and entry_seconds_since_open < 120 and snapshot.candles:
        first = snapshot.candles[0]
        if (is_long and first.open > first.close) or (not is_long and first.open < first.close):
            return True
    return False


def minimum_profit_target_for_single(
    snapshot: MarketSnapshot,
    is_long: bool,
    entry_price: float,
    stop_price: float,
    key_index: int,
    batch_count: int,
    atr: AverageTrueRange,
    minimum_targets: Optional[ExitTargetsSet],
) -> float:
    """Minimum target price for one working exit pair.

    The last slot of a first-signal trade is held to 2R.
    """
    risk = round_price(abs(entry_price - stop_price))
    targets = minimum_targets or default_minimum_targets()
    index = slot_index(batch_count, snapshot.position.exit_pairs_count, key_index)
    prices = profit_targets_from_config(
        is_long, entry_price, stop_price, batch_count, atr, snapshot.today_range, True, targets
    )
    result = prices[min(index, batch_count - 1)]
    if index > batch_count - 2 and is_current_trade_first_signal(snapshot, is_long):
        result = profit_to_target(is_long, entry_price, 2 * risk)
    return result


def minimum_profit_target_for_batch(is_long: bool, is_half: bool, entry_price: float,
                                    stop_price: float, daily_range: float) -> float:
    """Minimum target price for exiting the whole (or half) position at once."""
    risk = abs(entry_price - stop_price)
    if is_half:
        profit = minimum_profit_for_half(risk, daily_range)
    else:
        profit = minimum_profit_for_batch(risk, daily_range)
    return entry_price + profit if is_long else entry_price - profit
