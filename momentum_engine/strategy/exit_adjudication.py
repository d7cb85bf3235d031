"""Exit adjudication: allow or disallow one exit order action.

Three surfaces share one contract. Checks run in a fixed priority order and
the first that allows is the verdict. When none allows, the verdict is a
disallow carrying the last evaluated reason. The order of each chain matters
and is locked by tests.
"""

from typing import Callable, Iterable, Optional

from momentum_engine.config.schema import AverageTrueRange, EngineSettings
from momentum_engine.market.snapshot import ExitPair, MarketSnapshot
from momentum_engine.rules.exit_rules import (
    CheckRulesResult,
    added_position,
    allow_first_few_exits,
    batch_overflow,
    blanket_time_override,
    flatten_rules,
    increasing_target,
    incremental_trailing_stop,
    minimum_target_for_single,
    oversized_override,
    trail_stop_single,
)
from momentum_engine.utils.logging import log_for

Check = Callable[[], CheckRulesResult]
StrategyPredicate = Callable[[], CheckRulesResult]

DEFAULT_DISALLOW = "default disallow"


def first_match(checks: Iterable[Check], default_reason: str = DEFAULT_DISALLOW) -> CheckRulesResult:
    """Evaluate ``checks`` lazily and return the first allowed result.

    Examples:
        >>> first_match([lambda: CheckRulesResult.disallow("a"),
        ...              lambda: CheckRulesResult.allow("b")]).reason
        'b'
        >>> first_match([lambda: CheckRulesResult.disallow("a")]).reason
        'a'
        >>> first_match([]).reason
        'default disallow'
    """
    last: Optional[CheckRulesResult] = None
    for check in checks:
        last = check()
        if last.allowed:
            return last
    if last is None:
        return CheckRulesResult.disallow(default_reason)
    return CheckRulesResult.disallow(last.reason)


def _common_checks(snapshot: MarketSnapshot, settings: EngineSettings):
    return [
        lambda: blanket_time_override(snapshot, settings),
        lambda: oversized_override(snapshot, settings),
        lambda: batch_overflow(snapshot, settings),
    ]


def _single_order_checks(snapshot: MarketSnapshot, settings: EngineSettings, atr: AverageTrueRange,
                         is_market_order: bool, new_price: float, key_index: int):
    is_long = snapshot.position.is_long
    return [
        lambda: allow_first_few_exits(snapshot, settings, is_market_order, key_index),
        lambda: added_position(snapshot, is_long, is_market_order, new_price, key_index, False),
        lambda: minimum_target_for_single(snapshot, settings, atr, new_price, key_index, snapshot.spread),
    ]


def _log_verdict(snapshot: MarketSnapshot, action: str, result: CheckRulesResult, tag: str) -> None:
    text = "allow" if result.allowed else "cannot"
    log_for(snapshot.symbol, tag).info(f"{text} {action}: {result.reason}")


def adjudicate_limit_adjustment(
    snapshot: MarketSnapshot,
    settings: EngineSettings,
    pair: Optional[ExitPair],
    new_price: float,
    strategy_predicate: Optional[StrategyPredicate] = None,
    tag: str = "",
) -> CheckRulesResult:
    """Moving a profit target.

    Order: blanket time, oversized, batch overflow, increasing target,
    strategy predicate.
    """
    checks = _common_checks(snapshot, settings)
    checks.append(lambda: increasing_target(snapshot.position.is_long, new_price, pair))
    if strategy_predicate is not None:
        checks.append(strategy_predicate)
    result = first_match(checks)
    _log_verdict(snapshot, "adjust limit order", result, tag)
    return result


def adjudicate_stop_adjustment(
    snapshot: MarketSnapshot,
    settings: EngineSettings,
    atr: AverageTrueRange,
    key_index: int,
    new_price: float,
    strategy_predicate: Optional[StrategyPredicate] = None,
    tag: str = "",
) -> CheckRulesResult:
    """Moving a protective stop.

    Order: blanket time, oversized, batch overflow, first few exits, added
    position, minimum target, incremental trailing stop, strategy predicate.
    """
    checks = _common_checks(snapshot, settings)
    checks.extend(_single_order_checks(snapshot, settings, atr, False, new_price, key_index))
    checks.append(lambda: incremental_trailing_stop(snapshot, snapshot.position.is_long, new_price))
    if strategy_predicate is not None:
        checks.append(strategy_predicate)
    result = first_match(checks)
    _log_verdict(snapshot, "adjust stop order", result, tag)
    return result


def adjudicate_market_out(
    snapshot: MarketSnapshot,
    settings: EngineSettings,
    atr: AverageTrueRange,
    key_index: int,
    strategy_predicate: Optional[StrategyPredicate] = None,
    tag: str = "",
) -> CheckRulesResult:
    """Market out of one exit pair at the current price.

    Order: blanket time, oversized, batch overflow, first few exits, added
    position, minimum target, strategy predicate.
    """
    price = snapshot.current_price
    checks = _common_checks(snapshot, settings)
    checks.extend(_single_order_checks(snapshot, settings, atr, True, price, key_index))
    if strategy_predicate is not None:
        checks.append(strategy_predicate)
    result = first_match(checks)
    _log_verdict(snapshot, "market out", result, tag)
    return result


def adjudicate_flatten(snapshot: MarketSnapshot, settings: EngineSettings, atr: AverageTrueRange,
                       tag: str = "") -> CheckRulesResult:
    """Flatten the whole position at the current price."""
    result = flatten_rules(snapshot, settings, atr)
    _log_verdict(snapshot, "flatten", result, tag)
    return result


def adjudicate_trail_stop(snapshot: MarketSnapshot, batch_index: int, timeframe: int,
                          tag: str = "") -> CheckRulesResult:
    """Trail one slot's stop on ``timeframe`` candles."""
    result = trail_stop_single(snapshot, batch_index, timeframe)
    _log_verdict(snapshot, f"trail stop on {timeframe} minute", result, tag)
    return result
