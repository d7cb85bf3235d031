"""Exit rules.

Every rule returns a CheckRulesResult so the adjudication chain can stop at
the first one that allows and still report why the others did not.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from momentum_engine.config.schema import (
    AverageTrueRange,
    BasePlan,
    EngineSettings,
    ExitTargets,
    LevelArea,
    PlanConfigs,
    SetupQuality,
)
from momentum_engine.market.candles import Candle
from momentum_engine.market.snapshot import ExitPair, MarketSnapshot, OrderModel, OrderType
from momentum_engine.rules.risk import is_allowed_as_paper_cut, is_oversized
from momentum_engine.signals.retest import has_retest_level
from momentum_engine.signals.targets import (
    minimum_profit_target_for_batch,
    minimum_profit_target_for_single,
)
from momentum_engine.utils.logging import log_for

MAX_PULLBACK_TO_ALLOW_EXITS = 0.75
HIGHER_TIMEFRAME_FLATTEN_SECONDS = 480


@dataclass(frozen=True)
class CheckRulesResult:
    """Verdict of one exit check. ``reason`` is always human readable."""

    allowed: bool
    reason: str

    @classmethod
    def allow(cls, reason: str) -> "CheckRulesResult":
        return cls(True, reason)

    @classmethod
    def disallow(cls, reason: str) -> "CheckRulesResult":
        return cls(False, reason)

    def __bool__(self) -> bool:
        return self.allowed


def _position_plan(snapshot: MarketSnapshot) -> BasePlan:
    return snapshot.position.plan or BasePlan()


def _position_configs(snapshot: MarketSnapshot) -> PlanConfigs:
    return _position_plan(snapshot).plan_configs


def _position_targets(snapshot: MarketSnapshot) -> ExitTargets:
    return _position_plan(snapshot).targets


# ==================== Rules shared by every order type ====================


def blanket_time_override(snapshot: MarketSnapshot, settings: EngineSettings) -> CheckRulesResult:
    """Allow everything late enough in the session.

    Examples:
        >>> blanket_time_override(MarketSnapshot("AAPL", 1801, 10.0), EngineSettings()).reason
        'allow after 30 minutes since open'
    """
    seconds = snapshot.seconds_since_open
    if seconds > settings.allow_all_exits_after_seconds:
        minutes = settings.allow_all_exits_after_seconds // 60
        return CheckRulesResult.allow(f"allow after {minutes} minutes since open")
    if seconds / 3600 >= settings.allow_all_exits_after_hours:
        return CheckRulesResult.allow("allow in the last 30 minutes before market close")
    return CheckRulesResult.disallow(f"only {seconds} seconds since open")


def oversized_override(snapshot: MarketSnapshot, settings: EngineSettings) -> CheckRulesResult:
    if is_oversized(snapshot, settings):
        return CheckRulesResult.allow("allow exit when over sized")
    return CheckRulesResult.disallow("position is within its sizing budget")


def batch_overflow(snapshot: MarketSnapshot, settings: EngineSettings) -> CheckRulesResult:
    if snapshot.position.exit_pairs_count > settings.batch_count:
        return CheckRulesResult.allow(f"allow exit when more than {settings.batch_count} partials")
    return CheckRulesResult.disallow(f"{snapshot.position.exit_pairs_count} partials")


def all_orders_rules(snapshot: MarketSnapshot, settings: EngineSettings) -> CheckRulesResult:
    """Blanket time, oversized and batch overflow, first match wins."""
    result = blanket_time_override(snapshot, settings)
    for rule in (oversized_override, batch_overflow):
        if result.allowed:
            return result
        result = rule(snapshot, settings)
    return result


# ==================== Single order rules ====================


def increasing_target(is_long: bool, new_price: float, pair: Optional[ExitPair]) -> CheckRulesResult:
    """Moving a limit further into profit is always fine.

    Examples:
        >>> increasing_target(True, 12.0, ExitPair(0, 10, 9.0, 11.5)).allowed
        True
    """
    if pair is None or not pair.limit_price:
        return CheckRulesResult.disallow("no limit price to compare")
    old_price = pair.limit_price
    if (is_long and new_price > old_price) or (not is_long and new_price < old_price):
        return CheckRulesResult.allow(f"increasing target from {old_price} to {new_price}")
    return CheckRulesResult.disallow(f"new target {new_price} is closer than {old_price}")


def allow_first_few_exits(snapshot: MarketSnapshot, settings: EngineSettings, is_market_order: bool,
                          key_index: int) -> CheckRulesResult:
    """Let the plan release its first few exit slots early.

    ``allow_first_few_exits_count + 1`` slots are released. Once that many
    pairs have been taken off (or the oldest pairs are targeted) the rule
    stops matching.
    """
    configs = _position_configs(snapshot)
    allow_count = configs.allow_first_few_exits_count + 1
    extra = snapshot.position.exit_pairs_count - (settings.batch_count - allow_count)
    if extra > 0 and (is_market_order or key_index < extra):
        return CheckRulesResult.allow(f"allow exit for the first {allow_count} exits")
    return CheckRulesResult.disallow(f"first {allow_count} exits already used")


def added_position(snapshot: MarketSnapshot, is_long: bool, is_market_order: bool, new_price: float,
                   key_index: int, require_better_price: bool) -> CheckRulesResult:
    """Exits of added partials may go, optionally only above their entry."""
    stack = snapshot.position.added_partial_stack
    if len(stack) == 0:
        return CheckRulesResult.disallow("no added partials")
    if (is_market_order and key_index == 0) or key_index < len(stack):
        original = stack[key_index]
        is_better = (is_long and new_price > original) or (not is_long and new_price < original)
        if is_better or not require_better_price:
            return CheckRulesResult.allow("allow for added position")
    return CheckRulesResult.disallow(f"slot {key_index} is not an added partial")


def minimum_target_for_single(
    snapshot: MarketSnapshot,
    settings: EngineSettings,
    atr: AverageTrueRange,
    new_price: float,
    key_index: int,
    allowed_spread: float,
) -> CheckRulesResult:
    """Allow when ``new_price`` reaches the slot's minimum target.

    The minimum target is relaxed by ``allowed_spread`` so an exit at the
    far side of the quote still counts.
    """
    position = snapshot.position
    is_long = position.is_long
    target = minimum_profit_target_for_single(
        snapshot, is_long, position.entry_price, position.stop_loss_price, key_index,
        settings.batch_count, atr, _position_targets(snapshot).minimum_targets,
    )
    if allowed_spread != 0:
        target = target - allowed_spread if is_long else target + allowed_spread
    if (is_long and new_price < target) or (not is_long and new_price > target):
        return CheckRulesResult.disallow(f"new target {new_price} is closer than minimum target {target}")
    return CheckRulesResult.allow(f"hard rules passed, new price: {new_price}, min target: ${target}")


def minimum_target_for_batch(snapshot: MarketSnapshot, new_price: float, is_half: bool) -> CheckRulesResult:
    """Allow when ``new_price`` reaches the whole (or half) position target."""
    position = snapshot.position
    is_long = position.is_long
    target = minimum_profit_target_for_batch(
        is_long, is_half, position.entry_price, position.stop_loss_price, snapshot.today_range
    )
    if (is_long and new_price < target) or (not is_long and new_price > target):
        return CheckRulesResult.disallow(f"new target {new_price} is closer than minimum target {target}")
    return CheckRulesResult.allow(f"hard rules passed, new price: {new_price}, min target: ${target}")


def _incremental_reference(snapshot: MarketSnapshot):
    seconds = snapshot.seconds_since_open
    if 120 <= seconds < 300 and len(snapshot.candles) >= 3:
        return snapshot.candles[1], "2nd 1-minute candle"
    if seconds >= 600:
        five_minute = snapshot.aggregate(5)
        if len(five_minute) >= 3:
            return five_minute[1], "2nd 5-minute candle"
    return None, ""


def incremental_trailing_stop(snapshot: MarketSnapshot, is_long: bool, new_price: float) -> CheckRulesResult:
    """Trail the stop in steps anchored on the second candle.

    Between minutes 2 and 5 the anchor is the second one-minute candle, from
    minute 10 on it is the second five-minute candle. A stop no tighter than
    the anchor's low (long) or high (short) is allowed.
    """
    reference, label = _incremental_reference(snapshot)
    if reference is None:
        return CheckRulesResult.disallow("outside incremental trailing windows")
    extreme = reference.low if is_long else reference.high
    if (is_long and new_price <= extreme) or (not is_long and new_price >= extreme):
        return CheckRulesResult.allow(f"new stop {new_price} is no tighter than {label} {extreme}")
    return CheckRulesResult.disallow(f"new stop {new_price} is tighter than {label} {extreme}")


# ==================== Stop placement rules ====================


def trail_stop_single(snapshot: MarketSnapshot, batch_index: int, timeframe: int) -> CheckRulesResult:
    """Whether slot ``batch_index`` may trail on ``timeframe`` candles."""
    if timeframe == 1:
        if snapshot.seconds_since_open < 300:
            return CheckRulesResult.allow("trail on 1-minute candles in the first 5 minutes")
        return CheckRulesResult.disallow("no 1-minute trailing after 5 minutes")
    if timeframe > 15:
        return CheckRulesResult.allow(f"trail on {timeframe}-minute candles")
    targets = _position_targets(snapshot)
    if timeframe == 5:
        if batch_index >= targets.trail5_count:
            return CheckRulesResult.disallow(
                f"only allow first {targets.trail5_count}, this is {batch_index} + 1"
            )
        return CheckRulesResult.allow(f"trail slot {batch_index} on 5-minute candles")
    if timeframe == 15:
        if batch_index > targets.trail15_count:
            return CheckRulesResult.disallow(
                f"only allow first {targets.trail15_count}, this is {batch_index} + 1"
            )
        return CheckRulesResult.allow(f"trail slot {batch_index} on 15-minute candles")
    return CheckRulesResult.disallow(f"unknown time frame {timeframe}")


def _tightest_closed_extreme(candles: Sequence[Candle], is_long: bool) -> float:
    tightest = candles[0].low if is_long else candles[0].high
    for c in candles[1:5]:
        tightest = max(tightest, c.low) if is_long else min(tightest, c.high)
    return tightest


def less_tight_than_closed_candles(snapshot: MarketSnapshot, is_long: bool,
                                   new_price: float) -> CheckRulesResult:
    """Between minutes 2 and 5, the stop cannot go tighter than the early candles.

    The entry candle itself is exempt.
    """
    seconds = snapshot.seconds_since_open
    if seconds < 120 or seconds > 300:
        return CheckRulesResult.allow(f"allow moving stop for seconds {seconds}")
    first_entry_ago = snapshot.position.first_entry_seconds_ago
    if first_entry_ago is not None and (seconds - first_entry_ago) // 60 == seconds // 60:
        return CheckRulesResult.allow("allow moving stop for entry candle")
    if len(snapshot.candles) == 0:
        return CheckRulesResult.allow("no candles since open")
    tightest = _tightest_closed_extreme(snapshot.candles, is_long)
    if (is_long and new_price > tightest) or (not is_long and new_price < tightest):
        return CheckRulesResult.disallow(f"cannot move stop tighter than {tightest}")
    return CheckRulesResult.allow(f"allow move stop no tighter than {tightest}")


def common_adjust_stops(snapshot: MarketSnapshot, new_price: float,
                        key_level: Optional[LevelArea] = None) -> CheckRulesResult:
    """Stop moves shared by all tradebooks.

    Scalps and untagged setups move freely, others respect the early
    candles. A retest of ``key_level`` only raises a reminder.
    """
    is_long = snapshot.position.is_long
    if key_level is not None and has_retest_level(snapshot, is_long, key_level):
        log_for(snapshot.symbol).info("respect original stop that retest key level")
    quality = _position_configs(snapshot).setup_quality
    if quality in (SetupQuality.SCALP, SetupQuality.UNKNOWN):
        return CheckRulesResult.allow(f"allow moving stop due to setup quality {quality.value}")
    return less_tight_than_closed_candles(snapshot, is_long, new_price)


def tighten_stop(order: OrderModel, new_price: Optional[float], snapshot: MarketSnapshot,
                 settings: EngineSettings) -> CheckRulesResult:
    """A stop moved while it would still lock in a loss.

    Only stop orders with a new price are checked.
    """
    if order.order_type != OrderType.STOP or not new_price:
        return CheckRulesResult.allow("not a stop price change")
    if settings.allow_tighten_stop:
        return CheckRulesResult.allow("tightening stop is allowed by settings")
    position = snapshot.position
    average = position.average_price
    if (position.is_long and new_price < average) or (not position.is_long and new_price > average):
        return CheckRulesResult.disallow(
            f"new stop {new_price} still loses against average price {average}"
        )
    return CheckRulesResult.allow(f"new stop {new_price} protects average price {average}")


# ==================== Flatten ====================


def early_exit_override(snapshot: MarketSnapshot, settings: EngineSettings) -> CheckRulesResult:
    """Blanket time, scalp setups and deep pullbacks allow a full exit."""
    result = blanket_time_override(snapshot, settings)
    if result.allowed:
        return result
    if _position_configs(snapshot).setup_quality == SetupQuality.SCALP:
        return CheckRulesResult.allow("allow exit for scalp setup")
    pullback = snapshot.position.max_pullback_reached
    if snapshot.position.has_value and pullback > MAX_PULLBACK_TO_ALLOW_EXITS:
        return CheckRulesResult.allow(f"allow early exits due to pullback {pullback} > 0.75")
    return result


def flatten_rules(snapshot: MarketSnapshot, settings: EngineSettings, atr: AverageTrueRange) -> CheckRulesResult:
    """Whether the whole position may be flattened at the current price.

    Args:
        snapshot: Market state with the open position.
        settings: Engine settings.
        atr: ATR of the symbol for minimum targets.

    Returns:
        Allowed on the early overrides, the plan's flatten override, a paper
        cut, or once the current price reaches the minimum target.
    """
    result = early_exit_override(snapshot, settings)
    if result.allowed:
        return result

    position = snapshot.position
    plan = _position_plan(snapshot)
    if plan.plan_configs.always_allow_flatten:
        if plan.timeframe > 1:
            seconds_since_entry = position.first_entry_seconds_ago or 0
            if seconds_since_entry > HIGHER_TIMEFRAME_FLATTEN_SECONDS:
                return CheckRulesResult.allow("allow after 8 minutes")
            return CheckRulesResult.disallow(
                f"higher time frame needs 8 minutes since entry, only {seconds_since_entry} seconds"
            )
        return CheckRulesResult.allow("always allow flatten")

    price = snapshot.current_price
    if is_allowed_as_paper_cut(snapshot, position.entry_price, position.stop_loss_price, price):
        return CheckRulesResult.allow("allow for paper cut")

    if position.exit_pairs_count == 1:
        result = minimum_target_for_single(
            snapshot, settings, atr, price, settings.batch_count - 1, 0
        )
    else:
        result = minimum_target_for_batch(snapshot, price, False)
    return result
