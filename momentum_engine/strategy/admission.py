"""Admission pipeline: turn a candidate entry into a size fraction.

Hard vetoes run first and return 0 immediately. Survivors start from
``liquidity_scale * risk_multiplier_for_next_entry`` and each soft reducer
that triggers halves the running size, so two reducers give a quarter size.
The result is always clamped to [0, 1].
"""

from dataclasses import dataclass, field
from typing import Optional

from momentum_engine.config.schema import (
    BasePlan,
    EngineSettings,
    LevelArea,
    LevelMomentumPlan,
    PremarketVolumeScore,
    RedToGreenPlan,
    TradingPlan,
)
from momentum_engine.market.snapshot import MarketSnapshot
from momentum_engine.rules.entry_rules import (
    VwapDistance,
    has_minimum_volume,
    is_against_first_five_minutes,
    is_against_momentum_start_price,
    is_blocked_by_timing,
    is_near_against_watch_level,
    is_outside_tradable_area,
    is_spread_too_large,
    liquidity_scale,
    no_trade_zone_reason,
    vwap_distance_status,
    watch_area_reason,
)
from momentum_engine.rules.risk import is_over_daily_max_loss, risk_multiplier_for_next_entry
from momentum_engine.signals.bars import first_bar_is_pin_bar, has_reversal_bar_since_open
from momentum_engine.signals.vwap_patterns import is_price_worse_than_vwap
from momentum_engine.signals.zones import (
    dual_level_momentum_disallow_reason,
    is_price_outside_key_level,
    single_level_momentum_disallow_reason,
)
from momentum_engine.utils.logging import log_for

REDUCER = 0.5
LOW_PREMARKET_VOLUME_WAIT_SECONDS = 900
NO_KEY_LEVEL_WAIT_SECONDS = 60


@dataclass(frozen=True)
class EntryRequest:
    """One candidate entry.

    Attributes:
        snapshot: Market state at decision time
        trading_plan: Session plan of the symbol
        settings: Engine settings
        is_long: Trade direction
        entry_price: Proposed entry
        stop_price: Proposed stop
        base_plan: Strategy plan the entry belongs to
        use_market_order: Market instead of stop/limit entry
        should_check_entry_distance: Apply the tradable area reducer
        tag: Log tag, usually the tradebook id
    """

    snapshot: MarketSnapshot
    trading_plan: TradingPlan
    settings: EngineSettings
    is_long: bool
    entry_price: float
    stop_price: float
    base_plan: BasePlan = field(default_factory=BasePlan)
    use_market_order: bool = False
    should_check_entry_distance: bool = True
    tag: str = ""

    @property
    def symbol(self) -> str:
        return self.snapshot.symbol

    @property
    def seconds(self) -> int:
        return self.snapshot.seconds_since_open

    @property
    def risk(self) -> float:
        return abs(self.entry_price - self.stop_price)

    @property
    def log(self):
        return log_for(self.symbol, self.tag)


def clamp_size(size: float) -> float:
    """Clamp to [0, 1].

    Examples:
        >>> clamp_size(1.4), clamp_size(-0.2), clamp_size(0.35)
        (1.0, 0.0, 0.35)
    """
    return float(max(0.0, min(1.0, size)))


def _reduce(size: float, reason: str, request: EntryRequest) -> float:
    request.log.error(reason)
    return size * REDUCER


# ==================== Hard vetoes ====================


def hard_veto_reason(request: EntryRequest, liquidity: float) -> str:
    """First hard veto that applies, empty string when none does.

    Order: daily loss breaker, low premarket volume wait, liquidity,
    timing window, no-trade zones, watch areas, blocked VWAP distance.
    """
    snapshot = request.snapshot
    plan = request.trading_plan
    if is_over_daily_max_loss(snapshot.account, request.settings):
        return "checkRule: Daily max loss exceeded"
    if (
        plan.analysis.premarket_volume_score == PremarketVolumeScore.ZERO_LOW_OR_NORMAL
        and request.seconds < LOW_PREMARKET_VOLUME_WAIT_SECONDS
    ):
        return "checkRule: premarket volume score is low or normal, wait at least 15 minutes"
    if liquidity == 0:
        return "blocked because less than $20M traded after open, be carefull"

    timing = plan.trading_timing(request.base_plan)
    defer = timing.defer_trading_seconds
    stop = timing.stop_trading_after_seconds
    if is_blocked_by_timing(request.seconds, defer, stop):
        return f"defer {defer} seconds, stop after {stop},  currently {request.seconds}"

    reason = no_trade_zone_reason(plan.analysis.no_trade_zones, request.entry_price)
    if reason:
        return reason
    reason = watch_area_reason(plan.analysis.watch_areas, request.entry_price)
    if reason:
        return reason

    if request.settings.require_vwap_same_direction and snapshot.is_market_open:
        status = vwap_distance_status(
            request.is_long, request.entry_price, request.stop_price, snapshot.current_vwap
        )
        if status == VwapDistance.BLOCKED:
            return (
                f"checkRule: entry price {request.entry_price} is against vwap "
                f"{snapshot.current_vwap:.2f}, neither 2R away nor negligible"
            )
    return ""


# ==================== Pipelines ====================


def check_basic_global_entry_rules(request: EntryRequest) -> float:
    """Size fraction for an entry before strategy specific checks.

    Args:
        request: Candidate entry.

    Returns:
        0 on any hard veto, otherwise the initial size with every triggered
        soft reducer applied, clamped to [0, 1].
    """
    snapshot = request.snapshot
    plan = request.trading_plan
    log = request.log

    liquidity = liquidity_scale(snapshot, plan.market_cap_in_millions)
    reason = hard_veto_reason(request, liquidity)
    if reason:
        log.error(reason)
        return 0.0
    if liquidity < 0.9:
        log.info(f"liquidity scale is {liquidity}")
    if any(o.is_long == request.is_long for o in snapshot.entry_orders):
        log.info("had entries in the same direction, old entries will be cancelled")

    initial_size = liquidity * risk_multiplier_for_next_entry(request.base_plan, request.settings)
    size = initial_size

    if request.should_check_entry_distance and is_outside_tradable_area(
        snapshot, plan, request.is_long, request.entry_price
    ):
        size = _reduce(size, "checkRule: not in tradable area, using 50% size", request)
    if is_near_against_watch_level(
        plan.analysis.watch_areas, request.is_long, request.entry_price, request.stop_price
    ):
        size = _reduce(size, "checkRule: watch level within half risk ahead, using 50% size", request)
    if request.settings.require_vwap_same_direction and snapshot.is_market_open:
        status = vwap_distance_status(
            request.is_long, request.entry_price, request.stop_price, snapshot.current_vwap
        )
        if status == VwapDistance.NEAR:
            size = _reduce(
                size, f"checkRule: entry price {request.entry_price} is near against vwap, using 50% size",
                request,
            )
    if not has_minimum_volume(snapshot.volumes):
        size = _reduce(size, "checkRule: volume never reached 150K since peak, using 50% size", request)

    log.debug(f"basic entry rules: initial {initial_size:.3f}, final {size:.3f}")
    return clamp_size(size)


def _level_momentum_reason(request: EntryRequest) -> str:
    snapshot = request.snapshot
    plan = request.trading_plan
    base_plan = request.base_plan
    if snapshot.open_price is None:
        return ""
    if not isinstance(base_plan, LevelMomentumPlan) or not base_plan.check_open_zone:
        return ""
    if plan.has_single_momentum_level():
        return single_level_momentum_disallow_reason(
            snapshot, request.is_long, request.entry_price, request.stop_price,
            plan.single_momentum_level(), plan.atr.average,
        )
    if plan.has_dual_momentum_levels():
        return dual_level_momentum_disallow_reason(
            snapshot, request.is_long, request.entry_price, plan.dual_momentum_levels()
        )
    if request.seconds < NO_KEY_LEVEL_WAIT_SECONDS:
        return "no key levels, no entry in the first 60 seconds"
    return ""


def check_global_entry_rules(request: EntryRequest) -> float:
    """Stricter global rules used by plan-driven entries.

    Adds the momentum start price, spread, risk size, double-down and
    open-zone checks on top of the basic rules, and halves entries against
    VWAP.
    """
    snapshot = request.snapshot
    plan = request.trading_plan
    log = request.log

    if is_over_daily_max_loss(snapshot.account, request.settings):
        log.error("checkRule: Daily max loss exceeded")
        return 0.0
    if is_against_momentum_start_price(plan, request.is_long, request.entry_price):
        log.error(
            f"checkRule: entry price {request.entry_price} is against momentum start price "
            f"{plan.momentum_start_price(request.is_long)}"
        )
        return 0.0
    if is_spread_too_large(snapshot, plan.atr.average, request.settings):
        log.error("spread too big, block entry")
        return 0.0
    max_risk = plan.atr.max_risk
    if max_risk > 0 and request.risk > max_risk:
        log.error(f"risk too big, {request.risk} > {max_risk}, still allow for now")
    if any(o.is_long == request.is_long for o in snapshot.entry_orders):
        log.error("already had entries in the same direction, cannot double down")
        return 0.0

    reason = _level_momentum_reason(request)
    if reason:
        log.error(reason)
        return 0.0
    if is_against_first_five_minutes(snapshot, request.is_long, request.entry_price):
        log.info("5 minute not ready, only take vwap bounce fail")

    size = check_basic_global_entry_rules(request)
    if size == 0:
        return 0.0
    if snapshot.is_market_open and is_price_worse_than_vwap(snapshot, request.is_long, request.entry_price):
        size = _reduce(
            size, f"checkRule: entry price {request.entry_price} is against vwap, reduce to half size",
            request,
        )
    return clamp_size(size)


def validate_common_entry_rules(request: EntryRequest, key_level: LevelArea, should_check_vwap: bool) -> float:
    """Entry rules shared by the key-level tradebooks.

    The entry must be outside the key level, pass the basic global rules and,
    when ``should_check_vwap``, not be against the current VWAP.
    """
    log = request.log
    if not is_price_outside_key_level(request.is_long, key_level, request.entry_price):
        log.error(f"{request.symbol} entry price {request.entry_price} is not outside key level")
        return 0.0
    size = check_basic_global_entry_rules(request)
    if size == 0:
        return 0.0
    if should_check_vwap and is_price_worse_than_vwap(request.snapshot, request.is_long, request.entry_price):
        log.error(f"checkRule: entry price {request.entry_price} is against vwap")
        return 0.0
    return size


def check_red_to_green_plan_entry_rules(request: EntryRequest, plan: Optional[RedToGreenPlan] = None) -> float:
    """Global rules plus a reversal bar (or first-bar pin) and VWAP side."""
    plan = plan or (request.base_plan if isinstance(request.base_plan, RedToGreenPlan) else RedToGreenPlan())
    size = check_global_entry_rules(request)
    if size == 0:
        return 0.0
    candles = request.snapshot.candles
    has_reversal = has_reversal_bar_since_open(
        candles, request.is_long, plan.strict_mode, plan.consider_current_candle_after_one_minute
    )
    if not has_reversal and not first_bar_is_pin_bar(candles):
        request.log.error("checkRule: no reversal bar yet")
        return 0.0
    if is_price_worse_than_vwap(request.snapshot, request.is_long, request.entry_price):
        request.log.error("against current vwap")
        return 0.0
    return size
