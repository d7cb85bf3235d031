"""Entry rules.

Each rule answers one question about a candidate entry: a boolean, a reason
string (empty when allowed), or a size fraction. Rules never call each other;
the admission pipeline decides how they combine.
"""

from enum import Enum
from typing import Sequence

from momentum_engine.config.schema import EngineSettings, LevelArea, TradingPlan
from momentum_engine.market.snapshot import MarketSnapshot
from momentum_engine.rules.risk import (
    entry_orders_risk_in_dollars,
    is_over_daily_max_loss,
    is_over_daily_max_loss_with_position,
    max_daily_loss_limit,
    position_risk_in_dollars,
)
from momentum_engine.signals.bars import is_higher_lows, is_lower_highs
from momentum_engine.signals.zones import (
    has_price_been_in_tradable_area,
    is_more_than_minimum_target,
    tradable_area,
)
from momentum_engine.utils.logging import log_for

ONE_MILLION_SHARES = 1_000_000
MINIMUM_VOLUME_SHARES = 150_000
LIQUIDITY_FULL_DOLLARS = 20_000_000
LIQUIDITY_PARTIAL_DOLLARS = 10_000_000
LIQUIDITY_PARTIAL_SCALE = 0.35
MID_RANGE_SIZE = 0.5
MID_RANGE_AFTER_SECONDS = 600
FULL_POSITION_RATIO = 0.52
MAX_ADDS_BEFORE_RANGE_CHECK = 2
VWAP_FAR_RISK_RATIO = 2
VWAP_NEAR_RISK_RATIO = 0.25
MIN_DAILY_RANGE_ATR_RATIO = 0.05


# ==================== Liquidity and volume ====================


def liquidity_scale(snapshot: MarketSnapshot, market_cap_in_millions: float) -> float:
    """Size multiplier from traded volume since the open.

    Compares the first (or peak) one-minute volume since the open with the
    last premarket minute and with dollar thresholds. The dollar threshold is
    the smaller of $20M and the market cap in thousands.

    Args:
        snapshot: Market state.
        market_cap_in_millions: Market cap of the symbol.

    Returns:
        0 (veto), 0.35, a fraction of $20M, or 1.

    Examples:
        >>> from momentum_engine.market.candles import Candle
        >>> snap = MarketSnapshot("AAPL", 30, 10.0, candles=(Candle(10, 10, 10, 10, 2e6),),
        ...                       last_volume_before_open=5e5)
        >>> liquidity_scale(snap, 0)
        1
    """
    volumes = snapshot.volumes
    if len(volumes) == 0:
        return 0
    price = snapshot.current_price
    threshold = market_cap_in_millions * 1000
    last_volume_before_open = snapshot.last_volume_before_open

    if len(volumes) == 1:
        first = volumes[0]
        traded = price * first
        if first < last_volume_before_open:
            return 0
        if traded > min(LIQUIDITY_FULL_DOLLARS, threshold):
            return 1
        if first > 10 * last_volume_before_open:
            return 1
        if first > ONE_MILLION_SHARES:
            return 1
        if traded > LIQUIDITY_PARTIAL_DOLLARS:
            return LIQUIDITY_PARTIAL_SCALE
        if traded > threshold:
            return LIQUIDITY_PARTIAL_SCALE
        return 0

    max_volume = max(volumes)
    traded = price * max_volume
    if max_volume < last_volume_before_open:
        return 0
    if max_volume > 10 * last_volume_before_open:
        return 1
    if max_volume > ONE_MILLION_SHARES:
        return 1
    if traded > min(LIQUIDITY_FULL_DOLLARS, threshold):
        return 1
    if traded > LIQUIDITY_PARTIAL_DOLLARS:
        return traded / LIQUIDITY_FULL_DOLLARS
    if traded > threshold:
        return LIQUIDITY_PARTIAL_SCALE
    return 0


def has_minimum_volume(volumes: Sequence[float]) -> bool:
    """Volume reached 150K shares at or after the peak-volume bar.

    Fewer than 3 bars since open is too early to judge and passes.

    Examples:
        >>> has_minimum_volume([90000, 120000, 80000])
        False
        >>> has_minimum_volume([90000, 200000, 80000])
        True
    """
    if len(volumes) < 3:
        return True
    peak_index = max(range(len(volumes)), key=lambda i: volumes[i])
    return any(v >= MINIMUM_VOLUME_SHARES for v in volumes[peak_index:])


# ==================== Timing and spread ====================


def is_blocked_by_timing(seconds_since_open: int, defer_seconds: int, stop_after_seconds: int) -> bool:
    """Outside the defer/stop trading window. Zero disables either bound.

    Examples:
        >>> is_blocked_by_timing(30, 60, 0)
        True
        >>> is_blocked_by_timing(90, 60, 600)
        False
    """
    if defer_seconds > 0 and seconds_since_open < defer_seconds:
        return True
    if stop_after_seconds > 0 and seconds_since_open > stop_after_seconds:
        return True
    return False


class SpreadStatus(str, Enum):
    """Spread relative to ATR."""

    OK = "ok"
    QUITE_LARGE = "quite large"
    TOO_LARGE = "too large"


def spread_status(spread: float, atr_average: float) -> SpreadStatus:
    """Bucket a spread by its percentage of ATR.

    Spreads of 2 cents or less are always fine.

    Examples:
        >>> spread_status(0.2, 4.0).value
        'too large'
        >>> spread_status(0.15, 4.0).value
        'quite large'
        >>> spread_status(0.02, 0.1).value
        'ok'
    """
    if spread <= 0.02 or atr_average <= 0:
        return SpreadStatus.OK
    percent = spread * 100 / atr_average
    if percent >= 5:
        return SpreadStatus.TOO_LARGE
    if percent > 3.5:
        return SpreadStatus.QUITE_LARGE
    return SpreadStatus.OK


def is_spread_too_large(snapshot: MarketSnapshot, atr_average: float, settings: EngineSettings) -> bool:
    """Any recent spread too wide to trade.

    In the first 5 minutes anything but "ok" blocks, afterwards only
    "too large" does.
    """
    if not settings.check_spread:
        return False
    spreads = snapshot.recent_spreads or (snapshot.spread,)
    for spread in spreads:
        status = spread_status(spread, atr_average)
        if snapshot.seconds_since_open > 300:
            if status == SpreadStatus.TOO_LARGE:
                return True
        elif status != SpreadStatus.OK:
            return True
    return False


# ==================== Price location ====================


def mid_range_breakout_size(snapshot: MarketSnapshot, is_long: bool, entry_price: float) -> float:
    """Half size for entries inside the day's range after 10 minutes."""
    if snapshot.seconds_since_open < MID_RANGE_AFTER_SECONDS:
        return 1
    if is_long and entry_price >= snapshot.high_of_day:
        return 1
    if not is_long and entry_price <= snapshot.low_of_day:
        return 1
    return MID_RANGE_SIZE


class VwapDistance(str, Enum):
    """Where an entry sits relative to VWAP, in units of its risk."""

    SAME_SIDE = "same side"
    NEAR = "near"
    FAR = "far"
    BLOCKED = "blocked"


def vwap_distance_status(is_long: bool, entry_price: float, stop_price: float,
                         vwap: float) -> VwapDistance:
    """Classify an entry against VWAP by distance over risk.

    Against VWAP is tolerated only when the distance is at least 2R (room
    for a 2R trade) or at most 0.25R (negligible).

    Examples:
        >>> vwap_distance_status(True, 10.0, 9.8, 10.5).value
        'far'
        >>> vwap_distance_status(True, 10.0, 9.8, 10.04).value
        'near'
        >>> vwap_distance_status(True, 10.0, 9.8, 10.2).value
        'blocked'
    """
    if (is_long and entry_price >= vwap) or (not is_long and entry_price <= vwap):
        return VwapDistance.SAME_SIDE
    risk = abs(entry_price - stop_price)
    if risk == 0:
        return VwapDistance.BLOCKED
    ratio = round(abs(entry_price - vwap) / risk, 6)
    if ratio >= VWAP_FAR_RISK_RATIO:
        return VwapDistance.FAR
    if ratio <= VWAP_NEAR_RISK_RATIO:
        return VwapDistance.NEAR
    return VwapDistance.BLOCKED


def is_against_momentum_start_price(trading_plan: TradingPlan, is_long: bool, entry_price: float) -> bool:
    start = trading_plan.momentum_start_price(is_long)
    if start <= 0:
        return False
    return entry_price < start if is_long else entry_price > start


def is_outside_tradable_area(snapshot: MarketSnapshot, trading_plan: TradingPlan, is_long: bool,
                             entry_price: float) -> bool:
    """Entry, open and the day's range all missed the tradable band.

    Without a single momentum key level there is no band and nothing is
    outside it.
    """
    key_level = trading_plan.single_momentum_level()
    if key_level is None:
        return False
    area = tradable_area(key_level, is_long, trading_plan.atr.average,
                         trading_plan.market_cap_in_millions)
    if area.contains(entry_price):
        return False
    open_price = snapshot.open_price
    if open_price is not None and area.contains(open_price):
        return False
    return not has_price_been_in_tradable_area(snapshot, area)


def no_trade_zone_reason(zones: Sequence[LevelArea], entry_price: float) -> str:
    """Reason when the entry falls inside a no-trade zone."""
    for zone in zones:
        if zone.low <= entry_price <= zone.high:
            return f"entry price {entry_price} is inside no trade zone {zone.low}-{zone.high}"
    return ""


def watch_area_reason(areas: Sequence[LevelArea], entry_price: float) -> str:
    """Reason when the entry falls strictly inside a watch area band."""
    for area in areas:
        if area.low < entry_price < area.high:
            return f"entry price {entry_price} is inside watch area {area.low}-{area.high}"
    return ""


def is_near_against_watch_level(areas: Sequence[LevelArea], is_long: bool, entry_price: float,
                                stop_price: float) -> bool:
    """A watch level sits ahead of the entry within half of its risk."""
    for area in areas:
        ahead = area.low > entry_price if is_long else area.high < entry_price
        if ahead and not is_more_than_minimum_target(is_long, area, entry_price, stop_price):
            return True
    return False


def is_against_first_five_minutes(snapshot: MarketSnapshot, is_long: bool, entry_price: float) -> bool:
    """Between minutes 5 and 10, the first five candles trend against the entry.

    Long: lower highs and the entry is below the first candle's high.
    """
    seconds = snapshot.seconds_since_open
    if not 300 < seconds < 600 or len(snapshot.candles) == 0:
        return False
    candles = snapshot.candles
    if is_long:
        return is_lower_highs(candles, 5) and entry_price < candles[0].high
    return is_higher_lows(candles, 5) and entry_price > candles[0].low


def is_reverse_of_momentum_candle(snapshot: MarketSnapshot, is_long: bool, use_market_order: bool) -> bool:
    """Market order into a forming candle of the opposite colour."""
    if not use_market_order:
        return False
    candle = snapshot.current_candle
    if candle is None:
        return False
    if is_long:
        return candle.open > candle.close
    return candle.open < candle.close


def is_daily_range_too_small(snapshot: MarketSnapshot, atr_average: float) -> bool:
    """Today's range is under 5% of the ATR average."""
    lower_bound = atr_average * MIN_DAILY_RANGE_ATR_RATIO
    daily_range = snapshot.today_range
    if daily_range < lower_bound:
        log_for(snapshot.symbol).error(
            f"risk is too small: {round(daily_range, 2)} < {lower_bound} ({MIN_DAILY_RANGE_ATR_RATIO} * {atr_average})"
        )
        return True
    return False


# ==================== Added positions ====================


def is_entry_more_than_half_daily_range(snapshot: MarketSnapshot, is_long: bool, entry_price: float) -> bool:
    """Entry already travelled half the day's range from the low (long) or high (short)."""
    daily_range = snapshot.today_range
    if daily_range == 0 or snapshot.seconds_since_open < 0:
        return False
    extreme = snapshot.low_of_day if is_long else snapshot.high_of_day
    ratio = abs(entry_price - extreme) / daily_range
    if ratio >= 0.5:
        log_for(snapshot.symbol).error(f"cannot reload when more than half ATR, ratio {ratio:.2f}")
        return True
    return False


def is_allowed_for_partial_entry(
    snapshot: MarketSnapshot,
    settings: EngineSettings,
    is_long: bool,
    quantity: int,
    entry_price: float,
    stop_price: float,
) -> bool:
    """Whether a partial (add or reload) may be submitted.

    Args:
        snapshot: Market state including position, account and entry orders.
        settings: Engine settings for the daily loss limit.
        is_long: Direction of the partial.
        quantity: Shares to add.
        entry_price: Entry of the partial.
        stop_price: Stop of the partial.

    Returns:
        False when the add would breach the daily loss limit, reload too far
        into the range, or push the position past a full size.
    """
    log = log_for(snapshot.symbol)
    if is_over_daily_max_loss_with_position(snapshot, settings):
        return False
    if is_over_daily_max_loss(snapshot.account, settings):
        log.error("checkRule: Daily max loss exceeded")
        return False

    limit = max_daily_loss_limit(snapshot.account, settings)
    new_risk = quantity * abs(entry_price - stop_price)
    existing_risk = position_risk_in_dollars(snapshot) + entry_orders_risk_in_dollars(snapshot)

    pnl = snapshot.account.realized_pnl
    if pnl < 0:
        potential_loss = -pnl + new_risk + existing_risk
        if potential_loss > limit:
            log.error(f"adding will exceed daily max loss limit to {potential_loss}")
            return False

    add_count = len(snapshot.position.added_partial_stack)
    if add_count > MAX_ADDS_BEFORE_RANGE_CHECK and is_entry_more_than_half_daily_range(
        snapshot, is_long, entry_price
    ):
        return False

    if snapshot.position.has_value:
        ratio = (existing_risk + new_risk) / limit
        if ratio > FULL_POSITION_RATIO:
            log.error(f"already full position, new ratio will be {ratio}")
            return False
    return True


# ==================== Higher timeframe ====================


def is_timing_and_entry_allowed_for_higher_timeframe(snapshot: MarketSnapshot, entry_price: float,
                                                     is_long: bool, timeframe: int) -> bool:
    """Higher timeframe entries wait for the first bucket to close.

    The entry must then break the last closed bucket's high (long) or low
    (short). One-minute entries always pass.
    """
    if timeframe <= 1:
        return True
    log = log_for(snapshot.symbol)
    if snapshot.seconds_since_open < timeframe * 60:
        log.error(f"M{timeframe} first candle not closed yet")
        return False
    buckets = snapshot.aggregate(timeframe)
    closed_buckets = snapshot.seconds_since_open // (timeframe * 60)
    if closed_buckets == 0 or len(buckets) < closed_buckets:
        return False
    last_closed = buckets[closed_buckets - 1]
    if is_long and entry_price <= last_closed.high:
        log.error(f"entry {entry_price} not above M{timeframe} high {last_closed.high}")
        return False
    if not is_long and entry_price >= last_closed.low:
        log.error(f"entry {entry_price} not below M{timeframe} low {last_closed.low}")
        return False
    return True
