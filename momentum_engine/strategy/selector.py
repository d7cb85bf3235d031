"""Strategy selector: which tradebooks may run for the session.

The ordering of the open price, the VWAP printed just before the open and the
single momentum key level decides the eligible tradebooks per direction. Each
section of ``TradingPlan.tradebooks_config`` is named after the ordering it
governs, from highest to lowest price.
"""

from enum import Enum
from typing import List, Optional, Tuple

from momentum_engine.config.schema import TradingPlan
from momentum_engine.market.snapshot import MarketSnapshot
from momentum_engine.utils import ids
from momentum_engine.utils.logging import log_for


class PriceOrdering(str, Enum):
    """Ordering of key level, open and VWAP, highest first."""

    TIE = "tie"
    OPEN_LEVEL_VWAP = "open_level_vwap"
    LEVEL_OPEN_VWAP = "level_open_vwap"
    LEVEL_VWAP_OPEN = "level_vwap_open"
    OPEN_VWAP_LEVEL = "open_vwap_level"
    VWAP_OPEN_LEVEL = "vwap_open_level"
    VWAP_LEVEL_OPEN = "vwap_level_open"


def classify_ordering(open_price: float, vwap: float, key_level: float) -> PriceOrdering:
    """Place the open against the key level and VWAP.

    Boundaries follow the selection table: an open equal to the key level
    counts as above it when the level is above VWAP and as below it when the
    level is below VWAP; an open equal to VWAP counts as below VWAP when the
    level is above it and as above VWAP otherwise.

    Examples:
        >>> classify_ordering(101.0, 99.0, 100.0).value
        'open_level_vwap'
        >>> classify_ordering(99.5, 99.0, 100.0).value
        'level_open_vwap'
        >>> classify_ordering(98.0, 100.0, 100.0).value
        'tie'
    """
    if key_level == vwap:
        return PriceOrdering.TIE
    if key_level > vwap:
        if open_price >= key_level:
            return PriceOrdering.OPEN_LEVEL_VWAP
        if open_price > vwap:
            return PriceOrdering.LEVEL_OPEN_VWAP
        return PriceOrdering.LEVEL_VWAP_OPEN
    if open_price >= vwap:
        return PriceOrdering.OPEN_VWAP_LEVEL
    if open_price > key_level:
        return PriceOrdering.VWAP_OPEN_LEVEL
    return PriceOrdering.VWAP_LEVEL_OPEN


def selection_prices(snapshot: MarketSnapshot) -> Tuple[float, float]:
    """Open and VWAP to classify with.

    Before the open the current price and current VWAP stand in; after the
    open the real open (when printed) and the last pre-open VWAP are used.
    """
    open_price = snapshot.current_price
    vwap = snapshot.current_vwap
    if snapshot.seconds_since_open > 0:
        if snapshot.open_price and snapshot.open_price > 0:
            open_price = snapshot.open_price
        vwap = snapshot.last_vwap_before_open
    return open_price, vwap


def _tie_selection(open_price: float, key_level: float) -> Tuple[List[str], List[str]]:
    if open_price > key_level:
        return [ids.OPEN_DRIVE_LONG], [ids.BELOW_WATER_BREAKDOWN]
    if open_price < key_level:
        return [ids.ABOVE_WATER_BREAKOUT], [ids.OPEN_DRIVE_SHORT]
    return [ids.OPEN_DRIVE_LONG], [ids.OPEN_DRIVE_SHORT]


def selected_tradebook_ids(
    plan: TradingPlan,
    ordering: PriceOrdering,
    open_price: float,
    key_level: float,
    current_vwap: float,
) -> Tuple[List[str], List[str]]:
    """Tradebook ids the ordering enables, as ``(long_ids, short_ids)``.

    Per-ordering toggles come from ``plan.tradebooks_config``. Two entries are
    dynamic: the below-water breakdown joins ``level_vwap_open`` when the key
    level is under the current VWAP, and the above-water breakout joins
    ``open_vwap_level`` when the key level is over it. Direction gating is
    left to the caller.
    """
    config = plan.tradebooks_config
    longs: List[str] = []
    shorts: List[str] = []

    if ordering == PriceOrdering.TIE:
        return _tie_selection(open_price, key_level)

    if ordering == PriceOrdering.OPEN_LEVEL_VWAP:
        section = config.open_level_vwap
        if section.long_open_drive.enabled:
            longs.append(ids.OPEN_DRIVE_LONG)
        if section.short_vwap_bounce_fail.enabled:
            shorts.append(ids.SHORT_VWAP_BOUNCE_FAILED)

    elif ordering == PriceOrdering.LEVEL_OPEN_VWAP:
        section = config.level_open_vwap
        if section.long_above_water_breakout.enabled:
            longs.append(ids.ABOVE_WATER_BREAKOUT)
        if section.long_vwap_scalp.enabled:
            longs.append(ids.VWAP_SCALP_LONG)
        if section.short_vwap_bounce_fail.enabled:
            shorts.append(ids.SHORT_VWAP_BOUNCE_FAILED)
        if section.short_open_flush.enabled:
            shorts.append(ids.OPEN_FLUSH_SHORT)

    elif ordering == PriceOrdering.LEVEL_VWAP_OPEN:
        section = config.level_vwap_open
        if section.long_emerging_strength_breakout.enabled:
            longs.append(ids.EMERGING_STRENGTH_BREAKOUT_LONG)
        if section.short_vwap_continuation.enabled:
            shorts.append(ids.VWAP_CONTINUATION_SHORT)
        if key_level < current_vwap and section.short_below_water_breakdown.enabled:
            shorts.append(ids.BELOW_WATER_BREAKDOWN)

    elif ordering == PriceOrdering.OPEN_VWAP_LEVEL:
        section = config.open_vwap_level
        if section.long_vwap_continuation.enabled:
            longs.append(ids.VWAP_CONTINUATION_LONG)
        if key_level > current_vwap and section.long_above_water_breakout.enabled:
            longs.append(ids.ABOVE_WATER_BREAKOUT)
        if section.short_emerging_weakness_breakdown.enabled:
            shorts.append(ids.EMERGING_WEAKNESS_BREAKDOWN_SHORT)

    elif ordering == PriceOrdering.VWAP_OPEN_LEVEL:
        section = config.vwap_open_level
        if section.long_vwap_pushdown_fail.enabled:
            longs.append(ids.LONG_VWAP_PUSHDOWN_FAILED)
        if section.short_below_water_breakdown.enabled:
            shorts.append(ids.BELOW_WATER_BREAKDOWN)

    elif ordering == PriceOrdering.VWAP_LEVEL_OPEN:
        section = config.vwap_level_open
        if section.long_vwap_pushdown_fail.enabled:
            longs.append(ids.LONG_VWAP_PUSHDOWN_FAILED)
        if section.short_open_drive.enabled:
            shorts.append(ids.OPEN_DRIVE_SHORT)

    return longs, shorts


def update_tradebooks_status(registry, plan: TradingPlan, snapshot: MarketSnapshot) -> Optional[PriceOrdering]:
    """Re-run the selection against ``registry``.

    Every tradebook is first reset (default-enabled ones on, the rest off),
    then the ordering's set is enabled for each direction the plan allows.

    Args:
        registry: TradebookRegistry of the symbol.
        plan: Trading plan of the symbol.
        snapshot: Current market snapshot.

    Returns:
        The ordering used, or None when the plan has no single momentum level.
    """
    log = log_for(plan.symbol, "selector")
    key_level_area = plan.single_momentum_level()
    if key_level_area is None:
        log.debug("no single momentum level, selection skipped")
        return None
    key_level = key_level_area.high

    registry.reset_to_defaults()

    open_price, vwap = selection_prices(snapshot)
    ath_plan = plan.long.all_time_high_vwap_continuation_plan
    if ath_plan is not None:
        ath = registry.get(ids.ATH_VWAP_CONTINUATION)
        if ath is not None and (open_price < vwap or open_price < ath_plan.all_time_high):
            ath.disable()
            log.info(
                f"disabling ATH VWAP Cont: open {open_price} is below VWAP {vwap} "
                f"or ATH {ath_plan.all_time_high}"
            )

    ordering = classify_ordering(open_price, vwap, key_level)
    longs, shorts = selected_tradebook_ids(plan, ordering, open_price, key_level, snapshot.current_vwap)
    enabled = []
    for is_enabled, tradebook_ids in ((plan.long.enabled, longs), (plan.short.enabled, shorts)):
        if not is_enabled:
            continue
        for tradebook_id in tradebook_ids:
            tradebook = registry.get(tradebook_id)
            if tradebook is not None:
                tradebook.enable()
                tradebook.update_config(plan.tradebooks_config)
                enabled.append(tradebook_id)
    log.info(f"ordering {ordering.value}, enabled {enabled}")
    return ordering
