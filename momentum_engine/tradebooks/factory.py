"""Build the tradebooks a trading plan calls for."""

from enum import Enum
from typing import Callable, Dict, List, Optional

from momentum_engine.config.schema import LevelArea, SingleDirectionPlans, TradingPlan
from momentum_engine.market.protocols import AlertSink
from momentum_engine.tradebooks.all_time_high import AllTimeHighVwapContinuation
from momentum_engine.tradebooks.base import Tradebook
from momentum_engine.tradebooks.breakout import AboveWaterBreakout, EmergingStrengthBreakout
from momentum_engine.tradebooks.gap import GapAndCrap, GapAndGo
from momentum_engine.tradebooks.open_drive import OpenDrive
from momentum_engine.tradebooks.open_flush import OpenFlush
from momentum_engine.tradebooks.registry import TradebookRegistry
from momentum_engine.tradebooks.reversal import BreakoutReversal
from momentum_engine.tradebooks.vwap_continuation import VwapContinuation
from momentum_engine.tradebooks.vwap_continuation_failed import VwapContinuationFailed
from momentum_engine.tradebooks.vwap_scalp import VwapScalp
from momentum_engine.utils.logging import log_for


class StrategyKind(str, Enum):
    """Every tradebook variant the engine knows."""

    OPEN_DRIVE = "open_drive"
    OPEN_FLUSH = "open_flush"
    ABOVE_WATER_BREAKOUT = "above_water_breakout"
    EMERGING_STRENGTH_BREAKOUT = "emerging_strength_breakout"
    VWAP_CONTINUATION = "vwap_continuation"
    VWAP_CONTINUATION_FAILED = "vwap_continuation_failed"
    VWAP_SCALP = "vwap_scalp"
    BREAKOUT_REVERSAL = "breakout_reversal"
    GAP_AND_GO = "gap_and_go"
    GAP_AND_CRAP = "gap_and_crap"
    ALL_TIME_HIGH_VWAP_CONTINUATION = "all_time_high_vwap_continuation"


Builder = Callable[[str, bool, SingleDirectionPlans, Optional[LevelArea], Optional[AlertSink]], Optional[Tradebook]]


def _level_builder(cls) -> Builder:
    def build(symbol, is_long, plans, key_level, alerts):
        if key_level is None or plans.level_momentum_plan is None:
            return None
        return cls(symbol, is_long, key_level, plans.level_momentum_plan, alerts)
    return build


def _plan_builder(cls, attribute: str) -> Builder:
    def build(symbol, is_long, plans, key_level, alerts):
        plan = getattr(plans, attribute)
        if plan is None:
            return None
        return cls(symbol, is_long, plan, alerts)
    return build


BUILDERS: Dict[StrategyKind, Builder] = {
    StrategyKind.OPEN_DRIVE: _level_builder(OpenDrive),
    StrategyKind.OPEN_FLUSH: _level_builder(OpenFlush),
    StrategyKind.ABOVE_WATER_BREAKOUT: _level_builder(AboveWaterBreakout),
    StrategyKind.EMERGING_STRENGTH_BREAKOUT: _level_builder(EmergingStrengthBreakout),
    StrategyKind.VWAP_CONTINUATION: _level_builder(VwapContinuation),
    StrategyKind.VWAP_CONTINUATION_FAILED: _level_builder(VwapContinuationFailed),
    StrategyKind.VWAP_SCALP: _plan_builder(VwapScalp, "vwap_scalp_plan"),
    StrategyKind.BREAKOUT_REVERSAL: _plan_builder(BreakoutReversal, "reversal_plan"),
    StrategyKind.GAP_AND_GO: _plan_builder(GapAndGo, "gap_and_go_plan"),
    StrategyKind.GAP_AND_CRAP: _plan_builder(GapAndCrap, "gap_and_crap_plan"),
    StrategyKind.ALL_TIME_HIGH_VWAP_CONTINUATION: _plan_builder(
        AllTimeHighVwapContinuation, "all_time_high_vwap_continuation_plan"
    ),
}

LONG_KINDS = [
    StrategyKind.OPEN_DRIVE,
    StrategyKind.ABOVE_WATER_BREAKOUT,
    StrategyKind.EMERGING_STRENGTH_BREAKOUT,
    StrategyKind.VWAP_CONTINUATION,
    StrategyKind.VWAP_CONTINUATION_FAILED,
    StrategyKind.VWAP_SCALP,
    StrategyKind.BREAKOUT_REVERSAL,
    StrategyKind.ALL_TIME_HIGH_VWAP_CONTINUATION,
    StrategyKind.GAP_AND_GO,
]
SHORT_KINDS = [
    StrategyKind.OPEN_DRIVE,
    StrategyKind.ABOVE_WATER_BREAKOUT,
    StrategyKind.EMERGING_STRENGTH_BREAKOUT,
    StrategyKind.VWAP_CONTINUATION,
    StrategyKind.VWAP_CONTINUATION_FAILED,
    StrategyKind.OPEN_FLUSH,
    StrategyKind.VWAP_SCALP,
    StrategyKind.BREAKOUT_REVERSAL,
    StrategyKind.GAP_AND_CRAP,
]


def create_tradebook(
    kind: StrategyKind,
    symbol: str,
    is_long: bool,
    plans: SingleDirectionPlans,
    key_level: Optional[LevelArea] = None,
    alerts: Optional[AlertSink] = None,
) -> Optional[Tradebook]:
    """Build one tradebook, or None when its plan (or key level) is missing.

    Raises:
        ValueError: If ``kind`` has no builder, or the variant does not
            trade ``is_long``'s direction.
    """
    builder = BUILDERS.get(kind)
    if builder is None:
        raise ValueError(f"unknown strategy kind: {kind}")
    return builder(symbol, is_long, plans, key_level, alerts)


def create_all_tradebooks(plan: TradingPlan, alerts: Optional[AlertSink] = None) -> List[Tradebook]:
    """Every tradebook the plan has a plan section for, longs first."""
    log = log_for(plan.symbol, "factory")
    key_level = plan.single_momentum_level()
    if key_level is None:
        log.info("no single momentum level, key level tradebooks skipped")

    tradebooks: List[Tradebook] = []
    for is_long, plans, kinds in ((True, plan.long, LONG_KINDS), (False, plan.short, SHORT_KINDS)):
        for kind in kinds:
            tradebook = create_tradebook(kind, plan.symbol, is_long, plans, key_level, alerts)
            if tradebook is not None:
                tradebooks.append(tradebook)
    log.debug(f"created {len(tradebooks)} tradebooks")
    return tradebooks


def create_registry(plan: TradingPlan, alerts: Optional[AlertSink] = None) -> TradebookRegistry:
    """Registry holding ``create_all_tradebooks(plan)`` with defaults applied."""
    registry = TradebookRegistry(plan.symbol)
    for tradebook in create_all_tradebooks(plan, alerts):
        registry.register(tradebook)
    registry.reset_to_defaults()
    return registry
