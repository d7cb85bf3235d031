"""Configuration module for the momentum decision engine."""

from .loader import (
    deep_merge,
    get_default_config,
    load_config,
    load_trading_plan,
    load_yaml,
    resolved_config_hash,
    save_config,
)
from .schema import (
    DEFAULT_MINIMUM_DAILY_RANGES,
    DEFAULT_MINIMUM_RRR,
    AllTimeHighVwapContinuationPlan,
    Analysis,
    AverageTrueRange,
    BasePlan,
    BreakoutTradebookConfig,
    EngineConfig,
    EngineSettings,
    ExitTargets,
    ExitTargetsSet,
    GapAndCrapPlan,
    GapAndGoPlan,
    KeyLevel,
    LevelArea,
    LevelMomentumPlan,
    PlanConfigs,
    PremarketVolumeScore,
    RedToGreenPlan,
    ReversalPlan,
    SetupQuality,
    SingleDirectionPlans,
    TradebookToggle,
    TradebooksConfig,
    TradingPlan,
    TradingTiming,
    VwapBounceFailConfig,
    VwapScalpPlan,
)

__all__ = [
    # Loader
    "deep_merge",
    "get_default_config",
    "load_config",
    "load_trading_plan",
    "load_yaml",
    "resolved_config_hash",
    "save_config",
    # Plans
    "AllTimeHighVwapContinuationPlan",
    "Analysis",
    "AverageTrueRange",
    "BasePlan",
    "ExitTargets",
    "ExitTargetsSet",
    "GapAndCrapPlan",
    "GapAndGoPlan",
    "KeyLevel",
    "LevelArea",
    "LevelMomentumPlan",
    "PlanConfigs",
    "PremarketVolumeScore",
    "RedToGreenPlan",
    "ReversalPlan",
    "SetupQuality",
    "SingleDirectionPlans",
    "TradingPlan",
    "TradingTiming",
    "VwapScalpPlan",
    "DEFAULT_MINIMUM_RRR",
    "DEFAULT_MINIMUM_DAILY_RANGES",
    # Tradebook toggles
    "BreakoutTradebookConfig",
    "TradebookToggle",
    "TradebooksConfig",
    "VwapBounceFailConfig",
    # Engine
    "EngineConfig",
    "EngineSettings",
]
