"""Pydantic configuration schemas for trading plans and engine settings.

A trading plan is authored once per symbol per session and is read-only to the
decision engine afterwards. Cross-field rules are validated here so the rest of
the engine can assume a well-formed plan.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class SetupQuality(str, Enum):
    """Expected holding horizon of a setup."""

    UNKNOWN = "Unknown"
    SCALP = "Scalp"
    MOVE_2_MOVE = "Move2Move"
    HIGHER_TIME_FRAME_TREND = "HigherTimeFrameTrend"
    HOLD_TO_DAY_CLOSE = "HoldToDayClose"
    SWING_HOLD = "SwingHold"


class PremarketVolumeScore(int, Enum):
    """Premarket volume relative to a normal day."""

    ZERO_LOW_OR_NORMAL = 0
    ONE_HIGHER_THAN_NORMAL = 1
    TWO_EXTREMELY_HIGH = 2
    UNKNOWN = -1


class LevelArea(BaseModel):
    """Price band. ``high == low`` for a single pivot price."""

    high: float = Field(..., ge=0, description="Upper bound of the band")
    low: float = Field(..., ge=0, description="Lower bound of the band")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_band(self) -> "LevelArea":
        """Ensure the band is not inverted."""
        if self.low > self.high:
            raise ValueError(f"low ({self.low}) must be <= high ({self.high})")
        return self


# Key levels share the price band shape
KeyLevel = LevelArea


DEFAULT_MINIMUM_RRR = [0.85, 0.85, 0.9, 1.5, 1.8, 1.8, 1.8, 1.8, 2.4, 2.8]
DEFAULT_MINIMUM_DAILY_RANGES = [0.4, 0.4, 0.45, 0.7, 0.75, 0.9, 0.9, 0.9, 0.9, 0.9]


class ExitTargetsSet(BaseModel):
    """Per-slot target ladders.

    Index ``i`` of each ladder belongs to partial slot ``i``. A price level of
    zero means the slot has no fixed price target.
    """

    price_levels: List[float] = Field(default_factory=lambda: [0.0] * 10)
    rrr: List[float] = Field(default_factory=lambda: list(DEFAULT_MINIMUM_RRR))
    daily_ranges: List[float] = Field(default_factory=lambda: list(DEFAULT_MINIMUM_DAILY_RANGES))

    @field_validator("rrr", "daily_ranges")
    @classmethod
    def validate_non_negative(cls, v: List[float]) -> List[float]:
        """Ladder ratios cannot be negative."""
        if any(x < 0 for x in v):
            raise ValueError(f"Ladder ratios must be >= 0, got {v}")
        return v


class ExitTargets(BaseModel):
    """Exit target sets and trailing allowances for a plan."""

    initial_targets: ExitTargetsSet = Field(default_factory=ExitTargetsSet)
    minimum_targets: Optional[ExitTargetsSet] = Field(
        None, description="Floor for moving targets closer, defaults apply when unset"
    )
    trail5_count: int = Field(10, ge=0, description="Slots allowed to trail on 5-minute candles")
    trail15_count: int = Field(10, ge=0, description="Slots allowed to trail on 15-minute candles")


class AverageTrueRange(BaseModel):
    """Daily ATR and the multipliers derived from it."""

    average: float = Field(..., gt=0, description="Baseline daily range estimate")
    multiplier: float = Field(1.0, ge=0, description="Today's expected range multiple")
    minimum_multiplier: float = Field(0.0, ge=0, description="Profit floor as ATR multiple")
    max_risk: float = Field(0.0, ge=0, description="Maximum risk per share, 0 disables")
    max_quantity: int = Field(0, ge=0, description="Maximum share quantity, 0 disables")


class PlanConfigs(BaseModel):
    """Behaviour flags shared by all plan types."""

    size: float = Field(0.0, ge=0, le=1.0, description="Risk multiplier override, 0 uses default")
    sizing_count: int = Field(10, ge=1, description="Number of partial slots to size for")
    defer_trading_seconds: int = Field(0, ge=0)
    stop_trading_after_seconds: int = Field(0, ge=0)
    require_reversal: bool = False
    always_allow_flatten: bool = False
    always_allow_move_stop: bool = False
    allow_first_few_exits_count: int = Field(0, ge=0)
    setup_quality: SetupQuality = SetupQuality.UNKNOWN


class BasePlan(BaseModel):
    """Configuration common to every strategy plan."""

    targets: ExitTargets = Field(default_factory=ExitTargets)
    plan_configs: PlanConfigs = Field(default_factory=PlanConfigs)
    plan_type: Optional[str] = None
    timeframe: int = Field(1, ge=1, description="Candle timeframe in minutes")
    default_risk_level: Optional[float] = None


class LevelMomentumPlan(BasePlan):
    """Momentum through the single key level."""

    enable_auto_trigger: bool = False
    check_open_zone: bool = Field(
        True, description="Apply open-zone momentum checks against the key level"
    )


class ReversalPlan(BasePlan):
    """Reversal off a key level."""

    key_level: float = Field(..., gt=0)
    require_level_touch: bool = False


class VwapScalpPlan(BasePlan):
    """Scalp toward VWAP from an extended open."""

    threshold: float = 0.0
    original_key_level: float = 0.0
    strong_reason_to_use_this_level: str = ""
    max_entry: float = Field(0.0, ge=0, description="Worst acceptable entry, 0 disables")


class GapAndGoPlan(BasePlan):
    """Continuation of a gap up."""

    min_daily_support: float = 0.0


class GapAndCrapPlan(BasePlan):
    """Failure of a gap up, traded short."""

    resistance: float = 0.0


class AllTimeHighVwapContinuationPlan(BasePlan):
    """VWAP continuation above the all time high."""

    all_time_high: float = Field(..., gt=0)


class RedToGreenPlan(BasePlan):
    """Automated reversal entry in the first minute."""

    strict_mode: bool = False
    consider_current_candle_after_one_minute: bool = False


class TradebookToggle(BaseModel):
    """Enable flag for one tradebook under one price ordering."""

    enabled: bool = True


class BreakoutTradebookConfig(TradebookToggle):
    """Breakout tradebook toggle with close requirements."""

    wait_for_close: bool = False
    allow_close_within: bool = False


class VwapBounceFailConfig(TradebookToggle):
    """VWAP bounce/pushdown failure toggle."""

    wait_for_close: bool = False


class OpenLevelVwapConfig(BaseModel):
    """Open at or above key level, key level above VWAP."""

    long_open_drive: TradebookToggle = Field(default_factory=TradebookToggle)
    short_vwap_bounce_fail: VwapBounceFailConfig = Field(default_factory=VwapBounceFailConfig)


class LevelOpenVwapConfig(BaseModel):
    """Key level above open, open above VWAP."""

    long_above_water_breakout: BreakoutTradebookConfig = Field(
        default_factory=BreakoutTradebookConfig
    )
    long_vwap_scalp: TradebookToggle = Field(default_factory=TradebookToggle)
    short_vwap_bounce_fail: VwapBounceFailConfig = Field(default_factory=VwapBounceFailConfig)
    short_open_flush: TradebookToggle = Field(default_factory=TradebookToggle)


class LevelVwapOpenConfig(BaseModel):
    """Key level above VWAP, VWAP at or above open."""

    long_emerging_strength_breakout: BreakoutTradebookConfig = Field(
        default_factory=BreakoutTradebookConfig
    )
    short_vwap_continuation: TradebookToggle = Field(default_factory=TradebookToggle)
    short_below_water_breakdown: BreakoutTradebookConfig = Field(
        default_factory=BreakoutTradebookConfig
    )


class OpenVwapLevelConfig(BaseModel):
    """Open at or above VWAP, VWAP above key level."""

    long_vwap_continuation: TradebookToggle = Field(default_factory=TradebookToggle)
    long_above_water_breakout: BreakoutTradebookConfig = Field(
        default_factory=BreakoutTradebookConfig
    )
    short_emerging_weakness_breakdown: BreakoutTradebookConfig = Field(
        default_factory=BreakoutTradebookConfig
    )


class VwapOpenLevelConfig(BaseModel):
    """VWAP above open, open above key level."""

    long_vwap_pushdown_fail: VwapBounceFailConfig = Field(default_factory=VwapBounceFailConfig)
    short_below_water_breakdown: BreakoutTradebookConfig = Field(
        default_factory=BreakoutTradebookConfig
    )


class VwapLevelOpenConfig(BaseModel):
    """VWAP above key level, key level at or above open."""

    long_vwap_pushdown_fail: VwapBounceFailConfig = Field(default_factory=VwapBounceFailConfig)
    short_open_drive: TradebookToggle = Field(default_factory=TradebookToggle)


class TradebooksConfig(BaseModel):
    """Per-ordering tradebook toggles.

    Section names spell the ordering from highest to lowest price, e.g.
    ``level_open_vwap`` means key level > open > VWAP. The tie case (key level
    equal to VWAP) has no toggles and is gated by the direction plans only.
    """

    open_level_vwap: OpenLevelVwapConfig = Field(default_factory=OpenLevelVwapConfig)
    level_open_vwap: LevelOpenVwapConfig = Field(default_factory=LevelOpenVwapConfig)
    level_vwap_open: LevelVwapOpenConfig = Field(default_factory=LevelVwapOpenConfig)
    open_vwap_level: OpenVwapLevelConfig = Field(default_factory=OpenVwapLevelConfig)
    vwap_open_level: VwapOpenLevelConfig = Field(default_factory=VwapOpenLevelConfig)
    vwap_level_open: VwapLevelOpenConfig = Field(default_factory=VwapLevelOpenConfig)


class SingleDirectionPlans(BaseModel):
    """All plans for one direction of one symbol."""

    enabled: bool = True
    level_momentum_plan: Optional[LevelMomentumPlan] = None
    reversal_plan: Optional[ReversalPlan] = None
    vwap_scalp_plan: Optional[VwapScalpPlan] = None
    all_time_high_vwap_continuation_plan: Optional[AllTimeHighVwapContinuationPlan] = None
    gap_and_go_plan: Optional[GapAndGoPlan] = None
    gap_and_crap_plan: Optional[GapAndCrapPlan] = None
    red_to_green_plan: Optional[RedToGreenPlan] = None


class Analysis(BaseModel):
    """Premarket analysis for a symbol."""

    defer_trading_seconds: int = Field(0, ge=0)
    stop_trading_after_seconds: int = Field(0, ge=0)
    premarket_volume_score: PremarketVolumeScore = PremarketVolumeScore.UNKNOWN
    single_momentum_key_levels: List[LevelArea] = Field(default_factory=list)
    dual_momentum_key_levels: List[LevelArea] = Field(default_factory=list)
    watch_areas: List[LevelArea] = Field(default_factory=list)
    no_trade_zones: List[LevelArea] = Field(default_factory=list)
    momentum_start_for_long: float = Field(0.0, ge=0, description="Longs below this are vetoed, 0 disables")
    momentum_start_for_short: float = Field(0.0, ge=0, description="Shorts above this are vetoed, 0 disables")

    @field_validator("dual_momentum_key_levels")
    @classmethod
    def validate_dual_levels(cls, v: List[LevelArea]) -> List[LevelArea]:
        """Dual momentum levels come as a pair or not at all."""
        if len(v) not in (0, 2):
            raise ValueError(f"dual_momentum_key_levels needs exactly 2 levels, got {len(v)}")
        return v


class TradingTiming(BaseModel):
    """Resolved defer/stop window in seconds since open."""

    defer_trading_seconds: int = 0
    stop_trading_after_seconds: int = 0


class TradingPlan(BaseModel):
    """Per-symbol trading plan for one session."""

    symbol: str = Field(..., description="Ticker")
    analysis: Analysis = Field(default_factory=Analysis)
    atr: AverageTrueRange
    market_cap_in_millions: float = Field(0.0, ge=0)
    default_targets: ExitTargets = Field(default_factory=ExitTargets)
    default_configs: PlanConfigs = Field(default_factory=PlanConfigs)
    tradebooks_config: TradebooksConfig = Field(default_factory=TradebooksConfig)
    long: SingleDirectionPlans = Field(default_factory=SingleDirectionPlans)
    short: SingleDirectionPlans = Field(default_factory=SingleDirectionPlans)

    @field_validator("symbol")
    @classmethod
    def validate_symbol_format(cls, v: str) -> str:
        """Ensure symbols are uppercase and non-empty."""
        if not v or not v.strip():
            raise ValueError("Symbol cannot be empty")
        return v.upper().strip()

    def has_single_momentum_level(self) -> bool:
        return len(self.analysis.single_momentum_key_levels) > 0

    def single_momentum_level(self) -> Optional[LevelArea]:
        """First single momentum key level, if any."""
        if not self.has_single_momentum_level():
            return None
        return self.analysis.single_momentum_key_levels[0]

    def has_dual_momentum_levels(self) -> bool:
        return len(self.analysis.dual_momentum_key_levels) == 2

    def dual_momentum_levels(self) -> Optional[LevelArea]:
        """Collapse the two dual levels into one band (upper high, lower low)."""
        if not self.has_dual_momentum_levels():
            return None
        a, b = self.analysis.dual_momentum_key_levels
        return LevelArea(high=max(a.high, b.high), low=min(a.low, b.low))

    def direction_plans(self, is_long: bool) -> SingleDirectionPlans:
        return self.long if is_long else self.short

    def momentum_start_price(self, is_long: bool) -> float:
        if is_long:
            return self.analysis.momentum_start_for_long
        return self.analysis.momentum_start_for_short

    def trading_timing(self, base_plan: Optional[BasePlan] = None) -> TradingTiming:
        """Resolve the defer/stop window.

        Plan-level values override the analysis values when non-zero.

        Args:
            base_plan: Strategy plan whose configs may override the window.

        Returns:
            Resolved TradingTiming.
        """
        defer = self.analysis.defer_trading_seconds
        stop = self.analysis.stop_trading_after_seconds
        if base_plan is not None:
            if base_plan.plan_configs.defer_trading_seconds > 0:
                defer = base_plan.plan_configs.defer_trading_seconds
            if base_plan.plan_configs.stop_trading_after_seconds > 0:
                stop = base_plan.plan_configs.stop_trading_after_seconds
        return TradingTiming(defer_trading_seconds=defer, stop_trading_after_seconds=stop)


class EngineSettings(BaseModel):
    """Global engine behaviour."""

    batch_count: int = Field(10, ge=1, le=20, description="Maximum number of exit slots")
    allow_all_exits_after_seconds: int = Field(
        1800, ge=0, description="Blanket exit override after this many seconds since open"
    )
    allow_all_exits_after_hours: float = Field(
        6.0, ge=0, description="Blanket exit override near the close"
    )
    daily_loss_fallback: float = Field(5000.0, gt=0, description="Daily loss limit for small accounts")
    daily_loss_balance_threshold: float = Field(120000.0, gt=0)
    daily_loss_ratio: float = Field(0.0477, gt=0, le=1.0)
    default_risk_multiplier: float = Field(0.24, gt=0, le=1.0)
    oversized_multiple: float = Field(0.25, gt=0)
    check_spread: bool = True
    allow_tighten_stop: bool = False
    require_vwap_same_direction: bool = True
    recheck_interval_seconds: float = Field(0.4, gt=0)
    dry_run: bool = False

    @model_validator(mode="after")
    def validate_windows(self) -> "EngineSettings":
        """Blanket windows must be positive when hours is used."""
        if self.allow_all_exits_after_hours * 3600 < self.allow_all_exits_after_seconds:
            raise ValueError(
                f"allow_all_exits_after_hours ({self.allow_all_exits_after_hours}) must be later "
                f"than allow_all_exits_after_seconds ({self.allow_all_exits_after_seconds})"
            )
        return self


class EngineConfig(BaseModel):
    """Root configuration."""

    name: str = Field("momentum_engine", description="Configuration name")
    version: str = Field("1.0", description="Configuration version")
    settings: EngineSettings = Field(default_factory=EngineSettings)
    plans: Dict[str, TradingPlan] = Field(default_factory=dict)
    log_level: str = Field("INFO")
    log_to_file: bool = False

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @model_validator(mode="after")
    def validate_plan_keys(self) -> "EngineConfig":
        """Plan keys must match the plan's own symbol."""
        for key, plan in self.plans.items():
            if key.upper() != plan.symbol:
                raise ValueError(f"Plan key {key} does not match plan symbol {plan.symbol}")
        return self
