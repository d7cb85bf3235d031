"""Tradebooks: one strategy variant per symbol and direction.

Includes:
- Base tradebook (state, entry submission, exit predicates)
- Key level variants (open drive, open flush, breakouts, VWAP continuation)
- Plan driven variants (VWAP scalp, reversal, gaps, all-time high)
- Registry and factory
"""

from .all_time_high import AllTimeHighVwapContinuation
from .base import (
    DisplayLevel,
    EntryParameters,
    SingleKeyLevelTradebook,
    Tradebook,
    TradebookContext,
    TradeManagementInstructions,
)
from .breakout import AboveWaterBreakout, BaseBreakoutTradebook, EmergingStrengthBreakout
from .factory import StrategyKind, create_all_tradebooks, create_registry, create_tradebook
from .gap import GapAndCrap, GapAndGo
from .open_drive import OpenDrive
from .open_flush import OpenFlush
from .registry import TradebookRegistry
from .reversal import BreakoutReversal
from .states import TradebookState, describe_state
from .vwap_continuation import VwapContinuation
from .vwap_continuation_failed import VwapContinuationFailed
from .vwap_scalp import VwapScalp

__all__ = [
    # Base
    "DisplayLevel",
    "EntryParameters",
    "SingleKeyLevelTradebook",
    "Tradebook",
    "TradebookContext",
    "TradeManagementInstructions",
    "TradebookState",
    "describe_state",
    # Key level variants
    "AboveWaterBreakout",
    "BaseBreakoutTradebook",
    "EmergingStrengthBreakout",
    "OpenDrive",
    "OpenFlush",
    "VwapContinuation",
    "VwapContinuationFailed",
    # Plan driven variants
    "AllTimeHighVwapContinuation",
    "BreakoutReversal",
    "GapAndCrap",
    "GapAndGo",
    "VwapScalp",
    # Registry
    "StrategyKind",
    "TradebookRegistry",
    "create_all_tradebooks",
    "create_registry",
    "create_tradebook",
]
