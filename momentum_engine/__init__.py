"""Momentum Decision Engine.

Intraday momentum trading decisions: strategy selection from the opening
prices, per-strategy tradebook state machines, entry admission with size
fractions, and first-match exit adjudication.
"""

from momentum_engine.config import EngineConfig, TradingPlan, load_config
from momentum_engine.session import DecisionEngine
from momentum_engine.utils import setup_logging

__version__ = "0.1.0"

__all__ = [
    "DecisionEngine",
    "EngineConfig",
    "TradingPlan",
    "load_config",
    "setup_logging",
    "__version__",
]
