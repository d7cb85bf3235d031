"""Session lifecycle and the engine facade.

Includes:
- Session context (plans, registries, collaborators, rollover)
- Recheck scheduler with cancellation tokens
- Submission guard against duplicate entries
- Red to green algorithm
- Key level cross callouts
- Decision engine facade
"""

from .algos import ReversalEntryAlgo
from .context import SessionContext
from .engine import DecisionEngine
from .guard import GuardedOrderGateway, SubmissionGuard, SubmissionKey
from .level_alerts import LevelCrossTracker, momentum_levels
from .scheduler import CancellationToken, RecheckScheduler

__all__ = [
    # Lifecycle
    "DecisionEngine",
    "SessionContext",
    # Scheduling
    "CancellationToken",
    "RecheckScheduler",
    "ReversalEntryAlgo",
    # Re-entrancy
    "GuardedOrderGateway",
    "SubmissionGuard",
    "SubmissionKey",
    # Callouts
    "LevelCrossTracker",
    "momentum_levels",
]
