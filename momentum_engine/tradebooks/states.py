"""Tradebook states."""

from enum import Enum


class TradebookState(str, Enum):
    """Finite states shared by every tradebook.

    Breakout style tradebooks use OBSERVING, MOMENTUM, PULLBACK and FAILED.
    VWAP failure tradebooks use OBSERVING, LOST_VWAP, BOUNCE, LEG_DOWN and
    RECLAIMED_VWAP.
    """

    OBSERVING = "OBSERVING"
    MOMENTUM = "MOMENTUM"
    PULLBACK = "PULLBACK"
    FAILED = "FAILED"
    LOST_VWAP = "LOST_VWAP"
    RECLAIMED_VWAP = "RECLAIMED_VWAP"
    LEG_DOWN = "LEG_DOWN"
    BOUNCE = "BOUNCE"


STATE_DESCRIPTIONS = {
    TradebookState.OBSERVING: "observing",
    TradebookState.MOMENTUM: "momentum",
    TradebookState.PULLBACK: "pullback",
    TradebookState.FAILED: "failed",
    TradebookState.LOST_VWAP: "lose vwap",
    TradebookState.RECLAIMED_VWAP: "reclaimed vwap",
    TradebookState.LEG_DOWN: "leg down",
    TradebookState.BOUNCE: "bounce",
}


def describe_state(state: TradebookState) -> str:
    """Human readable state.

    Examples:
        >>> describe_state(TradebookState.LOST_VWAP)
        'lose vwap'
    """
    return STATE_DESCRIPTIONS.get(state, "unknown state")
