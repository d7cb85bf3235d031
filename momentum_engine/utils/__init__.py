"""Utility functions."""

from .ids import generate_log_tag, generate_session_id, tradebook_id
from .logging import log_for, setup_logging
from .timezones import localize_time, market_open_for, seconds_since_market_open

__all__ = [
    "generate_log_tag",
    "generate_session_id",
    "tradebook_id",
    "log_for",
    "setup_logging",
    "localize_time",
    "market_open_for",
    "seconds_since_market_open",
]
