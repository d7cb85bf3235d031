"""ID generation utilities."""

from datetime import datetime, timezone
from uuid import uuid4


def generate_session_id() -> str:
    """Generate unique trading session ID (UTC timestamp + short UUID)."""
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    uid = str(uuid4())[:8]
    return f"{timestamp}_{uid}"


def generate_log_tag(symbol: str, is_long: bool, source: str) -> str:
    """Short tag identifying who produced a log line.

    Examples:
        >>> generate_log_tag("AAPL", True, "red2green")
        'AAPL-long-red2green'
    """
    direction = "long" if is_long else "short"
    return f"{symbol}-{direction}-{source}"


def tradebook_id(base: str, is_long: bool) -> str:
    """Join a strategy base name and direction.

    Examples:
        >>> tradebook_id("openDrive", False)
        'openDriveShort'
    """
    return f"{base}{'Long' if is_long else 'Short'}"


# ==================== Tradebook ids ====================

OPEN_DRIVE_LONG = tradebook_id("openDrive", True)
OPEN_DRIVE_SHORT = tradebook_id("openDrive", False)
OPEN_FLUSH_LONG = tradebook_id("openFlush", True)
OPEN_FLUSH_SHORT = tradebook_id("openFlush", False)
ABOVE_WATER_BREAKOUT = "aboveWaterBreakout"
BELOW_WATER_BREAKDOWN = "belowWaterBreakdown"
EMERGING_STRENGTH_BREAKOUT_LONG = "EmergingStrengthBreakoutLong"
EMERGING_WEAKNESS_BREAKDOWN_SHORT = "EmergingWeaknessBreakdownShort"
VWAP_CONTINUATION_LONG = tradebook_id("VwapContinuation", True)
VWAP_CONTINUATION_SHORT = tradebook_id("VwapContinuation", False)
LONG_VWAP_PUSHDOWN_FAILED = "LongVwapPushdownFailed"
SHORT_VWAP_BOUNCE_FAILED = "ShortVwapBounceFailed"
VWAP_SCALP_LONG = tradebook_id("VwapScalp", True)
VWAP_SCALP_SHORT = tradebook_id("VwapScalp", False)
REVERSAL_LONG = tradebook_id("Reversal", True)
REVERSAL_SHORT = tradebook_id("Reversal", False)
GAP_AND_GO_LONG = "GapAndGoLong"
GAP_AND_CRAP_SHORT = "GapAndCrapShort"
ATH_VWAP_CONTINUATION = "ATHVwapCont"
RED_TO_GREEN_LONG = tradebook_id("RedToGreen", True)
RED_TO_GREEN_SHORT = tradebook_id("RedToGreen", False)
