"""Market snapshots, candles and collaborator contracts."""

from .candles import Candle, aggregate_candles, candles_to_frame, frame_to_candles
from .frames import session_vwap, snapshot_from_bars
from .protocols import (
    AlertSink,
    CandleEntryPriceService,
    EntryPriceService,
    LoggingAlertSink,
    MarketDataProvider,
    OrderGateway,
)
from .snapshot import (
    AccountSnapshot,
    EntryOrder,
    ExitPair,
    MarketSnapshot,
    OrderModel,
    OrderType,
    PositionSnapshot,
)

__all__ = [
    # Candles
    "Candle",
    "aggregate_candles",
    "candles_to_frame",
    "frame_to_candles",
    # Snapshots
    "AccountSnapshot",
    "EntryOrder",
    "ExitPair",
    "MarketSnapshot",
    "OrderModel",
    "OrderType",
    "PositionSnapshot",
    "session_vwap",
    "snapshot_from_bars",
    # Collaborators
    "AlertSink",
    "CandleEntryPriceService",
    "EntryPriceService",
    "LoggingAlertSink",
    "MarketDataProvider",
    "OrderGateway",
]
