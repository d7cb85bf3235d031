"""Candle value object and timeframe aggregation."""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import pandas as pd


@dataclass(frozen=True)
class Candle:
    """One OHLCV bar.

    Attributes:
        open: Open price
        high: High price
        low: Low price
        close: Close price
        volume: Shares traded
        minute: Minutes since market open of the bar start (negative premarket)
    """

    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    minute: Optional[int] = None

    def __post_init__(self):
        """Validate candle."""
        if self.high < self.low:
            raise ValueError(f"high ({self.high}) must be >= low ({self.low})")
        if self.volume < 0:
            raise ValueError(f"volume must be >= 0, got {self.volume}")

    @property
    def range(self) -> float:
        return self.high - self.low

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    @property
    def is_red(self) -> bool:
        return self.close < self.open

    @property
    def is_green(self) -> bool:
        return self.close > self.open

    @property
    def top_wick(self) -> float:
        return self.high - max(self.open, self.close)

    @property
    def bottom_wick(self) -> float:
        return min(self.open, self.close) - self.low

    def __repr__(self) -> str:
        return (
            f"Candle(o={self.open}, h={self.high}, l={self.low}, c={self.close}, "
            f"v={self.volume:.0f}, m={self.minute})"
        )


def candles_to_frame(candles: Sequence[Candle]) -> pd.DataFrame:
    """Convert candles to an OHLCV DataFrame indexed by ordinal position."""
    return pd.DataFrame(
        {
            "open": [c.open for c in candles],
            "high": [c.high for c in candles],
            "low": [c.low for c in candles],
            "close": [c.close for c in candles],
            "volume": [c.volume for c in candles],
        }
    )


def frame_to_candles(df: pd.DataFrame, minutes: Optional[Sequence[int]] = None) -> List[Candle]:
    """Convert an OHLCV DataFrame to candles."""
    result = []
    for i, row in enumerate(df.itertuples(index=False)):
        minute = minutes[i] if minutes is not None else None
        result.append(
            Candle(
                open=float(row.open),
                high=float(row.high),
                low=float(row.low),
                close=float(row.close),
                volume=float(row.volume),
                minute=minute,
            )
        )
    return result


def aggregate_candles(candles: Sequence[Candle], timeframe: int) -> List[Candle]:
    """Aggregate one-minute candles since open into ``timeframe``-minute candles.

    Buckets are aligned to the open: with timeframe 5 the first bucket holds
    minutes 0-4. The last bucket may be partial.

    Args:
        candles: One-minute candles starting at the open.
        timeframe: Bucket size in minutes.

    Returns:
        Aggregated candles. ``minute`` holds the bucket start.

    Examples:
        >>> bars = [Candle(10, 11, 9, 10.5, 100, i) for i in range(7)]
        >>> [c.minute for c in aggregate_candles(bars, 5)]
        [0, 5]
    """
    if timeframe <= 1 or len(candles) == 0:
        return list(candles)

    df = candles_to_frame(candles)
    df["bucket"] = [i // timeframe for i in range(len(candles))]
    grouped = df.groupby("bucket", sort=True).agg(
        open=("open", "first"),
        high=("high", "max"),
        low=("low", "min"),
        close=("close", "last"),
        volume=("volume", "sum"),
    )
    minutes = [int(b) * timeframe for b in grouped.index]
    return frame_to_candles(grouped, minutes)
