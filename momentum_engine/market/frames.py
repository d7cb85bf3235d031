"""Build market snapshots from one-minute OHLCV DataFrames.

Used by replay tooling and tests. The live application normally supplies
snapshots through a MarketDataProvider instead.
"""

from datetime import datetime
from typing import Optional

import numpy as np
import pandas as pd
from loguru import logger

from momentum_engine.market.candles import frame_to_candles
from momentum_engine.market.snapshot import AccountSnapshot, MarketSnapshot, PositionSnapshot
from momentum_engine.utils.timezones import MARKET_TZ, market_open_for, seconds_since_market_open

REQUIRED_COLUMNS = ("open", "high", "low", "close", "volume")


def session_vwap(df: pd.DataFrame) -> pd.Series:
    """Cumulative VWAP over the whole frame using the typical price.

    Bars with zero cumulative volume carry the typical price forward.

    Examples:
        >>> df = pd.DataFrame({"high": [11, 12], "low": [9, 10], "close": [10, 11],
        ...                    "volume": [100, 100]})
        >>> session_vwap(df).round(2).tolist()
        [10.0, 10.5]
    """
    typical = (df["high"] + df["low"] + df["close"]) / 3.0
    cum_pv = (typical * df["volume"]).cumsum()
    cum_vol = df["volume"].cumsum()
    vwap = cum_pv / cum_vol.replace(0, np.nan)
    return vwap.fillna(typical)


def validate_bars(df: pd.DataFrame) -> None:
    """Raise ValueError for frames the snapshot builder cannot use."""
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Bars missing columns: {missing}")
    if not isinstance(df.index, pd.DatetimeIndex):
        raise ValueError("Bars must be indexed by a DatetimeIndex")
    if df.index.tz is None:
        raise ValueError("Bars index must be timezone-aware")


def snapshot_from_bars(
    symbol: str,
    bars: pd.DataFrame,
    now: datetime,
    tz_name: str = MARKET_TZ,
    position: Optional[PositionSnapshot] = None,
    account: Optional[AccountSnapshot] = None,
    previous_day_close: Optional[float] = None,
    spread: float = 0.0,
) -> MarketSnapshot:
    """Build a snapshot from one-minute bars of the current trading day.

    Bars before 09:30 exchange time are premarket. Bars starting after ``now`` are
    ignored. The bar containing ``now`` is the forming candle; its close is the
    current price.

    Args:
        symbol: Ticker.
        bars: One-minute OHLCV frame with a tz-aware DatetimeIndex of bar starts.
        now: Current time (tz-aware).
        tz_name: Exchange timezone.
        position: Position state, flat if omitted.
        account: Account state, empty if omitted.
        previous_day_close: Prior session close.
        spread: Current bid/ask spread.

    Returns:
        MarketSnapshot for ``now``.
    """
    validate_bars(bars)
    bars = bars.sort_index()
    bars = bars[bars.index <= pd.Timestamp(now)]
    if len(bars) == 0:
        raise ValueError(f"No bars at or before {now} for {symbol}")

    open_time = pd.Timestamp(market_open_for(now, tz_name))
    seconds = seconds_since_market_open(now, tz_name)

    vwap = session_vwap(bars)
    premarket_mask = bars.index < open_time
    premarket = bars[premarket_mask]
    regular = bars[~premarket_mask]

    premarket_high = float(premarket["high"].max()) if len(premarket) else 0.0
    premarket_low = float(premarket["low"].min()) if len(premarket) else 0.0
    last_volume_before_open = float(premarket["volume"].iloc[-1]) if len(premarket) else 0.0
    last_vwap_before_open = float(vwap[premarket_mask].iloc[-1]) if len(premarket) else 0.0

    minutes = [int((ts - open_time).total_seconds() // 60) for ts in regular.index]
    candles = tuple(frame_to_candles(regular, minutes))
    vwaps = tuple(float(v) for v in vwap[~premarket_mask])

    current_price = float(bars["close"].iloc[-1])

    logger.debug(
        f"{symbol} snapshot at {seconds}s: {len(premarket)} premarket bars, "
        f"{len(candles)} candles since open"
    )

    return MarketSnapshot(
        symbol=symbol,
        seconds_since_open=seconds,
        current_price=current_price,
        candles=candles,
        vwaps=vwaps,
        last_vwap_before_open=last_vwap_before_open,
        premarket_high=premarket_high,
        premarket_low=premarket_low,
        last_volume_before_open=last_volume_before_open,
        previous_day_close=previous_day_close,
        spread=spread,
        recent_spreads=(spread,) if spread > 0 else (),
        position=position or PositionSnapshot(),
        account=account or AccountSnapshot(),
    )
