"""Read-only market, position and account snapshots consumed by the engine.

A snapshot is everything a decision needs at one instant. Decisions are pure
functions of a snapshot plus the session's trading plan, which is what makes
them reproducible and safe to re-run on duplicate events.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from momentum_engine.config.schema import BasePlan
from momentum_engine.market.candles import Candle, aggregate_candles


class OrderType(str, Enum):
    """Order type of an exit leg or entry."""

    MARKET = "MARKET"
    LIMIT = "LIMIT"
    STOP = "STOP"


@dataclass(frozen=True)
class OrderModel:
    """A working order.

    Attributes:
        order_type: MARKET, LIMIT or STOP
        is_buy: Buy side
        quantity: Shares
        price: Limit price for LIMIT orders, None otherwise
        stop_price: Trigger price for STOP orders, None otherwise
    """

    order_type: OrderType
    is_buy: bool
    quantity: int
    price: Optional[float] = None
    stop_price: Optional[float] = None

    def __post_init__(self):
        """Validate order."""
        if self.quantity <= 0:
            raise ValueError(f"quantity must be positive, got {self.quantity}")


@dataclass(frozen=True)
class ExitPair:
    """Stop and limit legs protecting one partial slot."""

    key_index: int
    quantity: int
    stop_price: Optional[float] = None
    limit_price: Optional[float] = None

    def __post_init__(self):
        """Validate exit pair."""
        if self.key_index < 0:
            raise ValueError(f"key_index must be >= 0, got {self.key_index}")


@dataclass(frozen=True)
class EntryOrder:
    """A pending entry order with its protective stop."""

    is_long: bool
    price: float
    stop_price: float
    quantity: int


@dataclass(frozen=True)
class PositionSnapshot:
    """Open position and its bookkeeping.

    Attributes:
        net_quantity: Signed share count, positive for long
        average_price: Average fill price
        tradebook_id: Id of the tradebook that submitted the entry
        entry_price: Planned entry price of the trade
        stop_loss_price: Planned initial stop of the trade
        plan: Copy of the plan attached at submission
        first_entry_seconds_ago: Seconds since the first fill
        last_entry_seconds_ago: Seconds since the latest fill
        last_entry_candle_index: Index into candles since open of the latest fill
        max_pullback_reached: Deepest pullback since entry as a fraction of risk
        added_partial_stack: Entry prices of added partials, oldest first
        exit_pairs: Working exit pairs
    """

    net_quantity: int = 0
    average_price: float = 0.0
    tradebook_id: str = ""
    entry_price: float = 0.0
    stop_loss_price: float = 0.0
    plan: Optional[BasePlan] = None
    first_entry_seconds_ago: Optional[int] = None
    last_entry_seconds_ago: Optional[int] = None
    last_entry_candle_index: Optional[int] = None
    max_pullback_reached: float = 0.0
    added_partial_stack: Tuple[float, ...] = ()
    exit_pairs: Tuple[ExitPair, ...] = ()

    @property
    def has_value(self) -> bool:
        return self.net_quantity != 0

    @property
    def is_long(self) -> bool:
        return self.net_quantity > 0

    @property
    def exit_pairs_count(self) -> int:
        return len(self.exit_pairs)

    def quantity_with_stop(self) -> int:
        return sum(p.quantity for p in self.exit_pairs if p.stop_price)

    def risk_from_stops(self) -> float:
        """Dollar risk covered by working stop legs."""
        return sum(
            p.quantity * abs(self.average_price - p.stop_price)
            for p in self.exit_pairs
            if p.stop_price
        )


@dataclass(frozen=True)
class AccountSnapshot:
    """Account level state used for risk limits."""

    realized_pnl: float = 0.0
    initial_balance: float = 0.0


@dataclass(frozen=True)
class MarketSnapshot:
    """Market state for one symbol at one instant.

    ``candles`` holds one-minute candles since the open. The last candle is the
    one still forming; every earlier candle is closed. ``vwaps`` is aligned by
    index with ``candles``.
    """

    symbol: str
    seconds_since_open: int
    current_price: float
    candles: Tuple[Candle, ...] = ()
    vwaps: Tuple[float, ...] = ()
    last_vwap_before_open: float = 0.0
    premarket_high: float = 0.0
    premarket_low: float = 0.0
    last_volume_before_open: float = 0.0
    previous_day_close: Optional[float] = None
    spread: float = 0.0
    recent_spreads: Tuple[float, ...] = ()
    position: PositionSnapshot = field(default_factory=PositionSnapshot)
    account: AccountSnapshot = field(default_factory=AccountSnapshot)
    entry_orders: Tuple[EntryOrder, ...] = ()

    def __post_init__(self):
        """Validate snapshot."""
        if len(self.vwaps) not in (0, len(self.candles)):
            raise ValueError(
                f"vwaps ({len(self.vwaps)}) must align with candles ({len(self.candles)})"
            )

    @property
    def is_market_open(self) -> bool:
        return self.seconds_since_open >= 0

    @property
    def open_price(self) -> Optional[float]:
        """Open of the first regular-session candle, None before the open."""
        if not self.is_market_open or len(self.candles) == 0:
            return None
        return self.candles[0].open

    @property
    def closed_candles(self) -> Tuple[Candle, ...]:
        return self.candles[:-1]

    @property
    def current_candle(self) -> Optional[Candle]:
        return self.candles[-1] if self.candles else None

    @property
    def vwap_series(self) -> Tuple[float, ...]:
        """VWAP per candle. Without a series every candle gets the current VWAP."""
        if self.vwaps:
            return self.vwaps
        return (self.current_vwap,) * len(self.candles)

    @property
    def closed_vwaps(self) -> Tuple[float, ...]:
        return self.vwap_series[:-1]

    @property
    def current_vwap(self) -> float:
        return self.vwaps[-1] if self.vwaps else self.last_vwap_before_open

    @property
    def high_of_day(self) -> float:
        if not self.candles:
            return self.current_price
        return max(c.high for c in self.candles)

    @property
    def low_of_day(self) -> float:
        if not self.candles:
            return self.current_price
        return min(c.low for c in self.candles)

    @property
    def today_range(self) -> float:
        return self.high_of_day - self.low_of_day

    @property
    def volumes(self) -> List[float]:
        return [c.volume for c in self.candles]

    def candles_since(self, index: int) -> Tuple[Candle, ...]:
        """Candles from ``index`` (inclusive) through the current one."""
        if index < 0:
            index = 0
        return self.candles[index:]

    def aggregate(self, timeframe: int) -> List[Candle]:
        """Candles since open re-bucketed to ``timeframe`` minutes."""
        return aggregate_candles(self.candles, timeframe)

    def __repr__(self) -> str:
        return (
            f"MarketSnapshot({self.symbol}, t={self.seconds_since_open}s, "
            f"price={self.current_price}, vwap={self.current_vwap:.2f}, "
            f"candles={len(self.candles)}, qty={self.position.net_quantity})"
        )
