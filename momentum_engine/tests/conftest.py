"""Pytest configuration and fixtures."""

from typing import Dict, List, Optional, Sequence

import pytest

from momentum_engine.config.schema import (
    Analysis,
    AverageTrueRange,
    EngineSettings,
    LevelArea,
    LevelMomentumPlan,
    SingleDirectionPlans,
    TradingPlan,
)
from momentum_engine.market.candles import Candle
from momentum_engine.market.protocols import CandleEntryPriceService
from momentum_engine.market.snapshot import MarketSnapshot
from momentum_engine.tradebooks.base import TradebookContext


class RecordingGateway:
    """OrderGateway that records every call."""

    def __init__(self):
        self.submissions: List[Dict] = []
        self.cancels: List[tuple] = []

    def submit_entry(self, symbol, is_long, price, stop_price, risk_level_price, size, plan,
                     tradebook_id, use_market_order):
        self.submissions.append(
            {
                "symbol": symbol,
                "is_long": is_long,
                "price": price,
                "stop_price": stop_price,
                "risk_level_price": risk_level_price,
                "size": size,
                "plan": plan,
                "tradebook_id": tradebook_id,
                "use_market_order": use_market_order,
            }
        )

    def cancel_entry_orders(self, symbol, is_long):
        self.cancels.append((symbol, is_long))


class RecordingAlerts:
    """AlertSink that records callouts."""

    def __init__(self):
        self.messages: List[str] = []

    def announce(self, symbol, message):
        self.messages.append(message)


class StaticDataProvider:
    """MarketDataProvider serving whatever snapshot the test sets."""

    def __init__(self, snapshots: Optional[Dict[str, MarketSnapshot]] = None):
        self.snapshots = snapshots or {}

    def snapshot(self, symbol):
        return self.snapshots.get(symbol)

    def set(self, snapshot: MarketSnapshot) -> None:
        self.snapshots[snapshot.symbol] = snapshot


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_snapshot(
    candles: Sequence[Candle] = (),
    seconds_since_open: Optional[int] = None,
    vwap: Optional[float] = None,
    vwaps: Optional[Sequence[float]] = None,
    symbol: str = "TSLA",
    **kwargs,
) -> MarketSnapshot:
    """Snapshot whose current price is the last close.

    ``vwap`` repeats one VWAP for every candle; ``vwaps`` gives the series.
    Seconds since open default to the middle of the forming candle.
    """
    candles = tuple(candles)
    if seconds_since_open is None:
        seconds_since_open = max(len(candles) - 1, 0) * 60 + 30
    if vwaps is None:
        vwaps = (vwap,) * len(candles) if vwap is not None else ()
    kwargs.setdefault("current_price", candles[-1].close if candles else 100.0)
    kwargs.setdefault("last_vwap_before_open", vwap if vwap is not None else 0.0)
    return MarketSnapshot(
        symbol=symbol,
        seconds_since_open=seconds_since_open,
        candles=candles,
        vwaps=tuple(vwaps),
        **kwargs,
    )


def build_plan(key_level: Optional[LevelArea] = None, **kwargs) -> TradingPlan:
    """TSLA plan with a level momentum plan for both directions."""
    analysis = kwargs.pop("analysis", None) or Analysis(
        single_momentum_key_levels=[key_level] if key_level is not None else []
    )
    kwargs.setdefault("long", SingleDirectionPlans(level_momentum_plan=LevelMomentumPlan()))
    kwargs.setdefault("short", SingleDirectionPlans(level_momentum_plan=LevelMomentumPlan()))
    kwargs.setdefault("market_cap_in_millions", 500000)
    return TradingPlan(symbol="TSLA", atr=AverageTrueRange(average=5.0), analysis=analysis, **kwargs)


@pytest.fixture
def settings():
    """Default engine settings."""
    return EngineSettings()


@pytest.fixture
def key_level():
    """Key level band at 100.00-100.50."""
    return LevelArea(high=100.5, low=100.0)


@pytest.fixture
def trading_plan(key_level):
    """Plan with a single momentum key level."""
    return build_plan(key_level)


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def alerts():
    return RecordingAlerts()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def data():
    """Empty data provider; tests ``set`` snapshots as the session moves."""
    return StaticDataProvider()


@pytest.fixture
def make_snapshot():
    """Factory for snapshots (see ``build_snapshot``)."""
    return build_snapshot


@pytest.fixture
def make_plan():
    """Factory for trading plans (see ``build_plan``)."""
    return build_plan


@pytest.fixture
def context_for(settings, gateway):
    """Factory for a tradebook context around a plan."""

    def _context(plan: TradingPlan) -> TradebookContext:
        return TradebookContext(
            trading_plan=plan,
            settings=settings,
            prices=CandleEntryPriceService(),
            gateway=gateway,
        )

    return _context


@pytest.fixture
def liquid_candles():
    """Three green one-minute candles above 101 with heavy volume (the last is forming)."""
    return [
        Candle(101.0, 102.0, 100.8, 101.8, 3e6, 0),
        Candle(101.8, 102.6, 101.5, 102.4, 2e6, 1),
        Candle(102.4, 103.0, 102.2, 102.9, 1e6, 2),
    ]
