"""Integration test for a full session from YAML config to exit requests."""

from datetime import date, datetime
from pathlib import Path

import pandas as pd
import pytest
import pytz

from momentum_engine import DecisionEngine, load_config
from momentum_engine.market.frames import snapshot_from_bars
from momentum_engine.market.snapshot import ExitPair, PositionSnapshot
from momentum_engine.strategy.selector import PriceOrdering
from momentum_engine.utils import ids

NY = pytz.timezone("America/New_York")

CONFIG_YAML = """
name: Integration_Test
settings:
  dry_run: false
plans:
  TSLA:
    atr:
      average: 5.0
    market_cap_in_millions: 500000
    analysis:
      single_momentum_key_levels:
        - high: 100.5
          low: 100.0
    long:
      level_momentum_plan: {}
    short:
      level_momentum_plan: {}
"""


def session_bars() -> pd.DataFrame:
    """Flat premarket at 99.50, then an open between VWAP and the key level."""
    index = pd.date_range("2024-03-05 09:25", periods=7, freq="1min", tz="America/New_York")
    return pd.DataFrame(
        {
            "open": [99.5] * 5 + [100.2, 100.7],
            "high": [99.5] * 5 + [100.8, 101.2],
            "low": [99.5] * 5 + [100.1, 100.6],
            "close": [99.5] * 5 + [100.7, 101.1],
            "volume": [5000.0] * 5 + [3e6, 2e6],
        },
        index=index,
    )


class BarsProvider:
    """Snapshots rebuilt from one-minute bars at a settable time."""

    def __init__(self, bars: pd.DataFrame, now: datetime):
        self.bars = bars
        self.now = now
        self.position = PositionSnapshot()

    def snapshot(self, symbol):
        return snapshot_from_bars(symbol, self.bars, self.now, position=self.position)


class CollectingGateway:
    def __init__(self):
        self.submissions = []

    def submit_entry(self, symbol, is_long, price, stop_price, risk_level_price, size, plan,
                     tradebook_id, use_market_order):
        self.submissions.append((symbol, tradebook_id, price, stop_price, size))

    def cancel_entry_orders(self, symbol, is_long):
        pass


@pytest.mark.integration
def test_full_session_pipeline(tmp_path: Path):
    """Test config loading, selection, an entry, position tracking and exits."""
    config_path = tmp_path / "session.yaml"
    config_path.write_text(CONFIG_YAML)
    config = load_config(config_path)

    provider = BarsProvider(session_bars(), NY.localize(datetime(2024, 3, 5, 9, 31, 30)))
    gateway = CollectingGateway()
    engine = DecisionEngine(config, provider, gateway=gateway)
    engine.start_session(date(2024, 3, 5))

    # Selection uses the open and the premarket VWAP
    assert engine.on_market_open() == {"TSLA": PriceOrdering.LEVEL_OPEN_VWAP}
    assert ids.ABOVE_WATER_BREAKOUT in engine.live_stats("TSLA")

    # Entry, then a repeat that the guard drops
    size = engine.request_entry("TSLA", ids.ABOVE_WATER_BREAKOUT)
    assert size == pytest.approx(0.24)
    engine.request_entry("TSLA", ids.ABOVE_WATER_BREAKOUT)
    assert len(gateway.submissions) == 1
    symbol, tradebook_id, _, stop_price, _ = gateway.submissions[0]
    assert (symbol, tradebook_id, stop_price) == ("TSLA", ids.ABOVE_WATER_BREAKOUT, 100.1)

    # Fill
    provider.position = PositionSnapshot(
        net_quantity=100,
        average_price=101.2,
        tradebook_id=ids.ABOVE_WATER_BREAKOUT,
        entry_price=101.2,
        stop_loss_price=100.1,
        last_entry_candle_index=1,
        exit_pairs=tuple(ExitPair(i, 10, stop_price=100.1, limit_price=103.0) for i in range(10)),
    )
    engine.on_tick("TSLA")
    assert "state: momentum" in engine.live_stats("TSLA")[ids.ABOVE_WATER_BREAKOUT]

    # Exit requests
    assert engine.request_limit_adjustment("TSLA", 0, 104.0).allowed
    stop_result = engine.request_stop_adjustment("TSLA", 0, 100.5)
    assert not stop_result.allowed
    assert "still loses" in stop_result.reason

    # Flat again releases the guard
    provider.position = PositionSnapshot()
    engine.on_tick("TSLA")
    engine.request_entry("TSLA", ids.ABOVE_WATER_BREAKOUT)
    assert len(gateway.submissions) == 2
