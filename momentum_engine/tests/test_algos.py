"""Tests for the red to green algorithm."""

import pytest

from momentum_engine.config.schema import EngineSettings, RedToGreenPlan
from momentum_engine.market.candles import Candle
from momentum_engine.market.protocols import CandleEntryPriceService
from momentum_engine.session.algos import ReversalEntryAlgo
from momentum_engine.session.context import SessionContext
from momentum_engine.session.scheduler import RecheckScheduler
from momentum_engine.utils import ids

# Red first minute, green second minute forming
REVERSAL_CANDLES = [Candle(101.0, 101.2, 99.5, 99.8, 3e6, 0), Candle(99.8, 101.0, 99.7, 100.9, 2e6, 1)]
GREEN_CANDLES = [Candle(99.0, 100.5, 98.9, 100.4, 3e6, 0), Candle(100.4, 101.2, 100.3, 101.1, 2e6, 1)]
FIRST_MINUTE = [Candle(101.0, 101.2, 100.9, 101.1, 3e6, 0)]


@pytest.fixture
def build_algo(trading_plan, gateway, alerts, clock, data):
    """Factory for an algorithm wired to a session holding ``trading_plan``."""

    def _build(settings=None):
        context = SessionContext(settings or EngineSettings(), CandleEntryPriceService(), gateway, alerts)
        context.add_plan(trading_plan)
        return ReversalEntryAlgo(context, RecheckScheduler(clock), data)

    return _build


class TestRedToGreen:
    """Test immediate runs, rechecks and cancellation."""

    def test_runs_immediately_late_in_first_minute(self, build_algo, data, make_snapshot, gateway):
        """Test a start after 55 seconds enters at once."""
        algo = build_algo()
        data.set(make_snapshot(REVERSAL_CANDLES, vwap=100.0))

        assert algo.start("TSLA", True)

        assert not algo.is_running("TSLA")
        order = gateway.submissions[0]
        assert order["tradebook_id"] == ids.RED_TO_GREEN_LONG
        assert order["price"] == 101.0
        assert order["stop_price"] == 99.5
        assert order["size"] == pytest.approx(0.24)

    def test_waits_for_first_minute(self, build_algo, data, make_snapshot, gateway, clock):
        """Test an early start rechecks just after the first minute closes."""
        algo = build_algo()
        data.set(make_snapshot(FIRST_MINUTE, seconds_since_open=30, vwap=100.0))

        assert algo.start("TSLA", True)
        assert algo.is_running("TSLA")
        assert algo.scheduler.pending() == 1

        clock.advance(31)
        data.set(make_snapshot(REVERSAL_CANDLES, vwap=100.0))
        assert algo.scheduler.run_pending() == 1

        assert not algo.is_running("TSLA")
        assert len(gateway.submissions) == 1

    def test_gives_up_after_recheck_window(self, build_algo, data, make_snapshot, gateway, clock):
        """Test rechecks stop one minute after the first loop."""
        algo = build_algo()
        data.set(make_snapshot(FIRST_MINUTE, seconds_since_open=30, vwap=100.0))
        algo.start("TSLA", True)

        clock.advance(31)
        data.set(make_snapshot(GREEN_CANDLES, seconds_since_open=61, vwap=100.0))
        algo.scheduler.run_pending()
        assert algo.is_running("TSLA")
        assert algo.scheduler.pending() == 1

        clock.advance(0.4)
        data.set(make_snapshot(GREEN_CANDLES, seconds_since_open=122, vwap=100.0))
        algo.scheduler.run_pending()

        assert not algo.is_running("TSLA")
        assert algo.scheduler.pending() == 0
        assert gateway.submissions == []

    def test_stop_cancels_pending_recheck(self, build_algo, data, make_snapshot, gateway, clock):
        """Test a stopped algorithm never runs its recheck."""
        algo = build_algo()
        data.set(make_snapshot(FIRST_MINUTE, seconds_since_open=30, vwap=100.0))
        algo.start("TSLA", True)

        algo.stop("TSLA")
        clock.advance(31)
        data.set(make_snapshot(REVERSAL_CANDLES, vwap=100.0))

        assert algo.scheduler.run_pending() == 0
        assert gateway.submissions == []

    def test_one_per_symbol(self, build_algo, data, make_snapshot):
        """Test a second start for the same symbol is refused."""
        algo = build_algo()
        data.set(make_snapshot(FIRST_MINUTE, seconds_since_open=30, vwap=100.0))

        assert algo.start("TSLA", True)
        assert not algo.start("TSLA", True, RedToGreenPlan(strict_mode=True))

    def test_dry_run(self, build_algo, data, make_snapshot, gateway):
        """Test a dry run admits without submitting."""
        algo = build_algo(EngineSettings(dry_run=True))
        data.set(make_snapshot(REVERSAL_CANDLES, vwap=100.0))

        assert algo.run_plan("TSLA", True, RedToGreenPlan()) == pytest.approx(0.24)
        assert gateway.submissions == []

    def test_no_market_data(self, build_algo):
        """Test the algorithm does not start without a snapshot."""
        assert not build_algo().start("TSLA", True)
