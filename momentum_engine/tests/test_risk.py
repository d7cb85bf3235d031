"""Tests for account and position risk rules."""

import pytest

from momentum_engine.config.schema import BasePlan, EngineSettings, PlanConfigs
from momentum_engine.market.candles import Candle
from momentum_engine.market.snapshot import AccountSnapshot, EntryOrder, ExitPair, PositionSnapshot
from momentum_engine.rules.risk import (
    calculate_total_shares,
    entry_orders_risk_in_dollars,
    is_allowed_as_paper_cut,
    is_breakeven,
    is_over_daily_max_loss,
    is_over_daily_max_loss_with_position,
    is_oversized,
    is_paper_cut,
    max_daily_loss_limit,
    position_risk_in_dollars,
    risk_multiplier_for_next_entry,
    size_for_tightened_stop,
)


def long_position(quantity: int, average: float, stop: float, **kwargs) -> PositionSnapshot:
    """Long position fully covered by one stop leg."""
    return PositionSnapshot(
        net_quantity=quantity,
        average_price=average,
        exit_pairs=(ExitPair(0, quantity, stop_price=stop),),
        **kwargs,
    )


class TestDailyLimit:
    """Test the daily loss limit."""

    def test_large_account_uses_ratio(self, settings):
        """Test balances above the threshold risk a fixed fraction."""
        assert max_daily_loss_limit(AccountSnapshot(initial_balance=200000), settings) == 9540.0

    def test_small_account_uses_fallback(self, settings):
        """Test the fallback for small accounts."""
        assert max_daily_loss_limit(AccountSnapshot(initial_balance=120000), settings) == 5000.0

    def test_over_daily_max_loss(self, settings):
        """Test a realized loss equal to the limit blocks."""
        assert is_over_daily_max_loss(AccountSnapshot(realized_pnl=-5000), settings)
        assert not is_over_daily_max_loss(AccountSnapshot(realized_pnl=-4999), settings)
        assert not is_over_daily_max_loss(AccountSnapshot(realized_pnl=100), settings)

    def test_breakeven_band(self, settings):
        """Test 5% of the limit counts as breakeven."""
        assert is_breakeven(-200, AccountSnapshot(), settings)
        assert not is_breakeven(300, AccountSnapshot(), settings)


class TestSizing:
    """Test share and multiplier sizing."""

    def test_default_multiplier(self, settings):
        """Test the default multiplier without a plan override."""
        assert risk_multiplier_for_next_entry(None, settings) == 0.24
        assert risk_multiplier_for_next_entry(BasePlan(), settings) == 0.24

    def test_plan_override(self, settings):
        """Test a non-zero plan size replaces the default."""
        plan = BasePlan(plan_configs=PlanConfigs(size=0.5))

        assert risk_multiplier_for_next_entry(plan, settings) == 0.5

    def test_zero_risk_gives_minimum_shares(self, settings):
        """Test a zero risk entry still gets the minimum share count."""
        assert calculate_total_shares(10.0, 10.0, 0.24, AccountSnapshot(), settings) == 2

    def test_tiny_multiplier_gives_minimum_shares(self, settings):
        """Test the share count never drops below 2."""
        assert calculate_total_shares(100.0, 50.0, 0.0001, AccountSnapshot(), settings) == 2

    def test_tightened_stop_with_zero_risk(self):
        """Test a zero wide risk cannot be rescaled."""
        assert size_for_tightened_stop(10.0, 10.0, 9.5, 0.8) == 0.0


class TestPositionRisk:
    """Test dollar risk of positions and orders."""

    def test_flat_has_no_risk(self, make_snapshot):
        """Test no position means no risk."""
        assert position_risk_in_dollars(make_snapshot([Candle(10, 10.5, 9, 10.2)])) == 0.0

    def test_covered_position(self, make_snapshot):
        """Test risk to the working stop."""
        snap = make_snapshot([Candle(10, 10.5, 9, 10.2)], position=long_position(100, 10.0, 9.5))

        assert position_risk_in_dollars(snap) == 50.0

    def test_uncovered_quantity_risks_to_low_of_day(self, make_snapshot):
        """Test shares without a stop risk the distance to the low of day."""
        position = PositionSnapshot(
            net_quantity=100,
            average_price=10.0,
            exit_pairs=(ExitPair(0, 50, stop_price=9.5), ExitPair(1, 50)),
        )
        snap = make_snapshot([Candle(10, 10.5, 9.0, 10.2)], position=position)

        assert position_risk_in_dollars(snap) == 75.0

    def test_entry_orders_risk(self, make_snapshot):
        """Test pending entries risk their stop distance."""
        snap = make_snapshot([], entry_orders=(EntryOrder(True, 10.0, 9.5, 100),))

        assert entry_orders_risk_in_dollars(snap) == 50.0

    def test_oversized(self, make_snapshot, settings):
        """Test a position risking more than a quarter of the limit."""
        candles = [Candle(10, 10.5, 9.5, 10.2)]

        assert is_oversized(make_snapshot(candles, position=long_position(1000, 10.0, 8.7)), settings)
        assert not is_oversized(make_snapshot(candles, position=long_position(1000, 10.0, 9.0)), settings)

    def test_over_daily_loss_with_position(self, make_snapshot, settings):
        """Test realized loss plus open risk against the limit."""
        candles = [Candle(10, 10.5, 9.5, 10.2)]
        position = long_position(1000, 10.0, 9.0)

        losing = make_snapshot(candles, position=position, account=AccountSnapshot(realized_pnl=-4500))
        fine = make_snapshot(candles, position=position, account=AccountSnapshot(realized_pnl=-3000))

        assert is_over_daily_max_loss_with_position(losing, settings)
        assert not is_over_daily_max_loss_with_position(fine, settings)


class TestPaperCut:
    """Test paper cut exits."""

    def test_short_paper_cut(self):
        """Test the short side mirrors."""
        assert is_paper_cut(10.0, 11.0, 10.1)
        assert not is_paper_cut(10.0, 11.0, 10.5)

    @pytest.mark.parametrize("seconds_ago", [None, 200])
    def test_paper_cut_needs_recent_entry(self, make_snapshot, seconds_ago):
        """Test paper cuts only apply within two minutes of the first fill."""
        position = long_position(100, 10.0, 9.0, first_entry_seconds_ago=seconds_ago)
        snap = make_snapshot([Candle(10, 10.5, 9.5, 9.9)], position=position)

        assert not is_allowed_as_paper_cut(snap, 10.0, 9.0, 9.9)

    def test_recent_paper_cut(self, make_snapshot):
        """Test a small loss right after entry is a paper cut."""
        position = long_position(100, 10.0, 9.0, first_entry_seconds_ago=60)
        snap = make_snapshot([Candle(10, 10.5, 9.5, 9.9)], position=position)

        assert is_allowed_as_paper_cut(snap, 10.0, 9.0, 9.9)


def test_custom_settings_change_limit():
    """Test the fallback comes from settings."""
    settings = EngineSettings(daily_loss_fallback=2000.0)

    assert max_daily_loss_limit(AccountSnapshot(), settings) == 2000.0
