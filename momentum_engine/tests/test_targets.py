"""Tests for minimum profit target math."""

import pytest

from momentum_engine.config.schema import AverageTrueRange, BasePlan, ExitTargetsSet
from momentum_engine.market.candles import Candle
from momentum_engine.market.snapshot import PositionSnapshot
from momentum_engine.signals.targets import (
    default_minimum_targets,
    is_current_trade_first_signal,
    minimum_profit_for_batch,
    minimum_profit_target_for_batch,
    minimum_profits,
    profit_to_target,
    slot_index,
)


class TestMinimumProfits:
    """Test per-slot minimum profits."""

    def test_risk_ratio_wins_when_nearest(self):
        """Test the nearest candidate is used."""
        atr = AverageTrueRange(average=5.0)

        profits = minimum_profits(100, 99, 2, atr, 3.0, False, default_minimum_targets())

        assert profits == [0.85, 0.85]

    def test_price_level_candidate(self):
        """Test a fixed price level closer than the ladders wins."""
        atr = AverageTrueRange(average=5.0)
        targets = ExitTargetsSet(price_levels=[100.5] + [0.0] * 9)

        profits = minimum_profits(100, 99, 2, atr, 3.0, False, targets)

        assert profits[0] == 0.5
        assert profits[1] == 0.85

    def test_minimum_atr_clamp(self):
        """Test profits are raised to the ATR floor."""
        atr = AverageTrueRange(average=5.0, minimum_multiplier=0.5)

        profits = minimum_profits(100, 99, 2, atr, 3.0, True, default_minimum_targets())

        assert profits == [1.5, 1.5]

    def test_slots_beyond_ladder_use_defaults(self):
        """Test slots past the ladder fall back to RRR 2 and ATR ratio 1."""
        atr = AverageTrueRange(average=5.0)
        targets = ExitTargetsSet(price_levels=[], rrr=[1.0], daily_ranges=[1.0])

        profits = minimum_profits(100, 99, 2, atr, 3.0, False, targets)

        assert profits == [1.0, 2.0]


class TestTargetPrices:
    """Test conversions to prices."""

    def test_profit_to_target_rounds_to_cents(self):
        """Test cent rounding."""
        assert profit_to_target(True, 10.005, 0.001) == 10.01

    def test_slot_index_skips_exited_slots(self):
        """Test key index mapping."""
        assert slot_index(10, 10, 0) == 0
        assert slot_index(10, 4, 1) == 7

    def test_batch_minimum(self):
        """Test 3R capped by 90% of the daily range minus risk."""
        assert minimum_profit_for_batch(1, 0) == 3
        assert minimum_profit_for_batch(1, 3) == pytest.approx(1.7)

    def test_half_batch_target(self):
        """Test the half position target is 2R without a daily range."""
        assert minimum_profit_target_for_batch(True, True, 100, 99, 0) == 102
        assert minimum_profit_target_for_batch(False, True, 100, 101, 0) == 98


class TestFirstSignal:
    """Test first signal detection."""

    def test_entered_in_first_minute(self, make_snapshot):
        """Test a fill within the first minute is the first signal."""
        position = PositionSnapshot(net_quantity=10, average_price=100, first_entry_seconds_ago=30)
        snap = make_snapshot([Candle(100, 101, 99, 100.5)], seconds_since_open=70, position=position)

        assert is_current_trade_first_signal(snap, True)

    def test_later_entry(self, make_snapshot):
        """Test a later fill without a first-signal plan type is not."""
        position = PositionSnapshot(net_quantity=10, average_price=100, first_entry_seconds_ago=30)
        snap = make_snapshot([Candle(100, 101, 99, 100.5)], seconds_since_open=300, position=position)

        assert not is_current_trade_first_signal(snap, True)

    def test_red_to_green_on_red_open(self, make_snapshot):
        """Test a red to green entry in two minutes after a red open candle."""
        position = PositionSnapshot(
            net_quantity=10, average_price=100, first_entry_seconds_ago=10,
            plan=BasePlan(plan_type="RedToGreen"),
        )
        candles = [Candle(101, 101.2, 99.5, 99.8), Candle(99.8, 100.6, 99.7, 100.5)]
        snap = make_snapshot(candles, seconds_since_open=100, position=position)

        assert is_current_trade_first_signal(snap, True)
