"""Tests for entry rules."""

import pytest

from momentum_engine.config.schema import Analysis, EngineSettings, LevelArea
from momentum_engine.market.candles import Candle
from momentum_engine.market.snapshot import AccountSnapshot, ExitPair, PositionSnapshot
from momentum_engine.rules.entry_rules import (
    VwapDistance,
    has_minimum_volume,
    is_against_first_five_minutes,
    is_against_momentum_start_price,
    is_allowed_for_partial_entry,
    is_blocked_by_timing,
    is_daily_range_too_small,
    is_entry_more_than_half_daily_range,
    is_near_against_watch_level,
    is_outside_tradable_area,
    is_reverse_of_momentum_candle,
    is_spread_too_large,
    is_timing_and_entry_allowed_for_higher_timeframe,
    liquidity_scale,
    mid_range_breakout_size,
    no_trade_zone_reason,
    vwap_distance_status,
    watch_area_reason,
)


def flat_candles(price: float, volumes) -> list:
    return [Candle(price, price, price, price, v, i) for i, v in enumerate(volumes)]


class TestLiquidity:
    """Test liquidity scaling."""

    def test_no_candles_is_vetoed(self, make_snapshot):
        """Test nothing traded means no size."""
        assert liquidity_scale(make_snapshot([]), 1000) == 0

    def test_first_minute_below_premarket(self, make_snapshot):
        """Test a first minute quieter than the last premarket minute."""
        snap = make_snapshot(flat_candles(10.0, [1e5]), last_volume_before_open=2e5)

        assert liquidity_scale(snap, 1000) == 0

    def test_first_minute_partial(self, make_snapshot):
        """Test over $10M but under the full threshold gives the partial scale."""
        snap = make_snapshot(flat_candles(20.0, [6e5]), last_volume_before_open=1e5)

        assert liquidity_scale(snap, 20000) == 0.35

    def test_later_minutes_scale_with_dollars(self, make_snapshot):
        """Test the peak minute between $10M and $20M scales linearly."""
        snap = make_snapshot(flat_candles(20.0, [5e5, 7.5e5, 2e5]), last_volume_before_open=1e5)

        assert liquidity_scale(snap, 50000) == 0.75

    def test_heavy_volume_is_full_size(self, make_snapshot, liquid_candles):
        """Test a peak minute over a million shares is full size."""
        assert liquidity_scale(make_snapshot(liquid_candles), 500000) == 1

    def test_minimum_volume_too_early(self):
        """Test fewer than three bars passes."""
        assert has_minimum_volume([1000, 2000])


class TestTimingAndSpread:
    """Test trading window and spread rules."""

    def test_stop_after(self):
        """Test entries after the stop time are blocked."""
        assert is_blocked_by_timing(700, 0, 600)
        assert not is_blocked_by_timing(30, 0, 0)

    def test_spread_strict_in_first_five_minutes(self, make_snapshot, settings):
        """Test a quite large spread only blocks early."""
        early = make_snapshot([], seconds_since_open=60, spread=0.15)
        late = make_snapshot([], seconds_since_open=400, spread=0.15)

        assert is_spread_too_large(early, 4.0, settings)
        assert not is_spread_too_large(late, 4.0, settings)

    def test_spread_check_disabled(self, make_snapshot):
        """Test settings can disable the spread check."""
        snap = make_snapshot([], seconds_since_open=60, spread=1.0)

        assert not is_spread_too_large(snap, 4.0, EngineSettings(check_spread=False))

    def test_recent_spreads_are_all_checked(self, make_snapshot, settings):
        """Test any recent spread can block."""
        snap = make_snapshot([], seconds_since_open=400, spread=0.01, recent_spreads=(0.01, 0.3))

        assert is_spread_too_large(snap, 4.0, settings)


class TestPriceLocation:
    """Test price location rules."""

    def test_mid_range_size(self, make_snapshot):
        """Test half size inside the range after ten minutes."""
        snap = make_snapshot([Candle(100, 105, 99, 102)], seconds_since_open=700)

        assert mid_range_breakout_size(snap, True, 103) == 0.5
        assert mid_range_breakout_size(snap, True, 105) == 1
        assert mid_range_breakout_size(snap, False, 99) == 1

    def test_mid_range_early(self, make_snapshot):
        """Test full size in the first ten minutes."""
        snap = make_snapshot([Candle(100, 105, 99, 102)], seconds_since_open=300)

        assert mid_range_breakout_size(snap, True, 103) == 1

    def test_vwap_distance(self):
        """Test short entries and zero risk."""
        assert vwap_distance_status(False, 10.0, 10.2, 10.5) == VwapDistance.SAME_SIDE
        assert vwap_distance_status(False, 10.0, 10.2, 9.5) == VwapDistance.FAR
        assert vwap_distance_status(True, 10.0, 10.0, 10.5) == VwapDistance.BLOCKED

    def test_momentum_start_price(self, make_plan):
        """Test longs below the start price are vetoed."""
        plan = make_plan(analysis=Analysis(momentum_start_for_long=100.0))

        assert is_against_momentum_start_price(plan, True, 99.0)
        assert not is_against_momentum_start_price(plan, True, 101.0)
        assert not is_against_momentum_start_price(plan, False, 101.0)

    def test_inside_tradable_area(self, make_snapshot, trading_plan):
        """Test an entry inside the band is fine."""
        snap = make_snapshot([Candle(104, 106, 103.5, 105.5)])

        assert not is_outside_tradable_area(snap, trading_plan, True, 101.0)

    def test_outside_tradable_area(self, make_snapshot, trading_plan):
        """Test entry, open and the day's range all above the band."""
        snap = make_snapshot([Candle(104, 106, 103.5, 105.5)])

        assert is_outside_tradable_area(snap, trading_plan, True, 106.0)

    def test_no_level_is_never_outside(self, make_snapshot, make_plan):
        """Test no key level means no band."""
        snap = make_snapshot([Candle(104, 106, 103.5, 105.5)])

        assert not is_outside_tradable_area(snap, make_plan(), True, 106.0)

    def test_no_trade_zone(self):
        """Test an entry inside a no trade zone gives a reason."""
        zones = [LevelArea(high=101.0, low=100.0)]

        assert no_trade_zone_reason(zones, 100.5) == "entry price 100.5 is inside no trade zone 100.0-101.0"
        assert no_trade_zone_reason(zones, 101.5) == ""

    def test_watch_area_is_strict(self):
        """Test the watch area bounds themselves are allowed."""
        areas = [LevelArea(high=101.0, low=100.0)]

        assert watch_area_reason(areas, 100.0) == ""
        assert watch_area_reason(areas, 100.4) == "entry price 100.4 is inside watch area 100.0-101.0"

    def test_near_against_watch_level(self):
        """Test a watch level ahead within half a risk."""
        assert is_near_against_watch_level([LevelArea(high=100.5, low=100.4)], True, 100.0, 99.0)
        assert not is_near_against_watch_level([LevelArea(high=102.5, low=102.0)], True, 100.0, 99.0)

    def test_against_first_five_minutes(self, make_snapshot):
        """Test lower highs in the first five candles block a long below the first high."""
        candles = [Candle(101 - i, 102 - i, 100 - i, 100.5 - i, 0, i) for i in range(7)]
        snap = make_snapshot(candles, seconds_since_open=400)

        assert is_against_first_five_minutes(snap, True, 99.0)
        assert not is_against_first_five_minutes(snap, True, 102.5)
        assert not is_against_first_five_minutes(make_snapshot(candles, seconds_since_open=200), True, 99.0)

    def test_reverse_of_momentum_candle(self, make_snapshot):
        """Test a market long into a red forming candle."""
        snap = make_snapshot([Candle(101, 101.5, 100, 100.2)])

        assert is_reverse_of_momentum_candle(snap, True, True)
        assert not is_reverse_of_momentum_candle(snap, True, False)
        assert not is_reverse_of_momentum_candle(snap, False, True)

    def test_daily_range_too_small(self, make_snapshot):
        """Test the range must reach 5% of ATR."""
        assert is_daily_range_too_small(make_snapshot([Candle(100, 100.2, 100.0, 100.1)]), 5.0)
        assert not is_daily_range_too_small(make_snapshot([Candle(100, 101, 100.0, 100.8)]), 5.0)


class TestPartialEntries:
    """Test adds and reloads."""

    CANDLES = [Candle(100, 104, 100, 103)]

    def test_more_than_half_daily_range(self, make_snapshot):
        """Test a long reload far above the low."""
        snap = make_snapshot(self.CANDLES)

        assert is_entry_more_than_half_daily_range(snap, True, 103.0)
        assert not is_entry_more_than_half_daily_range(snap, True, 101.0)

    def test_first_partial_allowed(self, make_snapshot, settings):
        """Test a flat account may add."""
        snap = make_snapshot([Candle(10, 10.5, 9.5, 10)])

        assert is_allowed_for_partial_entry(snap, settings, True, 100, 10.0, 9.0)

    def test_daily_loss_reached(self, make_snapshot, settings):
        """Test no adds after the daily limit is hit."""
        snap = make_snapshot([Candle(10, 10.5, 9.5, 10)], account=AccountSnapshot(realized_pnl=-5000))

        assert not is_allowed_for_partial_entry(snap, settings, True, 100, 10.0, 9.0)

    def test_add_would_exceed_daily_loss(self, make_snapshot, settings):
        """Test realized loss plus the new risk against the limit."""
        snap = make_snapshot([Candle(10, 10.5, 9.5, 10)], account=AccountSnapshot(realized_pnl=-4950))

        assert not is_allowed_for_partial_entry(snap, settings, True, 100, 10.0, 9.0)

    @pytest.mark.parametrize("stop, expected", [(8.8, True), (7.4, False)])
    def test_full_position(self, make_snapshot, settings, stop, expected):
        """Test existing plus new risk above 52% of the limit is a full position."""
        position = PositionSnapshot(
            net_quantity=1000, average_price=10.0, exit_pairs=(ExitPair(0, 1000, stop_price=stop),)
        )
        snap = make_snapshot([Candle(10, 10.5, 9.5, 10)], position=position)

        assert is_allowed_for_partial_entry(snap, settings, True, 100, 10.0, 9.0) is expected


class TestHigherTimeframe:
    """Test higher timeframe entry timing."""

    CANDLES = [Candle(100 + i, 101 + i, 99.5 + i, 100.5 + i, 0, i) for i in range(6)]

    def test_one_minute_always_passes(self, make_snapshot):
        """Test timeframe 1 is not checked."""
        assert is_timing_and_entry_allowed_for_higher_timeframe(make_snapshot([]), 1.0, True, 1)

    def test_first_bucket_not_closed(self, make_snapshot):
        """Test a five minute entry waits for the first bucket."""
        snap = make_snapshot(self.CANDLES[:4], seconds_since_open=200)

        assert not is_timing_and_entry_allowed_for_higher_timeframe(snap, 110.0, True, 5)

    def test_entry_must_break_last_bucket(self, make_snapshot):
        """Test the entry must clear the last closed bucket's high."""
        snap = make_snapshot(self.CANDLES, seconds_since_open=330)

        assert is_timing_and_entry_allowed_for_higher_timeframe(snap, 105.5, True, 5)
        assert not is_timing_and_entry_allowed_for_higher_timeframe(snap, 104.5, True, 5)
        assert is_timing_and_entry_allowed_for_higher_timeframe(snap, 99.0, False, 5)
