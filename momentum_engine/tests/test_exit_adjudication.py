"""Tests for exit adjudication priority chains."""

from momentum_engine.config.schema import AverageTrueRange
from momentum_engine.market.snapshot import ExitPair, PositionSnapshot
from momentum_engine.rules.exit_rules import CheckRulesResult
from momentum_engine.strategy.exit_adjudication import (
    adjudicate_flatten,
    adjudicate_limit_adjustment,
    adjudicate_market_out,
    adjudicate_stop_adjustment,
    adjudicate_trail_stop,
    first_match,
)

ATR = AverageTrueRange(average=5.0)


def long_position(pairs: int = 3) -> PositionSnapshot:
    return PositionSnapshot(
        net_quantity=10 * pairs,
        average_price=10.0,
        entry_price=10.0,
        stop_loss_price=9.0,
        exit_pairs=tuple(ExitPair(i, 10, stop_price=9.0, limit_price=12.0) for i in range(pairs)),
    )


class RecordingPredicate:
    """Strategy predicate that remembers whether it ran."""

    def __init__(self, result: CheckRulesResult):
        self.result = result
        self.calls = 0

    def __call__(self) -> CheckRulesResult:
        self.calls += 1
        return self.result


class TestFirstMatch:
    """Test the first-match combinator."""

    def test_stops_at_first_allow(self):
        """Test later checks are never evaluated."""
        later = RecordingPredicate(CheckRulesResult.allow("later"))

        result = first_match([lambda: CheckRulesResult.allow("first"), later])

        assert result.reason == "first"
        assert later.calls == 0

    def test_last_reason_when_nothing_allows(self):
        """Test the verdict carries the last evaluated reason."""
        result = first_match([lambda: CheckRulesResult.disallow("a"), lambda: CheckRulesResult.disallow("b")])

        assert not result.allowed
        assert result.reason == "b"


class TestLimitAdjustment:
    """Test profit target moves."""

    def test_increasing_target(self, make_snapshot, settings):
        """Test raising a long target is allowed."""
        snap = make_snapshot([], seconds_since_open=60, position=long_position())

        result = adjudicate_limit_adjustment(snap, settings, snap.position.exit_pairs[0], 12.5)

        assert result.allowed
        assert result.reason == "increasing target from 12.0 to 12.5"

    def test_predicate_runs_last(self, make_snapshot, settings):
        """Test the strategy predicate decides when the common rules do not."""
        snap = make_snapshot([], seconds_since_open=60, position=long_position())
        predicate = RecordingPredicate(CheckRulesResult.allow("tradebook allows"))

        result = adjudicate_limit_adjustment(snap, settings, snap.position.exit_pairs[0], 11.5, predicate)

        assert result.reason == "tradebook allows"
        assert predicate.calls == 1

    def test_blanket_time_skips_predicate(self, make_snapshot, settings):
        """Test the blanket override short circuits the chain."""
        snap = make_snapshot([], seconds_since_open=2000, position=long_position())
        predicate = RecordingPredicate(CheckRulesResult.disallow("tradebook disallows"))

        result = adjudicate_limit_adjustment(snap, settings, snap.position.exit_pairs[0], 11.5, predicate)

        assert result.allowed
        assert predicate.calls == 0

    def test_all_disallow(self, make_snapshot, settings):
        """Test the last reason is reported when nothing allows."""
        snap = make_snapshot([], seconds_since_open=60, position=long_position())
        predicate = RecordingPredicate(CheckRulesResult.disallow("tradebook disallows"))

        result = adjudicate_limit_adjustment(snap, settings, snap.position.exit_pairs[0], 11.5, predicate)

        assert not result.allowed
        assert result.reason == "tradebook disallows"


class TestStopAdjustment:
    """Test protective stop moves."""

    def test_without_predicate_ends_on_trailing(self, make_snapshot, settings):
        """Test the incremental trailing stop is the last common check."""
        snap = make_snapshot([], seconds_since_open=400, current_price=10.2, position=long_position())

        result = adjudicate_stop_adjustment(snap, settings, ATR, 0, 9.5)

        assert not result.allowed
        assert result.reason == "outside incremental trailing windows"

    def test_predicate_after_trailing(self, make_snapshot, settings):
        """Test the strategy predicate is consulted after the common checks."""
        snap = make_snapshot([], seconds_since_open=400, current_price=10.2, position=long_position())
        predicate = RecordingPredicate(CheckRulesResult.allow("tradebook allows"))

        assert adjudicate_stop_adjustment(snap, settings, ATR, 0, 9.5, predicate).reason == "tradebook allows"


class TestMarketOut:
    """Test market out of one pair."""

    def test_beyond_minimum_target(self, make_snapshot, settings):
        """Test a price far beyond every target passes the minimum target check."""
        snap = make_snapshot([], seconds_since_open=400, current_price=50.0, position=long_position())

        result = adjudicate_market_out(snap, settings, ATR, 0)

        assert result.allowed
        assert result.reason.startswith("hard rules passed")

    def test_short_of_target(self, make_snapshot, settings):
        """Test a loss is not a valid market out early in the session."""
        snap = make_snapshot([], seconds_since_open=400, current_price=10.1, position=long_position())

        result = adjudicate_market_out(snap, settings, ATR, 0)

        assert not result.allowed
        assert result.reason.startswith("new target 10.1 is closer than minimum target")


class TestFlattenAndTrail:
    """Test flatten and trail surfaces."""

    def test_flatten_after_blanket_time(self, make_snapshot, settings):
        """Test flatten is allowed late in the session."""
        snap = make_snapshot([], seconds_since_open=2000, position=long_position())

        assert adjudicate_flatten(snap, settings, ATR).allowed

    def test_trail_on_five_minute(self, make_snapshot):
        """Test the first slot may trail on 5-minute candles."""
        snap = make_snapshot([], seconds_since_open=400, position=long_position())

        assert adjudicate_trail_stop(snap, 0, 5).allowed
