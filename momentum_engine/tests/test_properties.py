"""Property-based tests for pricing, admission and state helpers.

Tests verify:
- Entry sizes always land in [0, 1], for the clamp and the full basic pipeline
- A hard veto wins over every reducer
- Admission and exit adjudication give the same answer when repeated
- State transitions run their side effects once per change
- Every open/VWAP/level combination maps to exactly one ordering
- Entries on the VWAP side of the trade are never blocked by VWAP distance
- Aggregation keeps volume and range
- The daily loss limit never drops below the fallback
"""

import math

from hypothesis import assume, given, settings, strategies as st

from momentum_engine.config.schema import (
    Analysis,
    AverageTrueRange,
    EngineSettings,
    LevelArea,
    LevelMomentumPlan,
    TradingPlan,
)
from momentum_engine.market.candles import Candle, aggregate_candles
from momentum_engine.market.snapshot import AccountSnapshot, ExitPair, MarketSnapshot, PositionSnapshot
from momentum_engine.rules.entry_rules import VwapDistance, vwap_distance_status
from momentum_engine.rules.risk import max_daily_loss_limit
from momentum_engine.strategy.admission import (
    EntryRequest,
    check_basic_global_entry_rules,
    clamp_size,
    hard_veto_reason,
)
from momentum_engine.strategy.exit_adjudication import adjudicate_market_out, adjudicate_stop_adjustment
from momentum_engine.strategy.selector import PriceOrdering, classify_ordering
from momentum_engine.tradebooks import TradebookState, VwapContinuation

prices = st.floats(min_value=1.0, max_value=1000.0, allow_nan=False, allow_infinity=False)


# ============================================================================
# Custom Strategies
# ============================================================================


@st.composite
def minute_candles(draw):
    """Generate valid one-minute candles starting at the open."""
    base_price = draw(st.floats(min_value=10.0, max_value=500.0))
    n_bars = draw(st.integers(min_value=1, max_value=40))

    candles = []
    for minute in range(n_bars):
        low = base_price * draw(st.floats(min_value=0.98, max_value=1.0))
        high = base_price * draw(st.floats(min_value=1.0, max_value=1.02))
        open_price = draw(st.floats(min_value=low, max_value=high))
        close = draw(st.floats(min_value=low, max_value=high))
        volume = draw(st.floats(min_value=0.0, max_value=5e6))
        candles.append(Candle(open_price, high, low, close, volume, minute))

    return candles


@st.composite
def entry_requests(draw, realized_pnl=st.floats(min_value=-3000.0, max_value=1000.0)):
    """Generate entries at the forming candle's close around a key level near the open."""
    candles = draw(minute_candles())
    is_long = draw(st.booleans())
    first_open = candles[0].open
    vwap = first_open * draw(st.floats(min_value=0.97, max_value=1.03))
    level = round(first_open * draw(st.floats(min_value=0.98, max_value=1.02)), 2)
    entry = candles[-1].close
    risk = draw(st.floats(min_value=0.01, max_value=5.0))
    stop = entry - risk if is_long else entry + risk

    snapshot = MarketSnapshot(
        symbol="TSLA",
        seconds_since_open=(len(candles) - 1) * 60 + 30,
        current_price=entry,
        candles=tuple(candles),
        vwaps=(vwap,) * len(candles),
        last_vwap_before_open=vwap,
        last_volume_before_open=draw(st.floats(min_value=0.0, max_value=2e5)),
        account=AccountSnapshot(realized_pnl=draw(realized_pnl)),
    )
    plan = TradingPlan(
        symbol="TSLA",
        atr=AverageTrueRange(average=draw(st.floats(min_value=0.5, max_value=20.0))),
        market_cap_in_millions=draw(st.sampled_from([0.0, 5000.0, 500000.0])),
        analysis=Analysis(single_momentum_key_levels=[LevelArea(high=level, low=level)]),
    )
    return EntryRequest(
        snapshot=snapshot,
        trading_plan=plan,
        settings=EngineSettings(),
        is_long=is_long,
        entry_price=entry,
        stop_price=stop,
        base_plan=LevelMomentumPlan(),
        tag="property",
    )


# ============================================================================
# Sizing
# ============================================================================


@given(size=st.floats(min_value=-10.0, max_value=10.0, allow_nan=False))
def test_clamp_size_in_unit_interval(size):
    """Clamped sizes are within [0, 1] and clamping is idempotent."""
    clamped = clamp_size(size)

    assert 0.0 <= clamped <= 1.0
    assert clamp_size(clamped) == clamped


@given(balance=st.floats(min_value=0.0, max_value=1e8, allow_nan=False))
def test_daily_limit_at_least_fallback(balance):
    """Default settings never produce a limit below the fallback."""
    engine_settings = EngineSettings()

    limit = max_daily_loss_limit(AccountSnapshot(initial_balance=balance), engine_settings)

    assert limit >= engine_settings.daily_loss_fallback


# ============================================================================
# Admission
# ============================================================================


@given(entry=entry_requests())
@settings(max_examples=50, deadline=None)
def test_basic_rules_size_in_unit_interval(entry):
    """Whatever vetoes and reducers fire, the size stays within [0, 1]."""
    size = check_basic_global_entry_rules(entry)

    assert 0.0 <= size <= 1.0


@given(entry=entry_requests(realized_pnl=st.floats(min_value=-1e6, max_value=-5000.0)))
@settings(max_examples=50, deadline=None)
def test_daily_loss_veto_wins_over_reducers(entry):
    """A realized loss past the limit vetoes with its own reason."""
    assert abs(entry.snapshot.account.realized_pnl) >= max_daily_loss_limit(
        entry.snapshot.account, entry.settings
    )

    assert check_basic_global_entry_rules(entry) == 0.0
    assert hard_veto_reason(entry, 1.0) == "checkRule: Daily max loss exceeded"


@given(entry=entry_requests())
@settings(max_examples=30, deadline=None)
def test_admission_is_repeatable(entry):
    """The same request always gets the same size."""
    assert check_basic_global_entry_rules(entry) == check_basic_global_entry_rules(entry)


@given(candles=minute_candles(), key_index=st.integers(min_value=0, max_value=2),
       offset=st.floats(min_value=-2.0, max_value=2.0))
@settings(max_examples=30, deadline=None)
def test_exit_adjudication_is_repeatable(candles, key_index, offset):
    """Stop and market-out verdicts do not change when asked twice."""
    entry = candles[0].open
    position = PositionSnapshot(
        net_quantity=30,
        average_price=entry,
        entry_price=entry,
        stop_loss_price=entry - 1.0,
        exit_pairs=tuple(ExitPair(i, 10, stop_price=entry - 1.0, limit_price=entry + 2.0) for i in range(3)),
    )
    snapshot = MarketSnapshot(
        symbol="TSLA",
        seconds_since_open=(len(candles) - 1) * 60 + 30,
        current_price=candles[-1].close,
        candles=tuple(candles),
        position=position,
    )
    engine_settings = EngineSettings()
    atr = AverageTrueRange(average=5.0)
    new_stop = entry - 1.0 + offset

    first = adjudicate_stop_adjustment(snapshot, engine_settings, atr, key_index, new_stop)
    again = adjudicate_stop_adjustment(snapshot, engine_settings, atr, key_index, new_stop)

    assert first == again
    assert adjudicate_market_out(snapshot, engine_settings, atr, key_index) == adjudicate_market_out(
        snapshot, engine_settings, atr, key_index
    )


# ============================================================================
# State transitions
# ============================================================================


class CountingVwapContinuation(VwapContinuation):
    """Records every state entered through the hook."""

    def __init__(self, alerts):
        super().__init__("TSLA", True, LevelArea(high=100.5, low=100.0), LevelMomentumPlan(), alerts)
        self.entered = []

    def on_enter_state(self, new_state, snapshot):
        self.entered.append(new_state)
        return super().on_enter_state(new_state, snapshot)


class ListAlerts:
    def __init__(self):
        self.messages = []

    def announce(self, symbol, message):
        self.messages.append(message)


@given(states=st.lists(st.sampled_from(list(TradebookState)), max_size=25))
def test_transition_side_effects_once_per_change(states):
    """Repeating a state never re-runs the hook or repeats a callout."""
    alerts = ListAlerts()
    tradebook = CountingVwapContinuation(alerts)

    changes = []
    previous = tradebook.state
    for state in states:
        changed = tradebook.transition_to_state(state)
        assert changed == (state != previous)
        assert tradebook.state == state
        if changed:
            changes.append(state)
        previous = state

    assert tradebook.entered == changes
    with_callout = [
        s for s in changes if s in (TradebookState.MOMENTUM, TradebookState.PULLBACK, TradebookState.FAILED)
    ]
    assert len(alerts.messages) == len(with_callout)


# ============================================================================
# Selection
# ============================================================================


@given(open_price=prices, vwap=prices, key_level=prices)
def test_classify_ordering_consistent(open_price, vwap, key_level):
    """Each ordering agrees with the prices that produced it."""
    ordering = classify_ordering(open_price, vwap, key_level)

    if key_level == vwap:
        assert ordering == PriceOrdering.TIE
    elif ordering == PriceOrdering.OPEN_LEVEL_VWAP:
        assert open_price >= key_level > vwap
    elif ordering == PriceOrdering.LEVEL_OPEN_VWAP:
        assert key_level > open_price > vwap
    elif ordering == PriceOrdering.LEVEL_VWAP_OPEN:
        assert key_level > vwap >= open_price
    elif ordering == PriceOrdering.OPEN_VWAP_LEVEL:
        assert open_price >= vwap > key_level
    elif ordering == PriceOrdering.VWAP_OPEN_LEVEL:
        assert vwap > open_price > key_level
    else:
        assert ordering == PriceOrdering.VWAP_LEVEL_OPEN
        assert vwap > key_level >= open_price


# ============================================================================
# VWAP distance
# ============================================================================


@given(is_long=st.booleans(), entry=prices, risk=st.floats(min_value=0.01, max_value=20.0),
       offset=st.floats(min_value=0.0, max_value=50.0))
def test_vwap_same_side_never_blocked(is_long, entry, risk, offset):
    """An entry on the trade side of VWAP is always allowed."""
    stop = entry - risk if is_long else entry + risk
    vwap = entry - offset if is_long else entry + offset

    assert vwap_distance_status(is_long, entry, stop, vwap) == VwapDistance.SAME_SIDE


@given(entry=prices, risk=st.floats(min_value=0.01, max_value=20.0),
       multiple=st.floats(min_value=0.01, max_value=10.0))
def test_vwap_against_long_is_symmetric_with_short(entry, risk, multiple):
    """Longs below VWAP and shorts above VWAP classify the same way."""
    assume(entry - risk > 0 and entry - risk * multiple > 0)
    assume(abs(multiple - 2.0) > 1e-3 and abs(multiple - 0.25) > 1e-3)

    long_status = vwap_distance_status(True, entry, entry - risk, entry + risk * multiple)
    short_status = vwap_distance_status(False, entry, entry + risk, entry - risk * multiple)

    assert long_status == short_status
    assert long_status != VwapDistance.SAME_SIDE


# ============================================================================
# Aggregation
# ============================================================================


@given(candles=minute_candles(), timeframe=st.sampled_from([1, 5, 15]))
@settings(max_examples=50, deadline=None)
def test_aggregate_keeps_volume_and_range(candles, timeframe):
    """Buckets preserve total volume, day range, open and close."""
    aggregated = aggregate_candles(candles, timeframe)

    assert len(aggregated) == math.ceil(len(candles) / timeframe)
    assert math.isclose(sum(c.volume for c in aggregated), sum(c.volume for c in candles),
                        rel_tol=1e-9, abs_tol=1e-6)
    assert max(c.high for c in aggregated) == max(c.high for c in candles)
    assert min(c.low for c in aggregated) == min(c.low for c in candles)
    assert aggregated[0].open == candles[0].open
    assert aggregated[-1].close == candles[-1].close
