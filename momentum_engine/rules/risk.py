"""Account and position risk rules.

All dollar risk is expressed against the daily loss limit. A risk multiple of
0.24 means the trade risks 24% of the limit.
"""

import math
from typing import Optional

from momentum_engine.config.schema import BasePlan, EngineSettings
from momentum_engine.market.snapshot import AccountSnapshot, MarketSnapshot
from momentum_engine.utils.logging import log_for

PAPER_CUT_RISK_RATIO = 0.15
PAPER_CUT_MAX_SECONDS = 120
BREAKEVEN_LIMIT_RATIO = 0.05
MIN_TOTAL_SHARES = 2


def max_daily_loss_limit(account: AccountSnapshot, settings: EngineSettings) -> float:
    """Daily loss limit in dollars.

    Large accounts risk a fixed fraction of the initial balance, smaller ones
    use the fallback.

    Examples:
        >>> settings = EngineSettings()
        >>> max_daily_loss_limit(AccountSnapshot(initial_balance=200000), settings)
        9540.0
        >>> max_daily_loss_limit(AccountSnapshot(initial_balance=50000), settings)
        5000.0
    """
    if account.initial_balance > settings.daily_loss_balance_threshold:
        return round(account.initial_balance * settings.daily_loss_ratio, 6)
    return settings.daily_loss_fallback


def risk_in_dollar_to_multiples(risk: float, limit: float) -> float:
    """Dollar risk as a fraction of the daily limit, 3 decimals.

    Examples:
        >>> risk_in_dollar_to_multiples(1234, 5000)
        0.247
    """
    return round(risk / limit, 3)


def is_over_daily_max_loss(account: AccountSnapshot, settings: EngineSettings) -> bool:
    """Realized loss has reached the daily limit."""
    if account.realized_pnl >= 0:
        return False
    return abs(account.realized_pnl) >= max_daily_loss_limit(account, settings)


def is_breakeven(profit: float, account: AccountSnapshot, settings: EngineSettings) -> bool:
    """Profit or loss within 5% of the daily limit."""
    return abs(profit) <= max_daily_loss_limit(account, settings) * BREAKEVEN_LIMIT_RATIO


def risk_multiplier_for_next_entry(base_plan: Optional[BasePlan], settings: EngineSettings) -> float:
    """Plan size override, or the default multiplier when unset."""
    if base_plan is not None and base_plan.plan_configs.size > 0:
        return base_plan.plan_configs.size
    return settings.default_risk_multiplier


def calculate_total_shares(entry_price: float, stop_price: float, multiplier: float,
                           account: AccountSnapshot, settings: EngineSettings) -> int:
    """Share count risking ``multiplier`` of the daily limit, at least 2.

    Examples:
        >>> calculate_total_shares(10.0, 9.5, 0.24, AccountSnapshot(), EngineSettings())
        2400
    """
    risk_per_share = abs(entry_price - stop_price)
    if risk_per_share == 0:
        return MIN_TOTAL_SHARES
    max_risk = multiplier * max_daily_loss_limit(account, settings)
    return max(MIN_TOTAL_SHARES, math.floor(round(max_risk / risk_per_share, 6)))


def position_risk_in_dollars(snapshot: MarketSnapshot) -> float:
    """Dollar risk of the open position.

    Quantity covered by working stop legs risks the distance to its stop.
    Uncovered quantity is assumed to risk the distance to the low of day
    (long) or high of day (short).
    """
    position = snapshot.position
    if not position.has_value:
        return 0.0
    risk = position.risk_from_stops()
    quantity = abs(position.net_quantity)
    covered = position.quantity_with_stop()
    if covered >= quantity:
        return risk
    log_for(snapshot.symbol).error(
        f"not all quantity has stop loss, quantity with stop: {covered}, total: {quantity}"
    )
    extreme = snapshot.low_of_day if position.is_long else snapshot.high_of_day
    return risk + (quantity - covered) * abs(position.average_price - extreme)


def entry_orders_risk_in_dollars(snapshot: MarketSnapshot) -> float:
    """Dollar risk of pending entry orders."""
    return sum(o.quantity * abs(o.price - o.stop_price) for o in snapshot.entry_orders)


def position_risk_multiples(snapshot: MarketSnapshot, settings: EngineSettings) -> float:
    limit = max_daily_loss_limit(snapshot.account, settings)
    return risk_in_dollar_to_multiples(position_risk_in_dollars(snapshot), limit)


def is_oversized(snapshot: MarketSnapshot, settings: EngineSettings) -> bool:
    """Open position risks more than its sizing budget."""
    return position_risk_multiples(snapshot, settings) > settings.oversized_multiple


def is_over_daily_max_loss_with_position(snapshot: MarketSnapshot, settings: EngineSettings) -> bool:
    """Realized P&L minus the open position's risk breaches the daily limit."""
    pnl = snapshot.account.realized_pnl
    risk = position_risk_in_dollars(snapshot)
    potential = pnl - risk
    limit = max_daily_loss_limit(snapshot.account, settings)
    if potential < 0 and abs(potential) > limit:
        log_for(snapshot.symbol).error(
            f"exceeded daily max loss: current pnl - risk = {pnl} - {risk} = {potential} > {limit}"
        )
        return True
    return False


def is_paper_cut(entry_price: float, stop_price: float, exit_price: float) -> bool:
    """Loss at ``exit_price`` is at most 15% of the original risk.

    Examples:
        >>> is_paper_cut(10.0, 9.0, 9.9)
        True
        >>> is_paper_cut(10.0, 9.0, 9.5)
        False
    """
    original_risk = abs(entry_price - stop_price)
    current_loss = abs(entry_price - exit_price)
    return current_loss <= original_risk * PAPER_CUT_RISK_RATIO


def is_allowed_as_paper_cut(snapshot: MarketSnapshot, entry_price: float, stop_price: float,
                            exit_price: float) -> bool:
    """Paper cut exit within two minutes of the first fill."""
    seconds_since_entry = snapshot.position.first_entry_seconds_ago
    if seconds_since_entry is None or seconds_since_entry > PAPER_CUT_MAX_SECONDS:
        return False
    return is_paper_cut(entry_price, stop_price, exit_price)


def size_for_tightened_stop(entry_price: float, wide_stop: float, tight_stop: float, size: float) -> float:
    """Rescale a size computed on ``wide_stop`` so the share count is unchanged with ``tight_stop``.

    Examples:
        >>> size_for_tightened_stop(10.0, 11.0, 10.5, 0.8)
        0.4
    """
    wide_risk = abs(entry_price - wide_stop)
    if wide_risk == 0:
        return 0.0
    return size * abs(entry_price - tight_stop) / wide_risk
