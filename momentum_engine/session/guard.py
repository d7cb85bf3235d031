"""Submission guard.

Duplicate entry events (the same request delivered twice by the host) must
not submit twice. The guard remembers the last submission per symbol and
direction and drops an identical one until it is released: when the
position goes flat, when the entry orders are cancelled, or at rollover.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from momentum_engine.config.schema import BasePlan
from momentum_engine.market.protocols import OrderGateway
from momentum_engine.utils.logging import log_for


@dataclass(frozen=True)
class SubmissionKey:
    """Inputs that make two submissions identical."""

    symbol: str
    is_long: bool
    tradebook_id: str
    entry_price: float
    stop_price: float
    size: float
    use_market_order: bool


class SubmissionGuard:
    """Last submission per (symbol, direction)."""

    def __init__(self):
        self._held: Dict[Tuple[str, bool], SubmissionKey] = {}

    def should_submit(self, key: SubmissionKey) -> bool:
        """Record ``key`` and return True, or False when it repeats the held one."""
        slot = (key.symbol, key.is_long)
        if self._held.get(slot) == key:
            log_for(key.symbol, key.tradebook_id).warning(
                f"duplicate entry ignored: {key.entry_price} stop {key.stop_price} size {key.size}"
            )
            return False
        self._held[slot] = key
        return True

    def is_held(self, symbol: str, is_long: bool) -> bool:
        return (symbol, is_long) in self._held

    def release(self, symbol: str, is_long: Optional[bool] = None) -> None:
        """Forget the held submission for one direction, or both when None."""
        directions = (True, False) if is_long is None else (is_long,)
        for direction in directions:
            if self._held.pop((symbol, direction), None) is not None:
                log_for(symbol, "guard").debug(f"released {'long' if direction else 'short'} submission")

    def release_all(self) -> None:
        self._held.clear()

    def __len__(self) -> int:
        return len(self._held)


class GuardedOrderGateway:
    """OrderGateway wrapper that drops duplicate submissions.

    Args:
        inner: Gateway that actually sends orders.
        guard: Shared submission guard.
    """

    def __init__(self, inner: OrderGateway, guard: SubmissionGuard):
        self.inner = inner
        self.guard = guard

    def submit_entry(
        self,
        symbol: str,
        is_long: bool,
        price: float,
        stop_price: float,
        risk_level_price: float,
        size: float,
        plan: BasePlan,
        tradebook_id: str,
        use_market_order: bool,
    ) -> None:
        key = SubmissionKey(symbol, is_long, tradebook_id, price, stop_price, size, use_market_order)
        if not self.guard.should_submit(key):
            return
        self.inner.submit_entry(
            symbol, is_long, price, stop_price, risk_level_price, size, plan, tradebook_id, use_market_order
        )

    def cancel_entry_orders(self, symbol: str, is_long: bool) -> None:
        self.guard.release(symbol, is_long)
        self.inner.cancel_entry_orders(symbol, is_long)
