"""Cooperative recheck scheduler.

Rechecks that depend on market timing ("wait 0.4 seconds and look again")
are queued here and run from the host's event loop via ``run_pending``.
Nothing sleeps or blocks; a cancelled recheck is skipped when it comes due.
"""

import heapq
import itertools
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from loguru import logger


class CancellationToken:
    """Cancels every recheck scheduled with it."""

    def __init__(self, name: str = ""):
        self.name = name
        self.cancelled = False
        self.reason = ""

    def cancel(self, reason: str = "") -> None:
        if not self.cancelled:
            self.cancelled = True
            self.reason = reason
            logger.debug(f"cancelled {self.name or 'recheck'}: {reason}")

    def __repr__(self) -> str:
        status = "CANCELLED" if self.cancelled else "ACTIVE"
        return f"CancellationToken({self.name!r}, {status})"


@dataclass(order=True)
class ScheduledCheck:
    """One queued recheck, ordered by due time then insertion order."""

    due: float
    sequence: int
    callback: Callable[[], None] = field(compare=False)
    token: CancellationToken = field(compare=False)
    name: str = field(default="", compare=False)


class RecheckScheduler:
    """Min-heap of rechecks driven by an injectable clock.

    Args:
        clock: Monotonic seconds. Tests pass a fake clock.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self.clock = clock or time.monotonic
        self._queue: List[ScheduledCheck] = []
        self._counter = itertools.count()

    def schedule(
        self,
        delay_seconds: float,
        callback: Callable[[], None],
        token: Optional[CancellationToken] = None,
        name: str = "",
    ) -> CancellationToken:
        """Queue ``callback`` to run ``delay_seconds`` from now.

        Returns:
            The token guarding the recheck (a fresh one when none is given).

        Raises:
            ValueError: If ``delay_seconds`` is negative.
        """
        if delay_seconds < 0:
            raise ValueError(f"delay_seconds must be >= 0, got {delay_seconds}")
        token = token or CancellationToken(name)
        due = self.clock() + delay_seconds
        heapq.heappush(self._queue, ScheduledCheck(due, next(self._counter), callback, token, name))
        logger.debug(f"scheduled {name or 'recheck'} in {delay_seconds:.2f}s")
        return token

    def cancel(self, token: CancellationToken, reason: str = "") -> None:
        token.cancel(reason)

    def run_pending(self) -> int:
        """Run every recheck due by now, in due order.

        Rechecks scheduled by a callback run in a later call unless they are
        already due. Cancelled entries are dropped.

        Returns:
            Number of callbacks run.
        """
        now = self.clock()
        ran = 0
        while self._queue and self._queue[0].due <= now:
            check = heapq.heappop(self._queue)
            if check.token.cancelled:
                continue
            check.callback()
            ran += 1
        return ran

    def pending(self) -> int:
        """Rechecks still queued and not cancelled."""
        return sum(1 for c in self._queue if not c.token.cancelled)

    def next_due(self) -> Optional[float]:
        live = [c.due for c in self._queue if not c.token.cancelled]
        return min(live) if live else None

    def clear(self) -> None:
        for check in self._queue:
            check.token.cancel("scheduler cleared")
        self._queue.clear()
