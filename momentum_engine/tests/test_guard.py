"""Tests for the submission guard."""

from momentum_engine.config.schema import BasePlan
from momentum_engine.session.guard import GuardedOrderGateway, SubmissionGuard, SubmissionKey


def key(**kwargs) -> SubmissionKey:
    values = dict(
        symbol="TSLA",
        is_long=True,
        tradebook_id="aboveWaterBreakout",
        entry_price=101.2,
        stop_price=100.1,
        size=0.24,
        use_market_order=False,
    )
    values.update(kwargs)
    return SubmissionKey(**values)


def submit(gateway: GuardedOrderGateway, price: float = 101.2) -> None:
    gateway.submit_entry("TSLA", True, price, 100.1, 100.1, 0.24, BasePlan(), "aboveWaterBreakout", False)


class TestSubmissionGuard:
    """Test duplicate detection per symbol and direction."""

    def test_duplicate_dropped(self):
        """Test the same submission is only allowed once."""
        guard = SubmissionGuard()

        assert guard.should_submit(key())
        assert not guard.should_submit(key())

    def test_changed_request_allowed(self):
        """Test a different price replaces the held submission."""
        guard = SubmissionGuard()
        guard.should_submit(key())

        assert guard.should_submit(key(entry_price=101.5))
        assert len(guard) == 1

    def test_directions_are_independent(self):
        """Test a short does not collide with a long."""
        guard = SubmissionGuard()
        guard.should_submit(key())

        assert guard.should_submit(key(is_long=False))
        assert len(guard) == 2

    def test_release(self):
        """Test releasing a direction allows the same submission again."""
        guard = SubmissionGuard()
        guard.should_submit(key())
        guard.should_submit(key(is_long=False))

        guard.release("TSLA", True)

        assert not guard.is_held("TSLA", True)
        assert guard.is_held("TSLA", False)
        assert guard.should_submit(key())

    def test_release_both(self):
        """Test releasing without a direction clears both."""
        guard = SubmissionGuard()
        guard.should_submit(key())
        guard.should_submit(key(is_long=False))

        guard.release("TSLA")

        assert len(guard) == 0


class TestGuardedOrderGateway:
    """Test the guard wrapped around a gateway."""

    def test_duplicate_not_forwarded(self, gateway):
        """Test only the first of two identical submissions reaches the gateway."""
        guarded = GuardedOrderGateway(gateway, SubmissionGuard())

        submit(guarded)
        submit(guarded)

        assert len(gateway.submissions) == 1

    def test_cancel_releases(self, gateway):
        """Test cancelling entry orders releases the guard."""
        guarded = GuardedOrderGateway(gateway, SubmissionGuard())
        submit(guarded)

        guarded.cancel_entry_orders("TSLA", True)
        submit(guarded)

        assert gateway.cancels == [("TSLA", True)]
        assert len(gateway.submissions) == 2
