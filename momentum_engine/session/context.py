"""Session lifecycle: the per-symbol state every decision reads."""

from datetime import date
from typing import Dict, List, Optional

from loguru import logger

from momentum_engine.config.schema import EngineSettings, TradingPlan
from momentum_engine.market.protocols import AlertSink, EntryPriceService, LoggingAlertSink, OrderGateway
from momentum_engine.session.guard import GuardedOrderGateway, SubmissionGuard
from momentum_engine.tradebooks.base import TradebookContext
from momentum_engine.tradebooks.factory import create_registry
from momentum_engine.tradebooks.registry import TradebookRegistry
from momentum_engine.utils.ids import generate_session_id


class SessionContext:
    """Owns the trading plans, tradebook registries and submission guard of a session.

    Every pipeline call receives its collaborators from here instead of
    reaching for module level state. ``rollover`` discards the day's
    tradebooks and rebuilds them from the plans.

    Args:
        settings: Engine settings.
        prices: Entry/stop price service.
        gateway: Order gateway, wrapped with the submission guard.
        alerts: Callout sink.
    """

    def __init__(
        self,
        settings: EngineSettings,
        prices: EntryPriceService,
        gateway: Optional[OrderGateway] = None,
        alerts: Optional[AlertSink] = None,
    ):
        self.settings = settings
        self.prices = prices
        self.alerts = alerts or LoggingAlertSink()
        self.guard = SubmissionGuard()
        self.gateway = GuardedOrderGateway(gateway, self.guard) if gateway is not None else None
        self.plans: Dict[str, TradingPlan] = {}
        self.registries: Dict[str, TradebookRegistry] = {}
        self.session_id = generate_session_id()
        self.session_date: Optional[date] = None

    @property
    def symbols(self) -> List[str]:
        return list(self.plans.keys())

    def add_plan(self, plan: TradingPlan) -> TradebookRegistry:
        """Register a symbol's plan and build its tradebooks."""
        self.plans[plan.symbol] = plan
        registry = create_registry(plan, self.alerts)
        self.registries[plan.symbol] = registry
        logger.bind(symbol=plan.symbol, tag="session").info(
            f"plan added, {len(registry)} tradebooks, {len(registry.enabled())} enabled"
        )
        return registry

    def plan(self, symbol: str) -> Optional[TradingPlan]:
        return self.plans.get(symbol)

    def registry(self, symbol: str) -> Optional[TradebookRegistry]:
        return self.registries.get(symbol)

    def tradebook_context(self, symbol: str) -> Optional[TradebookContext]:
        """Collaborators for one symbol's tradebooks, None when the symbol has no plan."""
        plan = self.plans.get(symbol)
        if plan is None:
            return None
        return TradebookContext(
            trading_plan=plan,
            settings=self.settings,
            prices=self.prices,
            gateway=self.gateway,
        )

    def rollover(self, session_date: Optional[date] = None) -> None:
        """Start a new trading day.

        Rebuilds every registry from its plan (fresh states, default
        enablement), releases the submission guard and issues a new
        session id.
        """
        self.session_date = session_date
        self.session_id = generate_session_id()
        self.guard.release_all()
        for symbol, plan in self.plans.items():
            self.registries[symbol] = create_registry(plan, self.alerts)
        logger.info(f"session rollover to {session_date or 'today'}: {len(self.plans)} symbols, id {self.session_id}")
