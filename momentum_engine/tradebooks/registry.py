"""Per-symbol tradebook registry."""

from typing import Dict, List, Optional

from momentum_engine.market.snapshot import MarketSnapshot
from momentum_engine.tradebooks.base import Tradebook
from momentum_engine.utils.logging import log_for


class TradebookRegistry:
    """Tradebooks of one symbol, keyed by id.

    Example::

        registry = TradebookRegistry("TSLA")
        registry.register(OpenDrive("TSLA", True, key_level, plan))
        registry.reset_to_defaults()
        registry.enabled()  # OpenDrive is not default-enabled
    """

    def __init__(self, symbol: str):
        """Initialize registry.

        Args:
            symbol: Ticker every registered tradebook trades.
        """
        self.symbol = symbol
        self.tradebooks: Dict[str, Tradebook] = {}
        self.log = log_for(symbol, "registry")

    def register(self, tradebook: Tradebook) -> None:
        """Register a tradebook.

        Raises:
            ValueError: If the symbol differs or the id is already taken.
        """
        if tradebook.symbol != self.symbol:
            raise ValueError(f"tradebook {tradebook.id} is for {tradebook.symbol}, registry is for {self.symbol}")
        if tradebook.id in self.tradebooks:
            raise ValueError(f"tradebook id already registered: {tradebook.id}")
        self.tradebooks[tradebook.id] = tradebook
        self.log.debug(f"Registered tradebook: {tradebook.id}")

    def get(self, tradebook_id: str) -> Optional[Tradebook]:
        return self.tradebooks.get(tradebook_id)

    def all(self) -> List[Tradebook]:
        return list(self.tradebooks.values())

    def enabled(self) -> List[Tradebook]:
        return [t for t in self.tradebooks.values() if t.is_enabled()]

    def __len__(self) -> int:
        return len(self.tradebooks)

    def __contains__(self, tradebook_id: str) -> bool:
        return tradebook_id in self.tradebooks

    def reset_to_defaults(self) -> None:
        """Enable the default-enabled tradebooks and disable the rest."""
        for tradebook in self.tradebooks.values():
            if tradebook.enable_by_default:
                tradebook.enable()
            else:
                tradebook.disable()

    def disable_all(self) -> None:
        for tradebook in self.tradebooks.values():
            tradebook.disable()
        self.log.info("Disabled all tradebooks")

    def refresh_states(self, snapshot: MarketSnapshot) -> None:
        """Advance every enabled tradebook's state machine."""
        for tradebook in self.enabled():
            tradebook.refresh_state(snapshot)

    def summary(self) -> str:
        """One line per tradebook.

        Returns:
            Formatted summary string
        """
        lines = [f"{self.symbol}: {len(self.tradebooks)} tradebooks, {len(self.enabled())} enabled"]
        for tradebook in self.tradebooks.values():
            lines.append(f"  {tradebook!r}")
        return "\n".join(lines)
