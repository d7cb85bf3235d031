"""Contracts of the collaborators the engine calls but does not own."""

from typing import Optional, Protocol

from loguru import logger

from momentum_engine.config.schema import BasePlan
from momentum_engine.market.snapshot import MarketSnapshot


class MarketDataProvider(Protocol):
    """Supplies the latest snapshot for a symbol."""

    def snapshot(self, symbol: str) -> Optional[MarketSnapshot]:
        ...


class OrderGateway(Protocol):
    """Fire-and-forget order submission."""

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
        ...

    def cancel_entry_orders(self, symbol: str, is_long: bool) -> None:
        ...


class EntryPriceService(Protocol):
    """Chart-derived entry, stop and risk-level prices."""

    def breakout_entry_price(
        self, snapshot: MarketSnapshot, is_long: bool, use_market_order: bool
    ) -> float:
        ...

    def stop_loss_price(self, snapshot: MarketSnapshot, is_long: bool) -> float:
        ...

    def risk_level_price(self, snapshot: MarketSnapshot, stop_price: float) -> float:
        ...


class AlertSink(Protocol):
    """Advisory callouts (speech, toast) for the trader."""

    def announce(self, symbol: str, message: str) -> None:
        ...


class LoggingAlertSink:
    """AlertSink that writes callouts to the log."""

    def announce(self, symbol: str, message: str) -> None:
        logger.bind(symbol=symbol, tag="callout").info(message)


class CandleEntryPriceService:
    """Entry prices from the current candle extremes.

    Breakout entries use the high (long) or low (short) of the forming candle,
    market entries use the current price. Stops use the low (high) of day.
    """

    def breakout_entry_price(
        self, snapshot: MarketSnapshot, is_long: bool, use_market_order: bool
    ) -> float:
        if use_market_order or snapshot.current_candle is None:
            return snapshot.current_price
        candle = snapshot.current_candle
        return candle.high if is_long else candle.low

    def stop_loss_price(self, snapshot: MarketSnapshot, is_long: bool) -> float:
        return snapshot.low_of_day if is_long else snapshot.high_of_day

    def risk_level_price(self, snapshot: MarketSnapshot, stop_price: float) -> float:
        return stop_price
