"""
Recommendation Engine - Collaborator Interfaces.

============================================================
PURPOSE
============================================================
Abstract interfaces for the broker and the drafting model.

DESIGN PRINCIPLES:
- Broker-agnostic interface
- Narrow, synchronous calls with bounded timeouts
- Fully testable with mock adapters

============================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from recommendation_engine.types import (
    DraftRecommendation,
    RecommendationRequest,
    TradingContext,
)


# ============================================================
# BROKER REQUEST/RESPONSE TYPES
# ============================================================

@dataclass
class Quote:
    """Top of book for one instrument."""

    instrument: str
    bid: float
    ask: float
    time: Optional[datetime] = None

    @property
    def mid(self) -> Optional[float]:
        """Bid/ask midpoint, None if either side is missing."""
        if self.bid > 0 and self.ask > 0:
            return (self.bid + self.ask) / 2
        return None


@dataclass
class Candle:
    """One OHLC candle (mid prices)."""

    time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: Optional[float] = None
    complete: bool = True


@dataclass
class MarketOrderRequest:
    """Market order, optionally bracketed."""

    instrument: str
    """Instrument, e.g. EUR_USD."""

    units: float
    """Signed units: positive buys, negative sells."""

    stop_loss: Optional[float] = None
    """Stop-loss price attached on fill."""

    take_profit: Optional[float] = None
    """Take-profit price attached on fill."""

    @property
    def is_bracket(self) -> bool:
        return self.stop_loss is not None or self.take_profit is not None


@dataclass
class OrderConfirmation:
    """Broker acknowledgement of a placed order."""

    order_id: str
    """Broker-assigned order id."""

    instrument: str
    units: float
    raw_response: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Position:
    """Open position in one instrument."""

    instrument: str
    long_units: float = 0.0
    short_units: float = 0.0
    """Negative for a short position, as the broker reports it."""

    unrealized_pl: float = 0.0
    margin_used: float = 0.0

    @property
    def net_units(self) -> float:
        return self.long_units + self.short_units


# ============================================================
# BROKER ADAPTER
# ============================================================

class BrokerAdapter(ABC):
    """
    Abstract broker interface.

    Errors:
        BrokerError: transport or read failures
        BrokerRejection: the broker refused an order
    """

    @property
    @abstractmethod
    def broker_id(self) -> str:
        pass

    @abstractmethod
    def get_quote(self, instrument: str) -> Quote:
        """Current bid/ask for instrument."""
        pass

    @abstractmethod
    def get_account_equity(self) -> float:
        """Account net asset value."""
        pass

    @abstractmethod
    def submit_market_order(self, request: MarketOrderRequest) -> OrderConfirmation:
        """Place a market (or bracket) order."""
        pass

    @abstractmethod
    def get_candles(self, instrument: str, granularity: str, count: int) -> List[Candle]:
        """Most recent candles, oldest first."""
        pass

    @abstractmethod
    def get_positions(self) -> List[Position]:
        """Open positions, one per instrument."""
        pass

    def close(self) -> None:
        """Release network resources."""


# ============================================================
# MODEL CLIENT
# ============================================================

class ModelClient(ABC):
    """
    Drafting model interface.

    Errors:
        ModelUnavailableError: not configured
        ModelCallFailed: call failed or output unusable
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        pass

    @abstractmethod
    def generate(
        self,
        context: TradingContext,
        request: RecommendationRequest,
    ) -> DraftRecommendation:
        """Draft a recommendation from context."""
        pass

    def close(self) -> None:
        """Release network resources."""
