"""
Recommendation Engine - Mock Broker Adapter.

============================================================
PURPOSE
============================================================
In-process broker for tests and credential-less local runs.

FEATURES:
- Configurable prices, spread and equity
- Configurable error injection (rejections, read failures)
- Full order history

============================================================
"""

import logging
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from core.exceptions import BrokerError, BrokerRejection
from recommendation_engine.adapters.base import (
    BrokerAdapter,
    Candle,
    MarketOrderRequest,
    OrderConfirmation,
    Position,
    Quote,
)
from recommendation_engine.risk import pip_size


logger = logging.getLogger(__name__)


# ============================================================
# MOCK CONFIGURATION
# ============================================================

@dataclass
class MockBrokerConfig:
    """Configuration for the mock broker."""

    initial_equity: float = 10000.0
    """Account NAV."""

    prices: Dict[str, float] = field(default_factory=lambda: {
        "EUR_USD": 1.1000,
        "GBP_USD": 1.2700,
        "USD_JPY": 150.00,
    })
    """Mid prices by instrument."""

    spread_pips: float = 1.0
    """Bid/ask spread in pips."""

    # Error injection
    rejection_probability: float = 0.0
    """Probability of an order rejection."""

    fail_quotes: bool = False
    """Every quote request raises BrokerError."""

    fail_equity: bool = False
    """Every equity request raises BrokerError."""


# ============================================================
# MOCK BROKER ADAPTER
# ============================================================

class MockBrokerAdapter(BrokerAdapter):
    """
    Mock broker adapter.

    Unknown instruments have no price: quotes raise BrokerError.
    """

    def __init__(self, config: Optional[MockBrokerConfig] = None):
        self._config = config or MockBrokerConfig()
        self._prices: Dict[str, float] = dict(self._config.prices)
        self._equity = self._config.initial_equity
        self._orders: List[MarketOrderRequest] = []
        self._force_next_rejection: Optional[str] = None

    @property
    def broker_id(self) -> str:
        return "mock"

    # --------------------------------------------------------
    # READS
    # --------------------------------------------------------

    def get_quote(self, instrument: str) -> Quote:
        if self._config.fail_quotes:
            raise BrokerError("Simulated quote failure", endpoint="pricing")
        if instrument not in self._prices:
            raise BrokerError(f"No price for {instrument}", endpoint="pricing")

        mid = self._prices[instrument]
        half_spread = float(pip_size(instrument)) * self._config.spread_pips / 2
        return Quote(
            instrument=instrument,
            bid=mid - half_spread,
            ask=mid + half_spread,
            time=datetime.now(timezone.utc),
        )

    def get_account_equity(self) -> float:
        if self._config.fail_equity:
            raise BrokerError("Simulated account failure", endpoint="account")
        return self._equity

    def get_candles(self, instrument: str, granularity: str, count: int) -> List[Candle]:
        if instrument not in self._prices:
            raise BrokerError(f"No candles for {instrument}", endpoint="candles")

        price = self._prices[instrument]
        end = datetime.now(timezone.utc).replace(second=0, microsecond=0)
        return [
            Candle(
                time=end - timedelta(minutes=5 * (count - i)),
                open=price,
                high=price,
                low=price,
                close=price,
                volume=0,
            )
            for i in range(count)
        ]

    def get_positions(self) -> List[Position]:
        """Net of every accepted order, per instrument."""
        positions: Dict[str, Position] = {}
        for order in self._orders:
            position = positions.setdefault(order.instrument, Position(instrument=order.instrument))
            if order.units > 0:
                position.long_units += order.units
            else:
                position.short_units += order.units
        return list(positions.values())

    # --------------------------------------------------------
    # ORDERS
    # --------------------------------------------------------

    def submit_market_order(self, request: MarketOrderRequest) -> OrderConfirmation:
        if self._force_next_rejection:
            reason = self._force_next_rejection
            self._force_next_rejection = None
            raise BrokerRejection(
                f"Injected rejection: {reason}",
                instrument=request.instrument,
                error_code=reason,
            )

        if random.random() < self._config.rejection_probability:
            raise BrokerRejection(
                "Simulated rejection",
                instrument=request.instrument,
                error_code="INSUFFICIENT_MARGIN",
            )

        order_id = str(uuid.uuid4())
        self._orders.append(request)
        logger.info(f"MockBroker order accepted: {order_id} {request.instrument} {request.units}")
        return OrderConfirmation(
            order_id=order_id,
            instrument=request.instrument,
            units=request.units,
            raw_response={"orderCreateTransaction": {"id": order_id}},
        )

    # --------------------------------------------------------
    # TEST HOOKS
    # --------------------------------------------------------

    def set_price(self, instrument: str, price: float) -> None:
        self._prices[instrument] = price

    def remove_price(self, instrument: str) -> None:
        self._prices.pop(instrument, None)

    def set_equity(self, equity: float) -> None:
        self._equity = equity

    def inject_rejection(self, error_code: str = "MARKET_HALTED") -> None:
        """Reject the next submission."""
        self._force_next_rejection = error_code

    @property
    def orders(self) -> List[MarketOrderRequest]:
        """All accepted orders."""
        return list(self._orders)
