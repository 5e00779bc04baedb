"""
Recommendation Engine - Adapters.

Broker and model collaborators behind narrow interfaces.
"""

from recommendation_engine.adapters.base import (
    BrokerAdapter,
    Candle,
    MarketOrderRequest,
    ModelClient,
    OrderConfirmation,
    Position,
    Quote,
)
from recommendation_engine.adapters.mock import MockBrokerAdapter, MockBrokerConfig
from recommendation_engine.adapters.oanda import OandaBrokerAdapter
from recommendation_engine.adapters.anthropic import AnthropicModelClient


__all__ = [
    "BrokerAdapter",
    "Candle",
    "MarketOrderRequest",
    "ModelClient",
    "OrderConfirmation",
    "Position",
    "Quote",
    "MockBrokerAdapter",
    "MockBrokerConfig",
    "OandaBrokerAdapter",
    "AnthropicModelClient",
]
