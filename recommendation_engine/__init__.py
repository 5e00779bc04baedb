"""
Recommendation Engine.

============================================================
PURPOSE
============================================================
Proposes, prices, persists and executes forex trade
recommendations.

FLOW:
    ContextAggregator -> RecommendationDrafter -> RiskCalculator
    -> RecommendationStore -> ExecutionService (on accept)

Every state change leaves an AuditTrail row.

============================================================
"""

# ============================================================
# TYPES
# ============================================================
from recommendation_engine.types import (
    AuditAction,
    Direction,
    DraftRecommendation,
    DraftSource,
    KnownPrice,
    ModelUsage,
    PriceQuote,
    PricedRecommendation,
    RecommendationForm,
    RecommendationRequest,
    RecommendationStatus,
    RiskLevel,
    SizingMethod,
    TradeStatus,
    TradingContext,
    UnknownPrice,
    VALID_TRANSITIONS,
    can_transition,
    price_value,
)

# ============================================================
# CONFIGURATION
# ============================================================
from recommendation_engine.config import (
    BrokerConfig,
    EngineConfig,
    ModelConfig,
    NewsConfig,
    RecommendationConfig,
    RiskConfig,
)

# ============================================================
# COMPONENTS
# ============================================================
from recommendation_engine.aggregator import ContextAggregator
from recommendation_engine.drafter import RecommendationDrafter
from recommendation_engine.risk import RiskCalculator, pip_size, quote_currency
from recommendation_engine.audit import AuditTrail
from recommendation_engine.store import RecommendationStore, safe_recommendation_id
from recommendation_engine.execution_service import ExecutionService
from recommendation_engine.service import RecommendationService


__all__ = [
    # Types
    "AuditAction",
    "Direction",
    "DraftRecommendation",
    "DraftSource",
    "KnownPrice",
    "ModelUsage",
    "PriceQuote",
    "PricedRecommendation",
    "RecommendationForm",
    "RecommendationRequest",
    "RecommendationStatus",
    "RiskLevel",
    "SizingMethod",
    "TradeStatus",
    "TradingContext",
    "UnknownPrice",
    "VALID_TRANSITIONS",
    "can_transition",
    "price_value",
    # Configuration
    "BrokerConfig",
    "EngineConfig",
    "ModelConfig",
    "NewsConfig",
    "RecommendationConfig",
    "RiskConfig",
    # Components
    "ContextAggregator",
    "RecommendationDrafter",
    "RiskCalculator",
    "pip_size",
    "quote_currency",
    "AuditTrail",
    "RecommendationStore",
    "safe_recommendation_id",
    "ExecutionService",
    "RecommendationService",
]
