"""
Storage Models Package.

This package contains all ORM models of the recommendation engine.
Models are organized by domain.

============================================================
MODEL ORGANIZATION
============================================================

Recommendations (recommendations.py)
- AIRecommendation
- LegacyRecommendation
- AIUsageLog

Trades (trades.py)
- Trade

Audit (audit.py)
- AuditLog

Market Data (market_data.py)
- MarketCandle

============================================================
"""

from storage.models.base import (
    Base,
    JSONType,
    SoftDeleteMixin,
    TimestampMixin,
    generate_uuid,
    utc_now,
)
from storage.models.recommendations import AIRecommendation, AIUsageLog, LegacyRecommendation
from storage.models.trades import Trade
from storage.models.audit import AuditLog
from storage.models.market_data import MarketCandle


__all__ = [
    "Base",
    "JSONType",
    "SoftDeleteMixin",
    "TimestampMixin",
    "generate_uuid",
    "utc_now",
    "AIRecommendation",
    "AIUsageLog",
    "LegacyRecommendation",
    "Trade",
    "AuditLog",
    "MarketCandle",
]
