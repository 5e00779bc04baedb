"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
The Repository Layer is the ONLY gateway to persistent storage.
All database access goes through repository classes.

============================================================
ARCHITECTURE PRINCIPLES
============================================================
1. One repository per table
2. Session Injection: sessions are injected, not created internally
3. Explicit Methods: clear method names, no generic 'execute'
4. Audit rows are append-only, recommendations change state
   only through conditional updates
5. All DB errors wrapped in repository exceptions

============================================================
USAGE
============================================================

    from storage.repositories import TradeRepository

    def record_trade(session: Session, ...):
        repo = TradeRepository(session)
        trade = repo.create(...)
        repo.commit()
        return trade

============================================================
"""

from storage.repositories.exceptions import (
    DatabaseUnavailableError,
    DuplicateRecordError,
    ImmutableRecordError,
    IntegrityError,
    QueryError,
    RepositoryException,
    TransactionError,
)
from storage.repositories.base import BaseRepository
from storage.repositories.recommendations import (
    AIRecommendationRepository,
    AIUsageLogRepository,
    LegacyRecommendationRepository,
)
from storage.repositories.trades import TradeRepository
from storage.repositories.audit import AuditLogRepository
from storage.repositories.market_data import MarketCandleRepository


__all__ = [
    "DatabaseUnavailableError",
    "DuplicateRecordError",
    "ImmutableRecordError",
    "IntegrityError",
    "QueryError",
    "RepositoryException",
    "TransactionError",
    "BaseRepository",
    "AIRecommendationRepository",
    "AIUsageLogRepository",
    "LegacyRecommendationRepository",
    "TradeRepository",
    "AuditLogRepository",
    "MarketCandleRepository",
]
