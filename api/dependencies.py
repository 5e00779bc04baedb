"""
API Dependencies.

============================================================
PURPOSE
============================================================
Process-wide collaborators (database, broker, model client,
news client) live in one EngineRuntime built at startup and
stored on app.state. Everything request-scoped (session,
store, services) is built per request from it.

============================================================
"""

import logging
from dataclasses import dataclass
from typing import Generator, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from core.clock import ClockProtocol, get_clock
from data_ingestion.collectors import (
    BraveNewsCollector,
    HistoricalNotesCollector,
    MarketContextCollector,
)
from recommendation_engine.adapters.base import BrokerAdapter, ModelClient
from recommendation_engine.aggregator import ContextAggregator
from recommendation_engine.config import EngineConfig
from recommendation_engine.drafter import RecommendationDrafter
from recommendation_engine.service import RecommendationService
from storage.database import Database


logger = logging.getLogger(__name__)


@dataclass
class EngineRuntime:
    """Long-lived collaborators shared by all requests."""

    config: EngineConfig
    database: Database
    broker: BrokerAdapter
    news: BraveNewsCollector
    model_client: Optional[ModelClient] = None
    clock: Optional[ClockProtocol] = None

    def build_service(self, session: Session) -> RecommendationService:
        """Assemble a request-scoped service over session."""
        clock = self.clock or get_clock()
        market = MarketContextCollector(self.broker, session, self.config.recommendation)
        aggregator = ContextAggregator(
            market_fetcher=market,
            news_fetcher=self.news,
            historical_fetcher=HistoricalNotesCollector(),
            clock=clock,
        )
        drafter = RecommendationDrafter(self.model_client, self.config.risk)
        return RecommendationService(
            session,
            broker=self.broker,
            aggregator=aggregator,
            drafter=drafter,
            config=self.config,
            clock=clock,
        )

    def close(self) -> None:
        for resource in (self.broker, self.news, self.model_client):
            if resource is None:
                continue
            try:
                resource.close()
            except Exception as e:
                logger.warning(f"Error closing {type(resource).__name__}: {e}")
        self.database.dispose()


# =============================================================
# FASTAPI DEPENDENCIES
# =============================================================

def get_runtime(request: Request) -> EngineRuntime:
    return request.app.state.runtime


def get_db(runtime: EngineRuntime = Depends(get_runtime)) -> Generator[Session, None, None]:
    db = runtime.database.get_session()
    try:
        yield db
    finally:
        db.close()


def get_service(
    runtime: EngineRuntime = Depends(get_runtime),
    db: Session = Depends(get_db),
) -> RecommendationService:
    return runtime.build_service(db)


def get_market_collector(
    runtime: EngineRuntime = Depends(get_runtime),
    db: Session = Depends(get_db),
) -> MarketContextCollector:
    return MarketContextCollector(runtime.broker, db, runtime.config.recommendation)
