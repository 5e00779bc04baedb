"""
Shared fixtures.

Storage-backed tests run against a fresh in-memory SQLite
database per test.
"""

from typing import Optional

import pytest

from core.clock import MockClock
from recommendation_engine.adapters.mock import MockBrokerAdapter
from recommendation_engine.audit import AuditTrail
from recommendation_engine.config import RecommendationConfig
from recommendation_engine.store import RecommendationStore
from recommendation_engine.types import (
    Direction,
    DraftRecommendation,
    DraftSource,
    KnownPrice,
    PricedRecommendation,
    SizingMethod,
    TradingContext,
)
from storage.database import Database, DatabaseConfig


@pytest.fixture
def database():
    db = Database(DatabaseConfig.for_testing())
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def session(database):
    session = database.get_session()
    yield session
    session.close()


@pytest.fixture
def clock():
    return MockClock()


@pytest.fixture
def broker():
    return MockBrokerAdapter()


@pytest.fixture
def audit(session, clock):
    return AuditTrail(session, clock)


@pytest.fixture
def store(session, clock, audit):
    return RecommendationStore(session, config=RecommendationConfig(), clock=clock, audit=audit)


@pytest.fixture
def context(clock):
    return TradingContext(
        market={"instruments": ["EUR_USD"], "EUR_USD": {"granularity": "M5", "last_close": 1.1, "count": 50}},
        news={"query": "EUR_USD forex", "items": []},
        historical={"notes": "pending"},
        timestamp=clock.now(),
    )


@pytest.fixture
def make_priced(context):
    """Factory for priced recommendations ready to store."""

    def _make(
        instrument: str = "EUR_USD",
        direction: Direction = Direction.BUY,
        units: float = 100.0,
        stop_loss: Optional[float] = 1.098,
        take_profit: Optional[float] = 1.104,
        recommendation_id: Optional[str] = None,
        confidence: float = 0.7,
    ) -> PricedRecommendation:
        draft = DraftRecommendation(
            instrument=instrument,
            direction=direction,
            units=units,
            confidence=confidence,
            rationale="Trend continuation",
            source=DraftSource.MODEL,
            context=context,
        )
        return PricedRecommendation(
            draft=draft,
            units=units,
            sizing_method=SizingMethod.DRAFT,
            price=KnownPrice(1.1),
            stop_loss=stop_loss,
            take_profit=take_profit,
            distance_pips=20.0 if stop_loss is not None else None,
            recommendation_id=recommendation_id,
        )

    return _make
