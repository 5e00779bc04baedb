"""
Pydantic Schemas for the Recommendation API.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from recommendation_engine.types import (
    PricedRecommendation,
    RecommendationRequest,
    RiskLevel,
    price_value,
)


# =============================================================
# REQUESTS
# =============================================================

class RecommendRequest(BaseModel):
    """Body of POST /ai/recommend."""
    instruments: List[str] = Field(default_factory=list)
    risk_level: Optional[str] = "medium"
    time_horizon: str = "intraday"
    risk_fraction: Optional[float] = None
    units: Optional[float] = None
    stop_loss_pips: Optional[float] = None
    context: Optional[str] = None
    recommendation_id: Optional[str] = None

    def to_domain(self) -> RecommendationRequest:
        return RecommendationRequest(
            instruments=list(self.instruments),
            risk_level=RiskLevel.parse(self.risk_level),
            time_horizon=self.time_horizon,
            risk_fraction=self.risk_fraction,
            units=self.units,
            stop_loss_pips=self.stop_loss_pips,
            context=self.context,
            recommendation_id=self.recommendation_id,
        )


class LegacyRecommendationRequest(BaseModel):
    """Body of POST /recommendations."""
    instrument: str
    direction: str
    units: float
    rationale: Optional[str] = None
    confidence_score: Optional[float] = None


class OrderRequest(BaseModel):
    """Body of POST /orders. Negative units sell."""
    instrument: str
    units: float
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None


# =============================================================
# RESPONSES
# =============================================================

class RecommendationResponse(BaseModel):
    """A generated recommendation."""
    id: str
    instrument: str
    direction: str
    units: float
    confidence: float
    rationale: str
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    entry_price: Optional[float] = None
    sizing_method: str
    draft_source: str
    expires_at: Optional[datetime] = None

    @classmethod
    def from_priced(cls, priced: PricedRecommendation) -> "RecommendationResponse":
        draft = priced.draft
        return cls(
            id=priced.recommendation_id,
            instrument=draft.instrument,
            direction=draft.direction.value,
            units=priced.units,
            confidence=draft.confidence,
            rationale=draft.rationale,
            stop_loss=priced.stop_loss,
            take_profit=priced.take_profit,
            entry_price=price_value(priced.price),
            sizing_method=priced.sizing_method.value,
            draft_source=draft.source.value,
            expires_at=draft.expires_at,
        )


class AIRecommendationResponse(BaseModel):
    """Stored AI-form recommendation."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    instrument: str
    direction: str
    units: float
    confidence: float
    rationale: str
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    expires_at: Optional[datetime] = None
    draft_source: str
    status: str
    executed_trade_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LegacyRecommendationResponse(BaseModel):
    """Stored legacy-form recommendation."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    instrument: str
    direction: str
    units: float
    rationale: Optional[str] = None
    confidence_score: Optional[float] = None
    market_conditions: Optional[Dict[str, Any]] = None
    status: str
    trade_id: Optional[str] = None
    source_recommendation_id: Optional[str] = None
    created_at: Optional[datetime] = None
    executed_at: Optional[datetime] = None


class TradeResponse(BaseModel):
    """A trade. id is None when the trade could not be stored."""
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    instrument: str
    direction: str
    units: float
    entry_price: Optional[float] = None
    entry_price_known: bool = False
    status: str
    broker_trade_id: Optional[str] = None
    recommendation_id: Optional[str] = None
    created_at: Optional[datetime] = None


class CandleResponse(BaseModel):
    """One candle of GET /market/{instrument}."""
    model_config = ConfigDict(from_attributes=True)

    time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: Optional[float] = None
    complete: bool = True


class MarketDataResponse(BaseModel):
    instrument: str
    granularity: str
    candles: List[CandleResponse]


class PositionResponse(BaseModel):
    """Open broker position. short_units is negative."""
    model_config = ConfigDict(from_attributes=True)

    instrument: str
    long_units: float
    short_units: float
    net_units: float
    unrealized_pl: float
    margin_used: float


class AIStatusResponse(BaseModel):
    status: str
    drafter: str
    model: Optional[str] = None


class DeletedResponse(BaseModel):
    deleted: str
    count: int = 1


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    broker: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
    message: str
    context: Dict[str, Any] = Field(default_factory=dict)
