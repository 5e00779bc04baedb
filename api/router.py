"""
FastAPI Router for the Recommendation Engine.

Endpoints (prefix /api/v1):
- POST   /ai/recommend                   generate a recommendation
- POST   /recommendations                store a legacy recommendation
- GET    /recommendations                list (form=ai|legacy)
- POST   /recommendations/{id}/accept    execute at the broker
- DELETE /recommendations/{id}           soft delete
- POST   /orders                         direct order
- GET    /trades                         list trades
- DELETE /trades/{id}                    soft delete a trade
- GET    /positions                      open broker positions
- GET    /market/{instrument}            recent candles
- GET    /news/search                    news lookup
- GET    /ai/status                      drafter in use
- GET    /health, /health/db             liveness
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.dependencies import EngineRuntime, get_market_collector, get_runtime, get_service
from api.schemas import (
    AIRecommendationResponse,
    AIStatusResponse,
    CandleResponse,
    DeletedResponse,
    HealthResponse,
    LegacyRecommendationRequest,
    LegacyRecommendationResponse,
    MarketDataResponse,
    OrderRequest,
    PositionResponse,
    RecommendationResponse,
    RecommendRequest,
    TradeResponse,
)
from core.clock import get_clock
from core.exceptions import (
    BrokerRejection,
    CollaboratorError,
    ConflictError,
    InputError,
    NotFoundError,
    PersistenceError,
    TradingException,
)
from data_ingestion.collectors import MarketContextCollector
from data_ingestion.types import NewsItem
from recommendation_engine.service import RecommendationService
from recommendation_engine.types import RecommendationForm


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Recommendations"])


# =============================================================
# HELPER: Error mapping
# =============================================================

def status_for(error: TradingException) -> int:
    """HTTP status for a domain error."""
    if isinstance(error, InputError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(error, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, ConflictError):
        return status.HTTP_409_CONFLICT
    if isinstance(error, BrokerRejection):
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(error, CollaboratorError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def to_http_exception(error: TradingException) -> HTTPException:
    code = status_for(error)
    if code >= 500 and not isinstance(error, (CollaboratorError, PersistenceError)):
        logger.error(f"Unexpected domain error: {error}", exc_info=True)
    return HTTPException(status_code=code, detail=error.to_dict())


# =============================================================
# RECOMMENDATIONS
# =============================================================

@router.post("/ai/recommend", response_model=RecommendationResponse, status_code=status.HTTP_201_CREATED)
def generate_recommendation(
    body: RecommendRequest,
    service: RecommendationService = Depends(get_service),
):
    """
    Generate, price and store a recommendation.

    The response carries the stored id; nothing is executed.
    """
    try:
        priced = service.generate_recommendation(body.to_domain())
    except TradingException as e:
        raise to_http_exception(e)
    return RecommendationResponse.from_priced(priced)


@router.post(
    "/recommendations",
    response_model=LegacyRecommendationResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_recommendation(
    body: LegacyRecommendationRequest,
    service: RecommendationService = Depends(get_service),
):
    """
    Store a caller-authored recommendation in the legacy store.

    It carries no bracket; accepting it sends a plain market order.
    """
    try:
        record = service.create_legacy_recommendation(
            body.instrument,
            body.direction,
            body.units,
            rationale=body.rationale,
            confidence_score=body.confidence_score,
        )
    except TradingException as e:
        raise to_http_exception(e)
    return LegacyRecommendationResponse.model_validate(record)


@router.get("/recommendations")
def list_recommendations(
    form: RecommendationForm = Query(RecommendationForm.AI, description="ai or legacy"),
    limit: Optional[int] = Query(None, description="1-500, default 200"),
    service: RecommendationService = Depends(get_service),
):
    """Live recommendations of one form, newest first."""
    try:
        records = service.list_recommendations(form, limit)
    except TradingException as e:
        raise to_http_exception(e)

    if form is RecommendationForm.LEGACY:
        return [LegacyRecommendationResponse.model_validate(r) for r in records]
    return [AIRecommendationResponse.model_validate(r) for r in records]


@router.post("/recommendations/{recommendation_id}/accept", response_model=TradeResponse)
def accept_recommendation(
    recommendation_id: str,
    service: RecommendationService = Depends(get_service),
):
    """
    Execute a pending recommendation at the broker.

    404 unknown id, 409 already executed or in flight,
    502 broker rejection (recommendation stays PENDING).
    """
    try:
        trade = service.accept_recommendation(recommendation_id)
    except TradingException as e:
        raise to_http_exception(e)
    return TradeResponse.model_validate(trade)


@router.delete("/recommendations/{recommendation_id}", response_model=DeletedResponse)
def delete_recommendation(
    recommendation_id: str,
    service: RecommendationService = Depends(get_service),
):
    try:
        count = service.delete_recommendation(recommendation_id)
    except TradingException as e:
        raise to_http_exception(e)
    return DeletedResponse(deleted=recommendation_id, count=count)


# =============================================================
# ORDERS & TRADES
# =============================================================

@router.post("/orders", response_model=TradeResponse, status_code=status.HTTP_201_CREATED)
def place_order(
    body: OrderRequest,
    service: RecommendationService = Depends(get_service),
):
    """Place a market order directly; SL/TP make it a bracket."""
    try:
        trade = service.place_order(body.instrument, body.units, body.stop_loss, body.take_profit)
    except TradingException as e:
        raise to_http_exception(e)
    return TradeResponse.model_validate(trade)


@router.get("/trades", response_model=List[TradeResponse])
def list_trades(
    limit: Optional[int] = Query(None, description="1-500, default 200"),
    service: RecommendationService = Depends(get_service),
):
    try:
        trades = service.list_trades(limit)
    except TradingException as e:
        raise to_http_exception(e)
    return [TradeResponse.model_validate(t) for t in trades]


@router.delete("/trades/{trade_id}", response_model=DeletedResponse)
def delete_trade(
    trade_id: str,
    service: RecommendationService = Depends(get_service),
):
    try:
        service.delete_trade(trade_id)
    except TradingException as e:
        raise to_http_exception(e)
    return DeletedResponse(deleted=trade_id)


@router.get("/positions", response_model=List[PositionResponse])
def list_positions(service: RecommendationService = Depends(get_service)):
    """Open positions as the broker reports them."""
    try:
        positions = service.list_positions()
    except TradingException as e:
        raise to_http_exception(e)
    return [PositionResponse.model_validate(p) for p in positions]


# =============================================================
# MARKET DATA
# =============================================================

@router.get("/market/{instrument}", response_model=MarketDataResponse)
def get_market_data(
    instrument: str,
    runtime: EngineRuntime = Depends(get_runtime),
    collector: MarketContextCollector = Depends(get_market_collector),
):
    """Recent candles for one instrument, stored as they are fetched."""
    try:
        candles = collector.candles(instrument)
    except TradingException as e:
        raise to_http_exception(e)
    return MarketDataResponse(
        instrument=instrument,
        granularity=runtime.config.recommendation.candle_granularity,
        candles=[CandleResponse.model_validate(c) for c in candles],
    )


# =============================================================
# NEWS
# =============================================================

@router.get("/news/search", response_model=List[NewsItem])
def search_news(
    q: str = Query(..., min_length=1),
    count: int = Query(10, ge=1, le=50),
    runtime: EngineRuntime = Depends(get_runtime),
):
    try:
        return runtime.news.search(q, count)
    except TradingException as e:
        raise to_http_exception(e)


# =============================================================
# AI
# =============================================================

@router.get("/ai/status", response_model=AIStatusResponse)
def ai_status(runtime: EngineRuntime = Depends(get_runtime)):
    """Whether drafts come from the model or the heuristic."""
    if runtime.model_client is None:
        return AIStatusResponse(status="ok", drafter="heuristic")
    return AIStatusResponse(status="ok", drafter="model", model=runtime.model_client.model_name)


# =============================================================
# HEALTH
# =============================================================

@router.get("/health", response_model=HealthResponse)
def health(runtime: EngineRuntime = Depends(get_runtime)):
    return HealthResponse(status="ok", timestamp=get_clock().now(), broker=runtime.broker.broker_id)


@router.get("/health/db", response_model=HealthResponse)
def health_db(runtime: EngineRuntime = Depends(get_runtime)):
    if not runtime.database.health_check():
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="database unavailable")
    return HealthResponse(status="ok", timestamp=get_clock().now())
