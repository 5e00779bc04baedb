"""
Recommendation Engine - Service Facade.

============================================================
PURPOSE
============================================================
The operations exposed to callers:

- generate_recommendation
- list_recommendations
- accept_recommendation
- delete_recommendation
- create_legacy_recommendation
- place_order / list_trades / delete_trade
- list_positions

============================================================
GENERATION PIPELINE
============================================================
validate -> gather context -> draft -> quote -> equity
         -> price -> store -> usage log

Quote falls back to the last candle close in the market
context; equity failures only disable risk-based sizing.

============================================================
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from core.clock import ClockProtocol, get_clock
from core.exceptions import CollaboratorError, InputError
from recommendation_engine.adapters.base import BrokerAdapter, Position
from recommendation_engine.aggregator import ContextAggregator
from recommendation_engine.audit import AuditTrail
from recommendation_engine.config import EngineConfig
from recommendation_engine.drafter import RecommendationDrafter
from recommendation_engine.execution_service import ExecutionService
from recommendation_engine.risk import RiskCalculator
from recommendation_engine.store import RecommendationStore, StoredRecommendation
from recommendation_engine.types import (
    Direction,
    KnownPrice,
    ModelUsage,
    PriceQuote,
    PricedRecommendation,
    RecommendationForm,
    RecommendationRequest,
    TradingContext,
    UnknownPrice,
)
from storage.models import LegacyRecommendation, Trade


logger = logging.getLogger(__name__)


class RecommendationService:
    """
    Request-scoped facade over the recommendation lifecycle.

    Construct one per unit of work with its own session.
    """

    def __init__(
        self,
        session: Session,
        broker: BrokerAdapter,
        aggregator: ContextAggregator,
        drafter: Optional[RecommendationDrafter] = None,
        config: Optional[EngineConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._clock = clock or get_clock()
        self._broker = broker
        self._aggregator = aggregator
        self._drafter = drafter or RecommendationDrafter(config=self._config.risk)
        self._calculator = RiskCalculator(self._config.risk)
        self._audit = AuditTrail(session, self._clock)
        self._store = RecommendationStore(
            session,
            config=self._config.recommendation,
            clock=self._clock,
            audit=self._audit,
        )
        self._execution = ExecutionService(
            session,
            broker,
            store=self._store,
            audit=self._audit,
            clock=self._clock,
        )

    @property
    def store(self) -> RecommendationStore:
        return self._store

    # =========================================================
    # GENERATE
    # =========================================================

    def generate_recommendation(self, request: RecommendationRequest) -> PricedRecommendation:
        """
        Generate, price and store one recommendation.

        Raises:
            InputError: Malformed request (no external call made)
            MarketFetchFailed / NewsFetchFailed / HistoricalFetchFailed
            PersistenceError: Primary record could not be written
        """
        request.validate()

        context = self._aggregator.gather(request.instruments)
        draft = self._drafter.draft(context, request)

        current_price = self._current_price(draft.instrument, context)
        equity = self._account_equity()

        priced = self._calculator.price(draft, current_price, equity, request)
        recommendation_id = self._store.create(priced)

        usage = draft.usage or self._simulated_usage(request)
        self._store.record_usage(recommendation_id, usage)

        logger.info(
            f"Recommendation generated: id={recommendation_id} instrument={priced.instrument} "
            f"direction={priced.direction.value} units={priced.units} "
            f"sl={priced.stop_loss} tp={priced.take_profit} sizing={priced.sizing_method.value}"
        )
        return priced

    def _current_price(self, instrument: str, context: TradingContext) -> PriceQuote:
        try:
            mid = self._broker.get_quote(instrument).mid
            if mid is not None:
                return KnownPrice(mid)
        except CollaboratorError as e:
            logger.warning(f"Quote failed for {instrument}, trying context close: {e.message}")

        close = context.last_close(instrument)
        if close is not None:
            return KnownPrice(close)
        return UnknownPrice(reason=f"no price for {instrument}")

    def _account_equity(self) -> Optional[float]:
        try:
            return self._broker.get_account_equity()
        except CollaboratorError as e:
            logger.warning(f"Account equity unavailable, risk sizing disabled: {e.message}")
            return None

    def _simulated_usage(self, request: RecommendationRequest) -> ModelUsage:
        # Heuristic drafts log a nominal token count
        return ModelUsage(
            model="heuristic",
            prompt_tokens=len(request.instruments) * 4 + 20,
            completion_tokens=60,
            response_time_ms=0,
        )

    # =========================================================
    # READ / MUTATE
    # =========================================================

    def list_recommendations(
        self,
        form: RecommendationForm = RecommendationForm.AI,
        limit: Optional[int] = None,
    ) -> List[StoredRecommendation]:
        """Live recommendations of one form, newest first."""
        return self._store.list_by_form(form, limit)

    def accept_recommendation(self, recommendation_id: str) -> Trade:
        return self._execution.accept(recommendation_id)

    def delete_recommendation(self, recommendation_id: str) -> int:
        return self._store.soft_delete(recommendation_id)

    def create_legacy_recommendation(
        self,
        instrument: str,
        direction: str,
        units: float,
        rationale: Optional[str] = None,
        confidence_score: Optional[float] = None,
    ) -> LegacyRecommendation:
        """
        Store a caller-authored recommendation in the legacy store.

        Raises:
            InputError: Empty instrument, unknown direction or non-positive units
            PersistenceError: Record could not be written
        """
        if not instrument or not instrument.strip():
            raise InputError("instrument is required", field="instrument")
        try:
            side = Direction((direction or "").strip().upper())
        except ValueError:
            raise InputError("direction must be BUY or SELL", field="direction", value=direction)
        if units is None or units <= 0:
            raise InputError("units must be positive", field="units", value=units)
        if confidence_score is not None and not (0 <= confidence_score <= 1):
            raise InputError(
                "confidence_score must be between 0 and 1",
                field="confidence_score",
                value=confidence_score,
            )

        return self._store.create_legacy(
            instrument=instrument.strip(),
            direction=side,
            units=units,
            rationale=rationale,
            confidence_score=confidence_score,
        )

    # =========================================================
    # TRADES
    # =========================================================

    def place_order(
        self,
        instrument: str,
        units: float,
        stop_loss: Optional[float] = None,
        take_profit: Optional[float] = None,
    ) -> Trade:
        return self._execution.place_order(instrument, units, stop_loss, take_profit)

    def list_trades(self, limit: Optional[int] = None) -> List[Trade]:
        return self._execution.list_trades(limit)

    def delete_trade(self, trade_id: str) -> None:
        self._execution.delete_trade(trade_id)

    def list_positions(self) -> List[Position]:
        """Open broker positions. Broker errors propagate."""
        return self._broker.get_positions()
