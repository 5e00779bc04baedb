"""
Recommendation Engine - Execution Service.

============================================================
PURPOSE
============================================================
Turns an accepted recommendation into a broker order and
reconciles the outcome into storage.

============================================================
ACCEPT FLOW
============================================================
1. Resolve      pending legacy record, else pending AI record
                unknown id          -> NotFoundError (no writes)
                not pending         -> ConflictError (no writes)
1b. Linked     the other form of the same recommendation
                soft-deleted        -> NotFoundError
                executed or claimed -> ConflictError
2. Claim        conditional update on execution_claim, record and
                linked record in one transaction
                lost race           -> ConflictError (no broker call)
3. Submit       signed units, bracket only for AI-form records
                broker refuses      -> both claims released, records
                                       stay PENDING, error re-raised
                The linked record keeps its claim after a fill so it
                can never be executed on its own
4. Reconcile    (a) mark executed + audit EXECUTE
                (b) entry price + trade + audit CREATE
                each step best-effort; the broker order is never
                retracted

============================================================
"""

import logging
import uuid
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.clock import ClockProtocol, get_clock
from core.exceptions import (
    CollaboratorError,
    ConflictError,
    InputError,
    NotFoundError,
    PersistenceError,
)
from recommendation_engine.adapters.base import BrokerAdapter, MarketOrderRequest, OrderConfirmation
from recommendation_engine.audit import AuditTrail
from recommendation_engine.store import RecommendationStore
from recommendation_engine.types import (
    AuditAction,
    Direction,
    KnownPrice,
    PriceQuote,
    RecommendationForm,
    RecommendationStatus,
    UnknownPrice,
    price_value,
)
from storage.models import Trade
from storage.repositories import RepositoryException, TradeRepository


logger = logging.getLogger(__name__)


class ExecutionService:
    """
    Accept-to-execution orchestration.

    One instance per unit of work.
    """

    def __init__(
        self,
        session: Session,
        broker: BrokerAdapter,
        store: Optional[RecommendationStore] = None,
        audit: Optional[AuditTrail] = None,
        clock: Optional[ClockProtocol] = None,
        token_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self._session = session
        self._broker = broker
        self._clock = clock or get_clock()
        self._audit = audit or AuditTrail(session, self._clock)
        self._store = store or RecommendationStore(session, clock=self._clock, audit=self._audit)
        self._trades = TradeRepository(session)
        self._token_factory = token_factory or (lambda: str(uuid.uuid4()))

    # =========================================================
    # ACCEPT
    # =========================================================

    def accept(self, recommendation_id: str) -> Trade:
        """
        Execute a pending recommendation.

        Returns:
            The Trade (transient if its write failed)

        Raises:
            NotFoundError: No live record with this id
            ConflictError: Already executed or being executed
            BrokerRejection / BrokerError: Broker refused or failed
        """
        form, record, linked = self._resolve(recommendation_id)
        linked_id = linked.id if linked is not None else None

        token = self._token_factory()
        if not self._store.claim(form, recommendation_id, token, linked_id=linked_id):
            raise ConflictError(
                f"Recommendation {recommendation_id} is already being processed",
                entity_id=recommendation_id,
            )

        direction = Direction(record.direction)
        order = MarketOrderRequest(
            instrument=record.instrument,
            units=direction.signed_units(record.units),
        )
        if form is RecommendationForm.AI:
            order.stop_loss = record.stop_loss
            order.take_profit = record.take_profit

        try:
            confirmation = self._broker.submit_market_order(order)
        except CollaboratorError as e:
            logger.warning(
                f"Order for recommendation {recommendation_id} failed, left PENDING: {e.message}"
            )
            self._store.release(form, recommendation_id, token, linked_id=linked_id)
            raise

        logger.info(
            f"Recommendation executed: id={recommendation_id} form={form.value} "
            f"order_id={confirmation.order_id} bracket={order.is_bracket}"
        )

        # Past this point the order exists; nothing below may raise
        self._store.mark_executed(form, recommendation_id, token, confirmation.order_id)
        return self._reconcile_trade(
            confirmation,
            direction=direction,
            units=abs(record.units),
            recommendation_id=recommendation_id,
        )

    def _resolve(self, recommendation_id: str):
        found = self._store.find_pending(recommendation_id)
        if found is None:
            live = self._store.find_live(recommendation_id)
            if live is not None:
                _, record = live
                raise ConflictError(
                    f"Recommendation {recommendation_id} is {record.status}, not PENDING",
                    entity_id=recommendation_id,
                    current_state=record.status,
                )
            raise NotFoundError("recommendation", recommendation_id)

        form, record = found
        linked = self._store.linked_record(form, record)
        if linked is None:
            return form, record, None

        if linked.deleted_at is not None:
            raise NotFoundError("recommendation", recommendation_id)
        if linked.status == RecommendationStatus.EXECUTED.value:
            raise ConflictError(
                f"Recommendation {recommendation_id} was already executed through its linked record",
                entity_id=recommendation_id,
                current_state=RecommendationStatus.EXECUTED.value,
            )
        if linked.execution_claim is not None:
            raise ConflictError(
                f"Recommendation {recommendation_id} is being executed through its linked record",
                entity_id=recommendation_id,
            )
        return form, record, linked

    # =========================================================
    # DIRECT ORDERS
    # =========================================================

    def place_order(
        self,
        instrument: str,
        units: float,
        stop_loss: Optional[float] = None,
        take_profit: Optional[float] = None,
    ) -> Trade:
        """
        Place an order without a recommendation.

        Args:
            instrument: Instrument to trade
            units: Signed units (negative sells)
            stop_loss: Optional stop-loss price
            take_profit: Optional take-profit price

        Raises:
            InputError: Empty instrument or zero units
            BrokerRejection / BrokerError: Broker refused or failed
        """
        if not instrument or not instrument.strip():
            raise InputError("instrument is required", field="instrument")
        if not units:
            raise InputError("units must be non-zero", field="units", value=units)

        order = MarketOrderRequest(
            instrument=instrument.strip(),
            units=units,
            stop_loss=stop_loss,
            take_profit=take_profit,
        )
        confirmation = self._broker.submit_market_order(order)
        logger.info(f"Direct order placed: order_id={confirmation.order_id} instrument={order.instrument}")

        direction = Direction.BUY if units > 0 else Direction.SELL
        return self._reconcile_trade(confirmation, direction=direction, units=abs(units))

    # =========================================================
    # RECONCILIATION
    # =========================================================

    def current_entry_price(self, instrument: str) -> PriceQuote:
        """Bid/ask mid, or UnknownPrice if the quote fails."""
        try:
            mid = self._broker.get_quote(instrument).mid
        except CollaboratorError as e:
            logger.warning(f"Entry price unavailable for {instrument}: {e.message}")
            return UnknownPrice(reason=e.message)
        if mid is None:
            return UnknownPrice(reason="one-sided quote")
        return KnownPrice(mid)

    def _reconcile_trade(
        self,
        confirmation: OrderConfirmation,
        direction: Direction,
        units: float,
        recommendation_id: Optional[str] = None,
    ) -> Trade:
        entry = self.current_entry_price(confirmation.instrument)
        entry_value = price_value(entry)

        fields = dict(
            instrument=confirmation.instrument,
            direction=direction.value,
            units=units,
            entry_price=entry_value if entry_value is not None else 0.0,
            entry_price_known=entry_value is not None,
            broker_trade_id=confirmation.order_id,
            created_at=self._clock.now(),
            recommendation_id=recommendation_id,
        )

        try:
            trade = self._trades.create(**fields)
            self._trades.commit()
        except RepositoryException as e:
            self._safe_rollback()
            logger.error(
                f"Trade write failed after order {confirmation.order_id}; "
                f"returning unsaved trade: {e}",
                exc_info=True,
            )
            return TradeRepository.build(**fields)

        self._audit.record(
            "trades",
            trade.id,
            AuditAction.CREATE,
            {"instrument": trade.instrument, "direction": trade.direction, "units": trade.units},
        )
        return trade

    # =========================================================
    # TRADES
    # =========================================================

    def list_trades(self, limit: Optional[int] = None):
        """Live trades, newest first. Out-of-range limits mean 200."""
        return self._trades.list_recent(self._store.normalize_limit(limit))

    def delete_trade(self, trade_id: str) -> None:
        """
        Soft-delete a trade.

        Raises:
            NotFoundError: No live trade with this id
            PersistenceError: Delete could not be written
        """
        try:
            deleted = self._trades.soft_delete(trade_id, self._clock.now())
            self._trades.commit()
        except RepositoryException as e:
            self._safe_rollback()
            raise PersistenceError(
                f"Could not delete trade: {e.message}",
                operation="soft_delete",
                table="trades",
                cause=e,
            ) from e

        if not deleted:
            raise NotFoundError("trade", trade_id)
        self._audit.record("trades", trade_id, AuditAction.DELETE, {})

    def _safe_rollback(self) -> None:
        try:
            self._session.rollback()
        except SQLAlchemyError as e:
            logger.error(f"Rollback failed: {e}")
