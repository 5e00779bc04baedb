"""
Trade Repository.

============================================================
PURPOSE
============================================================
Data access for executed trades. Trades are created once per
accepted broker order; afterwards only the soft-delete marker
changes.

============================================================
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storage.models.trades import Trade
from storage.repositories.base import BaseRepository


class TradeRepository(BaseRepository[Trade]):
    """Repository for trades."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, Trade, "TradeRepository")

    def create(
        self,
        instrument: str,
        direction: str,
        units: float,
        entry_price: float,
        entry_price_known: bool,
        broker_trade_id: Optional[str],
        created_at: datetime,
        recommendation_id: Optional[str] = None,
    ) -> Trade:
        """
        Insert an OPEN trade.

        Args:
            instrument: Instrument traded
            direction: BUY or SELL
            units: Position size magnitude
            entry_price: Bid/ask mid, 0.0 when unknown
            entry_price_known: Whether entry_price is real
            broker_trade_id: Broker order id
            created_at: Execution timestamp
            recommendation_id: Source recommendation, if any

        Returns:
            Created Trade record
        """
        entity = self.build(
            instrument=instrument,
            direction=direction,
            units=units,
            entry_price=entry_price,
            entry_price_known=entry_price_known,
            broker_trade_id=broker_trade_id,
            created_at=created_at,
            recommendation_id=recommendation_id,
        )
        return self._add(entity)

    @staticmethod
    def build(
        instrument: str,
        direction: str,
        units: float,
        entry_price: float,
        entry_price_known: bool,
        broker_trade_id: Optional[str],
        created_at: datetime,
        recommendation_id: Optional[str] = None,
    ) -> Trade:
        """Build a transient Trade without touching the session."""
        return Trade(
            instrument=instrument,
            direction=direction,
            units=units,
            entry_price=entry_price,
            entry_price_known=entry_price_known,
            broker_trade_id=broker_trade_id,
            recommendation_id=recommendation_id,
            status="OPEN",
            created_at=created_at,
            updated_at=created_at,
        )

    def get_live(self, trade_id: str) -> Optional[Trade]:
        stmt = select(Trade).where(Trade.id == trade_id, Trade.deleted_at.is_(None))
        return self._execute_scalar(stmt)

    def list_recent(self, limit: int) -> List[Trade]:
        """List live trades, newest first."""
        stmt = (
            select(Trade)
            .where(Trade.deleted_at.is_(None))
            .order_by(Trade.created_at.desc(), Trade.id.desc())
            .limit(limit)
        )
        return self._execute_query(stmt)

    def list_for_recommendation(self, recommendation_id: str) -> List[Trade]:
        stmt = select(Trade).where(Trade.recommendation_id == recommendation_id)
        return self._execute_query(stmt)

    def count_all(self) -> int:
        return self._count()

    def soft_delete(self, trade_id: str, deleted_at: datetime) -> bool:
        stmt = (
            update(Trade)
            .where(Trade.id == trade_id, Trade.deleted_at.is_(None))
            .values(deleted_at=deleted_at)
        )
        return self._execute_update(stmt, "soft_delete") == 1
