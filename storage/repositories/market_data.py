"""
Market Candle Repository.

============================================================
PURPOSE
============================================================
Upserts candle snapshots keyed by (instrument, timestamp,
timeframe). A repeated fetch overwrites prices in place.

============================================================
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from storage.models.market_data import MarketCandle
from storage.repositories.base import BaseRepository


class MarketCandleRepository(BaseRepository[MarketCandle]):
    """Repository for market candles."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, MarketCandle, "MarketCandleRepository")

    def get(self, instrument: str, timestamp: datetime, timeframe: str) -> Optional[MarketCandle]:
        stmt = select(MarketCandle).where(
            MarketCandle.instrument == instrument,
            MarketCandle.timestamp == timestamp,
            MarketCandle.timeframe == timeframe,
        )
        return self._execute_scalar(stmt)

    def upsert(
        self,
        instrument: str,
        timestamp: datetime,
        timeframe: str,
        open: float,
        high: float,
        low: float,
        close: float,
        volume: Optional[float] = None,
    ) -> MarketCandle:
        """Insert a candle or update the existing one with the same key."""
        existing = self.get(instrument, timestamp, timeframe)
        if existing is None:
            return self._add(MarketCandle(
                instrument=instrument,
                timestamp=timestamp,
                timeframe=timeframe,
                open=open,
                high=high,
                low=low,
                close=close,
                volume=volume,
            ))

        existing.open = open
        existing.high = high
        existing.low = low
        existing.close = close
        existing.volume = volume
        self._session.flush()
        return existing

    def list_for_instrument(self, instrument: str, timeframe: str) -> List[MarketCandle]:
        stmt = (
            select(MarketCandle)
            .where(MarketCandle.instrument == instrument, MarketCandle.timeframe == timeframe)
            .order_by(MarketCandle.timestamp)
        )
        return self._execute_query(stmt)
