"""
Data Ingestion - Market Context Collector.

============================================================
RESPONSIBILITY
============================================================
Builds the market snapshot from recent broker candles.

- Fetches M5 candles (50 by default) per instrument
- Upserts the candles into market_candles (best-effort)
- Summarizes each instrument as granularity / last_close / count

An instrument whose candles cannot be fetched is logged and
left out of the snapshot; the others still appear.

============================================================
SNAPSHOT SHAPE
============================================================
{
    "instruments": ["EUR_USD", ...],
    "EUR_USD": {"granularity": "M5", "last_close": 1.1, "count": 50},
}

============================================================
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from core.exceptions import CollaboratorError
from data_ingestion.collectors.base import BaseCollector
from data_ingestion.types import CandleSummary, IngestionSource
from recommendation_engine.adapters.base import BrokerAdapter, Candle
from recommendation_engine.config import RecommendationConfig
from storage.repositories import MarketCandleRepository, RepositoryException


class MarketContextCollector(BaseCollector):
    """
    Market snapshot from broker candles.

    ============================================================
    WIRING
    ============================================================
    Source: BrokerAdapter.get_candles
    Repository: MarketCandleRepository (optional)

    ============================================================
    """

    def __init__(
        self,
        broker: BrokerAdapter,
        session: Optional[Session] = None,
        config: Optional[RecommendationConfig] = None,
    ) -> None:
        super().__init__(IngestionSource.BROKER_CANDLES)
        self._broker = broker
        self._session = session
        self._config = config or RecommendationConfig()
        self._repository = MarketCandleRepository(session) if session is not None else None

    def collect(self, instruments: List[str]) -> Dict[str, Any]:
        snapshot: Dict[str, Any] = {"instruments": list(instruments)}
        granularity = self._config.candle_granularity

        for instrument in instruments:
            try:
                candles = self.candles(instrument)
            except CollaboratorError as e:
                self._logger.warning(f"Candles unavailable for {instrument}: {e.message}")
                continue

            last_close = candles[-1].close if candles else 0.0
            snapshot[instrument] = CandleSummary(
                granularity=granularity,
                last_close=last_close,
                count=len(candles),
            ).to_dict()

        return snapshot

    def candles(self, instrument: str) -> List[Candle]:
        """
        Recent candles for one instrument, stored on the way through.

        Raises:
            CollaboratorError: If the broker call fails
        """
        granularity = self._config.candle_granularity
        candles = self._broker.get_candles(instrument, granularity, self._config.candle_count)
        self._store_candles(instrument, granularity, candles)
        return candles

    def _store_candles(self, instrument: str, granularity: str, candles: List[Candle]) -> None:
        """Best-effort candle upsert, committed per instrument."""
        if self._repository is None or not candles:
            return

        try:
            for candle in candles:
                self._repository.upsert(
                    instrument=instrument,
                    timestamp=candle.time,
                    timeframe=granularity,
                    open=candle.open,
                    high=candle.high,
                    low=candle.low,
                    close=candle.close,
                    volume=candle.volume,
                )
            self._repository.commit()
            self._logger.info(f"Candles stored: instrument={instrument} rows={len(candles)}")
        except RepositoryException as e:
            self._logger.error(f"Candle upsert failed for {instrument}: {e}")
            try:
                self._repository.rollback()
            except RepositoryException as rollback_error:
                self._logger.error(f"Candle rollback failed: {rollback_error}")
