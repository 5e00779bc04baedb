"""
Recommendation Engine - Context Aggregator.

============================================================
PURPOSE
============================================================
Gathers market, news and historical snapshots for a set of
instruments into one TradingContext.

- Fetchers are injected callables taking the instrument list
- A failing fetcher aborts the whole gather with an error
  naming which part failed
- No retries, no state between calls

============================================================
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Type

from core.clock import ClockProtocol, get_clock
from core.exceptions import (
    CollaboratorError,
    HistoricalFetchFailed,
    MarketFetchFailed,
    NewsFetchFailed,
)
from recommendation_engine.types import TradingContext


logger = logging.getLogger(__name__)


Fetcher = Callable[[List[str]], Dict[str, Any]]


class ContextAggregator:
    """
    Collects the three context snapshots.

    Usage:
        aggregator = ContextAggregator(market.fetch, news.fetch, historical.fetch)
        context = aggregator.gather(["EUR_USD"])
    """

    def __init__(
        self,
        market_fetcher: Fetcher,
        news_fetcher: Fetcher,
        historical_fetcher: Fetcher,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._market_fetcher = market_fetcher
        self._news_fetcher = news_fetcher
        self._historical_fetcher = historical_fetcher
        self._clock = clock or get_clock()

    def gather(self, instruments: List[str]) -> TradingContext:
        """
        Fetch all three snapshots for instruments.

        Raises:
            MarketFetchFailed, NewsFetchFailed, HistoricalFetchFailed
        """
        market = self._fetch("market", self._market_fetcher, MarketFetchFailed, instruments)
        news = self._fetch("news", self._news_fetcher, NewsFetchFailed, instruments)
        historical = self._fetch(
            "historical", self._historical_fetcher, HistoricalFetchFailed, instruments
        )

        return TradingContext(
            market=market,
            news=news,
            historical=historical,
            timestamp=self._clock.now(),
        )

    @staticmethod
    def _fetch(
        name: str,
        fetcher: Fetcher,
        error_class: Type[CollaboratorError],
        instruments: List[str],
    ) -> Dict[str, Any]:
        try:
            return fetcher(instruments)
        except error_class:
            logger.warning(f"{name} fetch failed for {instruments}", exc_info=True)
            raise
        except Exception as e:
            logger.warning(f"{name} fetch failed for {instruments}: {e}")
            raise error_class(f"{name} fetch failed: {e}", cause=e) from e
