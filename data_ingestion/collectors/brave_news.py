"""
Data Ingestion - Brave News Collector.

============================================================
RESPONSIBILITY
============================================================
Fetches recent news for the first requested instrument from
the Brave Search news endpoint.

    GET {base_url}/res/v1/news/search?q=<instrument> forex&count=5
    X-Subscription-Token: <api key>

============================================================
DESIGN PRINCIPLES
============================================================
- No business logic - collection only
- Bounded timeout, no retries
- Every failure raised as NewsFetchFailed

============================================================
"""

from typing import Any, Dict, List, Optional

import httpx

from core.exceptions import NewsFetchFailed
from data_ingestion.collectors.base import BaseCollector
from data_ingestion.types import IngestionSource, NewsItem
from recommendation_engine.config import NewsConfig


SEARCH_PATH = "/res/v1/news/search"


class BraveNewsCollector(BaseCollector):
    """
    News snapshot from Brave Search.

    ============================================================
    WIRING
    ============================================================
    Source: Brave Search API (REST)
    Repository: none (snapshot only)

    ============================================================
    """

    def __init__(
        self,
        config: Optional[NewsConfig] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        super().__init__(IngestionSource.BRAVE_NEWS)
        self._config = config or NewsConfig()
        headers = {"Accept": "application/json"}
        if self._config.api_key:
            headers["X-Subscription-Token"] = self._config.api_key
        self._client = client or httpx.Client(
            base_url=self._config.base_url,
            timeout=self._config.timeout_seconds,
            headers=headers,
        )

    def close(self) -> None:
        self._client.close()

    # =========================================================
    # FETCH - External API Call
    # =========================================================

    def search(self, query: str, count: Optional[int] = None) -> List[NewsItem]:
        """
        Search news.

        Raises:
            NewsFetchFailed: On network, HTTP or decoding errors
        """
        count = count if count and count > 0 else self._config.result_count
        try:
            response = self._client.get(SEARCH_PATH, params={"q": query, "count": str(count)})
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise NewsFetchFailed(
                f"Brave API status {e.response.status_code}",
                endpoint=SEARCH_PATH,
                status_code=e.response.status_code,
                cause=e,
            ) from e
        except httpx.TimeoutException as e:
            raise NewsFetchFailed(f"Brave request timeout: {e}", endpoint=SEARCH_PATH, cause=e) from e
        except httpx.RequestError as e:
            raise NewsFetchFailed(f"Brave request error: {e}", endpoint=SEARCH_PATH, cause=e) from e
        except ValueError as e:
            raise NewsFetchFailed(f"Brave response is not JSON: {e}", endpoint=SEARCH_PATH, cause=e) from e

        results = payload.get("results") if isinstance(payload, dict) else None
        return [NewsItem.from_brave(raw) for raw in results or [] if isinstance(raw, dict)]

    def collect(self, instruments: List[str]) -> Dict[str, Any]:
        query = f"{instruments[0]} forex" if instruments else "forex"
        items = self.search(query)
        self._logger.info(f"News fetched: query={query!r} count={len(items)}")
        return {"query": query, "items": [item.to_dict() for item in items]}
