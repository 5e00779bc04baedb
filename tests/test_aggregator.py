"""
Tests for the Context Aggregator.
"""

from unittest.mock import MagicMock

import pytest

from core.exceptions import (
    CollaboratorError,
    HistoricalFetchFailed,
    MarketFetchFailed,
    NewsFetchFailed,
)
from recommendation_engine.aggregator import ContextAggregator


def make_aggregator(clock, market=None, news=None, historical=None):
    return ContextAggregator(
        market_fetcher=market or MagicMock(return_value={"instruments": ["EUR_USD"]}),
        news_fetcher=news or MagicMock(return_value={"items": []}),
        historical_fetcher=historical or MagicMock(return_value={"notes": "pending"}),
        clock=clock,
    )


class TestGather:

    def test_assembles_all_three_snapshots(self, clock):
        aggregator = make_aggregator(clock)

        context = aggregator.gather(["EUR_USD"])

        assert context.market == {"instruments": ["EUR_USD"]}
        assert context.news == {"items": []}
        assert context.historical == {"notes": "pending"}
        assert context.timestamp == clock.now()

    def test_every_fetcher_sees_same_instruments(self, clock):
        market = MagicMock(return_value={})
        news = MagicMock(return_value={})
        historical = MagicMock(return_value={})
        aggregator = make_aggregator(clock, market, news, historical)

        aggregator.gather(["EUR_USD", "USD_JPY"])

        for fetcher in (market, news, historical):
            fetcher.assert_called_once_with(["EUR_USD", "USD_JPY"])

    def test_timestamp_taken_at_assembly(self, clock):
        aggregator = make_aggregator(clock)
        first = aggregator.gather(["EUR_USD"])
        clock.advance(minutes=5)
        second = aggregator.gather(["EUR_USD"])

        assert (second.timestamp - first.timestamp).total_seconds() == 300


class TestFailures:

    @pytest.mark.parametrize(
        "slot, error_class",
        [
            ("market", MarketFetchFailed),
            ("news", NewsFetchFailed),
            ("historical", HistoricalFetchFailed),
        ],
    )
    def test_failure_names_the_failing_part(self, clock, slot, error_class):
        failing = MagicMock(side_effect=RuntimeError("boom"))
        aggregator = make_aggregator(clock, **{slot: failing})

        with pytest.raises(error_class) as exc_info:
            aggregator.gather(["EUR_USD"])

        assert isinstance(exc_info.value, CollaboratorError)
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert exc_info.value.is_transient

    def test_typed_failure_passes_through(self, clock):
        original = NewsFetchFailed("Brave API status 429", status_code=429)
        aggregator = make_aggregator(clock, news=MagicMock(side_effect=original))

        with pytest.raises(NewsFetchFailed) as exc_info:
            aggregator.gather(["EUR_USD"])

        assert exc_info.value is original

    def test_market_failure_stops_before_news(self, clock):
        news = MagicMock(return_value={})
        aggregator = make_aggregator(clock, market=MagicMock(side_effect=ValueError("bad")), news=news)

        with pytest.raises(MarketFetchFailed):
            aggregator.gather(["EUR_USD"])
        news.assert_not_called()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
