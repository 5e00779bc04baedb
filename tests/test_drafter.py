"""
Tests for the Recommendation Drafter.
"""

from unittest.mock import MagicMock

import pytest

from core.exceptions import BrokerError, ModelCallFailed, ModelUnavailableError
from recommendation_engine.drafter import HEURISTIC_RATIONALE, RecommendationDrafter
from recommendation_engine.types import (
    Direction,
    DraftRecommendation,
    DraftSource,
    RecommendationRequest,
)


@pytest.fixture
def request_():
    return RecommendationRequest(instruments=["GBP_USD", "EUR_USD"])


class TestHeuristicFallback:

    def test_no_client_gives_heuristic_draft(self, context, request_):
        draft = RecommendationDrafter().draft(context, request_)

        assert draft.source is DraftSource.HEURISTIC
        assert draft.instrument == "GBP_USD"
        assert draft.direction is Direction.BUY
        assert draft.units == 100
        assert draft.confidence == 0.5
        assert draft.rationale.startswith(HEURISTIC_RATIONALE)
        assert draft.context is context

    @pytest.mark.parametrize(
        "error",
        [
            ModelUnavailableError("ANTHROPIC_API_KEY is not set"),
            ModelCallFailed("HTTP 529: overloaded"),
            BrokerError("unexpected collaborator error"),
        ],
    )
    def test_model_errors_degrade_to_heuristic(self, context, request_, error):
        client = MagicMock()
        client.generate.side_effect = error

        draft = RecommendationDrafter(client).draft(context, request_)

        assert draft.source is DraftSource.HEURISTIC
        assert error.message in draft.rationale

    def test_heuristic_draft_has_no_bracket_or_expiry(self, context, request_):
        draft = RecommendationDrafter().heuristic_draft(context, request_)

        assert not hasattr(draft, "stop_loss")
        assert draft.expires_at is None
        assert draft.usage is None


class TestModelDraft:

    def test_model_draft_returned_unchanged(self, context, request_):
        model_draft = DraftRecommendation(
            instrument="EUR_USD",
            direction=Direction.SELL,
            units=2500,
            confidence=0.8,
            rationale="ECB dovish",
            source=DraftSource.MODEL,
            context=context,
        )
        client = MagicMock()
        client.generate.return_value = model_draft

        draft = RecommendationDrafter(client).draft(context, request_)

        assert draft is model_draft
        client.generate.assert_called_once_with(context, request_)

    def test_unexpected_exception_propagates(self, context, request_):
        client = MagicMock()
        client.generate.side_effect = RuntimeError("bug")

        with pytest.raises(RuntimeError):
            RecommendationDrafter(client).draft(context, request_)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
