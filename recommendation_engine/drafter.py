"""
Recommendation Engine - Recommendation Drafter.

============================================================
PURPOSE
============================================================
Produces a draft (instrument, direction, units, confidence,
rationale) from a trading context.

The model client is optional. When it is missing or fails, the
drafter still answers with a deterministic heuristic draft,
tagged DraftSource.HEURISTIC so readers can tell the two apart.

============================================================
"""

import logging
from typing import Optional

from core.exceptions import CollaboratorError, ModelUnavailableError
from recommendation_engine.adapters.base import ModelClient
from recommendation_engine.config import RiskConfig
from recommendation_engine.types import (
    Direction,
    DraftRecommendation,
    DraftSource,
    RecommendationRequest,
    TradingContext,
)


logger = logging.getLogger(__name__)


HEURISTIC_RATIONALE = "Fallback heuristic recommendation (model unavailable)"


class RecommendationDrafter:
    """Model-backed drafter with heuristic fallback."""

    def __init__(
        self,
        model_client: Optional[ModelClient] = None,
        config: Optional[RiskConfig] = None,
    ) -> None:
        self._model_client = model_client
        self._config = config or RiskConfig()

    def draft(self, context: TradingContext, request: RecommendationRequest) -> DraftRecommendation:
        """Draft a recommendation; never raises for model problems."""
        if self._model_client is None:
            return self.heuristic_draft(context, request, "no model client configured")

        try:
            return self._model_client.generate(context, request)
        except ModelUnavailableError as e:
            logger.info(f"Model unavailable, using heuristic draft: {e.message}")
            return self.heuristic_draft(context, request, e.message)
        except CollaboratorError as e:
            logger.warning(f"Model call failed, using heuristic draft: {e.message}")
            return self.heuristic_draft(context, request, e.message)

    def heuristic_draft(
        self,
        context: TradingContext,
        request: RecommendationRequest,
        reason: str = "",
    ) -> DraftRecommendation:
        """First requested instrument, BUY, fixed confidence and units."""
        rationale = HEURISTIC_RATIONALE if not reason else f"{HEURISTIC_RATIONALE}: {reason}"
        return DraftRecommendation(
            instrument=request.instruments[0],
            direction=Direction.BUY,
            units=self._config.default_units,
            confidence=self._config.heuristic_confidence,
            rationale=rationale,
            source=DraftSource.HEURISTIC,
            context=context,
        )
