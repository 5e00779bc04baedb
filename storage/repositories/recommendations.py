"""
Recommendation Repositories.

============================================================
PURPOSE
============================================================
Data access for both recommendation stores.

============================================================
REPOSITORIES
============================================================
- AIRecommendationRepository: ai_recommendations (source of truth)
- LegacyRecommendationRepository: recommendations (mirror)
- AIUsageLogRepository: ai_usage_logs

============================================================
STATE GUARD
============================================================
claim() is a conditional UPDATE that only matches a live PENDING
row with no execution claim. Exactly one concurrent caller gets
rowcount 1; everyone else gets 0 and must not call the broker.

============================================================
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storage.models.recommendations import AIRecommendation, AIUsageLog, LegacyRecommendation
from storage.repositories.base import BaseRepository


STATUS_PENDING = "PENDING"
STATUS_EXECUTED = "EXECUTED"

R = TypeVar("R", AIRecommendation, LegacyRecommendation)


class _RecommendationRepository(BaseRepository[R]):
    """Queries shared by both recommendation tables."""

    def __init__(self, session: Session, model_class: Type[R], repository_name: str) -> None:
        super().__init__(session, model_class, repository_name)

    def get(self, recommendation_id: str) -> Optional[R]:
        """Get a record by id, including soft-deleted ones."""
        return self._get_by_id(recommendation_id)

    def get_live(self, recommendation_id: str) -> Optional[R]:
        """Get a record by id unless it is soft-deleted."""
        model = self._model_class
        stmt = select(model).where(
            model.id == recommendation_id,
            model.deleted_at.is_(None),
        )
        return self._execute_scalar(stmt)

    def get_pending(self, recommendation_id: str) -> Optional[R]:
        """Get a live PENDING record by id."""
        model = self._model_class
        stmt = select(model).where(
            model.id == recommendation_id,
            model.status == STATUS_PENDING,
            model.deleted_at.is_(None),
        )
        return self._execute_scalar(stmt)

    def list_recent(self, limit: int) -> List[R]:
        """List live records, newest first."""
        model = self._model_class
        stmt = (
            select(model)
            .where(model.deleted_at.is_(None))
            .order_by(model.created_at.desc(), model.id.desc())
            .limit(limit)
        )
        return self._execute_query(stmt)

    def claim(self, recommendation_id: str, token: str) -> bool:
        """
        Claim a PENDING record for execution.

        Returns:
            True if this caller now owns the execution
        """
        model = self._model_class
        stmt = (
            update(model)
            .where(
                model.id == recommendation_id,
                model.status == STATUS_PENDING,
                model.execution_claim.is_(None),
                model.deleted_at.is_(None),
            )
            .values(execution_claim=token)
        )
        return self._execute_update(stmt, "claim") == 1

    def release(self, recommendation_id: str, token: str) -> bool:
        """Drop a claim held by token. The record stays PENDING."""
        model = self._model_class
        stmt = (
            update(model)
            .where(
                model.id == recommendation_id,
                model.execution_claim == token,
                model.status == STATUS_PENDING,
            )
            .values(execution_claim=None)
        )
        return self._execute_update(stmt, "release") == 1

    def soft_delete(self, recommendation_id: str, deleted_at: datetime) -> bool:
        """Mark a live record deleted. Returns False if none matched."""
        model = self._model_class
        stmt = (
            update(model)
            .where(model.id == recommendation_id, model.deleted_at.is_(None))
            .values(deleted_at=deleted_at)
        )
        return self._execute_update(stmt, "soft_delete") == 1


class AIRecommendationRepository(_RecommendationRepository[AIRecommendation]):
    """Repository for AI-form recommendations."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, AIRecommendation, "AIRecommendationRepository")

    def create(
        self,
        recommendation_id: str,
        instrument: str,
        direction: str,
        units: float,
        confidence: float,
        rationale: str,
        expires_at: datetime,
        created_at: datetime,
        draft_source: str,
        stop_loss: Optional[float] = None,
        take_profit: Optional[float] = None,
        market_context: Optional[Dict[str, Any]] = None,
        news_context: Optional[Dict[str, Any]] = None,
        historical_context: Optional[Dict[str, Any]] = None,
    ) -> AIRecommendation:
        """Insert a PENDING AI recommendation."""
        entity = AIRecommendation(
            id=recommendation_id,
            instrument=instrument,
            direction=direction,
            units=units,
            confidence=confidence,
            rationale=rationale,
            stop_loss=stop_loss,
            take_profit=take_profit,
            expires_at=expires_at,
            market_context=market_context,
            news_context=news_context,
            historical_context=historical_context,
            draft_source=draft_source,
            status=STATUS_PENDING,
            created_at=created_at,
            updated_at=created_at,
        )
        return self._add(entity)

    def mark_executed(
        self,
        recommendation_id: str,
        token: str,
        trade_ref: str,
        executed_at: datetime,
    ) -> bool:
        """PENDING -> EXECUTED for the record claimed by token."""
        stmt = (
            update(AIRecommendation)
            .where(
                AIRecommendation.id == recommendation_id,
                AIRecommendation.status == STATUS_PENDING,
                AIRecommendation.execution_claim == token,
            )
            .values(
                status=STATUS_EXECUTED,
                executed_trade_id=trade_ref,
                updated_at=executed_at,
            )
        )
        return self._execute_update(stmt, "mark_executed") == 1


class LegacyRecommendationRepository(_RecommendationRepository[LegacyRecommendation]):
    """Repository for legacy-form recommendations."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, LegacyRecommendation, "LegacyRecommendationRepository")

    def create(
        self,
        instrument: str,
        direction: str,
        units: float,
        created_at: datetime,
        rationale: Optional[str] = None,
        confidence_score: Optional[float] = None,
        market_conditions: Optional[Dict[str, Any]] = None,
        source_recommendation_id: Optional[str] = None,
    ) -> LegacyRecommendation:
        """Insert a PENDING legacy recommendation with a fresh id."""
        entity = LegacyRecommendation(
            instrument=instrument,
            direction=direction,
            units=units,
            rationale=rationale,
            confidence_score=confidence_score,
            market_conditions=market_conditions,
            source_recommendation_id=source_recommendation_id,
            status=STATUS_PENDING,
            created_at=created_at,
        )
        return self._add(entity)

    def get_by_source(self, source_recommendation_id: str) -> Optional[LegacyRecommendation]:
        """Get the mirror of an AI recommendation."""
        stmt = select(LegacyRecommendation).where(
            LegacyRecommendation.source_recommendation_id == source_recommendation_id
        )
        return self._execute_scalar(stmt)

    def mark_executed(
        self,
        recommendation_id: str,
        token: str,
        trade_ref: str,
        executed_at: datetime,
    ) -> bool:
        """PENDING -> EXECUTED for the record claimed by token."""
        stmt = (
            update(LegacyRecommendation)
            .where(
                LegacyRecommendation.id == recommendation_id,
                LegacyRecommendation.status == STATUS_PENDING,
                LegacyRecommendation.execution_claim == token,
            )
            .values(
                status=STATUS_EXECUTED,
                trade_id=trade_ref,
                executed_at=executed_at,
            )
        )
        return self._execute_update(stmt, "mark_executed") == 1


class AIUsageLogRepository(BaseRepository[AIUsageLog]):
    """Repository for model usage logs."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, AIUsageLog, "AIUsageLogRepository")

    def create(
        self,
        recommendation_id: Optional[str],
        prompt_tokens: int,
        completion_tokens: int,
        response_time_ms: int,
        model: str,
        created_at: datetime,
    ) -> AIUsageLog:
        entity = AIUsageLog(
            recommendation_id=recommendation_id,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            response_time_ms=response_time_ms,
            model=model,
            created_at=created_at,
        )
        return self._add(entity)

    def list_for_recommendation(self, recommendation_id: str) -> List[AIUsageLog]:
        stmt = select(AIUsageLog).where(AIUsageLog.recommendation_id == recommendation_id)
        return self._execute_query(stmt)
