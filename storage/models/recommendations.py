"""
Recommendation Domain ORM Models.

============================================================
PURPOSE
============================================================
Models for the two recommendation stores and model usage logs.

============================================================
DATA LIFECYCLE ROLE
============================================================
- ai_recommendations: source of truth, written first
- recommendations: legacy mirror kept for older readers,
  linked back through source_recommendation_id
- Mutability: status transition PENDING -> EXECUTED and the
  soft-delete marker only; contexts are write-once

============================================================
MODELS
============================================================
- AIRecommendation: Full recommendation with bracket and contexts
- LegacyRecommendation: Reduced mirror form
- AIUsageLog: Token usage per generation

============================================================
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import (
    Base,
    JSONType,
    SoftDeleteMixin,
    TimestampMixin,
    generate_uuid,
    utc_now,
)


class AIRecommendation(Base, TimestampMixin, SoftDeleteMixin):
    """
    AI-form recommendation records.

    ============================================================
    TRACEABILITY
    ============================================================
    - market/news/historical_context: inputs the draft saw
    - draft_source: HEURISTIC or MODEL
    - executed_trade_id: broker order id after execution

    ============================================================
    """

    __tablename__ = "ai_recommendations"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=generate_uuid,
        comment="Recommendation identifier (UUID)"
    )

    instrument: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Instrument, e.g. EUR_USD"
    )

    direction: Mapped[str] = mapped_column(
        String(4),
        nullable=False,
        comment="BUY or SELL"
    )

    units: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment="Position size magnitude"
    )

    confidence: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        comment="Confidence in [0, 1]"
    )

    rationale: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        comment="Free-text rationale"
    )

    stop_loss: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment="Stop-loss price"
    )

    take_profit: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment="Take-profit price"
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Time-to-live of the recommendation"
    )

    market_context: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Market snapshot used for drafting"
    )

    news_context: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=True,
        comment="News snapshot used for drafting"
    )

    historical_context: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Historical snapshot used for drafting"
    )

    draft_source: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="HEURISTIC",
        comment="HEURISTIC or MODEL"
    )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="PENDING",
        comment="Status: PENDING, APPROVED, REJECTED, EXECUTED"
    )

    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    executed_trade_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment="Broker order id of the execution"
    )

    execution_claim: Mapped[Optional[str]] = mapped_column(
        String(36),
        nullable=True,
        comment="Token of the accept currently executing this record"
    )

    __table_args__ = (
        CheckConstraint("direction IN ('BUY', 'SELL')", name="ck_ai_recommendations_direction"),
        CheckConstraint("units > 0", name="ck_ai_recommendations_units"),
        Index("ix_ai_recommendations_status", "status"),
        Index("ix_ai_recommendations_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<AIRecommendation(id={self.id}, instrument={self.instrument}, "
            f"direction={self.direction}, status={self.status})>"
        )


class LegacyRecommendation(Base, SoftDeleteMixin):
    """
    Legacy-form recommendation records.

    Reduced mirror of an AIRecommendation. Its own id differs from the
    AI record id; source_recommendation_id is the link.
    """

    __tablename__ = "recommendations"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=generate_uuid,
    )

    instrument: Mapped[str] = mapped_column(String(20), nullable=False)

    direction: Mapped[str] = mapped_column(
        String(4),
        nullable=False,
        comment="BUY or SELL"
    )

    units: Mapped[float] = mapped_column(Float, nullable=False)

    rationale: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    confidence_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    market_conditions: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="PENDING",
        comment="Status: PENDING, EXECUTED"
    )

    trade_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment="Broker order id of the execution"
    )

    source_recommendation_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("ai_recommendations.id"),
        nullable=True,
        unique=True,
        comment="AI recommendation this record mirrors"
    )

    execution_claim: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
    )

    executed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint("direction IN ('BUY', 'SELL')", name="ck_recommendations_direction"),
        Index("ix_recommendations_status", "status"),
        Index("ix_recommendations_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<LegacyRecommendation(id={self.id}, instrument={self.instrument}, "
            f"status={self.status})>"
        )


class AIUsageLog(Base):
    """Token usage of one generation."""

    __tablename__ = "ai_usage_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    recommendation_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        nullable=True,
    )

    prompt_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completion_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    response_time_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    model: Mapped[str] = mapped_column(String(100), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
    )
