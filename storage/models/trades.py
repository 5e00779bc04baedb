"""
Trade ORM Model.

============================================================
PURPOSE
============================================================
One row per order the broker accepted.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Source: execution service (accept and direct order paths)
- Mutability: created once, only the soft-delete marker changes
- units is a positive magnitude, direction carries the side

============================================================
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, SoftDeleteMixin, TimestampMixin, generate_uuid


class Trade(Base, TimestampMixin, SoftDeleteMixin):
    """Executed trade records."""

    __tablename__ = "trades"

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

    units: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment="Position size magnitude"
    )

    entry_price: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment="Bid/ask mid at execution, 0 when unknown"
    )

    entry_price_known: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="False when entry_price is a placeholder"
    )

    exit_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    profit_loss: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    commission: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    swap: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="OPEN",
        comment="Status: OPEN, CLOSED"
    )

    broker_trade_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment="Broker order id"
    )

    recommendation_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        nullable=True,
        comment="Recommendation that produced this trade, if any"
    )

    closed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint("direction IN ('BUY', 'SELL')", name="ck_trades_direction"),
        CheckConstraint("status IN ('OPEN', 'CLOSED')", name="ck_trades_status"),
        Index("ix_trades_created_at", "created_at"),
        Index("ix_trades_instrument", "instrument"),
    )

    @property
    def signed_units(self) -> float:
        """Units as the broker sees them (SELL negative)."""
        return -self.units if self.direction == "SELL" else self.units

    def __repr__(self) -> str:
        return (
            f"<Trade(id={self.id}, instrument={self.instrument}, "
            f"direction={self.direction}, units={self.units})>"
        )
