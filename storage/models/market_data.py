"""
Market Data ORM Model.

============================================================
PURPOSE
============================================================
Candle snapshots written by the market collector while it
builds recommendation context. The engine itself never reads
them back.

============================================================
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, TimestampMixin, generate_uuid


class MarketCandle(Base, TimestampMixin):
    """OHLC candle, unique per (instrument, timestamp, timeframe)."""

    __tablename__ = "market_candles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    instrument: Mapped[str] = mapped_column(String(20), nullable=False)

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Candle open time"
    )

    timeframe: Mapped[str] = mapped_column(
        String(8),
        nullable=False,
        comment="Broker granularity, e.g. M5"
    )

    open: Mapped[float] = mapped_column(Float, nullable=False)
    high: Mapped[float] = mapped_column(Float, nullable=False)
    low: Mapped[float] = mapped_column(Float, nullable=False)
    close: Mapped[float] = mapped_column(Float, nullable=False)
    volume: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    __table_args__ = (
        UniqueConstraint("instrument", "timestamp", "timeframe", name="uq_market_candles_key"),
    )
