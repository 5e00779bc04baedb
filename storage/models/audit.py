"""
Audit Log ORM Model.

============================================================
PURPOSE
============================================================
Append-only record of every state change the engine makes.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Mutability: IMMUTABLE (insert only)
- Source: audit trail component
- Consumers: compliance, reconciliation

============================================================
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import BigInteger, DateTime, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, JSONType, utc_now


class AuditLog(Base):
    """Audit rows: entity, entity id, action, details."""

    __tablename__ = "audit_logs"

    # SQLite only autoincrements INTEGER primary keys
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )

    entity: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Table name of the affected entity"
    )

    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)

    action: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="CREATE, EXECUTE, DELETE, UPDATE"
    )

    details: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_audit_logs_entity", "entity", "entity_id"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog(entity={self.entity}, entity_id={self.entity_id}, action={self.action})>"
