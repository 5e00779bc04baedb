"""
Audit Log Repository.

============================================================
PURPOSE
============================================================
Append-only access to audit_logs. There is no update or delete
path; the guard methods raise ImmutableRecordError.

============================================================
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from storage.models.audit import AuditLog
from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import ImmutableRecordError


class AuditLogRepository(BaseRepository[AuditLog]):
    """Repository for audit log rows."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, AuditLog, "AuditLogRepository")

    def append(
        self,
        entity: str,
        entity_id: str,
        action: str,
        details: Optional[Dict[str, Any]],
        created_at: datetime,
    ) -> AuditLog:
        """Append one audit row."""
        row = AuditLog(
            entity=entity,
            entity_id=entity_id,
            action=action,
            details=details or {},
            created_at=created_at,
        )
        return self._add(row)

    def list_for_entity(self, entity: str, entity_id: str) -> List[AuditLog]:
        """Audit rows of one entity in insertion order."""
        stmt = (
            select(AuditLog)
            .where(AuditLog.entity == entity, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.id)
        )
        return self._execute_query(stmt)

    def list_all(self) -> List[AuditLog]:
        return self._execute_query(select(AuditLog).order_by(AuditLog.id))

    def count_all(self) -> int:
        return self._count()

    def update(self, record_id: int, **_: Any) -> None:
        raise ImmutableRecordError(self._repository_name, record_id, "update")

    def delete(self, record_id: int) -> None:
        raise ImmutableRecordError(self._repository_name, record_id, "delete")
