"""
Recommendation Engine - Audit Trail.

============================================================
PURPOSE
============================================================
Writes one audit row per state change.

Audit writes are best-effort: each row is committed on its own
and a failure is logged and rolled back, never propagated. The
state change the row describes has already been committed.

============================================================
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from core.clock import ClockProtocol, get_clock
from recommendation_engine.types import AuditAction
from storage.repositories import AuditLogRepository, RepositoryException


logger = logging.getLogger(__name__)


class AuditTrail:
    """Best-effort audit writer."""

    def __init__(self, session: Session, clock: Optional[ClockProtocol] = None) -> None:
        self._repository = AuditLogRepository(session)
        self._clock = clock or get_clock()

    def record(
        self,
        entity: str,
        entity_id: str,
        action: AuditAction,
        details: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Append and commit one audit row.

        Returns:
            True if the row was committed
        """
        try:
            self._repository.append(
                entity=entity,
                entity_id=entity_id,
                action=action.value,
                details=details or {},
                created_at=self._clock.now(),
            )
            self._repository.commit()
            return True
        except RepositoryException as e:
            logger.error(
                f"Audit write failed: entity={entity} entity_id={entity_id} action={action.value}: {e}",
                exc_info=True,
            )
            self._safe_rollback()
            return False

    def _safe_rollback(self) -> None:
        try:
            self._repository.rollback()
        except RepositoryException as e:
            logger.error(f"Audit rollback failed: {e}")
