"""
Recommendation Engine - Recommendation Store.

============================================================
PURPOSE
============================================================
Durable storage of recommendations across the two stores.

============================================================
WRITE ORDER (create)
============================================================
1. AI record (primary)         failure -> PersistenceError
2. Audit CREATE (AI)           best-effort
3. Legacy mirror (own id)      best-effort, logged on failure
4. Audit CREATE (legacy)       best-effort

create_legacy writes a legacy record with no AI source.

Every step commits on its own so a later failure never undoes
an earlier success.

============================================================
IDENTIFIERS
============================================================
The store alone mints recommendation ids. A caller-proposed id
is kept only if it is UUID-shaped; otherwise a fresh UUID4 is
used.

============================================================
"""

import json
import logging
import re
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.clock import ClockProtocol, get_clock
from core.exceptions import NotFoundError, PersistenceError
from recommendation_engine.audit import AuditTrail
from recommendation_engine.config import RecommendationConfig
from recommendation_engine.types import (
    AuditAction,
    Direction,
    ModelUsage,
    PricedRecommendation,
    RecommendationForm,
)
from storage.models import AIRecommendation, LegacyRecommendation
from storage.repositories import (
    AIRecommendationRepository,
    AIUsageLogRepository,
    LegacyRecommendationRepository,
    RepositoryException,
)


logger = logging.getLogger(__name__)


UUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

StoredRecommendation = Union[AIRecommendation, LegacyRecommendation]


def safe_recommendation_id(candidate: Optional[str]) -> str:
    """Keep a UUID-shaped candidate, otherwise mint a UUID4."""
    if candidate and UUID_PATTERN.match(candidate.strip()):
        return candidate.strip().lower()
    return str(uuid.uuid4())


def to_json_safe(value: Any) -> Any:
    """Round-trip through JSON so datetimes and Decimals become strings."""
    if value is None:
        return None
    return json.loads(json.dumps(value, default=str))


class RecommendationStore:
    """
    Recommendation persistence over both stores.

    One instance per unit of work; the session is injected.
    """

    def __init__(
        self,
        session: Session,
        config: Optional[RecommendationConfig] = None,
        clock: Optional[ClockProtocol] = None,
        audit: Optional[AuditTrail] = None,
    ) -> None:
        self._session = session
        self._config = config or RecommendationConfig()
        self._clock = clock or get_clock()
        self._ai = AIRecommendationRepository(session)
        self._legacy = LegacyRecommendationRepository(session)
        self._usage = AIUsageLogRepository(session)
        self._audit = audit or AuditTrail(session, self._clock)

    # =========================================================
    # CREATE
    # =========================================================

    def create(self, priced: PricedRecommendation) -> str:
        """
        Persist a priced recommendation.

        Returns:
            The stored AI record id

        Raises:
            PersistenceError: If the AI record could not be written
        """
        draft = priced.draft
        recommendation_id = safe_recommendation_id(priced.recommendation_id)
        now = self._clock.now()
        expires_at = draft.expires_at or now + timedelta(minutes=self._config.default_ttl_minutes)
        market_context = to_json_safe(draft.context.market)

        try:
            self._ai.create(
                recommendation_id=recommendation_id,
                instrument=draft.instrument,
                direction=draft.direction.value,
                units=priced.units,
                confidence=draft.confidence,
                rationale=draft.rationale,
                stop_loss=priced.stop_loss,
                take_profit=priced.take_profit,
                expires_at=expires_at,
                created_at=now,
                draft_source=draft.source.value,
                market_context=market_context,
                news_context=to_json_safe(draft.context.news),
                historical_context=to_json_safe(draft.context.historical),
            )
            self._ai.commit()
        except RepositoryException as e:
            self._safe_rollback()
            logger.error(f"AI recommendation insert failed: id={recommendation_id}: {e}")
            raise PersistenceError(
                f"Could not store recommendation: {e.message}",
                operation="create",
                table=RecommendationForm.AI.table,
                cause=e,
            ) from e

        priced.recommendation_id = recommendation_id
        logger.info(
            f"Recommendation stored: id={recommendation_id} instrument={draft.instrument} "
            f"direction={draft.direction.value} units={priced.units} source={draft.source.value}"
        )

        details = {
            "instrument": draft.instrument,
            "direction": draft.direction.value,
            "units": priced.units,
        }
        self._audit.record(RecommendationForm.AI.table, recommendation_id, AuditAction.CREATE, details)
        self._mirror(recommendation_id, priced, market_context, details)
        return recommendation_id

    def _mirror(
        self,
        recommendation_id: str,
        priced: PricedRecommendation,
        market_context: Optional[Dict[str, Any]],
        details: Dict[str, Any],
    ) -> Optional[str]:
        """Best-effort legacy copy. Returns the mirror id or None."""
        draft = priced.draft
        try:
            mirror = self._legacy.create(
                instrument=draft.instrument,
                direction=draft.direction.value,
                units=priced.units,
                rationale=draft.rationale,
                confidence_score=draft.confidence if draft.confidence > 0 else None,
                market_conditions=market_context,
                source_recommendation_id=recommendation_id,
                created_at=self._clock.now(),
            )
            self._legacy.commit()
        except RepositoryException as e:
            self._safe_rollback()
            logger.warning(f"Legacy mirror failed for recommendation {recommendation_id}: {e}")
            return None

        self._audit.record(RecommendationForm.LEGACY.table, mirror.id, AuditAction.CREATE, details)
        return mirror.id

    def create_legacy(
        self,
        instrument: str,
        direction: Direction,
        units: float,
        rationale: Optional[str] = None,
        confidence_score: Optional[float] = None,
    ) -> LegacyRecommendation:
        """
        Persist a caller-authored recommendation in the legacy store only.

        It has no AI source, so accepting it always sends a plain order.

        Raises:
            PersistenceError: If the record could not be written
        """
        try:
            record = self._legacy.create(
                instrument=instrument,
                direction=direction.value,
                units=units,
                rationale=rationale,
                confidence_score=confidence_score,
                created_at=self._clock.now(),
            )
            self._legacy.commit()
        except RepositoryException as e:
            self._safe_rollback()
            logger.error(f"Legacy recommendation insert failed: instrument={instrument}: {e}")
            raise PersistenceError(
                f"Could not store recommendation: {e.message}",
                operation="create_legacy",
                table=RecommendationForm.LEGACY.table,
                cause=e,
            ) from e

        logger.info(
            f"Legacy recommendation stored: id={record.id} instrument={instrument} "
            f"direction={direction.value} units={units}"
        )
        self._audit.record(
            RecommendationForm.LEGACY.table,
            record.id,
            AuditAction.CREATE,
            {"instrument": instrument, "direction": direction.value, "units": units},
        )
        return record

    def record_usage(self, recommendation_id: str, usage: ModelUsage) -> bool:
        """Best-effort model usage row."""
        try:
            self._usage.create(
                recommendation_id=recommendation_id,
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                response_time_ms=usage.response_time_ms,
                model=usage.model,
                created_at=self._clock.now(),
            )
            self._usage.commit()
            return True
        except RepositoryException as e:
            self._safe_rollback()
            logger.error(f"Usage log write failed for {recommendation_id}: {e}")
            return False

    # =========================================================
    # READ
    # =========================================================

    def normalize_limit(self, limit: Optional[int]) -> int:
        """Out-of-range limits fall back to the default."""
        if limit is None or limit <= 0 or limit > self._config.max_list_limit:
            return self._config.default_list_limit
        return limit

    def list_by_form(self, form: RecommendationForm, limit: Optional[int] = None) -> List[StoredRecommendation]:
        """Live records of one form, newest first."""
        repository = self._repository(form)
        return repository.list_recent(self.normalize_limit(limit))

    def list_ai(self, limit: Optional[int] = None) -> List[AIRecommendation]:
        return self._ai.list_recent(self.normalize_limit(limit))

    def list_legacy(self, limit: Optional[int] = None) -> List[LegacyRecommendation]:
        return self._legacy.list_recent(self.normalize_limit(limit))

    def find_pending_legacy(self, recommendation_id: str) -> Optional[LegacyRecommendation]:
        return self._legacy.get_pending(recommendation_id)

    def find_pending_ai(self, recommendation_id: str) -> Optional[AIRecommendation]:
        return self._ai.get_pending(recommendation_id)

    def exists(self, recommendation_id: str) -> bool:
        """True if any non-deleted record in either store has this id."""
        return self.find_live(recommendation_id) is not None

    def find_pending(self, recommendation_id: str) -> Optional[Tuple[RecommendationForm, StoredRecommendation]]:
        """Pending record by id: legacy store first, then AI store."""
        legacy = self.find_pending_legacy(recommendation_id)
        if legacy is not None:
            return RecommendationForm.LEGACY, legacy

        ai = self.find_pending_ai(recommendation_id)
        if ai is not None:
            return RecommendationForm.AI, ai

        return None

    def find_live(self, recommendation_id: str) -> Optional[Tuple[RecommendationForm, StoredRecommendation]]:
        """Any non-deleted record by id, whatever its status."""
        legacy = self._legacy.get_live(recommendation_id)
        if legacy is not None:
            return RecommendationForm.LEGACY, legacy

        ai = self._ai.get_live(recommendation_id)
        if ai is not None:
            return RecommendationForm.AI, ai

        return None

    def get_mirror(self, recommendation_id: str) -> Optional[LegacyRecommendation]:
        return self._legacy.get_by_source(recommendation_id)

    def linked_record(
        self, form: RecommendationForm, record: StoredRecommendation
    ) -> Optional[StoredRecommendation]:
        """The other form of the same recommendation, if a link exists."""
        if form is RecommendationForm.AI:
            return self._legacy.get_by_source(record.id)
        source_id = getattr(record, "source_recommendation_id", None)
        if source_id:
            return self._ai.get(source_id)
        return None

    # =========================================================
    # STATE TRANSITIONS
    # =========================================================

    def claim(
        self,
        form: RecommendationForm,
        recommendation_id: str,
        token: str,
        linked_id: Optional[str] = None,
    ) -> bool:
        """
        Claim a pending record for execution and commit the claim.

        With linked_id the counterpart record in the other store is
        claimed with the same token in the same transaction; both
        claims hold or neither does.

        Returns:
            False if another caller holds either record or it is no
            longer pending

        Raises:
            PersistenceError: If the claim could not be written
        """
        repository = self._repository(form)
        try:
            claimed = repository.claim(recommendation_id, token)
            if claimed and linked_id is not None:
                if not self._repository(form.counterpart).claim(linked_id, token):
                    repository.rollback()
                    logger.info(
                        f"Claim lost on linked record: id={recommendation_id} linked_id={linked_id}"
                    )
                    return False
            repository.commit()
            return claimed
        except RepositoryException as e:
            self._safe_rollback()
            raise PersistenceError(
                f"Could not claim recommendation: {e.message}",
                operation="claim",
                table=form.table,
                cause=e,
            ) from e

    def release(
        self,
        form: RecommendationForm,
        recommendation_id: str,
        token: str,
        linked_id: Optional[str] = None,
    ) -> None:
        """Best-effort claim release; the records stay PENDING."""
        repository = self._repository(form)
        try:
            repository.release(recommendation_id, token)
            if linked_id is not None:
                self._repository(form.counterpart).release(linked_id, token)
            repository.commit()
        except RepositoryException as e:
            self._safe_rollback()
            logger.error(f"Claim release failed for {recommendation_id}: {e}")

    def mark_executed(
        self,
        form: RecommendationForm,
        recommendation_id: str,
        token: str,
        trade_ref: str,
    ) -> bool:
        """
        PENDING -> EXECUTED with the broker reference, then audit EXECUTE.

        Best-effort: failure is logged and reported as False.
        """
        repository = self._repository(form)
        try:
            updated = repository.mark_executed(recommendation_id, token, trade_ref, self._clock.now())
            repository.commit()
        except RepositoryException as e:
            self._safe_rollback()
            logger.error(
                f"Mark executed failed: table={form.table} id={recommendation_id} "
                f"trade_ref={trade_ref}: {e}",
                exc_info=True,
            )
            return False

        if not updated:
            logger.error(
                f"Mark executed matched no row: table={form.table} id={recommendation_id} "
                f"trade_ref={trade_ref}"
            )
            return False

        self._audit.record(form.table, recommendation_id, AuditAction.EXECUTE, {"trade_id": trade_ref})
        return True

    def soft_delete(self, recommendation_id: str) -> int:
        """
        Soft-delete every live record with this id, in either store,
        together with its linked counterpart (AI record and mirror).

        Returns:
            Number of records deleted

        Raises:
            NotFoundError: If no live record has this id
            PersistenceError: If the delete could not be written
        """
        now = self._clock.now()
        deleted: List[Tuple[RecommendationForm, str]] = []

        try:
            for form, record_id in self._deletion_targets(recommendation_id):
                if self._repository(form).soft_delete(record_id, now):
                    deleted.append((form, record_id))
            self._ai.commit()
        except RepositoryException as e:
            self._safe_rollback()
            raise PersistenceError(
                f"Could not delete recommendation: {e.message}",
                operation="soft_delete",
                cause=e,
            ) from e

        if not deleted:
            raise NotFoundError("recommendation", recommendation_id)

        for form, record_id in deleted:
            self._audit.record(form.table, record_id, AuditAction.DELETE, {})
        logger.info(
            f"Recommendation soft-deleted: id={recommendation_id} "
            f"records={[f'{form.value}:{record_id}' for form, record_id in deleted]}"
        )
        return len(deleted)

    def _deletion_targets(self, recommendation_id: str) -> List[Tuple[RecommendationForm, str]]:
        """Live records with this id plus their live counterparts."""
        targets: List[Tuple[RecommendationForm, str]] = []
        for form in (RecommendationForm.LEGACY, RecommendationForm.AI):
            record = self._repository(form).get_live(recommendation_id)
            if record is None:
                continue
            targets.append((form, record.id))
            linked = self.linked_record(form, record)
            if linked is not None and linked.deleted_at is None:
                targets.append((form.counterpart, linked.id))
        return list(dict.fromkeys(targets))

    # =========================================================
    # INTERNAL
    # =========================================================

    def _repository(
        self, form: RecommendationForm
    ) -> Union[AIRecommendationRepository, LegacyRecommendationRepository]:
        return self._ai if form is RecommendationForm.AI else self._legacy

    def _safe_rollback(self) -> None:
        try:
            self._session.rollback()
        except SQLAlchemyError as e:
            logger.error(f"Rollback failed: {e}")
