"""
Tests for the Recommendation Store.

Tests cover:
- Id minting and caller id validation
- Primary write, legacy mirror and audit rows
- Mirror failure isolation
- Listing order and limits
- Legacy create
- Soft delete across linked records
- Claims across linked records
"""

import uuid
from datetime import timedelta
from unittest.mock import patch

import pytest

from core.exceptions import NotFoundError, PersistenceError
from recommendation_engine.store import UUID_PATTERN, safe_recommendation_id
from recommendation_engine.types import Direction, RecommendationForm, RecommendationStatus
from storage.repositories import AuditLogRepository
from storage.repositories.exceptions import QueryError


def audit_rows(session):
    return [(row.entity, row.action) for row in AuditLogRepository(session).list_all()]


# =============================================================
# TEST: Identifiers
# =============================================================

class TestIdentifiers:

    def test_non_uuid_caller_id_replaced(self, store, make_priced):
        recommendation_id = store.create(make_priced(recommendation_id="rec-1; DROP TABLE"))

        assert recommendation_id != "rec-1; DROP TABLE"
        assert UUID_PATTERN.match(recommendation_id)
        assert store.list_ai()[0].id == recommendation_id

    def test_uuid_caller_id_kept(self, store, make_priced):
        proposed = str(uuid.uuid4())

        assert store.create(make_priced(recommendation_id=proposed)) == proposed

    def test_missing_caller_id_minted(self):
        assert UUID_PATTERN.match(safe_recommendation_id(None))
        assert UUID_PATTERN.match(safe_recommendation_id(""))

    def test_priced_recommendation_carries_stored_id(self, store, make_priced):
        priced = make_priced()
        recommendation_id = store.create(priced)

        assert priced.recommendation_id == recommendation_id


# =============================================================
# TEST: Create
# =============================================================

class TestCreate:

    def test_ai_record_stored_pending(self, store, make_priced, clock):
        recommendation_id = store.create(make_priced(units=250))
        record = store.find_pending_ai(recommendation_id)

        assert record is not None
        assert record.status == RecommendationStatus.PENDING.value
        assert record.units == 250
        assert record.stop_loss == pytest.approx(1.098)
        assert record.take_profit == pytest.approx(1.104)
        assert record.draft_source == "MODEL"
        assert record.market_context["EUR_USD"]["last_close"] == 1.1
        assert record.expires_at == clock.now() + timedelta(minutes=240)

    def test_mirror_has_own_id_and_link(self, store, make_priced):
        recommendation_id = store.create(make_priced())
        mirror = store.get_mirror(recommendation_id)

        assert mirror is not None
        assert mirror.id != recommendation_id
        assert mirror.source_recommendation_id == recommendation_id
        assert mirror.status == RecommendationStatus.PENDING.value
        assert mirror.confidence_score == pytest.approx(0.7)

    def test_zero_confidence_mirrored_as_null(self, store, make_priced):
        recommendation_id = store.create(make_priced(confidence=0.0))

        assert store.get_mirror(recommendation_id).confidence_score is None

    def test_create_audits_both_stores(self, store, make_priced, session):
        store.create(make_priced())

        assert audit_rows(session) == [
            ("ai_recommendations", "CREATE"),
            ("recommendations", "CREATE"),
        ]

    def test_primary_failure_raises_persistence_error(self, store, make_priced, session):
        failure = QueryError("AIRecommendationRepository", "add", "disk full")

        with patch.object(store._ai, "create", side_effect=failure):
            with pytest.raises(PersistenceError):
                store.create(make_priced())

        assert store.list_ai() == []
        assert store.list_legacy() == []
        assert audit_rows(session) == []


# =============================================================
# TEST: Legacy create
# =============================================================

class TestCreateLegacy:

    def test_stored_pending_without_source(self, store, session):
        record = store.create_legacy("GBP_USD", Direction.SELL, 750, rationale="range top", confidence_score=0.6)

        assert [r.id for r in store.list_legacy()] == [record.id]
        assert record.direction == "SELL"
        assert record.status == RecommendationStatus.PENDING.value
        assert record.source_recommendation_id is None
        assert store.list_ai() == []
        assert audit_rows(session) == [("recommendations", "CREATE")]

    def test_failure_raises_persistence_error(self, store, session):
        failure = QueryError("LegacyRecommendationRepository", "add", "disk full")

        with patch.object(store._legacy, "create", side_effect=failure):
            with pytest.raises(PersistenceError):
                store.create_legacy("EUR_USD", Direction.BUY, 100)

        assert store.list_legacy() == []
        assert audit_rows(session) == []

    def test_delete_has_no_counterpart(self, store):
        record = store.create_legacy("EUR_USD", Direction.BUY, 100)

        assert store.soft_delete(record.id) == 1


# =============================================================
# TEST: Mirror failure isolation
# =============================================================

class TestMirrorFailure:

    def test_mirror_failure_keeps_primary(self, store, make_priced, session):
        failure = QueryError("LegacyRecommendationRepository", "add", "constraint")

        with patch.object(store._legacy, "create", side_effect=failure):
            recommendation_id = store.create(make_priced())

        assert [r.id for r in store.list_ai()] == [recommendation_id]
        assert store.list_legacy() == []
        assert audit_rows(session) == [("ai_recommendations", "CREATE")]

    def test_listing_both_forms_after_partial_mirrors(self, store, make_priced, clock):
        first = store.create(make_priced())
        clock.advance(seconds=1)
        failure = QueryError("LegacyRecommendationRepository", "add", "constraint")
        with patch.object(store._legacy, "create", side_effect=failure):
            second = store.create(make_priced())

        assert [r.id for r in store.list_by_form(RecommendationForm.AI)] == [second, first]
        assert [r.source_recommendation_id for r in store.list_by_form(RecommendationForm.LEGACY)] == [first]


# =============================================================
# TEST: Listing
# =============================================================

class TestListing:

    def test_newest_first(self, store, make_priced, clock):
        ids = []
        for _ in range(3):
            ids.append(store.create(make_priced()))
            clock.advance(minutes=1)

        assert [r.id for r in store.list_ai()] == list(reversed(ids))

    def test_limit_applied(self, store, make_priced, clock):
        for _ in range(3):
            store.create(make_priced())
            clock.advance(minutes=1)

        assert len(store.list_ai(2)) == 2

    @pytest.mark.parametrize("limit, expected", [(None, 200), (0, 200), (-5, 200), (501, 200), (500, 500), (10, 10)])
    def test_normalize_limit(self, store, limit, expected):
        assert store.normalize_limit(limit) == expected


# =============================================================
# TEST: Soft delete
# =============================================================

class TestSoftDelete:

    def test_delete_removes_mirror_too(self, store, make_priced, session):
        recommendation_id = store.create(make_priced())
        mirror_id = store.get_mirror(recommendation_id).id

        assert store.soft_delete(recommendation_id) == 2
        assert store.list_ai() == []
        assert store.list_legacy() == []
        assert not store.exists(recommendation_id)
        assert not store.exists(mirror_id)
        assert audit_rows(session)[-2:] == [
            ("ai_recommendations", "DELETE"),
            ("recommendations", "DELETE"),
        ]

    def test_delete_by_mirror_id_removes_source(self, store, make_priced):
        recommendation_id = store.create(make_priced())
        mirror_id = store.get_mirror(recommendation_id).id

        assert store.soft_delete(mirror_id) == 2
        assert store.list_legacy() == []
        assert store.list_ai() == []

    def test_already_deleted_counterpart_not_counted(self, store, make_priced, session):
        recommendation_id = store.create(make_priced())
        mirror_id = store.get_mirror(recommendation_id).id
        store._legacy.soft_delete(mirror_id, store._clock.now())
        session.commit()

        assert store.soft_delete(recommendation_id) == 1

    def test_unknown_id_raises_not_found(self, store):
        with pytest.raises(NotFoundError):
            store.soft_delete(str(uuid.uuid4()))

    def test_second_delete_raises_not_found(self, store, make_priced):
        recommendation_id = store.create(make_priced())
        store.soft_delete(recommendation_id)

        with pytest.raises(NotFoundError):
            store.soft_delete(recommendation_id)


# =============================================================
# TEST: Claim guard
# =============================================================

class TestClaim:

    def test_only_one_claim_wins(self, store, make_priced):
        recommendation_id = store.create(make_priced())

        assert store.claim(RecommendationForm.AI, recommendation_id, "token-a") is True
        assert store.claim(RecommendationForm.AI, recommendation_id, "token-b") is False

    def test_release_allows_new_claim(self, store, make_priced):
        recommendation_id = store.create(make_priced())
        store.claim(RecommendationForm.AI, recommendation_id, "token-a")

        store.release(RecommendationForm.AI, recommendation_id, "token-a")

        assert store.claim(RecommendationForm.AI, recommendation_id, "token-b") is True

    def test_release_with_wrong_token_keeps_claim(self, store, make_priced):
        recommendation_id = store.create(make_priced())
        store.claim(RecommendationForm.AI, recommendation_id, "token-a")

        store.release(RecommendationForm.AI, recommendation_id, "token-b")

        assert store.claim(RecommendationForm.AI, recommendation_id, "token-c") is False

    def test_mark_executed_requires_claim(self, store, make_priced):
        recommendation_id = store.create(make_priced())

        assert store.mark_executed(RecommendationForm.AI, recommendation_id, "no-claim", "order-1") is False
        assert store.find_pending_ai(recommendation_id) is not None

    def test_linked_claim_holds_both_records(self, store, make_priced):
        recommendation_id = store.create(make_priced())
        mirror_id = store.get_mirror(recommendation_id).id

        assert store.claim(RecommendationForm.AI, recommendation_id, "token-a", linked_id=mirror_id) is True

        assert store.claim(RecommendationForm.LEGACY, mirror_id, "token-b") is False
        assert store.get_mirror(recommendation_id).execution_claim == "token-a"

    def test_claimed_counterpart_blocks_and_undoes_claim(self, store, make_priced):
        recommendation_id = store.create(make_priced())
        mirror_id = store.get_mirror(recommendation_id).id
        store.claim(RecommendationForm.LEGACY, mirror_id, "token-m")

        assert store.claim(RecommendationForm.AI, recommendation_id, "token-a", linked_id=mirror_id) is False

        assert store.find_pending_ai(recommendation_id).execution_claim is None
        assert store.claim(RecommendationForm.AI, recommendation_id, "token-b") is True

    def test_linked_release_frees_both(self, store, make_priced):
        recommendation_id = store.create(make_priced())
        mirror_id = store.get_mirror(recommendation_id).id
        store.claim(RecommendationForm.AI, recommendation_id, "token-a", linked_id=mirror_id)

        store.release(RecommendationForm.AI, recommendation_id, "token-a", linked_id=mirror_id)

        assert store.claim(RecommendationForm.LEGACY, mirror_id, "token-b") is True
        assert store.claim(RecommendationForm.AI, recommendation_id, "token-c") is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
