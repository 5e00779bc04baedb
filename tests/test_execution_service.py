"""
Tests for the Execution Service.

Tests cover:
- Resolution order and error paths (no writes on failure)
- Bracket vs plain orders by record form
- Broker rejection leaves the recommendation PENDING
- Claim guard against double execution
- Best-effort reconciliation
- Direct orders and trade management
"""

import uuid
from unittest.mock import patch

import pytest

from core.exceptions import (
    BrokerError,
    BrokerRejection,
    ConflictError,
    InputError,
    NotFoundError,
)
from recommendation_engine.adapters.mock import MockBrokerAdapter, MockBrokerConfig
from recommendation_engine.execution_service import ExecutionService
from recommendation_engine.types import Direction, RecommendationForm, RecommendationStatus
from storage.repositories import AuditLogRepository, TradeRepository
from storage.repositories.exceptions import QueryError


@pytest.fixture
def service(session, broker, store, audit, clock):
    return ExecutionService(session, broker, store=store, audit=audit, clock=clock)


def audit_actions(session):
    return [(row.entity, row.action) for row in AuditLogRepository(session).list_all()]


def trade_count(session):
    return TradeRepository(session).count_all()


# =============================================================
# TEST: Resolution
# =============================================================

class TestResolution:

    def test_unknown_id_not_found_without_writes(self, service, session, broker):
        with pytest.raises(NotFoundError):
            service.accept(str(uuid.uuid4()))

        assert broker.orders == []
        assert trade_count(session) == 0
        assert audit_actions(session) == []

    def test_deleted_recommendation_not_found(self, service, store, make_priced, broker):
        recommendation_id = store.create(make_priced())
        store.soft_delete(recommendation_id)

        with pytest.raises(NotFoundError):
            service.accept(recommendation_id)
        assert broker.orders == []

    def test_legacy_id_resolves_to_legacy_record(self, service, store, make_priced):
        recommendation_id = store.create(make_priced())
        mirror = store.get_mirror(recommendation_id)

        trade = service.accept(mirror.id)

        assert mirror.status == RecommendationStatus.EXECUTED.value
        assert mirror.trade_id == trade.broker_trade_id
        # Each store tracks its own status; the source keeps the claim
        source = store.find_pending_ai(recommendation_id)
        assert source is not None
        assert source.execution_claim is not None

    def test_mirror_of_deleted_source_not_found(self, service, store, make_priced, broker):
        recommendation_id = store.create(make_priced())
        mirror_id = store.get_mirror(recommendation_id).id
        store.soft_delete(recommendation_id)

        with pytest.raises(NotFoundError):
            service.accept(mirror_id)
        assert broker.orders == []

    def test_deleted_source_blocks_live_mirror(self, service, store, make_priced, broker, session, clock):
        recommendation_id = store.create(make_priced())
        mirror_id = store.get_mirror(recommendation_id).id
        # Source removed outside the store, mirror left live
        store._ai.soft_delete(recommendation_id, clock.now())
        session.commit()

        with pytest.raises(NotFoundError):
            service.accept(mirror_id)
        assert broker.orders == []
        assert store.find_pending_legacy(mirror_id).execution_claim is None


# =============================================================
# TEST: Successful accept
# =============================================================

class TestAccept:

    def test_ai_record_executes_as_bracket(self, service, store, make_priced, broker, session):
        recommendation_id = store.create(make_priced(units=1000))

        trade = service.accept(recommendation_id)

        assert len(broker.orders) == 1
        order = broker.orders[0]
        assert order.instrument == "EUR_USD"
        assert order.units == 1000
        assert order.stop_loss == pytest.approx(1.098)
        assert order.take_profit == pytest.approx(1.104)

        record = store.find_live(recommendation_id)[1]
        assert record.status == RecommendationStatus.EXECUTED.value
        assert record.executed_trade_id == trade.broker_trade_id

        assert trade.id is not None
        assert trade.units == 1000
        assert trade.direction == "BUY"
        assert trade.entry_price == pytest.approx(1.1)
        assert trade.entry_price_known is True
        assert trade.recommendation_id == recommendation_id
        assert trade_count(session) == 1

    def test_success_audits_execute_and_trade_create(self, service, store, make_priced, session):
        recommendation_id = store.create(make_priced())

        service.accept(recommendation_id)

        assert audit_actions(session)[-2:] == [
            ("ai_recommendations", "EXECUTE"),
            ("trades", "CREATE"),
        ]
        execute_row = AuditLogRepository(session).list_for_entity("ai_recommendations", recommendation_id)[-1]
        assert execute_row.details["trade_id"]

    def test_ai_record_without_levels_is_plain_order(self, service, store, make_priced, broker):
        recommendation_id = store.create(make_priced(stop_loss=None, take_profit=None))

        service.accept(recommendation_id)

        assert not broker.orders[0].is_bracket

    def test_legacy_record_is_plain_order(self, service, store, make_priced, broker):
        recommendation_id = store.create(make_priced())

        service.accept(store.get_mirror(recommendation_id).id)

        assert not broker.orders[0].is_bracket

    def test_sell_sends_negative_units(self, service, store, make_priced, broker):
        recommendation_id = store.create(
            make_priced(direction=Direction.SELL, units=300, stop_loss=1.102, take_profit=1.096)
        )

        trade = service.accept(recommendation_id)

        assert broker.orders[0].units == -300
        assert trade.units == 300
        assert trade.direction == "SELL"
        assert trade.signed_units == -300

    def test_unknown_entry_price_recorded_as_zero(self, session, store, make_priced, clock, audit):
        broker = MockBrokerAdapter(MockBrokerConfig(fail_quotes=True))
        service = ExecutionService(session, broker, store=store, audit=audit, clock=clock)
        recommendation_id = store.create(make_priced())

        trade = service.accept(recommendation_id)

        assert trade.entry_price == 0.0
        assert trade.entry_price_known is False


# =============================================================
# TEST: Broker failures
# =============================================================

class TestBrokerFailures:

    def test_rejection_leaves_pending(self, service, store, make_priced, broker, session):
        recommendation_id = store.create(make_priced())
        audit_before = audit_actions(session)
        broker.inject_rejection("INSUFFICIENT_MARGIN")

        with pytest.raises(BrokerRejection) as exc_info:
            service.accept(recommendation_id)

        assert exc_info.value.error_code == "INSUFFICIENT_MARGIN"
        record = store.find_pending_ai(recommendation_id)
        assert record is not None
        assert record.execution_claim is None
        assert trade_count(session) == 0
        assert audit_actions(session) == audit_before

    def test_rejected_recommendation_can_be_retried(self, service, store, make_priced, broker):
        recommendation_id = store.create(make_priced())
        broker.inject_rejection()
        with pytest.raises(BrokerRejection):
            service.accept(recommendation_id)

        trade = service.accept(recommendation_id)

        assert trade.recommendation_id == recommendation_id
        assert len(broker.orders) == 1

    def test_transport_error_releases_claim(self, service, store, make_priced, broker):
        recommendation_id = store.create(make_priced())

        with patch.object(broker, "submit_market_order", side_effect=BrokerError("timeout")):
            with pytest.raises(BrokerError):
                service.accept(recommendation_id)

        assert store.find_pending_ai(recommendation_id).execution_claim is None
        assert store.get_mirror(recommendation_id).execution_claim is None


# =============================================================
# TEST: Double execution guard
# =============================================================

class TestConflict:

    def test_second_accept_conflicts(self, service, store, make_priced, broker):
        recommendation_id = store.create(make_priced())
        service.accept(recommendation_id)

        with pytest.raises(ConflictError):
            service.accept(recommendation_id)
        assert len(broker.orders) == 1

    def test_in_flight_claim_conflicts_without_broker_call(self, service, store, make_priced, broker):
        recommendation_id = store.create(make_priced())
        # Another request already holds the claim
        assert store.claim(RecommendationForm.AI, recommendation_id, "other-request")

        with pytest.raises(ConflictError):
            service.accept(recommendation_id)
        assert broker.orders == []

    def test_mirror_of_executed_recommendation_conflicts(self, service, store, make_priced, broker):
        recommendation_id = store.create(make_priced())
        mirror_id = store.get_mirror(recommendation_id).id
        service.accept(recommendation_id)

        with pytest.raises(ConflictError):
            service.accept(mirror_id)
        assert len(broker.orders) == 1

    def test_source_of_executed_mirror_conflicts(self, service, store, make_priced, broker):
        recommendation_id = store.create(make_priced())
        service.accept(store.get_mirror(recommendation_id).id)

        with pytest.raises(ConflictError):
            service.accept(recommendation_id)
        assert len(broker.orders) == 1

    @pytest.mark.parametrize("outer_is_mirror", [True, False])
    def test_accept_of_other_form_during_submit_conflicts(
        self, service, store, make_priced, broker, outer_is_mirror
    ):
        recommendation_id = store.create(make_priced())
        mirror_id = store.get_mirror(recommendation_id).id
        outer, inner = (mirror_id, recommendation_id) if outer_is_mirror else (recommendation_id, mirror_id)
        submit = broker.submit_market_order

        def submit_with_concurrent_accept(order):
            # A second request arrives while the first order is in flight
            with pytest.raises(ConflictError):
                service.accept(inner)
            return submit(order)

        with patch.object(broker, "submit_market_order", side_effect=submit_with_concurrent_accept):
            service.accept(outer)

        assert len(broker.orders) == 1
        with pytest.raises(ConflictError):
            service.accept(inner)
        assert len(broker.orders) == 1


# =============================================================
# TEST: Best-effort reconciliation
# =============================================================

class TestReconciliation:

    def test_trade_write_failure_returns_unsaved_trade(self, service, store, make_priced, session):
        recommendation_id = store.create(make_priced())
        failure = QueryError("TradeRepository", "add", "disk full")

        with patch.object(service._trades, "create", side_effect=failure):
            trade = service.accept(recommendation_id)

        assert trade.id is None
        assert trade.broker_trade_id
        assert trade_count(session) == 0
        assert store.find_live(recommendation_id)[1].status == RecommendationStatus.EXECUTED.value

    def test_mark_executed_failure_still_records_trade(self, service, store, make_priced, session):
        recommendation_id = store.create(make_priced())
        failure = QueryError("AIRecommendationRepository", "mark_executed", "locked")

        with patch.object(store._ai, "mark_executed", side_effect=failure):
            trade = service.accept(recommendation_id)

        assert trade.id is not None
        assert trade_count(session) == 1

    def test_audit_failure_does_not_break_accept(self, service, store, make_priced, audit):
        recommendation_id = store.create(make_priced())
        failure = QueryError("AuditLogRepository", "add", "audit table missing")

        with patch.object(audit._repository, "append", side_effect=failure):
            trade = service.accept(recommendation_id)

        assert trade.id is not None


# =============================================================
# TEST: Direct orders and trades
# =============================================================

class TestPlaceOrder:

    def test_zero_units_rejected_before_broker(self, service, broker):
        with pytest.raises(InputError):
            service.place_order("EUR_USD", 0)
        assert broker.orders == []

    def test_empty_instrument_rejected(self, service):
        with pytest.raises(InputError):
            service.place_order("  ", 100)

    def test_negative_units_sell(self, service, broker):
        trade = service.place_order("USD_JPY", -5000, stop_loss=150.5, take_profit=149.0)

        assert broker.orders[0].units == -5000
        assert broker.orders[0].is_bracket
        assert trade.direction == "SELL"
        assert trade.units == 5000
        assert trade.recommendation_id is None
        assert trade.entry_price == pytest.approx(150.0)

    def test_list_and_delete_trades(self, service, session, clock):
        first = service.place_order("EUR_USD", 100)
        clock.advance(seconds=1)
        second = service.place_order("GBP_USD", 200)

        assert [t.id for t in service.list_trades()] == [second.id, first.id]

        service.delete_trade(first.id)

        assert [t.id for t in service.list_trades()] == [second.id]
        assert audit_actions(session)[-1] == ("trades", "DELETE")
        with pytest.raises(NotFoundError):
            service.delete_trade(first.id)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
