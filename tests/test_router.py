"""
Tests for the HTTP API.

The app runs against an in-memory database, the mock broker and
a Brave client on httpx.MockTransport.
"""

import uuid
from unittest.mock import Mock

import httpx
import pytest
from fastapi.testclient import TestClient

from api.dependencies import EngineRuntime
from api.router import status_for
from app import create_app
from core.exceptions import (
    BrokerError,
    BrokerRejection,
    ConflictError,
    InputError,
    NotFoundError,
    PersistenceError,
)
from data_ingestion.collectors import BraveNewsCollector
from recommendation_engine.adapters.base import ModelClient
from recommendation_engine.adapters.mock import MockBrokerAdapter
from recommendation_engine.config import EngineConfig, NewsConfig


def news_handler(request):
    return httpx.Response(200, json={"results": [{"title": "Dollar slips", "url": "https://example.com/usd"}]})


@pytest.fixture
def runtime(database, clock):
    news_config = NewsConfig()
    news = BraveNewsCollector(
        news_config,
        client=httpx.Client(transport=httpx.MockTransport(news_handler), base_url=news_config.base_url),
    )
    return EngineRuntime(
        config=EngineConfig.for_testing(),
        database=database,
        broker=MockBrokerAdapter(),
        news=news,
        clock=clock,
    )


@pytest.fixture
def client(runtime):
    return TestClient(create_app(runtime))


def generate(client, **overrides):
    body = {"instruments": ["EUR_USD"], "risk_level": "medium"}
    body.update(overrides)
    response = client.post("/api/v1/ai/recommend", json=body)
    assert response.status_code == 201, response.text
    return response.json()


class TestErrorMapping:

    @pytest.mark.parametrize(
        "error, code",
        [
            (InputError("bad"), 400),
            (NotFoundError("recommendation", "x"), 404),
            (ConflictError("busy"), 409),
            (BrokerRejection("no"), 502),
            (BrokerError("down"), 503),
            (PersistenceError("disk"), 500),
        ],
    )
    def test_status_for(self, error, code):
        assert status_for(error) == code


class TestRecommendations:

    def test_generate_returns_stored_recommendation(self, client):
        data = generate(client)

        assert data["instrument"] == "EUR_USD"
        assert data["direction"] == "BUY"
        assert data["draft_source"] == "HEURISTIC"
        assert data["stop_loss"] == pytest.approx(1.098)
        assert data["take_profit"] == pytest.approx(1.104)
        uuid.UUID(data["id"])

    def test_generate_without_instruments_is_400(self, client):
        response = client.post("/api/v1/ai/recommend", json={"instruments": []})

        assert response.status_code == 400
        assert response.json()["detail"]["type"] == "InputError"

    def test_list_both_forms(self, client):
        data = generate(client)

        ai = client.get("/api/v1/recommendations", params={"form": "ai"}).json()
        legacy = client.get("/api/v1/recommendations", params={"form": "legacy"}).json()

        assert [r["id"] for r in ai] == [data["id"]]
        assert ai[0]["status"] == "PENDING"
        assert legacy[0]["source_recommendation_id"] == data["id"]

    def test_accept_then_conflict(self, client, runtime):
        data = generate(client)

        response = client.post(f"/api/v1/recommendations/{data['id']}/accept")
        assert response.status_code == 200
        trade = response.json()
        assert trade["recommendation_id"] == data["id"]
        assert trade["entry_price_known"] is True

        again = client.post(f"/api/v1/recommendations/{data['id']}/accept")
        assert again.status_code == 409
        assert len(runtime.broker.orders) == 1

    def test_accept_unknown_is_404(self, client):
        response = client.post(f"/api/v1/recommendations/{uuid.uuid4()}/accept")

        assert response.status_code == 404

    def test_accept_rejected_is_502_and_stays_pending(self, client, runtime):
        data = generate(client)
        runtime.broker.inject_rejection("MARKET_HALTED")

        response = client.post(f"/api/v1/recommendations/{data['id']}/accept")

        assert response.status_code == 502
        assert response.json()["detail"]["context"]["error_code"] == "MARKET_HALTED"
        ai = client.get("/api/v1/recommendations").json()
        assert ai[0]["status"] == "PENDING"

    def test_delete(self, client):
        data = generate(client)

        response = client.delete(f"/api/v1/recommendations/{data['id']}")
        assert response.status_code == 200
        assert response.json() == {"deleted": data["id"], "count": 2}
        assert client.get("/api/v1/recommendations").json() == []
        assert client.delete(f"/api/v1/recommendations/{data['id']}").status_code == 404


class TestLegacyRecommendations:

    def test_create_then_accept_as_plain_order(self, client, runtime):
        response = client.post(
            "/api/v1/recommendations",
            json={"instrument": "EUR_USD", "direction": "sell", "units": 500, "rationale": "fade the rally"},
        )
        assert response.status_code == 201, response.text
        record = response.json()
        assert record["direction"] == "SELL"
        assert record["status"] == "PENDING"
        assert record["source_recommendation_id"] is None

        legacy = client.get("/api/v1/recommendations", params={"form": "legacy"}).json()
        assert [r["id"] for r in legacy] == [record["id"]]

        accepted = client.post(f"/api/v1/recommendations/{record['id']}/accept")
        assert accepted.status_code == 200
        order = runtime.broker.orders[0]
        assert order.units == -500
        assert not order.is_bracket

    @pytest.mark.parametrize(
        "body",
        [
            {"instrument": "EUR_USD", "direction": "HOLD", "units": 100},
            {"instrument": "EUR_USD", "direction": "BUY", "units": 0},
            {"instrument": " ", "direction": "BUY", "units": 100},
        ],
    )
    def test_invalid_body_is_400(self, client, body):
        response = client.post("/api/v1/recommendations", json=body)

        assert response.status_code == 400
        assert client.get("/api/v1/recommendations", params={"form": "legacy"}).json() == []


class TestOrdersAndTrades:

    def test_place_list_delete(self, client):
        response = client.post("/api/v1/orders", json={"instrument": "GBP_USD", "units": -250})
        assert response.status_code == 201
        trade = response.json()
        assert trade["direction"] == "SELL"
        assert trade["units"] == 250

        trades = client.get("/api/v1/trades").json()
        assert [t["id"] for t in trades] == [trade["id"]]

        assert client.delete(f"/api/v1/trades/{trade['id']}").status_code == 200
        assert client.get("/api/v1/trades").json() == []

    def test_zero_units_is_400(self, client):
        response = client.post("/api/v1/orders", json={"instrument": "EUR_USD", "units": 0})

        assert response.status_code == 400

    def test_positions_follow_orders(self, client):
        assert client.get("/api/v1/positions").json() == []

        client.post("/api/v1/orders", json={"instrument": "EUR_USD", "units": 1000})
        client.post("/api/v1/orders", json={"instrument": "EUR_USD", "units": -400})

        positions = client.get("/api/v1/positions").json()
        assert len(positions) == 1
        assert positions[0]["instrument"] == "EUR_USD"
        assert positions[0]["long_units"] == 1000
        assert positions[0]["short_units"] == -400
        assert positions[0]["net_units"] == 600


class TestMarketData:

    def test_candles_for_known_instrument(self, client, runtime):
        response = client.get("/api/v1/market/EUR_USD")

        assert response.status_code == 200
        data = response.json()
        assert data["instrument"] == "EUR_USD"
        assert data["granularity"] == runtime.config.recommendation.candle_granularity
        assert len(data["candles"]) == runtime.config.recommendation.candle_count
        assert data["candles"][-1]["close"] == pytest.approx(1.1)

    def test_unknown_instrument_is_503(self, client):
        response = client.get("/api/v1/market/XAU_EUR")

        assert response.status_code == 503
        assert response.json()["detail"]["type"] == "BrokerError"


class TestNewsAndHealth:

    def test_news_search(self, client):
        response = client.get("/api/v1/news/search", params={"q": "USD"})

        assert response.status_code == 200
        assert response.json()[0]["title"] == "Dollar slips"

    def test_health(self, client):
        assert client.get("/api/v1/health").json()["status"] == "ok"
        assert client.get("/api/v1/health/db").status_code == 200

    def test_ai_status_without_model_is_heuristic(self, client):
        assert client.get("/api/v1/ai/status").json() == {"status": "ok", "drafter": "heuristic", "model": None}

    def test_ai_status_reports_model(self, client, runtime):
        model_client = Mock(spec=ModelClient)
        model_client.model_name = "claude-test"
        runtime.model_client = model_client

        data = client.get("/api/v1/ai/status").json()

        assert data["drafter"] == "model"
        assert data["model"] == "claude-test"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
