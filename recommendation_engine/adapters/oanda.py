"""
Recommendation Engine - OANDA v20 Broker Adapter.

============================================================
PURPOSE
============================================================
BrokerAdapter over the OANDA v20 REST API using httpx.

ENDPOINTS:
- GET  /v3/accounts/{id}/pricing          quotes
- GET  /v3/accounts/{id}                  NAV
- POST /v3/accounts/{id}/orders           market / bracket orders
- GET  /v3/instruments/{inst}/candles     candles
- GET  /v3/accounts/{id}/openPositions    positions

ORDER FORMAT:
- type MARKET, timeInForce FOK, positionFill DEFAULT
- stopLossOnFill / takeProfitOnFill priced to a tenth of a pip
  (5 dp, 3 dp for JPY-quoted instruments)

============================================================
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from core.exceptions import BrokerError, BrokerRejection
from recommendation_engine.config import BrokerConfig
from recommendation_engine.risk import pip_size
from recommendation_engine.adapters.base import (
    BrokerAdapter,
    Candle,
    MarketOrderRequest,
    OrderConfirmation,
    Position,
    Quote,
)


logger = logging.getLogger(__name__)


def parse_oanda_time(value: str) -> datetime:
    """
    Parse an OANDA RFC3339 timestamp.

    OANDA sends nanosecond precision ("...T10:00:00.000000000Z");
    the fraction is truncated to microseconds.
    """
    text = value.rstrip("Z")
    if "." in text:
        head, fraction = text.split(".", 1)
        text = f"{head}.{fraction[:6]}"
    return datetime.fromisoformat(text).replace(tzinfo=timezone.utc)


def format_price(price: float, instrument: str) -> str:
    """Price at the instrument's precision, a tenth of a pip (5 dp, 3 dp for JPY)."""
    decimals = -(pip_size(instrument) / 10).as_tuple().exponent
    return f"{price:.{decimals}f}"


class OandaBrokerAdapter(BrokerAdapter):
    """
    OANDA v20 REST adapter.

    Usage:
        adapter = OandaBrokerAdapter(BrokerConfig(api_key=..., account_id=...))
        quote = adapter.get_quote("EUR_USD")
    """

    def __init__(
        self,
        config: BrokerConfig,
        client: Optional[httpx.Client] = None,
    ) -> None:
        """
        Args:
            config: Broker configuration
            client: Pre-built httpx client (tests pass one with a MockTransport)
        """
        self._config = config
        self._client = client or httpx.Client(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
        )
        self._headers = {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }

    @property
    def broker_id(self) -> str:
        return "oanda"

    def close(self) -> None:
        self._client.close()

    # --------------------------------------------------------
    # TRANSPORT
    # --------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        try:
            return self._client.request(
                method,
                path,
                params=params,
                json=json,
                headers=self._headers,
            )
        except httpx.TimeoutException as e:
            raise BrokerError(f"Request timeout: {e}", endpoint=path, cause=e) from e
        except httpx.RequestError as e:
            raise BrokerError(f"Request error: {e}", endpoint=path, cause=e) from e

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = self._request("GET", path, params=params)
        if response.status_code != 200:
            raise BrokerError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                endpoint=path,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise BrokerError(f"Invalid JSON from broker: {e}", endpoint=path, cause=e) from e

    # --------------------------------------------------------
    # READS
    # --------------------------------------------------------

    def get_quote(self, instrument: str) -> Quote:
        path = f"/v3/accounts/{self._config.account_id}/pricing"
        data = self._get_json(path, params={"instruments": instrument})

        prices = data.get("prices") or []
        if not prices:
            raise BrokerError(f"No price returned for {instrument}", endpoint=path)

        price = prices[0]
        try:
            bid = float(price["bids"][0]["price"]) if price.get("bids") else 0.0
            ask = float(price["asks"][0]["price"]) if price.get("asks") else 0.0
            quoted_at = parse_oanda_time(price["time"]) if price.get("time") else None
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise BrokerError(f"Malformed price for {instrument}: {e}", endpoint=path, cause=e) from e

        return Quote(instrument=instrument, bid=bid, ask=ask, time=quoted_at)

    def get_account_equity(self) -> float:
        path = f"/v3/accounts/{self._config.account_id}"
        data = self._get_json(path)
        try:
            return float(data["account"]["NAV"])
        except (KeyError, TypeError, ValueError) as e:
            raise BrokerError(f"Malformed account response: {e}", endpoint=path, cause=e) from e

    def get_candles(self, instrument: str, granularity: str, count: int) -> List[Candle]:
        path = f"/v3/instruments/{instrument}/candles"
        data = self._get_json(
            path,
            params={"granularity": granularity, "count": count, "price": "M"},
        )

        candles: List[Candle] = []
        for raw in data.get("candles") or []:
            mid = raw.get("mid")
            if not mid:
                continue
            try:
                candles.append(Candle(
                    time=parse_oanda_time(raw["time"]),
                    open=float(mid["o"]),
                    high=float(mid["h"]),
                    low=float(mid["l"]),
                    close=float(mid["c"]),
                    volume=float(raw.get("volume", 0)),
                    complete=bool(raw.get("complete", True)),
                ))
            except (KeyError, TypeError, ValueError) as e:
                raise BrokerError(f"Malformed candle for {instrument}: {e}", endpoint=path, cause=e) from e
        return candles

    def get_positions(self) -> List[Position]:
        path = f"/v3/accounts/{self._config.account_id}/openPositions"
        data = self._get_json(path)

        positions: List[Position] = []
        for raw in data.get("positions") or []:
            try:
                positions.append(Position(
                    instrument=raw["instrument"],
                    long_units=float((raw.get("long") or {}).get("units", 0)),
                    short_units=float((raw.get("short") or {}).get("units", 0)),
                    unrealized_pl=float(raw.get("unrealizedPL", 0)),
                    margin_used=float(raw.get("marginUsed", 0)),
                ))
            except (KeyError, TypeError, ValueError) as e:
                raise BrokerError(f"Malformed position: {e}", endpoint=path, cause=e) from e
        return positions

    # --------------------------------------------------------
    # ORDERS
    # --------------------------------------------------------

    def build_order_payload(self, request: MarketOrderRequest) -> Dict[str, Any]:
        order: Dict[str, Any] = {
            "type": "MARKET",
            "instrument": request.instrument,
            "units": str(int(request.units)) if float(request.units).is_integer() else str(request.units),
            "timeInForce": "FOK",
            "positionFill": "DEFAULT",
        }
        if request.take_profit is not None and request.take_profit > 0:
            order["takeProfitOnFill"] = {"price": format_price(request.take_profit, request.instrument)}
        if request.stop_loss is not None and request.stop_loss > 0:
            order["stopLossOnFill"] = {"price": format_price(request.stop_loss, request.instrument)}
        return {"order": order}

    def submit_market_order(self, request: MarketOrderRequest) -> OrderConfirmation:
        path = f"/v3/accounts/{self._config.account_id}/orders"
        payload = self.build_order_payload(request)

        response = self._request("POST", path, json=payload)

        if response.status_code >= 500:
            raise BrokerError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                endpoint=path,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not 200 <= response.status_code < 300:
            raise BrokerRejection(
                data.get("errorMessage") or f"order failed status {response.status_code}",
                instrument=request.instrument,
                error_code=data.get("errorCode"),
                status_code=response.status_code,
            )

        if "orderCancelTransaction" in data:
            reason = data["orderCancelTransaction"].get("reason", "CANCELLED")
            raise BrokerRejection(
                f"Order cancelled by broker: {reason}",
                instrument=request.instrument,
                error_code=reason,
            )

        order_id = (data.get("orderCreateTransaction") or {}).get("id")
        if not order_id:
            raise BrokerRejection(
                "Broker response carried no order id",
                instrument=request.instrument,
            )

        logger.info(
            f"Order placed: broker=oanda order_id={order_id} "
            f"instrument={request.instrument} units={request.units} bracket={request.is_bracket}"
        )
        return OrderConfirmation(
            order_id=str(order_id),
            instrument=request.instrument,
            units=request.units,
            raw_response=data,
        )
