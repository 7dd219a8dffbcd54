"""Gate.io exchange client — signed APIv4 REST calls."""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any

import httpx
import structlog

from webhook_trader.exchange.accounts import (
    aggregate_total_value,
    map_futures_account,
    map_futures_position,
    map_margin_accounts,
    map_options_account,
    map_spot_balances,
    safe_decimal,
)
from webhook_trader.exchange.errors import (
    GateApiError,
    GateAuthError,
    GateTransportError,
    error_for_status,
)
from webhook_trader.exchange.signing import (
    build_query_string,
    build_timestamp,
    serialize_body,
    sign_request,
)

log = structlog.get_logger("gate_client")

API_PREFIX = "/api/v4"
SETTLE_CURRENCIES = ("usdt", "usd", "btc")


class GateClient:
    """Async client for Gate.io's APIv4 (spot trading plus account snapshots)."""

    def __init__(
        self,
        api_key: str = "",
        api_secret: str = "",
        base_url: str = "https://api.gateio.ws",
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key.strip()
        self.api_secret = api_secret.strip()
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    async def _get_http(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport)
        return self._http

    async def close(self) -> None:
        if self._http and not self._http.is_closed:
            await self._http.aclose()

    # --- transport ---

    async def request(
        self,
        method: str,
        path: str,
        query: dict[str, Any] | None = None,
        body: Any = None,
        signed: bool = True,
    ) -> Any:
        """Issue one REST call and return the decoded JSON (None for empty bodies).

        Raises GateAuthError on 401/403, GateApiError on any other non-2xx
        status, GateTransportError when the request never got a response.
        """
        http = await self._get_http()
        request_path = f"{API_PREFIX}/{path.lstrip('/')}"
        query_string = build_query_string(query)
        payload = serialize_body(body)
        url = f"{self.base_url}{request_path}"
        if query_string:
            url = f"{url}?{query_string}"

        headers = {"Accept": "application/json"}
        if payload:
            headers["Content-Type"] = "application/json"
        if signed:
            timestamp = build_timestamp()
            headers["KEY"] = self.api_key
            headers["Timestamp"] = timestamp
            headers["SIGN"] = sign_request(
                self.api_secret, method, request_path, query_string, payload, timestamp,
            )

        try:
            resp = await http.request(method.upper(), url, content=payload or None, headers=headers)
        except httpx.TransportError as exc:
            log.warning("gate_transport_error", method=method, path=request_path, error=str(exc))
            raise GateTransportError(str(exc) or "Failed to reach Gate.io API") from exc

        text = resp.text
        if resp.is_error:
            message = _error_message(text, resp.status_code)
            log.warning(
                "gate_api_error",
                method=method,
                path=request_path,
                status=resp.status_code,
                message=message,
            )
            raise error_for_status(resp.status_code, message, text)

        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError as exc:
            raise GateApiError(
                "Failed to parse Gate.io API response", status=resp.status_code, body=text,
            ) from exc

    # --- accounts ---

    async def get_spot_balances(self) -> list[dict]:
        """Raw spot account entries: currency, available, locked."""
        data = await self.request("GET", "/spot/accounts")
        return data if isinstance(data, list) else []

    async def get_balance(self, currency: str) -> dict | None:
        """Spot entry for one currency, or None when the account holds none."""
        currency = currency.upper()
        for entry in await self.get_spot_balances():
            if str(entry.get("currency", "")).upper() == currency:
                return entry
        return None

    async def get_available(self, currency: str) -> Decimal:
        entry = await self.get_balance(currency)
        if entry is None:
            return Decimal("0")
        return safe_decimal(entry.get("available"))

    async def get_margin_accounts(self) -> Any:
        return await self.request("GET", "/margin/accounts")

    async def get_futures_account(self, settle: str = "usdt") -> Any:
        return await self.request("GET", f"/futures/{settle}/accounts")

    async def get_options_account(self) -> Any:
        return await self.request("GET", "/options/accounts")

    async def get_total_balance(self) -> Any:
        return await self.request("GET", "/wallet/total_balance")

    async def get_accounts_snapshot(self) -> dict:
        """Fetch futures, spot, margin and options accounts independently.

        A failing account type is logged and skipped. If nothing succeeded
        the failure is raised: GateAuthError when any call was refused for
        credentials, otherwise a GateApiError with status 502.
        """
        accounts: dict[str, Any] = {
            "futures": None,
            "spot": [],
            "margin": [],
            "options": None,
            "totalEstimatedValue": 0.0,
        }
        successful = 0
        auth_failure = False

        async def _attempt(label: str, call):
            nonlocal auth_failure
            try:
                return await call()
            except GateApiError as exc:
                if exc.is_auth_failure:
                    auth_failure = True
                log.error("gate_account_load_failed", account=label, error=str(exc), status=exc.status)
                return None

        futures_raw = await _attempt("futures", self.get_futures_account)
        futures = map_futures_account(futures_raw)
        if futures is not None:
            accounts["futures"] = futures
            successful += 1

        spot_raw = await _attempt("spot", self.get_spot_balances)
        accounts["spot"] = map_spot_balances(spot_raw)
        if accounts["spot"]:
            successful += 1

        margin_raw = await _attempt("margin", self.get_margin_accounts)
        accounts["margin"] = map_margin_accounts(margin_raw)
        if accounts["margin"]:
            successful += 1

        options_raw = await _attempt("options", self.get_options_account)
        options_entries = options_raw if isinstance(options_raw, list) else [options_raw]
        mapped_options = [m for m in (map_options_account(o) for o in options_entries) if m]
        if mapped_options:
            accounts["options"] = mapped_options[0]
            successful += 1

        accounts["totalEstimatedValue"] = aggregate_total_value(accounts)

        if not successful and auth_failure:
            raise GateAuthError("Gate.io API authentication failed; check API key permissions", status=403)
        if not successful:
            raise GateApiError("Failed to load Gate.io account information", status=502)
        return accounts

    async def get_futures_positions(self) -> list[dict]:
        """Open futures positions across every settle currency.

        A 404 for a settle currency means "no positions there", not an error.
        """
        positions: list[dict] = []
        successful = 0
        auth_failure = False

        for settle in SETTLE_CURRENCIES:
            try:
                data = await self.request("GET", f"/futures/{settle}/positions")
            except GateApiError as exc:
                if exc.status == 404:
                    continue
                if exc.is_auth_failure:
                    auth_failure = True
                log.error("gate_positions_load_failed", settle=settle.upper(), error=str(exc))
                continue
            if isinstance(data, list):
                mapped = [p for p in (map_futures_position(e) for e in data) if p]
                if mapped:
                    successful += 1
                    positions.extend(mapped)

        if not successful and auth_failure:
            raise GateAuthError("Not permitted to read futures positions", status=403)
        return positions

    # --- orders ---

    async def create_spot_order(
        self,
        symbol: str,
        side: str,
        amount: Decimal | str,
        price: Decimal | str | None = None,
        order_type: str = "limit",
        time_in_force: str | None = None,
    ) -> dict:
        """Place a spot order.

        For market buys Gate.io reads ``amount`` as the quote-currency
        notional; every other combination uses the base-currency quantity.
        """
        order_type = order_type.lower()
        body: dict[str, Any] = {
            "currency_pair": symbol,
            "side": side.lower(),
            "amount": str(amount),
            "type": order_type,
            "account": "spot",
            "time_in_force": time_in_force or ("ioc" if order_type == "market" else "gtc"),
        }
        if order_type == "limit":
            if price is None:
                raise ValueError("limit orders require a price")
            body["price"] = str(price)

        log.info(
            "gate_order_submit",
            symbol=symbol,
            side=body["side"],
            amount=body["amount"],
            price=body.get("price"),
            type=order_type,
        )
        return await self.request("POST", "/spot/orders", body=body)

    async def get_order(self, order_id: str, symbol: str) -> dict:
        return await self.request("GET", f"/spot/orders/{order_id}", query={"currency_pair": symbol})

    async def cancel_order(self, order_id: str, symbol: str) -> dict:
        return await self.request("DELETE", f"/spot/orders/{order_id}", query={"currency_pair": symbol})

    async def cancel_all_orders(self, symbol: str | None = None) -> Any:
        return await self.request("DELETE", "/spot/orders", query={"currency_pair": symbol or None})

    async def get_open_orders(self, symbol: str | None = None) -> list[dict]:
        """Open orders; without a symbol Gate.io groups them per currency pair."""
        if symbol:
            data = await self.request(
                "GET", "/spot/orders", query={"currency_pair": symbol, "status": "open"},
            )
            return data or []
        grouped = await self.request("GET", "/spot/open_orders") or []
        orders: list[dict] = []
        for group in grouped:
            orders.extend(group.get("orders", []))
        return orders

    async def get_order_history(self, symbol: str, limit: int = 100) -> list[dict]:
        return await self.request(
            "GET", "/spot/orders",
            query={"currency_pair": symbol, "status": "finished", "limit": limit},
        ) or []

    async def get_trade_history(self, symbol: str | None = None, limit: int = 100) -> list[dict]:
        return await self.request(
            "GET", "/spot/my_trades", query={"currency_pair": symbol, "limit": limit},
        ) or []

    # --- public market data ---

    async def get_ticker(self, symbol: str) -> dict:
        """Latest ticker for a pair: ``last``, ``change_percentage``, ``high_24h``..."""
        data = await self.request(
            "GET", "/spot/tickers", query={"currency_pair": symbol}, signed=False,
        )
        if not data:
            raise GateApiError(f"No ticker returned for {symbol}", status=404)
        return data[0]

    async def get_price(self, symbol: str) -> Decimal:
        ticker = await self.get_ticker(symbol)
        price = safe_decimal(ticker.get("last"))
        if price <= 0:
            raise GateApiError(f"Invalid last price for {symbol}: {ticker.get('last')!r}")
        return price


def _error_message(text: str, status: int) -> str:
    """Prefer Gate.io's ``message`` / ``label`` fields over the raw body."""
    message = text or f"HTTP {status}"
    try:
        parsed = json.loads(text) if text else None
    except ValueError:
        return message
    if isinstance(parsed, dict):
        if isinstance(parsed.get("message"), str):
            return parsed["message"]
        if isinstance(parsed.get("label"), str):
            return parsed["label"]
    return message
