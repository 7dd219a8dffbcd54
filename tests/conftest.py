"""Shared test fixtures."""

from __future__ import annotations

import json

import httpx
import pytest
from sqlalchemy import BigInteger, Integer, JSON, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

import webhook_trader.db.tables  # noqa: F401
from webhook_trader.db.base import Base
from webhook_trader.exchange import GateClient


class FakeExchange:
    """In-memory Gate.io spot account served through httpx.MockTransport.

    Holds balances and prices, records every request and order, and can be
    told to fail a given path with a status code.
    """

    def __init__(self) -> None:
        self.balances: dict[str, str] = {"USDT": "10000", "BTC": "0"}
        self.prices: dict[str, str] = {"BTC_USDT": "50000", "ETH_USDT": "3000", "BNB_USDT": "500"}
        self.change_pct: dict[str, str] = {}
        self.trades: list[dict] = []
        self.orders: list[dict] = []
        self.requests: list[httpx.Request] = []
        self.failures: dict[str, tuple[int, dict]] = {}
        self.futures_positions: dict[str, object] = {}
        self.fill_orders = True

    # ── helpers ────────────────────────────────────────────────

    def fail(self, path: str, status: int, label: str = "SERVER_ERROR", message: str = "boom") -> None:
        self.failures[path] = (status, {"label": label, "message": message})

    def paths(self, method: str | None = None) -> list[str]:
        return [r.url.path for r in self.requests if method is None or r.method == method]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # ── routing ────────────────────────────────────────────────

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        query = dict(request.url.params)

        if path in self.failures:
            status, body = self.failures[path]
            return httpx.Response(status, json=body)

        if path == "/api/v4/spot/accounts":
            return httpx.Response(200, json=[
                {"currency": c, "available": v, "locked": "0"} for c, v in self.balances.items()
            ])
        if path == "/api/v4/spot/tickers":
            pair = query.get("currency_pair", "")
            if pair not in self.prices:
                return httpx.Response(200, json=[])
            return httpx.Response(200, json=[{
                "currency_pair": pair,
                "last": self.prices[pair],
                "change_percentage": self.change_pct.get(pair, "1.5"),
            }])
        if path == "/api/v4/spot/orders" and request.method == "POST":
            return httpx.Response(201, json=self._create_order(json.loads(request.content)))
        if path == "/api/v4/spot/orders" and request.method == "DELETE":
            return httpx.Response(200, json=[])
        if path == "/api/v4/spot/orders" and request.method == "GET":
            return httpx.Response(200, json=[o for o in self.orders if o["status"] == "open"])
        if path == "/api/v4/spot/open_orders":
            open_orders = [o for o in self.orders if o["status"] == "open"]
            return httpx.Response(200, json=[{"currency_pair": "BTC_USDT", "orders": open_orders}] if open_orders else [])
        if path == "/api/v4/spot/my_trades":
            return httpx.Response(200, json=self.trades)
        if path.startswith("/api/v4/futures/") and path.endswith("/positions"):
            settle = path.split("/")[4]
            data = self.futures_positions.get(settle)
            if data is None:
                return httpx.Response(404, json={"label": "USER_NOT_FOUND", "message": "no account"})
            return httpx.Response(200, json=data)
        return httpx.Response(404, json={"label": "NOT_FOUND", "message": path})

    def _create_order(self, body: dict) -> dict:
        pair = body["currency_pair"]
        base, quote = pair.split("_")
        price = float(body.get("price") or self.prices[pair])
        amount = float(body["amount"])
        # Market buys are quoted in the quote currency
        base_amount = amount / price if body["type"] == "market" and body["side"] == "buy" else amount

        order = {
            "id": str(1000 + len(self.orders)),
            "currency_pair": pair,
            "side": body["side"],
            "type": body["type"],
            "amount": body["amount"],
            "price": body.get("price", "0"),
            "time_in_force": body["time_in_force"],
            "status": "closed" if self.fill_orders else "open",
        }
        if self.fill_orders:
            order["filled_amount"] = f"{base_amount:.8f}"
            order["avg_deal_price"] = f"{price}"
            signed = base_amount if body["side"] == "buy" else -base_amount
            self.balances[base] = f"{float(self.balances.get(base, 0)) + signed:.8f}"
            self.balances[quote] = f"{float(self.balances.get(quote, 0)) - signed * price:.8f}"
        self.orders.append(order)
        return order


@pytest.fixture
def exchange() -> FakeExchange:
    return FakeExchange()


@pytest.fixture
def gate_client(exchange):
    return GateClient(
        api_key="key",
        api_secret="secret",
        base_url="https://api.test",
        transport=exchange.transport(),
    )


@pytest.fixture
def db_session():
    """In-memory SQLite session with the trader tables created.

    Patches JSONB→JSON and BigInteger→Integer for SQLite compatibility.
    """
    # One shared connection: the persistence queue runs store calls in worker threads
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # SQLite doesn't support schemas, JSONB, or BigInteger autoincrement
    for table in Base.metadata.tables.values():
        table.schema = None
        for col in table.columns:
            if isinstance(col.type, JSONB):
                col.type = JSON()
            if isinstance(col.type, BigInteger):
                col.type = Integer()

    Base.metadata.create_all(engine)

    session = Session(engine)
    yield session
    session.close()
    engine.dispose()
