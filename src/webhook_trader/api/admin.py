"""Admin API — token protected policy, account and engine management."""

from __future__ import annotations

import hmac
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, ValidationError

from webhook_trader.exchange.accounts import map_spot_balances
from webhook_trader.exchange.errors import GateApiError
from webhook_trader.services import Services

logger = structlog.get_logger("admin_api")


def _services(request: Request) -> Services:
    return request.app.state.services


def require_admin(request: Request, token: Optional[str] = Query(None)) -> None:
    """Accept the token from Authorization, X-Admin-Token or ?token=."""
    expected = _services(request).config.api.admin_token
    if not expected:
        logger.warning("admin_token_not_configured")
        raise HTTPException(status_code=500, detail="Admin authentication not configured")

    provided = (
        request.headers.get("authorization")
        or request.headers.get("x-admin-token")
        or token
        or ""
    )
    if provided.lower().startswith("bearer "):
        provided = provided[len("bearer "):]
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning("admin_token_rejected", path=request.url.path)
        raise HTTPException(status_code=401, detail="Unauthorized")


router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])


class ManualOrderRequest(BaseModel):
    symbol: str
    side: str
    amount: str
    price: Optional[str] = None
    type: str = "limit"


def _utc(ts: Optional[datetime]) -> Optional[datetime]:
    if ts is not None and ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


# ── Dashboard & account ─────────────────────────────────────

@router.get("/dashboard")
async def dashboard(request: Request):
    services = _services(request)
    recent = await services.persistence.recent_trades(10)
    data = await services.admin.dashboard(recent_trades=recent)
    data["engine"] = services.engine.status()
    return data


@router.get("/account")
async def account(request: Request):
    balances = await _services(request).client.get_spot_balances()
    return {"balances": map_spot_balances(balances)}


@router.get("/accounts/snapshot")
async def accounts_snapshot(request: Request):
    return await _services(request).client.get_accounts_snapshot()


@router.get("/futures/positions")
async def futures_positions(request: Request):
    return {"positions": await _services(request).client.get_futures_positions()}


# ── Policy ──────────────────────────────────────────────────

@router.get("/settings")
async def get_settings(request: Request):
    return _services(request).admin.settings.model_dump()


@router.put("/settings")
async def put_settings(request: Request, changes: dict[str, Any]):
    try:
        updated = await _services(request).admin.update_settings(changes)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors(include_url=False, include_context=False)) from exc
    return {"success": True, "settings": updated.model_dump()}


@router.get("/signal-rules")
async def get_signal_rules(request: Request):
    return _services(request).admin.signal_rules()


@router.put("/signal-rules")
async def put_signal_rules(request: Request, changes: dict[str, Any]):
    try:
        rules = await _services(request).admin.update_signal_rules(changes)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors(include_url=False, include_context=False)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"success": True, "rules": rules}


@router.get("/stats")
async def daily_stats(request: Request):
    return asdict(_services(request).admin.daily_stats)


# ── Trades & orders ─────────────────────────────────────────

@router.get("/trades")
async def trades(
    request: Request,
    symbol: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
):
    rows = await _services(request).admin.get_trades(symbol, limit, _utc(start), _utc(end))
    return {"trades": rows, "count": len(rows)}


@router.get("/trades/recent")
async def recent_trades(request: Request, limit: int = Query(50, ge=1, le=1000)):
    return {"trades": await _services(request).persistence.recent_trades(limit)}


@router.get("/orders/open")
async def open_orders(request: Request, symbol: Optional[str] = None):
    return {"orders": await _services(request).client.get_open_orders(symbol)}


@router.post("/order")
async def manual_order(request: Request, order: ManualOrderRequest):
    if order.type == "limit" and order.price is None:
        raise HTTPException(status_code=400, detail="limit orders require a price")
    result = await _services(request).client.create_spot_order(
        order.symbol.upper(),
        order.side,
        order.amount,
        price=order.price,
        order_type=order.type,
    )
    logger.info("manual_order_placed", symbol=order.symbol, side=order.side, order_id=result.get("id"))
    return {"success": True, "order": result}


@router.delete("/orders/{order_id}")
async def cancel_order(request: Request, order_id: str, symbol: str = Query(...)):
    return {"success": True, "order": await _services(request).client.cancel_order(order_id, symbol)}


@router.delete("/orders")
async def cancel_all_orders(request: Request, symbol: Optional[str] = None):
    return {"success": True, "cancelled": await _services(request).client.cancel_all_orders(symbol)}


# ── Engine ──────────────────────────────────────────────────

@router.post("/engine/start")
async def engine_start(request: Request):
    engine = _services(request).engine
    await engine.start()
    return {"success": True, "isActive": engine.is_active}


@router.post("/engine/stop")
async def engine_stop(request: Request):
    engine = _services(request).engine
    await engine.stop()
    return {"success": True, "isActive": engine.is_active}


@router.get("/engine/status")
async def engine_status(request: Request):
    return _services(request).engine.status()


@router.post("/emergency-stop")
async def emergency_stop(request: Request):
    """Stop the engine, block approvals and cancel every open order."""
    services = _services(request)
    await services.engine.stop()
    result = services.admin.emergency_stop()
    try:
        result["cancelled"] = await services.client.cancel_all_orders()
    except GateApiError as exc:
        logger.error("emergency_cancel_failed", error=str(exc))
        result["cancelError"] = str(exc)
    services.notifier.alert("Emergency Stop", "Trading engine stopped and open orders cancelled")
    return result
