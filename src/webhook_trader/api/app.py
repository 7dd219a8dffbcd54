"""FastAPI application — webhook intake, status endpoints, admin API."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from webhook_trader.api.admin import router as admin_router
from webhook_trader.config.schema import AppConfig
from webhook_trader.exchange import GateApiError
from webhook_trader.services import Services, build_services
from webhook_trader.signals import parse_payload
from webhook_trader.webhook import WebhookRejected, validate_request

logger = structlog.get_logger("api")


def get_services(request: Request) -> Services:
    return request.app.state.services


def create_app(config: AppConfig | None = None, *, services: Services | None = None) -> FastAPI:
    """Build the application around *services* (wired from *config* when absent)."""
    if services is None:
        services = build_services(config or AppConfig())

    app = FastAPI(
        title="Webhook Trader",
        description="TradingView webhook signals executed on Gate.io spot",
        version="0.1.0",
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def startup_event():
        await services.startup()
        logger.info("api_started")

    @app.on_event("shutdown")
    async def shutdown_event():
        await services.shutdown()
        logger.info("api_stopped")

    @app.exception_handler(GateApiError)
    async def gate_error_handler(request: Request, exc: GateApiError):
        status = exc.status if exc.status is not None and 400 <= exc.status < 500 else 502
        logger.warning("exchange_error_response", path=request.url.path, status=exc.status, error=str(exc))
        return JSONResponse(
            status_code=status,
            content={"error": "Gate.io API Error", "message": str(exc), "status": exc.status},
        )

    # ── Webhook ───────────────────────────────────────────────

    async def _validated_payload(request: Request, allow_empty: bool = False) -> dict | JSONResponse:
        raw = await request.body()
        payload = parse_payload(raw)
        try:
            validate_request(
                services.config.webhook,
                peer=request.client.host if request.client else None,
                headers=request.headers,
                query=request.query_params,
                payload=payload,
            )
        except WebhookRejected as exc:
            return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
        if not payload and not allow_empty:
            return JSONResponse(status_code=400, content={"error": "Empty request body"})
        return payload

    @app.post("/webhook/tradingview", name="tradingview_webhook")
    async def tradingview_webhook(request: Request):
        payload = await _validated_payload(request)
        if isinstance(payload, JSONResponse):
            return payload
        status, body = await services.pipeline.process(payload)
        return JSONResponse(status_code=status, content=body)

    @app.post("/webhook/test")
    async def test_webhook(request: Request):
        """Run a small signal through the pipeline, skipping the admin gate."""
        payload = await _validated_payload(request, allow_empty=True)
        if isinstance(payload, JSONResponse):
            return payload
        status, body = await services.pipeline.process(
            {
                "action": "buy",
                "symbol": "BTC_USDT",
                "amount": "0.0001",
                **payload,
                "comment": "Test signal",
                "strategy": "test",
            },
            skip_admin=True,
        )
        return JSONResponse(status_code=status, content=body)

    @app.get("/webhook/status")
    async def webhook_status(request: Request):
        return {
            "status": "active",
            "webhookUrl": str(request.url_for("tradingview_webhook")),
            "secretRequired": bool(services.config.webhook.secret),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # ── Status ────────────────────────────────────────────────

    @app.get("/api/health")
    async def health_check():
        return {
            "status": "healthy",
            "engineActive": services.engine.is_active,
            "persistenceRunning": services.persistence.running,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/api/status/engine")
    async def engine_status():
        return services.engine.status()

    @app.get("/api/status/exchange")
    async def exchange_status():
        try:
            balances = await services.client.get_spot_balances()
        except GateApiError as exc:
            return {
                "connected": False,
                "error": str(exc),
                "status": exc.status,
                "authFailure": exc.is_auth_failure,
            }
        return {
            "connected": True,
            "baseUrl": services.client.base_url,
            "currencies": len(balances),
        }

    app.include_router(admin_router)
    return app
