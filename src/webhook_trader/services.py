"""Service wiring — builds the object graph from an AppConfig."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import httpx
import structlog
from sqlalchemy.orm import Session

from webhook_trader.admin import AdminPolicyGate
from webhook_trader.config.schema import AppConfig, PolicySettings
from webhook_trader.db.engine import init_engine
from webhook_trader.engine import BracketMonitor, PositionLedger, TradingEngine
from webhook_trader.exchange import GateClient
from webhook_trader.notify import NotificationService
from webhook_trader.persistence import DatabaseStore, FileStore, PersistenceQueue
from webhook_trader.risk import RiskManager, RiskTracker
from webhook_trader.webhook import SignalPipeline

log = structlog.get_logger("services")


@dataclass
class Services:
    config: AppConfig
    client: GateClient
    ledger: PositionLedger
    risk: RiskManager
    persistence: PersistenceQueue
    notifier: NotificationService
    admin: AdminPolicyGate
    brackets: BracketMonitor
    engine: TradingEngine
    pipeline: SignalPipeline

    async def startup(self) -> None:
        """Start the queue, restore persisted policy settings, activate the engine."""
        await self.persistence.start()
        stored = await self.persistence.load_settings()
        if stored:
            try:
                self.admin.settings = PolicySettings.model_validate(stored)
                log.info("policy_settings_restored")
            except ValueError as exc:
                log.warning("policy_settings_invalid", error=str(exc))
        await self.engine.start()

    async def shutdown(self) -> None:
        await self.engine.stop()
        await self.persistence.stop()
        await self.notifier.close()
        await self.client.close()


def build_services(
    config: AppConfig,
    *,
    exchange_transport: httpx.AsyncBaseTransport | None = None,
    notify_transport: httpx.AsyncBaseTransport | None = None,
    session_factory: Callable[[], Session] | None = None,
) -> Services:
    """Wire every component. Nothing is started; see :meth:`Services.startup`."""
    client = GateClient(
        api_key=config.exchange.api_key,
        api_secret=config.exchange.api_secret,
        base_url=config.exchange.resolved_base_url(),
        timeout_s=config.exchange.timeout_s,
        transport=exchange_transport,
    )

    if session_factory is None and config.database.url:
        session_factory = init_engine(config.database.url)
    primary = DatabaseStore(session_factory) if session_factory is not None else None
    persistence = PersistenceQueue(
        FileStore(config.persistence.data_dir, config.persistence.max_trade_records),
        primary=primary,
    )

    notifier = NotificationService(config.notifications, transport=notify_transport)
    ledger = PositionLedger()
    risk = RiskManager(client, ledger, config.risk, RiskTracker())
    admin = AdminPolicyGate(config.admin, persistence=persistence, client=client)
    brackets = BracketMonitor(client, poll_interval_s=config.engine.bracket_poll_interval_s)
    engine = TradingEngine(
        client,
        risk,
        ledger,
        config=config.engine,
        symbols=config.symbols,
        persistence=persistence,
        notifier=notifier,
        brackets=brackets,
        on_realised_pnl=admin.record_result,
    )
    pipeline = SignalPipeline(admin, engine, notifier)

    log.info(
        "services_built",
        base_url=config.exchange.resolved_base_url(),
        database=primary is not None,
        notification_sinks=[s.name for s in notifier.sinks],
    )
    return Services(
        config=config,
        client=client,
        ledger=ledger,
        risk=risk,
        persistence=persistence,
        notifier=notifier,
        admin=admin,
        brackets=brackets,
        engine=engine,
        pipeline=pipeline,
    )
