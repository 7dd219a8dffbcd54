"""SignalPipeline — normalize, admin gate, engine, one notification per outcome."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import structlog

from webhook_trader.errors import PolicyRejection
from webhook_trader.logging import bind_request_context
from webhook_trader.signals import normalize

if TYPE_CHECKING:
    from webhook_trader.admin.policy import AdminPolicyGate
    from webhook_trader.engine.trading import TradingEngine
    from webhook_trader.notify.service import NotificationService

log = structlog.get_logger("webhook_pipeline")


class SignalPipeline:
    """Turns a raw webhook payload into an (HTTP status, response body) pair.

    Success and rejection answer 200, anything else 500. The engine alerts on
    its own failures; every other outcome is notified here.
    """

    def __init__(
        self,
        admin: AdminPolicyGate,
        engine: TradingEngine,
        notifier: NotificationService | None = None,
    ) -> None:
        self.admin = admin
        self.engine = engine
        self.notifier = notifier

    async def process(
        self,
        raw: Any,
        request_id: str | None = None,
        *,
        skip_admin: bool = False,
    ) -> tuple[int, dict[str, Any]]:
        """Run *raw* through the pipeline; *skip_admin* bypasses the admin gate only."""
        started = time.perf_counter()
        signal = normalize(raw)
        signal_json = signal.model_dump(mode="json", by_alias=True)

        with bind_request_context(request_id, symbol=signal.symbol, action=signal.action) as rid:
            log.info("signal_received", strategy=signal.strategy, amount=signal_json["amount"])

            if skip_admin:
                log.info("admin_gate_skipped")
            else:
                try:
                    verdict = self.admin.validate(signal)
                except Exception as exc:
                    log.exception("admin_gate_failed")
                    if self.notifier is not None:
                        self.notifier.alert("Webhook Error", str(exc))
                    return 500, {"status": "error", "reason": str(exc), "signal": signal_json, "requestId": rid}

                if not verdict.approved:
                    log.warning("signal_rejected", gate="admin", reason=verdict.reason)
                    return self._rejected(signal, signal_json, verdict.reason, rid)

            try:
                result = await self.engine.execute_signal(signal)
            except PolicyRejection as exc:
                return self._rejected(signal, signal_json, exc.reason, rid)
            except Exception as exc:
                log.error("signal_failed", error=str(exc), error_type=type(exc).__name__)
                return 500, {"status": "error", "reason": str(exc), "signal": signal_json, "requestId": rid}

            elapsed_ms = int((time.perf_counter() - started) * 1000)
            log.info("signal_processed", order_id=result.order_id, execution_ms=elapsed_ms)
            if self.notifier is not None:
                self.notifier.notify_trade(signal, result)
            return 200, {
                "status": "success",
                "signal": signal_json,
                "result": result.model_dump(mode="json", by_alias=True, exclude={"order"}),
                "executionTime": f"{elapsed_ms}ms",
                "requestId": rid,
            }

    def _rejected(self, signal, signal_json: dict, reason: str, rid: str) -> tuple[int, dict[str, Any]]:
        if self.notifier is not None:
            self.notifier.notify_rejection(signal, reason)
        return 200, {"status": "rejected", "reason": reason, "signal": signal_json, "requestId": rid}
