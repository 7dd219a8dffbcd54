"""PersistenceQueue — single-worker, strictly ordered writes with file fallback."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import structlog

from webhook_trader.persistence.state import normalize_state
from webhook_trader.persistence.stores import DatabaseStore, FileStore

log = structlog.get_logger("persistence_queue")

_STOP = object()


class PersistenceQueue:
    """Serializes every store operation through one asyncio worker.

    Operations run in submission order, each after the previous one has
    finished. Writes go to ``primary`` when configured and fall back to the
    local file store when the primary raises; reads fall back the same way.
    """

    def __init__(self, local: FileStore, primary: DatabaseStore | None = None) -> None:
        self.local = local
        self.primary = primary
        self._queue: asyncio.Queue | None = None
        self._worker: asyncio.Task | None = None

    # ── Lifecycle ─────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def start(self) -> None:
        self._ensure_worker()

    async def stop(self) -> None:
        """Drain pending operations, then stop the worker."""
        if not self.running:
            return
        self._queue.put_nowait((_STOP, None, None))
        await self._worker
        self._worker = None
        self._queue = None
        log.info("persistence_queue_stopped")

    def _ensure_worker(self) -> asyncio.Queue:
        if not self.running:
            self._queue = asyncio.Queue()
            self._worker = asyncio.create_task(self._run())
            log.info(
                "persistence_queue_started",
                primary=self.primary.name if self.primary else None,
                local=str(self.local.data_dir),
            )
        return self._queue

    async def _run(self) -> None:
        queue = self._queue
        while True:
            op, label, future = await queue.get()
            if op is _STOP:
                break
            try:
                # Stores do blocking I/O; keep it off the event loop
                result = await asyncio.to_thread(op)
            except Exception as exc:
                log.error("persistence_op_failed", op=label, error=str(exc))
                if not future.cancelled():
                    future.set_exception(exc)
                    # Already logged; callers that await still see the error
                    future.exception()
            else:
                if not future.cancelled():
                    future.set_result(result)

    def submit(self, op: Callable[[], Any], label: str = "op") -> asyncio.Future:
        """Queue *op* behind every earlier submission; the future holds its result."""
        queue = self._ensure_worker()
        future = asyncio.get_running_loop().create_future()
        queue.put_nowait((op, label, future))
        return future

    # ── Routing ───────────────────────────────────────────────

    def _write(self, method: str, payload: Any) -> None:
        if self.primary is not None:
            try:
                getattr(self.primary, method)(payload)
                return
            except Exception as exc:
                log.error(
                    "primary_store_write_failed",
                    op=method,
                    store=self.primary.name,
                    error=str(exc),
                    fallback=self.local.name,
                )
        getattr(self.local, method)(payload)

    def _read(self, method: str, *args: Any) -> Any:
        if self.primary is not None:
            try:
                value = getattr(self.primary, method)(*args)
                if value is not None:
                    return value
            except Exception as exc:
                log.error(
                    "primary_store_read_failed",
                    op=method,
                    store=self.primary.name,
                    error=str(exc),
                    fallback=self.local.name,
                )
        return getattr(self.local, method)(*args)

    # ── Public operations ─────────────────────────────────────

    def save_state(self, state: dict) -> asyncio.Future:
        payload = normalize_state(state)
        return self.submit(lambda: self._write("save_state", payload), "save_state")

    def save_settings(self, settings: dict) -> asyncio.Future:
        payload = dict(settings)
        return self.submit(lambda: self._write("save_settings", payload), "save_settings")

    def save_trade(self, record: dict) -> asyncio.Future:
        return self.submit(lambda: self._write("append_trade", record), "save_trade")

    async def load_state(self) -> dict:
        raw = await self.submit(lambda: self._read("load_state"), "load_state")
        return normalize_state(raw)

    async def load_settings(self) -> dict | None:
        return await self.submit(lambda: self._read("load_settings"), "load_settings")

    async def recent_trades(self, limit: int = 50) -> list[dict]:
        trades = await self.submit(lambda: self._read("recent_trades", limit), "recent_trades")
        return trades or []
