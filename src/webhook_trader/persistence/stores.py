"""Backing stores for the persistence queue.

Both stores expose the same synchronous interface and are only ever called
from the queue worker, one operation at a time.
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import structlog
from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from webhook_trader.db.tables.trader import StateRow, TradeRow

log = structlog.get_logger("persistence")

STATE_KEY = "state"
SETTINGS_KEY = "settings"


class FileStore:
    """JSON documents under ``data_dir``: state.json, settings.json, trades.json."""

    name = "file"

    def __init__(self, data_dir: str | Path, max_trade_records: int = 1000) -> None:
        self.data_dir = Path(data_dir)
        self.max_trade_records = max_trade_records

    def _read(self, filename: str) -> Any:
        path = self.data_dir / filename
        try:
            with path.open(encoding="utf-8") as fh:
                return json.load(fh)
        except FileNotFoundError:
            return None
        except (OSError, ValueError):
            log.warning("file_store_unreadable", path=str(path), exc_info=True)
            return None

    def _write(self, filename: str, data: Any) -> None:
        """Write via a temp file and os.replace so readers never see half a document."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.data_dir, prefix=f".{filename}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, default=str)
            os.replace(tmp, self.data_dir / filename)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def load_state(self) -> dict | None:
        return self._read("state.json")

    def save_state(self, state: dict) -> None:
        self._write("state.json", state)

    def load_settings(self) -> dict | None:
        return self._read("settings.json")

    def save_settings(self, settings: dict) -> None:
        self._write("settings.json", settings)

    def append_trade(self, record: dict) -> None:
        trades = self._read("trades.json")
        if not isinstance(trades, list):
            trades = []
        trades.append(record)
        self._write("trades.json", trades[-self.max_trade_records:])

    def recent_trades(self, limit: int = 50) -> list[dict]:
        """Newest first."""
        trades = self._read("trades.json")
        if not isinstance(trades, list) or limit <= 0:
            return []
        return list(reversed(trades[-limit:]))


class DatabaseStore:
    """The trader schema tables, through a SQLAlchemy session factory."""

    name = "database"

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self.session_factory = session_factory

    def _get(self, key: str) -> dict | None:
        with self.session_factory() as session:
            row = session.get(StateRow, key)
            return row.value if row is not None else None

    def _put(self, key: str, value: dict) -> None:
        with self.session_factory() as session:
            row = session.get(StateRow, key)
            now = datetime.now(timezone.utc)
            if row is None:
                session.add(StateRow(key=key, value=value, updated_at=now))
            else:
                row.value = value
                row.updated_at = now
            session.commit()

    def load_state(self) -> dict | None:
        return self._get(STATE_KEY)

    def save_state(self, state: dict) -> None:
        self._put(STATE_KEY, state)

    def load_settings(self) -> dict | None:
        return self._get(SETTINGS_KEY)

    def save_settings(self, settings: dict) -> None:
        self._put(SETTINGS_KEY, settings)

    def append_trade(self, record: dict) -> None:
        result = record.get("result") or {}
        signal = record.get("signal") or {}
        with self.session_factory() as session:
            session.add(TradeRow(
                ts=datetime.now(timezone.utc),
                symbol=result.get("symbol") or signal.get("symbol", ""),
                action=result.get("action") or signal.get("action", ""),
                order_id=result.get("orderId"),
                success=bool(result.get("success", True)),
                record=record,
            ))
            session.commit()

    def recent_trades(self, limit: int = 50) -> list[dict]:
        """Newest first."""
        with self.session_factory() as session:
            rows = session.scalars(
                select(TradeRow).order_by(desc(TradeRow.ts), desc(TradeRow.id)).limit(limit)
            ).all()
            return [row.record for row in rows]
