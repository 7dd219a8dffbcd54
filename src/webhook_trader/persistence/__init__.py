"""Durable state: ordered write queue over database and file stores."""

from webhook_trader.persistence.queue import PersistenceQueue
from webhook_trader.persistence.state import EMPTY_STATE, normalize_state
from webhook_trader.persistence.stores import DatabaseStore, FileStore

__all__ = ["DatabaseStore", "EMPTY_STATE", "FileStore", "PersistenceQueue", "normalize_state"]
