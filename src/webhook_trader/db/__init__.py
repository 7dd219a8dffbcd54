"""Database layer — engine, session factory, ORM base."""

from webhook_trader.db.base import Base
from webhook_trader.db.engine import dispose_engine, get_engine, init_engine

__all__ = ["Base", "dispose_engine", "get_engine", "init_engine"]
