"""Trading engine — sizing, position ledger, bracket monitor, order execution."""

from webhook_trader.engine.brackets import BracketMonitor
from webhook_trader.engine.ledger import PositionLedger
from webhook_trader.engine.trading import TradingEngine

__all__ = ["BracketMonitor", "PositionLedger", "TradingEngine"]
