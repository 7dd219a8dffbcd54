"""Pre-trade risk controls."""

from webhook_trader.risk.manager import RiskManager
from webhook_trader.risk.tracker import RiskTracker

__all__ = ["RiskManager", "RiskTracker"]
