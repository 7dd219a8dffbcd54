"""Import all table modules so Base.metadata knows about them."""

from webhook_trader.db.tables.trader import StateRow, TradeRow

__all__ = ["StateRow", "TradeRow"]
