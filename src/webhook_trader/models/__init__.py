"""Pydantic domain models."""

from webhook_trader.models.execution import (
    BracketStatus,
    ExecutionResult,
    ExecutionState,
    GateVerdict,
)
from webhook_trader.models.position import Position
from webhook_trader.models.signal import (
    BUY_ACTIONS,
    CLOSE_ACTIONS,
    KNOWN_ACTIONS,
    SELL_ACTIONS,
    Quantity,
    Signal,
    direction_for_action,
)

__all__ = [
    "BUY_ACTIONS",
    "BracketStatus",
    "CLOSE_ACTIONS",
    "ExecutionResult",
    "ExecutionState",
    "GateVerdict",
    "KNOWN_ACTIONS",
    "Position",
    "Quantity",
    "SELL_ACTIONS",
    "Signal",
    "direction_for_action",
]
