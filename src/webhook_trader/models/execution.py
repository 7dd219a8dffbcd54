"""Execution outcome models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from webhook_trader.models.signal import Quantity


class ExecutionState(str, Enum):
    RECEIVED = "received"
    RISK_CHECKED = "risk_checked"
    SIZED = "sized"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class GateVerdict:
    """Result of a gate — approved or rejected with a reason.

    ``checks`` maps each evaluated policy to "passed", "failed" or
    "disabled" so an absent policy can be told apart from a passing one.
    """

    approved: bool
    reason: str = ""
    checks: dict[str, str] = field(default_factory=dict)


class BracketStatus(BaseModel):
    """Outcome of arming stop-loss / take-profit monitoring for an order."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: Literal["armed", "failed"]
    stop_loss: Quantity | None = None
    take_profit: Quantity | None = None
    error: str | None = None


class ExecutionResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    order_id: str | None
    symbol: str
    action: str
    amount: Quantity
    price: Quantity
    status: str
    executed_at: datetime
    bracket: BracketStatus | None = None
    realised_pnl: Quantity | None = None
    order: dict[str, Any] | None = None
