"""Ledger position model."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from webhook_trader.models.signal import Quantity


class Position(BaseModel):
    """Open holding for one symbol, as tracked by the trading engine.

    ``amount`` is never negative; ``direction`` records the action that
    opened the position.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    symbol: str
    direction: Literal["long", "short"] = "long"
    amount: Quantity
    avg_price: Quantity
    total_cost: Quantity
    last_update: datetime
