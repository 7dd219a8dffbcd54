"""Signal model — the canonical trade instruction built from a webhook payload."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

# Decimals stay exact in memory and render as JSON numbers on the wire
Quantity = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

BUY_ACTIONS = frozenset({"buy", "long"})
SELL_ACTIONS = frozenset({"sell", "short"})
CLOSE_ACTIONS = frozenset({"close", "close_all"})
KNOWN_ACTIONS = BUY_ACTIONS | SELL_ACTIONS | CLOSE_ACTIONS


def direction_for_action(action: str) -> Literal["long", "short"] | None:
    """Map an action onto the position direction it opens, None for closes."""
    action = action.lower()
    if action in BUY_ACTIONS:
        return "long"
    if action in SELL_ACTIONS:
        return "short"
    return None


class Signal(BaseModel):
    """A normalized trade instruction.

    ``action`` is kept as free text so that unknown actions survive
    normalization and are rejected by the policy gate with a reason.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    action: str = "buy"
    symbol: str = "BTC_USDT"
    price: Quantity | None = None
    amount: Quantity | None = None
    leverage: float = 1.0
    stop_loss: Quantity | None = None
    take_profit: Quantity | None = None
    comment: str = ""
    exchange: str = "spot"
    strategy: str = "manual"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def base_currency(self) -> str:
        return self.symbol.split("_", 1)[0]

    @property
    def quote_currency(self) -> str:
        parts = self.symbol.split("_", 1)
        return parts[1] if len(parts) == 2 else "USDT"
