"""Gate.io exchange API client."""

from webhook_trader.exchange.errors import GateApiError, GateAuthError, GateTransportError
from webhook_trader.exchange.gate import GateClient

__all__ = ["GateApiError", "GateAuthError", "GateClient", "GateTransportError"]
