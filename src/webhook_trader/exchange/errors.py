"""Typed Gate.io API failures."""

from __future__ import annotations

from webhook_trader.errors import ExecutionError

AUTH_STATUSES = frozenset({401, 403})


class GateApiError(ExecutionError):
    """Non-2xx response (or unparseable body) from the Gate.io REST API."""

    def __init__(self, message: str, status: int | None = None, body: str | None = None) -> None:
        self.status = status
        self.body = body
        super().__init__(message)

    @property
    def is_auth_failure(self) -> bool:
        return self.status in AUTH_STATUSES


class GateAuthError(GateApiError):
    """The exchange rejected the API credentials (401/403). Retrying is pointless."""


class GateTransportError(GateApiError):
    """Network-level failure or timeout; no HTTP status was received."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status=None, body=None)


def error_for_status(status: int, message: str, body: str) -> GateApiError:
    """Pick the error class matching an HTTP failure status."""
    if status in AUTH_STATUSES:
        return GateAuthError(message, status=status, body=body)
    return GateApiError(message, status=status, body=body)
