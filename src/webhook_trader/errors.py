"""Pipeline error taxonomy.

Gate rejections are ``PolicyRejection`` and are reported to the caller as a
"rejected" outcome. Everything that fails after the gates derives from
``ExecutionError`` and aborts the rest of that signal's pipeline.
"""

from __future__ import annotations


class PolicyRejection(Exception):
    """The admin policy gate or the risk manager declined a signal."""

    def __init__(self, reason: str, *, gate: str = "risk") -> None:
        self.reason = reason
        self.gate = gate
        super().__init__(reason)


class ExecutionError(Exception):
    """Order sizing or placement failed for an approved signal."""


class EngineStoppedError(ExecutionError):
    def __init__(self) -> None:
        super().__init__("Trading engine is stopped")


class SizingError(ExecutionError):
    """The computed order amount cannot satisfy the exchange minimums."""


class UnsupportedActionError(ExecutionError):
    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"Unsupported action: {action}")


class InsufficientBalanceError(ExecutionError):
    """There is nothing to sell or close for the requested symbol."""
