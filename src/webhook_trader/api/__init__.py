"""HTTP surface."""

from webhook_trader.api.app import create_app

__all__ = ["create_app"]
