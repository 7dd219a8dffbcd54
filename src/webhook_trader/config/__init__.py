"""Configuration system."""

from webhook_trader.config.loader import load_config
from webhook_trader.config.schema import (
    AppConfig,
    EngineConfig,
    PolicySettings,
    RiskSettings,
    SymbolSettings,
)

__all__ = [
    "AppConfig",
    "EngineConfig",
    "PolicySettings",
    "RiskSettings",
    "SymbolSettings",
    "load_config",
]
