"""Config loader — reads YAML, applies TRADING_* env var overrides."""

from __future__ import annotations

import os
from pathlib import Path

import yaml

from webhook_trader.config.schema import AppConfig

# env var -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "TRADING_DATABASE_URL": ("database", "url"),
    "TRADING_LOG_LEVEL": ("logging", "level"),
    "TRADING_LOG_FORMAT": ("logging", "format"),
    "TRADING_GATE_API_KEY": ("exchange", "api_key"),
    "TRADING_GATE_API_SECRET": ("exchange", "api_secret"),
    "TRADING_GATE_BASE_URL": ("exchange", "base_url"),
    "TRADING_WEBHOOK_SECRET": ("webhook", "secret"),
    "TRADING_ADMIN_TOKEN": ("api", "admin_token"),
    "TRADING_TELEGRAM_BOT_TOKEN": ("notifications", "telegram_bot_token"),
    "TRADING_TELEGRAM_CHAT_ID": ("notifications", "telegram_chat_id"),
    "TRADING_DISCORD_WEBHOOK_URL": ("notifications", "discord_webhook_url"),
}


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load config from a YAML file, then apply env var overrides.

    If *path* is None or the file doesn't exist, returns defaults.
    Every key of ``ENV_OVERRIDES`` that is set and non-empty replaces the
    matching value from the file.
    """
    data: dict = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p) as f:
                data = yaml.safe_load(f) or {}

    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            data.setdefault(section, {})[key] = value

    return AppConfig.model_validate(data)
