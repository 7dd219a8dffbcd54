"""Configuration schema — Pydantic models for config.yaml."""

from __future__ import annotations

from pydantic import BaseModel, Field

MAINNET_BASE_URL = "https://api.gateio.ws"
TESTNET_BASE_URL = "https://fx-api-testnet.gateio.ws"


class ExchangeConfig(BaseModel):
    base_url: str = MAINNET_BASE_URL
    api_key: str = ""
    api_secret: str = ""
    testnet: bool = False
    timeout_s: float = 10.0

    def resolved_base_url(self) -> str:
        """Testnet wins only when the base URL was left at the mainnet default."""
        if self.testnet and self.base_url == MAINNET_BASE_URL:
            return TESTNET_BASE_URL
        return self.base_url


class DatabaseConfig(BaseModel):
    # None keeps all durable state in the local data directory
    url: str | None = None


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "json"


class PolicySettings(BaseModel):
    """Administrative signal policy, editable at runtime through the admin API."""

    allowed_symbols: list[str] = Field(
        default_factory=lambda: ["BTC_USDT", "ETH_USDT", "BNB_USDT"],
    )
    allowed_actions: list[str] = Field(default_factory=lambda: ["buy", "sell", "close"])
    min_amount: float = 0.0001
    max_amount: float = 1.0
    require_stop_loss: bool = False
    require_take_profit: bool = False
    auto_approve: bool = False
    max_daily_trades: int = 10


class RiskSettings(BaseModel):
    max_position_value: float = 1000.0
    risk_per_trade_pct: float = 2.0
    min_quote_balance: float = 10.0
    max_same_direction_positions: int = 5
    # None disables the policy; the verdict reports it as "disabled"
    max_drawdown_pct: float | None = None
    max_volatility_pct: float | None = None


class SymbolSettings(BaseModel):
    """Per-instrument trading parameters published by the exchange."""

    min_amount: float = 0.0
    max_amount: float | None = None
    precision: int = 8
    min_notional: float = 5.0


def default_symbols() -> dict[str, SymbolSettings]:
    return {
        "BTC_USDT": SymbolSettings(min_amount=0.0001, max_amount=1, precision=8, min_notional=10),
        "ETH_USDT": SymbolSettings(min_amount=0.001, max_amount=10, precision=6, min_notional=10),
        "BNB_USDT": SymbolSettings(min_amount=0.01, max_amount=100, precision=4, min_notional=10),
    }


class EngineConfig(BaseModel):
    min_order_value: float = 5.0
    default_precision: int = 8
    bracket_poll_interval_s: float = 5.0
    # Applied when a buy carries no explicit stop loss / take profit
    default_stop_loss_pct: float | None = None
    default_take_profit_pct: float | None = None


class NotificationConfig(BaseModel):
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    discord_webhook_url: str = ""
    timeout_s: float = 5.0


class WebhookConfig(BaseModel):
    secret: str = ""
    allowed_ips: list[str] = Field(default_factory=list)


class ApiConfig(BaseModel):
    admin_token: str = ""
    host: str = "0.0.0.0"
    port: int = 8000


class PersistenceConfig(BaseModel):
    data_dir: str = "data"
    max_trade_records: int = 1000


class AppConfig(BaseModel):
    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    admin: PolicySettings = Field(default_factory=PolicySettings)
    risk: RiskSettings = Field(default_factory=RiskSettings)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    symbols: dict[str, SymbolSettings] = Field(default_factory=default_symbols)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
