from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


class CacheTtlSettings(BaseModel):
    yahoo_ms: int = 30_000
    alphavantage_intraday_ms: int = 60_000
    alphavantage_daily_ms: int = 300_000


class ProviderSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LIQUIDITYDESK_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )
    alphavantage_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "ALPHA_VANTAGE_API_KEY", "LIQUIDITYDESK_ALPHAVANTAGE_API_KEY"
        ),
    )
    alphavantage_base_url: str = "https://www.alphavantage.co"
    yahoo_base_url: str = "https://query1.finance.yahoo.com"
    fetch_timeout_seconds: float = 10.0


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LIQUIDITYDESK_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    symbols: List[str] = Field(
        default_factory=lambda: ["BTC/USD", "ETH/USD", "LTC/USD", "XRP/USD", "BCH/USD"]
    )
    provider_chain: List[str] = Field(
        default_factory=lambda: ["yahoo-finance", "alphavantage-daily"]
    )
    poll_interval_seconds: float = 5.0
    trade_history_limit: int = 100
    default_trade_limit: int = 50
    order_book_levels: int = 10
    subscriber_queue_size: int = 256
    random_seed: int | None = None
    log_level: str = "INFO"

    redis_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("REDIS_URL", "LIQUIDITYDESK_REDIS_URL"),
    )

    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    cache_ttls: CacheTtlSettings = Field(default_factory=CacheTtlSettings)


settings = Settings()
