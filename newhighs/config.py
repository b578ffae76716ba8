# newhighs/config.py
from __future__ import annotations

from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[1]  # project root
ENV_PATH = BASE_DIR / ".env"


class Settings(BaseSettings):
    # Pydantic v2 settings config
    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        validate_default=True,
    )

    # E*TRADE OAuth1.0a consumer
    consumer_key: str = Field(default="", alias="ETRADE_CONSUMER_KEY")
    consumer_secret: str = Field(default="", alias="ETRADE_CONSUMER_SECRET")

    oauth_request_token_url: str = Field(
        default="https://api.etrade.com/oauth/request_token?format=json",
        alias="OAUTH_REQUEST_TOKEN_URL",
    )
    oauth_access_token_url: str = Field(
        default="https://api.etrade.com/oauth/access_token",
        alias="OAUTH_ACCESS_TOKEN_URL",
    )
    oauth_authorize_url: str = Field(
        default="https://us.etrade.com/e/t/etws/authorize",
        alias="OAUTH_AUTHORIZE_URL",
    )
    oauth_timeout_sec: float = Field(default=20.0, alias="OAUTH_TIMEOUT_SEC")

    # Quotes
    quote_base_url: str = Field(default="https://apisb.etrade.com/v1/market/quote", alias="QUOTE_BASE_URL")
    quote_batch_size: int = Field(default=50, alias="QUOTE_BATCH_SIZE")
    quote_timeout_sec: float = Field(default=15.0, alias="QUOTE_TIMEOUT_SEC")

    # Universe (JSON: {"sp500_tickers": [...]})
    tickers_path: str = Field(default=str(BASE_DIR / "data" / "sp500_tickers.json"), alias="TICKERS_PATH")

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./newhighs.db", alias="DATABASE_URL")

    # Pull time label, e.g. "06/03/25, 10:05 EST"
    timezone_name: str = Field(default="America/New_York", alias="TIMEZONE_NAME")
    timezone_label: str = Field(default="EST", alias="TIMEZONE_LABEL")

    # CORS (comma-separated origins)
    cors_origins: str = Field(default="https://dashboard-prod-green.vercel.app", alias="CORS_ORIGINS")

    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in (self.cors_origins or "").split(",") if o.strip()]


settings = Settings()
