"""Process configuration, loaded from ``API_*`` environment variables."""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from storefront.application.dto import ApiConfig, is_development as is_development_env

API_VERSION = "1.0"


class Settings(BaseSettings):
    """Settings for the API process and its local collaborators."""

    # Environment
    ENV: str = Field("dev", description="dev disables caching and enables debug logging")
    WEB_URL: str = Field("http://localhost:8000", description="Base URL of the storefront web site")
    BASE_PATH: str = Field("", description="Path prefix the API is mounted under")
    LOG_LEVEL: str = Field("INFO", description="Root log level outside dev")

    # Client authentication ("user:password" pairs, empty disables it)
    CLIENT_CREDENTIALS: list[str] = Field(default_factory=list)

    # Local data
    DATA_DIR: Path = Field(Path("data"), description="Directory holding the JSON stores")

    # Response cache
    CACHE_BACKEND: str = Field("memory", description="memory or redis")
    CACHE_REFRESH_PROBABILITY: float = Field(0.0, ge=0.0, le=1.0)

    # Redis
    REDIS_HOST: str = Field("localhost", description="Redis host")
    REDIS_PORT: int = Field(6379, description="Redis port")
    REDIS_DB: int = Field(0, description="Redis database index")
    REDIS_PASSWORD: str | None = Field(None, description="Redis password")

    # Payment gateway
    PAYMENT_GATEWAY_URL: str = Field("http://localhost:9000")
    PAYMENT_GATEWAY_TIMEOUT: float = Field(10.0)

    # Cart
    CART_SHELF_LIFE: int = Field(900, description="Seconds a cart reservation lasts")
    FLAT_SHIPPING_RATE: Decimal = Field(Decimal("7.95"))

    model_config = SettingsConfigDict(
        env_prefix="API_",
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_development(self) -> bool:
        return is_development_env(self.ENV)

    def api_config(self) -> ApiConfig:
        return ApiConfig(
            environment=self.ENV,
            web_url=self.WEB_URL,
            cart_shelf_life=self.CART_SHELF_LIFE,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
