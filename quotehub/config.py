"""
QuoteHub - Configuration Settings
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, model_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # =========================
    # Application Settings
    # =========================
    APP_NAME: str = "QuoteHub"
    APP_ENV: str = "development"
    DEBUG: bool = True
    API_V1_PREFIX: str = "/api/v1"
    CORS_ORIGINS: list[str] = ["*"]

    # =========================
    # Primary Provider - Twelve Data
    # =========================
    PRIMARY_PROVIDER_NAME: str = "primary"
    TWELVE_DATA_API_KEY: str = ""
    TWELVE_DATA_BASE_URL: str = "https://api.twelvedata.com"
    TWELVE_DATA_REQUESTS_PER_MINUTE: int = 8
    TWELVE_DATA_MARKET_SUFFIX: str = ""

    # =========================
    # Secondary Provider - Yahoo Finance
    # =========================
    SECONDARY_PROVIDER_NAME: str = "secondary"
    YAHOO_FINANCE_API_KEY: str = ""
    YAHOO_FINANCE_BASE_URL: str = "https://yfapi.net"
    YAHOO_FINANCE_REQUESTS_PER_MINUTE: int = 60
    YAHOO_FINANCE_MARKET_SUFFIX: str = ""

    # =========================
    # Request Settings
    # =========================
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    MAX_RETRY_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_SECONDS: float = 1.0
    RETRY_MAX_DELAY_SECONDS: float = 8.0

    # =========================
    # Routing
    # =========================
    ENABLE_FALLBACK: bool = True
    RETRY_UNRESOLVED_ON_FALLBACK: bool = False

    # =========================
    # Quote Cache
    # =========================
    CACHE_TTL_SECONDS: float = 300.0
    CACHE_STALE_AFTER_SECONDS: float = 240.0
    CACHE_SWEEP_INTERVAL_SECONDS: float = 0.0  # 0 disables the sweeper
    CACHE_MAX_ENTRIES: int = 1024

    # =========================
    # Rate Limit Settings
    # =========================
    RATE_LIMIT_WINDOW_SECONDS: float = 60.0

    # =========================
    # Circuit Breaker
    # =========================
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = 5
    CIRCUIT_BREAKER_TIMEOUT_SECONDS: float = 60.0

    # =========================
    # Logging
    # =========================
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_DIR: str = "logs"

    @field_validator(
        "MAX_RETRY_ATTEMPTS",
        "CIRCUIT_BREAKER_FAILURE_THRESHOLD",
        "TWELVE_DATA_REQUESTS_PER_MINUTE",
        "CACHE_MAX_ENTRIES",
        "YAHOO_FINANCE_REQUESTS_PER_MINUTE",
    )
    @classmethod
    def at_least_one(cls, v: int) -> int:
        return max(1, v)

    @field_validator("TWELVE_DATA_MARKET_SUFFIX", "YAHOO_FINANCE_MARKET_SUFFIX", mode="before")
    @classmethod
    def normalize_suffix(cls, v):
        if not v:
            return ""
        v = str(v).strip().upper()
        return v if v.startswith(".") else f".{v}"

    @model_validator(mode="after")
    def clamp_stale_threshold(self) -> "Settings":
        """Soft staleness can never outlive the hard TTL."""
        if self.CACHE_STALE_AFTER_SECONDS > self.CACHE_TTL_SECONDS:
            self.CACHE_STALE_AFTER_SECONDS = self.CACHE_TTL_SECONDS
        return self


# Create global settings instance
settings = Settings()
