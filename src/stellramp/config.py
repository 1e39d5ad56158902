"""Application configuration using pydantic-settings.

Covers the anchor ramp (rates, simulated fiat rail, treasury accounts) and the
Stellar network the ledger client talks to.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

HORIZON_TESTNET_URL = "https://horizon-testnet.stellar.org"
HORIZON_PUBLIC_URL = "https://horizon.stellar.org"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Telegram
    # ======================
    telegram_bot_token: str = Field(default="", description="Telegram bot token from BotFather")

    # ======================
    # Database
    # ======================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/stellramp.db",
        description="Database connection URL",
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")

    # ======================
    # Stellar network
    # ======================
    stellar_network: str = Field(default="testnet", description="testnet or public")
    horizon_url: str = Field(
        default="", description="Horizon server URL (derived from network if empty)"
    )
    friendbot_url: str = Field(
        default="https://friendbot.stellar.org", description="Testnet Friendbot URL"
    )
    ledger_client: str = Field(
        default="simulated", description="Ledger client: simulated or horizon"
    )
    base_fee: int = Field(default=100, description="Base fee per operation in stroops")

    # ======================
    # Anchor
    # ======================
    anchor_treasury_public: str = Field(
        default="GBCWLQYUSY4K4W7T23IK5F6DPIAXWJ3WKYGVFFYGU7GOG3K2X3GHAQ4D",
        description="Treasury account receiving withdrawal debits",
    )
    anchor_distribution_secret: Optional[str] = Field(
        default=None, description="Secret seed of the account crediting deposits"
    )
    anchor_payment_base_url: str = Field(
        default="https://stellramp-anchor.demo", description="Base URL for mock payment links"
    )
    deposit_delay_seconds: float = Field(
        default=2.5, description="Simulated fiat settlement delay for deposits"
    )
    withdraw_delay_seconds: float = Field(
        default=3.0, description="Simulated fiat payout delay for withdrawals"
    )
    minimum_reserve: Decimal = Field(
        default=Decimal("1.5"), description="XLM that must remain after a withdrawal debit"
    )
    allow_currency_fallback: bool = Field(
        default=False, description="Accept unknown currencies at the USD rate"
    )
    record_lock_timeout: float = Field(
        default=30.0, description="Seconds to wait for a per-record lock"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def is_testnet(self) -> bool:
        return self.stellar_network.lower() != "public"

    @property
    def resolved_horizon_url(self) -> str:
        """Horizon URL, falling back to the public endpoint for the network."""
        if self.horizon_url:
            return self.horizon_url.rstrip("/")
        return HORIZON_TESTNET_URL if self.is_testnet else HORIZON_PUBLIC_URL

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "database_url": self._redact_url(self.database_url),
            "telegram_bot_token": "***" if self.telegram_bot_token else "(not set)",
            "stellar": {
                "network": self.stellar_network,
                "horizon": self.resolved_horizon_url,
                "ledger_client": self.ledger_client,
            },
            "anchor": {
                "treasury": self.anchor_treasury_public,
                "distribution_secret": "***" if self.anchor_distribution_secret else "(not set)",
                "deposit_delay_seconds": self.deposit_delay_seconds,
                "withdraw_delay_seconds": self.withdraw_delay_seconds,
                "minimum_reserve": str(self.minimum_reserve),
                "allow_currency_fallback": self.allow_currency_fallback,
            },
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact sensitive parts of database URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
