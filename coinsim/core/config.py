"""Configuration management for the coin trade simulator."""

from decimal import Decimal
from typing import List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# =============================================================================
# System Configuration
# =============================================================================


class SystemConfig(BaseSettings):
    """System-level configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    environment: Literal["development", "staging", "production"] = Field(
        default="development", validation_alias="ENVIRONMENT"
    )
    app_name: str = Field(default="Coin Trade Simulator", validation_alias="APP_NAME")
    app_version: str = Field(default="1.0.0", validation_alias="APP_VERSION")


# =============================================================================
# Trading Configuration
# =============================================================================


class TradingConfig(BaseSettings):
    """Simulated trading parameters.

    Every trade uses the same fixed USD notional. A trade for a coin that
    was traded before only goes through once the price has moved by at
    least ``trade_threshold`` (0.05 = 5%) from the reference trade.
    """

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    starting_balance: Decimal = Field(
        default=Decimal("1000"), validation_alias="STARTING_BALANCE"
    )
    trade_amount: Decimal = Field(default=Decimal("100"), validation_alias="TRADE_AMOUNT")
    trade_fee: Decimal = Field(default=Decimal("0.01"), validation_alias="TRADE_FEE")
    trade_threshold: Decimal = Field(
        default=Decimal("0.05"), validation_alias="TRADE_THRESHOLD"
    )

    # Which prior trade the threshold is measured against:
    # "latest" = most recent trade for the coin, "first" = oldest trade
    last_trade_lookup: Literal["latest", "first"] = Field(
        default="latest", validation_alias="LAST_TRADE_LOOKUP"
    )

    @field_validator("starting_balance")
    @classmethod
    def validate_balance(cls, v):
        if v < 0:
            raise ValueError("Starting balance must not be negative")
        return v

    @field_validator("trade_amount")
    @classmethod
    def validate_amount(cls, v):
        if v <= 0:
            raise ValueError("Trade amount must be positive")
        return v

    @field_validator("trade_fee", "trade_threshold")
    @classmethod
    def validate_fraction(cls, v):
        """Fee and threshold are fractions (0.01 = 1%)."""
        if v < 0 or v >= 1:
            raise ValueError("Value must be between 0 and 1")
        return v


# =============================================================================
# Price Feed Configuration
# =============================================================================


class PriceFeedConfig(BaseSettings):
    """Public price API and polling configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    api_url: str = Field(
        default="https://api.coingecko.com/api/v3", validation_alias="PRICE_API_URL"
    )

    # Coins to query (stored as comma-separated string, parsed to list)
    coins_str: str = Field(
        default="bitcoin,ethereum,litecoin", validation_alias="PRICE_COINS"
    )

    poll_interval: float = Field(default=60.0, validation_alias="PRICE_POLL_INTERVAL")
    timeout: float = Field(default=10.0, validation_alias="PRICE_TIMEOUT")
    retry_attempts: int = Field(default=3, validation_alias="PRICE_RETRY_ATTEMPTS")

    @property
    def coins(self) -> List[str]:
        """Parse coins string into list of lowercase ids."""
        return [c.strip().lower() for c in self.coins_str.split(",") if c.strip()]

    @field_validator("retry_attempts")
    @classmethod
    def validate_retries(cls, v):
        if v < 0:
            raise ValueError("Retry attempts must not be negative")
        return v


# =============================================================================
# Server Configuration
# =============================================================================


class ServerConfig(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    host: str = Field(default="0.0.0.0", validation_alias="SERVER_HOST")
    port: int = Field(default=3000, validation_alias="SERVER_PORT")
    cors_origin: str = Field(default="*", validation_alias="CORS_ORIGIN")

    @field_validator("port")
    @classmethod
    def validate_port(cls, v):
        if v <= 0 or v > 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_file: str = Field(default="logs/coinsim.log", validation_alias="LOG_FILE")


# =============================================================================
# Global Configuration Container
# =============================================================================


class SimulatorConfig:
    """
    Container for all simulator configurations.

    Usage:
        from coinsim.core.config import simulator_config

        amount = simulator_config.trading.trade_amount
        coins = simulator_config.price_feed.coins
    """

    def __init__(self):
        self.system = SystemConfig()
        self.trading = TradingConfig()
        self.price_feed = PriceFeedConfig()
        self.server = ServerConfig()
        self.logging = LoggingConfig()

    def validate_configuration(self) -> dict:
        """
        Validate the complete configuration and return any issues.

        Returns:
            Dictionary with 'valid' boolean and 'issues' list
        """
        issues = []

        if not self.price_feed.coins:
            issues.append("No coins configured for the price feed")

        if self.price_feed.poll_interval <= 0:
            issues.append(
                f"Price poll interval ({self.price_feed.poll_interval}) must be positive"
            )

        if self.price_feed.timeout <= 0:
            issues.append(f"Price timeout ({self.price_feed.timeout}) must be positive")

        if self.trading.trade_amount > self.trading.starting_balance:
            issues.append(
                f"Trade amount ({self.trading.trade_amount}) exceeds starting balance "
                f"({self.trading.starting_balance}); no buy can ever execute"
            )

        return {"valid": len(issues) == 0, "issues": issues}


# =============================================================================
# Global Configuration Instances
# =============================================================================

trading_config = TradingConfig()
price_feed_config = PriceFeedConfig()
server_config = ServerConfig()
logging_config = LoggingConfig()

simulator_config = SimulatorConfig()


__all__ = [
    "SystemConfig",
    "TradingConfig",
    "PriceFeedConfig",
    "ServerConfig",
    "LoggingConfig",
    "SimulatorConfig",
    "trading_config",
    "price_feed_config",
    "server_config",
    "logging_config",
    "simulator_config",
]
