"""Application settings and configuration management."""

from pathlib import Path
from typing import Any, Literal

import structlog
import yaml
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.errors import ConfigError
from ..core.types import TradingParameters

logger = structlog.get_logger(__name__)


class AppSettings(BaseSettings):
    """Application settings with environment variable support."""

    # Environment and mode
    env: Literal["dev", "paper", "prod"] = Field(
        default="dev", description="Environment: dev, paper, prod"
    )
    dry_run: bool = Field(default=True, description="Dry run mode (no real swaps)")

    # Required process configuration
    rpc_endpoint: str = Field(description="Solana RPC URL")
    private_key: str = Field(
        repr=False, description="Wallet secret key, hex or base58 encoded"
    )
    buy_amount: float = Field(gt=0, description="SOL committed per trade")
    slippage_bps: int = Field(
        gt=0,
        le=10_000,
        validation_alias="slippage",
        description="Maximum slippage in basis points",
    )
    check_interval: float = Field(
        gt=0, description="Seconds between the start of two trading ticks"
    )

    # External services
    dexscreener_base: str = Field(
        default="https://api.dexscreener.com/latest/dex",
        description="DexScreener API base URL",
    )
    candidates_path: str = Field(
        default="pairs/solana", description="Feed path listing candidate pairs"
    )
    rugcheck_base: str = Field(
        default="https://api.rugcheck.xyz/v1", description="RugCheck API base URL"
    )
    honeypot_base: str = Field(
        default="https://api.honeypot.is/v2", description="Honeypot.is API base URL"
    )
    jupiter_base: str = Field(
        default="https://quote-api.jup.ag/v6", description="Jupiter API base URL"
    )

    # Timeouts, retries and rate limits
    feed_timeout: float = Field(default=10.0, gt=0)
    feed_max_attempts: int = Field(default=3, ge=1)
    feed_retry_delay: float = Field(
        default=5.0, ge=0, description="Base delay, multiplied by attempt number"
    )
    safety_timeout: float = Field(default=10.0, gt=0)
    rate_limit_per_minute: int = Field(default=30, ge=1)
    confirm_timeout: float = Field(default=60.0, gt=0)
    priority_fee_microlamports: int = Field(default=0, ge=0)

    # Position monitoring
    monitor_interval: float = Field(
        default=60.0, gt=0, description="Seconds between price checks per position"
    )
    wait_for_exits_on_shutdown: bool = Field(default=True)

    # Data storage
    database_path: str = Field(default="trades.db", description="SQLite file")

    # Logging
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)

    trading: TradingParameters = Field(default_factory=TradingParameters)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )


def _missing_required(error: ValidationError) -> list[str]:
    missing = []
    for item in error.errors():
        if item["type"] == "missing" and item["loc"]:
            missing.append(str(item["loc"][0]).upper())
    return missing


def load_settings(
    profile: str = "dev", yaml_path: str | None = None, **overrides: Any
) -> AppSettings:
    """Load settings from an optional YAML file and environment variables.

    Args:
        profile: Configuration profile name (dev, paper, prod)
        yaml_path: Optional path to YAML configuration file
        **overrides: Explicit values that take precedence over the YAML file

    Returns:
        AppSettings instance with loaded configuration

    Raises:
        ConfigError: If the profile, the YAML file or any value is invalid,
            or a required setting is missing
    """
    if profile not in ["dev", "paper", "prod"]:
        raise ConfigError(
            f"Invalid profile: {profile}. Must be one of: dev, paper, prod"
        )

    yaml_config: dict[str, Any] = {}
    if yaml_path is not None:
        yaml_file = Path(yaml_path)
        if not yaml_file.exists():
            raise ConfigError(f"Configuration file not found: {yaml_path}")
        try:
            with open(yaml_file, encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error("Failed to parse YAML configuration", error=str(e))
            raise ConfigError(f"Invalid YAML configuration: {e}") from e
        if not isinstance(yaml_config, dict):
            raise ConfigError(f"Configuration file must hold a mapping: {yaml_path}")

    yaml_config.update(overrides)
    yaml_config["env"] = profile

    # paper never moves funds, prod always does; dev follows the environment
    if profile == "paper":
        yaml_config["dry_run"] = True
    elif profile == "prod":
        yaml_config["dry_run"] = False

    logger.info("Loading configuration", profile=profile, yaml_path=yaml_path)

    try:
        settings = AppSettings(**yaml_config)
    except ValidationError as e:
        missing = _missing_required(e)
        if missing:
            logger.error("Missing required configuration", missing=missing)
            raise ConfigError(
                f"Missing required configuration: {', '.join(missing)}",
                context={"missing": missing},
            ) from e
        logger.error("Configuration validation failed", error=str(e))
        raise ConfigError(f"Invalid configuration: {e}") from e

    logger.info(
        "Configuration loaded successfully",
        profile=profile,
        dry_run=settings.dry_run,
        rpc_endpoint=settings.rpc_endpoint[:50] + "..."
        if len(settings.rpc_endpoint) > 50
        else settings.rpc_endpoint,
    )
    return settings
