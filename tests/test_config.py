"""Tests for configuration management."""

import pytest
from pydantic import ValidationError

from autopilot.config.settings import AppSettings, load_settings
from autopilot.core.errors import ConfigError

REQUIRED_ENV = {
    "RPC_ENDPOINT": "https://api.mainnet-beta.solana.com",
    "PRIVATE_KEY": "11" * 64,
    "BUY_AMOUNT": "0.1",
    "SLIPPAGE": "100",
    "CHECK_INTERVAL": "30",
}


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Run from an empty directory with no autopilot variables set."""
    monkeypatch.chdir(tmp_path)
    for name in list(REQUIRED_ENV) + ["DRY_RUN", "TRADING__MAX_DAILY_TRADES"]:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def full_env(clean_env):
    for name, value in REQUIRED_ENV.items():
        clean_env.setenv(name, value)
    return clean_env


def test_loads_required_values_from_environment(full_env) -> None:
    """Test that every required value is read from its environment variable."""
    settings = load_settings()

    assert settings.rpc_endpoint == "https://api.mainnet-beta.solana.com"
    assert settings.buy_amount == 0.1
    assert settings.slippage_bps == 100
    assert settings.check_interval == 30.0
    assert settings.env == "dev"
    assert settings.dry_run is True


def test_defaults(full_env) -> None:
    """Test optional settings defaults."""
    settings = load_settings()

    assert settings.dexscreener_base == "https://api.dexscreener.com/latest/dex"
    assert settings.jupiter_base == "https://quote-api.jup.ag/v6"
    assert settings.monitor_interval == 60.0
    assert settings.feed_max_attempts == 3
    assert settings.feed_retry_delay == 5.0
    assert settings.database_path == "trades.db"
    assert settings.trading.max_daily_trades == 5
    assert settings.trading.stop_loss_percent == 15.0
    assert settings.trading.take_profit_percent == 30.0


def test_missing_required_value_names_the_variable(clean_env) -> None:
    """Test that a missing value fails with the variable name."""
    for name, value in REQUIRED_ENV.items():
        if name != "SLIPPAGE":
            clean_env.setenv(name, value)

    with pytest.raises(ConfigError) as exc_info:
        load_settings()

    assert "SLIPPAGE" in str(exc_info.value)
    assert exc_info.value.context["missing"] == ["SLIPPAGE"]


def test_all_missing_lists_every_variable(clean_env) -> None:
    with pytest.raises(ConfigError) as exc_info:
        load_settings()

    assert set(exc_info.value.context["missing"]) == set(REQUIRED_ENV)


def test_invalid_value_raises_config_error(full_env) -> None:
    """Test that a malformed value is rejected at startup."""
    full_env.setenv("BUY_AMOUNT", "not-a-number")

    with pytest.raises(ConfigError, match="Invalid configuration"):
        load_settings()


def test_non_positive_buy_amount_rejected(full_env) -> None:
    full_env.setenv("BUY_AMOUNT", "0")

    with pytest.raises(ConfigError):
        load_settings()


def test_nested_trading_parameters_from_environment(full_env) -> None:
    """Test overriding a trading threshold with a nested variable."""
    full_env.setenv("TRADING__MAX_DAILY_TRADES", "2")

    settings = load_settings()

    assert settings.trading.max_daily_trades == 2


def test_profile_overrides_dry_run(full_env) -> None:
    """Test that paper forces dry run and prod forces live trading."""
    full_env.setenv("DRY_RUN", "false")
    assert load_settings("paper").dry_run is True

    full_env.setenv("DRY_RUN", "true")
    assert load_settings("prod").dry_run is False


def test_invalid_profile() -> None:
    """Test that an unknown profile is rejected."""
    with pytest.raises(ConfigError, match="Invalid profile"):
        load_settings("staging")


def test_yaml_overlay(full_env, tmp_path) -> None:
    """Test loading values from a YAML file."""
    config = tmp_path / "autopilot.yaml"
    config.write_text(
        "monitor_interval: 15\n"
        "database_path: positions.db\n"
        "trading:\n"
        "  stop_loss_percent: 10\n"
        "  keywords: [pepe]\n"
    )

    settings = load_settings("paper", str(config))

    assert settings.monitor_interval == 15.0
    assert settings.database_path == "positions.db"
    assert settings.trading.stop_loss_percent == 10.0
    assert settings.trading.keywords == ("pepe",)
    assert settings.env == "paper"


def test_yaml_file_missing(full_env, tmp_path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_settings("dev", str(tmp_path / "absent.yaml"))


def test_yaml_file_malformed(full_env, tmp_path) -> None:
    config = tmp_path / "broken.yaml"
    config.write_text("trading: [unclosed\n")

    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_settings("dev", str(config))


def test_yaml_must_be_mapping(full_env, tmp_path) -> None:
    config = tmp_path / "list.yaml"
    config.write_text("- a\n- b\n")

    with pytest.raises(ConfigError, match="mapping"):
        load_settings("dev", str(config))


def test_settings_are_frozen(full_env) -> None:
    """Test that settings cannot change after load."""
    settings = load_settings()

    with pytest.raises(ValidationError):
        settings.buy_amount = 5.0


def test_private_key_hidden_from_repr(full_env) -> None:
    settings = load_settings()

    assert REQUIRED_ENV["PRIVATE_KEY"] not in repr(settings)


def test_direct_construction_by_field_name(clean_env) -> None:
    """Test building settings in code with field names."""
    settings = AppSettings(
        rpc_endpoint="http://localhost:8899",
        private_key="key",
        buy_amount=0.5,
        slippage_bps=50,
        check_interval=5,
    )

    assert settings.slippage_bps == 50
    assert settings.check_interval == 5.0
