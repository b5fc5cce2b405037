"""Tests for core data types."""

import pytest
from pydantic import ValidationError

from autopilot.core.errors import AutopilotError, DuplicateKeyError, StorageError
from autopilot.core.types import (
    BaseToken,
    Opportunity,
    Position,
    PositionStatus,
    TradeDirection,
    TradeLedgerEntry,
    TradingParameters,
)


def test_trading_parameters_defaults() -> None:
    """Test default trading thresholds."""
    params = TradingParameters()

    assert params.min_market_cap == 100_000.0
    assert params.min_liquidity == 30_000.0
    assert params.min_volume == 300_000.0
    assert params.stop_loss_percent == 15.0
    assert params.take_profit_percent == 30.0
    assert params.max_daily_trades == 5
    assert params.keywords == ("doge", "shib", "floki", "bonk", "samo", "woof", "pepe")


def test_trading_parameters_are_immutable() -> None:
    params = TradingParameters()

    with pytest.raises(ValidationError):
        params.max_daily_trades = 10


def test_trading_parameters_reject_out_of_range_stop_loss() -> None:
    with pytest.raises(ValidationError):
        TradingParameters(stop_loss_percent=100)


def test_position_defaults_to_open() -> None:
    """Test that a new position is open."""
    position = Position(
        pair_address="PairA",
        token_mint="MintA",
        symbol="BONK",
        entry_price=0.002,
        amount=0.1,
    )

    assert position.status == PositionStatus.OPEN
    assert position.is_open
    assert position.token_amount is None


def test_ledger_entry_is_frozen_and_timestamped() -> None:
    """Test that ledger entries are immutable and carry an aware timestamp."""
    entry = TradeLedgerEntry(
        tx_id="sig",
        pair_address="PairA",
        direction=TradeDirection.BUY,
        amount=0.1,
        price=0.002,
    )

    assert entry.timestamp.tzinfo is not None
    with pytest.raises(ValidationError):
        entry.price = 1.0


def test_direction_values() -> None:
    assert TradeDirection("BUY") is TradeDirection.BUY
    assert TradeDirection.SELL.value == "SELL"


def test_opportunity_market_cap_optional() -> None:
    opp = Opportunity(
        pair_address="PairA",
        base_token=BaseToken(address="MintA", symbol="WOOF"),
        price_usd=1.0,
        liquidity_usd=1.0,
        volume_h24_usd=1.0,
    )

    assert opp.market_cap_usd is None
    assert opp.chain_id == "solana"


def test_error_hierarchy() -> None:
    """Test that storage errors share the common base."""
    error = DuplicateKeyError("dup", context={"tx_id": "sig"})

    assert isinstance(error, StorageError)
    assert isinstance(error, AutopilotError)
    assert error.context == {"tx_id": "sig"}
    assert str(error) == "dup"
