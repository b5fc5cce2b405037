"""Core data types for the trading loop."""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Wrapped SOL mint, the settlement asset for every swap.
WSOL_MINT = "So11111111111111111111111111111111111111112"
LAMPORTS_PER_SOL = 1_000_000_000


class PositionStatus(StrEnum):
    """Lifecycle status of a stored position."""

    OPEN = "open"
    CLOSED = "closed"
    # Reserved for forced exits; only reachable through mark_liquidated().
    LIQUIDATED = "liquidated"


class TradeDirection(StrEnum):
    """Direction of an executed swap."""

    BUY = "BUY"
    SELL = "SELL"


class BaseToken(BaseModel):
    """Token metadata attached to a market pair."""

    address: str = Field(description="Token mint address")
    symbol: str = Field(default="", description="Display ticker")
    name: str = Field(default="", description="Display name")


class Opportunity(BaseModel):
    """Market pair surfaced by the discovery feed, not yet screened."""

    pair_address: str = Field(description="Liquidity pool address")
    chain_id: str = Field(default="solana", description="Chain identifier")
    dex_id: str = Field(default="unknown", description="DEX identifier")
    base_token: BaseToken = Field(description="Traded token")
    price_usd: float = Field(description="Current price in USD")
    liquidity_usd: float = Field(description="Pool liquidity in USD")
    volume_h24_usd: float = Field(description="24h volume in USD")
    market_cap_usd: float | None = Field(
        default=None, description="Market cap in USD, when reported"
    )
    url: str | None = Field(default=None, description="Feed page for the pair")


class Position(BaseModel):
    """A held or previously held token exposure."""

    pair_address: str = Field(description="Liquidity pool address (unique key)")
    token_mint: str = Field(description="Traded token mint address")
    symbol: str = Field(description="Display ticker")
    entry_price: float = Field(description="USD price per token at open")
    amount: float = Field(description="SOL committed to the position")
    token_amount: int | None = Field(
        default=None, description="Token units to sell on exit, smallest denomination"
    )
    status: PositionStatus = Field(default=PositionStatus.OPEN)
    created_at: datetime | None = Field(default=None, description="Insert time")

    @property
    def is_open(self) -> bool:
        return self.status == PositionStatus.OPEN


class TradeLedgerEntry(BaseModel):
    """Immutable record of an executed swap."""

    model_config = ConfigDict(frozen=True)

    tx_id: str = Field(description="Transaction signature or dry-run sentinel")
    pair_address: str = Field(description="Liquidity pool address")
    direction: TradeDirection = Field(description="BUY or SELL")
    amount: float = Field(description="SOL amount of the trade")
    price: float = Field(description="USD token price at execution")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Route(BaseModel):
    """Priced path for converting one asset into another."""

    out_amount: int = Field(description="Expected output in smallest units")
    min_out_amount: int | None = Field(
        default=None, description="Output guaranteed after slippage, in smallest units"
    )
    raw: dict[str, Any] = Field(
        default_factory=dict, description="Quote payload as returned by the router"
    )


class SwapResult(BaseModel):
    """Outcome of a successful swap."""

    tx_id: str = Field(description="Confirmed transaction signature")
    out_amount: int | None = Field(
        default=None, description="Expected output of the executed route"
    )
    min_out_amount: int | None = Field(
        default=None, description="Minimum output the executed route guaranteed"
    )
    simulated: bool = Field(default=False, description="True for dry-run swaps")


class FilterDecision(BaseModel):
    """Filter evaluation decision."""

    accepted: bool = Field(description="Whether the opportunity passed the filter")
    score: float = Field(description="Filter score (0-1)")
    reasons: list[str] = Field(default_factory=list, description="Reasons for decision")


class TradingParameters(BaseModel):
    """Process-wide trading thresholds. Loaded once, never mutated."""

    model_config = ConfigDict(frozen=True)

    min_market_cap: float = Field(default=100_000.0, ge=0)
    min_liquidity: float = Field(default=30_000.0, ge=0)
    min_volume: float = Field(default=300_000.0, ge=0)
    stop_loss_percent: float = Field(default=15.0, gt=0, lt=100)
    take_profit_percent: float = Field(default=30.0, gt=0)
    max_daily_trades: int = Field(default=5, ge=0)
    keywords: tuple[str, ...] = Field(
        default=("doge", "shib", "floki", "bonk", "samo", "woof", "pepe")
    )
    max_risk_score: float = Field(
        default=50.0, description="Rug-risk scores at or above this are unsafe"
    )
