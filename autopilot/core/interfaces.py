"""Core interfaces for the trading loop."""

from datetime import datetime
from typing import Protocol, runtime_checkable

from .types import (
    FilterDecision,
    Opportunity,
    Position,
    PositionStatus,
    SwapResult,
    TradeDirection,
    TradeLedgerEntry,
)


class MarketFeed(Protocol):
    """Market data feed protocol."""

    async def fetch_candidates(self) -> list[Opportunity]:
        """Fetch candidate pairs meeting the liquidity and volume floors."""
        ...

    async def fetch_price(self, pair_address: str) -> float:
        """Fetch the current USD price of a pair."""
        ...


class Filter(Protocol):
    """Opportunity filter protocol."""

    def evaluate(self, opp: Opportunity) -> FilterDecision:
        """Evaluate an opportunity and return filter decision."""
        ...


@runtime_checkable
class SwapExecutor(Protocol):
    """Swap execution protocol."""

    async def swap(self, input_mint: str, output_mint: str, amount: int) -> SwapResult:
        """Swap `amount` smallest units of `input_mint` into `output_mint`."""
        ...


class BalanceSource(Protocol):
    """Settlement asset balance protocol."""

    async def get_balance(self, pubkey: str) -> int:
        """Return the balance of `pubkey` in lamports."""
        ...


class PositionStore(Protocol):
    """Durable position table and trade ledger."""

    async def list_open_addresses(self) -> set[str]:
        ...

    async def list_tracked_addresses(self) -> set[str]:
        ...

    async def list_open_positions(self) -> list[Position]:
        ...

    async def insert_position(self, position: Position) -> None:
        ...

    async def update_status(self, pair_address: str, status: PositionStatus) -> None:
        ...

    async def get_position(self, pair_address: str) -> Position | None:
        ...

    async def append_ledger_entry(self, entry: TradeLedgerEntry) -> None:
        ...

    async def list_ledger_entries(
        self, pair_address: str | None = None
    ) -> list[TradeLedgerEntry]:
        ...

    async def count_ledger_entries_since(
        self, since: datetime, direction: TradeDirection
    ) -> int:
        ...
