"""Per-position price watch with stop-loss and take-profit exits."""

import asyncio
from enum import StrEnum

import structlog

from ..core.errors import AutopilotError, NetworkError
from ..core.interfaces import MarketFeed, PositionStore, SwapExecutor
from ..core.types import (
    LAMPORTS_PER_SOL,
    WSOL_MINT,
    PositionStatus,
    TradeDirection,
    TradeLedgerEntry,
)

logger = structlog.get_logger(__name__)


class MonitorState(StrEnum):
    WATCHING = "watching"
    EXIT_TRIGGERED = "exit_triggered"
    CANCELLED = "cancelled"


class ExitReason(StrEnum):
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"


def exit_bounds(
    entry_price: float, stop_loss_percent: float, take_profit_percent: float
) -> tuple[float, float]:
    """Return the (stop-loss, take-profit) prices for an entry price."""
    return (
        entry_price * (100 - stop_loss_percent) / 100,
        entry_price * (100 + take_profit_percent) / 100,
    )


def evaluate_exit(
    entry_price: float,
    current_price: float,
    stop_loss_percent: float,
    take_profit_percent: float,
) -> ExitReason | None:
    """Decide whether a price reading crosses an exit bound.

    Both bounds are inclusive. Stop-loss is checked first.
    """
    stop_loss_price, take_profit_price = exit_bounds(
        entry_price, stop_loss_percent, take_profit_percent
    )
    if current_price <= stop_loss_price:
        return ExitReason.STOP_LOSS
    if current_price >= take_profit_price:
        return ExitReason.TAKE_PROFIT
    return None


class PositionMonitor:
    """Watches one open position until it exits or is cancelled.

    Holds only the pair address and entry price; the position itself is
    re-read from the store before any exit.
    """

    def __init__(
        self,
        pair_address: str,
        entry_price: float,
        feed: MarketFeed,
        executor: SwapExecutor,
        store: PositionStore,
        stop_loss_percent: float,
        take_profit_percent: float,
        interval: float = 60.0,
        settlement_mint: str = WSOL_MINT,
    ) -> None:
        """Initialize position monitor.

        Args:
            pair_address: Pool address of the watched position
            entry_price: USD price at which the position was opened
            feed: Price source
            executor: Swap executor used for the exit
            store: Position store holding the authoritative row
            stop_loss_percent: Loss percentage that forces an exit
            take_profit_percent: Gain percentage that forces an exit
            interval: Seconds between price checks
            settlement_mint: Asset the position is sold into
        """
        self.pair_address = pair_address
        self.entry_price = entry_price
        self.feed = feed
        self.executor = executor
        self.store = store
        self.stop_loss_percent = stop_loss_percent
        self.take_profit_percent = take_profit_percent
        self.interval = interval
        self.settlement_mint = settlement_mint

        self.state = MonitorState.WATCHING
        self._cancel_event = asyncio.Event()
        self._log = logger.bind(pair_address=pair_address)

    @property
    def stop_loss_price(self) -> float:
        return exit_bounds(
            self.entry_price, self.stop_loss_percent, self.take_profit_percent
        )[0]

    @property
    def take_profit_price(self) -> float:
        return exit_bounds(
            self.entry_price, self.stop_loss_percent, self.take_profit_percent
        )[1]

    def cancel(self) -> None:
        """Stop polling after the current check. An exit in progress completes."""
        self._cancel_event.set()
        if self.state == MonitorState.WATCHING:
            self.state = MonitorState.CANCELLED

    async def poll(self) -> ExitReason | None:
        """Run one price check and exit if a bound is crossed.

        A failed price read never leads to an exit.
        """
        if self.state != MonitorState.WATCHING:
            return None

        try:
            price = await self.feed.fetch_price(self.pair_address)
        except NetworkError as e:
            self._log.warning("Monitoring error, price unavailable", error=str(e))
            return None

        reason = evaluate_exit(
            self.entry_price, price, self.stop_loss_percent, self.take_profit_percent
        )
        if reason is None:
            self._log.debug(
                "Price within bounds",
                price=price,
                stop_loss_price=self.stop_loss_price,
                take_profit_price=self.take_profit_price,
            )
            return None

        self._log.info("Exit condition met", reason=reason.value, price=price)
        closed = await self.trigger_exit(price)
        return reason if closed else None

    async def trigger_exit(self, exit_price: float) -> bool:
        """Sell the position and record the close. Idempotent.

        Returns:
            True if this call closed the position
        """
        if self.state != MonitorState.WATCHING:
            self._log.debug("Exit already handled", state=self.state.value)
            return False
        # Set before the first await so a second fire is a no-op
        self.state = MonitorState.EXIT_TRIGGERED

        try:
            position = await self.store.get_position(self.pair_address)
        except Exception as e:
            self._log.error(
                "Could not load position for exit",
                error=str(e),
                error_type=type(e).__name__,
            )
            self.state = MonitorState.WATCHING
            return False

        if position is None:
            self._log.error("Position not found, aborting exit")
            return False
        if position.status != PositionStatus.OPEN:
            self._log.info("Position no longer open", status=position.status.value)
            return False

        if position.token_amount is not None:
            sell_amount = position.token_amount
        else:
            self._log.warning("Token quantity unknown, selling committed amount")
            sell_amount = int(round(position.amount * LAMPORTS_PER_SOL))

        try:
            result = await self.executor.swap(
                position.token_mint, self.settlement_mint, sell_amount
            )
        except Exception as e:
            # Still open on chain; keep watching and try again on a later reading
            self._log.error(
                "Close position error", error=str(e), error_type=type(e).__name__
            )
            self.state = MonitorState.WATCHING
            return False

        try:
            await self.store.update_status(self.pair_address, PositionStatus.CLOSED)
            await self.store.append_ledger_entry(
                TradeLedgerEntry(
                    tx_id=result.tx_id,
                    pair_address=self.pair_address,
                    direction=TradeDirection.SELL,
                    amount=position.amount,
                    price=exit_price,
                )
            )
        except AutopilotError as e:
            # The sell landed; never retry it. The row needs manual repair.
            self._log.critical(
                "Position sold but not recorded",
                tx_id=result.tx_id,
                error=str(e),
            )
            return False

        self._log.info(
            "Position closed",
            tx_id=result.tx_id,
            exit_price=exit_price,
            entry_price=self.entry_price,
        )
        return True

    async def run(self) -> None:
        """Poll on a fixed period until the position exits or is cancelled."""
        self._log.info(
            "Monitoring position",
            entry_price=self.entry_price,
            stop_loss_price=self.stop_loss_price,
            take_profit_price=self.take_profit_price,
            interval=self.interval,
        )

        while self.state == MonitorState.WATCHING:
            try:
                await asyncio.wait_for(self._cancel_event.wait(), timeout=self.interval)
            except TimeoutError:
                pass
            else:
                break

            try:
                await self.poll()
            except Exception as e:
                self._log.error("Monitoring error", error=str(e), error_type=type(e).__name__)

        if self._cancel_event.is_set() and self.state == MonitorState.WATCHING:
            self.state = MonitorState.CANCELLED
        self._log.info("Monitor stopped", state=self.state.value)
