"""One trading tick: discover, screen, buy, record, start monitoring."""

import structlog

from ..core.errors import DuplicateKeyError, NetworkError
from ..core.interfaces import BalanceSource, MarketFeed, PositionStore, SwapExecutor
from ..core.types import (
    LAMPORTS_PER_SOL,
    WSOL_MINT,
    Opportunity,
    Position,
    TradeDirection,
    TradeLedgerEntry,
    TradingParameters,
)
from ..filters.screening import ScreeningEngine
from ..monitor.registry import MonitorRegistry
from ..risk.manager import DailyTradeCounter

logger = structlog.get_logger(__name__)


class TradingCycle:
    """Runs the discovery-to-position sequence once per scheduled tick."""

    def __init__(
        self,
        feed: MarketFeed,
        screening: ScreeningEngine,
        executor: SwapExecutor,
        store: PositionStore,
        monitors: MonitorRegistry,
        balance_source: BalanceSource,
        wallet_pubkey: str,
        params: TradingParameters,
        buy_amount: float,
        trade_counter: DailyTradeCounter | None = None,
    ) -> None:
        """Initialize trading cycle.

        Args:
            feed: Candidate and price source
            screening: Keyword, threshold and safety checks
            executor: Swap executor (live or dry run)
            store: Position store and ledger
            monitors: Registry that receives a monitor per new position
            balance_source: Settlement asset balance query
            wallet_pubkey: Public key whose balance funds the buys
            params: Trading thresholds
            buy_amount: SOL committed per trade
            trade_counter: Daily cap state; built from params if omitted
        """
        self.feed = feed
        self.screening = screening
        self.executor = executor
        self.store = store
        self.monitors = monitors
        self.balance_source = balance_source
        self.wallet_pubkey = wallet_pubkey
        self.params = params
        self.buy_amount = buy_amount
        self.trade_counter = trade_counter or DailyTradeCounter(params.max_daily_trades)
        self.tick_count = 0

    @property
    def buy_lamports(self) -> int:
        return int(round(self.buy_amount * LAMPORTS_PER_SOL))

    async def run_tick(self) -> int:
        """Run one tick. Never raises.

        Returns:
            Number of positions opened during the tick
        """
        self.tick_count += 1
        log = logger.bind(tick=self.tick_count)
        try:
            return await self._run_tick(log)
        except Exception as e:
            log.error("Trading cycle error", error=str(e), error_type=type(e).__name__)
            return 0

    async def _run_tick(self, log) -> int:
        balance = await self.balance_source.get_balance(self.wallet_pubkey)
        if balance < self.buy_lamports:
            log.warning(
                "Insufficient SOL balance",
                balance_lamports=balance,
                required_lamports=self.buy_lamports,
            )
            return 0

        try:
            candidates = await self.feed.fetch_candidates()
        except NetworkError as e:
            log.warning("No candidates this tick, feed unavailable", error=str(e))
            return 0

        # A pair listed twice in one feed is bought at most once, first listing wins
        unique: dict[str, Opportunity] = {}
        for opp in candidates:
            unique.setdefault(opp.pair_address, opp)

        tracked = await self.store.list_tracked_addresses()
        opportunities = [
            opp
            for opp in unique.values()
            if opp.pair_address not in tracked
            and self.screening.is_candidate(opp)
            and self.screening.meets_thresholds(opp)
        ]

        # Feed order, simple truncation; no ranking
        limit = min(self.params.max_daily_trades, self.trade_counter.remaining)
        selected = opportunities[:limit]

        log.info(
            "Screened candidates",
            candidates=len(candidates),
            duplicates=len(candidates) - len(unique),
            tracked=len(tracked),
            opportunities=len(opportunities),
            selected=len(selected),
            remaining_today=self.trade_counter.remaining,
        )

        opened = 0
        for opp in selected:
            if await self._process_opportunity(opp, log):
                opened += 1
        return opened

    async def _process_opportunity(self, opp: Opportunity, log) -> bool:
        mint = opp.base_token.address
        log = log.bind(pair_address=opp.pair_address, token_mint=mint)

        if not await self.screening.verify_safety(mint):
            log.info("Opportunity rejected by safety scan", symbol=opp.base_token.symbol)
            return False

        try:
            result = await self.executor.swap(WSOL_MINT, mint, self.buy_lamports)
        except Exception as e:
            log.error(
                "Buy failed, skipping opportunity",
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        self.trade_counter.record()

        position = Position(
            pair_address=opp.pair_address,
            token_mint=mint,
            symbol=opp.base_token.symbol,
            entry_price=opp.price_usd,
            amount=self.buy_amount,
            token_amount=(
                result.min_out_amount
                if result.min_out_amount is not None
                else result.out_amount
            ),
        )
        try:
            await self.store.insert_position(position)
        except DuplicateKeyError:
            log.error("Position already stored, dedup set was stale", tx_id=result.tx_id)
            return False

        self.monitors.spawn(position)
        await self.store.append_ledger_entry(
            TradeLedgerEntry(
                tx_id=result.tx_id,
                pair_address=opp.pair_address,
                direction=TradeDirection.BUY,
                amount=self.buy_amount,
                price=opp.price_usd,
            )
        )

        log.info(
            "Position opened",
            symbol=opp.base_token.symbol,
            entry_price=opp.price_usd,
            amount=self.buy_amount,
            tx_id=result.tx_id,
            simulated=result.simulated,
        )
        return True
