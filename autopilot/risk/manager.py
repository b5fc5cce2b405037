"""Daily trade cap with calendar-day reset."""

from collections.abc import Callable
from datetime import UTC, date, datetime, time

import structlog

from ..core.interfaces import PositionStore
from ..core.types import TradeDirection

logger = structlog.get_logger(__name__)


class DailyTradeCounter:
    """Counts buys per UTC calendar day against a fixed cap.

    Owned by the trading cycle. Reads and increments happen without an
    intervening await, so the single event loop keeps them consistent.
    """

    def __init__(
        self,
        max_daily_trades: int,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize trade counter.

        Args:
            max_daily_trades: Maximum buys per calendar day
            now_fn: Optional function returning the current aware datetime
                (for testing)
        """
        self.max_daily_trades = max_daily_trades
        self._now_fn = now_fn or (lambda: datetime.now(UTC))
        self._day: date = self._today()
        self._count = 0

    def _today(self) -> date:
        return self._now_fn().astimezone(UTC).date()

    def day_start(self) -> datetime:
        """Start of the current UTC day."""
        return datetime.combine(self._today(), time.min, tzinfo=UTC)

    def _reset_daily_if_needed(self) -> None:
        """Reset the count if a new day has started."""
        today = self._today()
        if today != self._day:
            logger.info(
                "New trading day started, resetting trade count",
                previous_day=self._day.isoformat(),
                previous_count=self._count,
            )
            self._day = today
            self._count = 0

    @property
    def count(self) -> int:
        self._reset_daily_if_needed()
        return self._count

    @property
    def remaining(self) -> int:
        """Buys still allowed today."""
        return max(0, self.max_daily_trades - self.count)

    def record(self) -> None:
        """Count one executed buy."""
        self._reset_daily_if_needed()
        self._count += 1
        logger.debug(
            "Trade counted",
            count=self._count,
            max_daily_trades=self.max_daily_trades,
        )

    async def load(self, store: PositionStore) -> None:
        """Seed today's count from BUY rows already in the ledger."""
        self._reset_daily_if_needed()
        self._count = await store.count_ledger_entries_since(
            self.day_start(), TradeDirection.BUY
        )
        logger.info(
            "Daily trade count restored",
            day=self._day.isoformat(),
            count=self._count,
            max_daily_trades=self.max_daily_trades,
        )
