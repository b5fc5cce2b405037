"""Tests for the daily trade counter."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from autopilot.core.types import TradeDirection
from autopilot.risk.manager import DailyTradeCounter


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 5, 1, 23, 0, tzinfo=UTC))


def test_remaining_counts_down(clock):
    """Test that each recorded buy uses one slot."""
    counter = DailyTradeCounter(3, now_fn=clock)

    assert counter.remaining == 3
    counter.record()
    counter.record()

    assert counter.count == 2
    assert counter.remaining == 1


def test_remaining_never_negative(clock):
    counter = DailyTradeCounter(1, now_fn=clock)
    counter.record()
    counter.record()

    assert counter.remaining == 0


def test_zero_cap_blocks_everything(clock):
    assert DailyTradeCounter(0, now_fn=clock).remaining == 0


def test_resets_on_new_utc_day(clock):
    """Test that the count resets at the UTC day boundary."""
    counter = DailyTradeCounter(2, now_fn=clock)
    counter.record()
    counter.record()
    assert counter.remaining == 0

    clock.now += timedelta(hours=1, minutes=1)

    assert counter.count == 0
    assert counter.remaining == 2


def test_day_start_is_utc_midnight(clock):
    counter = DailyTradeCounter(5, now_fn=clock)

    assert counter.day_start() == datetime(2024, 5, 1, tzinfo=UTC)


@pytest.mark.asyncio
async def test_load_seeds_from_ledger(clock):
    """Test that buys already recorded today count against the cap."""
    store = AsyncMock()
    store.count_ledger_entries_since.return_value = 4
    counter = DailyTradeCounter(5, now_fn=clock)

    await counter.load(store)

    assert counter.count == 4
    assert counter.remaining == 1
    store.count_ledger_entries_since.assert_awaited_once_with(
        datetime(2024, 5, 1, tzinfo=UTC), TradeDirection.BUY
    )
