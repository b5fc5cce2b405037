"""Tests for the dry-run executor."""

import pytest
import respx

from autopilot.core.interfaces import SwapExecutor
from autopilot.core.types import WSOL_MINT
from autopilot.exec.paper import SIMULATED_TX_PREFIX, DryRunExecutor


@pytest.mark.asyncio
async def test_returns_simulated_result():
    """Test that a dry-run swap reports a simulated transaction."""
    executor = DryRunExecutor()

    result = await executor.swap(WSOL_MINT, "MintA", 100_000_000)

    assert result.simulated is True
    assert result.tx_id.startswith(f"{SIMULATED_TX_PREFIX}-")
    assert result.out_amount is None


@pytest.mark.asyncio
async def test_transaction_ids_are_unique():
    executor = DryRunExecutor()

    ids = {(await executor.swap(WSOL_MINT, "MintA", 1)).tx_id for _ in range(20)}

    assert len(ids) == 20


@pytest.mark.asyncio
async def test_records_calls():
    executor = DryRunExecutor()

    await executor.swap(WSOL_MINT, "MintA", 5)
    await executor.swap("MintA", WSOL_MINT, 7)

    assert [(c["input_mint"], c["output_mint"], c["amount"]) for c in executor.calls] == [
        (WSOL_MINT, "MintA", 5),
        ("MintA", WSOL_MINT, 7),
    ]


@pytest.mark.asyncio
async def test_makes_no_network_calls():
    """Test that dry-run swaps never reach the network."""
    with respx.mock(assert_all_called=False) as router:
        router.route().respond(500)

        await DryRunExecutor().swap(WSOL_MINT, "MintA", 1)

        assert router.calls.call_count == 0


def test_is_swap_executor():
    assert isinstance(DryRunExecutor(), SwapExecutor)


@pytest.mark.asyncio
async def test_call_history_is_bounded():
    """Test that only the most recent calls are kept in a long-running process."""
    executor = DryRunExecutor(history_size=3)

    for amount in range(10):
        await executor.swap(WSOL_MINT, "MintA", amount)

    assert [c["amount"] for c in executor.calls] == [7, 8, 9]
